"""
Tests for the remote template fetcher.
HTTP is served by httpx.MockTransport — no real network access.
"""
from __future__ import annotations

import io
from unittest.mock import MagicMock

import httpx
import pytest

from deploykit.config import DeployConfig
from deploykit.errors import NetworkFetchFailed
from deploykit.fetcher import TEMPLATE_NAMES, _fetch_one, fetch_templates, is_remote_execution


BASE_URL = "https://templates.example.com/kit/"


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _serve_all(request: httpx.Request) -> httpx.Response:
    name = request.url.path.rsplit("/", 1)[-1]
    return httpx.Response(200, text=f"# {name} for {{{{PROJECT_NAME}}}}\n")


class _Tty(io.StringIO):
    def isatty(self) -> bool:
        return True


# ─────────────────────────────────────────────────────────────────────────────
# fetch_templates
# ─────────────────────────────────────────────────────────────────────────────

def test_fetch_all_templates(tmp_path):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return _serve_all(request)

    with _client(handler) as client:
        fetched = fetch_templates(BASE_URL, tmp_path, client=client)

    assert set(fetched) == set(TEMPLATE_NAMES)
    assert requested[0] == "https://templates.example.com/kit/makefile.template"
    makefile = fetched["makefile.template"]
    assert makefile.parent == tmp_path
    assert makefile.read_text(encoding="utf-8") == "# makefile.template for {{PROJECT_NAME}}\n"


def test_fetch_failures_are_omitted_not_raised(tmp_path):
    def handler(request):
        name = request.url.path.rsplit("/", 1)[-1]
        if name == "gemfile.template":
            return httpx.Response(404, text="Not Found")
        if name == "ios_appfile.template":
            raise httpx.ConnectError("connection refused", request=request)
        if name == "android_appfile.template":
            return httpx.Response(200, text="   \n")
        return _serve_all(request)

    printer = MagicMock()
    with _client(handler) as client:
        fetched = fetch_templates(BASE_URL, tmp_path, client=client, printer=printer)

    assert "gemfile.template" not in fetched
    assert "ios_appfile.template" not in fetched
    assert "android_appfile.template" not in fetched
    assert len(fetched) == len(TEMPLATE_NAMES) - 3
    assert printer.warning.call_count == 3
    assert not (tmp_path / "gemfile.template").exists()


def test_fetch_one_reports_status_code():
    with _client(lambda request: httpx.Response(503)) as client:
        with pytest.raises(NetworkFetchFailed, match="HTTP 503"):
            _fetch_one(client, "https://templates.example.com/x.template")


def test_fetch_respects_custom_names(tmp_path):
    with _client(_serve_all) as client:
        fetched = fetch_templates(BASE_URL, tmp_path / "sub", client=client, names=("makefile.template",))
    assert list(fetched) == ["makefile.template"]


# ─────────────────────────────────────────────────────────────────────────────
# is_remote_execution
# ─────────────────────────────────────────────────────────────────────────────

def test_terminal_stdin_is_local():
    assert is_remote_execution(DeployConfig(), stdin=_Tty()) is False


def test_piped_stdin_is_remote():
    assert is_remote_execution(DeployConfig(), stdin=io.StringIO("")) is True


def test_force_remote_overrides_terminal():
    assert is_remote_execution(DeployConfig(force_remote=True), stdin=_Tty()) is True


def test_closed_stdin_is_remote():
    stream = io.StringIO()
    stream.close()
    assert is_remote_execution(DeployConfig(), stdin=stream) is True

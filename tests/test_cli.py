"""
Tests for the deploykit CLI: argument routing and exit codes.
Network and external tools are patched out.
"""
from __future__ import annotations

import os

import pytest

from deploykit import cli
from deploykit.cli import _route, build_parser, main
from deploykit.runner import CommandResult


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    """Run from an empty directory with no signing variables and no remote fetch."""
    monkeypatch.chdir(tmp_path)
    for name in ("ANDROID_KEYSTORE_BASE64", "KEYSTORE_PASSWORD", "PLAY_STORE_JSON_BASE64",
                 "PLAY_STORE_JSON_KEY_DATA", "FORCE_REMOTE_EXECUTION"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("deploykit.pipeline.is_remote_execution", lambda config, stdin=None: False)


def _pubspec(root, version="1.0.0+1"):
    (root / "pubspec.yaml").write_text(f"name: demo_app\nversion: {version}\n", encoding="utf-8")
    return root


# ─────────────────────────────────────────────────────────────────────────────
# Routing
# ─────────────────────────────────────────────────────────────────────────────

def test_route_defaults_to_setup():
    assert _route([]) == ["setup"]
    assert _route(["./my_app", "--github"]) == ["setup", "./my_app", "--github"]
    assert _route(["--local"]) == ["setup", "--local"]


def test_route_keeps_subcommands_and_help():
    assert _route(["beta", "--platform", "ios"]) == ["beta", "--platform", "ios"]
    assert _route(["secrets", "--repo", "acme/demo"]) == ["secrets", "--repo", "acme/demo"]
    assert _route(["--help"]) == ["--help"]


def test_parser_defaults():
    args = build_parser().parse_args(["release"])
    assert args.platform == "all"
    assert args.bump == "minor"
    assert args.rollout is None
    args = build_parser().parse_args(["promote", "--from", "beta", "--to", "production"])
    assert (args.from_track, args.to_track) == ("beta", "production")


# ─────────────────────────────────────────────────────────────────────────────
# Exit codes
# ─────────────────────────────────────────────────────────────────────────────

def test_help_exits_zero():
    assert main(["--help"]) == 0


def test_usage_error_exits_one():
    assert main(["setup", "--local", "--github"]) == 1
    assert main(["beta", "--platform", "windows"]) == 1


def test_setup_without_pubspec_exits_one(tmp_path):
    assert main([str(tmp_path)]) == 1
    assert list(tmp_path.iterdir()) == []


def test_setup_creates_files_and_exits_zero(tmp_path):
    root = _pubspec(tmp_path)

    assert main([str(root), "--local", "--team-id", "ABCDE12345", "-q"]) == 0

    assert (root / "Makefile").is_file()
    assert 'team_id("ABCDE12345")' in (root / "ios/fastlane/Appfile").read_text(encoding="utf-8")


def test_beta_missing_credentials_exits_one(tmp_path):
    _pubspec(tmp_path)
    assert main(["beta", "--path", str(tmp_path), "--platform", "android"]) == 1
    assert "version: 1.0.0+1" in (tmp_path / "pubspec.yaml").read_text(encoding="utf-8")


def test_release_rejects_rollout_out_of_range(tmp_path):
    _pubspec(tmp_path)
    assert main(["release", "--path", str(tmp_path), "--rollout", "150"]) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Utility subcommands
# ─────────────────────────────────────────────────────────────────────────────

def test_bump_subcommand(tmp_path):
    _pubspec(tmp_path, "2.3.4+9")
    assert main(["bump", "--path", str(tmp_path), "--kind", "patch"]) == 0
    assert "version: 2.3.5+10" in (tmp_path / "pubspec.yaml").read_text(encoding="utf-8")


def test_bump_outside_flutter_project_exits_one(tmp_path):
    assert main(["bump", "--path", str(tmp_path)]) == 1


def test_changelog_write(tmp_path, monkeypatch):
    seen = {}

    def fake_generate(root, since=None, grouped=False, max_commits=50):
        seen.update(since=since, grouped=grouped, max_commits=max_commits)
        return "- Fix crash (Ann)"

    monkeypatch.setattr(cli, "generate_changelog", fake_generate)

    assert main(["changelog", "--path", str(tmp_path), "--grouped", "--max-commits", "10", "--write"]) == 0
    assert seen == {"since": None, "grouped": True, "max_commits": 10}
    assert (tmp_path / "builder" / "changelog.txt").read_text(encoding="utf-8") == "- Fix crash (Ann)\n"


def test_changelog_prints_to_stdout(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "generate_changelog", lambda root, **kwargs: "- Tweak (Bo)")
    assert main(["changelog", "--path", str(tmp_path), "--since", "v1.0.0", "-q"]) == 0
    assert "- Tweak (Bo)" in capsys.readouterr().out


# ─────────────────────────────────────────────────────────────────────────────
# .env loading
# ─────────────────────────────────────────────────────────────────────────────

def _capture_config(monkeypatch, name):
    """Replace load_config with one that records *name* as the CLI sees it."""
    # setenv + delenv so monkeypatch removes whatever load_dotenv adds
    monkeypatch.setenv(name, "placeholder")
    monkeypatch.delenv(name)
    seen = {}
    real_load_config = cli.load_config

    def fake_load_config(environ=None):
        seen["value"] = os.environ.get(name)
        return real_load_config(environ)

    monkeypatch.setattr(cli, "load_config", fake_load_config)
    return seen


def test_dotenv_in_working_directory_feeds_config(tmp_path, monkeypatch):
    _pubspec(tmp_path)
    (tmp_path / ".env").write_text("DEPLOYKIT_DOTENV_CHECK=from-dotenv\n", encoding="utf-8")
    seen = _capture_config(monkeypatch, "DEPLOYKIT_DOTENV_CHECK")

    assert main(["bump", "--kind", "build"]) == 0
    assert seen["value"] == "from-dotenv"


def test_dotenv_in_project_root_feeds_config(tmp_path, monkeypatch):
    app = tmp_path / "app"
    app.mkdir()
    _pubspec(app)
    (app / ".env").write_text("KEYSTORE_PASSWORD=from-project\n", encoding="utf-8")
    seen = _capture_config(monkeypatch, "KEYSTORE_PASSWORD")

    assert main(["bump", "--path", str(app), "--kind", "build"]) == 0
    assert seen["value"] == "from-project"


def test_real_environment_wins_over_dotenv(tmp_path, monkeypatch):
    _pubspec(tmp_path)
    (tmp_path / ".env").write_text("DEPLOYKIT_DOTENV_CHECK=from-dotenv\n", encoding="utf-8")
    seen = _capture_config(monkeypatch, "DEPLOYKIT_DOTENV_CHECK")
    monkeypatch.setenv("DEPLOYKIT_DOTENV_CHECK", "from-shell")

    assert main(["bump", "--kind", "build"]) == 0
    assert seen["value"] == "from-shell"


# ─────────────────────────────────────────────────────────────────────────────
# secrets
# ─────────────────────────────────────────────────────────────────────────────

def _fake_gh(monkeypatch, secrets, remote="git@github.com:acme/demo.git"):
    calls = []

    def runner(args, cwd=None, **kwargs):
        calls.append(list(args))
        if args[:3] == ["git", "remote", "get-url"]:
            return CommandResult(list(args), 0, stdout=remote + "\n")
        stdout = "".join(f"{name}\t2024-05-01\n" for name in secrets)
        return CommandResult(list(args), 0, stdout=stdout)

    monkeypatch.setattr(cli, "run_command", runner)
    return calls


def test_secrets_all_configured_exits_zero(tmp_path, monkeypatch):
    _pubspec(tmp_path)
    (tmp_path / ".git").mkdir()
    calls = _fake_gh(monkeypatch, ["APP_STORE_KEY_ID", "APP_STORE_ISSUER_ID", "APP_STORE_KEY_CONTENT"])

    assert main(["secrets", "--platform", "ios"]) == 0
    assert ["gh", "secret", "list", "--repo", "acme/demo"] in calls


def test_secrets_missing_exits_one(tmp_path, monkeypatch):
    _pubspec(tmp_path)
    _fake_gh(monkeypatch, ["KEYSTORE_PASSWORD"])
    assert main(["secrets", "--repo", "acme/demo", "--platform", "android"]) == 1


def test_secrets_without_github_remote_exits_one(tmp_path, monkeypatch):
    _pubspec(tmp_path)
    (tmp_path / ".git").mkdir()
    calls = _fake_gh(monkeypatch, [], remote="https://gitlab.com/acme/demo.git")

    assert main(["secrets"]) == 1
    assert not any(call[:2] == ["gh", "secret"] for call in calls)

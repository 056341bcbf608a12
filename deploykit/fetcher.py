"""
Remote template fetcher.

Used only when deploykit runs non-interactively (piped from curl, CI, or
FORCE_REMOTE_EXECUTION=true). Each file is fetched once with httpx; a
failure is logged as a warning and the file is simply left out of the
result so the renderer falls back to its embedded copy.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import httpx

from .config import DeployConfig
from .console import StatusPrinter
from .errors import NetworkFetchFailed

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30.0

TEMPLATE_NAMES: tuple[str, ...] = (
    "makefile.template",
    "android_fastfile.template",
    "ios_fastfile.template",
    "github_deploy.template",
    "gemfile.template",
    "android_appfile.template",
    "ios_appfile.template",
    "ios_export_options.template",
)


def is_remote_execution(config: DeployConfig, stdin: Optional[TextIO] = None) -> bool:
    """True when forced by config or when stdin is not an attached terminal."""
    if config.force_remote:
        return True
    stream = sys.stdin if stdin is None else stdin
    try:
        return not stream.isatty()
    except (AttributeError, ValueError):
        # closed or replaced stream
        return True


def _fetch_one(client: httpx.Client, url: str) -> str:
    try:
        response = client.get(url)
    except httpx.HTTPError as exc:
        raise NetworkFetchFailed(url, str(exc) or type(exc).__name__) from exc
    if response.status_code != 200:
        raise NetworkFetchFailed(url, f"HTTP {response.status_code}")
    if not response.text.strip():
        raise NetworkFetchFailed(url, "empty response")
    return response.text


def fetch_templates(
    base_url: str,
    dest_dir: str | Path,
    client: Optional[httpx.Client] = None,
    printer: Optional[StatusPrinter] = None,
    names: tuple[str, ...] = TEMPLATE_NAMES,
) -> dict[str, Path]:
    """
    Download each template in *names* from *base_url* into *dest_dir*.

    Returns {template name: local path} for the files that arrived; failed
    downloads are absent from the result.
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    base_url = base_url.rstrip("/")

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=FETCH_TIMEOUT, follow_redirects=True)

    fetched: dict[str, Path] = {}
    try:
        for name in names:
            url = f"{base_url}/{name}"
            try:
                text = _fetch_one(client, url)
            except NetworkFetchFailed as exc:
                logger.warning("%s", exc)
                if printer:
                    printer.warning(f"Could not download {name}; using built-in copy")
                continue
            path = dest_dir / name
            path.write_text(text, encoding="utf-8")
            fetched[name] = path
            logger.debug("Fetched %s (%d bytes)", name, len(text))
    finally:
        if owns_client:
            client.close()

    logger.info("Fetched %d/%d remote templates", len(fetched), len(names))
    return fetched

"""
Deployment-mode selection.

A project whose origin remote lives on github.com gets the GitHub Actions
wiring (tag push triggers the workflow); anything else, including a project
with no remote at all, deploys locally through Fastlane. The decision is
re-derived on every run.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GITHUB_HOSTS = frozenset({GITHUB_HOST, "www.github.com", "ssh.github.com"})

# git@github.com:owner/repo.git
_SCP_LIKE = re.compile(r"^(?:[^@/]+@)?([^:/]+):(?!//)")


class DeploymentMode(str, Enum):
    LOCAL = "local"
    GITHUB_ACTIONS = "github"

    @property
    def label(self) -> str:
        return "GitHub Actions" if self is DeploymentMode.GITHUB_ACTIONS else "Local Fastlane"


def remote_host(url: Optional[str]) -> Optional[str]:
    """
    Extract the lower-cased host from a git remote URL.

    Handles https://, ssh://, git:// URLs and the scp-like
    ``user@host:path`` form. Returns None when nothing usable is found.
    """
    if not url:
        return None
    url = url.strip()
    if "://" in url:
        host = urlsplit(url).hostname
        return host.lower() if host else None
    match = _SCP_LIKE.match(url)
    if match:
        return match.group(1).lower()
    return None


def select_deployment_mode(remote_url: Optional[str]) -> DeploymentMode:
    host = remote_host(remote_url)
    mode = DeploymentMode.GITHUB_ACTIONS if host in GITHUB_HOSTS else DeploymentMode.LOCAL
    logger.debug("Remote %r (host %r) -> %s", remote_url, host, mode.value)
    return mode

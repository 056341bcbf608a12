"""
Repository secret check for the GitHub Actions deployment mode.

The generated workflow reads its signing material from repository secrets.
Before a release tag is pushed, ``gh secret list`` tells us whether the
secrets the workflow needs are actually configured. Only secret names are
visible through gh; values are never read.

Usage:
    report = check_repository_secrets("acme/demo", ["android", "ios"])
    if not report.ok:
        print(report.missing)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence
from urllib.parse import urlsplit

from .console import StatusPrinter
from .deployment_mode import GITHUB_HOSTS, remote_host
from .runner import Runner, run_command

logger = logging.getLogger(__name__)

# Every name must exist
REQUIRED_SECRETS: dict[str, tuple[str, ...]] = {
    "android": ("ANDROID_KEYSTORE_BASE64", "KEYSTORE_PASSWORD"),
    "ios": ("APP_STORE_KEY_ID", "APP_STORE_ISSUER_ID", "APP_STORE_KEY_CONTENT"),
}

# At least one name of each group must exist
ALTERNATIVE_SECRETS: dict[str, tuple[tuple[str, ...], ...]] = {
    "android": (("PLAY_STORE_JSON_BASE64", "PLAY_STORE_JSON_KEY_DATA"),),
    "ios": (),
}

# Either none or all of a group
ALL_OR_NONE_SECRETS: dict[str, tuple[tuple[str, ...], ...]] = {
    "android": (),
    "ios": (("IOS_DIST_CERT_BASE64", "IOS_CERT_PASSWORD", "IOS_PROVISIONING_PROFILE_BASE64"),),
}

# Reported when absent, never a failure
OPTIONAL_SECRETS: dict[str, tuple[str, ...]] = {
    "android": ("KEY_ALIAS", "KEY_PASSWORD"),
    "ios": ("USE_FASTLANE_MATCH", "MATCH_PASSWORD", "MATCH_GIT_BASIC_AUTHORIZATION"),
}


@dataclass
class SecretsReport:
    repository: str
    present: set[str] = field(default_factory=set)
    missing: list[str] = field(default_factory=list)
    optional_missing: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    @property
    def settings_url(self) -> str:
        return f"https://github.com/{self.repository}/settings/secrets/actions"


def github_repository(remote_url: Optional[str]) -> Optional[str]:
    """Return ``owner/name`` for a GitHub remote URL, or None for anything else."""
    if remote_host(remote_url) not in GITHUB_HOSTS:
        return None
    url = remote_url.strip()
    path = urlsplit(url).path if "://" in url else url.split(":", 1)[1]
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        return None
    owner, name = parts[0], parts[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return f"{owner}/{name}" if name else None


def list_repository_secrets(repository: str, runner: Runner = run_command) -> set[str]:
    """
    Names of the Actions secrets configured for *repository*.

    Raises ExternalToolFailure when gh is missing, not logged in, or cannot
    see the repository.
    """
    result = runner(["gh", "secret", "list", "--repo", repository]).check()
    names = set()
    for line in result.stdout.splitlines():
        fields = line.split()
        if fields:
            names.add(fields[0])
    logger.debug("%d secret(s) configured for %s", len(names), repository)
    return names


def missing_secrets(present: set[str], platforms: Sequence[str]) -> tuple[list[str], list[str]]:
    """Return (missing required names, missing optional names) for *platforms*."""
    missing: list[str] = []
    optional: list[str] = []
    for platform in platforms:
        missing += [name for name in REQUIRED_SECRETS[platform] if name not in present]
        for group in ALTERNATIVE_SECRETS[platform]:
            if not any(name in present for name in group):
                missing.append(" or ".join(group))
        for group in ALL_OR_NONE_SECRETS[platform]:
            if any(name in present for name in group):
                missing += [name for name in group if name not in present]
        optional += [name for name in OPTIONAL_SECRETS[platform] if name not in present]
    return missing, optional


def check_repository_secrets(
    repository: str,
    platforms: Sequence[str],
    runner: Runner = run_command,
) -> SecretsReport:
    present = list_repository_secrets(repository, runner)
    missing, optional = missing_secrets(present, platforms)
    return SecretsReport(repository, present, missing, optional)


def print_secrets_report(printer: StatusPrinter, report: SecretsReport) -> None:
    for name in report.missing:
        printer.error(f"Secret {name} is missing")
    for name in report.optional_missing:
        printer.info(f"Optional secret {name} not set")
    if report.ok:
        printer.success(f"All required GitHub secrets are configured for {report.repository}")
    else:
        printer.warning(f"Add the missing secrets at {report.settings_url}")

"""
Runtime configuration
=====================
All environment-derived settings live in one DeployConfig built at process
start by load_config(). Components receive it explicitly; nothing below the
CLI reads os.environ.

The CLI loads .env from the working directory and from the project root
before load_config(), so those files feed the same variables as the shell
environment (which takes precedence).

Android signing:
    ANDROID_KEYSTORE_BASE64, KEYSTORE_PASSWORD, KEY_ALIAS (default "upload"),
    KEY_PASSWORD (default: keystore password),
    PLAY_STORE_JSON_BASE64 or PLAY_STORE_JSON_KEY_DATA

iOS signing:
    APP_STORE_KEY_ID, APP_STORE_ISSUER_ID, APP_STORE_KEY_CONTENT,
    USE_FASTLANE_MATCH, IOS_DIST_CERT_BASE64, IOS_CERT_PASSWORD,
    IOS_PROVISIONING_PROFILE_BASE64

Release behaviour:
    SLACK_WEBHOOK_URL, DISCORD_WEBHOOK_URL, AUTO_SUBMIT_FOR_REVIEW,
    AUTO_RELEASE_AFTER_REVIEW, AUTO_PUSH_GIT_TAGS
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_BASE_URL = (
    "https://raw.githubusercontent.com/sangnguyen-it/App-Auto-Deployment-kit/main/templates"
)
DEFAULT_FLUTTER_VERSION = "3.24.3"

# Placeholder values written when the operator has not supplied real ones
SENTINELS: dict[str, str] = {
    "TEAM_ID": "YOUR_TEAM_ID",
    "APPLE_ID": "your-apple-id@email.com",
    "KEY_ID": "YOUR_KEY_ID",
    "ISSUER_ID": "YOUR_ISSUER_ID",
}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _get(environ: Mapping[str, str], name: str) -> str:
    return (environ.get(name) or "").strip()


@dataclass(frozen=True)
class AndroidCredentials:
    keystore_base64: str = ""
    keystore_password: str = ""
    key_alias: str = "upload"
    key_password: str = ""
    play_store_json_base64: str = ""
    play_store_json_key_data: str = ""

    def missing_signing(self) -> list[str]:
        missing = []
        if not self.keystore_base64:
            missing.append("ANDROID_KEYSTORE_BASE64")
        if not self.keystore_password:
            missing.append("KEYSTORE_PASSWORD")
        return missing

    @property
    def has_play_store_json(self) -> bool:
        return bool(self.play_store_json_base64 or self.play_store_json_key_data)


@dataclass(frozen=True)
class IOSCredentials:
    key_id: str = ""
    issuer_id: str = ""
    key_content: str = ""
    use_match: bool = False
    dist_cert_base64: str = ""
    cert_password: str = ""
    provisioning_profile_base64: str = ""

    def missing_api_key(self) -> list[str]:
        pairs = [
            ("APP_STORE_KEY_ID", self.key_id),
            ("APP_STORE_ISSUER_ID", self.issuer_id),
            ("APP_STORE_KEY_CONTENT", self.key_content),
        ]
        return [name for name, value in pairs if not value]

    def manual_certificate_state(self) -> tuple[bool, list[str]]:
        """
        Return (requested, missing) for manual certificate setup.

        Manual setup is requested as soon as any of the three variables is
        set; then all three are required.
        """
        pairs = [
            ("IOS_DIST_CERT_BASE64", self.dist_cert_base64),
            ("IOS_CERT_PASSWORD", self.cert_password),
            ("IOS_PROVISIONING_PROFILE_BASE64", self.provisioning_profile_base64),
        ]
        requested = any(value for _, value in pairs)
        missing = [name for name, value in pairs if not value] if requested else []
        return requested, missing


@dataclass(frozen=True)
class DeployConfig:
    """Process-wide settings, constructed once by load_config()."""

    android: AndroidCredentials = field(default_factory=AndroidCredentials)
    ios: IOSCredentials = field(default_factory=IOSCredentials)
    slack_webhook_url: str = ""
    discord_webhook_url: str = ""
    auto_submit_for_review: bool = False
    auto_release_after_review: bool = False
    auto_push_git_tags: bool = False
    ci: bool = False
    template_base_url: str = DEFAULT_TEMPLATE_BASE_URL
    templates_dir: Optional[Path] = None
    force_remote: bool = False
    team_id: str = ""
    apple_id: str = ""
    flutter_version: str = DEFAULT_FLUTTER_VERSION


def load_config(environ: Optional[Mapping[str, str]] = None) -> DeployConfig:
    """Build a DeployConfig from *environ* (defaults to os.environ)."""
    env = os.environ if environ is None else environ

    keystore_password = _get(env, "KEYSTORE_PASSWORD")
    android = AndroidCredentials(
        keystore_base64=_get(env, "ANDROID_KEYSTORE_BASE64"),
        keystore_password=keystore_password,
        key_alias=_get(env, "KEY_ALIAS") or "upload",
        key_password=_get(env, "KEY_PASSWORD") or keystore_password,
        play_store_json_base64=_get(env, "PLAY_STORE_JSON_BASE64"),
        play_store_json_key_data=_get(env, "PLAY_STORE_JSON_KEY_DATA"),
    )
    ios = IOSCredentials(
        key_id=_get(env, "APP_STORE_KEY_ID"),
        issuer_id=_get(env, "APP_STORE_ISSUER_ID"),
        key_content=_get(env, "APP_STORE_KEY_CONTENT"),
        use_match=_flag(env.get("USE_FASTLANE_MATCH")),
        dist_cert_base64=_get(env, "IOS_DIST_CERT_BASE64"),
        cert_password=_get(env, "IOS_CERT_PASSWORD"),
        provisioning_profile_base64=_get(env, "IOS_PROVISIONING_PROFILE_BASE64"),
    )
    templates_dir = _get(env, "DEPLOYKIT_TEMPLATES_DIR")

    return DeployConfig(
        android=android,
        ios=ios,
        slack_webhook_url=_get(env, "SLACK_WEBHOOK_URL"),
        discord_webhook_url=_get(env, "DISCORD_WEBHOOK_URL"),
        auto_submit_for_review=_flag(env.get("AUTO_SUBMIT_FOR_REVIEW")),
        auto_release_after_review=_flag(env.get("AUTO_RELEASE_AFTER_REVIEW")),
        auto_push_git_tags=_flag(env.get("AUTO_PUSH_GIT_TAGS")),
        ci=_flag(env.get("CI")),
        template_base_url=_get(env, "DEPLOYKIT_TEMPLATE_BASE_URL") or DEFAULT_TEMPLATE_BASE_URL,
        templates_dir=Path(templates_dir) if templates_dir else None,
        force_remote=_flag(env.get("FORCE_REMOTE_EXECUTION")),
        team_id=_get(env, "TEAM_ID"),
        apple_id=_get(env, "APPLE_ID"),
        flutter_version=_get(env, "FLUTTER_VERSION") or DEFAULT_FLUTTER_VERSION,
    )


def read_project_config(path: str | Path) -> dict[str, str]:
    """
    Read a project.config KEY="VALUE" file.

    Returns only keys with non-empty values that are not placeholder
    sentinels, so the result can be used directly as overrides.
    """
    path = Path(path)
    if not path.is_file():
        return {}
    values = dotenv_values(path)
    overrides: dict[str, str] = {}
    for key, value in values.items():
        if not value:
            continue
        if SENTINELS.get(key) == value or value.startswith("YOUR_"):
            continue
        overrides[key] = value
    logger.debug("Loaded %d values from %s", len(overrides), path)
    return overrides

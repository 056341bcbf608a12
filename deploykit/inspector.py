"""
ProjectInspector — reads a Flutter project's manifest and platform files and
returns a ProjectDescriptor.

Detection order:
- name / version: first top-level ``name:`` / ``version:`` in pubspec.yaml
  (version defaults to 1.0.0+1)
- Android package: build.gradle.kts applicationId, then its namespace,
  then build.gradle applicationId, then AndroidManifest.xml package,
  then ``com.example.<lowercased name>``
- iOS bundle id: Runner/Info.plist CFBundleIdentifier; when that is a build
  variable, PRODUCT_BUNDLE_IDENTIFIER in project.pbxproj; otherwise the
  Android package
- VCS remote: ``git remote get-url origin`` when a .git directory exists
"""
from __future__ import annotations

import logging
import plistlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import NotAFlutterProject
from .runner import Runner, run_command

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0+1"

_NAME_RE = re.compile(r"^name:\s*(.+?)\s*$", re.MULTILINE)
_VERSION_RE = re.compile(r"^version:\s*(.+?)\s*$", re.MULTILINE)

# (relative path, pattern) in priority order
_ANDROID_SOURCES: list[tuple[str, re.Pattern]] = [
    ("android/app/build.gradle.kts", re.compile(r'applicationId\s*=\s*"([^"]+)"')),
    ("android/app/build.gradle.kts", re.compile(r'namespace\s*=\s*"([^"]+)"')),
    ("android/app/build.gradle", re.compile(r'applicationId\s*=?\s*["\']([^"\']+)["\']')),
    ("android/app/src/main/AndroidManifest.xml", re.compile(r'package="([^"]+)"')),
]

_PBX_BUNDLE_RE = re.compile(r"PRODUCT_BUNDLE_IDENTIFIER\s*=\s*\"?([^\";]+)\"?;")


@dataclass(frozen=True)
class ProjectDescriptor:
    """Identity of the target Flutter project, fixed for one run."""

    root: Path
    name: str
    version: str
    android_package: str
    ios_bundle_id: str
    vcs_remote_url: Optional[str] = None

    @property
    def app_name(self) -> str:
        """Display name: my_cool-app -> My Cool App."""
        words = re.sub(r"[_-]+", " ", self.name).split()
        return " ".join(w[:1].upper() + w[1:] for w in words) or self.name

    @property
    def version_name(self) -> str:
        return self.version.split("+", 1)[0]

    @property
    def version_code(self) -> str:
        parts = self.version.split("+", 1)
        return parts[1] if len(parts) > 1 else "1"


def _strip_value(raw: str) -> str:
    # drop trailing YAML comments, then surrounding quotes
    value = raw.split(" #", 1)[0].strip()
    return value.strip("\"'").strip()


def read_pubspec_field(text: str, key: str) -> Optional[str]:
    """Return the first top-level ``key:`` value in pubspec text, or None."""
    pattern = _NAME_RE if key == "name" else _VERSION_RE if key == "version" else re.compile(
        rf"^{re.escape(key)}:\s*(.+?)\s*$", re.MULTILINE
    )
    match = pattern.search(text)
    if not match:
        return None
    value = _strip_value(match.group(1))
    return value or None


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def detect_android_package(root: Path) -> Optional[str]:
    for rel_path, pattern in _ANDROID_SOURCES:
        text = _read_text(root / rel_path)
        if not text:
            continue
        match = pattern.search(text)
        if match and match.group(1).strip():
            logger.debug("Android package from %s: %s", rel_path, match.group(1))
            return match.group(1).strip()
    return None


def detect_ios_bundle_id(root: Path) -> Optional[str]:
    plist_path = root / "ios" / "Runner" / "Info.plist"
    if plist_path.is_file():
        try:
            with plist_path.open("rb") as fp:
                data = plistlib.load(fp)
        except (plistlib.InvalidFileException, ValueError, OSError) as exc:
            logger.warning("Could not parse %s: %s", plist_path, exc)
            data = {}
        bundle_id = str(data.get("CFBundleIdentifier", "")).strip()
        if bundle_id and "$(" not in bundle_id:
            return bundle_id

    pbx_text = _read_text(root / "ios" / "Runner.xcodeproj" / "project.pbxproj")
    if pbx_text:
        for candidate in _PBX_BUNDLE_RE.findall(pbx_text):
            candidate = candidate.strip()
            # test targets share the file; skip them
            if candidate and "$(" not in candidate and not candidate.endswith("Tests"):
                return candidate
    return None


def detect_vcs_remote(root: Path, runner: Runner = run_command) -> Optional[str]:
    if not (root / ".git").exists():
        return None
    result = runner(["git", "remote", "get-url", "origin"], cwd=root)
    if not result.ok:
        logger.debug("No origin remote: %s", result.stderr.strip())
        return None
    url = result.stdout.strip()
    return url or None


class ProjectInspector:
    """
    Builds a ProjectDescriptor for a Flutter project directory.

    Usage:
        descriptor = ProjectInspector().inspect(Path("my_app"))
    """

    def __init__(self, runner: Runner = run_command) -> None:
        self._runner = runner

    def inspect(self, root: str | Path) -> ProjectDescriptor:
        root = Path(root).resolve()
        pubspec = root / "pubspec.yaml"
        if not pubspec.is_file():
            raise NotAFlutterProject(root)

        text = _read_text(pubspec) or ""
        name = read_pubspec_field(text, "name") or root.name
        version = read_pubspec_field(text, "version")
        if version is None:
            version = DEFAULT_VERSION
            logger.info("No version in pubspec.yaml; using %s", DEFAULT_VERSION)

        android_package = detect_android_package(root) or f"com.example.{name.lower()}"
        ios_bundle_id = detect_ios_bundle_id(root) or android_package
        remote = detect_vcs_remote(root, self._runner)

        descriptor = ProjectDescriptor(
            root=root,
            name=name,
            version=version,
            android_package=android_package,
            ios_bundle_id=ios_bundle_id,
            vcs_remote_url=remote,
        )
        logger.debug("Inspected project: %s", descriptor)
        return descriptor

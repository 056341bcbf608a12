"""
Semantic version bumps for pubspec.yaml.

Versions have the Flutter form MAJOR.MINOR.PATCH+BUILD. Every bump
increments BUILD; major/minor/patch also reset the lower components.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import VersionNotFound

logger = logging.getLogger(__name__)

BUMP_KINDS = ("major", "minor", "patch", "build")

_VERSION_LINE = re.compile(r"^(version:[ \t]*)([\"']?)([^\s#\"']+)([\"']?)(.*)$", re.MULTILINE)
_SEMVER = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:\+(\d+))?$")


def parse_version(version: str) -> tuple[int, int, int, int]:
    """
    Parse ``X.Y.Z+B`` into integers; a missing ``+B`` counts as build 1.

    Raises ValueError for anything else.
    """
    match = _SEMVER.match(version.strip().strip("\"'"))
    if not match:
        raise ValueError(f"Not a MAJOR.MINOR.PATCH+BUILD version: {version!r}")
    major, minor, patch, build = match.groups()
    return int(major), int(minor), int(patch), int(build) if build is not None else 1


def next_version(current: str, kind: str) -> str:
    if kind not in BUMP_KINDS:
        raise ValueError(f"Unknown bump kind {kind!r}; expected one of {', '.join(BUMP_KINDS)}")
    major, minor, patch, build = parse_version(current)
    if kind == "major":
        major, minor, patch = major + 1, 0, 0
    elif kind == "minor":
        minor, patch = minor + 1, 0
    elif kind == "patch":
        patch += 1
    return f"{major}.{minor}.{patch}+{build + 1}"


def read_version(pubspec: str | Path) -> str:
    pubspec = Path(pubspec)
    text = pubspec.read_text(encoding="utf-8")
    match = _VERSION_LINE.search(text)
    if not match:
        raise VersionNotFound(pubspec)
    return match.group(3)


def bump_version(pubspec: str | Path, kind: str) -> str:
    """
    Rewrite the top-level ``version:`` line of *pubspec* and return the new
    version. Nested ``version:`` keys (dependency constraints) are untouched.
    """
    pubspec = Path(pubspec)
    text = pubspec.read_text(encoding="utf-8")
    match = _VERSION_LINE.search(text)
    if not match:
        raise VersionNotFound(pubspec)

    current = match.group(3)
    new = next_version(current, kind)
    # only the version itself is replaced; surrounding quotes and comments stay
    updated = text[: match.start(3)] + new + text[match.end(3):]
    pubspec.write_text(updated, encoding="utf-8")
    logger.info("Version updated: %s -> %s (%s)", current, new, kind)
    return new

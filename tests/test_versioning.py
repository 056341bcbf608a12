"""
Tests for pubspec.yaml version parsing and bumping.
"""
from __future__ import annotations

import pytest

from deploykit.errors import VersionNotFound
from deploykit.versioning import bump_version, next_version, parse_version, read_version


PUBSPEC = """\
name: demo_app
description: Demo
version: 1.4.2+17 # bumped by CI

environment:
  sdk: ">=3.0.0 <4.0.0"

dependencies:
  some_package:
    version: 2.0.0
"""


# ─────────────────────────────────────────────────────────────────────────────
# next_version
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("kind,expected", [
    ("major", "2.0.0+18"),
    ("minor", "1.5.0+18"),
    ("patch", "1.4.3+18"),
    ("build", "1.4.2+18"),
])
def test_next_version(kind, expected):
    assert next_version("1.4.2+17", kind) == expected


def test_missing_build_number_counts_as_one():
    assert parse_version("1.0.0") == (1, 0, 0, 1)
    assert next_version("1.0.0", "build") == "1.0.0+2"


@pytest.mark.parametrize("value", ["1.0", "v1.0.0", "1.0.0+beta", ""])
def test_parse_version_rejects_other_forms(value):
    with pytest.raises(ValueError):
        parse_version(value)


def test_unknown_bump_kind():
    with pytest.raises(ValueError, match="bump kind"):
        next_version("1.0.0+1", "hotfix")


# ─────────────────────────────────────────────────────────────────────────────
# bump_version on a file
# ─────────────────────────────────────────────────────────────────────────────

def test_bump_rewrites_only_top_level_version(tmp_path):
    pubspec = tmp_path / "pubspec.yaml"
    pubspec.write_text(PUBSPEC, encoding="utf-8")

    assert bump_version(pubspec, "minor") == "1.5.0+18"

    text = pubspec.read_text(encoding="utf-8")
    assert "version: 1.5.0+18 # bumped by CI\n" in text
    assert "    version: 2.0.0\n" in text
    assert text.replace("1.5.0+18", "1.4.2+17") == PUBSPEC


def test_consecutive_bumps_strictly_increase_build(tmp_path):
    pubspec = tmp_path / "pubspec.yaml"
    pubspec.write_text("name: x\nversion: 0.9.9+5\n", encoding="utf-8")
    builds = [parse_version(bump_version(pubspec, kind))[3] for kind in ("build", "patch", "major", "build")]
    assert builds == [6, 7, 8, 9]
    assert read_version(pubspec) == "1.0.0+9"


def test_read_version_strips_quotes(tmp_path):
    pubspec = tmp_path / "pubspec.yaml"
    pubspec.write_text('name: x\nversion: "2.1.0+3"\n', encoding="utf-8")
    assert read_version(pubspec) == "2.1.0+3"


@pytest.mark.parametrize("quote", ['"', "'"])
def test_bump_keeps_quotes_and_trailing_comment(tmp_path, quote):
    pubspec = tmp_path / "pubspec.yaml"
    pubspec.write_text(f"name: x\nversion: {quote}2.1.0+3{quote}  # store version\n", encoding="utf-8")

    assert bump_version(pubspec, "patch") == "2.1.1+4"

    assert pubspec.read_text(encoding="utf-8") == f"name: x\nversion: {quote}2.1.1+4{quote}  # store version\n"
    assert read_version(pubspec) == "2.1.1+4"


def test_missing_version_line_raises(tmp_path):
    pubspec = tmp_path / "pubspec.yaml"
    pubspec.write_text("name: x\ndependencies:\n  version: 1.0.0\n", encoding="utf-8")
    with pytest.raises(VersionNotFound):
        bump_version(pubspec, "build")

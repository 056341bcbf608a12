"""
Tests for ProjectInspector and ProjectDescriptor.
No real git calls — the VCS remote is read through a fake runner.
"""
from __future__ import annotations

import plistlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from deploykit.errors import NotAFlutterProject
from deploykit.inspector import (
    DEFAULT_VERSION,
    ProjectDescriptor,
    ProjectInspector,
    detect_android_package,
    detect_ios_bundle_id,
    read_pubspec_field,
)
from deploykit.runner import CommandResult


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _write(root: Path, rel_path: str, text: str) -> Path:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _pubspec(root: Path, name: str = "demo_app", version: str | None = "1.0.0+1") -> None:
    lines = [f"name: {name}", "description: A Flutter app"]
    if version is not None:
        lines.append(f"version: {version}")
    lines += ["", "dependencies:", "  flutter:", "    sdk: flutter"]
    _write(root, "pubspec.yaml", "\n".join(lines) + "\n")


def _no_git_runner():
    runner = MagicMock()
    runner.side_effect = AssertionError("runner must not be called without .git")
    return runner


# ─────────────────────────────────────────────────────────────────────────────
# pubspec parsing
# ─────────────────────────────────────────────────────────────────────────────

def test_read_pubspec_field_strips_quotes_and_comments():
    text = 'name: "my_app"  # the app\nversion: \'2.3.4+7\'\n'
    assert read_pubspec_field(text, "name") == "my_app"
    assert read_pubspec_field(text, "version") == "2.3.4+7"


def test_read_pubspec_field_first_top_level_match_wins():
    """Indented keys (dependency blocks) are not top-level matches."""
    text = "dependencies:\n  name: nested\nname: real_name\nname: second\n"
    assert read_pubspec_field(text, "name") == "real_name"


def test_read_pubspec_field_missing_returns_none():
    assert read_pubspec_field("name: x\n", "version") is None


# ─────────────────────────────────────────────────────────────────────────────
# Android package detection
# ─────────────────────────────────────────────────────────────────────────────

def test_android_package_prefers_kotlin_application_id(tmp_path):
    _write(tmp_path, "android/app/build.gradle.kts",
           'android {\n    namespace = "com.ns.app"\n    defaultConfig {\n        applicationId = "com.kts.app"\n    }\n}\n')
    _write(tmp_path, "android/app/build.gradle", 'applicationId "com.groovy.app"\n')
    assert detect_android_package(tmp_path) == "com.kts.app"


def test_android_package_uses_kotlin_namespace_when_no_application_id(tmp_path):
    _write(tmp_path, "android/app/build.gradle.kts", 'android {\n    namespace = "com.ns.app"\n}\n')
    assert detect_android_package(tmp_path) == "com.ns.app"


def test_android_package_from_groovy_build_script(tmp_path):
    _write(tmp_path, "android/app/build.gradle",
           "android {\n    defaultConfig {\n        applicationId 'com.groovy.app'\n    }\n}\n")
    assert detect_android_package(tmp_path) == "com.groovy.app"


def test_android_package_from_manifest(tmp_path):
    _write(tmp_path, "android/app/src/main/AndroidManifest.xml",
           '<manifest xmlns:android="http://schemas.android.com/apk/res/android" package="com.manifest.app">\n</manifest>\n')
    assert detect_android_package(tmp_path) == "com.manifest.app"


def test_android_package_none_when_no_sources(tmp_path):
    assert detect_android_package(tmp_path) is None


# ─────────────────────────────────────────────────────────────────────────────
# iOS bundle id detection
# ─────────────────────────────────────────────────────────────────────────────

def test_ios_bundle_id_from_info_plist(tmp_path):
    plist = tmp_path / "ios" / "Runner" / "Info.plist"
    plist.parent.mkdir(parents=True)
    plist.write_bytes(plistlib.dumps({"CFBundleIdentifier": "com.plist.app"}))
    assert detect_ios_bundle_id(tmp_path) == "com.plist.app"


def test_ios_bundle_id_resolves_build_variable_from_pbxproj(tmp_path):
    """$(PRODUCT_BUNDLE_IDENTIFIER) in Info.plist is resolved from project.pbxproj, skipping test targets."""
    plist = tmp_path / "ios" / "Runner" / "Info.plist"
    plist.parent.mkdir(parents=True)
    plist.write_bytes(plistlib.dumps({"CFBundleIdentifier": "$(PRODUCT_BUNDLE_IDENTIFIER)"}))
    _write(tmp_path, "ios/Runner.xcodeproj/project.pbxproj",
           "PRODUCT_BUNDLE_IDENTIFIER = com.pbx.app.RunnerTests;\n"
           "PRODUCT_BUNDLE_IDENTIFIER = com.pbx.app;\n")
    assert detect_ios_bundle_id(tmp_path) == "com.pbx.app"


def test_ios_bundle_id_none_when_absent(tmp_path):
    assert detect_ios_bundle_id(tmp_path) is None


# ─────────────────────────────────────────────────────────────────────────────
# ProjectInspector.inspect
# ─────────────────────────────────────────────────────────────────────────────

def test_inspect_missing_pubspec_raises(tmp_path):
    with pytest.raises(NotAFlutterProject):
        ProjectInspector(_no_git_runner()).inspect(tmp_path)


def test_inspect_end_to_end_scenario(tmp_path):
    """name demo_app, version 1.0.0+1, applicationId com.acme.demo, no .git."""
    _pubspec(tmp_path)
    _write(tmp_path, "android/app/build.gradle", 'defaultConfig {\n    applicationId "com.acme.demo"\n}\n')

    d = ProjectInspector(_no_git_runner()).inspect(tmp_path)

    assert d.name == "demo_app"
    assert d.version == "1.0.0+1"
    assert d.android_package == "com.acme.demo"
    assert d.ios_bundle_id == "com.acme.demo"
    assert d.vcs_remote_url is None


def test_inspect_default_version_when_missing(tmp_path):
    _pubspec(tmp_path, version=None)
    d = ProjectInspector(_no_git_runner()).inspect(tmp_path)
    assert d.version == DEFAULT_VERSION == "1.0.0+1"


def test_inspect_synthesizes_package_from_lowercased_name(tmp_path):
    _pubspec(tmp_path, name="MyApp")
    d = ProjectInspector(_no_git_runner()).inspect(tmp_path)
    assert d.android_package == "com.example.myapp"
    assert d.ios_bundle_id == "com.example.myapp"


def test_inspect_reads_origin_remote_when_git_present(tmp_path):
    _pubspec(tmp_path)
    (tmp_path / ".git").mkdir()
    runner = MagicMock(return_value=CommandResult(
        ["git"], 0, stdout="git@github.com:acme/demo.git\n"))

    d = ProjectInspector(runner).inspect(tmp_path)

    assert d.vcs_remote_url == "git@github.com:acme/demo.git"
    args, kwargs = runner.call_args
    assert args[0] == ["git", "remote", "get-url", "origin"]
    assert kwargs["cwd"] == tmp_path.resolve()


def test_inspect_missing_remote_is_not_an_error(tmp_path):
    _pubspec(tmp_path)
    (tmp_path / ".git").mkdir()
    runner = MagicMock(return_value=CommandResult(["git"], 2, stderr="error: No such remote 'origin'"))
    d = ProjectInspector(runner).inspect(tmp_path)
    assert d.vcs_remote_url is None


# ─────────────────────────────────────────────────────────────────────────────
# ProjectDescriptor — derived values
# ─────────────────────────────────────────────────────────────────────────────

def test_descriptor_is_immutable(tmp_path):
    d = ProjectDescriptor(tmp_path, "demo_app", "1.2.3+4", "com.a", "com.a")
    with pytest.raises(AttributeError):
        d.name = "other"  # type: ignore[misc]


def test_descriptor_app_name_and_version_parts(tmp_path):
    d = ProjectDescriptor(tmp_path, "my_cool-app", "1.2.3+4", "com.a", "com.a")
    assert d.app_name == "My Cool App"
    assert d.version_name == "1.2.3"
    assert d.version_code == "4"


def test_descriptor_version_code_defaults_to_one(tmp_path):
    d = ProjectDescriptor(tmp_path, "x", "2.0.0", "com.a", "com.a")
    assert d.version_code == "1"

"""
LaneInvoker — signing, build, upload, promote and clean for a Flutter project.

Each lane is a straight sequence: validate -> sign -> build -> upload ->
notify. Any failure ends the lane with an exception; nothing is retried.

Decoded credentials are written only inside signing_session(), which
removes every file it wrote whether the lane succeeds or not. Credential
files the operator already had are moved aside first and restored on exit.

Usage:
    invoker = LaneInvoker(project_root, load_config())
    invoker.beta("android")
    invoker.release("all", rollout=20)
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .changelog import generate_changelog, write_changelog
from .config import DeployConfig
from .console import StatusPrinter
from .errors import ArtifactNotFound, MalformedCredential, MissingCredential
from .runner import Runner, run_command
from .versioning import BUMP_KINDS, bump_version

logger = logging.getLogger(__name__)

PLATFORMS = ("android", "ios")
PLATFORM_LABELS = {"android": "Android", "ios": "iOS"}

ANDROID_ARTIFACTS = {
    "appbundle": Path("build/app/outputs/bundle/release/app-release.aab"),
    "apk": Path("build/app/outputs/flutter-apk/app-release.apk"),
}
IOS_IPA_DIR = Path("build/ios/ipa")

ANDROID_TRACKS = ("internal", "alpha", "beta", "production")
BETA_TRACKS = {"android": "internal", "ios": "testflight"}
RELEASE_TRACKS = {"android": "production", "ios": "app_store"}

# Credential files, relative to the project root
KEYSTORE_FILE = Path("android/app/release.keystore")
KEY_PROPERTIES_FILE = Path("android/key.properties")
PLAY_STORE_JSON_FILE = Path("android/fastlane/play_store_service_account.json")
IOS_FASTLANE_DIR = Path("ios/fastlane")

# An operator's own credential file is moved aside while a session runs
BACKUP_SUFFIX = ".deploykit-backup"

CI_KEYCHAIN = "fastlane_tmp_keychain"
LOCAL_KEYCHAIN = "login.keychain"


def expand_platforms(platform: str) -> list[str]:
    if platform == "all":
        return list(PLATFORMS)
    if platform not in PLATFORMS:
        raise ValueError(f"Unknown platform {platform!r}; expected android, ios or all")
    return [platform]


def validate_rollout(rollout: Optional[float]) -> Optional[float]:
    if rollout is None:
        return None
    value = float(rollout)
    if not 0 <= value <= 100:
        raise ValueError(f"Rollout percentage must be between 0 and 100, got {rollout}")
    return value


def _format_rollout(value: float) -> str:
    return f"{value:g}"


def decode_base64(name: str, value: str) -> bytes:
    """Decode a base64 credential, ignoring embedded whitespace and newlines."""
    compact = "".join(value.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedCredential(name, f"not valid base64 ({exc})") from exc
    if not data:
        raise MalformedCredential(name, "decodes to an empty value")
    return data


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


def _release(created: list[Path]) -> None:
    """Remove session-written files and put any backed-up originals back."""
    for path in reversed(created):
        _remove(path)
        backup = backup_path(path)
        if backup.exists():
            try:
                backup.replace(path)
                logger.info("Restored %s", path.name)
            except OSError as exc:
                logger.warning("Could not restore %s from %s: %s", path, backup, exc)


def _remove(path: Path) -> bool:
    """Best-effort removal of a file or directory; True if something was removed."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
            return True
        if path.exists() or path.is_symlink():
            path.unlink()
            return True
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)
    return False


class LaneInvoker:
    def __init__(
        self,
        project_root: str | Path,
        config: DeployConfig,
        runner: Runner = run_command,
        printer: Optional[StatusPrinter] = None,
    ) -> None:
        self.root = Path(project_root).resolve()
        self.config = config
        self.runner = runner
        self.printer = printer or StatusPrinter()

    # ── Helpers ──────────────────────────────────────────────────────────────

    @property
    def pubspec(self) -> Path:
        return self.root / "pubspec.yaml"

    def _fastlane(self, *args: str) -> list[str]:
        prefix = ["bundle", "exec"] if (self.root / "Gemfile").is_file() else []
        return prefix + ["fastlane", *args]

    def _lane_env(self) -> dict[str, str]:
        """Variables the generated Fastfiles read, taken from the config."""
        ios = self.config.ios
        env = {
            "APP_STORE_KEY_ID": ios.key_id,
            "APP_STORE_ISSUER_ID": ios.issuer_id,
            "APP_STORE_KEY_CONTENT": ios.key_content,
            "USE_FASTLANE_MATCH": "true" if ios.use_match else "false",
            "AUTO_SUBMIT_FOR_REVIEW": "true" if self.config.auto_submit_for_review else "false",
            "AUTO_RELEASE_AFTER_REVIEW": "true" if self.config.auto_release_after_review else "false",
        }
        if self.config.team_id:
            env["TEAM_ID"] = self.config.team_id
        return {k: v for k, v in env.items() if v}

    def _run_lane(self, platform: str, *args: str) -> None:
        cmd = self._fastlane(platform, *args)
        self.printer.step(f"fastlane {platform} {args[0]}")
        self.runner(cmd, cwd=self.root / platform, env=self._lane_env(), capture=False).check()

    def _write_secret(self, rel_path: Path, data: bytes, created: list[Path]) -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        backup = backup_path(path)
        if path.exists() and path not in created and not backup.exists():
            path.replace(backup)
            self.printer.info(f"Existing {rel_path} moved to {backup.name} for this run")
        path.write_bytes(data)
        created.append(path)
        path.chmod(0o600)
        logger.debug("Wrote credential file %s", rel_path)
        return path

    # ── Signing ──────────────────────────────────────────────────────────────

    def _play_store_json(self) -> bytes:
        android = self.config.android
        if android.play_store_json_base64:
            data = decode_base64("PLAY_STORE_JSON_BASE64", android.play_store_json_base64)
            name = "PLAY_STORE_JSON_BASE64"
        else:
            data = android.play_store_json_key_data.encode("utf-8")
            name = "PLAY_STORE_JSON_KEY_DATA"
        try:
            json.loads(data)
        except ValueError as exc:
            raise MalformedCredential(name, "service account is not valid JSON") from exc
        return data

    def _android_signing_plan(self) -> dict[Path, bytes]:
        android = self.config.android
        missing = android.missing_signing()
        hint = ""
        if not android.has_play_store_json:
            missing.append("PLAY_STORE_JSON_BASE64")
            hint = "or PLAY_STORE_JSON_KEY_DATA"
        if missing:
            raise MissingCredential(missing, hint)

        keystore = decode_base64("ANDROID_KEYSTORE_BASE64", android.keystore_base64)
        properties = "\n".join([
            f"storeFile={KEYSTORE_FILE.name}",
            f"storePassword={android.keystore_password}",
            f"keyAlias={android.key_alias}",
            f"keyPassword={android.key_password}",
        ]) + "\n"
        return {
            KEYSTORE_FILE: keystore,
            KEY_PROPERTIES_FILE: properties.encode("utf-8"),
            PLAY_STORE_JSON_FILE: self._play_store_json(),
        }

    def _ios_signing_plan(self) -> tuple[dict[Path, bytes], Optional[tuple[bytes, bytes]]]:
        """Return (files to write, (certificate, profile) or None)."""
        ios = self.config.ios
        missing = ios.missing_api_key()
        requested, cert_missing = ios.manual_certificate_state()
        missing += cert_missing
        if missing:
            raise MissingCredential(missing)

        files = {IOS_FASTLANE_DIR / f"AuthKey_{ios.key_id}.p8": ios.key_content.encode("utf-8")}
        manual = None
        if requested and not ios.use_match:
            manual = (
                decode_base64("IOS_DIST_CERT_BASE64", ios.dist_cert_base64),
                decode_base64("IOS_PROVISIONING_PROFILE_BASE64", ios.provisioning_profile_base64),
            )
        return files, manual

    def validate_signing(self, platform: str) -> None:
        """Raise MissingCredential/MalformedCredential without touching disk."""
        if platform == "android":
            self._android_signing_plan()
        else:
            self._ios_signing_plan()

    def _install_manual_certificate(self, certificate: bytes, profile: bytes) -> None:
        ios_dir = self.root / "ios"
        keychain = LOCAL_KEYCHAIN
        if self.config.ci:
            self.runner(self._fastlane("run", "setup_ci", "force:true"), cwd=ios_dir).check()
            keychain = CI_KEYCHAIN

        temp_paths: list[str] = []
        try:
            for suffix, data in ((".p12", certificate), (".mobileprovision", profile)):
                fd, name = tempfile.mkstemp(suffix=suffix)
                temp_paths.append(name)
                with os.fdopen(fd, "wb") as fp:
                    fp.write(data)
            cert_path, profile_path = temp_paths

            self.printer.step("Importing distribution certificate")
            self.runner(self._fastlane(
                "run", "import_certificate",
                f"certificate_path:{cert_path}",
                f"certificate_password:{self.config.ios.cert_password}",
                f"keychain_name:{keychain}",
            ), cwd=ios_dir).check()

            self.printer.step("Installing provisioning profile")
            self.runner(self._fastlane(
                "run", "install_provisioning_profile", f"path:{profile_path}",
            ), cwd=ios_dir).check()
        finally:
            for name in temp_paths:
                _remove(Path(name))

    def setup_signing(self, platform: str, created: Optional[list[Path]] = None) -> list[Path]:
        """
        Decode signing credentials for *platform* into the project tree.

        Every required variable is validated and decoded before the first
        file is written, so a missing or malformed credential leaves no
        partial setup behind. Paths written are appended to *created* (and
        returned) so the caller can remove them.
        """
        created = [] if created is None else created
        self.printer.step(f"Setting up {platform} signing")

        if platform == "android":
            for rel_path, data in self._android_signing_plan().items():
                self._write_secret(rel_path, data, created)
            self.printer.success("Android keystore, key.properties and service account ready")
            return created

        files, manual = self._ios_signing_plan()
        for rel_path, data in files.items():
            self._write_secret(rel_path, data, created)

        if self.config.ios.use_match:
            self.printer.step("Fetching certificates with match")
            readonly = "true" if self.config.ci else "false"
            self.runner(
                self._fastlane("run", "match", "type:appstore", f"readonly:{readonly}"),
                cwd=self.root / "ios",
                env=self._lane_env(),
            ).check()
        elif manual is not None:
            self._install_manual_certificate(*manual)
        else:
            self.printer.info("No match or manual certificate configured; using automatic signing")
        self.printer.success("iOS signing ready")
        return created

    @contextmanager
    def signing_session(self, platform: str) -> Iterator[list[Path]]:
        """Set up signing for *platform*; on exit remove every file written and restore any it replaced."""
        created: list[Path] = []
        try:
            self.setup_signing(platform, created)
            yield created
        finally:
            _release(created)
            if created:
                logger.debug("Removed %d credential file(s) for %s", len(created), platform)

    # ── Build ────────────────────────────────────────────────────────────────

    def build(self, platform: str, build_type: str = "appbundle") -> Path:
        self.printer.step(f"Building {platform} ({build_type if platform == 'android' else 'ipa'})")
        self.runner(["flutter", "pub", "get"], cwd=self.root).check()

        if platform == "android":
            if build_type not in ANDROID_ARTIFACTS:
                raise ValueError(f"Unknown Android build type {build_type!r}; expected appbundle or apk")
            self.runner(["flutter", "build", build_type, "--release"], cwd=self.root, capture=False).check()
            artifact = self.root / ANDROID_ARTIFACTS[build_type]
            if not artifact.is_file():
                raise ArtifactNotFound(artifact)
        else:
            cmd = ["flutter", "build", "ipa", "--release"]
            export_options = IOS_FASTLANE_DIR / "ExportOptions.plist"
            if (self.root / export_options).is_file():
                cmd.append(f"--export-options-plist={export_options.as_posix()}")
            self.runner(cmd, cwd=self.root, capture=False).check()
            ipas = sorted((self.root / IOS_IPA_DIR).glob("*.ipa"))
            if not ipas:
                raise ArtifactNotFound(self.root / IOS_IPA_DIR / "*.ipa")
            artifact = ipas[-1]

        self.printer.success(f"Built {artifact.relative_to(self.root)}")
        return artifact

    # ── Upload ───────────────────────────────────────────────────────────────

    def _default_artifact(self, platform: str) -> Path:
        if platform == "android":
            path = self.root / ANDROID_ARTIFACTS["appbundle"]
            if not path.is_file():
                raise ArtifactNotFound(path)
            return path
        ipas = sorted((self.root / IOS_IPA_DIR).glob("*.ipa"))
        if not ipas:
            raise ArtifactNotFound(self.root / IOS_IPA_DIR / "*.ipa")
        return ipas[-1]

    def deploy(
        self,
        platform: str,
        track: str,
        changelog: str,
        rollout: Optional[float] = None,
        artifact: Optional[Path] = None,
        tag_version: Optional[str] = None,
    ) -> None:
        """
        Upload *artifact* to *track* with *changelog* as release notes.

        Android tracks: internal, alpha, beta, production. iOS tracks:
        testflight, app_store. *rollout* (0..100) is forwarded verbatim to
        the Fastfile. With *tag_version* the commit is tagged v<version>
        after a successful upload.
        """
        rollout = validate_rollout(rollout)
        artifact = Path(artifact) if artifact else self._default_artifact(platform)
        notes_path = write_changelog(self.root, changelog)

        if platform == "android":
            if track not in ANDROID_TRACKS:
                raise ValueError(f"Unknown Android track {track!r}; expected one of {', '.join(ANDROID_TRACKS)}")
            lane = "release" if track == "production" else "beta"
            args = [lane, f"track:{track}", f"aab:{artifact}", f"changelog_file:{notes_path}"]
            if rollout is not None:
                args.append(f"rollout:{_format_rollout(rollout)}")
                self.printer.info(f"Staged rollout: {_format_rollout(rollout)}%")
        else:
            if track not in ("testflight", "app_store"):
                raise ValueError(f"Unknown iOS track {track!r}; expected testflight or app_store")
            lane = "release" if track == "app_store" else "beta"
            args = [lane, f"ipa:{artifact}", f"changelog_file:{notes_path}"]

        self._run_lane(platform, *args)
        self.printer.success(f"Uploaded {artifact.name} to {platform} {track}")

        if tag_version:
            self.tag_release(tag_version, changelog, platform)

    def tag_release(self, version: str, changelog: str, label: str = "") -> bool:
        """Tag HEAD as v<version>; push it when AUTO_PUSH_GIT_TAGS is enabled."""
        if not (self.root / ".git").exists():
            logger.info("Not a git repository; skipping tag v%s", version)
            return False
        tag = f"v{version}"
        title = f"{PLATFORM_LABELS.get(label, label)} Release {tag}".strip()
        result = self.runner(["git", "tag", "-a", tag, "-m", f"{title}\n\n{changelog}"], cwd=self.root)
        if not result.ok:
            self.printer.warning(f"Could not create tag {tag}: {result.stderr.strip()}")
            return False
        self.printer.success(f"Tagged {tag}")
        if self.config.auto_push_git_tags:
            self.runner(["git", "push", "origin", tag], cwd=self.root).check()
            self.printer.success(f"Pushed {tag} to origin")
        return True

    def promote(self, from_track: str, to_track: str, rollout: Optional[float] = None) -> None:
        """Promote the latest Android release between Play Store tracks."""
        rollout = validate_rollout(rollout)
        for track in (from_track, to_track):
            if track not in ANDROID_TRACKS:
                raise ValueError(f"Unknown Android track {track!r}; expected one of {', '.join(ANDROID_TRACKS)}")
        if not self.config.android.has_play_store_json:
            raise MissingCredential(["PLAY_STORE_JSON_BASE64"], "or PLAY_STORE_JSON_KEY_DATA")

        self.printer.header(f"Promote Android {from_track} -> {to_track}")
        data = self._play_store_json()
        created: list[Path] = []
        try:
            self._write_secret(PLAY_STORE_JSON_FILE, data, created)
            args = ["promote", f"from:{from_track}", f"to:{to_track}"]
            if rollout is not None:
                args.append(f"rollout:{_format_rollout(rollout)}")
            self._run_lane("android", *args)
        finally:
            _release(created)
        self.printer.success(f"Promoted {from_track} -> {to_track}")

    # ── Lanes ────────────────────────────────────────────────────────────────

    def _ship(
        self, platforms: list[str], tracks: dict[str, str], bump: str, rollout: Optional[float],
    ) -> tuple[str, str]:
        """Validate, bump, then sign, build and upload each platform. Returns (version, changelog)."""
        for platform in platforms:
            self.validate_signing(platform)

        new_version = bump_version(self.pubspec, bump)
        self.printer.success(f"Version bumped to {new_version}")
        changelog = generate_changelog(self.root, runner=self.runner)
        write_changelog(self.root, changelog)

        for platform in platforms:
            with self.signing_session(platform):
                artifact = self.build(platform)
                self.deploy(
                    platform,
                    tracks[platform],
                    changelog,
                    rollout=rollout if platform == "android" else None,
                    artifact=artifact,
                )
        return new_version, changelog

    def beta(self, platform: str) -> str:
        """Bump the build number, build and upload to internal testing / TestFlight."""
        platforms = expand_platforms(platform)
        self.printer.header(f"Beta deployment ({', '.join(platforms)})")
        version, _ = self._ship(platforms, BETA_TRACKS, "build", None)
        self.notify(f"Beta {version} deployed for {', '.join(platforms)}")
        return version

    def release(self, platform: str, rollout: Optional[float] = None, bump: str = "minor") -> str:
        """Bump the version, build, upload to production / App Store and tag."""
        if bump not in BUMP_KINDS:
            raise ValueError(f"Unknown bump kind {bump!r}")
        rollout = validate_rollout(rollout)
        platforms = expand_platforms(platform)
        self.printer.header(f"Release deployment ({', '.join(platforms)})")
        version, changelog = self._ship(platforms, RELEASE_TRACKS, bump, rollout)
        self.tag_release(version.split("+", 1)[0], changelog, platform if platform != "all" else "")
        suffix = f" ({_format_rollout(rollout)}% rollout)" if rollout is not None and rollout < 100 else ""
        self.notify(f"Release {version} deployed for {', '.join(platforms)}{suffix}")
        return version

    def clean(self, platform: str) -> list[Path]:
        """Remove build output and credential files; every step is best-effort."""
        platforms = expand_platforms(platform)
        self.printer.header(f"Clean ({', '.join(platforms)})")

        result = self.runner(["flutter", "clean"], cwd=self.root)
        if not result.ok:
            self.printer.warning(f"flutter clean failed: {result.stderr.strip() or result.returncode}")

        targets: list[Path] = []
        if "android" in platforms:
            targets += [
                self.root / "android" / "build",
                self.root / "android" / "app" / "build",
                self.root / KEYSTORE_FILE,
                self.root / KEY_PROPERTIES_FILE,
                self.root / PLAY_STORE_JSON_FILE,
            ]
        if "ios" in platforms:
            targets += [self.root / "ios" / "build", self.root / "build" / "ios"]
            targets += sorted((self.root / IOS_FASTLANE_DIR).glob("AuthKey_*.p8"))
        if set(platforms) == set(PLATFORMS):
            targets.append(self.root / "build")

        removed = [path for path in targets if _remove(path)]
        for path in removed:
            self.printer.info(f"Removed {path.relative_to(self.root)}")
        self.printer.success("Cleanup completed")
        return removed

    # ── Notification ─────────────────────────────────────────────────────────

    def notify(self, message: str, success: bool = True) -> str:
        """Print the deployment notification and name the configured channels."""
        line = f"{'✅' if success else '❌'} {message}"
        if self.config.slack_webhook_url:
            self.printer.info(f"Slack notification: {line}")
            logger.info("Slack notification: %s", line)
        if self.config.discord_webhook_url:
            self.printer.info(f"Discord notification: {line}")
            logger.info("Discord notification: %s", line)
        if success:
            self.printer.success(message)
        else:
            self.printer.error(message)
        return line

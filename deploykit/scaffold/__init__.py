"""
TemplateRenderer — writes the CI/CD configuration files into a Flutter project.

Usage:
    renderer = TemplateRenderer(templates_dir=None, fetched={})
    report = renderer.render_all(project_root, substitution_map)
    # report.outcomes: one RenderOutcome per TemplateSpec

Each template is looked up in the local templates directory, then among the
remotely fetched files, then falls back to the copy embedded in
deploykit.scaffold.templates, so every file is produced even offline.
"""
from __future__ import annotations

import logging
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

import yaml

from ..console import StatusPrinter
from .templates import export_options, fastlane, gemfile, gitignore, makefile, project_config, workflow
from .templating import render_template

logger = logging.getLogger(__name__)


class WriteMode(str, Enum):
    PRESERVE = "preserve"        # operator-editable: never clobber
    OVERWRITE = "overwrite"      # regenerable
    MERGE_LINES = "merge_lines"  # append missing lines only


@dataclass(frozen=True)
class TemplateSpec:
    name: str
    source_name: str
    destination: str
    default: str
    required: frozenset[str]
    write_mode: WriteMode = WriteMode.PRESERVE
    executable: bool = False


TEMPLATE_SPECS: tuple[TemplateSpec, ...] = (
    TemplateSpec("makefile", "makefile.template", "Makefile",
                 makefile.TEMPLATE, makefile.PLACEHOLDERS, executable=True),
    TemplateSpec("gemfile", "gemfile.template", "Gemfile",
                 gemfile.TEMPLATE, gemfile.PLACEHOLDERS),
    TemplateSpec("project_config", "project_config.template", "project.config",
                 project_config.TEMPLATE, project_config.PLACEHOLDERS),
    TemplateSpec("gitignore", "gitignore.template", ".gitignore",
                 gitignore.TEMPLATE, gitignore.PLACEHOLDERS, WriteMode.MERGE_LINES),
    TemplateSpec("github_workflow", "github_deploy.template", ".github/workflows/deploy.yml",
                 workflow.TEMPLATE, workflow.PLACEHOLDERS, WriteMode.OVERWRITE),
    TemplateSpec("android_appfile", "android_appfile.template", "android/fastlane/Appfile",
                 fastlane.ANDROID_APPFILE, fastlane.ANDROID_APPFILE_PLACEHOLDERS),
    TemplateSpec("android_fastfile", "android_fastfile.template", "android/fastlane/Fastfile",
                 fastlane.ANDROID_FASTFILE, fastlane.ANDROID_FASTFILE_PLACEHOLDERS),
    TemplateSpec("ios_appfile", "ios_appfile.template", "ios/fastlane/Appfile",
                 fastlane.IOS_APPFILE, fastlane.IOS_APPFILE_PLACEHOLDERS),
    TemplateSpec("ios_fastfile", "ios_fastfile.template", "ios/fastlane/Fastfile",
                 fastlane.IOS_FASTFILE, fastlane.IOS_FASTFILE_PLACEHOLDERS),
    TemplateSpec("ios_export_options", "ios_export_options.template", "ios/fastlane/ExportOptions.plist",
                 export_options.TEMPLATE, export_options.PLACEHOLDERS),
)


@dataclass
class RenderOutcome:
    name: str
    destination: str
    status: str                  # written | skipped | merged | unchanged | failed
    origin: str = "embedded"     # local | remote | embedded
    missing: set[str] = field(default_factory=set)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"


@dataclass
class ScaffoldReport:
    outcomes: list[RenderOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def with_status(self, status: str) -> list[str]:
        return [o.destination for o in self.outcomes if o.status == status]

    @property
    def failed(self) -> list[RenderOutcome]:
        return [o for o in self.outcomes if not o.ok]


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def merge_lines(existing: str, additions: str) -> tuple[str, list[str]]:
    """
    Append the non-blank lines of *additions* missing from *existing*.

    Returns (new text, appended lines). Existing lines are never reordered
    or removed.
    """
    present = {line.strip() for line in existing.splitlines()}
    missing: list[str] = []
    for line in additions.splitlines():
        entry = line.strip()
        if entry and entry not in present and entry not in missing:
            missing.append(entry)
    if not missing:
        return existing, []
    text = existing
    if text and not text.endswith("\n"):
        text += "\n"
    if text.strip():
        text += "\n"
    text += "\n".join(missing) + "\n"
    return text, missing


class TemplateRenderer:
    """
    Renders TEMPLATE_SPECS into a project directory.

    render() never raises for a single file: I/O problems are recorded as a
    failed RenderOutcome so the rest of the batch still runs.
    """

    def __init__(
        self,
        templates_dir: Optional[Path] = None,
        fetched: Optional[Mapping[str, Path]] = None,
        force: bool = False,
        printer: Optional[StatusPrinter] = None,
        specs: tuple[TemplateSpec, ...] = TEMPLATE_SPECS,
    ) -> None:
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self.fetched = dict(fetched or {})
        self.force = force
        self.printer = printer or StatusPrinter(quiet=True)
        self.specs = specs

    # ── Source lookup ────────────────────────────────────────────────────────

    def load_source(self, spec: TemplateSpec) -> tuple[str, str]:
        """Return (template text, origin) for *spec*."""
        if self.templates_dir is not None:
            candidate = self.templates_dir / spec.source_name
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8"), "local"
        remote = self.fetched.get(spec.source_name)
        if remote is not None and Path(remote).is_file():
            return Path(remote).read_text(encoding="utf-8"), "remote"
        return spec.default, "embedded"

    def _render_text(self, spec: TemplateSpec, values: Mapping[str, str]) -> tuple[str, str, set[str]]:
        source, origin = self.load_source(spec)
        result = render_template(source, values, legacy=origin != "embedded")

        if origin != "embedded" and spec.destination.endswith((".yml", ".yaml")):
            try:
                yaml.safe_load(result.text)
            except yaml.YAMLError as exc:
                logger.warning("%s template from %s is not valid YAML (%s); using built-in copy",
                               spec.name, origin, exc)
                self.printer.warning(f"{spec.destination}: {origin} template is not valid YAML, using built-in copy")
                result = render_template(spec.default, values)
                origin = "embedded"
        return result.text, origin, result.missing

    # ── Writing ──────────────────────────────────────────────────────────────

    def _should_preserve(self, dest: Path) -> bool:
        if self.force or not dest.exists():
            return False
        try:
            # empty leftovers from an interrupted run are regenerated
            return bool(dest.read_text(encoding="utf-8", errors="replace").strip())
        except OSError:
            return True

    def render(self, spec: TemplateSpec, root: Path, values: Mapping[str, str]) -> RenderOutcome:
        dest = Path(root) / spec.destination
        outcome = RenderOutcome(spec.name, spec.destination, status="failed")

        if spec.write_mode is WriteMode.PRESERVE and self._should_preserve(dest):
            logger.debug("Skipping existing file: %s", spec.destination)
            self.printer.info(f"{spec.destination} already exists, skipping")
            outcome.status = "skipped"
            return outcome

        try:
            text, origin, missing = self._render_text(spec, values)
            outcome.origin = origin
            outcome.missing = missing
            dest.parent.mkdir(parents=True, exist_ok=True)

            if spec.write_mode is WriteMode.MERGE_LINES and dest.exists():
                existing = dest.read_text(encoding="utf-8")
                merged, added = merge_lines(existing, text)
                if added:
                    dest.write_text(merged, encoding="utf-8")
                    outcome.status = "merged"
                    self.printer.success(f"{spec.destination}: added {len(added)} entries")
                else:
                    outcome.status = "unchanged"
                    self.printer.info(f"{spec.destination} already up to date")
                return outcome

            dest.write_text(text, encoding="utf-8")
            if spec.executable:
                _make_executable(dest)
        except (OSError, UnicodeError) as exc:
            logger.error("Failed to render %s: %s", spec.destination, exc)
            self.printer.error(f"Failed to create {spec.destination}: {exc}")
            outcome.status = "failed"
            outcome.error = str(exc)
            return outcome

        outcome.status = "written"
        logger.debug("Rendered %s from %s template", spec.destination, origin)
        self.printer.success(f"Created {spec.destination} ({origin} template)")
        return outcome

    def render_all(self, root: str | Path, values: Mapping[str, str]) -> ScaffoldReport:
        root = Path(root)
        report = ScaffoldReport()
        for spec in self.specs:
            self.printer.step(f"Creating {spec.destination}")
            report.outcomes.append(self.render(spec, root, values))
        logger.info(
            "Scaffold finished: %d written, %d skipped, %d failed",
            len(report.with_status("written")),
            len(report.with_status("skipped")),
            len(report.failed),
        )
        return report


__all__ = [
    "TEMPLATE_SPECS",
    "RenderOutcome",
    "ScaffoldReport",
    "TemplateRenderer",
    "TemplateSpec",
    "WriteMode",
    "merge_lines",
]

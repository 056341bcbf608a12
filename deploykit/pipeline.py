"""
Setup pipeline: inspect -> select mode -> (fetch) -> render -> (gh auth and
secret check) -> summary.

run_setup() is what ``deploykit [PATH]`` executes. A missing pubspec.yaml
stops the run before any file is written; individual template failures
are collected in the report and turn the exit status to 1.
"""
from __future__ import annotations

import logging
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Mapping, Optional, TextIO

import httpx

from .config import SENTINELS, DeployConfig, read_project_config
from .console import StatusPrinter
from .deployment_mode import DeploymentMode, select_deployment_mode
from .fetcher import fetch_templates, is_remote_execution
from .errors import ExternalToolFailure
from .github_auth import ensure_github_auth
from .github_secrets import SecretsReport, check_repository_secrets, github_repository, print_secrets_report
from .inspector import ProjectDescriptor, ProjectInspector
from .runner import Runner, run_command
from .scaffold import ScaffoldReport, TemplateRenderer
from .scaffold.templates.makefile import GITHUB_LIVE_RECIPE, LOCAL_LIVE_RECIPE

logger = logging.getLogger(__name__)


@dataclass
class SetupOptions:
    mode: Optional[DeploymentMode] = None
    team_id: str = ""
    apple_id: str = ""
    templates_dir: Optional[Path] = None
    force: bool = False
    interactive: Optional[bool] = None   # None: not interactive when running remotely


@dataclass
class SetupReport:
    descriptor: ProjectDescriptor
    mode: DeploymentMode
    scaffold: ScaffoldReport
    remote: bool = False
    fetched: list[str] = field(default_factory=list)
    github_authenticated: Optional[bool] = None
    secrets: Optional[SecretsReport] = None

    @property
    def success(self) -> bool:
        return self.scaffold.success


def build_substitution_map(
    descriptor: ProjectDescriptor,
    mode: DeploymentMode,
    config: DeployConfig,
    overrides: Optional[Mapping[str, str]] = None,
    today: Optional[date] = None,
) -> dict[str, str]:
    """
    Derive the placeholder values for one project.

    Identity keys (TEAM_ID, APPLE_ID, KEY_ID, ISSUER_ID) resolve in order:
    *overrides* (CLI flags, then project.config), the config, the sentinel.
    """
    overrides = dict(overrides or {})
    identity_defaults = {
        "TEAM_ID": config.team_id,
        "APPLE_ID": config.apple_id,
        "KEY_ID": config.ios.key_id,
        "ISSUER_ID": config.ios.issuer_id,
    }
    identity = {
        key: overrides.get(key) or default or SENTINELS[key]
        for key, default in identity_defaults.items()
    }

    return {
        "PROJECT_NAME": descriptor.name,
        "APP_NAME": descriptor.app_name,
        "PACKAGE_NAME": descriptor.android_package,
        "BUNDLE_ID": descriptor.ios_bundle_id,
        "VERSION_FULL": descriptor.version,
        "VERSION_NAME": descriptor.version_name,
        "VERSION_CODE": descriptor.version_code,
        "FLUTTER_VERSION": config.flutter_version,
        "GENERATION_DATE": (today or date.today()).isoformat(),
        "DEPLOYMENT_MODE": mode.value,
        "LIVE_DEPLOY_RECIPE": GITHUB_LIVE_RECIPE if mode is DeploymentMode.GITHUB_ACTIONS else LOCAL_LIVE_RECIPE,
        **identity,
    }


def _check_secrets(
    printer: StatusPrinter, descriptor: ProjectDescriptor, runner: Runner,
) -> Optional[SecretsReport]:
    """Report missing repository secrets; never fails setup."""
    repository = github_repository(descriptor.vcs_remote_url)
    if repository is None:
        printer.info("No GitHub origin remote; skipping the repository secret check")
        return None
    printer.step(f"Checking GitHub Actions secrets for {repository}")
    try:
        secrets = check_repository_secrets(repository, ("android", "ios"), runner=runner)
    except ExternalToolFailure as exc:
        printer.warning(f"Could not list repository secrets: {exc}")
        return None
    print_secrets_report(printer, secrets)
    return secrets


def _print_summary(printer: StatusPrinter, report: SetupReport) -> None:
    d = report.descriptor
    printer.header("Summary")
    printer.info(f"Project:    {d.name} ({d.app_name})")
    printer.info(f"Version:    {d.version}")
    printer.info(f"Android:    {d.android_package}")
    printer.info(f"iOS:        {d.ios_bundle_id}")
    printer.info(f"Deployment: {report.mode.label}")
    for status in ("written", "merged", "skipped", "unchanged"):
        paths = report.scaffold.with_status(status)
        if paths:
            printer.info(f"{status.capitalize():<11} {', '.join(paths)}")
    for outcome in report.scaffold.failed:
        printer.error(f"Failed:     {outcome.destination} ({outcome.error})")

    if report.success:
        printer.success("Setup completed")
        if report.mode is DeploymentMode.GITHUB_ACTIONS:
            if report.secrets is not None and report.secrets.ok:
                printer.info("Next: run 'make live' to tag a release")
            else:
                printer.info("Next: add signing secrets to the repository (check with 'deploykit secrets'), "
                             "then run 'make live' to tag a release")
        else:
            printer.info("Next: export signing variables (or add them to .env), then run 'make tester'")


def run_setup(
    project_root: str | Path,
    config: DeployConfig,
    options: Optional[SetupOptions] = None,
    runner: Runner = run_command,
    printer: Optional[StatusPrinter] = None,
    stdin: Optional[TextIO] = None,
    http_client: Optional[httpx.Client] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> SetupReport:
    options = options or SetupOptions()
    printer = printer or StatusPrinter()

    printer.header("Flutter CI/CD setup")

    # ── Step 1: inspect ──
    printer.step(f"Inspecting {project_root}")
    descriptor = ProjectInspector(runner).inspect(project_root)
    printer.success(f"Found Flutter project {descriptor.name} {descriptor.version}")

    # ── Step 2: deployment mode ──
    mode = options.mode or select_deployment_mode(descriptor.vcs_remote_url)
    source = "forced" if options.mode else (descriptor.vcs_remote_url or "no git remote")
    printer.info(f"Deployment mode: {mode.label} ({source})")

    remote = is_remote_execution(config, stdin)
    interactive = (not remote) if options.interactive is None else options.interactive

    with ExitStack() as stack:
        # ── Step 3: remote templates ──
        fetched: dict[str, Path] = {}
        if remote:
            printer.step(f"Downloading templates from {config.template_base_url}")
            tmp_dir = stack.enter_context(tempfile.TemporaryDirectory(prefix="deploykit-"))
            fetched = fetch_templates(config.template_base_url, tmp_dir, client=http_client, printer=printer)

        # ── Step 4: render ──
        overrides = read_project_config(descriptor.root / "project.config")
        for key, value in (("TEAM_ID", options.team_id), ("APPLE_ID", options.apple_id)):
            if value:
                overrides[key] = value
        values = build_substitution_map(descriptor, mode, config, overrides)

        printer.header("Creating configuration files")
        renderer = TemplateRenderer(
            templates_dir=options.templates_dir or config.templates_dir,
            fetched=fetched,
            force=options.force,
            printer=printer,
        )
        scaffold = renderer.render_all(descriptor.root, values)

    report = SetupReport(
        descriptor=descriptor,
        mode=mode,
        scaffold=scaffold,
        remote=remote,
        fetched=sorted(fetched),
    )

    # ── Step 5: GitHub auth ──
    if mode is DeploymentMode.GITHUB_ACTIONS:
        kwargs = {"sleep": sleep} if sleep is not None else {}
        report.github_authenticated = ensure_github_auth(printer, interactive, runner=runner, **kwargs)
        if report.github_authenticated:
            report.secrets = _check_secrets(printer, descriptor, runner)

    _print_summary(printer, report)
    return report

"""
deploykit — Flutter CI/CD scaffolding and deployment lanes.

Set up a project:
    from deploykit import load_config, run_setup
    report = run_setup("path/to/app", load_config())

Deploy from Python:
    from deploykit import LaneInvoker
    LaneInvoker("path/to/app", load_config()).beta("android")
"""
from __future__ import annotations

from .changelog import generate_changelog, write_changelog
from .config import DeployConfig, load_config
from .deployment_mode import DeploymentMode, select_deployment_mode
from .errors import (
    ArtifactNotFound,
    DeployKitError,
    ExternalToolFailure,
    MalformedCredential,
    MissingCredential,
    NetworkFetchFailed,
    NotAFlutterProject,
    VersionNotFound,
)
from .github_secrets import SecretsReport, check_repository_secrets
from .inspector import ProjectDescriptor, ProjectInspector
from .lanes import LaneInvoker
from .pipeline import SetupOptions, SetupReport, build_substitution_map, run_setup
from .runner import CommandResult, run_command
from .scaffold import TemplateRenderer, TemplateSpec, WriteMode
from .versioning import bump_version, next_version

__version__ = "0.1.0"

__all__ = [
    "ArtifactNotFound",
    "CommandResult",
    "DeployConfig",
    "DeployKitError",
    "DeploymentMode",
    "ExternalToolFailure",
    "LaneInvoker",
    "MalformedCredential",
    "MissingCredential",
    "NetworkFetchFailed",
    "NotAFlutterProject",
    "ProjectDescriptor",
    "ProjectInspector",
    "SecretsReport",
    "SetupOptions",
    "SetupReport",
    "TemplateRenderer",
    "TemplateSpec",
    "VersionNotFound",
    "WriteMode",
    "build_substitution_map",
    "bump_version",
    "check_repository_secrets",
    "generate_changelog",
    "load_config",
    "next_version",
    "run_command",
    "run_setup",
    "select_deployment_mode",
    "write_changelog",
]

"""
Error taxonomy for deploykit.

Validation errors (missing manifest, missing credentials) are fatal and end
the run with exit code 1. NetworkFetchFailed never escapes the fetcher: it
is turned into a warning and the renderer falls back to embedded templates.
"""
from __future__ import annotations

from typing import Sequence


class DeployKitError(Exception):
    """Base class for every error the CLI reports and exits on."""


class NotAFlutterProject(DeployKitError):
    """The target directory has no pubspec.yaml."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"Not a Flutter project: pubspec.yaml not found in {path}")


class MissingCredential(DeployKitError):
    """One or more required environment variables are unset or empty."""

    def __init__(self, names: Sequence[str], hint: str = "") -> None:
        self.names = list(names)
        message = f"Missing required environment variables: {', '.join(self.names)}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class MalformedCredential(DeployKitError):
    """A credential variable is set but cannot be decoded."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"{name}: {reason}")


class ArtifactNotFound(DeployKitError):
    """The build tool exited cleanly but the expected output is missing."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"Build artifact not found at: {path}")


class NetworkFetchFailed(DeployKitError):
    """A remote template could not be downloaded."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"Failed to download {url}: {reason}")


class ExternalToolFailure(DeployKitError):
    """A shelled-out command exited non-zero."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.args_ = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed with exit code {returncode}: {' '.join(self.args_)}"
        tail = stderr.strip()[-300:]
        if tail:
            message = f"{message}\n{tail}"
        super().__init__(message)


class VersionNotFound(DeployKitError):
    """pubspec.yaml has no parseable top-level version line."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"Could not find a version line in {path}")

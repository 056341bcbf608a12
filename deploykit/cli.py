"""
CLI Entry Point — scaffold and deploy Flutter projects from the terminal
=======================================================================
Usage:
    deploykit [PATH]                     # set up CI/CD files (default: .)
    deploykit ./my_app --github --team-id ABCDE12345
    deploykit beta --platform android
    deploykit release --platform all --rollout 20
    deploykit promote --from internal --to production
    deploykit bump --kind patch
    deploykit changelog --grouped
    deploykit secrets --platform ios

Exit status is 0 on success and 1 on any validation or execution failure.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from .changelog import generate_changelog, write_changelog
from .config import DeployConfig, load_config
from .console import StatusPrinter
from .deployment_mode import DeploymentMode
from .errors import DeployKitError, NotAFlutterProject
from .github_secrets import check_repository_secrets, github_repository, print_secrets_report
from .inspector import detect_vcs_remote
from .lanes import ANDROID_TRACKS, LaneInvoker, expand_platforms
from .pipeline import SetupOptions, run_setup
from .runner import run_command
from .versioning import BUMP_KINDS, bump_version, read_version

logger = logging.getLogger(__name__)

SUBCOMMANDS = ("setup", "beta", "release", "promote", "clean", "bump", "changelog", "secrets")


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        force=True,  # re-apply even if already configured
    )


def load_env_files(project_path: str = ".") -> list[Path]:
    """
    Load .env from the working directory (or its nearest parent), then from
    the project root. Real environment variables always win, and the first
    file loaded wins over the second.
    """
    loaded: list[Path] = []
    found = find_dotenv(usecwd=True)
    candidates = [Path(found).resolve()] if found else []
    candidates.append((Path(project_path) / ".env").resolve())
    for env_file in candidates:
        if env_file in loaded or not env_file.is_file():
            continue
        load_dotenv(env_file, override=False)
        loaded.append(env_file)
        logger.debug("Loaded environment from %s", env_file)
    return loaded


def _require_project(path: str) -> Path:
    root = Path(path).resolve()
    if not (root / "pubspec.yaml").is_file():
        raise NotAFlutterProject(root)
    return root


# ── Command handlers ─────────────────────────────────────────────────────────

def cmd_setup(args, config: DeployConfig, printer: StatusPrinter) -> int:
    mode = None
    if args.local:
        mode = DeploymentMode.LOCAL
    elif args.github:
        mode = DeploymentMode.GITHUB_ACTIONS
    options = SetupOptions(
        mode=mode,
        team_id=args.team_id,
        apple_id=args.apple_id,
        templates_dir=Path(args.templates_dir) if args.templates_dir else None,
        force=args.force,
    )
    report = run_setup(args.path, config, options, printer=printer)
    return 0 if report.success else 1


def cmd_beta(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    LaneInvoker(root, config, printer=printer).beta(args.platform)
    return 0


def cmd_release(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    LaneInvoker(root, config, printer=printer).release(args.platform, rollout=args.rollout, bump=args.bump)
    return 0


def cmd_promote(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    LaneInvoker(root, config, printer=printer).promote(args.from_track, args.to_track, rollout=args.rollout)
    return 0


def cmd_clean(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    LaneInvoker(root, config, printer=printer).clean(args.platform)
    return 0


def cmd_bump(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    pubspec = root / "pubspec.yaml"
    current = read_version(pubspec)
    new = bump_version(pubspec, args.kind)
    printer.success(f"Version updated: {current} -> {new}")
    return 0


def cmd_changelog(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = Path(args.path).resolve()
    text = generate_changelog(root, since=args.since or None, grouped=args.grouped, max_commits=args.max_commits)
    if args.write:
        path = write_changelog(root, text)
        printer.success(f"Changelog written to {path}")
    else:
        print(text)
    return 0


def cmd_secrets(args, config: DeployConfig, printer: StatusPrinter) -> int:
    root = _require_project(args.path)
    repository = args.repo or github_repository(detect_vcs_remote(root, run_command))
    if not repository:
        printer.error("origin is not a GitHub remote; pass --repo OWNER/NAME")
        return 1
    printer.header(f"GitHub Actions secrets ({repository})")
    report = check_repository_secrets(repository, expand_platforms(args.platform), runner=run_command)
    print_secrets_report(printer, report)
    return 0 if report.ok else 1


# ── Parser ───────────────────────────────────────────────────────────────────

def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    common.add_argument("--quiet", "-q", action="store_true", help="Suppress status lines")
    return common


def _platform_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--platform",
        choices=["android", "ios", "all"],
        default="all",
        help="Target platform (default: all)",
    )


def _path_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--path", "-p", default=".", help="Flutter project root (default: .)")


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog="deploykit",
        description="Flutter CI/CD scaffolding and deployment lanes",
        epilog="Without a subcommand, 'deploykit [PATH] [options]' runs setup.",
    )
    subparsers = parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")

    sp = subparsers.add_parser("setup", parents=[common],
                               help="Generate Makefile, Fastlane, workflow and config files")
    sp.add_argument("path", nargs="?", default=".", help="Flutter project root (default: .)")
    mode = sp.add_mutually_exclusive_group()
    mode.add_argument("--local", action="store_true", help="Force local Fastlane deployment")
    mode.add_argument("--github", action="store_true", help="Force GitHub Actions deployment")
    sp.add_argument("--team-id", dest="team_id", default="", help="Apple Developer team id")
    sp.add_argument("--apple-id", dest="apple_id", default="", help="Apple ID e-mail")
    sp.add_argument("--templates-dir", dest="templates_dir", default="",
                    help="Directory with *.template files that replace the built-in copies")
    sp.add_argument("--force", action="store_true",
                    help="Regenerate files that already exist (Makefile, Fastfiles, ...)")
    sp.set_defaults(func=cmd_setup)

    bp = subparsers.add_parser("beta", parents=[common],
                               help="Bump build number, build and upload to testers")
    _path_arg(bp)
    _platform_arg(bp)
    bp.set_defaults(func=cmd_beta)

    rp = subparsers.add_parser("release", parents=[common],
                               help="Bump version, build, upload to production and tag")
    _path_arg(rp)
    _platform_arg(rp)
    rp.add_argument("--rollout", type=float, default=None,
                    help="Android staged rollout percentage (0-100)")
    rp.add_argument("--bump", choices=BUMP_KINDS, default="minor",
                    help="Version component to bump (default: minor)")
    rp.set_defaults(func=cmd_release)

    pp = subparsers.add_parser("promote", parents=[common],
                               help="Promote an Android release between Play Store tracks")
    _path_arg(pp)
    pp.add_argument("--from", dest="from_track", choices=ANDROID_TRACKS, default="internal")
    pp.add_argument("--to", dest="to_track", choices=ANDROID_TRACKS, default="production")
    pp.add_argument("--rollout", type=float, default=None,
                    help="Staged rollout percentage (0-100)")
    pp.set_defaults(func=cmd_promote)

    cp = subparsers.add_parser("clean", parents=[common],
                               help="Remove build output and decoded credentials")
    _path_arg(cp)
    _platform_arg(cp)
    cp.set_defaults(func=cmd_clean)

    vp = subparsers.add_parser("bump", parents=[common], help="Bump the pubspec.yaml version")
    _path_arg(vp)
    vp.add_argument("--kind", choices=BUMP_KINDS, default="build",
                    help="Version component to bump (default: build)")
    vp.set_defaults(func=cmd_bump)

    lp = subparsers.add_parser("changelog", parents=[common], help="Print release notes from git history")
    _path_arg(lp)
    lp.add_argument("--since", default="", help="Start revision (default: latest tag)")
    lp.add_argument("--grouped", action="store_true", help="Group conventional commits by type")
    lp.add_argument("--max-commits", dest="max_commits", type=int, default=50)
    lp.add_argument("--write", action="store_true", help="Write builder/changelog.txt instead of printing")
    lp.set_defaults(func=cmd_changelog)

    gp = subparsers.add_parser("secrets", parents=[common],
                               help="Check that the repository has the secrets the deploy workflow needs")
    _path_arg(gp)
    _platform_arg(gp)
    gp.add_argument("--repo", default="", help="GitHub repository OWNER/NAME (default: from origin)")
    gp.set_defaults(func=cmd_secrets)

    return parser


def _route(argv: Sequence[str]) -> list[str]:
    """Treat anything that is not a subcommand (or top-level help) as setup arguments."""
    argv = list(argv)
    if not argv:
        return ["setup"]
    if argv[0] in SUBCOMMANDS or argv[0] in ("-h", "--help"):
        return argv
    return ["setup", *argv]


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(_route(sys.argv[1:] if argv is None else argv))
    except SystemExit as exc:
        # argparse exits 2 on usage errors and 0 after --help
        return 0 if exc.code in (0, None) else 1
    setup_logging(getattr(args, "verbose", False))

    load_env_files(getattr(args, "path", "."))
    config = load_config()
    printer = StatusPrinter(quiet=getattr(args, "quiet", False))

    try:
        return args.func(args, config, printer)
    except (DeployKitError, ValueError) as exc:
        printer.error(str(exc))
        logger.debug("Command failed", exc_info=True)
        return 1
    except KeyboardInterrupt:
        printer.error("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())

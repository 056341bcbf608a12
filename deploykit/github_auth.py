"""
GitHub CLI authentication check for the GitHub Actions deployment mode.

Problems here never stop setup: the generated files do not depend on gh,
only pushing tags and secrets later does.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from .console import StatusPrinter
from .runner import MISSING_TOOL_EXIT, Runner, run_command

logger = logging.getLogger(__name__)

# Browser-based login returns before the token is stored
LOGIN_SETTLE_SECONDS = 2


def gh_authenticated(runner: Runner = run_command) -> bool:
    return runner(["gh", "auth", "status"]).ok


def ensure_github_auth(
    printer: StatusPrinter,
    interactive: bool,
    runner: Runner = run_command,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Make sure ``gh`` is logged in. Returns True when authenticated.

    When not logged in and a terminal is attached, launches the web login
    flow once, waits LOGIN_SETTLE_SECONDS and re-checks.
    """
    printer.step("Checking GitHub CLI authentication")
    status = runner(["gh", "auth", "status"])
    if status.returncode == MISSING_TOOL_EXIT:
        printer.warning("GitHub CLI (gh) not found; install it to manage secrets and tags")
        return False
    if status.ok:
        printer.success("GitHub CLI is authenticated")
        return True

    if not interactive:
        printer.warning("GitHub CLI is not authenticated; run 'gh auth login' before deploying")
        return False

    printer.info("Starting GitHub login in your browser")
    login = runner(["gh", "auth", "login", "--web", "--git-protocol", "https"], capture=False)
    if not login.ok:
        logger.warning("gh auth login exited with %d", login.returncode)
    sleep(LOGIN_SETTLE_SECONDS)

    if gh_authenticated(runner):
        printer.success("GitHub CLI authenticated")
        return True
    printer.warning("GitHub CLI is still not authenticated; run 'gh auth login' manually")
    return False

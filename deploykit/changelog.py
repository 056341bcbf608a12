"""
Release notes from git history.

Commits since the most recent tag (all history when there is none) are
listed as ``- <subject> (<author>)``, merges excluded. With grouped=True,
conventional-commit subjects (``feat(scope): ...``) are sorted into
labelled sections; anything else lands in "Other Changes".
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ExternalToolFailure
from .runner import Runner, run_command

logger = logging.getLogger(__name__)

FALLBACK_CHANGELOG = "- Bug fixes and improvements"
CHANGELOG_PATH = Path("builder") / "changelog.txt"

# Ordered: sections are emitted in this order
SECTIONS: tuple[tuple[str, str], ...] = (
    ("feat", "New Features"),
    ("fix", "Bug Fixes"),
    ("perf", "Performance Improvements"),
    ("refactor", "Code Refactoring"),
    ("style", "Styling"),
    ("test", "Testing"),
    ("docs", "Documentation"),
    ("build", "Build System"),
    ("ci", "CI/CD"),
    ("chore", "Chores"),
)
OTHER_SECTION = "Other Changes"

_CONVENTIONAL = re.compile(r"^(?P<type>[a-zA-Z]+)(?:\((?P<scope>[^)]*)\))?!?:\s*(?P<desc>.+)$")

# Unit separator keeps subjects containing "|" or tabs intact
_SEP = "\x1f"


@dataclass(frozen=True)
class Commit:
    subject: str
    author: str

    def line(self) -> str:
        return f"- {self.subject} ({self.author})"


def last_tag(root: Path, runner: Runner = run_command) -> Optional[str]:
    result = runner(["git", "describe", "--tags", "--abbrev=0"], cwd=root)
    tag = result.stdout.strip() if result.ok else ""
    return tag or None


def collect_commits(
    root: Path,
    since: Optional[str] = None,
    max_commits: int = 50,
    runner: Runner = run_command,
) -> list[Commit]:
    """
    Return commits in ``since..HEAD`` (or all of HEAD), newest first.

    Raises ExternalToolFailure when git log fails.
    """
    rev_range = f"{since}..HEAD" if since else "HEAD"
    args = [
        "git", "log", rev_range, "--no-merges",
        f"--pretty=format:%s{_SEP}%an", f"--max-count={max_commits}",
    ]
    result = runner(args, cwd=root).check()
    commits = []
    for raw in result.stdout.splitlines():
        if not raw.strip():
            continue
        subject, _, author = raw.partition(_SEP)
        commits.append(Commit(subject.strip(), author.strip()))
    return commits


def _grouped_line(commit: Commit) -> tuple[str, str]:
    """Return (section title, bullet line) for *commit*."""
    match = _CONVENTIONAL.match(commit.subject)
    titles = dict(SECTIONS)
    if match and match.group("type").lower() in titles:
        desc = match.group("desc").strip()
        scope = (match.group("scope") or "").strip()
        text = f"**{scope}**: {desc}" if scope else desc
        return titles[match.group("type").lower()], f"- {text} ({commit.author})"
    return OTHER_SECTION, commit.line()


def group_commits(commits: list[Commit]) -> str:
    buckets: dict[str, list[str]] = {}
    for commit in commits:
        title, line = _grouped_line(commit)
        buckets.setdefault(title, []).append(line)

    order = [title for _, title in SECTIONS] + [OTHER_SECTION]
    blocks = []
    for title in order:
        if title in buckets:
            blocks.append(f"### {title}\n" + "\n".join(buckets[title]))
    return "\n\n".join(blocks)


def generate_changelog(
    root: str | Path,
    since: Optional[str] = None,
    grouped: bool = False,
    max_commits: int = 50,
    runner: Runner = run_command,
) -> str:
    """
    Build release notes for *root*.

    *since* defaults to the most recent tag. An empty history or any git
    failure yields FALLBACK_CHANGELOG.
    """
    root = Path(root)
    try:
        if since is None:
            since = last_tag(root, runner)
        commits = collect_commits(root, since, max_commits, runner)
    except ExternalToolFailure as exc:  # git missing, not a repo, bad range
        logger.warning("Could not generate changelog: %s", exc)
        return FALLBACK_CHANGELOG

    if not commits:
        logger.info("No commits since %s; using fallback changelog", since or "the beginning")
        return FALLBACK_CHANGELOG

    logger.debug("Changelog from %d commits since %s", len(commits), since or "start")
    if grouped:
        return group_commits(commits)
    return "\n".join(c.line() for c in commits)


def write_changelog(root: str | Path, text: str) -> Path:
    path = Path(root) / CHANGELOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.rstrip("\n") + "\n", encoding="utf-8")
    logger.debug("Wrote %s", path)
    return path

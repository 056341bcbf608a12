"""
Placeholder substitution.

One canonical syntax: ``{{KEY}}`` with an upper-case key and no inner
spaces. GitHub expressions such as ``${{ secrets.TOKEN }}`` therefore pass
through untouched. Substitution is literal text replacement; there are no
conditionals or loops.

Templates that come from disk or from the remote template repository may
still use the older shell style (``$KEY`` / ``${KEY}``). render_template()
accepts legacy=True for those and replaces only keys present in the map,
so unrelated shell variables such as ``$HOME`` survive.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping

from ..config import SENTINELS

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


def placeholders_in(text: str) -> set[str]:
    """Return every ``{{KEY}}`` name referenced by *text*."""
    return set(PLACEHOLDER_RE.findall(text))


def sentinel_for(key: str) -> str:
    return SENTINELS.get(key, f"YOUR_{key}")


def _legacy_pattern(key: str) -> re.Pattern:
    # ${KEY} or $KEY not followed by an identifier character; $$KEY is a
    # Makefile escape and is left alone
    escaped = re.escape(key)
    return re.compile(rf"(?<!\$)\$(?:\{{{escaped}\}}|{escaped}(?![A-Za-z0-9_]))")


@dataclass
class RenderResult:
    text: str
    substituted: set[str] = field(default_factory=set)
    missing: set[str] = field(default_factory=set)


def render_template(
    text: str,
    values: Mapping[str, str],
    legacy: bool = False,
) -> RenderResult:
    """
    Substitute placeholders in *text* from *values*.

    A ``{{KEY}}`` with no entry in *values* is replaced by its sentinel
    (see config.SENTINELS, otherwise ``YOUR_<KEY>``) and reported in
    RenderResult.missing; rendering never fails on a missing key.
    """
    result = RenderResult(text="")

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in values:
            result.substituted.add(key)
            return str(values[key])
        result.missing.add(key)
        return sentinel_for(key)

    rendered = PLACEHOLDER_RE.sub(_replace, text)

    if legacy:
        for key, value in values.items():
            pattern = _legacy_pattern(key)
            rendered, count = pattern.subn(lambda _m, v=str(value): v, rendered)
            if count:
                result.substituted.add(key)

    if result.missing:
        logger.warning(
            "No value for placeholder(s) %s; wrote sentinel values",
            ", ".join(sorted(result.missing)),
        )
    result.text = rendered
    return result


def unresolved_placeholders(text: str, keys: set[str] | frozenset[str]) -> set[str]:
    """
    Return the names from *keys* that still appear as ``{{KEY}}``,
    ``${KEY}`` or bare ``$KEY`` tokens in rendered *text*.
    """
    left = {k for k in placeholders_in(text) if k in keys}
    for key in keys:
        if _legacy_pattern(key).search(text):
            left.add(key)
    return left

"""Conventional-commit classification.

Turns commit messages into a structured descriptor and a bump severity, and
aggregates severities across the commits of one package.

Severity order: major > minor > patch > prerelease > none. An explicit
version string (e.g. "3.0.0") outranks every severity.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from pydantic import BaseModel, Field

from .models import BumpType

BUMP_ORDER: dict[str, int] = {
    "none": 0,
    "prerelease": 1,
    "patch": 2,
    "minor": 3,
    "major": 4,
}

PRESETS: dict[str, dict[str, BumpType]] = {
    "angular": {"feat": "minor", "fix": "patch", "perf": "patch"},
    "conventional": {"feat": "minor", "fix": "patch", "perf": "patch"},
}

# `type(scope)!: subject` on the header line
_BREAKING_HEADER = re.compile(r"^(\w+)(?:\(([^)]*)\))?!:\s*(.+)$")
# `type(scope): subject` on the header line
_HEADER = re.compile(r"^(\w+)(?:\(([^)]*)\))?:\s*(.+)$")
# BREAKING CHANGE footer anywhere in the body
_BREAKING_NOTE = re.compile(r"^BREAKING[ -]CHANGE:\s*(.*)$", re.MULTILINE)


class ParsedCommit(BaseModel):
    """Structured view of a conventional commit message.

    Attributes:
        type: Commit type (feat, fix, ...).
        scope: Optional scope from ``type(scope):``. Informational only.
        subject: Header text after the colon.
        breaking: True for ``type!:`` headers or a BREAKING CHANGE footer.
        notes: Texts of the BREAKING CHANGE footers.
    """

    type: str
    scope: str | None = None
    subject: str = ""
    breaking: bool = False
    notes: list[str] = Field(default_factory=list)


def parse_commit(message: str) -> ParsedCommit | None:
    """Parse a commit message, or return None if it is not conventional.

    The ``type!:`` breaking marker on the header takes precedence over body
    scanning. Otherwise the header is parsed as ``type(scope): subject`` and
    the body is scanned for ``BREAKING CHANGE:`` footers.

    Examples:
        "feat(api)!: drop v1" → type=feat, scope=api, breaking=True
        "fix: typo" → type=fix, breaking=False
        "Merge branch 'main'" → None
    """
    header, _, body = message.strip().partition("\n")
    header = header.strip()

    match = _BREAKING_HEADER.match(header)
    if match:
        type_, scope, subject = match.groups()
        return ParsedCommit(
            type=type_,
            scope=scope or None,
            subject=subject,
            breaking=True,
            notes=[n.strip() for n in _BREAKING_NOTE.findall(body)],
        )

    match = _HEADER.match(header)
    if not match:
        return None

    type_, scope, subject = match.groups()
    notes = [n.strip() for n in _BREAKING_NOTE.findall(body)]
    return ParsedCommit(
        type=type_,
        scope=scope or None,
        subject=subject,
        breaking=bool(notes),
        notes=notes,
    )


def bump_for_commit(parsed: ParsedCommit, types: Mapping[str, BumpType]) -> BumpType:
    """Severity of a single parsed commit. Breaking always means major."""
    if parsed.breaking:
        return "major"
    return types.get(parsed.type, "none")


def is_explicit_version(bump: str) -> bool:
    """True if ``bump`` is a version string rather than a severity name."""
    return bump not in BUMP_ORDER


def max_bump(current: str | None, candidate: str | None) -> str | None:
    """Return the higher of two bumps.

    Explicit versions outrank severities; between two explicit versions the
    first one wins.
    """
    if current is None:
        return candidate
    if candidate is None:
        return current
    if is_explicit_version(current):
        return current
    if is_explicit_version(candidate):
        return candidate
    return candidate if BUMP_ORDER[candidate] > BUMP_ORDER[current] else current


def resolve_types(
    preset: str = "angular", custom: Mapping[str, BumpType] | None = None
) -> dict[str, BumpType]:
    """Type → severity table for a preset name.

    The "custom" preset uses the caller's table; an unknown preset falls
    back to angular.
    """
    if preset == "custom" and custom:
        return dict(custom)
    return dict(PRESETS.get(preset, PRESETS["angular"]))


def aggregate_bump(messages: Iterable[str], types: Mapping[str, BumpType]) -> BumpType:
    """Highest severity across a set of commit messages.

    Messages that do not parse are skipped. Returns "none" when nothing
    parses or every parsed commit maps to "none".
    """
    result: BumpType = "none"
    for message in messages:
        parsed = parse_commit(message)
        if parsed is None:
            continue
        bump = bump_for_commit(parsed, types)
        if BUMP_ORDER[bump] > BUMP_ORDER[result]:
            result = bump
    return result

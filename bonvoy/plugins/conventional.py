"""Conventional-commit bump detection for the getVersion hook."""

from __future__ import annotations

from ..commits import aggregate_bump, max_bump, resolve_types
from ..config import ConventionalConfig
from ..context import Context
from ..hooks import Bonvoy


class ConventionalPlugin:
    """Derive a package's bump from the conventional commits assigned to it.

    Combines with any bump an earlier getVersion handler produced by keeping
    the higher of the two.
    """

    name = "conventional"

    def __init__(self, config: ConventionalConfig | None = None) -> None:
        self.config = config or ConventionalConfig()
        self.types = resolve_types(self.config.preset, self.config.types)

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("getVersion", self.name, self.get_version)

    def get_version(self, bump: str | None, ctx: Context) -> str | None:
        if not ctx.commits:
            return bump
        found = aggregate_bump((c.message for c in ctx.commits), self.types)
        return max_bump(bump, found)

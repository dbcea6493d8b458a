"""Stage contexts passed through the hook pipeline.

Each stage gets its own record. Later stages wrap the record of the stage
before them instead of inheriting from it, and expose its fields through
read-only accessors. Records are frozen; the only mutable parts are the
maps and lists owned by a stage (``versions``/``bumps`` for the version
stage, ``changelogs`` for the changelog stage, and so on). Handlers only
write to the maps of the stage they run in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from .models import CommitInfo, Package, PullRequestInfo, ReleaseInfo

if TYPE_CHECKING:
    from .config import BonvoyConfig
    from .journal import ActionRecorder


@dataclass(frozen=True)
class Context:
    """Shared run state every stage can read.

    Attributes:
        config: Validated configuration.
        packages: Every package in the workspace.
        changed_packages: Packages selected for this release. Filled by the
                          version stage.
        root_path: Workspace root.
        is_dry_run: When True, no handler may perform a side effect.
        logger: Logger for user-facing output.
        journal: Where side effects are recorded.
        commits: Commits in scope (all of them, or those of current_package).
        current_package: Set while a per-package hook runs.
    """

    config: BonvoyConfig
    packages: list[Package]
    root_path: Path
    logger: logging.Logger
    journal: ActionRecorder
    is_dry_run: bool = False
    changed_packages: list[Package] = field(default_factory=list)
    commits: list[CommitInfo] = field(default_factory=list)
    current_package: Package | None = None

    def for_package(self, pkg: Package, commits: list[CommitInfo]) -> Context:
        """A view of this context scoped to one package and its commits."""
        return replace(self, current_package=pkg, commits=commits, changed_packages=[pkg])


class _BaseView:
    """Read-only access to the base Context of a wrapping stage record."""

    @property
    def config(self) -> BonvoyConfig:
        return self.base.config

    @property
    def packages(self) -> list[Package]:
        return self.base.packages

    @property
    def changed_packages(self) -> list[Package]:
        return self.base.changed_packages

    @property
    def root_path(self) -> Path:
        return self.base.root_path

    @property
    def is_dry_run(self) -> bool:
        return self.base.is_dry_run

    @property
    def logger(self) -> logging.Logger:
        return self.base.logger

    @property
    def journal(self) -> ActionRecorder:
        return self.base.journal

    @property
    def commits(self) -> list[CommitInfo]:
        return self.base.commits

    @property
    def current_package(self) -> Package | None:
        return self.base.current_package


@dataclass(frozen=True)
class VersionContext(_BaseView):
    """Version stage: resolved versions and bumps per package name."""

    base: Context
    versions: dict[str, str] = field(default_factory=dict)
    bumps: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChangelogContext(_BaseView):
    """Changelog stage: generated changelog text per package name."""

    version: VersionContext
    changelogs: dict[str, str] = field(default_factory=dict)

    @property
    def base(self) -> Context:
        return self.version.base

    @property
    def versions(self) -> dict[str, str]:
        return self.version.versions

    @property
    def bumps(self) -> dict[str, str]:
        return self.version.bumps

    def for_package(self, pkg: Package, commits: list[CommitInfo]) -> ChangelogContext:
        """Scope to one package; the version and changelog maps stay shared."""
        scoped = VersionContext(
            base=self.base.for_package(pkg, commits),
            versions=self.versions,
            bumps=self.bumps,
        )
        return ChangelogContext(version=scoped, changelogs=self.changelogs)


@dataclass(frozen=True)
class PublishContext(_BaseView):
    """Publish stage: names of packages uploaded to the index."""

    changelog: ChangelogContext
    published_packages: list[str] = field(default_factory=list)

    @property
    def base(self) -> Context:
        return self.changelog.base

    @property
    def versions(self) -> dict[str, str]:
        return self.changelog.versions

    @property
    def bumps(self) -> dict[str, str]:
        return self.changelog.bumps

    @property
    def changelogs(self) -> dict[str, str]:
        return self.changelog.changelogs


@dataclass(frozen=True)
class ReleaseContext(_BaseView):
    """Release stage: hosted releases created per package name."""

    publish: PublishContext
    releases: dict[str, ReleaseInfo] = field(default_factory=dict)

    @property
    def base(self) -> Context:
        return self.publish.base

    @property
    def versions(self) -> dict[str, str]:
        return self.publish.versions

    @property
    def bumps(self) -> dict[str, str]:
        return self.publish.bumps

    @property
    def changelogs(self) -> dict[str, str]:
        return self.publish.changelogs

    @property
    def published_packages(self) -> list[str]:
        return self.publish.published_packages


@dataclass(frozen=True)
class PRContext(_BaseView):
    """PR workflow: release branch details and the pull requests opened."""

    base: Context
    branch_name: str
    base_branch: str
    title: str
    body: str
    versions: dict[str, str] = field(default_factory=dict)
    changelogs: dict[str, str] = field(default_factory=dict)
    pull_requests: list[PullRequestInfo] = field(default_factory=list)

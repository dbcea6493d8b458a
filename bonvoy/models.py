"""Data models for bonvoy.

These Pydantic models represent the core data structures used throughout
the release pipeline. Models that are persisted to the release log use
camelCase aliases on disk.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BumpType = Literal["major", "minor", "patch", "prerelease", "none"]

ReleaseStatus = Literal["in-progress", "completed", "rolled-back", "rollback-failed"]


class Package(BaseModel):
    """A single releasable package in the workspace.

    Attributes:
        name: Canonical (PEP 503) package name, the package's identity.
        version: Current version string from pyproject.toml. Only rewritten
                 once, at the end of the version stage.
        path: Path of the package directory relative to the workspace root
              ("." for a root package).
        private: True when the package must never be uploaded.
        dependencies: Runtime requirements, canonical name → specifier.
        dev_dependencies: Development requirements, canonical name → specifier.
    """

    name: str
    version: str
    path: str
    private: bool = False
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)


class CommitInfo(BaseModel):
    """A commit as read from the git log.

    ``packages`` is empty until the package assigner returns a copy with
    the owning package names filled in.
    """

    hash: str
    message: str
    author: str = ""
    date: datetime | None = None
    files: list[str] = Field(default_factory=list)
    packages: list[str] = Field(default_factory=list)


class ReleaseInfo(BaseModel):
    """A hosted release created for one package."""

    tag: str
    url: str = ""
    changelog: str = ""


class PullRequestInfo(BaseModel):
    """A pull request opened by the PR workflow."""

    url: str
    number: int


class _LogModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionEntry(_LogModel):
    """One side effect recorded in the release log. Never edited once written."""

    plugin: str
    action: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = ""
    status: Literal["completed"] = "completed"


class PackageChange(_LogModel):
    """Version transition of one package during a release."""

    name: str
    from_: str = Field(alias="from")
    to: str


class ReleaseLog(_LogModel):
    """The persisted journal of a release run.

    ``status`` is kept as a plain string so a log written by something else
    can still be loaded and rejected explicitly by rollback.
    """

    started_at: str
    config: dict[str, Any] = Field(default_factory=dict)
    packages: list[PackageChange] = Field(default_factory=list)
    actions: list[ActionEntry] = Field(default_factory=list)
    status: str = "in-progress"


class ReleasePRTracking(_LogModel):
    """Written to ``.bonvoy/release-pr.json`` on the release branch by ``prepare``."""

    pr_number: int
    pr_url: str
    branch: str
    base_branch: str
    created_at: str
    packages: list[str] = Field(default_factory=list)

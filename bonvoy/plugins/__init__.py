"""Default plugins shipped with bonvoy."""

from __future__ import annotations

from .changelog import ChangelogPlugin
from .conventional import ConventionalPlugin
from .git import GitPlugin
from .github import GitHubPlugin
from .pypi import PypiPlugin
from .pyproject import PyprojectPlugin

__all__ = [
    "ChangelogPlugin",
    "ConventionalPlugin",
    "GitHubPlugin",
    "GitPlugin",
    "PypiPlugin",
    "PyprojectPlugin",
]

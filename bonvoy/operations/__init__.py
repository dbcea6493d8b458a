"""Collaborators that touch the outside world: git, the package index, GitHub.

Each one is a Protocol plus a subprocess-backed default. Plugins take an
instance in their constructor, so tests pass in-memory fakes instead.
"""

from __future__ import annotations

from .git import GitOperations, SubprocessGitOperations
from .github import GhCliOperations, GitHubOperations
from .pypi import RegistryOperations, UvRegistryOperations

__all__ = [
    "GhCliOperations",
    "GitHubOperations",
    "GitOperations",
    "RegistryOperations",
    "SubprocessGitOperations",
    "UvRegistryOperations",
]

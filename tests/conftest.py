"""Shared test fixtures."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest
import tomlkit

from bonvoy.config import BonvoyConfig
from bonvoy.context import Context, VersionContext
from bonvoy.errors import RegistryError
from bonvoy.journal import ActionRecorder, NoopJournal
from bonvoy.log import silent_logger
from bonvoy.models import CommitInfo, Package, PullRequestInfo


def make_commit(message: str, files: list[str], hash: str = "abc1234def") -> CommitInfo:
    """Build a commit as the git collaborator would return it."""
    return CommitInfo(hash=hash, message=message, author="dev", files=files)


class FakeGitOperations:
    """In-memory GitOperations that records every call (without cwd)."""

    def __init__(
        self,
        commits: list[CommitInfo] | None = None,
        tags: list[str] | None = None,
        head: str = "0123456789abcdef0123456789abcdef01234567",
        branch: str = "main",
    ) -> None:
        self.commits = commits or []
        self.tags = set(tags or [])
        self.head = head
        self.branch = branch
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: dict[str, Exception] = {}

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def add(self, files: str, cwd: Path) -> None:
        self._call("add", files)

    def commit(self, message: str, cwd: Path) -> None:
        self._call("commit", message)

    def tag(self, name: str, cwd: Path) -> None:
        self._call("tag", name)
        self.tags.add(name)

    def push(self, cwd: Path, branch: str | None = None) -> None:
        self._call("push", branch)

    def push_tags(self, tags: list[str], cwd: Path) -> None:
        self._call("push_tags", list(tags))

    def checkout(self, branch: str, cwd: Path, create: bool = False) -> None:
        self._call("checkout", branch, create)

    def get_current_branch(self, cwd: Path) -> str:
        return self.branch

    def tag_exists(self, name: str, cwd: Path) -> bool:
        return name in self.tags

    def get_commits_since_tag(self, tag: str | None, cwd: Path) -> list[CommitInfo]:
        return list(self.commits)

    def get_last_tag(self, cwd: Path) -> str | None:
        return None

    def get_head_sha(self, cwd: Path) -> str:
        return self.head

    def reset_hard(self, sha: str, cwd: Path) -> None:
        self._call("reset_hard", sha)

    def delete_tag(self, name: str, cwd: Path) -> None:
        self._call("delete_tag", name)
        self.tags.discard(name)

    def delete_remote_tags(self, tags: list[str], cwd: Path) -> None:
        self._call("delete_remote_tags", list(tags))

    def force_push(self, cwd: Path, branch: str, sha: str) -> None:
        self._call("force_push", branch, sha)


class FakeRegistryOperations:
    """In-memory RegistryOperations.

    ``unpublish`` fails like the real index unless ``can_unpublish`` is set.
    """

    def __init__(
        self, existing: set[tuple[str, str]] | None = None, token: bool = True
    ) -> None:
        self.existing = set(existing or set())
        self.token = token
        self.can_unpublish = False
        self.published: list[Path] = []
        self.unpublished: list[tuple[str, str]] = []
        self.fail_publish: Exception | None = None

    def publish(self, args: list[str], cwd: Path) -> None:
        if self.fail_publish is not None:
            raise self.fail_publish
        self.published.append(cwd)

    def view(self, name: str, version: str) -> str | None:
        return version if (name, version) in self.existing else None

    def package_exists(self, name: str) -> bool:
        return any(n == name for n, _ in self.existing)

    def has_token(self) -> bool:
        return self.token

    def unpublish(self, name: str, version: str) -> None:
        if not self.can_unpublish:
            raise RegistryError(f"cannot delete {name} {version}")
        self.unpublished.append((name, version))


class FakeGitHubOperations:
    """In-memory GitHubOperations handing out sequential release ids."""

    def __init__(self) -> None:
        self.releases: dict[int, dict[str, Any]] = {}
        self.deleted: list[int] = []
        self.prs: list[dict[str, Any]] = []
        self.fail_release: Exception | None = None
        self._next_id = 100

    def create_release(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        if self.fail_release is not None:
            raise self.fail_release
        release_id = self._next_id
        self._next_id += 1
        self.releases[release_id] = params
        return {
            "id": release_id,
            "html_url": f"https://github.com/{owner}/{repo}/releases/tag/{params['tag_name']}",
        }

    def create_pr(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> PullRequestInfo:
        self.prs.append(params)
        number = len(self.prs)
        return PullRequestInfo(url=f"https://github.com/{owner}/{repo}/pull/{number}", number=number)

    def release_exists(self, token: str, owner: str, repo: str, tag: str) -> bool:
        return any(p["tag_name"] == tag for p in self.releases.values())

    def delete_release(self, token: str, owner: str, repo: str, release_id: int) -> None:
        self.deleted.append(release_id)
        self.releases.pop(release_id, None)


def make_version_context(
    root: Path,
    packages: list[Package],
    versions: dict[str, str],
    *,
    journal: ActionRecorder | None = None,
    dry_run: bool = False,
    commits: list[CommitInfo] | None = None,
    config: BonvoyConfig | None = None,
) -> VersionContext:
    """A version-stage context where every package in ``versions`` is changed."""
    base = Context(
        config=config or BonvoyConfig(),
        packages=packages,
        root_path=root,
        logger=silent_logger(),
        journal=journal or NoopJournal(),
        is_dry_run=dry_run,
        changed_packages=[p for p in packages if p.name in versions],
        commits=commits or [],
    )
    bumps = {name: "minor" for name in versions}
    return VersionContext(base=base, versions=dict(versions), bumps=bumps)


def write_package(root: Path, rel: str, name: str, version: str = "1.0.0") -> Path:
    """Create ``root/rel/pyproject.toml`` for a package and return its directory."""
    directory = root / rel
    directory.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.document()
    project = tomlkit.table()
    project["name"] = name
    project["version"] = version
    doc["project"] = project
    (directory / "pyproject.toml").write_text(tomlkit.dumps(doc))
    return directory


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[dependency-groups]
dev = ["pytest>=8.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
"""
    return tomlkit.parse(content)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace with packages core and utils, both at 1.0.0."""
    (tmp_path / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n\n'
        "[tool.bonvoy.github]\n"
        'owner = "acme"\n'
        'repo = "tools"\n'
    )
    write_package(tmp_path, "packages/core", "core")
    write_package(tmp_path, "packages/utils", "utils")
    return tmp_path


@pytest.fixture
def logger() -> logging.Logger:
    """A logger that discards output."""
    return silent_logger()


@pytest.fixture
def git_ops() -> FakeGitOperations:
    return FakeGitOperations()


@pytest.fixture
def registry_ops() -> FakeRegistryOperations:
    return FakeRegistryOperations()


@pytest.fixture
def github_ops() -> FakeGitHubOperations:
    return FakeGitHubOperations()

"""Workspace discovery and commit-to-package assignment.

Packages are found from the uv workspace declared in the root
pyproject.toml. Commits are attributed to packages purely by the paths of
the files they touch: the deepest package directory containing a file owns
it. Scopes in commit messages play no part.
"""

from __future__ import annotations

import glob
import os
from collections.abc import Iterable
from pathlib import Path

from .errors import ConfigError
from .models import CommitInfo, Package
from .toml import (
    get_dependencies,
    get_dev_dependencies,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    is_private,
    load_pyproject,
)


def _load_package(directory: Path, root: Path) -> Package:
    doc = load_pyproject(directory / "pyproject.toml")
    rel = directory.relative_to(root).as_posix()
    return Package(
        name=get_project_name(doc, directory.name),
        version=get_project_version(doc),
        path=rel or ".",
        private=is_private(doc),
        dependencies=get_dependencies(doc),
        dev_dependencies=get_dev_dependencies(doc),
    )


def discover_packages(root: Path) -> list[Package]:
    """Scan the workspace and discover all packages.

    Reads [tool.uv.workspace].members from the root pyproject.toml to find
    package directories. Without workspace members, the root project itself
    is the only package.

    Returns:
        Packages in a stable order (sorted by member glob match).

    Raises:
        ConfigError: If there is no root pyproject.toml or no package is found.
    """
    root = root.resolve()
    root_pyproject = root / "pyproject.toml"
    if not root_pyproject.exists():
        raise ConfigError(f"No pyproject.toml found in {root}")

    root_doc = load_pyproject(root_pyproject)
    member_globs = get_workspace_member_globs(root_doc)

    if not member_globs:
        if "project" not in root_doc:
            raise ConfigError("Root pyproject.toml has neither [project] nor workspace members")
        return [_load_package(root, root)]

    # Expand globs to find all package directories
    packages: list[Package] = []
    seen: set[str] = set()
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if not (p / "pyproject.toml").exists():
                continue
            pkg = _load_package(p, root)
            if pkg.name not in seen:
                packages.append(pkg)
                seen.add(pkg.name)

    if not packages:
        raise ConfigError("No packages found matching workspace members")
    return packages


def _relative(path: str, root: str) -> str | None:
    """Path relative to root with '/' separators; '' for root, None if outside."""
    rel = os.path.relpath(os.path.join(root, path), root)
    if rel == os.curdir:
        return ""
    rel = rel.replace(os.sep, "/")
    if rel == os.pardir or rel.startswith(os.pardir + "/"):
        return None
    return rel


def get_package_from_path(
    packages: Iterable[Package], file_path: str, root: str | Path
) -> Package | None:
    """Return the package that owns ``file_path``, or None.

    A package matches when the file's relative path equals the package's
    relative path or starts with it followed by '/'. The longest match wins.
    The root package (relative path '') only owns top-level files, and only
    when no deeper package matches. In a single-package repo, where the root
    package is the only one, it owns every file under the root.
    """
    root = str(root)
    packages = list(packages)
    rel_file = _relative(file_path, root)
    if rel_file is None:
        return None

    best: Package | None = None
    best_len = -1
    for pkg in packages:
        rel_pkg = _relative(pkg.path, root)
        if rel_pkg is None:
            continue
        if rel_pkg == "":
            if "/" not in rel_file and best_len < 0:
                best, best_len = pkg, 0
        elif rel_file == rel_pkg or rel_file.startswith(rel_pkg + "/"):
            if len(rel_pkg) > best_len:
                best, best_len = pkg, len(rel_pkg)

    if best is None and len(packages) == 1 and _relative(packages[0].path, root) == "":
        return packages[0]
    return best


def assign_commits_to_packages(
    commits: Iterable[CommitInfo], packages: list[Package], root: str | Path
) -> list[CommitInfo]:
    """Return copies of ``commits`` with their ``packages`` populated.

    Package names are listed in the order their first file appears. Files
    that belong to no package are dropped silently.
    """
    assigned: list[CommitInfo] = []
    for commit in commits:
        names: list[str] = []
        for file in commit.files:
            pkg = get_package_from_path(packages, file, root)
            if pkg is not None and pkg.name not in names:
                names.append(pkg.name)
        assigned.append(commit.model_copy(update={"packages": names}))
    return assigned


def commits_for_package(commits: Iterable[CommitInfo], name: str) -> list[CommitInfo]:
    """Commits attributed to the package called ``name``."""
    return [c for c in commits if name in c.packages]

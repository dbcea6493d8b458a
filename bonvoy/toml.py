"""pyproject.toml access for workspace discovery, config and version writes.

Version bumps go through tomlkit so the release commit only touches the
`version` line of each package.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import tomlkit
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def is_private(doc: tomlkit.TOMLDocument) -> bool:
    """True if the project carries the 'Private :: Do Not Upload' classifier."""
    classifiers = doc.get("project", {}).get("classifiers", [])
    return PRIVATE_CLASSIFIER in [str(c) for c in classifiers]


def requirement_map(deps: list[Any]) -> dict[str, str]:
    """Turn a list of PEP 508 strings into canonical name → specifier.

    Entries that are not requirement strings (e.g. dependency-group
    includes) or fail to parse are skipped.
    """
    result: dict[str, str] = {}
    for dep in deps:
        if not isinstance(dep, str):
            continue
        try:
            req = Requirement(dep)
        except InvalidRequirement:
            continue
        result[canonicalize_name(req.name)] = str(req.specifier)
    return result


def get_dependencies(doc: tomlkit.TOMLDocument) -> dict[str, str]:
    """Runtime dependencies from [project].dependencies."""
    return requirement_map(list(doc.get("project", {}).get("dependencies", [])))


def get_dev_dependencies(doc: tomlkit.TOMLDocument) -> dict[str, str]:
    """Development dependencies from the PEP 735 [dependency-groups].dev group."""
    return requirement_map(list(doc.get("dependency-groups", {}).get("dev", [])))


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages. Returns an empty list for a single-package
    repository.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members] if members else []


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any] | None:
    """Return [tool.<name>] as a plain dict, or None if absent."""
    table = doc.get("tool", {}).get(name)
    if table is None:
        return None
    return cast(dict[str, Any], table.unwrap())


def set_project_version(path: Path, new_version: str) -> None:
    """Rewrite [project].version in a pyproject.toml, keeping its formatting."""
    doc = load_pyproject(path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version
    save_pyproject(path, doc)

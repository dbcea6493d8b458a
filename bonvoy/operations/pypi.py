"""Package-index collaborator: build and upload with uv, query with pip."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Protocol

from ..errors import RegistryError
from ..shell import run

TOKEN_ENV_VARS = ("UV_PUBLISH_TOKEN", "PYPI_TOKEN", "TWINE_PASSWORD")

# `pip index versions foo` prints e.g. "Available versions: 1.2.0, 1.1.0"
_AVAILABLE = re.compile(r"^Available versions:\s*(.*)$", re.MULTILINE)


class RegistryOperations(Protocol):
    """Everything the pipeline needs from the package index."""

    def publish(self, args: list[str], cwd: Path) -> None: ...

    def view(self, name: str, version: str) -> str | None: ...

    def package_exists(self, name: str) -> bool: ...

    def has_token(self) -> bool: ...

    def unpublish(self, name: str, version: str) -> None: ...


def parse_available_versions(output: str) -> list[str]:
    """Versions listed by ``pip index versions``; empty when none are listed."""
    match = _AVAILABLE.search(output)
    if not match:
        return []
    return [v.strip() for v in match.group(1).split(",") if v.strip()]


class UvRegistryOperations:
    """RegistryOperations backed by ``uv build``/``uv publish`` and ``pip index``.

    Args:
        index_url: Simple index queried by ``view`` (defaults to pip's).
    """

    def __init__(self, index_url: str | None = None) -> None:
        self.index_url = index_url

    def publish(self, args: list[str], cwd: Path) -> None:
        """Build the package at ``cwd`` into ``dist/`` and upload it."""
        run("uv", "build", "--out-dir", "dist", cwd=cwd)
        run("uv", "publish", *args, cwd=cwd)

    def _versions(self, name: str) -> list[str]:
        cmd = ["pip", "index", "versions", name]
        if self.index_url:
            cmd += ["--index-url", self.index_url]
        return parse_available_versions(run(*cmd, check=False))

    def view(self, name: str, version: str) -> str | None:
        return version if version in self._versions(name) else None

    def package_exists(self, name: str) -> bool:
        return bool(self._versions(name))

    def has_token(self) -> bool:
        return any(os.environ.get(var) for var in TOKEN_ENV_VARS)

    def unpublish(self, name: str, version: str) -> None:
        raise RegistryError(
            f"PyPI does not allow deleting {name} {version}. "
            f"Yank it instead: https://pypi.org/manage/project/{name}/release/{version}/"
        )

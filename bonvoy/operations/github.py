"""GitHub collaborator: REST calls made through ``gh api``."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Protocol

from ..errors import ProcessError, ProviderError
from ..models import PullRequestInfo
from ..shell import run

_HTTP_STATUS = re.compile(r"HTTP (\d{3})")


class GitHubOperations(Protocol):
    """Everything the pipeline needs from GitHub."""

    def create_release(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> dict[str, Any]: ...

    def create_pr(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> PullRequestInfo: ...

    def release_exists(self, token: str, owner: str, repo: str, tag: str) -> bool: ...

    def delete_release(self, token: str, owner: str, repo: str, release_id: int) -> None: ...


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """(owner, repo) from an https or ssh GitHub remote URL."""
    match = re.search(r"github\.com[:/]([^/]+)/([^/\s]+?)(?:\.git)?/?$", url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


class GhCliOperations:
    """GitHubOperations backed by the ``gh`` CLI.

    Args:
        cwd: Directory the CLI runs in (the repository root).
    """

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd

    def _api(
        self,
        token: str,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        cmd = ["gh", "api", "--method", method, endpoint]
        if payload is not None:
            cmd += ["--input", "-"]
        env = {**os.environ, "GH_TOKEN": token}
        try:
            output = run(
                *cmd,
                cwd=self.cwd,
                input=json.dumps(payload) if payload is not None else None,
                env=env,
            )
        except ProcessError as exc:
            match = _HTTP_STATUS.search(exc.stderr or exc.stdout)
            status = int(match.group(1)) if match else None
            raise ProviderError(f"GitHub {method} {endpoint} failed: {exc}", status) from exc
        return json.loads(output) if output else None

    def create_release(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        return self._api(token, "POST", f"repos/{owner}/{repo}/releases", params)

    def create_pr(
        self, token: str, owner: str, repo: str, params: dict[str, Any]
    ) -> PullRequestInfo:
        data = self._api(token, "POST", f"repos/{owner}/{repo}/pulls", params)
        return PullRequestInfo(url=data["html_url"], number=data["number"])

    def release_exists(self, token: str, owner: str, repo: str, tag: str) -> bool:
        try:
            self._api(token, "GET", f"repos/{owner}/{repo}/releases/tags/{tag}")
        except ProviderError as exc:
            if exc.status == 404:
                return False
            raise
        return True

    def delete_release(self, token: str, owner: str, repo: str, release_id: int) -> None:
        self._api(token, "DELETE", f"repos/{owner}/{repo}/releases/{release_id}")

"""GitHub plugin: hosted releases, release pull requests, and their rollback."""

from __future__ import annotations

import os
from functools import partial
from pathlib import Path

from ..config import BonvoyConfig
from ..context import PRContext, ReleaseContext
from ..errors import ProviderError
from ..hooks import Bonvoy
from ..models import ReleaseInfo
from ..operations.github import GhCliOperations, GitHubOperations, parse_repo_url
from ..retry import with_retry
from ..rollback import RollbackContext
from ..shell import git

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


class GitHubPlugin:
    """Create one GitHub release per released package.

    Each release is journaled as
    ``release {"tag", "id", "owner", "repo"}`` and deleted again on rollback.
    Provider calls are retried on transient errors.

    Args:
        config: Settings supplying the tag format and ``[github]`` options.
        ops: GitHub collaborator (defaults to the gh CLI).
    """

    name = "github"

    def __init__(
        self, config: BonvoyConfig | None = None, ops: GitHubOperations | None = None
    ) -> None:
        self.config = config or BonvoyConfig()
        self.options = self.config.github
        self.ops = ops or GhCliOperations()

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("makeRelease", self.name, self.make_releases)
        pipeline.tap("createPR", self.name, self.create_pr)
        pipeline.tap("rollback", self.name, self.rollback)

    def token(self) -> str | None:
        if self.options.token:
            return self.options.token
        for var in TOKEN_ENV_VARS:
            if os.environ.get(var):
                return os.environ[var]
        return None

    def repo_info(self, root: Path) -> tuple[str, str]:
        """(owner, repo) from config, else from the ``origin`` remote.

        Raises:
            ProviderError: If neither is available.
        """
        if self.options.owner and self.options.repo:
            return self.options.owner, self.options.repo
        info = parse_repo_url(git("remote", "get-url", "origin", cwd=root, check=False))
        if info is None:
            raise ProviderError(
                "Could not determine GitHub repository. "
                "Set owner and repo in the [github] configuration."
            )
        return info

    def make_releases(self, ctx: ReleaseContext) -> None:
        if ctx.is_dry_run:
            ctx.logger.info("🔍 [dry-run] Would create GitHub releases")
            return

        token = self.token()
        if not token:
            ctx.logger.warning("⚠️  GITHUB_TOKEN not found, skipping GitHub releases")
            return

        owner, repo = self.repo_info(ctx.root_path)
        for pkg in ctx.changed_packages:
            version = ctx.versions[pkg.name]
            tag = self.config.format_tag(pkg.name, version)
            changelog = ctx.changelogs.get(pkg.name, "")
            prerelease = self.options.prerelease
            params = {
                "tag_name": tag,
                "name": f"{pkg.name} v{version}",
                "body": changelog,
                "draft": self.options.draft,
                "prerelease": prerelease if prerelease is not None else "-" in version,
            }
            release = with_retry(
                lambda params=params: self.ops.create_release(token, owner, repo, params),
                logger=ctx.logger,
            )
            ctx.journal.record(
                self.name,
                "release",
                {"tag": tag, "id": release["id"], "owner": owner, "repo": repo},
            )
            ctx.releases[pkg.name] = ReleaseInfo(
                tag=tag, url=release.get("html_url", ""), changelog=changelog
            )
            ctx.logger.info(f"✅ Created GitHub release: {tag}")

    def create_pr(self, ctx: PRContext) -> None:
        if ctx.is_dry_run:
            ctx.logger.info(f"🔍 [dry-run] Would open a pull request from {ctx.branch_name}")
            return

        token = self.token()
        if not token:
            ctx.logger.warning("⚠️  GITHUB_TOKEN not found, skipping pull request")
            return

        owner, repo = self.repo_info(ctx.root_path)
        params = {
            "title": ctx.title,
            "body": ctx.body,
            "head": ctx.branch_name,
            "base": ctx.base_branch,
        }
        pr = with_retry(
            lambda: self.ops.create_pr(token, owner, repo, params),
            logger=ctx.logger,
        )
        ctx.pull_requests.append(pr)
        ctx.journal.record(self.name, "pr", {"number": pr.number, "url": pr.url})
        ctx.logger.info(f"🔗 PR created: {pr.url}")

    def rollback(self, ctx: RollbackContext) -> None:
        for index, entry in ctx.entries_for(self.name):
            if entry.action != "release":
                continue
            data = entry.data
            ctx.schedule(
                index,
                f"delete GitHub release {data['tag']}",
                partial(self._delete_release, ctx, data["owner"], data["repo"], data["id"]),
            )

    def _delete_release(
        self, ctx: RollbackContext, owner: str, repo: str, release_id: int
    ) -> None:
        token = self.token()
        if not token:
            raise ProviderError("GITHUB_TOKEN not found")
        with_retry(
            lambda: self.ops.delete_release(token, owner, repo, release_id),
            logger=ctx.logger,
        )

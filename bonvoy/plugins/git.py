"""Git plugin: tag checks, the release commit, tags, push, and their rollback."""

from __future__ import annotations

from functools import partial
from pathlib import Path

from ..config import BonvoyConfig
from ..context import PRContext, PublishContext, VersionContext
from ..errors import ValidationError
from ..hooks import Bonvoy
from ..operations.git import GitOperations, SubprocessGitOperations
from ..rollback import RollbackContext


class GitPlugin:
    """Commit, tag and push a release.

    Journal entries written during ``beforePublish``, in order::

        commit   {"previousSha": sha}
        tag      {"tags": [tag]}             one per package
        push     {"branch": branch, "previousSha": sha}
        pushTags {"tags": [tag, ...]}

    Args:
        config: Settings supplying tag format, commit message and push flag.
        ops: Git collaborator (defaults to the git binary).
    """

    name = "git"

    def __init__(self, config: BonvoyConfig | None = None, ops: GitOperations | None = None) -> None:
        self.config = config or BonvoyConfig()
        self.ops = ops or SubprocessGitOperations()

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("validateRepo", self.name, self.validate_tags)
        pipeline.tap("beforePublish", self.name, self.release)
        pipeline.tap("beforeCreatePR", self.name, self.release_branch)
        pipeline.tap("rollback", self.name, self.rollback)

    def _tags(self, ctx: VersionContext | PublishContext) -> list[str]:
        return [self.config.format_tag(p.name, ctx.versions[p.name]) for p in ctx.changed_packages]

    def _commit_message(self, ctx: PublishContext | PRContext) -> str:
        names = ", ".join(f"{p.name}@{ctx.versions[p.name]}" for p in ctx.changed_packages)
        return self.config.format_commit_message(names)

    def validate_tags(self, ctx: VersionContext) -> None:
        """Refuse to release when a tag for a resolved version already exists."""
        existing = [t for t in self._tags(ctx) if self.ops.tag_exists(t, ctx.root_path)]
        if existing:
            ctx.logger.error(f"❌ Git tags already exist: {', '.join(existing)}")
            raise ValidationError(
                f"Cannot release: git tags already exist ({', '.join(existing)}). "
                "Delete them first or bump to a new version."
            )

    def release(self, ctx: PublishContext) -> None:
        root = ctx.root_path
        message = self._commit_message(ctx)
        tags = self._tags(ctx)

        if ctx.is_dry_run:
            ctx.logger.info(f'🔍 [dry-run] Would commit "{message}"')
            ctx.logger.info(f"🔍 [dry-run] Would tag {', '.join(tags)}")
            if self.config.git.push:
                ctx.logger.info("🔍 [dry-run] Would push commit and tags")
            return

        ctx.logger.info("📝 Committing changes...")
        previous_sha = self.ops.get_head_sha(root)
        self.ops.add(".", root)
        self.ops.commit(message, root)
        ctx.journal.record(self.name, "commit", {"previousSha": previous_sha})
        ctx.logger.info(f'  Commit message: "{message}"')

        ctx.logger.info("🏷️  Creating git tags...")
        for tag in tags:
            self.ops.tag(tag, root)
            ctx.journal.record(self.name, "tag", {"tags": [tag]})
            ctx.logger.info(f"  {tag}")

        if not self.config.git.push:
            return

        ctx.logger.info("⬆️  Pushing to remote...")
        branch = self.ops.get_current_branch(root)
        self.ops.push(root)
        ctx.journal.record(self.name, "push", {"branch": branch, "previousSha": previous_sha})
        self.ops.push_tags(tags, root)
        ctx.journal.record(self.name, "pushTags", {"tags": tags})

    def release_branch(self, ctx: PRContext) -> None:
        """Create the release branch, commit the version bumps, and push it."""
        root = ctx.root_path
        message = self._commit_message(ctx)
        if ctx.is_dry_run:
            ctx.logger.info(f"🔍 [dry-run] Would create branch {ctx.branch_name}")
            ctx.logger.info(f'🔍 [dry-run] Would commit "{message}"')
            return

        ctx.logger.info(f"🌿 Creating branch: {ctx.branch_name}")
        self.ops.checkout(ctx.branch_name, root, create=True)
        self.ops.add(".", root)
        self.ops.commit(message, root)
        self.ops.push(root, ctx.branch_name)

    def rollback(self, ctx: RollbackContext) -> None:
        root = ctx.root_path
        for index, entry in ctx.entries_for(self.name):
            data = entry.data
            if entry.action == "pushTags":
                ctx.schedule(
                    index,
                    f"delete remote tags {', '.join(data['tags'])}",
                    partial(self.ops.delete_remote_tags, list(data["tags"]), root),
                )
            elif entry.action == "push":
                ctx.schedule(
                    index,
                    f"force-push {data['branch']} back to {data['previousSha'][:7]}",
                    partial(self.ops.force_push, root, data["branch"], data["previousSha"]),
                )
            elif entry.action == "tag":
                ctx.schedule(
                    index,
                    f"delete tag {', '.join(data['tags'])}",
                    partial(self._delete_tags, list(data["tags"]), root),
                )
            elif entry.action == "commit":
                ctx.schedule(
                    index,
                    f"reset to {data['previousSha'][:7]}",
                    partial(self.ops.reset_hard, data["previousSha"], root),
                )

    def _delete_tags(self, tags: list[str], root: Path) -> None:
        for tag in tags:
            self.ops.delete_tag(tag, root)

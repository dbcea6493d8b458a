"""PyPI plugin: pre-release index checks, uploads, and their rollback."""

from __future__ import annotations

from functools import partial

from ..config import PypiConfig
from ..context import PublishContext, VersionContext
from ..errors import ValidationError
from ..hooks import Bonvoy
from ..operations.pypi import RegistryOperations, UvRegistryOperations
from ..rollback import RollbackContext


class PypiPlugin:
    """Upload changed, non-private packages to the package index.

    Each upload is journaled as ``publish {"name", "version"}``. The index
    cannot delete a release, so rolling one back always fails with a
    request to yank it by hand. The other compensations still run.

    Args:
        config: Index URLs and the skip-existing switch.
        ops: Registry collaborator (defaults to uv and pip).
    """

    name = "pypi"

    def __init__(
        self, config: PypiConfig | None = None, ops: RegistryOperations | None = None
    ) -> None:
        self.config = config or PypiConfig()
        self.ops = ops or UvRegistryOperations(self.config.index_url)

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("validateRepo", self.name, self.validate_packages)
        pipeline.tap("publish", self.name, self.publish)
        pipeline.tap("rollback", self.name, self.rollback)

    def _publish_args(self) -> list[str]:
        args: list[str] = []
        if self.config.publish_url:
            args += ["--publish-url", self.config.publish_url]
        return args

    def validate_packages(self, ctx: VersionContext) -> None:
        """Refuse to release versions the index already has."""
        published: list[str] = []
        for pkg in ctx.changed_packages:
            if pkg.private:
                continue
            version = ctx.versions[pkg.name]
            if self.ops.view(pkg.name, version) == version:
                published.append(f"{pkg.name} {version}")
            elif not self.ops.has_token() and not self.ops.package_exists(pkg.name):
                ctx.logger.warning(
                    f"⚠️  {pkg.name} is not on the index yet and no upload token is set; "
                    "the first upload needs a token or a pending trusted publisher."
                )

        if published:
            ctx.logger.error(f"❌ Versions already published: {', '.join(published)}")
            raise ValidationError(
                f"Cannot release: versions already exist on the index ({', '.join(published)}). "
                "Bump to a new version."
            )

    def publish(self, ctx: PublishContext) -> None:
        if ctx.is_dry_run:
            ctx.logger.info("🔍 [dry-run] Would publish packages to PyPI")
            return

        for pkg in ctx.changed_packages:
            version = ctx.versions[pkg.name]
            if pkg.private:
                ctx.logger.info(f"  Skipping {pkg.name} (private)")
                continue
            if self.config.skip_existing and self.ops.view(pkg.name, version) == version:
                ctx.logger.info(f"  Skipping {pkg.name} {version} - already published")
                continue

            ctx.logger.info(f"📦 Publishing {pkg.name} {version}...")
            self.ops.publish(self._publish_args(), ctx.root_path / pkg.path)
            ctx.journal.record(self.name, "publish", {"name": pkg.name, "version": version})
            ctx.published_packages.append(pkg.name)

    def rollback(self, ctx: RollbackContext) -> None:
        for index, entry in ctx.entries_for(self.name):
            if entry.action != "publish":
                continue
            name, version = entry.data["name"], entry.data["version"]
            ctx.schedule(
                index, f"unpublish {name} {version}", partial(self.ops.unpublish, name, version)
            )

"""Write resolved versions into each package's pyproject.toml."""

from __future__ import annotations

from functools import partial

from ..context import VersionContext
from ..hooks import Bonvoy
from ..rollback import RollbackContext
from ..toml import set_project_version


class PyprojectPlugin:
    """Set ``[project].version`` during the version stage.

    Each write is journaled with the previous version so rollback can put
    it back when the release fails before the release commit exists.
    """

    name = "pyproject"

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("version", self.name, self.write_versions)
        pipeline.tap("rollback", self.name, self.rollback)

    def write_versions(self, ctx: VersionContext) -> None:
        for pkg in ctx.changed_packages:
            new_version = ctx.versions[pkg.name]
            if ctx.is_dry_run:
                ctx.logger.info(f"🔍 [dry-run] Would set {pkg.name} version to {new_version}")
                continue
            pyproject = ctx.root_path / pkg.path / "pyproject.toml"
            set_project_version(pyproject, new_version)
            ctx.journal.record(
                self.name,
                "version",
                {"name": pkg.name, "path": pkg.path, "from": pkg.version, "to": new_version},
            )
            ctx.logger.info(f"  {pkg.name}: {pkg.version} → {new_version}")

    def rollback(self, ctx: RollbackContext) -> None:
        for index, entry in ctx.entries_for(self.name):
            if entry.action != "version":
                continue
            pyproject = ctx.root_path / entry.data["path"] / "pyproject.toml"
            ctx.schedule(
                index,
                f"restore {entry.data['name']} version {entry.data['from']}",
                partial(set_project_version, pyproject, entry.data["from"]),
            )

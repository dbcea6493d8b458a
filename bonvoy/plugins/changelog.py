"""Changelog generation and CHANGELOG.md writing."""

from __future__ import annotations

from datetime import date
from functools import partial
from pathlib import Path

from ..commits import parse_commit
from ..config import ChangelogConfig
from ..context import ChangelogContext
from ..hooks import Bonvoy
from ..models import CommitInfo
from ..rollback import RollbackContext

CHANGELOG_FILE = "CHANGELOG.md"

CHANGELOG_PREAMBLE = """\
# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).
"""

# Sections listed first, in this order; the rest follow in order of appearance
_SECTION_PRIORITY = {"breaking": 0, "feat": 1, "fix": 2, "perf": 3}


def group_commits(commits: list[CommitInfo]) -> dict[str, list[CommitInfo]]:
    """Group commits by section key ("breaking" or the commit type).

    Commits that are not conventional commits are left out.
    """
    grouped: dict[str, list[CommitInfo]] = {}
    for commit in commits:
        parsed = parse_commit(commit.message)
        if parsed is None:
            continue
        key = "breaking" if parsed.breaking else parsed.type
        grouped.setdefault(key, []).append(commit)
    order = sorted(grouped, key=lambda k: _SECTION_PRIORITY.get(k, 99))
    return {key: grouped[key] for key in order}


def render_changelog(
    commits: list[CommitInfo],
    version: str,
    config: ChangelogConfig,
    today: date | None = None,
) -> str:
    """Render the changelog entry for one release of one package.

    Example output::

        ## [1.1.0] - 2024-05-01

        ### ✨ Features

        - feat: add retry option
    """
    day = (today or date.today()).isoformat()
    lines = [f"## [{version}] - {day}", ""]
    for key, section_commits in group_commits(commits).items():
        lines.append(f"### {config.sections.get(key, key)}")
        lines.append("")
        for commit in section_commits:
            header = commit.message.splitlines()[0].strip()
            if config.include_commit_hash:
                header = f"{header} ({commit.hash[:7]})"
            lines.append(f"- {header}")
        lines.append("")
    return "\n".join(lines).strip()


def prepend_changelog(existing: str, entry: str) -> str:
    """Insert ``entry`` below the top-level heading of an existing changelog.

    Also skips the paragraphs that directly follow the heading (the
    preamble), so new entries land above the previous release.
    """
    lines = existing.split("\n")
    insert_at = 0
    for i, line in enumerate(lines):
        if line.startswith("# "):
            insert_at = i + 1
            # Skip the preamble up to the first release heading
            while insert_at < len(lines) and not lines[insert_at].startswith("## "):
                insert_at += 1
            break
    before = "\n".join(lines[:insert_at]).rstrip("\n")
    after = "\n".join(lines[insert_at:]).strip("\n")
    parts = [before, entry, after] if before else [entry, after]
    return "\n\n".join(p for p in parts if p) + "\n"


def write_changelog(directory: Path, entry: str) -> Path:
    """Prepend ``entry`` to ``directory``/CHANGELOG.md, creating it if needed."""
    path = directory / CHANGELOG_FILE
    if path.exists():
        path.write_text(prepend_changelog(path.read_text(), entry))
    else:
        path.write_text(f"{CHANGELOG_PREAMBLE}\n{entry}\n")
    return path


class ChangelogPlugin:
    """Generate per-package changelog entries and write them to disk.

    With ``global = true``, a combined CHANGELOG.md is also written at the
    workspace root. Every file write is journaled with the content it
    replaced, so rollback can restore or remove it.
    """

    name = "changelog"

    def __init__(self, config: ChangelogConfig | None = None) -> None:
        self.config = config or ChangelogConfig()

    def apply(self, pipeline: Bonvoy) -> None:
        pipeline.tap("generateChangelog", self.name, self.generate)
        pipeline.tap("afterChangelog", self.name, self.write)
        pipeline.tap("rollback", self.name, self.rollback)

    def generate(self, text: str, ctx: ChangelogContext) -> str | None:
        pkg = ctx.current_package
        if pkg is None or not ctx.commits:
            return None
        version = ctx.versions.get(pkg.name, pkg.version)
        return render_changelog(ctx.commits, version, self.config)

    def write(self, ctx: ChangelogContext) -> None:
        if not ctx.changelogs:
            return
        if ctx.is_dry_run:
            ctx.logger.info("🔍 [dry-run] Would write CHANGELOG.md files")
            return
        for pkg in ctx.changed_packages:
            entry = ctx.changelogs.get(pkg.name)
            if entry:
                path = self._write(ctx, ctx.root_path / pkg.path, entry)
                ctx.logger.info(f"  {path}")
        if self.config.global_:
            self._write(ctx, ctx.root_path, self.global_changelog(ctx))
            ctx.logger.info(f"  {CHANGELOG_FILE} (global)")

    def _write(self, ctx: ChangelogContext, directory: Path, entry: str) -> str:
        """Write one entry and journal the file's previous content (None if new)."""
        target = directory / CHANGELOG_FILE
        previous = target.read_text() if target.exists() else None
        write_changelog(directory, entry)
        path = target.relative_to(ctx.root_path).as_posix()
        ctx.journal.record(self.name, "write", {"path": path, "previous": previous})
        return path

    def rollback(self, ctx: RollbackContext) -> None:
        for index, entry in ctx.entries_for(self.name):
            if entry.action != "write":
                continue
            rel, previous = entry.data["path"], entry.data["previous"]
            path = ctx.root_path / rel
            if previous is None:
                ctx.schedule(index, f"remove {rel}", partial(path.unlink, missing_ok=True))
            else:
                ctx.schedule(index, f"restore {rel}", partial(path.write_text, previous))

    def global_changelog(self, ctx: ChangelogContext) -> str:
        sections = [
            f"## {pkg.name}\n\n{ctx.changelogs[pkg.name]}"
            for pkg in ctx.changed_packages
            if ctx.changelogs.get(pkg.name)
        ]
        return "\n\n".join(sections)

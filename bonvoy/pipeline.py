"""Release driver: discover → analyze → version → changelog → publish → release.

This module wires configuration, packages, commits and plugins together
and drives the hook pipeline through its stages in a fixed order:

1. Load configuration and register the plugins
2. Discover workspace packages and read commits since the last tag
3. Resolve a version per package (getVersion), then validate the repo
4. Open the release log; every side effect from here on is journaled
5. Write versions, generate and write changelogs
6. Commit, tag and push (beforePublish), upload (publish)
7. Create hosted releases (makeRelease)

If any stage fails after the release log exists, everything recorded so
far is rolled back and the error is re-raised. ``prepare`` is the PR
workflow variant: it stops after the changelog stage and opens a release
pull request instead of publishing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path

from .config import BonvoyConfig, load_config
from .context import (
    ChangelogContext,
    Context,
    PRContext,
    PublishContext,
    ReleaseContext,
    VersionContext,
)
from .errors import BonvoyError, ValidationError
from .hooks import Bonvoy, Plugin
from .journal import ActionJournal, NoopJournal, load_release_log, release_log_path
from .log import get_logger, silent_logger, step
from .models import CommitInfo, Package, PackageChange, ReleaseInfo, ReleasePRTracking
from .operations.git import GitOperations, SubprocessGitOperations
from .operations.github import GitHubOperations
from .operations.pypi import RegistryOperations
from .plugins import (
    ChangelogPlugin,
    ConventionalPlugin,
    GitHubPlugin,
    GitPlugin,
    PypiPlugin,
    PyprojectPlugin,
)
from .rollback import RollbackReport, rollback
from .versions import resolve_versions
from .workspace import assign_commits_to_packages, commits_for_package, discover_packages

PR_TRACKING_PATH = Path(".bonvoy") / "release-pr.json"

# A log in one of these states means an earlier run never finished
UNFINISHED = frozenset({"in-progress", "rollback-failed"})


@dataclass
class ShipitResult:
    """What a shipit run resolved and did."""

    packages: list[Package]
    commits: list[CommitInfo]
    changed_packages: list[Package] = field(default_factory=list)
    changes: list[PackageChange] = field(default_factory=list)
    versions: dict[str, str] = field(default_factory=dict)
    bumps: dict[str, str] = field(default_factory=dict)
    changelogs: dict[str, str] = field(default_factory=dict)
    published_packages: list[str] = field(default_factory=list)
    releases: dict[str, ReleaseInfo] = field(default_factory=dict)


@dataclass
class StatusResult:
    """Pending release as computed from commits, without side effects."""

    packages: list[Package]
    commits: list[CommitInfo]
    changed_packages: list[Package]
    versions: dict[str, str]
    bumps: dict[str, str]


@dataclass
class PrepareResult:
    branch_name: str
    packages: list[Package]
    versions: dict[str, str]
    pr_url: str | None = None


def default_plugins(
    config: BonvoyConfig,
    *,
    git_ops: GitOperations | None = None,
    registry_ops: RegistryOperations | None = None,
    github_ops: GitHubOperations | None = None,
) -> list[Plugin]:
    """The standard plugin set, in the order their handlers must run."""
    return [
        ConventionalPlugin(config.conventional),
        PyprojectPlugin(),
        ChangelogPlugin(config.changelog),
        GitPlugin(config, git_ops),
        PypiPlugin(config.pypi, registry_ops),
        GitHubPlugin(config, github_ops),
    ]


def build_pipeline(
    config: BonvoyConfig, logger: logging.Logger, plugins: list[Plugin]
) -> Bonvoy:
    """Register ``plugins`` on a new pipeline and let them adjust the config."""
    pipeline = Bonvoy(config, logger)
    for plugin in plugins:
        pipeline.use(plugin)
    pipeline.config = pipeline.waterfall("modifyConfig", config)
    return pipeline


def load_commits(root: Path, git_ops: GitOperations, packages: list[Package]) -> list[CommitInfo]:
    """Commits since the last tag, each attributed to the packages it touches."""
    last_tag = git_ops.get_last_tag(root)
    commits = git_ops.get_commits_since_tag(last_tag, root)
    return assign_commits_to_packages(commits, packages, root)


def _check_unfinished_release(root: Path) -> None:
    path = release_log_path(root)
    if not path.exists():
        return
    status = load_release_log(path).status
    if status in UNFINISHED:
        raise ValidationError(
            f"A previous release did not finish (release log status: {status}). "
            "Run `bonvoy rollback` first, or pass --force to release anyway."
        )


def _analyze(
    root: Path,
    pipeline: Bonvoy,
    logger: logging.Logger,
    git_ops: GitOperations,
    packages: list[Package] | None,
    *,
    dry_run: bool,
    bump: str | None = None,
    preid: str | None = None,
    only: list[str] | None = None,
) -> VersionContext:
    """Discover packages, read commits and resolve versions."""
    step(logger, "Discovering workspace packages")
    if packages is None:
        packages = discover_packages(root)
    for pkg in packages:
        logger.info(f"  {pkg.name} {pkg.version} ({pkg.path})")

    step(logger, "Analyzing commits")
    commits = load_commits(root, git_ops, packages)
    logger.info(f"  {len(commits)} commit(s) since last release")

    base = Context(
        config=pipeline.config,
        packages=packages,
        root_path=root,
        logger=logger,
        journal=NoopJournal(),
        is_dry_run=dry_run,
        commits=commits,
    )
    pipeline.series("beforeShipIt", base)

    step(logger, "Resolving versions")
    resolved = VersionContext(base=base)
    resolve_versions(pipeline, resolved, force_bump=bump, preid=preid, only=only)
    return resolved


def _run_version_and_changelog(pipeline: Bonvoy, ctx: VersionContext) -> ChangelogContext:
    step(ctx.logger, "Updating versions")
    pipeline.series("version", ctx)
    # The only point where Package.version changes
    for pkg in ctx.changed_packages:
        pkg.version = ctx.versions[pkg.name]
    pipeline.series("afterVersion", ctx)

    step(ctx.logger, "Generating changelogs")
    changelog_ctx = ChangelogContext(version=ctx)
    pipeline.series("beforeChangelog", changelog_ctx)
    for pkg in ctx.changed_packages:
        scoped = changelog_ctx.for_package(pkg, commits_for_package(ctx.commits, pkg.name))
        text = pipeline.waterfall("generateChangelog", "", scoped)
        if text:
            changelog_ctx.changelogs[pkg.name] = text
    pipeline.series("afterChangelog", changelog_ctx)
    return changelog_ctx


def _rollback_after_failure(
    pipeline: Bonvoy, root: Path, packages: list[Package], logger: logging.Logger
) -> None:
    logger.error("❌ Release failed, rolling back recorded actions...")
    try:
        rollback(pipeline, root=root, packages=packages, logger=logger)
    except BonvoyError as exc:
        logger.error(f"⚠️  Automatic rollback failed: {exc}")


def shipit(
    root: Path,
    *,
    bump: str | None = None,
    dry_run: bool = False,
    only: list[str] | None = None,
    preid: str | None = None,
    force: bool = False,
    logger: logging.Logger | None = None,
    config: BonvoyConfig | None = None,
    plugins: list[Plugin] | None = None,
    git_ops: GitOperations | None = None,
    packages: list[Package] | None = None,
) -> ShipitResult:
    """Execute the full release pipeline.

    Args:
        root: Workspace root.
        bump: Force a severity or an explicit version for every package
              considered, replacing what the commits say.
        dry_run: Report what would happen; no file, git, index or API writes.
        only: Limit the release to these package names.
        preid: Prerelease identifier for "prerelease" bumps (default "rc").
        force: Release even if the previous release log is unfinished.
        logger: Output logger (defaults to the bonvoy stderr logger).
        config: Use this configuration instead of loading it from ``root``.
        plugins: Use these plugins instead of the default set.
        git_ops: Git collaborator for reading commits (and the default git plugin).
        packages: Use these packages instead of discovering them.

    Returns:
        The resolved versions and everything the release produced.

    Raises:
        BonvoyError: On invalid input, failed validation, or a failed stage
                     (after rollback has run).
    """
    root = Path(root).resolve()
    logger = logger or get_logger()
    config = config or load_config(root)
    git_ops = git_ops or SubprocessGitOperations()
    if plugins is None:
        plugins = default_plugins(config, git_ops=git_ops)

    logger.info("🚢 Starting bonvoy release...")
    if dry_run:
        logger.info("🔍 Dry run mode enabled")
    elif not force:
        _check_unfinished_release(root)

    pipeline = build_pipeline(config, logger, plugins)
    resolved = _analyze(
        root, pipeline, logger, git_ops, packages,
        dry_run=dry_run, bump=bump, preid=preid, only=only,
    )
    result = ShipitResult(packages=resolved.packages, commits=resolved.commits)
    if not resolved.changed_packages:
        logger.info("✅ No changes detected - nothing to release")
        return result

    result.changes = [
        PackageChange(name=p.name, from_=p.version, to=resolved.versions[p.name])
        for p in resolved.changed_packages
    ]
    pipeline.series("validateRepo", resolved)

    journal = (
        NoopJournal()
        if dry_run
        else ActionJournal(release_log_path(root), pipeline.config.snapshot(), result.changes)
    )
    run_base = replace(resolved.base, journal=journal)
    ctx = VersionContext(base=run_base, versions=resolved.versions, bumps=resolved.bumps)

    try:
        changelog_ctx = _run_version_and_changelog(pipeline, ctx)

        step(logger, "Publishing")
        publish_ctx = PublishContext(changelog=changelog_ctx)
        pipeline.series("beforePublish", publish_ctx)
        pipeline.series("publish", publish_ctx)
        pipeline.series("afterPublish", publish_ctx)

        step(logger, "Creating releases")
        release_ctx = ReleaseContext(publish=publish_ctx)
        pipeline.series("beforeRelease", release_ctx)
        pipeline.series("makeRelease", release_ctx)
        pipeline.series("afterRelease", release_ctx)
    except Exception:
        if isinstance(journal, ActionJournal):
            _rollback_after_failure(pipeline, root, resolved.packages, logger)
        raise

    if isinstance(journal, ActionJournal):
        journal.complete()

    result.changed_packages = list(ctx.changed_packages)
    result.versions = dict(ctx.versions)
    result.bumps = dict(ctx.bumps)
    result.changelogs = dict(changelog_ctx.changelogs)
    result.published_packages = list(publish_ctx.published_packages)
    result.releases = dict(release_ctx.releases)

    if dry_run:
        logger.info("🔍 Dry run completed - no changes made")
    else:
        logger.info("🎉 Release completed successfully!")
    return result


def analyze_status(
    root: Path,
    *,
    config: BonvoyConfig | None = None,
    git_ops: GitOperations | None = None,
    packages: list[Package] | None = None,
) -> StatusResult:
    """Compute the pending release without running any side-effecting stage."""
    root = Path(root).resolve()
    config = config or load_config(root)
    git_ops = git_ops or SubprocessGitOperations()
    quiet = silent_logger()
    pipeline = build_pipeline(config, quiet, [ConventionalPlugin(config.conventional)])
    resolved = _analyze(root, pipeline, quiet, git_ops, packages, dry_run=True)
    return StatusResult(
        packages=resolved.packages,
        commits=resolved.commits,
        changed_packages=list(resolved.changed_packages),
        versions=dict(resolved.versions),
        bumps=dict(resolved.bumps),
    )


def preview_changelogs(
    root: Path,
    *,
    config: BonvoyConfig | None = None,
    git_ops: GitOperations | None = None,
    packages: list[Package] | None = None,
) -> dict[str, str]:
    """Changelog entries the next release would add, per package name."""
    root = Path(root).resolve()
    config = config or load_config(root)
    status = analyze_status(root, config=config, git_ops=git_ops, packages=packages)
    quiet = silent_logger()
    pipeline = build_pipeline(config, quiet, [ChangelogPlugin(config.changelog)])

    base = Context(
        config=pipeline.config,
        packages=status.packages,
        root_path=root,
        logger=quiet,
        journal=NoopJournal(),
        is_dry_run=True,
        changed_packages=status.changed_packages,
        commits=status.commits,
    )
    ctx = ChangelogContext(
        version=VersionContext(base=base, versions=status.versions, bumps=status.bumps)
    )
    previews: dict[str, str] = {}
    for pkg in status.changed_packages:
        scoped = ctx.for_package(pkg, commits_for_package(status.commits, pkg.name))
        text = pipeline.waterfall("generateChangelog", "", scoped)
        if text:
            previews[pkg.name] = text
    return previews


def render_pr_body(changes: list[PackageChange], changelogs: dict[str, str]) -> str:
    """Markdown body of the release pull request."""
    lines = ["## Release", "", "### Packages", ""]
    lines += [f"- **{c.name}**: {c.from_} → {c.to}" for c in changes]
    lines += ["", "### Changelogs", ""]
    for change in changes:
        text = changelogs.get(change.name)
        if text:
            lines += [f"<details>\n<summary>{change.name}</summary>\n\n{text}\n\n</details>", ""]
    return "\n".join(lines)


def _write_pr_tracking(
    root: Path, ctx: PRContext, git_ops: GitOperations, logger: logging.Logger
) -> None:
    pr = ctx.pull_requests[0]
    tracking = ReleasePRTracking(
        pr_number=pr.number,
        pr_url=pr.url,
        branch=ctx.branch_name,
        base_branch=ctx.base_branch,
        created_at=datetime.now(timezone.utc).isoformat(),
        packages=[p.name for p in ctx.changed_packages],
    )
    path = root / PR_TRACKING_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(tracking.model_dump(by_alias=True), indent=2) + "\n")
    git_ops.add(PR_TRACKING_PATH.as_posix(), root)
    git_ops.commit("chore: add release PR tracking file", root)
    git_ops.push(root, ctx.branch_name)
    logger.info(f"  Tracking file: {PR_TRACKING_PATH.as_posix()}")


def prepare(
    root: Path,
    *,
    bump: str | None = None,
    dry_run: bool = False,
    preid: str | None = None,
    logger: logging.Logger | None = None,
    config: BonvoyConfig | None = None,
    plugins: list[Plugin] | None = None,
    git_ops: GitOperations | None = None,
    packages: list[Package] | None = None,
) -> PrepareResult:
    """Open a release pull request instead of releasing directly.

    Runs the version and changelog stages, then the PR stages: the git
    plugin commits to a new ``release/<timestamp>`` branch and pushes it,
    the GitHub plugin opens the pull request. Once the PR exists, a
    tracking file is committed to the branch.
    """
    root = Path(root).resolve()
    logger = logger or get_logger()
    config = config or load_config(root)
    git_ops = git_ops or SubprocessGitOperations()
    if plugins is None:
        plugins = default_plugins(config, git_ops=git_ops)

    pipeline = build_pipeline(config, logger, plugins)
    resolved = _analyze(
        root, pipeline, logger, git_ops, packages, dry_run=dry_run, bump=bump, preid=preid
    )
    if not resolved.changed_packages:
        logger.info("📦 No packages to release")
        return PrepareResult(branch_name="", packages=[], versions={})

    changes = [
        PackageChange(name=p.name, from_=p.version, to=resolved.versions[p.name])
        for p in resolved.changed_packages
    ]
    changelog_ctx = _run_version_and_changelog(pipeline, resolved)

    step(logger, "Opening release pull request")
    names = ", ".join(p.name for p in resolved.changed_packages)
    pr_ctx = PRContext(
        base=resolved.base,
        branch_name=datetime.now(timezone.utc).strftime("release/%Y%m%d%H%M%S"),
        base_branch=pipeline.config.base_branch,
        title=f"chore(release): {names}",
        body=render_pr_body(changes, changelog_ctx.changelogs),
        versions=resolved.versions,
        changelogs=changelog_ctx.changelogs,
    )
    pipeline.series("beforeCreatePR", pr_ctx)
    pipeline.series("createPR", pr_ctx)
    pipeline.series("afterCreatePR", pr_ctx)

    if not dry_run and pr_ctx.pull_requests:
        _write_pr_tracking(root, pr_ctx, git_ops, logger)

    return PrepareResult(
        branch_name=pr_ctx.branch_name,
        packages=list(resolved.changed_packages),
        versions=dict(resolved.versions),
        pr_url=pr_ctx.pull_requests[0].url if pr_ctx.pull_requests else None,
    )


def rollback_release(
    root: Path,
    *,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
    config: BonvoyConfig | None = None,
    plugins: list[Plugin] | None = None,
    packages: list[Package] | None = None,
) -> RollbackReport:
    """Undo the release recorded in the workspace's release log.

    Raises:
        JournalStateError: If there is no log or its status is unknown.
        StageError: If a rollback handler fails outright.
    """
    root = Path(root).resolve()
    logger = logger or get_logger()
    config = config or load_config(root)
    if plugins is None:
        plugins = default_plugins(config)
    if packages is None:
        packages = discover_packages(root)
    pipeline = build_pipeline(config, logger, plugins)
    return rollback(pipeline, root=root, packages=packages, logger=logger, dry_run=dry_run)

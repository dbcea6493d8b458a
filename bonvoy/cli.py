"""CLI entry point for bonvoy."""

from __future__ import annotations

import logging
from importlib.metadata import version as pkg_version
from pathlib import Path

import click

from .errors import BonvoyError
from .log import get_logger, resolve_log_level
from .pipeline import analyze_status, prepare, preview_changelogs, rollback_release, shipit

__version__ = pkg_version("bonvoy")

dry_run_option = click.option(
    "--dry-run", is_flag=True, help="Show what would happen without changing anything."
)


@click.group()
@click.version_option(__version__, prog_name="bonvoy")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--silent", is_flag=True, help="Suppress all output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, silent: bool) -> None:
    """Release workspace packages from conventional commits."""
    ctx.obj = resolve_log_level(verbose=verbose, quiet=quiet, silent=silent)


def _logger() -> logging.Logger:
    return get_logger(click.get_current_context().find_root().obj)


@cli.command("shipit")
@click.argument("bump", required=False)
@dry_run_option
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    metavar="NAME",
    help="Only release this package (repeatable).",
)
@click.option(
    "--preid", default=None, help="Prerelease identifier, e.g. alpha, beta. (default: rc)"
)
@click.option("--force", is_flag=True, help="Release even if the last release never finished.")
def shipit_cmd(
    bump: str | None, dry_run: bool, packages: tuple[str, ...], preid: str | None, force: bool
) -> None:
    """Version, changelog, publish and release changed packages.

    BUMP forces a bump (major, minor, patch, prerelease) or sets an explicit version.
    """
    try:
        shipit(
            Path.cwd(),
            bump=bump,
            dry_run=dry_run,
            only=list(packages) or None,
            preid=preid,
            force=force,
            logger=_logger(),
        )
    except BonvoyError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("status")
def status_cmd() -> None:
    """Show which packages would be released and how."""
    log = _logger()
    try:
        status = analyze_status(Path.cwd())
    except BonvoyError as exc:
        raise click.ClickException(str(exc)) from exc
    if not status.changed_packages:
        log.info("✅ No pending changes")
        return

    log.info(f"📦 {len(status.changed_packages)} package(s) with pending changes:\n")
    for pkg in status.changed_packages:
        count = sum(1 for c in status.commits if pkg.name in c.packages)
        plural = "" if count == 1 else "s"
        log.info(
            f"  {pkg.name}: {pkg.version} → {status.versions[pkg.name]} "
            f"({status.bumps[pkg.name]}, {count} commit{plural})"
        )
    log.info(f"\n📝 {len(status.commits)} commit(s) since last release")
    log.info(f"📊 {len(status.packages)} total package(s) in workspace")


@cli.command("changelog")
def changelog_cmd() -> None:
    """Preview the changelog entries of the next release."""
    log = _logger()
    try:
        previews = preview_changelogs(Path.cwd())
    except BonvoyError as exc:
        raise click.ClickException(str(exc)) from exc
    if not previews:
        log.info("✅ No pending changes - nothing to preview")
        return
    for name, text in previews.items():
        log.info(f"\n📦 {name}\n{'─' * 40}")
        log.info(text)


@cli.command("prepare")
@click.argument("bump", required=False)
@dry_run_option
@click.option("--preid", default=None, help="Prerelease identifier.")
def prepare_cmd(bump: str | None, dry_run: bool, preid: str | None) -> None:
    """Open a release pull request instead of releasing."""
    log = _logger()
    try:
        result = prepare(Path.cwd(), bump=bump, dry_run=dry_run, preid=preid, logger=log)
    except BonvoyError as exc:
        raise click.ClickException(str(exc)) from exc
    if result.pr_url:
        log.info(f"🔗 {result.pr_url}")


@cli.command("rollback")
@click.option("--dry-run", is_flag=True, help="List what would be undone, in order.")
def rollback_cmd(dry_run: bool) -> None:
    """Undo the last release recorded in .bonvoy/release-log.json."""
    log = _logger()
    log.info("↩️  bonvoy rollback\n")
    try:
        report = rollback_release(Path.cwd(), dry_run=dry_run, logger=log)
    except BonvoyError as exc:
        raise click.ClickException(str(exc)) from exc
    if report.warnings:
        raise click.ClickException(f"Rollback finished with {len(report.warnings)} warning(s)")

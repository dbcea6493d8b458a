"""Rollback coordinator: undo a release by replaying its journal backwards.

Plugins take part through the ``rollback`` hook. Each plugin looks at the
journal entries it owns, newest first, and schedules one compensating
operation per entry. Once the hook has run, the coordinator executes every
scheduled compensation in exact reverse chronological order across all
plugins, so a pushed tag is removed before the commit it points at is
reset.

A compensation that fails does not stop the others: it becomes a
RollbackWarning in the report, is logged, and the next one runs. Any
warning leaves the journal in ``rollback-failed`` so the operator can
follow up (and retry); a clean run marks it ``rolled-back``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .context import Context, _BaseView
from .errors import JournalStateError
from .hooks import Bonvoy
from .journal import ActionJournal, NoopJournal, load_release_log, release_log_path
from .models import ActionEntry, Package

ROLLBACK_READY = frozenset({"in-progress", "completed", "rollback-failed"})


@dataclass(frozen=True, slots=True)
class Undone:
    """A compensating operation that succeeded."""

    entry: ActionEntry
    description: str


@dataclass(frozen=True, slots=True)
class RollbackWarning:
    """A compensating operation that failed."""

    entry: ActionEntry
    message: str


StepResult = Undone | RollbackWarning


@dataclass
class RollbackReport:
    """Outcome of a rollback run, one result per compensated entry.

    Attributes:
        results: Results in the order compensations ran (newest entry first).
        preview: Lines describing what a dry run would undo.
        status: Journal status after the run.
    """

    results: list[StepResult] = field(default_factory=list)
    preview: list[str] = field(default_factory=list)
    status: str = ""

    @property
    def warnings(self) -> list[RollbackWarning]:
        return [r for r in self.results if isinstance(r, RollbackWarning)]

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass(frozen=True)
class _Scheduled:
    index: int
    entry: ActionEntry
    description: str
    undo: Callable[[], None]


@dataclass(frozen=True)
class RollbackContext(_BaseView):
    """Context of the ``rollback`` hook.

    Attributes:
        base: Run state (no-op journal: rollback records nothing).
        actions: Every journal entry, oldest first.
        report: Report the coordinator fills in.
    """

    base: Context
    actions: tuple[ActionEntry, ...]
    report: RollbackReport = field(default_factory=RollbackReport)
    _scheduled: list[_Scheduled] = field(default_factory=list, repr=False)

    def entries_for(self, plugin: str) -> list[tuple[int, ActionEntry]]:
        """(index, entry) pairs recorded by ``plugin``, newest first."""
        return [
            (i, entry)
            for i, entry in reversed(list(enumerate(self.actions)))
            if entry.plugin == plugin
        ]

    def schedule(self, index: int, description: str, undo: Callable[[], None]) -> None:
        """Queue the compensating operation for the entry at ``index``.

        Args:
            index: Position of the entry in ``actions``.
            description: What the undo does, for logs and the report.
            undo: Performs the compensation; raising marks it as failed.
        """
        self._scheduled.append(_Scheduled(index, self.actions[index], description, undo))


def compensate(ctx: RollbackContext) -> RollbackReport:
    """Run every scheduled compensation, newest journal entry first.

    Each compensation yields Undone or RollbackWarning; exceptions from an
    undo callable are turned into warnings and never stop the loop.
    """
    report = ctx.report
    logger = ctx.logger
    for item in sorted(ctx._scheduled, key=lambda s: s.index, reverse=True):
        try:
            item.undo()
        except Exception as exc:
            message = f"Failed to {item.description}: {exc}"
            logger.warning(f"  ⚠️  {message}")
            report.results.append(RollbackWarning(item.entry, message))
        else:
            logger.info(f"  ↩️  {item.description}")
            report.results.append(Undone(item.entry, item.description))
    return report


def preview_rollback(actions: list[ActionEntry]) -> list[str]:
    """Describe what rollback would undo, in the order it would undo it."""
    return [
        f"[dry-run] Would undo: {a.plugin}.{a.action} ({json.dumps(a.data, sort_keys=True)})"
        for a in reversed(actions)
    ]


def rollback(
    pipeline: Bonvoy,
    *,
    root: Path,
    packages: list[Package],
    logger: logging.Logger,
    dry_run: bool = False,
) -> RollbackReport:
    """Roll back the release recorded in ``<root>/.bonvoy/release-log.json``.

    Raises:
        JournalStateError: If the log is missing, unreadable, or in a status
                           rollback does not recognize.
        StageError: If the rollback hook itself fails. The journal is marked
                    ``rollback-failed`` first.
    """
    path = release_log_path(root)
    release_log = load_release_log(path)
    report = RollbackReport(status=release_log.status)

    if release_log.status == "rolled-back":
        logger.info("✅ Already rolled back - nothing to do.")
        return report

    if release_log.status not in ROLLBACK_READY:
        raise JournalStateError(
            f'Unexpected release log status: "{release_log.status}". '
            f"Inspect {path} and fix the release manually."
        )

    logger.info("↩️  Rolling back release...")
    logger.info(f"  Started at: {release_log.started_at}")
    logger.info(
        "  Packages: "
        + ", ".join(f"{p.name} {p.from_} → {p.to}" for p in release_log.packages)
    )
    logger.info(f"  Actions to undo: {len(release_log.actions)}")

    if dry_run:
        report.preview = preview_rollback(release_log.actions)
        for line in report.preview:
            logger.info(f"  {line}")
        logger.info("🔍 Dry run completed - no changes made")
        return report

    journal = ActionJournal.resume(path)
    base = Context(
        config=pipeline.config,
        packages=packages,
        root_path=root,
        logger=logger,
        journal=NoopJournal(),
    )
    ctx = RollbackContext(base=base, actions=tuple(release_log.actions), report=report)

    try:
        pipeline.series("rollback", ctx)
    except Exception:
        journal.mark_rollback_failed()
        report.status = journal.status
        logger.error(f"⚠️  Rollback failed. Check {path} and fix manually.")
        raise

    compensate(ctx)

    if report.ok:
        journal.mark_rolled_back()
        logger.info("✅ Rollback completed successfully")
    else:
        journal.mark_rollback_failed()
        logger.warning(
            f"⚠️  Rollback finished with {len(report.warnings)} warning(s). "
            f"Check {path} and fix the remaining steps manually."
        )
    report.status = journal.status
    return report

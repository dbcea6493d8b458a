"""Action journal: the durable, append-only record of a release run.

The journal lives at ``<root>/.bonvoy/release-log.json``. It is written
after every recorded action and every status change, so a crash at any
point leaves a readable log that ``bonvoy rollback`` can act on.

Status lifecycle::

    in-progress ──success──▶ completed
    in-progress / completed / rollback-failed ──rollback──▶ rolled-back | rollback-failed
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from .errors import JournalStateError
from .models import ActionEntry, PackageChange, ReleaseLog

RELEASE_LOG_PATH = Path(".bonvoy") / "release-log.json"


def release_log_path(root: Path) -> Path:
    """Location of the release log for the workspace at ``root``."""
    return root / RELEASE_LOG_PATH


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ActionRecorder(Protocol):
    """What stage handlers see: record side effects, read them back."""

    def record(self, plugin: str, action: str, data: dict[str, Any] | None = None) -> None: ...

    def entries(self) -> list[ActionEntry]: ...


class NoopJournal:
    """Journal for dry runs and analysis: records nothing."""

    def record(self, plugin: str, action: str, data: dict[str, Any] | None = None) -> None:
        pass

    def entries(self) -> list[ActionEntry]:
        return []


class ActionJournal:
    """Append-only release log backed by a JSON file.

    Creating a journal writes a fresh ``in-progress`` log immediately.
    """

    def __init__(
        self,
        path: Path,
        config: dict[str, Any],
        packages: list[PackageChange],
        *,
        log: ReleaseLog | None = None,
    ) -> None:
        self.path = path
        self._log = log or ReleaseLog(
            started_at=_now(),
            config=config,
            packages=packages,
            actions=[],
            status="in-progress",
        )
        self.flush()

    @classmethod
    def resume(cls, path: Path) -> ActionJournal:
        """Reopen an existing log, keeping its actions and metadata."""
        log = load_release_log(path)
        return cls(path, log.config, log.packages, log=log)

    @property
    def status(self) -> str:
        return self._log.status

    @property
    def log(self) -> ReleaseLog:
        return self._log.model_copy(deep=True)

    def record(self, plugin: str, action: str, data: dict[str, Any] | None = None) -> None:
        """Append one completed side effect and flush."""
        entry = ActionEntry(
            plugin=plugin,
            action=action,
            data=dict(data or {}),
            timestamp=_now(),
            status="completed",
        )
        self._log.actions.append(entry)
        self.flush()

    def entries(self) -> list[ActionEntry]:
        return list(self._log.actions)

    def complete(self) -> None:
        self._set_status("completed")

    def mark_rolled_back(self) -> None:
        self._set_status("rolled-back")

    def mark_rollback_failed(self) -> None:
        self._set_status("rollback-failed")

    def _set_status(self, status: str) -> None:
        self._log.status = status
        self.flush()

    def flush(self) -> None:
        """Write the whole log atomically: temp file in the same dir, then rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self._log.model_dump(mode="json", by_alias=True), indent=2)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".release-log.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(payload + "\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


def load_release_log(path: Path) -> ReleaseLog:
    """Read a release log from disk.

    Raises:
        JournalStateError: If the file is missing or not a valid release log.
    """
    if not path.exists():
        raise JournalStateError(f"No release log found at {path} - nothing to roll back.")
    try:
        return ReleaseLog.model_validate_json(path.read_text())
    except PydanticValidationError as exc:
        raise JournalStateError(f"Release log at {path} is unreadable:\n{exc}") from exc

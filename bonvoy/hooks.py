"""Hook pipeline: named extension points that plugins attach handlers to.

Two disciplines exist:

- series: every handler is called in registration order with the same
  context; return values are discarded.
- waterfall: every handler receives the value returned by the previous one
  (seeded by the caller) plus any extra arguments, and the last value wins.
  A handler returning None leaves the value unchanged.

Handlers run strictly one after another. The set of stages is fixed;
plugins only add handlers to it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from .errors import HookError, StageError
from .log import silent_logger

if TYPE_CHECKING:
    from .config import BonvoyConfig

Discipline = Literal["series", "waterfall"]

HOOKS: dict[str, Discipline] = {
    # Configuration phase
    "modifyConfig": "waterfall",
    # Validation phase
    "beforeShipIt": "series",
    "validateRepo": "series",
    # Version phase
    "getVersion": "waterfall",
    "version": "series",
    "afterVersion": "series",
    # Changelog phase
    "beforeChangelog": "series",
    "generateChangelog": "waterfall",
    "afterChangelog": "series",
    # Publish phase
    "beforePublish": "series",
    "publish": "series",
    "afterPublish": "series",
    # Release phase
    "beforeRelease": "series",
    "makeRelease": "series",
    "afterRelease": "series",
    # PR workflow
    "beforeCreatePR": "series",
    "createPR": "series",
    "afterCreatePR": "series",
    # Recovery
    "rollback": "series",
}


@dataclass(frozen=True)
class Tap:
    """A handler attached to a stage.

    Attributes:
        stage: Stage name from HOOKS.
        ordinal: Global registration order, used to keep calls deterministic.
        plugin: Name of the plugin that registered the handler.
        handler: The callable itself.
    """

    stage: str
    ordinal: int
    plugin: str
    handler: Callable[..., Any]


class Plugin(Protocol):
    """Anything with a name that can attach handlers to a pipeline."""

    name: str

    def apply(self, pipeline: Bonvoy) -> None: ...


def run_series(taps: tuple[Tap, ...], context: Any) -> None:
    """Call every handler with ``context``, in order."""
    for tap in taps:
        try:
            tap.handler(context)
        except Exception as exc:
            raise StageError(tap.stage, tap.plugin, exc) from exc


def run_waterfall(taps: tuple[Tap, ...], value: Any, *args: Any) -> Any:
    """Thread ``value`` through every handler and return the final value."""
    for tap in taps:
        try:
            result = tap.handler(value, *args)
        except Exception as exc:
            raise StageError(tap.stage, tap.plugin, exc) from exc
        if result is not None:
            value = result
    return value


class Bonvoy:
    """A release pipeline instance: configuration plus the hook registry.

    Example:
        pipeline = Bonvoy(config)
        pipeline.use(ConventionalPlugin(config.conventional))
        bump = pipeline.waterfall("getVersion", None, context)
    """

    def __init__(
        self, config: BonvoyConfig | None = None, logger: logging.Logger | None = None
    ) -> None:
        self.config = config
        self.logger = logger or silent_logger()
        self.plugins: list[Plugin] = []
        self._taps: dict[str, list[Tap]] = {name: [] for name in HOOKS}
        self._ordinal = 0

    def use(self, plugin: Plugin) -> None:
        """Register a plugin; it attaches its handlers immediately."""
        self.plugins.append(plugin)
        plugin.apply(self)

    def tap(self, stage: str, plugin: str, handler: Callable[..., Any]) -> None:
        """Attach ``handler`` to ``stage`` on behalf of ``plugin``.

        Raises:
            HookError: If the stage name is unknown.
        """
        if stage not in HOOKS:
            raise HookError(f"Unknown hook '{stage}'")
        self._taps[stage].append(Tap(stage, self._ordinal, plugin, handler))
        self._ordinal += 1

    def taps(self, stage: str) -> tuple[Tap, ...]:
        """Handlers attached to ``stage``, in registration order."""
        if stage not in HOOKS:
            raise HookError(f"Unknown hook '{stage}'")
        return tuple(sorted(self._taps[stage], key=lambda t: t.ordinal))

    def _check(self, stage: str, discipline: Discipline) -> None:
        if stage not in HOOKS:
            raise HookError(f"Unknown hook '{stage}'")
        if HOOKS[stage] != discipline:
            raise HookError(f"Hook '{stage}' is a {HOOKS[stage]} hook, not {discipline}")

    def series(self, stage: str, context: Any) -> None:
        """Run a series stage."""
        self._check(stage, "series")
        taps = self.taps(stage)
        self.logger.debug(f"  hook {stage} ({len(taps)} handlers)")
        run_series(taps, context)

    def waterfall(self, stage: str, value: Any, *args: Any) -> Any:
        """Run a waterfall stage seeded with ``value``."""
        self._check(stage, "waterfall")
        taps = self.taps(stage)
        self.logger.debug(f"  hook {stage} ({len(taps)} handlers)")
        return run_waterfall(taps, value, *args)

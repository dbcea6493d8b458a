"""Exception hierarchy for bonvoy.

Every error the pipeline raises on purpose derives from BonvoyError so the
CLI can turn it into a single "Error: ..." line and exit code 1.
"""

from __future__ import annotations


class BonvoyError(Exception):
    """Base class for all bonvoy errors."""


class ConfigError(BonvoyError):
    """The configuration file could not be read or failed validation."""


class InvalidVersionError(BonvoyError):
    """An explicit target version is not a valid semantic version."""


class JournalStateError(BonvoyError):
    """The release log is missing or in a state rollback refuses to touch."""


class HookError(BonvoyError):
    """A hook was tapped or called in a way its stage does not allow."""


class ValidationError(BonvoyError):
    """A pre-release check failed (existing tag, already-published version)."""


class RegistryError(BonvoyError):
    """The package index rejected or cannot perform an operation."""


class StageError(BonvoyError):
    """A plugin handler raised inside a pipeline stage.

    Attributes:
        stage: Name of the stage that was running.
        plugin: Name of the plugin whose handler raised.
    """

    def __init__(self, stage: str, plugin: str, cause: BaseException) -> None:
        super().__init__(f"{stage} failed in plugin '{plugin}': {cause}")
        self.stage = stage
        self.plugin = plugin


class ProcessError(BonvoyError):
    """A subprocess exited with a non-zero status.

    Attributes:
        cmd: The command that was run.
        returncode: Exit status of the process.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    def __init__(
        self, cmd: list[str], returncode: int, stdout: str = "", stderr: str = ""
    ) -> None:
        detail = stderr.strip() or stdout.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(cmd)}: {detail}")
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ProviderError(BonvoyError):
    """A hosting-provider API call failed.

    Attributes:
        status: HTTP status code when the provider reported one.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

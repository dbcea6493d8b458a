"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git, gh, uv
and pip.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .errors import ProcessError


def run(
    *args: str,
    cwd: str | Path | None = None,
    input: str | None = None,
    env: dict[str, str] | None = None,
    check: bool = True,
) -> str:
    """Run a command and return its stripped stdout.

    Args:
        *args: Command and arguments (e.g., "uv", "build").
        cwd: Working directory for the command.
        input: Text sent to the process on stdin.
        env: Full environment for the process (defaults to the current one).
        check: If True (default), raise ProcessError on non-zero exit. Set
               to False for commands that may legitimately fail.

    Returns:
        Stripped stdout from the command.
    """
    result = subprocess.run(
        list(args),
        cwd=cwd,
        input=input,
        env=env,
        capture_output=True,
        text=True,
    )
    if check and result.returncode != 0:
        raise ProcessError(list(args), result.returncode, result.stdout, result.stderr)
    return result.stdout.strip()


def git(*args: str, cwd: str | Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Repository root to run in.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
    """
    return run("git", *args, cwd=cwd, check=check)

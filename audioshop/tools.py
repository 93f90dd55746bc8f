"""
Structured invocations of external tools.

Command lines for ffmpeg, ffprobe and sox are built as an ordered list of
typed arguments and passed to ``subprocess.run`` as an argument vector,
never through a shell.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from audioshop.exceptions import CollaboratorError, MissingDependencyError

logger = logging.getLogger(__name__)

Arg = Union[str, int, float, Path]


def _token(value: Arg) -> str:
    if isinstance(value, bool):
        raise TypeError("boolean arguments are ambiguous; pass a string")
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


@dataclass(frozen=True)
class Invocation:
    """An immutable program + argument vector."""
    program: str
    args: tuple[str, ...] = ()

    def add(self, *values: Arg) -> Invocation:
        """Return a copy with *values* appended."""
        return Invocation(self.program, self.args + tuple(_token(v) for v in values))

    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv())


def run(
    invocation: Invocation,
    *,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """Run *invocation* to completion and return the finished process.

    Raises
    ------
    MissingDependencyError
        If the program cannot be executed at all.
    CollaboratorError
        On a non-zero exit status or timeout; carries the full output.
    """
    argv = invocation.argv()
    logger.debug("Running: %s", invocation)
    try:
        proc = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise MissingDependencyError(
            f"{invocation.program!r} could not be executed: {exc}",
            tool=invocation.program,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise CollaboratorError(
            f"{Path(invocation.program).name} timed out after {timeout:.0f}s",
            command=argv,
            output=_combine(exc.stdout, exc.stderr),
        ) from exc

    if proc.returncode != 0:
        raise CollaboratorError(
            f"{Path(invocation.program).name} failed (rc={proc.returncode})",
            command=argv,
            output=_combine(proc.stdout, proc.stderr),
            returncode=proc.returncode,
        )
    return proc


def _combine(stdout: str | bytes | None, stderr: str | bytes | None) -> str:
    parts = []
    for chunk in (stdout, stderr):
        if not chunk:
            continue
        if isinstance(chunk, bytes):
            chunk = chunk.decode(errors="replace")
        parts.append(chunk.rstrip("\n"))
    return "\n".join(parts)

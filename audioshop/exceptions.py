"""
Custom exception hierarchy for audioshop.

All audioshop exceptions inherit from AudioShopError so callers can catch
the entire family with a single except clause.  Every error is fatal: the
run aborts, working storage is released and the CLI exits with status 1.
"""

from __future__ import annotations

from typing import Sequence


class AudioShopError(Exception):
    """Base exception for all audioshop errors."""


class UsageError(AudioShopError):
    """Raised when arguments are missing or invalid."""


class MissingDependencyError(AudioShopError):
    """Raised when a required external tool is not on $PATH."""

    def __init__(self, message: str, tool: str = "") -> None:
        super().__init__(message)
        self.tool = tool


class FatalInputError(AudioShopError):
    """Raised when the input asset cannot be read or probed."""


class CollaboratorError(AudioShopError):
    """Raised when ffmpeg, ffprobe or sox reports a failure.

    ``command`` is the exact argument vector that was run and ``output``
    is everything the tool wrote to stdout and stderr.
    """

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        output: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.output = output
        self.returncode = returncode


class ResourceError(AudioShopError):
    """Raised when working storage cannot be created."""


class ReconstructionError(AudioShopError):
    """Raised when the processed samples cannot fill a single frame."""


class Cancelled(AudioShopError):
    """Raised at a stage boundary after an interrupt was received."""

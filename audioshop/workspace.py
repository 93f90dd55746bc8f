"""
Per-run working storage and interrupt handling.

Each run gets one uniquely named directory holding intermediate frames,
sample buffers and audio extracts.  It is removed exactly once on every
exit path: success, failure or interrupt.

Interrupts (SIGINT, SIGTERM) only set a flag; the orchestrator checks it
between stages so a running ffmpeg or sox call is never cut short by us.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import signal
import tempfile
from pathlib import Path
from typing import Iterator

from audioshop.exceptions import Cancelled, ResourceError

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = "audioshop_"


class Workspace:
    """Context manager owning one temporary working directory."""

    def __init__(self, root: Path | None = None, prefix: str = WORKDIR_PREFIX) -> None:
        self.root = root
        self.prefix = prefix
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace is not active")
        return self._path

    @property
    def active(self) -> bool:
        return self._path is not None

    def acquire(self) -> Path:
        if self.root is not None:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ResourceError(
                    f"Failed to create working root {self.root}: {exc}"
                ) from exc
        try:
            created = tempfile.mkdtemp(
                prefix=self.prefix,
                dir=str(self.root) if self.root is not None else None,
            )
        except OSError as exc:
            raise ResourceError(f"Failed to create temporary directory: {exc}") from exc
        self._path = Path(created)
        logger.debug("Working directory: %s", self._path)
        return self._path

    def release(self) -> None:
        """Remove the directory; later calls are no-ops."""
        path, self._path = self._path, None
        if path is None:
            return
        if not path.name.startswith(self.prefix):
            logger.warning("Refusing to remove unexpected directory %s", path)
            return
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed working directory %s", path)

    def __enter__(self) -> Workspace:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class CancelToken:
    """Interrupt flag checked by the orchestrator at stage boundaries."""

    def __init__(self) -> None:
        self._signum: int | None = None

    @property
    def requested(self) -> bool:
        return self._signum is not None

    def request(self, signum: int = signal.SIGINT) -> None:
        if self._signum is None:
            self._signum = signum

    def check(self, next_stage: str) -> None:
        if self._signum is not None:
            name = signal.Signals(self._signum).name
            raise Cancelled(f"Interrupted by {name} before {next_stage}.")

    def _signal_handler(self, signum, frame) -> None:
        logger.info("Received signal %d, stopping at the next stage boundary", signum)
        self.request(signum)

    @contextlib.contextmanager
    def installed(self) -> Iterator[CancelToken]:
        """Route SIGINT and SIGTERM to this token while the block runs."""
        previous = {
            sig: signal.signal(sig, self._signal_handler)
            for sig in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            yield self
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

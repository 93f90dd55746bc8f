"""
Runtime configuration and system-dependency discovery.

This module locates the external tools (ffmpeg, ffprobe, sox) on the
system, parses option values, and builds the immutable PipelineConfig
that is threaded through every stage of a run.
"""

from __future__ import annotations

import os
import platform
import re
import shutil
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from audioshop.exceptions import MissingDependencyError, UsageError
from audioshop.pixfmt import lookup
from audioshop.types import EffectChain, PipelineConfig, Resolution


SUPPORTED_BITS = (8, 16, 24)
REQUIRED_TOOLS = ("ffprobe", "ffmpeg", "sox")
TMPDIR_ENV = "AUDIOSHOP_TMPDIR"

DEFAULTS: dict[str, Any] = {
    "bits": 8,
    "pixel_format": "rgb24",
    "resolution": None,
    "frame_rate": None,
    "blend": None,
    "effects": EffectChain(),
    "workers": 1,
}

_RES_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


@dataclass(frozen=True)
class ResolvedTools:
    """Absolute paths to external binaries resolved at startup."""

    ffmpeg: Path
    ffprobe: Path
    sox: Path


def install_hint() -> str:
    """Install instructions for the current platform."""
    os_name = platform.system()
    if os_name == "Darwin":
        return "brew install ffmpeg sox"
    if os_name == "Linux":
        return "sudo apt-get install ffmpeg sox"
    if os_name == "Windows":
        return "choco install ffmpeg sox.portable"
    return "Install ffmpeg and sox for your platform."


def resolve_tool(name: str) -> Path:
    """Find the absolute path to *name* on $PATH."""
    path = shutil.which(name)
    if path is None:
        raise MissingDependencyError(
            f"{name!r} could not be found, but is required.\n\n"
            f"This tool requires ffmpeg (with ffprobe) and sox to be installed.\n"
            f"You can install them using your package manager, for example:\n"
            f"  {install_hint()}",
            tool=name,
        )
    return Path(path)


def resolve_all() -> ResolvedTools:
    """Resolve all external dependencies at once."""
    paths = {name: resolve_tool(name) for name in REQUIRED_TOOLS}
    return ResolvedTools(
        ffmpeg=paths["ffmpeg"],
        ffprobe=paths["ffprobe"],
        sox=paths["sox"],
    )


def working_root() -> Path:
    """Directory under which per-run working storage is created."""
    raw = os.environ.get(TMPDIR_ENV, "")
    if raw:
        return Path(raw)
    return Path(tempfile.gettempdir())


# ---------------------------------------------------------------------------
# Option parsing
# ---------------------------------------------------------------------------

def parse_resolution(text: str) -> Resolution:
    m = _RES_RE.match(text)
    if m is None:
        raise UsageError(f"Invalid resolution {text!r}; expected WxH, e.g. 1280x720.")
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        raise UsageError(f"Resolution must be positive, got {text!r}.")
    return Resolution(width, height)


def parse_bits(text: str | int) -> int:
    try:
        bits = int(text)
    except ValueError:
        raise UsageError(f"Invalid bit depth {text!r}.") from None
    if bits not in SUPPORTED_BITS:
        raise UsageError(
            f"Unsupported bit depth {bits}; choose one of "
            f"{', '.join(str(b) for b in SUPPORTED_BITS)}."
        )
    return bits


def parse_blend(text: str | float) -> float:
    try:
        blend = float(text)
    except ValueError:
        raise UsageError(f"Invalid blend factor {text!r}.") from None
    if not 0.0 <= blend <= 1.0:
        raise UsageError(f"Blend factor must be between 0 and 1, got {blend}.")
    return blend


def parse_frame_rate(text: str | float) -> float:
    try:
        rate = float(text)
    except ValueError:
        raise UsageError(f"Invalid frame rate {text!r}.") from None
    if rate <= 0:
        raise UsageError(f"Frame rate must be positive, got {rate}.")
    return rate


def parse_workers(text: str | int) -> int:
    try:
        workers = int(text)
    except ValueError:
        raise UsageError(f"Invalid worker count {text!r}.") from None
    if workers < 1:
        raise UsageError(f"Worker count must be at least 1, got {workers}.")
    return workers


# ---------------------------------------------------------------------------
# PipelineConfig
# ---------------------------------------------------------------------------

def build_pipeline_config(**overrides: Any) -> PipelineConfig:
    """Merge *overrides* over DEFAULTS and validate the result.

    Overrides set to None fall back to the default.  Unknown keys are a
    usage error.
    """
    known = {f.name for f in fields(PipelineConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise UsageError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    values = dict(DEFAULTS)
    values.update({k: v for k, v in overrides.items() if v is not None})

    values["bits"] = parse_bits(values["bits"])
    values["workers"] = parse_workers(values["workers"])
    if values["blend"] is not None:
        values["blend"] = parse_blend(values["blend"])
    if values["frame_rate"] is not None:
        values["frame_rate"] = parse_frame_rate(values["frame_rate"])
    if isinstance(values["resolution"], str):
        values["resolution"] = parse_resolution(values["resolution"])
    lookup(values["pixel_format"])
    if not isinstance(values["effects"], EffectChain):
        raise UsageError("effects must be an EffectChain")

    return PipelineConfig(**values)

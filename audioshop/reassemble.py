"""
Frame reassembly: processed samples back to frames, with optional blend.

Blend convention: ``out = original * (1 - factor) + reconstructed * factor``
so 0 keeps the original frame and 1 keeps the reconstruction untouched.
Frames beyond the original frame count have nothing to blend with and
pass through unchanged.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from audioshop.codec import samples_to_frames
from audioshop.exceptions import ReconstructionError
from audioshop.pixfmt import PixelFormat
from audioshop.types import FrameBuffer, Resolution, SampleBuffer

logger = logging.getLogger(__name__)


def _component_dtype(fmt: PixelFormat) -> np.dtype:
    return np.dtype("<u2") if fmt.component_bytes == 2 else np.dtype(np.uint8)


def blend_frame(original: FrameBuffer, reconstructed: FrameBuffer, factor: float) -> FrameBuffer:
    """Weighted per-component mix of two frames of identical layout."""
    if len(original.data) != len(reconstructed.data):
        raise ValueError("Cannot blend frames of different sizes")
    dtype = _component_dtype(reconstructed.pixel_format)
    a = np.frombuffer(original.data, dtype=dtype).astype(np.float64)
    b = np.frombuffer(reconstructed.data, dtype=dtype).astype(np.float64)
    mixed = np.rint(a * (1.0 - factor) + b * factor)
    mixed = np.clip(mixed, 0, np.iinfo(dtype).max).astype(dtype)
    return FrameBuffer(
        data=mixed.tobytes(),
        width=reconstructed.width,
        height=reconstructed.height,
        pixel_format=reconstructed.pixel_format,
        index=reconstructed.index,
    )


def blend_frames(
    reconstructed: Sequence[FrameBuffer],
    originals: Sequence[FrameBuffer],
    factor: float | None,
) -> list[FrameBuffer]:
    """Blend each reconstructed frame with the original at the same index."""
    if factor is None:
        return list(reconstructed)
    out = []
    for i, frame in enumerate(reconstructed):
        if i < len(originals):
            out.append(blend_frame(originals[i], frame, factor))
        else:
            out.append(frame)
    extra = len(reconstructed) - len(originals)
    if extra > 0:
        logger.info("%d extra frame(s) have no original to blend with", extra)
    return out


def decode_frames(
    samples: SampleBuffer,
    fmt: PixelFormat,
    resolution: Resolution,
) -> list[FrameBuffer]:
    """Inverse codec mapping; fails when not even one frame is left."""
    frames = samples_to_frames(samples, fmt, resolution)
    if not frames:
        raise ReconstructionError(
            f"Effect output is {len(samples.payload())} bytes, less than one "
            f"{resolution} {fmt.name} frame "
            f"({fmt.frame_size(resolution.width, resolution.height)} bytes)."
        )
    return frames


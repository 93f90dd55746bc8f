"""
Pixel <-> sample codec.

The mapping between pixels and audio is a pure byte reinterpretation:

    frames  -->  concatenated pixel bytes  -->  unsigned PCM samples

No value is resampled or converted.  At 8 bits one pixel byte is one
sample; at 16 and 24 bits consecutive bytes form one little-endian
sample.  When the pixel byte count is not a multiple of the sample width
the stream is padded with zero bytes and the unpadded length is kept on
the SampleBuffer.

The inverse mapping cuts the (possibly longer or shorter) processed byte
stream back into frames of exactly ``fmt.frame_size(w, h)`` bytes.  The
frame count is ``floor(len / frame_size)``: surplus bytes become extra
trailing frames, a partial final frame is dropped, nothing is invented.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from audioshop.config import SUPPORTED_BITS
from audioshop.pixfmt import PixelFormat
from audioshop.types import DEFAULT_SAMPLE_RATE, FrameBuffer, Resolution, SampleBuffer

logger = logging.getLogger(__name__)


def sample_width(bits: int) -> int:
    """Bytes per sample for a supported bit depth."""
    if bits not in SUPPORTED_BITS:
        raise ValueError(f"Unsupported bit depth: {bits}")
    return bits // 8


def frames_to_samples(
    frames: Sequence[FrameBuffer],
    bits: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> SampleBuffer:
    """Concatenate *frames* in order and reinterpret them as PCM samples."""
    payload = b"".join(frame.data for frame in frames)
    pad = (-len(payload)) % sample_width(bits)
    if pad:
        logger.debug("Padding %d byte(s) to a whole %d-bit sample", pad, bits)
    return SampleBuffer(
        data=payload + bytes(pad),
        bits=bits,
        original_length=len(payload),
        sample_rate=sample_rate,
    )


def frame_count_for(n_bytes: int, fmt: PixelFormat, resolution: Resolution) -> int:
    """Number of whole frames that fit in *n_bytes*."""
    return n_bytes // fmt.frame_size(resolution.width, resolution.height)


def segment_frames(
    data: bytes,
    fmt: PixelFormat,
    resolution: Resolution,
    start_index: int = 0,
) -> list[FrameBuffer]:
    """Cut *data* into whole frames; a partial tail is not returned."""
    frame_size = fmt.frame_size(resolution.width, resolution.height)
    count = frame_count_for(len(data), fmt, resolution)
    view = memoryview(data)
    return [
        FrameBuffer(
            data=bytes(view[i * frame_size:(i + 1) * frame_size]),
            width=resolution.width,
            height=resolution.height,
            pixel_format=fmt,
            index=start_index + i,
        )
        for i in range(count)
    ]


def samples_to_frames(
    samples: SampleBuffer,
    fmt: PixelFormat,
    resolution: Resolution,
) -> list[FrameBuffer]:
    """Reinterpret processed samples as frames of *fmt* at *resolution*."""
    payload = samples.payload()
    frames = segment_frames(payload, fmt, resolution)
    tail = len(payload) - len(frames) * fmt.frame_size(resolution.width, resolution.height)
    if tail:
        logger.info("Dropping %d byte(s) that do not fill a whole frame", tail)
    if samples.original_length and len(payload) != samples.original_length:
        logger.info(
            "Sample stream changed length: %d -> %d bytes (%d frame(s))",
            samples.original_length, len(payload), len(frames),
        )
    return frames


def write_samples(samples: SampleBuffer, path: Path) -> Path:
    """Write *samples* as headerless raw audio."""
    path.write_bytes(samples.data)
    return path


def read_samples(path: Path, like: SampleBuffer) -> SampleBuffer:
    """Read raw audio written by the effect tool, keeping *like*'s format."""
    return like.with_data(path.read_bytes())

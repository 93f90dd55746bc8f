"""
Frame extraction.

Decodes an input asset into an ordered list of FrameBuffers at the target
pixel format and resolution.  Pillow decodes images whose target format
it can represent exactly; ffmpeg's rawvideo muxer handles the rest, and
all video.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageSequence

from audioshop.codec import segment_frames
from audioshop.config import ResolvedTools
from audioshop.exceptions import CollaboratorError, FatalInputError
from audioshop.pixfmt import PixelFormat
from audioshop.tools import Invocation, run
from audioshop.types import FrameBuffer, MediaDescriptor, MediaKind, Resolution

logger = logging.getLogger(__name__)


def extract_frames(
    descriptor: MediaDescriptor,
    fmt: PixelFormat,
    resolution: Resolution,
    tools: ResolvedTools,
    workdir: Path,
) -> list[FrameBuffer]:
    """Decode every frame of *descriptor* in source order.

    Any decode failure aborts the whole extraction.
    """
    if descriptor.kind is not MediaKind.VIDEO and fmt.pillow_mode is not None:
        frames = extract_with_pillow(descriptor.path, fmt, resolution)
    else:
        frames = extract_with_ffmpeg(descriptor.path, fmt, resolution, tools, workdir)
    logger.info("Extracted %d frame(s) at %s %s", len(frames), resolution, fmt.name)
    return frames


def extract_with_pillow(
    path: Path,
    fmt: PixelFormat,
    resolution: Resolution,
) -> list[FrameBuffer]:
    frames: list[FrameBuffer] = []
    try:
        with Image.open(path) as img:
            for index, frame in enumerate(ImageSequence.Iterator(img)):
                converted = frame.convert(fmt.pillow_mode)
                if converted.size != resolution.size:
                    converted = converted.resize(resolution.size, Image.LANCZOS)
                frames.append(FrameBuffer(
                    data=converted.tobytes(),
                    width=resolution.width,
                    height=resolution.height,
                    pixel_format=fmt,
                    index=index,
                ))
    except OSError as exc:
        raise CollaboratorError(
            f"Failed to decode frame {len(frames)} of {path}",
            output=str(exc),
        ) from exc
    return frames


def rawvideo_invocation(
    path: Path,
    fmt: PixelFormat,
    resolution: Resolution,
    tools: ResolvedTools,
    output: Path,
) -> Invocation:
    return Invocation(str(tools.ffmpeg)).add(
        "-y", "-v", "error",
        "-i", path,
        "-map", "0:v:0",
        "-f", "rawvideo",
        "-pix_fmt", fmt.name,
        "-s", str(resolution),
        output,
    )


def extract_with_ffmpeg(
    path: Path,
    fmt: PixelFormat,
    resolution: Resolution,
    tools: ResolvedTools,
    workdir: Path,
) -> list[FrameBuffer]:
    raw_path = workdir / "frames_in.raw"
    run(rawvideo_invocation(path, fmt, resolution, tools, raw_path))
    data = raw_path.read_bytes()
    frames = split_frames(data, fmt, resolution)
    if not frames:
        raise FatalInputError(f"No frames could be decoded from {path}")
    return frames


def split_frames(data: bytes, fmt: PixelFormat, resolution: Resolution) -> list[FrameBuffer]:
    """Cut a rawvideo byte stream into whole frames."""
    frames = segment_frames(data, fmt, resolution)
    remainder = len(data) - len(frames) * fmt.frame_size(resolution.width, resolution.height)
    if remainder:
        logger.warning(
            "Decoded stream has %d trailing byte(s) beyond %d whole frame(s)",
            remainder, len(frames),
        )
    return frames


def extract_audio(descriptor: MediaDescriptor, tools: ResolvedTools, workdir: Path) -> Path:
    """Copy the first audio track of *descriptor* out as 16-bit WAV."""
    output = workdir / "audio_in.wav"
    run(Invocation(str(tools.ffmpeg)).add(
        "-y", "-v", "error",
        "-i", descriptor.path,
        "-map", "0:a:0",
        "-vn",
        "-c:a", "pcm_s16le",
        output,
    ))
    logger.info("Extracted audio track to %s", output)
    return output

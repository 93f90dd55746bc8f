"""
Media introspection.

Images that Pillow can open (stills and multi-frame animations such as
GIF) are inspected with Pillow, which also yields per-frame delays and
the loop count.  Everything else is probed with ffprobe.
"""

from __future__ import annotations

import json
import logging
from fractions import Fraction
from pathlib import Path
from typing import Any

from PIL import Image, ImageSequence, UnidentifiedImageError

from audioshop.config import ResolvedTools
from audioshop.exceptions import CollaboratorError, FatalInputError
from audioshop.pixfmt import format_for_pillow_mode
from audioshop.tools import Invocation, run
from audioshop.types import AnimationMetadata, MediaDescriptor, MediaKind

logger = logging.getLogger(__name__)

_STILL_FORMATS = {"image2", "png_pipe", "jpeg_pipe", "bmp_pipe", "tiff_pipe", "webp_pipe"}


def parse_frame_rate(raw: str | None) -> float:
    """Convert an ffprobe rational such as ``30000/1001`` to a float.

    A zero denominator, an empty value or garbage yields 0.0.
    """
    if not raw:
        return 0.0
    num, _, den = raw.partition("/")
    try:
        if not den:
            return float(num)
        if float(den) == 0:
            return 0.0
        return float(Fraction(int(num), int(den)))
    except ValueError:
        return 0.0


def probe_media(path: str | Path, tools: ResolvedTools) -> MediaDescriptor:
    """Return a MediaDescriptor for *path*.

    Raises
    ------
    FatalInputError
        If the file does not exist or cannot be probed at all.
    """
    path = Path(path)
    if not path.is_file():
        raise FatalInputError(f"Input file '{path}' not found!")

    descriptor = probe_image(path)
    if descriptor is None:
        descriptor = probe_stream(path, tools)
    logger.info(
        "Probed %s: kind=%s res=%dx%d fmt=%s frames=%s rate=%.6f audio=%s",
        path, descriptor.kind.value, descriptor.width, descriptor.height,
        descriptor.pixel_format, descriptor.frame_count, descriptor.frame_rate,
        descriptor.has_audio,
    )
    return descriptor


def probe_image(path: Path) -> MediaDescriptor | None:
    """Inspect *path* with Pillow; None if Pillow does not recognise it."""
    try:
        with Image.open(path) as img:
            n_frames = getattr(img, "n_frames", 1)
            width, height = img.size
            pixel_format = format_for_pillow_mode(img.mode)
            if n_frames <= 1:
                return MediaDescriptor(
                    path=path,
                    kind=MediaKind.STILL_IMAGE,
                    width=width,
                    height=height,
                    pixel_format=pixel_format,
                    frame_count=1,
                    frame_rate=0.0,
                )
            loop = img.info.get("loop")
            delays = tuple(
                round(frame.info.get("duration", 0) / 10)
                for frame in ImageSequence.Iterator(img)
            )
    except UnidentifiedImageError:
        return None
    except OSError as exc:
        raise FatalInputError(f"Failed to read image {path}: {exc}") from exc

    animation = AnimationMetadata(delays_cs=delays, loop=loop)
    mean = sum(delays) / len(delays)
    return MediaDescriptor(
        path=path,
        kind=MediaKind.ANIMATED_IMAGE,
        width=width,
        height=height,
        pixel_format=pixel_format,
        frame_count=len(delays),
        frame_rate=100.0 / mean if mean > 0 else 0.0,
        animation=animation,
    )


def ffprobe_invocation(path: Path, tools: ResolvedTools) -> Invocation:
    return Invocation(str(tools.ffprobe)).add(
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    )


def probe_stream(path: Path, tools: ResolvedTools) -> MediaDescriptor:
    """Inspect a video (or an image Pillow cannot read) with ffprobe."""
    try:
        proc = run(ffprobe_invocation(path, tools), timeout=60)
    except CollaboratorError as exc:
        raise FatalInputError(
            f"Could not probe {path}: {exc}\n{exc.output}"
        ) from exc

    try:
        data = json.loads(proc.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise FatalInputError(f"ffprobe returned invalid JSON for {path}") from exc
    return descriptor_from_ffprobe(path, data)


def descriptor_from_ffprobe(path: Path, data: dict[str, Any]) -> MediaDescriptor:
    """Build a MediaDescriptor from parsed ``ffprobe -print_format json``."""
    streams = data.get("streams", [])
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise FatalInputError(f"No video stream found in {path}")
    has_audio = any(s.get("codec_type") == "audio" for s in streams)

    try:
        width, height = int(video["width"]), int(video["height"])
    except (KeyError, ValueError) as exc:
        raise FatalInputError(f"No frame size reported for {path}") from exc

    nb_frames = str(video.get("nb_frames", ""))
    frame_count = int(nb_frames) if nb_frames.isdigit() else None

    format_name = data.get("format", {}).get("format_name", "")
    kind = MediaKind.VIDEO
    if format_name in _STILL_FORMATS and not has_audio and frame_count in (None, 1):
        kind = MediaKind.STILL_IMAGE
        frame_count = 1

    return MediaDescriptor(
        path=path,
        kind=kind,
        width=width,
        height=height,
        pixel_format=video.get("pix_fmt", "unknown"),
        frame_count=frame_count,
        frame_rate=parse_frame_rate(video.get("r_frame_rate")),
        has_audio=has_audio,
    )

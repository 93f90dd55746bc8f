"""
Output assembly.

Encodes the final frame sequence into the requested container:

    still image     -> Pillow, or ffmpeg for formats Pillow cannot hold
    animated image  -> Pillow GIF / WebP / APNG with per-frame delays
                       and loop count, or ffmpeg video for other suffixes
    video           -> ffmpeg rawvideo input, optional processed audio

Everything is written to a path inside the run's working directory; the
orchestrator moves the finished file into place only on success.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Sequence

from PIL import Image

from audioshop.codec import segment_frames
from audioshop.config import ResolvedTools
from audioshop.exceptions import CollaboratorError
from audioshop.pixfmt import lookup
from audioshop.tools import Invocation, run
from audioshop.types import AnimationMetadata, FrameBuffer, MediaKind

logger = logging.getLogger(__name__)


class AnimatedFormat(enum.Enum):
    """Animated containers written through Pillow."""
    GIF = "GIF"
    WEBP = "WEBP"
    APNG = "PNG"


_ANIMATED_SUFFIXES = {
    ".gif": AnimatedFormat.GIF,
    ".webp": AnimatedFormat.WEBP,
    ".png": AnimatedFormat.APNG,
    ".apng": AnimatedFormat.APNG,
}


def animated_format_for(path: Path) -> AnimatedFormat | None:
    return _ANIMATED_SUFFIXES.get(path.suffix.lower())


def pillow_can_write(path: Path) -> bool:
    """Return True if Pillow has a writer for *path*'s suffix."""
    fmt = Image.registered_extensions().get(path.suffix.lower())
    return fmt is not None and fmt in Image.SAVE


def resolve_animation(
    metadata: AnimationMetadata | None,
    n_frames: int,
) -> AnimationMetadata:
    """Original delays when the frame count held, else a uniform list."""
    if metadata is None:
        return AnimationMetadata(delays_cs=(), loop=0).for_frame_count(n_frames)
    resolved = metadata.for_frame_count(n_frames)
    if resolved is not metadata:
        logger.info(
            "Frame count changed %d -> %d; using uniform %d cs delays",
            metadata.frame_count, n_frames, resolved.mean_delay_cs,
        )
    return resolved


class OutputAssembler:
    """Encode FrameBuffers into an output file."""

    def __init__(self, tools: ResolvedTools, workdir: Path) -> None:
        self.tools = tools
        self.workdir = workdir

    def assemble(
        self,
        kind: MediaKind,
        frames: Sequence[FrameBuffer],
        output: Path,
        frame_rate: float,
        animation: AnimationMetadata | None = None,
        audio_path: Path | None = None,
    ) -> Path:
        if not frames:
            raise ValueError("No frames to assemble")
        if kind is MediaKind.STILL_IMAGE:
            return self.write_still(frames[0], output)
        if kind is MediaKind.ANIMATED_IMAGE:
            resolved = resolve_animation(animation, len(frames))
            if animated_format_for(output) is not None:
                return self.write_animation(frames, output, resolved)
            rate = 100.0 / resolved.mean_delay_cs
            return self.write_video(frames, output, rate)
        return self.write_video(frames, output, frame_rate, audio_path)

    # ---- frame conversion ------------------------------------------------

    def to_images(self, frames: Sequence[FrameBuffer]) -> list[Image.Image]:
        """Wrap frames as Pillow images, converting via ffmpeg if needed."""
        fmt = frames[0].pixel_format
        if fmt.pillow_mode is not None:
            return [
                Image.frombytes(fmt.pillow_mode, (f.width, f.height), f.data)
                for f in frames
            ]
        rgba = lookup("rgba")
        raw_in = self._write_raw(frames, "convert_in.raw")
        raw_out = self.workdir / "convert_out.raw"
        run(
            self._rawvideo_input(frames[0], raw_in, rate=None)
            .add("-f", "rawvideo", "-pix_fmt", rgba.name, raw_out)
        )
        converted = segment_frames(raw_out.read_bytes(), rgba, frames[0].resolution)
        return [
            Image.frombytes("RGBA", (f.width, f.height), f.data)
            for f in converted
        ]

    # ---- writers -----------------------------------------------------------

    def write_still(self, frame: FrameBuffer, output: Path) -> Path:
        """Write one frame with Pillow, or ffmpeg when Pillow cannot."""
        if frame.pixel_format.pillow_mode is not None and pillow_can_write(output):
            image = self.to_images([frame])[0]
            try:
                image.save(output)
                return output
            except (OSError, ValueError, KeyError) as exc:
                # e.g. RGBA to JPEG; ffmpeg converts the pixel format itself
                logger.info(
                    "Pillow cannot write %s as %s (%s), encoding with ffmpeg",
                    image.mode, output.suffix, exc,
                )
                output.unlink(missing_ok=True)
        raw = self._write_raw([frame], "frames_out.raw")
        run(
            self._rawvideo_input(frame, raw, rate=None)
            .add("-frames:v", 1, output)
        )
        return output

    def write_animation(
        self,
        frames: Sequence[FrameBuffer],
        output: Path,
        animation: AnimationMetadata,
    ) -> Path:
        fmt = animated_format_for(output)
        images = self.to_images(frames)
        kwargs = {
            "format": fmt.value,
            "save_all": True,
            "append_images": images[1:],
            "duration": [cs * 10 for cs in animation.delays_cs],
        }
        if animation.loop is not None:
            kwargs["loop"] = animation.loop
        logger.info(
            "Writing %d-frame %s, loop=%s", len(images), fmt.name, animation.loop,
        )
        try:
            images[0].save(output, **kwargs)
        except (OSError, ValueError, KeyError) as exc:
            raise CollaboratorError(
                f"Failed to assemble {fmt.name} {output.name}",
                output=str(exc),
            ) from exc
        return output

    def write_video(
        self,
        frames: Sequence[FrameBuffer],
        output: Path,
        frame_rate: float,
        audio_path: Path | None = None,
    ) -> Path:
        raw = self._write_raw(frames, "frames_out.raw")
        cmd = self._rawvideo_input(frames[0], raw, rate=frame_rate)
        if audio_path is not None:
            cmd = cmd.add("-i", audio_path, "-map", "0:v:0", "-map", "1:a:0")
        cmd = cmd.add("-frames:v", len(frames), "-r", frame_rate, output)
        logger.info("Encoding %d frame(s) at %.6f fps", len(frames), frame_rate)
        run(cmd)
        return output

    # ---- helpers -----------------------------------------------------------

    def _write_raw(self, frames: Sequence[FrameBuffer], name: str) -> Path:
        path = self.workdir / name
        with open(path, "wb") as f:
            for frame in frames:
                f.write(frame.data)
        return path

    def _rawvideo_input(
        self,
        frame: FrameBuffer,
        raw_path: Path,
        rate: float | None,
    ) -> Invocation:
        cmd = Invocation(str(self.tools.ffmpeg)).add(
            "-y", "-v", "error",
            "-f", "rawvideo",
            "-pix_fmt", frame.pixel_format.name,
            "-s", str(frame.resolution),
        )
        if rate is not None:
            cmd = cmd.add("-r", rate)
        return cmd.add("-i", raw_path)

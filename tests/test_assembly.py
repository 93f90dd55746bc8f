"""
Tests for output assembly.

Pillow-backed writers (still images, GIF, WebP, APNG) run without
external tools; video output needs ffmpeg.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image, ImageSequence

from conftest import requires_ffmpeg

from audioshop.assembly import (
    AnimatedFormat,
    OutputAssembler,
    animated_format_for,
    pillow_can_write,
    resolve_animation,
)
from audioshop.pixfmt import lookup
from audioshop.types import AnimationMetadata, FrameBuffer, MediaKind

# Suppress unclosed-file resource warnings from Pillow lazy loading.
pytestmark = pytest.mark.filterwarnings("ignore::pytest.PytestUnraisableExceptionWarning")


def _solid_frames(colors, size=(4, 4)):
    rgb24 = lookup("rgb24")
    w, h = size
    return [
        FrameBuffer(data=bytes(c) * (w * h), width=w, height=h, pixel_format=rgb24, index=i)
        for i, c in enumerate(colors)
    ]


RGB3 = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]


class TestFormatHelpers:
    @pytest.mark.parametrize("name,fmt", [
        ("a.gif", AnimatedFormat.GIF),
        ("a.WEBP", AnimatedFormat.WEBP),
        ("a.png", AnimatedFormat.APNG),
        ("a.apng", AnimatedFormat.APNG),
        ("a.mp4", None),
    ])
    def test_animated_format_for(self, name, fmt):
        assert animated_format_for(Path(name)) is fmt

    def test_pillow_can_write(self):
        assert pillow_can_write(Path("x.png"))
        assert pillow_can_write(Path("x.bmp"))
        assert not pillow_can_write(Path("x.mp4"))


class TestResolveAnimation:
    def test_keeps_delays(self):
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=0)
        assert resolve_animation(meta, 3).delays_cs == (10, 20, 30)

    def test_uniform_when_count_changes(self):
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=3)
        resolved = resolve_animation(meta, 5)
        assert resolved.delays_cs == (20,) * 5
        assert resolved.loop == 3

    def test_no_metadata(self):
        resolved = resolve_animation(None, 2)
        assert resolved.delays_cs == (10, 10)
        assert resolved.loop == 0


class TestStill:
    def test_png(self, fake_tools, tmp_dir):
        frames = _solid_frames([(1, 2, 3), (4, 5, 6)], size=(3, 2))
        out = OutputAssembler(fake_tools, tmp_dir).assemble(
            MediaKind.STILL_IMAGE, frames, tmp_dir / "out.png", 10.0,
        )
        with Image.open(out) as img:
            assert img.size == (3, 2)
            assert img.convert("RGB").tobytes() == frames[0].data

    def test_empty_frames(self, fake_tools, tmp_dir):
        with pytest.raises(ValueError):
            OutputAssembler(fake_tools, tmp_dir).assemble(
                MediaKind.STILL_IMAGE, [], tmp_dir / "out.png", 10.0,
            )

    def test_mode_pillow_cannot_write_goes_to_ffmpeg(self, fake_tools, tmp_dir):
        rgba = lookup("rgba")
        frame = FrameBuffer(
            data=bytes([10, 20, 30, 255]) * 4, width=2, height=2, pixel_format=rgba,
        )
        out = tmp_dir / "out.jpg"
        with patch("audioshop.assembly.run") as run:
            result = OutputAssembler(fake_tools, tmp_dir).write_still(frame, out)
        assert result == out
        argv = run.call_args.args[0].argv()
        assert argv[argv.index("-pix_fmt") + 1] == "rgba"
        assert argv[-3:] == ["-frames:v", "1", str(out)]
        assert (tmp_dir / "frames_out.raw").read_bytes() == frame.data
        assert not out.exists()


class TestAnimation:
    def test_gif_preserves_delays_and_loop(self, fake_tools, tmp_dir):
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=0)
        out = OutputAssembler(fake_tools, tmp_dir).assemble(
            MediaKind.ANIMATED_IMAGE, _solid_frames(RGB3), tmp_dir / "out.gif",
            10.0, animation=meta,
        )
        with Image.open(out) as img:
            assert img.n_frames == 3
            assert img.info.get("loop") == 0
            durations = [f.info["duration"] for f in ImageSequence.Iterator(img)]
        assert durations == [100, 200, 300]

    def test_gif_without_loop_plays_once(self, fake_tools, tmp_dir):
        meta = AnimationMetadata(delays_cs=(10, 10, 10), loop=None)
        out = OutputAssembler(fake_tools, tmp_dir).assemble(
            MediaKind.ANIMATED_IMAGE, _solid_frames(RGB3), tmp_dir / "out.gif",
            10.0, animation=meta,
        )
        with Image.open(out) as img:
            assert "loop" not in img.info

    def test_gif_frame_count_changed(self, fake_tools, tmp_dir):
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=0)
        frames = _solid_frames(RGB3 + [(9, 9, 9)])
        out = OutputAssembler(fake_tools, tmp_dir).assemble(
            MediaKind.ANIMATED_IMAGE, frames, tmp_dir / "out.gif", 10.0, animation=meta,
        )
        with Image.open(out) as img:
            durations = [f.info["duration"] for f in ImageSequence.Iterator(img)]
        assert durations == [200] * 4

    def test_webp(self, fake_tools, tmp_dir):
        if not pillow_can_write(Path("x.webp")):
            pytest.skip("Pillow built without WebP")
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=0)
        out = OutputAssembler(fake_tools, tmp_dir).write_animation(
            _solid_frames(RGB3), tmp_dir / "out.webp", meta,
        )
        with Image.open(out) as img:
            assert img.n_frames == 3

    def test_apng(self, fake_tools, tmp_dir):
        meta = AnimationMetadata(delays_cs=(5, 5, 5), loop=1)
        out = OutputAssembler(fake_tools, tmp_dir).write_animation(
            _solid_frames(RGB3), tmp_dir / "out.png", meta,
        )
        with Image.open(out) as img:
            assert img.n_frames == 3


@requires_ffmpeg
class TestVideo:
    def test_video_frame_count(self, real_tools, tmp_dir):
        frames = _solid_frames([(i * 20, 0, 0) for i in range(6)], size=(16, 16))
        out = OutputAssembler(real_tools, tmp_dir).assemble(
            MediaKind.VIDEO, frames, tmp_dir / "out.mkv", 12.0,
        )
        from audioshop.probe import probe_media
        d = probe_media(out, real_tools)
        assert d.frame_rate == pytest.approx(12.0)

    def test_still_through_ffmpeg(self, real_tools, tmp_dir):
        fmt = lookup("yuv444p")
        frame = FrameBuffer(data=bytes(4 * 4 * 3), width=4, height=4, pixel_format=fmt)
        out = OutputAssembler(real_tools, tmp_dir).write_still(frame, tmp_dir / "out.png")
        with Image.open(out) as img:
            assert img.size == (4, 4)

    def test_animation_from_non_pillow_format(self, real_tools, tmp_dir):
        fmt = lookup("yuv444p")
        frames = [
            FrameBuffer(data=bytes([v]) * 48, width=4, height=4, pixel_format=fmt, index=i)
            for i, v in enumerate((16, 128, 235))
        ]
        meta = AnimationMetadata(delays_cs=(10, 20, 30), loop=0)
        out = OutputAssembler(real_tools, tmp_dir).write_animation(
            frames, tmp_dir / "out.gif", meta,
        )
        with Image.open(out) as img:
            assert img.n_frames == 3

    def test_rgba_frame_as_jpeg(self, real_tools, tmp_dir):
        rgba = lookup("rgba")
        frame = FrameBuffer(
            data=bytes([200, 40, 40, 128]) * 16, width=4, height=4, pixel_format=rgba,
        )
        out = OutputAssembler(real_tools, tmp_dir).assemble(
            MediaKind.STILL_IMAGE, [frame], tmp_dir / "out.jpg", 10.0,
        )
        with Image.open(out) as img:
            assert img.format == "JPEG"
            assert img.size == (4, 4)

"""
Tests for the pixel format table.
"""

from __future__ import annotations

import subprocess

import pytest

from conftest import requires_ffmpeg

from audioshop.exceptions import UsageError
from audioshop.pixfmt import format_for_pillow_mode, known_formats, lookup


class TestFrameSize:
    @pytest.mark.parametrize("name,w,h,size", [
        ("rgb24", 2, 2, 12),
        ("rgba", 3, 1, 12),
        ("gray", 5, 5, 25),
        ("yuv444p", 2, 2, 12),
        ("yuv420p", 4, 4, 24),
        ("yuv420p", 3, 3, 9 + 2 * 4),
        ("yuv422p", 4, 2, 8 + 2 * 4),
        ("yuyv422", 4, 2, 16),
        ("nv12", 2, 2, 6),
        ("yuva420p", 2, 2, 4 + 2 + 4),
        ("rgb48le", 1, 1, 6),
        ("yuv420p10le", 2, 2, 8 + 4),
    ])
    def test_sizes(self, name, w, h, size):
        assert lookup(name).frame_size(w, h) == size

    @pytest.mark.parametrize("name,size", [
        ("yuv422p10le", 64),
        ("gray10le", 32),
        ("yuv444p10le", 96),
        ("gbrp12le", 96),
        ("yuv420p12le", 48),
        ("p010le", 48),
    ])
    def test_high_bit_depth_stored_in_words(self, name, size):
        assert lookup(name).frame_size(4, 4) == size

    @pytest.mark.parametrize("name,w,h,size", [
        ("yuyv422", 3, 2, 16),
        ("uyvy422", 5, 4, 48),
        ("yvyu422", 1, 1, 4),
    ])
    def test_packed_422_rows_padded_to_macropixels(self, name, w, h, size):
        assert lookup(name).frame_size(w, h) == size

    def test_palette_appended(self):
        assert lookup("pal8").frame_size(4, 4) == 16 + 1024


class TestLookup:
    def test_known(self):
        fmt = lookup("rgb24")
        assert fmt.pillow_mode == "RGB"
        assert fmt.bits_per_pixel == 24

    @pytest.mark.parametrize("name", ["not_a_format", "p210le", ""])
    def test_unsupported(self, name):
        with pytest.raises(UsageError, match="Unsupported color format") as info:
            lookup(name)
        assert "yuv420p10le" in str(info.value)

    def test_known_formats_sorted(self):
        names = known_formats()
        assert names == sorted(names)
        assert "yuyv422" in names


@requires_ffmpeg
class TestFrameSizeMatchesFfmpeg:
    """Every table entry must agree with ffmpeg's rawvideo output size."""

    @pytest.mark.parametrize("name", known_formats())
    @pytest.mark.parametrize("w,h", [(4, 4), (5, 3)])
    def test_rawvideo_frame_bytes(self, name, w, h):
        proc = subprocess.run(
            [
                "ffmpeg", "-v", "error",
                "-f", "lavfi", "-i", f"color=c=gray:s={w}x{h}:d=1",
                "-frames:v", "1",
                "-f", "rawvideo", "-pix_fmt", name, "-",
            ],
            capture_output=True,
        )
        if proc.returncode != 0:
            pytest.skip(f"ffmpeg cannot convert to {name}")
        assert len(proc.stdout) == lookup(name).frame_size(w, h)


class TestPillowModes:
    @pytest.mark.parametrize("mode,name", [
        ("RGB", "rgb24"), ("RGBA", "rgba"), ("L", "gray"), ("P", "pal8"), ("XYZ", "xyz"),
    ])
    def test_mapping(self, mode, name):
        assert format_for_pillow_mode(mode) == name

    def test_pillow_modes_in_table(self):
        for name in ("rgb24", "rgba", "gray", "ya8"):
            assert lookup(name).pillow_mode is not None

"""
Pixel format table.

Maps ffmpeg pixel format names to their raw frame layout so that frame
byte sizes can be computed without decoding anything.  Only formats in
the table are accepted: a frame size must match what ffmpeg's rawvideo
muxer writes, byte for byte.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from audioshop.exceptions import UsageError


@dataclass(frozen=True)
class PixelFormat:
    """Raw layout of one ffmpeg pixel format.

    ``bits_per_pixel`` counts stored bits, so 10-bit formats kept in
    16-bit words count 16 per component.  ``chroma_shift`` is log2 of
    the horizontal / vertical chroma subsampling of planar formats.
    ``pixel_group`` is the macropixel width of packed formats such as
    yuyv422; rows are padded to whole groups.  ``palette_bytes`` is the
    palette ffmpeg appends to every frame of paletted formats.
    ``pillow_mode`` is set when Pillow can represent the format
    byte-for-byte.
    """
    name: str
    bits_per_pixel: int
    component_bytes: int = 1
    chroma_shift: tuple[int, int] = (0, 0)
    has_alpha_plane: bool = False
    pixel_group: int = 1
    palette_bytes: int = 0
    pillow_mode: str | None = None

    @property
    def subsampled(self) -> bool:
        return self.chroma_shift != (0, 0)

    def frame_size(self, width: int, height: int) -> int:
        """Bytes in one rawvideo frame of *width* x *height*."""
        if not self.subsampled:
            padded = -(-width // self.pixel_group) * self.pixel_group
            size = math.ceil(padded * height * self.bits_per_pixel / 8)
            return size + self.palette_bytes
        sx, sy = self.chroma_shift
        chroma_w = -(-width >> sx)
        chroma_h = -(-height >> sy)
        luma = width * height * self.component_bytes
        size = luma + 2 * chroma_w * chroma_h * self.component_bytes
        if self.has_alpha_plane:
            size += luma
        return size


_KNOWN_FORMATS: dict[str, PixelFormat] = {
    f.name: f
    for f in (
        PixelFormat("rgb24", 24, pillow_mode="RGB"),
        PixelFormat("bgr24", 24),
        PixelFormat("rgba", 32, pillow_mode="RGBA"),
        PixelFormat("bgra", 32),
        PixelFormat("argb", 32),
        PixelFormat("abgr", 32),
        PixelFormat("rgb0", 32),
        PixelFormat("bgr0", 32),
        PixelFormat("gray", 8, pillow_mode="L"),
        PixelFormat("ya8", 16, pillow_mode="LA"),
        PixelFormat("pal8", 8, palette_bytes=1024),
        PixelFormat("gray10le", 16, component_bytes=2),
        PixelFormat("gray12le", 16, component_bytes=2),
        PixelFormat("gray16le", 16, component_bytes=2),
        PixelFormat("rgb48le", 48, component_bytes=2),
        PixelFormat("rgba64le", 64, component_bytes=2),
        PixelFormat("rgb565le", 16),
        PixelFormat("rgb555le", 16),
        PixelFormat("gbrp", 24),
        PixelFormat("gbrap", 32),
        PixelFormat("gbrp10le", 48, component_bytes=2),
        PixelFormat("gbrp12le", 48, component_bytes=2),
        PixelFormat("gbrp16le", 48, component_bytes=2),
        PixelFormat("yuv444p", 24),
        PixelFormat("yuv422p", 16, chroma_shift=(1, 0)),
        PixelFormat("yuv420p", 12, chroma_shift=(1, 1)),
        PixelFormat("yuv440p", 16, chroma_shift=(0, 1)),
        PixelFormat("yuv411p", 12, chroma_shift=(2, 0)),
        PixelFormat("yuv410p", 9, chroma_shift=(2, 2)),
        PixelFormat("yuvj444p", 24),
        PixelFormat("yuvj422p", 16, chroma_shift=(1, 0)),
        PixelFormat("yuvj420p", 12, chroma_shift=(1, 1)),
        PixelFormat("yuva420p", 20, chroma_shift=(1, 1), has_alpha_plane=True),
        PixelFormat("yuva444p", 32),
        PixelFormat("yuv444p10le", 48, component_bytes=2),
        PixelFormat("yuv444p12le", 48, component_bytes=2),
        PixelFormat("yuv444p16le", 48, component_bytes=2),
        PixelFormat("yuv422p10le", 32, component_bytes=2, chroma_shift=(1, 0)),
        PixelFormat("yuv422p12le", 32, component_bytes=2, chroma_shift=(1, 0)),
        PixelFormat("yuv422p16le", 32, component_bytes=2, chroma_shift=(1, 0)),
        PixelFormat("yuv420p10le", 24, component_bytes=2, chroma_shift=(1, 1)),
        PixelFormat("yuv420p12le", 24, component_bytes=2, chroma_shift=(1, 1)),
        PixelFormat("yuv420p16le", 24, component_bytes=2, chroma_shift=(1, 1)),
        PixelFormat("nv12", 12, chroma_shift=(1, 1)),
        PixelFormat("nv21", 12, chroma_shift=(1, 1)),
        PixelFormat("p010le", 24, component_bytes=2, chroma_shift=(1, 1)),
        PixelFormat("p016le", 24, component_bytes=2, chroma_shift=(1, 1)),
        PixelFormat("yuyv422", 16, pixel_group=2),
        PixelFormat("yvyu422", 16, pixel_group=2),
        PixelFormat("uyvy422", 16, pixel_group=2),
    )
}

# Pillow image modes and the ffmpeg format with the same byte layout.
PILLOW_MODE_FORMATS: dict[str, str] = {
    "RGB": "rgb24",
    "RGBA": "rgba",
    "L": "gray",
    "P": "pal8",
    "LA": "ya8",
    "I;16": "gray16le",
    "CMYK": "cmyk",
}


def known_formats() -> list[str]:
    """Names of all formats in the built-in table."""
    return sorted(_KNOWN_FORMATS)


def format_for_pillow_mode(mode: str) -> str:
    """ffmpeg name for a Pillow mode, or the lowercased mode if unmapped."""
    return PILLOW_MODE_FORMATS.get(mode, mode.lower())


def lookup(name: str) -> PixelFormat:
    """Resolve *name* to a PixelFormat.

    Raises
    ------
    UsageError
        If the format is not in the table.
    """
    fmt = _KNOWN_FORMATS.get(name)
    if fmt is None:
        raise UsageError(
            f"Unsupported color format {name!r}. "
            f"Supported formats: {', '.join(known_formats())}"
        )
    return fmt

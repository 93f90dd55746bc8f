"""
Shared fixtures for the audioshop test suite.
"""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from audioshop.config import ResolvedTools
from audioshop.effects import EffectRunner
from audioshop.exceptions import CollaboratorError
from audioshop.pixfmt import lookup
from audioshop.types import EffectChain, FrameBuffer, SampleBuffer


class ArithmeticEffectRunner(EffectRunner):
    """Stand-in for sox that applies arithmetic to the raw samples.

    Effects: ``add K`` and ``scale K`` (modulo the sample range),
    ``trim N`` drops the last N bytes, ``pad N`` appends N zero bytes,
    ``fail`` raises like a tool exiting non-zero.
    """

    name = "arithmetic"

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []

    @staticmethod
    def _transform(data: bytes, bits: int, chain: EffectChain) -> bytes:
        dtype = {8: np.dtype(np.uint8), 16: np.dtype("<u2")}.get(bits)
        for effect in chain.effects:
            arg = int(effect.params[0]) if effect.params else 0
            if effect.name in ("add", "scale"):
                if dtype is None:
                    raise ValueError("arithmetic runner supports 8 and 16 bit only")
                values = np.frombuffer(data, dtype=dtype).astype(np.int64)
                if effect.name == "add":
                    values = values + arg
                else:
                    values = values * arg
                data = (values % (1 << bits)).astype(dtype).tobytes()
            elif effect.name == "trim":
                data = data[:max(0, len(data) - arg)]
            elif effect.name == "pad":
                data = data + bytes(arg)
            elif effect.name == "fail":
                raise CollaboratorError(
                    "sox failed (rc=2)",
                    command=["sox", *chain.argv()],
                    output="sox FAIL: unknown effect",
                    returncode=2,
                )
            else:
                raise ValueError(f"unsupported effect {effect.name}")
        return data

    def apply_samples(self, samples: SampleBuffer, chain, workdir, tag="video"):
        self.calls.append(("samples", chain.argv()))
        return samples.with_data(self._transform(samples.data, samples.bits, chain))

    def apply_audio(self, audio_path, chain, output_path):
        self.calls.append(("audio", chain.argv()))
        output_path.write_bytes(audio_path.read_bytes())
        return output_path


def _has(tool: str) -> bool:
    return shutil.which(tool) is not None


requires_ffmpeg = pytest.mark.skipif(
    not (_has("ffmpeg") and _has("ffprobe")),
    reason="ffmpeg/ffprobe not installed",
)
requires_sox = pytest.mark.skipif(not _has("sox"), reason="sox not installed")


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="audioshop_test_") as d:
        yield Path(d)


@pytest.fixture
def fake_tools() -> ResolvedTools:
    """Tool paths for code paths that never reach a subprocess."""
    return ResolvedTools(ffmpeg=Path("ffmpeg"), ffprobe=Path("ffprobe"), sox=Path("sox"))


@pytest.fixture
def real_tools() -> ResolvedTools:
    from audioshop.config import resolve_all
    return resolve_all()


@pytest.fixture
def runner() -> ArithmeticEffectRunner:
    return ArithmeticEffectRunner()


@pytest.fixture
def rgb24():
    return lookup("rgb24")


@pytest.fixture
def make_frames(rgb24):
    """Factory for deterministic rgb24 FrameBuffers."""
    def _make(n: int = 3, width: int = 2, height: int = 2) -> list[FrameBuffer]:
        size = rgb24.frame_size(width, height)
        return [
            FrameBuffer(
                data=bytes((i * 37 + j * 11) % 256 for j in range(size)),
                width=width,
                height=height,
                pixel_format=rgb24,
                index=i,
            )
            for i in range(n)
        ]
    return _make


@pytest.fixture
def still_png(tmp_dir) -> Path:
    """A 4x3 RGB PNG with distinct pixel values."""
    img = Image.new("RGB", (4, 3))
    img.putdata([(x * 40, y * 60, (x + y) * 20) for y in range(3) for x in range(4)])
    path = tmp_dir / "still.png"
    img.save(path)
    return path


@pytest.fixture
def animated_gif(tmp_dir) -> Path:
    """A 3-frame 4x4 GIF with delays 10/20/30 cs and infinite loop."""
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]
    frames = [Image.new("RGB", (4, 4), c) for c in colors]
    path = tmp_dir / "anim.gif"
    frames[0].save(
        path, format="GIF", save_all=True, append_images=frames[1:],
        duration=[100, 200, 300], loop=0,
    )
    return path


@pytest.fixture
def test_video(tmp_dir) -> Path:
    """A 10-frame 16x16 video with a sine audio track (needs ffmpeg)."""
    path = tmp_dir / "clip.mkv"
    subprocess.run(
        [
            "ffmpeg", "-y", "-v", "error",
            "-f", "lavfi", "-i", "testsrc=size=16x16:rate=10:duration=1",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=1",
            "-c:v", "ffv1", "-c:a", "pcm_s16le",
            str(path),
        ],
        check=True, capture_output=True,
    )
    return path

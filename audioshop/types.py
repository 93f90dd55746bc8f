"""
Core data structures used throughout the pipeline.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from pathlib import Path

from audioshop.pixfmt import PixelFormat


DEFAULT_SAMPLE_RATE = 44100
DEFAULT_DELAY_CS = 10


class MediaKind(enum.Enum):
    """Shape of an input asset, decides which pipeline path runs."""
    STILL_IMAGE = "still"
    ANIMATED_IMAGE = "animated"
    VIDEO = "video"


@dataclass(frozen=True)
class Resolution:
    """Frame dimensions in pixels."""
    width: int
    height: int

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class AnimationMetadata:
    """Per-frame timing of a multi-frame animated image.

    ``delays_cs`` holds one display delay per frame in centiseconds.
    ``loop`` is the loop count (0 = forever); None means the source had
    no loop extension and plays once.
    """
    delays_cs: tuple[int, ...]
    loop: int | None = 0

    @property
    def frame_count(self) -> int:
        return len(self.delays_cs)

    @property
    def mean_delay_cs(self) -> int:
        if not self.delays_cs:
            return DEFAULT_DELAY_CS
        return max(1, round(sum(self.delays_cs) / len(self.delays_cs)))

    def for_frame_count(self, n_frames: int) -> AnimationMetadata:
        """Keep the original delays when *n_frames* matches, else go uniform."""
        if n_frames == self.frame_count:
            return self
        return AnimationMetadata(
            delays_cs=(self.mean_delay_cs,) * n_frames,
            loop=self.loop,
        )


@dataclass(frozen=True)
class MediaDescriptor:
    """Immutable probe result for one input asset."""
    path: Path
    kind: MediaKind
    width: int
    height: int
    pixel_format: str
    frame_count: int | None      # None = container has no reliable count
    frame_rate: float            # 0.0 when unknown
    has_audio: bool = False
    animation: AnimationMetadata | None = None

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)

    @property
    def is_animated(self) -> bool:
        return self.kind is MediaKind.ANIMATED_IMAGE


@dataclass(frozen=True)
class FrameBuffer:
    """Raw pixel bytes of one frame in a given pixel format."""
    data: bytes
    width: int
    height: int
    pixel_format: PixelFormat
    index: int = 0

    def __post_init__(self) -> None:
        expected = self.pixel_format.frame_size(self.width, self.height)
        if len(self.data) != expected:
            raise ValueError(
                f"Frame {self.index}: {len(self.data)} bytes, expected "
                f"{expected} for {self.width}x{self.height} "
                f"{self.pixel_format.name}"
            )

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)


@dataclass(frozen=True)
class SampleBuffer:
    """Mono unsigned PCM samples (little-endian for 16/24 bit).

    ``original_length`` is the unpadded byte length of the pixel data the
    buffer was built from.
    """
    data: bytes
    bits: int
    original_length: int
    sample_rate: int = DEFAULT_SAMPLE_RATE

    @property
    def sample_width(self) -> int:
        return self.bits // 8

    @property
    def sample_count(self) -> int:
        return len(self.data) // self.sample_width

    @property
    def padding(self) -> int:
        return (-self.original_length) % self.sample_width

    def payload(self) -> bytes:
        """Return the pixel bytes, with zero padding stripped if still intact."""
        if len(self.data) == self.original_length + self.padding:
            return self.data[:self.original_length]
        return self.data

    def with_data(self, data: bytes) -> SampleBuffer:
        return replace(self, data=data)


@dataclass(frozen=True)
class Effect:
    """One named effect and its arguments, e.g. ``echo 0.8 0.88 60 0.4``."""
    name: str
    params: tuple[str, ...] = ()

    def argv(self) -> list[str]:
        return [self.name, *self.params]

    def __str__(self) -> str:
        return " ".join(self.argv())


@dataclass(frozen=True)
class EffectChain:
    """Ordered effects; order matters, the chain is not commutative."""
    effects: tuple[Effect, ...] = ()

    def argv(self) -> list[str]:
        tokens: list[str] = []
        for effect in self.effects:
            tokens.extend(effect.argv())
        return tokens

    def __len__(self) -> int:
        return len(self.effects)

    def __str__(self) -> str:
        return " ".join(self.argv())


@dataclass(frozen=True)
class PipelineConfig:
    """Resolved configuration for one run."""
    bits: int = 8
    pixel_format: str = "rgb24"
    resolution: Resolution | None = None   # None = source resolution
    frame_rate: float | None = None        # None = source rate, or 10
    blend: float | None = None             # None = no blending
    effects: EffectChain = field(default_factory=EffectChain)
    workers: int = 1
    sample_rate: int = DEFAULT_SAMPLE_RATE
    show_progress: bool = True

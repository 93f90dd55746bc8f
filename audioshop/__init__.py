"""
audioshop -- datamosh images and video with audio effects.

Reinterprets raw pixel bytes as PCM audio, runs them through an audio
effect chain (sox), and reinterprets the result as pixels again.
"""

__version__ = "0.1.0"

from audioshop.types import (
    AnimationMetadata,
    Effect,
    EffectChain,
    FrameBuffer,
    MediaDescriptor,
    MediaKind,
    PipelineConfig,
    Resolution,
    SampleBuffer,
)

__all__ = [
    "AnimationMetadata",
    "Effect",
    "EffectChain",
    "FrameBuffer",
    "MediaDescriptor",
    "MediaKind",
    "PipelineConfig",
    "Resolution",
    "SampleBuffer",
]

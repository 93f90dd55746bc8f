"""
Pipeline orchestration.

State machine
-------------
    INIT -> PROBING -> EXTRACTING -> ENCODING -> EFFECTING -> DECODING
         -> REASSEMBLING -> MUXING -> DONE

FAILED is reachable from every state.  Each transition first checks the
cancel token, so an interrupt takes effect between stages only.

After PROBING the run dispatches on MediaKind to one MediaPath:

    StillImagePath     whole-stream codec path, one output frame
    VideoPath          whole-stream codec path plus the real audio track
    AnimatedImagePath  every frame goes through the effect chain on its
                       own, optionally in parallel; delays and loop count
                       are carried to the output

The output is assembled inside the working directory and moved to the
requested path only after every stage succeeded.
"""

from __future__ import annotations

import abc
import enum
import logging
import shutil
import sys
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from tqdm import tqdm

from audioshop.assembly import OutputAssembler
from audioshop.codec import frames_to_samples, samples_to_frames
from audioshop.config import ResolvedTools, working_root
from audioshop.effects import EffectRunner, SoxEffectRunner, run_effect_chain
from audioshop.exceptions import ReconstructionError, ResourceError
from audioshop.extract import extract_audio, extract_frames
from audioshop.pixfmt import PixelFormat, lookup
from audioshop.probe import probe_media
from audioshop.reassemble import blend_frame, blend_frames, decode_frames
from audioshop.types import (
    AnimationMetadata,
    FrameBuffer,
    MediaDescriptor,
    MediaKind,
    PipelineConfig,
    Resolution,
    SampleBuffer,
)
from audioshop.workspace import CancelToken, Workspace

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RATE = 10.0


class Stage(enum.Enum):
    INIT = "init"
    PROBING = "probing"
    EXTRACTING = "extracting"
    ENCODING = "encoding"
    EFFECTING = "effecting"
    DECODING = "decoding"
    REASSEMBLING = "reassembling"
    MUXING = "muxing output"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunContext:
    """Everything a MediaPath needs, fixed once probing is done."""
    config: PipelineConfig
    tools: ResolvedTools
    runner: EffectRunner
    descriptor: MediaDescriptor
    pixel_format: PixelFormat
    resolution: Resolution
    frame_rate: float
    workdir: Path


@dataclass
class PipelineResult:
    output_path: Path
    descriptor: MediaDescriptor
    frame_count: int
    frame_rate: float
    audio_processed: bool = False
    stages: list[Stage] = field(default_factory=list)


@dataclass
class PathOutput:
    frames: list[FrameBuffer]
    audio_processed: bool = False


# ---------------------------------------------------------------------------
# Media paths
# ---------------------------------------------------------------------------

class MediaPath(abc.ABC):
    """One way of taking an asset of a given kind through the stages."""

    kind: MediaKind

    def __init__(self, pipeline: Pipeline, ctx: RunContext) -> None:
        self.pipeline = pipeline
        self.ctx = ctx
        self.assembler = OutputAssembler(ctx.tools, ctx.workdir)

    def extract(self) -> list[FrameBuffer]:
        ctx = self.ctx
        return extract_frames(
            ctx.descriptor, ctx.pixel_format, ctx.resolution, ctx.tools, ctx.workdir,
        )

    @abc.abstractmethod
    def run(self, output: Path) -> PathOutput:
        """Run EXTRACTING through MUXING, writing *output*."""


class StreamPath(MediaPath):
    """All frames become one sample stream, processed in a single call."""

    def extract_audio(self) -> Path | None:
        return None

    def select_frames(self, frames: list[FrameBuffer]) -> list[FrameBuffer]:
        return frames

    def run(self, output: Path) -> PathOutput:
        ctx, advance = self.ctx, self.pipeline.advance

        advance(Stage.EXTRACTING)
        originals = self.extract()
        audio_in = self.extract_audio()

        advance(Stage.ENCODING)
        samples = frames_to_samples(originals, ctx.config.bits, ctx.config.sample_rate)

        advance(Stage.EFFECTING)
        effected = run_effect_chain(
            samples, ctx.config.effects, ctx.runner, ctx.workdir, audio_in,
        )

        advance(Stage.DECODING)
        frames = self.select_frames(
            decode_frames(effected.samples, ctx.pixel_format, ctx.resolution)
        )
        if len(frames) != len(originals):
            logger.info("Frame count changed: %d -> %d", len(originals), len(frames))

        advance(Stage.REASSEMBLING)
        frames = blend_frames(frames, originals, ctx.config.blend)

        advance(Stage.MUXING)
        self.assembler.assemble(
            self.kind, frames, output, ctx.frame_rate,
            audio_path=effected.audio_path,
        )
        return PathOutput(frames=frames, audio_processed=effected.audio_path is not None)


class StillImagePath(StreamPath):
    kind = MediaKind.STILL_IMAGE

    def select_frames(self, frames: list[FrameBuffer]) -> list[FrameBuffer]:
        if len(frames) > 1:
            logger.info("Still image output keeps 1 of %d frame(s)", len(frames))
        return frames[:1]


class VideoPath(StreamPath):
    kind = MediaKind.VIDEO

    def extract_audio(self) -> Path | None:
        if not self.ctx.descriptor.has_audio:
            return None
        return extract_audio(self.ctx.descriptor, self.ctx.tools, self.ctx.workdir)


class AnimatedImagePath(MediaPath):
    """Each frame is its own sample stream; frames never share a buffer."""

    kind = MediaKind.ANIMATED_IMAGE

    def _apply_one(self, index: int, samples: SampleBuffer) -> SampleBuffer:
        ctx = self.ctx
        return ctx.runner.apply_samples(
            samples, ctx.config.effects, ctx.workdir, tag=f"frame_{index:05d}",
        )

    def apply_all(self, buffers: Sequence[SampleBuffer]) -> list[SampleBuffer]:
        """Run the effect chain over every buffer, keeping frame order."""
        results: list[SampleBuffer | None] = [None] * len(buffers)
        workers = min(self.ctx.config.workers, len(buffers))
        with tqdm(
            total=len(buffers), desc="Processing frames", unit="frame",
            file=sys.stderr, dynamic_ncols=True,
            disable=not self.ctx.config.show_progress,
        ) as bar:
            if workers <= 1:
                for i, samples in enumerate(buffers):
                    results[i] = self._apply_one(i, samples)
                    bar.update(1)
            else:
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    futures: dict[Future[SampleBuffer], int] = {
                        pool.submit(self._apply_one, i, samples): i
                        for i, samples in enumerate(buffers)
                    }
                    try:
                        for fut in as_completed(futures):
                            results[futures[fut]] = fut.result()
                            bar.update(1)
                    except BaseException:
                        for pending in futures:
                            pending.cancel()
                        raise
        return results

    def output_animation(self, n_frames: int) -> AnimationMetadata | None:
        rate = self.ctx.config.frame_rate
        animation = self.ctx.descriptor.animation
        if rate is None:
            return animation
        loop = animation.loop if animation is not None else 0
        return AnimationMetadata(delays_cs=(max(1, round(100 / rate)),) * n_frames, loop=loop)

    def run(self, output: Path) -> PathOutput:
        ctx, advance = self.ctx, self.pipeline.advance

        advance(Stage.EXTRACTING)
        originals = self.extract()

        advance(Stage.ENCODING)
        buffers = [
            frames_to_samples([frame], ctx.config.bits, ctx.config.sample_rate)
            for frame in originals
        ]

        advance(Stage.EFFECTING)
        processed = self.apply_all(buffers)

        advance(Stage.DECODING)
        pairs: list[tuple[FrameBuffer, FrameBuffer]] = []
        for original, samples in zip(originals, processed):
            decoded = samples_to_frames(samples, ctx.pixel_format, ctx.resolution)
            if not decoded:
                logger.warning("Frame %d: effect output too short, dropped", original.index)
                continue
            pairs.append((original, decoded[0]))
        if not pairs:
            raise ReconstructionError("Every frame came back shorter than one frame.")

        advance(Stage.REASSEMBLING)
        if ctx.config.blend is None:
            frames = [rec for _, rec in pairs]
        else:
            frames = [blend_frame(orig, rec, ctx.config.blend) for orig, rec in pairs]

        advance(Stage.MUXING)
        self.assembler.assemble(
            self.kind, frames, output, ctx.frame_rate,
            animation=self.output_animation(len(originals)),
        )
        return PathOutput(frames=frames)


MEDIA_PATHS: dict[MediaKind, type[MediaPath]] = {
    MediaKind.STILL_IMAGE: StillImagePath,
    MediaKind.ANIMATED_IMAGE: AnimatedImagePath,
    MediaKind.VIDEO: VideoPath,
}


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class Pipeline:
    """Runs one input through the whole pipeline.

    Usage::

        config = build_pipeline_config(effects=parse_effects(["vol", "10"]))
        result = Pipeline(config, resolve_all()).run("in.mp4", "out.mp4")
    """

    def __init__(
        self,
        config: PipelineConfig,
        tools: ResolvedTools,
        runner: EffectRunner | None = None,
        workspace_root: Path | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.config = config
        self.tools = tools
        self.runner = runner or SoxEffectRunner(tools.sox)
        self.workspace_root = workspace_root or working_root()
        self.cancel = cancel or CancelToken()
        self.stage = Stage.INIT
        self.history: list[Stage] = [Stage.INIT]

    def advance(self, stage: Stage) -> None:
        self.cancel.check(stage.value)
        self.stage = stage
        self.history.append(stage)
        logger.info("Stage: %s", stage.value)

    def run(self, input_path: str | Path, output_path: str | Path) -> PipelineResult:
        output_path = Path(output_path)
        self.stage = Stage.INIT
        self.history = [Stage.INIT]
        try:
            with Workspace(self.workspace_root) as workspace:
                self.advance(Stage.PROBING)
                descriptor = probe_media(input_path, self.tools)
                ctx = RunContext(
                    config=self.config,
                    tools=self.tools,
                    runner=self.runner,
                    descriptor=descriptor,
                    pixel_format=lookup(self.config.pixel_format),
                    resolution=self.config.resolution or descriptor.resolution,
                    frame_rate=(
                        self.config.frame_rate
                        or descriptor.frame_rate
                        or DEFAULT_FRAME_RATE
                    ),
                    workdir=workspace.path,
                )
                media_path = MEDIA_PATHS[descriptor.kind](self, ctx)
                logger.info("Processing as %s", descriptor.kind.value)

                staged = workspace.path / f"output{output_path.suffix}"
                produced = media_path.run(staged)
                self._publish(staged, output_path)
                self.advance(Stage.DONE)
        except BaseException:
            self.stage = Stage.FAILED
            self.history.append(Stage.FAILED)
            raise

        return PipelineResult(
            output_path=output_path,
            descriptor=descriptor,
            frame_count=len(produced.frames),
            frame_rate=ctx.frame_rate,
            audio_processed=produced.audio_processed,
            stages=list(self.history),
        )

    @staticmethod
    def _publish(staged: Path, output_path: Path) -> None:
        try:
            shutil.move(str(staged), str(output_path))
        except OSError as exc:
            raise ResourceError(f"Failed to write {output_path}: {exc}") from exc

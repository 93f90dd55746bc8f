"""
Effect chain parsing and execution.

Effects are opaque to audioshop: a chain is an ordered list of effect
names with their arguments, handed verbatim to an EffectRunner.  The
default runner is sox.  The same EffectChain object is used for the
pixel-derived stream and for the genuine audio track, so both see
textually identical parameters.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from audioshop.codec import read_samples, write_samples
from audioshop.exceptions import UsageError
from audioshop.tools import Invocation, run
from audioshop.types import Effect, EffectChain, SampleBuffer

logger = logging.getLogger(__name__)


# Effect names understood by sox 14.4; used to tell effect names from
# effect arguments on the command line.
SOX_EFFECTS = frozenset({
    "allpass", "band", "bandpass", "bandreject", "bass", "bend", "biquad",
    "chorus", "channels", "compand", "contrast", "dcshift", "deemph",
    "delay", "dither", "divide", "downsample", "earwax", "echo", "echos",
    "equalizer", "fade", "fir", "firfit", "flanger", "gain", "highpass",
    "hilbert", "input", "ladspa", "loudness", "lowpass", "mcompand",
    "noiseprof", "noisered", "norm", "oops", "output", "overdrive", "pad",
    "phaser", "pitch", "rate", "remix", "repeat", "reverb", "reverse",
    "riaa", "silence", "sinc", "spectrogram", "speed", "splice", "stat",
    "stats", "stretch", "swap", "synth", "tempo", "treble", "tremolo",
    "trim", "upsample", "vad", "vol",
})


def parse_effects(tokens: Sequence[str]) -> EffectChain:
    """Group command-line *tokens* into an EffectChain.

    A token that names a known effect starts a new effect; every other
    token is an argument of the effect before it.  The first token is
    always taken as an effect name.
    """
    tokens = list(tokens)
    if not tokens:
        raise UsageError("No effect specified.")
    effects: list[Effect] = []
    name, params = tokens[0], []
    for token in tokens[1:]:
        if token in SOX_EFFECTS:
            effects.append(Effect(name, tuple(params)))
            name, params = token, []
        else:
            params.append(token)
    effects.append(Effect(name, tuple(params)))
    return EffectChain(tuple(effects))


class EffectRunner(abc.ABC):
    """Interface to the audio-effect collaborator."""

    name: str = "abstract"

    @abc.abstractmethod
    def apply_samples(
        self,
        samples: SampleBuffer,
        chain: EffectChain,
        workdir: Path,
        tag: str = "video",
    ) -> SampleBuffer:
        """Run *chain* over raw *samples*, returning the processed buffer."""

    @abc.abstractmethod
    def apply_audio(self, audio_path: Path, chain: EffectChain, output_path: Path) -> Path:
        """Run *chain* over a real audio file, writing *output_path*."""


class SoxEffectRunner(EffectRunner):
    """Runs effect chains through the ``sox`` command-line tool.

    Raw pixel samples are described to sox explicitly on both sides:
    headerless, unsigned integer, mono, little-endian.
    """

    name = "sox"

    def __init__(self, sox: str | Path = "sox") -> None:
        self.sox = str(sox)

    @staticmethod
    def raw_format(bits: int, sample_rate: int) -> list[str]:
        return [
            "-t", "raw",
            "-e", "unsigned-integer",
            "-b", str(bits),
            "-c", "1",
            "-r", str(sample_rate),
            "-L",
        ]

    def samples_invocation(
        self,
        samples: SampleBuffer,
        chain: EffectChain,
        input_path: Path,
        output_path: Path,
    ) -> Invocation:
        fmt = self.raw_format(samples.bits, samples.sample_rate)
        return (
            Invocation(self.sox)
            .add(*fmt, input_path)
            .add(*fmt, output_path)
            .add(*chain.argv())
        )

    def apply_samples(self, samples, chain, workdir, tag="video"):
        input_path = write_samples(samples, workdir / f"{tag}_in.u{samples.bits}")
        output_path = workdir / f"{tag}_out.u{samples.bits}"
        run(self.samples_invocation(samples, chain, input_path, output_path))
        return read_samples(output_path, samples)

    def apply_audio(self, audio_path, chain, output_path):
        run(Invocation(self.sox).add(audio_path, output_path, *chain.argv()))
        return output_path


@dataclass
class EffectResult:
    """Output of one effect-chain stage."""
    samples: SampleBuffer
    audio_path: Path | None = None


def run_effect_chain(
    samples: SampleBuffer,
    chain: EffectChain,
    runner: EffectRunner,
    workdir: Path,
    audio_path: Path | None = None,
) -> EffectResult:
    """Apply *chain* to the pixel-derived stream and, if given, the audio track.

    The two invocations are independent; a failure in either aborts.
    """
    logger.info("Applying effects to %d samples: %s", samples.sample_count, chain)
    processed = runner.apply_samples(samples, chain, workdir)

    audio_out = None
    if audio_path is not None:
        logger.info("Applying effects to audio track: %s", chain)
        audio_out = runner.apply_audio(
            audio_path, chain, workdir / f"audio_out{audio_path.suffix}"
        )
    return EffectResult(samples=processed, audio_path=audio_out)

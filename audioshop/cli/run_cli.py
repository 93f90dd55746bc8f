"""
CLI command that runs the datamosh pipeline.

Usage:
    audioshop run input.jpg output.png vol 11
    audioshop run input.mp4 output.mp4 echo 0.8 0.88 60 0.4 --res=1280x720

Options may appear anywhere; every other token is the input path, the
output path, or part of the effect chain.  Effect arguments are passed
through untouched, so ``hilbert -n 5001`` works as written.
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import Sequence

from ..catalog import SOX_EFFECTS_URL, Catalog, format_effects, format_examples, load_catalog
from ..config import (
    build_pipeline_config,
    parse_bits,
    parse_blend,
    parse_frame_rate,
    parse_resolution,
    parse_workers,
    resolve_all,
)
from ..effects import parse_effects
from ..exceptions import AudioShopError, CollaboratorError, MissingDependencyError, UsageError
from ..pipeline import Pipeline
from ..types import PipelineConfig
from ..workspace import CancelToken

logger = logging.getLogger(__name__)

_VALUE_OPTIONS = {"--bits", "--color-format", "--res", "--framerate", "--blend", "--workers"}
_FLAG_OPTIONS = {"--effects", "--help", "--verbose", "--quiet"}


class UsageParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting with 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def split_argv(tokens: Sequence[str]) -> tuple[list[str], list[str]]:
    """Separate known ``--options`` from positional tokens.

    ``--opt=value`` and ``--opt value`` are both accepted.  Everything
    after a bare ``--`` is positional.
    """
    options: list[str] = []
    positionals: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            positionals.extend(tokens[i + 1:])
            break
        name = token.split("=", 1)[0]
        if name in _VALUE_OPTIONS:
            options.append(token)
            if "=" not in token and i + 1 < len(tokens):
                options.append(tokens[i + 1])
                i += 1
        elif token in _FLAG_OPTIONS:
            options.append(token)
        else:
            positionals.append(token)
        i += 1
    return options, positionals


def build_run_parser() -> UsageParser:
    p = UsageParser(prog="audioshop run", add_help=False)
    p.add_argument("--bits", type=parse_bits, default=None)
    p.add_argument("--color-format", dest="pixel_format", default=None)
    p.add_argument("--res", type=parse_resolution, default=None)
    p.add_argument("--framerate", type=parse_frame_rate, default=None)
    p.add_argument("--blend", type=parse_blend, default=None)
    p.add_argument("--workers", type=parse_workers, default=None)
    p.add_argument("--effects", action="store_true")
    p.add_argument("--help", action="store_true")
    p.add_argument("--verbose", action="count", default=0)
    p.add_argument("--quiet", action="store_true")
    return p


def help_text(catalog: Catalog) -> str:
    return "\n".join([
        "Usage: audioshop run input_file output_file [effects] [options]",
        "",
        "Interprets image or video data as sound, applies audio effects,",
        "and converts it back to an image or video.",
        "",
        "Options:",
        "  --bits=X          Audio sample size in bits (8, 16, 24). Default: 8",
        "  --blend=X         Blend the distorted output with the original (0..1).",
        "  --color-format=X  Pixel format (rgb24, yuv444p, yuyv422). Default: rgb24",
        "                    An unsupported name prints the supported list.",
        "  --effects         Display example effects.",
        "  --framerate=X     Output frame rate. Default: source rate, or 10.",
        "  --help            Display this help information.",
        "  --quiet           Hide the per-frame progress bar.",
        "  --res=WxH         Output resolution (e.g. 1920x1080). Default: source.",
        "  --verbose         Log progress; repeat for debug output.",
        "  --workers=N       Parallel frames for animated images. Default: 1",
        "",
        format_effects(catalog),
        "",
        format_examples(catalog),
        "",
        f"A full list of effects can be found here: {SOX_EFFECTS_URL}",
    ])


def configure_logging(verbosity: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def resolve_run_args(
    args: argparse.Namespace,
    positionals: Sequence[str],
) -> tuple[Path, Path, PipelineConfig]:
    """Validate positionals and build the run's PipelineConfig."""
    if len(positionals) < 1:
        raise UsageError("Input file not provided!")
    input_path = Path(positionals[0])
    if not input_path.is_file():
        raise UsageError(f"Input file '{input_path}' not found!")
    if len(positionals) < 2:
        raise UsageError("Output file not provided!")
    output_path = Path(positionals[1])
    if not output_path.parent.is_dir():
        raise UsageError(f"Output directory '{output_path.parent}' does not exist!")
    if len(positionals) < 3:
        raise UsageError("No effect specified.")

    config = build_pipeline_config(
        bits=args.bits,
        pixel_format=args.pixel_format,
        resolution=args.res,
        frame_rate=args.framerate,
        blend=args.blend,
        workers=args.workers,
        effects=parse_effects(positionals[2:]),
        show_progress=not args.quiet,
    )
    return input_path, output_path, config


def report_error(exc: AudioShopError) -> None:
    """Print *exc* to stderr, with the full tool output for tool failures."""
    if isinstance(exc, CollaboratorError):
        print("\n----- ERROR -----", file=sys.stderr)
        print(f"\n{exc}", file=sys.stderr)
        if exc.command:
            print(f"\nCommand: {shlex.join(exc.command)}", file=sys.stderr)
        print(f"\nOutput:\n{exc.output}", file=sys.stderr)
        print("\n----- ERROR -----", file=sys.stderr)
    else:
        print(f"Error: {exc}", file=sys.stderr)


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def run_command(tokens: Sequence[str]) -> int:
    """Entry point for ``audioshop run``; returns the exit status."""
    catalog = load_catalog()
    options, positionals = split_argv(tokens)
    try:
        args = build_run_parser().parse_args(options)
    except UsageError as exc:
        print(f"Error: {exc}\n", file=sys.stderr)
        print(help_text(catalog))
        return 1

    if args.effects:
        print(format_effects(catalog))
        return 0
    if args.help:
        print(help_text(catalog))
        return 1

    configure_logging(args.verbose)

    try:
        tools = resolve_all()
    except MissingDependencyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        input_path, output_path, config = resolve_run_args(args, positionals)
    except UsageError as exc:
        print(f"Error: {exc}\n", file=sys.stderr)
        print(help_text(catalog))
        return 1

    logger.info(
        "bits=%d format=%s res=%s framerate=%s blend=%s effects=%s",
        config.bits, config.pixel_format, config.resolution or "source",
        config.frame_rate or "source", config.blend, config.effects,
    )

    cancel = CancelToken()
    pipeline = Pipeline(config, tools, cancel=cancel)
    try:
        with cancel.installed():
            result = pipeline.run(input_path, output_path)
    except AudioShopError as exc:
        report_error(exc)
        return 1

    size = _format_size(result.output_path.stat().st_size)
    audio = " (+ processed audio)" if result.audio_processed else ""
    print(f"Done! {result.frame_count} frame(s) -> {result.output_path} ({size}){audio}")
    return 0

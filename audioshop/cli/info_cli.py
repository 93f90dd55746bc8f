"""
Informational CLI commands.

Usage:
    audioshop effects [--describe]
    audioshop doctor
"""

from __future__ import annotations

import argparse

from ..catalog import SOX_EFFECTS_URL, format_effects, load_catalog
from ..detection import format_diagnostics, missing_tools, probe_system


def cmd_effects(args: argparse.Namespace) -> int:
    catalog = load_catalog()
    print(format_effects(catalog, describe=args.describe))
    print(f"\nA full list of effects can be found here: {SOX_EFFECTS_URL}")
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    probes = probe_system()
    print(format_diagnostics(probes))
    return 1 if missing_tools(probes) else 0


def build_effects_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "effects",
        help="List example effect invocations",
        description="Print the catalog of example effect invocations.",
    )
    p.add_argument(
        "--describe", action="store_true",
        help="Show what each effect tends to do to an image",
    )
    p.set_defaults(func=cmd_effects)


def build_doctor_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "doctor",
        help="Check that ffmpeg, ffprobe and sox are installed",
        description="Report external tools and Python libraries found on this system.",
    )
    p.set_defaults(func=cmd_doctor)

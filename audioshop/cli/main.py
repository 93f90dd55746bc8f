"""Main CLI entry point for audioshop."""

from __future__ import annotations

import sys

from .. import __version__
from ..exceptions import UsageError
from .info_cli import build_doctor_parser, build_effects_parser
from .run_cli import UsageParser, run_command


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # ``run`` takes free-form effect arguments that argparse cannot parse.
    if argv and argv[0] == "run":
        return run_command(argv[1:])

    parser = UsageParser(
        prog="audioshop",
        description="Datamosh images and video by running their pixels through audio effects",
        add_help=False,
    )
    parser.add_argument("--help", action="store_true", help="Show this help and exit")
    parser.add_argument("--version", action="version", version=f"audioshop {__version__}")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "run", add_help=False,
        help="Process an image or video (see 'audioshop run --help')",
    )
    build_effects_parser(subparsers)
    build_doctor_parser(subparsers)

    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        print(f"Error: {exc}\n", file=sys.stderr)
        parser.print_help()
        return 1
    if args.command is None or args.help:
        parser.print_help()
        return 1
    return args.func(args)


def cli_entry() -> None:
    sys.exit(main())

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from lesswatch import __version__
from lesswatch.batch import run_batch
from lesswatch.compiler import compile_file
from lesswatch.core.channel import NotificationChannel
from lesswatch.core.options import DEFAULT_LESSC, Options, build_options
from lesswatch.core.paths import resolve_positionals
from lesswatch.display import Reporter
from lesswatch.watcher import start_watching


logger = logging.getLogger("lesswatch")


def _die(msg: str) -> None:
    print(msg, file=sys.stderr)
    sys.exit(1)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def resolve_options(args: argparse.Namespace) -> Options:
    options = Options(output_target=args.output)
    options = resolve_positionals(options, args.input, args.dest)
    return build_options(args, options)


async def _compile_one(options: Options, channel: NotificationChannel) -> int:
    result = await compile_file(options.source, options, channel)
    if result.ok:
        channel.warning(f"Wrote {result.destination}")
    return 0


def run(options: Options, channel: NotificationChannel) -> int:
    """Pick a mode and run it. Returns the process exit status."""
    if options.watch:
        try:
            asyncio.run(start_watching(options, channel))
        except KeyboardInterrupt:
            print("\nStopping watcher...", file=sys.stderr)
        return 0
    if options.source_root:
        return asyncio.run(run_batch(options, channel))
    return asyncio.run(_compile_one(options, channel))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lesswatch",
        description="Compile LESS files to CSS, once or whenever they change.",
    )
    parser.add_argument("input", help="a .less file or a directory of .less files")
    parser.add_argument("dest", nargs="?", help="output file or directory")
    parser.add_argument("-w", "--watch", action="store_true", help="recompile on change")
    parser.add_argument(
        "--include-path",
        action="append",
        default=[],
        metavar="PATH",
        help=f"extra import directory (repeatable, or {os.pathsep}-separated)",
    )
    parser.add_argument("--skip-source-map", action="store_true", help="do not write .css.map files")
    parser.add_argument("-js", "--js", action="store_true", help="enable inline JavaScript in LESS")
    parser.add_argument(
        "-o",
        "--output",
        nargs="?",
        const=".",
        default=None,
        metavar="DIR",
        help="write <name>.css into DIR (beside the source when DIR is omitted)",
    )
    parser.add_argument("--bell", action="store_true", help="ring the terminal bell on errors")
    parser.add_argument("--lessc", default=DEFAULT_LESSC, metavar="PATH", help="lessc executable")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.dest and os.path.abspath(args.dest) == os.path.abspath(args.input):
        _die("input and output paths must differ")

    options = resolve_options(args)
    logger.debug("Options: %s", options)

    channel = NotificationChannel()
    Reporter(options).attach(channel)
    sys.exit(run(options, channel))


if __name__ == "__main__":
    main()

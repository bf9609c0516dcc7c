# -*- coding: utf-8 -*-
"""
main.py - Scan a music directory and fix mis-encoded ID3 text frames.

Walks the directory for .mp3 files and repairs, one file at a time and each
in its own process, text frames that claim Latin-1 but really hold
Shift-JIS, EUC-JP, GB18030, UTF-8 or UTF-16 bytes. Repaired frames are
rewritten as UTF-8.

Usage:
    python main.py <dir> [options]

Examples:
    python main.py "C:/Music"
    python main.py ~/Music --dry-run -v
"""

from __future__ import annotations

import argparse
import functools
import logging
import os
import sys

import config
from dispatcher import Dispatcher, Outcome, SpawnError, walk_mp3_files
from file_fixer import fix_file
from gui_utils import emit, emit_progress

# Force UTF-8 stdout/stderr on Windows (CJK titles in log lines)
if sys.platform == "win32":
    os.environ["PYTHONIOENCODING"] = "utf-8"
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8")

logger = logging.getLogger(__name__)

_USAGE = (
    "Usage:\n"
    "{prog} dir\n"
    "  scan and fix id3tags to utf-8 encoding in dir\n"
)


class _ArgumentParser(argparse.ArgumentParser):
    """Print the short usage to stdout and exit 1 on bad arguments."""

    def error(self, message: str) -> None:
        print(f"{self.prog}: {message}")
        print(_USAGE.format(prog=self.prog), end="")
        sys.exit(1)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = _ArgumentParser(
        prog="mp3tagfix",
        description="Scan and fix ID3 tags to UTF-8 encoding in a directory.",
        epilog="Defaults can also be set with MP3TAGFIX_* env vars or a .env file.",
    )
    parser.add_argument("dir", help="Root directory to scan for .mp3 files")
    parser.add_argument(
        "-n", "--dry-run", action="store_true", default=config.DRY_RUN,
        help="Report what would be repaired without writing any file",
    )
    parser.add_argument(
        "--timeout", type=float, default=config.WORKER_TIMEOUT,
        help="Seconds to allow per file before killing its worker (default: no limit)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log per-field detail",
    )
    parser.add_argument(
        "--gui", action="store_true",
        help="Output JSON lines for a GUI front end (internal use)",
    )
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)


def repair_worker(path: str, dry_run: bool = False, gui: bool = False) -> None:
    """Per-file job run inside the worker process."""
    report = fix_file(path, dry_run=dry_run)
    if report is not None:
        emit(gui, {"type": "file", **report.as_dict()})


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    gui = args.gui
    configure_logging(args.verbose)

    if not os.path.isdir(args.dir):
        msg = f"Not a directory: {args.dir}"
        emit(gui, {"type": "error", "text": msg})
        logger.error(msg)
        sys.exit(1)

    paths = list(walk_mp3_files(args.dir))
    emit(gui, {"type": "total", "count": len(paths)})

    dispatcher = Dispatcher(
        functools.partial(repair_worker, dry_run=args.dry_run, gui=gui),
        timeout=args.timeout,
    )
    counts = {outcome: 0 for outcome in Outcome}
    try:
        for i, result in enumerate(dispatcher.dispatch(paths), 1):
            counts[result.outcome] += 1
            emit_progress(gui, result, i, len(paths))
    except SpawnError as e:
        emit(gui, {"type": "error", "text": str(e)})
        logger.error("%s", e)
        sys.exit(1)

    # Summary
    emit(gui, {
        "type": "summary",
        "total": len(paths),
        "completed": counts[Outcome.COMPLETED],
        "crashed": counts[Outcome.ABNORMAL_TERMINATION],
        "timedOut": counts[Outcome.TIMED_OUT],
    })
    if not gui:
        print(f"\n{'='*50}")
        print(f"  Files scanned : {len(paths)}")
        print(f"  Completed     : {counts[Outcome.COMPLETED]}")
        print(f"  Crashed       : {counts[Outcome.ABNORMAL_TERMINATION]}")
        print(f"  Timed out     : {counts[Outcome.TIMED_OUT]}")
        print(f"{'='*50}")


if __name__ == "__main__":
    main()

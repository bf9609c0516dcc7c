# -*- coding: utf-8 -*-
"""
gui_utils.py - JSON-lines output for driving a GUI front end.

With --gui, every stage of a run reports to stdout as one JSON object per
line (total, per-file progress and reports, summary, errors). Logs keep
going to stderr, so the two never interleave on one stream.
"""

from __future__ import annotations

import json

from dispatcher import FileResult


def emit(gui_mode: bool, msg: dict) -> None:
    """Send a JSON message to stdout.

    When gui_mode is False, this is a no-op so callers don't need
    to guard every call.
    """
    if gui_mode:
        print(json.dumps(msg, ensure_ascii=False), flush=True)


def emit_progress(gui_mode: bool, result: FileResult, current: int, total: int) -> None:
    """Report how the worker for one file ended."""
    msg = {
        "type": "progress",
        "path": result.path,
        "outcome": result.outcome.value,
        "current": current,
        "total": total,
    }
    if result.exit_code is not None:
        msg["exitCode"] = result.exit_code
    if result.signum is not None:
        msg["signal"] = result.signal_name
    emit(gui_mode, msg)

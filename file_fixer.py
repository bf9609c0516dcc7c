# -*- coding: utf-8 -*-
"""
file_fixer.py - Repair the text frames of a single MP3 file.

Opens the file's ID3 tag, runs the field repairer over every Latin-1
text frame and saves the tag if anything changed. A charset that wins on
one frame is tried first on the following frames of the same file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mutagen.id3 import Encoding

from field_repair import repair_frame
from tag_store import TagStore

logger = logging.getLogger(__name__)


@dataclass
class FileReport:
    path: str
    frames_seen: int = 0
    frames_repaired: int = 0
    frames_unresolved: int = 0
    frames_skipped: int = 0
    saved: bool = False

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "seen": self.frames_seen,
            "repaired": self.frames_repaired,
            "unresolved": self.frames_unresolved,
            "skipped": self.frames_skipped,
            "saved": self.saved,
        }


def fix_file(path: str, dry_run: bool = False, store: TagStore | None = None) -> FileReport | None:
    """Repair mislabelled text frames in one file.

    Args:
        path: MP3 file to repair.
        dry_run: Report what would change without writing the file.
        store: Tag store to use, mostly for tests.

    Returns:
        A report of what was done, or None if the file has no ID3 tag.
    """
    store = store or TagStore()
    handle = store.open(path)
    if handle is None:
        return None

    report = FileReport(path)
    try:
        logger.info("%s tags version %s", path, handle.version)
        hint = None
        for frame in store.enumerate_frames(handle):
            if not frame.frame_id.startswith("T"):
                continue
            report.frames_seen += 1
            logger.debug("  frame %s; fields: %s", frame.frame_id, ", ".join(frame.fields) or "-")

            if frame.encoded:
                report.frames_skipped += 1
                continue
            if frame.encoding is None:
                logger.warning("  %s: ERROR: expected first field encoding", frame.frame_id)
                report.frames_skipped += 1
                continue
            if frame.encoding != Encoding.LATIN1:
                logger.info("  %s: text encoding not latin-1, leaving alone", frame.frame_id)
                report.frames_skipped += 1
                continue
            if not frame.fields:
                # Timestamps and similar frames hold no strings.
                logger.debug("  %s: no string fields, skipping", frame.frame_id)
                report.frames_skipped += 1
                continue

            result = repair_frame(frame, hint)
            hint = result.hint
            if result.repaired:
                report.frames_repaired += 1
            if result.unresolved:
                report.frames_unresolved += 1
                logger.warning("  %s: left unresolved", frame.frame_id)

        if report.frames_repaired and not dry_run:
            report.saved = store.persist(handle)
    finally:
        store.close(handle)

    logger.info(
        "%s: %d repaired, %d unresolved%s",
        path, report.frames_repaired, report.frames_unresolved,
        " (dry run)" if dry_run and report.frames_repaired else "",
    )
    return report

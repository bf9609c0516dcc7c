# -*- coding: utf-8 -*-
"""
dispatcher.py - Walk a music tree and repair each MP3 in its own process.

A malformed tag can crash the code parsing it. Every file is therefore
processed in a child process; the dispatcher waits for it, records how it
ended and moves on, so one bad file cannot stop a batch of thousands.
Files are processed strictly one at a time.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import signal
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator, Iterable

import config

logger = logging.getLogger(__name__)


class Outcome(Enum):
    COMPLETED = "completed"
    ABNORMAL_TERMINATION = "abnormal_termination"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class FileResult:
    path: str
    outcome: Outcome
    exit_code: int | None = None
    signum: int | None = None

    @property
    def signal_name(self) -> str:
        if self.signum is None:
            return ""
        try:
            return signal.Signals(self.signum).name
        except ValueError:
            return f"signal {self.signum}"


class SpawnError(RuntimeError):
    """A worker process could not be started. Fatal to the whole run."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"Could not start worker for {path}: {cause}")
        self.path = path
        self.cause = cause


def walk_mp3_files(root: str, suffix: str = config.MP3_SUFFIX) -> Generator[str, None, None]:
    """Recursively yield regular files under ``root`` ending in ``suffix``.

    Directories and files are visited in sorted order.
    """
    for subdir, dirs, files in os.walk(root):
        dirs.sort()
        for file in sorted(files):
            if not file.endswith(suffix):
                continue
            path = os.path.join(subdir, file)
            if os.path.isfile(path):
                yield path


def _run_worker(repair: Callable[[str], object], path: str) -> None:
    """Child-process entry point."""
    try:
        repair(path)
    except Exception:
        logger.exception("%s: unhandled error", path)
        sys.stderr.flush()
        sys.exit(1)


class Dispatcher:
    """Run ``repair`` on each path in an isolated child process.

    Args:
        repair: Callable taking a file path. Runs in the child.
        timeout: Seconds to wait for one worker before killing it, or
            None to wait forever.
        context: multiprocessing context; defaults to config.START_METHOD.
    """

    def __init__(
        self,
        repair: Callable[[str], object],
        timeout: float | None = None,
        context=None,
    ) -> None:
        self.repair = repair
        self.timeout = timeout or None
        self.context = context or multiprocessing.get_context(config.START_METHOD)

    def run_one(self, path: str) -> FileResult:
        """Process one file and wait for it.

        Raises:
            SpawnError: If the worker process cannot be created.
        """
        process = self.context.Process(
            target=_run_worker, args=(self.repair, path), name=f"mp3tagfix-{os.path.basename(path)}"
        )
        try:
            process.start()
        except OSError as e:
            raise SpawnError(path, e) from e

        process.join(self.timeout)
        if process.exitcode is None:
            process.kill()
            process.join()
            logger.error("%s: worker timed out after %ss, killed", path, self.timeout)
            result = FileResult(path, Outcome.TIMED_OUT)
        elif process.exitcode < 0:
            result = FileResult(path, Outcome.ABNORMAL_TERMINATION, signum=-process.exitcode)
            logger.error("%s: worker terminated by %s", path, result.signal_name)
        else:
            result = FileResult(path, Outcome.COMPLETED, exit_code=process.exitcode)
        process.close()
        return result

    def dispatch(self, paths: Iterable[str]) -> Generator[FileResult, None, None]:
        """Process ``paths`` in order, yielding one result per file."""
        for path in paths:
            yield self.run_one(path)

    def run(self, root: str) -> list[FileResult]:
        return list(self.dispatch(walk_mp3_files(root)))

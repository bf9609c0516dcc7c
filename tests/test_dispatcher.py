from __future__ import annotations

import errno
import multiprocessing
import os
import signal
import sys
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import Mock

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dispatcher import Dispatcher, FileResult, Outcome, SpawnError, walk_mp3_files  # noqa: E402

HAS_FORK = "fork" in multiprocessing.get_all_start_methods()


def _marking_repair(path: str) -> None:
    if "bad" in os.path.basename(path):
        os.kill(os.getpid(), signal.SIGKILL)
    Path(path + ".done").write_text("ok", encoding="utf-8")


def _raising_repair(path: str) -> None:
    raise ValueError(f"cannot parse {path}")


def _sleeping_repair(path: str) -> None:
    time.sleep(30)


class _FailingContext:
    def __init__(self) -> None:
        self.calls = 0

    def Process(self, *args, **kwargs):
        self.calls += 1
        return Mock(start=Mock(side_effect=OSError(errno.EAGAIN, "Resource temporarily unavailable")))


class WalkTests(unittest.TestCase):
    def test_only_regular_mp3_files_in_sorted_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "sub").mkdir()
            (root / "dir.mp3").mkdir()
            for name in ("b.mp3", "a.mp3", "c.MP3", "d.mp3.txt", "sub/e.mp3"):
                (root / name).write_bytes(b"")

            found = list(walk_mp3_files(tmpdir))

        self.assertEqual(
            found,
            [str(root / "a.mp3"), str(root / "b.mp3"), str(root / "sub" / "e.mp3")],
        )


@unittest.skipUnless(HAS_FORK, "needs the fork start method")
class DispatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.context = multiprocessing.get_context("fork")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def make_files(self, *names: str) -> list[str]:
        paths = []
        for name in names:
            path = self.root / name
            path.write_bytes(b"")
            paths.append(str(path))
        return paths

    def test_crash_in_one_file_does_not_stop_the_batch(self) -> None:
        paths = self.make_files("1.mp3", "2.mp3", "3_bad.mp3", "4.mp3", "5.mp3")
        dispatcher = Dispatcher(_marking_repair, context=self.context)

        results = dispatcher.run(str(self.root))

        self.assertEqual([r.path for r in results], paths)
        self.assertEqual(
            [r.outcome for r in results],
            [
                Outcome.COMPLETED,
                Outcome.COMPLETED,
                Outcome.ABNORMAL_TERMINATION,
                Outcome.COMPLETED,
                Outcome.COMPLETED,
            ],
        )
        self.assertEqual(results[2].signum, signal.SIGKILL)
        self.assertEqual(results[2].signal_name, "SIGKILL")
        for path in paths[3:]:
            self.assertTrue(Path(path + ".done").exists())
        self.assertFalse(Path(paths[2] + ".done").exists())

    def test_unhandled_exception_completes_with_exit_code(self) -> None:
        (path,) = self.make_files("song.mp3")
        result = Dispatcher(_raising_repair, context=self.context).run_one(path)
        self.assertEqual(result.outcome, Outcome.COMPLETED)
        self.assertEqual(result.exit_code, 1)

    def test_clean_worker_exits_zero(self) -> None:
        (path,) = self.make_files("song.mp3")
        result = Dispatcher(_marking_repair, context=self.context).run_one(path)
        self.assertEqual(result, FileResult(path, Outcome.COMPLETED, exit_code=0))

    def test_stalled_worker_is_killed_after_timeout(self) -> None:
        (path,) = self.make_files("song.mp3")
        started = time.monotonic()
        result = Dispatcher(_sleeping_repair, timeout=0.5, context=self.context).run_one(path)
        self.assertEqual(result.outcome, Outcome.TIMED_OUT)
        self.assertLess(time.monotonic() - started, 20)


class SpawnFailureTests(unittest.TestCase):
    def test_spawn_failure_is_fatal(self) -> None:
        context = _FailingContext()
        dispatcher = Dispatcher(_marking_repair, context=context)
        with self.assertRaises(SpawnError) as ctx:
            list(dispatcher.dispatch(["/music/a.mp3", "/music/b.mp3"]))
        self.assertEqual(ctx.exception.path, "/music/a.mp3")
        self.assertEqual(ctx.exception.cause.errno, errno.EAGAIN)
        self.assertEqual(context.calls, 1)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import errno
import io
import json
import multiprocessing
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mutagen.id3 import ID3, TIT2, Encoding  # noqa: E402

import main  # noqa: E402
from dispatcher import FileResult, Outcome, SpawnError  # noqa: E402

HAS_FORK = "fork" in multiprocessing.get_all_start_methods()


class UsageTests(unittest.TestCase):
    def run_main(self, argv: list[str]) -> tuple[int | None, str]:
        out = io.StringIO()
        with redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
            main.main(argv)
        return ctx.exception.code, out.getvalue()

    def test_missing_directory_argument_prints_usage(self) -> None:
        code, out = self.run_main([])
        self.assertEqual(code, 1)
        self.assertIn("Usage:", out)
        self.assertIn("mp3tagfix dir", out)

    def test_extra_argument_prints_usage(self) -> None:
        code, out = self.run_main(["a", "b"])
        self.assertEqual(code, 1)
        self.assertIn("Usage:", out)

    def test_root_must_be_a_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            code, _ = self.run_main([str(Path(tmpdir) / "nope")])
        self.assertEqual(code, 1)


class RunTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.path = self.root / "album" / "01.mp3"
        self.path.parent.mkdir()
        self.path.write_bytes(b"")
        tags = ID3()
        tags.add(TIT2(encoding=Encoding.LATIN1, text=[b"\x82\xa0\x82\xa2".decode("latin-1")]))
        tags.save(str(self.path))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_spawn_failure_exits_1(self) -> None:
        failure = SpawnError(str(self.path), OSError(errno.EAGAIN, "Resource temporarily unavailable"))
        with patch("main.Dispatcher.run_one", side_effect=failure), redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main.main([str(self.root)])
        self.assertEqual(ctx.exception.code, 1)

    def test_crashed_file_still_exits_0(self) -> None:
        crashed = FileResult(str(self.path), Outcome.ABNORMAL_TERMINATION, signum=11)
        out = io.StringIO()
        with patch("main.Dispatcher.run_one", return_value=crashed), redirect_stdout(out):
            main.main([str(self.root)])
        self.assertIn("Crashed       : 1", out.getvalue())

    def test_gui_mode_emits_json_lines(self) -> None:
        done = FileResult(str(self.path), Outcome.COMPLETED, exit_code=0)
        out = io.StringIO()
        with patch("main.Dispatcher.run_one", return_value=done), redirect_stdout(out):
            main.main([str(self.root), "--gui"])

        messages = [json.loads(line) for line in out.getvalue().splitlines()]
        self.assertEqual([m["type"] for m in messages], ["total", "progress", "summary"])
        self.assertEqual(messages[0]["count"], 1)
        self.assertEqual(messages[1]["outcome"], "completed")
        self.assertEqual(messages[2]["completed"], 1)

    @unittest.skipUnless(HAS_FORK, "needs the fork start method")
    def test_tree_is_repaired_end_to_end(self) -> None:
        with patch("dispatcher.config.START_METHOD", "fork"), redirect_stdout(io.StringIO()):
            main.main([str(self.root)])
        tags = ID3(str(self.path))
        self.assertEqual(tags["TIT2"].text, ["あい"])
        self.assertEqual(tags["TIT2"].encoding, Encoding.UTF8)

    @unittest.skipUnless(HAS_FORK, "needs the fork start method")
    def test_dry_run_leaves_tree_alone(self) -> None:
        before = self.path.read_bytes()
        with patch("dispatcher.config.START_METHOD", "fork"), redirect_stdout(io.StringIO()):
            main.main([str(self.root), "--dry-run"])
        self.assertEqual(self.path.read_bytes(), before)


if __name__ == "__main__":
    unittest.main()

"""Tests for the metro command-line interface."""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from bench_test_helpers import GitRepoTestCase, bench_command, make_measurements
from click.testing import CliRunner

from metro.bench.results import append_measurements, load_measurements
from metro.cli import main
from metro.errors import RestoreError


def _reset_logging() -> None:
    logging.getLogger("metro").handlers.clear()


class TestHelp(unittest.TestCase):
    def test_main_help(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for command in ("bench", "plot", "show"):
            self.assertIn(command, result.output)

    def test_bench_help(self) -> None:
        result = CliRunner().invoke(main, ["bench", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--revision", result.output)
        self.assertIn("--ignore-dirty", result.output)

    def test_plot_help(self) -> None:
        result = CliRunner().invoke(main, ["plot", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--normalize", result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.3.0", result.output)


class TestShowAndPlot(unittest.TestCase):
    """``metro show`` and ``metro plot`` against a data file."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.data_file = self.tmpdir / "metro.csv"
        append_measurements(
            self.data_file,
            make_measurements(
                [
                    ("c1", "fib", 100, 3),
                    ("c1", "fib", 120, 3),
                    ("c2", "fib", 90, 2),
                    ("c2", "nbody", 5000, 20),
                ]
            ),
        )

    def tearDown(self) -> None:
        _reset_logging()
        self._tmp.cleanup()

    def test_show(self) -> None:
        result = CliRunner().invoke(main, ["show", "--data-file", str(self.data_file)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("nbody", result.output)
        self.assertIn("4 measurement(s), 2 commit(s), 2 test(s)", result.output)

    def test_show_filtered(self) -> None:
        result = CliRunner().invoke(
            main, ["show", "--data-file", str(self.data_file), "--medians", "!nbody"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertNotIn("nbody", result.output)

    def test_show_missing_file(self) -> None:
        result = CliRunner().invoke(
            main, ["show", "--data-file", str(self.tmpdir / "missing.csv")]
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("error:", result.output)

    def test_plot(self) -> None:
        out = self.tmpdir / "out.svg"
        result = CliRunner().invoke(
            main,
            ["plot", "--data-file", str(self.data_file), "-o", str(out), "--medians", "fib"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn(f"plot generated to `{out}`", result.output)
        self.assertIn("<svg", out.read_text())

    def test_plot_profile(self) -> None:
        out = self.tmpdir / "profile.svg"
        profile = self.tmpdir / "metro.yaml"
        profile.write_text(
            f"data_file: {self.data_file}\nplot:\n  output: {out}\n  medians: true\n"
        )
        result = CliRunner().invoke(main, ["plot", "--profile", str(profile)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(out.exists())

    def test_plot_nothing_matches(self) -> None:
        result = CliRunner().invoke(
            main,
            ["plot", "--data-file", str(self.data_file), "-o", str(self.tmpdir / "x.svg"), "zzz"],
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("error: no measurements to plot", result.output)

    def test_plot_bad_filter(self) -> None:
        result = CliRunner().invoke(main, ["plot", "--data-file", str(self.data_file), "("])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not a valid regular expression", result.output)


class TestBenchCommand(GitRepoTestCase):
    """``metro bench`` run from inside a repository."""

    def setUp(self) -> None:
        super().setUp()
        self._old_cwd = os.getcwd()
        os.chdir(self.repo_dir)

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        _reset_logging()
        super().tearDown()

    def _command(self) -> str:
        return shlex.join(bench_command(self.script))

    def test_bench_revisions(self) -> None:
        result = CliRunner().invoke(
            main,
            ["bench", "-q", "--command", self._command(), "-r", "v1", "-r", "v2", "--repeat", "2"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Recorded 4 measurement(s) from 4 run(s)", result.output)
        self.assertIn("Original HEAD restored.", result.output)
        saved = load_measurements(self.repo_dir / "metro.csv")
        self.assertEqual(len(saved), 4)
        self.assertEqual(self.head_ref(), "refs/heads/main")

    def test_bench_args_passed_through(self) -> None:
        result = CliRunner().invoke(
            main, ["bench", "-q", "--command", self._command(), "--", "--quick", "fib", "nbody"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("from 2 run(s)", result.output)

    def test_bench_dirty_repository(self) -> None:
        (self.repo_dir / "stray.txt").write_text("x")
        result = CliRunner().invoke(main, ["bench", "-q", "--command", self._command()])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("error: repository contains 1 dirty files", result.output)

    def test_bench_outside_repository(self) -> None:
        os.chdir(self.outside)
        result = CliRunner().invoke(main, ["bench", "-q", "--command", self._command()])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("error: no git repository", result.output)


class TestBenchFailureReport(GitRepoTestCase):
    """A failing revision whose HEAD restore also fails reports both errors."""

    fail_on_v2 = True

    def setUp(self) -> None:
        super().setUp()
        self._old_cwd = os.getcwd()
        os.chdir(self.repo_dir)

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        _reset_logging()
        super().tearDown()

    def test_primary_error_and_restore_failure_both_printed(self) -> None:
        command = shlex.join(bench_command(self.script))
        restore_failure = RestoreError("failed to restore HEAD to `refs/heads/main`")
        with patch("metro.git.restore_head", side_effect=restore_failure):
            result = CliRunner().invoke(
                main, ["bench", "-q", "--command", command, "-r", "v1", "-r", "v2"]
            )
        self.assertEqual(result.exit_code, 1)
        lines = result.output.splitlines()
        headline = f"error: benchmarking revision `v2` ({self.short('v2')}) failed"
        also = "  also: failed to restore HEAD to `refs/heads/main`"
        self.assertIn(headline, lines)
        self.assertTrue(
            any(line.startswith("  caused by: ") and "error-code `101`" in line for line in lines),
            result.output,
        )
        self.assertIn(also, lines)
        self.assertLess(lines.index(headline), lines.index(also))


if __name__ == "__main__":
    unittest.main()

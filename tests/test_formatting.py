"""Tests for metro.formatting: shared text formatting helpers."""

from __future__ import annotations

import unittest

from metro.formatting import format_duration, format_ns, format_table


class TestFormatDuration(unittest.TestCase):
    def test_seconds(self) -> None:
        self.assertEqual(format_duration(8.0), "8s")

    def test_minutes(self) -> None:
        self.assertEqual(format_duration(83.0), "1m 23s")

    def test_hours(self) -> None:
        self.assertEqual(format_duration(4354.0), "1h 12m 34s")

    def test_zero(self) -> None:
        self.assertEqual(format_duration(0.0), "0s")

    def test_just_under_minute(self) -> None:
        self.assertEqual(format_duration(59.9), "59s")


class TestFormatNs(unittest.TestCase):
    def test_small(self) -> None:
        self.assertEqual(format_ns(56), "56")

    def test_thousands(self) -> None:
        self.assertEqual(format_ns(1234567), "1,234,567")


class TestFormatTable(unittest.TestCase):
    def test_basic(self) -> None:
        result = format_table(["Test", "Time"], [["fib", "12"], ["nbody", "3"]])
        lines = result.splitlines()
        self.assertEqual(len(lines), 3)
        self.assertEqual(lines[0], "  Test   Time")
        self.assertEqual(lines[1], "  fib    12")

    def test_right_alignment(self) -> None:
        result = format_table(["Time"], [["1"], ["1,000"]], alignments=["r"], indent=0)
        self.assertEqual(result.splitlines(), [" Time", "    1", "1,000"])

    def test_truncation(self) -> None:
        result = format_table(
            ["Name"], [["a_very_long_benchmark_name"]], max_col_width={0: 10}, indent=0
        )
        self.assertEqual(result.splitlines()[1], "a_very_...")

    def test_short_rows_padded(self) -> None:
        result = format_table(["A", "B"], [["x"]], indent=0)
        self.assertEqual(result.splitlines()[1], "x")

    def test_empty_rows(self) -> None:
        self.assertEqual(format_table(["A", "B"], [], indent=0), "A  B")

    def test_empty_headers(self) -> None:
        self.assertEqual(format_table([], [["x"]]), "")


if __name__ == "__main__":
    unittest.main()

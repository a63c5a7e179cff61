"""Tests for metro.bench.stats: filters, medians and normalization."""

from __future__ import annotations

import unittest

from bench_test_helpers import make_measurements

from metro.bench.results import Measurement
from metro.bench.stats import (
    compile_filters,
    compute_medians,
    filter_measurements,
    group_times,
    median_and_error,
    passes_filters,
    scale,
    summarize,
)
from metro.errors import FilterError


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilters(unittest.TestCase):
    """Tests for compile_filters / passes_filters / filter_measurements."""

    def setUp(self) -> None:
        self.data = make_measurements(
            [
                ("aaa1111", "foo::one", 10),
                ("aaa1111", "bar::two", 20),
                ("bbb2222", "baz::three", 30),
            ]
        )

    def test_empty_filter_keeps_everything(self) -> None:
        self.assertEqual(filter_measurements(self.data, []), self.data)

    def test_plain_filter_matches_test(self) -> None:
        kept = filter_measurements(self.data, ["foo"])
        self.assertEqual([m.test for m in kept], ["foo::one"])

    def test_plain_filter_matches_commit(self) -> None:
        kept = filter_measurements(self.data, ["bbb"])
        self.assertEqual([m.test for m in kept], ["baz::three"])

    def test_negated_filter_excludes_matches(self) -> None:
        kept = filter_measurements(self.data, ["!foo"])
        self.assertEqual([m.test for m in kept], ["bar::two", "baz::three"])

    def test_negated_filter_on_commit(self) -> None:
        kept = filter_measurements(self.data, ["!aaa"])
        self.assertEqual([m.test for m in kept], ["baz::three"])

    def test_filters_are_a_disjunction(self) -> None:
        """["foo", "!bar"] keeps foo, and everything that is not bar."""
        kept = filter_measurements(self.data, ["foo", "!bar"])
        self.assertEqual([m.test for m in kept], ["foo::one", "baz::three"])

    def test_regex_syntax(self) -> None:
        kept = filter_measurements(self.data, ["^ba[rz]::"])
        self.assertEqual([m.test for m in kept], ["bar::two", "baz::three"])

    def test_invalid_regex(self) -> None:
        with self.assertRaises(FilterError) as ctx:
            compile_filters(["foo("])
        self.assertIn("foo(", str(ctx.exception))

    def test_invalid_negated_regex(self) -> None:
        with self.assertRaises(FilterError):
            compile_filters(["![unclosed"])

    def test_passes_filters_no_filters(self) -> None:
        self.assertTrue(passes_filters([], self.data[0]))

    def test_compiled_filter_flags(self) -> None:
        (f,) = compile_filters(["!x"])
        self.assertTrue(f.inverted)
        self.assertEqual(f.pattern.pattern, "x")


# ---------------------------------------------------------------------------
# Median and error
# ---------------------------------------------------------------------------


class TestMedianAndError(unittest.TestCase):
    """Tests for median_and_error()."""

    def test_odd(self) -> None:
        self.assertEqual(median_and_error([10, 20, 30]), (20, 10))

    def test_even_uses_lower_middle(self) -> None:
        self.assertEqual(median_and_error([10, 20, 30, 40])[0], 20)

    def test_even_error(self) -> None:
        self.assertEqual(median_and_error([10, 20, 30, 40]), (20, 20))

    def test_single(self) -> None:
        self.assertEqual(median_and_error([7]), (7, 0))

    def test_empty_is_zero(self) -> None:
        self.assertEqual(median_and_error([]), (0, 0))

    def test_asymmetric_error(self) -> None:
        self.assertEqual(median_and_error([1, 10, 11]), (10, 9))


class TestScale(unittest.TestCase):
    def test_percentage(self) -> None:
        self.assertEqual(scale(150, 100), 150)

    def test_truncates(self) -> None:
        self.assertEqual(scale(1, 3), 33)

    def test_zero_baseline_floors_to_one(self) -> None:
        self.assertEqual(scale(5, 0), 500)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestComputeMedians(unittest.TestCase):
    """Tests for compute_medians()."""

    def test_groups_by_commit_and_test(self) -> None:
        data = make_measurements(
            [
                ("c1", "a", 30),
                ("c1", "a", 10),
                ("c1", "a", 20),
                ("c1", "b", 5),
                ("c2", "a", 40),
            ]
        )
        self.assertEqual(
            compute_medians(data),
            [
                Measurement("c1", "a", 20, 10),
                Measurement("c1", "b", 5, 0),
                Measurement("c2", "a", 40, 0),
            ],
        )

    def test_first_seen_key_order(self) -> None:
        data = make_measurements([("c2", "z", 1), ("c1", "a", 1), ("c2", "z", 1)])
        keys = [(m.commit, m.test) for m in compute_medians(data)]
        self.assertEqual(keys, [("c2", "z"), ("c1", "a")])

    def test_normalize_against_first_commit(self) -> None:
        data = make_measurements(
            [
                ("c1", "a", 100),
                ("c1", "a", 100),
                ("c2", "a", 150),
                ("c2", "a", 250),
                ("c1", "b", 10),
                ("c2", "b", 5),
            ]
        )
        result = compute_medians(data, normalize=True)
        by_key = {(m.commit, m.test): m for m in result}
        self.assertEqual(by_key[("c1", "a")].time, 100)
        self.assertEqual(by_key[("c2", "a")].time, 150)
        self.assertEqual(by_key[("c2", "a")].variance, 100)
        self.assertEqual(by_key[("c1", "b")].time, 100)
        self.assertEqual(by_key[("c2", "b")].time, 50)

    def test_normalize_zero_baseline(self) -> None:
        data = make_measurements([("c1", "a", 0), ("c2", "a", 3)])
        result = compute_medians(data, normalize=True)
        self.assertEqual([m.time for m in result], [0, 300])

    def test_empty(self) -> None:
        self.assertEqual(compute_medians([]), [])


class TestSummaries(unittest.TestCase):
    def test_group_times_sorted(self) -> None:
        data = make_measurements([("c1", "a", 3), ("c1", "a", 1), ("c1", "a", 2)])
        self.assertEqual(group_times(data), {("c1", "a"): [1, 2, 3]})

    def test_summarize(self) -> None:
        data = make_measurements([("c1", "a", 30), ("c1", "a", 10), ("c1", "a", 20)])
        (s,) = summarize(data)
        self.assertEqual((s.n, s.median, s.error, s.min, s.max), (3, 20, 10, 10, 30))


if __name__ == "__main__":
    unittest.main()

"""Filtering and aggregation of recorded measurements.

Repeated runs of the same test on the same commit are noisy.  This
module reduces each ``(commit, test)`` group to a median with a
symmetric error bound, and can rescale every test against its first
commit so that relative regressions are comparable across tests.

Median rule (applied to the sorted times of one group):

- empty group: ``0``
- odd size: the middle element
- even size: the lower of the two central elements

so ``[10, 20, 30]`` gives ``20`` and ``[10, 20, 30, 40]`` also gives
``20``.  The error bound is ``max(median - min, max - median)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from metro.bench.results import Measurement
from metro.errors import FilterError

NEGATION = "!"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MeasurementFilter:
    """A regex matched against a measurement's commit and test name."""

    pattern: re.Pattern[str]
    inverted: bool = False

    def matches(self, m: Measurement) -> bool:
        return bool(self.pattern.search(m.commit) or self.pattern.search(m.test))

    def passes(self, m: Measurement) -> bool:
        return self.matches(m) != self.inverted


def compile_filters(patterns: Iterable[str]) -> list[MeasurementFilter]:
    """Compile filter strings; a leading ``!`` negates the filter.

    Raises:
        FilterError: If a pattern is not a valid regular expression.
    """
    filters: list[MeasurementFilter] = []
    for text in patterns:
        inverted = text.startswith(NEGATION)
        body = text[len(NEGATION) :] if inverted else text
        try:
            filters.append(MeasurementFilter(re.compile(body), inverted))
        except re.error as exc:
            raise FilterError(f"filter `{text}` not a valid regular expression") from exc
    return filters


def passes_filters(filters: Sequence[MeasurementFilter], m: Measurement) -> bool:
    """True if *m* passes at least one filter, or there are no filters.

    The filters form a plain disjunction: ``["foo", "!bar"]`` keeps
    anything matching ``foo`` and anything not matching ``bar``.
    """
    if not filters:
        return True
    return any(f.passes(m) for f in filters)


def filter_measurements(
    measurements: Iterable[Measurement],
    patterns: Iterable[str],
) -> list[Measurement]:
    """Keep the measurements that pass the given filter strings."""
    filters = compile_filters(patterns)
    return [m for m in measurements if passes_filters(filters, m)]


# ---------------------------------------------------------------------------
# Medians
# ---------------------------------------------------------------------------


def median_and_error(sorted_values: Sequence[int]) -> tuple[int, int]:
    """Median and maximum deviation of an already-sorted sample.

    An empty sample yields ``(0, 0)``.
    """
    n = len(sorted_values)
    if n == 0:
        return 0, 0
    if n % 2 == 1:
        median = sorted_values[n // 2]
    else:
        median = sorted_values[n // 2 - 1]
    error = max(median - sorted_values[0], sorted_values[-1] - median)
    return median, error


def scale(value: int, baseline: int) -> int:
    """*value* as a whole percentage of *baseline* (floored at 1)."""
    baseline = max(baseline, 1)
    return int(value / baseline * 100)


def group_times(measurements: Iterable[Measurement]) -> dict[tuple[str, str], list[int]]:
    """Group times by ``(commit, test)``, sorted, keys in first-seen order."""
    groups: dict[tuple[str, str], list[int]] = {}
    for m in measurements:
        groups.setdefault((m.commit, m.test), []).append(m.time)
    for values in groups.values():
        values.sort()
    return groups


def compute_medians(
    measurements: Iterable[Measurement],
    normalize: bool = False,
) -> list[Measurement]:
    """Collapse each ``(commit, test)`` group to one aggregated point.

    The result's ``time`` is the group median and ``variance`` its
    error bound.  With *normalize*, both are rescaled to a percentage of
    the test's baseline, the median of the first commit seen for it.
    """
    groups = group_times(measurements)
    aggregated = {key: median_and_error(values) for key, values in groups.items()}

    baselines: dict[str, int] = {}
    if normalize:
        for (_commit, test), (median, _error) in aggregated.items():
            baselines.setdefault(test, median)

    points: list[Measurement] = []
    for (commit, test), (median, error) in aggregated.items():
        if normalize:
            baseline = baselines[test]
            median, error = scale(median, baseline), scale(error, baseline)
        points.append(Measurement(commit=commit, test=test, time=median, variance=error))
    return points


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@dataclass
class GroupSummary:
    """Summary of one ``(commit, test)`` group for display."""

    commit: str
    test: str
    n: int
    median: int
    error: int
    min: int
    max: int


def summarize(measurements: Iterable[Measurement]) -> list[GroupSummary]:
    """Per-group sample count, median, error bound and range."""
    summaries: list[GroupSummary] = []
    for (commit, test), values in group_times(measurements).items():
        median, error = median_and_error(values)
        summaries.append(
            GroupSummary(
                commit=commit,
                test=test,
                n=len(values),
                median=median,
                error=error,
                min=values[0],
                max=values[-1],
            )
        )
    return summaries

"""Terminal display of recorded measurements and run summaries."""

from __future__ import annotations

from typing import Sequence

from metro.bench.results import Measurement
from metro.bench.revisions import RevisionSummary
from metro.bench.stats import summarize
from metro.formatting import format_duration, format_ns, format_table


def format_measurement_table(measurements: Sequence[Measurement]) -> str:
    """One row per ``(commit, test)`` group: n, median, +/-, min, max.

    Groups appear in the order they were first recorded.
    """
    summaries = summarize(measurements)
    if not summaries:
        return "No measurements."
    rows = [
        [
            s.commit,
            s.test,
            str(s.n),
            format_ns(s.median),
            format_ns(s.error),
            format_ns(s.min),
            format_ns(s.max),
        ]
        for s in summaries
    ]
    table = format_table(
        ["Commit", "Test", "N", "Median ns/iter", "+/-", "Min", "Max"],
        rows,
        alignments=["l", "l", "r", "r", "r", "r", "r"],
        max_col_width={1: 60},
    )
    commits = len({s.commit for s in summaries})
    tests = len({s.test for s in summaries})
    footer = f"{len(measurements)} measurement(s), {commits} commit(s), {tests} test(s)"
    return f"{table}\n\n{footer}"


def format_run_summary(summary: RevisionSummary) -> str:
    """Short report printed after ``metro bench``."""
    lines = [
        f"Recorded {summary.measurements} measurement(s) from "
        f"{summary.invocations} run(s) to {summary.data_file}",
        f"Commits: {', '.join(summary.commits) or '-'}",
        f"Elapsed: {format_duration(summary.duration_s)}",
    ]
    if summary.restored_head:
        lines.append("Original HEAD restored.")
    return "\n".join(lines)

"""Benchmark execution.

For one commit, runs the benchmark command once per requested name
and repeat, extracts results from its standard output, and appends
them to the measurement store as soon as each run finishes.

Runs are strictly sequential.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from metro.bench.extract import extract_all
from metro.bench.results import Measurement, MeasurementStore
from metro.errors import BenchCommandError, OutputDecodeError, ProcessExitError
from metro.logging import get_logger

log = get_logger("runner")

# Sentinel name: run the command with no name argument, i.e. every benchmark.
RUN_ALL = ""


# ---------------------------------------------------------------------------
# Argument partitioning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchPlan:
    """User tokens split into pass-through flags and benchmark names.

    ``names`` is never empty: no names means one :data:`RUN_ALL` entry.
    """

    flags: tuple[str, ...] = ()
    names: tuple[str, ...] = (RUN_ALL,)


def parse_bench_args(tokens: Sequence[str], marker: str = "-") -> BenchPlan:
    """Partition *tokens* into flags (starting with *marker*) and names.

    Order within each group is preserved.

    >>> parse_bench_args(["--verbose", "nbody", "fib"])
    BenchPlan(flags=('--verbose',), names=('nbody', 'fib'))
    """
    flags: list[str] = []
    names: list[str] = []
    for token in tokens:
        if token.startswith(marker):
            flags.append(token)
        else:
            names.append(token)
    return BenchPlan(flags=tuple(flags), names=tuple(names) or (RUN_ALL,))


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class BenchProgress:
    """Progress info passed to the callback before each run."""

    commit: str
    name: str  # RUN_ALL for "everything"
    repeat: int  # 1-based
    total_repeats: int
    commit_index: int = 1  # 1-based
    total_commits: int = 1


ProgressCallback = Callable[[BenchProgress], None]


def _default_progress(progress: BenchProgress) -> None:
    """Default progress callback: one log line per run."""
    name = progress.name or "<all>"
    log.info(
        "[%d/%d] %s: %s (repeat %d/%d)",
        progress.commit_index,
        progress.total_commits,
        progress.commit,
        name,
        progress.repeat,
        progress.total_repeats,
    )


# ---------------------------------------------------------------------------
# BenchRunner
# ---------------------------------------------------------------------------


@dataclass
class RunStats:
    """What one :meth:`BenchRunner.run` call produced."""

    commit: str
    invocations: int = 0
    measurements: list[Measurement] = field(default_factory=list)


class BenchRunner:
    """Runs the benchmark command and records what it reports.

    Usage::

        with MeasurementStore(path) as store:
            runner = BenchRunner(["cargo", "bench"], store)
            runner.run("1a2b3c4", parse_bench_args(["nbody"]), repeat=3)
    """

    def __init__(
        self,
        command: Sequence[str],
        store: MeasurementStore,
        *,
        cwd: Path | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.command = list(command)
        self.store = store
        self.cwd = cwd
        self.progress: ProgressCallback = progress_callback or _default_progress

    @property
    def command_display(self) -> str:
        return " ".join(self.command)

    def run(
        self,
        commit: str,
        plan: BenchPlan,
        repeat: int = 1,
        *,
        commit_index: int = 1,
        total_commits: int = 1,
    ) -> RunStats:
        """Benchmark the current checkout, labelled *commit*.

        For each name in *plan* and each of *repeat* repetitions, the
        command is invoked with the plan's flags and the name (if not
        :data:`RUN_ALL`).  Every result line becomes a
        :class:`Measurement` appended right away.

        Raises:
            BenchCommandError: The command could not be started.
            ProcessExitError: The command exited nonzero.
            OutputDecodeError: Its output is not UTF-8.
            ExtractError: A result line carried an unparsable number.
            StoreIOError: Appending to the store failed.
        """
        stats = RunStats(commit=commit)
        for name in plan.names:
            args = list(plan.flags)
            if name != RUN_ALL:
                args.append(name)
            for i in range(repeat):
                self.progress(
                    BenchProgress(
                        commit=commit,
                        name=name,
                        repeat=i + 1,
                        total_repeats=repeat,
                        commit_index=commit_index,
                        total_commits=total_commits,
                    )
                )
                output = self.invoke(args)
                stats.invocations += 1
                for test, time, variance in extract_all(output):
                    m = Measurement(commit=commit, test=test, time=time, variance=variance)
                    self.store.append(m)
                    stats.measurements.append(m)
        if not stats.measurements:
            log.warning(
                "`%s` reported no benchmark results for %s", self.command_display, commit
            )
        return stats

    def invoke(self, args: Sequence[str]) -> str:
        """Run the command once with *args* and return its standard output."""
        cmd = self.command + list(args)
        log.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                cwd=str(self.cwd) if self.cwd else None,
                check=False,
            )
        except OSError as exc:
            raise BenchCommandError(f"error executing `{self.command_display}`") from exc

        stderr = proc.stderr.decode("utf-8", errors="replace") if proc.stderr else ""
        if stderr.strip():
            log.debug("`%s` stderr:\n%s", self.command_display, stderr.rstrip())
        if proc.returncode != 0:
            tail = stderr.strip()[-200:]
            raise ProcessExitError(self.command_display, proc.returncode, tail)

        try:
            return proc.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OutputDecodeError(self.command_display) from exc

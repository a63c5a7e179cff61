"""Benchmarking across git revisions.

Drives a whole ``metro bench`` invocation:

1. Prepare: open the data file, find the repository, check it is clean
   (the data file and ignore globs excepted).
2. Resolve: with no revision list, benchmark the current checkout once.
   Otherwise resolve every revision up front; an unknown revision fails
   the run before anything is checked out.
3. Iterate: check out each commit in order and run the benchmarks.  The
   first failure stops the loop.
4. Restore: put the original HEAD back, whatever happened in step 3.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from metro.bench.config import MetroConfig, raise_for_errors, validate_config
from metro.bench.results import MeasurementStore
from metro.bench.runner import BenchPlan, BenchRunner, ProgressCallback, parse_bench_args
from metro.errors import MetroError, RevisionRunError
from metro.git import (
    Commit,
    HeadGuard,
    Repository,
    check_clean,
    discover,
    expand_ignore_globs,
    head_commit,
    resolve,
)
from metro.logging import get_logger

log = get_logger("revisions")


@dataclass
class RevisionSummary:
    """Outcome of a successful run."""

    data_file: Path
    commits: list[str] = field(default_factory=list)  # short ids, in run order
    invocations: int = 0
    measurements: int = 0
    restored_head: bool = False
    duration_s: float = 0.0


def prepare_repository(config: MetroConfig, start_dir: Path, data_file: Path) -> Repository:
    """Discover the repository and, unless told otherwise, check it is clean."""
    repo = discover(start_dir)
    if config.ignore_dirty:
        log.debug("skipping clean check (--ignore-dirty)")
        return repo
    exceptions = expand_ignore_globs(repo, config.ignore_globs)
    exceptions.append(data_file)
    check_clean(repo, exceptions)
    return repo


def resolve_revisions(repo: Repository, tokens: list[str]) -> list[Commit]:
    """Resolve every token, failing on the first that is not a commit."""
    commits = [resolve(repo, token) for token in tokens]
    for c in commits:
        log.debug("resolved %s -> %s", c.token, c.id)
    return commits


def run_revisions(
    config: MetroConfig,
    bench_args: list[str] | None = None,
    *,
    progress_callback: ProgressCallback | None = None,
) -> RevisionSummary:
    """Benchmark the configured revisions and append results to the data file.

    Args:
        config: Run configuration.  ``config.cwd`` (default: the process
            working directory) is where the repository is searched from
            and where the benchmark command runs.
        bench_args: Tokens to partition into flags and names.
        progress_callback: Called before every benchmark invocation.

    Raises:
        ConfigError: Invalid configuration.
        MetroError: Any failure; a failure inside the revision loop is
            wrapped in :class:`RevisionRunError` naming the revision.
    """
    raise_for_errors(validate_config(config))
    start_dir = config.start_dir
    data_file = config.resolved_data_file
    plan: BenchPlan = parse_bench_args(bench_args or [], config.flag_marker)
    summary = RevisionSummary(data_file=data_file)
    start = time.monotonic()

    # The store is opened before the clean check, which exempts its file.
    with MeasurementStore(data_file) as store:
        repo = prepare_repository(config, start_dir, data_file)
        runner = BenchRunner(
            config.command,
            store,
            cwd=start_dir,
            progress_callback=progress_callback,
        )

        if not config.revisions:
            current = head_commit(repo)
            log.info("Benchmarking current checkout %s", current.short_id)
            stats = runner.run(current.short_id, plan, config.repeat)
            summary.commits.append(current.short_id)
            summary.invocations += stats.invocations
            summary.measurements += len(stats.measurements)
            summary.duration_s = time.monotonic() - start
            return summary

        commits = resolve_revisions(repo, config.revisions)
        log.info(
            "Benchmarking %d revision(s): %s",
            len(commits),
            ", ".join(f"{c.token} ({c.short_id})" for c in commits),
        )
        with HeadGuard(repo) as guard:
            for index, commit in enumerate(commits, start=1):
                try:
                    guard.checkout(commit)
                    stats = runner.run(
                        commit.short_id,
                        plan,
                        config.repeat,
                        commit_index=index,
                        total_commits=len(commits),
                    )
                except MetroError as exc:
                    raise RevisionRunError(commit.token, commit.short_id) from exc
                summary.commits.append(commit.short_id)
                summary.invocations += stats.invocations
                summary.measurements += len(stats.measurements)
        summary.restored_head = True
        log.info("Restored original HEAD")

    summary.duration_s = time.monotonic() - start
    return summary

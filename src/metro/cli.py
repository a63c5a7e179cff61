"""Command-line interface for metro.

Subcommands:
    metro bench   Run the benchmarks (optionally across revisions) and record them
    metro plot    Plot recorded measurements to an SVG file
    metro show    Print recorded measurements as a table
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NoReturn

import click

from metro import __version__
from metro.bench.config import DEFAULT_DATA_FILE, load_profile
from metro.errors import MetroError, format_error_chain
from metro.logging import setup_logging


def _profile_data(profile_path: Path | None) -> dict[str, Any]:
    if profile_path is None:
        return {}
    return load_profile(profile_path)


def _data_file(data_file: Path | None, profile: dict[str, Any]) -> Path:
    if data_file is not None:
        return data_file
    return Path(str(profile.get("data_file", DEFAULT_DATA_FILE)))


def _fail(exc: MetroError) -> NoReturn:
    click.echo(format_error_chain(exc), err=True)
    raise SystemExit(1) from exc


_profile_option = click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML profile with default settings.",
)
_data_file_option = click.option(
    "--data-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Measurement file (default: {DEFAULT_DATA_FILE}).",
)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """metro: benchmark a project across git revisions and compare the results."""


# ---------------------------------------------------------------------------
# bench
# ---------------------------------------------------------------------------


@main.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("bench_args", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "-r",
    "--revision",
    "revisions",
    multiple=True,
    help="Revision to benchmark (repeatable, run in order). Default: the current checkout.",
)
@click.option("--repeat", type=int, default=None, help="Runs per benchmark name (default: 1).")
@click.option("--ignore-dirty", is_flag=True, default=False, help="Skip the clean-tree check.")
@click.option(
    "--ignore",
    "ignore_globs",
    multiple=True,
    help="Glob of dirty files to tolerate, relative to the repo root (repeatable).",
)
@click.option(
    "--command",
    type=str,
    default=None,
    help="Benchmark command (default: 'cargo bench').",
)
@_data_file_option
@_profile_option
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a DEBUG log to this file.",
)
def bench(
    bench_args: tuple[str, ...],
    revisions: tuple[str, ...],
    repeat: int | None,
    ignore_dirty: bool,
    ignore_globs: tuple[str, ...],
    command: str | None,
    data_file: Path | None,
    profile_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run the benchmark command and record its results.

    BENCH_ARGS starting with '-' are passed to the command as-is; every
    other argument is a benchmark name, each run separately.

    \b
    Examples:
        # Current checkout, three runs
        metro bench --repeat 3

        # Compare two tags and a branch, only the nbody benchmarks
        metro bench -r v0.1.0 -r v0.2.0 -r main nbody
    """
    from metro.bench.config import config_from_profile
    from metro.bench.display import format_run_summary
    from metro.bench.revisions import run_revisions

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    try:
        profile = _profile_data(profile_path)
        config = config_from_profile(
            profile,
            cli_overrides={
                "data_file": data_file,
                "command": command,
                "repeat": repeat,
                "revisions": list(revisions),
                "ignore_dirty": ignore_dirty,
                "ignore_globs": list(ignore_globs),
            },
        )
        summary = run_revisions(config, list(bench_args))
    except MetroError as exc:
        _fail(exc)
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    click.echo(format_run_summary(summary))


# ---------------------------------------------------------------------------
# plot
# ---------------------------------------------------------------------------


@main.command()
@click.argument("filters", nargs=-1)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SVG file to write (default: metro.svg).",
)
@click.option("--variance", is_flag=True, default=False, help="Draw +/- error bars.")
@click.option("--medians", is_flag=True, default=False, help="Plot per-commit medians.")
@click.option(
    "--normalize",
    is_flag=True,
    default=False,
    help="With --medians, plot each test as a percentage of its first commit.",
)
@_data_file_option
@_profile_option
def plot(
    filters: tuple[str, ...],
    output_file: Path | None,
    variance: bool,
    medians: bool,
    normalize: bool,
    data_file: Path | None,
    profile_path: Path | None,
) -> None:
    """Plot recorded measurements.

    FILTERS are regular expressions matched against commit and test
    name; prefix one with '!' to negate it.  A measurement is kept if it
    passes any filter.

    \b
    Examples:
        metro plot --medians nbody
        metro plot --medians --normalize -o relative.svg '!par'
    """
    from metro.bench.config import plot_config_from_profile
    from metro.bench.plot import plot_measurements

    setup_logging(quiet=True)

    try:
        profile = _profile_data(profile_path)
        config = plot_config_from_profile(
            profile,
            cli_overrides={
                "output_file": output_file,
                "include_variance": variance,
                "compute_medians": medians,
                "compute_normalize": normalize,
                "filters": list(filters),
            },
        )
        written = plot_measurements(_data_file(data_file, profile), config)
    except MetroError as exc:
        _fail(exc)

    click.echo(f"plot generated to `{written}`")


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


@main.command()
@click.argument("filters", nargs=-1)
@click.option("--medians", is_flag=True, default=False, help="Collapse repeats first.")
@_data_file_option
@_profile_option
def show(
    filters: tuple[str, ...],
    medians: bool,
    data_file: Path | None,
    profile_path: Path | None,
) -> None:
    """Print recorded measurements grouped by commit and test.

    FILTERS work as for 'metro plot'.
    """
    from metro.bench.config import PlotConfig
    from metro.bench.display import format_measurement_table
    from metro.bench.plot import prepare_measurements
    from metro.bench.results import load_measurements

    setup_logging(quiet=True)

    try:
        profile = _profile_data(profile_path)
        measurements = load_measurements(_data_file(data_file, profile))
        selected = prepare_measurements(
            measurements,
            PlotConfig(filters=list(filters), compute_medians=medians),
        )
    except MetroError as exc:
        _fail(exc)

    click.echo(format_measurement_table(selected))

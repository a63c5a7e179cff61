"""Comparative plots of recorded measurements.

Choosing the X axis (evaluated once per plot):

1. More than one commit present: one tick per commit.
2. Otherwise more than one test present: one tick per test.
3. Otherwise: the measurement's index, without tick labels.

Ticks are ordered by first appearance; sort the data file if another
order is wanted.  Each test becomes one series, captioned with its
(escaped) name.  Rendering uses matplotlib's headless Agg backend and
writes SVG.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from metro.bench.config import PlotConfig, raise_for_errors, validate_plot_config
from metro.bench.results import Measurement, load_measurements
from metro.bench.stats import compute_medians, filter_measurements
from metro.errors import MetroError
from metro.logging import get_logger

log = get_logger("plot")


# ---------------------------------------------------------------------------
# X axis selection
# ---------------------------------------------------------------------------


@dataclass
class XAxis:
    """How measurements map onto the X axis."""

    label: str
    coords: list[int]  # x coordinate of each measurement, by index
    ticks: list[str] | None = None  # None: plain numbers


def x_axis_from_names(
    measurements: Sequence[Measurement],
    label: str,
    key: Callable[[Measurement], str],
) -> XAxis:
    """One tick per distinct ``key(m)``, in order of first appearance."""
    positions: dict[str, int] = {}
    for m in measurements:
        positions.setdefault(key(m), len(positions))
    return XAxis(
        label=label,
        coords=[positions[key(m)] for m in measurements],
        ticks=list(positions),
    )


def x_axis_from_commits(measurements: Sequence[Measurement]) -> XAxis:
    return x_axis_from_names(measurements, "commit", lambda m: m.commit)


def x_axis_from_tests(measurements: Sequence[Measurement]) -> XAxis:
    return x_axis_from_names(measurements, "test", lambda m: m.test)


def x_axis_from_indices(measurements: Sequence[Measurement]) -> XAxis:
    return XAxis(label="measurement", coords=list(range(len(measurements))))


def select_x_axis(measurements: Sequence[Measurement]) -> XAxis:
    """Pick commits, tests or indices as the X axis."""
    if len({m.commit for m in measurements}) > 1:
        return x_axis_from_commits(measurements)
    if len({m.test for m in measurements}) > 1:
        return x_axis_from_tests(measurements)
    return x_axis_from_indices(measurements)


# ---------------------------------------------------------------------------
# Chart building
# ---------------------------------------------------------------------------


def group_series(measurements: Sequence[Measurement]) -> dict[str, list[int]]:
    """Indices of the measurements of each test, tests in first-seen order."""
    series: dict[str, list[int]] = {}
    for i, m in enumerate(measurements):
        series.setdefault(m.test, []).append(i)
    return series


def escape_label(name: str) -> str:
    """Make a test name safe to use as a legend caption.

    matplotlib hides legend entries whose label starts with ``_``, and
    ``$`` switches to mathtext.
    """
    return name.replace("_", "-").replace("$", r"\$")


@dataclass
class ChartSeries:
    """One plotted line: a test's points."""

    label: str
    xs: list[int]
    ys: list[int]
    errors: list[int] | None = None  # None: plain points, no error bars


@dataclass
class Chart:
    """Everything the renderer needs, independent of matplotlib."""

    x_label: str
    y_label: str
    ticks: list[str] | None = None
    series: list[ChartSeries] = field(default_factory=list)


def build_chart(
    measurements: Sequence[Measurement],
    *,
    include_variance: bool = False,
    normalized: bool = False,
) -> Chart:
    """Shape measurements into axis labels and per-test series.

    Y values are always ``time``; with *include_variance* the
    ``variance`` column (or the aggregated error bound) becomes a
    symmetric error bar.
    """
    x_axis = select_x_axis(measurements)
    chart = Chart(
        x_label=x_axis.label,
        y_label="normalized ns/iter" if normalized else "ns/iter",
        ticks=x_axis.ticks,
    )
    for test, indices in group_series(measurements).items():
        chart.series.append(
            ChartSeries(
                label=escape_label(test),
                xs=[x_axis.coords[i] for i in indices],
                ys=[measurements[i].time for i in indices],
                errors=[measurements[i].variance for i in indices] if include_variance else None,
            )
        )
    return chart


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_chart(chart: Chart, output_file: Path) -> Path:
    """Render *chart* to *output_file* as SVG."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, axis = plt.subplots(figsize=(10, 6))
    try:
        axis.set_xlabel(chart.x_label)
        axis.set_ylabel(chart.y_label)
        if chart.ticks is not None:
            axis.set_xticks(range(len(chart.ticks)))
            axis.set_xticklabels(chart.ticks, rotation=45, ha="right")
        axis.grid(True, alpha=0.3, linewidth=0.5)

        for s in chart.series:
            if s.errors is None:
                axis.plot(s.xs, s.ys, marker="o", linestyle="none", label=s.label)
            else:
                axis.errorbar(s.xs, s.ys, yerr=s.errors, marker="o", capsize=3, label=s.label)

        if chart.series:
            axis.legend(fontsize=8, framealpha=0.8)
        fig.tight_layout()
        fig.savefig(str(output_file), format="svg")
    except OSError as exc:
        raise MetroError(f"failed to write plot to `{output_file}`") from exc
    finally:
        plt.close(fig)
    return output_file


def prepare_measurements(
    measurements: Sequence[Measurement],
    config: PlotConfig,
) -> list[Measurement]:
    """Apply filters, then (optionally) medians and normalization."""
    selected = filter_measurements(measurements, config.filters)
    if config.compute_medians:
        selected = compute_medians(selected, normalize=config.compute_normalize)
    return selected


def plot_measurements(data_file: Path, config: PlotConfig) -> Path:
    """Load *data_file*, shape it per *config* and render the plot.

    Computing medians always turns on error bars.

    Raises:
        StoreIOError, DecodeError: The data file cannot be read.
        FilterError: A filter is not a valid regex.
        MetroError: Nothing is left to plot, or the output cannot be written.
    """
    raise_for_errors(validate_plot_config(config))
    measurements = load_measurements(data_file)
    selected = prepare_measurements(measurements, config)
    if not selected:
        raise MetroError(f"no measurements to plot in `{data_file}`")

    chart = build_chart(
        selected,
        include_variance=config.include_variance or config.compute_medians,
        normalized=config.compute_medians and config.compute_normalize,
    )
    log.debug(
        "plotting %d series over %s (%d points)",
        len(chart.series),
        chart.x_label,
        len(selected),
    )
    return render_chart(chart, config.output_file)

"""Measurement records and their on-disk store.

The store is a headerless CSV file, one measurement per row::

    commit,test,time,variance
    1a2b3c4,nbody::bench::nbody_par,12459703,75027

Rows are only ever appended.  Reading back is strict: a malformed row
raises :class:`~metro.errors.DecodeError` rather than being skipped,
since silently dropping recorded history would skew every later plot.
"""

from __future__ import annotations

import csv
from dataclasses import astuple, dataclass
from pathlib import Path
from types import TracebackType
from typing import IO, Any

from metro.errors import DecodeError, StoreIOError
from metro.logging import get_logger

log = get_logger("results")

COLUMNS = ("commit", "test", "time", "variance")


def _is_count(text: str) -> bool:
    """Plain ASCII digits only: no sign, padding or underscores."""
    return text.isascii() and text.isdigit()


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Measurement:
    """One timing sample: a test's ns/iter and +/- bound on a commit."""

    commit: str  # usually a short hash
    test: str
    time: int  # ns/iter
    variance: int  # the reported +/- bound

    def __post_init__(self) -> None:
        for name in ("time", "variance"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"Measurement.{name} must be an int, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"Measurement.{name} must be non-negative, got {value}")

    def to_row(self) -> list[str]:
        """Serialize to a CSV row."""
        return [str(v) for v in astuple(self)]

    @classmethod
    def from_row(cls, row: list[str]) -> Measurement:
        """Deserialize from a CSV row.

        Raises:
            ValueError: If the row has the wrong shape or bad numbers.
        """
        if len(row) != len(COLUMNS):
            raise ValueError(f"expected {len(COLUMNS)} columns, got {len(row)}")
        commit, test, time_str, variance_str = row
        if not (_is_count(time_str) and _is_count(variance_str)):
            raise ValueError(
                f"time and variance must be integers, got `{time_str}` and `{variance_str}`"
            )
        return cls(commit=commit, test=test, time=int(time_str), variance=int(variance_str))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class MeasurementStore:
    """Append-only writer for a measurement file.

    Open it before spawning any benchmark process so that a bad path
    fails early::

        with MeasurementStore(path) as store:
            store.append(Measurement("1a2b3c4", "fib", 1234, 56))

    Each append is flushed immediately; a later failure keeps the rows
    already written.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._fh: IO[str] | None = None
        self._writer: Any = None
        self.appended = 0

    def open(self) -> MeasurementStore:
        """Open the file in create-or-append mode.  Never truncates."""
        if self._fh is not None:
            return self
        try:
            self._fh = self.path.open("a", newline="", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"failed to open data file `{self.path}`") from exc
        self._writer = csv.writer(self._fh, lineterminator="\n")
        log.debug("opened data file %s", self.path)
        return self

    def append(self, measurement: Measurement) -> None:
        """Append one row and flush it to disk."""
        if self._fh is None:
            self.open()
        try:
            self._writer.writerow(measurement.to_row())
            self._fh.flush()
        except OSError as exc:
            raise StoreIOError(
                f"failed to write data for test `{measurement.test}` to `{self.path}`"
            ) from exc
        self.appended += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None

    def __enter__(self) -> MeasurementStore:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def append_measurements(path: Path, measurements: list[Measurement]) -> None:
    """Append several measurements in one session."""
    with MeasurementStore(path) as store:
        for m in measurements:
            store.append(m)


def load_measurements(path: Path) -> list[Measurement]:
    """Read every measurement in *path*, in file order.

    Blank lines are skipped; anything else that is not a valid row is
    an error.

    Raises:
        StoreIOError: If the file cannot be read.
        DecodeError: On the first malformed row.
    """
    path = Path(path)
    measurements: list[Measurement] = []
    try:
        with path.open(newline="", encoding="utf-8") as fh:
            reader = csv.reader(fh)
            try:
                for row in reader:
                    if not row:
                        continue
                    try:
                        measurements.append(Measurement.from_row(row))
                    except (TypeError, ValueError) as exc:
                        raise DecodeError(path, reader.line_num, str(exc)) from exc
            except (csv.Error, UnicodeDecodeError) as exc:
                raise DecodeError(path, reader.line_num, str(exc)) from exc
    except OSError as exc:
        raise StoreIOError(f"cannot read `{path}`") from exc
    log.debug("loaded %d measurements from %s", len(measurements), path)
    return measurements

"""Extraction of ``ns/iter`` timings from benchmark output.

The benchmark command prints mostly unrelated text (compiler progress,
warnings, test headers).  The lines of interest look like::

    test nbody::bench::nbody_par              ... bench:  12,459,703 ns/iter (+/- 75,027)

Anything else is skipped silently.
"""

from __future__ import annotations

import re
from typing import Iterator

from metro.errors import ExtractError

# Groups: test name, time, variance.  Digits may carry thousands separators.
BENCH_RE: re.Pattern[str] = re.compile(
    r"\s*test\s+(\S+)\s*\.\.\.\s*bench:\s*([0-9,]+) ns/iter \(\+/- ([0-9,]+)\)"
)

_SEPARATOR = ","


def _parse_count(text: str, name: str) -> int:
    digits = text.replace(_SEPARATOR, "")
    try:
        value = int(digits)
    except ValueError as exc:
        raise ExtractError(f"cannot parse `{text}` in benchmark line for test `{name}`") from exc
    if value < 0:
        raise ExtractError(f"negative value `{text}` in benchmark line for test `{name}`")
    return value


def extract_measurement(line: str) -> tuple[str, int, int] | None:
    """Parse one line of benchmark output.

    Returns:
        ``(name, time, variance)`` with separators stripped, or None if
        the line is not a benchmark result.

    Raises:
        ExtractError: If the line matched but a number did not parse,
            which means the pattern and the parser disagree.
    """
    match = BENCH_RE.search(line)
    if match is None:
        return None
    name, time_str, variance_str = match.group(1), match.group(2), match.group(3)
    return name, _parse_count(time_str, name), _parse_count(variance_str, name)


def extract_all(text: str) -> Iterator[tuple[str, int, int]]:
    """Yield every benchmark result found in *text*, in output order."""
    for line in text.splitlines():
        found = extract_measurement(line)
        if found is not None:
            yield found

"""Shared text formatting helpers for metro.

Durations, ``ns/iter`` values and aligned tables used by the CLI.
"""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Examples: ``'8s'``, ``'1m 23s'``, ``'1h 12m 34s'``. Always whole seconds
    (truncated, not rounded).
    """
    total = int(seconds)
    if total >= 3600:
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h}h {m:2d}m {s:2d}s"
    if total >= 60:
        m = total // 60
        s = total % 60
        return f"{m}m {s:2d}s"
    return f"{total}s"


def format_ns(value: int) -> str:
    """Format a nanosecond count with thousands separators, as bench tools print it."""
    return f"{value:,}"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    max_col_width: dict[int, int] | None = None,
    indent: int = 2,
) -> str:
    """Format rows as an aligned text table.

    Column widths follow the widest cell.  Cells longer than
    *max_col_width* for their column are cut with a ``'...'`` suffix.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.  Short rows
            are padded with empty cells.
        alignments: Per-column alignment: ``'l'`` or ``'r'``.
        max_col_width: Column index to max width mapping.
        indent: Number of leading spaces per line.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))
    limits = max_col_width or {}

    def _cut(text: str, col: int) -> str:
        limit = limits.get(col)
        if limit is None or len(text) <= limit:
            return text
        return text[: limit - 3] + "..."

    table = [[_cut(h, i) for i, h in enumerate(headers)]]
    for row in rows:
        cells = (list(row) + [""] * ncols)[:ncols]
        table.append([_cut(c, i) for i, c in enumerate(cells)])

    widths = [max(len(r[i]) for r in table) for i in range(ncols)]
    prefix = " " * indent

    lines = []
    for r in table:
        cells = [
            r[i].rjust(widths[i]) if aligns[i] == "r" else r[i].ljust(widths[i])
            for i in range(ncols)
        ]
        lines.append((prefix + "  ".join(cells)).rstrip())
    return "\n".join(lines)

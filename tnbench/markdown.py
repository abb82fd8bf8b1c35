"""Render benchmark results as Markdown reports."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from tnbench.csvexport import SavedResults

logger = logging.getLogger(__name__)

_MIN_COLUMN_WIDTH = 3


@dataclass(frozen=True)
class _GroupKey:
    branching_factor: int
    procedure: str
    visibility: str
    data_points: int
    qty_streams: int
    unix_only: bool


def format_table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Format a pretty-printed Markdown table; every line ends with a newline."""
    headers = [str(h) for h in headers]
    if not headers:
        raise ValueError("a table needs at least one column")
    body = [[str(cell) for cell in row] for row in rows]
    for number, row in enumerate(body, start=1):
        if len(row) != len(headers):
            raise ValueError(
                f"row {number} has {len(row)} cells, expected {len(headers)}"
            )

    widths = [
        max(_MIN_COLUMN_WIDTH, len(header), *(len(row[col]) for row in body))
        for col, header in enumerate(headers)
    ]

    def line(cells: Sequence[str]) -> str:
        padded = (cell.ljust(width) for cell, width in zip(cells, widths))
        return "| " + " | ".join(padded) + " |\n"

    parts = [line(headers), line(["-" * width for width in widths])]
    parts.extend(line(row) for row in body)
    return "".join(parts)


def _validate_sample_counts(results: Sequence[SavedResults]) -> None:
    if len({r.samples for r in results}) > 1:
        raise ValueError("results have different amount of samples")


def _group_results(results: Iterable[SavedResults]) -> dict[_GroupKey, int]:
    return {
        _GroupKey(
            branching_factor=r.branching_factor,
            procedure=r.procedure,
            visibility=r.visibility,
            data_points=r.data_points,
            qty_streams=r.qty_streams,
            unix_only=r.unix_only,
        ): r.duration_ms
        for r in results
    }


def _header_text(results: Sequence[SavedResults], current_date: datetime) -> str:
    if not results:
        raise ValueError("cannot write a report header without results")
    date_str = current_date.strftime("%Y-%m-%d %H:%M:%S")
    return (
        f"Date: {date_str}\n\n## Data points / Qty streams\n\n"
        f"Samples per query: {results[0].samples}\n"
        "Results in milliseconds\n\n"
    )


def _table_for_unix_mode(
    grouped: dict[_GroupKey, int],
    bf: int,
    proc: str,
    vis: str,
    unix_mode: bool,
    data_points: list[int],
    qty_streams: list[int],
) -> str:
    def key(d: int, q: int) -> _GroupKey:
        return _GroupKey(bf, proc, vis, d, q, unix_mode)

    existing_qty = [
        q for q in qty_streams if any(key(d, q) in grouped for d in data_points)
    ]
    headers = ["Data points / Qty streams", *(str(q) for q in existing_qty)]

    rows = []
    for d in data_points:
        cells = [str(grouped[key(d, q)]) if key(d, q) in grouped else "-"
                 for q in existing_qty]
        if any(cell != "-" for cell in cells):
            rows.append([str(d), *cells])

    mode = "true" if unix_mode else "false"
    return f"**UnixOnly = {mode}**\n\n" + format_table(headers, rows) + "\n\n"


def _report_body(results: Sequence[SavedResults], instance_type: str) -> str:
    data_points = sorted({r.data_points for r in results})
    qty_streams = sorted({r.qty_streams for r in results})
    branching_factors = sorted({r.branching_factor for r in results})
    grouped = _group_results(results)

    parts = [f"### {instance_type}\n\n"]
    for bf in branching_factors:
        parts.append(f"#### Branching Factor: {bf}\n\n")
        procs = sorted({k.procedure for k in grouped if k.branching_factor == bf})
        for proc in procs:
            visibilities = sorted(
                {k.visibility for k in grouped
                 if k.branching_factor == bf and k.procedure == proc}
            )
            for vis in visibilities:
                parts.append(f"{instance_type} - {proc} - {vis}\n\n")
                unix_modes = sorted(
                    {k.unix_only for k in grouped
                     if k.branching_factor == bf and k.procedure == proc
                     and k.visibility == vis}
                )
                for mode in unix_modes:
                    parts.append(
                        _table_for_unix_mode(
                            grouped, bf, proc, vis, mode, data_points, qty_streams
                        )
                    )
                parts.append("\n")
            parts.append("\n")
    return "".join(parts)


def save_as_markdown(
    results: Sequence[SavedResults],
    current_date: datetime,
    instance_type: str,
    file_path: str | os.PathLike,
) -> None:
    """Append a Markdown report for one instance type to ``file_path``.

    A header with the date and sample count is written first when the file
    is empty. All results must share the same sample count.
    """
    results = list(results)
    _validate_sample_counts(results)
    body = _report_body(results, instance_type)

    with open(file_path, "a", encoding="utf-8") as handle:
        if handle.tell() == 0:
            handle.write(_header_text(results, current_date))
        handle.write(body)

    logger.info("Saving to %s complete!", file_path)
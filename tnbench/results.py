"""Benchmark cases, results and the helpers that prepare and report them."""

from __future__ import annotations

import random
import secrets
import subprocess
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, TypeVar

from tnbench.csvexport import SavedResults, save_or_append_to_csv
from tnbench.trees import Tree

T = TypeVar("T")

READER_ADDRESS = "0x0000000000000000010000000000000000000001"
DEPLOYER = "0x0000000000000000000000000000000200000000"
FIXED_DATE = datetime(2021, 1, 1, tzinfo=timezone.utc)
MAX_DEPTH = 179  # found empirically
DAILY_INTERVAL = timedelta(days=1)
SECOND_INTERVAL = timedelta(seconds=1)
POSTGRES_CONTAINER = "kwil-testing-postgres"
ANALYZED_TABLES = ("taxonomies", "streams", "primitive_events", "metadata")
_MAX_RECORD_VALUE = 100_000_000_000_000


class Procedure(str, Enum):
    """Stream procedures that a benchmark can query."""

    GET_RECORD = "get_record"
    GET_INDEX = "get_index"
    GET_CHANGE_INDEX = "get_index_change"
    GET_FIRST_RECORD = "get_first_record"
    GET_LAST_RECORD = "get_last_record"


class Visibility(IntEnum):
    """Stream visibility."""

    PUBLIC = 0
    PRIVATE = 1


@dataclass
class BenchmarkCase:
    """One tree shape to benchmark, with the queries to run against it."""

    qty_streams: int
    branching_factor: int
    data_points_set: list[int]
    visibility: Visibility = Visibility.PUBLIC
    samples: int = 1
    procedures: list[Procedure] = field(default_factory=lambda: list(Procedure))


@dataclass
class Result:
    """Timings and memory use of one procedure over one data-point count."""

    case: BenchmarkCase
    procedure: Procedure
    data_points: int
    max_depth: int = 0
    memory_usage: int = 0
    case_durations: list[timedelta] = field(default_factory=list)


@dataclass(frozen=True)
class RangeParameters:
    """An inclusive time range holding ``data_points`` one-second points."""

    data_points: int
    from_date: datetime
    to_date: datetime


@dataclass(frozen=True)
class Record:
    """A primitive stream record."""

    event_time: int
    value: float


def get_range_parameters(data_points: int) -> RangeParameters:
    """Return the range that ends at the fixed date and holds ``data_points`` seconds."""
    to_date = FIXED_DATE
    from_date = to_date - SECOND_INTERVAL * (data_points - 1)
    return RangeParameters(data_points=data_points, from_date=from_date, to_date=to_date)


def get_max_range_params(data_points: Iterable[int]) -> RangeParameters:
    """Return the range for the largest of the given data-point counts."""
    counts = list(data_points)
    if not counts:
        raise ValueError("no data point counts given")
    return get_range_parameters(max(counts))


def generate_records(range_params: RangeParameters) -> list[Record]:
    """Create one record with a random value for every second of the range, inclusive."""
    records = []
    current = range_params.from_date
    while current <= range_params.to_date:
        records.append(
            Record(
                event_time=int(current.timestamp()),
                value=float(random.randrange(_MAX_RECORD_VALUE)),
            )
        )
        current += SECOND_INTERVAL
    return records


def rand_date(min_date: datetime, max_date: datetime) -> datetime:
    """Return a random whole-second time in [min_date, max_date)."""
    start = int(min_date.timestamp())
    delta = int(max_date.timestamp()) - start
    if delta <= 0:
        raise ValueError("max_date must be later than min_date")
    return datetime.fromtimestamp(start + random.randrange(delta), tz=timezone.utc)


def mock_read_wallets(n: int) -> list[str]:
    """Return ``n`` random lower-case Ethereum addresses."""
    return ["0x" + secrets.token_hex(20) for _ in range(n)]


def build_procedure_args(
    procedure: Procedure,
    data_provider: str,
    stream_id: str,
    from_date: int,
    to_date: int,
) -> list[Any]:
    """Build the positional arguments a stream procedure is called with."""
    procedure = Procedure(procedure)
    locator = [data_provider, stream_id]
    if procedure in (Procedure.GET_FIRST_RECORD, Procedure.GET_LAST_RECORD):
        # after/before date and frozen_at
        return [*locator, None, None]
    args = [*locator, from_date, to_date, None]
    if procedure is Procedure.GET_INDEX:
        args.append(None)  # base date
    elif procedure is Procedure.GET_CHANGE_INDEX:
        args.extend([None, 1])  # base date, days interval
    return args


def analyze_statement(tables: Iterable[str] = ANALYZED_TABLES) -> str:
    """Return an ANALYZE statement for the given tables of the main schema."""
    return "ANALYZE {};".format(", ".join(f"main.{table}" for table in tables))


def check_tree_depth(tree: Tree) -> Tree:
    """Return ``tree`` unchanged, or raise if it is deeper than the database allows."""
    if tree.max_depth > MAX_DEPTH:
        raise ValueError(
            f"tree max depth ({tree.max_depth}) is greater than max depth ({MAX_DEPTH})"
        )
    return tree


def average(values: Sequence[T]) -> T:
    """Return the mean; integers are divided with truncation toward zero."""
    values = list(values)
    if not values:
        raise ValueError("cannot average an empty sequence")
    if all(isinstance(v, timedelta) for v in values):
        return sum(values, timedelta()) / len(values)
    total = sum(values)
    if all(isinstance(v, int) for v in values):
        quotient = abs(total) // len(values)
        return -quotient if total < 0 else quotient
    return total / len(values)


def chunk(items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split ``items`` into lists of ``chunk_size``; the last may be shorter."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    items = list(items)
    return [items[start:start + chunk_size] for start in range(0, len(items), chunk_size)]


def visibility_to_string(visibility: Any) -> str:
    """Return "Public", "Private" or "Unknown"."""
    if visibility == Visibility.PUBLIC:
        return "Public"
    if visibility == Visibility.PRIVATE:
        return "Private"
    return "Unknown"


def format_memory_usage(memory_usage: int) -> str:
    """Format a byte count in whole megabytes."""
    return f"{memory_usage // 1024 // 1024} MB"


def _decimal(value: int, scale: int) -> str:
    whole, rest = divmod(value, scale)
    digits = str(rest).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def _format_duration(duration: timedelta) -> str:
    ns = ((duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds) * 1000
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns == 0:
        return "0s"
    if ns < 1000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_decimal(ns, 1000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_decimal(ns, 1_000_000)}ms"
    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    seconds = _decimal(rest, 1_000_000_000) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


def format_results(results: Iterable[Result]) -> str:
    """Render results as the human-readable report."""
    lines = ["Benchmark Results:"]
    for r in results:
        lines.append(
            f"Qty Streams: {r.case.qty_streams}, "
            f"Branching Factor: {r.case.branching_factor}, "
            f"Data Points: {r.data_points}, "
            f"Visibility: {visibility_to_string(r.case.visibility)}, "
            f"Procedure: {Procedure(r.procedure).value}, "
            f"Samples: {r.case.samples}, "
            f"Memory Usage: {format_memory_usage(r.memory_usage)}"
        )
        lines.append(f"  Mean Duration: {_format_duration(average(r.case_durations))}")
        lines.append(f"  Min Duration: {_format_duration(min(r.case_durations))}")
        lines.append(f"  Max Duration: {_format_duration(max(r.case_durations))}")
        lines.append("")
    return "\n".join(lines) + "\n"


def print_results(results: Iterable[Result]) -> None:
    """Print the results report to standard output."""
    print(format_results(results), end="")


def save_results(results: Iterable[Result], file_path: str | Path) -> None:
    """Append the results, with mean durations in milliseconds, to a CSV file."""
    saved = [
        SavedResults(
            procedure=Procedure(r.procedure).value,
            samples=r.case.samples,
            branching_factor=r.case.branching_factor,
            qty_streams=r.case.qty_streams,
            data_points=r.data_points,
            duration_ms=average(r.case_durations) // timedelta(milliseconds=1),
            visibility=visibility_to_string(r.case.visibility),
        )
        for r in results
    ]
    save_or_append_to_csv(saved, file_path)


def delete_file_if_exists(file_path: str | Path) -> None:
    """Delete a results CSV file and its Markdown companion, if present."""
    csv_path = str(file_path)
    Path(csv_path).unlink(missing_ok=True)
    Path(csv_path.replace(".csv", ".md", 1)).unlink(missing_ok=True)


def cleanup_docker() -> bool:
    """Force-remove the benchmark database container; return whether it worked."""
    try:
        subprocess.run(["docker", "rm", "-f", POSTGRES_CONTAINER], check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        print(f"Error during cleanup: {exc}")
        return False
    return True
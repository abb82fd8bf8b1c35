"""Save benchmark results to CSV files and load them back."""

import csv
import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Any, Iterable, TextIO, TypeVar

T = TypeVar("T")

_INT_RE = re.compile(r"^[+-]?\d+$")
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_TYPE_NAMES = {"int": int, "str": str, "bool": bool, "float": float}


@dataclass
class SavedResults:
    """One benchmark measurement as it is stored in a results file."""

    procedure: str = ""
    branching_factor: int = 0
    qty_streams: int = 0
    data_points: int = 0
    duration_ms: int = 0
    visibility: str = ""
    samples: int = 0
    unix_only: bool = False


def _column_fields(record_type: type) -> "list[tuple[str, dataclasses.Field]]":
    """Return (column name, field) pairs for a dataclass type.

    A field's column name defaults to its own name; ``metadata={"csv": name}``
    renames it and ``metadata={"csv": False}`` leaves it out.
    """
    if not dataclasses.is_dataclass(record_type):
        raise TypeError(f"{record_type!r} is not a dataclass")
    columns = []
    for field in dataclasses.fields(record_type):
        name = field.metadata.get("csv", field.name)
        if name is False or name in ("", "-"):
            continue
        columns.append((str(name), field))
    if not columns:
        raise ValueError("no CSV columns found in record type")
    return columns


def _field_type(field: dataclasses.Field) -> Any:
    """Return the field's type, resolving simple names given as text."""
    target = field.type
    if isinstance(target, str):
        return _TYPE_NAMES.get(target.strip(), target)
    return target


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def save_or_append_to_csv(data: Iterable[Any], file_path: "str | os.PathLike") -> None:
    """Append records to a CSV file, writing the header first if the file is empty."""
    items = list(data)
    record_type = type(items[0]) if items else SavedResults
    columns = _column_fields(record_type)

    with open(file_path, "a", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        if handle.tell() == 0:
            writer.writerow([name for name, _ in columns])
        for item in items:
            writer.writerow(
                _format_value(getattr(item, field.name)) for _, field in columns
            )


def _convert(value: str, target: Any) -> Any:
    if target is bool:
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
        raise ValueError(f"invalid boolean: {value!r}")
    if target is int:
        if not _INT_RE.match(value):
            raise ValueError(f"invalid integer: {value!r}")
        return int(value)
    if target is float:
        return float(value)
    if target is str:
        return value
    raise TypeError(f"unsupported field type: {target!r}")


def load_csv(reader: TextIO, record_type: "type[T]" = SavedResults) -> "list[T]":
    """Read records of ``record_type`` from CSV text, matching columns by header name."""
    rows = [row for row in csv.reader(reader) if row]
    if not rows:
        raise ValueError("CSV file is empty")

    header, *records = rows
    positions = {name: index for index, name in enumerate(header)}
    columns = _column_fields(record_type)

    loaded = []
    for line_number, record in enumerate(records, start=2):
        if len(record) != len(header):
            raise ValueError(
                f"record on line {line_number}: wrong number of fields"
            )
        values: "dict[str, Any]" = {}
        for name, field in columns:
            index = positions.get(name)
            if index is None or index >= len(record):
                continue
            try:
                values[field.name] = _convert(record[index], _field_type(field))
            except (ValueError, TypeError) as exc:
                raise ValueError(f"error setting field {field.name}: {exc}") from exc
        loaded.append(record_type(**values))
    return loaded
"""Merge per-instance benchmark CSV files into one Markdown and one CSV report."""

from __future__ import annotations

import argparse
import logging
import os
import re
import shutil
import sys
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from tnbench.csvexport import load_csv, save_or_append_to_csv
from tnbench.markdown import save_as_markdown

logger = logging.getLogger(__name__)

_REPORT_TIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
_CSV_KEY_RE = re.compile(r"^.*_.*\.csv$")


def parse_report_time(key_prefix: str) -> datetime:
    """Parse a prefix such as ``2024-08-28T21:10:57.926Z`` as a UTC time."""
    if not _REPORT_TIME_RE.match(key_prefix):
        raise ValueError(f"invalid report time: {key_prefix!r}")
    parsed = datetime.strptime(key_prefix, "%Y-%m-%dT%H:%M:%S.%fZ")
    return parsed.replace(tzinfo=timezone.utc)


def select_csv_keys(keys: Iterable[str]) -> list[str]:
    """Keep keys shaped like ``<prefix>_<instance type>.csv``, sorted."""
    return sorted(key for key in keys if _CSV_KEY_RE.match(key))


def instance_type_from_key(key: str) -> str:
    """Return the instance type between the last underscore and ``.csv``."""
    tail = key[key.rfind("_") + 1:]
    end = tail.rfind(".csv")
    if end < 0:
        raise ValueError(f"not a CSV key: {key!r}")
    return tail[:end]


def _list_keys(source_dir: Path, key_prefix: str) -> list[str]:
    keys = []
    for path in source_dir.rglob("*"):
        if path.is_file():
            key = path.relative_to(source_dir).as_posix()
            if key.startswith(key_prefix):
                keys.append(key)
    return keys


def export_results(
    source_dir: str | os.PathLike,
    key_prefix: str,
    output_dir: str | os.PathLike,
) -> tuple[Path, Path]:
    """Merge the CSV files under ``key_prefix`` into ``reports/<prefix>.md`` and ``.csv``.

    Returns the paths of the Markdown and CSV reports.
    """
    source = Path(source_dir)
    logger.info("Starting export process for %s, key: %s", source, key_prefix)
    report_time = parse_report_time(key_prefix)

    csv_keys = select_csv_keys(_list_keys(source, key_prefix))
    if not csv_keys:
        raise FileNotFoundError("no CSV files to process")
    logger.info("Found %d CSV files to process", len(csv_keys))

    reports = Path(output_dir) / "reports"
    md_target = reports / f"{key_prefix}.md"
    csv_target = reports / f"{key_prefix}.csv"

    with tempfile.TemporaryDirectory() as work:
        md_work = Path(work) / "results.md"
        csv_work = Path(work) / "results.csv"
        for number, key in enumerate(csv_keys, start=1):
            logger.info("Processing file %d/%d: %s", number, len(csv_keys), key)
            instance_type = instance_type_from_key(key)
            with open(source / key, newline="", encoding="utf-8") as handle:
                results = load_csv(handle)
            save_as_markdown(results, report_time, instance_type, md_work)
            save_or_append_to_csv(results, csv_work)

        reports.mkdir(parents=True, exist_ok=True)
        shutil.move(str(md_work), md_target)
        shutil.move(str(csv_work), csv_target)

    logger.info("Export process completed successfully")
    return md_target, csv_target


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        description="Merge benchmark CSV results into Markdown and CSV reports."
    )
    parser.add_argument("source_dir", help="directory holding <prefix>_<instance>.csv files")
    parser.add_argument("key_prefix", help="report timestamp, e.g. 2024-08-28T21:10:57.926Z")
    parser.add_argument("--output-dir", help="where reports/ is written (default: source_dir)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr,
                        format="%(asctime)s %(levelname)s %(message)s")
    try:
        md_path, csv_path = export_results(
            args.source_dir, args.key_prefix, args.output_dir or args.source_dir
        )
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    print(md_path)
    print(csv_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
# tnbench

Helpers for benchmarking stream query procedures (`get_record`, `get_index`,
`get_index_change`, `get_first_record`, `get_last_record`) over trees of
primitive and composed streams, and for turning the measured results into
CSV files and Markdown reports. It has no dependencies outside the standard
library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `tnbench.trees`

- `new_tree(qty_streams, branching_factor)` builds a `Tree` breadth first:
  node 0 is the root, each node gets up to `branching_factor` children in
  index order, and every node without children has `is_leaf` set.
- `calculate_tree_depth(qty_streams, branching_factor)` returns
  `ceil(log(qty_streams) / log(branching_factor))`; a branching factor of 1
  gives `qty_streams`. Non-positive arguments raise `ValueError`.
- `Tree.to_display(index)` lists the edges below `index` as
  `parent child` lines, breadth first.

### `tnbench.csvexport`

- `SavedResults` is a dataclass for one result row: `procedure`,
  `branching_factor`, `qty_streams`, `data_points`, `duration_ms`,
  `visibility`, `samples`, `unix_only`.
- `save_or_append_to_csv(data, file_path)` appends dataclass records to a
  CSV file and writes the header row only when the file is empty. Booleans
  are written as `true`/`false`.
- `load_csv(reader, record_type=SavedResults)` reads records from a text
  stream, matching columns by header name. An empty input, a row with the
  wrong number of fields, or a value that does not fit its field raises
  `ValueError`.

### `tnbench.markdown`

- `format_table(headers, rows)` renders an aligned Markdown table (columns
  at least three characters wide).
- `save_as_markdown(results, current_date, instance_type, file_path)`
  appends a report section for one instance type, grouped by branching
  factor, procedure, visibility and `unix_only`, with one table of data
  points against quantity of streams (durations in milliseconds, `-` where
  there is no value). When the file is empty a header with the date and
  the sample count is written first. Results with differing sample counts
  raise `ValueError`.

### `tnbench.results`

- `Procedure` and `Visibility` enums; `BenchmarkCase`, `Result`,
  `RangeParameters` and `Record` dataclasses.
- `get_range_parameters(data_points)` gives a one-second-step range ending
  at 2021-01-01 00:00:00 UTC; `get_max_range_params(data_points)` does so
  for the largest count; `generate_records(range_params)` makes one
  random-valued `Record` per second, inclusive; `rand_date(min_date,
  max_date)` picks a whole-second time in `[min_date, max_date)`.
- `mock_read_wallets(n)` returns random Ethereum-style addresses.
- `build_procedure_args(procedure, data_provider, stream_id, from_date,
  to_date)` builds the positional arguments each procedure is called with.
- `analyze_statement(tables)` builds an `ANALYZE main.<table>, ...;`
  statement; `check_tree_depth(tree)` raises `ValueError` above a depth of
  179.
- `average`, `chunk`, `visibility_to_string`, `format_memory_usage`.
- `format_results(results)` / `print_results(results)` produce the
  human-readable report; `save_results(results, file_path)` appends the
  results, with mean durations in milliseconds, to a CSV file.
- `delete_file_if_exists(file_path)` removes a results CSV file and its
  `.md` companion; `cleanup_docker()` runs
  `docker rm -f kwil-testing-postgres` and returns whether it succeeded.

### `tnbench.memcollector`

- `DockerMemoryCollector(container_name)` samples a container's memory use
  (usage minus page cache) from the Docker Engine stats stream in a
  background thread and keeps the peak. It talks to the Engine API over
  `DOCKER_HOST` (`unix://`, `tcp://` or `http://`) or
  `/var/run/docker.sock`. Use `start()`, `wait_for_first_sample()`,
  `max_memory_usage()` and `stop()`, or use it as a context manager.
  Errors in the background thread are raised from these calls.
- `start_docker_memory_collector(container_name)` creates and starts one.
- `memory_usage_from_stats(stats)` and `find_container_id(containers,
  container_name)` are the pieces it is built from.

### `tnbench.exportresults`

Merges the per-instance CSV files of one run. Each file is named
`<timestamp>_<instance type>.csv`, the timestamp looking like
`2024-08-28T21:10:57.926Z`. `export_results(source_dir, key_prefix,
output_dir)` reads every such file under `source_dir` whose relative path
starts with `key_prefix`, in sorted order, and writes
`reports/<key_prefix>.md` and `reports/<key_prefix>.csv` under
`output_dir`. It raises `FileNotFoundError` when no file matches and
`ValueError` for a malformed timestamp.

From the command line:

```
tnbench-export SOURCE_DIR 2024-08-28T21:10:57.926Z --output-dir OUTPUT_DIR
```

Without `--output-dir` the reports go under `SOURCE_DIR`. The command
prints the two report paths, and exits with status 1 on error.

## Example

```python
from tnbench.csvexport import SavedResults, save_or_append_to_csv, load_csv
from tnbench.trees import new_tree

tree = new_tree(6, 3)
print(tree.to_display(0))  # 0 1 / 0 2 / 0 3 / 1 4 / 1 5, one per line

rows = [
    SavedResults(
        procedure="get_record",
        branching_factor=3,
        qty_streams=6,
        data_points=365,
        duration_ms=42,
        visibility="Public",
        samples=1,
        unix_only=False,
    )
]
save_or_append_to_csv(rows, "results.csv")

with open("results.csv", newline="") as handle:
    print(load_csv(handle, SavedResults))
```

## What it does not do

The package does not run benchmarks against a database: it does not create
streams, insert records, set taxonomies or metadata, or call the query
procedures. It provides the tree shapes, arguments, memory sampling and
reporting around such a run, and the merging of result files already
written to a local directory.
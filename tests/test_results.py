import re
import subprocess
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from tnbench.csvexport import load_csv
from tnbench.results import (
    FIXED_DATE,
    MAX_DEPTH,
    BenchmarkCase,
    Procedure,
    Result,
    Visibility,
    analyze_statement,
    average,
    build_procedure_args,
    check_tree_depth,
    chunk,
    cleanup_docker,
    delete_file_if_exists,
    format_memory_usage,
    format_results,
    generate_records,
    get_max_range_params,
    get_range_parameters,
    mock_read_wallets,
    print_results,
    rand_date,
    save_results,
    visibility_to_string,
)
from tnbench.trees import new_tree


def _result(durations, procedure=Procedure.GET_RECORD, memory=0):
    case = BenchmarkCase(
        qty_streams=400,
        branching_factor=8,
        data_points_set=[365],
        visibility=Visibility.PUBLIC,
        samples=len(durations),
    )
    return Result(
        case=case,
        procedure=procedure,
        data_points=365,
        max_depth=3,
        memory_usage=memory,
        case_durations=list(durations),
    )


def test_fixed_date_and_single_point_range():
    assert FIXED_DATE == datetime(2021, 1, 1, tzinfo=timezone.utc)
    params = get_range_parameters(1)
    assert params.from_date == params.to_date == FIXED_DATE


@pytest.mark.parametrize("points", [2, 7, 365])
def test_range_span_matches_points(points):
    params = get_range_parameters(points)
    assert params.to_date == FIXED_DATE
    assert (params.to_date - params.from_date).total_seconds() == points - 1
    assert params.data_points == points


def test_max_range_params():
    assert get_max_range_params([1, 365, 7]) == get_range_parameters(365)
    with pytest.raises(ValueError):
        get_max_range_params([])


def test_generate_records_covers_range():
    params = get_range_parameters(30)
    records = generate_records(params)
    assert len(records) == 30
    times = [r.event_time for r in records]
    assert times[0] == int(params.from_date.timestamp())
    assert times[-1] == int(params.to_date.timestamp())
    assert all(b - a == 1 for a, b in zip(times, times[1:]))
    assert all(0 <= r.value < 100000000000000 for r in records)


def test_rand_date_in_range():
    start = FIXED_DATE
    end = FIXED_DATE + timedelta(days=10)
    for _ in range(50):
        assert start <= rand_date(start, end) < end
    with pytest.raises(ValueError):
        rand_date(start, start)


def test_mock_read_wallets():
    wallets = mock_read_wallets(5)
    assert len(wallets) == 5
    assert all(re.fullmatch(r"0x[0-9a-f]{40}", w) for w in wallets)
    assert len(set(wallets)) == 5


def test_build_procedure_args():
    dp, sid = "0xabc", "stream"
    assert build_procedure_args(Procedure.GET_RECORD, dp, sid, 1, 2) == [dp, sid, 1, 2, None]
    assert build_procedure_args(Procedure.GET_INDEX, dp, sid, 1, 2) == [dp, sid, 1, 2, None, None]
    assert build_procedure_args(Procedure.GET_CHANGE_INDEX, dp, sid, 1, 2) == [
        dp, sid, 1, 2, None, None, 1,
    ]
    assert build_procedure_args(Procedure.GET_FIRST_RECORD, dp, sid, 1, 2) == [dp, sid, None, None]
    assert build_procedure_args("get_last_record", dp, sid, 1, 2) == [dp, sid, None, None]


def test_procedure_values():
    assert [p.value for p in Procedure] == [
        "get_record", "get_index", "get_index_change", "get_first_record", "get_last_record",
    ]
    lengths = [
        len(build_procedure_args(p.value, "0xabc", "stream", 1, 2)) for p in Procedure
    ]
    assert lengths == [5, 6, 7, 4, 4]


def test_analyze_statement():
    assert analyze_statement(["taxonomies", "streams"]) == "ANALYZE main.taxonomies, main.streams;"
    assert analyze_statement().startswith("ANALYZE main.taxonomies,")


def test_check_tree_depth():
    tree = new_tree(50, 1)
    assert check_tree_depth(tree) is tree
    with pytest.raises(ValueError, match="greater than max depth"):
        check_tree_depth(new_tree(MAX_DEPTH + 1, 1))


def test_average():
    assert average([1.0, 2.0]) == 1.5
    assert average([timedelta(milliseconds=10), timedelta(milliseconds=30)]) == timedelta(milliseconds=20)
    assert average([3, 3, 3]) == 3
    with pytest.raises(ValueError):
        average([])


def test_chunk():
    items = list(range(5))
    parts = chunk(items, 2)
    assert parts == [[0, 1], [2, 3], [4]]
    assert [x for part in parts for x in part] == items
    assert chunk([], 3) == []
    with pytest.raises(ValueError):
        chunk(items, 0)


def test_visibility_to_string():
    assert visibility_to_string(Visibility.PUBLIC) == "Public"
    assert visibility_to_string(Visibility.PRIVATE) == "Private"
    assert visibility_to_string(7) == "Unknown"


def test_format_memory_usage():
    assert format_memory_usage(5 * 1024 * 1024) == "5 MB"
    assert format_memory_usage(1024 * 1024 - 1) == "0 MB"


def test_format_results_durations():
    text = format_results([_result([timedelta(milliseconds=100), timedelta(milliseconds=300)])])
    lines = text.splitlines()
    assert lines[0] == "Benchmark Results:"
    assert lines[1].startswith("Qty Streams: 400, Branching Factor: 8, Data Points: 365")
    assert "Procedure: get_record" in lines[1]
    assert "Min Duration: 100ms" in text
    assert "Max Duration: 300ms" in text
    assert "Mean Duration: 200ms" in text


def test_format_results_long_durations():
    text = format_results([_result([timedelta(seconds=90)])])
    assert "Mean Duration: 1m30s" in text
    text = format_results([_result([timedelta(milliseconds=1500)])])
    assert "Max Duration: 1.5s" in text


def test_print_results(capsys):
    results = [_result([timedelta(milliseconds=100)])]
    print_results(results)
    assert capsys.readouterr().out == format_results(results)


def test_save_results_round_trip(tmp_path):
    path = tmp_path / "results.csv"
    save_results(
        [_result([timedelta(milliseconds=100), timedelta(milliseconds=300)], Procedure.GET_INDEX)],
        path,
    )
    with open(path, newline="", encoding="utf-8") as handle:
        loaded = load_csv(handle)
    assert len(loaded) == 1
    row = loaded[0]
    assert row.procedure == "get_index"
    assert row.duration_ms == 200
    assert row.qty_streams == 400
    assert row.branching_factor == 8
    assert row.visibility == "Public"
    assert row.samples == 2


def test_delete_file_if_exists(tmp_path):
    csv_path = tmp_path / "bench.csv"
    md_path = tmp_path / "bench.md"
    csv_path.write_text("x")
    md_path.write_text("y")
    delete_file_if_exists(csv_path)
    assert not csv_path.exists()
    assert not md_path.exists()
    delete_file_if_exists(csv_path)
    assert not csv_path.exists()


def test_cleanup_docker_success():
    with mock.patch("tnbench.results.subprocess.run") as run:
        assert cleanup_docker() is True
    assert run.call_args.args[0] == ["docker", "rm", "-f", "kwil-testing-postgres"]


def test_cleanup_docker_failure(capsys):
    error = subprocess.CalledProcessError(1, "docker")
    with mock.patch("tnbench.results.subprocess.run", side_effect=error):
        assert cleanup_docker() is False
    assert "Error during cleanup" in capsys.readouterr().out
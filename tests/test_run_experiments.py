"""
Batch driver tests on small instruction files
"""
import importlib
import json
import logging
import os

import matplotlib
import numpy as np
import pandas as pd
import pytest

import run_experiments as rex


def write(path, text):
    path.write_text(text)
    return str(path)


def test_parse_batches(tmp_path):
    path = write(tmp_path / "data.txt", "# 2\nI 5\nI 3\nF 3\nF 9\n# 1\nI 1\nF 1\n")
    batches = list(rex.parse_batches(path))
    assert batches == [
        rex.Batch(2, [5, 3], [3, 9]),
        rex.Batch(1, [1], [1]),
    ]


def test_parse_requires_leading_hash(tmp_path):
    path = write(tmp_path / "bad.txt", "2\nI 5\n")
    with pytest.raises(ValueError):
        list(rex.parse_batches(path))


def test_parse_short_insert_phase_continues_with_finds(tmp_path):
    path = write(tmp_path / "short.txt", "# 3\nI 5\nF 5\nX 1\nF 7\n")
    (batch,) = rex.parse_batches(path)
    assert batch.inserts == [5]
    assert batch.finds == [5, 7]


def test_parse_empty_file(tmp_path):
    path = write(tmp_path / "empty.txt", "")
    assert list(rex.parse_batches(path)) == []


def test_run_batch_averages_find_lengths():
    # Inserting 5 then 3 gives "5 L(3)".
    batch = rex.Batch(2, [5, 3], [5, 7])
    result = rex.run_batch(batch, 'double')
    # find(5) walks 0 steps, find(7) walks 1 step past the root.
    assert result == rex.BatchResult(2, 2, 1, 0.5)


def test_run_batch_without_finds():
    assert rex.run_batch(rex.Batch(1, [1], []), 'naive') is None


def test_process_file_writes_output(tmp_path):
    path = write(tmp_path / "data.txt", "# 2\nI 5\nI 3\nF 5\nF 7\n# 1\nI 1\n")
    results = rex.process_file(path, strategy='double')
    out = tmp_path / "double-data.out"
    assert out.read_text() == "2 0.5000\n"
    assert len(results) == 1


def test_output_path_for():
    assert rex.output_path_for("runs/data.txt", "naive").endswith("naive-data.out")


@pytest.mark.parametrize("pattern", ['sequential', 'random', 'subset', 'skewed', 'unknown'])
def test_generate_access_pattern(pattern):
    rng = np.random.default_rng(0)
    inserts, finds = rex.generate_access_pattern(pattern, 50, 120, rng, subset_size=10)
    assert sorted(inserts) == list(range(50))
    assert len(finds) == 120
    assert all(0 <= key < 50 for key in finds)
    if pattern == 'subset':
        assert len(set(finds)) <= 10


def test_write_batches_round_trips_through_parser(tmp_path):
    path = rex.write_batches(str(tmp_path / "gen.txt"), [10, 20], 'random', finds_per_key=2, seed=1)
    batches = list(rex.parse_batches(path))
    assert [b.size for b in batches] == [10, 20]
    assert [len(b.finds) for b in batches] == [20, 40]


def test_compare_strategies_and_statistics(tmp_path):
    path = rex.write_batches(str(tmp_path / "gen.txt"), [50, 100, 200], 'sequential', finds_per_key=2, seed=3)
    df = rex.compare_strategies(path)
    assert list(df.columns) == ['double', 'naive']
    assert list(df.index) == [50, 100, 200]
    assert (df > 0).all().all()

    results = rex.statistical_significance_tests(df)
    assert set(results) == {'double_vs_naive'}
    assert set(results['double_vs_naive']) == {'t_stat', 'p_value', 'mean_diff'}


def test_statistics_with_single_batch():
    df = pd.DataFrame({'double': [1.0], 'naive': [2.0]}, index=pd.Index([10], name='batch_size'))
    results = rex.statistical_significance_tests(df)
    assert np.isnan(results['double_vs_naive']['p_value'])
    assert results['double_vs_naive']['mean_diff'] == -1.0


def test_main_generates_and_reports(tmp_path):
    data = tmp_path / "data.txt"
    results_dir = tmp_path / "results"
    code = rex.main([str(data), '--generate', 'subset', '--sizes', '30', '60', '--seed', '5',
                     '--results-dir', str(results_dir), '--plot'])
    assert code == 0
    assert (tmp_path / "double-data.out").exists()
    assert (tmp_path / "naive-data.out").exists()
    assert len((tmp_path / "naive-data.out").read_text().splitlines()) == 2
    assert (results_dir / "find_lengths.png").exists()
    frame = pd.read_csv(results_dir / "find_lengths.csv", index_col='batch_size')
    assert list(frame.index) == [30, 60]
    with open(results_dir / "significance.json") as f:
        assert 'double_vs_naive' in json.load(f)


@pytest.mark.parametrize("text, token", [
    ("# 1\nI x\nF 1\n", "#4"),
    ("# 1\nI 1\nF #\n# 1\nI 2\n", "#6"),
])
def test_parse_invalid_key_reports_file_and_token(tmp_path, caplog, text, token):
    path = write(tmp_path / "keys.txt", text)
    with caplog.at_level(logging.ERROR, logger="SplayExperiment"):
        with pytest.raises(ValueError) as excinfo:
            list(rex.parse_batches(path))
    message = str(excinfo.value)
    assert f"token {token}" in message
    assert path in message
    assert any(r.levelno == logging.ERROR and path in r.getMessage() for r in caplog.records)


def test_setup_logging_follows_new_log_file(tmp_path):
    first = tmp_path / "first" / "experiment.log"
    second = tmp_path / "second" / "experiment.log"
    logger = rex.setup_logging(str(first))
    rex.setup_logging(str(second))
    logger.info("second run")

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    stream_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    assert [h.baseFilename for h in file_handlers] == [os.path.abspath(str(second))]
    assert len(stream_handlers) == 1
    file_handlers[0].flush()
    assert "second run" in second.read_text()
    assert "second run" not in first.read_text()


def test_import_leaves_matplotlib_backend_alone():
    matplotlib.use('svg')
    try:
        importlib.reload(rex)
        assert matplotlib.get_backend().lower() == 'svg'
    finally:
        matplotlib.use('Agg')

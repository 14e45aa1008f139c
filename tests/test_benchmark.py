import logging
import unittest

import pytest

from metrictree.__main__ import main
from metrictree.config import Config, TestingConfig, _env_int, config
from metrictree.services.benchmark import DATASETS, TreeBenchmark
from metrictree.utils.logging_config import get_logger, setup_logging
from metrictree.utils.metrics import MetricsCollector, metrics


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("metrictree")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestTreeBenchmark(unittest.TestCase):
    def setUp(self):
        self.collector = MetricsCollector()
        self.benchmark = TreeBenchmark(TestingConfig, self.collector)

    def test_integer_dataset(self):
        report = self.benchmark.run("int")
        self.assertTrue(report.ok)
        self.assertEqual(report.size, 2 * TestingConfig.INT_DATA_RADIUS + 1)
        self.assertEqual(report.duplicates, 0)
        self.assertEqual(report.query_stats["count"], TestingConfig.QUERY_COUNT)
        self.assertEqual(self.collector.get_gauge("int.height"), report.height)

    def test_string_dataset(self):
        report = self.benchmark.run("string", query_count=10)
        self.assertEqual(report.mismatches, 0)
        self.assertEqual(report.size, TestingConfig.STRING_COUNT)
        self.assertEqual(self.collector.get_timer_stats("string.search_within")["count"], 10)

    def test_phash_dataset(self):
        report = self.benchmark.run("phash")
        self.assertTrue(report.ok)
        self.assertGreater(report.size, 0)
        self.assertEqual(len(report.tree), report.size)

    def test_run_timed_by_own_collector(self):
        global_runs = metrics.get_timer_stats("benchmark_run")["count"]
        self.benchmark.run("int", query_count=1)
        self.assertEqual(self.collector.get_timer_stats("benchmark_run")["count"], 1)
        self.assertEqual(metrics.get_timer_stats("benchmark_run")["count"], global_runs)

    def test_unknown_dataset(self):
        with self.assertRaises(ValueError):
            self.benchmark.workload("floats")

    def test_negative_query_count(self):
        with self.assertRaises(ValueError):
            self.benchmark.workload("int", -1)

    def test_same_seed_same_workload(self):
        first = TreeBenchmark(TestingConfig, self.collector, seed=99).workload("string", 5)
        second = TreeBenchmark(TestingConfig, self.collector, seed=99).workload("string", 5)
        self.assertEqual(first.elements, second.elements)
        self.assertEqual(first.queries, second.queries)

    def test_integer_queries_stay_inside_data(self):
        workload = self.benchmark.workload("int", 50)
        limit = TestingConfig.INT_DATA_RADIUS
        for query, radius in workload.queries:
            self.assertLessEqual(abs(query) + radius, limit)

    def test_summary(self):
        report = self.benchmark.run("int", query_count=3)
        summary = report.summary()
        self.assertIn("dataset: int", summary)
        self.assertIn("average time(3 trials)", summary)
        self.assertIn("mismatches: 0", summary)


@pytest.mark.parametrize("dataset", DATASETS)
def test_cli_runs_each_dataset(dataset, capsys):
    assert main([dataset, "--config", "testing", "--queries", "5"]) == 0
    out = capsys.readouterr().out
    assert f"dataset: {dataset}" in out
    assert "mismatches: 0" in out


def test_cli_hides_large_tree(capsys):
    assert main(["int", "--config", "testing", "--queries", "1", "--show-tree"]) == 0
    assert "tree not shown" in capsys.readouterr().out


def test_cli_shows_small_tree(capsys, monkeypatch):
    monkeypatch.setattr(TestingConfig, "SHOW_TREE_LIMIT", 10000)
    assert main(["string", "--config", "testing", "--queries", "1", "--show-tree", "--seed", "3"]) == 0
    assert capsys.readouterr().out.startswith("height:")


def test_cli_shows_metrics(capsys):
    assert main(["int", "--config", "testing", "--queries", "2", "--show-metrics"]) == 0
    out = capsys.readouterr().out
    assert "metrics:" in out
    assert "timer int.search_within: count=2" in out
    assert "gauge int.height = " in out


def test_cli_writes_log_file(tmp_path, capsys):
    log_file = tmp_path / "logs" / "run.log"
    assert main(["int", "--config", "testing", "--queries", "1", "--log-file", str(log_file)]) == 0
    assert log_file.exists()


def test_cli_rejects_unknown_dataset():
    with pytest.raises(SystemExit):
        main(["floats"])


def test_config_profiles():
    assert config["testing"] is TestingConfig
    assert issubclass(config["default"], Config)
    assert TestingConfig.SEED is not None


def test_env_int(monkeypatch):
    monkeypatch.setenv("METRICTREE_TEST_VALUE", "42")
    assert _env_int("METRICTREE_TEST_VALUE", 1) == 42
    monkeypatch.setenv("METRICTREE_TEST_VALUE", "")
    assert _env_int("METRICTREE_TEST_VALUE", 1) == 1
    monkeypatch.delenv("METRICTREE_TEST_VALUE")
    assert _env_int("METRICTREE_TEST_VALUE", None) is None


def test_setup_logging_level_and_names():
    logger = setup_logging(log_level="debug", enable_console=False)
    assert logger.name == "metrictree"
    assert logger.level == logging.DEBUG
    assert get_logger("services.benchmark").name == "metrictree.services.benchmark"
    assert get_logger("metrictree.utils.bktree").name == "metrictree.utils.bktree"


def test_setup_logging_closes_replaced_handlers(tmp_path):
    logger = setup_logging(log_file=str(tmp_path / "first.log"), enable_console=False)
    first_handler = logger.handlers[0]
    assert first_handler.stream is not None

    setup_logging(log_file=str(tmp_path / "second.log"), enable_console=False)
    assert first_handler not in logger.handlers
    assert first_handler.stream is None

"""Benchmark service for metric trees.

Builds a tree over a random dataset, times construction and radius searches,
and checks every search result against a brute-force answer.
"""

import string
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Type

import imagehash
import numpy as np

from ..config import Config
from ..utils.bktree import MetricTree, build
from ..utils.distance import DistanceFunction, edit_distance, from_comparator, hamming_distance
from ..utils.logging_config import get_logger
from ..utils.metrics import MetricsCollector, TimerContext, metrics

logger = get_logger(__name__)

DATASETS = ('int', 'string', 'phash')

_ALPHABET = string.ascii_uppercase


def _subtract(a: int, b: int) -> int:
    return a - b


def _integer_range(query: int, radius: int) -> Set[int]:
    return set(range(query - radius, query + radius + 1))


def _brute_force(elements: List[Any], distance: DistanceFunction) -> Callable[[Any, int], Set[Any]]:
    def expected(query, radius):
        return {element for element in elements if distance(element, query) <= radius}
    return expected


@dataclass
class Workload:
    """A dataset, its distance function and the radius queries to run on it."""
    name: str
    elements: List[Any]
    distance: DistanceFunction
    queries: List[Tuple[Any, int]]
    expected: Callable[[Any, int], Set[Any]]


@dataclass
class BenchmarkReport:
    """Outcome of one benchmark run. Times are in seconds."""
    dataset: str
    size: int
    duplicates: int
    height: int
    build_seconds: float
    query_stats: Dict[str, float] = field(default_factory=dict)
    mismatches: int = 0
    tree: Optional[MetricTree] = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.mismatches == 0

    def summary(self) -> str:
        stats = self.query_stats
        lines = [
            f"dataset: {self.dataset}",
            f"construction time: {self.build_seconds * 1000:.1f}[ms] "
            f"({self.size} elements, {self.duplicates} duplicates, height={self.height})",
            f"average time({stats.get('count', 0)} trials): {stats.get('avg', 0) * 1000:.3f}[ms]  "
            f"divergence: {stats.get('stddev', 0) * 1000:.3f}[ms]",
            f"mismatches: {self.mismatches}",
        ]
        return "\n".join(lines)


class TreeBenchmark:
    """Runs timed, cross-checked radius searches against a freshly built tree."""

    def __init__(
        self,
        settings: Type[Config] = Config,
        collector: Optional[MetricsCollector] = None,
        seed: Optional[int] = None,
    ):
        self.settings = settings
        self.collector = collector if collector is not None else metrics
        self.rng = np.random.default_rng(seed if seed is not None else settings.SEED)

    def workload(self, dataset: str, query_count: Optional[int] = None) -> Workload:
        builders = {
            'int': self._integer_workload,
            'string': self._string_workload,
            'phash': self._phash_workload,
        }
        try:
            builder = builders[dataset]
        except KeyError:
            raise ValueError(f"Unknown dataset {dataset!r}, expected one of: {', '.join(DATASETS)}") from None

        count = self.settings.QUERY_COUNT if query_count is None else query_count
        if count < 0:
            raise ValueError(f"Query count must be non-negative, got {count}")
        return builder(count)

    def run(self, dataset: str, query_count: Optional[int] = None) -> BenchmarkReport:
        """Build the dataset's tree, then run and verify every query."""
        with TimerContext(self.collector, 'benchmark_run'):
            return self._run(dataset, query_count)

    def _run(self, dataset: str, query_count: Optional[int]) -> BenchmarkReport:
        workload = self.workload(dataset, query_count)
        logger.info(f"Building {dataset} tree over {len(workload.elements)} elements")

        with TimerContext(self.collector, f"{dataset}.build") as build_timer:
            tree = build(workload.elements, workload.distance)

        height = tree.height()
        duplicates = len(workload.elements) - len(tree)
        self.collector.set_gauge(f"{dataset}.height", height)
        self.collector.set_gauge(f"{dataset}.size", len(tree))
        logger.info(
            f"Construction time: {build_timer.duration * 1000:.1f}ms "
            f"({len(tree)} elements, height={height})"
        )

        durations: List[float] = []
        mismatches = 0
        for n, (query, radius) in enumerate(workload.queries, start=1):
            with TimerContext(self.collector, f"{dataset}.search_within") as query_timer:
                result = tree.search_within(query, radius)
            durations.append(query_timer.duration)

            answer = workload.expected(query, radius)
            if result != answer:
                mismatches += 1
                self.collector.increment_counter(f"{dataset}.mismatches")
                logger.error(
                    f"#{n} query {query!r} radius {radius}: expected {len(answer)} matches, "
                    f"got {len(result)} (missing {len(answer - result)}, extra {len(result - answer)})"
                )
            else:
                logger.debug(
                    f"#{n} query {query!r} radius {radius}: {len(result)} matches "
                    f"in {query_timer.duration * 1000:.3f}ms"
                )

        stats = MetricsCollector.summarize(durations)
        logger.info(
            f"Average search time ({stats['count']} trials): {stats['avg'] * 1000:.3f}ms, "
            f"divergence {stats['stddev'] * 1000:.3f}ms, {mismatches} mismatches"
        )

        return BenchmarkReport(
            dataset=dataset,
            size=len(tree),
            duplicates=duplicates,
            height=height,
            build_seconds=build_timer.duration,
            query_stats=stats,
            mismatches=mismatches,
            tree=tree,
        )

    def _integer_workload(self, query_count: int) -> Workload:
        data_radius = self.settings.INT_DATA_RADIUS
        if data_radius < 1:
            raise ValueError(f"INT_DATA_RADIUS must be at least 1, got {data_radius}")
        max_radius = max(data_radius // 1000, 1)
        query_limit = data_radius - max_radius

        elements = self.rng.permutation(np.arange(-data_radius, data_radius + 1)).tolist()
        queries = [
            (int(self.rng.integers(-query_limit, query_limit, endpoint=True)),
             int(self.rng.integers(0, max_radius)))
            for _ in range(query_count)
        ]
        # Every query range lies inside the data, so the answer is the whole range
        return Workload('int', elements, from_comparator(_subtract), queries, _integer_range)

    def _random_string(self) -> str:
        length = int(self.rng.integers(1, self.settings.STRING_MAX_LENGTH, endpoint=True))
        return ''.join(_ALPHABET[i] for i in self.rng.integers(0, len(_ALPHABET), size=length))

    def _string_workload(self, query_count: int) -> Workload:
        count = self.settings.STRING_COUNT
        strings: Set[str] = set()
        attempts = 0
        while len(strings) < count and attempts < count * 100:
            strings.add(self._random_string())
            attempts += 1
        if len(strings) < count:
            logger.warning(f"Only generated {len(strings)} distinct strings out of {count} requested")

        elements = sorted(strings)
        queries = [(self._random_string(), self.settings.STRING_RADIUS) for _ in range(query_count)]
        return Workload('string', elements, edit_distance, queries, _brute_force(elements, edit_distance))

    def _random_phash(self) -> imagehash.ImageHash:
        size = self.settings.PHASH_SIZE
        return imagehash.ImageHash(self.rng.random((size, size)) > 0.5)

    def _phash_workload(self, query_count: int) -> Workload:
        hashes: Dict[str, imagehash.ImageHash] = {}
        for _ in range(self.settings.PHASH_COUNT):
            phash = self._random_phash()
            hashes.setdefault(str(phash), phash)

        elements = list(hashes.values())
        queries = [(self._random_phash(), self.settings.PHASH_RADIUS) for _ in range(query_count)]
        return Workload('phash', elements, hamming_distance, queries, _brute_force(elements, hamming_distance))

import argparse
import sys
from typing import List, Optional

from .config import config
from .services.benchmark import DATASETS, TreeBenchmark
from .utils.logging_config import setup_logging
from .utils.metrics import MetricsCollector


def format_metrics(snapshot: dict) -> str:
    lines = ["metrics:"]
    for name, value in sorted(snapshot['counters'].items()):
        lines.append(f"  counter {name} = {value}")
    for name, value in sorted(snapshot['gauges'].items()):
        lines.append(f"  gauge {name} = {value:g}")
    for name, stats in sorted(snapshot['timers'].items()):
        lines.append(
            f"  timer {name}: count={stats['count']} avg={stats['avg'] * 1000:.3f}[ms] "
            f"max={stats['max'] * 1000:.3f}[ms]"
        )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="metrictree",
        description="Benchmark BK-tree construction and radius search on random data",
    )
    parser.add_argument("dataset", choices=DATASETS, help="Dataset to index")
    parser.add_argument("--config", default="default", choices=sorted(config), help="Configuration profile")
    parser.add_argument("--queries", type=int, help="Number of random queries (overrides the profile)")
    parser.add_argument("--seed", type=int, help="Random seed (overrides the profile)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--show-tree", action="store_true", help="Print the tree when it is small enough")
    parser.add_argument("--show-metrics", action="store_true", help="Print the collected counters, gauges and timers")
    args = parser.parse_args(argv)

    settings = config[args.config]
    setup_logging(log_level=settings.LOG_LEVEL, log_file=args.log_file or settings.LOG_FILE)

    collector = MetricsCollector()
    report = TreeBenchmark(settings, collector, seed=args.seed).run(args.dataset, args.queries)

    if args.show_tree:
        if report.size <= settings.SHOW_TREE_LIMIT:
            print(report.tree)
        else:
            print(f"tree not shown: {report.size} elements exceeds the limit of {settings.SHOW_TREE_LIMIT}")

    print(report.summary())
    if args.show_metrics:
        print(format_metrics(collector.get_all_metrics()))
    return 0 if report.ok else 1


if __name__ == '__main__':
    sys.exit(main())

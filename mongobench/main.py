from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable

from pymongo.errors import PyMongoError

from . import __version__
from .charts import render_latency_chart
from .config import (
    DEFAULT_COLLECTION,
    DEFAULT_DATABASE,
    DEFAULT_DOCUMENTS,
    DEFAULT_DURATION,
    DEFAULT_HOST,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_SLEEP,
    DEFAULT_MIN_SLEEP,
    DEFAULT_OPERATION,
    DEFAULT_PORT,
    DEFAULT_THREADS,
    ConfigurationError,
    ConnectionConfig,
    RunConfig,
    SleepBounds,
)
from .harness import BenchmarkHarness
from .queries import ConnectionSetupError, MongoQueries, create_client
from .report import AggregateReport, format_report

LOGGER = logging.getLogger("mongobench.main")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"invalid {name} value {value!r}; defaulting to {default}", file=sys.stderr)
        return default


def add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-H", "--host", default=os.environ.get("MONGOBENCH_HOST", DEFAULT_HOST), help="MongoDB host"
    )
    parser.add_argument(
        "-p", "--port", type=int, default=_env_int("MONGOBENCH_PORT", DEFAULT_PORT), help="MongoDB port"
    )
    parser.add_argument(
        "-d", "--db", default=os.environ.get("MONGOBENCH_DB", DEFAULT_DATABASE), help="Database name"
    )
    parser.add_argument(
        "-c",
        "--collection",
        default=os.environ.get("MONGOBENCH_COLLECTION", DEFAULT_COLLECTION),
        help="Collection used for test data",
    )


def add_sleep_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-m",
        "--min-sleep",
        type=int,
        default=_env_int("MONGOBENCH_MIN_SLEEP", DEFAULT_MIN_SLEEP),
        help="Minimum seconds to sleep between calls",
    )
    parser.add_argument(
        "-M",
        "--max-sleep",
        type=int,
        default=_env_int("MONGOBENCH_MAX_SLEEP", DEFAULT_MAX_SLEEP),
        help="Upper bound of the random part of the sleep between calls",
    )


def add_common_arguments(parser: argparse.ArgumentParser, prog: str) -> None:
    parser.add_argument(
        "--log-level",
        default=os.environ.get("MONGOBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"{prog} version {__version__}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongobench",
        description="Run a named query from many worker threads against MongoDB and report timings",
        epilog=f"Available tests: {', '.join(MongoQueries.available_operations())}",
    )
    parser.add_argument(
        "-r",
        "--run",
        dest="operation",
        default=os.environ.get("MONGOBENCH_OPERATION", DEFAULT_OPERATION),
        help="Name of the test to run",
    )
    add_sleep_arguments(parser)
    add_connection_arguments(parser)
    parser.add_argument(
        "-t",
        "--time",
        type=int,
        default=_env_int("MONGOBENCH_TIME", DEFAULT_DURATION),
        help="Seconds each worker runs for (ignored when --iterations is set)",
    )
    parser.add_argument(
        "-T",
        "--threads",
        type=int,
        default=_env_int("MONGOBENCH_THREADS", DEFAULT_THREADS),
        help="Number of worker threads",
    )
    parser.add_argument(
        "-D",
        "--documents",
        type=int,
        default=_env_int("MONGOBENCH_DOCUMENTS", DEFAULT_DOCUMENTS),
        help="Number of documents to populate before the run",
    )
    parser.add_argument(
        "-i",
        "--iterations",
        type=int,
        default=_env_int("MONGOBENCH_ITERATIONS", DEFAULT_ITERATIONS),
        help="Calls per worker (0 runs for --time seconds instead)",
    )
    parser.add_argument(
        "--skip-prepare",
        action="store_true",
        help="Do not populate the collection before the run",
    )
    parser.add_argument(
        "--skip-cleanup",
        action="store_true",
        help="Keep the collection after the run",
    )
    parser.add_argument(
        "--output-dir",
        default=os.environ.get("MONGOBENCH_OUTPUT_DIR"),
        help="Directory to store CSV files, a latency chart and a run manifest",
    )
    add_common_arguments(parser, "mongobench")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        operation=args.operation,
        sleep=SleepBounds(min_seconds=args.min_sleep, max_seconds=args.max_sleep),
        threads=args.threads,
        duration_seconds=args.time,
        iterations=args.iterations,
        documents=args.documents,
        connection=ConnectionConfig(
            host=args.host,
            port=args.port,
            database=args.db,
            collection=args.collection,
        ),
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def write_artifacts(report: AggregateReport, config: RunConfig, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)

    samples = report.samples_dataframe()
    samples_path = output_dir / "samples.csv"
    samples.to_csv(samples_path, index=False)
    LOGGER.info("Saved %d samples to %s", len(samples), samples_path)

    workers = report.workers_dataframe()
    workers_path = output_dir / "workers.csv"
    workers.to_csv(workers_path, index=False)
    LOGGER.info("Saved %d worker summaries to %s", len(workers), workers_path)

    chart_path = render_latency_chart(samples, config.operation, output_dir / "latency_by_worker.png")

    manifest = {
        "config": config.to_dict(),
        "started_at": report.started_at,
        "finished_at": report.finished_at,
        "total_time_s": report.total_time_s,
        "overall_mean_s": report.overall_mean(),
        "succeeded": len(report.results),
        "failed": report.failed_workers,
        "chart": str(chart_path) if chart_path else None,
    }
    manifest_path = output_dir / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    LOGGER.info("Benchmark manifest written to %s", manifest_path)


def main(argv: list[str] | None = None, client_factory: Callable = create_client) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config_from_args(args)
    try:
        config.validate(MongoQueries.available_operations())
    except ConfigurationError as exc:
        parser.error(str(exc))

    setup_logging(args.log_level)

    LOGGER.info("Connecting to MongoDB instance on %s...", config.connection.address)
    try:
        client = client_factory(config.connection, pool_size=config.threads)
    except (ConnectionSetupError, PyMongoError):
        LOGGER.exception("failed to initialise MongoDB client")
        return 1

    try:
        queries = MongoQueries(client[config.connection.database], config.connection.collection)
        harness = BenchmarkHarness(queries)

        try:
            if not args.skip_prepare:
                harness.prepare(config.documents)
            report = harness.run(config)
        except PyMongoError:
            LOGGER.exception("benchmark setup failed")
            return 1
        finally:
            if not args.skip_cleanup:
                harness.cleanup()
    finally:
        client.close()

    print(format_report(report))

    if args.output_dir:
        write_artifacts(report, config, Path(args.output_dir))

    if not report.ok:
        print(
            f"\nBenchmark status: {report.failed_workers} worker(s) failed",
            file=sys.stderr,
        )
        return 1
    print("\nBenchmark status: OK", file=sys.stderr)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

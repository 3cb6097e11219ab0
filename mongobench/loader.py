"""Read/write load generator that writes a fixed dummy document and reads it back."""

from __future__ import annotations

import argparse
import collections
import copy
import logging
import random
import sys
import threading
import time
from typing import Callable

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .config import ConfigurationError, ConnectionConfig, LoadConfig, SleepBounds
from .main import add_common_arguments, add_connection_arguments, add_sleep_arguments, setup_logging
from .queries import ConnectionSetupError, create_client
from .report import mean_or_none

LOGGER = logging.getLogger("mongobench.loader")

DUMMY_DOCUMENT: dict[str, object] = {
    "name": "mongoload dummy document",
    "type": "load-test",
    "count": 1,
    "active": True,
    "ratio": 0.5,
    "tags": ["lorem", "ipsum", "dolor"],
    "info": {"x": 203, "y": 102, "labels": ["sit", "amet"]},
    "history": [
        {"event": "created", "by": "mongoload"},
        {"event": "updated", "by": "mongoload"},
    ],
}


class DummyDocumentLoader:
    def __init__(
        self,
        collection: Collection,
        sleep: SleepBounds,
        max_iterations: int | None = None,
        rng: random.Random | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._collection = collection
        self._sleep = sleep
        self._max_iterations = max_iterations
        self._rng = rng or random.Random()
        self._timer = timer
        self.counters: collections.Counter[str] = collections.Counter()
        self.write_durations: list[float] = []
        self.read_durations: list[float] = []

    def run_once(self) -> None:
        document = copy.deepcopy(DUMMY_DOCUMENT)

        start = self._timer()
        inserted = self._collection.insert_one(document)
        self.write_durations.append(self._timer() - start)
        self.counters["writes"] += 1

        start = self._timer()
        found = self._collection.find_one({"_id": inserted.inserted_id})
        self.read_durations.append(self._timer() - start)
        self.counters["reads"] += 1
        if found is None:
            self.counters["misses"] += 1
            LOGGER.warning("document %s not found after insert", inserted.inserted_id)

    def run(self, stop_event: threading.Event | None = None) -> collections.Counter[str]:
        stop_event = stop_event or threading.Event()
        iteration = 0
        while not stop_event.is_set():
            if self._max_iterations is not None and iteration >= self._max_iterations:
                break
            self.run_once()
            iteration += 1
            sleep_for = self._sleep.draw(self._rng)
            LOGGER.debug("iteration %d done, sleeping %ds", iteration, sleep_for)
            if sleep_for > 0 and stop_event.wait(sleep_for):
                break
        return self.counters

    def summary(self) -> str:
        write_mean = mean_or_none(self.write_durations)
        read_mean = mean_or_none(self.read_durations)
        return (
            f"writes: {self.counters['writes']} (average {_format_seconds(write_mean)})\n"
            f"reads: {self.counters['reads']} (average {_format_seconds(read_mean)})\n"
            f"misses: {self.counters['misses']}"
        )


def _format_seconds(value: float | None) -> str:
    return "no samples" if value is None else f"{value:.6f}s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongoload",
        description="Write and read back a dummy document against MongoDB at random intervals",
    )
    add_sleep_arguments(parser)
    add_connection_arguments(parser)
    parser.add_argument(
        "-i",
        "--iterations",
        type=int,
        default=0,
        help="Number of write/read passes (0 runs until interrupted)",
    )
    add_common_arguments(parser, "mongoload")
    return parser


def config_from_args(args: argparse.Namespace) -> LoadConfig:
    return LoadConfig(
        sleep=SleepBounds(min_seconds=args.min_sleep, max_seconds=args.max_sleep),
        iterations=args.iterations,
        connection=ConnectionConfig(
            host=args.host,
            port=args.port,
            database=args.db,
            collection=args.collection,
        ),
    )


def main(argv: list[str] | None = None, client_factory: Callable = create_client) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config_from_args(args)
    try:
        config.validate()
    except ConfigurationError as exc:
        parser.error(str(exc))

    setup_logging(args.log_level)

    LOGGER.info("Connecting to MongoDB instance on %s...", config.connection.address)
    try:
        client = client_factory(config.connection)
    except (ConnectionSetupError, PyMongoError):
        LOGGER.exception("failed to initialise MongoDB client")
        return 1

    collection = client[config.connection.database][config.connection.collection]
    loader = DummyDocumentLoader(
        collection,
        config.sleep,
        max_iterations=config.iterations or None,
    )
    exit_code = 0
    try:
        loader.run()
    except KeyboardInterrupt:
        print("stopping mongoload", file=sys.stderr)
    except PyMongoError:
        LOGGER.exception("read/write loop failed")
        exit_code = 1
    finally:
        client.close()

    print(loader.summary())
    return exit_code


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

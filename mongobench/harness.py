from __future__ import annotations

import logging
import queue
import random
import threading
import time
from typing import Callable, Union

from .config import RunConfig
from .report import AggregateReport, WorkerFailure, WorkerResult

LOGGER = logging.getLogger("mongobench.harness")

WorkerOutcome = Union[WorkerResult, WorkerFailure]


class BenchmarkHarness:
    """Fans a named operation out over worker threads and collects per-worker timings.

    ``queries`` is the data-access collaborator; the harness only uses
    ``get_operation``, ``populate_collection``, ``ensure_index`` and
    ``purge_collection`` from it and never inspects what an operation returns.
    """

    def __init__(
        self,
        queries,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._queries = queries
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._clock = clock
        self._timer = timer
        self._stop_event = threading.Event()

    def prepare(self, document_count: int) -> None:
        LOGGER.info("Populating collection with %d documents", document_count)
        self._queries.populate_collection(document_count)
        self._queries.ensure_index()

    def run(self, config: RunConfig) -> AggregateReport:
        operation = self._queries.get_operation(config.operation)
        outcomes: "queue.Queue[WorkerOutcome]" = queue.Queue()
        self._stop_event.clear()

        started_at = self._clock()
        LOGGER.info(
            "Starting %d worker thread(s) running %r at %s",
            config.threads,
            config.operation,
            time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(started_at)),
        )
        threads = [
            threading.Thread(
                target=self._worker,
                args=(worker_id, config, operation, outcomes),
                name=f"mongobench-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(config.threads)
        ]
        for thread in threads:
            thread.start()
        try:
            for thread in threads:
                thread.join()
        except KeyboardInterrupt:
            self.stop()
            for thread in threads:
                thread.join()
        finished_at = self._clock()

        results: list[WorkerResult] = []
        failures: list[WorkerFailure] = []
        while not outcomes.empty():
            outcome = outcomes.get_nowait()
            if isinstance(outcome, WorkerFailure):
                failures.append(outcome)
            else:
                results.append(outcome)

        report = AggregateReport(
            started_at=started_at,
            finished_at=finished_at,
            results=tuple(sorted(results, key=lambda r: r.worker_id)),
            failures=tuple(sorted(failures, key=lambda f: f.worker_id)),
        )
        LOGGER.info("Total test time: %.3fs", report.total_time_s)
        return report

    def cleanup(self) -> bool:
        LOGGER.info("Cleaning up database post-run")
        try:
            self._queries.purge_collection()
        except Exception:  # noqa: BLE001
            LOGGER.exception("failed to drop benchmark collection")
            return False
        return True

    def stop(self) -> None:
        LOGGER.info("Stop requested")
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def jitter(self, config: RunConfig) -> int:
        with self._rng_lock:
            return config.sleep.draw(self._rng)

    def should_stop(self, config: RunConfig, started_at: float, samples: int) -> bool:
        if self._stop_event.is_set():
            return True
        if config.iterations > 0:
            return samples >= config.iterations
        return self._clock() - started_at >= config.duration_seconds

    def _worker(
        self,
        worker_id: int,
        config: RunConfig,
        operation: Callable[[int], object],
        outcomes: "queue.Queue[WorkerOutcome]",
    ) -> None:
        started_at = self._clock()
        durations: list[float] = []
        try:
            while not self.should_stop(config, started_at, len(durations)):
                call_start = self._timer()
                operation(worker_id)
                durations.append(self._timer() - call_start)
                LOGGER.debug("worker %d call %d took %.6fs", worker_id, len(durations), durations[-1])

                sleep_for = self.jitter(config)
                if sleep_for > 0 and self._stop_event.wait(timeout=sleep_for):
                    break
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "Worker thread %d failed after %d iteration(s): %s",
                worker_id,
                len(durations),
                exc,
                exc_info=LOGGER.isEnabledFor(logging.DEBUG),
            )
            outcomes.put(
                WorkerFailure(
                    worker_id=worker_id,
                    error=exc,
                    durations=tuple(durations),
                    started_at=started_at,
                    finished_at=self._clock(),
                )
            )
            return

        result = WorkerResult.from_samples(worker_id, durations, started_at, self._clock())
        LOGGER.info(
            "Worker thread %d run time: %.2fs - iterations: %d - average: %s",
            worker_id,
            result.run_time_s,
            result.iterations,
            "no samples" if result.mean is None else f"{result.mean:.6f}s",
        )
        outcomes.put(result)


__all__ = ["BenchmarkHarness"]

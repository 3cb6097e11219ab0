from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

SAMPLE_COLUMNS = ["worker_id", "iteration", "elapsed_s"]
WORKER_COLUMNS = [
    "worker_id",
    "status",
    "samples",
    "mean_s",
    "min_s",
    "max_s",
    "run_time_s",
    "error",
]


def mean_or_none(durations: list[float]) -> Optional[float]:
    if not durations:
        return None
    return statistics.fmean(durations)


@dataclass(frozen=True)
class WorkerResult:
    worker_id: int
    durations: tuple[float, ...]
    started_at: float
    finished_at: float
    mean: Optional[float]

    @classmethod
    def from_samples(
        cls, worker_id: int, durations: list[float], started_at: float, finished_at: float
    ) -> "WorkerResult":
        return cls(
            worker_id=worker_id,
            durations=tuple(durations),
            started_at=started_at,
            finished_at=finished_at,
            mean=mean_or_none(durations),
        )

    @property
    def iterations(self) -> int:
        return len(self.durations)

    @property
    def run_time_s(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)


@dataclass(frozen=True)
class WorkerFailure:
    worker_id: int
    error: BaseException
    durations: tuple[float, ...]
    started_at: float
    finished_at: float

    @property
    def iterations(self) -> int:
        return len(self.durations)

    @property
    def run_time_s(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)

    def describe_error(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass(frozen=True)
class AggregateReport:
    """Outcome of a run, built once after every worker has been joined."""

    started_at: float
    finished_at: float
    results: tuple[WorkerResult, ...] = field(default_factory=tuple)
    failures: tuple[WorkerFailure, ...] = field(default_factory=tuple)

    @property
    def total_time_s(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)

    @property
    def worker_ids(self) -> list[int]:
        return sorted(
            [result.worker_id for result in self.results]
            + [failure.worker_id for failure in self.failures]
        )

    @property
    def failed_workers(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def overall_mean(self) -> Optional[float]:
        samples = [d for result in self.results for d in result.durations]
        return mean_or_none(samples)

    def samples_dataframe(self) -> pd.DataFrame:
        rows = [
            {"worker_id": result.worker_id, "iteration": index, "elapsed_s": elapsed}
            for result in self.results
            for index, elapsed in enumerate(result.durations, start=1)
        ]
        if not rows:
            return pd.DataFrame(columns=SAMPLE_COLUMNS)
        return pd.DataFrame(rows, columns=SAMPLE_COLUMNS)

    def workers_dataframe(self) -> pd.DataFrame:
        rows = []
        for result in self.results:
            rows.append(
                {
                    "worker_id": result.worker_id,
                    "status": "ok",
                    "samples": result.iterations,
                    "mean_s": result.mean,
                    "min_s": min(result.durations) if result.durations else None,
                    "max_s": max(result.durations) if result.durations else None,
                    "run_time_s": result.run_time_s,
                    "error": None,
                }
            )
        for failure in self.failures:
            rows.append(
                {
                    "worker_id": failure.worker_id,
                    "status": "failed",
                    "samples": failure.iterations,
                    "mean_s": mean_or_none(list(failure.durations)),
                    "min_s": min(failure.durations) if failure.durations else None,
                    "max_s": max(failure.durations) if failure.durations else None,
                    "run_time_s": failure.run_time_s,
                    "error": failure.describe_error(),
                }
            )
        if not rows:
            return pd.DataFrame(columns=WORKER_COLUMNS)
        return pd.DataFrame(rows, columns=WORKER_COLUMNS).sort_values("worker_id", ignore_index=True)


def format_mean(mean: Optional[float]) -> str:
    if mean is None:
        return "no samples"
    return f"{mean:.6f}s"


def format_report(report: AggregateReport) -> str:
    lines = []
    for result in sorted(report.results, key=lambda r: r.worker_id):
        lines.append(
            f"Worker thread {result.worker_id} run time: {result.run_time_s:.2f}s"
            f" - iterations: {result.iterations} - average: {format_mean(result.mean)}"
        )
    for failure in sorted(report.failures, key=lambda f: f.worker_id):
        lines.append(
            f"Worker thread {failure.worker_id} FAILED after {failure.iterations} iteration(s):"
            f" {failure.describe_error()}"
        )
    lines.append(f"Total test time: {report.total_time_s:.3f}s")
    lines.append(f"Overall average: {format_mean(report.overall_mean())}")
    lines.append(
        f"Workers: {len(report.results)} succeeded, {report.failed_workers} failed"
    )
    return "\n".join(lines)


__all__ = [
    "AggregateReport",
    "WorkerFailure",
    "WorkerResult",
    "format_report",
    "mean_or_none",
]

from __future__ import annotations

import pytest

from mongobench.report import (
    AggregateReport,
    WorkerFailure,
    WorkerResult,
    format_report,
    mean_or_none,
)


def _report() -> AggregateReport:
    return AggregateReport(
        started_at=100.0,
        finished_at=112.5,
        results=(
            WorkerResult.from_samples(0, [0.1, 0.3], 100.0, 110.0),
            WorkerResult.from_samples(2, [], 100.0, 100.0),
        ),
        failures=(
            WorkerFailure(1, RuntimeError("lost"), (0.2,), 100.0, 101.0),
        ),
    )


def test_mean_or_none():
    assert mean_or_none([]) is None
    assert mean_or_none([1.0, 2.0, 6.0]) == pytest.approx(3.0)


def test_worker_result_mean_and_run_time():
    result = WorkerResult.from_samples(3, [0.5, 1.5], 10.0, 14.0)
    assert result.mean == pytest.approx(1.0)
    assert result.iterations == 2
    assert result.run_time_s == pytest.approx(4.0)


def test_aggregate_properties():
    report = _report()
    assert report.total_time_s == pytest.approx(12.5)
    assert report.worker_ids == [0, 1, 2]
    assert report.failed_workers == 1
    assert not report.ok
    assert report.overall_mean() == pytest.approx(0.2)


def test_samples_dataframe_has_one_row_per_call():
    df = _report().samples_dataframe()
    assert list(df.columns) == ["worker_id", "iteration", "elapsed_s"]
    assert df["worker_id"].tolist() == [0, 0]
    assert df["iteration"].tolist() == [1, 2]


def test_samples_dataframe_empty():
    df = AggregateReport(started_at=0.0, finished_at=0.0).samples_dataframe()
    assert df.empty
    assert "elapsed_s" in df.columns


def test_workers_dataframe_includes_failures():
    df = _report().workers_dataframe()
    assert df["worker_id"].tolist() == [0, 1, 2]
    assert df["status"].tolist() == ["ok", "failed", "ok"]
    assert df.loc[1, "error"] == "RuntimeError: lost"
    assert df.loc[0, "mean_s"] == pytest.approx(0.2)


def test_format_report():
    text = format_report(_report())
    assert "Worker thread 0 run time: 10.00s - iterations: 2 - average: 0.200000s" in text
    assert "Worker thread 2 run time: 0.00s - iterations: 0 - average: no samples" in text
    assert "Worker thread 1 FAILED after 1 iteration(s): RuntimeError: lost" in text
    assert "Total test time: 12.500s" in text
    assert "Workers: 2 succeeded, 1 failed" in text

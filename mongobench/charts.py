from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

LOGGER = logging.getLogger("mongobench.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

BOX_COLOR = "#2E86AB"
MEAN_COLOR = "#F18F01"


def render_latency_chart(samples: pd.DataFrame, operation: str, chart_path: Path) -> Path | None:
    """Render per-call latency distribution per worker with the worker means overlaid.

    Returns ``None`` when there is nothing to plot.
    """
    if samples.empty or "elapsed_s" not in samples.columns:
        LOGGER.warning("No latency data available for latency chart")
        return None

    df = samples[samples["elapsed_s"].notna() & (samples["elapsed_s"] >= 0)].copy()
    if df.empty:
        LOGGER.warning("No valid latency data after filtering")
        return None

    df["elapsed_ms"] = df["elapsed_s"] * 1000.0
    worker_order = sorted(df["worker_id"].unique())
    means = df.groupby("worker_id")["elapsed_ms"].mean().reindex(worker_order)

    fig, ax = plt.subplots(figsize=(max(8, len(worker_order) * 0.8), 6))
    sns.boxplot(
        data=df,
        x="worker_id",
        y="elapsed_ms",
        order=worker_order,
        color=BOX_COLOR,
        ax=ax,
        linewidth=1.5,
        width=0.6,
    )
    ax.scatter(
        np.arange(len(worker_order)),
        means.values,
        color=MEAN_COLOR,
        marker="D",
        zorder=3,
        label="mean",
    )

    ax.set_xlabel("Worker", fontweight="semibold", labelpad=10)
    ax.set_ylabel("Latency (ms)", fontweight="semibold", labelpad=10)
    ax.set_ylim(bottom=0)
    ax.set_title(f"Per-call latency by worker ({operation})", fontweight="bold", pad=15)
    ax.legend(loc="upper right", frameon=True)
    ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5, axis="y")
    ax.set_axisbelow(True)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .stats import Stats

LOGGER = logging.getLogger("kvbench.ycsb.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

PHASE_COLORS = {
    "load": "#2E86AB",  # Blue
    "run": "#F18F01",  # Orange
}

OP_ORDER = ["INSERT", "READ", "UPDATE", "SCAN"]


def render_latency_chart(
    phase_stats: dict[str, Stats],
    workload: str,
    output_dir: Path,
) -> Path:
    """Render per-op latency distributions and phase throughput side by side."""
    chart_path = output_dir / f"latency_{workload}.png"
    frames = [stats.to_dataframe(phase) for phase, stats in phase_stats.items()]
    df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()

    fig, (ax_latency, ax_tput) = plt.subplots(
        1, 2, figsize=(14, 6), gridspec_kw={"width_ratios": [3, 1]}
    )
    if df.empty:
        LOGGER.warning("No latency samples available for chart")
        ax_latency.text(0.5, 0.5, "no samples", ha="center", va="center")
    else:
        _render_latency_boxplot(df, ax_latency)
    _render_throughput_bars(phase_stats, ax_tput)

    fig.suptitle(f"YCSB-{workload} Benchmark", fontweight="bold")
    fig.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


def _render_latency_boxplot(df: pd.DataFrame, ax: plt.Axes) -> None:
    df = df[df["latency_us"].notna() & (df["latency_us"] > 0)].copy()
    if df.empty:
        LOGGER.warning("No valid latency samples after filtering")
        return
    present = set(df["op"].unique())
    op_order = [op for op in OP_ORDER if op in present]
    op_order += sorted(present - set(op_order))
    phases = [phase for phase in PHASE_COLORS if phase in set(df["phase"].unique())]

    sns.boxplot(
        data=df,
        x="op",
        y="latency_us",
        hue="phase",
        order=op_order,
        hue_order=phases,
        palette=PHASE_COLORS,
        showfliers=False,
        ax=ax,
    )
    ax.set_yscale("log")
    ax.set_title("Latency by Operation", fontweight="bold", pad=12)
    ax.set_xlabel("Operation", fontweight="semibold")
    ax.set_ylabel("Latency (us, log scale)", fontweight="semibold")

    # annotate nearest-rank p99 above each op group
    for i, op in enumerate(op_order):
        samples = df[df["op"] == op]["latency_us"].to_numpy(dtype=np.float64)
        p99 = Stats.latency_stats(samples.tolist())
        if p99 is not None:
            ax.annotate(
                f"p99 {p99[3]:.0f}",
                xy=(i, p99[3]),
                ha="center",
                va="bottom",
                fontsize=8,
                color="#444444",
            )


def _render_throughput_bars(phase_stats: dict[str, Stats], ax: plt.Axes) -> None:
    phases = list(phase_stats)
    values = [phase_stats[phase].throughput for phase in phases]
    colors = [PHASE_COLORS.get(phase, "#6A994E") for phase in phases]
    bars = ax.bar(phases, values, color=colors, edgecolor="white", linewidth=1.5)
    for bar, value in zip(bars, values):
        ax.text(
            bar.get_x() + bar.get_width() / 2,
            bar.get_height(),
            f"{value:.0f}",
            ha="center",
            va="bottom",
            fontsize=9,
            fontweight="bold",
        )
    ax.set_title("Throughput", fontweight="bold", pad=12)
    ax.set_ylabel("ops/sec", fontweight="semibold")

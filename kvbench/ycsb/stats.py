from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field

import pandas as pd


@dataclass
class LatencySummary:
    ops: int
    avg_us: float
    min_us: float
    max_us: float
    p99_us: float


@dataclass
class Stats:
    """Per-driver performance record; drivers' records merge into a phase total."""

    merged_count: int = 0
    total_duration_ms: float = 0.0
    latency_samples: dict[str, list[float]] = field(default_factory=dict)

    def record(self, op: str, latency_us: float) -> None:
        self.latency_samples.setdefault(op, []).append(latency_us)

    def total_ops(self) -> int:
        return sum(len(samples) for samples in self.latency_samples.values())

    @property
    def throughput(self) -> float:
        if self.total_duration_ms <= 0:
            return 0.0
        return self.total_ops() / (self.total_duration_ms / 1000.0)

    @staticmethod
    def latency_stats(samples: list[float]) -> tuple[float, float, float, float] | None:
        """Return (avg, min, max, p99) with nearest-rank p99, or None if empty."""
        if not samples:
            return None
        ordered = sorted(samples)
        count = len(ordered)
        avg = sum(ordered) / count
        rank = min(max(math.ceil(0.99 * count), 1), count)
        return avg, ordered[0], ordered[-1], ordered[rank - 1]

    def summarize(self) -> dict[str, LatencySummary]:
        summaries: dict[str, LatencySummary] = {}
        for op in sorted(self.latency_samples):
            samples = self.latency_samples[op]
            avg, low, high, p99 = self.latency_stats(samples) or (0.0, 0.0, 0.0, 0.0)
            summaries[op] = LatencySummary(
                ops=len(samples), avg_us=avg, min_us=low, max_us=high, p99_us=p99
            )
        return summaries

    def merge(self, other: Stats) -> None:
        """Fold another driver's stats into this one; order independent."""
        if self.merged_count == 0:
            self.merged_count = other.merged_count
            self.total_duration_ms = other.total_duration_ms
            self.latency_samples = copy.deepcopy(other.latency_samples)
            return

        # concurrent drivers: the slowest one bounds the phase
        self.total_duration_ms = max(self.total_duration_ms, other.total_duration_ms)
        for op, samples in other.latency_samples.items():
            self.latency_samples.setdefault(op, []).extend(samples)
        self.merged_count += other.merged_count

    def report(self, phase: str) -> str:
        lines = [
            f"  {'[' + phase + ']':6}  {self.total_duration_ms:6.0f} ms",
            f"    Throughput:  {self.throughput:9.2f} ops/sec",
        ]
        for i, (op, summary) in enumerate(self.summarize().items()):
            prefix = "    Latency:" if i == 0 else "            "
            lines.append(
                f"{prefix}    {op:6}  ops {summary.ops:6}  avg {summary.avg_us:9.2f}"
                f"  min {summary.min_us:6.0f}  max {summary.max_us:6.0f}"
                f"  p99 {summary.p99_us:6.0f}  us"
            )
        return "\n".join(lines)

    def to_dataframe(self, phase: str) -> pd.DataFrame:
        rows = [
            {"phase": phase, "op": op, "latency_us": latency}
            for op in sorted(self.latency_samples)
            for latency in self.latency_samples[op]
        ]
        if not rows:
            return pd.DataFrame(columns=["phase", "op", "latency_us"])
        return pd.DataFrame(rows)

    def to_summary(self) -> dict[str, object]:
        return {
            "drivers": self.merged_count,
            "total_ms": self.total_duration_ms,
            "total_ops": self.total_ops(),
            "throughput_ops_per_s": self.throughput,
            "latency_us": {
                op: {
                    "ops": summary.ops,
                    "avg": summary.avg_us,
                    "min": summary.min_us,
                    "max": summary.max_us,
                    "p99": summary.p99_us,
                }
                for op, summary in self.summarize().items()
            },
        }

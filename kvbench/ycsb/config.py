from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path

from ..client import DEFAULT_CLIENT_CMD

VALID_WORKLOADS: tuple[str, ...] = ("a", "b", "c", "d", "e", "f")

YCSB_BIN_DEFAULT = "ycsb/bin/ycsb.sh"
YCSB_WORKLOADS_DIR_DEFAULT = "ycsb/workloads"

# per-call bound; long enough to avoid false negatives on a loaded host
RESPONSE_TIMEOUT_S = 60.0
PHASE_TIMEOUT_S = 600.0

# seconds of startup grace per client, rounded up per phase
STARTUP_GRACE_PER_CLIENT_S = 0.3


@dataclass(frozen=True)
class GeneratorConfig:
    """Where to find the YCSB launcher and its workload profiles."""

    command: tuple[str, ...] = (YCSB_BIN_DEFAULT,)
    workloads_dir: Path = Path(YCSB_WORKLOADS_DIR_DEFAULT)

    def profile_path(self, workload: str) -> Path:
        if workload not in VALID_WORKLOADS:
            raise ValueError(
                f"unknown workload {workload!r}; expected one of {', '.join(VALID_WORKLOADS)}"
            )
        return self.workloads_dir / f"workload{workload}"

    def argv(self, workload: str, num_ops: int, load: bool) -> list[str]:
        return [
            *self.command,
            "load" if load else "run",
            "basic",
            "-P",
            str(self.profile_path(workload)),
            "-p",
            f"operationcount={num_ops}",
        ]


@dataclass(frozen=True)
class BenchConfig:
    """Complete, validated settings for one two-phase benchmark run."""

    num_clis: int = 1
    num_ops: int = 10_000
    workload: str = "a"
    client_just_args: tuple[str, ...] = ()
    client_command: str = DEFAULT_CLIENT_CMD
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    response_timeout_s: float = RESPONSE_TIMEOUT_S
    phase_timeout_s: float = PHASE_TIMEOUT_S
    startup_grace_s: float | None = None
    client_log_dir: Path | None = None
    output_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.num_clis < 1:
            raise ValueError("number of clients must be at least 1")
        if self.num_ops < 1:
            raise ValueError("number of operations per client must be positive")
        if self.workload not in VALID_WORKLOADS:
            raise ValueError(
                f"unknown workload {self.workload!r}; expected one of {', '.join(VALID_WORKLOADS)}"
            )
        if self.response_timeout_s <= 0 or self.phase_timeout_s <= 0:
            raise ValueError("timeouts must be positive")

    @property
    def effective_startup_grace_s(self) -> float:
        if self.startup_grace_s is not None:
            return max(self.startup_grace_s, 0.0)
        return float(math.ceil(STARTUP_GRACE_PER_CLIENT_S * self.num_clis))

    def client_log_path(self, phase: str, index: int) -> Path | None:
        if self.client_log_dir is None:
            return None
        return self.client_log_dir / f"{phase}-client-{index}.log"

from __future__ import annotations

import argparse
import json
import logging
import os
import shlex
import sys
from pathlib import Path

from ..errors import HarnessError
from .charts import render_latency_chart
from .config import (
    VALID_WORKLOADS,
    YCSB_BIN_DEFAULT,
    YCSB_WORKLOADS_DIR_DEFAULT,
    BenchConfig,
    GeneratorConfig,
)
from .orchestrator import BenchmarkResult, run_benchmark

LOGGER = logging.getLogger("kvbench.ycsb")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="YCSB benchmark harness for key-value clients")
    parser.add_argument(
        "--num-clis",
        type=int,
        default=int(os.environ.get("KVBENCH_NUM_CLIS", "1")),
        help="Number of concurrent clients",
    )
    parser.add_argument(
        "--num-ops",
        type=int,
        default=int(os.environ.get("KVBENCH_NUM_OPS", "10000")),
        help="Number of operations per client to run",
    )
    parser.add_argument(
        "--workload",
        choices=VALID_WORKLOADS,
        default=os.environ.get("KVBENCH_WORKLOAD", "a"),
        help="YCSB workload profile name ('a' to 'f')",
    )
    parser.add_argument(
        "--client-just-args",
        nargs=argparse.REMAINDER,
        default=[],
        help="Arguments passed to the client launcher for every client process (must come last)",
    )
    parser.add_argument(
        "--client-cmd",
        default=os.environ.get("KVBENCH_CLIENT_CMD", "just"),
        help="Launcher used to start each client process",
    )
    parser.add_argument(
        "--ycsb-bin",
        default=os.environ.get("YCSB_BIN", YCSB_BIN_DEFAULT),
        help="Path to the YCSB launcher script",
    )
    parser.add_argument(
        "--workloads-dir",
        default=os.environ.get("YCSB_WORKLOADS_DIR", YCSB_WORKLOADS_DIR_DEFAULT),
        help="Directory holding the YCSB workload profiles",
    )
    parser.add_argument(
        "--startup-grace",
        type=float,
        default=None,
        help="Seconds to wait after launching clients (default: 0.3s per client, rounded up)",
    )
    parser.add_argument(
        "--client-log-dir",
        default=os.environ.get("KVBENCH_CLIENT_LOG_DIR"),
        help="Directory for per-client stderr logs",
    )
    parser.add_argument(
        "--output-dir",
        default=os.environ.get("KVBENCH_OUTPUT_DIR"),
        help="Directory to store this run's artefacts (CSV, chart, summary)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the generator commands for both phases without executing them",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("KVBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BenchConfig:
    return BenchConfig(
        num_clis=args.num_clis,
        num_ops=args.num_ops,
        workload=args.workload,
        client_just_args=tuple(args.client_just_args),
        client_command=args.client_cmd,
        generator=GeneratorConfig(
            command=(args.ycsb_bin,),
            workloads_dir=Path(args.workloads_dir),
        ),
        startup_grace_s=args.startup_grace,
        client_log_dir=Path(args.client_log_dir) if args.client_log_dir else None,
        output_dir=Path(args.output_dir) if args.output_dir else None,
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    LOGGER.info("YCSB benchmark configuration: %s", config)

    if args.dry_run:
        _print_plan(config)
        return 0

    try:
        result = run_benchmark(config)
    except HarnessError as exc:
        LOGGER.error("Benchmark aborted: %s", exc)
        return 1

    print(
        f"Benchmarking results:  YCSB-{config.workload}  {config.num_clis} clients"
    )
    print(result.load.report("Load"))
    print(result.run.report("Run"))

    if config.output_dir is not None:
        write_artifacts(config, result, config.output_dir)
    return 0


def write_artifacts(config: BenchConfig, result: BenchmarkResult, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    phases = {"load": result.load, "run": result.run}

    for phase, stats in phases.items():
        csv_path = output_dir / f"{phase}_latency.csv"
        df = stats.to_dataframe(phase)
        df.to_csv(csv_path, index=False)
        LOGGER.info("Saved %s phase samples to %s (%d rows)", phase, csv_path, len(df))

    chart_path = render_latency_chart(phases, config.workload, output_dir)

    manifest = {
        "workload": config.workload,
        "num_clis": config.num_clis,
        "num_ops": config.num_ops,
        "chart": str(chart_path),
        "phases": {phase: stats.to_summary() for phase, stats in phases.items()},
        "known_keys": {"load": len(result.load_keys), "run": len(result.run_keys)},
    }
    manifest_path = output_dir / "summary.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    LOGGER.info("Benchmark summary written to %s", manifest_path)
    return manifest_path


def _print_plan(config: BenchConfig) -> None:
    for load in (True, False):
        argv = config.generator.argv(config.workload, config.num_ops, load)
        phase = "load" if load else "run"
        print(f"Phase {phase}: {config.num_clis} x {shlex.join(argv)}")
    client_argv = [config.client_command, *config.client_just_args]
    print(f"Client: {shlex.join(client_argv)}")


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..client import ClientProc
from ..errors import DriverFailed
from .config import BenchConfig
from .driver import YcsbDriver
from .keys import KnownKeySet
from .stats import Stats

LOGGER = logging.getLogger("kvbench.ycsb.orchestrator")

ClientFactory = Callable[[BenchConfig, str, int], ClientProc]


def phase_name(load: bool) -> str:
    return "load" if load else "run"


def launch_client(config: BenchConfig, phase: str, index: int) -> ClientProc:
    return ClientProc(
        config.client_just_args,
        command=config.client_command,
        name=f"{phase}-client-{index}",
        stderr_path=config.client_log_path(phase, index),
    )


@dataclass
class BenchmarkResult:
    load: Stats
    run: Stats
    load_keys: KnownKeySet
    run_keys: KnownKeySet


def run_phase(
    config: BenchConfig,
    load: bool,
    known_keys: KnownKeySet,
    client_factory: ClientFactory = launch_client,
) -> tuple[Stats, KnownKeySet]:
    """Run one phase across ``config.num_clis`` concurrent drivers.

    Every driver is started before any is awaited. Any failed driver aborts
    the whole phase; the remaining generators are killed before the error
    propagates.
    """
    phase = phase_name(load)
    clients: list[ClientProc] = []
    try:
        for idx in range(config.num_clis):
            clients.append(client_factory(config, phase, idx))
    except Exception:
        for client in clients:
            _stop_quietly(client)
        raise

    grace = config.effective_startup_grace_s
    if grace > 0:
        LOGGER.debug("Waiting %.1fs for %d %s-phase clients to start", grace, len(clients), phase)
        time.sleep(grace)
    LOGGER.info("Benchmarking [%s] phase...", phase.title())

    drivers: list[YcsbDriver] = []
    try:
        for idx, client in enumerate(clients):
            drivers.append(
                YcsbDriver.exec(
                    config.workload,
                    config.num_ops,
                    load,
                    client,
                    known_keys.copy(),
                    generator=config.generator,
                    response_timeout_s=config.response_timeout_s,
                    name=f"{phase}-driver-{idx}",
                )
            )
    except Exception:
        _abort_all(drivers)
        for client in clients[len(drivers):]:
            _stop_quietly(client)
        raise
    LOGGER.info("Launched %d YCSB drivers, now waiting...", len(drivers))

    stats = Stats()
    merged_keys = KnownKeySet()
    for idx, driver in enumerate(drivers):
        try:
            result = driver.wait(config.phase_timeout_s)
            if result is None:
                raise DriverFailed(f"{driver.name} failed during the {phase} phase")
        except Exception:
            _abort_all(drivers[idx:])
            raise
        driver_stats, driver_keys = result
        stats.merge(driver_stats)
        merged_keys.update(driver_keys)

    LOGGER.info(
        "%s phase finished: %d drivers, %d ops, %d known keys",
        phase.title(),
        stats.merged_count,
        stats.total_ops(),
        len(merged_keys),
    )
    return stats, merged_keys


def run_benchmark(
    config: BenchConfig,
    client_factory: ClientFactory = launch_client,
) -> BenchmarkResult:
    load_stats, load_keys = run_phase(config, True, KnownKeySet(), client_factory)
    # run-phase discoveries are reported but not carried any further
    run_stats, run_keys = run_phase(config, False, load_keys, client_factory)
    return BenchmarkResult(load=load_stats, run=run_stats, load_keys=load_keys, run_keys=run_keys)


def _abort_all(drivers: list[YcsbDriver]) -> None:
    for driver in drivers:
        driver.abort()


def _stop_quietly(client: ClientProc) -> None:
    try:
        client.stop()
    except Exception:  # noqa: BLE001
        LOGGER.warning("Error stopping %s", getattr(client, "name", "client"), exc_info=True)

from __future__ import annotations

import contextlib
import enum
import logging
import subprocess
import threading
import time
from typing import IO

from ..client import ClientProc
from ..errors import ChannelClosed, GeneratorIoError, HarnessError, JoinFailure, PhaseTimeout
from .config import RESPONSE_TIMEOUT_S, GeneratorConfig
from .keys import KnownKeySet
from .stats import Stats
from .translator import interpret

LOGGER = logging.getLogger("kvbench.ycsb.driver")

DriverResult = tuple[Stats, KnownKeySet]

ABORT_GRACE_S = 2.0


class DriverState(enum.Enum):
    READING = "reading"
    ENDED = "ended"
    FAILED = "failed"


class YcsbDriver:
    """Handle to one YCSB basic-mode process feeding one key-value client.

    A feeder thread reads the generator's stdout, translates each line into a
    call, and dispatches it synchronously to the client while recording the
    latency. ``wait`` consumes the handle.
    """

    def __init__(
        self,
        name: str,
        process: subprocess.Popen,
        client: ClientProc,
        known_keys: KnownKeySet,
        response_timeout_s: float = RESPONSE_TIMEOUT_S,
    ) -> None:
        self.name = name
        self.state = DriverState.READING
        self._process = process
        self._client = client
        self._known_keys = known_keys
        self._response_timeout_s = response_timeout_s

        self._done = threading.Event()
        self._result: DriverResult | None = None
        self._worker_error: BaseException | None = None
        self._waited = False
        self._started_at: float | None = None
        self._last_end: float | None = None

        self._worker = threading.Thread(target=self._run, name=f"{name}-feeder", daemon=True)

    @classmethod
    def exec(
        cls,
        workload: str,
        num_ops: int,
        load: bool,
        client: ClientProc,
        known_keys: KnownKeySet,
        generator: GeneratorConfig | None = None,
        response_timeout_s: float = RESPONSE_TIMEOUT_S,
        name: str = "ycsb-driver",
    ) -> YcsbDriver:
        """Spawn the generator for ``workload`` and start feeding ``client``."""
        generator = generator or GeneratorConfig()
        argv = generator.argv(workload, num_ops, load)
        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
            )
        except OSError as exc:
            raise GeneratorIoError(f"failed to launch generator {argv[0]!r}: {exc}") from exc

        LOGGER.debug("%s: launched generator (pid %d): %s", name, process.pid, " ".join(argv))
        driver = cls(name, process, client, known_keys, response_timeout_s)
        driver._worker.start()
        return driver

    def wait(self, timeout: float) -> DriverResult | None:
        """Block until the feeder finishes; None means the workload failed."""
        if self._waited:
            raise RuntimeError(f"{self.name} has already been waited on")
        self._waited = True

        if not self._done.wait(timeout):
            raise PhaseTimeout(f"{self.name} did not finish within {timeout:.0f}s")
        self._worker.join()
        self._kill_generator()

        if self._worker_error is not None:
            raise JoinFailure(
                f"{self.name} feeder thread crashed: {self._worker_error!r}"
            ) from self._worker_error
        return self._result

    def abort(self, grace_s: float = ABORT_GRACE_S) -> None:
        """Force-kill and reap the generator; the feeder gets a bounded join."""
        with contextlib.suppress(OSError):
            self._process.kill()
        with contextlib.suppress(subprocess.TimeoutExpired):
            self._process.wait(timeout=grace_s)
        self._worker.join(timeout=grace_s)
        if self._worker.is_alive():
            # feeder still blocked on its client; it owns the pipe until it exits
            LOGGER.warning("%s feeder still running after abort", self.name)
            return
        if self._process.stdout is not None:
            self._process.stdout.close()

    def _kill_generator(self) -> None:
        with contextlib.suppress(OSError):
            self._process.kill()
        self._process.wait()
        if self._process.stdout is not None:
            self._process.stdout.close()

    def _run(self) -> None:
        try:
            self._result = self._feed()
        except Exception as exc:  # noqa: BLE001
            self._worker_error = exc
            self.state = DriverState.FAILED
        finally:
            # completion pulse only; the outcome is read from the handle
            self._done.set()

    def _feed(self) -> DriverResult | None:
        stats = Stats()
        stdout = self._process.stdout
        try:
            while self.state is DriverState.READING:
                try:
                    self._feed_a_line(stdout, stats)
                except ChannelClosed as exc:
                    LOGGER.debug("%s: %s", self.name, exc)
                    self.state = DriverState.FAILED
                except HarnessError as exc:
                    LOGGER.error("Error in %s feeder: %s", self.name, exc)
                    self.state = DriverState.FAILED
        finally:
            self._stop_client()

        if self.state is not DriverState.ENDED:
            return None
        if self._started_at is not None and self._last_end is not None:
            stats.total_duration_ms = (self._last_end - self._started_at) * 1000.0
        stats.merged_count = 1
        return stats, self._known_keys

    def _feed_a_line(self, stdout: IO[str], stats: Stats) -> None:
        try:
            line = stdout.readline()
        except (OSError, ValueError) as exc:
            raise GeneratorIoError(f"failed to read generator output: {exc}") from exc

        if not line:
            self.state = DriverState.ENDED
            return
        if not line.strip():
            return

        translation = interpret(line, self._known_keys)
        if translation is None:
            return

        start = time.perf_counter()
        self._client.send_call(translation.call)
        self._client.await_response(self._response_timeout_s)
        end = time.perf_counter()

        if self._started_at is None:
            self._started_at = start
        self._last_end = end
        stats.record(translation.label, (end - start) * 1_000_000.0)

    def _stop_client(self) -> None:
        try:
            self._client.stop()
        except Exception:  # noqa: BLE001
            LOGGER.warning("Error stopping client for %s", self.name, exc_info=True)

from __future__ import annotations

import contextlib
import logging
import queue
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Sequence, Union

from .errors import ChannelClosed, ClientError, ResponseTimeout

LOGGER = logging.getLogger("kvbench.client")

DEFAULT_CLIENT_CMD = "just"
STOP_TIMEOUT_S_DEFAULT = 5.0
EMPTY_VALUE = "_"


@dataclass(frozen=True)
class Get:
    key: str


@dataclass(frozen=True)
class Put:
    key: str
    value: str


@dataclass(frozen=True)
class Swap:
    key: str
    value: str


@dataclass(frozen=True)
class Scan:
    key_start: str
    key_end: str


KvCall = Union[Get, Put, Swap, Scan]


@dataclass
class KvResponse:
    """One decoded reply line (or line block, for scans) from a client."""

    op: str
    key: str
    found: bool
    value: str | None = None
    pairs: list[tuple[str, str]] = field(default_factory=list)


def _wire_value(value: str) -> str:
    # the client needs a non-empty third field for PUT and SWAP
    return value or EMPTY_VALUE


def encode_call(call: KvCall) -> str:
    if isinstance(call, Put):
        return f"PUT {call.key} {_wire_value(call.value)}"
    if isinstance(call, Swap):
        return f"SWAP {call.key} {_wire_value(call.value)}"
    if isinstance(call, Get):
        return f"GET {call.key}"
    if isinstance(call, Scan):
        return f"SCAN {call.key_start} {call.key_end}"
    raise TypeError(f"unsupported call type: {type(call).__name__}")


def decode_response(line: str) -> KvResponse | None:
    """Decode the first line of a client reply; returns None for noise."""
    parts = line.split(maxsplit=2)
    if len(parts) < 3:
        return None
    op, key, rest = parts
    if op == "PUT":
        return KvResponse(op=op, key=key, found=rest == "found")
    if op in ("GET", "SWAP"):
        if rest == "null":
            return KvResponse(op=op, key=key, found=False)
        return KvResponse(op=op, key=key, found=True, value=rest)
    if op == "SCAN":
        end_key, _, marker = rest.partition(" ")
        if marker.strip() != "BEGIN":
            return None
        return KvResponse(op=op, key=key, found=True, value=end_key)
    return None


_EOF = object()


class ClientProc:
    """Line-protocol wrapper around one key-value client process."""

    def __init__(
        self,
        launch_args: Sequence[str],
        command: str = DEFAULT_CLIENT_CMD,
        name: str = "client",
        stderr_path: Path | None = None,
        stop_timeout_s: float = STOP_TIMEOUT_S_DEFAULT,
    ) -> None:
        self.name = name
        self._argv = [command, *launch_args]
        self._stop_timeout_s = stop_timeout_s
        self._stopped = False
        self._responses: queue.Queue[object] = queue.Queue()

        self._stderr: IO[str] | None = None
        if stderr_path is not None:
            stderr_path.parent.mkdir(parents=True, exist_ok=True)
            self._stderr = open(stderr_path, "w", encoding="utf-8")

        try:
            self._proc = subprocess.Popen(
                self._argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
                text=True,
                bufsize=1,
            )
        except OSError as exc:
            self._close_stderr()
            raise ClientError(f"failed to launch {name} ({' '.join(self._argv)}): {exc}") from exc

        LOGGER.debug("Launched %s (pid %d): %s", name, self._proc.pid, " ".join(self._argv))
        self._reader = threading.Thread(
            target=self._read_responses,
            name=f"{name}-reader",
            daemon=True,
        )
        self._reader.start()

    @property
    def pid(self) -> int:
        return self._proc.pid

    def send_call(self, call: KvCall) -> None:
        stdin = self._proc.stdin
        if stdin is None or self._stopped:
            raise ClientError(f"{self.name} is not accepting calls")
        try:
            stdin.write(encode_call(call) + "\n")
            stdin.flush()
        except (OSError, ValueError) as exc:
            raise ClientError(f"failed to send call to {self.name}: {exc}") from exc

    def await_response(self, timeout: float) -> KvResponse:
        try:
            item = self._responses.get(timeout=timeout)
        except queue.Empty:
            raise ResponseTimeout(
                f"no response from {self.name} within {timeout:.1f}s"
            ) from None
        if item is _EOF:
            # keep the closed state visible to later callers
            self._responses.put(_EOF)
            raise ChannelClosed(f"{self.name} output stream closed")
        return item  # type: ignore[return-value]

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True

        stdin = self._proc.stdin
        if stdin is not None:
            try:
                stdin.write("STOP\n")
                stdin.flush()
            except (OSError, ValueError):
                LOGGER.debug("%s exited before STOP could be sent", self.name)
            finally:
                with contextlib.suppress(OSError):
                    stdin.close()

        try:
            self._proc.wait(timeout=self._stop_timeout_s)
        except subprocess.TimeoutExpired:
            LOGGER.warning(
                "%s still running %.1fs after STOP; killing", self.name, self._stop_timeout_s
            )
            self._proc.kill()
            self._proc.wait()
        finally:
            self._reader.join(timeout=self._stop_timeout_s)
            self._close_stderr()

    def _read_responses(self) -> None:
        stdout = self._proc.stdout
        scan: KvResponse | None = None
        try:
            for raw in stdout:
                line = raw.rstrip("\n")
                if scan is not None:
                    if line.strip() == "SCAN END":
                        self._responses.put(scan)
                        scan = None
                    else:
                        pair = line.split(maxsplit=1)
                        if pair:
                            scan.pairs.append((pair[0], pair[1] if len(pair) > 1 else ""))
                    continue

                response = decode_response(line)
                if response is None:
                    if line.strip():
                        LOGGER.debug("%s: ignoring output line %r", self.name, line)
                    continue
                if response.op == "SCAN":
                    scan = response
                    continue
                self._responses.put(response)
        except (OSError, ValueError):
            LOGGER.debug("%s: output stream closed while reading", self.name)
        finally:
            self._responses.put(_EOF)

    def _close_stderr(self) -> None:
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


__all__ = [
    "DEFAULT_CLIENT_CMD",
    "EMPTY_VALUE",
    "Get",
    "Put",
    "Swap",
    "Scan",
    "KvCall",
    "KvResponse",
    "encode_call",
    "decode_response",
    "ClientProc",
]

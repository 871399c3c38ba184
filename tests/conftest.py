from __future__ import annotations

import os
import stat
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from kvbench.client import KvCall, KvResponse
from kvbench.errors import ResponseTimeout
from kvbench.ycsb.config import GeneratorConfig

FAKE_CLIENT_SOURCE = textwrap.dedent(
    """
    import sys

    silent = "--silent" in sys.argv
    store = {}
    for raw in sys.stdin:
        parts = raw.split()
        if not parts:
            continue
        cmd = parts[0].upper()
        if cmd == "STOP":
            break
        if silent:
            continue
        if cmd in ("PUT", "SWAP") and len(parts) < 3:
            print(f"{cmd} requires 2 arguments: key value", file=sys.stderr, flush=True)
            continue
        if cmd == "PUT":
            found = parts[1] in store
            store[parts[1]] = parts[2]
            print(f"PUT {parts[1]} {'found' if found else 'not_found'}", flush=True)
        elif cmd == "GET":
            value = store.get(parts[1])
            print(f"GET {parts[1]} {'null' if value is None else value}", flush=True)
        elif cmd == "SWAP":
            old = store.get(parts[1])
            store[parts[1]] = parts[2]
            print(f"SWAP {parts[1]} {'null' if old is None else old}", flush=True)
        elif cmd == "SCAN":
            print(f"SCAN {parts[1]} {parts[2]} BEGIN")
            for key in sorted(store):
                if parts[1] <= key <= parts[2]:
                    print(f"  {key} {store[key]}")
            print("SCAN END", flush=True)
        else:
            print(f"unknown command: {cmd}", file=sys.stderr, flush=True)
    """
)


class FakeClient:
    """In-memory stand-in for ClientProc that answers every call at once."""

    def __init__(self, name: str = "fake-client", fail_after: int | None = None) -> None:
        self.name = name
        self.calls: list[KvCall] = []
        self.stopped = 0
        self._fail_after = fail_after
        self._pending: KvCall | None = None

    def send_call(self, call: KvCall) -> None:
        self.calls.append(call)
        self._pending = call

    def await_response(self, timeout: float) -> KvResponse:
        if self._fail_after is not None and len(self.calls) > self._fail_after:
            raise ResponseTimeout(f"no response from {self.name} within {timeout:.1f}s")
        call = self._pending
        key = getattr(call, "key", None) or getattr(call, "key_start", "")
        return KvResponse(op=type(call).__name__.upper(), key=key, found=False)

    def stop(self) -> None:
        self.stopped += 1


@pytest.fixture
def fake_client_script(tmp_path: Path) -> Path:
    path = tmp_path / "fake_client.py"
    path.write_text(FAKE_CLIENT_SOURCE, encoding="utf-8")
    return path


@pytest.fixture
def make_generator(tmp_path: Path) -> Callable[..., GeneratorConfig]:
    """Build a GeneratorConfig whose "YCSB" prints canned lines per phase."""

    counter = iter(range(1_000))

    def factory(
        load_lines: list[str] | None = None,
        run_lines: list[str] | None = None,
        sleep_s: float = 0.0,
        argv_log: Path | None = None,
    ) -> GeneratorConfig:
        script = tmp_path / f"fake_ycsb_{next(counter)}.py"
        log_path = repr(str(argv_log)) if argv_log else repr("")
        load_repr = repr(list(load_lines or []))
        run_repr = repr(list(run_lines or []))
        source = "\n".join(
            [
                f"#!{sys.executable}",
                "import sys",
                "import time",
                "",
                f"log_path = {log_path}",
                "if log_path:",
                "    with open(log_path, 'a') as f:",
                "        f.write(' '.join(sys.argv[1:]) + '\\n')",
                f"lines = {load_repr} if sys.argv[1] == 'load' else {run_repr}",
                "for line in lines:",
                "    print(line, flush=True)",
                f"time.sleep({sleep_s!r})",
                "",
            ]
        )
        script.write_text(source, encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        return GeneratorConfig(command=(sys.executable, str(script)), workloads_dir=tmp_path)

    return factory


@pytest.fixture
def executable_generator(tmp_path: Path, make_generator) -> Callable[..., Path]:
    """Return the path of a directly executable fake generator script."""

    def factory(**kwargs) -> Path:
        config = make_generator(**kwargs)
        path = Path(config.command[-1])
        assert os.access(path, os.X_OK)
        return path

    return factory

"""
Translation of YCSB "basic" driver output into key-value calls.

The mapping does not follow YCSB semantics exactly (a record and field pair
collapses into one key, all fields of a record into one value) but keeps the
operation mix and key distribution intact, which is what the benchmark needs.
"""

from __future__ import annotations

from typing import Iterator, NamedTuple

from ..client import Get, KvCall, Put, Scan, Swap
from ..errors import GeneratorIoError, ParseError
from .keys import KnownKeySet

# end key for scans issued before any key is known
SCAN_END_SENTINEL = "zzzzzzzz"

MISSING_PROFILE_MARKER = "No such file"


class Translation(NamedTuple):
    call: KvCall
    label: str


def _parse_key(segs: Iterator[str], line: str) -> str:
    first = next(segs, None)
    second = next(segs, None)
    if first is None or second is None:
        raise ParseError("missing key segment", line)
    return f"{first}_{second}"


def _parse_value(segs: Iterator[str], line: str) -> str:
    if next(segs, None) != "[":
        raise ParseError("no value start bracket", line)
    tokens = list(segs)
    if tokens and tokens[-1] == "]":
        tokens.pop()
    return "_".join(tokens)


def _parse_scan_count(segs: Iterator[str], line: str) -> int:
    raw = next(segs, None)
    if raw is None:
        raise ParseError("missing scan count", line)
    try:
        count = int(raw)
    except ValueError:
        raise ParseError(f"invalid scan count {raw!r}", line) from None
    if count < 1:
        raise ParseError(f"non-positive scan count {count}", line)
    return count


def interpret(line: str, known_keys: KnownKeySet) -> Translation | None:
    """Translate one generator output line; None means the line is not a call.

    INSERT keys are added to ``known_keys`` as a side effect.
    """
    segs = iter(line.split())
    op = next(segs, None)

    if op == "INSERT":
        key = _parse_key(segs, line)
        value = _parse_value(segs, line)
        known_keys.add(key)
        return Translation(Put(key=key, value=value), "INSERT")

    if op == "UPDATE":
        key = _parse_key(segs, line)
        value = _parse_value(segs, line)
        return Translation(Swap(key=key, value=value), "UPDATE")

    if op == "READ":
        key = _parse_key(segs, line)
        return Translation(Get(key=key), "READ")

    if op == "SCAN":
        key_start = _parse_key(segs, line)
        if not known_keys:
            key_end = SCAN_END_SENTINEL
        else:
            count = _parse_scan_count(segs, line)
            key_end = known_keys.nth_at_or_after(key_start, count) or known_keys.last()
        return Translation(Scan(key_start=key_start, key_end=key_end), "SCAN")

    # no deletes in the default workloads; anything else is informational
    if line.startswith("["):
        return None
    if MISSING_PROFILE_MARKER in line:
        raise GeneratorIoError(f"generator could not open its workload profile: {line.strip()}")
    return None

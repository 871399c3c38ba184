from __future__ import annotations

import bisect
from typing import Iterable, Iterator


class KnownKeySet:
    """Sorted set of keys inserted so far, used to resolve scan end keys."""

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys: list[str] = sorted(set(keys))

    def add(self, key: str) -> None:
        idx = bisect.bisect_left(self._keys, key)
        if idx == len(self._keys) or self._keys[idx] != key:
            self._keys.insert(idx, key)

    def update(self, keys: Iterable[str]) -> None:
        if isinstance(keys, KnownKeySet):
            incoming = keys._keys
        else:
            incoming = sorted(set(keys))
        if not incoming:
            return
        self._keys = sorted(set(self._keys).union(incoming))

    def copy(self) -> KnownKeySet:
        clone = KnownKeySet()
        clone._keys = list(self._keys)
        return clone

    def first_at_or_after(self, key: str) -> str | None:
        idx = bisect.bisect_left(self._keys, key)
        if idx == len(self._keys):
            return None
        return self._keys[idx]

    def nth_at_or_after(self, key: str, n: int) -> str | None:
        """Return the n-th (1-based) key >= ``key``, or None if fewer remain."""
        if n < 1:
            raise ValueError("n must be at least 1")
        idx = bisect.bisect_left(self._keys, key) + n - 1
        if idx >= len(self._keys):
            return None
        return self._keys[idx]

    def last(self) -> str:
        if not self._keys:
            raise KeyError("known key set is empty")
        return self._keys[-1]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        idx = bisect.bisect_left(self._keys, key)
        return idx < len(self._keys) and self._keys[idx] == key

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, KnownKeySet):
            return self._keys == other._keys
        return NotImplemented

    def __repr__(self) -> str:
        return f"KnownKeySet({len(self._keys)} keys)"

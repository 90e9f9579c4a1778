"""
Fixed symbol -> lock table. Built once from the universe; never grows.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator


class SymbolLocks:
    def __init__(self, symbols: Iterable[str]) -> None:
        self._locks: dict[str, threading.Lock] = {s: threading.Lock() for s in symbols}

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._locks

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, symbol: str) -> threading.Lock:
        try:
            return self._locks[symbol]
        except KeyError:
            raise KeyError(f"No settlement lock for unknown symbol {symbol!r}") from None

    def is_locked(self, symbol: str) -> bool:
        return self.lock_for(symbol).locked()

    @contextmanager
    def hold(self, symbol: str) -> Iterator[None]:
        """Block until *symbol* is free, hold it for the body, always release."""
        lock = self.lock_for(symbol)
        with lock:
            yield

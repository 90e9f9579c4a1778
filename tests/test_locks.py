"""Tests for the per-symbol settlement lock table."""

import pytest

from execution.locks import SymbolLocks


def test_table_is_fixed() -> None:
    locks = SymbolLocks(["AAPL", "TSLA"])
    assert len(locks) == 2
    assert "AAPL" in locks
    assert "NOPE" not in locks
    with pytest.raises(KeyError, match="unknown symbol"):
        locks.lock_for("NOPE")
    assert len(locks) == 2


def test_hold_releases_on_error() -> None:
    locks = SymbolLocks(["AAPL"])
    with pytest.raises(RuntimeError):
        with locks.hold("AAPL"):
            assert locks.is_locked("AAPL")
            raise RuntimeError("boom")
    assert not locks.is_locked("AAPL")


def test_symbols_lock_independently() -> None:
    locks = SymbolLocks(["AAPL", "TSLA"])
    with locks.hold("AAPL"):
        assert not locks.is_locked("TSLA")
        with locks.hold("TSLA"):
            assert locks.is_locked("TSLA")

"""Append-only JSONL journal of order lifecycle events."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]

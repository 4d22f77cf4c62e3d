"""
History log tests.
"""

import pytest

from tomato_notes.database import Database
from tomato_notes.errors import StorageError
from tomato_notes.logic.history_log import HistoryLog
from tomato_notes.models import HistoryEntry


def make_entry(status: str = "completed") -> HistoryEntry:
    return HistoryEntry(phase="focus", duration_minutes=25, status=status)


class TestHistoryLog:
    """add / delete / clear."""

    async def test_add_newest_first(self, history: HistoryLog, db_path: str):
        first, second = make_entry(), make_entry("skipped")
        await history.add(first)
        await history.add(second)

        assert list(history) == [second, first]
        _, stored, _ = await Database(db_path).load_app_data()
        assert [e.id for e in stored] == [second.id, first.id]

    async def test_delete(self, history: HistoryLog):
        entry = make_entry()
        await history.add(entry)
        assert await history.delete(entry.id)
        assert len(history) == 0

    async def test_delete_missing(self, history: HistoryLog):
        await history.add(make_entry())
        assert not await history.delete("missing")
        assert len(history) == 1

    async def test_clear(self, history: HistoryLog, db_path: str):
        await history.add(make_entry())
        await history.clear()
        _, stored, _ = await Database(db_path).load_app_data()
        assert stored == []

    async def test_failed_save_keeps_memory(self, history: HistoryLog, monkeypatch):
        async def broken(entries):
            raise StorageError("disk full")

        monkeypatch.setattr(history.db, "save_history", broken)
        entry = make_entry()
        with pytest.raises(StorageError):
            await history.add(entry)
        assert history.find(entry.id) is entry

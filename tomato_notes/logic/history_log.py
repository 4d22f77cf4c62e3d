"""
履歴の管理（追加・削除・全消去と保存）
"""
from typing import Iterable, List, Optional

import structlog

from ..database import Database
from ..errors import StorageError
from ..models import HistoryEntry

logger = structlog.get_logger(__name__)


class HistoryLog:
    """フェーズ履歴（新しい順）

    保存に失敗してもメモリ上の履歴は巻き戻さない。
    """

    def __init__(self, db: Database, entries: Optional[Iterable[HistoryEntry]] = None):
        self.db = db
        self.entries: List[HistoryEntry] = list(entries or [])

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def load(self, entries: Iterable[HistoryEntry]) -> None:
        self.entries = list(entries)

    def find(self, entry_id: str) -> Optional[HistoryEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    async def add(self, entry: HistoryEntry) -> None:
        """エントリを先頭に追加して保存"""
        self.entries.insert(0, entry)
        await self._persist("history_save_failed", entry_id=entry.id)

    async def delete(self, entry_id: str) -> bool:
        """エントリを削除（存在しなければ何もしないでFalse）"""
        if self.find(entry_id) is None:
            logger.error("history_entry_not_found", entry_id=entry_id)
            return False
        self.entries = [e for e in self.entries if e.id != entry_id]
        await self._persist("history_delete_save_failed", entry_id=entry_id)
        return True

    async def clear(self) -> None:
        self.entries = []
        await self._persist("history_clear_failed")

    async def _persist(self, event: str, **context) -> None:
        try:
            await self.db.save_history(self.entries)
        except StorageError as e:
            logger.error(event, error=str(e), **context)
            raise

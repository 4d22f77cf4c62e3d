"""
データベース操作クラス（SQLiteベースのキーバリューストア）
"""
import asyncio
import json
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

import structlog

from .config import DB_PATH
from .errors import SettingsError, StorageError
from .models import HistoryEntry, NotebookPage, Settings

logger = structlog.get_logger(__name__)

# 保存キー
SETTINGS_KEY = "settings"
HISTORY_KEY = "history"
ACTIVE_NOTES_KEY = "activeNotes"
NOTEBOOK_PAGES_KEY = "notebookPages"
ACTIVE_PAGE_ID_KEY = "activePageId"
GRACE_PERIOD_KEY = "pagesGracePeriodStart"


class Database:
    """SQLiteキーバリューストア

    set() はメモリ上に溜めるだけで、save() でまとめて書き込む。
    値はJSONとして保存する。
    """

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._pending: Dict[str, str] = {}
        self.init_database()

    def get_connection(self):
        """データベース接続を取得"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self):
        """テーブルの初期化"""
        try:
            conn = self.get_connection()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("storage_init_failed", db_path=self.db_path, error=str(e))
            raise StorageError(f"cannot open store at {self.db_path}: {e}") from e

    # -------------------- 低レベルAPI --------------------

    def _read(self, key: str) -> Optional[str]:
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def _write(self, items: List[Tuple[str, str]]) -> None:
        conn = self.get_connection()
        try:
            with conn:
                conn.executemany("""
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """, items)
        finally:
            conn.close()

    def _delete_all(self) -> None:
        conn = self.get_connection()
        try:
            with conn:
                conn.execute("DELETE FROM kv_store")
        finally:
            conn.close()

    def _all_keys(self) -> List[str]:
        conn = self.get_connection()
        try:
            return [row["key"] for row in conn.execute("SELECT key FROM kv_store ORDER BY key")]
        finally:
            conn.close()

    async def get(self, key: str) -> Any:
        """値を取得（なければNone）"""
        if key in self._pending:
            return json.loads(self._pending[key])
        try:
            raw = await asyncio.to_thread(self._read, key)
        except sqlite3.Error as e:
            logger.error("storage_get_failed", key=key, error=str(e))
            raise StorageError(f"failed to read {key}: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("storage_value_corrupted", key=key)
            return None

    async def set(self, key: str, value: Any) -> None:
        """値を設定（save()まで書き込まない）"""
        try:
            self._pending[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"value for {key} is not JSON serializable: {e}") from e

    async def save(self) -> None:
        """溜まっている変更を書き込む"""
        if not self._pending:
            return
        items = list(self._pending.items())
        try:
            await asyncio.to_thread(self._write, items)
        except sqlite3.Error as e:
            logger.error("storage_save_failed", keys=[k for k, _ in items], error=str(e))
            raise StorageError(f"failed to save: {e}") from e
        for key, value in items:
            # 書き込み中に上書きされた値は残す
            if self._pending.get(key) == value:
                del self._pending[key]

    async def clear(self) -> None:
        """全データを削除"""
        self._pending.clear()
        try:
            await asyncio.to_thread(self._delete_all)
        except sqlite3.Error as e:
            logger.error("storage_clear_failed", error=str(e))
            raise StorageError(f"failed to clear: {e}") from e

    async def keys(self) -> List[str]:
        stored = await asyncio.to_thread(self._all_keys)
        return sorted(set(stored) | set(self._pending))

    # -------------------- アプリデータ --------------------

    async def load_app_data(self) -> Tuple[Settings, List[HistoryEntry], str]:
        """設定・履歴・アクティブなノートを読み込む"""
        raw_settings = await self.get(SETTINGS_KEY)
        raw_history = await self.get(HISTORY_KEY) or []
        active_notes = await self.get(ACTIVE_NOTES_KEY) or ""

        try:
            settings = Settings.from_dict(raw_settings)
        except SettingsError as e:
            logger.warning("stored_settings_invalid", error=str(e))
            settings = Settings()
        history = []
        for item in raw_history:
            if isinstance(item, dict):
                history.append(HistoryEntry.from_dict(item))
        return settings, history, active_notes

    async def save_settings(self, settings: Settings) -> None:
        await self.set(SETTINGS_KEY, settings.to_dict())
        await self.save()

    async def save_history(self, history: List[HistoryEntry]) -> None:
        await self.set(HISTORY_KEY, [entry.to_dict() for entry in history])
        await self.save()

    async def save_active_notes(self, notes: str) -> None:
        await self.set(ACTIVE_NOTES_KEY, notes)
        await self.save()

    async def load_notebook(self) -> Tuple[List[NotebookPage], Optional[str], Optional[str]]:
        """(ページ一覧, アクティブページID, 猶予期間の開始時刻)"""
        raw_pages = await self.get(NOTEBOOK_PAGES_KEY) or []
        active_page_id = await self.get(ACTIVE_PAGE_ID_KEY)
        grace_started_at = await self.get(GRACE_PERIOD_KEY)
        pages = [
            NotebookPage(id=p.get("id", ""), name=p.get("name", ""), notes=p.get("notes", ""))
            for p in raw_pages
            if isinstance(p, dict) and p.get("id")
        ]
        return pages, active_page_id, grace_started_at

    async def save_notebook(self, pages: List[NotebookPage], active_page_id: Optional[str]) -> None:
        await self.set(NOTEBOOK_PAGES_KEY, [page.to_dict() for page in pages])
        await self.set(ACTIVE_PAGE_ID_KEY, active_page_id)
        await self.save()

    async def save_grace_period(self, started_at: Optional[str]) -> None:
        await self.set(GRACE_PERIOD_KEY, started_at)
        await self.save()

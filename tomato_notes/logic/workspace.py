"""
ノート作業領域（アプリ全体で1つ持つ状態コンテナ）

タスクツリー（アクティブなノート）・ノートブック・設定・ストアをまとめ、
ビューやタイマーにはこのオブジェクトを渡す。
"""
from datetime import datetime
from typing import List, Optional, Tuple

import structlog

from ..database import Database
from ..models import NotebookPage, PagesSnapshot, Settings
from .history_log import HistoryLog
from .history_recovery import extract_hierarchy, select_new_lines
from .notebook import Notebook
from .task_tree import TaskTree

logger = structlog.get_logger(__name__)


class NotesWorkspace:
    """ノート・ページ・設定・履歴を持つ作業領域"""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or Settings()
        self.tree = TaskTree()
        self.notebook = Notebook()
        self.history = HistoryLog(db)

    # -------------------- 読み込み / 保存 --------------------

    async def load(self, now: Optional[datetime] = None) -> None:
        """ストアから全データを読み込む"""
        settings, history, active_notes = await self.db.load_app_data()
        self.settings.update_from(settings)
        self.history.load(history)

        pages, active_page_id, grace_started_at = await self.db.load_notebook()
        merged = self.notebook.load(
            pages, active_page_id, self.settings.notebook_pages_enabled, grace_started_at, now
        )

        if merged is not None:
            # 猶予期間切れ: 通常のノートの後ろに全ページを統合する
            notes = "\n".join(text for text in (active_notes, merged) if text.strip())
            logger.info("notebook_pages_merged", pages=len(pages))
            self.tree.replace_text(notes)
            await self.db.save_notebook([], None)
            await self.db.save_grace_period(None)
            await self.db.save_active_notes(notes)
            return

        if self.notebook.grace_started_at != grace_started_at:
            await self.db.save_grace_period(self.notebook.grace_started_at)

        if self.notebook.enabled and not self.notebook.pages:
            self.notebook.enable(active_notes)

        # 猶予期間中のページは読み取り専用で、編集対象は通常のノート
        page = self.notebook.active_page()
        if self.notebook.enabled and page is not None:
            self.tree.replace_text(page.notes)
        else:
            self.tree.replace_text(active_notes)

    async def save(self) -> None:
        """アクティブなノート（とページ）を保存"""
        notes = self.tree.to_text()
        page = self.notebook.active_page()
        if self.notebook.enabled and page is not None:
            self.notebook.set_page_notes(page.id, notes)
            await self.db.save_notebook(self.notebook.pages, self.notebook.active_page_id)
        await self.db.save_active_notes(notes)

    async def update_settings(self, changes: dict, confirmed: bool = False) -> Settings:
        """設定を検証して反映・保存

        ページ機能の切り替えは enable_pages / disable_pages を通す
        （無効化には confirmed が必要）。
        """
        updated = self.settings.merged(changes)
        pages_enabled = updated.notebook_pages_enabled
        if pages_enabled and not self.notebook.enabled:
            self.enable_pages()
        elif not pages_enabled and self.notebook.enabled:
            self.disable_pages(confirmed)
        self.settings.update_from(updated)
        await self.save_all()
        return self.settings

    async def reset_all(self) -> None:
        """全データを消去して初期状態に戻す（タイマーは呼び出し側でリセット）"""
        logger.warning("all_data_reset", keys=len(await self.db.keys()))
        await self.db.clear()
        self.history.load([])
        self.settings.update_from(Settings())
        self.tree.replace_text("")
        self.notebook = Notebook()

    # -------------------- ノート --------------------

    def notes_text(self) -> str:
        return self.tree.to_text()

    def snapshot(self) -> Tuple[Optional[str], Optional[PagesSnapshot]]:
        """履歴用スナップショット（ページ機能が有効ならページ全体）"""
        notes = self.tree.to_text()
        if self.notebook.enabled and self.notebook.pages:
            self._sync_active_page(notes)
            return None, self.notebook.snapshot()
        return notes, None

    def prune_completed(self) -> None:
        """完了済みタスクを片付ける（集中セッション開始前）"""
        removed = self.tree.prune_completed()
        if removed:
            logger.info("completed_tasks_pruned", count=len(removed))
            self._sync_active_page(self.tree.to_text())

    def restore_from_history(self, line: str, snapshot_text: str) -> List[str]:
        """履歴の行（と親子）を現在のノートの末尾に追加し、追加した行を返す"""
        extracted = extract_hierarchy(line, snapshot_text)
        new_lines = select_new_lines(extracted, self.tree.to_text())
        if new_lines:
            self.tree.extend_text(new_lines)
            self._sync_active_page(self.tree.to_text())
        return new_lines

    # -------------------- ページ --------------------

    def _sync_active_page(self, notes: str) -> None:
        page = self.notebook.active_page()
        if self.notebook.enabled and page is not None and not self.notebook.read_only:
            page.notes = notes

    def enable_pages(self) -> NotebookPage:
        page = self.notebook.enable(self.tree.to_text())
        self.settings.notebook_pages_enabled = True
        return page

    def disable_pages(self, confirmed: bool = False) -> str:
        self._sync_active_page(self.tree.to_text())
        notes = self.notebook.disable(confirmed)
        self.settings.notebook_pages_enabled = False
        self.tree.replace_text(notes)
        return notes

    def switch_page(self, page_id: str) -> NotebookPage:
        """現在のツリーをページに書き戻してから切り替える"""
        self._sync_active_page(self.tree.to_text())
        page = self.notebook.switch_page(page_id)
        self.tree.replace_text(page.notes)
        return page

    def add_page(self, name: Optional[str] = None) -> NotebookPage:
        self._sync_active_page(self.tree.to_text())
        page = self.notebook.add_page(name)
        self.tree.replace_text(page.notes)
        return page

    def remove_page(self, page_id: str) -> NotebookPage:
        self._sync_active_page(self.tree.to_text())
        was_active = self.notebook.active_page_id == page_id
        page = self.notebook.remove_page(page_id)
        if was_active:
            self.tree.replace_text(self.notebook.active_page().notes)
        return page

    async def save_all(self) -> None:
        """設定・ノート・ページをまとめて保存"""
        await self.db.save_settings(self.settings)
        await self.save()
        if not self.notebook.enabled:
            await self.db.save_notebook(self.notebook.pages, self.notebook.active_page_id)

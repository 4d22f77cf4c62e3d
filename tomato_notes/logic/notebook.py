"""
ノートブック（複数ページ）のライフサイクル

無効化後の猶予期間:
    機能がオフなのにページが残っている場合、最初の読み込みで猶予期間の
    開始時刻を記録し、ページは読み取り専用で表示する。14日を過ぎた後の
    読み込みで全ページを1つのノートに統合し、開始時刻を消す。
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..errors import (
    ConfirmationRequiredError,
    LastPageError,
    PageLimitError,
    PageNotFoundError,
    ReadOnlyNotebookError,
)
from ..models import NotebookPage, PagesSnapshot
from .line_codec import parse_text_to_lines

MAX_PAGES = 20
GRACE_PERIOD = timedelta(days=14)


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def merge_pages(pages: List[NotebookPage]) -> str:
    """全ページを1つのノートにまとめる

    タブ順に「# ページ名」の見出し行とそのページの内容を並べる。
    空のページは含めない。
    """
    blocks = []
    for page in pages:
        notes = page.notes.strip("\n")
        if not notes.strip():
            continue
        blocks.append(f"# {page.name}\n{notes}")
    return "\n".join(blocks)


class Notebook:
    """ページの一覧とアクティブページを管理するクラス"""

    def __init__(self):
        self.pages: List[NotebookPage] = []
        self.active_page_id: Optional[str] = None
        self.enabled: bool = False
        self.read_only: bool = False
        self.grace_started_at: Optional[str] = None

    # -------------------- 参照 --------------------

    def find(self, page_id: str) -> NotebookPage:
        for page in self.pages:
            if page.id == page_id:
                return page
        raise PageNotFoundError(page_id)

    def active_page(self) -> Optional[NotebookPage]:
        if self.active_page_id is None:
            return None
        for page in self.pages:
            if page.id == self.active_page_id:
                return page
        return None

    def snapshot(self) -> PagesSnapshot:
        """履歴保存用のスナップショット"""
        return PagesSnapshot(
            pages=tuple(page.to_dict() for page in self.pages),
            active_page_id=self.active_page_id or "",
        )

    # -------------------- 有効化 / 無効化 --------------------

    def enable(self, current_notes: str) -> NotebookPage:
        """現在のノートを1ページ目として有効化"""
        page = NotebookPage(name="Page 1", notes=current_notes or "")
        page.lines = parse_text_to_lines(page.notes)
        self.pages = [page]
        self.active_page_id = page.id
        self.enabled = True
        self.read_only = False
        self.grace_started_at = None
        return page

    def disable(self, confirmed: bool = False) -> str:
        """無効化（アクティブページの内容だけを残す）"""
        if not confirmed:
            raise ConfirmationRequiredError("disabling pages discards every page except the active one")
        page = self.active_page()
        notes = page.notes if page else ""
        self.pages = []
        self.active_page_id = None
        self.enabled = False
        self.read_only = False
        self.grace_started_at = None
        return notes

    def load(
        self,
        pages: List[NotebookPage],
        active_page_id: Optional[str],
        enabled: bool,
        grace_started_at: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """保存データから復元する

        猶予期間が過ぎて統合した場合は統合後のノートを返す（それ以外はNone）。
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        for page in pages:
            page.lines = parse_text_to_lines(page.notes)
        self.pages = list(pages)
        self.active_page_id = active_page_id
        if self.pages and self.active_page() is None:
            self.active_page_id = self.pages[0].id
        self.enabled = enabled
        self.read_only = False
        self.grace_started_at = None

        if enabled or not self.pages:
            return None

        if not grace_started_at:
            self.grace_started_at = now.isoformat()
            self.read_only = True
            return None

        if now - _parse_timestamp(grace_started_at) > GRACE_PERIOD:
            merged = merge_pages(self.pages)
            self.pages = []
            self.active_page_id = None
            return merged

        self.grace_started_at = grace_started_at
        self.read_only = True
        return None

    # -------------------- ページ操作 --------------------

    def _check_writable(self) -> None:
        if self.read_only:
            raise ReadOnlyNotebookError("pages are read-only during the grace period")

    def _default_name(self) -> str:
        names = {page.name for page in self.pages}
        n = 1
        while f"Page {n}" in names:
            n += 1
        return f"Page {n}"

    def add_page(self, name: Optional[str] = None) -> NotebookPage:
        """ページを追加してアクティブにする"""
        self._check_writable()
        if len(self.pages) >= MAX_PAGES:
            raise PageLimitError(f"a notebook holds at most {MAX_PAGES} pages")
        name = (name or "").strip() or self._default_name()
        page = NotebookPage(name=name)
        self.pages.append(page)
        self.active_page_id = page.id
        return page

    def remove_page(self, page_id: str) -> NotebookPage:
        """ページを閉じる（最後の1ページは閉じられない）"""
        self._check_writable()
        page = self.find(page_id)
        if len(self.pages) <= 1:
            raise LastPageError("the last page cannot be closed")
        index = self.pages.index(page)
        self.pages.remove(page)
        if self.active_page_id == page_id:
            neighbour = self.pages[min(index, len(self.pages) - 1)]
            self.active_page_id = neighbour.id
        return page

    def rename_page(self, page_id: str, name: str) -> NotebookPage:
        """名前を変更（空白だけの名前は無視）"""
        self._check_writable()
        page = self.find(page_id)
        name = (name or "").strip()
        if name:
            page.name = name
        return page

    def reorder_pages(self, active_id: str, over_id: str) -> None:
        """タブのドラッグ&ドロップ（overの位置へ移動）"""
        self._check_writable()
        page = self.find(active_id)
        over = self.find(over_id)
        if page is over:
            return
        target = self.pages.index(over)
        self.pages.remove(page)
        self.pages.insert(target, page)

    def switch_page(self, page_id: str) -> NotebookPage:
        page = self.find(page_id)
        self.active_page_id = page.id
        return page

    def set_page_notes(self, page_id: str, notes: str) -> NotebookPage:
        self._check_writable()
        page = self.find(page_id)
        page.notes = notes
        page.lines = parse_text_to_lines(notes)
        return page

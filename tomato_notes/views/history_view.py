"""
履歴画面（絞り込み・日付ごとの表示・行の復元）
"""
import flet as ft

from ..logic.history_filters import (
    PHASE_NAMES, filter_history, format_clock, group_by_day, phase_text, status_icon,
)
from ..logic.workspace import NotesWorkspace
from ..models import HISTORY_STATUSES, HistoryEntry

RANGE_LABELS = [
    ("all", "すべて"),
    ("today", "今日"),
    ("yesterday", "昨日"),
    ("last7", "過去7日"),
    ("last30", "過去30日"),
    ("thisMonth", "今月"),
]


class HistoryView(ft.Column):
    """履歴画面"""

    def __init__(self, workspace: NotesWorkspace, page: ft.Page):
        super().__init__()
        self.workspace = workspace
        self._page = page
        self.spacing = 15
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO

        self.phases = set()
        self.statuses = set()
        self.date_range = "all"

        self.range_dropdown = ft.Dropdown(
            label="期間",
            width=160,
            value="all",
            options=[ft.dropdown.Option(key, text) for key, text in RANGE_LABELS],
            on_change=self.on_range_change,
        )
        self.entries_column = ft.Column(spacing=10)
        self.message_text = ft.Text("", size=13, color="#81c784")

        self._build()

    def _build(self):
        phase_chips = [
            ft.Checkbox(label=name, value=False,
                        on_change=lambda e, p=phase: self.toggle_filter(self.phases, p, e.control.value))
            for phase, name in PHASE_NAMES.items()
        ]
        status_chips = [
            ft.Checkbox(label=f"{status_icon(s)} {s}", value=False,
                        on_change=lambda e, s=s: self.toggle_filter(self.statuses, s, e.control.value))
            for s in HISTORY_STATUSES
        ]
        self._build_entries()
        self.controls = [
            ft.Row([
                ft.Text("履歴 📜", size=28, weight=ft.FontWeight.BOLD),
                ft.Container(expand=True),
                ft.TextButton("すべて削除", icon="delete_sweep", on_click=self.clear_history),
            ]),
            ft.Row([self.range_dropdown, *phase_chips], wrap=True),
            ft.Row(status_chips, wrap=True),
            self.message_text,
            self.entries_column,
        ]

    def _build_entries(self):
        """日付ごとのエントリ一覧を構築"""
        self.entries_column.controls.clear()
        entries = filter_history(self.workspace.history, self.phases, self.statuses, self.date_range)
        if not entries:
            self.entries_column.controls.append(ft.Text("履歴がありません", color="#9e9e9e"))
            return

        for label, items in group_by_day(entries).items():
            self.entries_column.controls.append(ft.Text(label, size=18, weight=ft.FontWeight.BOLD))
            for entry in items:
                self.entries_column.controls.append(self._entry_card(entry))

    def _entry_card(self, entry: HistoryEntry) -> ft.Container:
        snapshot = self._snapshot_text(entry)
        snapshot_lines = ft.Column(spacing=0)
        for text in snapshot.split("\n"):
            if not text.strip():
                continue
            snapshot_lines.controls.append(ft.TextButton(
                text,
                tooltip="ノートに戻す",
                on_click=lambda e, t=text: self.restore_line(t, snapshot),
            ))

        return ft.Container(
            content=ft.Column([
                ft.Row([
                    ft.Text(status_icon(entry.status), size=18),
                    ft.Text(phase_text(entry.phase, entry.duration_minutes), size=16, expand=True),
                    ft.Text(format_clock(entry), size=13, color="#9e9e9e"),
                    ft.IconButton(
                        icon="delete",
                        icon_color="#ff5722",
                        tooltip="削除",
                        on_click=lambda e, eid=entry.id: self.delete_entry(eid),
                    ),
                ]),
                snapshot_lines,
            ], spacing=2),
            bgcolor="#3e2723",
            border_radius=10,
            padding=10,
        )

    @staticmethod
    def _snapshot_text(entry: HistoryEntry) -> str:
        """記録時のノート（ページがある場合はアクティブだったページ）"""
        if entry.pages_snapshot is not None:
            for page in entry.pages_snapshot.pages:
                if page["id"] == entry.pages_snapshot.active_page_id:
                    return page["notes"]
            return ""
        return entry.notes_snapshot or ""

    # -------------------- 操作 --------------------

    def toggle_filter(self, selected: set, value: str, checked: bool):
        if checked:
            selected.add(value)
        else:
            selected.discard(value)
        self._refresh()

    def on_range_change(self, e):
        self.date_range = e.control.value or "all"
        self._refresh()

    def restore_line(self, line: str, snapshot_text: str):
        added = self.workspace.restore_from_history(line, snapshot_text)
        if added:
            self.message_text.value = f"{len(added)} 行をノートに戻しました"
            self._page.run_task(self.workspace.save)
        else:
            self.message_text.value = "すでにノートにあります"
        self._page.update()

    def delete_entry(self, entry_id: str):
        self._page.run_task(self._delete_async, entry_id)

    async def _delete_async(self, entry_id: str):
        await self.workspace.history.delete(entry_id)
        self._refresh()

    def clear_history(self, e):
        self._page.run_task(self._clear_async)

    async def _clear_async(self):
        await self.workspace.history.clear()
        self._refresh()

    def _refresh(self):
        self._build_entries()
        self._page.update()

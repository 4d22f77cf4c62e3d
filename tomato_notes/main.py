"""
Tomato Notes - メインアプリケーション
ボタンベースのサイドナビゲーションでタイマー・ノート・履歴を切り替える
"""
import asyncio

import flet as ft
import structlog

from .config import FLET_SERVER_PORT, configure_logging
from .database import Database
from .logic.notifier import SpeechNotifier
from .logic.timer_logic import SessionController
from .logic.workspace import NotesWorkspace
from .views.history_view import HistoryView
from .views.notes_view import NotesView
from .views.timer_view import TimerView

logger = structlog.get_logger(__name__)


def main(page: ft.Page):
    """アプリケーションエントリーポイント"""
    configure_logging()

    # ページ設定
    page.title = "Tomato Notes"
    page.theme_mode = ft.ThemeMode.DARK
    page.padding = 0
    page.bgcolor = "#1a1414"

    page.theme = ft.Theme(
        color_scheme=ft.ColorScheme(
            primary="#e53935",
            secondary="#43a047",
            surface="#2a1f1f",
        ),
    )

    # データ読み込み
    db = Database()
    workspace = NotesWorkspace(db)
    asyncio.run(workspace.load())
    logger.info("workspace_loaded", history=len(workspace.history),
                pages=len(workspace.notebook.pages))

    timer = SessionController(
        workspace.settings,
        workspace.history,
        snapshot_provider=workspace.snapshot,
        notifier=SpeechNotifier(workspace.settings),
    )
    timer.before_focus_start = workspace.prune_completed

    content_area = ft.Column(
        expand=True,
        scroll=ft.ScrollMode.AUTO,
    )

    def build_view(index):
        if index == 0:
            return TimerView(timer, workspace, page)
        if index == 1:
            return NotesView(workspace, page)
        return HistoryView(workspace, page)

    def change_view(index):
        """画面を切り替え"""
        content_area.controls.clear()

        for i, btn in enumerate(nav_buttons):
            if i == index:
                btn.bgcolor = "#e53935"
                btn.color = "white"
            else:
                btn.bgcolor = "#3e2723"
                btn.color = "#ffab91"

        content_area.controls.append(build_view(index))
        page.update()

    def on_nav_click(e):
        change_view(e.control.data)

    nav_items = [
        ("🍅", "タイマー", 0),
        ("📝", "ノート", 1),
        ("📜", "履歴", 2),
    ]

    nav_buttons = []
    for emoji, label, idx in nav_items:
        btn = ft.ElevatedButton(
            content=ft.Column([
                ft.Text(emoji, size=20),
                ft.Text(label, size=10),
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=2),
            data=idx,
            on_click=on_nav_click,
            bgcolor="#e53935" if idx == 0 else "#3e2723",
            color="white" if idx == 0 else "#ffab91",
            width=70,
            height=60,
        )
        nav_buttons.append(btn)

    side_nav = ft.Container(
        content=ft.Column(
            nav_buttons,
            spacing=5,
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        ),
        bgcolor="#3e2723",
        padding=10,
        width=90,
    )

    content_area.controls.append(build_view(0))
    page.change_view = change_view

    layout = ft.Row([
        side_nav,
        ft.VerticalDivider(width=1, color="#4e342e"),
        ft.Container(
            content=content_area,
            expand=True,
            padding=20,
        ),
    ], expand=True)

    page.add(layout)

    if workspace.notebook.read_only:
        show_grace_notice(page)


def show_grace_notice(page):
    """ページ機能オフ後の猶予期間を知らせる"""
    def close_dialog(e):
        dialog.open = False
        page.update()

    dialog = ft.AlertDialog(
        modal=True,
        title=ft.Text("ページ機能はオフになっています", size=20, weight=ft.FontWeight.BOLD),
        content=ft.Text(
            "残っているページは読み取り専用です。\n14日後にすべてのページが1つのノートにまとめられます。",
            size=14,
        ),
        actions=[
            ft.ElevatedButton("OK", bgcolor="#43a047", color="white", on_click=close_dialog),
        ],
        actions_alignment=ft.MainAxisAlignment.CENTER,
    )
    page.dialog = dialog
    dialog.open = True
    page.update()


if __name__ == "__main__":
    ft.app(target=main, port=FLET_SERVER_PORT, host="0.0.0.0", view=None)

"""
タイマー画面
"""
import flet as ft

from ..logic.history_filters import PHASE_NAMES
from ..logic.timer_logic import SessionController
from ..logic.workspace import NotesWorkspace
from ..models import FOCUS, RUNNING

PHASE_COLORS = {
    "focus": "#e53935",
    "shortBreak": "#43a047",
    "longBreak": "#1e88e5",
}


class TimerView(ft.Column):
    """タイマー画面"""

    def __init__(self, timer: SessionController, workspace: NotesWorkspace, page: ft.Page):
        super().__init__()
        self.timer = timer
        self.workspace = workspace
        self._page = page
        self.spacing = 20
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO

        # UIコンポーネント
        self.timer_display = ft.Text("00:00", size=96, weight=ft.FontWeight.BOLD, font_family="Consolas")
        self.phase_text = ft.Text("", size=22, weight=ft.FontWeight.BOLD)
        self.round_text = ft.Text("", size=16, color="#bdbdbd")
        self.task_text = ft.Text("", size=14, color="#9e9e9e")

        self.start_button = ft.ElevatedButton(
            "開始",
            icon="play_arrow",
            on_click=self.start_timer,
            style=ft.ButtonStyle(bgcolor="#43a047", color="white"),
        )
        self.skip_button = ft.OutlinedButton("スキップ", icon="skip_next", on_click=self.skip_timer)
        self.stop_button = ft.OutlinedButton("中止", icon="stop", on_click=self.stop_timer)
        self.reset_button = ft.TextButton("リセット", icon="restart_alt", on_click=self.reset_timer)
        self.erase_button = ft.TextButton(
            "全データを消去", icon="delete_forever", on_click=self.confirm_reset_all,
            style=ft.ButtonStyle(color="#ff5722"),
        )

        # タイマーコールバック設定
        self.timer.on_tick = self.on_timer_tick
        self.timer.on_phase_change = self.on_phase_change
        self.timer.on_status_change = self.on_status_change

        self._build()
        self._refresh()

    def _build(self):
        """画面を構築"""
        self.timer_card = ft.Container(
            content=ft.Column([
                self.phase_text,
                self.round_text,
                ft.Container(height=10),
                self.timer_display,
                ft.Container(height=10),
                self.task_text,
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER),
            bgcolor="#3e2723",
            border_radius=15,
            padding=40,
            alignment=ft.alignment.center,
        )

        self.controls = [
            ft.Text("タイマー 🍅", size=28, weight=ft.FontWeight.BOLD),
            self.timer_card,
            ft.Row(
                [self.start_button, self.skip_button, self.stop_button, self.reset_button],
                alignment=ft.MainAxisAlignment.CENTER,
                spacing=10,
            ),
            ft.Row([self.erase_button], alignment=ft.MainAxisAlignment.END),
        ]

    def _refresh(self):
        """表示を現在の状態に合わせる"""
        timer = self.timer
        self.timer_display.value = timer.get_formatted_time()
        self.phase_text.value = PHASE_NAMES.get(timer.current_phase, timer.current_phase)
        self.phase_text.color = PHASE_COLORS.get(timer.current_phase, "white")
        self.round_text.value = f"Round {timer.current_round} / {timer.total_rounds}"

        completed, total = self.workspace.tree.task_counts()
        self.task_text.value = f"タスク {completed} / {total} 完了" if total else ""

        if timer.status == RUNNING:
            self.start_button.text = "一時停止"
            self.start_button.icon = "pause"
        else:
            self.start_button.text = "開始" if timer.time_left == timer.settings.seconds_for(timer.current_phase) else "再開"
            self.start_button.icon = "play_arrow"

    # -------------------- 操作 --------------------

    def start_timer(self, e):
        if self.timer.status == RUNNING:
            self._page.run_task(self._run_async, self.timer.pause)
            return
        # カウントダウンはページのイベントループ上で動かす
        self._page.run_task(self._start_async)

    async def _start_async(self):
        starts_focus = self.timer.current_phase == FOCUS
        self.timer.start()
        if starts_focus:
            await self.workspace.save()

    def skip_timer(self, e):
        self._page.run_task(self._run_async, self.timer.skip)

    def stop_timer(self, e):
        self._page.run_task(self._run_async, self.timer.stop)

    def reset_timer(self, e):
        self._page.run_task(self._run_async, self.timer.reset_cycle)

    async def _run_async(self, action):
        action()
        await self.timer.drain()

    def confirm_reset_all(self, e):
        """確認してから履歴・設定・ノートをすべて消去"""
        def cancel(e):
            dialog.open = False
            self._page.update()

        def confirm(e):
            dialog.open = False
            self._page.run_task(self._reset_all_async)

        dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text("すべてのデータを消去しますか？"),
            content=ft.Text("履歴・設定・ノート・ページがすべて削除されます。元に戻せません。"),
            actions=[
                ft.TextButton("キャンセル", on_click=cancel),
                ft.ElevatedButton("消去する", bgcolor="#e53935", color="white", on_click=confirm),
            ],
        )
        self._page.dialog = dialog
        dialog.open = True
        self._page.update()

    async def _reset_all_async(self):
        self.timer.reset_cycle()
        await self.timer.drain()
        await self.workspace.reset_all()
        self.timer.apply_settings()
        self._refresh()
        self._page.update()

    # -------------------- コールバック --------------------

    def on_timer_tick(self, time_left: int):
        self.timer_display.value = self.timer.get_formatted_time()
        self._page.update()

    def on_phase_change(self, phase: str):
        self._refresh()
        self._page.update()

    def on_status_change(self, status: str):
        self._refresh()
        self._page.update()

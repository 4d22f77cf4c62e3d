"""
ノート/タスク画面（ページタブ対応）
"""
import flet as ft

from ..errors import NotebookError
from ..logic.workspace import NotesWorkspace
from ..models import NOTE, TASK, Line


class NotesView(ft.Column):
    """ノート/タスク画面"""

    def __init__(self, workspace: NotesWorkspace, page: ft.Page):
        super().__init__()
        self.workspace = workspace
        self._page = page
        self.spacing = 15
        self.expand = True
        self.scroll = ft.ScrollMode.AUTO

        self.counter_text = ft.Text("", size=14, color="#bdbdbd")
        self.message_text = ft.Text("", size=13, color="#ff9800")
        self.tabs_row = ft.Row(spacing=5, wrap=True)
        self.lines_column = ft.Column(spacing=2)

        self._build()

    def _build(self):
        """画面を構築"""
        self._build_tabs()
        self._build_lines()

        self.controls = [
            ft.Row([
                ft.Text("ノート 📝", size=28, weight=ft.FontWeight.BOLD),
                ft.Container(expand=True),
                self.counter_text,
            ]),
            self.tabs_row,
            self.message_text,
            self.lines_column,
            ft.Row([
                ft.ElevatedButton("タスクを追加", icon="add_task", on_click=lambda e: self.add_line(TASK)),
                ft.OutlinedButton("メモを追加", icon="notes", on_click=lambda e: self.add_line(NOTE)),
                ft.Container(expand=True),
                ft.Switch(
                    label="ページ",
                    value=self.workspace.notebook.enabled,
                    on_change=self.toggle_pages,
                ),
            ]),
        ]

    def _build_tabs(self):
        """ページタブを構築（ページ機能がオンのときだけ）"""
        self.tabs_row.controls.clear()
        notebook = self.workspace.notebook
        if not notebook.enabled:
            return

        for page in notebook.pages:
            is_active = page.id == notebook.active_page_id
            self.tabs_row.controls.append(ft.Container(
                content=ft.Row([
                    ft.TextButton(
                        page.name,
                        on_click=lambda e, pid=page.id: self.switch_page(pid),
                        style=ft.ButtonStyle(color="white" if is_active else "#bcaaa4"),
                    ),
                    ft.IconButton(
                        icon="close",
                        icon_size=14,
                        tooltip="ページを閉じる",
                        on_click=lambda e, pid=page.id: self.close_page(pid),
                    ),
                ], spacing=0),
                bgcolor="#e53935" if is_active else "#3e2723",
                border_radius=8,
            ))
        self.tabs_row.controls.append(
            ft.IconButton(icon="add", tooltip="ページを追加", on_click=self.add_page)
        )

    def _build_lines(self):
        """行の一覧を構築"""
        self.lines_column.controls.clear()
        tree = self.workspace.tree

        completed, total = tree.task_counts()
        self.counter_text.value = f"{completed} / {total}" if total else ""

        if not tree.lines:
            self.lines_column.controls.append(
                ft.Text("まだ何もありません。下から追加してください。", color="#9e9e9e")
            )
            return

        for i, line in enumerate(tree.lines):
            self.lines_column.controls.append(self._line_row(line, i, len(tree.lines)))

    def _line_row(self, line: Line, index: int, count: int) -> ft.Row:
        if line.is_task:
            marker = ft.Checkbox(
                value=line.completed,
                on_change=lambda e, lid=line.id: self.toggle_completed(lid, e.control.value),
            )
        else:
            marker = ft.Container(ft.Text("#", color="#9e9e9e"), width=40, alignment=ft.alignment.center)

        return ft.Row([
            ft.Container(width=30 if line.indented else 0),
            marker,
            ft.TextField(
                value=line.content,
                expand=True,
                dense=True,
                border=ft.InputBorder.NONE,
                text_style=ft.TextStyle(
                    decoration=ft.TextDecoration.LINE_THROUGH if line.completed else None,
                    color="#9e9e9e" if line.completed else None,
                ),
                on_blur=lambda e, lid=line.id: self.edit_line(lid, e.control.value),
                on_submit=lambda e, lid=line.id: self.add_line(TASK, lid),
            ),
            ft.IconButton(
                icon="format_indent_decrease" if line.indented else "format_indent_increase",
                tooltip="インデント",
                on_click=lambda e, lid=line.id, ind=line.indented: self.set_indent(lid, not ind),
            ),
            ft.IconButton(
                icon="arrow_upward",
                tooltip="上へ移動",
                on_click=lambda e, idx=index: self.move_line(idx, idx - 1),
                disabled=index == 0,
            ),
            ft.IconButton(
                icon="arrow_downward",
                tooltip="下へ移動",
                on_click=lambda e, idx=index: self.move_line(idx, idx + 1),
                disabled=index == count - 1,
            ),
            ft.IconButton(
                icon="delete",
                tooltip="削除",
                icon_color="#ff5722",
                on_click=lambda e, lid=line.id: self.delete_line(lid),
            ),
        ], spacing=2)

    def _changed(self):
        """再描画して保存"""
        self.message_text.value = ""
        self._build_tabs()
        self._build_lines()
        self._page.update()
        self._page.run_task(self.workspace.save)

    # -------------------- 行の操作 --------------------

    def add_line(self, kind: str, after_id=None):
        self.workspace.tree.add(after_id=after_id, kind=kind)
        self._changed()

    def edit_line(self, line_id: str, content: str):
        line = self.workspace.tree.find(line_id)
        if line.content == content:
            return
        self.workspace.tree.update(line_id, content=content)
        self._changed()

    def toggle_completed(self, line_id: str, completed: bool):
        self.workspace.tree.update(line_id, completed=bool(completed))
        self._changed()

    def set_indent(self, line_id: str, indented: bool):
        self.workspace.tree.update(line_id, indented=indented)
        self._changed()

    def move_line(self, index: int, target: int):
        lines = self.workspace.tree.lines
        self.workspace.tree.reorder(lines[index].id, lines[target].id)
        self._changed()

    def delete_line(self, line_id: str):
        self.workspace.tree.delete(line_id)
        self._changed()

    # -------------------- ページ操作 --------------------

    def switch_page(self, page_id: str):
        self.workspace.switch_page(page_id)
        self._changed()

    def add_page(self, e):
        try:
            self.workspace.add_page()
        except NotebookError as err:
            self._show_message(str(err))
            return
        self._changed()

    def close_page(self, page_id: str):
        try:
            self.workspace.remove_page(page_id)
        except NotebookError as err:
            self._show_message(str(err))
            return
        self._changed()

    def toggle_pages(self, e):
        if e.control.value:
            self.workspace.enable_pages()
            self._page.run_task(self.workspace.save_all)
            self._rebuild()
        else:
            self._confirm_disable(e.control)

    def _confirm_disable(self, switch: ft.Switch):
        """ページ機能オフの確認ダイアログ"""
        def cancel(e):
            switch.value = True
            dialog.open = False
            self._page.update()

        def confirm(e):
            dialog.open = False
            self.workspace.disable_pages(confirmed=True)
            self._page.run_task(self.workspace.save_all)
            self._rebuild()

        dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text("ページ機能をオフにしますか？"),
            content=ft.Text("アクティブなページ以外の内容は失われます。"),
            actions=[
                ft.TextButton("キャンセル", on_click=cancel),
                ft.ElevatedButton("オフにする", bgcolor="#e53935", color="white", on_click=confirm),
            ],
        )
        self._page.dialog = dialog
        dialog.open = True
        self._page.update()

    def _rebuild(self):
        self._build()
        self._page.update()

    def _show_message(self, message: str):
        self.message_text.value = message
        self._page.update()

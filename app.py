"""
Tomato Notes - Flask Application
タイマー・ノート・履歴を操作するJSON API
"""
import asyncio

from flask import Flask, jsonify, request

from tomato_notes.config import FLASK_DEBUG, PORT, configure_logging
from tomato_notes.database import Database
from tomato_notes.errors import (
    ConfirmationRequiredError,
    InvalidLineError,
    LastPageError,
    LineNotFoundError,
    PageLimitError,
    PageNotFoundError,
    ReadOnlyNotebookError,
    SettingsError,
    StorageError,
    TomatoNotesError,
)
from tomato_notes.logic.history_filters import DATE_RANGES, filter_history, group_by_day
from tomato_notes.logic.notifier import SpeechNotifier
from tomato_notes.logic.timer_logic import SessionController
from tomato_notes.logic.workspace import NotesWorkspace

ERROR_STATUS = (
    (LineNotFoundError, 404),
    (PageNotFoundError, 404),
    (SettingsError, 400),
    (ConfirmationRequiredError, 400),
    (InvalidLineError, 400),
    (PageLimitError, 409),
    (LastPageError, 409),
    (ReadOnlyNotebookError, 409),
    (StorageError, 500),
)

LINE_FIELDS = {"content": "content", "completed": "completed", "isIndented": "indented", "type": "kind"}


def create_app(db: Database = None, notifier=None) -> Flask:
    """アプリケーションを生成"""
    configure_logging()
    app = Flask(__name__)

    db = db or Database()
    workspace = NotesWorkspace(db)
    asyncio.run(workspace.load())

    timer = SessionController(
        workspace.settings,
        workspace.history,
        snapshot_provider=workspace.snapshot,
        notifier=notifier if notifier is not None else SpeechNotifier(workspace.settings),
    )
    timer.before_focus_start = workspace.prune_completed

    app.extensions["tomato_notes"] = {"workspace": workspace, "timer": timer}

    def notes_payload():
        completed, total = workspace.tree.task_counts()
        return {
            "text": workspace.notes_text(),
            "lines": [line.to_dict() for line in workspace.tree.lines],
            "completed": completed,
            "total": total,
        }

    def notebook_payload():
        notebook = workspace.notebook
        return {
            "enabled": notebook.enabled,
            "readOnly": notebook.read_only,
            "activePageId": notebook.active_page_id,
            "pages": [page.to_dict() for page in notebook.pages],
        }

    def save_notes():
        asyncio.run(workspace.save())

    # ============ ERROR HANDLERS ============

    @app.errorhandler(TomatoNotesError)
    def handle_error(e):
        for error_type, status in ERROR_STATUS:
            if isinstance(e, error_type):
                break
        else:
            status = 400
        return jsonify({"error": str(e), "type": type(e).__name__}), status

    # ============ STATE ============

    @app.route("/api/state")
    def state():
        """タイマー・設定・ノートブックの状態"""
        return jsonify({
            "timer": timer.to_dict(),
            "formattedTime": timer.get_formatted_time(),
            "settings": workspace.settings.to_dict(),
            "notebook": notebook_payload(),
        })

    @app.route("/api/settings", methods=["GET"])
    def get_settings():
        return jsonify(workspace.settings.to_dict())

    @app.route("/api/settings", methods=["PATCH"])
    def update_settings():
        """設定変更（検証してから反映。ページ機能の無効化には ?confirm=true が必要）"""
        changes = request.get_json(silent=True)
        if not isinstance(changes, dict):
            raise SettingsError("settings payload must be a JSON object")
        confirmed = request.args.get("confirm", "").lower() == "true"
        asyncio.run(workspace.update_settings(changes, confirmed=confirmed))
        timer.apply_settings()
        return jsonify(workspace.settings.to_dict())

    @app.route("/api/reset", methods=["POST"])
    def reset_all():
        """全データを消去してタイマーを最初のラウンドに戻す"""
        asyncio.run(workspace.reset_all())
        timer.reset_cycle()
        return jsonify({
            "timer": timer.to_dict(),
            "settings": workspace.settings.to_dict(),
            "notebook": notebook_payload(),
            "notes": notes_payload(),
        })

    # ============ TIMER ============

    @app.route("/api/timer/<action>", methods=["POST"])
    def timer_action(action):
        """start / pause / stop / skip / tick / reset"""
        actions = {
            "start": timer.start,
            "pause": timer.pause,
            "stop": timer.stop,
            "skip": timer.skip,
            "tick": timer.tick,
            "reset": timer.reset_cycle,
        }
        if action not in actions:
            return jsonify({"error": f"unknown action: {action}"}), 404
        actions[action]()
        if action == "start":
            # 開始前の片付けでノートが変わっている可能性がある
            save_notes()
        return jsonify({"timer": timer.to_dict(), "formattedTime": timer.get_formatted_time()})

    # ============ NOTES ============

    @app.route("/api/notes", methods=["GET"])
    def get_notes():
        return jsonify(notes_payload())

    @app.route("/api/notes", methods=["PUT"])
    def replace_notes():
        """ノート全体をテキストで置き換え"""
        data = request.get_json(silent=True) or {}
        workspace.tree.replace_text(str(data.get("text", "")))
        save_notes()
        return jsonify(notes_payload())

    @app.route("/api/lines", methods=["POST"])
    def add_line():
        data = request.get_json(silent=True) or {}
        line = workspace.tree.add(
            after_id=data.get("afterId"),
            content=str(data.get("content", "")),
            kind=data.get("type", "task"),
        )
        save_notes()
        return jsonify(line.to_dict()), 201

    @app.route("/api/lines/<line_id>", methods=["PATCH"])
    def update_line(line_id):
        """行の更新（完了状態の変更は親子に連動）"""
        data = request.get_json(silent=True) or {}
        changes = {LINE_FIELDS[k]: v for k, v in data.items() if k in LINE_FIELDS}
        workspace.tree.update(line_id, **changes)
        save_notes()
        return jsonify(notes_payload())

    @app.route("/api/lines/<line_id>", methods=["DELETE"])
    def delete_line(line_id):
        workspace.tree.delete(line_id)
        save_notes()
        return jsonify(notes_payload())

    @app.route("/api/lines/reorder", methods=["POST"])
    def reorder_lines():
        data = request.get_json(silent=True) or {}
        workspace.tree.reorder(data.get("activeId"), data.get("overId"))
        save_notes()
        return jsonify(notes_payload())

    # ============ HISTORY ============

    @app.route("/api/history", methods=["GET"])
    def list_history():
        """履歴一覧（phase / status / range で絞り込み）"""
        date_range = request.args.get("range", "all")
        if date_range not in DATE_RANGES:
            return jsonify({"error": f"unknown range: {date_range}"}), 400
        entries = filter_history(
            workspace.history,
            phases=set(request.args.getlist("phase")),
            statuses=set(request.args.getlist("status")),
            date_range=date_range,
        )
        groups = group_by_day(entries)
        return jsonify({
            "entries": [e.to_dict() for e in entries],
            "groups": [{"label": label, "ids": [e.id for e in items]} for label, items in groups.items()],
        })

    @app.route("/api/history/<entry_id>", methods=["DELETE"])
    def delete_history(entry_id):
        deleted = asyncio.run(workspace.history.delete(entry_id))
        if not deleted:
            return jsonify({"error": f"history entry not found: {entry_id}"}), 404
        return jsonify({"success": True})

    @app.route("/api/history", methods=["DELETE"])
    def clear_history():
        asyncio.run(workspace.history.clear())
        return jsonify({"success": True})

    @app.route("/api/history/<entry_id>/restore", methods=["POST"])
    def restore_history_line(entry_id):
        """履歴の行を現在のノートに復元"""
        entry = workspace.history.find(entry_id)
        if entry is None:
            return jsonify({"error": f"history entry not found: {entry_id}"}), 404
        data = request.get_json(silent=True) or {}
        line = data.get("line")
        if not isinstance(line, str) or not line.strip():
            return jsonify({"error": "line is required"}), 400

        snapshot_text = entry.notes_snapshot or ""
        if entry.pages_snapshot is not None:
            page_id = data.get("pageId") or entry.pages_snapshot.active_page_id
            for page in entry.pages_snapshot.pages:
                if page["id"] == page_id:
                    snapshot_text = page["notes"]
                    break

        added = workspace.restore_from_history(line, snapshot_text)
        save_notes()
        payload = notes_payload()
        payload["added"] = added
        return jsonify(payload)

    # ============ NOTEBOOK ============

    @app.route("/api/notebook", methods=["GET"])
    def get_notebook():
        return jsonify(notebook_payload())

    @app.route("/api/notebook/enable", methods=["POST"])
    def enable_notebook():
        workspace.enable_pages()
        asyncio.run(workspace.save_all())
        return jsonify(notebook_payload())

    @app.route("/api/notebook/disable", methods=["POST"])
    def disable_notebook():
        """無効化（confirm: true が必要）"""
        data = request.get_json(silent=True) or {}
        workspace.disable_pages(confirmed=bool(data.get("confirm")))
        asyncio.run(workspace.save_all())
        return jsonify({"notebook": notebook_payload(), "notes": notes_payload()})

    @app.route("/api/notebook/pages", methods=["POST"])
    def add_page():
        data = request.get_json(silent=True) or {}
        page = workspace.add_page(data.get("name"))
        save_notes()
        return jsonify(page.to_dict()), 201

    @app.route("/api/notebook/pages/<page_id>", methods=["PATCH"])
    def rename_page(page_id):
        data = request.get_json(silent=True) or {}
        page = workspace.notebook.rename_page(page_id, data.get("name", ""))
        save_notes()
        return jsonify(page.to_dict())

    @app.route("/api/notebook/pages/<page_id>", methods=["DELETE"])
    def remove_page(page_id):
        workspace.remove_page(page_id)
        save_notes()
        return jsonify(notebook_payload())

    @app.route("/api/notebook/pages/<page_id>/activate", methods=["POST"])
    def activate_page(page_id):
        workspace.switch_page(page_id)
        save_notes()
        return jsonify({"notebook": notebook_payload(), "notes": notes_payload()})

    @app.route("/api/notebook/pages/reorder", methods=["POST"])
    def reorder_pages():
        data = request.get_json(silent=True) or {}
        workspace.notebook.reorder_pages(data.get("activeId"), data.get("overId"))
        save_notes()
        return jsonify(notebook_payload())

    return app


# ============ MAIN ============

if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=PORT, debug=FLASK_DEBUG)

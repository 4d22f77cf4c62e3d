"""
データモデル定義
"""
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import SettingsError

# フェーズ
FOCUS = "focus"
SHORT_BREAK = "shortBreak"
LONG_BREAK = "longBreak"
PHASES = (FOCUS, SHORT_BREAK, LONG_BREAK)

# タイマー状態
IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"

# 履歴ステータス
COMPLETED = "completed"
SKIPPED = "skipped"
STOPPED = "stopped"
HISTORY_STATUSES = (COMPLETED, SKIPPED, STOPPED)

# 行の種類
TASK = "task"
NOTE = "note"


def new_id() -> str:
    """一意なIDを生成"""
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    """現在時刻（ISO-8601, UTC）"""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Line:
    """ノート/タスクエディタの1行"""
    id: str = field(default_factory=new_id)
    content: str = ""
    kind: str = TASK  # task, note
    completed: bool = False  # taskのみ意味を持つ
    indented: bool = False
    parent_id: Optional[str] = None  # 親タスクへの参照（所有関係ではない）

    @property
    def is_task(self) -> bool:
        return self.kind == TASK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.kind,
            "completed": self.completed,
            "isIndented": self.indented,
            "parentId": self.parent_id,
        }


@dataclass
class NotebookPage:
    """ノートブックの1ページ"""
    id: str = field(default_factory=new_id)
    name: str = ""
    notes: str = ""
    lines: List[Line] = field(default_factory=list)  # notesから再生成できるキャッシュ

    def to_dict(self) -> Dict[str, Any]:
        """保存用（linesは含めない）"""
        return {"id": self.id, "name": self.name, "notes": self.notes}


@dataclass(frozen=True)
class PagesSnapshot:
    """フェーズ終了時点のノートブック全体のスナップショット"""
    pages: tuple = ()  # ({id, name, notes}, ...)
    active_page_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": [dict(p) for p in self.pages],
            "activePageId": self.active_page_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PagesSnapshot":
        pages = tuple(
            {"id": p.get("id", ""), "name": p.get("name", ""), "notes": p.get("notes", "")}
            for p in data.get("pages", [])
        )
        return cls(pages=pages, active_page_id=data.get("activePageId", ""))


@dataclass(frozen=True)
class HistoryEntry:
    """履歴エントリ（作成後は変更しない）"""
    phase: str
    duration_minutes: float
    status: str  # completed, skipped, stopped
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=utc_now_iso)
    notes_snapshot: Optional[str] = None
    pages_snapshot: Optional[PagesSnapshot] = None

    @property
    def recorded_at(self) -> datetime:
        """タイムスタンプをdatetimeに変換"""
        value = self.timestamp
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "phase": self.phase,
            "durationMinutes": self.duration_minutes,
            "status": self.status,
        }
        if self.notes_snapshot is not None:
            data["notesSnapshot"] = self.notes_snapshot
        if self.pages_snapshot is not None:
            data["pagesSnapshot"] = self.pages_snapshot.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        pages = data.get("pagesSnapshot")
        return cls(
            id=data.get("id") or new_id(),
            timestamp=data.get("timestamp") or utc_now_iso(),
            phase=data.get("phase", FOCUS),
            duration_minutes=data.get("durationMinutes", 0),
            status=data.get("status", COMPLETED),
            notes_snapshot=data.get("notesSnapshot"),
            pages_snapshot=PagesSnapshot.from_dict(pages) if pages else None,
        )


# 保存キー（camelCase）との対応
_SETTINGS_KEYS = {
    "focus_duration": "focusDuration",
    "short_break_duration": "shortBreakDuration",
    "long_break_duration": "longBreakDuration",
    "rounds_before_long_break": "roundsBeforeLongBreak",
    "keep_completed_across_phases": "keepCompletedAcrossPhases",
    "sound_enabled": "soundEnabled",
    "notifications_enabled": "notificationsEnabled",
    "notebook_pages_enabled": "notebookPagesEnabled",
}


@dataclass
class Settings:
    """タイマー・ノートの設定"""
    focus_duration: float = 25  # 分（小数可）
    short_break_duration: float = 5
    long_break_duration: float = 15
    rounds_before_long_break: int = 4
    keep_completed_across_phases: bool = False
    sound_enabled: bool = True
    notifications_enabled: bool = True
    notebook_pages_enabled: bool = False

    def duration_for(self, phase: str) -> float:
        """フェーズの長さ（分）"""
        if phase == SHORT_BREAK:
            return self.short_break_duration
        if phase == LONG_BREAK:
            return self.long_break_duration
        return self.focus_duration

    def seconds_for(self, phase: str) -> int:
        """フェーズの長さ（秒）"""
        return int(round(self.duration_for(phase) * 60))

    def to_dict(self) -> Dict[str, Any]:
        return {camel: getattr(self, name) for name, camel in _SETTINGS_KEYS.items()}

    def merged(self, changes: Dict[str, Any]) -> "Settings":
        """一部の項目を変更した新しい設定を返す（検証あり）"""
        data = self.to_dict()
        data.update(changes)
        return Settings.from_dict(data)

    def update_from(self, other: "Settings") -> None:
        """同じオブジェクトを参照している箇所にも反映されるよう、その場で上書き"""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """保存データから設定を復元（欠けている項目はデフォルト値）"""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise SettingsError(f"settings must be an object, got {type(data).__name__}")

        values = {}
        for f in fields(cls):
            camel = _SETTINGS_KEYS[f.name]
            if camel in data:
                values[f.name] = data[camel]
            elif f.name in data:
                values[f.name] = data[f.name]

        for name in ("focus_duration", "short_break_duration", "long_break_duration"):
            if name in values:
                value = values[name]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise SettingsError(f"{_SETTINGS_KEYS[name]} must be a positive number")

        if "rounds_before_long_break" in values:
            value = values["rounds_before_long_break"]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise SettingsError("roundsBeforeLongBreak must be an integer >= 1")

        for name in ("keep_completed_across_phases", "sound_enabled",
                     "notifications_enabled", "notebook_pages_enabled"):
            if name in values and not isinstance(values[name], bool):
                raise SettingsError(f"{_SETTINGS_KEYS[name]} must be a boolean")

        return cls(**values)

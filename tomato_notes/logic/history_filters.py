"""
履歴の絞り込み・日付ごとのグループ化・表示用テキスト
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from ..models import HistoryEntry

DATE_RANGES = ("all", "today", "yesterday", "last7", "last30", "thisMonth")

PHASE_NAMES = {
    "focus": "Focus",
    "shortBreak": "Short Break",
    "longBreak": "Long Break",
}

STATUS_ICONS = {
    "completed": "✅",
    "skipped": "⏭",
    "stopped": "⏹",
}


def phase_text(phase: str, duration_minutes: float) -> str:
    """例: 'Focus (25 min)'"""
    minutes = int(duration_minutes) if float(duration_minutes).is_integer() else duration_minutes
    return f"{PHASE_NAMES.get(phase, phase)} ({minutes} min)"


def status_icon(status: str) -> str:
    return STATUS_ICONS.get(status, "○")


def _local(entry: HistoryEntry) -> datetime:
    """ローカル時刻（タイムゾーンなし）に揃える"""
    recorded = entry.recorded_at
    if recorded.tzinfo is not None:
        recorded = recorded.astimezone().replace(tzinfo=None)
    return recorded


def in_date_range(entry: HistoryEntry, date_range: str, now: datetime) -> bool:
    """エントリが期間内かどうか"""
    if date_range == "all":
        return True

    recorded = _local(entry)
    today = now.date()
    day = recorded.date()

    if date_range == "today":
        return day == today
    if date_range == "yesterday":
        return day == today - timedelta(days=1)
    if date_range == "last7":
        return today - timedelta(days=6) <= day <= today
    if date_range == "last30":
        return today - timedelta(days=29) <= day <= today
    if date_range == "thisMonth":
        return day.year == today.year and day.month == today.month
    raise ValueError(f"unknown date range: {date_range}")


def filter_history(
    entries: Iterable[HistoryEntry],
    phases: Optional[Set[str]] = None,
    statuses: Optional[Set[str]] = None,
    date_range: str = "all",
    now: Optional[datetime] = None,
) -> List[HistoryEntry]:
    """フェーズ・ステータス・期間で絞り込む（空の集合は絞り込みなし）"""
    if now is None:
        now = datetime.now()
    result = []
    for entry in entries:
        if phases and entry.phase not in phases:
            continue
        if statuses and entry.status not in statuses:
            continue
        if not in_date_range(entry, date_range, now):
            continue
        result.append(entry)
    return result


def day_label(recorded: datetime, today: datetime) -> str:
    """'Today' / 'Yesterday' / 'Oct 3' / 'Oct 3, 2024'"""
    if recorded.date() == today.date():
        return "Today"
    if recorded.date() == today.date() - timedelta(days=1):
        return "Yesterday"
    label = f"{recorded.strftime('%b')} {recorded.day}"
    if recorded.year != today.year:
        label += f", {recorded.year}"
    return label


def group_by_day(
    entries: Iterable[HistoryEntry], today: Optional[datetime] = None
) -> Dict[str, List[HistoryEntry]]:
    """日付ごとにまとめる（入力順を保つ）"""
    if today is None:
        today = datetime.now()
    groups: Dict[str, List[HistoryEntry]] = OrderedDict()
    for entry in entries:
        groups.setdefault(day_label(_local(entry), today), []).append(entry)
    return groups


def format_clock(entry: HistoryEntry) -> str:
    """例: '9:05 PM'"""
    recorded = _local(entry)
    hour = recorded.hour % 12 or 12
    suffix = "AM" if recorded.hour < 12 else "PM"
    return f"{hour}:{recorded.minute:02d} {suffix}"

"""
ノートテキスト <-> 行リスト 変換ロジック

保存形式:
    ✓ 完了タスク
    未完了タスク
      子タスク（先頭に半角スペース2つ、またはタブ）
    # メモ行
"""
from typing import Iterable, List, Optional

from ..models import Line, NOTE, TASK

COMPLETION_MARKER = "✓"
NOTE_MARKER = "#"
INDENT = "  "


def is_indented(raw: str) -> bool:
    """インデントされた行（子行）かどうか"""
    return raw.startswith(INDENT) or raw.startswith("\t")


def _strip_marker(text: str, marker: str) -> str:
    """先頭のマーカーと直後の空白1つを取り除く"""
    rest = text[len(marker):]
    if rest.startswith(" "):
        rest = rest[1:]
    return rest


def parse_line(raw: str, parent_id: Optional[str] = None) -> Optional[Line]:
    """1行をLineに変換（空行はNone）"""
    trimmed = raw.strip()
    if not trimmed:
        return None

    indented = is_indented(raw)
    if trimmed.startswith(NOTE_MARKER):
        return Line(
            content=_strip_marker(trimmed, NOTE_MARKER),
            kind=NOTE,
            indented=indented,
            parent_id=parent_id if indented else None,
        )

    completed = trimmed.startswith(COMPLETION_MARKER)
    content = _strip_marker(trimmed, COMPLETION_MARKER) if completed else trimmed
    return Line(
        content=content,
        kind=TASK,
        completed=completed,
        indented=indented,
        parent_id=parent_id if indented else None,
    )


def parse_text_to_lines(text: Optional[str]) -> List[Line]:
    """テキスト全体を行リストに変換（どんな入力でも失敗しない）"""
    lines: List[Line] = []
    if not text:
        return lines

    last_task_id: Optional[str] = None
    for raw in text.splitlines():
        line = parse_line(raw, last_task_id)
        if line is None:
            continue
        # インデントなしのタスクだけが親になる（メモ行は親にならない）
        if not line.indented and line.kind == TASK:
            last_task_id = line.id
        lines.append(line)
    return lines


def serialize_line(line: Line) -> str:
    """1行を保存形式に変換"""
    prefix = INDENT if line.indented else ""
    if line.kind == NOTE:
        return f"{prefix}{NOTE_MARKER} {line.content}"
    if line.completed:
        return f"{prefix}{COMPLETION_MARKER} {line.content}"
    return f"{prefix}{line.content}"


def lines_to_text(lines: Iterable[Line]) -> str:
    """行リストをテキストに変換（空になる行は捨てる）"""
    out = []
    for line in lines:
        text = serialize_line(line)
        if text.strip():
            out.append(text)
    return "\n".join(out)


def strip_completion_marker(text: str) -> str:
    """前後の空白と完了マーカーを除いた本文"""
    trimmed = text.strip()
    if trimmed.startswith(COMPLETION_MARKER):
        trimmed = trimmed[len(COMPLETION_MARKER):].lstrip()
    return trimmed

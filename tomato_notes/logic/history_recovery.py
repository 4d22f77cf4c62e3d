"""
履歴からの行の復元ロジック

履歴のスナップショット中の1行をクリックしたとき、その行と親子関係にある
行を取り出し、重複させずに現在のノートへ追記する。

同じ内容の行がスナップショット内に複数ある場合は最初の行として扱う。
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from .line_codec import is_indented, strip_completion_marker


@dataclass
class LineLocation:
    """スナップショット内での行の位置"""
    is_child: bool
    parent_index: Optional[int]
    target_index: int


def locate_line(target_line: str, snapshot: str) -> Optional[LineLocation]:
    """targetと完全一致する最初の行を探す（見つからなければNone）"""
    lines = snapshot.split("\n")
    try:
        target_index = lines.index(target_line)
    except ValueError:
        return None

    is_child = is_indented(target_line)
    parent_index = None
    if is_child:
        for i in range(target_index - 1, -1, -1):
            candidate = lines[i]
            if candidate.strip() and not is_indented(candidate):
                parent_index = i
                break

    return LineLocation(is_child=is_child, parent_index=parent_index, target_index=target_index)


def extract_hierarchy(target_line: str, snapshot: str) -> List[str]:
    """復元対象の行を取り出す

    子なら [親, 対象]（兄弟の子は含めない）、
    親なら [対象, 直後に続く子...]（インデントなし行か空行で止まる）。
    """
    location = locate_line(target_line, snapshot)
    if location is None:
        return [target_line]

    lines = snapshot.split("\n")
    if location.is_child:
        if location.parent_index is None:
            return [target_line]
        return [lines[location.parent_index], target_line]

    extracted = [target_line]
    for line in lines[location.target_index + 1:]:
        if not line.strip() or not is_indented(line):
            break
        extracted.append(line)
    return extracted


def duplicate_key(line: str) -> Tuple[int, str]:
    """重複判定キー (階層, 完了マーカーを除いた本文)"""
    level = 1 if is_indented(line) else 0
    return level, strip_completion_marker(line)


def _existing_keys(text: str) -> Set[Tuple[int, str]]:
    return {duplicate_key(line) for line in text.split("\n") if line.strip()}


def select_new_lines(extracted: Iterable[str], current_notes: str) -> List[str]:
    """現在のノートにまだない行だけを返す"""
    seen = _existing_keys(current_notes or "")
    survivors = []
    for line in extracted:
        if not line.strip():
            continue
        key = duplicate_key(line)
        if key in seen:
            continue
        seen.add(key)
        survivors.append(line)
    return survivors


def merge_into_current_notes(extracted: Iterable[str], current_notes: str) -> str:
    """取り出した行を現在のノートの末尾に追記したテキストを返す"""
    current_notes = current_notes or ""
    survivors = select_new_lines(extracted, current_notes)
    if not survivors:
        return current_notes
    addition = "\n".join(survivors)
    if not current_notes.strip():
        return addition
    return current_notes.rstrip("\n") + "\n" + addition

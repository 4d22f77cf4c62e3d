"""
タスク階層ロジック（親子関係・完了の連動・並び替え）

メモリ上の行リストが正本。テキストは保存・書き出し用の表現として扱い、
編集のたびに再パースはしない（IDを保つため）。
"""
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import InvalidLineError, LineNotFoundError
from ..models import Line, NOTE, TASK
from .line_codec import is_indented, lines_to_text, parse_text_to_lines

_EDITABLE_FIELDS = ("content", "kind", "completed", "indented")
LINE_KINDS = (TASK, NOTE)


def _checked_kind(kind) -> str:
    if kind not in LINE_KINDS:
        raise InvalidLineError(f"unknown line type: {kind!r}")
    return kind


class TaskTree:
    """タスク/メモ行のフラットなリストと、その親子関係を管理するクラス"""

    def __init__(self, lines: Optional[Iterable[Line]] = None):
        self.lines: List[Line] = list(lines or [])

    @classmethod
    def from_text(cls, text: Optional[str]) -> "TaskTree":
        return cls(parse_text_to_lines(text))

    def to_text(self) -> str:
        return lines_to_text(self.lines)

    def replace_text(self, text: Optional[str]) -> None:
        """全体をテキストから作り直す（ページ切替・外部からの一括更新用）"""
        self.lines = parse_text_to_lines(text)

    def extend_text(self, raw_lines: Iterable[str]) -> List[Line]:
        """テキスト行を末尾に追加し、追加した行を返す"""
        added = parse_text_to_lines("\n".join(raw_lines))
        self.lines.extend(added)
        self._rebind_parents()
        return added

    # -------------------- 参照 --------------------

    def find(self, line_id: str) -> Line:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise LineNotFoundError(line_id)

    def index_of(self, line_id: str) -> int:
        for i, line in enumerate(self.lines):
            if line.id == line_id:
                return i
        raise LineNotFoundError(line_id)

    def children_of(self, line_id: str) -> List[Line]:
        """直接の子タスク"""
        return [l for l in self.lines if l.parent_id == line_id and l.kind == TASK]

    def task_counts(self) -> Tuple[int, int]:
        """(完了数, タスク総数)"""
        tasks = [l for l in self.lines if l.kind == TASK]
        return sum(1 for t in tasks if t.completed), len(tasks)

    # -------------------- 変更 --------------------

    def update(self, line_id: str, **changes) -> Line:
        """行を更新する（完了状態の変更は親子に連動）"""
        line = self.find(line_id)
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"unknown line fields: {', '.join(sorted(unknown))}")
        if "kind" in changes:
            _checked_kind(changes["kind"])

        structural = False

        if "content" in changes:
            content = changes["content"]
            # Tabキーで付けたインデントは本文から外して行の属性にする
            if is_indented(content):
                changes.setdefault("indented", True)
            line.content = content.strip()

        if "kind" in changes and changes["kind"] != line.kind:
            line.kind = changes["kind"]
            if line.kind == NOTE:
                line.completed = False
            structural = True

        if "indented" in changes and bool(changes["indented"]) != line.indented:
            line.indented = bool(changes["indented"])
            structural = True

        if structural:
            self._rebind_parents()

        if "completed" in changes and line.kind == TASK:
            completed = bool(changes["completed"])
            if completed != line.completed:
                line.completed = completed
                self._push_to_children(line)
                if completed:
                    self._complete_ancestors(line)
                else:
                    self._uncomplete_ancestors(line)

        return line

    def add(self, after_id: Optional[str] = None, content: str = "", kind: str = TASK) -> Line:
        """新しい行を追加（after_idがなければ末尾）"""
        line = Line(content=content, kind=_checked_kind(kind))
        index = len(self.lines)
        if after_id is not None:
            for i, existing in enumerate(self.lines):
                if existing.id == after_id:
                    index = i + 1
                    break
        self.lines.insert(index, line)
        self._rebind_parents()
        return line

    def delete(self, line_id: str) -> Line:
        """行を削除する。子は親なしのトップレベル行に昇格させる"""
        line = self.find(line_id)
        self.lines.remove(line)
        for child in self.lines:
            if child.parent_id == line.id:
                child.indented = False
                child.parent_id = None
        self._rebind_parents()
        return line

    def reorder(self, active_id: str, over_id: str) -> None:
        """ドラッグ&ドロップによる並び替え（親は子ごと移動）"""
        if active_id == over_id:
            return
        from_index = self.index_of(active_id)
        over_index = self.index_of(over_id)

        block = self._block(from_index)
        block_ids = {l.id for l in block}
        if over_id in block_ids:
            return

        remaining = [l for l in self.lines if l.id not in block_ids]
        target = next(i for i, l in enumerate(remaining) if l.id == over_id)

        if from_index > over_index:
            # 上へ移動: overの直前
            insert_at = target
        else:
            # 下へ移動: overの子もまたいでその後ろ
            insert_at = target + len(self._block_in(remaining, target))

        self.lines = remaining[:insert_at] + block + remaining[insert_at:]
        self._rebind_parents()

    def prune_completed(self) -> List[Line]:
        """完了したトップレベルタスクとその子を取り除き、取り除いた行を返す"""
        removed_ids = set()
        kept: List[Line] = []
        removed: List[Line] = []
        for line in self.lines:
            if not line.indented and line.kind == TASK and line.completed:
                removed_ids.add(line.id)
                removed.append(line)
            elif line.indented and line.parent_id in removed_ids:
                removed.append(line)
            else:
                kept.append(line)
        self.lines = kept
        return removed

    # -------------------- 内部処理 --------------------

    def _block(self, index: int) -> List[Line]:
        return self._block_in(self.lines, index)

    @staticmethod
    def _block_in(lines: List[Line], index: int) -> List[Line]:
        """index行から始まる移動単位（インデントなしなら直後に続く子も含む）"""
        head = lines[index]
        block = [head]
        if head.indented:
            return block
        for line in lines[index + 1:]:
            if line.parent_id != head.id:
                break
            block.append(line)
        return block

    def _rebind_parents(self) -> None:
        """インデント行を直前のトップレベルタスクに結び直す（なければ昇格）"""
        last_task_id: Optional[str] = None
        for line in self.lines:
            if line.indented and last_task_id is None:
                line.indented = False
            if not line.indented:
                line.parent_id = None
                if line.kind == TASK:
                    last_task_id = line.id
            else:
                line.parent_id = last_task_id

    def _by_id(self) -> Dict[str, Line]:
        return {l.id: l for l in self.lines}

    def _push_to_children(self, line: Line) -> None:
        """親の完了状態を直接の子へ（孫には広げない）"""
        for child in self.children_of(line.id):
            if child.id != line.id:
                child.completed = line.completed

    def _ancestors(self, line: Line):
        """parent_idをたどって祖先を順に返す（循環していても止まる）"""
        by_id = self._by_id()
        seen = {line.id}
        parent_id = line.parent_id
        while parent_id is not None and parent_id not in seen:
            parent = by_id.get(parent_id)
            if parent is None:
                return
            seen.add(parent.id)
            yield parent
            parent_id = parent.parent_id

    def _complete_ancestors(self, line: Line) -> None:
        for ancestor in self._ancestors(line):
            children = self.children_of(ancestor.id)
            if not children or not all(c.completed for c in children):
                break
            ancestor.completed = True

    def _uncomplete_ancestors(self, line: Line) -> None:
        for ancestor in self._ancestors(line):
            ancestor.completed = False

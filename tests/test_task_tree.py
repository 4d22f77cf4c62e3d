"""
Task hierarchy tests: completion cascade, editing, reordering and pruning.
"""

import pytest

from tomato_notes.errors import InvalidLineError, LineNotFoundError
from tomato_notes.logic.task_tree import TaskTree
from tomato_notes.models import Line, NOTE, TASK


def by_content(tree: TaskTree, content: str):
    return next(l for l in tree.lines if l.content == content)


class TestCompletionCascade:
    """Completion state flows between parents and children."""

    def test_completing_parent_completes_children(self):
        tree = TaskTree.from_text("Parent\n  A\n  B")
        tree.update(by_content(tree, "Parent").id, completed=True)
        assert tree.to_text() == "✓ Parent\n  ✓ A\n  ✓ B"

    def test_completing_last_child_completes_parent(self):
        tree = TaskTree.from_text("Parent\n  A\n  B")
        tree.update(by_content(tree, "A").id, completed=True)
        assert not by_content(tree, "Parent").completed

        tree.update(by_content(tree, "B").id, completed=True)
        assert by_content(tree, "Parent").completed

    def test_uncompleting_child_uncompletes_parent(self):
        tree = TaskTree.from_text("✓ Parent\n  ✓ A\n  ✓ B")
        tree.update(by_content(tree, "A").id, completed=False)
        assert tree.to_text() == "Parent\n  A\n  ✓ B"

    def test_uncompleting_parent_uncompletes_children(self):
        tree = TaskTree.from_text("✓ Parent\n  ✓ A")
        tree.update(by_content(tree, "Parent").id, completed=False)
        assert tree.to_text() == "Parent\n  A"

    def test_note_children_are_ignored(self):
        tree = TaskTree.from_text("Parent\n  # memo\n  A")
        tree.update(by_content(tree, "A").id, completed=True)
        assert by_content(tree, "Parent").completed

    def test_other_parents_are_untouched(self):
        tree = TaskTree.from_text("P1\n  a\nP2\n  b")
        tree.update(by_content(tree, "P1").id, completed=True)
        assert not by_content(tree, "P2").completed
        assert not by_content(tree, "b").completed

    def test_completion_pushes_to_direct_children_only(self):
        parent = Line(id="p", content="Parent")
        child = Line(id="c", content="Child", indented=True, parent_id="p")
        grandchild = Line(id="g", content="Grandchild", indented=True, parent_id="c")
        tree = TaskTree([parent, child, grandchild])

        tree.update("p", completed=True)
        assert child.completed
        assert not grandchild.completed


class TestUpdate:
    """Editing individual lines."""

    def test_unknown_line(self):
        tree = TaskTree.from_text("A")
        with pytest.raises(LineNotFoundError):
            tree.update("missing", content="x")

    def test_unknown_field(self):
        tree = TaskTree.from_text("A")
        with pytest.raises(TypeError):
            tree.update(tree.lines[0].id, colour="red")

    def test_switching_to_note_clears_completion(self):
        tree = TaskTree.from_text("✓ A")
        line = tree.update(tree.lines[0].id, kind=NOTE)
        assert line.kind == NOTE
        assert not line.completed
        assert tree.to_text() == "# A"

    def test_unknown_kind_is_rejected(self):
        tree = TaskTree.from_text("✓ A")
        with pytest.raises(InvalidLineError):
            tree.update(tree.lines[0].id, kind="heading")
        assert tree.lines[0].kind == TASK
        assert tree.to_text() == "✓ A"

    def test_add_rejects_unknown_kind(self):
        tree = TaskTree.from_text("A")
        with pytest.raises(InvalidLineError):
            tree.add(content="B", kind="bullet")
        assert tree.to_text() == "A"

    def test_indented_content_becomes_child(self):
        tree = TaskTree.from_text("Parent\nChild")
        parent, child = tree.lines
        tree.update(child.id, content="  Child")
        assert child.indented
        assert child.content == "Child"
        assert child.parent_id == parent.id

    def test_indent_without_preceding_task_is_promoted(self):
        tree = TaskTree.from_text("A")
        line = tree.update(tree.lines[0].id, indented=True)
        assert not line.indented
        assert line.parent_id is None

    def test_task_counts(self):
        tree = TaskTree.from_text("A\n✓ B\n# note\n  ✓ c")
        assert tree.task_counts() == (2, 3)


class TestAddDelete:
    """Adding and deleting lines."""

    def test_add_after_anchor(self):
        tree = TaskTree.from_text("A\nB")
        tree.add(after_id=by_content(tree, "A").id, content="X")
        assert tree.to_text() == "A\nX\nB"

    def test_add_appends_without_anchor(self):
        tree = TaskTree.from_text("A")
        tree.add(content="B")
        tree.add(after_id="missing", content="C", kind=NOTE)
        assert tree.to_text() == "A\nB\n# C"

    def test_delete_promotes_children(self):
        tree = TaskTree.from_text("P\n  c1\n  c2\nQ")
        tree.delete(by_content(tree, "P").id)
        assert tree.to_text() == "c1\nc2\nQ"
        assert all(l.parent_id is None for l in tree.lines)

    def test_delete_unknown(self):
        tree = TaskTree.from_text("A")
        with pytest.raises(LineNotFoundError):
            tree.delete("missing")

    def test_extend_text_binds_children(self):
        tree = TaskTree.from_text("A")
        added = tree.extend_text(["P", "  c"])
        assert len(added) == 2
        assert by_content(tree, "c").parent_id == by_content(tree, "P").id


class TestReorder:
    """Drag and drop reordering keeps parents with their children."""

    def test_move_parent_down_past_block(self):
        tree = TaskTree.from_text("A\n  a1\nB\n  b1\nC")
        tree.reorder(by_content(tree, "A").id, by_content(tree, "B").id)
        assert tree.to_text() == "B\n  b1\nA\n  a1\nC"

    def test_move_up(self):
        tree = TaskTree.from_text("A\n  a1\nB\n  b1\nC")
        tree.reorder(by_content(tree, "C").id, by_content(tree, "A").id)
        assert tree.to_text() == "C\nA\n  a1\nB\n  b1"

    def test_drop_onto_own_child_is_noop(self):
        tree = TaskTree.from_text("A\n  a1\nB")
        tree.reorder(by_content(tree, "A").id, by_content(tree, "a1").id)
        assert tree.to_text() == "A\n  a1\nB"

    def test_child_moves_to_new_parent(self):
        tree = TaskTree.from_text("A\n  a1\nB\n  b1\nC")
        tree.reorder(by_content(tree, "b1").id, by_content(tree, "a1").id)
        assert tree.to_text() == "A\n  b1\n  a1\nB\nC"
        assert by_content(tree, "b1").parent_id == by_content(tree, "A").id


class TestPrune:
    """Removing completed work before a new focus session."""

    def test_prune_removes_completed_parent_and_children(self):
        tree = TaskTree.from_text("✓ Done\n  child\nPending")
        removed = tree.prune_completed()
        assert [l.content for l in removed] == ["Done", "child"]
        assert tree.to_text() == "Pending"

    def test_completed_children_of_open_parent_stay(self):
        tree = TaskTree.from_text("Pending\n  ✓ sub")
        assert tree.prune_completed() == []
        assert tree.to_text() == "Pending\n  ✓ sub"

    def test_notes_stay(self):
        tree = TaskTree.from_text("# memo\n✓ Done")
        tree.prune_completed()
        assert tree.to_text() == "# memo"
        assert tree.lines[0].kind == NOTE
        assert TASK not in {l.kind for l in tree.lines}

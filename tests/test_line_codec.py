"""
Line codec tests: text <-> line list.
"""

from tomato_notes.logic.line_codec import (
    lines_to_text,
    parse_line,
    parse_text_to_lines,
    serialize_line,
    strip_completion_marker,
)
from tomato_notes.models import NOTE, TASK, Line


class TestParse:
    """Parsing note text into lines."""

    def test_parent_child_and_completed(self):
        lines = parse_text_to_lines("Task A\n  Subtask A1\n✓ Task B")

        assert [l.content for l in lines] == ["Task A", "Subtask A1", "Task B"]
        task_a, sub, task_b = lines
        assert task_a.kind == TASK and not task_a.completed and not task_a.indented
        assert sub.indented and sub.parent_id == task_a.id
        assert task_b.completed and task_b.parent_id is None

    def test_note_lines(self):
        lines = parse_text_to_lines("# heading\n#tight")
        assert [l.kind for l in lines] == [NOTE, NOTE]
        assert [l.content for l in lines] == ["heading", "tight"]

    def test_blank_lines_are_dropped(self):
        lines = parse_text_to_lines("A\n\n   \nB")
        assert [l.content for l in lines] == ["A", "B"]

    def test_empty_input(self):
        assert parse_text_to_lines("") == []
        assert parse_text_to_lines(None) == []

    def test_tab_indentation(self):
        parent, child = parse_text_to_lines("Task\n\tchild")
        assert child.indented
        assert child.parent_id == parent.id

    def test_notes_never_become_parents(self):
        lines = parse_text_to_lines("# memo\n  indented")
        assert lines[1].parent_id is None

    def test_child_binds_to_last_top_level_task(self):
        lines = parse_text_to_lines("A\n# memo\n  child")
        assert lines[2].parent_id == lines[0].id

    def test_parse_line_blank(self):
        assert parse_line("   ") is None

    def test_ids_are_unique(self):
        lines = parse_text_to_lines("A\nA\nA")
        assert len({l.id for l in lines}) == 3


class TestSerialize:
    """Serializing lines back to text."""

    def test_round_trip(self):
        text = "Task A\n  Subtask A1\n✓ Task B\n# memo\n  ✓ done child"
        assert lines_to_text(parse_text_to_lines(text)) == text

    def test_serialize_variants(self):
        assert serialize_line(Line(content="x")) == "x"
        assert serialize_line(Line(content="x", completed=True)) == "✓ x"
        assert serialize_line(Line(content="x", kind=NOTE)) == "# x"
        assert serialize_line(Line(content="x", indented=True)) == "  x"

    def test_empty_lines_are_skipped(self):
        lines = [Line(content="A"), Line(content=""), Line(content="", indented=True), Line(content="B")]
        assert lines_to_text(lines) == "A\nB"

    def test_strip_completion_marker(self):
        assert strip_completion_marker("  ✓ Done") == "Done"
        assert strip_completion_marker("Pending ") == "Pending"

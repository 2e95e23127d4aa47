from rask.core.errors import ParseError, StorageError
from rask.core.io.parse_markdown import inline_text, parse_markdown, parse_markdown_file, split_status
from rask.core.model import TaskStatus

from conftest import DEMO_MD


def test_parse_demo_roadmap():
    r = parse_markdown(DEMO_MD)
    assert r.title == "Demo"
    assert [t.id for t in r.tasks] == [1, 2, 3]
    assert [t.description for t in r.tasks] == ["write spec", "hire", "ship"]
    assert [t.status for t in r.tasks] == [TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.PENDING]
    assert r.tasks[1].completed_at is not None
    assert r.tasks[0].completed_at is None


def test_missing_title_is_rejected():
    try:
        parse_markdown("- [ ] orphan task\n", source_file="x.md")
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_MISSING_TITLE"
        assert e.file == "x.md"


def test_h2_is_not_a_title():
    try:
        parse_markdown("## Sub\n\n- a task\n")
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_MISSING_TITLE"


def test_setext_title_and_first_h1_wins():
    r = parse_markdown("Project X\n=========\n\n# Later\n\n- one\n")
    assert r.title == "Project X"
    assert [t.description for t in r.tasks] == ["one"]


def test_nested_and_ordered_items_are_flattened_in_order():
    md = "# P\n\n1. first\n   - [x] nested\n2) second\n* star\n+ plus\n"
    r = parse_markdown(md)
    assert [t.description for t in r.tasks] == ["first", "nested", "second", "star", "plus"]
    assert r.tasks[1].is_completed


def test_code_fences_and_block_quotes_are_skipped():
    md = "# P\n\n```\n- not a task\n```\n> - quoted\n~~~~\n- also not\n~~~~\n- real\n"
    r = parse_markdown(md)
    assert [t.description for t in r.tasks] == ["real"]


def test_thematic_break_is_not_a_task():
    r = parse_markdown("# P\n\n---\n- - -\n- item\n")
    assert [t.description for t in r.tasks] == ["item"]


def test_empty_items_are_ignored():
    r = parse_markdown("# P\n\n-\n- [ ]\n- keep\n")
    assert [t.description for t in r.tasks] == ["keep"]


def test_inline_markup_is_flattened():
    assert inline_text("**bold** and *em* with `code` and [link](http://x)") == "bold and em with code and link"
    assert inline_text(r"literal \*star\* and \[box\]") == "literal *star* and [box]"


def test_split_status_accepts_upper_x():
    assert split_status("[X] done") == (TaskStatus.COMPLETED, "done")
    assert split_status("[ ] todo") == (TaskStatus.PENDING, "todo")
    assert split_status("plain") == (TaskStatus.PENDING, "plain")


def test_parse_file_records_absolute_source(tmp_path):
    p = tmp_path / "roadmap.md"
    p.write_text(DEMO_MD, encoding="utf-8")
    r = parse_markdown_file(p)
    assert r.source_file == str(p.resolve())


def test_parse_file_with_invalid_utf8(tmp_path):
    p = tmp_path / "latin1.md"
    p.write_bytes("# Café\n\n- [ ] résumé\n".encode("latin-1"))
    try:
        parse_markdown_file(p)
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_INVALID_ENCODING"
        assert e.file == str(p)


def test_parse_missing_file():
    try:
        parse_markdown_file("does-not-exist.md")
        assert False, "expected StorageError"
    except StorageError as e:
        assert e.code == "E_FILE_NOT_FOUND"

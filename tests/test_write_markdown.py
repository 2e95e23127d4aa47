from rask.core.errors import MarkdownSyncError
from rask.core.io.parse_markdown import parse_markdown
from rask.core.io.write_markdown import escape_inline, roadmap_to_markdown, sync_to_source_file
from rask.core.model import Roadmap, Task

from conftest import DEMO_MD


def test_render_matches_the_checklist_format():
    r = parse_markdown(DEMO_MD)
    r.tasks[0].mark_completed()
    assert roadmap_to_markdown(r) == "# Demo\n\n- [x] write spec\n- [x] hire\n- [ ] ship\n"


def test_render_empty_roadmap_is_title_only():
    assert roadmap_to_markdown(Roadmap(title="Empty")) == "# Empty\n"


def test_special_characters_survive_a_round_trip():
    r = Roadmap(title="A *starred* plan", tasks=[Task(id=1, description="use `x` and [y] and a\\b")])
    again = parse_markdown(roadmap_to_markdown(r))
    assert again.title == "A *starred* plan"
    assert again.tasks[0].description == "use `x` and [y] and a\\b"


def test_escape_inline():
    assert escape_inline("a*b") == r"a\*b"
    assert escape_inline("__init__") == r"\_\_init\_\_"


def test_sync_without_source_file_is_a_no_op():
    assert sync_to_source_file(Roadmap(title="T")) is False


def test_sync_rewrites_the_source_file(tmp_path):
    p = tmp_path / "roadmap.md"
    p.write_text(DEMO_MD, encoding="utf-8")
    r = parse_markdown(DEMO_MD, source_file=str(p))
    r.tasks[2].mark_completed()

    assert sync_to_source_file(r) is True
    assert p.read_text(encoding="utf-8") == "# Demo\n\n- [ ] write spec\n- [x] hire\n- [x] ship\n"


def test_sync_warns_when_source_file_is_gone(tmp_path):
    r = Roadmap(title="T", source_file=str(tmp_path / "gone.md"))
    try:
        sync_to_source_file(r)
        assert False, "expected MarkdownSyncError"
    except MarkdownSyncError as e:
        assert e.code == "W_SOURCE_FILE_MISSING"
    assert not (tmp_path / "gone.md").exists()

from datetime import datetime, timezone

from rask.core.model import (
    DEFAULT_PHASE,
    Phase,
    Priority,
    Roadmap,
    Task,
    TaskStatus,
    TimeSession,
    canonical_phase,
    phase_sort_key,
)


def _roadmap(*deps: list[int]) -> Roadmap:
    tasks = [Task(id=i, description=f"task {i}", dependencies=list(d)) for i, d in enumerate(deps, start=1)]
    return Roadmap(title="T", tasks=tasks)


def test_remove_renumbers_and_drops_dangling_dependencies():
    r = _roadmap([], [], [], [2])
    id_map = r.remove_tasks({2})

    assert id_map == {1: 1, 3: 2, 4: 3}
    assert [t.id for t in r.tasks] == [1, 2, 3]
    assert [t.description for t in r.tasks] == ["task 1", "task 3", "task 4"]
    assert r.tasks[2].dependencies == []


def test_remove_rewrites_surviving_dependency_ids():
    r = _roadmap([], [], [1], [3])
    r.remove_tasks({2})

    assert r.find_task(2).dependencies == [1]
    assert r.find_task(3).dependencies == [2]


def test_completed_at_follows_status():
    t = Task(id=1, description="abc")
    t.mark_completed(datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert t.status == TaskStatus.COMPLETED
    assert t.completed_at == "2024-01-01T00:00:00+00:00"

    t.mark_pending()
    assert t.status == TaskStatus.PENDING
    assert t.completed_at is None


def test_canonical_phase_matches_predefined_case_insensitively():
    assert canonical_phase("beta").name == "Beta"
    assert canonical_phase("BACKLOG").emoji == "💡"
    assert canonical_phase("Research").name == "Research"
    assert not canonical_phase("Research").is_predefined


def test_phase_equality_ignores_metadata_and_orders_predefined_first():
    assert Phase("Research", "a", "x") == Phase("Research")
    phases = sorted([Phase("Zeta"), Phase("Alpha"), canonical_phase("future"), DEFAULT_PHASE], key=phase_sort_key)
    assert [p.name for p in phases] == ["MVP", "Future", "Alpha", "Zeta"]


def test_time_session_close_computes_minutes():
    s = TimeSession(start_time="2024-01-01T10:00:00+00:00")
    assert s.is_active
    s.close(datetime(2024, 1, 1, 10, 30, 30, tzinfo=timezone.utc))
    assert not s.is_active
    assert s.duration_minutes == 30.5


def test_actual_hours_sums_closed_sessions_only():
    t = Task(
        id=1,
        description="abc",
        time_sessions=[
            TimeSession(start_time="x", end_time="y", duration_minutes=90),
            TimeSession(start_time="x", end_time="y", duration_minutes=30),
            TimeSession(start_time="z"),
        ],
    )
    t.recompute_actual_hours()
    assert t.actual_hours == 2.0


def test_search_covers_description_tags_and_notes():
    r = Roadmap(
        title="T",
        tasks=[
            Task(id=1, description="Write Docs"),
            Task(id=2, description="other", tags={"docs-site"}),
            Task(id=3, description="third", notes="see DOCS folder"),
            Task(id=4, description="unrelated"),
        ],
    )
    assert [t.id for t in r.search("docs")] == [1, 2, 3]


def test_from_dict_fills_defaults_for_old_files():
    r = Roadmap.from_dict(
        {
            "title": "Old",
            "tasks": [{"id": 2, "description": "second"}, {"id": 1, "description": "first", "phase": "beta"}],
        }
    )
    assert [t.id for t in r.tasks] == [1, 2]
    first = r.tasks[0]
    assert first.phase.name == "Beta"
    assert first.priority == Priority.MEDIUM
    assert first.tags == set()
    assert first.time_sessions == []
    assert r.metadata.name == "Old"
    assert r.tasks[1].phase == DEFAULT_PHASE


def test_to_dict_from_dict_is_identity():
    r = Roadmap(
        title="Full",
        source_file="/tmp/r.md",
        project_id="p",
        phases=[Phase("Research", "digging", "🔬")],
        tasks=[
            Task(
                id=1,
                description="abc",
                tags={"b", "a"},
                priority=Priority.HIGH,
                phase=Phase("Research", "digging", "🔬"),
                notes="n",
                implementation_notes=["one", "two"],
                estimated_hours=2.5,
                time_sessions=[TimeSession(start_time="2024-01-01T00:00:00+00:00")],
            ),
            Task(id=2, description="def", dependencies=[1]),
        ],
    )
    data = r.to_dict()
    assert data["tasks"][0]["tags"] == ["a", "b"]

    again = Roadmap.from_dict(data)
    assert again.to_dict() == data
    assert again.tasks[0].phase.emoji == "🔬"

from rask.core.commands.bulk import (
    bulk_add_tags,
    bulk_complete,
    bulk_remove,
    bulk_remove_tags,
    bulk_reset,
    bulk_set_phase,
    bulk_set_priority,
)
from rask.core.commands.tasks import add_task
from rask.core.errors import ValidationError
from rask.core.model import Priority


def test_bulk_complete_follows_the_given_order(ctx, demo_md):
    add_task(ctx, "release", dependencies="1,3")

    result = bulk_complete(ctx, "4,1,3,2")
    assert result.succeeded == [1, 3]
    assert result.skipped == [2]
    assert [f.task_id for f in result.failed] == [4]
    assert result.failed[0].error.code == "E_NOT_READY"
    assert result.unblocked == [4]
    assert ctx.load().completed_ids() == {1, 2, 3}


def test_bulk_complete_dependent_after_its_dependency(ctx, demo_md):
    add_task(ctx, "release", dependencies="1,3")
    result = bulk_complete(ctx, "1,3,4")
    assert result.succeeded == [1, 3, 4]
    assert result.unblocked == []


def test_bulk_rejects_empty_and_malformed_id_lists(ctx, demo_md):
    for raw in (" , ", "1,abc", "0"):
        try:
            bulk_complete(ctx, raw)
            assert False, "expected ValidationError"
        except ValidationError as e:
            assert e.code == "E_INVALID_ID_LIST"


def test_bulk_tags(ctx, demo_md):
    result = bulk_add_tags(ctx, "1,2,99", "ops,docs")
    assert result.succeeded == [1, 2]
    assert [f.error.code for f in result.failed] == ["E_TASK_NOT_FOUND"]
    assert bulk_add_tags(ctx, "1", "ops").skipped == [1]

    result = bulk_remove_tags(ctx, "1,3", "ops")
    assert result.succeeded == [1]
    assert result.skipped == [3]
    r = ctx.load()
    assert r.find_task(1).tags == {"docs"}
    assert r.find_task(2).tags == {"ops", "docs"}


def test_bulk_tags_require_valid_tags(ctx, demo_md):
    try:
        bulk_add_tags(ctx, "1", " , ")
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_INVALID_TAG"


def test_bulk_priority_and_phase(ctx, demo_md):
    assert bulk_set_priority(ctx, "1,2", "critical").succeeded == [1, 2]
    assert bulk_set_phase(ctx, "2,3", "release").succeeded == [2, 3]
    r = ctx.load()
    assert r.find_task(1).priority == Priority.CRITICAL
    assert r.find_task(3).priority == Priority.MEDIUM
    assert [t.phase.name for t in r.tasks] == ["MVP", "Release", "Release"]

    try:
        bulk_set_priority(ctx, "1", "urgent")
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_INVALID_ENUM"


def test_bulk_reset_reports_cascade(ctx, demo_md):
    add_task(ctx, "after hire", dependencies="2")
    bulk_complete(ctx, "4")
    result = bulk_reset(ctx, "2,1")
    assert result.succeeded == [2]
    assert result.skipped == [1]
    assert result.cascaded == [4]


def test_bulk_remove_keeps_tasks_still_needed(ctx, demo_md):
    add_task(ctx, "needs hire", dependencies="2")
    add_task(ctx, "needs four", dependencies="4")

    result = bulk_remove(ctx, "2,4")
    assert result.succeeded == []
    assert [f.task_id for f in result.failed] == [4, 2]
    assert [f.error.code for f in result.failed] == ["E_HAS_DEPENDENTS", "E_HAS_DEPENDENTS"]
    assert len(ctx.load().tasks) == 5


def test_bulk_remove_whole_chain_renumbers_once(ctx, demo_md):
    add_task(ctx, "needs hire", dependencies="2")
    add_task(ctx, "needs four", dependencies="4")

    result = bulk_remove(ctx, "2,4,5,77")
    assert result.succeeded == [2, 4, 5]
    assert [f.task_id for f in result.failed] == [77]
    assert result.id_map == {1: 1, 3: 2}
    assert [t.description for t in ctx.load().tasks] == ["write spec", "ship"]


def test_bulk_remove_force(ctx, demo_md):
    add_task(ctx, "needs hire", dependencies="2")
    result = bulk_remove(ctx, "2", force=True)
    assert result.succeeded == [2]
    assert ctx.load().find_task(3).dependencies == []

from typing import Any

from rask.core.ai.breakdown import breakdown, build_context
from rask.core.ai.contracts import SuggestionBatch, TaskSuggestion
from rask.core.errors import ValidationError


class FakeProvider:
    def __init__(self, batch: SuggestionBatch) -> None:
        self.batch = batch
        self.calls: list[tuple[dict[str, Any], str]] = []

    def suggest_tasks(self, *, context: dict[str, Any], model: str) -> SuggestionBatch:
        self.calls.append((context, model))
        return self.batch


BATCH = SuggestionBatch(
    tasks=[TaskSuggestion(description="write launch post", dependencies=[3])],
    notes=["keep it short"],
)


def test_context_lists_tasks_and_phases(ctx, demo_md):
    context = build_context(ctx.load(), "launch")
    assert context["goal"] == "launch"
    assert context["title"] == "Demo"
    assert context["phases"][:2] == ["MVP", "Beta"]
    assert [t["id"] for t in context["tasks"]] == [1, 2, 3]
    assert context["tasks"][1]["status"] == "Completed"


def test_preview_does_not_change_state(ctx, demo_md):
    provider = FakeProvider(BATCH)
    result = breakdown(ctx, " launch ", provider=provider, model="m")
    assert result.applied is None
    assert provider.calls[0][0]["goal"] == "launch"
    assert provider.calls[0][1] == "m"
    assert len(ctx.load().tasks) == 3


def test_apply_adds_and_syncs(ctx, demo_md):
    result = breakdown(ctx, "launch", provider=FakeProvider(BATCH), model="m", apply=True)
    assert [t.id for t in result.applied.added] == [4]
    r = ctx.load()
    assert r.find_task(4).ai_info.is_ai_generated
    assert "- [ ] write launch post" in demo_md.read_text(encoding="utf-8")


def test_empty_goal(ctx, demo_md):
    try:
        breakdown(ctx, "  ", provider=FakeProvider(BATCH), model="m")
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_INVALID_GOAL"

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from rask.core.ai.apply_suggestions import ApplySuggestionsResult, apply_suggestions
from rask.core.ai.contracts import SuggestionBatch
from rask.core.commands.sync import CommandContext
from rask.core.errors import MarkdownSyncError, ValidationError
from rask.core.model import Roadmap


class SuggestionProvider(Protocol):
    def suggest_tasks(self, *, context: dict[str, Any], model: str) -> SuggestionBatch: ...


@dataclass
class BreakdownResult:
    roadmap: Roadmap
    batch: SuggestionBatch
    applied: Optional[ApplySuggestionsResult] = None
    warnings: list[MarkdownSyncError] = field(default_factory=list)


def build_context(roadmap: Roadmap, goal: str) -> dict[str, Any]:
    """Compact view of the roadmap sent to the provider alongside the goal."""
    return {
        "goal": goal,
        "title": roadmap.title,
        "phases": [p.name for p in roadmap.all_phases()],
        "tasks": [
            {
                "id": t.id,
                "description": t.description,
                "status": t.status.value,
                "phase": t.phase.name,
                "priority": t.priority.value,
                "dependencies": list(t.dependencies),
            }
            for t in roadmap.tasks
        ],
    }


def breakdown(
    ctx: CommandContext,
    goal: str,
    *,
    provider: SuggestionProvider,
    model: str,
    apply: bool = False,
    now: Optional[datetime] = None,
) -> BreakdownResult:
    """Ask the provider to split a goal into tasks; with apply=True add them to the roadmap."""
    text = goal.strip()
    if not text:
        raise ValidationError(code="E_INVALID_GOAL", message="goal cannot be empty", path="goal")

    roadmap = ctx.load()
    batch = provider.suggest_tasks(context=build_context(roadmap, text), model=model)
    result = BreakdownResult(roadmap=roadmap, batch=batch)
    if not apply:
        return result

    result.applied = apply_suggestions(
        roadmap, batch.tasks, operation="breakdown", model=model, now=now
    )
    if result.applied.added:
        result.warnings = ctx.save(roadmap)
    return result

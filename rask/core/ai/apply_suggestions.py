from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rask.core.ai.contracts import TaskSuggestion
from rask.core.commands.phases import resolve_phase
from rask.core.commands.tasks import apply_dependencies
from rask.core.errors import RaskError
from rask.core.model import AiTaskInfo, DEFAULT_PHASE, Priority, Roadmap, Task, iso, utc_now
from rask.core.validate.fields import (
    parse_priority,
    validate_description,
    validate_estimated_hours,
    validate_notes,
    validate_tag,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedSuggestion:
    index: int
    suggestion: TaskSuggestion
    error: RaskError


@dataclass
class ApplySuggestionsResult:
    added: list[Task] = field(default_factory=list)
    skipped: list[SkippedSuggestion] = field(default_factory=list)


def _build_task(roadmap: Roadmap, s: TaskSuggestion, info: AiTaskInfo) -> Task:
    tags: set[str] = set()
    for t in s.tags:
        tags.add(validate_tag(t))
    return Task(
        id=roadmap.next_task_id(),
        description=validate_description(s.description),
        tags=tags,
        priority=parse_priority(s.priority) if s.priority else Priority.MEDIUM,
        phase=resolve_phase(roadmap, s.phase) if s.phase else DEFAULT_PHASE,
        notes=validate_notes(s.notes),
        created_at=info.generated_at,
        estimated_hours=validate_estimated_hours(s.estimated_hours),
        ai_info=info,
    )


def apply_suggestions(
    roadmap: Roadmap,
    suggestions: list[TaskSuggestion],
    *,
    operation: str,
    model: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ApplySuggestionsResult:
    """Append suggested tasks using the same checks as `add`.

    A suggestion that fails validation (including unknown dependency ids or a
    cycle) is skipped and reported; the rest are still added.
    """
    generated_at = iso(now or utc_now())
    result = ApplySuggestionsResult()

    for idx, s in enumerate(suggestions):
        info = AiTaskInfo(
            is_ai_generated=True,
            operation=operation,
            generated_at=generated_at,
            reasoning=s.reasoning,
            model=model,
        )
        try:
            task = _build_task(roadmap, s, info)
            roadmap.tasks.append(task)
            try:
                apply_dependencies(roadmap, task, s.dependencies)
            except RaskError:
                roadmap.tasks.pop()
                raise
        except RaskError as e:
            logger.info("skipping suggestion %d: %s", idx, e)
            result.skipped.append(SkippedSuggestion(index=idx, suggestion=s, error=e))
            continue
        result.added.append(task)

    if result.added:
        roadmap.touch()
    return result

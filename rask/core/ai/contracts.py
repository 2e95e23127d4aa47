from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class TaskSuggestion:
    description: str
    priority: Optional[str] = None
    phase: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    estimated_hours: Optional[float] = None
    dependencies: list[int] = field(default_factory=list)
    notes: Optional[str] = None
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class SuggestionBatch:
    tasks: list[TaskSuggestion]
    notes: list[str]


def _opt_str(item: dict[str, Any], key: str, idx: int) -> Optional[str]:
    value = item.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"tasks[{idx}].{key} must be a string or null")
    return value


def parse_task_suggestion(item: Any, idx: int = 0) -> TaskSuggestion:
    if not isinstance(item, dict):
        raise ValueError(f"tasks[{idx}] must be an object")

    description = item.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ValueError(f"tasks[{idx}].description must be a non-empty string")

    tags = item.get("tags") or []
    if not isinstance(tags, list) or any(not isinstance(t, str) for t in tags):
        raise ValueError(f"tasks[{idx}].tags must be a list[str]")

    deps = item.get("dependencies") or []
    if not isinstance(deps, list) or any(isinstance(d, bool) or not isinstance(d, int) for d in deps):
        raise ValueError(f"tasks[{idx}].dependencies must be a list[int]")

    hours = item.get("estimated_hours")
    if hours is not None and (isinstance(hours, bool) or not isinstance(hours, (int, float))):
        raise ValueError(f"tasks[{idx}].estimated_hours must be a number or null")

    return TaskSuggestion(
        description=description.strip(),
        priority=_opt_str(item, "priority", idx),
        phase=_opt_str(item, "phase", idx),
        tags=[t.strip().lstrip("#") for t in tags if t.strip()],
        estimated_hours=float(hours) if hours is not None else None,
        dependencies=list(deps),
        notes=_opt_str(item, "notes", idx),
        reasoning=_opt_str(item, "reasoning", idx),
    )


def parse_suggestion_batch(obj: Any) -> SuggestionBatch:
    if not isinstance(obj, dict):
        raise ValueError("suggestion batch must be an object")

    tasks_raw = obj.get("tasks", [])
    notes_raw = obj.get("notes", [])
    if not isinstance(tasks_raw, list):
        raise ValueError("tasks must be a list")
    if not isinstance(notes_raw, list) or any(not isinstance(x, str) for x in notes_raw):
        raise ValueError("notes must be a list[str]")

    tasks = [parse_task_suggestion(item, i) for i, item in enumerate(tasks_raw)]
    return SuggestionBatch(tasks=tasks, notes=notes_raw)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from rask.core.commands.phases import resolve_phase
from rask.core.commands.sync import CommandContext
from rask.core.deps.dependency_graph import (
    dependents,
    first_dependency_error,
    incomplete_dependencies,
    newly_unblocked,
    validate_task_dependencies,
)
from rask.core.errors import (
    MarkdownSyncError,
    RaskError,
    has_dependents,
    not_ready,
    task_not_found,
)
from rask.core.io.parse_markdown import parse_markdown_file
from rask.core.model import Roadmap, Task, canonical_phase, iso, utc_now
from rask.core.validate.fields import (
    parse_id_list,
    parse_priority,
    parse_status_filter,
    parse_tags,
    validate_description,
    validate_estimated_hours,
    validate_notes,
)
from rask.core.workspace.workspace import ProjectConfig

logger = logging.getLogger(__name__)


DEFAULT_PROJECT_NAME = "default"


@dataclass
class InitResult:
    roadmap: Roadmap
    project: ProjectConfig
    created_project: bool = False


@dataclass
class TaskResult:
    roadmap: Roadmap
    task: Task
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class CompleteResult:
    roadmap: Roadmap
    task: Task
    already_completed: bool = False
    unblocked: list[int] = field(default_factory=list)
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class RemoveResult:
    roadmap: Roadmap
    removed: list[Task]
    id_map: dict[int, int]
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class ResetResult:
    roadmap: Roadmap
    reset_ids: list[int] = field(default_factory=list)
    cascaded_ids: list[int] = field(default_factory=list)
    warnings: list[MarkdownSyncError] = field(default_factory=list)


# Roadmap-level operations. These mutate in memory and raise on failure;
# the command functions below wrap them with load/save.


def get_task(roadmap: Roadmap, task_id: int) -> Task:
    task = roadmap.find_task(task_id)
    if task is None:
        raise task_not_found(task_id)
    return task


def apply_complete(roadmap: Roadmap, task_id: int, now: Optional[datetime] = None) -> CompleteResult:
    task = get_task(roadmap, task_id)
    if task.is_completed:
        return CompleteResult(roadmap=roadmap, task=task, already_completed=True)

    err = first_dependency_error(validate_task_dependencies(roadmap, task_id))
    if err is not None:
        raise err
    missing = incomplete_dependencies(roadmap, task)
    if missing:
        raise not_ready(task_id, missing)

    unblocked = newly_unblocked(roadmap, task_id)
    task.mark_completed(now)
    roadmap.touch()
    return CompleteResult(roadmap=roadmap, task=task, unblocked=unblocked)


def check_removable(roadmap: Roadmap, ids: set[int], *, force: bool = False) -> None:
    """Raise unless every task in `ids` exists and, without force, nothing outside `ids` needs it."""
    for tid in sorted(ids):
        get_task(roadmap, tid)
    if force:
        return
    for tid in sorted(ids):
        blockers = [t.id for t in dependents(roadmap, tid) if t.id not in ids]
        if blockers:
            raise has_dependents(tid, blockers)


def apply_reset(roadmap: Roadmap, task_id: int) -> tuple[bool, list[int]]:
    """Revert one task to pending, plus every completed task that depends on it.

    Returns (changed, cascaded_ids).
    """
    task = get_task(roadmap, task_id)
    if not task.is_completed:
        return False, []
    task.mark_pending()

    cascaded: list[int] = []
    queue = [task_id]
    while queue:
        current = queue.pop(0)
        for dep in dependents(roadmap, current):
            if dep.is_completed:
                dep.mark_pending()
                cascaded.append(dep.id)
                queue.append(dep.id)
    roadmap.touch()
    return True, cascaded


def apply_dependencies(roadmap: Roadmap, task: Task, deps: list[int]) -> None:
    """Trial-apply a dependency list; restore the old one and raise if it is invalid."""
    previous = task.dependencies
    task.dependencies = list(dict.fromkeys(deps))
    err = first_dependency_error(validate_task_dependencies(roadmap, task.id))
    if err is not None:
        task.dependencies = previous
        raise err


def filter_tasks(
    roadmap: Roadmap,
    *,
    tags: Optional[str] = None,
    priority: Optional[str] = None,
    phase: Optional[str] = None,
    status: str = "all",
    search: Optional[str] = None,
) -> list[Task]:
    """Tasks matching every given filter. A task matches --tags when it has any of them."""
    out = list(roadmap.tasks)
    if tags:
        wanted = {t.strip() for t in tags.split(",") if t.strip()}
        out = [t for t in out if t.tags & wanted]
    if priority:
        p = parse_priority(priority)
        out = [t for t in out if t.priority == p]
    if phase:
        ph = canonical_phase(phase)
        out = [t for t in out if t.phase == ph]
    status_value = parse_status_filter(status)
    if status_value == "pending":
        out = [t for t in out if not t.is_completed]
    elif status_value == "completed":
        out = [t for t in out if t.is_completed]
    if search:
        out = [t for t in out if t.matches(search)]
    return out


# Commands


def init_roadmap(ctx: CommandContext, path: str | Path) -> InitResult:
    """Parse a Markdown file into the active project, creating a default project if none."""
    roadmap = parse_markdown_file(path)

    ws = ctx.workspace
    project = ws.active_project()
    created = False
    if project is None:
        if DEFAULT_PROJECT_NAME in ws.registry.projects:
            project = ws.switch(DEFAULT_PROJECT_NAME)
        else:
            project = ws.create(DEFAULT_PROJECT_NAME, "Created by init")
            ws.switch(DEFAULT_PROJECT_NAME)
            created = True

    roadmap.project_id = project.name
    ws.store().save(roadmap)
    ws.record_source_file(project.name, roadmap.source_file)
    logger.info("initialized project %s from %s", project.name, roadmap.source_file)
    return InitResult(roadmap=roadmap, project=project, created_project=created)


def add_task(
    ctx: CommandContext,
    description: str,
    *,
    tags: Optional[str] = None,
    priority: Optional[str] = None,
    phase: Optional[str] = None,
    notes: Optional[str] = None,
    dependencies: Optional[str] = None,
    estimated_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TaskResult:
    text = validate_description(description)
    tag_list = parse_tags(tags)
    prio = parse_priority(priority) if priority is not None else ctx.config.default_priority
    notes_value = validate_notes(notes)
    hours = validate_estimated_hours(estimated_hours)
    deps = parse_id_list(dependencies, path="dependencies") if dependencies else []

    roadmap = ctx.load()
    task = Task(
        id=roadmap.next_task_id(),
        description=text,
        tags=set(tag_list),
        priority=prio,
        phase=resolve_phase(roadmap, phase or ctx.config.default_phase),
        notes=notes_value,
        created_at=iso(now or utc_now()),
        estimated_hours=hours,
    )

    roadmap.tasks.append(task)
    try:
        apply_dependencies(roadmap, task, deps)
    except RaskError:
        roadmap.tasks.pop()
        raise

    roadmap.touch()
    warnings = ctx.save(roadmap)
    return TaskResult(roadmap=roadmap, task=task, warnings=warnings)


def complete_task(ctx: CommandContext, task_id: int, *, now: Optional[datetime] = None) -> CompleteResult:
    roadmap = ctx.load()
    result = apply_complete(roadmap, task_id, now)
    if result.already_completed:
        return result
    result.warnings = ctx.save(roadmap)
    return result


def remove_task(ctx: CommandContext, task_id: int, *, force: bool = False) -> RemoveResult:
    roadmap = ctx.load()
    check_removable(roadmap, {task_id}, force=force)
    removed = [get_task(roadmap, task_id)]
    id_map = roadmap.remove_tasks({task_id})
    warnings = ctx.save(roadmap)
    return RemoveResult(roadmap=roadmap, removed=removed, id_map=id_map, warnings=warnings)


def edit_task(ctx: CommandContext, task_id: int, description: str) -> TaskResult:
    text = validate_description(description)
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    task.description = text
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return TaskResult(roadmap=roadmap, task=task, warnings=warnings)


def set_dependencies(ctx: CommandContext, task_id: int, raw_ids: str) -> TaskResult:
    """Replace a task's dependency list. An empty string clears it."""
    deps = parse_id_list(raw_ids, path="dependencies")
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    apply_dependencies(roadmap, task, deps)
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return TaskResult(roadmap=roadmap, task=task, warnings=warnings)


def reset_tasks(ctx: CommandContext, task_id: Optional[int] = None) -> ResetResult:
    """Reset one task (cascading to completed dependents) or, without an id, every task."""
    roadmap = ctx.load()
    result = ResetResult(roadmap=roadmap)
    if task_id is None:
        for t in roadmap.tasks:
            if t.is_completed:
                t.mark_pending()
                result.reset_ids.append(t.id)
        if result.reset_ids:
            roadmap.touch()
    else:
        changed, cascaded = apply_reset(roadmap, task_id)
        if changed:
            result.reset_ids.append(task_id)
            result.cascaded_ids = cascaded

    if result.reset_ids:
        result.warnings = ctx.save(roadmap)
    return result

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rask.core.commands.sync import CommandContext
from rask.core.errors import ConflictError, MarkdownSyncError, ValidationError, task_not_found
from rask.core.model import Phase, Roadmap, Task, canonical_phase, iso, utc_now
from rask.core.validate.fields import parse_id_list, validate_phase_name


@dataclass
class PhaseStats:
    phase: Phase
    total: int = 0
    completed: int = 0
    ready: int = 0
    blocked: int = 0

    @property
    def completion_percent(self) -> int:
        return (self.completed * 100) // self.total if self.total else 0


@dataclass
class PhaseChange:
    roadmap: Roadmap
    task: Task
    old_phase: Phase
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class PhaseCreated:
    roadmap: Roadmap
    phase: Phase
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class ForkResult:
    roadmap: Roadmap
    phase: Phase
    moved: list[int] = field(default_factory=list)
    created: dict[int, int] = field(default_factory=dict)
    warnings: list[MarkdownSyncError] = field(default_factory=list)


def resolve_phase(roadmap: Roadmap, name: str) -> Phase:
    """Predefined or registered phase for `name`; otherwise a new custom phase."""
    validate_phase_name(name)
    return roadmap.find_phase(name) or canonical_phase(name)


def phase_stats(roadmap: Roadmap) -> list[PhaseStats]:
    """Per-phase counts for every known phase, in display order."""
    completed_ids = roadmap.completed_ids()
    stats = {p.name: PhaseStats(phase=p) for p in roadmap.all_phases()}
    for t in roadmap.tasks:
        s = stats[t.phase.name]
        s.total += 1
        if t.is_completed:
            s.completed += 1
        elif t.can_be_started(completed_ids):
            s.ready += 1
        else:
            s.blocked += 1
    return list(stats.values())


def tasks_in_phase(roadmap: Roadmap, name: str) -> tuple[Phase, list[Task]]:
    phase = resolve_phase(roadmap, name)
    return phase, roadmap.filter_by_phase(phase)


def set_task_phase(ctx: CommandContext, task_id: int, name: str) -> PhaseChange:
    roadmap = ctx.load()
    task = roadmap.find_task(task_id)
    if task is None:
        raise task_not_found(task_id)
    phase = resolve_phase(roadmap, name)
    old = task.phase
    task.phase = phase
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return PhaseChange(roadmap=roadmap, task=task, old_phase=old, warnings=warnings)


def register_phase(
    roadmap: Roadmap,
    name: str,
    *,
    description: Optional[str] = None,
    emoji: Optional[str] = None,
) -> Phase:
    """Add a custom phase to the roadmap registry. Raises ConflictError when it already exists."""
    candidate = canonical_phase(validate_phase_name(name))
    if candidate.is_predefined or candidate in roadmap.phases:
        raise ConflictError(
            code="E_PHASE_EXISTS",
            message=f"phase '{candidate.name}' already exists",
            path="phase",
        )
    phase = Phase(name=candidate.name, description=description, emoji=emoji)
    roadmap.phases.append(phase)
    # Tasks already using the unregistered name pick up the new metadata.
    for t in roadmap.tasks:
        if t.phase == phase:
            t.phase = phase
    roadmap.touch()
    return phase


def create_phase(
    ctx: CommandContext,
    name: str,
    *,
    description: Optional[str] = None,
    emoji: Optional[str] = None,
) -> PhaseCreated:
    roadmap = ctx.load()
    phase = register_phase(roadmap, name, description=description, emoji=emoji)
    warnings = ctx.save(roadmap)
    return PhaseCreated(roadmap=roadmap, phase=phase, warnings=warnings)


def fork_phase(
    ctx: CommandContext,
    name: str,
    *,
    from_phase: Optional[str] = None,
    task_ids: Optional[str] = None,
    description: Optional[str] = None,
    emoji: Optional[str] = None,
    copy: bool = False,
    now: Optional[datetime] = None,
) -> ForkResult:
    """Move (or with copy=True duplicate) a set of tasks into a phase, creating it if needed.

    Tasks are selected either by source phase or by an explicit id list.
    Copies are appended as new pending tasks; dependencies between copied
    tasks are pointed at the copies, other dependencies are kept.
    """
    if (from_phase is None) == (task_ids is None):
        raise ValidationError(
            code="E_INVALID_FORK_SOURCE",
            message="give exactly one of --from-phase or --task-ids",
            path="phase",
        )

    roadmap = ctx.load()
    if from_phase is not None:
        _, selected = tasks_in_phase(roadmap, from_phase)
    else:
        selected = []
        for tid in parse_id_list(task_ids or "", path="task_ids"):
            task = roadmap.find_task(tid)
            if task is None:
                raise task_not_found(tid)
            selected.append(task)
    if not selected:
        raise ValidationError(
            code="E_EMPTY_SELECTION",
            message="no tasks selected to fork",
            path="phase",
        )

    existing = roadmap.find_phase(validate_phase_name(name))
    if existing is None:
        phase = register_phase(roadmap, name, description=description, emoji=emoji)
    else:
        phase = existing

    selected = sorted(selected, key=lambda t: t.id)
    result = ForkResult(roadmap=roadmap, phase=phase)

    if not copy:
        for t in selected:
            t.phase = phase
            result.moved.append(t.id)
    else:
        next_id = roadmap.next_task_id()
        id_map = {t.id: next_id + i for i, t in enumerate(selected)}
        created_at = iso(now or utc_now())
        for t in selected:
            clone = Task(
                id=id_map[t.id],
                description=t.description,
                tags=set(t.tags),
                priority=t.priority,
                phase=phase,
                notes=t.notes,
                implementation_notes=list(t.implementation_notes),
                dependencies=[id_map.get(d, d) for d in t.dependencies],
                created_at=created_at,
                estimated_hours=t.estimated_hours,
            )
            roadmap.tasks.append(clone)
        result.created = id_map

    roadmap.touch()
    result.warnings = ctx.save(roadmap)
    return result

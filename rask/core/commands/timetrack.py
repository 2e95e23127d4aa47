from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rask.core.commands.sync import CommandContext
from rask.core.commands.tasks import get_task
from rask.core.errors import ConflictError, MarkdownSyncError, ValidationError
from rask.core.model import Roadmap, Task, TimeSession, iso, parse_iso, utc_now


@dataclass
class SessionResult:
    roadmap: Roadmap
    task: Task
    session: TimeSession
    warnings: list[MarkdownSyncError] = field(default_factory=list)


@dataclass
class TaskTime:
    task_id: int
    description: str
    estimated_hours: Optional[float]
    actual_hours: Optional[float]
    session_count: int
    active: bool

    @property
    def variance_hours(self) -> Optional[float]:
        """Actual minus estimate; positive means over the estimate."""
        if self.estimated_hours is None or self.actual_hours is None:
            return None
        return round(self.actual_hours - self.estimated_hours, 2)


@dataclass
class TimeSummary:
    tasks: list[TaskTime] = field(default_factory=list)
    total_estimated_hours: float = 0.0
    total_actual_hours: float = 0.0
    active_task_id: Optional[int] = None
    active_since: Optional[str] = None
    active_minutes: Optional[float] = None


def start_session(
    ctx: CommandContext,
    task_id: int,
    description: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> SessionResult:
    """Open a session on a task. Only one session may be open across the whole roadmap."""
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)

    active = roadmap.active_session()
    if active is not None:
        holder, _ = active
        raise ConflictError(
            code="E_SESSION_ACTIVE",
            message=f"time tracking is already active on task {holder.id}; run 'rask stop' first",
            path=f"tasks[{holder.id}].time_sessions",
            task_id=holder.id,
        )
    if task.is_completed:
        raise ValidationError(
            code="E_TASK_COMPLETED",
            message=f"task {task_id} is already completed; reset it before tracking time",
            path=f"tasks[{task_id}]",
        )

    text = description.strip() if description and description.strip() else None
    session = TimeSession(start_time=iso(now or utc_now()), description=text)
    task.time_sessions.append(session)
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return SessionResult(roadmap=roadmap, task=task, session=session, warnings=warnings)


def stop_session(ctx: CommandContext, *, now: Optional[datetime] = None) -> SessionResult:
    """Close the open session and recompute the task's actual hours."""
    roadmap = ctx.load()
    active = roadmap.active_session()
    if active is None:
        raise ConflictError(
            code="E_NO_ACTIVE_SESSION",
            message="no active time tracking session",
            path="tasks",
        )
    task, session = active
    session.close(now or utc_now())
    task.recompute_actual_hours()
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return SessionResult(roadmap=roadmap, task=task, session=session, warnings=warnings)


def task_time(ctx: CommandContext, task_id: int) -> Task:
    return get_task(ctx.load(), task_id)


def time_summary(roadmap: Roadmap, *, now: Optional[datetime] = None) -> TimeSummary:
    """Per-task tracking figures for every task with sessions or an estimate."""
    summary = TimeSummary()
    for t in roadmap.tasks:
        if not t.time_sessions and t.estimated_hours is None:
            continue
        summary.tasks.append(
            TaskTime(
                task_id=t.id,
                description=t.description,
                estimated_hours=t.estimated_hours,
                actual_hours=t.actual_hours,
                session_count=len(t.time_sessions),
                active=t.active_session() is not None,
            )
        )
        summary.total_estimated_hours += t.estimated_hours or 0.0
        summary.total_actual_hours += t.actual_hours or 0.0

    summary.total_estimated_hours = round(summary.total_estimated_hours, 2)
    summary.total_actual_hours = round(summary.total_actual_hours, 2)

    active = roadmap.active_session()
    if active is not None:
        task, session = active
        summary.active_task_id = task.id
        summary.active_since = session.start_time
        elapsed = (now or utc_now()) - parse_iso(session.start_time)
        summary.active_minutes = round(max(elapsed.total_seconds(), 0.0) / 60.0, 2)
    return summary

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


ROADMAP_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(ts: datetime) -> str:
    return ts.isoformat()


def parse_iso(value: str) -> datetime:
    # Older state files wrote a trailing "Z".
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


class TaskStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value: str) -> "Priority":
        """Case-insensitive lookup; raises ValueError for unknown literals."""
        for p in cls:
            if p.value.lower() == value.strip().lower():
                return p
        raise ValueError(f"unknown priority: {value}")


@dataclass(frozen=True)
class Phase:
    """A named grouping of tasks. Equality is by name only."""

    name: str
    description: Optional[str] = field(default=None, compare=False)
    emoji: Optional[str] = field(default=None, compare=False)

    @property
    def is_predefined(self) -> bool:
        return self.name in PREDEFINED_PHASES

    def display_emoji(self) -> str:
        return self.emoji or "📌"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "emoji": self.emoji}

    @classmethod
    def from_dict(cls, data: Any) -> "Phase":
        # Very old files stored the phase as a bare string.
        if isinstance(data, str):
            return canonical_phase(data)
        phase = canonical_phase(data.get("name") or "MVP")
        if phase.is_predefined:
            return phase
        return cls(name=phase.name, description=data.get("description"), emoji=data.get("emoji"))


PREDEFINED_PHASES: dict[str, Phase] = {
    "MVP": Phase("MVP", "Minimum viable product: the essentials to ship", "🚀"),
    "Beta": Phase("Beta", "Feature-complete for early users and feedback", "🧪"),
    "Release": Phase("Release", "Polish and hardening for the public release", "🎯"),
    "Future": Phase("Future", "Planned enhancements after release", "🔮"),
    "Backlog": Phase("Backlog", "Ideas and nice-to-haves, not yet scheduled", "💡"),
}

PHASE_ORDER: list[str] = ["MVP", "Beta", "Release", "Future", "Backlog"]


def canonical_phase(name: str) -> Phase:
    """Map a user-supplied name to a predefined phase when it matches case-insensitively."""
    stripped = name.strip()
    for canonical in PHASE_ORDER:
        if canonical.lower() == stripped.lower():
            return PREDEFINED_PHASES[canonical]
    return Phase(name=stripped)


def phase_sort_key(phase: Phase) -> tuple[int, str]:
    if phase.name in PHASE_ORDER:
        return (PHASE_ORDER.index(phase.name), "")
    return (len(PHASE_ORDER), phase.name)


DEFAULT_PHASE = PREDEFINED_PHASES["MVP"]


@dataclass
class TimeSession:
    start_time: str
    end_time: Optional[str] = None
    duration_minutes: Optional[float] = None
    description: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def close(self, now: datetime) -> None:
        self.end_time = iso(now)
        delta = now - parse_iso(self.start_time)
        self.duration_minutes = round(max(delta.total_seconds(), 0.0) / 60.0, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeSession":
        return cls(
            start_time=data["start_time"],
            end_time=data.get("end_time"),
            duration_minutes=data.get("duration_minutes"),
            description=data.get("description"),
        )


@dataclass
class AiTaskInfo:
    """Provenance of a task created or modified by an AI operation."""

    is_ai_generated: bool
    operation: str
    generated_at: str
    reasoning: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_ai_generated": self.is_ai_generated,
            "operation": self.operation,
            "reasoning": self.reasoning,
            "generated_at": self.generated_at,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AiTaskInfo":
        return cls(
            is_ai_generated=bool(data.get("is_ai_generated", True)),
            operation=data.get("operation", "unknown"),
            generated_at=data.get("generated_at", ""),
            reasoning=data.get("reasoning"),
            model=data.get("model"),
        )


@dataclass
class Task:
    id: int
    description: str
    status: TaskStatus = TaskStatus.PENDING
    tags: set[str] = field(default_factory=set)
    priority: Priority = Priority.MEDIUM
    phase: Phase = DEFAULT_PHASE
    notes: Optional[str] = None
    implementation_notes: list[str] = field(default_factory=list)
    dependencies: list[int] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: iso(utc_now()))
    completed_at: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    time_sessions: list[TimeSession] = field(default_factory=list)
    ai_info: Optional[AiTaskInfo] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def mark_completed(self, now: Optional[datetime] = None) -> None:
        self.status = TaskStatus.COMPLETED
        self.completed_at = iso(now or utc_now())

    def mark_pending(self) -> None:
        self.status = TaskStatus.PENDING
        self.completed_at = None

    def can_be_started(self, completed_ids: set[int]) -> bool:
        return all(d in completed_ids for d in self.dependencies)

    def active_session(self) -> Optional[TimeSession]:
        for s in self.time_sessions:
            if s.is_active:
                return s
        return None

    def recompute_actual_hours(self) -> None:
        closed = [s.duration_minutes or 0.0 for s in self.time_sessions if not s.is_active]
        self.actual_hours = round(sum(closed) / 60.0, 2) if closed else None

    def matches(self, query: str) -> bool:
        q = query.lower()
        if q in self.description.lower():
            return True
        if any(q in t.lower() for t in self.tags):
            return True
        return bool(self.notes and q in self.notes.lower())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "tags": sorted(self.tags),
            "priority": self.priority.value,
            "phase": self.phase.to_dict(),
            "notes": self.notes,
            "implementation_notes": list(self.implementation_notes),
            "dependencies": list(self.dependencies),
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "time_sessions": [s.to_dict() for s in self.time_sessions],
            "ai_info": self.ai_info.to_dict() if self.ai_info else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Build a task from state JSON. Fields missing in older files take their defaults."""
        ai_raw = data.get("ai_info")
        return cls(
            id=int(data["id"]),
            description=data["description"],
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            tags=set(data.get("tags") or []),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            phase=Phase.from_dict(data["phase"]) if data.get("phase") else DEFAULT_PHASE,
            notes=data.get("notes"),
            implementation_notes=list(data.get("implementation_notes") or []),
            dependencies=[int(d) for d in data.get("dependencies") or []],
            created_at=data.get("created_at") or iso(utc_now()),
            completed_at=data.get("completed_at"),
            estimated_hours=data.get("estimated_hours"),
            actual_hours=data.get("actual_hours"),
            time_sessions=[TimeSession.from_dict(s) for s in data.get("time_sessions") or []],
            ai_info=AiTaskInfo.from_dict(ai_raw) if isinstance(ai_raw, dict) else None,
        )


@dataclass
class ProjectMetadata:
    name: str
    description: Optional[str] = None
    created_at: str = field(default_factory=lambda: iso(utc_now()))
    last_modified: str = field(default_factory=lambda: iso(utc_now()))
    version: str = ROADMAP_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "last_modified": self.last_modified,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, fallback_name: str) -> "ProjectMetadata":
        now = iso(utc_now())
        return cls(
            name=data.get("name") or fallback_name,
            description=data.get("description"),
            created_at=data.get("created_at") or now,
            last_modified=data.get("last_modified") or now,
            version=data.get("version") or ROADMAP_VERSION,
        )


@dataclass
class Roadmap:
    title: str
    tasks: list[Task] = field(default_factory=list)
    source_file: Optional[str] = None
    metadata: ProjectMetadata = field(default_factory=lambda: ProjectMetadata(name=""))
    project_id: Optional[str] = None
    phases: list[Phase] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.metadata.name:
            self.metadata.name = self.title

    # Lookups

    def find_task(self, task_id: int) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def next_task_id(self) -> int:
        return max((t.id for t in self.tasks), default=0) + 1

    def completed_ids(self) -> set[int]:
        return {t.id for t in self.tasks if t.is_completed}

    def dependents_of(self, task_id: int) -> list[int]:
        return [t.id for t in self.tasks if task_id in t.dependencies]

    def active_session(self) -> Optional[tuple[Task, TimeSession]]:
        for t in self.tasks:
            s = t.active_session()
            if s is not None:
                return t, s
        return None

    def search(self, query: str) -> list[Task]:
        return [t for t in self.tasks if t.matches(query)]

    def filter_by_phase(self, phase: Phase) -> list[Task]:
        return [t for t in self.tasks if t.phase == phase]

    def find_phase(self, name: str) -> Optional[Phase]:
        """Resolve a phase name against predefined and registered custom phases."""
        candidate = canonical_phase(name)
        if candidate.is_predefined:
            return candidate
        for p in self.phases:
            if p == candidate:
                return p
        for t in self.tasks:
            if t.phase == candidate:
                return t.phase
        return None

    def all_phases(self) -> list[Phase]:
        """Predefined phases plus every custom phase registered or in use, in display order."""
        seen: dict[str, Phase] = {p.name: p for p in PREDEFINED_PHASES.values()}
        for p in self.phases:
            seen.setdefault(p.name, p)
        for t in self.tasks:
            seen.setdefault(t.phase.name, t.phase)
        return sorted(seen.values(), key=phase_sort_key)

    # Mutations

    def add_task(self, task: Task) -> None:
        self.tasks.append(task)
        self.touch()

    def remove_tasks(self, ids: set[int]) -> dict[int, int]:
        """Remove tasks and renumber survivors to 1..N.

        Two passes: first build the old->new id map, then rewrite ids and
        dependency lists. Dependencies on removed tasks are dropped.
        Returns the old->new map for surviving tasks.
        """
        survivors = [t for t in self.tasks if t.id not in ids]
        survivors.sort(key=lambda t: t.id)
        id_map = {t.id: new_id for new_id, t in enumerate(survivors, start=1)}

        for t in survivors:
            t.id = id_map[t.id]
            deps: list[int] = []
            for d in t.dependencies:
                mapped = id_map.get(d)
                if mapped is not None and mapped not in deps:
                    deps.append(mapped)
            t.dependencies = deps

        self.tasks = survivors
        self.touch()
        return id_map

    def touch(self) -> None:
        self.metadata.last_modified = iso(utc_now())

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "tasks": [t.to_dict() for t in sorted(self.tasks, key=lambda t: t.id)],
            "source_file": self.source_file,
            "metadata": self.metadata.to_dict(),
            "project_id": self.project_id,
            "phases": [p.to_dict() for p in self.phases],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Roadmap":
        title = data["title"]
        tasks = sorted((Task.from_dict(t) for t in data.get("tasks") or []), key=lambda t: t.id)
        return cls(
            title=title,
            tasks=tasks,
            source_file=data.get("source_file"),
            metadata=ProjectMetadata.from_dict(data.get("metadata") or {}, fallback_name=title),
            project_id=data.get("project_id"),
            phases=[Phase.from_dict(p) for p in data.get("phases") or []],
        )

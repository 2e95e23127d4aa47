from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RaskError(Exception):
    """Base error envelope. Commands raise these; the CLI prints them."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<roadmap>"
        return f"{loc}: {self.code}: {self.message}"


class NotInitializedError(RaskError):
    pass


class ParseError(RaskError):
    pass


class TaskNotFoundError(RaskError):
    pass


@dataclass(frozen=True)
class DependencyError(RaskError):
    """Missing reference, cycle, not-ready completion or a blocked removal.

    The offending ids are always carried as fields, not only in the message.
    """

    task_id: Optional[int] = None
    dependency_id: Optional[int] = None
    missing: tuple[int, ...] = ()
    cycle: tuple[int, ...] = ()
    dependents: tuple[int, ...] = ()


class ValidationError(RaskError):
    pass


@dataclass(frozen=True)
class ConflictError(RaskError):
    """Something already exists or is already running. `task_id` names the holder, if any."""

    task_id: Optional[int] = None


class StorageError(RaskError):
    pass


class MarkdownSyncError(RaskError):
    """JSON state was saved but the Markdown source file was not rewritten."""


class ProviderError(RaskError):
    """The AI provider failed or returned something unusable."""


def task_not_found(task_id: int) -> TaskNotFoundError:
    return TaskNotFoundError(
        code="E_TASK_NOT_FOUND",
        message=f"task {task_id} not found",
        path=f"tasks[{task_id}]",
    )


def missing_dependency(task_id: int, dep_id: int) -> DependencyError:
    return DependencyError(
        code="E_MISSING_DEPENDENCY",
        message=f"task {task_id} depends on unknown task {dep_id}",
        path=f"tasks[{task_id}].dependencies",
        task_id=task_id,
        dependency_id=dep_id,
    )


def circular_dependency(cycle: list[int]) -> DependencyError:
    return DependencyError(
        code="E_CIRCULAR_DEPENDENCY",
        message="dependency cycle detected: " + " -> ".join(str(i) for i in cycle),
        path=f"tasks[{cycle[0]}].dependencies",
        task_id=cycle[0],
        cycle=tuple(cycle),
    )


def not_ready(task_id: int, missing: list[int]) -> DependencyError:
    return DependencyError(
        code="E_NOT_READY",
        message=f"task {task_id} is blocked by incomplete dependencies: "
        + ", ".join(f"#{i}" for i in missing),
        path=f"tasks[{task_id}].dependencies",
        task_id=task_id,
        missing=tuple(missing),
    )


def has_dependents(task_id: int, dependents: list[int]) -> DependencyError:
    return DependencyError(
        code="E_HAS_DEPENDENTS",
        message=f"task {task_id} is required by "
        + ", ".join(f"#{i}" for i in dependents)
        + "; use --force to remove it anyway",
        path=f"tasks[{task_id}]",
        task_id=task_id,
        dependents=tuple(dependents),
    )

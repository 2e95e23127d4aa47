from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from rask.core.errors import (
    DependencyError,
    RaskError,
    circular_dependency,
    missing_dependency,
    task_not_found,
)
from rask.core.model import Roadmap, Task, TaskStatus


# Dependency engine rules:
# - a pending task is ready when every dependency is completed, blocked otherwise
# - validation reports missing references and the first cycle reachable from a task
# - tree/chain queries never raise on unknown ids


@dataclass
class DependencyNode:
    task_id: int
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    children: list["DependencyNode"] = field(default_factory=list)
    circular: bool = False
    not_found: bool = False


def validate_task_dependencies(roadmap: Roadmap, task_id: int) -> list[RaskError]:
    """Validate one task: existence, missing references, cycles reachable from it."""
    task = roadmap.find_task(task_id)
    if task is None:
        return [task_not_found(task_id)]

    errors: list[RaskError] = []
    known = {t.id for t in roadmap.tasks}
    for dep in task.dependencies:
        if dep not in known:
            errors.append(missing_dependency(task_id, dep))

    cycle = _find_cycle(roadmap, task_id)
    if cycle:
        errors.append(circular_dependency(cycle))
    return errors


def validate_all_dependencies(roadmap: Roadmap) -> list[RaskError]:
    errors: list[RaskError] = []
    for t in roadmap.tasks:
        errors.extend(validate_task_dependencies(roadmap, t.id))
    return errors


def _find_cycle(roadmap: Roadmap, start: int) -> list[int]:
    deps_by_id = {t.id: t.dependencies for t in roadmap.tasks}
    stack: list[int] = []
    on_path: set[int] = set()
    done: set[int] = set()

    def dfs(u: int) -> list[int]:
        stack.append(u)
        on_path.add(u)
        for v in deps_by_id.get(u, []):
            if v not in deps_by_id:
                continue
            if v in on_path:
                # cycle: v ... u -> v
                return stack[stack.index(v):] + [v]
            if v not in done:
                found = dfs(v)
                if found:
                    return found
        stack.pop()
        on_path.discard(u)
        done.add(u)
        return []

    return dfs(start)


def is_ready(roadmap: Roadmap, task: Task) -> bool:
    return not task.is_completed and task.can_be_started(roadmap.completed_ids())


def incomplete_dependencies(roadmap: Roadmap, task: Task) -> list[int]:
    completed = roadmap.completed_ids()
    return [d for d in task.dependencies if d not in completed]


def ready_tasks(roadmap: Roadmap) -> list[Task]:
    completed = roadmap.completed_ids()
    return [t for t in roadmap.tasks if not t.is_completed and t.can_be_started(completed)]


def blocked_tasks(roadmap: Roadmap) -> list[Task]:
    completed = roadmap.completed_ids()
    return [t for t in roadmap.tasks if not t.is_completed and not t.can_be_started(completed)]


def dependents(roadmap: Roadmap, task_id: int) -> list[Task]:
    return [t for t in roadmap.tasks if task_id in t.dependencies]


def dependency_chain(roadmap: Roadmap, task_id: int) -> list[int]:
    """All tasks `task_id` transitively depends on, in discovery order."""
    deps_by_id = {t.id: t.dependencies for t in roadmap.tasks}
    seen: set[int] = {task_id}
    out: list[int] = []

    def visit(u: int) -> None:
        for v in deps_by_id.get(u, []):
            if v in seen or v not in deps_by_id:
                continue
            seen.add(v)
            out.append(v)
            visit(v)

    visit(task_id)
    return out


def dependency_tree(roadmap: Roadmap, task_id: int) -> Optional[DependencyNode]:
    """Tree of dependencies rooted at `task_id`; None when the root does not exist."""
    if roadmap.find_task(task_id) is None:
        return None

    def build(tid: int, path: list[int]) -> DependencyNode:
        task = roadmap.find_task(tid)
        if task is None:
            return DependencyNode(task_id=tid, not_found=True)
        node = DependencyNode(task_id=tid, description=task.description, status=task.status)
        for dep in task.dependencies:
            if dep in path or dep == tid:
                node.children.append(DependencyNode(task_id=dep, circular=True))
                continue
            node.children.append(build(dep, path + [tid]))
        return node

    return build(task_id, [])


def newly_unblocked(roadmap: Roadmap, completed_task_id: int) -> list[int]:
    """Pending tasks that become ready once `completed_task_id` is completed."""
    completed = roadmap.completed_ids() | {completed_task_id}
    return [
        t.id
        for t in roadmap.tasks
        if t.status == TaskStatus.PENDING
        and completed_task_id in t.dependencies
        and all(d in completed for d in t.dependencies)
    ]


def first_dependency_error(errors: list[RaskError]) -> Optional[RaskError]:
    """Prefer a cycle over other errors so the caller reports the most specific problem."""
    for e in errors:
        if isinstance(e, DependencyError) and e.cycle:
            return e
    return errors[0] if errors else None


@dataclass
class DependencyOverview:
    with_dependencies: int
    ready: int
    blocked: int
    errors: list[RaskError]


def dependency_overview(roadmap: Roadmap) -> DependencyOverview:
    return DependencyOverview(
        with_dependencies=sum(1 for t in roadmap.tasks if t.dependencies),
        ready=len(ready_tasks(roadmap)),
        blocked=len(blocked_tasks(roadmap)),
        errors=validate_all_dependencies(roadmap),
    )

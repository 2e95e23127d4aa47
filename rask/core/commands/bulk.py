from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from rask.core.commands.phases import resolve_phase
from rask.core.commands.sync import CommandContext
from rask.core.commands.tasks import apply_complete, apply_reset, get_task
from rask.core.errors import MarkdownSyncError, RaskError, ValidationError, has_dependents
from rask.core.model import Roadmap
from rask.core.validate.fields import parse_id_list, parse_priority, parse_tags


@dataclass(frozen=True)
class BulkFailure:
    task_id: int
    error: RaskError


@dataclass
class BulkResult:
    roadmap: Roadmap
    succeeded: list[int] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    unblocked: list[int] = field(default_factory=list)
    cascaded: list[int] = field(default_factory=list)
    id_map: dict[int, int] = field(default_factory=dict)
    warnings: list[MarkdownSyncError] = field(default_factory=list)


def _ids(raw: str) -> list[int]:
    ids = parse_id_list(raw)
    if not ids:
        raise ValidationError(code="E_INVALID_ID_LIST", message="no task ids given", path="ids")
    return ids


def _run(ctx: CommandContext, raw_ids: str, op: Callable[[Roadmap, int, BulkResult], bool]) -> BulkResult:
    """Apply `op` to each id in order. Per-task failures are collected, not raised.

    `op` returns False when the task was left unchanged on purpose (skipped).
    """
    ids = _ids(raw_ids)
    roadmap = ctx.load()
    result = BulkResult(roadmap=roadmap)
    for tid in ids:
        try:
            changed = op(roadmap, tid, result)
        except RaskError as e:
            result.failed.append(BulkFailure(task_id=tid, error=e))
            continue
        if changed:
            result.succeeded.append(tid)
        else:
            result.skipped.append(tid)

    if result.succeeded:
        roadmap.touch()
        result.warnings = ctx.save(roadmap)
    return result


def bulk_complete(ctx: CommandContext, raw_ids: str, *, now: Optional[datetime] = None) -> BulkResult:
    """Complete tasks in the given order, so a later id may depend on an earlier one."""

    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        done = apply_complete(roadmap, tid, now)
        if done.already_completed:
            return False
        result.unblocked = [i for i in result.unblocked if i != tid] + done.unblocked
        return True

    return _run(ctx, raw_ids, op)


def bulk_add_tags(ctx: CommandContext, raw_ids: str, raw_tags: str) -> BulkResult:
    tags = parse_tags(raw_tags)
    if not tags:
        raise ValidationError(code="E_INVALID_TAG", message="no tags given", path="tags")

    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        task = get_task(roadmap, tid)
        before = len(task.tags)
        task.tags.update(tags)
        return len(task.tags) != before

    return _run(ctx, raw_ids, op)


def bulk_remove_tags(ctx: CommandContext, raw_ids: str, raw_tags: str) -> BulkResult:
    tags = set(parse_tags(raw_tags))
    if not tags:
        raise ValidationError(code="E_INVALID_TAG", message="no tags given", path="tags")

    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        task = get_task(roadmap, tid)
        if not task.tags & tags:
            return False
        task.tags -= tags
        return True

    return _run(ctx, raw_ids, op)


def bulk_set_priority(ctx: CommandContext, raw_ids: str, raw_priority: str) -> BulkResult:
    priority = parse_priority(raw_priority)

    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        task = get_task(roadmap, tid)
        if task.priority == priority:
            return False
        task.priority = priority
        return True

    return _run(ctx, raw_ids, op)


def bulk_set_phase(ctx: CommandContext, raw_ids: str, phase_name: str) -> BulkResult:
    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        task = get_task(roadmap, tid)
        phase = resolve_phase(roadmap, phase_name)
        if task.phase == phase:
            return False
        task.phase = phase
        return True

    return _run(ctx, raw_ids, op)


def bulk_reset(ctx: CommandContext, raw_ids: str) -> BulkResult:
    def op(roadmap: Roadmap, tid: int, result: BulkResult) -> bool:
        changed, cascaded = apply_reset(roadmap, tid)
        result.cascaded.extend(i for i in cascaded if i not in result.cascaded)
        return changed

    return _run(ctx, raw_ids, op)


def bulk_remove(ctx: CommandContext, raw_ids: str, *, force: bool = False) -> BulkResult:
    """Remove several tasks in one renumbering pass.

    Without force, a task that is still needed by a task outside the removal
    set fails; dropping it from the set can in turn block the tasks it needs.
    """
    ids = _ids(raw_ids)
    roadmap = ctx.load()
    result = BulkResult(roadmap=roadmap)

    to_remove: list[int] = []
    for tid in ids:
        try:
            get_task(roadmap, tid)
        except RaskError as e:
            result.failed.append(BulkFailure(task_id=tid, error=e))
            continue
        to_remove.append(tid)

    if not force:
        changed = True
        while changed:
            changed = False
            keep = set(to_remove)
            for tid in list(to_remove):
                blockers = [d for d in roadmap.dependents_of(tid) if d not in keep]
                if blockers:
                    result.failed.append(BulkFailure(task_id=tid, error=has_dependents(tid, blockers)))
                    to_remove.remove(tid)
                    changed = True
                    break

    if to_remove:
        result.succeeded = list(to_remove)
        result.id_map = roadmap.remove_tasks(set(to_remove))
        result.warnings = ctx.save(roadmap)
    return result

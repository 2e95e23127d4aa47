from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from rask.core.commands.sync import CommandContext
from rask.core.commands.tasks import get_task
from rask.core.errors import MarkdownSyncError, ValidationError
from rask.core.model import Roadmap, Task


@dataclass
class NoteResult:
    roadmap: Roadmap
    task: Task
    index: Optional[int] = None
    previous: Optional[str] = None
    removed: list[str] = field(default_factory=list)
    warnings: list[MarkdownSyncError] = field(default_factory=list)


def _note_text(note: str) -> str:
    text = note.strip()
    if not text:
        raise ValidationError(
            code="E_INVALID_NOTES",
            message="implementation note cannot be empty",
            path="implementation_notes",
        )
    return text


def _check_index(task: Task, index: int) -> None:
    count = len(task.implementation_notes)
    if index < 0 or index >= count:
        hint = f"valid range: 0-{count - 1}" if count else "task has no implementation notes"
        raise ValidationError(
            code="E_INVALID_NOTE_INDEX",
            message=f"note index {index} is out of range for task {task.id} ({hint})",
            path=f"tasks[{task.id}].implementation_notes",
        )


def list_notes(ctx: CommandContext, task_id: int) -> Task:
    return get_task(ctx.load(), task_id)


def add_note(ctx: CommandContext, task_id: int, note: str) -> NoteResult:
    text = _note_text(note)
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    task.implementation_notes.append(text)
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return NoteResult(
        roadmap=roadmap, task=task, index=len(task.implementation_notes) - 1, warnings=warnings
    )


def remove_note(ctx: CommandContext, task_id: int, index: int) -> NoteResult:
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    _check_index(task, index)
    removed = task.implementation_notes.pop(index)
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return NoteResult(roadmap=roadmap, task=task, index=index, removed=[removed], warnings=warnings)


def edit_note(ctx: CommandContext, task_id: int, index: int, note: str) -> NoteResult:
    text = _note_text(note)
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    _check_index(task, index)
    previous = task.implementation_notes[index]
    task.implementation_notes[index] = text
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return NoteResult(roadmap=roadmap, task=task, index=index, previous=previous, warnings=warnings)


def clear_notes(ctx: CommandContext, task_id: int) -> NoteResult:
    roadmap = ctx.load()
    task = get_task(roadmap, task_id)
    removed = list(task.implementation_notes)
    if not removed:
        return NoteResult(roadmap=roadmap, task=task)
    task.implementation_notes.clear()
    roadmap.touch()
    warnings = ctx.save(roadmap)
    return NoteResult(roadmap=roadmap, task=task, removed=removed, warnings=warnings)

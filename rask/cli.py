from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

import typer

from rask import render
from rask.core.ai.breakdown import breakdown
from rask.core.ai.openai_client import OpenAISuggestionClient
from rask.core.commands import bulk as bulk_cmds
from rask.core.commands import notes as notes_cmds
from rask.core.commands import phases as phase_cmds
from rask.core.commands import projects as project_cmds
from rask.core.commands import tasks as task_cmds
from rask.core.commands import templates as template_cmds
from rask.core.commands import timetrack
from rask.core.commands.bulk import BulkResult
from rask.core.commands.sync import CommandContext
from rask.core.config.user_config import CONFIG_FILE, ConfigError, load_user_config
from rask.core.deps.dependency_graph import (
    blocked_tasks,
    dependency_chain,
    dependency_overview,
    dependency_tree,
    dependents,
    ready_tasks,
    validate_all_dependencies,
)
from rask.core.errors import (
    NotInitializedError,
    ParseError,
    ProviderError,
    RaskError,
    StorageError,
    ValidationError,
    task_not_found,
)
from rask.core.workspace.workspace import Workspace
from rask.logs import setup_logging

app = typer.Typer(add_completion=False, no_args_is_help=True)
project_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage projects.")
phase_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage phases.")
notes_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage implementation notes.")
bulk_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Apply an operation to many tasks.")
ai_app = typer.Typer(add_completion=False, no_args_is_help=True, help="AI-assisted planning.")
template_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage task templates.")

app.add_typer(project_app, name="project")
app.add_typer(phase_app, name="phase")
app.add_typer(notes_app, name="notes")
app.add_typer(bulk_app, name="bulk")
app.add_typer(ai_app, name="ai")
app.add_typer(template_app, name="template")


@app.callback()
def _callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Rask: plan a project from a Markdown roadmap."""
    ws = Workspace()
    config_path = ws.root / CONFIG_FILE
    try:
        config = load_user_config(config_path)
    except ConfigError as e:
        _print_errors(
            [ValidationError(code="E_CONFIG_INVALID", message=str(e), file=str(config_path))]
        )
        raise typer.Exit(code=2)

    if verbose:
        setup_logging(logging.DEBUG)
    else:
        setup_logging(config.log_level or logging.WARNING)
    ctx.obj = CommandContext(workspace=ws, config=config)


def _exit_code(e: RaskError) -> int:
    if isinstance(e, (NotInitializedError, ParseError, StorageError, ProviderError)):
        return 1
    return 2


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except RaskError as e:
        _print_errors([e])
        raise typer.Exit(code=_exit_code(e))


def _print_errors(errors: list[RaskError]) -> None:
    for e in errors:
        typer.echo(str(e), err=True)


def _print_warnings(warnings: list[RaskError]) -> None:
    for w in warnings:
        typer.echo(f"WARN: {w}", err=True)


def _ids(ids: list[int]) -> str:
    return ", ".join(f"#{i}" for i in ids)


# Core task commands


@app.command("init")
def init(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Markdown roadmap file"),
) -> None:
    """Ingest a Markdown roadmap into the active project."""
    with _reporting_errors():
        result = task_cmds.init_roadmap(ctx.obj, path)
    if result.created_project:
        typer.echo(f"Created project '{result.project.name}'")
    typer.echo(
        f"OK: initialized '{result.roadmap.title}' with {len(result.roadmap.tasks)} tasks "
        f"(project '{result.project.name}')"
    )


@app.command("show")
def show(
    ctx: typer.Context,
    group_by_phase: bool = typer.Option(False, "--group-by-phase", help="One table per phase"),
    phase: Optional[str] = typer.Option(None, "--phase", help="Only the tasks of one phase"),
    collapse_completed: bool = typer.Option(
        False, "--collapse-completed", help="Fold finished phases (or hide finished tasks)"
    ),
) -> None:
    """Show the full roadmap."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        if phase is not None:
            selected, tasks = phase_cmds.tasks_in_phase(roadmap, phase)
    if phase is not None:
        render.render_phase_tasks(roadmap, selected, tasks)
    elif group_by_phase:
        render.render_roadmap_by_phase(roadmap, collapse_completed=collapse_completed)
    else:
        render.render_roadmap(roadmap, collapse_completed=collapse_completed)



@app.command("list")
def list_cmd(
    ctx: typer.Context,
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags (any match)"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Low|Medium|High|Critical"),
    phase: Optional[str] = typer.Option(None, "--phase"),
    status: str = typer.Option("all", "--status", help="pending|completed|all"),
    search: Optional[str] = typer.Option(None, "--search", help="Search description, tags and notes"),
    detailed: bool = typer.Option(False, "--detailed"),
) -> None:
    """List tasks matching the given filters."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        tasks = task_cmds.filter_tasks(
            roadmap, tags=tags, priority=priority, phase=phase, status=status, search=search
        )
    render.render_task_list(roadmap, tasks, detailed=detailed)


@app.command("view")
def view(ctx: typer.Context, task_id: int = typer.Argument(...)) -> None:
    """Show one task in detail."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        task = task_cmds.get_task(roadmap, task_id)
    render.render_task_detail(roadmap, task)


@app.command("add")
def add(
    ctx: typer.Context,
    description: str = typer.Argument(...),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Low|Medium|High|Critical"),
    phase: Optional[str] = typer.Option(None, "--phase"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    dependencies: Optional[str] = typer.Option(None, "--dependencies", help="Comma-separated task ids"),
    estimated_hours: Optional[float] = typer.Option(None, "--estimated-hours"),
) -> None:
    """Add a task."""
    with _reporting_errors():
        result = task_cmds.add_task(
            ctx.obj,
            description,
            tags=tags,
            priority=priority,
            phase=phase,
            notes=notes,
            dependencies=dependencies,
            estimated_hours=estimated_hours,
        )
    typer.echo(f"OK: added task #{result.task.id}: {result.task.description}")
    _print_warnings(result.warnings)


@app.command("complete")
def complete(ctx: typer.Context, task_id: int = typer.Argument(...)) -> None:
    """Mark a task as completed."""
    with _reporting_errors():
        result = task_cmds.complete_task(ctx.obj, task_id)
    if result.already_completed:
        typer.echo(f"WARN: task #{task_id} is already completed", err=True)
        return
    typer.echo(f"OK: completed task #{task_id}: {result.task.description}")
    if result.unblocked:
        typer.echo(f"Unblocked: {_ids(result.unblocked)}")
    _print_warnings(result.warnings)


@app.command("edit")
def edit(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    description: str = typer.Argument(...),
) -> None:
    """Change a task's description."""
    with _reporting_errors():
        result = task_cmds.edit_task(ctx.obj, task_id, description)
    typer.echo(f"OK: task #{task_id} is now: {result.task.description}")
    _print_warnings(result.warnings)


@app.command("remove")
def remove(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Remove even if other tasks depend on it"),
) -> None:
    """Remove a task and renumber the rest."""
    with _reporting_errors():
        result = task_cmds.remove_task(ctx.obj, task_id, force=force)
    typer.echo(f"OK: removed task #{task_id}: {result.removed[0].description}")
    renumbered = {old: new for old, new in result.id_map.items() if old != new}
    if renumbered:
        typer.echo("Renumbered: " + ", ".join(f"#{o} -> #{n}" for o, n in sorted(renumbered.items())))
    _print_warnings(result.warnings)


@app.command("reset")
def reset(
    ctx: typer.Context,
    task_id: Optional[int] = typer.Argument(None, help="Task to reset; omit to reset every task"),
) -> None:
    """Set a task (or every task) back to pending."""
    with _reporting_errors():
        result = task_cmds.reset_tasks(ctx.obj, task_id)
    if not result.reset_ids:
        typer.echo("All tasks are already pending" if task_id is None else f"Task #{task_id} is already pending")
        return
    typer.echo(f"OK: reset {_ids(result.reset_ids)}")
    if result.cascaded_ids:
        typer.echo(f"Also reset dependents: {_ids(result.cascaded_ids)}")
    _print_warnings(result.warnings)


@app.command("depend")
def depend(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    ids: str = typer.Argument(..., help="Comma-separated task ids; empty string clears"),
) -> None:
    """Replace a task's dependency list."""
    with _reporting_errors():
        result = task_cmds.set_dependencies(ctx.obj, task_id, ids)
    deps = result.task.dependencies
    typer.echo(f"OK: task #{task_id} depends on {_ids(deps)}" if deps else f"OK: task #{task_id} has no dependencies")
    _print_warnings(result.warnings)


@app.command("dependencies")
def dependencies(
    ctx: typer.Context,
    task_id: Optional[int] = typer.Option(None, "--task-id", help="Show the dependency tree of one task"),
    validate: bool = typer.Option(False, "--validate", help="Fail if the graph has errors"),
    ready: bool = typer.Option(False, "--ready", help="List tasks ready to start"),
    blocked: bool = typer.Option(False, "--blocked", help="List blocked tasks"),
) -> None:
    """Inspect the dependency graph."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        if task_id is not None:
            tree = dependency_tree(roadmap, task_id)
            if tree is None:
                raise task_not_found(task_id)

    if task_id is not None:
        render.render_dependency_tree(tree, dependency_chain(roadmap, task_id), dependents(roadmap, task_id))
    if validate:
        errors = validate_all_dependencies(roadmap)
        if errors:
            _print_errors(errors)
            raise typer.Exit(code=2)
        typer.echo("OK: dependency graph is valid")
    if ready:
        render.render_task_list(roadmap, ready_tasks(roadmap))
    if blocked:
        render.render_task_list(roadmap, blocked_tasks(roadmap), detailed=True)
    if task_id is None and not (validate or ready or blocked):
        overview = dependency_overview(roadmap)
        typer.echo(f"Tasks with dependencies: {overview.with_dependencies}")
        typer.echo(f"Ready: {overview.ready}")
        typer.echo(f"Blocked: {overview.blocked}")
        typer.echo(f"Validation errors: {len(overview.errors)}")


# Time tracking


@app.command("start")
def start(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    description: Optional[str] = typer.Argument(None, help="What this session is for"),
) -> None:
    """Start tracking time on a task."""
    with _reporting_errors():
        result = timetrack.start_session(ctx.obj, task_id, description)
    typer.echo(f"OK: started tracking task #{task_id}")
    _print_warnings(result.warnings)


@app.command("stop")
def stop(ctx: typer.Context) -> None:
    """Stop the active time tracking session."""
    with _reporting_errors():
        result = timetrack.stop_session(ctx.obj)
    typer.echo(
        f"OK: stopped tracking task #{result.task.id} "
        f"({result.session.duration_minutes:g} min, {result.task.actual_hours or 0:g}h total)"
    )
    _print_warnings(result.warnings)


@app.command("time")
def time_cmd(
    ctx: typer.Context,
    task_id: Optional[int] = typer.Argument(None),
    summary: bool = typer.Option(False, "--summary", help="Summary across all tasks"),
) -> None:
    """Show tracked time for a task, or a summary."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        task = task_cmds.get_task(roadmap, task_id) if task_id is not None else None
    if task is not None:
        render.render_task_time(task)
    if task is None or summary:
        render.render_time_summary(timetrack.time_summary(roadmap))


# Bulk


def _report_bulk(result: BulkResult, verb: str) -> None:
    if result.succeeded:
        typer.echo(f"OK: {verb} {_ids(result.succeeded)}")
    if result.skipped:
        typer.echo(f"Unchanged: {_ids(result.skipped)}")
    if result.unblocked:
        typer.echo(f"Unblocked: {_ids(result.unblocked)}")
    if result.cascaded:
        typer.echo(f"Also reset dependents: {_ids(result.cascaded)}")
    for f in result.failed:
        typer.echo(f"FAILED #{f.task_id}: {f.error}", err=True)
    _print_warnings(result.warnings)
    if result.failed:
        raise typer.Exit(code=2)


@bulk_app.command("complete")
def bulk_complete(ctx: typer.Context, ids: str = typer.Argument(..., help="Comma-separated task ids")) -> None:
    """Complete several tasks, in the given order."""
    with _reporting_errors():
        result = bulk_cmds.bulk_complete(ctx.obj, ids)
    _report_bulk(result, "completed")


@bulk_app.command("add-tags")
def bulk_add_tags(
    ctx: typer.Context,
    ids: str = typer.Argument(...),
    tags: str = typer.Argument(..., help="Comma-separated tags"),
) -> None:
    """Add tags to several tasks."""
    with _reporting_errors():
        result = bulk_cmds.bulk_add_tags(ctx.obj, ids, tags)
    _report_bulk(result, "tagged")


@bulk_app.command("remove-tags")
def bulk_remove_tags(
    ctx: typer.Context,
    ids: str = typer.Argument(...),
    tags: str = typer.Argument(..., help="Comma-separated tags"),
) -> None:
    """Remove tags from several tasks."""
    with _reporting_errors():
        result = bulk_cmds.bulk_remove_tags(ctx.obj, ids, tags)
    _report_bulk(result, "untagged")


@bulk_app.command("set-priority")
def bulk_set_priority(
    ctx: typer.Context,
    ids: str = typer.Argument(...),
    priority: str = typer.Argument(..., help="Low|Medium|High|Critical"),
) -> None:
    """Set the priority of several tasks."""
    with _reporting_errors():
        result = bulk_cmds.bulk_set_priority(ctx.obj, ids, priority)
    _report_bulk(result, "updated")


@bulk_app.command("set-phase")
def bulk_set_phase(
    ctx: typer.Context,
    ids: str = typer.Argument(...),
    phase: str = typer.Argument(...),
) -> None:
    """Move several tasks into a phase."""
    with _reporting_errors():
        result = bulk_cmds.bulk_set_phase(ctx.obj, ids, phase)
    _report_bulk(result, "moved")


@bulk_app.command("reset")
def bulk_reset(ctx: typer.Context, ids: str = typer.Argument(...)) -> None:
    """Reset several tasks to pending."""
    with _reporting_errors():
        result = bulk_cmds.bulk_reset(ctx.obj, ids)
    _report_bulk(result, "reset")


@bulk_app.command("remove")
def bulk_remove(
    ctx: typer.Context,
    ids: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force"),
) -> None:
    """Remove several tasks and renumber the rest."""
    with _reporting_errors():
        result = bulk_cmds.bulk_remove(ctx.obj, ids, force=force)
    _report_bulk(result, "removed")


# Phases


@phase_app.command("list")
def phase_list(ctx: typer.Context) -> None:
    """List phases with task counts."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
    render.render_phase_list(phase_cmds.phase_stats(roadmap))


@phase_app.command("show")
def phase_show(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Show the tasks in a phase."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
        phase, tasks = phase_cmds.tasks_in_phase(roadmap, name)
    if not tasks:
        typer.echo(f"No tasks in phase {phase.name}")
        return
    render.render_task_list(roadmap, tasks)


@phase_app.command("set")
def phase_set(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    name: str = typer.Argument(...),
) -> None:
    """Set a task's phase."""
    with _reporting_errors():
        result = phase_cmds.set_task_phase(ctx.obj, task_id, name)
    typer.echo(f"OK: task #{task_id} moved from {result.old_phase.name} to {result.task.phase.name}")
    _print_warnings(result.warnings)


@phase_app.command("overview")
def phase_overview(ctx: typer.Context) -> None:
    """Per-phase progress."""
    with _reporting_errors():
        roadmap = ctx.obj.load()
    render.render_phase_overview(phase_cmds.phase_stats(roadmap))


@phase_app.command("create")
def phase_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    description: Optional[str] = typer.Option(None, "--description"),
    emoji: Optional[str] = typer.Option(None, "--emoji"),
) -> None:
    """Register a custom phase."""
    with _reporting_errors():
        result = phase_cmds.create_phase(ctx.obj, name, description=description, emoji=emoji)
    typer.echo(f"OK: created phase {result.phase.display_emoji()} {result.phase.name}")
    _print_warnings(result.warnings)


@phase_app.command("fork")
def phase_fork(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Target phase"),
    from_phase: Optional[str] = typer.Option(None, "--from-phase"),
    task_ids: Optional[str] = typer.Option(None, "--task-ids"),
    description: Optional[str] = typer.Option(None, "--description"),
    emoji: Optional[str] = typer.Option(None, "--emoji"),
    copy: bool = typer.Option(False, "--copy", help="Copy the tasks instead of moving them"),
) -> None:
    """Move or copy tasks into a (new) phase."""
    with _reporting_errors():
        result = phase_cmds.fork_phase(
            ctx.obj,
            name,
            from_phase=from_phase,
            task_ids=task_ids,
            description=description,
            emoji=emoji,
            copy=copy,
        )
    if copy:
        pairs = ", ".join(f"#{o} -> #{n}" for o, n in sorted(result.created.items()))
        typer.echo(f"OK: copied into {result.phase.name}: {pairs}")
    else:
        typer.echo(f"OK: moved into {result.phase.name}: {_ids(result.moved)}")
    _print_warnings(result.warnings)


# Projects


@project_app.command("list")
def project_list(
    ctx: typer.Context,
    recent: bool = typer.Option(False, "--recent", help="Only the most recently used projects"),
) -> None:
    """List projects, most recently used first."""
    with _reporting_errors():
        rows = project_cmds.list_projects(ctx.obj)
        if recent:
            keep = {p.name for p in ctx.obj.workspace.recent_projects()}
            rows = [r for r in rows if r.project.name in keep]
    render.render_projects(rows)


@project_app.command("create")
def project_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    description: Optional[str] = typer.Option(None, "--description"),
) -> None:
    """Create a project with an empty roadmap and switch to it."""
    with _reporting_errors():
        project_cmds.create_project(ctx.obj, name, description)
    typer.echo(f"OK: created project '{name}' and switched to it")


@project_app.command("switch")
def project_switch(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Make a project the active one."""
    with _reporting_errors():
        project_cmds.switch_project(ctx.obj, name)
    typer.echo(f"OK: switched to project '{name}'")


@project_app.command("delete")
def project_delete(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Actually delete the project and its state"),
) -> None:
    """Delete a project and its state file."""
    with _reporting_errors():
        deleted = project_cmds.delete_project(ctx.obj, name, force=force)
    if not deleted:
        typer.echo(f"WARN: project '{name}' was not deleted; re-run with --force", err=True)
        return
    typer.echo(f"OK: deleted project '{name}'")


# Implementation notes


@notes_app.command("add")
def notes_add(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    note: str = typer.Argument(...),
) -> None:
    """Append an implementation note to a task."""
    with _reporting_errors():
        result = notes_cmds.add_note(ctx.obj, task_id, note)
    typer.echo(f"OK: added note {result.index} to task #{task_id}")
    _print_warnings(result.warnings)


@notes_app.command("list")
def notes_list(ctx: typer.Context, task_id: int = typer.Argument(...)) -> None:
    """List a task's implementation notes."""
    with _reporting_errors():
        task = notes_cmds.list_notes(ctx.obj, task_id)
    render.render_notes(task)


@notes_app.command("remove")
def notes_remove(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    index: int = typer.Argument(..., help="0-based note index"),
) -> None:
    """Remove one implementation note."""
    with _reporting_errors():
        result = notes_cmds.remove_note(ctx.obj, task_id, index)
    typer.echo(f"OK: removed note {index} from task #{task_id}")
    _print_warnings(result.warnings)


@notes_app.command("edit")
def notes_edit(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    index: int = typer.Argument(..., help="0-based note index"),
    note: str = typer.Argument(...),
) -> None:
    """Replace one implementation note."""
    with _reporting_errors():
        result = notes_cmds.edit_note(ctx.obj, task_id, index, note)
    typer.echo(f"OK: updated note {index} on task #{task_id}")
    _print_warnings(result.warnings)


@notes_app.command("clear")
def notes_clear(
    ctx: typer.Context,
    task_id: int = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove every implementation note from a task."""
    if not yes and not typer.confirm(f"Clear all implementation notes from task #{task_id}?"):
        typer.echo("Aborted")
        return
    with _reporting_errors():
        result = notes_cmds.clear_notes(ctx.obj, task_id)
    if not result.removed:
        typer.echo(f"Task #{task_id} has no implementation notes")
        return
    typer.echo(f"OK: cleared {len(result.removed)} notes from task #{task_id}")
    _print_warnings(result.warnings)


# Templates


@template_app.command("list")
def template_list(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", help="Filter by category"),
    detailed: bool = typer.Option(False, "--detailed", help="Include description and tags"),
) -> None:
    """List built-in and user templates."""
    with _reporting_errors():
        templates = template_cmds.list_templates(ctx.obj, category)
    render.render_templates(templates, detailed=detailed)


@template_app.command("show")
def template_show(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Show one template."""
    with _reporting_errors():
        template = template_cmds.get_template(ctx.obj, name)
    render.render_template_detail(template)


@template_app.command("use")
def template_use(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    description: Optional[str] = typer.Argument(None, help="Task description (default: the template's)"),
    add_tags: Optional[str] = typer.Option(None, "--add-tags", help="Extra comma-separated tags"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Low|Medium|High|Critical"),
    phase: Optional[str] = typer.Option(None, "--phase"),
) -> None:
    """Add a task pre-filled from a template."""
    with _reporting_errors():
        result = template_cmds.use_template(
            ctx.obj, name, description, add_tags=add_tags, priority=priority, phase=phase
        )
    task = result.task
    typer.echo(f"OK: added task #{task.id} from template '{name}': {task.description}")
    _print_warnings(result.warnings)


@template_app.command("create")
def template_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    description: str = typer.Argument(...),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Low|Medium|High|Critical"),
    phase: Optional[str] = typer.Option(None, "--phase"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    category: Optional[str] = typer.Option(None, "--category"),
    estimated_hours: Optional[float] = typer.Option(None, "--estimated-hours"),
) -> None:
    """Save a new user template."""
    with _reporting_errors():
        template = template_cmds.create_template(
            ctx.obj,
            name,
            description,
            tags=tags,
            priority=priority,
            phase=phase,
            notes=notes,
            category=category,
            estimated_hours=estimated_hours,
        )
    typer.echo(f"OK: created template '{template.name}'")


@template_app.command("delete")
def template_delete(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Actually delete the template"),
) -> None:
    """Delete a user template."""
    with _reporting_errors():
        deleted = template_cmds.delete_template(ctx.obj, name, force=force)
    if not deleted:
        typer.echo(f"WARN: template '{name}' was not deleted; re-run with --force", err=True)
        return
    typer.echo(f"OK: deleted template '{name}'")


@template_app.command("export")
def template_export(ctx: typer.Context, output: str = typer.Argument(..., help="File to write")) -> None:
    """Write all templates to a YAML file."""
    with _reporting_errors():
        count = template_cmds.export_templates(ctx.obj, output)
    typer.echo(f"OK: exported {count} templates to {output}")


@template_app.command("import")
def template_import(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="YAML or JSON template file"),
    merge: bool = typer.Option(False, "--merge", help="Keep existing user templates"),
) -> None:
    """Load user templates from a file."""
    with _reporting_errors():
        result = template_cmds.import_templates(ctx.obj, source, merge=merge)
    typer.echo(f"OK: imported {len(result.imported)} templates from {source}")
    for name in result.skipped:
        typer.echo(f"SKIPPED template '{name}': already exists", err=True)


# AI


@ai_app.command("breakdown")
def ai_breakdown(
    ctx: typer.Context,
    goal: str = typer.Argument(..., help="What you want to achieve"),
    apply: bool = typer.Option(False, "--apply", help="Add the suggested tasks to the roadmap"),
    model: Optional[str] = typer.Option(None, "--model"),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
) -> None:
    """Break a goal down into suggested tasks."""
    if not os.getenv("OPENAI_API_KEY"):
        _print_errors(
            [
                ValidationError(
                    code="E_AI_NO_API_KEY",
                    message="OPENAI_API_KEY is not set",
                    path="OPENAI_API_KEY",
                )
            ]
        )
        raise typer.Exit(code=2)

    model_name = model or ctx.obj.config.ai_model
    provider = OpenAISuggestionClient(base_url=base_url)
    with _reporting_errors():
        try:
            result = breakdown(ctx.obj, goal, provider=provider, model=model_name, apply=apply)
        except (RuntimeError, ValueError) as e:
            raise ProviderError(code="E_AI_PROVIDER", message=str(e), path="ai") from e

    render.render_suggestions(result.batch)
    if result.applied is None:
        typer.echo("Re-run with --apply to add these tasks")
        return
    if result.applied.added:
        typer.echo(f"OK: added {_ids([t.id for t in result.applied.added])}")
    for s in result.applied.skipped:
        typer.echo(f"SKIPPED suggestion {s.index + 1}: {s.error}", err=True)
    _print_warnings(result.warnings)


def main() -> None:
    app(prog_name="rask")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()

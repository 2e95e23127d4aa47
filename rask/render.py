from __future__ import annotations

from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from rask.core.ai.contracts import SuggestionBatch
from rask.core.commands.phases import PhaseStats
from rask.core.commands.projects import ProjectRow
from rask.core.commands.templates import TaskTemplate
from rask.core.commands.timetrack import TimeSummary
from rask.core.deps.dependency_graph import DependencyNode, is_ready
from rask.core.model import Phase, Roadmap, Task, TaskStatus


def _console() -> Console:
    # Built per call so output follows whatever sys.stdout is at the time.
    return Console(highlight=False, soft_wrap=False)


def _status_cell(roadmap: Roadmap, task: Task) -> str:
    if task.is_completed:
        return "done"
    return "ready" if is_ready(roadmap, task) else "blocked"


def _hours(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:g}h"


def _phase_cell(phase: Phase) -> str:
    return f"{phase.display_emoji()} {escape(phase.name)}"


def _task_table(roadmap: Roadmap, tasks: Iterable[Task], *, title: str, detailed: bool) -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column("ID", justify="right")
    table.add_column("Status")
    table.add_column("Description")
    table.add_column("Priority")
    table.add_column("Phase")
    if detailed:
        table.add_column("Tags")
        table.add_column("Deps")
        table.add_column("Est.")
        table.add_column("Notes")

    for t in tasks:
        row = [
            str(t.id),
            _status_cell(roadmap, t),
            escape(t.description),
            t.priority.value,
            _phase_cell(t.phase),
        ]
        if detailed:
            row += [
                ", ".join(f"#{tag}" for tag in sorted(t.tags)),
                ", ".join(str(d) for d in t.dependencies),
                _hours(t.estimated_hours),
                escape(t.notes or ""),
            ]
        table.add_row(*row)
    return table


def _progress(tasks: list[Task]) -> tuple[int, int, int]:
    total = len(tasks)
    done = sum(1 for t in tasks if t.is_completed)
    return done, total, (done * 100) // total if total else 0


def _roadmap_header(console: Console, roadmap: Roadmap) -> None:
    done, total, pct = _progress(roadmap.tasks)
    console.print(f"[bold]{escape(roadmap.title)}[/bold]")
    console.print(f"Progress: {done}/{total} tasks completed ({pct}%)")


def render_roadmap(roadmap: Roadmap, *, detailed: bool = True, collapse_completed: bool = False) -> None:
    console = _console()
    _roadmap_header(console, roadmap)
    if not roadmap.tasks:
        console.print("No tasks yet. Add one with 'rask add'.")
        return
    tasks = roadmap.tasks
    if collapse_completed:
        tasks = [t for t in tasks if not t.is_completed]
        hidden = len(roadmap.tasks) - len(tasks)
        if hidden:
            console.print(f"{hidden} completed task(s) hidden")
        if not tasks:
            return
    console.print(_task_table(roadmap, tasks, title="Tasks", detailed=detailed))


def render_roadmap_by_phase(roadmap: Roadmap, *, detailed: bool = False, collapse_completed: bool = False) -> None:
    """One table per phase that has tasks, in phase order. Finished phases fold to one line on request."""
    console = _console()
    _roadmap_header(console, roadmap)
    if not roadmap.tasks:
        console.print("No tasks yet. Add one with 'rask add'.")
        return
    for phase in roadmap.all_phases():
        tasks = roadmap.filter_by_phase(phase)
        if not tasks:
            continue
        done, total, pct = _progress(tasks)
        heading = f"{_phase_cell(phase)}: {done}/{total} done ({pct}%)"
        if collapse_completed and done == total:
            console.print(f"{heading} (collapsed, all tasks completed)")
            continue
        console.print(_task_table(roadmap, tasks, title=heading, detailed=detailed))


def render_phase_tasks(roadmap: Roadmap, phase: Phase, tasks: list[Task], *, detailed: bool = False) -> None:
    console = _console()
    console.print(f"[bold]{escape(roadmap.title)}[/bold] - {_phase_cell(phase)} phase")
    if not tasks:
        console.print(f"No tasks in phase '{escape(phase.name)}'. Use 'rask phase list' to see phases.")
        return
    done, total, pct = _progress(tasks)
    ready = sum(1 for t in tasks if is_ready(roadmap, t))
    console.print(f"Progress: {done}/{total} tasks completed ({pct}%)")
    console.print(_task_table(roadmap, tasks, title=f"{total} task(s)", detailed=detailed))
    console.print(f"Completed: {done}  Ready: {ready}  Blocked: {total - done - ready}")


def render_task_list(roadmap: Roadmap, tasks: list[Task], *, detailed: bool = False) -> None:
    console = _console()
    if not tasks:
        console.print("No tasks match the given filters.")
        return
    console.print(
        _task_table(roadmap, tasks, title=f"{len(tasks)} of {len(roadmap.tasks)} tasks", detailed=detailed)
    )


def render_task_detail(roadmap: Roadmap, task: Task) -> None:
    console = _console()
    table = Table(title=f"Task #{task.id}", show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Description", escape(task.description))
    table.add_row("Status", f"{task.status.value} ({_status_cell(roadmap, task)})")
    table.add_row("Priority", task.priority.value)
    table.add_row("Phase", _phase_cell(task.phase))
    table.add_row("Tags", ", ".join(f"#{t}" for t in sorted(task.tags)) or "-")
    table.add_row("Dependencies", ", ".join(f"#{d}" for d in task.dependencies) or "-")
    dependents = roadmap.dependents_of(task.id)
    table.add_row("Needed by", ", ".join(f"#{d}" for d in dependents) or "-")
    table.add_row("Created", task.created_at)
    if task.completed_at:
        table.add_row("Completed", task.completed_at)
    table.add_row("Estimated", _hours(task.estimated_hours))
    table.add_row("Actual", _hours(task.actual_hours))
    if task.notes:
        table.add_row("Notes", escape(task.notes))
    if task.ai_info:
        table.add_row("AI", f"{task.ai_info.operation} ({task.ai_info.model or 'unknown model'})")
    console.print(table)
    if task.implementation_notes:
        render_notes(task)


def render_notes(task: Task) -> None:
    console = _console()
    if not task.implementation_notes:
        console.print(f"Task #{task.id} has no implementation notes.")
        return
    table = Table(title=f"Implementation notes for task #{task.id}", title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("Note")
    for i, note in enumerate(task.implementation_notes):
        table.add_row(str(i), escape(note))
    console.print(table)


def _add_tree_children(branch: Tree, node: DependencyNode) -> None:
    for child in node.children:
        if child.circular:
            branch.add(f"#{child.task_id} (circular)")
        elif child.not_found:
            branch.add(f"#{child.task_id} (not found)")
        else:
            sub = branch.add(_node_label(child))
            _add_tree_children(sub, child)


def _node_label(node: DependencyNode) -> str:
    mark = "x" if node.status == TaskStatus.COMPLETED else " "
    return escape(f"[{mark}] #{node.task_id} {node.description}")


def render_dependency_tree(
    node: DependencyNode,
    chain: Iterable[int] = (),
    dependents: Iterable[Task] = (),
) -> None:
    """Tree of what a task waits on, then its full chain and the tasks waiting on it."""
    console = _console()
    tree = Tree(_node_label(node))
    _add_tree_children(tree, node)
    console.print(tree)

    chain = list(chain)
    if chain:
        console.print("Dependency chain: " + " -> ".join(f"#{i}" for i in chain))
    dependents = list(dependents)
    if dependents:
        console.print("Tasks depending on this:")
        for t in dependents:
            console.print(escape(f"  #{t.id} {t.description}"))


def render_phase_list(stats: list[PhaseStats]) -> None:
    table = Table(title="Phases", title_justify="left")
    table.add_column("Phase")
    table.add_column("Tasks", justify="right")
    table.add_column("Description")
    for s in stats:
        table.add_row(_phase_cell(s.phase), str(s.total), escape(s.phase.description or ""))
    _console().print(table)


def render_phase_overview(stats: list[PhaseStats]) -> None:
    console = _console()
    total = sum(s.total for s in stats)
    done = sum(s.completed for s in stats)
    pct = (done * 100) // total if total else 0
    console.print(f"Overall: {done}/{total} tasks completed ({pct}%), {total - done} pending")

    table = Table(title="Phase overview", title_justify="left")
    table.add_column("Phase")
    table.add_column("Total", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Ready", justify="right")
    table.add_column("Blocked", justify="right")
    table.add_column("Complete", justify="right")
    for s in stats:
        if not s.total:
            continue
        table.add_row(
            _phase_cell(s.phase),
            str(s.total),
            str(s.completed),
            str(s.ready),
            str(s.blocked),
            f"{s.completion_percent}%",
        )
    console.print(table)

    best = max((s for s in stats if s.ready), key=lambda s: s.ready, default=None)
    if best is not None:
        console.print(f"Focus: {escape(best.phase.name)} has {best.ready} task(s) ready to start")
    empty = [s.phase.name for s in stats if not s.total and s.phase.is_predefined]
    if empty:
        console.print("No tasks yet in: " + ", ".join(empty))


def render_projects(rows: list[ProjectRow]) -> None:
    console = _console()
    if not rows:
        console.print("No projects yet. Create one with 'rask project create <NAME>'.")
        return
    table = Table(title="Projects", title_justify="left")
    table.add_column("")
    table.add_column("Name")
    table.add_column("Tasks", justify="right")
    table.add_column("Last accessed")
    table.add_column("Description")
    for r in rows:
        marks = ("*" if r.is_current else "") + ("d" if r.is_default else "")
        if r.total_tasks is not None:
            tasks = f"{r.completed_tasks}/{r.total_tasks}"
        else:
            tasks = r.problem or "-"
        table.add_row(marks, r.project.name, tasks, r.project.last_accessed[:19], escape(r.project.description or ""))
    console.print(table)
    console.print("* current   d default")


def render_time_summary(summary: TimeSummary) -> None:
    console = _console()
    if not summary.tasks:
        console.print("No time tracked and no estimates recorded.")
        return
    table = Table(title="Time tracking", title_justify="left")
    table.add_column("ID", justify="right")
    table.add_column("Description")
    table.add_column("Estimated", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Variance", justify="right")
    table.add_column("Sessions", justify="right")
    for t in summary.tasks:
        variance = t.variance_hours
        table.add_row(
            str(t.task_id),
            escape(t.description) + (" (active)" if t.active else ""),
            _hours(t.estimated_hours),
            _hours(t.actual_hours),
            "-" if variance is None else f"{variance:+g}h",
            str(t.session_count),
        )
    console.print(table)
    console.print(
        f"Total: {summary.total_actual_hours:g}h tracked against {summary.total_estimated_hours:g}h estimated"
    )
    if summary.active_task_id is not None:
        console.print(f"Active: task #{summary.active_task_id} for {summary.active_minutes:g} min")


def render_task_time(task: Task) -> None:
    console = _console()
    console.print(
        f"Task #{task.id}: {_hours(task.actual_hours)} tracked, {_hours(task.estimated_hours)} estimated"
    )
    if not task.time_sessions:
        console.print("No sessions recorded.")
        return
    table = Table(title_justify="left")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Minutes", justify="right")
    table.add_column("Description")
    for s in task.time_sessions:
        table.add_row(
            s.start_time[:19],
            s.end_time[:19] if s.end_time else "active",
            "-" if s.duration_minutes is None else f"{s.duration_minutes:g}",
            escape(s.description or ""),
        )
    console.print(table)


def render_suggestions(batch: SuggestionBatch) -> None:
    console = _console()
    table = Table(title="Suggested tasks", title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("Description")
    table.add_column("Priority")
    table.add_column("Phase")
    table.add_column("Est.")
    table.add_column("Deps")
    for i, s in enumerate(batch.tasks, start=1):
        table.add_row(
            str(i),
            escape(s.description),
            s.priority or "-",
            escape(s.phase or "-"),
            _hours(s.estimated_hours),
            ", ".join(str(d) for d in s.dependencies),
        )
    console.print(table)
    for note in batch.notes:
        console.print(f"- {escape(note)}")


def render_templates(templates: list[TaskTemplate], *, detailed: bool = False) -> None:
    console = _console()
    if not templates:
        console.print("No templates found.")
        return
    table = Table(title="Templates", title_justify="left")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Phase")
    if detailed:
        table.add_column("Description")
        table.add_column("Tags")
    for t in templates:
        name = escape(t.name) + (" (built-in)" if t.builtin else "")
        row = [name, escape(t.category), t.priority.value, escape(t.phase)]
        if detailed:
            row += [escape(t.description), ", ".join(f"#{tag}" for tag in t.tags)]
        table.add_row(*row)
    console.print(table)
    console.print("Use 'rask template use <NAME>' to add a task from a template.")


def render_template_detail(template: TaskTemplate) -> None:
    table = Table(title=f"Template: {escape(template.name)}", show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Description", escape(template.description))
    table.add_row("Category", escape(template.category))
    table.add_row("Priority", template.priority.value)
    table.add_row("Phase", escape(template.phase))
    table.add_row("Tags", ", ".join(f"#{tag}" for tag in template.tags) or "-")
    table.add_row("Estimate", _hours(template.estimated_hours))
    if template.notes:
        table.add_row("Notes", escape(template.notes))
    table.add_row("Origin", "built-in" if template.builtin else f"user ({template.created_at or 'unknown date'})")
    _console().print(table)

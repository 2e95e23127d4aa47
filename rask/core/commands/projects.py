from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rask.core.commands.sync import CommandContext
from rask.core.errors import RaskError
from rask.core.io.state_store import StateStore
from rask.core.model import ProjectMetadata, Roadmap
from rask.core.workspace.workspace import ProjectConfig


@dataclass
class ProjectRow:
    project: ProjectConfig
    is_current: bool
    is_default: bool
    total_tasks: Optional[int] = None
    completed_tasks: Optional[int] = None
    problem: Optional[str] = None


@dataclass
class ProjectCreated:
    project: ProjectConfig
    roadmap: Roadmap


def list_projects(ctx: CommandContext) -> list[ProjectRow]:
    """Registry entries, most recently accessed first, with task counts where the state loads."""
    ws = ctx.workspace
    current = ws.current_project_name()
    default = ws.registry.default_project
    rows: list[ProjectRow] = []
    for p in ws.list_projects():
        row = ProjectRow(project=p, is_current=p.name == current, is_default=p.name == default)
        store = StateStore(p.state_file)
        if store.exists():
            try:
                roadmap = store.load()
            except RaskError as e:
                row.problem = e.code
            else:
                row.total_tasks = len(roadmap.tasks)
                row.completed_tasks = len(roadmap.completed_ids())
        else:
            row.problem = "no state file"
        rows.append(row)
    return rows


def create_project(ctx: CommandContext, name: str, description: Optional[str] = None) -> ProjectCreated:
    """Register a project with an empty roadmap and make it the active one."""
    ws = ctx.workspace
    project = ws.create(name, description)
    roadmap = Roadmap(
        title=f"{name} Project",
        project_id=name,
        metadata=ProjectMetadata(name=name, description=description),
    )
    StateStore(project.state_file).save(roadmap)
    ws.switch(name)
    return ProjectCreated(project=project, roadmap=roadmap)


def switch_project(ctx: CommandContext, name: str) -> ProjectConfig:
    return ctx.workspace.switch(name)


def delete_project(ctx: CommandContext, name: str, *, force: bool = False) -> bool:
    """Delete a project and its state file. Returns False (and does nothing) without force."""
    return ctx.workspace.delete(name, force=force)

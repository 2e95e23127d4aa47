from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import typer

from rask.core.errors import ConflictError, ParseError, StorageError, ValidationError
from rask.core.io.atomic_write import atomic_write_text
from rask.core.io.state_store import StateStore
from rask.core.model import iso, utc_now
from rask.core.validate.fields import validate_project_name

logger = logging.getLogger(__name__)


APP_NAME = "rask"
HOME_ENV = "RASK_HOME"

REGISTRY_FILE = "projects.json"
CURRENT_PROJECT_FILE = "current_project"
DEFAULT_STATE_FILE = "default_state.json"

# Files older versions kept in the working directory.
LEGACY_STATE_FILE = ".rask_state.json"
LEGACY_PROJECTS_FILE = ".rask_projects.json"
LEGACY_CURRENT_FILE = ".rask_current_project"
LEGACY_PROJECT_STATE_PREFIX = ".rask_state_"

LOCAL_DIR = ".rask"
LOCAL_SUBDIRS = ("cache", "exports")


def default_workspace_root() -> Path:
    """Per-user application directory, overridable with RASK_HOME."""
    override = (os.getenv(HOME_ENV, "") or "").strip()
    if override:
        return Path(override).expanduser()
    return Path(typer.get_app_dir(APP_NAME))


@dataclass
class GlobalSettings:
    auto_switch_default: bool = True
    recent_projects_count: int = 5
    auto_create_local_dir: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "auto_switch_default": self.auto_switch_default,
            "recent_projects_count": self.recent_projects_count,
            "auto_create_local_dir": self.auto_create_local_dir,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalSettings":
        return cls(
            auto_switch_default=bool(data.get("auto_switch_default", True)),
            recent_projects_count=int(data.get("recent_projects_count", 5)),
            auto_create_local_dir=bool(data.get("auto_create_local_dir", False)),
        )


@dataclass
class ProjectConfig:
    name: str
    state_file: str
    created_at: str
    last_accessed: str
    description: Optional[str] = None
    source_file: Optional[str] = None
    work_directory: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "last_accessed": self.last_accessed,
            "state_file": self.state_file,
            "source_file": self.source_file,
            "work_directory": self.work_directory,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, work_directory: str = "") -> "ProjectConfig":
        now = iso(utc_now())
        return cls(
            name=data["name"],
            state_file=data["state_file"],
            created_at=data.get("created_at") or now,
            last_accessed=data.get("last_accessed") or now,
            description=data.get("description"),
            source_file=data.get("source_file"),
            work_directory=data.get("work_directory") or work_directory,
        )


@dataclass
class ProjectsRegistry:
    projects: dict[str, ProjectConfig] = field(default_factory=dict)
    default_project: Optional[str] = None
    global_settings: GlobalSettings = field(default_factory=GlobalSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "projects": {name: p.to_dict() for name, p in self.projects.items()},
            "default_project": self.default_project,
            "global_settings": self.global_settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, work_directory: str = "") -> "ProjectsRegistry":
        projects_raw = data.get("projects") or {}
        projects = {
            name: ProjectConfig.from_dict({"name": name, **raw}, work_directory=work_directory)
            for name, raw in projects_raw.items()
        }
        default = data.get("default_project")
        return cls(
            projects=projects,
            default_project=default if default in projects else None,
            global_settings=GlobalSettings.from_dict(data.get("global_settings") or {}),
        )


def _is_legacy_shape(data: dict[str, Any]) -> bool:
    if "global_settings" not in data:
        return True
    projects = data.get("projects") or {}
    return any(isinstance(p, dict) and "work_directory" not in p for p in projects.values())


class Workspace:
    """Handle on the per-user workspace directory. Construct one per command.

    Layout:
      <root>/projects.json         registry
      <root>/current_project       active project name (absent when none)
      <root>/project_<name>.json   per-project state file
    """

    def __init__(self, root: str | Path | None = None, *, cwd: str | Path | None = None) -> None:
        self.root = Path(root) if root is not None else default_workspace_root()
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._registry: Optional[ProjectsRegistry] = None

    @property
    def registry_path(self) -> Path:
        return self.root / REGISTRY_FILE

    @property
    def current_project_path(self) -> Path:
        return self.root / CURRENT_PROJECT_FILE

    def project_state_path(self, name: str) -> Path:
        return self.root / f"project_{name}.json"

    # Registry

    @property
    def registry(self) -> ProjectsRegistry:
        if self._registry is None:
            self._registry = self._load_registry()
        return self._registry

    def _load_registry(self) -> ProjectsRegistry:
        if not self.registry_path.exists():
            migrated = self.migrate_legacy_files()
            return migrated if migrated is not None else ProjectsRegistry()

        data = self._read_registry_json(self.registry_path)
        registry = self._registry_from_dict(data, self.registry_path)
        if _is_legacy_shape(data):
            logger.info("upgrading projects registry at %s", self.registry_path)
            self._write_registry(registry)
        return registry

    def _read_registry_json(self, path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(
                code="E_REGISTRY_CORRUPT",
                message=f"failed to parse projects registry: {e}",
                file=str(path),
            ) from e
        except OSError as e:
            raise StorageError(code="E_IO", message=str(e), file=str(path)) from e

        if not isinstance(data, dict):
            raise ParseError(
                code="E_REGISTRY_CORRUPT",
                message="projects registry must be an object",
                file=str(path),
            )
        return data

    def _registry_from_dict(self, data: dict[str, Any], path: Path) -> ProjectsRegistry:
        try:
            return ProjectsRegistry.from_dict(data, work_directory=str(self.cwd))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ParseError(
                code="E_REGISTRY_CORRUPT",
                message=f"invalid projects registry: {e!r}",
                file=str(path),
            ) from e

    def _write_registry(self, registry: ProjectsRegistry) -> None:
        atomic_write_text(self.registry_path, json.dumps(registry.to_dict(), indent=2) + "\n")

    def save_registry(self) -> None:
        self._write_registry(self.registry)

    def migrate_legacy_files(self) -> Optional[ProjectsRegistry]:
        """Move registry, pointer and per-project state files out of the working directory.

        Returns the migrated registry, or None when there was nothing to migrate.
        """
        legacy_registry = self.cwd / LEGACY_PROJECTS_FILE
        if not legacy_registry.exists():
            return None

        data = self._read_registry_json(legacy_registry)
        registry = self._registry_from_dict(data, legacy_registry)
        self.root.mkdir(parents=True, exist_ok=True)

        for name, project in registry.projects.items():
            old_state = Path(project.state_file)
            if not old_state.is_absolute():
                old_state = self.cwd / old_state
            if not old_state.exists():
                old_state = self.cwd / f"{LEGACY_PROJECT_STATE_PREFIX}{name}.json"
            new_state = self.project_state_path(name)
            if old_state.exists():
                shutil.move(str(old_state), str(new_state))
                logger.info("moved %s -> %s", old_state, new_state)
            project.state_file = str(new_state)

        self._write_registry(registry)
        legacy_registry.unlink()

        legacy_current = self.cwd / LEGACY_CURRENT_FILE
        if legacy_current.exists():
            name = legacy_current.read_text(encoding="utf-8").strip()
            if name in registry.projects:
                atomic_write_text(self.current_project_path, name + "\n")
            legacy_current.unlink()

        logger.info("migrated %d legacy project(s) into %s", len(registry.projects), self.root)
        return registry

    # Current project

    def current_project_name(self) -> Optional[str]:
        """Name of the active project; a pointer to a missing project is cleared."""
        # Loading the registry first may migrate a legacy pointer into place.
        projects = self.registry.projects
        if not self.current_project_path.exists():
            return None
        name = self.current_project_path.read_text(encoding="utf-8").strip()
        if name and name in projects:
            return name
        logger.info("clearing stale current project pointer: %r", name)
        self.clear_current_project()
        return None

    def set_current_project(self, name: str) -> None:
        atomic_write_text(self.current_project_path, name + "\n")

    def clear_current_project(self) -> None:
        if self.current_project_path.exists():
            self.current_project_path.unlink()

    def active_project(self) -> Optional[ProjectConfig]:
        current = self.current_project_name()
        if current is not None:
            return self.registry.projects[current]
        default = self.registry.default_project
        if default is not None:
            return self.registry.projects.get(default)
        return None

    # State path resolution

    def state_file(self) -> Path:
        project = self.active_project()
        if project is not None:
            return Path(project.state_file)
        legacy = self.cwd / LEGACY_STATE_FILE
        if legacy.exists():
            return legacy
        return self.root / DEFAULT_STATE_FILE

    def store(self) -> StateStore:
        return StateStore(self.state_file())

    # Project operations

    def get_project(self, name: str) -> ProjectConfig:
        project = self.registry.projects.get(name)
        if project is None:
            raise ValidationError(
                code="E_PROJECT_NOT_FOUND",
                message=f"project '{name}' not found; use 'rask project list' to see projects",
                path="name",
            )
        return project

    def list_projects(self) -> list[ProjectConfig]:
        """Projects, most recently accessed first."""
        return sorted(self.registry.projects.values(), key=lambda p: p.last_accessed, reverse=True)

    def recent_projects(self) -> list[ProjectConfig]:
        return self.list_projects()[: self.registry.global_settings.recent_projects_count]

    def create(self, name: str, description: Optional[str] = None) -> ProjectConfig:
        validate_project_name(name)
        registry = self.registry
        if name in registry.projects:
            raise ConflictError(
                code="E_PROJECT_EXISTS",
                message=f"project '{name}' already exists",
                path="name",
            )

        now = iso(utc_now())
        project = ProjectConfig(
            name=name,
            description=description,
            created_at=now,
            last_accessed=now,
            state_file=str(self.project_state_path(name)),
            work_directory=str(self.cwd),
        )
        registry.projects[name] = project
        if registry.default_project is None:
            registry.default_project = name
        self.save_registry()

        if registry.global_settings.auto_create_local_dir:
            self.ensure_local_dir(project)
        logger.info("created project %s", name)
        return project

    def switch(self, name: str) -> ProjectConfig:
        project = self.get_project(name)
        self.set_current_project(name)
        self.update_last_accessed(name)
        return project

    def delete(self, name: str, *, force: bool = False) -> bool:
        """Delete a project and its state file. Without force nothing happens."""
        project = self.get_project(name)
        if not force:
            return False

        registry = self.registry
        was_current = self.current_project_name() == name

        StateStore(project.state_file).delete()
        del registry.projects[name]
        if registry.default_project == name:
            remaining = sorted(registry.projects)
            registry.default_project = remaining[0] if remaining else None
        self.save_registry()

        if was_current:
            if registry.default_project and registry.global_settings.auto_switch_default:
                self.set_current_project(registry.default_project)
            else:
                self.clear_current_project()
        logger.info("deleted project %s", name)
        return True

    def update_last_accessed(self, name: str) -> None:
        project = self.registry.projects.get(name)
        if project is None:
            return
        project.last_accessed = iso(utc_now())
        self.save_registry()

    def record_source_file(self, name: str, source_file: Optional[str]) -> None:
        project = self.get_project(name)
        project.source_file = source_file
        self.save_registry()

    def ensure_local_dir(self, project: ProjectConfig) -> Path:
        base = Path(project.work_directory or self.cwd) / LOCAL_DIR
        for sub in LOCAL_SUBDIRS:
            (base / sub).mkdir(parents=True, exist_ok=True)
        return base

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from rask.core.commands.sync import CommandContext
from rask.core.commands.tasks import TaskResult, add_task
from rask.core.errors import ConflictError, ParseError, StorageError, ValidationError
from rask.core.io.atomic_write import atomic_write_text
from rask.core.model import DEFAULT_PHASE, Priority, canonical_phase, iso, utc_now
from rask.core.validate.fields import (
    parse_priority,
    parse_tags,
    validate_description,
    validate_estimated_hours,
    validate_notes,
    validate_phase_name,
)

logger = logging.getLogger(__name__)


TEMPLATES_FILE = "templates.yaml"
MAX_TEMPLATE_NAME_LEN = 64

CATEGORIES = (
    "development",
    "testing",
    "documentation",
    "devops",
    "design",
    "research",
    "meeting",
    "bug",
    "feature",
)


@dataclass
class TaskTemplate:
    name: str
    description: str
    category: str = "custom"
    tags: list[str] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    phase: str = DEFAULT_PHASE.name
    notes: Optional[str] = None
    estimated_hours: Optional[float] = None
    created_at: Optional[str] = None
    builtin: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "priority": self.priority.value,
            "phase": self.phase,
        }
        if self.notes is not None:
            out["notes"] = self.notes
        if self.estimated_hours is not None:
            out["estimated_hours"] = self.estimated_hours
        if self.created_at is not None:
            out["created_at"] = self.created_at
        return out


# Shipped with rask; they can be used and exported but not replaced or deleted.
DEFAULT_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        name="Bug Fix",
        description="Fix reported bug",
        category="bug",
        tags=["bug", "fix"],
        priority=Priority.HIGH,
        notes="Reproduce first, then add a regression test.",
        builtin=True,
    ),
    TaskTemplate(
        name="Feature Implementation",
        description="Implement new feature",
        category="feature",
        tags=["feature"],
        notes="Ship it behind tests and update the docs.",
        builtin=True,
    ),
    TaskTemplate(
        name="Code Review",
        description="Review pending changes",
        category="development",
        tags=["review", "quality"],
        builtin=True,
    ),
    TaskTemplate(
        name="Write Tests",
        description="Add test coverage",
        category="testing",
        tags=["testing"],
        builtin=True,
    ),
    TaskTemplate(
        name="Documentation",
        description="Write documentation",
        category="documentation",
        tags=["docs"],
        priority=Priority.LOW,
        phase="Release",
        builtin=True,
    ),
    TaskTemplate(
        name="Research Spike",
        description="Investigate options and report findings",
        category="research",
        tags=["research"],
        phase="Backlog",
        estimated_hours=4.0,
        builtin=True,
    ),
)


def templates_path(ctx: CommandContext) -> Path:
    return ctx.workspace.root / TEMPLATES_FILE


def validate_template_name(name: str) -> str:
    stripped = name.strip()
    if not stripped or len(stripped) > MAX_TEMPLATE_NAME_LEN:
        raise ValidationError(
            code="E_INVALID_TEMPLATE_NAME",
            message=f"template name must be 1..{MAX_TEMPLATE_NAME_LEN} characters",
            path="name",
        )
    return stripped


def normalize_category(raw: Optional[str]) -> str:
    """Known categories are matched case-insensitively; anything else is kept as a custom label."""
    if raw is None or not raw.strip():
        return "custom"
    value = raw.strip()
    return value.lower() if value.lower() in CATEGORIES else value


def build_template(
    name: str,
    description: str,
    *,
    tags: Optional[str] = None,
    priority: Optional[str] = None,
    phase: Optional[str] = None,
    notes: Optional[str] = None,
    category: Optional[str] = None,
    estimated_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TaskTemplate:
    """Validate raw field values into a template, with the same rules as `add`."""
    return TaskTemplate(
        name=validate_template_name(name),
        description=validate_description(description),
        category=normalize_category(category),
        tags=parse_tags(tags),
        priority=parse_priority(priority) if priority is not None else Priority.MEDIUM,
        phase=canonical_phase(validate_phase_name(phase)).name if phase else DEFAULT_PHASE.name,
        notes=validate_notes(notes),
        estimated_hours=validate_estimated_hours(estimated_hours),
        created_at=iso(now or utc_now()),
    )


def _corrupt(source: Path, message: str) -> ParseError:
    return ParseError(code="E_TEMPLATE_CORRUPT", message=message, file=str(source))


def template_from_dict(data: Any, *, source: Path) -> TaskTemplate:
    if not isinstance(data, dict):
        raise _corrupt(source, "each template must be a mapping")
    name = data.get("name")
    description = data.get("description")
    if not isinstance(name, str) or not isinstance(description, str):
        raise _corrupt(source, "templates need string 'name' and 'description' fields")

    tags = data.get("tags") or []
    hours = data.get("estimated_hours")
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise _corrupt(source, f"template '{name}': tags must be a list of strings")
    if hours is not None and (isinstance(hours, bool) or not isinstance(hours, (int, float))):
        raise _corrupt(source, f"template '{name}': estimated_hours must be a number")
    for key in ("priority", "phase", "notes", "category", "created_at"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise _corrupt(source, f"template '{name}': {key} must be a string")

    try:
        template = build_template(
            name,
            description,
            tags=",".join(tags),
            priority=data.get("priority"),
            phase=data.get("phase"),
            notes=data.get("notes"),
            category=data.get("category"),
            estimated_hours=hours,
        )
    except ValidationError as e:
        raise _corrupt(source, f"template '{name}': {e.message}") from e
    template.created_at = data.get("created_at")
    return template


def read_template_file(path: str | Path) -> list[TaskTemplate]:
    """Load templates from a YAML (or JSON) file.

    Format:
      templates:
        - name: Bug Fix
          description: Fix reported bug
          tags: [bug]
          priority: High
          phase: MVP
    """
    p = Path(path)
    if not p.exists():
        raise StorageError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ParseError(code="E_TEMPLATE_CORRUPT", message=f"invalid template file: {e}", file=str(p)) from e
    except OSError as e:
        raise StorageError(code="E_IO", message=str(e), file=str(p)) from e

    if raw is None:
        return []
    if not isinstance(raw, dict) or not isinstance(raw.get("templates") or [], list):
        raise ParseError(
            code="E_TEMPLATE_CORRUPT",
            message="template file must be a mapping with a 'templates' list",
            file=str(p),
        )

    out: list[TaskTemplate] = []
    seen: set[str] = set()
    for item in raw.get("templates") or []:
        template = template_from_dict(item, source=p)
        key = template.name.lower()
        if key in seen:
            raise ParseError(
                code="E_TEMPLATE_CORRUPT",
                message=f"duplicate template name '{template.name}'",
                file=str(p),
            )
        seen.add(key)
        out.append(template)
    return out


def write_template_file(path: str | Path, templates: list[TaskTemplate]) -> None:
    doc = {"templates": [t.to_dict() for t in templates]}
    atomic_write_text(path, yaml.safe_dump(doc, sort_keys=False, allow_unicode=True))


def _user_templates(ctx: CommandContext) -> list[TaskTemplate]:
    path = templates_path(ctx)
    if not path.exists():
        return []
    return read_template_file(path)


def _builtin(name: str) -> Optional[TaskTemplate]:
    key = name.strip().lower()
    return next((t for t in DEFAULT_TEMPLATES if t.name.lower() == key), None)


def list_templates(ctx: CommandContext, category: Optional[str] = None) -> list[TaskTemplate]:
    """Built-in templates first, then user templates; `category` is a case-insensitive substring."""
    templates = list(DEFAULT_TEMPLATES) + _user_templates(ctx)
    if category:
        needle = category.strip().lower()
        templates = [t for t in templates if needle in t.category.lower()]
    return templates


def get_template(ctx: CommandContext, name: str) -> TaskTemplate:
    key = name.strip().lower()
    for t in list_templates(ctx):
        if t.name.lower() == key:
            return t
    raise ValidationError(
        code="E_TEMPLATE_NOT_FOUND",
        message=f"template '{name}' not found; use 'rask template list' to see templates",
        path="name",
    )


def create_template(
    ctx: CommandContext,
    name: str,
    description: str,
    *,
    tags: Optional[str] = None,
    priority: Optional[str] = None,
    phase: Optional[str] = None,
    notes: Optional[str] = None,
    category: Optional[str] = None,
    estimated_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TaskTemplate:
    template = build_template(
        name,
        description,
        tags=tags,
        priority=priority,
        phase=phase,
        notes=notes,
        category=category,
        estimated_hours=estimated_hours,
        now=now,
    )
    existing = _user_templates(ctx)
    key = template.name.lower()
    if _builtin(key) is not None or any(t.name.lower() == key for t in existing):
        raise ConflictError(
            code="E_TEMPLATE_EXISTS",
            message=f"template '{template.name}' already exists",
            path="name",
        )
    existing.append(template)
    write_template_file(templates_path(ctx), existing)
    logger.info("created template %s", template.name)
    return template


def delete_template(ctx: CommandContext, name: str, *, force: bool = False) -> bool:
    """Delete a user template. Without force nothing happens."""
    template = get_template(ctx, name)
    if template.builtin:
        raise ConflictError(
            code="E_TEMPLATE_BUILTIN",
            message=f"'{template.name}' is a built-in template and cannot be deleted",
            path="name",
        )
    if not force:
        return False
    remaining = [t for t in _user_templates(ctx) if t.name != template.name]
    write_template_file(templates_path(ctx), remaining)
    logger.info("deleted template %s", template.name)
    return True


def use_template(
    ctx: CommandContext,
    name: str,
    description: Optional[str] = None,
    *,
    add_tags: Optional[str] = None,
    priority: Optional[str] = None,
    phase: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TaskResult:
    """Add a task pre-filled from a template. Overrides go through the same validation as `add`."""
    template = get_template(ctx, name)
    tags = ",".join(template.tags + ([add_tags] if add_tags else []))
    return add_task(
        ctx,
        description if description is not None else template.description,
        tags=tags or None,
        priority=priority if priority is not None else template.priority.value,
        phase=phase or template.phase,
        notes=template.notes,
        estimated_hours=template.estimated_hours,
        now=now,
    )


def export_templates(ctx: CommandContext, output: str | Path) -> int:
    """Write every template, built-ins included, to `output`. Returns the count."""
    templates = list_templates(ctx)
    write_template_file(output, templates)
    return len(templates)


@dataclass
class ImportResult:
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def import_templates(ctx: CommandContext, source: str | Path, *, merge: bool = False) -> ImportResult:
    """Load templates from a file.

    Without merge the file replaces all user templates. With merge, names that
    already exist are skipped. Built-in names are always skipped.
    """
    incoming = read_template_file(source)
    current = _user_templates(ctx) if merge else []
    taken = {t.name.lower() for t in current}

    result = ImportResult()
    for t in incoming:
        key = t.name.lower()
        if _builtin(key) is not None or key in taken:
            result.skipped.append(t.name)
            continue
        current.append(t)
        taken.add(key)
        result.imported.append(t.name)

    write_template_file(templates_path(ctx), current)
    logger.info("imported %d template(s) from %s", len(result.imported), source)
    return result

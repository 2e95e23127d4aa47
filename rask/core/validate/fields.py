from __future__ import annotations

import math
import re
import unicodedata
from typing import Optional

from rask.core.errors import ValidationError
from rask.core.model import Priority


MIN_DESCRIPTION_LEN = 3
MAX_DESCRIPTION_LEN = 500
MAX_NOTES_LEN = 1000
MAX_TAG_LEN = 50
MAX_ESTIMATED_HOURS = 1000.0
MAX_PHASE_NAME_LEN = 50

TAG_RE = re.compile(r"^[A-Za-z0-9_-]{1,50}$")
PROJECT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


def _is_content_char(c: str) -> bool:
    # Letters, digits, symbols and emoji count; punctuation, separators and controls do not.
    return unicodedata.category(c)[0] not in ("P", "Z", "C")


def validate_description(description: str) -> str:
    """Return the trimmed description or raise ValidationError."""
    trimmed = description.strip()
    if not trimmed:
        raise ValidationError(
            code="E_INVALID_DESCRIPTION",
            message="task description cannot be empty",
            path="description",
        )
    if len(trimmed) < MIN_DESCRIPTION_LEN:
        raise ValidationError(
            code="E_INVALID_DESCRIPTION",
            message=f"task description must be at least {MIN_DESCRIPTION_LEN} characters long",
            path="description",
        )
    if len(trimmed) > MAX_DESCRIPTION_LEN:
        raise ValidationError(
            code="E_INVALID_DESCRIPTION",
            message=f"task description cannot exceed {MAX_DESCRIPTION_LEN} characters",
            path="description",
        )
    if not any(_is_content_char(c) for c in trimmed):
        raise ValidationError(
            code="E_INVALID_DESCRIPTION",
            message="task description must contain meaningful content",
            path="description",
        )
    return trimmed


def validate_tag(tag: str) -> str:
    if len(tag) > MAX_TAG_LEN:
        raise ValidationError(
            code="E_INVALID_TAG",
            message=f"tag '{tag}' is too long (max {MAX_TAG_LEN} characters)",
            path="tags",
        )
    if not TAG_RE.match(tag):
        raise ValidationError(
            code="E_INVALID_TAG",
            message=f"tag '{tag}' contains invalid characters; use letters, numbers, '-' and '_'",
            path="tags",
        )
    return tag


def parse_tags(raw: Optional[str]) -> list[str]:
    """Parse a comma-separated tag list, preserving order and dropping duplicates."""
    if raw is None:
        return []
    out: list[str] = []
    for part in raw.split(","):
        tag = part.strip()
        if not tag:
            continue
        validate_tag(tag)
        if tag not in out:
            out.append(tag)
    return out


def validate_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None or not notes.strip():
        return None
    if len(notes) > MAX_NOTES_LEN:
        raise ValidationError(
            code="E_INVALID_NOTES",
            message=f"notes cannot exceed {MAX_NOTES_LEN} characters",
            path="notes",
        )
    return notes


def validate_estimated_hours(hours: Optional[float]) -> Optional[float]:
    if hours is None:
        return None
    if not math.isfinite(hours) or hours <= 0 or hours > MAX_ESTIMATED_HOURS:
        raise ValidationError(
            code="E_INVALID_HOURS",
            message=f"estimated hours must be a finite number > 0 and <= {MAX_ESTIMATED_HOURS:g}",
            path="estimated_hours",
        )
    return float(hours)


def parse_priority(raw: str) -> Priority:
    try:
        return Priority.parse(raw)
    except ValueError:
        raise ValidationError(
            code="E_INVALID_ENUM",
            message=f"priority must be one of {[p.value for p in Priority]}, got '{raw}'",
            path="priority",
        ) from None


def parse_status_filter(raw: str) -> str:
    value = raw.strip().lower()
    if value not in ("pending", "completed", "all"):
        raise ValidationError(
            code="E_INVALID_ENUM",
            message=f"status must be one of ['all', 'completed', 'pending'], got '{raw}'",
            path="status",
        )
    return value


def validate_phase_name(name: str) -> str:
    stripped = name.strip()
    if not stripped or len(stripped) > MAX_PHASE_NAME_LEN:
        raise ValidationError(
            code="E_INVALID_PHASE",
            message=f"phase name must be 1..{MAX_PHASE_NAME_LEN} characters",
            path="phase",
        )
    return stripped


def validate_project_name(name: str) -> str:
    if not PROJECT_NAME_RE.match(name):
        raise ValidationError(
            code="E_INVALID_PROJECT_NAME",
            message="project names must start with a letter or digit and use only "
            "letters, digits, '.', '-' and '_' (max 64)",
            path="name",
        )
    return name


def parse_id_list(raw: str, *, path: str = "ids") -> list[int]:
    """Parse '1, 2,3' into [1, 2, 3]. Duplicates are dropped, order kept."""
    out: list[int] = []
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        if not (token.isascii() and token.isdigit()) or int(token) <= 0:
            raise ValidationError(
                code="E_INVALID_ID_LIST",
                message=f"invalid task id '{token}'; use comma-separated positive numbers (e.g. 1,2,3)",
                path=path,
            )
        value = int(token)
        if value not in out:
            out.append(value)
    return out

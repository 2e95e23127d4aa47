from __future__ import annotations

import logging
import re
from pathlib import Path

from rask.core.errors import MarkdownSyncError
from rask.core.io.atomic_write import atomic_write_text
from rask.core.model import Roadmap

logger = logging.getLogger(__name__)

_SPECIAL_RE = re.compile(r"([\\`*\[\]])")


def escape_inline(text: str) -> str:
    """Escape characters the parser would otherwise treat as inline markup."""
    return _SPECIAL_RE.sub(r"\\\1", text).replace("__", r"\_\_")


def roadmap_to_markdown(roadmap: Roadmap) -> str:
    """Render the title as a single H1 followed by a flat checklist in id order.

    Only title, description and status survive a write/parse round trip.
    """
    lines = [f"# {escape_inline(roadmap.title)}", ""]
    for task in sorted(roadmap.tasks, key=lambda t: t.id):
        box = "[x]" if task.is_completed else "[ ]"
        description = " ".join(task.description.split())
        lines.append(f"- {box} {escape_inline(description)}")
    if not roadmap.tasks:
        lines.pop()
    return "\n".join(lines) + "\n"


def write_roadmap_file(roadmap: Roadmap, path: str | Path) -> None:
    atomic_write_text(path, roadmap_to_markdown(roadmap))


def sync_to_source_file(roadmap: Roadmap) -> bool:
    """Rewrite the linked Markdown file.

    Returns False when the roadmap has no source file. Raises MarkdownSyncError
    when the file is gone or cannot be written; the caller treats that as a warning.
    """
    if not roadmap.source_file:
        return False

    path = Path(roadmap.source_file)
    if not path.exists():
        raise MarkdownSyncError(
            code="W_SOURCE_FILE_MISSING",
            message="source file not found; JSON state was saved",
            file=str(path),
        )
    try:
        write_roadmap_file(roadmap, path)
    except Exception as e:
        raise MarkdownSyncError(code="W_SOURCE_FILE_WRITE", message=str(e), file=str(path)) from e
    logger.debug("synced roadmap to %s", path)
    return True

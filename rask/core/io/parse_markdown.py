from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from rask.core.errors import ParseError, StorageError
from rask.core.model import Roadmap, Task, TaskStatus


# Line-oriented Markdown reader. It only understands what the roadmap needs:
# - the first level-1 heading (ATX "# Title" or setext "Title\n====") is the title
# - every list item at any depth ("-", "*", "+", "1.", "1)") becomes a task
# - fenced code blocks and block quotes are skipped
# Everything else is discarded.

_ATX_H1_RE = re.compile(r"^ {0,3}#(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_SETEXT_H1_RE = re.compile(r"^ {0,3}=+[ \t]*$")
_ITEM_RE = re.compile(r"^[ \t]*(?:[-*+]|\d{1,9}[.)])(?:[ \t]+(.*))?$")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_FENCE_RE = re.compile(r"^[ \t]*(`{3,}|~{3,})")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}>")

_CHECKBOX_RE = re.compile(r"^\[([ xX])\](?:[ \t]+|$)")

_CODE_SPAN_RE = re.compile(r"(`+)(.+?)\1")
_LINK_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_STRONG_RE = re.compile(r"(\*\*|__)(.+?)\1")
_EMPHASIS_RE = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")
_ESCAPE_RE = re.compile(r"\\([!-/:-@\[-`{-~])")

# Escaped punctuation is parked in the private-use area while markup is stripped.
_PLACEHOLDER_BASE = 0xF0000


def inline_text(raw: str) -> str:
    """Flatten inline markup into plain text: code spans, links and emphasis keep their text."""
    text = _ESCAPE_RE.sub(lambda m: chr(_PLACEHOLDER_BASE + ord(m.group(1))), raw)
    text = _CODE_SPAN_RE.sub(lambda m: m.group(2).strip(), text)
    text = _LINK_RE.sub(lambda m: m.group(1), text)
    text = _STRONG_RE.sub(lambda m: m.group(2), text)
    text = _EMPHASIS_RE.sub(lambda m: m.group(1), text)
    return "".join(
        chr(ord(c) - _PLACEHOLDER_BASE) if ord(c) >= _PLACEHOLDER_BASE else c for c in text
    )


def split_status(text: str) -> tuple[TaskStatus, str]:
    """Strip a leading checkbox and return (status, description)."""
    stripped = text.strip()
    m = _CHECKBOX_RE.match(stripped)
    if not m:
        return TaskStatus.PENDING, stripped
    status = TaskStatus.COMPLETED if m.group(1) in ("x", "X") else TaskStatus.PENDING
    return status, stripped[m.end():].strip()


def parse_markdown(text: str, *, source_file: Optional[str] = None) -> Roadmap:
    """Parse a Markdown roadmap. Task ids follow document order, starting at 1."""
    title: Optional[str] = None
    tasks: list[Task] = []
    fence: Optional[str] = None
    prev_line: Optional[str] = None

    for line in text.splitlines():
        fence_m = _FENCE_RE.match(line)
        if fence is not None:
            if fence_m and fence_m.group(1)[0] == fence[0] and len(fence_m.group(1)) >= len(fence):
                fence = None
            prev_line = None
            continue
        if fence_m:
            fence = fence_m.group(1)
            prev_line = None
            continue

        if _BLOCKQUOTE_RE.match(line):
            prev_line = None
            continue

        h1 = _ATX_H1_RE.match(line)
        if h1:
            heading = inline_text(h1.group(1) or "").strip()
            if title is None and heading:
                title = heading
            prev_line = None
            continue

        if _SETEXT_H1_RE.match(line) and prev_line is not None:
            if title is None:
                title = inline_text(prev_line).strip()
            prev_line = None
            continue

        if _THEMATIC_BREAK_RE.match(line):
            prev_line = None
            continue

        item = _ITEM_RE.match(line)
        if item:
            status, description = split_status(inline_text(item.group(1) or ""))
            if description:
                task = Task(id=len(tasks) + 1, description=description)
                if status == TaskStatus.COMPLETED:
                    task.mark_completed()
                tasks.append(task)
            prev_line = None
            continue

        prev_line = line if line.strip() else None

    if not title:
        raise ParseError(
            code="E_MISSING_TITLE",
            message="Markdown is missing a project title (H1 heading)",
            file=source_file,
        )

    return Roadmap(title=title, tasks=tasks, source_file=source_file)


def parse_markdown_file(path: str | Path) -> Roadmap:
    """Read and parse a Markdown file; the roadmap's source_file is the absolute path."""
    p = Path(path)
    if not p.exists():
        raise StorageError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(code="E_INVALID_ENCODING", message=f"not valid UTF-8: {e}", file=str(p)) from e
    except OSError as e:
        raise StorageError(code="E_IO", message=str(e), file=str(p)) from e
    return parse_markdown(text, source_file=str(p.resolve()))

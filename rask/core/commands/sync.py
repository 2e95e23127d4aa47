from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rask.core.config.user_config import UserConfig
from rask.core.errors import MarkdownSyncError
from rask.core.io.write_markdown import sync_to_source_file
from rask.core.model import Roadmap
from rask.core.workspace.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """Everything a command needs: the workspace handle and user preferences."""

    workspace: Workspace
    config: UserConfig = field(default_factory=UserConfig)

    def load(self) -> Roadmap:
        return self.workspace.store().load()

    def save(self, roadmap: Roadmap) -> list[MarkdownSyncError]:
        return save_and_sync(self, roadmap)


def save_and_sync(ctx: CommandContext, roadmap: Roadmap) -> list[MarkdownSyncError]:
    """Save JSON state, then rewrite the linked Markdown file.

    JSON is authoritative: a failed Markdown write is returned as a warning
    instead of being raised, and the saved state is kept.
    """
    ctx.workspace.store().save(roadmap)
    if not ctx.config.auto_sync_markdown:
        return []
    try:
        sync_to_source_file(roadmap)
    except MarkdownSyncError as e:
        logger.info("markdown sync skipped: %s", e)
        return [e]
    return []

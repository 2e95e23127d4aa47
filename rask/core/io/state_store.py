from __future__ import annotations

import json
import logging
from pathlib import Path

from rask.core.errors import NotInitializedError, ParseError, StorageError
from rask.core.io.atomic_write import atomic_write_text
from rask.core.model import Roadmap

logger = logging.getLogger(__name__)


class StateStore:
    """JSON persistence for one project's roadmap."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Roadmap:
        """Load the roadmap.

        Raises NotInitializedError when the file is absent and ParseError when
        it is not a valid roadmap document.
        """
        if not self.path.exists():
            raise NotInitializedError(
                code="E_NOT_INITIALIZED",
                message="state file not found; run 'rask init <FILE>' or 'rask project create <NAME>' first",
                file=str(self.path),
            )
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(code="E_STATE_CORRUPT", message=f"not valid UTF-8: {e}", file=str(self.path)) from e
        except OSError as e:
            raise StorageError(code="E_IO", message=str(e), file=str(self.path)) from e

        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise ParseError(code="E_STATE_CORRUPT", message=str(e), file=str(self.path)) from e

        if not isinstance(data, dict):
            raise ParseError(
                code="E_STATE_CORRUPT",
                message="top-level document must be an object",
                file=str(self.path),
            )
        try:
            roadmap = Roadmap.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ParseError(
                code="E_STATE_CORRUPT",
                message=f"invalid roadmap document: {e!r}",
                file=str(self.path),
            ) from e

        logger.debug("loaded %d tasks from %s", len(roadmap.tasks), self.path)
        return roadmap

    def save(self, roadmap: Roadmap) -> None:
        payload = json.dumps(roadmap.to_dict(), indent=2, ensure_ascii=False)
        atomic_write_text(self.path, payload + "\n")
        logger.debug("saved %d tasks to %s", len(roadmap.tasks), self.path)

    def delete(self) -> bool:
        if not self.path.exists():
            return False
        try:
            self.path.unlink()
        except OSError as e:
            raise StorageError(code="E_IO", message=str(e), file=str(self.path)) from e
        return True

from __future__ import annotations

from pathlib import Path

import pytest

from rask.core.commands.sync import CommandContext
from rask.core.commands.tasks import init_roadmap
from rask.core.workspace.workspace import Workspace


DEMO_MD = "# Demo\n\n- [ ] write spec\n- [x] hire\n- [ ] ship\n"


@pytest.fixture
def work_dir(tmp_path: Path, monkeypatch) -> Path:
    d = tmp_path / "work"
    d.mkdir()
    monkeypatch.chdir(d)
    return d


@pytest.fixture
def ctx(tmp_path: Path, work_dir: Path) -> CommandContext:
    return CommandContext(workspace=Workspace(tmp_path / "home", cwd=work_dir))


@pytest.fixture
def demo_md(ctx: CommandContext, work_dir: Path) -> Path:
    """The three-task Demo roadmap, initialized into a fresh workspace."""
    md = work_dir / "roadmap.md"
    md.write_text(DEMO_MD, encoding="utf-8")
    init_roadmap(ctx, md)
    return md

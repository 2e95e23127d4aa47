import pytest
from typer.testing import CliRunner

from rask.cli import app


runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("RASK_HOME", str(tmp_path / "home"))
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return tmp_path / "home"


def test_create_switch_and_isolation(cli_env):
    r = runner.invoke(app, ["project", "create", "alpha", "--description", "first"])
    assert r.exit_code == 0, r.output
    assert "created project 'alpha' and switched to it" in r.output

    runner.invoke(app, ["add", "alpha only task"])
    runner.invoke(app, ["project", "create", "beta"])
    r = runner.invoke(app, ["list"])
    assert "No tasks match" in r.output

    r = runner.invoke(app, ["project", "switch", "alpha"])
    assert r.exit_code == 0
    r = runner.invoke(app, ["list"])
    assert "alpha only task" in r.output

    r = runner.invoke(app, ["project", "list"])
    assert r.exit_code == 0, r.output
    assert "alpha" in r.output
    assert "beta" in r.output
    assert "0/1" in r.output


def test_create_duplicate_and_invalid_name(cli_env):
    runner.invoke(app, ["project", "create", "alpha"])
    r = runner.invoke(app, ["project", "create", "alpha"])
    assert r.exit_code == 2
    assert "E_PROJECT_EXISTS" in r.output

    r = runner.invoke(app, ["project", "create", "no/slashes"])
    assert r.exit_code == 2
    assert "E_INVALID_PROJECT_NAME" in r.output


def test_switch_unknown(cli_env):
    r = runner.invoke(app, ["project", "switch", "ghost"])
    assert r.exit_code == 2
    assert "E_PROJECT_NOT_FOUND" in r.output


def test_delete_needs_force(cli_env):
    runner.invoke(app, ["project", "create", "alpha"])
    runner.invoke(app, ["project", "create", "beta"])

    r = runner.invoke(app, ["project", "delete", "alpha"])
    assert r.exit_code == 0
    assert "re-run with --force" in r.output
    assert (cli_env / "project_alpha.json").exists()

    r = runner.invoke(app, ["project", "delete", "alpha", "--force"])
    assert r.exit_code == 0, r.output
    assert not (cli_env / "project_alpha.json").exists()

    r = runner.invoke(app, ["project", "list"])
    assert "alpha" not in r.output


def test_empty_project_list(cli_env):
    r = runner.invoke(app, ["project", "list"])
    assert r.exit_code == 0
    assert "No projects yet" in r.output

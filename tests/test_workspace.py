import json

from rask.core.errors import ConflictError, ParseError, ValidationError
from rask.core.workspace.workspace import (
    DEFAULT_STATE_FILE,
    LEGACY_CURRENT_FILE,
    LEGACY_PROJECTS_FILE,
    LEGACY_STATE_FILE,
    Workspace,
    default_workspace_root,
)


def _ws(tmp_path):
    cwd = tmp_path / "work"
    cwd.mkdir(exist_ok=True)
    return Workspace(tmp_path / "home", cwd=cwd)


def test_root_honors_env(monkeypatch, tmp_path):
    monkeypatch.setenv("RASK_HOME", str(tmp_path / "custom"))
    assert default_workspace_root() == tmp_path / "custom"


def test_state_file_falls_back_to_default_then_legacy(tmp_path):
    ws = _ws(tmp_path)
    assert ws.state_file() == tmp_path / "home" / DEFAULT_STATE_FILE

    (ws.cwd / LEGACY_STATE_FILE).write_text("{}", encoding="utf-8")
    assert ws.state_file() == ws.cwd / LEGACY_STATE_FILE


def test_first_project_becomes_default_and_is_used_for_state(tmp_path):
    ws = _ws(tmp_path)
    ws.create("alpha", "first")
    ws.create("beta")

    assert ws.registry.default_project == "alpha"
    assert ws.current_project_name() is None
    assert ws.state_file() == ws.project_state_path("alpha")

    ws.switch("beta")
    assert ws.current_project_name() == "beta"
    assert ws.state_file() == ws.project_state_path("beta")

    again = Workspace(tmp_path / "home", cwd=ws.cwd)
    assert sorted(again.registry.projects) == ["alpha", "beta"]
    assert again.registry.projects["alpha"].description == "first"


def test_create_rejects_duplicates_and_bad_names(tmp_path):
    ws = _ws(tmp_path)
    ws.create("alpha")
    try:
        ws.create("alpha")
        assert False, "expected ConflictError"
    except ConflictError as e:
        assert e.code == "E_PROJECT_EXISTS"

    try:
        ws.create("bad name!")
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_INVALID_PROJECT_NAME"


def test_switch_to_unknown_project(tmp_path):
    try:
        _ws(tmp_path).switch("nope")
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_PROJECT_NOT_FOUND"


def test_delete_requires_force_and_reassigns_default(tmp_path):
    ws = _ws(tmp_path)
    ws.create("alpha")
    ws.create("beta")
    ws.create("gamma")
    ws.project_state_path("alpha").write_text("{}", encoding="utf-8")
    ws.switch("alpha")

    assert ws.delete("alpha") is False
    assert "alpha" in ws.registry.projects

    assert ws.delete("alpha", force=True) is True
    assert not ws.project_state_path("alpha").exists()
    assert ws.registry.default_project == "beta"
    assert ws.current_project_name() == "beta"


def test_delete_last_project_clears_pointer(tmp_path):
    ws = _ws(tmp_path)
    ws.create("solo")
    ws.switch("solo")
    ws.delete("solo", force=True)
    assert ws.registry.default_project is None
    assert not ws.current_project_path.exists()


def test_stale_pointer_is_cleared(tmp_path):
    ws = _ws(tmp_path)
    ws.root.mkdir(parents=True)
    ws.current_project_path.write_text("ghost\n", encoding="utf-8")
    assert ws.current_project_name() is None
    assert not ws.current_project_path.exists()


def test_recent_projects_are_most_recent_first(tmp_path):
    ws = _ws(tmp_path)
    for name in ("a", "b", "c"):
        ws.create(name)
    ws.registry.projects["a"].last_accessed = "2030-01-01T00:00:00+00:00"
    ws.registry.global_settings.recent_projects_count = 2
    assert [p.name for p in ws.recent_projects()][0] == "a"
    assert len(ws.recent_projects()) == 2


def test_corrupt_registry(tmp_path):
    ws = _ws(tmp_path)
    ws.root.mkdir(parents=True)
    ws.registry_path.write_text("[[[", encoding="utf-8")
    try:
        ws.list_projects()
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_REGISTRY_CORRUPT"


def test_registry_with_malformed_entries(tmp_path):
    ws = _ws(tmp_path)
    ws.root.mkdir(parents=True)
    docs = (
        {"projects": {"a": {"name": "a"}}, "global_settings": {}},
        {"projects": ["a"], "global_settings": {}},
        {"projects": {}, "global_settings": {"recent_projects_count": "many"}},
    )
    for doc in docs:
        ws = Workspace(tmp_path / "home", cwd=ws.cwd)
        ws.registry_path.write_text(json.dumps(doc), encoding="utf-8")
        try:
            ws.list_projects()
            assert False, "expected ParseError"
        except ParseError as e:
            assert e.code == "E_REGISTRY_CORRUPT"
            assert e.file == str(ws.registry_path)


def test_registry_with_invalid_utf8(tmp_path):
    ws = _ws(tmp_path)
    ws.root.mkdir(parents=True)
    ws.registry_path.write_bytes(b'{"projects": "\xff\xfe"}')
    try:
        ws.list_projects()
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_REGISTRY_CORRUPT"


def test_legacy_registry_missing_state_file(tmp_path):
    ws = _ws(tmp_path)
    legacy = ws.cwd / LEGACY_PROJECTS_FILE
    legacy.write_text(json.dumps({"projects": {"old": {"name": "old"}}}), encoding="utf-8")
    try:
        ws.list_projects()
        assert False, "expected ParseError"
    except ParseError as e:
        assert e.code == "E_REGISTRY_CORRUPT"
        assert e.file == str(legacy)
    assert legacy.exists()


def test_legacy_registry_shape_is_upgraded(tmp_path):
    ws = _ws(tmp_path)
    ws.root.mkdir(parents=True)
    ws.registry_path.write_text(
        json.dumps({"projects": {"old": {"state_file": "x.json"}}, "default_project": "old"}),
        encoding="utf-8",
    )
    assert ws.registry.projects["old"].work_directory == str(ws.cwd)

    data = json.loads(ws.registry_path.read_text(encoding="utf-8"))
    assert "global_settings" in data
    assert data["projects"]["old"]["work_directory"] == str(ws.cwd)


def test_legacy_files_in_working_directory_are_migrated(tmp_path):
    ws = _ws(tmp_path)
    (ws.cwd / LEGACY_PROJECTS_FILE).write_text(
        json.dumps({"projects": {"old": {"state_file": ".rask_state_old.json"}}, "default_project": "old"}),
        encoding="utf-8",
    )
    (ws.cwd / ".rask_state_old.json").write_text('{"title": "Old", "tasks": []}', encoding="utf-8")
    (ws.cwd / LEGACY_CURRENT_FILE).write_text("old\n", encoding="utf-8")

    assert ws.current_project_name() == "old"
    assert ws.store().load().title == "Old"
    assert ws.state_file() == ws.project_state_path("old")
    assert not (ws.cwd / LEGACY_PROJECTS_FILE).exists()
    assert not (ws.cwd / LEGACY_CURRENT_FILE).exists()
    assert not (ws.cwd / ".rask_state_old.json").exists()


def test_local_dir_is_created_on_demand(tmp_path):
    ws = _ws(tmp_path)
    project = ws.create("alpha")
    base = ws.ensure_local_dir(project)
    assert (base / "cache").is_dir()
    assert (base / "exports").is_dir()

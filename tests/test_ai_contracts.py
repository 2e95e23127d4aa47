from rask.core.ai.contracts import parse_suggestion_batch, parse_task_suggestion


def test_parse_batch_ok():
    batch = parse_suggestion_batch(
        {
            "tasks": [
                {
                    "description": "  draft API  ",
                    "priority": "High",
                    "phase": "Beta",
                    "tags": ["#api", " docs "],
                    "estimated_hours": 3,
                    "dependencies": [1],
                    "notes": None,
                    "reasoning": "needed first",
                }
            ],
            "notes": ["assumes REST"],
        }
    )
    (s,) = batch.tasks
    assert s.description == "draft API"
    assert s.tags == ["api", "docs"]
    assert s.estimated_hours == 3.0
    assert s.dependencies == [1]
    assert s.notes is None
    assert batch.notes == ["assumes REST"]


def test_minimal_suggestion_uses_defaults():
    s = parse_task_suggestion({"description": "do it"})
    assert s.priority is None
    assert s.tags == []
    assert s.dependencies == []


def test_parse_batch_rejects_bad_shapes():
    bad = [
        [],
        {"tasks": {}},
        {"tasks": [], "notes": [1]},
        {"tasks": ["x"]},
        {"tasks": [{"description": " "}]},
        {"tasks": [{"description": "ok", "tags": "a,b"}]},
        {"tasks": [{"description": "ok", "dependencies": [True]}]},
        {"tasks": [{"description": "ok", "estimated_hours": "3"}]},
        {"tasks": [{"description": "ok", "priority": 1}]},
    ]
    for obj in bad:
        try:
            parse_suggestion_batch(obj)
            assert False, f"expected ValueError for {obj!r}"
        except ValueError:
            pass

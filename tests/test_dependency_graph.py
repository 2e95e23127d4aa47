from rask.core.deps.dependency_graph import (
    blocked_tasks,
    dependency_chain,
    dependency_overview,
    dependency_tree,
    first_dependency_error,
    incomplete_dependencies,
    newly_unblocked,
    ready_tasks,
    validate_all_dependencies,
    validate_task_dependencies,
)
from rask.core.io.parse_markdown import parse_markdown
from rask.core.model import Roadmap, Task

from conftest import DEMO_MD


def _demo_with(*extra: list[int]) -> Roadmap:
    r = parse_markdown(DEMO_MD)
    for deps in extra:
        r.tasks.append(Task(id=r.next_task_id(), description=f"extra {r.next_task_id()}", dependencies=list(deps)))
    return r


def test_cycle_is_reported_from_the_edited_task():
    r = _demo_with([1], [4])
    r.find_task(1).dependencies = [5]

    errors = validate_task_dependencies(r, 1)
    assert [e.code for e in errors] == ["E_CIRCULAR_DEPENDENCY"]
    assert errors[0].cycle == (1, 5, 4, 1)


def test_self_dependency_is_a_cycle():
    r = _demo_with()
    r.find_task(2).dependencies = [2]
    e = first_dependency_error(validate_task_dependencies(r, 2))
    assert e.cycle == (2, 2)


def test_missing_reference_and_unknown_task():
    r = _demo_with([9])
    errors = validate_task_dependencies(r, 4)
    assert [e.code for e in errors] == ["E_MISSING_DEPENDENCY"]
    assert errors[0].dependency_id == 9

    assert [e.code for e in validate_task_dependencies(r, 42)] == ["E_TASK_NOT_FOUND"]


def test_first_error_prefers_cycles():
    r = _demo_with([9, 5], [4])
    e = first_dependency_error(validate_all_dependencies(r))
    assert e.code == "E_CIRCULAR_DEPENDENCY"
    assert first_dependency_error([]) is None


def test_ready_and_blocked():
    r = _demo_with([1, 2], [3])
    assert [t.id for t in ready_tasks(r)] == [1, 3]
    assert [t.id for t in blocked_tasks(r)] == [4, 5]
    assert incomplete_dependencies(r, r.find_task(4)) == [1]


def test_newly_unblocked_only_counts_fully_satisfied_dependents():
    r = _demo_with([1, 3], [1])
    assert newly_unblocked(r, 1) == [5]
    r.find_task(1).mark_completed()
    assert newly_unblocked(r, 3) == [4]


def test_chain_is_transitive_and_cycle_safe():
    r = _demo_with([1], [4, 2])
    assert dependency_chain(r, 5) == [4, 1, 2]
    r.find_task(1).dependencies = [5]
    assert dependency_chain(r, 5) == [4, 1, 2]


def test_tree_marks_circular_and_missing_nodes():
    r = _demo_with([1, 8], [4])
    r.find_task(1).dependencies = [5]

    root = dependency_tree(r, 5)
    assert root.task_id == 5
    (four,) = root.children
    assert four.task_id == 4
    one, missing = four.children
    assert missing.not_found and missing.task_id == 8
    assert one.children[0].circular and one.children[0].task_id == 5

    assert dependency_tree(r, 99) is None


def test_overview_counts():
    r = _demo_with([1], [9])
    ov = dependency_overview(r)
    assert ov.with_dependencies == 2
    assert ov.ready == 2
    assert ov.blocked == 2
    assert [e.code for e in ov.errors] == ["E_MISSING_DEPENDENCY"]

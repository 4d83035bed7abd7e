"""Tests for planstore.pm.deps module."""

import pytest

from planstore.lib.errors import CircularDependency, ConflictOverlap, NotFound, SchemaViolation
from planstore.pm.deps import (
    build_graph,
    calculate_progress,
    categorize,
    find_cycle,
    is_eligible_for_closure,
    ready_set,
    summarize,
    unmet_dependencies,
    validate_edges,
    waiting_tasks,
)
from planstore.pm.models import Task


def _task(task_id, status="open", depends_on=None, conflicts_with=None):
    return Task(
        epic_id="checkout-flow",
        id=task_id,
        name=f"Task {task_id}",
        status=status,
        created="t",
        updated="t",
        depends_on=list(depends_on or []),
        conflicts_with=list(conflicts_with or []),
    )


class TestCategorize:
    """Tests for categorize()."""

    def test_buckets(self):
        tasks = [
            _task("003", "blocked"),
            _task("001", "completed"),
            _task("002", "in-progress"),
            _task("004"),
        ]
        buckets = categorize(tasks)
        assert buckets.completed == ["001"]
        assert buckets.in_progress == ["002"]
        assert buckets.blocked == ["003"]
        assert buckets.open == ["004"]

    def test_unknown_status_counts_as_open(self, caplog):
        buckets = categorize([_task("001", "someday")])
        assert buckets.open == ["001"]
        assert "unknown status 'someday'" in caplog.text

    def test_empty(self):
        buckets = categorize([])
        assert buckets.open == buckets.completed == buckets.in_progress == buckets.blocked == []


class TestReadySet:
    """Tests for ready_set() and friends."""

    def test_dependency_soundness(self):
        tasks = [_task("001"), _task("002", depends_on=["001"])]
        assert ready_set(tasks) == ["001"]

        tasks[0].status = "completed"
        assert ready_set(tasks) == ["002"]

    def test_in_progress_dependency_not_enough(self):
        tasks = [_task("001", "in-progress"), _task("002", depends_on=["001"])]
        assert ready_set(tasks) == []
        assert unmet_dependencies(tasks[1], tasks) == ["001"]

    def test_only_open_tasks_are_ready(self):
        tasks = [_task("001", "blocked"), _task("002", "in-progress"), _task("003", "completed")]
        assert ready_set(tasks) == []

    def test_waiting_tasks(self):
        tasks = [
            _task("001"),
            _task("002", depends_on=["001"]),
            _task("003", depends_on=["001", "002"]),
        ]
        assert waiting_tasks(tasks) == {"002": ["001"], "003": ["001", "002"]}

    def test_missing_dependency_is_unmet(self):
        task = _task("002", depends_on=["009"])
        assert unmet_dependencies(task, [task]) == ["009"]


class TestCycles:
    """Tests for find_cycle() and validate_edges()."""

    def test_no_cycle(self):
        graph = build_graph([_task("001"), _task("002", depends_on=["001"])])
        assert find_cycle("003", ["002"], graph) is None

    def test_self_dependency(self):
        assert find_cycle("001", ["001"], {}) == ["001", "001"]

    def test_two_node_cycle(self):
        graph = {"001": ["002"], "002": []}
        assert find_cycle("002", ["001"], graph) == ["002", "001", "002"]

    def test_long_cycle_path(self):
        graph = {"001": ["002"], "002": ["003"], "003": [], "004": []}
        cycle = find_cycle("003", ["001"], graph)
        assert cycle == ["003", "001", "002", "003"]

    def test_diamond_is_not_a_cycle(self):
        graph = {"001": [], "002": ["001"], "003": ["001"]}
        assert find_cycle("004", ["002", "003"], graph) is None

    def test_large_chain_is_linear(self):
        # 1 <- 2 <- ... <- 900; adding 1 -> 900 closes the loop
        graph = {f"{i:03d}": ([f"{i - 1:03d}"] if i > 1 else []) for i in range(1, 901)}
        cycle = find_cycle("001", ["900"], graph)
        assert cycle[0] == cycle[-1] == "001"
        assert len(cycle) == 901

    def test_validate_edges_rejects_cycle(self):
        tasks = [_task("001", depends_on=["002"]), _task("002")]
        with pytest.raises(CircularDependency) as exc:
            validate_edges("checkout-flow", "002", ["001"], [], tasks)
        assert exc.value.cycle == ["002", "001", "002"]
        assert "002 -> 001 -> 002" in str(exc.value)

    def test_validate_edges_self_dependency(self):
        with pytest.raises(CircularDependency):
            validate_edges("checkout-flow", "001", ["001"], [], [_task("001")])


class TestEdgeChecks:
    """Tests for reference and conflict validation."""

    def test_conflict_overlap(self):
        tasks = [_task("001")]
        with pytest.raises(ConflictOverlap) as exc:
            validate_edges("checkout-flow", "002", ["001"], ["001"], tasks)
        assert exc.value.overlap == "001"
        assert "cannot be both a dependency and a conflict" in str(exc.value)

    def test_unknown_reference(self):
        with pytest.raises(NotFound) as exc:
            validate_edges("checkout-flow", "002", ["007"], [], [_task("001")])
        assert "checkout-flow/007" in str(exc.value)

    def test_malformed_reference(self):
        with pytest.raises(SchemaViolation) as exc:
            validate_edges("checkout-flow", "002", ["1"], [], [_task("001")])
        assert exc.value.field == "depends_on"

    def test_duplicate_reference(self):
        with pytest.raises(SchemaViolation):
            validate_edges("checkout-flow", "002", [], ["001", "001"], [_task("001")])

    def test_self_conflict(self):
        with pytest.raises(SchemaViolation) as exc:
            validate_edges("checkout-flow", "001", [], ["001"], [_task("001")])
        assert exc.value.field == "conflicts_with"

    def test_valid_edges_pass(self):
        tasks = [_task("001"), _task("002")]
        validate_edges("checkout-flow", "003", ["001"], ["002"], tasks)


class TestProgress:
    """Tests for calculate_progress() and closure eligibility."""

    @pytest.mark.parametrize("total,completed,expected", [
        (0, 0, 0),
        (3, 0, 0),
        (3, 1, 33),
        (3, 2, 67),
        (3, 3, 100),
        (8, 1, 13),   # 12.5 rounds half up
        (200, 1, 1),  # 0.5 rounds half up
        (7, 3, 43),
    ])
    def test_values(self, total, completed, expected):
        assert calculate_progress(total, completed) == expected

    def test_monotonic(self):
        values = [calculate_progress(17, c) for c in range(18)]
        assert values == sorted(values)
        assert values[0] == 0 and values[-1] == 100

    def test_eligibility(self):
        assert not is_eligible_for_closure([])
        assert not is_eligible_for_closure([_task("001", "completed"), _task("002")])
        assert is_eligible_for_closure([_task("001", "completed")])


class TestSummarize:
    def test_summary(self):
        tasks = [
            _task("001", "completed"),
            _task("002", depends_on=["001"]),
            _task("003", depends_on=["002"]),
            _task("004", "blocked"),
        ]
        summary = summarize("checkout-flow", tasks)
        assert summary.total == 4
        assert summary.completed == 1
        assert summary.progress == 25
        assert summary.ready == ["002"]
        assert summary.waiting == {"003": ["002"]}
        assert summary.blocked_ids == ["004"]
        assert not summary.eligible_for_closure
        assert summary.to_dict()["ready"] == ["002"]

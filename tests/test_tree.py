"""Tests for the pure forest operations (task_engine/tree.py)."""

from __future__ import annotations

import copy
from dataclasses import replace

import pytest

from unigestor.task_engine import tree
from unigestor.task_engine.model import Resource, ResourceType, Task, TaskStatus


def _forest() -> list[Task]:
    return [
        Task(
            id="p1",
            department="Finanzas",
            title="Conciliaciones",
            subtasks=[
                Task(
                    id="c1",
                    department="Finanzas",
                    title="Bancos",
                    is_specific_task=True,
                    subtasks=[Task(id="g1", department="Finanzas", title="BBVA", is_specific_task=True)],
                    resources=[Resource(id="r1", name="Estado", url="https://x/e.pdf", type=ResourceType.PDF)],
                ),
                Task(id="c2", department="Finanzas", title="Caja", is_specific_task=True),
            ],
        ),
        Task(id="p2", department="Publicidad", title="Campañas"),
    ]


class TestLookup:
    def test_find_any_depth(self) -> None:
        forest = _forest()
        assert tree.find(forest, "g1").title == "BBVA"
        assert tree.find(forest, "nope") is None

    def test_iter_nodes_pre_order(self) -> None:
        assert [n.id for n in tree.iter_nodes(_forest())] == ["p1", "c1", "g1", "c2", "p2"]

    def test_first_match_wins_for_duplicate_ids(self) -> None:
        forest = [Task(id="dup", title="first"), Task(id="dup", title="second")]
        out = tree.set_status(forest, "dup", TaskStatus.COMPLETED)
        assert out[0].status == TaskStatus.COMPLETED
        assert out[1].status == TaskStatus.PENDING

    def test_id_conflicts_against_whole_forest(self) -> None:
        forest = _forest()
        assert tree.id_conflicts(forest, Task(id="new")) == []
        assert tree.id_conflicts(forest, Task(id="g1")) == ["g1"]
        bundle = Task(id="new", subtasks=[Task(id="c2"), Task(id="x"), Task(id="x")])
        assert tree.id_conflicts(forest, bundle) == ["c2", "x"]

    def test_id_conflicts_ignores_replaced_subtree(self) -> None:
        forest = _forest()
        same_shape = Task(id="c1", subtasks=[Task(id="g1")])
        assert tree.id_conflicts(forest, same_shape, replacing="c1") == []
        assert tree.id_conflicts(forest, Task(id="c1", subtasks=[Task(id="c2")]), replacing="c1") == ["c2"]


class TestFailSoft:
    def test_set_status_absent_id_is_noop(self) -> None:
        forest = _forest()
        before = copy.deepcopy(forest)
        out = tree.set_status(forest, "absent", TaskStatus.COMPLETED)
        assert out is forest
        assert out == before

    def test_insert_child_absent_parent_is_noop(self) -> None:
        forest = _forest()
        before = copy.deepcopy(forest)
        out = tree.insert_child(forest, "absent", Task(id="t9", title="Lost"))
        assert out is forest
        assert out == before
        assert tree.find(out, "t9") is None

    def test_resource_ops_absent_id_are_noops(self) -> None:
        forest = _forest()
        res = Resource.create("x", "https://x")
        assert tree.add_resource(forest, "absent", res) is forest
        assert tree.delete_resource(forest, "absent", "r1") is forest
        assert tree.reorder_resources(forest, "absent", [res]) is forest
        assert tree.find_and_replace(forest, "absent", Task(id="absent")) is forest


class TestInsertion:
    def test_root_insertion_is_most_recent_first(self) -> None:
        a, b = Task(id="A"), Task(id="B")
        out = tree.insert_root(tree.insert_root(_forest(), a), b)
        assert [t.id for t in out[:2]] == ["B", "A"]

    def test_child_insertion_is_oldest_first(self) -> None:
        a, b = Task(id="A"), Task(id="B")
        out = tree.insert_child(tree.insert_child(_forest(), "p1", a), "p1", b)
        assert [t.id for t in tree.find(out, "p1").subtasks] == ["c1", "c2", "A", "B"]

    def test_insert_child_deep(self) -> None:
        out = tree.insert_child(_forest(), "g1", Task(id="deep"))
        assert [t.id for t in tree.find(out, "g1").subtasks] == ["deep"]

    def test_input_forest_not_mutated(self) -> None:
        forest = _forest()
        before = copy.deepcopy(forest)
        tree.insert_child(forest, "p1", Task(id="new"))
        tree.insert_root(forest, Task(id="root"))
        assert forest == before


class TestStatusMutation:
    def test_only_status_changes(self) -> None:
        forest = _forest()
        out = tree.set_status(forest, "c1", TaskStatus.COMPLETED)
        target = tree.find(out, "c1")
        original = tree.find(forest, "c1")
        assert target.status == TaskStatus.COMPLETED
        assert replace(target, status=original.status) == original
        # every other node is deep-equal
        for before, after in zip(tree.iter_nodes(forest), tree.iter_nodes(out)):
            if before.id != "c1":
                assert replace(after, subtasks=[]) == replace(before, subtasks=[])

    def test_structural_sharing(self) -> None:
        forest = _forest()
        out = tree.set_status(forest, "g1", TaskStatus.COMPLETED)
        assert out[1] is forest[1]
        assert out[0].subtasks[1] is forest[0].subtasks[1]
        assert out[0] is not forest[0]
        assert out[0].subtasks[0].resources is forest[0].subtasks[0].resources

    def test_unknown_status_raises(self) -> None:
        with pytest.raises(ValueError):
            tree.set_status(_forest(), "p1", "Terminado")

    def test_end_to_end_scenario(self) -> None:
        forest = [Task(id="p1", title="Altas", is_specific_task=False, status=TaskStatus.PENDING)]
        forest = tree.insert_child(
            forest, "p1", Task(id="t1", title="Subtask A", is_specific_task=True, status=TaskStatus.PENDING)
        )
        assert [t.id for t in forest[0].subtasks] == ["t1"]
        forest = tree.set_status(forest, "t1", "Completado")
        assert forest[0].subtasks[0].status == TaskStatus.COMPLETED
        assert forest[0].status == TaskStatus.PENDING


class TestSetField:
    def test_set_plain_field(self) -> None:
        out = tree.set_field(_forest(), "c2", "assignee", "Laura")
        assert tree.find(out, "c2").assignee == "Laura"

    def test_status_is_coerced(self) -> None:
        out = tree.set_field(_forest(), "c2", "status", "Atrasado")
        assert tree.find(out, "c2").status == TaskStatus.OVERDUE

    @pytest.mark.parametrize("field_name", ["id", "subtasks", "resources"])
    def test_structural_fields_rejected(self, field_name: str) -> None:
        with pytest.raises(tree.InvalidFieldTarget, match="structural"):
            tree.set_field(_forest(), "p1", field_name, [])

    def test_unknown_field_rejected_even_for_absent_id(self) -> None:
        with pytest.raises(tree.InvalidFieldTarget, match="Unknown"):
            tree.set_field(_forest(), "absent", "priority", "P0")

    def test_find_and_replace_keeps_position(self) -> None:
        replacement = Task(id="c1", title="Bancos (nuevo)")
        out = tree.find_and_replace(_forest(), "c1", replacement)
        assert out[0].subtasks[0] is replacement
        assert out[0].subtasks[1].id == "c2"


class TestResources:
    def test_add_appends(self) -> None:
        res = Resource(id="r2", name="Video", url="https://youtu.be/x", type=ResourceType.VIDEO)
        out = tree.add_resource(_forest(), "c1", res)
        assert [r.id for r in tree.find(out, "c1").resources] == ["r1", "r2"]

    def test_delete(self) -> None:
        out = tree.delete_resource(_forest(), "c1", "r1")
        assert tree.find(out, "c1").resources == []

    def test_delete_unknown_resource_keeps_list(self) -> None:
        out = tree.delete_resource(_forest(), "c1", "zzz")
        assert [r.id for r in tree.find(out, "c1").resources] == ["r1"]

    def test_reorder_replaces_wholesale(self) -> None:
        r2 = Resource(id="r2", name="b", url="https://b")
        r3 = Resource(id="r3", name="c", url="https://c")
        out = tree.reorder_resources(_forest(), "p2", [r3, r2])
        assert [r.id for r in tree.find(out, "p2").resources] == ["r3", "r2"]


class TestRenameDepartment:
    def test_propagates_across_depths(self) -> None:
        forest = [
            Task(id="a", department="Old", subtasks=[
                Task(id="b", department="Old", subtasks=[Task(id="c", department="Old")]),
                Task(id="d", department="Other"),
            ]),
            Task(id="e", department="Other"),
        ]
        out = tree.rename_department(forest, "Old", "New")
        depts = {n.id: n.department for n in tree.iter_nodes(out)}
        assert depts == {"a": "New", "b": "New", "c": "New", "d": "Other", "e": "Other"}
        assert out[1] is forest[1]

    def test_no_match_returns_same_forest(self) -> None:
        forest = _forest()
        assert tree.rename_department(forest, "Nadie", "X") is forest

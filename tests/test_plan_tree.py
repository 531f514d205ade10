"""
Tests for plan tree bookkeeping.
"""

import pytest

from strata.core.plan_tree import DEFAULT_MAX_HOPS, PlanTree

from conftest import make_plan


@pytest.fixture
def family():
    root = make_plan("root", 100)
    child_a = make_plan("a", 200, parent_id="root")
    child_b = make_plan("b", 300, parent_id="root")
    grandchild = make_plan("a1", 400, parent_id="a")
    unrelated = make_plan("other", 500)
    return PlanTree([unrelated, grandchild, child_b, child_a, root])


class TestAncestryPath:
    """Test walking parent links."""

    def test_root_only(self, family):
        root = family.get("root")
        assert family.ancestry_path(root) == [root]

    def test_path_is_root_first(self, family):
        path = family.ancestry_path(family.get("a1"))
        assert [p.id for p in path] == ["root", "a", "a1"]

    def test_dangling_parent_stops_walk(self):
        orphan = make_plan("orphan", 1, parent_id="deleted")
        tree = PlanTree([orphan])
        assert tree.ancestry_path(orphan) == [orphan]

    def test_plan_outside_history(self, family):
        streaming = make_plan("new", 900, parent_id="a")
        assert [p.id for p in family.ancestry_path(streaming)] == ["root", "a", "new"]

    def test_cycle_terminates_within_bound(self):
        x = make_plan("x", 1, parent_id="y")
        y = make_plan("y", 2, parent_id="x")
        tree = PlanTree([x, y], max_hops=5)
        path = tree.ancestry_path(x)
        assert len(path) == 6
        assert path[-1] == x

    def test_self_cycle_terminates(self):
        loop = make_plan("loop", 1, parent_id="loop")
        tree = PlanTree([loop])
        assert len(tree.ancestry_path(loop)) == DEFAULT_MAX_HOPS + 1

    def test_explicit_hop_bound(self, family):
        path = family.ancestry_path(family.get("a1"), max_hops=1)
        assert [p.id for p in path] == ["a", "a1"]


class TestChildren:
    """Test direct children lookup."""

    def test_direct_children_newest_first(self, family):
        children = family.children(family.get("root"))
        assert [c.id for c in children] == ["b", "a"]

    def test_grandchildren_are_excluded(self, family):
        assert "a1" not in [c.id for c in family.children(family.get("root"))]

    def test_self_parent_is_excluded(self):
        loop = make_plan("loop", 1, parent_id="loop")
        assert PlanTree([loop]).children(loop) == []

    def test_leaf_has_no_children(self, family):
        assert family.children(family.get("other")) == []


class TestMutation:
    """Test upsert, delete and archive ordering."""

    def test_upsert_is_idempotent(self, family):
        updated = make_plan("a", 200, parent_id="root", goal="Updated")
        family.upsert(updated)
        family.upsert(updated)
        matching = [p for p in family if p.id == "a"]
        assert len(matching) == 1
        assert matching[0].goal == "Updated"
        assert family.plans[0] is updated

    def test_upsert_new_plan(self):
        tree = PlanTree()
        tree.upsert(make_plan("n", 1))
        assert len(tree) == 1
        assert "n" in tree

    def test_delete_by_created_at(self, family):
        assert family.delete(200)
        assert family.get("a") is None
        assert len(family) == 4

    def test_delete_does_not_cascade(self, family):
        family.delete(200)
        grandchild = family.get("a1")
        assert grandchild is not None
        assert family.ancestry_path(grandchild) == [grandchild]

    def test_delete_unknown_timestamp(self, family):
        assert not family.delete(12345)
        assert len(family) == 5

    def test_archive_newest_first(self, family):
        assert [p.created_at for p in family.archive()] == [500, 400, 300, 200, 100]

    def test_find_breakdown(self, family):
        assert family.find_breakdown("root", "Goal a").id == "a"
        assert family.find_breakdown("root", "Goal a1") is None

    def test_clear(self, family):
        family.clear()
        assert len(family) == 0

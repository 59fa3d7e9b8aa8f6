"""
Tests for tag hierarchy helpers.
"""

from app.services.hierarchy import (
    build_tree,
    depth_of,
    flatten_tree,
    index_children,
    subtree_height,
    would_create_cycle,
)

# A -> B -> C, D root
PARENTS = {1: None, 2: 1, 3: 2, 4: None}


def _records():
    return [
        {"id": 3, "parent_id": 2, "name": "C"},
        {"id": 1, "parent_id": None, "name": "A"},
        {"id": 4, "parent_id": None, "name": "D"},
        {"id": 2, "parent_id": 1, "name": "B"},
    ]


class TestBuildTree:
    def test_levels_and_paths(self):
        tree = build_tree(_records(), sort_key=lambda r: r["name"])

        assert [node["name"] for node in tree] == ["A", "D"]
        a = tree[0]
        assert a["level"] == 0
        assert a["path"] == ["A"]

        b = a["children"][0]
        assert b["level"] == 1
        assert b["path"] == ["A", "B"]

        c = b["children"][0]
        assert c["level"] == 2
        assert c["path"] == ["A", "B", "C"]
        assert "children" not in c

    def test_leaf_roots_have_no_children_key(self):
        tree = build_tree(_records(), sort_key=lambda r: r["name"])

        assert "children" not in tree[1]

    def test_input_records_are_not_mutated(self):
        records = _records()
        build_tree(records)

        assert all("level" not in record for record in records)

    def test_subtree(self):
        tree = build_tree(_records(), parent_id=1, level=1, path=["A"])

        assert len(tree) == 1
        assert tree[0]["path"] == ["A", "B"]
        assert tree[0]["level"] == 1

    def test_sibling_order(self):
        records = [
            {"id": 1, "parent_id": None, "name": "zeta"},
            {"id": 2, "parent_id": None, "name": "Alpha"},
            {"id": 3, "parent_id": None, "name": "beta"},
        ]

        tree = build_tree(records, sort_key=lambda r: r["name"].lower())

        assert [node["name"] for node in tree] == ["Alpha", "beta", "zeta"]

    def test_corrupt_loop_does_not_recurse_forever(self):
        records = [
            {"id": 1, "parent_id": None, "name": "root"},
            {"id": 2, "parent_id": 3, "name": "x"},
            {"id": 3, "parent_id": 2, "name": "y"},
        ]

        tree = build_tree(records)

        assert [node["name"] for node in tree] == ["root"]

    def test_flatten_is_preorder(self):
        tree = build_tree(_records(), sort_key=lambda r: r["name"])

        assert [node["name"] for node in flatten_tree(tree)] == ["A", "B", "C", "D"]


class TestWouldCreateCycle:
    def test_self_parent(self):
        assert would_create_cycle(1, 1, PARENTS.get) is True

    def test_parent_under_descendant(self):
        """A -> B -> C: moving A under C must be rejected."""
        assert would_create_cycle(1, 3, PARENTS.get) is True
        assert would_create_cycle(1, 2, PARENTS.get) is True

    def test_valid_moves(self):
        assert would_create_cycle(3, 1, PARENTS.get) is False
        assert would_create_cycle(4, 3, PARENTS.get) is False
        assert would_create_cycle(2, 4, PARENTS.get) is False

    def test_move_to_root(self):
        assert would_create_cycle(3, None, PARENTS.get) is False

    def test_existing_loop_is_rejected(self):
        looped = {1: 2, 2: 1, 3: None}

        assert would_create_cycle(3, 1, looped.get) is True


class TestDepth:
    def test_depth_of(self):
        assert depth_of(1, PARENTS.get) == 0
        assert depth_of(2, PARENTS.get) == 1
        assert depth_of(3, PARENTS.get) == 2
        assert depth_of(None, PARENTS.get) == -1

    def test_subtree_height(self):
        children = index_children(PARENTS)

        assert subtree_height(1, lambda n: children.get(n, [])) == 2
        assert subtree_height(2, lambda n: children.get(n, [])) == 1
        assert subtree_height(3, lambda n: children.get(n, [])) == 0

    def test_index_children(self):
        children = index_children(PARENTS)

        assert children == {1: [2], 2: [3]}

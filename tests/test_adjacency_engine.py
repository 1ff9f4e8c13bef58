"""Adjacency-list specifics: traversal order, deep chains, corrupted parent links."""

import pytest

from orgtree.exceptions import DataIntegrityError
from orgtree.models import Node
from orgtree.repositories import NodeRepository
from orgtree.services import AdjacencyEngine
from tests.conftest import TEST_MAX_NAME_LENGTH, make_tree


@pytest.fixture()
def adjacency(db):
    return AdjacencyEngine(db, max_name_length=TEST_MAX_NAME_LENGTH)


def build_chain(db, length):
    """Insert a single chain of *length* nodes directly; returns the leaf id."""
    repo = NodeRepository(db)
    parent_id = None
    for i in range(length):
        parent_id = repo.create(f"n{i}", parent_id=parent_id).id
    db.commit()
    return parent_id


class TestTraversal:

    def test_descendants_in_pre_order(self, adjacency):
        a = adjacency.create_node("A")
        b = adjacency.create_node("B", parent_id=a.id)
        d = adjacency.create_node("D", parent_id=a.id)
        c = adjacency.create_node("C", parent_id=b.id)
        assert [n.id for n in adjacency.list_descendants(a.id)] == [b.id, c.id, d.id]

    def test_deep_chain_does_not_recurse(self, adjacency, db):
        leaf_id = build_chain(db, 1500)

        assert len(adjacency.list_ancestors(leaf_id)) == 1499
        root = adjacency.list_nodes(limit=1)[0]
        assert len(adjacency.list_descendants(root.id)) == 1499

    def test_deep_chain_tree_view(self, adjacency, db):
        leaf_id = build_chain(db, 1500)

        level = adjacency.get_tree()
        depth = 0
        while level:
            assert len(level) == 1
            depth += 1
            last = level[0]
            level = last.children
        assert depth == 1500
        assert last.id == leaf_id

    def test_deep_chain_tree_view_capped(self, adjacency, db):
        build_chain(db, 300)

        node = adjacency.get_tree(max_depth=200)[0]
        depth = 1
        while node.children:
            node = node.children[0]
            depth += 1
        assert depth == 200
        assert node.sub_entities_count == 1


class TestCorruptedLinks:

    def test_parent_cycle_detected_in_ancestors(self, adjacency, db):
        a, _, c = make_tree(adjacency)
        db.query(Node).filter(Node.id == a.id).update({"parent_id": c.id})
        db.commit()

        with pytest.raises(DataIntegrityError):
            adjacency.list_ancestors(c.id)

    def test_parent_cycle_detected_in_descendants(self, adjacency, db):
        a, _, c = make_tree(adjacency)
        db.query(Node).filter(Node.id == a.id).update({"parent_id": c.id})
        db.commit()

        with pytest.raises(DataIntegrityError):
            adjacency.list_descendants(a.id)

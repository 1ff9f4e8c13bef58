"""Closure-table specifics: row shape, rebuilds on move, integrity failures."""

import pytest
from sqlalchemy.exc import IntegrityError

from orgtree.exceptions import DatabaseError, DataIntegrityError, ParentNodeNotFoundError
from orgtree.models import NodeClosure
from orgtree.repositories import NodeRepository
from orgtree.services import ClosureEngine
from tests.conftest import TEST_MAX_NAME_LENGTH, make_tree


@pytest.fixture()
def closure(db):
    return ClosureEngine(db, max_name_length=TEST_MAX_NAME_LENGTH)


def all_rows(db):
    return {
        (row.ancestor_id, row.descendant_id, row.distance)
        for row in db.query(NodeClosure).all()
    }


def expected_rows(engine):
    """Rows implied by the parent_id chain of every node."""
    rows = set()
    for node in engine.list_nodes():
        rows.add((node.id, node.id, 0))
        for distance, ancestor in enumerate(engine.list_ancestors(node.id), start=1):
            rows.add((ancestor.id, node.id, distance))
    return rows


class TestClosureRows:

    def test_chain_rows(self, closure, db):
        a, b, c = make_tree(closure)
        assert all_rows(db) == {
            (a.id, a.id, 0), (b.id, b.id, 0), (c.id, c.id, 0),
            (a.id, b.id, 1), (b.id, c.id, 1),
            (a.id, c.id, 2),
        }

    def test_row_count_matches_subtree_size(self, closure):
        a, b, c = make_tree(closure)
        closure.create_node("sibling", parent_id=a.id)
        for node in closure.list_nodes():
            expected = 1 + len(closure.list_descendants(node.id))
            assert closure.closure_repo.count_by_ancestor(node.id) == expected
            assert len(closure.closure_rows(node.id)) == expected

    def test_descendants_ordered_by_distance_then_id(self, closure):
        a = closure.create_node("A")
        b = closure.create_node("B", parent_id=a.id)
        c = closure.create_node("C", parent_id=b.id)
        d = closure.create_node("D", parent_id=a.id)
        assert [n.id for n in closure.list_descendants(a.id)] == [b.id, d.id, c.id]


class TestClosureMoves:

    def test_move_keeps_rows_inside_subtree(self, closure, db):
        a, b, c = make_tree(closure)
        d = closure.create_node("D")
        closure.update_node(b.id, parent_id=d.id)

        rows = all_rows(db)
        assert (b.id, c.id, 1) in rows
        assert (d.id, c.id, 2) in rows
        assert not any(anc == a.id and desc in (b.id, c.id) for anc, desc, _ in rows)
        assert rows == expected_rows(closure)

    def test_move_to_root_drops_old_ancestors(self, closure, db):
        a, b, c = make_tree(closure)
        closure.update_node(b.id, parent_id=None)
        assert all_rows(db) == {
            (a.id, a.id, 0), (b.id, b.id, 0), (c.id, c.id, 0), (b.id, c.id, 1),
        }

    def test_repeated_moves_stay_consistent(self, closure, db):
        a, b, c = make_tree(closure)
        x = closure.create_node("X")
        y = closure.create_node("Y", parent_id=x.id)
        closure.update_node(b.id, parent_id=y.id)
        closure.update_node(y.id, parent_id=a.id)
        closure.update_node(x.id, parent_id=c.id)
        assert all_rows(db) == expected_rows(closure)

    def test_rename_only_leaves_rows_alone(self, closure, db):
        a, _, _ = make_tree(closure)
        before = all_rows(db)
        closure.update_node(a.id, name="Renamed")
        assert all_rows(db) == before


class TestClosureIntegrity:

    def test_parent_without_closure_rows(self, closure, db):
        orphan = NodeRepository(db).create("orphan")
        db.commit()

        with pytest.raises(ParentNodeNotFoundError):
            closure.create_node("child", parent_id=orphan.id)
        assert [n.name for n in closure.list_nodes()] == ["orphan"]

    def test_delete_without_self_row(self, closure, db):
        orphan = NodeRepository(db).create("orphan")
        db.commit()

        with pytest.raises(DataIntegrityError):
            closure.delete_node(orphan.id)
        assert closure.get_node(orphan.id).name == "orphan"

    def test_delete_clears_rows(self, closure, db):
        a, b, _ = make_tree(closure)
        closure.delete_node(b.id)
        assert all_rows(db) == {(a.id, a.id, 0)}


class TestClosureAtomicity:

    def test_failed_insert_during_move_rolls_back(self, closure, db, monkeypatch):
        a, b, c = make_tree(closure)
        d = closure.create_node("D")
        before = all_rows(db)

        def duplicate_pair(rows):
            raise IntegrityError(
                "INSERT INTO node_closure", {}, Exception("UNIQUE constraint failed")
            )

        # The subtree's old rows are already deleted when the insert fails.
        monkeypatch.setattr(closure.closure_repo, "add_all", duplicate_pair)
        with pytest.raises(DatabaseError) as exc_info:
            closure.update_node(b.id, name="Moved", parent_id=d.id)
        monkeypatch.undo()

        assert exc_info.value.status_code == 500
        assert "UNIQUE constraint failed" in exc_info.value.details["original_error"]
        assert all_rows(db) == before
        node = closure.get_node(b.id)
        assert (node.name, node.parent_id) == ("B", a.id)
        assert [n.id for n in closure.list_ancestors(c.id)] == [b.id, a.id]

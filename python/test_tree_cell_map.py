"""Tests for tree_cell_map module."""

from tree_cell_map import TreeCellMap
from tree_types import TreeNode


class TestTreeCellMap:
    """Tests for span owner and member records."""

    def test_owner_without_span(self) -> None:
        """A single-cell owner holds its node and no members."""
        cell = TreeCellMap(1, 2, TreeNode("A"))
        assert not cell.is_child()
        assert not cell.has_children()
        assert cell.key == (1, 2)
        assert cell.get_stop_row_index() == 1
        assert cell.get_stop_col_index() == 2

    def test_member_points_at_owner(self) -> None:
        """A span member holds no node and keeps the owner key."""
        member = TreeCellMap(0, 3, parent=(0, 2))
        assert member.is_child()
        assert member.get_parent_position() == (0, 2)

    def test_span_edges(self) -> None:
        """Stop indexes grow with the recorded first-row and first-column members."""
        owner = TreeCellMap(2, 1, TreeNode("B"))
        owner.add_col_cell(TreeCellMap(2, 2, parent=(2, 1)))
        owner.add_col_cell(TreeCellMap(2, 3, parent=(2, 1)))
        owner.add_row_cell(TreeCellMap(3, 1, parent=(2, 1)))

        assert owner.has_children()
        assert owner.has_col_cell()
        assert owner.has_row_cell()
        assert owner.get_stop_col_index() == 3
        assert owner.get_stop_row_index() == 3
        assert [cell.key for cell in owner.get_col_cell()] == [(2, 2), (2, 3)]

    def test_index_in_parent(self) -> None:
        """Sibling position is stored with the sibling count."""
        cell = TreeCellMap(0, 0, TreeNode("A"))
        cell.set_index_in_parent(2, 5)
        assert cell.get_index_in_parent() == (2, 5)

    def test_repr(self) -> None:
        """Owners show their node value, members their owner key."""
        assert repr(TreeCellMap(0, 1, TreeNode("A"))) == "TreeCellMap(0, 1, node='A')"
        assert repr(TreeCellMap(1, 1, parent=(0, 1))) == "TreeCellMap(1, 1, parent=(0, 1))"

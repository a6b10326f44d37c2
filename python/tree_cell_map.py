"""
Grid cell records produced while projecting a tree onto a grid.
"""

from __future__ import annotations

from tree_types import CellKey, TreeNode


class TreeCellMap:
    """
    One grid coordinate of a projected tree.

    The top-left cell of a merge span holds the node and is the span owner;
    its parent is the key of its tree parent's owner cell. Every other cell
    of the span holds no node and points at the owner through parent. The
    owner records the members of its first row (col_cell) and its first
    column (row_cell); interior members only carry parent.
    """

    __slots__ = (
        "row_index",
        "col_index",
        "node",
        "parent",
        "row_cell",
        "col_cell",
        "index_in_parent",
        "sibling_count",
    )

    def __init__(
        self,
        row_index: int,
        col_index: int,
        node: TreeNode | None = None,
        parent: CellKey | None = None,
    ) -> None:
        self.row_index = row_index
        self.col_index = col_index
        self.node = node
        self.parent = parent
        self.row_cell: list[TreeCellMap] = []
        self.col_cell: list[TreeCellMap] = []
        self.index_in_parent = 0
        self.sibling_count = 0

    def __repr__(self) -> str:
        if self.node is not None:
            return f"TreeCellMap({self.row_index}, {self.col_index}, node={self.node.value!r})"
        return f"TreeCellMap({self.row_index}, {self.col_index}, parent={self.parent})"

    @property
    def key(self) -> CellKey:
        return (self.row_index, self.col_index)

    def is_child(self) -> bool:
        """True for span members, which hold no node."""
        return self.node is None

    def has_children(self) -> bool:
        """True for owners of a span wider or taller than one cell."""
        return bool(self.row_cell or self.col_cell)

    def has_col_cell(self) -> bool:
        return bool(self.col_cell)

    def add_col_cell(self, cell: TreeCellMap) -> None:
        self.col_cell.append(cell)

    def get_col_cell(self) -> list[TreeCellMap]:
        return self.col_cell

    def has_row_cell(self) -> bool:
        return bool(self.row_cell)

    def add_row_cell(self, cell: TreeCellMap) -> None:
        self.row_cell.append(cell)

    def get_row_cell(self) -> list[TreeCellMap]:
        return self.row_cell

    def get_stop_row_index(self) -> int:
        """Last row covered by this cell's span."""
        return self.row_index + len(self.row_cell)

    def get_stop_col_index(self) -> int:
        """Last column covered by this cell's span."""
        return self.col_index + len(self.col_cell)

    def set_index_in_parent(self, index_in_parent: int, sibling_count: int) -> None:
        self.index_in_parent = index_in_parent
        self.sibling_count = sibling_count

    def get_index_in_parent(self) -> tuple[int, int]:
        return self.index_in_parent, self.sibling_count

    def get_parent_position(self) -> CellKey | None:
        return self.parent

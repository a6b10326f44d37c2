"""
Windowed projection over a full TreeService.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

from tree_node import NodeOrList
from tree_types import (
    CellCacheUpdate,
    CellMeasureCache,
    CellSize,
    Grid,
    TreeNode,
    TreeNodeMetadata,
    UnsupportedOperationError,
)

if TYPE_CHECKING:
    from tree_service import TreeService


class PartialTreeService:
    """
    Read-only view of the leaves [from_, to) of a TreeService.

    The grid is sliced once from the wrapped service and re-based to 0;
    every other cell query is answered by the wrapped service in its own
    coordinates. Operations that would change the tree or derive further
    views raise UnsupportedOperationError.
    """

    def __init__(self, tree_service: TreeService, from_: int, to: int) -> None:
        self.tree_service = tree_service
        count = tree_service.get_tree_child_length()
        self.from_ = from_
        self.to = min(count, to)
        self.grid: Grid | None = None

    def destroy(self) -> None:
        self.tree_service.destroy()
        self.grid = None

    def _unsupported(self, operation: str) -> NoReturn:
        raise UnsupportedOperationError(
            f"{operation} is not supported on {type(self).__name__}"
        )

    def get_grid(self) -> Grid:
        if self.grid is None:
            self.grid = self.tree_service.get_partial_grid(self.from_, self.to)
        return self.grid

    def get_tree_node(self, row_index: int, column_index: int) -> TreeNode | None:
        return self.tree_service.get_tree_node(row_index, column_index)

    def is_children(self, row_index: int, column_index: int) -> bool:
        return self.tree_service.is_children(row_index, column_index)

    def has_children(self, row_index: int, column_index: int) -> bool:
        return self.tree_service.has_children(row_index, column_index)

    def set_cell_cache(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        width: float,
        height: float,
        columns_offset: int = 0,
    ) -> CellCacheUpdate | None:
        return self.tree_service.set_cell_cache(
            row_index, column_index, cache, width, height, columns_offset
        )

    def get_cell_cache(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        columns_offset: int = 0,
    ) -> CellSize:
        return self.tree_service.get_cell_cache(row_index, column_index, cache, columns_offset)

    def get_main_cell_spans(self, row_index: int, column_index: int) -> dict[str, int]:
        return self.tree_service.get_main_cell_spans(row_index, column_index)

    def get_main_cell_size(
        self,
        cache: CellMeasureCache,
        row_index: int,
        column_index: int,
        style: dict[str, float],
        columns_offset: int = 0,
    ) -> dict[str, float]:
        """Merged cell size with the rows above a vertical window left out."""
        # Horizontal windows run along columns; every level row stays visible
        offset_top = self.from_ if self.tree_service.is_vertical else -1
        return self.tree_service.get_main_cell_size(
            cache,
            row_index,
            column_index,
            style,
            offset_top=offset_top,
            columns_offset=columns_offset,
        )

    def has_initial_column_width(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        columns_offset: int = 0,
    ) -> bool:
        return self.tree_service.has_initial_column_width(
            row_index, column_index, cache, columns_offset
        )

    def align_start_index(self, start_index: int, is_vertical: bool = False) -> int:
        start = self.tree_service.align_start_index(start_index, is_vertical)
        return max(self.from_, start)

    def align_stop_index(self, stop_index: int, is_vertical: bool = False) -> int:
        stop = self.tree_service.align_stop_index(stop_index, is_vertical)
        return min(self.to - 1, stop)

    def get_tree_child_length(self, item: NodeOrList = None) -> int:
        return max(0, self.to - self.from_)

    def get_tree_deeps_length(self, item: NodeOrList = None) -> int:
        return self.tree_service.get_tree_deeps_length(item)

    def get_last_level_nodes(self) -> list[TreeNode]:
        return self.tree_service.get_last_level_nodes()[self.from_ : self.to]

    def extract_data(self, columns_tree_service: Any = None) -> list[list[Any]]:
        if columns_tree_service is None:
            return []
        sort_indexes = [node.index for node in columns_tree_service.get_last_level_nodes()]
        return [
            [None]
            if node.data is None
            else [
                node.data[index] if index is not None and 0 <= index < len(node.data) else None
                for index in sort_indexes
            ]
            for node in self.get_last_level_nodes()
        ]

    def get_metadata(
        self,
        row_index: float,
        column_index: float,
        from_: int | None = None,
        to: int | None = None,
    ) -> TreeNodeMetadata:
        return self.tree_service.get_metadata(row_index, column_index, from_, to)

    def set_value_node(self, value_node: TreeNode) -> NoReturn:
        self._unsupported("set_value_node")

    def get_partial_grid(self, from_: int, to: int) -> NoReturn:
        self._unsupported("get_partial_grid")

    def get_partial_tree(self, from_: int, to: int | None = None) -> NoReturn:
        self._unsupported("get_partial_tree")

    def extend(self, tree: TreeNode | None) -> NoReturn:
        self._unsupported("extend")

    def create_partial_tree_service(self, from_: int, to: int) -> NoReturn:
        self._unsupported("create_partial_tree_service")

    def create_paginated_partial_tree_service(self, from_: int, to: int) -> NoReturn:
        self._unsupported("create_paginated_partial_tree_service")

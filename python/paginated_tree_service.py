"""
Paginated projection rebuilt from the raw tree for one page of leaves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import NoReturn

from abstract_tree_service import AbstractTreeService, CellMapCache
from tree_cell_map import TreeCellMap
from tree_node import (
    NodeOrList,
    get_child_length,
    get_children,
    get_level,
    get_nodes_by_child_count,
    has_children,
)
from tree_types import CellKey, Grid, TreeNode, TreeNodeMetadata, UnsupportedOperationError

logger = logging.getLogger(__name__)


@dataclass
class PageFillState:
    """Placement offsets along the leaf axis, in absolute leaf indexes."""

    parent_start: int = 0
    prev_children: int = 0
    level_offset: int = 0  # rows pushed down by a min_level span (horizontal)
    parent_key: CellKey | None = None


class PaginatedPartialTreeService(AbstractTreeService):
    """
    Projection of the leaves [from_, to) with coordinates re-based to 0.

    Unlike PartialTreeService the cell map is built for this page only, and
    nodes crossing a page edge are cut: their span is clipped to the page
    instead of the whole node being kept or dropped.
    """

    def __init__(
        self,
        tree: TreeNode | None = None,
        is_vertical: bool = False,
        deep: int | None = None,
        from_: int = 0,
        to: int | None = None,
    ) -> None:
        super().__init__(tree, is_vertical, deep)
        self.from_ = from_
        self.to = to if to is not None else get_child_length(get_children(self.tree))

    def _unsupported(self, operation: str) -> NoReturn:
        raise UnsupportedOperationError(
            f"{operation} is not supported on {type(self).__name__}"
        )

    def get_grid(self) -> Grid:
        if self.grid is not None:
            return self.grid

        depth = self.get_tree_deeps_length()
        node_range = get_nodes_by_child_count(get_children(self.tree), self.from_, self.to)
        self.map = self.fill_page_map(
            node_range.nodes, depth, self.map, PageFillState(parent_start=node_range.start)
        )

        count = max(0, min(node_range.stop, self.to) - self.from_)
        if self.is_vertical:
            self.grid = [[self._grid_cell((row, col)) for col in range(depth)] for row in range(count)]
        else:
            self.grid = [[self._grid_cell((row, col)) for col in range(count)] for row in range(depth)]
        logger.debug(
            "get_grid: page [%d, %d) has %d leaves from %d top-level nodes",
            self.from_,
            self.to,
            count,
            len(node_range.nodes),
        )
        return self.grid

    def fill_page_map(
        self,
        children: list[TreeNode],
        depth: int,
        cell_map: CellMapCache | None = None,
        state: PageFillState | None = None,
    ) -> CellMapCache:
        """
        Place the part of each node that falls inside the page.

        Nodes entirely outside [from_, to) are skipped; a node straddling an
        edge gets a span clipped to the page. Child positions are still
        derived from the unclipped leaf ranges.
        """
        if cell_map is None:
            cell_map = {}
        if state is None:
            state = PageFillState()

        sibling_count = len(children)
        for index, item in enumerate(children):
            level = get_level(item) + state.level_offset
            first = index + state.parent_start + state.prev_children
            child_length = get_child_length(item)
            last = first + child_length - 1
            if last < self.from_ or first >= self.to:
                state.prev_children += child_length - 1
                continue

            visible_start = max(first, self.from_)
            visible_stop = min(last, self.to - 1)
            if visible_start != first or visible_stop != last:
                logger.debug(
                    "fill_page_map: %r cut from [%d, %d] to [%d, %d]",
                    item.value,
                    first,
                    last,
                    visible_start,
                    visible_stop,
                )

            offset = visible_start - self.from_
            main_key = (offset, level) if self.is_vertical else (level, offset)
            main_item = TreeCellMap(main_key[0], main_key[1], item, state.parent_key)
            main_item.set_index_in_parent(index, sibling_count)
            cell_map[main_key] = main_item

            leaf_span = 0
            level_span = 0
            if has_children(item):
                leaf_span = visible_stop + 1 - visible_start
                if not self.is_vertical and item.min_level is not None:
                    level_span = item.min_level + 1 - level
            else:
                level_span = depth - level

            if self.is_vertical:
                row, col = leaf_span, level_span
            else:
                row, col = level_span, leaf_span
            if row > 1 or col > 1:
                self.fill_child_map(cell_map, main_key, main_key[0], main_key[1], row, col)

            if has_children(item):
                child_state = replace(
                    state,
                    parent_start=index + state.parent_start,
                    level_offset=level_span - 1 if level_span > 1 else 0,
                    parent_key=main_key,
                )
                self.fill_page_map(get_children(item), depth, cell_map, child_state)
                state.prev_children += child_length - 1

        return cell_map

    def get_metadata(
        self,
        row_index: float,
        column_index: float,
        from_: int | None = None,
        to: int | None = None,
    ) -> TreeNodeMetadata:
        """Metadata with sibling runs clamped to this page."""
        return super().get_metadata(row_index, column_index, self.from_, self.to)

    def get_last_level_nodes(self) -> list[TreeNode]:
        return super().get_last_level_nodes()[self.from_ : self.to]

    def get_tree_child_length(self, item: NodeOrList = None, clear_cache: bool = False) -> int:
        return max(0, self.to - self.from_)

    def align_stop_index(self, stop_index: int, is_vertical: bool = False) -> int:
        stop = super().align_stop_index(stop_index, is_vertical)
        return min(self.to - 1, stop)

    def create_partial_tree_service(self, from_: int, to: int) -> NoReturn:
        self._unsupported("create_partial_tree_service")

    def create_paginated_partial_tree_service(self, from_: int, to: int) -> NoReturn:
        self._unsupported("create_paginated_partial_tree_service")

    def set_value_node(self, value_node: TreeNode) -> NoReturn:
        self._unsupported("set_value_node")

    def get_partial_grid(self, from_: int, to: int) -> NoReturn:
        self._unsupported("get_partial_grid")

    def get_partial_tree(self, from_: int, to: int | None = None) -> NoReturn:
        self._unsupported("get_partial_tree")

    def extend(self, tree: TreeNode | None) -> NoReturn:
        self._unsupported("extend")

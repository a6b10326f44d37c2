"""
Base projection service: converts a dimension tree into a grid.

The service keeps the tree<>grid cell map so that measured cell sizes can be
spread across merged cells (set_cell_cache) and read back as one merged size
(get_cell_cache, get_main_cell_size).

Two orientations are supported:
- horizontal (row-major): tree depth runs down the rows, leaves run along
  the columns; internal nodes span columns, leaves span the remaining rows.
- vertical (column-major): tree depth runs along the columns, leaves run
  down the rows; internal nodes span rows, leaves span the remaining columns.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any

from tree_cell_map import TreeCellMap
from tree_node import (
    NodeOrList,
    get_child_length,
    get_children,
    get_cut_nodes_by_child_count,
    get_deep_length,
    get_last_level_nodes,
    get_level,
    get_nodes_by_child_count,
    has_children,
    merge,
    set_level,
    wrap_in_root_node,
)
from tree_types import (
    CellCacheUpdate,
    CellKey,
    CellLookupError,
    CellMeasureCache,
    CellSize,
    Grid,
    GridCell,
    Position,
    TreeNode,
    TreeNodeMetadata,
    UnsupportedOperationError,
)

logger = logging.getLogger(__name__)

CellMapCache = dict[CellKey, TreeCellMap]


@dataclass
class FillMapState:
    """Placement offsets handed from a parent to its children."""

    parent_row_index: int = 0
    parent_col_index: int = 0
    prev_children: int = 0  # extra cells taken by earlier siblings' spans
    parent_key: CellKey | None = None


class AbstractTreeService:
    """
    Shared implementation of all projection services.

    The factory methods for windowed and paginated views are only available
    on TreeService.
    """

    def __init__(
        self,
        tree: TreeNode | None = None,
        is_vertical: bool = False,
        deep: int | None = None,
    ) -> None:
        self.tree: TreeNode | None = None
        self.is_vertical = is_vertical
        self.deep = deep
        self.columns: list[list[TreeNode]] = []  # nodes by depth level
        self.last_level: list[TreeNode] = []
        self.map: CellMapCache = {}
        self.metadata_cache: dict[CellKey, TreeNodeMetadata] = {}
        self.value_node: TreeNode | None = None
        self.grid: Grid | None = None
        self._mapped: dict[TreeNode, CellKey] = {}  # nodes already placed vertically
        if tree is not None:
            self.tree = tree
            self.columns = self.cache_levels(get_children(self.tree))

    def destroy(self) -> None:
        """Release the tree, the cell map and every cache."""
        self.tree = None
        self.columns = []
        self.last_level = []
        self.map = {}
        self.metadata_cache = {}
        self.value_node = None
        self.grid = None
        self._mapped = {}

    # =========================================================================
    # Grid Materialization
    # =========================================================================

    def get_grid(self) -> Grid:
        """
        The full grid as a 2D list.

        Span owners hold their TreeNode, span members hold the owner's key.
        Built once and memoized until extend() is called.
        """
        if self.grid is not None:
            return self.grid

        rows = self.get_tree_deeps_length()
        cols = self.get_tree_child_length()
        if self.is_vertical:
            rows, cols = cols, rows
            self.map = self.fill_map_vertical(get_children(self.tree), cols, self.map)
        else:
            self.map = self.fill_map(get_children(self.tree), rows, self.map)

        self.grid = [[self._grid_cell((row, col)) for col in range(cols)] for row in range(rows)]
        logger.debug(
            "get_grid: %dx%d grid, %d mapped cells (vertical=%s)",
            rows,
            cols,
            len(self.map),
            self.is_vertical,
        )
        return self.grid

    def get_partial_grid(self, from_: int, to: int) -> Grid:
        """
        Grid slice holding the leaves [from_, to), re-based to index 0.

        Only the top-level nodes intersecting the range are placed. In a
        vertical tree the slice is a run of rows, in a horizontal tree a run
        of columns.
        """
        depth = self.get_tree_deeps_length()
        node_range = get_nodes_by_child_count(get_children(self.tree), from_, to)

        if self.is_vertical:
            self.fill_map_vertical(
                node_range.nodes,
                depth,
                self.map,
                FillMapState(parent_row_index=node_range.start),
            )
        else:
            self.fill_map(
                node_range.nodes,
                depth,
                self.map,
                FillMapState(parent_col_index=node_range.start),
            )

        final_from = max(node_range.start, from_)
        final_to = min(node_range.stop, to)
        count = max(0, final_to - from_)
        logger.debug(
            "get_partial_grid: leaves [%d, %d) -> %d nodes covering [%d, %d)",
            from_,
            to,
            len(node_range.nodes),
            node_range.start,
            node_range.stop,
        )

        if self.is_vertical:
            return [
                [self._grid_cell((final_from + row, col)) for col in range(depth)]
                for row in range(count)
            ]
        return [
            [self._grid_cell((row, final_from + col)) for col in range(count)]
            for row in range(depth)
        ]

    def get_partial_tree(self, from_: int, to: int | None = None) -> list[TreeNode]:
        """Cloned top-level nodes holding exactly the leaves [from_, to)."""
        return get_cut_nodes_by_child_count(get_children(self.tree), from_, to)

    def extend(self, tree: TreeNode | None) -> None:
        """
        Append another tree: a ROOT node contributes its top-level children,
        any other node is appended whole.

        Only new nodes are levelled; previously placed cells keep their
        positions. The memoized grid is dropped.
        """
        if tree is None:
            return
        self.grid = None
        new_nodes = get_children(wrap_in_root_node(tree))
        self.tree = merge(get_children(self.tree), new_nodes)
        self.columns = self.cache_levels(new_nodes, self.columns)
        logger.debug("extend: appended %d top-level nodes", len(new_nodes))

    def create_partial_tree_service(self, from_: int, to: int) -> Any:
        raise UnsupportedOperationError(
            f"create_partial_tree_service is not supported by {type(self).__name__}"
        )

    def create_paginated_partial_tree_service(self, from_: int, to: int) -> Any:
        raise UnsupportedOperationError(
            f"create_paginated_partial_tree_service is not supported by {type(self).__name__}"
        )

    # =========================================================================
    # Cell Queries
    # =========================================================================

    def get_tree_node(self, row_index: int, column_index: int) -> TreeNode | None:
        """The node owning the cell, or None for span members and unmapped cells."""
        item = self._get_item(row_index, column_index)
        if item is not None:
            return item.node
        return None

    def is_children(self, row_index: int, column_index: int) -> bool:
        """True if the cell is a span member rather than a node-bearing cell."""
        item = self._get_item(row_index, column_index)
        if item is not None:
            return item.is_child()
        if self.deep is not None:
            if (column_index if self.is_vertical else row_index) < self.deep:
                return True
        raise CellLookupError(
            f"Item {(row_index, column_index)} is not found in {type(self).__name__}"
        )

    def has_children(self, row_index: int, column_index: int) -> bool:
        """True if the cell owns a span of more than one cell."""
        item = self._get_item(row_index, column_index)
        if item is not None:
            return item.has_children()
        raise CellLookupError(
            f"Item {(row_index, column_index)} is not found in {type(self).__name__}"
        )

    def get_main_cell_spans(self, row_index: int, column_index: int) -> dict[str, int]:
        """col_span / row_span of a span owner; keys are omitted on unmerged axes."""
        spans: dict[str, int] = {}
        item = self._get_item(row_index, column_index)
        if item is not None and item.has_col_cell():
            spans["col_span"] = len(item.get_col_cell()) + 1
        if item is not None and item.has_row_cell():
            spans["row_span"] = len(item.get_row_cell()) + 1
        return spans

    def align_start_index(self, start_index: int, is_vertical: bool = False) -> int:
        """Move a visible-range start back to the start of the span it falls in."""
        if self.is_vertical != is_vertical:
            return start_index
        row, col = (start_index, 0) if is_vertical else (0, start_index)
        item = self._get_item(row, col)
        if item is not None and item.is_child():
            item = self._get_item_by_key(item.parent)
        if item is not None:
            return item.row_index if is_vertical else item.col_index
        return start_index

    def align_stop_index(self, stop_index: int, is_vertical: bool = False) -> int:
        """Move a visible-range stop forward to the end of the span it falls in."""
        if self.is_vertical != is_vertical:
            return stop_index
        row, col = (stop_index, 0) if is_vertical else (0, stop_index)
        item = self._get_item(row, col)
        if item is not None and item.is_child():
            item = self._get_item_by_key(item.parent)
        if item is not None:
            return item.get_stop_row_index() if is_vertical else item.get_stop_col_index()
        return stop_index

    # =========================================================================
    # Size Cache
    # =========================================================================

    def set_cell_cache(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        width: float,
        height: float,
        columns_offset: int = 0,
    ) -> CellCacheUpdate | None:
        """
        Write a measured cell size into the cache.

        A span owner's size is split evenly over the cells of its span and
        written to the owner and every first-row/first-column member. Writes
        addressed to span members are ignored. Returns None when nothing in
        the cache changed.
        """
        item = self._get_item(row_index, column_index)
        final_column_index = column_index + columns_offset

        if item is not None and item.has_children():
            col_cells = item.get_col_cell()
            row_cells = item.get_row_cell()
            main_width = width / (len(col_cells) + 1) if col_cells else width
            main_height = height / (len(row_cells) + 1) if row_cells else height

            changed = cache.set(row_index, final_column_index, main_width, main_height)
            for member in col_cells + row_cells:
                member_column = member.col_index + columns_offset
                changed = cache.set(member.row_index, member_column, main_width, main_height) or changed

            if changed:
                return CellCacheUpdate(
                    affected_rows_count=len(row_cells),
                    affected_columns_count=len(col_cells),
                )
            return None

        if item is not None and item.is_child():
            return None

        if cache.set(row_index, final_column_index, width, height):
            return CellCacheUpdate()
        return None

    def get_cell_cache(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        columns_offset: int = 0,
    ) -> CellSize:
        """Cached size of a cell; span owners report the sum over their span."""
        item = self._get_item(row_index, column_index)
        final_column_index = column_index + columns_offset
        width = cache.get_width(row_index, final_column_index)
        height = cache.get_height(row_index, final_column_index)
        if item is not None and item.has_children():
            for member in item.get_col_cell():
                width += cache.get_width(member.row_index, member.col_index + columns_offset)
            for member in item.get_row_cell():
                height += cache.get_height(member.row_index, member.col_index + columns_offset)
        return CellSize(width, height)

    def get_main_cell_size(
        self,
        cache: CellMeasureCache,
        row_index: int,
        column_index: int,
        style: dict[str, float],
        offset_top: int = -1,
        columns_offset: int = 0,
    ) -> dict[str, float]:
        """
        Rendered size of a merged cell for a partially scrolled viewport.

        Rows above offset_top contribute nothing. A dimension is dropped from
        the returned style when any contributing cell has no measured or
        initial size yet.
        """
        result = dict(style)
        item = self._get_item(row_index, column_index)
        has_col_cache = True
        has_row_cache = True

        if item is not None and item.is_child():
            parent_position = item.get_parent_position()
            if parent_position is not None:
                item = self._get_item_by_key(parent_position)

        if item is not None and item.has_children() and item.has_col_cell():
            owner_column = item.col_index + columns_offset
            width = cache.column_width(owner_column)
            for member in item.get_col_cell():
                member_column = member.col_index + columns_offset
                if not cache.has_initial_column_width(member_column) and not cache.has(
                    item.row_index, member_column
                ):
                    has_col_cache = False
                width += cache.column_width(member_column)
            result["width"] = math.ceil(width)

        if item is not None and item.has_children() and item.has_row_cell():
            owner_column = item.col_index + columns_offset
            height = cache.row_height(item.row_index) if item.row_index > offset_top else 0
            for member in item.get_row_cell():
                if member.row_index < offset_top:
                    continue
                if not cache.has(member.row_index, owner_column):
                    has_row_cache = False
                height += cache.row_height(member.row_index)
            result["height"] = math.ceil(height)

        if not has_col_cache:
            result.pop("width", None)
        if not has_row_cache:
            result.pop("height", None)
        return result

    def has_initial_column_width(
        self,
        row_index: int,
        column_index: int,
        cache: CellMeasureCache,
        columns_offset: int = 0,
    ) -> bool:
        """True if the cell, or any column of its span, has an authoritative width."""
        if cache.has_initial_column_width(column_index + columns_offset):
            return True
        item = self._get_item(row_index, column_index)
        if item is not None and item.has_children() and item.has_col_cell():
            start = item.col_index
            stop = start + len(item.get_col_cell()) + 1
            return any(cache.has_initial_column_width(i + columns_offset) for i in range(start, stop))
        return False

    # =========================================================================
    # Tree Statistics and Data
    # =========================================================================

    def get_tree_child_length(self, item: NodeOrList = None, clear_cache: bool = False) -> int:
        """Leaf count of item, or of the whole tree when item is omitted."""
        if item is None:
            item = get_children(self.tree)
        return get_child_length(item, clear_cache)

    def get_tree_deeps_length(self, item: NodeOrList = None, clear_cache: bool = False) -> int:
        """Number of depth levels: the fixed depth if one was given."""
        if self.deep is not None:
            return self.deep
        if item is None:
            item = get_children(self.tree)
        return get_deep_length(item, clear_cache)

    def get_last_level_nodes(self) -> list[TreeNode]:
        return self.last_level

    def extract_data(self, columns_tree_service: Any = None) -> list[list[Any]]:
        """
        Leaf data rows aligned to the leaf order of a column tree.

        Each row holds node.data[column_leaf.index] for every column leaf;
        leaves without data yield [None].
        """
        if columns_tree_service is None:
            return []
        sort_indexes = [node.index for node in columns_tree_service.get_last_level_nodes()]

        rows: list[list[Any]] = []
        for node in self.get_last_level_nodes():
            if node.data is None:
                rows.append([None])
                continue
            rows.append(
                [
                    node.data[index] if index is not None and 0 <= index < len(node.data) else None
                    for index in sort_indexes
                ]
            )
        return rows

    def set_value_node(self, value_node: TreeNode) -> None:
        """Remember the single values-measure node reported in metadata."""
        if isinstance(value_node, TreeNode):
            self.value_node = value_node

    # =========================================================================
    # Metadata
    # =========================================================================

    def get_metadata(
        self,
        row_index: float,
        column_index: float,
        from_: int | None = None,
        to: int | None = None,
    ) -> TreeNodeMetadata:
        """
        Positional tags of a cell, memoized per coordinate.

        levels gets FIRST at depth 0 and LAST when the span reaches the last
        depth level; siblings gets FIRST/LAST at either end of the node's
        sibling run and EVEN/ODD from the node's index_divergence. root and
        parent hold the metadata of the level-0 ancestor and the tree parent.
        math.inf as an index means the last depth level.

        With to given, the sibling run is clamped to the page [from_, to).
        """
        level_count = self.get_tree_deeps_length()
        if row_index == math.inf:
            row_index = level_count - 1 if level_count else level_count
        if column_index == math.inf:
            column_index = level_count - 1 if level_count else level_count
        key = (int(row_index), int(column_index))

        cached = self.metadata_cache.get(key)
        if cached is not None:
            return cached

        map_item = self._get_item_by_key(key)
        if map_item is None:
            raise CellLookupError(f"Can not find metadata info for {key} cell")
        if map_item.node is None:
            map_item = self._get_item_by_key(map_item.parent)
            if map_item is None:
                raise CellLookupError(f"Can not find metadata info for parent of {key} cell")
        node = map_item.node

        level = (node.level if node is not None else None) or 0
        last_level = (
            map_item.get_stop_col_index() if self.is_vertical else map_item.get_stop_row_index()
        )
        index_in_parent, sibling_count = map_item.get_index_in_parent()
        last_index_in_parent = index_in_parent

        # Top level siblings are counted in leaves, as in a partial tree
        if level == 0:
            sibling_count = self.get_tree_child_length()
            if self.is_vertical:
                index_in_parent = map_item.row_index
                last_index_in_parent = index_in_parent + len(map_item.get_row_cell())
            else:
                index_in_parent = map_item.col_index
                last_index_in_parent = index_in_parent + len(map_item.get_col_cell())

        page_size = None
        if to is not None:
            page_size = to - (from_ or 0)
            if sibling_count <= page_size and last_index_in_parent > page_size - 1:
                last_index_in_parent = page_size - 1

        metadata = TreeNodeMetadata(value_node=self.value_node)
        if node is not None and node.index_divergence is not None:
            metadata.siblings.append(Position.EVEN if node.index_divergence == 0 else Position.ODD)

        if level == 0:
            metadata.levels.append(Position.FIRST)
        if last_level == level_count - 1:
            metadata.levels.append(Position.LAST)
        if index_in_parent == 0:
            metadata.siblings.append(Position.FIRST)
        if last_index_in_parent == sibling_count - 1:
            metadata.siblings.append(Position.LAST)

        if node is not None and level != 0:
            root_row = key[0] if self.is_vertical else 0
            root_col = 0 if self.is_vertical else key[1]
            metadata.root = self.get_metadata(root_row, root_col, from_, to)

        parent_item = self._get_item_by_key(map_item.parent)
        if parent_item is not None and level != 0:
            metadata.parent = self.get_metadata(
                parent_item.row_index, parent_item.col_index, from_, to
            )

        if page_size is not None:
            if self.is_vertical:
                start_index, stop_index = map_item.row_index, map_item.get_stop_row_index()
            else:
                start_index, stop_index = map_item.col_index, map_item.get_stop_col_index()
            if parent_item is not None:
                parent_stop_index = (
                    parent_item.get_stop_row_index()
                    if self.is_vertical
                    else parent_item.get_stop_col_index()
                )
                # Parent reaches the page end: its last visible child closes the run
                if (
                    parent_stop_index >= page_size - 1
                    and stop_index >= page_size - 1
                    and Position.LAST not in metadata.siblings
                ):
                    metadata.siblings.append(Position.LAST)
            if start_index == 0 and Position.FIRST not in metadata.siblings:
                metadata.siblings.append(Position.FIRST)

        self.metadata_cache[key] = metadata
        return metadata

    # =========================================================================
    # Map Construction
    # =========================================================================

    def cache_levels(
        self,
        items: list[TreeNode],
        cache: list[list[TreeNode]] | None = None,
        level: int = 0,
    ) -> list[list[TreeNode]]:
        """Tag nodes with their depth, group them by level and collect the leaves."""
        if cache is None:
            cache = []
        for item in items:
            while len(cache) <= level:
                cache.append([])
            set_level(item, level)
            cache[level].append(item)
            if has_children(item):
                self.cache_levels(get_children(item), cache, level + 1)
            else:
                self.last_level.append(item)
        return cache

    def fill_map(
        self,
        children: list[TreeNode],
        rows: int,
        cell_map: CellMapCache | None = None,
        state: FillMapState | None = None,
    ) -> CellMapCache:
        """
        Place nodes on a horizontal grid.

        A node sits at (level, sibling position + columns taken by earlier
        siblings' spans). Internal nodes span their leaf count in columns
        (plus rows down to min_level when set), leaves span the remaining
        rows down to the last depth level.
        """
        if cell_map is None:
            cell_map = {}
        if state is None:
            state = FillMapState()

        sibling_count = len(children)
        for col_index, item in enumerate(children):
            row_start = get_level(item) + state.parent_row_index
            col_start = col_index + state.parent_col_index + state.prev_children
            main_key = (row_start, col_start)
            main_item = TreeCellMap(row_start, col_start, item, state.parent_key)
            main_item.set_index_in_parent(col_index, sibling_count)
            cell_map[main_key] = main_item

            row = 0
            col = 0
            if has_children(item):
                col = get_child_length(item)
                if item.min_level is not None:
                    # values offset
                    row = item.min_level + 1 - row_start
            else:
                row = rows - row_start

            if row > 1 or col > 1:
                self.fill_child_map(cell_map, main_key, row_start, col_start, row, col)

            if has_children(item):
                child_state = replace(
                    state,
                    parent_row_index=row - 1 if row > 1 else 0,
                    parent_col_index=col_index + state.parent_col_index,
                    parent_key=main_key,
                )
                self.fill_map(get_children(item), rows, cell_map, child_state)
                if col > 1:
                    state.prev_children += col - 1

        return cell_map

    def fill_map_vertical(
        self,
        children: list[TreeNode],
        cols: int,
        cell_map: CellMapCache | None = None,
        state: FillMapState | None = None,
    ) -> CellMapCache:
        """
        Place nodes on a vertical grid.

        Mirror of fill_map with rows and columns swapped. Nodes placed by an
        earlier call on this service are skipped, so successive partial
        grids and extend() only add cells.
        """
        if cell_map is None:
            cell_map = {}
        if state is None:
            state = FillMapState()

        sibling_count = len(children)
        for row_index, item in enumerate(children):
            if item in self._mapped:
                self._stretch_leaf_spans(item, cols, cell_map)
                state.parent_row_index += get_child_length(item) - 1
                continue

            col_index = get_level(item)
            row_start = row_index + state.parent_row_index + state.prev_children
            main_key = (row_start, col_index)
            self._mapped[item] = main_key
            main_item = TreeCellMap(row_start, col_index, item, state.parent_key)
            main_item.set_index_in_parent(row_index, sibling_count)
            cell_map[main_key] = main_item

            row = 0
            col = 0
            if has_children(item):
                row = get_child_length(item)
            else:
                col = cols - col_index

            if row > 1 or col > 1:
                self.fill_child_map(cell_map, main_key, row_start, col_index, row, col)

            if has_children(item):
                child_state = replace(
                    state,
                    parent_row_index=row_index + state.parent_row_index,
                    parent_key=main_key,
                )
                self.fill_map_vertical(get_children(item), cols, cell_map, child_state)
                if row > 1:
                    state.prev_children += row - 1

        return cell_map

    def _stretch_leaf_spans(self, item: TreeNode, cols: int, cell_map: CellMapCache) -> None:
        """Widen the spans of already placed leaves when the tree got deeper."""
        for leaf in get_last_level_nodes([item]):
            key = self._mapped.get(leaf)
            owner = cell_map.get(key) if key is not None else None
            if owner is None:
                continue
            for col in range(owner.get_stop_col_index() + 1, cols):
                member = TreeCellMap(owner.row_index, col, parent=owner.key)
                cell_map[member.key] = member
                owner.add_col_cell(member)

    def fill_child_map(
        self,
        cell_map: CellMapCache,
        main_key: CellKey,
        row_start: int,
        col_start: int,
        row: int,
        col: int,
    ) -> None:
        """Register every non-owner cell of a span and link the edge members to the owner."""
        main_item = cell_map[main_key]
        for row_add in range(max(1, row)):
            for col_add in range(max(1, col)):
                if row_add == 0 and col_add == 0:
                    continue
                child_row = row_start + row_add
                child_col = col_start + col_add
                child_item = TreeCellMap(child_row, child_col, parent=main_key)
                cell_map[(child_row, child_col)] = child_item

                if row_add != 0 and col_add != 0:
                    # interior
                    continue
                if col_add == 0:
                    main_item.add_row_cell(child_item)
                if row_add == 0:
                    main_item.add_col_cell(child_item)

    # =========================================================================
    # Map Access
    # =========================================================================

    def _get_item_by_key(self, key: CellKey | None) -> TreeCellMap | None:
        if key is None:
            return None
        return self.map.get(key)

    def _get_item(self, row: int, col: int) -> TreeCellMap | None:
        return self.map.get((row, col))

    def _grid_cell(self, key: CellKey) -> GridCell:
        item = self.map.get(key)
        if item is None:
            raise CellLookupError(f"Key {key} is not found in {type(self).__name__}")
        if item.node is not None:
            return item.node
        if item.parent is None:
            raise CellLookupError(f"Span member {key} has no owner in {type(self).__name__}")
        return item.parent

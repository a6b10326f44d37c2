"""Tests for the full-tree projection service."""

import math

import pytest

from measure_cache import MeasureCache
from tree_cell_map import TreeCellMap
from tree_parser import parse_tree, tree_from_dict
from tree_service import TreeService
from tree_types import (
    CellCacheUpdate,
    CellLookupError,
    CellSize,
    Position,
    TreeNode,
    UnsupportedOperationError,
)


def labels(grid: list) -> list[list[object]]:
    """Owner cells as their value, member cells as their owner key."""
    return [[cell.value if isinstance(cell, TreeNode) else cell for cell in row] for row in grid]


# =============================================================================
# Grid Materialization
# =============================================================================


class TestGetGrid:
    """Tests for full grid projection."""

    def test_horizontal_grid(self) -> None:
        """Depth runs down the rows, leaves along the columns."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        assert labels(service.get_grid()) == [
            ["A", "B", (0, 1)],
            [(0, 0), "B1", "B2"],
        ]

    def test_vertical_grid(self) -> None:
        """Depth runs along the columns, leaves down the rows."""
        service = TreeService(parse_tree("A B(B1 B2) C"), is_vertical=True)
        assert labels(service.get_grid()) == [
            ["A", (0, 0)],
            ["B", "B1"],
            [(1, 0), "B2"],
            ["C", (3, 0)],
        ]

    def test_grid_dimensions(self) -> None:
        """Horizontal grids are depth x leaves, vertical grids leaves x depth."""
        definition = "A(A1(x y) A2) B C(C1 C2)"
        horizontal = TreeService(parse_tree(definition)).get_grid()
        vertical = TreeService(parse_tree(definition), is_vertical=True).get_grid()

        assert (len(horizontal), len(horizontal[0])) == (3, 6)
        assert (len(vertical), len(vertical[0])) == (6, 3)

    def test_every_member_points_at_an_owner(self) -> None:
        """Member keys always name a node-bearing cell of the same grid."""
        grid = TreeService(parse_tree("A(A1(x y) A2) B C(C1 C2)")).get_grid()
        for row in grid:
            for cell in row:
                if not isinstance(cell, TreeNode):
                    owner_row, owner_col = cell
                    assert isinstance(grid[owner_row][owner_col], TreeNode)

    def test_grid_is_memoized(self) -> None:
        """Repeated calls return the same grid object."""
        service = TreeService(parse_tree("A B"))
        assert service.get_grid() is service.get_grid()

    def test_min_level_stretches_an_internal_node(self) -> None:
        """An internal node with min_level spans rows down to that level."""
        root = tree_from_dict(
            [{"value": "V", "minLevel": 1, "children": [{"value": "v1"}, {"value": "v2"}]}]
        )
        service = TreeService(root, deep=3)
        grid = service.get_grid()

        assert service.get_main_cell_spans(0, 0) == {"col_span": 2, "row_span": 2}
        assert grid[1][1] == (0, 0)
        assert service.get_tree_node(2, 0).value == "v1"
        assert service.get_tree_node(2, 1).value == "v2"

    def test_empty_tree(self) -> None:
        """A service without a tree projects to an empty grid."""
        service = TreeService()
        assert service.get_grid() == []
        assert service.get_tree_child_length() == 0


class TestPartialGrid:
    """Tests for slicing the grid by leaf range."""

    def test_horizontal_slice(self) -> None:
        """Column slice of the leaves [1, 3), re-based to 0."""
        service = TreeService(parse_tree("A B(B1 B2) C"))
        assert labels(service.get_partial_grid(1, 3)) == [
            ["B", (0, 1)],
            ["B1", "B2"],
        ]

    def test_vertical_slice(self) -> None:
        """Row slice of the leaves [1, 3) keeps full-tree member keys."""
        service = TreeService(parse_tree("A B(B1 B2) C"), is_vertical=True)
        assert labels(service.get_partial_grid(1, 3)) == [
            ["B", "B1"],
            [(1, 0), "B2"],
        ]

    def test_full_grid_after_slice(self) -> None:
        """Cells placed by a slice line up with the full grid built afterwards."""
        service = TreeService(parse_tree("A B(B1 B2) C"), is_vertical=True)
        service.get_partial_grid(1, 3)
        assert labels(service.get_grid()) == [
            ["A", (0, 0)],
            ["B", "B1"],
            [(1, 0), "B2"],
            ["C", (3, 0)],
        ]

    def test_partial_tree(self) -> None:
        """Cloned nodes holding exactly the requested leaves."""
        service = TreeService(parse_tree("A B(B1 B2) C"))
        nodes = service.get_partial_tree(2, 4)
        assert [node.value for node in nodes] == ["B", "C"]
        assert [child.value for child in nodes[0].children] == ["B2"]


class TestExtend:
    """Tests for appending nodes to a projected tree."""

    def test_extend_appends_leaves(self) -> None:
        """New top-level nodes land to the right of existing ones."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        service.extend(parse_tree("C(C1 C2)"))

        assert service.get_tree_child_length() == 5
        assert labels(service.get_grid()) == [
            ["A", "B", (0, 1), "C", (0, 3)],
            [(0, 0), "B1", "B2", "C1", "C2"],
        ]
        assert [node.value for node in service.get_last_level_nodes()] == ["A", "B1", "B2", "C1", "C2"]

    def test_extend_vertical_keeps_placed_cells(self) -> None:
        """Vertical extension only adds rows below the existing ones."""
        service = TreeService(parse_tree("A B(B1 B2)"), is_vertical=True)
        first = service.get_grid()
        service.extend(parse_tree("C"))
        second = service.get_grid()

        assert second[:3] == first
        assert labels(second[3:]) == [["C", (3, 0)]]

    def test_extend_vertical_with_deeper_tree(self) -> None:
        """Placed leaves stretch out to the new last column."""
        service = TreeService(parse_tree("A B"), is_vertical=True)
        service.get_grid()
        service.extend(parse_tree("C(C1(C2))"))

        assert labels(service.get_grid()) == [
            ["A", (0, 0), (0, 0)],
            ["B", (1, 0), (1, 0)],
            ["C", "C1", "C2"],
        ]
        assert service.get_main_cell_spans(0, 0) == {"col_span": 3}

    def test_extend_with_bare_leaf(self) -> None:
        """A node without a ROOT wrapper is appended as one top-level leaf."""
        service = TreeService(parse_tree("A B"))
        service.extend(TreeNode("C"))

        assert service.get_tree_child_length() == 3
        assert [node.value for node in service.tree.children] == ["A", "B", "C"]

    def test_extend_with_bare_internal_node(self) -> None:
        """A bare internal node keeps its children below it."""
        service = TreeService(parse_tree("A"))
        service.extend(TreeNode("C", children=[TreeNode("c1"), TreeNode("c2")]))

        assert [node.value for node in service.tree.children] == ["A", "C"]
        assert labels(service.get_grid()) == [
            ["A", "C", (0, 1)],
            [(0, 0), "c1", "c2"],
        ]

    def test_extend_with_none(self) -> None:
        """Nothing happens without a tree."""
        service = TreeService(parse_tree("A"))
        grid = service.get_grid()
        service.extend(None)
        assert service.get_grid() is grid


# =============================================================================
# Cell Queries
# =============================================================================


class TestCellQueries:
    """Tests for node, span and alignment lookups."""

    def test_tree_node_and_membership(self) -> None:
        """Owners return their node, members return None and report is_children."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        assert service.get_tree_node(0, 1).value == "B"
        assert service.get_tree_node(0, 2) is None
        assert service.is_children(0, 2)
        assert not service.is_children(0, 1)
        assert service.has_children(0, 1)
        assert not service.has_children(1, 1)

    def test_main_cell_spans(self) -> None:
        """Only merged axes are reported."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        assert service.get_main_cell_spans(0, 0) == {"row_span": 2}
        assert service.get_main_cell_spans(0, 1) == {"col_span": 2}
        assert service.get_main_cell_spans(1, 1) == {}
        assert service.get_main_cell_spans(9, 9) == {}

    def test_unknown_cell_raises(self) -> None:
        """Lookups outside the cell map raise CellLookupError, also a KeyError."""
        service = TreeService(parse_tree("A B"))
        service.get_grid()

        with pytest.raises(CellLookupError, match=r"\(5, 5\) is not found"):
            service.is_children(5, 5)
        with pytest.raises(KeyError):
            service.has_children(5, 5)

    def test_member_without_owner_raises(self) -> None:
        """A corrupted member cell is reported instead of leaking into the grid."""
        service = TreeService(parse_tree("A B"), is_vertical=True)
        service.get_grid()
        service.map[(0, 0)] = TreeCellMap(0, 0)
        service.grid = None

        with pytest.raises(CellLookupError, match=r"\(0, 0\) has no owner"):
            service.get_grid()

    def test_fixed_depth_treats_unmapped_cells_as_members(self) -> None:
        """With a fixed depth, unmapped cells above it count as span members."""
        service = TreeService(parse_tree("A B"), deep=3)
        assert service.is_children(1, 0)
        with pytest.raises(CellLookupError):
            service.is_children(4, 0)

    def test_align_indexes_vertical(self) -> None:
        """Range edges inside a span move out to the span edges."""
        service = TreeService(parse_tree("A B(B1 B2) C"), is_vertical=True)
        service.get_grid()

        assert service.align_start_index(2, True) == 1
        assert service.align_stop_index(1, True) == 2
        assert service.align_start_index(3, True) == 3
        assert service.align_stop_index(3, True) == 3

    def test_align_indexes_horizontal(self) -> None:
        """Column edges inside a span move out to the span edges."""
        service = TreeService(parse_tree("A B(B1 B2 B3) C"))
        service.get_grid()

        assert service.align_start_index(3) == 1
        assert service.align_stop_index(2) == 3

    def test_align_is_idempotent(self) -> None:
        """Aligning an aligned index changes nothing."""
        service = TreeService(parse_tree("A(A1 A2) B C(C1 C2 C3)"), is_vertical=True)
        service.get_grid()
        for index in range(6):
            start = service.align_start_index(index, True)
            stop = service.align_stop_index(index, True)
            assert service.align_start_index(start, True) == start
            assert service.align_stop_index(stop, True) == stop
            assert start <= index <= stop

    def test_align_other_orientation_is_untouched(self) -> None:
        """Indexes along the depth axis are returned as given."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        assert service.align_start_index(1, True) == 1
        assert service.align_stop_index(1, True) == 1

    def test_factories(self) -> None:
        """Views get clamped to the leaf count."""
        service = TreeService(parse_tree("A B(B1 B2) C"))
        partial = service.create_partial_tree_service(1, 10)
        page = service.create_paginated_partial_tree_service(-2, 10)

        assert (partial.from_, partial.to) == (1, 4)
        assert (page.from_, page.to) == (0, 4)


# =============================================================================
# Size Cache
# =============================================================================


class TestSizeCache:
    """Tests for spreading measured sizes over merged cells."""

    def test_spread_over_columns(self) -> None:
        """A column span's width is split evenly and summed back."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        update = service.set_cell_cache(0, 1, cache, 200, 40)
        assert update == CellCacheUpdate(affected_rows_count=0, affected_columns_count=1)
        assert cache.cells[(0, 1)] == (100, 40)
        assert cache.cells[(0, 2)] == (100, 40)
        assert service.get_cell_cache(0, 1, cache) == CellSize(200, 40)

    def test_spread_over_rows(self) -> None:
        """A row span's height is split evenly and summed back."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        update = service.set_cell_cache(0, 0, cache, 80, 60)
        assert update == CellCacheUpdate(affected_rows_count=1, affected_columns_count=0)
        assert service.get_cell_cache(0, 0, cache) == CellSize(80, 60)

    def test_unchanged_write(self) -> None:
        """Writing the same size twice reports no change."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        assert service.set_cell_cache(0, 1, cache, 200, 40) is not None
        assert service.set_cell_cache(0, 1, cache, 200, 40) is None

    def test_member_and_plain_cells(self) -> None:
        """Member writes are ignored, plain cells store the size as given."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        assert service.set_cell_cache(0, 2, cache, 10, 10) is None
        assert not cache.has(0, 2)
        assert service.set_cell_cache(1, 1, cache, 50, 20) == CellCacheUpdate()
        assert service.get_cell_cache(1, 1, cache) == CellSize(50, 20)

    def test_columns_offset(self) -> None:
        """Cache columns are shifted by columns_offset."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        service.set_cell_cache(0, 1, cache, 200, 40, columns_offset=3)
        assert cache.has(0, 4)
        assert cache.has(0, 5)
        assert service.get_cell_cache(0, 1, cache, columns_offset=3) == CellSize(200, 40)

    def test_main_cell_width(self) -> None:
        """Merged width needs every spanned column measured."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        assert service.get_main_cell_size(cache, 0, 2, {"width": 1}) == {}
        cache.set(0, 1, 100.4, 40)
        cache.set(0, 2, 100.3, 40)
        assert service.get_main_cell_size(cache, 0, 2, {"width": 1, "color": 3}) == {
            "width": 201,
            "color": 3,
        }

    def test_main_cell_height_with_offset(self) -> None:
        """Rows above offset_top are not counted in the merged height."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache()

        assert service.get_main_cell_size(cache, 0, 0, {"height": 5}) == {}
        service.set_cell_cache(0, 0, cache, 80, 60)
        assert service.get_main_cell_size(cache, 0, 0, {}) == {"height": 60}
        assert service.get_main_cell_size(cache, 1, 0, {}, offset_top=1) == {"height": 30}

    def test_initial_column_width(self) -> None:
        """Any spanned column with an initial width counts."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()
        cache = MeasureCache(initial_column_widths={2: 50})

        assert service.has_initial_column_width(0, 1, cache)
        assert service.has_initial_column_width(1, 2, cache)
        assert not service.has_initial_column_width(1, 1, cache)


# =============================================================================
# Metadata
# =============================================================================


class TestMetadata:
    """Tests for positional cell metadata."""

    def test_top_level_leaf(self) -> None:
        """A top-level leaf spans every level and starts the sibling run."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        metadata = service.get_metadata(0, 0)
        assert metadata.levels == [Position.FIRST, Position.LAST]
        assert metadata.siblings == [Position.FIRST]
        assert metadata.root is None
        assert metadata.parent is None

    def test_last_sibling(self) -> None:
        """The last top-level node closes the run measured in leaves."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        metadata = service.get_metadata(0, 1)
        assert metadata.levels == [Position.FIRST]
        assert metadata.siblings == [Position.LAST]

    def test_nested_leaf_links_root_and_parent(self) -> None:
        """Nested cells carry the metadata of their parent and level-0 ancestor."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        metadata = service.get_metadata(1, 2)
        assert metadata.levels == [Position.LAST]
        assert metadata.siblings == [Position.LAST]
        assert metadata.parent is service.get_metadata(0, 1)
        assert metadata.root is not None
        assert metadata.root.siblings == [Position.LAST]

    def test_member_reports_owner(self) -> None:
        """A span member answers with its owner's metadata."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        assert service.get_metadata(1, 0).levels == [Position.FIRST, Position.LAST]

    def test_infinite_index_means_last_level(self) -> None:
        """math.inf addresses the last depth level."""
        service = TreeService(parse_tree("A B(B1 B2)"))
        service.get_grid()

        assert service.get_metadata(math.inf, 1) is service.get_metadata(1, 1)

    def test_index_divergence(self) -> None:
        """index_divergence 0 tags EVEN, anything else ODD."""
        root = tree_from_dict(
            [{"value": "A", "indexDivergence": 0}, {"value": "B", "indexDivergence": 1}]
        )
        service = TreeService(root)
        service.get_grid()

        assert Position.EVEN in service.get_metadata(0, 0).siblings
        assert Position.ODD in service.get_metadata(0, 1).siblings

    def test_value_node(self) -> None:
        """The values node is attached to every metadata record."""
        service = TreeService(parse_tree("A B"))
        service.get_grid()
        values = TreeNode("Values")
        service.set_value_node(values)

        assert service.get_metadata(0, 1).value_node is values

    def test_metadata_is_cached(self) -> None:
        """The same record is returned for the same cell."""
        service = TreeService(parse_tree("A B"))
        service.get_grid()
        assert service.get_metadata(0, 0) is service.get_metadata(0, 0)

    def test_unknown_cell(self) -> None:
        """Metadata of an unmapped cell raises."""
        service = TreeService(parse_tree("A B"))
        service.get_grid()
        with pytest.raises(CellLookupError, match="Can not find metadata"):
            service.get_metadata(7, 7)


# =============================================================================
# Tree Statistics and Data
# =============================================================================


class TestTreeData:
    """Tests for statistics and leaf data extraction."""

    def test_lengths(self) -> None:
        """Leaf and depth counts, with a fixed depth overriding the tree."""
        service = TreeService(parse_tree("A B(B1 B2(x y))"))
        assert service.get_tree_child_length() == 4
        assert service.get_tree_deeps_length() == 3
        assert TreeService(parse_tree("A"), deep=4).get_tree_deeps_length() == 4

    def test_extract_data(self) -> None:
        """Leaf data is reordered by the column leaves' index."""
        rows = TreeService(
            tree_from_dict([{"value": "r1", "data": [10, 20, 30]}, {"value": "r2"}]),
            is_vertical=True,
        )
        columns = TreeService(
            tree_from_dict([{"value": "c1", "index": 2}, {"value": "c2", "index": 0}])
        )
        assert rows.extract_data(columns) == [[30, 10], [None]]
        assert rows.extract_data() == []

    def test_destroy(self) -> None:
        """A destroyed service holds nothing."""
        service = TreeService(parse_tree("A B"))
        service.get_grid()
        service.destroy()

        assert service.tree is None
        assert service.map == {}
        assert service.get_last_level_nodes() == []


class TestUnsupported:
    """Tests for factories on the base class."""

    def test_base_class_factories(self) -> None:
        """Only TreeService derives views."""
        from abstract_tree_service import AbstractTreeService

        service = AbstractTreeService(parse_tree("A"))
        with pytest.raises(UnsupportedOperationError, match="not supported"):
            service.create_partial_tree_service(0, 1)
        with pytest.raises(NotImplementedError):
            service.create_paginated_partial_tree_service(0, 1)

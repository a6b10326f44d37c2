"""
Demonstration scripts for the tree-to-grid projection engine.
"""

from measure_cache import MeasureCache
from tree_node import deep_merge, get_child_length, get_children
from tree_parser import parse_tree, tree_from_dict
from ascii_render import render_service
from tree_service import TreeService

REGIONS = "Europe(France(Paris Lyon) Spain(Madrid)) Asia(Japan(Tokyo Osaka Kyoto)) Africa"
MEASURES = "Sales(Q1 Q2) Profit"


def demo() -> None:
    """Demonstrate full, windowed and paginated projections."""
    print("=" * 40)
    print("Column headers (horizontal):")
    print("=" * 40)
    columns = TreeService(parse_tree(MEASURES))
    print(render_service(columns))
    print()

    print("=" * 40)
    print("Row headers (vertical):")
    print("=" * 40)
    rows = TreeService(parse_tree(REGIONS), is_vertical=True)
    print(render_service(rows))
    print()

    print("=" * 40)
    print("Window over leaves [2, 5):")
    print("=" * 40)
    window = TreeService(parse_tree(REGIONS), is_vertical=True).create_partial_tree_service(2, 5)
    print(render_service(window))
    print(f"aligned start for 3: {window.align_start_index(3, True)}")
    print()

    print("=" * 40)
    print("Page over leaves [2, 5) (cut nodes):")
    print("=" * 40)
    page = rows.create_paginated_partial_tree_service(2, 5)
    print(render_service(page))
    for row_index in range(len(page.get_grid())):
        metadata = page.get_metadata(row_index, 0)
        print(
            f"  row {row_index}: levels={[p.value for p in metadata.levels]}"
            f" siblings={[p.value for p in metadata.siblings]}"
        )
    print()


def demo_sizes() -> None:
    """Spread a measured header size over its merged cells and read it back."""
    columns = TreeService(parse_tree(MEASURES))
    columns.get_grid()
    cache = MeasureCache()

    print("=" * 40)
    print("Merged cell sizes:")
    print("=" * 40)
    update = columns.set_cell_cache(0, 0, cache, 240, 30)
    print(f"set 'Sales' to 240x30 -> {update}")
    print(f"spans: {columns.get_main_cell_spans(0, 0)}")
    print(f"merged size: {columns.get_cell_cache(0, 0, cache)}")
    print()


def demo_chunks() -> None:
    """Stitch two server pages cut inside the same node, then extend a service."""
    first = tree_from_dict(
        {"value": "root", "isPart": True, "children": [
            {"value": "A", "children": [{"value": "a1"}]},
            {"value": "B", "isPart": True, "children": [{"value": "b1"}]},
        ]}
    )
    second = tree_from_dict(
        {"value": "root", "isPart": True, "children": [
            {"value": "B", "isPart": True, "children": [{"value": "b2"}]},
            {"value": "C", "children": [{"value": "c1"}]},
        ]}
    )
    merged = deep_merge(first, second)

    print("=" * 40)
    print("Stitched chunks:")
    print("=" * 40)
    print(f"top level: {[node.value for node in get_children(merged)]}, leaves: {get_child_length(merged)}")
    service = TreeService(merged)
    print(render_service(service))
    service.extend(parse_tree("D(d1 d2)"))
    print(render_service(service))
    print()


if __name__ == "__main__":
    demo()
    demo_sizes()
    demo_chunks()

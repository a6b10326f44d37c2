"""
Tree algebra over TreeNode structures.

Pure functions for child access, level tagging, leaf-count and depth
aggregates, tree union, boundary-chunk stitching and leaf-range slicing.

Aggregates (leaf count, depth) are memoized in a weak-keyed side-table rather
than on the nodes themselves. A node labelled ROOT never uses the table.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, fields
from typing import Callable, Iterable
from weakref import WeakKeyDictionary

from tree_types import ROOT, InvalidRangeError, TreeNode

logger = logging.getLogger(__name__)

_child_counts: WeakKeyDictionary[TreeNode, int] = WeakKeyDictionary()
_child_deeps: WeakKeyDictionary[TreeNode, int] = WeakKeyDictionary()

_NODE_FIELDS = tuple(f.name for f in fields(TreeNode))
# Per-projection fields a clone must not inherit
CLONE_EXCLUDE = frozenset({"min_level"})

NodeOrList = TreeNode | list[TreeNode] | None


@dataclass(frozen=True)
class NodeRange:
    """Node-granular slice of a sibling list with the leaf indexes it covers."""

    nodes: list[TreeNode]
    start: int
    stop: int


# =============================================================================
# Child Access and Levels
# =============================================================================


def has_children(node: TreeNode | None) -> bool:
    """True if the node has at least one child."""
    return bool(node is not None and node.children)


def get_children(node: TreeNode | None) -> list[TreeNode]:
    """The node's child list, or a fresh empty list for leaves and None."""
    if node is None or node.children is None:
        return []
    return node.children


def set_children(node: TreeNode | None, children: list[TreeNode] | None) -> None:
    if node is not None and isinstance(children, list):
        node.children = children
        invalidate(node)


def set_level(node: TreeNode | None, level: int) -> None:
    if node is not None:
        node.level = level


def get_level(node: TreeNode | None) -> int:
    """Depth of the node in its tree, -1 when it was never levelled."""
    if node is not None and node.level is not None:
        return node.level
    return -1


def wrap_in_root_node(data: NodeOrList) -> TreeNode | None:
    """Wrap a node or a list of nodes into a ROOT sentinel node."""
    if data is None:
        return None
    if isinstance(data, TreeNode):
        if data.value == ROOT:
            return data
        return TreeNode(ROOT, children=[data])
    return TreeNode(ROOT, children=data)


# =============================================================================
# Traversal
# =============================================================================


def iterate_through_tree(
    nodes: Iterable[TreeNode],
    callback: Callable[[TreeNode, TreeNode | None], None],
    parent: TreeNode | None = None,
) -> None:
    """Pre-order walk calling callback(node, parent) for every node."""
    for node in nodes:
        callback(node, parent)
        if has_children(node):
            iterate_through_tree(get_children(node), callback, node)


def find_node(
    root: TreeNode | None,
    check: Callable[[TreeNode, int], bool] | None,
    level: int = 0,
) -> TreeNode | None:
    """
    Depth-first search for a node satisfying check(node, level).

    A matching descendant takes precedence over a matching ancestor; among
    children the first subtree with a match wins.
    """
    if root is None or check is None:
        return None
    result = root if check(root, level) else None
    for child in get_children(root):
        child_result = find_node(child, check, level + 1)
        if child_result is not None:
            result = child_result
            break
    return result


def get_last_level_nodes(nodes: Iterable[TreeNode]) -> list[TreeNode]:
    """All leaves under the given nodes, in left-to-right order."""
    leaves: list[TreeNode] = []

    def walk(items: Iterable[TreeNode]) -> None:
        for item in items:
            if has_children(item):
                walk(get_children(item))
            else:
                leaves.append(item)

    walk(nodes)
    return leaves


# =============================================================================
# Aggregates
# =============================================================================


def invalidate(node: TreeNode | None) -> None:
    """Forget the memoized aggregates of a single node."""
    if node is None:
        return
    _child_counts.pop(node, None)
    _child_deeps.pop(node, None)


def get_child_length(item: NodeOrList, clear_cache: bool = False) -> int:
    """
    Number of leaves under a node or a list of nodes.

    A leaf counts as 1. With clear_cache the memoized values are recomputed
    for the whole subtree.
    """
    if item is None:
        return 0
    if isinstance(item, list):
        return sum(get_child_length(child, clear_cache) for child in item)

    children = get_children(item)
    if not children:
        return 1

    is_root = item.value == ROOT
    if not clear_cache and not is_root:
        cached = _child_counts.get(item)
        if cached is not None:
            return cached

    count = sum(get_child_length(child, clear_cache) for child in children)
    if not is_root:
        _child_counts[item] = count
    return count


def get_deep_length(item: NodeOrList, clear_cache: bool = False) -> int:
    """
    Longest root-to-leaf path under a node or a list of nodes.

    A node with a value counts one level for itself.
    """
    if item is None:
        return 0
    if isinstance(item, list):
        return max((get_deep_length(child, clear_cache) for child in item), default=0)

    count = 1 if item.value is not None else 0
    children = get_children(item)
    if not children:
        return count

    is_root = item.value == ROOT
    if not clear_cache and not is_root:
        cached = _child_deeps.get(item)
        if cached is not None:
            return count + cached

    deepest = max(get_deep_length(child, clear_cache) for child in children)
    if not is_root:
        _child_deeps[item] = deepest
    return count + deepest


# =============================================================================
# Union and Boundary Stitching
# =============================================================================


def merge(first: NodeOrList, second: NodeOrList) -> TreeNode | None:
    """Union of two trees: a ROOT node with first's top-level children, then second's."""
    if first is None and second is None:
        return None
    if first is None:
        return wrap_in_root_node(second)
    if second is None:
        return wrap_in_root_node(first)
    first_root = wrap_in_root_node(first)
    second_root = wrap_in_root_node(second)
    return wrap_in_root_node(get_children(first_root) + get_children(second_root))


def _find_last_cut(node: TreeNode | None, level: int = 0) -> TreeNode | None:
    if node is None or not node.is_part:
        return None
    node.level = level
    children = get_children(node)
    if not children:
        return node
    return _find_last_cut(children[-1], level + 1) or node


def _find_first_cut(
    node: TreeNode | None, last_cut: TreeNode | None, level: int = 0
) -> TreeNode | None:
    if node is None or not node.is_part:
        return None
    node.level = level
    if last_cut is not None and node.value == last_cut.value and node.level == last_cut.level:
        return node
    children = get_children(node)
    if not children:
        return node
    return _find_first_cut(children[0], last_cut, level + 1) or node


def deep_merge(chunk_a: TreeNode | None, chunk_b: TreeNode | None) -> TreeNode | None:
    """
    Stitch two tree fragments that were truncated at the same boundary path.

    The rightmost is_part spine of chunk_a and the leftmost is_part spine of
    chunk_b meet at a cut node matched by value and level. chunk_b's children
    at that cut are appended to chunk_a's. Walking down both spines again,
    chunk_b's remaining siblings at every level are moved into chunk_a's
    matching level; on each level the leading is_part group of chunk_b was
    already merged and is skipped once.

    chunk_a is modified in place and returned.
    """
    last_cut_a = _find_last_cut(chunk_a)
    first_cut_b = _find_first_cut(chunk_b, last_cut_a)

    merged = get_children(last_cut_a) + get_children(first_cut_b)
    set_children(last_cut_a, merged)
    logger.debug(
        "deep_merge: joined cut %r at level %d (%d children)",
        last_cut_a.value if last_cut_a is not None else None,
        get_level(last_cut_a),
        len(merged),
    )

    reached_first_cut = False
    node_a = chunk_a
    node_b = chunk_b
    while True:
        invalidate(node_a)
        children_a = get_children(node_a)
        children_b = get_children(node_b)
        node_a = children_a[-1] if children_a else None
        node_b = children_b[0] if children_b else None
        if children_a is merged or children_b is merged:
            break

        for position, item in enumerate(children_b):
            if item.is_part and not reached_first_cut and position == 0:
                # Boundary group, merged above
                if not any(child.is_part for child in get_children(item)):
                    reached_first_cut = True
            else:
                children_a.append(item)

        if node_a is None and node_b is None:
            break

    return chunk_a


# =============================================================================
# Leaf-Range Slicing
# =============================================================================


def get_nodes_by_child_count(
    roots: list[TreeNode] | None = None,
    from_: int = 0,
    to: int | None = None,
) -> NodeRange:
    """
    Minimal contiguous run of roots whose leaves intersect [from_, to).

    start/stop are the absolute leaf indexes the run covers; they overshoot
    the requested bounds when a boundary falls inside a node.
    """
    if to is not None and from_ > to:
        raise InvalidRangeError(
            f"Invalid leaf range [{from_}, {to}): start is greater than stop"
        )
    if from_ < 0:
        raise InvalidRangeError(f"Invalid leaf range start {from_}: must not be negative")

    nodes: list[TreeNode] = []
    index = 0
    start = -1
    stop = -1
    for root in roots or []:
        child_count = get_child_length(root)
        if index + child_count > from_:
            if start < 0:
                start = index
            nodes.append(root)
            if to is not None and index + child_count >= to:
                stop = index + child_count
                break
        stop = index + child_count
        index += child_count

    return NodeRange(nodes, start, stop)


def clone_node(
    node: TreeNode,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] = (),
) -> TreeNode:
    """Deep copy of a node and its subtree without per-projection fields."""
    included = set(include) if include is not None else None
    skipped = CLONE_EXCLUDE | set(exclude)

    clone = TreeNode()
    for name in _NODE_FIELDS:
        if name in skipped or (included is not None and name not in included):
            continue
        value = getattr(node, name)
        if name == "children":
            if value is not None:
                value = [clone_node(child, included, skipped) for child in value]
        else:
            value = copy.deepcopy(value)
        setattr(clone, name, value)
    return clone


def get_cut_nodes_by_child_count(
    roots: list[TreeNode] | None = None,
    from_: int = 0,
    to: int | None = None,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] = (),
) -> list[TreeNode]:
    """
    Cloned slice of roots holding exactly the leaves [from_, to).

    Unlike get_nodes_by_child_count, nodes straddling a boundary are cloned
    with their own children narrowed recursively, so the leaf range is exact.
    """
    node_range = get_nodes_by_child_count(roots, from_, to)
    nodes, start, stop = node_range.nodes, node_range.start, node_range.stop
    if not nodes or (to is not None and to == from_):
        return []

    count = len(nodes)
    no_children = {*exclude, "children"}
    first_item: TreeNode | None = None
    last_item: TreeNode | None = None
    handle_last = True

    if start < from_:
        first_original = nodes[0]
        new_to = None
        if count == 1 and to is not None:
            new_to = to - start
            handle_last = False
        first_item = clone_node(first_original, include, no_children)
        first_item.children = get_cut_nodes_by_child_count(
            get_children(first_original), from_ - start, new_to, include, exclude
        )

    if to is not None and stop > to and handle_last:
        last_original = nodes[-1]
        new_to = get_child_length(last_original) - (stop - to)
        last_item = clone_node(last_original, include, no_children)
        last_item.children = get_cut_nodes_by_child_count(
            get_children(last_original), 0, new_to, include, exclude
        )

    result: list[TreeNode] = []
    for position, node in enumerate(nodes):
        if first_item is not None and position == 0:
            result.append(first_item)
        elif last_item is not None and position == count - 1:
            result.append(last_item)
        else:
            result.append(clone_node(node, include, exclude))
    return result

"""
Tree construction utilities.

Provides two input formats:
1. Compact nested-label strings for hand-written trees
2. JSON-shaped dicts as delivered by a pivot data source
"""

from __future__ import annotations

import re
from typing import Any

from tree_types import ROOT, TreeNode

__all__ = ["parse_tree", "tree_from_dict", "tree_to_dict"]

_TOKEN = re.compile(r"\(|\)|[^\s()]+")

# data source key -> TreeNode attribute
_DICT_FIELDS = {
    "value": "value",
    "data": "data",
    "index": "index",
    "indexDivergence": "index_divergence",
    "size": "size",
    "isPart": "is_part",
    "minLevel": "min_level",
    "cf": "cf",
}
# Engine caches a data source may echo back; never read
_INTERNAL_KEYS = {"level", "isMapped", "childCount", "childDeep"}


def _position_error(message: str, definition: str, position: int) -> ValueError:
    return ValueError(
        f"{message}\n"
        f"  Definition: \"{definition}\"\n"
        f"              {' ' * position}^\n"
        f"  Labels are separated by spaces, '(' opens the children of the label before it"
    )


def parse_tree(definition: str) -> TreeNode:
    """
    Parse a tree from a compact nested-label format.

    Format:
    - Labels separated by whitespace
    - "(" directly after a label opens that label's child list, ")" closes it
    - A label starting with '*' (and at least one more character) marks a
      truncated fragment: is_part=True, label without the '*'

    Example:
        "A B(B1 B2) C(C1(x y) C2)"

        Creates a ROOT node with top-level children A, B, C where B has leaves
        B1, B2 and C has C1 (leaves x, y) and leaf C2.

    Args:
        definition: Compact tree definition

    Returns:
        ROOT node holding the top-level nodes

    Raises:
        ValueError: On unbalanced parentheses, empty child lists or an empty definition
    """
    root = TreeNode(ROOT, children=[])
    stack: list[tuple[TreeNode, int]] = [(root, -1)]
    last_label: TreeNode | None = None

    for match in _TOKEN.finditer(definition):
        token = match.group()
        position = match.start()

        if token == "(":
            if last_label is None:
                raise _position_error(
                    f"Child list without a parent label at position {position}",
                    definition,
                    position,
                )
            last_label.children = []
            stack.append((last_label, position))
            last_label = None
        elif token == ")":
            if len(stack) == 1:
                raise _position_error(
                    f"Unbalanced ')' at position {position}", definition, position
                )
            parent, _ = stack.pop()
            if not parent.children:
                raise _position_error(
                    f"Empty child list for '{parent.value}'", definition, position
                )
            last_label = None
        else:
            node = TreeNode(token)
            if token.startswith("*") and len(token) >= 2:
                node = TreeNode(token[1:], is_part=True)
            stack[-1][0].children.append(node)  # type: ignore[union-attr]
            last_label = node

    if len(stack) > 1:
        parent, position = stack[-1]
        raise _position_error(
            f"Unclosed child list of '{parent.value}'", definition, position
        )
    if not root.children:
        raise ValueError(f"Empty tree definition: \"{definition}\"")
    return root


def tree_from_dict(obj: dict[str, Any] | list[Any]) -> TreeNode:
    """
    Build TreeNodes from JSON-shaped data.

    A dict becomes one node (camelCase keys as sent by the data source); a
    list becomes a ROOT node holding one node per item. Engine cache keys
    (level, isMapped, childCount, childDeep) are ignored.

    Raises:
        ValueError: If an item is not a dict or children is not a list
    """
    if isinstance(obj, list):
        return TreeNode(ROOT, children=[tree_from_dict(item) for item in obj])
    if not isinstance(obj, dict):
        raise ValueError(
            f"Invalid tree item: {obj!r}\n"
            f"  Expected a dict with at least a 'value' key or a list of such dicts"
        )

    node = TreeNode()
    for key, item in obj.items():
        if key == "children":
            if item is None:
                continue
            if not isinstance(item, list):
                raise ValueError(
                    f"Invalid children of '{obj.get('value')}': {item!r}\n"
                    f"  'children' must be a list"
                )
            node.children = [tree_from_dict(child) for child in item]
        elif key in _DICT_FIELDS:
            setattr(node, _DICT_FIELDS[key], item)
        elif key not in _INTERNAL_KEYS:
            raise ValueError(
                f"Unknown tree key '{key}' in node '{obj.get('value')}'\n"
                f"  Valid keys: children, {', '.join(_DICT_FIELDS)}"
            )
    node.is_part = bool(node.is_part)
    return node


def tree_to_dict(node: TreeNode) -> dict[str, Any]:
    """Inverse of tree_from_dict for a single node; unset fields are left out."""
    result: dict[str, Any] = {}
    for key, attribute in _DICT_FIELDS.items():
        item = getattr(node, attribute)
        if item is None or (attribute == "is_part" and not item):
            continue
        result[key] = item
    if node.children is not None:
        result["children"] = [tree_to_dict(child) for child in node.children]
    return result

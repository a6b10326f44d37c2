"""
Shared type definitions for the tree-to-grid projection engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

ROOT = "$*$root$*$"


class Position(Enum):
    """Positional tag attached to a cell's metadata."""

    FIRST = "first"
    LAST = "last"
    EVEN = "even"  # index_divergence == 0
    ODD = "odd"


# =============================================================================
# Tree Definition Types
# =============================================================================


@dataclass(eq=False)
class TreeNode:
    """A node of a dimension tree. Leaf when it has no children.

    Nodes compare and hash by identity so they can be shared between trees
    and used as keys of the aggregate side-table.
    """

    value: str | None = None
    children: list[TreeNode] | None = None
    data: list[Any] | None = None  # leaf payload row
    index: int | None = None  # column alignment key
    index_divergence: int | None = None
    size: int | None = None  # child count declared by the data source
    is_part: bool = False  # truncated fragment, see tree_node.deep_merge
    level: int | None = None  # assigned by the engine
    min_level: int | None = None
    cf: int | None = None

    def __repr__(self) -> str:
        if self.children:
            return f"TreeNode({self.value!r}, children={len(self.children)})"
        return f"TreeNode({self.value!r})"


CellKey = tuple[int, int]
GridCell = Union[TreeNode, CellKey]
Grid = list[list[GridCell]]


@dataclass
class TreeNodeMetadata:
    """Positional information of a grid cell used for borders and styling."""

    levels: list[Position] = field(default_factory=list)
    siblings: list[Position] = field(default_factory=list)
    root: TreeNodeMetadata | None = None
    parent: TreeNodeMetadata | None = None
    value_node: TreeNode | None = None


@dataclass(frozen=True)
class CellCacheUpdate:
    """Rows/columns touched while spreading a merged cell size."""

    affected_rows_count: int = 0
    affected_columns_count: int = 0


@dataclass(frozen=True)
class CellSize:
    width: float
    height: float


class CellMeasureCache(Protocol):
    """Pixel-size cache owned by the caller and shared with the engine."""

    def column_width(self, index: int) -> float: ...

    def row_height(self, index: int) -> float: ...

    def has(self, row: int, col: int) -> bool: ...

    def has_initial_column_width(self, col: int) -> bool: ...

    def set(self, row: int, col: int, width: float, height: float) -> bool: ...

    def get_width(self, row: int, col: int) -> float: ...

    def get_height(self, row: int, col: int) -> float: ...


# =============================================================================
# Errors
# =============================================================================


class TreeServiceError(Exception):
    """Base class for projection engine failures."""


class CellLookupError(TreeServiceError, KeyError):
    """A coordinate has no entry in the cell map."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidRangeError(TreeServiceError, ValueError):
    """A leaf-index range is reversed or starts below zero."""


class UnsupportedOperationError(TreeServiceError, NotImplementedError):
    """The operation is not available on this service variant."""

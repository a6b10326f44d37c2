"""
In-memory cell size cache for demos and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tree_types import CellKey


@dataclass
class MeasureCache:
    """
    Measured width/height per grid cell.

    Column widths and row heights are the largest measured sizes in that
    column/row, falling back to an initial column width and then to the
    defaults.
    """

    default_width: float = 100
    default_height: float = 30
    initial_column_widths: dict[int, float] = field(default_factory=dict)
    cells: dict[CellKey, tuple[float, float]] = field(default_factory=dict)

    def has(self, row: int, col: int) -> bool:
        return (row, col) in self.cells

    def has_initial_column_width(self, col: int) -> bool:
        return col in self.initial_column_widths

    def set(self, row: int, col: int, width: float, height: float) -> bool:
        """Store a size; True if the cache changed."""
        size = (width, height)
        if self.cells.get((row, col)) == size:
            return False
        self.cells[(row, col)] = size
        return True

    def get_width(self, row: int, col: int) -> float:
        size = self.cells.get((row, col))
        if size is None:
            return self.initial_column_widths.get(col, self.default_width)
        return size[0]

    def get_height(self, row: int, col: int) -> float:
        size = self.cells.get((row, col))
        if size is None:
            return self.default_height
        return size[1]

    def column_width(self, index: int) -> float:
        widths = [width for (_, col), (width, _) in self.cells.items() if col == index]
        if widths:
            return max(widths)
        return self.initial_column_widths.get(index, self.default_width)

    def row_height(self, index: int) -> float:
        heights = [height for (row, _), (_, height) in self.cells.items() if row == index]
        if heights:
            return max(heights)
        return self.default_height

    def clear(self) -> None:
        self.cells.clear()

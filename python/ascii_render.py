"""
ASCII rendering of projected grids.

Span owners print their label; span members print blank continuation, and
the column separator is dropped inside a span that runs along a row. Meant
for demos and debugging, not for the final table rendering.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import simple_chalk as chalk  # type: ignore[import-untyped]

from tree_types import ROOT, Grid, TreeNode

logger = logging.getLogger(__name__)

ColorFn = Callable[[TreeNode], Callable[[str], str]]

LEVEL_COLORS = [
    chalk.red,
    chalk.green,
    chalk.yellow,
    chalk.blue,
    chalk.magenta,
    chalk.cyan,
    chalk.redBright,
    chalk.greenBright,
    chalk.yellowBright,
    chalk.blueBright,
]


def level_color(node: TreeNode) -> Callable[[str], str]:
    """Chalk color for a node by its depth level; white when not levelled."""
    if node.level is None or node.level < 0:
        return chalk.white
    return LEVEL_COLORS[node.level % len(LEVEL_COLORS)]


def cell_label(node: TreeNode, cell_width: int) -> str:
    label = "" if node.value is None or node.value == ROOT else str(node.value)
    if node.is_part:
        label = "*" + label
    return label[:cell_width].ljust(cell_width)


def render_grid(grid: Grid, cell_width: int = 8, color_fn: ColorFn | None = None) -> str:
    """
    Render a grid from get_grid() as a boxed character table.

    Args:
        grid: 2D list of TreeNode (span owners) and owner keys (span members)
        cell_width: Characters per cell (default 8)
        color_fn: Optional function returning a colorizer for a node's label

    Returns:
        Multi-line string, empty for an empty grid
    """
    if not grid or not grid[0]:
        return ""

    cols = len(grid[0])
    inner_width = cols * (cell_width + 1) - 1
    lines = ["┌" + "─" * inner_width + "┐"]

    for row_index, row in enumerate(grid):
        parts: list[str] = []
        for cell in row:
            if isinstance(cell, TreeNode):
                text = cell_label(cell, cell_width)
                if color_fn is not None:
                    text = color_fn(cell)(text)
                parts.append("│" + text)
            else:
                owner_row, _ = cell
                # Continuation of a span along this row
                separator = " " if owner_row == row_index else "│"
                parts.append(separator + " " * cell_width)
        lines.append("".join(parts) + "│")

    lines.append("└" + "─" * inner_width + "┘")
    return "\n".join(lines)


def render_service(service: Any, cell_width: int = 8, color: bool = False) -> str:
    """Render the grid of any projection service, optionally colored by level."""
    grid = service.get_grid()
    rows = len(grid)
    cols = len(grid[0]) if grid else 0
    logger.info("render_service: %s %dx%d, cell_width=%d", type(service).__name__, rows, cols, cell_width)
    return render_grid(grid, cell_width, level_color if color else None)

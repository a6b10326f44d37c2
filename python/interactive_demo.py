"""
Interactive pager over a paginated tree projection.
Display one page of a tree grid and step through pages with the keyboard.
"""

import logging
import sys

import readchar
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ascii_render import level_color, render_grid, render_service
from paginated_tree_service import PaginatedPartialTreeService
from tree_parser import parse_tree
from tree_service import TreeService
from tree_types import TreeNode


class InteractiveDemo:
    """Page through a tree projection."""

    def __init__(self, tree: TreeNode, page_size: int = 4, is_vertical: bool = True) -> None:
        self.tree = tree
        self.page_size = page_size
        self.is_vertical = is_vertical
        self.page = 0
        self.console = Console()
        self.status_message = "Ready"
        self.service = TreeService(tree, is_vertical=is_vertical)

    @property
    def leaf_count(self) -> int:
        return self.service.get_tree_child_length()

    @property
    def page_count(self) -> int:
        return max(1, -(-self.leaf_count // self.page_size))

    def current_page(self) -> PaginatedPartialTreeService:
        start = self.page * self.page_size
        return self.service.create_paginated_partial_tree_service(start, start + self.page_size)

    def generate_display(self) -> Panel:
        """Generate the current display with page grid and status."""
        page = self.current_page()
        grid_text = render_grid(page.get_grid(), cell_width=8, color_fn=level_color)

        status = Text()
        status.append("Page: ", style="bold")
        status.append(f"{self.page + 1}/{self.page_count}")
        status.append("  Leaves: ", style="bold")
        status.append(f"[{page.from_}, {page.to}) of {self.leaf_count}")
        status.append("  Orientation: ", style="bold")
        status.append("vertical\n\n" if self.is_vertical else "horizontal\n\n")

        # Convert ANSI-colored grid text to Rich Text properly
        status.append(Text.from_ansi(grid_text))
        status.append("\n\n")
        status.append("Keys:\n", style="bold cyan")
        status.append("  N - Next page\n")
        status.append("  P - Previous page\n")
        status.append("  V - Toggle orientation\n")
        status.append("  Q - Quit\n\n")

        status.append("─" * 40 + "\n", style="dim")
        status.append("Status: ", style="bold")
        status.append(self.status_message)

        return Panel(status, title="Tree Grid Pager", border_style="green", width=100)

    def move(self, step: int) -> None:
        target = self.page + step
        if target < 0 or target >= self.page_count:
            self.status_message = f"✗ No page {target + 1}"
            return
        self.page = target
        self.status_message = f"✓ Showing page {self.page + 1}"

    def toggle_orientation(self) -> None:
        self.service.destroy()
        self.is_vertical = not self.is_vertical
        self.service = TreeService(self.tree, is_vertical=self.is_vertical)
        self.status_message = "✓ Switched to " + ("vertical" if self.is_vertical else "horizontal")

    def run(self) -> None:
        """Run the pager until the user quits."""
        with Live(self.generate_display(), console=self.console, refresh_per_second=4) as live:
            try:
                while True:
                    live.update(self.generate_display())

                    key = readchar.readkey()

                    if key.lower() == 'q':
                        self.status_message = "Quitting..."
                        live.update(self.generate_display())
                        break
                    elif key.lower() == 'n':
                        self.move(1)
                    elif key.lower() == 'p':
                        self.move(-1)
                    elif key.lower() == 'v':
                        self.toggle_orientation()
                    else:
                        self.status_message = f"Unknown key: {repr(key)}"

            except KeyboardInterrupt:
                self.status_message = "Interrupted by user"
                live.update(self.generate_display())


LAYOUTS = dict(
    regions="Europe(France(Paris Lyon Lille) Spain(Madrid Sevilla)) Asia(Japan(Tokyo Osaka Kyoto) India(Delhi)) Africa(Kenya)",
    flat="Q1 Q2 Q3 Q4 Q5 Q6 Q7 Q8",
    deep="Total(Hardware(Laptops(Pro Air) Phones(Flagship Budget)) Software(Licenses Support))",
)


def main(tree: TreeNode) -> None:
    """Run the pager over a sample tree."""
    demo = InteractiveDemo(tree, page_size=4)
    demo.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == 'sublime':
        # Running from IDE - just render every page once
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

        print('Running from IDE - rendering all pages')
        print()

        service = TreeService(parse_tree(LAYOUTS['regions']), is_vertical=True)
        count = service.get_tree_child_length()
        for start in range(0, count, 4):
            print(f"Leaves [{start}, {min(start + 4, count)}):")
            print(render_service(service.create_paginated_partial_tree_service(start, start + 4)))
            print()
    else:
        main(parse_tree(LAYOUTS[sys.argv[1] if len(sys.argv) > 1 else 'regions']))

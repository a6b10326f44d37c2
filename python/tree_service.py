"""
Full-tree projection service, the entry point of the engine.
"""

from __future__ import annotations

from abstract_tree_service import AbstractTreeService
from paginated_tree_service import PaginatedPartialTreeService
from partial_tree_service import PartialTreeService


class TreeService(AbstractTreeService):
    """Projection of a whole tree that can derive windowed and paginated views."""

    def create_partial_tree_service(self, from_: int, to: int) -> PartialTreeService:
        """Read-only view of the leaves [from_, to) sharing this service's cell map."""
        count = self.get_tree_child_length()
        return PartialTreeService(self, from_, min(count, to))

    def create_paginated_partial_tree_service(
        self, from_: int, to: int
    ) -> PaginatedPartialTreeService:
        """Independent page of the leaves [from_, to) built from the same tree."""
        count = self.get_tree_child_length()
        return PaginatedPartialTreeService(
            self.tree,
            self.is_vertical,
            self.deep,
            max(from_, 0),
            min(count, to),
        )

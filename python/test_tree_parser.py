"""Tests for tree_parser module."""

import pytest

from tree_parser import parse_tree, tree_from_dict, tree_to_dict
from tree_types import ROOT


class TestParseTree:
    """Tests for the compact nested-label parser."""

    def test_flat_labels(self) -> None:
        """Whitespace separated labels become top-level leaves."""
        root = parse_tree("A B C")

        assert root.value == ROOT
        assert [node.value for node in root.children] == ["A", "B", "C"]
        assert all(node.children is None for node in root.children)

    def test_nested_children(self) -> None:
        """Parentheses after a label hold its children."""
        root = parse_tree("A B(B1 B2) C(C1(x y) C2)")
        a, b, c = root.children

        assert a.children is None
        assert [node.value for node in b.children] == ["B1", "B2"]
        assert [node.value for node in c.children[0].children] == ["x", "y"]
        assert c.children[1].value == "C2"

    def test_whitespace_is_flexible(self) -> None:
        """Line breaks and spaces around parentheses are ignored."""
        root = parse_tree("""
            A (
                A1
                A2 )
        """)
        assert [node.value for node in root.children[0].children] == ["A1", "A2"]

    def test_part_marker(self) -> None:
        """A leading '*' marks a truncated fragment."""
        root = parse_tree("*B(b1) C")
        b, c = root.children

        assert b.value == "B"
        assert b.is_part
        assert not c.is_part

    def test_lone_star_is_a_label(self) -> None:
        """A single '*' is kept as a plain label."""
        root = parse_tree("*")
        assert root.children[0].value == "*"
        assert not root.children[0].is_part

    def test_child_list_without_parent(self) -> None:
        """An opening parenthesis needs a label before it."""
        with pytest.raises(ValueError, match="Child list without a parent label"):
            parse_tree("(A)")

    def test_unbalanced_close(self) -> None:
        """A closing parenthesis needs an open child list."""
        with pytest.raises(ValueError, match=r"Unbalanced '\)' at position 1"):
            parse_tree("A)")

    def test_empty_child_list(self) -> None:
        """Child lists must hold at least one label."""
        with pytest.raises(ValueError, match="Empty child list for 'A'"):
            parse_tree("A()")

    def test_unclosed_child_list(self) -> None:
        """Every child list must be closed."""
        with pytest.raises(ValueError, match="Unclosed child list of 'B'"):
            parse_tree("A B(B1")

    def test_empty_definition(self) -> None:
        """A definition without labels is rejected."""
        with pytest.raises(ValueError, match="Empty tree definition"):
            parse_tree("   ")


class TestTreeFromDict:
    """Tests for JSON-shaped tree input."""

    def test_list_becomes_root(self) -> None:
        """A list of items is wrapped into a ROOT node."""
        root = tree_from_dict([{"value": "A"}, {"value": "B", "children": [{"value": "b"}]}])

        assert root.value == ROOT
        assert [node.value for node in root.children] == ["A", "B"]
        assert root.children[1].children[0].value == "b"

    def test_camel_case_fields(self) -> None:
        """Data source keys map onto node fields."""
        node = tree_from_dict(
            {
                "value": "A",
                "data": [1, 2],
                "index": 3,
                "indexDivergence": 1,
                "size": 2,
                "isPart": True,
                "minLevel": 0,
                "cf": 5,
            }
        )

        assert node.data == [1, 2]
        assert node.index == 3
        assert node.index_divergence == 1
        assert node.size == 2
        assert node.is_part
        assert node.min_level == 0
        assert node.cf == 5

    def test_engine_keys_are_ignored(self) -> None:
        """Echoed engine caches do not leak into the node."""
        node = tree_from_dict({"value": "A", "level": 4, "isMapped": True, "childCount": 9})
        assert node.level is None

    def test_unknown_key(self) -> None:
        """Misspelled keys are reported."""
        with pytest.raises(ValueError, match="Unknown tree key 'valu'"):
            tree_from_dict({"valu": "A"})

    def test_children_must_be_a_list(self) -> None:
        """A non-list children value is rejected."""
        with pytest.raises(ValueError, match="'children' must be a list"):
            tree_from_dict({"value": "A", "children": {"value": "b"}})

    def test_item_must_be_a_dict(self) -> None:
        """Scalars are not tree items."""
        with pytest.raises(ValueError, match="Invalid tree item"):
            tree_from_dict([{"value": "A"}, "B"])

    def test_to_dict(self) -> None:
        """Unset fields are left out when converting back."""
        node = tree_from_dict({"value": "A", "isPart": True, "children": [{"value": "a", "index": 0}]})
        assert tree_to_dict(node) == {
            "value": "A",
            "isPart": True,
            "children": [{"value": "a", "index": 0}],
        }

"""Unit tests for the Newick reader."""

from __future__ import annotations

from pathlib import Path

import pytest

from backend.app.services.newick import (
    MalformedTreeError,
    NewickParser,
    TreeParseError,
    parse,
    parse_file,
    tokenize,
)


class TestTokenize:
    def test_keeps_delimiters(self):
        assert tokenize("(A:1,B);") == ["(", "A", ":", "1", ",", "B", ")", ";"]

    def test_drops_whitespace_around_delimiters(self):
        assert tokenize(" ( A : 1 ,\n B ) ;\n") == ["(", "A", ":", "1", ",", "B", ")", ";"]

    def test_keeps_inner_label_spaces(self):
        assert "Homo sapiens" in tokenize("(Homo sapiens,B);")


class TestParseStructure:
    def test_two_leaves_with_lengths(self):
        """Root gets exactly two named children with their branch lengths."""
        root = parse("(A:1,B:2);")
        assert [child.name for child in root.children] == ["A", "B"]
        assert [child.branch_length for child in root.children] == [1.0, 2.0]
        assert all(not child.children for child in root.children)

    def test_missing_length_is_none(self):
        root = parse("(A,B:0.5);")
        assert root.children[0].branch_length is None
        assert root.children[1].branch_length == 0.5

    def test_internal_label_and_length(self):
        root = parse("((A,B)inner:0.25,C)root;")
        inner = root.children[0]
        assert inner.name == "inner"
        assert inner.branch_length == 0.25
        assert root.name == "root"

    def test_single_leaf_tree(self):
        root = parse("A;")
        assert root.name == "A"
        assert root.is_leaf

    def test_sibling_order_preserved(self):
        root = parse("(D,C,B,A);")
        assert [child.name for child in root.children] == ["D", "C", "B", "A"]

    def test_trailing_dot_length(self):
        root = parse("(B:0.,C:1e-3);")
        assert root.children[0].branch_length == 0.0
        assert root.children[1].branch_length == pytest.approx(0.001)

    def test_deep_nesting_does_not_recurse(self):
        depth = 5000
        text = "(" * depth + "A" + ")" * depth + ";"
        node = parse(text)
        for _ in range(depth):
            assert len(node.children) == 1
            node = node.children[0]
        assert node.name == "A"

    def test_clades_are_immutable(self):
        root = parse("(A,B);")
        with pytest.raises(AttributeError):
            root.name = "changed"  # type: ignore[misc]
        assert isinstance(root.children, tuple)


class TestSynthesizedNames:
    def test_unnamed_internal_node_gets_unique_name(self):
        root = parse("((A,B),C);")
        inner = root.children[0]
        assert inner.name
        assert inner.name not in {"A", "B", "C"}
        assert inner.name != root.name

    def test_names_follow_prefix_and_counter(self):
        root = parse("((A,B),C);")
        assert root.children[0].name == "Node_1"
        assert root.name == "Node_2"

    def test_empty_leaf_labels_are_named(self):
        root = parse("(,,);")
        names = [child.name for child in root.children] + [root.name]
        assert len(set(names)) == 4
        assert all(name.startswith("Node_") for name in names)

    def test_counter_not_shared_across_parses(self):
        first = parse("((A,B),C);")
        second = parse("((A,B),C);")
        assert first.children[0].name == second.children[0].name == "Node_1"

    def test_counter_persists_on_one_parser(self):
        parser = NewickParser(name_prefix="X")
        first = parser.parse("(A,B);")
        second = parser.parse("(A,B);")
        assert first.name == "X1"
        assert second.name == "X2"


class TestMalformed:
    @pytest.mark.parametrize(
        "text",
        [
            "(A,B",
            "(A:x,B);",
            "(A,B);extra",
            "",
            "   ",
            "(A,B)",
            "A,B;",
            "(A,B));",
            "((A,B);",
            "(A:,B);",
            "(A:1:2,B);",
            "(A,B):;",
            "(A:-1,B);",
            "(A:nan,B);",
            "(A:inf,B);",
            "(A)(B);",
            "(A,B);;",
            "(A:1_0,B);",
            "(A:0x1,B);",
        ],
    )
    def test_rejects(self, text):
        with pytest.raises(MalformedTreeError):
            parse(text)

    def test_is_tree_parse_error(self):
        with pytest.raises(TreeParseError):
            parse("(A,B")

    def test_trailing_whitespace_after_terminator_is_fine(self):
        root = parse("(A,B);  \n")
        assert len(root.children) == 2

    def test_message_names_offending_token(self):
        with pytest.raises(MalformedTreeError, match="'x'"):
            parse("(A:x,B);")


class TestParseFile:
    def test_reads_file(self, tree_file: Path):
        root = parse_file(tree_file)
        assert len(root.children) == 2

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            parse_file(tmp_path / "missing.nwk")

    def test_malformed_file(self, tmp_path: Path):
        path = tmp_path / "bad.nwk"
        path.write_text("(A,B", encoding="utf-8")
        with pytest.raises(MalformedTreeError):
            parse_file(path)

    def test_unreadable_file_is_logged(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        # A directory exists but cannot be read as text.
        with caplog.at_level("ERROR"):
            with pytest.raises(TreeParseError, match="Failed to read tree file"):
                parse_file(tmp_path)
        record = caplog.records[-1]
        assert record.getMessage() == "Failed to read tree file"
        assert record.exc_info is not None

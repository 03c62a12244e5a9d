"""Unit tests for per-node sample aggregation."""

from __future__ import annotations

from datetime import date

import pytest

from backend.app.services.aggregation import aggregate, date_range, node_label, parse_date
from backend.app.services.sample_store import SampleStore


def _aggregate(node, store: SampleStore):
    return aggregate(node, store.samples, store.metadata)


class TestLeafAggregation:
    def test_leaf_samples_match_mapping(self, five_taxa_tree, sample_store):
        leaf = five_taxa_tree.find("A")
        result = _aggregate(leaf, sample_store)
        assert result.total_taxa == 1
        assert result.total_samples == 2
        assert [sample.coordinate for sample in result.samples] == list(sample_store.samples["A"])
        assert [sample.collection_date for sample in result.samples] == ["2019-03-01", "2019-05-12"]
        assert result.node_label == "Taxon A"

    def test_missing_leaf_yields_empty(self, five_taxa_tree, sample_store):
        result = _aggregate(five_taxa_tree.find("D"), sample_store)
        assert result.total_samples == 0
        assert result.samples == []
        assert result.total_taxa == 1
        assert result.earliest_date is None

    def test_missing_metadata_leaves_date_empty(self, five_taxa_tree):
        store = SampleStore({"E": [(1.0, 2.0), (3.0, 4.0)]}, {"E": ["2001"]})
        result = _aggregate(five_taxa_tree.find("E"), store)
        assert [sample.collection_date for sample in result.samples] == ["2001", None]


class TestInternalAggregation:
    def test_root_totals(self, five_taxa_tree, sample_store):
        result = _aggregate(five_taxa_tree.root, sample_store)
        assert result.total_taxa == 5
        assert result.total_samples == 6
        assert [sample.taxon for sample in result.samples] == ["A", "A", "B", "C", "E", "E"]
        assert result.node_label == f"Node {five_taxa_tree.root.name}"

    def test_additivity(self, five_taxa_tree, sample_store):
        """Internal results are the ordered concatenation of the children's."""
        for node in five_taxa_tree.iter_nodes():
            if not node.children:
                continue
            parent = _aggregate(node, sample_store)
            children = [_aggregate(child, sample_store) for child in node.children]
            assert parent.total_samples == sum(child.total_samples for child in children)
            assert parent.total_taxa == sum(child.total_taxa for child in children)
            assert parent.samples == [sample for child in children for sample in child.samples]

    def test_date_range(self, five_taxa_tree, sample_store):
        result = _aggregate(five_taxa_tree.root, sample_store)
        assert result.earliest_date == date(2017, 7, 4)
        assert result.latest_date == date(2020, 1, 15)

    def test_inputs_untouched(self, five_taxa_tree, sample_store):
        before = dict(sample_store.samples)
        _aggregate(five_taxa_tree.root, sample_store)
        _aggregate(five_taxa_tree.root, sample_store)
        assert dict(sample_store.samples) == before

    def test_repeatable(self, five_taxa_tree, sample_store):
        first = _aggregate(five_taxa_tree.root, sample_store)
        second = _aggregate(five_taxa_tree.root, sample_store)
        assert first == second
        assert first.sequence == 0

    def test_node_id_passthrough(self, five_taxa_tree, sample_store):
        result = aggregate(
            five_taxa_tree.root, sample_store.samples, sample_store.metadata, node_id="n1"
        )
        assert result.node_id == "n1"

    def test_plain_dicts_accepted(self, five_taxa_tree):
        result = aggregate(five_taxa_tree.root, {"B": [(0.0, 0.0)]}, {})
        assert result.total_samples == 1
        assert result.samples[0].taxon == "B"


class TestHelpers:
    def test_node_label(self, five_taxa_tree):
        assert node_label(five_taxa_tree.find("E")) == "Taxon E"
        assert node_label(five_taxa_tree.root).startswith("Node ")

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2020-01-15", date(2020, 1, 15)),
            ("2020/01/15", date(2020, 1, 15)),
            ("15-Jan-2020", date(2020, 1, 15)),
            ("2020-01", date(2020, 1, 1)),
            ("2020", date(2020, 1, 1)),
            ("", None),
            (None, None),
            ("not a date", None),
        ],
    )
    def test_parse_date(self, value, expected):
        assert parse_date(value) == expected

    def test_date_range_empty(self):
        assert date_range([None, "junk"]) == (None, None)

"""Collect the geographic samples below a tree node."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..models.samples import AggregatedSample, AggregationResult
from .newick import Clade
from .sample_store import Coordinate
from .tree_model import is_leaf, leaves_under

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d-%b-%Y", "%Y-%m", "%Y")


def node_label(node: Clade) -> str:
    if is_leaf(node):
        return f"Taxon {node.name}"
    return f"Node {node.name}"


def aggregate(
    node: Clade,
    sample_mapping: Mapping[str, Sequence[Coordinate]],
    metadata_mapping: Mapping[str, Sequence[Optional[str]]],
    node_id: Optional[str] = None,
) -> AggregationResult:
    """Aggregate every sample recorded for the tips below ``node``.

    Tips without an entry in ``sample_mapping`` contribute nothing. Metadata is
    matched to coordinates by position; a missing entry leaves the
    collection date empty. The inputs are only read.
    """

    taxa = [node] if is_leaf(node) else leaves_under(node)

    samples: list[AggregatedSample] = []
    for taxon in taxa:
        coordinates = sample_mapping.get(taxon.name, ())
        dates = metadata_mapping.get(taxon.name, ())
        for index, (latitude, longitude) in enumerate(coordinates):
            samples.append(
                AggregatedSample(
                    taxon=taxon.name,
                    latitude=latitude,
                    longitude=longitude,
                    collection_date=dates[index] if index < len(dates) else None,
                )
            )

    earliest, latest = date_range(sample.collection_date for sample in samples)

    return AggregationResult(
        node_id=node_id,
        node_label=node_label(node),
        total_samples=len(samples),
        total_taxa=len(taxa),
        samples=samples,
        earliest_date=earliest,
        latest_date=latest,
    )


def date_range(values: Iterable[Optional[str]]) -> tuple[Optional[date], Optional[date]]:
    parsed = [day for day in (parse_date(value) for value in values) if day is not None]
    if not parsed:
        return (None, None)
    return (min(parsed), max(parsed))


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None

"""Download formats for subtrees and aggregated samples."""

from __future__ import annotations

import io
from typing import Any

import pandas as pd
from Bio import Phylo
from Bio.Phylo import Newick

from ..models.samples import AggregationResult
from .newick import Clade

SAMPLE_COLUMNS = ["taxon", "latitude", "longitude", "collection_date"]


def to_phylo(node: Clade) -> Newick.Tree:
    """Convert the subtree rooted at ``node`` into a Biopython tree."""

    converted: dict[Clade, Newick.Clade] = {}
    stack: list[tuple[Clade, bool]] = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if expanded:
            converted[current] = Newick.Clade(
                branch_length=current.branch_length,
                name=current.name,
                clades=[converted.pop(child) for child in current.children],
            )
            continue
        stack.append((current, True))
        for child in reversed(current.children):
            stack.append((child, False))
    return Newick.Tree(root=converted[node], rooted=True)


def subtree_newick(node: Clade) -> str:
    """Write the subtree rooted at ``node`` as Newick text.

    Branch lengths are written with ``repr`` so they read back unchanged, and
    absent lengths stay absent. Biopython's Newick writer would print them as
    ``:0`` at a fixed precision.
    """

    written: dict[Clade, str] = {}
    stack: list[tuple[Clade, bool]] = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if not expanded and current.children:
            stack.append((current, True))
            for child in reversed(current.children):
                stack.append((child, False))
            continue
        text = current.name
        if current.children:
            text = "(" + ",".join(written.pop(child) for child in current.children) + ")" + text
        if current.branch_length is not None:
            text += ":" + repr(current.branch_length)
        written[current] = text
    return written[node] + ";"


def subtree_phyloxml(node: Clade) -> str:
    handle = io.StringIO()
    Phylo.write(to_phylo(node), handle, "phyloxml")
    return handle.getvalue()


def samples_frame(result: AggregationResult) -> pd.DataFrame:
    rows = [sample.model_dump() for sample in result.samples]
    return pd.DataFrame(rows, columns=SAMPLE_COLUMNS)


def samples_csv(result: AggregationResult) -> str:
    return samples_frame(result).to_csv(index=False)


def samples_geojson(result: AggregationResult) -> dict[str, Any]:
    features: list[dict[str, Any]] = []
    for sample in result.samples:
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [sample.longitude, sample.latitude],
                },
                "properties": {
                    "taxon": sample.taxon,
                    "collection_date": sample.collection_date,
                },
            }
        )
    return {
        "type": "FeatureCollection",
        "features": features,
        "properties": {
            "node_id": result.node_id,
            "node_label": result.node_label,
            "total_samples": result.total_samples,
            "total_taxa": result.total_taxa,
        },
    }

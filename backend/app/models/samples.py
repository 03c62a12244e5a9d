"""Data models for per-node sample aggregation."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class AggregatedSample(BaseModel):
    """One geographic sample attributed to a taxon."""

    taxon: str = Field(..., description="Name of the tip the sample belongs to.")
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    collection_date: Optional[str] = Field(default=None, description="Collection date as recorded in the sample table.")

    @property
    def coordinate(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class AggregationResult(BaseModel):
    """Samples and summary statistics for everything below one tree node."""

    node_id: Optional[str] = Field(default=None, description="Identifier of the selected node in the loaded tree.")
    node_label: str = Field(..., description="'Taxon <name>' for tips, 'Node <name>' for internal nodes.")
    total_samples: int = Field(default=0, ge=0)
    total_taxa: int = Field(default=1, ge=1)
    samples: list[AggregatedSample] = Field(
        default_factory=list,
        description="Samples concatenated tip by tip in left-to-right tree order.",
    )
    earliest_date: Optional[date] = Field(default=None, description="Earliest parseable collection date.")
    latest_date: Optional[date] = Field(default=None, description="Latest parseable collection date.")
    sequence: int = Field(
        default=0,
        ge=0,
        description="Selection stamp; larger values supersede smaller ones. Zero when not produced by a selection.",
    )


class SelectionRequest(BaseModel):
    node_id: str = Field(..., description="Identifier of the node to select.")


class RenderState(BaseModel):
    """What the renderer currently shows: the summary panel and the map markers."""

    summary: Optional[AggregationResult] = None
    markers: list[AggregatedSample] = Field(default_factory=list)
    render_count: int = Field(default=0, ge=0, description="Number of times markers were pushed to the map.")

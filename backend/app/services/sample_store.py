"""Read-only per-taxon sample coordinates and collection metadata."""

from __future__ import annotations

import csv
import logging
import math
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

Coordinate = tuple[float, float]

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "taxon": ("taxon", "name", "tip", "leaf"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lon", "lng", "long"),
    "date": ("date", "collection_date", "sampling_date"),
}
REQUIRED_COLUMNS = ("taxon", "latitude", "longitude")


class SampleTableError(ValueError):
    """Raised when a sample table cannot be read or lacks required columns."""


class SampleStore:
    """Two parallel mappings keyed by tip name.

    ``samples[name][i]`` is the i-th ``(latitude, longitude)`` pair recorded for
    the tip and ``metadata[name][i]`` its collection date (or ``None``).
    """

    def __init__(
        self,
        samples: Mapping[str, Sequence[Coordinate]],
        metadata: Optional[Mapping[str, Sequence[Optional[str]]]] = None,
    ) -> None:
        checked: dict[str, tuple[Coordinate, ...]] = {}
        for name, coords in samples.items():
            checked[name] = tuple(_check_coordinate(name, lat, lon) for lat, lon in coords)
        self._samples = MappingProxyType(checked)
        self._metadata = MappingProxyType(
            {name: tuple(values) for name, values in (metadata or {}).items()}
        )

    @property
    def samples(self) -> Mapping[str, tuple[Coordinate, ...]]:
        return self._samples

    @property
    def metadata(self) -> Mapping[str, tuple[Optional[str], ...]]:
        return self._metadata

    @property
    def total_samples(self) -> int:
        return sum(len(coords) for coords in self._samples.values())

    def __len__(self) -> int:
        return len(self._samples)

    def count_for(self, name: str) -> int:
        return len(self._samples.get(name, ()))

    def missing_taxa(self, names: Iterable[str]) -> list[str]:
        return [name for name in names if name not in self._samples]

    @classmethod
    def empty(cls) -> "SampleStore":
        return cls({})

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "SampleStore":
        columns = _resolve_columns(frame.columns)
        missing = [column for column in REQUIRED_COLUMNS if column not in columns]
        if missing:
            raise SampleTableError(
                f"Sample table is missing required column(s): {', '.join(missing)}"
            )

        taxa = frame[columns["taxon"]].astype(str).str.strip()
        latitudes = pd.to_numeric(frame[columns["latitude"]], errors="coerce")
        longitudes = pd.to_numeric(frame[columns["longitude"]], errors="coerce")
        if "date" in columns:
            dates = frame[columns["date"]].fillna("").astype(str).str.strip()
        else:
            dates = pd.Series([""] * len(frame), index=frame.index)

        valid = (
            (taxa != "")
            & latitudes.between(-90.0, 90.0)
            & longitudes.between(-180.0, 180.0)
        )
        dropped = int((~valid).sum())
        if dropped:
            logger.warning(
                "Dropped sample rows with missing taxon or invalid coordinates",
                extra={"dropped": dropped, "rows": len(frame)},
            )

        samples: dict[str, list[Coordinate]] = {}
        metadata: dict[str, list[Optional[str]]] = {}
        for taxon, latitude, longitude, collected in zip(
            taxa[valid], latitudes[valid], longitudes[valid], dates[valid]
        ):
            samples.setdefault(taxon, []).append((float(latitude), float(longitude)))
            metadata.setdefault(taxon, []).append(collected or None)

        return cls(samples, metadata)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, object]]) -> "SampleStore":
        """Build a store from row mappings such as ``{"taxon": "A", "lat": 1.0, "lon": 2.0}``.

        Keys follow the same aliases and row filtering as :meth:`from_table`.
        """

        frame = pd.DataFrame.from_records(list(records))
        if frame.empty:
            return cls.empty()
        return cls.from_frame(frame)

    @classmethod
    def from_table(cls, table_path: Path) -> "SampleStore":
        table_path = Path(table_path)
        if not table_path.exists():
            raise FileNotFoundError(f"Sample table not found: {table_path}")

        try:
            frame = pd.read_csv(
                table_path,
                sep=None,
                engine="python",
                dtype=str,
                keep_default_na=False,
            )
        except (OSError, ValueError, csv.Error) as exc:
            logger.exception("Failed to read sample table", extra={"table_path": str(table_path)})
            raise SampleTableError(f"Failed to read sample table: {exc}") from exc

        store = cls.from_frame(frame)
        logger.info(
            "Loaded sample table",
            extra={
                "table_path": str(table_path),
                "taxa": len(store),
                "samples": store.total_samples,
            },
        )
        return store


def _resolve_columns(columns: Iterable[object]) -> dict[str, object]:
    lookup = {str(column).strip().lower(): column for column in columns}
    resolved: dict[str, object] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lookup:
                resolved[canonical] = lookup[alias]
                break
    return resolved


def _check_coordinate(name: str, latitude: object, longitude: object) -> Coordinate:
    lat, lon = float(latitude), float(longitude)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise SampleTableError(f"Sample for {name!r} has a non-finite coordinate ({lat}, {lon}).")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise SampleTableError(f"Sample for {name!r} is outside the valid range ({lat}, {lon}).")
    return lat, lon

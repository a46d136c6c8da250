"""
Geometry catalog over pre-built boundary datasets.

Boundaries live in a key-value store with one dataset per
(boundary type, partition, vintage). Partitions are state FIPS codes,
except state outlines which sit together in the ``US`` partition. Each
boundary type also has an attribute table (codes, names, parent codes)
so metadata questions never load shapes.

Loads go through an explicit ``BoundaryCache``: an eviction-free,
read-mostly map of immutable GeoDataFrames that loads each key at most
once, even when several renders share it from different threads.
"""
from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Tuple

import geopandas as gpd
import pandas as pd

from .config import (
    BOUNDARY_CHANGED_STATES, CENSUS_YEARS, COUNTY_WIDTH, DEFAULT_CENSUS_YEAR,
    HSA_WIDTH, NATION_PARTITION, SEER_REGISTRIES, STATE_WIDTH, TRACT_WIDTH,
)
from .errors import CatalogMissError, PartialCatalogLoadError
from .geometry_utils import POLYGON_TYPES, add_centroids, clean_geoms
from .identifiers import Level
from .validation import (
    ATTRIBUTE_COLUMNS, BOUNDARY_COLUMNS, enforce_code_types,
    validate_boundary_schema, validate_region_ids,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetKey:
    boundary: str
    partition: str
    vintage: int

    def __str__(self) -> str:
        return f"{self.boundary}/{self.vintage}/{self.partition}"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class BoundaryStore(ABC):
    """Key-value access to boundary datasets and their attribute tables."""

    @abstractmethod
    def load_boundary_set(self, key: DatasetKey) -> gpd.GeoDataFrame:
        """Return the polygons of one partition; raise PartialCatalogLoadError if unreadable."""

    @abstractmethod
    def attribute_table(self, boundary: str, vintage: int) -> pd.DataFrame:
        """Return non-geometric metadata for every region of a boundary type."""


class ParquetBoundaryStore(BoundaryStore):
    """
    GeoParquet datasets on disk.

    Layout::

        {root}/{boundary}/{vintage}/{partition}.parquet
        {root}/{boundary}/{vintage}/attributes.parquet
    """

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root)

    def dataset_path(self, key: DatasetKey) -> Path:
        return self.root / key.boundary / str(key.vintage) / f"{key.partition}.parquet"

    def load_boundary_set(self, key: DatasetKey) -> gpd.GeoDataFrame:
        path = self.dataset_path(key)
        if not path.exists():
            raise PartialCatalogLoadError(key, f"Boundary dataset not found: {path}")
        try:
            return gpd.read_parquet(path)
        except (OSError, ValueError) as exc:
            raise PartialCatalogLoadError(key, f"Failed to read {path}: {exc}") from exc

    def attribute_table(self, boundary: str, vintage: int) -> pd.DataFrame:
        vintage_dir = self.root / boundary / str(vintage)
        path = vintage_dir / "attributes.parquet"
        key = DatasetKey(boundary, "attributes", vintage)
        if path.exists():
            try:
                return pd.read_parquet(path)
            except (OSError, ValueError) as exc:
                raise PartialCatalogLoadError(key, f"Failed to read {path}: {exc}") from exc

        if not vintage_dir.exists():
            return pd.DataFrame(columns=sorted(ATTRIBUTE_COLUMNS))

        # No attribute table shipped: fall back to scanning the partitions
        logger.warning(f"No attribute table for {boundary}/{vintage}; scanning partitions")
        frames = []
        for part in sorted(vintage_dir.glob("*.parquet")):
            try:
                gdf = gpd.read_parquet(part)
            except (OSError, ValueError) as exc:
                raise PartialCatalogLoadError(key, f"Failed to read {part}: {exc}") from exc
            frames.append(pd.DataFrame(gdf.drop(columns=gdf.geometry.name)))
        if not frames:
            return pd.DataFrame(columns=sorted(ATTRIBUTE_COLUMNS))
        return pd.concat(frames, ignore_index=True)


class FrameBoundaryStore(BoundaryStore):
    """
    In-memory store over caller-supplied GeoDataFrames.

    ``frames`` maps ``(boundary, vintage)`` to one GeoDataFrame holding every
    region of that boundary type; it is partitioned by ``state_fips`` on read.
    """

    def __init__(self, frames: Mapping[Tuple[str, int], gpd.GeoDataFrame]):
        self.frames = dict(frames)

    def load_boundary_set(self, key: DatasetKey) -> gpd.GeoDataFrame:
        frame = self.frames.get((key.boundary, key.vintage))
        if frame is None:
            raise PartialCatalogLoadError(key, f"No {key.boundary} boundaries for vintage {key.vintage}")
        if key.partition == NATION_PARTITION:
            return frame.copy()
        part = frame[frame["state_fips"].astype(str).str.zfill(STATE_WIDTH) == key.partition]
        if part.empty:
            raise PartialCatalogLoadError(key, f"No boundary partition {key}")
        return part.copy()

    def attribute_table(self, boundary: str, vintage: int) -> pd.DataFrame:
        frame = self.frames.get((boundary, vintage))
        if frame is None:
            return pd.DataFrame(columns=sorted(ATTRIBUTE_COLUMNS))
        return pd.DataFrame(frame.drop(columns=frame.geometry.name))


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class BoundaryCache:
    """
    Eviction-free cache of immutable boundary data.

    Each key is loaded at most once. Failed loads are not cached so a later
    render can retry. Callers must treat returned frames as read-only.
    """

    def __init__(self):
        self._data: Dict[Hashable, object] = {}
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self.loads = 0

    def get_or_load(self, key: Hashable, loader: Callable[[Hashable], object]):
        if key in self._data:
            return self._data[key]
        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        with key_lock:
            if key in self._data:
                return self._data[key]
            value = loader(key)
            self._data[key] = value
            with self._lock:
                self.loads += 1
            return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._key_locks.clear()

    def __contains__(self, key) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


# ---------------------------------------------------------------------------
# Boundary levels
# ---------------------------------------------------------------------------

class BoundaryLevel:
    """Load/parent/children contract shared by every boundary type."""

    level: Level
    boundary: str
    width: Optional[int] = None
    per_year = False
    changed_states: frozenset = frozenset()

    def vintage(self, state: Optional[str], year: int) -> int:
        if self.per_year:
            return year
        if year != DEFAULT_CENSUS_YEAR and state in self.changed_states:
            return year
        return DEFAULT_CENSUS_YEAR

    def partition_for(self, catalog: "GeometryCatalog", key: str, year: int) -> Optional[str]:
        """State partition a region lives in."""
        return key[:STATE_WIDTH]

    def load(self, catalog: "GeometryCatalog", partition: str, year: int) -> gpd.GeoDataFrame:
        key = DatasetKey(self.boundary, partition, self.vintage(partition, year))
        return catalog.dataset(key, self.width)

    def lookup(self, catalog: "GeometryCatalog", key: str, year: int) -> Optional[pd.Series]:
        state = self.partition_for(catalog, key, year)
        attrs = catalog.attributes(self.boundary, self.vintage(state, year))
        rows = attrs[attrs["region_id"] == key]
        if rows.empty:
            return None
        return rows.iloc[0]

    def parent(self, catalog: "GeometryCatalog", key: str, year: int) -> Optional[str]:
        return key[:STATE_WIDTH]

    def children(self, catalog: "GeometryCatalog", key: str, year: int) -> List[str]:
        return []


class StateBoundary(BoundaryLevel):
    level = Level.STATE
    boundary = "state"
    width = STATE_WIDTH

    def partition_for(self, catalog, key, year):
        return NATION_PARTITION

    def load(self, catalog, partition, year):
        key = DatasetKey(self.boundary, NATION_PARTITION, DEFAULT_CENSUS_YEAR)
        states = catalog.dataset(key, self.width)
        if partition == NATION_PARTITION:
            return states
        return states[states["region_id"] == partition]

    def lookup(self, catalog, key, year):
        attrs = catalog.attributes(self.boundary, DEFAULT_CENSUS_YEAR)
        rows = attrs[attrs["region_id"] == key]
        return None if rows.empty else rows.iloc[0]

    def parent(self, catalog, key, year):
        return None

    def children(self, catalog, key, year):
        return catalog.regions_in_state(Level.COUNTY, key, year)


class CountyBoundary(BoundaryLevel):
    level = Level.COUNTY
    boundary = "county"
    width = COUNTY_WIDTH
    changed_states = frozenset(BOUNDARY_CHANGED_STATES["county"])

    def children(self, catalog, key, year):
        tracts = catalog.regions_in_state(Level.TRACT, key[:STATE_WIDTH], year)
        return [t for t in tracts if t.startswith(key)]


class TractBoundary(BoundaryLevel):
    level = Level.TRACT
    boundary = "tract"
    width = TRACT_WIDTH
    per_year = True

    def parent(self, catalog, key, year):
        return key[:COUNTY_WIDTH]


class HSABoundary(BoundaryLevel):
    level = Level.HSA
    boundary = "hsa"
    width = HSA_WIDTH
    changed_states = frozenset(BOUNDARY_CHANGED_STATES["hsa"])

    def partition_for(self, catalog, key, year):
        # HSA codes carry no state; the attribute table knows it
        for vintage in dict.fromkeys((DEFAULT_CENSUS_YEAR, year)):
            attrs = catalog.attributes(self.boundary, vintage)
            rows = attrs[attrs["region_id"] == key]
            if not rows.empty:
                state = str(rows.iloc[0]["state_fips"])
                if vintage == self.vintage(state, year):
                    return state
        return None

    def lookup(self, catalog, key, year):
        state = self.partition_for(catalog, key, year)
        if state is None:
            return None
        return super().lookup(catalog, key, year)

    def parent(self, catalog, key, year):
        return self.partition_for(catalog, key, year)

    def children(self, catalog, key, year):
        row = self.lookup(catalog, key, year)
        if row is None:
            return []
        counties = catalog.county_attributes(str(row["state_fips"]), year)
        if "hsa" not in counties.columns:
            return []
        return sorted(counties.loc[counties["hsa"].astype(str).str.zfill(HSA_WIDTH) == key, "region_id"])


class RegistryBoundary(BoundaryLevel):
    level = Level.REGISTRY
    boundary = "registry"

    def partition_for(self, catalog, key, year):
        entry = SEER_REGISTRIES.get(key)
        return entry["state"] if entry else None

    def vintage(self, state, year):
        return DEFAULT_CENSUS_YEAR

    def lookup(self, catalog, key, year):
        if key not in SEER_REGISTRIES:
            return None
        return super().lookup(catalog, key, year)

    def parent(self, catalog, key, year):
        return self.partition_for(catalog, key, year)

    def children(self, catalog, key, year):
        state = self.partition_for(catalog, key, year)
        if state is None:
            return []
        counties = catalog.county_attributes(state, year)
        return sorted(counties.loc[counties["registry"] == key, "region_id"])


BOUNDARY_LEVELS: Dict[Level, BoundaryLevel] = {
    b.level: b
    for b in (StateBoundary(), CountyBoundary(), TractBoundary(), HSABoundary(), RegistryBoundary())
}


def boundary_for(level) -> BoundaryLevel:
    level = Level.parse(level)
    if level not in BOUNDARY_LEVELS:
        raise ValueError(f"No boundaries for level {level.value}")
    return BOUNDARY_LEVELS[level]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class GeometryCatalog:
    """Answers existence/parent/children questions and serves boundary partitions."""

    def __init__(self, store: BoundaryStore, cache: Optional[BoundaryCache] = None):
        self.store = store
        self.cache = cache if cache is not None else BoundaryCache()

    @classmethod
    def from_directory(cls, root, cache: Optional[BoundaryCache] = None) -> "GeometryCatalog":
        return cls(ParquetBoundaryStore(root), cache)

    # -- raw access ---------------------------------------------------------

    def dataset(self, key: DatasetKey, width: Optional[int] = None) -> gpd.GeoDataFrame:
        return self.cache.get_or_load(("boundaries", key), lambda _: self._read_dataset(key, width))

    def _read_dataset(self, key: DatasetKey, width: Optional[int]) -> gpd.GeoDataFrame:
        raw = self.store.load_boundary_set(key)
        try:
            gdf = enforce_code_types(raw, width)
            validate_boundary_schema(gdf, BOUNDARY_COLUMNS, source=str(key))
            validate_region_ids(gdf, width, source=str(key))
        except ValueError as exc:
            raise PartialCatalogLoadError(key, f"Invalid boundary dataset {key}: {exc}") from exc

        cleaned = clean_geoms(gdf, POLYGON_TYPES)
        dropped = len(gdf) - len(cleaned)
        if dropped:
            logger.warning(f"Dropped {dropped} empty or non-polygon shapes from {key}")
        cleaned = add_centroids(cleaned)
        logger.info(f"Loaded {len(cleaned)} {key.boundary} boundaries from {key}")
        return cleaned

    def attributes(self, boundary: str, vintage: int) -> pd.DataFrame:
        return self.cache.get_or_load(("attributes", boundary, vintage),
                                      lambda _: self._read_attributes(boundary, vintage))

    def _read_attributes(self, boundary: str, vintage: int) -> pd.DataFrame:
        width = next((b.width for b in BOUNDARY_LEVELS.values() if b.boundary == boundary), None)
        raw = self.store.attribute_table(boundary, vintage)
        try:
            attrs = enforce_code_types(raw, width)
            validate_boundary_schema(attrs, ATTRIBUTE_COLUMNS, source=f"{boundary}/{vintage} attributes")
        except ValueError as exc:
            key = DatasetKey(boundary, "attributes", vintage)
            raise PartialCatalogLoadError(key, f"Invalid attribute table {key}: {exc}") from exc
        return attrs

    def county_attributes(self, state: str, year: int) -> pd.DataFrame:
        counties = boundary_for(Level.COUNTY)
        attrs = self.attributes(counties.boundary, counties.vintage(state, year))
        return attrs[attrs["state_fips"] == state]

    # -- metadata -----------------------------------------------------------

    def region_exists(self, level, key: str, year: int = DEFAULT_CENSUS_YEAR) -> bool:
        _check_year(year)
        return boundary_for(level).lookup(self, str(key), year) is not None

    def parent_of(self, level, key: str, year: int = DEFAULT_CENSUS_YEAR) -> Optional[str]:
        _check_year(year)
        return boundary_for(level).parent(self, str(key), year)

    def children_of(self, level, key: str, year: int = DEFAULT_CENSUS_YEAR) -> List[str]:
        _check_year(year)
        return boundary_for(level).children(self, str(key), year)

    def regions_in_state(self, level, state: str, year: int = DEFAULT_CENSUS_YEAR) -> List[str]:
        b = boundary_for(level)
        if b.level is Level.STATE:
            return [state] if b.lookup(self, state, year) is not None else []
        attrs = self.attributes(b.boundary, b.vintage(state, year))
        return sorted(attrs.loc[attrs["state_fips"] == state, "region_id"])

    def registries(self) -> List[str]:
        attrs = self.attributes(boundary_for(Level.REGISTRY).boundary, DEFAULT_CENSUS_YEAR)
        return sorted(r for r in attrs["region_id"] if r in SEER_REGISTRIES)

    # -- geometry -----------------------------------------------------------

    def load(self, level, partition: str, year: int = DEFAULT_CENSUS_YEAR) -> gpd.GeoDataFrame:
        _check_year(year)
        return boundary_for(level).load(self, partition, year)

    def load_state_boundary(self, state: str) -> gpd.GeoDataFrame:
        return self.load(Level.STATE, state)

    def load_county_boundaries(self, state: str, year: int = DEFAULT_CENSUS_YEAR) -> gpd.GeoDataFrame:
        return self.load(Level.COUNTY, state, year)

    def load_tract_boundaries(self, state: str, year: int = DEFAULT_CENSUS_YEAR) -> gpd.GeoDataFrame:
        return self.load(Level.TRACT, state, year)

    def load_hsa_boundaries(self, state: str, year: int = DEFAULT_CENSUS_YEAR) -> gpd.GeoDataFrame:
        return self.load(Level.HSA, state, year)

    def load_registry_boundary(self, registry: str) -> gpd.GeoDataFrame:
        registry = registry.upper()
        entry = SEER_REGISTRIES.get(registry)
        if entry is None:
            raise CatalogMissError(f"Unknown registry: {registry}. Available: {sorted(SEER_REGISTRIES)}")
        part = self.load(Level.REGISTRY, entry["state"])
        return part[part["region_id"] == registry]


def _check_year(year: int) -> None:
    if year not in CENSUS_YEARS:
        raise ValueError(f"Unsupported census year {year}; expected one of {CENSUS_YEARS}")

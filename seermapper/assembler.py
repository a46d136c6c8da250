"""
Assemble the boundary set for one map.

Pipeline:
1. Load the resolved level's partitions for each required state (or
   registry), letting the catalog pick the census vintage.
2. Attach user rows by region id; ids without geometry are reported, the
   rest of the map still draws.
3. Apply the expansion policy for the mapping level: add context regions
   (``has_data=False``) around the data-bearing ones.
4. Build outline overlays (state, registry, HSA, county) per their own
   policies.

A partition that fails to load degrades that state only.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import geopandas as gpd
import pandas as pd
from shapely.geometry.base import BaseGeometry
from tqdm import tqdm

from .catalog import GeometryCatalog, boundary_for
from .config import (
    CONTIGUOUS_EXCLUDED, COUNTY_WIDTH, DEFAULT_CENSUS_YEAR, SEER_REGISTRIES, STATE_FIPS,
)
from .errors import UNKNOWN_IN_CATALOG, ConfigError, PartialCatalogLoadError, UnmatchedReport
from .geometry_utils import empty_boundaries
from .identifiers import Level
from .levels import Resolution

logger = logging.getLogger(__name__)

REGION_COLUMNS = ["region_id", "level", "state_fips", "registry", "centroid_x", "centroid_y", "has_data"]


class Expansion(str, enum.Enum):
    NONE = "NONE"
    DATA = "DATA"
    STATE = "STATE"
    SEER = "SEER"
    ALL = "ALL"

    @classmethod
    def parse(cls, value) -> "Expansion":
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper()
        if text == "REGISTRY":
            text = "SEER"
        try:
            return cls(text)
        except ValueError:
            raise ConfigError(
                f"Unknown boundary expansion {value!r}. Available: {[e.value for e in cls]}"
            ) from None


@dataclass
class ExpansionPolicy:
    """How far beyond data-bearing areas each boundary type is drawn."""
    seer: Expansion = Expansion.NONE
    hsa: Expansion = Expansion.NONE
    county: Expansion = Expansion.NONE
    tract: Expansion = Expansion.NONE
    state: Expansion = Expansion.DATA

    def __post_init__(self):
        for name in ("seer", "hsa", "county", "tract", "state"):
            setattr(self, name, Expansion.parse(getattr(self, name)))

    def for_level(self, level: Level) -> Expansion:
        return {
            Level.COUNTY: self.county,
            Level.TRACT: self.tract,
            Level.HSA: self.hsa,
            Level.REGISTRY: self.seer,
        }.get(level, Expansion.DATA)


@dataclass(frozen=True)
class RegionRecord:
    region_id: str
    level: Level
    state_fips: str
    registry: Optional[str]
    centroid: Tuple[float, float]
    has_data: bool
    geometry: BaseGeometry


@dataclass
class AssembledMap:
    level: Optional[Level]
    regions: gpd.GeoDataFrame
    overlays: Dict[str, gpd.GeoDataFrame] = field(default_factory=dict)
    unmatched: UnmatchedReport = field(default_factory=UnmatchedReport)
    year: int = DEFAULT_CENSUS_YEAR

    @property
    def data_regions(self) -> gpd.GeoDataFrame:
        return self.regions[self.regions["has_data"].astype(bool)]

    def records(self) -> List[RegionRecord]:
        out = []
        for row in self.regions.itertuples(index=False):
            registry = row.registry if isinstance(row.registry, str) and row.registry else None
            out.append(RegionRecord(
                region_id=row.region_id,
                level=self.level,
                state_fips=row.state_fips,
                registry=registry,
                centroid=(float(row.centroid_x), float(row.centroid_y)),
                has_data=bool(row.has_data),
                geometry=row.geometry,
            ))
        return out


def _concat(frames: List[gpd.GeoDataFrame]) -> Optional[gpd.GeoDataFrame]:
    frames = [f for f in frames if f is not None and not f.empty]
    if not frames:
        return None
    return gpd.GeoDataFrame(pd.concat(frames, ignore_index=True), crs=frames[0].crs)


def _load_partitions(
    catalog: GeometryCatalog,
    level: Level,
    partitions: Iterable[str],
    year: int,
    report: UnmatchedReport,
    progress: bool = False,
) -> Tuple[Optional[gpd.GeoDataFrame], Set[str]]:
    """Load one boundary type for several partitions, skipping the ones that fail."""
    boundary = boundary_for(level)
    frames = []
    failed: Set[str] = set()
    for partition in tqdm(sorted(partitions), desc=f"[boundaries] {boundary.boundary}",
                          unit="state", disable=not progress):
        try:
            frames.append(catalog.load(level, partition, year))
        except PartialCatalogLoadError as exc:
            logger.warning(f"Skipping {boundary.boundary} boundaries for {partition}: {exc}")
            failed.add(partition)
            report.add_failed_partition(exc.key)
    return _concat(frames), failed


def _expansion_mask(
    loaded: gpd.GeoDataFrame,
    policy: Expansion,
    has_data: pd.Series,
) -> pd.Series:
    if policy is Expansion.ALL:
        return pd.Series(True, index=loaded.index)
    if policy is Expansion.STATE:
        states = set(loaded.loc[has_data, "state_fips"])
        return loaded["state_fips"].isin(states) | has_data
    if policy is Expansion.SEER:
        data = loaded[has_data]
        in_registry = data["registry"].notna() & (data["registry"].astype(str) != "")
        registries = set(data.loc[in_registry, "registry"])
        # data outside any registry falls back to its state
        fallback_states = set(data.loc[~in_registry, "state_fips"])
        return (
            loaded["registry"].isin(registries)
            | loaded["state_fips"].isin(fallback_states)
            | has_data
        )
    return has_data.copy()


def _outline(frame: Optional[gpd.GeoDataFrame], level: Level, crs=None) -> gpd.GeoDataFrame:
    if frame is None or frame.empty:
        return empty_boundaries(crs)
    out = frame.copy()
    out["level"] = level.value
    out["has_data"] = False
    return out[REGION_COLUMNS + [out.geometry.name]]


def _select_overlay(
    catalog: GeometryCatalog,
    level: Level,
    policy: Expansion,
    year: int,
    report: UnmatchedReport,
    requested_states: Set[str],
    data_states: Set[str],
    data_mask: Callable[[gpd.GeoDataFrame], pd.Series],
    registries: Set[str],
) -> Optional[gpd.GeoDataFrame]:
    """Outline layer for one coarser boundary type."""
    if policy is Expansion.NONE:
        return None
    states = requested_states if policy is Expansion.ALL else data_states
    loaded, _ = _load_partitions(catalog, level, states, year, report)
    if loaded is None:
        return None
    if policy is Expansion.ALL or policy is Expansion.STATE:
        return loaded
    if policy is Expansion.SEER and registries:
        return loaded[loaded["registry"].isin(registries) | data_mask(loaded)]
    return loaded[data_mask(loaded)]


def _registry_overlay(
    catalog: GeometryCatalog,
    policy: Expansion,
    report: UnmatchedReport,
    data_registries: Set[str],
    data_states: Set[str],
) -> Optional[gpd.GeoDataFrame]:
    if policy is Expansion.NONE:
        return None
    if policy is Expansion.ALL:
        wanted = set(catalog.registries())
    elif policy is Expansion.STATE:
        wanted = {r for r, entry in SEER_REGISTRIES.items() if entry["state"] in data_states}
    else:
        wanted = set(data_registries)
    if not wanted:
        return None
    states = {SEER_REGISTRIES[r]["state"] for r in wanted}
    loaded, _ = _load_partitions(catalog, Level.REGISTRY, states, DEFAULT_CENSUS_YEAR, report)
    if loaded is None:
        return None
    return loaded[loaded["region_id"].isin(wanted)]


def _state_overlay(
    catalog: GeometryCatalog,
    policy: Expansion,
    requested_states: Set[str],
    report: UnmatchedReport,
    map_restriction: str,
) -> Optional[gpd.GeoDataFrame]:
    if policy is Expansion.NONE:
        return None
    try:
        nation = catalog.load(Level.STATE, "US")
    except PartialCatalogLoadError as exc:
        logger.warning(f"State outlines unavailable: {exc}")
        report.add_failed_partition(exc.key)
        return None
    if policy is Expansion.ALL:
        keep = nation["region_id"].isin(list(STATE_FIPS))
        if map_restriction == "contiguous":
            keep &= ~nation["region_id"].isin(CONTIGUOUS_EXCLUDED) | nation["region_id"].isin(requested_states)
        return nation[keep]
    return nation[nation["region_id"].isin(requested_states)]


def _attach_data(
    regions: gpd.GeoDataFrame,
    data: Optional[pd.DataFrame],
) -> gpd.GeoDataFrame:
    if data is None or data.empty:
        return regions
    rows = data.drop_duplicates(subset="region_id", keep="first")
    dupes = len(data) - len(rows)
    if dupes:
        logger.warning(f"Ignoring {dupes} repeated rows for the same area (first row kept)")
    value_cols = [c for c in rows.columns if c != "region_id" and c not in regions.columns]
    merged = regions.merge(rows[["region_id"] + value_cols], on="region_id", how="left")
    return gpd.GeoDataFrame(merged, geometry=regions.geometry.name, crs=regions.crs)


def assemble(
    resolution: Resolution,
    catalog: GeometryCatalog,
    year: int = DEFAULT_CENSUS_YEAR,
    expansion: Optional[ExpansionPolicy] = None,
    data: Optional[pd.DataFrame] = None,
    map_restriction: str = "contiguous",
    progress: bool = False,
) -> AssembledMap:
    """
    Build the boundary set for a resolved request.

    Args:
        resolution: Output of ``levels.resolve``
        catalog: Geometry catalog to load partitions from
        year: Census vintage (2000 or 2010)
        expansion: Per boundary type expansion policy
        data: Optional user rows keyed by ``region_id``; other columns are copied onto regions
        map_restriction: "contiguous" or "all"; limits the all-states outline layer
        progress: Show a progress bar while loading partitions

    Returns:
        AssembledMap with regions, overlays and the merged unmatched report
    """
    expansion = expansion or ExpansionPolicy()
    report = UnmatchedReport().merge(resolution.unmatched)
    level = resolution.level

    if level is None:
        return AssembledMap(level=None, regions=empty_boundaries(), unmatched=report, year=year)

    data_keys = list(dict.fromkeys(resolution.data_keys))
    requested_states = set(resolution.state_codes)
    policy = expansion.for_level(level)

    if level is Level.STATE:
        partitions = ["US"]
    elif level is Level.REGISTRY:
        partitions = {SEER_REGISTRIES[r]["state"] for r in resolution.registry_codes}
        if policy is Expansion.ALL:
            # context states contribute their registries too
            partitions |= requested_states
    else:
        partitions = requested_states

    loaded, failed = _load_partitions(catalog, level, partitions, year, report, progress)
    if loaded is None:
        report.extend(data_keys, UNKNOWN_IN_CATALOG)
        logger.warning(f"No {level.value} boundaries could be loaded; nothing to draw")
        return AssembledMap(level=level, regions=empty_boundaries(), unmatched=report, year=year)

    if level is Level.STATE:
        loaded = loaded[loaded["region_id"].isin(requested_states)]
    loaded = loaded.reset_index(drop=True)

    known = set(loaded["region_id"])
    missing = [k for k in data_keys if k not in known]
    if missing:
        report.extend(missing, UNKNOWN_IN_CATALOG)
        logger.warning(f"{len(missing)} {level.value} identifiers have no boundary, e.g. {missing[0]}")
    if failed:
        logger.warning(f"Map degraded: no {level.value} boundaries for states {sorted(failed)}")

    has_data = loaded["region_id"].isin(set(data_keys))
    keep = _expansion_mask(loaded, policy, has_data)

    regions = loaded[keep].copy()
    regions["level"] = level.value
    regions["has_data"] = has_data[keep].astype(bool)
    regions = regions[REGION_COLUMNS + [regions.geometry.name]].reset_index(drop=True)
    regions = _attach_data(regions, data)

    n_data = int(regions["has_data"].sum())
    logger.info(
        f"Assembled {len(regions)} {level.value} regions ({n_data} with data, "
        f"{len(regions) - n_data} context) using {policy.value} expansion"
    )

    data_regions = regions[regions["has_data"].astype(bool)]
    data_states = set(data_regions["state_fips"])
    data_registries = set(resolution.registry_codes)
    data_registries |= {r for r in data_regions["registry"] if isinstance(r, str) and r}

    overlays: Dict[str, gpd.GeoDataFrame] = {}

    def add_overlay(name: str, overlay_level: Level, build: Callable[[], Optional[gpd.GeoDataFrame]]) -> None:
        # an unreadable attribute table drops this layer only
        try:
            frame = build()
        except PartialCatalogLoadError as exc:
            logger.warning(f"Skipping {name} outlines: {exc}")
            report.add_failed_partition(exc.key)
            return
        if frame is not None:
            overlays[name] = _outline(frame, overlay_level, regions.crs)

    if level is not Level.REGISTRY:
        add_overlay("registry", Level.REGISTRY, lambda: _registry_overlay(
            catalog, expansion.seer, report, data_registries, data_states,
        ))

    if level in (Level.COUNTY, Level.TRACT) and expansion.hsa is not Expansion.NONE:
        def build_hsa():
            county_hsas = _county_hsas(catalog, data_regions, year)
            return _select_overlay(
                catalog, Level.HSA, expansion.hsa, year, report, requested_states, data_states,
                lambda f: f["region_id"].isin(county_hsas) if county_hsas else f["state_fips"].isin(data_states),
                set(),
            )
        add_overlay("hsa", Level.HSA, build_hsa)

    if level in (Level.TRACT, Level.HSA) and expansion.county is not Expansion.NONE:
        def build_county():
            if level is Level.TRACT:
                data_counties = {r[:COUNTY_WIDTH] for r in data_regions["region_id"]}
            else:
                data_counties = _hsa_counties(catalog, data_regions, year)
            return _select_overlay(
                catalog, Level.COUNTY, expansion.county, year, report, requested_states, data_states,
                lambda f: f["region_id"].isin(data_counties) if data_counties else f["state_fips"].isin(data_states),
                data_registries,
            )
        add_overlay("county", Level.COUNTY, build_county)

    if level is not Level.STATE:
        add_overlay("state", Level.STATE, lambda: _state_overlay(
            catalog, expansion.state, requested_states, report, map_restriction,
        ))

    return AssembledMap(level=level, regions=regions, overlays=overlays, unmatched=report, year=year)


def _county_hsas(catalog: GeometryCatalog, data_regions: gpd.GeoDataFrame, year: int) -> Set[str]:
    """HSA codes of the counties holding data, when county attributes carry them."""
    counties = {r[:COUNTY_WIDTH] for r in data_regions["region_id"]}
    hsas: Set[str] = set()
    for state in sorted({c[:2] for c in counties}):
        attrs = catalog.county_attributes(state, year)
        if "hsa" not in attrs.columns:
            continue
        hits = attrs[attrs["region_id"].isin(counties)]["hsa"].dropna()
        hsas |= {str(h).zfill(3) for h in hits}
    return hsas


def _hsa_counties(catalog: GeometryCatalog, data_regions: gpd.GeoDataFrame, year: int) -> Set[str]:
    counties: Set[str] = set()
    for hsa in data_regions["region_id"]:
        counties |= set(catalog.children_of(Level.HSA, hsa, year))
    return counties

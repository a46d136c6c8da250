"""
End-to-end map preparation.

options -> columns -> identifier classification -> level resolution ->
boundary assembly -> value classification -> hatching. Each stage takes
the previous stage's complete output; breakpoints need the full value
distribution and expansion needs the full identifier set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Union

import geopandas as gpd
import numpy as np
import pandas as pd

from .assembler import AssembledMap, assemble
from .catalog import GeometryCatalog
from .classify import NO_DATA_CATEGORY, Classification, classify_values, hatch_values
from .errors import UnmatchedReport
from .identifiers import classify_column
from .levels import resolve
from .options import MapOptions, resolve_columns

logger = logging.getLogger(__name__)


@dataclass
class MapResult:
    assembled: AssembledMap
    classification: Classification
    options: MapOptions

    @property
    def regions(self) -> gpd.GeoDataFrame:
        return self.assembled.regions

    @property
    def overlays(self):
        return self.assembled.overlays

    @property
    def unmatched(self) -> UnmatchedReport:
        return self.assembled.unmatched

    @property
    def level(self):
        return self.assembled.level


def prepare_map(
    frame: pd.DataFrame,
    options: Union[MapOptions, Mapping[str, Any], None],
    catalog: GeometryCatalog,
    progress: bool = False,
) -> MapResult:
    """
    Turn a table of identifiers and values into classified, leveled regions.

    Args:
        frame: One row per area: identifier, value and optional hatch value
        options: MapOptions or a dict of recognized option names
        catalog: Geometry catalog holding the boundary datasets
        progress: Show progress while loading boundary partitions

    Returns:
        MapResult whose regions carry ``value``, ``category`` and ``hatched`` columns

    Raises:
        ConfigError: for invalid options or columns (before any geometry loads)
        LevelConflictError: for identifiers mixing incompatible levels
    """
    if not isinstance(options, MapOptions):
        options = MapOptions.from_dict(options)
    else:
        options.validate()

    id_col, data_col, hatch_col = resolve_columns(frame, options)
    logger.info(f"Mapping '{data_col}' by '{id_col}'" + (f", hatching on '{hatch_col}'" if hatch_col else ""))

    idents = classify_column(frame[id_col])
    resolution = resolve(
        idents, catalog=catalog, year=options.census_year,
        allow_coercion=options.allow_level_coercion,
    )

    rows = pd.DataFrame({
        "region_id": [i.key for i in idents],
        "value": pd.to_numeric(frame[data_col], errors="coerce").to_numpy(),
    })
    if hatch_col is not None:
        rows["hatch_value"] = pd.to_numeric(frame[hatch_col], errors="coerce").to_numpy()
    data_keys = set(resolution.data_keys)
    rows = rows[rows["region_id"].isin(data_keys)]

    assembled = assemble(
        resolution, catalog,
        year=options.census_year,
        expansion=options.expansion,
        data=rows,
        map_restriction=options.map_restriction,
        progress=progress,
    )

    regions = assembled.regions
    if "value" not in regions.columns:
        regions["value"] = np.nan
    with_data = regions["has_data"].astype(bool)

    classification = classify_values(regions.loc[with_data, "value"], options.category_spec)
    categories = np.full(len(regions), NO_DATA_CATEGORY, dtype=int)
    categories[with_data.to_numpy()] = classification.categories
    regions["category"] = categories

    if options.hatch_spec is not None and "hatch_value" in regions.columns:
        flags = hatch_values(regions["hatch_value"], options.hatch_spec)
        regions["hatched"] = flags & with_data.to_numpy()
    else:
        regions["hatched"] = False

    if assembled.unmatched:
        logger.warning(f"Unmatched identifiers: {assembled.unmatched.summary()}")
    return MapResult(assembled=assembled, classification=classification, options=options)

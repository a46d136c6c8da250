"""
Map options and input column configuration.

Everything here is checked before any boundary is loaded, so bad
category, hatch or expansion settings fail fast with ``ConfigError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from .assembler import Expansion, ExpansionPolicy
from .classify import CategorySpec, HatchSpec
from .config import (
    CENSUS_YEARS, DEFAULT_CENSUS_YEAR, DEFAULT_PALETTE, HATCH_COLUMN_CANDIDATES,
    ID_COLUMN_CANDIDATES, MAX_CATEGORIES,
)
from .errors import ConfigError

MAP_RESTRICTIONS = ("contiguous", "all")

# Option names as written by callers -> MapOptions field
_OPTION_NAMES = {
    "censusYear": "census_year",
    "categ": "categ",
    "hatch": "hatch",
    "seerB": "seer_b",
    "hsaB": "hsa_b",
    "countyB": "county_b",
    "tractB": "tract_b",
    "stateB": "state_b",
    "mapRestriction": "map_restriction",
    "palette": "palette",
    "idCol": "id_col",
    "dataCol": "data_col",
    "hatchCol": "hatch_col",
    "allowLevelCoercion": "allow_level_coercion",
}


@dataclass
class MapOptions:
    census_year: int = DEFAULT_CENSUS_YEAR
    categ: Any = None
    hatch: Any = False
    seer_b: str = "NONE"
    hsa_b: str = "NONE"
    county_b: str = "NONE"
    tract_b: str = "NONE"
    state_b: str = "DATA"
    map_restriction: str = "contiguous"
    palette: str = DEFAULT_PALETTE
    id_col: Optional[str] = None
    data_col: Optional[str] = None
    hatch_col: Optional[str] = None
    allow_level_coercion: bool = False

    category_spec: CategorySpec = field(init=False, repr=False, default=None)
    hatch_spec: Optional[HatchSpec] = field(init=False, repr=False, default=None)
    expansion: ExpansionPolicy = field(init=False, repr=False, default=None)

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> "MapOptions":
        """Accept the documented camelCase option names or their snake_case fields."""
        kwargs: Dict[str, Any] = {}
        fields = set(_OPTION_NAMES.values())
        for name, value in (options or {}).items():
            target = _OPTION_NAMES.get(name, name)
            if target not in fields:
                raise ConfigError(f"Unknown option {name!r}. Available: {sorted(_OPTION_NAMES)}")
            kwargs[target] = value
        return cls(**kwargs).validate()

    def validate(self) -> "MapOptions":
        try:
            year = int(self.census_year)
        except (TypeError, ValueError):
            raise ConfigError(f"censusYear must be one of {CENSUS_YEARS}, got {self.census_year!r}") from None
        if year not in CENSUS_YEARS:
            raise ConfigError(f"censusYear must be one of {CENSUS_YEARS}, got {self.census_year!r}")
        self.census_year = year

        restriction = str(self.map_restriction).strip().lower()
        if restriction not in MAP_RESTRICTIONS:
            raise ConfigError(f"mapRestriction must be one of {MAP_RESTRICTIONS}, got {self.map_restriction!r}")
        self.map_restriction = restriction

        self.category_spec = CategorySpec.from_option(self.categ)
        if self.category_spec.n_categories > MAX_CATEGORIES:
            raise ConfigError(f"Palettes support at most {MAX_CATEGORIES} categories")
        self.hatch_spec = HatchSpec.from_option(self.hatch)

        self.expansion = ExpansionPolicy(
            seer=self.seer_b, hsa=self.hsa_b, county=self.county_b,
            tract=self.tract_b, state=self.state_b,
        )
        if self.expansion.state in (Expansion.STATE, Expansion.SEER):
            raise ConfigError("stateB must be NONE, DATA or ALL")

        if not isinstance(self.palette, str) or not self.palette.lstrip("-"):
            raise ConfigError(f"palette must be a palette name, got {self.palette!r}")
        return self


def resolve_columns(frame: pd.DataFrame, options: MapOptions) -> Tuple[str, str, Optional[str]]:
    """
    Pick the identifier, value and hatch columns.

    Configured names win. Otherwise conventional names are used, and the
    value column is inferred only when exactly one numeric column is left.

    Raises:
        ConfigError: if a configured column is missing or inference is ambiguous
    """
    columns = list(frame.columns)

    for name in (options.id_col, options.data_col, options.hatch_col):
        if name is not None and name not in columns:
            raise ConfigError(f"Column {name!r} not found. Found columns: {columns}")

    id_col = options.id_col
    if id_col is None:
        hits = [c for c in ID_COLUMN_CANDIDATES if c in columns]
        if len(hits) != 1:
            found = f"several identifier columns {hits}" if hits else f"no identifier column in {columns}"
            raise ConfigError(f"Found {found}; set idCol")
        id_col = hits[0]

    hatch_col = options.hatch_col
    if hatch_col is None and options.hatch_spec is not None:
        hits = [c for c in HATCH_COLUMN_CANDIDATES if c in columns and c != id_col]
        if len(hits) == 1:
            hatch_col = hits[0]

    data_col = options.data_col
    if data_col is None:
        numeric = [
            c for c in columns
            if c not in (id_col, hatch_col) and pd.api.types.is_numeric_dtype(frame[c])
        ]
        if len(numeric) != 1:
            raise ConfigError(
                f"Cannot infer the value column from {numeric or columns}; set dataCol"
            )
        data_col = numeric[0]

    if options.hatch_spec is not None and hatch_col is None:
        raise ConfigError("Hatching is enabled but no hatch column was given or found; set hatchCol")

    return id_col, data_col, hatch_col

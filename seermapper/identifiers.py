"""
Location identifier classification.

Tags each raw identifier with its geographic level and splits it into
component codes. Identifiers are fixed-width codes, not numbers: integer
input is zero-padded before matching so that 6 and "06" agree.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from .config import (
    COUNTY_WIDTH, HSA_MAX, HSA_MIN, HSA_WIDTH, SEER_REGISTRIES,
    STATE_FIPS, STATE_WIDTH, TRACT_WIDTH,
)
from .errors import FormatError


class Level(enum.Enum):
    STATE = "state"
    COUNTY = "county"
    TRACT = "tract"
    HSA = "hsa"
    REGISTRY = "registry"
    INVALID = "invalid"

    @property
    def rank(self) -> int:
        """Position on the STATE < COUNTY < TRACT axis; HSA and REGISTRY sit between STATE and COUNTY."""
        return _RANKS[self]

    @classmethod
    def parse(cls, value) -> "Level":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown level: {value}. Available: {[l.value for l in cls]}")


_RANKS = {
    Level.STATE: 0,
    Level.HSA: 1,
    Level.REGISTRY: 1,
    Level.COUNTY: 2,
    Level.TRACT: 3,
    Level.INVALID: -1,
}

_PAD_WIDTHS = (STATE_WIDTH, HSA_WIDTH, COUNTY_WIDTH, TRACT_WIDTH)


@dataclass(frozen=True)
class LocationIdentifier:
    raw: object
    code: str
    level: Level
    state_fips: Optional[str] = None
    county_code: Optional[str] = None
    tract_code: Optional[str] = None
    registry: Optional[str] = None
    hsa: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.level is not Level.INVALID

    @property
    def county_fips(self) -> Optional[str]:
        if self.state_fips and self.county_code:
            return self.state_fips + self.county_code
        return None

    @property
    def key(self) -> str:
        """Code used to look the area up in the geometry catalog."""
        return self.code


def zero_pad(value, width: int) -> str:
    """Render an integer code as a fixed-width string with leading zeros."""
    return str(int(value)).zfill(width)


def _as_integer(value) -> Optional[int]:
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        if math.isfinite(value) and float(value).is_integer():
            return int(value)
    return None


def _pad_width_for(number: int) -> Optional[int]:
    digits = len(str(abs(number)))
    for width in _PAD_WIDTHS:
        if digits <= width:
            return width
    return None


def normalize_code(value, width: Optional[int] = None) -> Optional[str]:
    """
    Turn a raw identifier into the string that gets matched.

    Integers (and integral floats, as pandas reads numeric CSV columns) are
    zero-padded to ``width``, or to the narrowest identifier width that holds
    their digits. Strings are stripped and kept as-is.
    """
    if value is None or (pd.api.types.is_scalar(value) and not isinstance(value, str) and pd.isna(value)):
        return None
    number = _as_integer(value)
    if number is not None:
        if number < 0:
            return str(number)
        pad = width if width is not None else _pad_width_for(number)
        return zero_pad(number, pad) if pad else str(number)
    text = str(value).strip()
    if width is not None and text.isdigit() and len(text) < width:
        text = text.zfill(width)
    return text


def _invalid(raw, code: str, reason: str) -> LocationIdentifier:
    return LocationIdentifier(raw=raw, code=code, level=Level.INVALID, reason=reason)


def classify(value, width: Optional[int] = None) -> LocationIdentifier:
    """Classify one identifier. Pure function, never raises on bad input."""
    code = normalize_code(value, width)
    if code is None or code == "":
        return _invalid(value, "" if code is None else code, "empty identifier")

    registry = code.upper()
    if registry in SEER_REGISTRIES:
        return LocationIdentifier(
            raw=value, code=registry, level=Level.REGISTRY,
            state_fips=SEER_REGISTRIES[registry]["state"], registry=registry,
        )

    if not code.isdigit():
        return _invalid(value, code, "not a numeric code or registry abbreviation")

    n = len(code)
    if n == STATE_WIDTH:
        if code not in STATE_FIPS:
            return _invalid(value, code, "unknown state code")
        return LocationIdentifier(raw=value, code=code, level=Level.STATE, state_fips=code)

    if n == HSA_WIDTH:
        if not HSA_MIN <= int(code) <= HSA_MAX:
            return _invalid(value, code, "HSA number out of range")
        return LocationIdentifier(raw=value, code=code, level=Level.HSA, hsa=code)

    if n == COUNTY_WIDTH:
        if code[:STATE_WIDTH] not in STATE_FIPS:
            return _invalid(value, code, "unknown state prefix")
        return LocationIdentifier(
            raw=value, code=code, level=Level.COUNTY,
            state_fips=code[:STATE_WIDTH], county_code=code[STATE_WIDTH:],
        )

    if n == TRACT_WIDTH:
        county = classify(code[:COUNTY_WIDTH])
        if county.level is not Level.COUNTY:
            return _invalid(value, code, county.reason or "invalid county prefix")
        return LocationIdentifier(
            raw=value, code=code, level=Level.TRACT,
            state_fips=county.state_fips, county_code=county.county_code,
            tract_code=code[COUNTY_WIDTH:],
        )

    return _invalid(value, code, f"unsupported code width {n}")


def infer_pad_width(values: Iterable) -> Optional[int]:
    """
    Widest zero-pad width needed by any value of an integer-typed column.

    A column of HSA numbers 1..949 yields three, so the small ones are not
    mistaken for states.
    """
    widest = None
    for value in values:
        number = _as_integer(value)
        if number is None or number < 0:
            continue
        width = _pad_width_for(number)
        if width is None:
            continue
        if widest is None or width > widest:
            widest = width
    return widest


def classify_column(values) -> List[LocationIdentifier]:
    """
    Classify a whole identifier column.

    An integer column whose values all fit in three digits is an HSA column
    and pads to a common width. Any wider column pads each value to its own
    narrowest width, so state 6 next to county 6037 stays "06".
    """
    series = values if isinstance(values, pd.Series) else pd.Series(list(values))
    width = None
    if pd.api.types.is_numeric_dtype(series.dtype) and not pd.api.types.is_bool_dtype(series.dtype):
        widest = infer_pad_width(series.dropna())
        if widest is not None and widest <= HSA_WIDTH:
            width = widest
    return [classify(v, width) for v in series.tolist()]


def parse(value, width: Optional[int] = None) -> LocationIdentifier:
    """Strict variant of ``classify`` for single, caller-typed identifiers."""
    ident = classify(value, width)
    if not ident.is_valid:
        raise FormatError(f"Invalid location identifier {value!r}: {ident.reason}")
    return ident

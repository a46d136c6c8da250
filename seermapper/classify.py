"""
Data classification: category breakpoints and hatch flags.

Breakpoints come from the type-7 quantile estimator (linear
interpolation of the empirical CDF, numpy's ``method="linear"``) or from
the caller. A value equal to a breakpoint falls in the lower category, so
with breakpoints [0.6, 0.8, 1.0] the value 0.8 is in category 1 and 0.9
in category 2. Missing values get ``NO_DATA_CATEGORY``.
"""
from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import (
    DEFAULT_CATEGORIES, DEFAULT_HATCH_OP, DEFAULT_HATCH_VALUE,
    MAX_CATEGORIES, MAX_USER_BREAKPOINTS, MIN_CATEGORIES,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

NO_DATA_CATEGORY = -1

HATCH_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}
# Spellings accepted in configuration files
_OPERATOR_ALIASES = {"gt": ">", "ge": ">=", "lt": "<", "le": "<=", "eq": "==", "ne": "!=", "=": "=="}


@dataclass(frozen=True)
class CategorySpec:
    count: Optional[int] = None
    breakpoints: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        if (self.count is None) == (self.breakpoints is None):
            raise ConfigError("CategorySpec needs exactly one of count or breakpoints")
        if self.count is not None:
            if isinstance(self.count, bool) or not isinstance(self.count, (int, np.integer)):
                raise ConfigError(f"Category count must be an integer, got {self.count!r}")
            if not MIN_CATEGORIES <= self.count <= MAX_CATEGORIES:
                raise ConfigError(
                    f"Category count must be between {MIN_CATEGORIES} and {MAX_CATEGORIES}, got {self.count}"
                )
        else:
            breaks = tuple(self.breakpoints)
            if not breaks:
                raise ConfigError("At least one breakpoint is required")
            if len(breaks) > MAX_USER_BREAKPOINTS:
                raise ConfigError(
                    f"At most {MAX_USER_BREAKPOINTS} breakpoints are supported, got {len(breaks)}"
                )
            try:
                breaks = tuple(float(b) for b in breaks)
            except (TypeError, ValueError):
                raise ConfigError(f"Breakpoints must be numeric, got {self.breakpoints!r}") from None
            if not all(math.isfinite(b) for b in breaks):
                raise ConfigError("Breakpoints must be finite numbers")
            if any(lo >= hi for lo, hi in zip(breaks, breaks[1:])):
                raise ConfigError(f"Breakpoints must be strictly increasing, got {list(breaks)}")
            object.__setattr__(self, "breakpoints", breaks)

    @property
    def is_quantile(self) -> bool:
        return self.count is not None

    @property
    def n_categories(self) -> int:
        return self.count if self.count is not None else len(self.breakpoints) + 1

    @classmethod
    def from_option(cls, categ) -> "CategorySpec":
        """Build from the ``categ`` option: an int count or a list of breakpoints."""
        if categ is None:
            return cls(count=DEFAULT_CATEGORIES)
        if isinstance(categ, cls):
            return categ
        if isinstance(categ, str):
            parts = [p for p in categ.replace(";", ",").split(",") if p.strip()]
            try:
                numbers = [float(p) for p in parts]
            except ValueError:
                raise ConfigError(f"Cannot parse categories {categ!r}") from None
            if len(numbers) == 1 and numbers[0].is_integer():
                return cls(count=int(numbers[0]))
            return cls(breakpoints=tuple(numbers))
        if isinstance(categ, (int, np.integer)) and not isinstance(categ, bool):
            return cls(count=int(categ))
        if isinstance(categ, (list, tuple, np.ndarray, pd.Series)):
            return cls(breakpoints=tuple(categ))
        raise ConfigError(f"Unsupported categ option {categ!r}")


@dataclass(frozen=True)
class HatchSpec:
    op: str = DEFAULT_HATCH_OP
    threshold: float = DEFAULT_HATCH_VALUE

    def __post_init__(self):
        op = _OPERATOR_ALIASES.get(str(self.op).strip().lower(), str(self.op).strip())
        if op not in HATCH_OPERATORS:
            raise ConfigError(f"Unknown hatch operator {self.op!r}. Available: {list(HATCH_OPERATORS)}")
        try:
            threshold = float(self.threshold)
        except (TypeError, ValueError):
            raise ConfigError(f"Hatch value must be numeric, got {self.threshold!r}") from None
        if not math.isfinite(threshold):
            raise ConfigError("Hatch value must be finite")
        object.__setattr__(self, "op", op)
        object.__setattr__(self, "threshold", threshold)

    @classmethod
    def from_option(cls, hatch) -> Optional["HatchSpec"]:
        """``False``/``None`` disables hatching, ``True`` uses the p-value default, dicts set op/value."""
        if hatch is None or hatch is False:
            return None
        if hatch is True:
            return cls()
        if isinstance(hatch, cls):
            return hatch
        if isinstance(hatch, dict):
            op = hatch.get("op", hatch.get("ops", DEFAULT_HATCH_OP))
            value = hatch.get("value", hatch.get("threshold", DEFAULT_HATCH_VALUE))
            return cls(op=op, threshold=value)
        raise ConfigError(f"Unsupported hatch option {hatch!r}")


def hatch(value, spec: HatchSpec) -> bool:
    """Evaluate the hatch predicate for one value; missing values are never hatched."""
    if value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    if math.isnan(number):
        return False
    return bool(HATCH_OPERATORS[spec.op](number, spec.threshold))


def hatch_values(values, spec: HatchSpec) -> np.ndarray:
    arr = pd.to_numeric(pd.Series(values), errors="coerce").to_numpy(dtype=float)
    flags = HATCH_OPERATORS[spec.op](arr, spec.threshold)
    return np.where(np.isnan(arr), False, flags).astype(bool)


@dataclass
class Classification:
    breakpoints: List[float]
    edges: List[float]
    categories: np.ndarray = field(repr=False)
    spec: CategorySpec = field(repr=False, default=None)

    @property
    def count(self) -> int:
        return len(self.breakpoints) + 1

    def category_of(self, value) -> int:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return NO_DATA_CATEGORY
        if math.isnan(number):
            return NO_DATA_CATEGORY
        return int(np.searchsorted(self.breakpoints, number, side="left"))

    def counts(self) -> List[int]:
        cats = self.categories[self.categories != NO_DATA_CATEGORY]
        return np.bincount(cats.astype(int), minlength=self.count).tolist()

    def labels(self, fmt: str = "{:.3g}") -> List[str]:
        """Legend text per category, e.g. ``"0.6 - 0.8"``."""
        out = []
        for lo, hi in zip(self.edges[:-1], self.edges[1:]):
            if math.isinf(lo):
                out.append(f"<= {fmt.format(hi)}")
            elif math.isinf(hi):
                out.append(f"> {fmt.format(lo)}")
            else:
                out.append(f"{fmt.format(lo)} - {fmt.format(hi)}")
        return out


def quantile_breakpoints(values: Sequence[float], count: int) -> List[float]:
    """Interior breakpoints splitting ``values`` into ``count`` near-equal groups."""
    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return []
    probs = np.arange(1, count) / count
    breaks = np.quantile(arr, probs, method="linear")
    unique = np.unique(breaks)
    # a break at the data max would leave the top category empty
    unique = unique[unique < arr.max()]
    if len(unique) < len(breaks):
        logger.warning(
            f"Tied values collapse {count} quantile categories to {len(unique) + 1}"
        )
    return unique.tolist()


def classify_values(values, spec: Optional[CategorySpec] = None) -> Classification:
    """
    Compute breakpoints over the non-missing values and assign categories.

    Args:
        values: Numeric values, one per area with data (NaN allowed)
        spec: Quantile count or explicit breakpoints; defaults to 5 quantile categories

    Returns:
        Classification with interior breakpoints, legend edges and a category per value
    """
    spec = spec or CategorySpec(count=DEFAULT_CATEGORIES)
    arr = pd.to_numeric(pd.Series(values), errors="coerce").to_numpy(dtype=float)
    present = arr[~np.isnan(arr)]

    if spec.is_quantile:
        breaks = quantile_breakpoints(present, spec.count)
    else:
        breaks = list(spec.breakpoints)

    cats = np.searchsorted(np.asarray(breaks, dtype=float), arr, side="left")
    cats = np.where(np.isnan(arr), NO_DATA_CATEGORY, cats).astype(int)

    if spec.is_quantile and present.size:
        edges = [float(present.min())] + breaks + [float(present.max())]
    else:
        edges = [-math.inf] + breaks + [math.inf]
        if present.size:
            edges[0] = min(float(present.min()), breaks[0])
            edges[-1] = max(float(present.max()), breaks[-1])

    logger.info(
        f"Classified {present.size} values into {len(breaks) + 1} categories "
        f"({'quantile' if spec.is_quantile else 'user'} breakpoints {breaks})"
    )
    return Classification(breakpoints=breaks, edges=edges, categories=cats, spec=spec)

"""
Resolve one mapping level for a whole request.

Rows are partitioned by identifier level. The finest level present wins
over plain state (and registry) rows, which become no-data context for
the map; two finer levels that cannot be drawn together are a conflict
the caller must split.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Set

from .config import DEFAULT_CENSUS_YEAR
from .errors import (
    CROSS_LEVEL_CONFLICT, UNKNOWN_FORMAT, UNKNOWN_IN_CATALOG,
    LevelConflictError, PartialCatalogLoadError, UnmatchedReport,
)
from .identifiers import Level, LocationIdentifier

if TYPE_CHECKING:
    from .catalog import GeometryCatalog

logger = logging.getLogger(__name__)

# Levels that only ever act as context when a finer level is present
CONTEXT_LEVELS = (Level.STATE, Level.REGISTRY)
# Levels that cannot share a map with each other
FINE_LEVELS = (Level.COUNTY, Level.TRACT, Level.HSA)


@dataclass
class Resolution:
    level: Optional[Level]
    state_codes: Set[str] = field(default_factory=set)
    registry_codes: Set[str] = field(default_factory=set)
    unmatched: UnmatchedReport = field(default_factory=UnmatchedReport)
    data_ids: List[LocationIdentifier] = field(default_factory=list)
    context_ids: List[LocationIdentifier] = field(default_factory=list)

    @property
    def data_states(self) -> Set[str]:
        """States holding at least one row at the resolved level."""
        return {i.state_fips for i in self.data_ids if i.state_fips}

    @property
    def data_keys(self) -> List[str]:
        return [i.key for i in self.data_ids]


def _group_by_level(ids: Sequence[LocationIdentifier]) -> "OrderedDict[Level, List[LocationIdentifier]]":
    groups: "OrderedDict[Level, List[LocationIdentifier]]" = OrderedDict()
    for ident in ids:
        groups.setdefault(ident.level, []).append(ident)
    return groups


def _pick_level(groups, allow_coercion: bool) -> Level:
    fine = [lvl for lvl in FINE_LEVELS if lvl in groups]
    if len(fine) > 1:
        coercible = Level.HSA not in fine
        if not (allow_coercion and coercible):
            raise LevelConflictError({lvl.value: [i.code for i in groups[lvl]] for lvl in fine})
        return max(fine, key=lambda lvl: lvl.rank)
    if fine:
        return fine[0]
    if Level.REGISTRY in groups:
        return Level.REGISTRY
    return Level.STATE


def _attach_hsa_states(
    ids: List[LocationIdentifier],
    catalog: Optional["GeometryCatalog"],
    year: int,
    report: UnmatchedReport,
) -> List[LocationIdentifier]:
    found = []
    for ident in ids:
        try:
            state = catalog.parent_of(Level.HSA, ident.code, year) if catalog is not None else None
        except PartialCatalogLoadError as exc:
            logger.warning(f"Cannot place HSA {ident.code}: {exc}")
            report.add_failed_partition(exc.key)
            state = None
        if state is None:
            report.add(ident.code, UNKNOWN_IN_CATALOG)
            continue
        found.append(LocationIdentifier(
            raw=ident.raw, code=ident.code, level=Level.HSA, state_fips=state, hsa=ident.hsa,
        ))
    return found


def resolve(
    ids: Sequence[LocationIdentifier],
    catalog: Optional["GeometryCatalog"] = None,
    year: int = DEFAULT_CENSUS_YEAR,
    allow_coercion: bool = False,
) -> Resolution:
    """
    Combine per-row classifications into one mapping level.

    Args:
        ids: Classified identifiers, one per input row
        catalog: Needed only to find the state of HSA identifiers
        year: Census vintage used for HSA lookups
        allow_coercion: Map County+Tract mixes at the finer level instead of failing

    Returns:
        Resolution with the level, the state/registry partitions to load,
        the rows drawn with data, the context rows and the unmatched report

    Raises:
        LevelConflictError: if ids mix incompatible levels
    """
    report = UnmatchedReport()
    groups = _group_by_level(ids)

    invalid = groups.pop(Level.INVALID, [])
    if invalid:
        report.extend((i.code or str(i.raw) for i in invalid), UNKNOWN_FORMAT)
        logger.warning(f"{len(invalid)} identifiers have an unknown format, e.g. {invalid[0].raw!r}")

    if not groups:
        logger.warning("No valid identifiers to map")
        return Resolution(level=None, unmatched=report)

    level = _pick_level(groups, allow_coercion)

    data_ids = groups[level]
    if level is Level.HSA:
        data_ids = _attach_hsa_states(data_ids, catalog, year, report)

    context_ids: List[LocationIdentifier] = []
    for lvl, members in groups.items():
        if lvl is level:
            continue
        if lvl in FINE_LEVELS:
            # only reachable when coercion was allowed
            report.extend((i.code for i in members), CROSS_LEVEL_CONFLICT)
            logger.warning(
                f"Mapping {level.value} level; {len(members)} {lvl.value} identifiers drawn as context only"
            )
        context_ids.extend(members)

    state_codes: Set[str] = set()
    registry_codes: Set[str] = set()
    for ident in list(data_ids) + context_ids:
        if ident.state_fips:
            state_codes.add(ident.state_fips)
        if ident.registry:
            registry_codes.add(ident.registry)

    logger.info(
        f"Resolved {len(data_ids)} identifiers to {level.value} level across "
        f"{len(state_codes)} states ({len(context_ids)} context rows)"
    )
    return Resolution(
        level=level,
        state_codes=state_codes,
        registry_codes=registry_codes,
        unmatched=report,
        data_ids=list(data_ids),
        context_ids=context_ids,
    )

"""
Error taxonomy and the unmatched-identifier report.

Format and catalog misses are recorded and the row is skipped; level
conflicts and bad configuration abort before any geometry is loaded;
partition load failures degrade the affected state only.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

import pandas as pd

UNKNOWN_FORMAT = "unknown-format"
UNKNOWN_IN_CATALOG = "unknown-in-catalog"
CROSS_LEVEL_CONFLICT = "cross-level-conflict"

REASONS = (UNKNOWN_FORMAT, UNKNOWN_IN_CATALOG, CROSS_LEVEL_CONFLICT)


class SeerMapperError(Exception):
    """Base class for all seermapper errors."""


class FormatError(SeerMapperError, ValueError):
    """Identifier does not match any known shape."""


class CatalogMissError(SeerMapperError, KeyError):
    """Identifier is well formed but has no geometry in the catalog."""


class ConfigError(SeerMapperError, ValueError):
    """Invalid category, hatch, expansion or column configuration."""


class LevelConflictError(SeerMapperError, ValueError):
    """Identifiers mix mapping levels that cannot be drawn together."""

    def __init__(self, conflicts: Dict[str, List[str]]):
        self.conflicts = conflicts
        parts = []
        for level, ids in conflicts.items():
            shown = ", ".join(ids[:10])
            more = f" and {len(ids) - 10} others" if len(ids) > 10 else ""
            parts.append(f"{level}: {shown}{more}")
        super().__init__(
            "Identifiers mix incompatible mapping levels; split the request. "
            + "; ".join(parts)
        )


class PartialCatalogLoadError(SeerMapperError, RuntimeError):
    """A boundary partition could not be read from the store."""

    def __init__(self, key, message: str):
        self.key = key
        super().__init__(message)


class UnmatchedReport:
    """Identifiers that could not be placed on the map, grouped by reason."""

    def __init__(self):
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self.failed_partitions: List[str] = []

    def add(self, identifier, reason: str) -> None:
        if reason not in REASONS:
            raise ValueError(f"Unknown unmatched reason: {reason}")
        key = str(identifier)
        # The first reason recorded for an identifier wins
        if key not in self._entries:
            self._entries[key] = reason

    def extend(self, identifiers: Iterable, reason: str) -> None:
        for identifier in identifiers:
            self.add(identifier, reason)

    def add_failed_partition(self, key) -> None:
        """Record a dataset that could not be read, once."""
        key = str(key)
        if key not in self.failed_partitions:
            self.failed_partitions.append(key)

    def merge(self, other: "UnmatchedReport") -> "UnmatchedReport":
        for identifier, reason in other._entries.items():
            self.add(identifier, reason)
        for partition in other.failed_partitions:
            self.add_failed_partition(partition)
        return self

    def discard(self, identifier) -> None:
        self._entries.pop(str(identifier), None)

    def ids(self, reason: Optional[str] = None) -> List[str]:
        if reason is None:
            return list(self._entries)
        return [i for i, r in self._entries.items() if r == reason]

    def reason_for(self, identifier) -> Optional[str]:
        return self._entries.get(str(identifier))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"identifier": list(self._entries), "reason": list(self._entries.values())},
            columns=["identifier", "reason"],
        )

    def summary(self) -> str:
        if not self._entries and not self.failed_partitions:
            return "all identifiers matched"
        counts = [f"{len(self.ids(r))} {r}" for r in REASONS if self.ids(r)]
        if self.failed_partitions:
            counts.append(f"{len(self.failed_partitions)} partitions failed to load")
        return ", ".join(counts)

    def __contains__(self, identifier) -> bool:
        return str(identifier) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries) or bool(self.failed_partitions)

    def __repr__(self) -> str:
        return f"UnmatchedReport({self.summary()})"

from .assembler import AssembledMap, Expansion, ExpansionPolicy, RegionRecord, assemble
from .catalog import (
    BoundaryCache, DatasetKey, FrameBoundaryStore, GeometryCatalog, ParquetBoundaryStore,
)
from .classify import CategorySpec, Classification, HatchSpec, classify_values, hatch
from .errors import (
    CatalogMissError, ConfigError, FormatError, LevelConflictError,
    PartialCatalogLoadError, UnmatchedReport,
)
from .identifiers import Level, LocationIdentifier, classify, classify_column, zero_pad
from .levels import Resolution, resolve
from .options import MapOptions
from .pipeline import MapResult, prepare_map

__all__ = [
    "AssembledMap", "Expansion", "ExpansionPolicy", "RegionRecord", "assemble",
    "BoundaryCache", "DatasetKey", "FrameBoundaryStore", "GeometryCatalog", "ParquetBoundaryStore",
    "CategorySpec", "Classification", "HatchSpec", "classify_values", "hatch",
    "CatalogMissError", "ConfigError", "FormatError", "LevelConflictError",
    "PartialCatalogLoadError", "UnmatchedReport",
    "Level", "LocationIdentifier", "classify", "classify_column", "zero_pad",
    "Resolution", "resolve", "MapOptions", "MapResult", "prepare_map",
]

# -------------------------
# seermapper file structure
# -------------------------
# config.py: FIPS codes, registries, vintages, defaults.
# errors.py: error taxonomy + UnmatchedReport.
# identifiers.py: classify raw ids into levels (zero-padding ints).
# levels.py: resolve one mapping level + partitions to load.
# validation.py: boundary dataset schema checks.
# geometry_utils.py: geometry hygiene and centroids.
# catalog.py: boundary stores, cache, per-level load/parent/children.
# assembler.py: load partitions, attach data, expansion, overlays.
# classify.py: quantile/user breakpoints, hatch predicate.
# options.py: option validation and column resolution.
# pipeline.py: prepare_map orchestration.
# render.py: matplotlib reference renderer.
# cli.py: argparse entrypoint.

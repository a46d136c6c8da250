"""
Test Boundary Assembly

Validates that the assembled region set holds every data-bearing area,
that expansion policies add context areas without changing which areas
carry data, that overlays follow their own policies and that a failed
partition degrades only its own state.
"""
import pandas as pd
import pytest

from seermapper.assembler import Expansion, ExpansionPolicy, assemble
from seermapper.catalog import FrameBoundaryStore, GeometryCatalog
from seermapper.errors import UNKNOWN_IN_CATALOG
from seermapper.identifiers import Level, classify_column
from seermapper.levels import resolve

from conftest import build_frames, write_parquet_store


def build(catalog, values, year=2000, **policy):
    resolution = resolve(classify_column(values), catalog=catalog, year=year)
    return assemble(resolution, catalog, year=year, expansion=ExpansionPolicy(**policy))


def ids(frame):
    return sorted(frame["region_id"])


class TestDataRegions:
    """Data-bearing regions and unmatched ids."""

    def test_counties_drawn_with_data_only(self, catalog):
        result = build(catalog, ["06037", "08001"])
        assert result.level is Level.COUNTY
        assert ids(result.regions) == ["06037", "08001"]
        assert result.regions["has_data"].all()
        assert not result.unmatched

    def test_unknown_county_is_reported(self, catalog):
        result = build(catalog, ["06037", "06999"])
        assert ids(result.regions) == ["06037"]
        assert result.unmatched.reason_for("06999") == UNKNOWN_IN_CATALOG

    def test_region_columns(self, catalog):
        result = build(catalog, ["06037"])
        row = result.records()[0]
        assert row.region_id == "06037"
        assert row.state_fips == "06"
        assert row.registry == "CA-LA"
        assert row.level is Level.COUNTY
        assert row.has_data
        assert row.geometry.contains(row.geometry.representative_point())

    def test_states(self, catalog):
        result = build(catalog, ["06", "53"])
        assert result.level is Level.STATE
        assert ids(result.regions) == ["06", "53"]
        assert "state" not in result.overlays

    def test_registries(self, catalog):
        result = build(catalog, ["CA-LA", "CA-SJ"])
        assert result.level is Level.REGISTRY
        assert ids(result.regions) == ["CA-LA", "CA-SJ"]
        assert "registry" not in result.overlays

    def test_hsas(self, catalog):
        result = build(catalog, ["101", "201"])
        assert ids(result.regions) == ["101", "201"]

    def test_tracts_follow_year(self, catalog):
        result = build(catalog, ["06037101110", "06037101200"], year=2010)
        assert ids(result.regions) == ["06037101110", "06037101200"]
        result = build(catalog, ["06037101110", "06037101200"], year=2000)
        assert ids(result.regions) == ["06037101200"]
        assert result.unmatched.reason_for("06037101110") == UNKNOWN_IN_CATALOG

    def test_empty_request(self, catalog):
        result = build(catalog, ["garbage"])
        assert result.level is None
        assert result.regions.empty

    def test_data_is_attached(self, catalog):
        resolution = resolve(classify_column(["06037", "08001"]), catalog=catalog)
        data = pd.DataFrame({"region_id": ["06037", "08001", "06037"], "value": [1.0, 2.0, 9.0]})
        result = assemble(resolution, catalog, data=data)
        values = dict(zip(result.regions["region_id"], result.regions["value"]))
        # repeated rows keep the first value
        assert values == {"06037": 1.0, "08001": 2.0}


class TestExpansion:
    """Context regions around the data-bearing ones."""

    def test_state_expansion(self, catalog):
        """Counties in 06 and 08 expand to all their counties and none of 53."""
        result = build(catalog, ["06037", "08001", "53"], county="STATE")
        assert ids(result.regions) == [
            "06001", "06037", "06075", "06085", "08001", "08013", "08059",
        ]
        assert ids(result.data_regions) == ["06037", "08001"]

    def test_all_expansion_keeps_data_flags(self, catalog):
        """ALL filtered to data-bearing regions equals DATA."""
        everything = build(catalog, ["06037", "08001"], county="ALL")
        data_only = build(catalog, ["06037", "08001"], county="DATA")
        assert ids(everything.data_regions) == ids(data_only.regions)
        assert len(everything.regions) > len(data_only.regions)

    def test_none_equals_data_for_mapping_level(self, catalog):
        assert ids(build(catalog, ["06037"], county="NONE").regions) == ["06037"]

    def test_registry_expansion(self, catalog):
        """Counties in a registry expand to the registry; others fall back to their state."""
        result = build(catalog, ["06001", "08001"], county="SEER")
        assert ids(result.regions) == ["06001", "06075", "08001", "08013", "08059"]

    def test_all_registries_of_context_states(self, catalog):
        """A state row next to registries adds that state's registries under ALL."""
        result = build(catalog, ["CA-LA", "53"], seer="ALL")
        assert result.level is Level.REGISTRY
        assert ids(result.regions) == ["CA-LA", "CA-SF", "CA-SJ", "WA-SEA"]
        assert ids(result.data_regions) == ["CA-LA"]

    def test_tract_state_expansion(self, catalog):
        result = build(catalog, ["06037101100"], tract="STATE")
        assert ids(result.regions) == ["06001400100", "06037101100", "06037101200"]

    def test_expansion_parse(self):
        assert Expansion.parse("registry") is Expansion.SEER
        assert Expansion.parse(" all ") is Expansion.ALL


class TestOverlays:
    """Outline layers drawn over the regions."""

    def test_state_outlines_for_data_states(self, catalog):
        result = build(catalog, ["06037", "08001"])
        assert ids(result.overlays["state"]) == ["06", "08"]
        assert not result.overlays["state"]["has_data"].any()

    def test_state_outlines_include_context_states(self, catalog):
        result = build(catalog, ["06037", "53"])
        assert ids(result.overlays["state"]) == ["06", "53"]

    def test_all_states_contiguous(self, catalog):
        """Alaska and Hawaii are left out unless requested."""
        result = build(catalog, ["06037"], state="ALL")
        assert ids(result.overlays["state"]) == ["06", "08", "51", "53"]
        result = build(catalog, ["06037", "02020"], state="ALL")
        assert "02" in ids(result.overlays["state"])

    def test_all_states_everywhere(self, catalog):
        resolution = resolve(classify_column(["06037"]), catalog=catalog)
        result = assemble(resolution, catalog, expansion=ExpansionPolicy(state="ALL"), map_restriction="all")
        assert ids(result.overlays["state"]) == ["02", "06", "08", "15", "51", "53"]

    def test_no_state_outlines(self, catalog):
        assert "state" not in build(catalog, ["06037"], state="NONE").overlays

    def test_registry_outline(self, catalog):
        result = build(catalog, ["06037", "08001"], seer="DATA")
        assert ids(result.overlays["registry"]) == ["CA-LA"]
        result = build(catalog, ["06037"], seer="STATE")
        assert ids(result.overlays["registry"]) == ["CA-LA", "CA-SF", "CA-SJ"]

    def test_hsa_outline_for_counties(self, catalog):
        result = build(catalog, ["06037"], hsa="DATA")
        assert ids(result.overlays["hsa"]) == ["102"]

    def test_county_outline_for_tracts(self, catalog):
        result = build(catalog, ["06037101100"], county="DATA")
        assert ids(result.overlays["county"]) == ["06037"]
        result = build(catalog, ["06037101100"], county="STATE")
        assert ids(result.overlays["county"]) == ["06001", "06037", "06075", "06085"]

    def test_county_outline_for_hsas(self, catalog):
        result = build(catalog, ["101"], county="DATA")
        assert ids(result.overlays["county"]) == ["06001", "06075"]


class TestDegradedLoads:
    """A partition that fails to load only affects its own state."""

    def test_missing_partition_degrades_one_state(self, catalog):
        result = build(catalog, ["02020", "08014"], year=2010)
        assert ids(result.regions) == ["08014"]
        assert result.unmatched.reason_for("02020") == UNKNOWN_IN_CATALOG
        assert result.unmatched.failed_partitions == ["county/2010/02"]

    def test_everything_failed(self, catalog):
        result = build(catalog, ["02020"], year=2010)
        assert result.regions.empty
        assert result.unmatched.reason_for("02020") == UNKNOWN_IN_CATALOG

    def test_missing_state_outlines_recorded_once(self):
        frames = {k: v for k, v in build_frames().items() if k[0] != "state"}
        catalog = GeometryCatalog(FrameBoundaryStore(frames))
        result = build(catalog, ["06037", "08001"])
        assert ids(result.regions) == ["06037", "08001"]
        assert "state" not in result.overlays
        assert result.unmatched.failed_partitions == ["state/2000/US"]

    def test_unreadable_county_attributes_drop_the_hsa_layer(self, tmp_path):
        root = write_parquet_store(tmp_path)
        (root / "county" / "2000" / "attributes.parquet").write_bytes(b"not a parquet file")
        catalog = GeometryCatalog.from_directory(root)
        result = build(catalog, ["06037", "08001"], hsa="DATA")
        assert ids(result.regions) == ["06037", "08001"]
        assert "hsa" not in result.overlays
        assert "state" in result.overlays
        assert result.unmatched.failed_partitions == ["county/2000/attributes"]

    def test_unreadable_hsa_attributes(self, tmp_path):
        """HSAs cannot be placed in a state, so they are reported, not raised."""
        root = write_parquet_store(tmp_path)
        (root / "hsa" / "2000" / "attributes.parquet").write_bytes(b"not a parquet file")
        catalog = GeometryCatalog.from_directory(root)
        result = build(catalog, ["101", "102"], county="DATA")
        assert result.regions.empty
        assert result.unmatched.ids(UNKNOWN_IN_CATALOG) == ["101", "102"]
        assert result.unmatched.failed_partitions == ["hsa/2000/attributes"]

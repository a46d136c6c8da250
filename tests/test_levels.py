"""
Test Mapping Level Resolution

Validates that one mapping level is chosen per request, that coarser
rows become context, and that incompatible mixes are rejected before
any boundary is loaded.
"""
import pytest

from seermapper.errors import (
    CROSS_LEVEL_CONFLICT, UNKNOWN_FORMAT, UNKNOWN_IN_CATALOG, LevelConflictError,
)
from seermapper.identifiers import Level, classify_column
from seermapper.levels import resolve


def _resolve(values, catalog=None, **kwargs):
    return resolve(classify_column(values), catalog=catalog, **kwargs)


class TestLevelChoice:
    """The finest present level wins over states and registries."""

    def test_states_only(self):
        res = _resolve(["06", "08"])
        assert res.level is Level.STATE
        assert res.state_codes == {"06", "08"}
        assert res.data_keys == ["06", "08"]

    def test_counties_with_state_context(self):
        """A state row next to county rows is drawn as context, not data."""
        res = _resolve(["06037", "08001", "53"])
        assert res.level is Level.COUNTY
        assert res.data_keys == ["06037", "08001"]
        assert [i.code for i in res.context_ids] == ["53"]
        assert res.state_codes == {"06", "08", "53"}
        assert res.data_states == {"06", "08"}
        assert not res.unmatched

    def test_registries(self):
        res = _resolve(["CA-LA", "WA-SEA"])
        assert res.level is Level.REGISTRY
        assert res.registry_codes == {"CA-LA", "WA-SEA"}
        assert res.state_codes == {"06", "53"}

    def test_registry_rows_are_context_for_counties(self):
        res = _resolve(["CA-LA", "06037"])
        assert res.level is Level.COUNTY
        assert res.registry_codes == {"CA-LA"}
        assert [i.code for i in res.context_ids] == ["CA-LA"]

    def test_invalid_rows_are_reported(self):
        """One good county plus garbage resolves to the county level."""
        res = _resolve(["06037", "garbage"])
        assert res.level is Level.COUNTY
        assert res.data_keys == ["06037"]
        assert res.unmatched.reason_for("garbage") == UNKNOWN_FORMAT

    def test_nothing_valid(self):
        res = _resolve(["x", "y"])
        assert res.level is None
        assert res.unmatched.ids(UNKNOWN_FORMAT) == ["x", "y"]


class TestLevelConflicts:
    """Fine levels that cannot share a map."""

    def test_county_and_tract_conflict(self):
        with pytest.raises(LevelConflictError) as excinfo:
            _resolve(["06037", "06037101100"])
        assert excinfo.value.conflicts == {"county": ["06037"], "tract": ["06037101100"]}
        assert "06037101100" in str(excinfo.value)

    def test_county_and_tract_coerced_to_tract(self):
        """With coercion the tract level wins and counties become context."""
        res = _resolve(["06037", "06037101100"], allow_coercion=True)
        assert res.level is Level.TRACT
        assert res.data_keys == ["06037101100"]
        assert res.unmatched.reason_for("06037") == CROSS_LEVEL_CONFLICT

    def test_hsa_mix_is_never_coerced(self, catalog):
        with pytest.raises(LevelConflictError):
            _resolve(["101", "06037"], catalog=catalog, allow_coercion=True)


class TestHSAResolution:
    """HSA codes carry no state; the catalog supplies it."""

    def test_hsa_state_from_catalog(self, catalog):
        res = _resolve(["101", "201"], catalog=catalog)
        assert res.level is Level.HSA
        assert res.state_codes == {"06", "08"}

    def test_unknown_hsa(self, catalog):
        """202 only exists from 2010 on."""
        res = _resolve(["101", "202"], catalog=catalog)
        assert res.data_keys == ["101"]
        assert res.unmatched.reason_for("202") == UNKNOWN_IN_CATALOG

    def test_hsa_2010_vintage(self, catalog):
        res = _resolve(["202"], catalog=catalog, year=2010)
        assert res.data_keys == ["202"]
        assert res.state_codes == {"08"}

"""
Test Data Classification

Validates quantile and user-supplied breakpoints, the lower-category rule
for values sitting on a breakpoint, and the hatch predicate.
"""
import math

import numpy as np
import pytest

from seermapper.classify import (
    NO_DATA_CATEGORY, CategorySpec, HatchSpec, classify_values, hatch, hatch_values,
    quantile_breakpoints,
)
from seermapper.errors import ConfigError


class TestQuantileBreakpoints:
    """Type-7 quantiles split the values into near-equal groups."""

    def test_ten_values_five_categories(self):
        """Values 1..10 in 5 categories give two values per category."""
        result = classify_values(range(1, 11), CategorySpec(count=5))
        assert result.breakpoints == pytest.approx([2.8, 4.6, 6.4, 8.2])
        assert result.counts() == [2, 2, 2, 2, 2]
        assert list(result.categories) == [0, 0, 1, 1, 2, 2, 3, 3, 4, 4]

    def test_default_is_five_categories(self):
        result = classify_values([1.0, 2.0, 3.0, 4.0, 5.0])
        assert result.count == 5

    def test_ties_collapse_categories(self):
        """Duplicate breakpoints are dropped rather than leaving empty classes."""
        breaks = quantile_breakpoints([1, 1, 1, 1, 1, 1, 2], 4)
        assert breaks == sorted(set(breaks))
        assert all(b < 2 for b in breaks)

    def test_constant_values(self):
        result = classify_values([3.0, 3.0, 3.0], CategorySpec(count=5))
        assert result.breakpoints == []
        assert list(result.categories) == [0, 0, 0]

    def test_missing_values_are_no_data(self):
        result = classify_values([1.0, np.nan, 3.0], CategorySpec(count=3))
        assert result.categories[1] == NO_DATA_CATEGORY
        assert sum(result.counts()) == 2

    def test_edges_span_the_data(self):
        result = classify_values(range(1, 11), CategorySpec(count=5))
        assert result.edges[0] == 1.0
        assert result.edges[-1] == 10.0
        assert len(result.labels()) == 5


class TestUserBreakpoints:
    """Caller-supplied breakpoints."""

    def test_value_on_breakpoint_goes_to_lower_category(self):
        spec = CategorySpec(breakpoints=(0.6, 0.8, 1.0, 1.2, 1.4))
        result = classify_values([0.9, 0.8, 0.5, 2.0], spec)
        assert result.category_of(0.9) == 2
        assert result.category_of(0.8) == 1
        assert list(result.categories) == [2, 1, 0, 5]
        assert result.count == 6

    def test_open_ended_labels(self):
        result = classify_values([0.5, 0.7], CategorySpec(breakpoints=(0.6,)))
        assert result.edges == [0.5, 0.6, 0.7]
        assert result.category_of(None) == NO_DATA_CATEGORY

    def test_breakpoints_must_increase(self):
        with pytest.raises(ConfigError):
            CategorySpec(breakpoints=(0.8, 0.6))
        with pytest.raises(ConfigError):
            CategorySpec(breakpoints=(0.6, 0.6))

    def test_at_most_five_breakpoints(self):
        with pytest.raises(ConfigError):
            CategorySpec(breakpoints=(1, 2, 3, 4, 5, 6))

    def test_breakpoints_must_be_finite(self):
        with pytest.raises(ConfigError):
            CategorySpec(breakpoints=(1.0, math.inf))


class TestCategoryOption:
    """Parsing the ``categ`` option."""

    @pytest.mark.parametrize("count", [2, 12, 0])
    def test_count_out_of_range(self, count):
        with pytest.raises(ConfigError):
            CategorySpec.from_option(count)

    def test_string_forms(self):
        assert CategorySpec.from_option("7").count == 7
        assert CategorySpec.from_option("0.6, 0.8").breakpoints == (0.6, 0.8)

    def test_list_form(self):
        spec = CategorySpec.from_option([1, 2, 3])
        assert spec.breakpoints == (1.0, 2.0, 3.0)
        assert spec.n_categories == 4

    def test_rejects_other_types(self):
        with pytest.raises(ConfigError):
            CategorySpec.from_option(True)
        with pytest.raises(ConfigError):
            CategorySpec.from_option("a,b")


class TestHatch:
    """Hatch predicate over a second value column."""

    def test_default_p_value_test(self):
        spec = HatchSpec()
        assert not hatch(0.05, spec)
        assert hatch(0.051, spec)

    def test_operators(self):
        assert hatch(0.01, HatchSpec(op="<", threshold=0.05))
        assert hatch(0.05, HatchSpec(op=">=", threshold=0.05))
        assert hatch(1, HatchSpec(op="eq", threshold=1))

    def test_missing_values_are_not_hatched(self):
        spec = HatchSpec()
        assert not hatch(None, spec)
        assert not hatch(float("nan"), spec)
        assert list(hatch_values([0.2, np.nan, 0.01], spec)) == [True, False, False]

    def test_invalid_configuration(self):
        with pytest.raises(ConfigError):
            HatchSpec(op="~")
        with pytest.raises(ConfigError):
            HatchSpec(threshold="abc")

    def test_option_forms(self):
        assert HatchSpec.from_option(False) is None
        assert HatchSpec.from_option(True) == HatchSpec()
        spec = HatchSpec.from_option({"op": "<", "value": 0.01})
        assert spec.op == "<" and spec.threshold == 0.01
        with pytest.raises(ConfigError):
            HatchSpec.from_option("yes")

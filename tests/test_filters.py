"""
Unit Tests for filter normalization, the municipality -> school reset and record filtering.
"""

import pandas as pd
import pytest

from vpr_core.filters import (
    ALL,
    DEFAULT_FILTERS,
    FilterState,
    apply_filter_change,
    default_filters,
    filter_options,
    filter_records,
    normalize_filters,
)


class TestNormalizeFilters:
    """Tests for normalize_filters and FilterState."""

    @pytest.mark.parametrize("sentinel", [ALL, "all", "ALL", "", "  ", None])
    def test_normalize_when_sentinel_then_unrestricted(self, sentinel):
        f = normalize_filters({"year": sentinel})
        assert f.year is None

    def test_normalize_when_values_then_stripped_strings(self):
        f = normalize_filters({"year": 2023, "grade": " 4 ", "subject": "Математика"})
        assert f == FilterState(year="2023", grade="4", subject="Математика")

    def test_normalize_when_use_defaults_then_missing_keys_filled(self):
        f = normalize_filters({"grade": "5"}, use_defaults=True)
        assert f.year == DEFAULT_FILTERS["year"]
        assert f.grade == "5"
        assert f.subject == DEFAULT_FILTERS["subject"]
        assert f.municipality is None

    def test_default_filters_when_called_then_all_for_places(self):
        f = default_filters()
        assert f.as_display() == DEFAULT_FILTERS

    def test_filter_state_when_frozen_then_hashable_and_immutable(self):
        f = FilterState(year="2023")
        assert hash(f) == hash(FilterState(year="2023"))
        with pytest.raises(AttributeError):
            f.year = "2024"  # type: ignore

    def test_restrictions_when_partial_then_only_set_dimensions(self):
        assert FilterState(year="2023", school="Школа 1").restrictions() == {"year": "2023", "school": "Школа 1"}


class TestApplyFilterChange:
    """Tests for apply_filter_change."""

    def test_change_when_municipality_changes_then_school_reset(self):
        current = FilterState(municipality="Северный", school="Школа 1")
        updated = apply_filter_change(current, {"municipality": "Южный"})
        assert updated.municipality == "Южный"
        assert updated.school is None

    def test_change_when_municipality_set_to_all_then_school_reset(self):
        current = FilterState(municipality="Северный", school="Школа 1")
        assert apply_filter_change(current, {"municipality": ALL}).school is None

    def test_change_when_same_municipality_then_school_kept(self):
        current = FilterState(municipality="Северный", school="Школа 1")
        updated = apply_filter_change(current, {"municipality": "Северный", "school": "Школа 1"})
        assert updated.school == "Школа 1"

    def test_change_when_municipality_and_school_both_change_then_school_reset(self):
        current = FilterState(municipality="Северный", school="Школа 1")
        updated = apply_filter_change(current, {"municipality": "Южный", "school": "Школа 1"})
        assert updated.school is None

    def test_change_when_other_dimension_then_school_kept(self):
        current = FilterState(year="2023", municipality="Северный", school="Школа 1")
        updated = apply_filter_change(current, {"year": "2024"})
        assert updated == FilterState(year="2024", municipality="Северный", school="Школа 1")

    def test_change_when_unknown_keys_then_ignored(self):
        current = FilterState(year="2023")
        assert apply_filter_change(current, {"colour": "red"}) == current


class TestFilterRecords:
    """Tests for filter_records and filter_options."""

    def test_filter_when_restricted_then_exact_match(self, small_ctx):
        out = filter_records(small_ctx.marks, FilterState(year="2023", municipality="Северный"))
        assert sorted(out["school"]) == ["Школа 1", "Школа 2"]

    def test_filter_when_unrestricted_then_all_rows_copy(self, small_ctx):
        out = filter_records(small_ctx.marks, FilterState())
        assert len(out) == len(small_ctx.marks)
        assert out is not small_ctx.marks

    def test_filter_when_no_match_then_empty(self, small_ctx):
        assert filter_records(small_ctx.marks, FilterState(subject="История")).empty

    def test_filter_when_column_missing_then_dimension_ignored(self):
        df = pd.DataFrame({"year": ["2023", "2024"], "participants": [1, 2]})
        assert len(filter_records(df, FilterState(year="2023", school="Школа 1"))) == 1

    def test_filter_when_none_frame_then_empty_frame(self):
        assert filter_records(None, FilterState()).empty

    def test_options_when_municipality_selected_then_schools_restricted(self, small_ctx):
        options = filter_options(small_ctx.marks, FilterState(municipality="Южный"))
        assert options["school"] == ["Школа 3"]
        assert options["municipality"] == ["Северный", "Южный"]
        assert options["year"] == ["2023", "2024"]

    def test_options_when_numeric_values_then_numeric_order(self):
        df = pd.DataFrame({"grade": ["10", "4", "5", "4"]})
        assert filter_options(df)["grade"] == ["4", "5", "10"]

    def test_options_when_empty_frame_then_empty_lists(self):
        options = filter_options(pd.DataFrame())
        assert all(values == [] for values in options.values())

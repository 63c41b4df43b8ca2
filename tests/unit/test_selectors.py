"""Unit tests for column selectors."""

import pytest

from tblsummary.errors import StylingError
from tblsummary.selectors import (
    all_categorical,
    all_continuous,
    all_dichotomous,
    all_stat_cols,
    contains,
    everything,
    resolve_columns,
    resolve_mapping,
    starts_with,
)

VAR_TYPES = {"age": "continuous", "grade": "categorical", "response": "dichotomous"}


def test_all_stat_cols():
    """Test stat column selection with and without stat_0."""
    columns = ["label", "stat_0", "stat_1", "stat_2", "p_value"]
    assert resolve_columns(all_stat_cols(), columns) == ["stat_0", "stat_1", "stat_2"]
    assert resolve_columns(all_stat_cols(stat_0=False), columns) == ["stat_1", "stat_2"]


def test_type_selectors():
    """Test selectors based on summary type."""
    variables = list(VAR_TYPES)
    assert resolve_columns(all_continuous(), variables, VAR_TYPES) == ["age"]
    assert resolve_columns(all_categorical(), variables, VAR_TYPES) == ["grade", "response"]
    assert resolve_columns(all_categorical(dichotomous=False), variables, VAR_TYPES) == ["grade"]
    assert resolve_columns(all_dichotomous(), variables, VAR_TYPES) == ["response"]


def test_type_selector_requires_types():
    """Test type selectors fail where summary types are unknown."""
    with pytest.raises(StylingError, match="summary types"):
        resolve_columns(all_continuous(), ["age"])


def test_name_selectors():
    """Test starts_with, contains and everything."""
    columns = ["estimate_1", "ci_1", "estimate_2"]
    assert resolve_columns(starts_with("estimate"), columns) == ["estimate_1", "estimate_2"]
    assert resolve_columns(contains("_1"), columns) == ["estimate_1", "ci_1"]
    assert resolve_columns(everything(), columns) == columns


def test_resolve_columns_order_and_duplicates():
    """Test names keep given order, selectors candidate order, no duplicates."""
    columns = ["a1", "b", "a2"]
    assert resolve_columns(["b", starts_with("a"), "a1"], columns) == ["b", "a1", "a2"]


def test_resolve_columns_unknown_name():
    """Test an unknown column name raises StylingError."""
    with pytest.raises(StylingError, match="not found"):
        resolve_columns("missing", ["a", "b"])


def test_resolve_columns_none():
    """Test None selects nothing."""
    assert resolve_columns(None, ["a"]) == []


def test_resolve_mapping():
    """Test tuple keys and later entries overriding earlier ones."""
    resolved = resolve_mapping({("a", "b"): 1, "b": 2}, ["a", "b", "c"])
    assert resolved == {"a": 1, "b": 2}


def test_resolve_mapping_scalar():
    """Test a scalar applies to every candidate."""
    assert resolve_mapping(3, ["a", "b"]) == {"a": 3, "b": 3}


def test_resolve_mapping_selector_key():
    """Test selector keys in mappings."""
    resolved = resolve_mapping({all_continuous(): "{mean}"}, list(VAR_TYPES), VAR_TYPES)
    assert resolved == {"age": "{mean}"}

"""Unit tests for tbl_summary."""

import numpy as np
import pandas as pd
import pytest

from tblsummary.errors import StylingError
from tblsummary.selectors import all_continuous
from tblsummary.styling import clean_table_styling, cols_to_show
from tblsummary.summary import guess_digits, infer_summary_type, stat_label, tbl_summary
from tblsummary.table import TblSummary


class TestInferSummaryType:
    """Tests for summary type inference."""

    def test_dichotomous(self):
        """Test booleans, 0/1 and yes/no are dichotomous."""
        assert infer_summary_type(pd.Series([True, False, True])) == "dichotomous"
        assert infer_summary_type(pd.Series([0, 1, 1, np.nan])) == "dichotomous"
        assert infer_summary_type(pd.Series(["Yes", "no", "yes"])) == "dichotomous"

    def test_categorical(self):
        """Test strings and numbers with few unique values are categorical."""
        assert infer_summary_type(pd.Series(["a", "b", "c"])) == "categorical"
        assert infer_summary_type(pd.Series([1, 2, 3] * 5)) == "categorical"

    def test_continuous(self):
        """Test numbers with many unique values are continuous."""
        assert infer_summary_type(pd.Series(range(20), dtype=float)) == "continuous"


def test_guess_digits():
    """Test decimal places follow the 5th-95th percentile spread."""
    assert guess_digits(pd.Series(np.linspace(0, 0.1, 50))) == 4
    assert guess_digits(pd.Series(np.linspace(0, 5, 50))) == 2
    assert guess_digits(pd.Series(np.linspace(0, 100, 50))) == 0
    assert guess_digits(pd.Series([np.nan, np.nan])) == 0


def test_stat_label():
    """Test statistic patterns are described for footnotes."""
    assert stat_label("{median} ({p25}, {p75})") == "Median (IQR)"
    assert stat_label("{n} ({p}%)") == "n (%)"
    assert stat_label("{mean} ({sd})") == "Mean (SD)"


def test_categorical_counts(small_df):
    """Test level counts, column percents and the missing row."""
    tbl = tbl_summary(small_df)
    body = tbl.table_body
    assert list(body["row_type"]) == ["label", "level", "level", "missing"]
    assert list(body["label"]) == ["g", "a", "b", "Unknown"]
    assert pd.isna(body["stat_0"].iloc[0])
    assert list(body["stat_0"].iloc[1:]) == ["2 (67%)", "1 (33%)", "1"]


def test_missing_options(small_df):
    """Test missing="no" drops the missing row and "always" adds it."""
    assert "missing" not in set(tbl_summary(small_df, missing="no").table_body["row_type"])
    df = pd.DataFrame({"g": ["a", "b"]})
    body = tbl_summary(df, missing="always", missing_text="(Missing)").table_body
    assert body["label"].iloc[-1] == "(Missing)"
    assert body["stat_0"].iloc[-1] == "0"


def test_invalid_missing_option(small_df):
    """Test an unknown missing option raises StylingError."""
    with pytest.raises(StylingError, match="missing"):
        tbl_summary(small_df, missing="sometimes")


def test_continuous_statistic_and_digits():
    """Test custom statistic patterns and digits."""
    df = pd.DataFrame({"x": np.arange(1, 12, dtype=float)})
    tbl = tbl_summary(df, statistic={all_continuous(): "{mean} ({sd})"}, digits=1)
    assert tbl.table_body["stat_0"].iloc[0] == "6.0 (3.3)"
    assert tbl.meta_data["stat_label"].iloc[0] == "Mean (SD)"


def test_percentiles():
    """Test the default median and quartiles."""
    df = pd.DataFrame({"x": np.arange(1, 12, dtype=float)})
    tbl = tbl_summary(df, digits={"x": 0})
    assert tbl.table_body["stat_0"].iloc[0] == "6 (3, 9)"


def test_unknown_statistic():
    """Test an unknown statistic token raises StylingError."""
    df = pd.DataFrame({"x": np.arange(20, dtype=float)})
    with pytest.raises(StylingError, match="unknown statistics"):
        tbl_summary(df, statistic="{median} ({iqr})")


def test_dichotomous_single_row():
    """Test dichotomous variables show one row for the "true" level."""
    df = pd.DataFrame({"flag": [True, False, True]})
    body = tbl_summary(df).table_body
    assert list(body["row_type"]) == ["label"]
    assert body["stat_0"].iloc[0] == "2 (67%)"


class TestYesNoStrings:
    """Tests for yes/no string variables."""

    def test_case_variants_counted_together(self):
        """Test "Yes" and "yes" count toward the same level."""
        df = pd.DataFrame({"smoker": ["Yes", "yes", "No", "no", "no"]})
        body = tbl_summary(df).table_body
        assert list(body["row_type"]) == ["label"]
        assert body["stat_0"].iloc[0] == "2 (40%)"

    def test_no_yes_values(self):
        """Test a column without any "yes" reports zero."""
        df = pd.DataFrame({"smoker": ["no", "no", "No"]})
        body = tbl_summary(df).table_body
        assert body["stat_0"].iloc[0] == "0 (0%)"


def test_sort_frequency():
    """Test levels ordered by frequency."""
    df = pd.DataFrame({"g": ["a", "b", "b", "c", "c", "c"]})
    body = tbl_summary(df, sort="frequency").table_body
    assert list(body["label"]) == ["g", "c", "b", "a"]


def test_percent_row():
    """Test row percents use the level total across by groups."""
    df = pd.DataFrame({"g": ["a", "a", "a", "b"], "by": ["x", "y", "y", "y"]})
    body = tbl_summary(df, by="by", percent="row").table_body
    level_a = body.loc[body["label"] == "a"].iloc[0]
    assert level_a["stat_1"] == "1 (33%)"
    assert level_a["stat_2"] == "2 (67%)"


def test_percent_cell():
    """Test cell percents use the grand total as denominator."""
    df = pd.DataFrame({"g": ["a", "a", "a", "b"], "by": ["x", "y", "y", "y"]})
    body = tbl_summary(df, by="by", percent="cell").table_body
    level_a = body.loc[body["label"] == "a"].iloc[0]
    level_b = body.loc[body["label"] == "b"].iloc[0]
    assert level_a["stat_1"] == "1 (25%)"
    assert level_a["stat_2"] == "2 (50%)"
    assert level_b["stat_1"] == "0 (0%)"
    assert level_b["stat_2"] == "1 (25%)"


class TestTblSummaryBy:
    """Tests for tbl_summary with a by variable."""

    def test_structure(self, trial):
        """Test stat columns, row types and table class."""
        tbl = tbl_summary(trial, by="trt", include=["age", "grade", "response"])
        assert isinstance(tbl, TblSummary)
        assert tbl.by == "trt"
        assert cols_to_show(tbl) == ["label", "stat_1", "stat_2"]
        body = tbl.table_body
        assert list(body.loc[body["variable"] == "grade", "label"]) == ["grade", "I", "II", "III"]
        assert body.loc[body["variable"] == "age", "row_type"].tolist() == ["label", "missing"]
        assert body.loc[body["variable"] == "response", "var_type"].iloc[0] == "dichotomous"

    def test_headers(self, trial):
        """Test header labels carry level names and counts."""
        tbl = tbl_summary(trial, by="trt", include=["age"])
        header = tbl.table_styling.header.set_index("column")
        n_a = int((trial["trt"] == "Drug A").sum())
        assert header.at["label", "label"] == "**Characteristic**"
        assert header.at["stat_1", "label"] == f"**Drug A**, N = {n_a}"
        assert header.at["stat_1", "modify_stat_level"] == "Drug A"

    def test_footnote(self, trial):
        """Test stat columns carry a footnote describing the statistics."""
        tbl = tbl_summary(trial, by="trt", include=["age", "grade"])
        footnote = clean_table_styling(tbl).footnote
        assert set(footnote["column"]) == {"stat_1", "stat_2"}
        assert set(footnote["footnote"]) == {"Median (IQR); n (%)"}

    def test_indentation(self, trial):
        """Test level and missing rows are indented."""
        tbl = tbl_summary(trial, by="trt", include=["grade"])
        text_format = clean_table_styling(tbl).text_format
        assert sorted(text_format["row_numbers"]) == [1, 2, 3]
        assert set(text_format["format_type"]) == {"indent"}

    def test_meta_data(self, trial):
        """Test per-variable metadata and df_stats."""
        tbl = tbl_summary(trial, by="trt", include=["age"])
        meta = tbl.meta_data.set_index("variable")
        assert meta.at["age", "summary_type"] == "continuous"
        df_stats = meta.at["age", "df_stats"]
        medians = df_stats.loc[df_stats["stat_name"] == "median"]
        expected = trial.loc[trial["trt"] == "Drug A", "age"].median()
        assert medians.loc[medians["by"] == "Drug A", "stat"].iloc[0] == pytest.approx(expected)

    def test_by_excluded_from_variables(self, trial):
        """Test the by column is not summarised."""
        tbl = tbl_summary(trial, by="trt")
        assert "trt" not in set(tbl.table_body["variable"])

    def test_call_list(self, trial):
        """Test the call list starts with tbl_summary only."""
        tbl = tbl_summary(trial, by="trt", include=["age"])
        assert list(tbl.call_list) == ["tbl_summary"]


def test_overall_header(small_df):
    """Test the overall column header without by."""
    header = tbl_summary(small_df).table_styling.header.set_index("column")
    assert header.at["stat_0", "label"] == "**Overall**, N = 4"


def test_missing_by_rows_dropped(caplog):
    """Test observations with a missing by value are removed and logged."""
    df = pd.DataFrame({"x": ["a", "b", "a"], "by": ["u", None, "v"]})
    with caplog.at_level("INFO", logger="tblsummary.summary"):
        tbl = tbl_summary(df, by="by")
    assert tbl.N == 2
    assert "1 observations missing 'by'" in caplog.text


def test_errors(trial):
    """Test invalid data, by and include arguments."""
    with pytest.raises(TypeError, match="DataFrame"):
        tbl_summary([1, 2, 3])
    with pytest.raises(StylingError, match="by"):
        tbl_summary(trial, by="arm")
    with pytest.raises(StylingError, match="include"):
        tbl_summary(trial, include=["height"])

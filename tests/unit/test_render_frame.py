"""Unit tests for DataFrame, markdown and LaTeX rendering."""

import pandas as pd
import pytest

from tblsummary.errors import StylingError
from tblsummary.formatting import style_sigfig
from tblsummary.merge import tbl_stack
from tblsummary.modify import (
    bold_labels,
    modify_caption,
    modify_cols_merge,
    modify_source_note,
    modify_spanning_header,
)
from tblsummary.regression import tbl_regression
from tblsummary.render.frame import (
    as_dataframe,
    as_latex,
    as_markdown,
    latex_escape,
    strip_markdown,
)
from tblsummary.summary import tbl_summary


def test_strip_markdown():
    """Test emphasis markers and tags are removed but word underscores kept."""
    assert strip_markdown("**Overall**, N = 4") == "Overall, N = 4"
    assert strip_markdown("<b>Beta</b>") == "Beta"
    assert strip_markdown("_italic_ text") == "italic text"
    assert strip_markdown("var_name") == "var_name"


def test_latex_escape():
    """Test LaTeX special characters are escaped."""
    assert latex_escape("50% & $x_1$") == r"50\% \& \$x\_1\$"


class TestAsDataframe:
    """Tests for as_dataframe."""

    def test_labels_and_values(self, small_df):
        """Test visible columns are labelled and cells formatted."""
        df = as_dataframe(tbl_summary(small_df))
        assert list(df.columns) == ["Characteristic", "Overall, N = 4"]
        assert list(df["Characteristic"]) == ["g", "a", "b", "Unknown"]
        assert list(df["Overall, N = 4"]) == ["", "2 (67%)", "1 (33%)", "1"]

    def test_no_labels(self, small_df):
        """Test col_labels=False keeps the column names."""
        df = as_dataframe(tbl_summary(small_df), col_labels=False)
        assert list(df.columns) == ["label", "stat_0"]

    def test_no_formatting(self, small_df):
        """Test fmt=False leaves missing cells missing."""
        df = as_dataframe(tbl_summary(small_df), col_labels=False, fmt=False)
        assert pd.isna(df["stat_0"].iloc[0])

    def test_keep_hidden_columns(self, small_df):
        """Test excluding the cols_hide step keeps hidden columns."""
        df = as_dataframe(tbl_summary(small_df), include=["-cols_hide"], col_labels=False)
        assert {"variable", "row_type", "label", "stat_0"} <= set(df.columns)

    def test_unknown_step(self, small_df):
        """Test an unknown step name raises StylingError."""
        with pytest.raises(StylingError):
            as_dataframe(tbl_summary(small_df), include=["fmt_magic"])

    def test_reference_symbol(self, ols_model):
        """Test reference rows show the em dash."""
        df = as_dataframe(tbl_regression(ols_model))
        assert list(df.columns) == ["Characteristic", "Beta", "95% CI", "p-value"]
        reference = df.loc[df["Characteristic"] == "I"].iloc[0]
        assert reference["Beta"] == "—"
        assert reference["95% CI"] == "—"

    def test_cols_merge(self, ols_model):
        """Test merged columns are filled with the formatted values."""
        tbl = modify_cols_merge(
            tbl_regression(ols_model),
            "{estimate} ({ci})",
            rows=lambda df: df["estimate"].notna(),
        )
        df = as_dataframe(tbl, col_labels=False)
        assert "ci" not in df.columns
        body = tbl.table_body.set_index("label")
        marker = df.set_index("label").loc["marker", "estimate"]
        expected = f"{style_sigfig(body.at['marker', 'estimate'])} ({body.at['marker', 'ci']})"
        assert marker == expected
        assert df.set_index("label").loc["I", "estimate"] == "—"

    def test_stacked_groups(self, trial):
        """Test the group column is kept first."""
        first = tbl_summary(trial, by="trt", include=["age"])
        second = tbl_summary(trial, by="trt", include=["stage"])
        df = as_dataframe(tbl_stack([first, second], group_header=["A", "B"]), col_labels=False)
        assert df.columns[0] == "groupname_col"


class TestAsMarkdown:
    """Tests for as_markdown."""

    def test_table(self, small_df):
        """Test header, alignment row, indentation and footnotes."""
        lines = as_markdown(tbl_summary(small_df)).splitlines()
        assert lines[0] == "| **Characteristic** | **Overall**, N = 4<sup>1</sup> |"
        assert lines[1] == "|:---|:---:|"
        assert lines[2] == "| g |  |"
        assert lines[3] == "| &nbsp;&nbsp;&nbsp;&nbsp;a | 2 (67%) |"
        assert lines[-1] == "<sup>1</sup> n (%)"

    def test_caption_and_source_note(self, small_df):
        """Test the caption comes first and the source note last."""
        tbl = modify_source_note(modify_caption(tbl_summary(small_df), "Cohort"), "Source: test")
        lines = as_markdown(tbl).splitlines()
        assert lines[0] == "Cohort"
        assert lines[-1] == "Source: test"

    def test_bold(self, small_df):
        """Test bold cells are wrapped in double asterisks."""
        lines = as_markdown(bold_labels(tbl_summary(small_df))).splitlines()
        assert lines[2] == "| **g** |  |"

    def test_groups(self, trial):
        """Test row groups are printed as bold rows."""
        first = tbl_summary(trial, by="trt", include=["age"])
        second = tbl_summary(trial, by="trt", include=["stage"])
        text = as_markdown(tbl_stack([first, second], group_header=["Baseline", "Staging"]))
        assert "| **Baseline** |  |  |" in text
        assert "| **Staging** |  |  |" in text

    def test_str(self, small_df):
        """Test str() of a table is its markdown."""
        tbl = tbl_summary(small_df)
        assert str(tbl) == as_markdown(tbl)


class TestAsLatex:
    """Tests for as_latex."""

    def test_table(self, small_df):
        """Test booktabs rules, labels, indentation and notes."""
        text = as_latex(tbl_summary(small_df))
        assert r"\begin{tabular}{lc}" in text
        assert r"\toprule" in text
        assert r"\textbf{Characteristic} & \textbf{Overall}, N = 4\textsuperscript{1} \\" in text
        assert r"\quad a & 2 (67\%) \\" in text
        assert r"\textsuperscript{1} n (\%)" in text
        assert text.endswith(r"\end{table}")

    def test_spanner(self, small_df):
        """Test spanning headers become multicolumn cells with rules."""
        tbl = modify_spanning_header(tbl_summary(small_df), {"stat_0": "**All**"})
        text = as_latex(tbl)
        assert r"\multicolumn{1}{c}{\textbf{All}}" in text
        assert r"\cmidrule(lr){2-2}" in text

    def test_stacked_line(self, trial):
        """Test stacked tables are separated by a midrule."""
        first = tbl_summary(trial, by="trt", include=["age"])
        second = tbl_summary(trial, by="trt", include=["stage"])
        text = as_latex(tbl_stack([first, second]))
        assert text.count(r"\midrule") == 2

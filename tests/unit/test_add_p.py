"""Unit tests for add_p and add_q."""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from tblsummary.add_p import add_p, add_q
from tblsummary.errors import StatTestError, StylingError
from tblsummary.regression import tbl_regression
from tblsummary.styling import clean_table_styling, cols_to_show
from tblsummary.summary import tbl_summary
from tblsummary.theme import set_theme


@pytest.fixture
def tbl(trial):
    """Summary of age, grade and response by treatment."""
    return tbl_summary(trial, by="trt", include=["age", "grade", "response"])


def test_p_values_on_label_rows(tbl):
    """Test p-values fill label rows only."""
    body = add_p(tbl).table_body
    labels = body["row_type"] == "label"
    assert body.loc[labels, "p_value"].notna().all()
    assert body.loc[~labels, "p_value"].isna().all()


def test_default_tests(tbl):
    """Test default tests per summary type."""
    x = add_p(tbl)
    assert x.inputs["tests"]["age"] == "wilcox.test"
    assert x.inputs["tests"]["grade"] == "chisq.test.no.correct"
    body = x.table_body.set_index("variable")
    assert body.loc["age", "test_name"].iloc[0] == "wilcox.test"


def test_styling(tbl):
    """Test header, visibility, formatter and footnote of the p-value column."""
    x = add_p(tbl)
    header = x.table_styling.header.set_index("column")
    assert header.at["p_value", "label"] == "**p-value**"
    assert "p_value" in cols_to_show(x)
    assert "statistic" not in cols_to_show(x)
    footnote = clean_table_styling(x).footnote
    note = footnote.loc[footnote["column"] == "p_value", "footnote"].iloc[0]
    assert "Wilcoxon rank sum test" in note
    assert "Pearson's Chi-squared test" in note


def test_user_test_mapping(tbl, trial):
    """Test a mapping of variable to test name."""
    x = add_p(tbl, test={"age": "t.test"})
    p_value = x.table_body.loc[x.table_body["variable"] == "age", "p_value"].iloc[0]
    complete = trial.dropna(subset=["age"])
    expected = stats.ttest_ind(
        complete.loc[complete["trt"] == "Drug A", "age"],
        complete.loc[complete["trt"] == "Drug B", "age"],
        equal_var=False,
    ).pvalue
    assert p_value == pytest.approx(expected)


def test_unsuited_test(tbl):
    """Test a continuous test on a categorical variable raises StatTestError."""
    with pytest.raises(StatTestError, match="cannot be applied"):
        add_p(tbl, test={"grade": "t.test"})


def test_unknown_test(tbl):
    """Test an unknown test name raises StatTestError."""
    with pytest.raises(StatTestError, match="not available"):
        add_p(tbl, test="magic.test")


def test_failed_test_logged(tbl, caplog):
    """Test a failing test leaves a missing p-value and logs a warning."""

    def broken(data, variable, by, group=None):
        raise ValueError("not enough data")

    with caplog.at_level("WARNING", logger="tblsummary.add_p"):
        x = add_p(tbl, test={"age": broken})
    assert np.isnan(x.table_body.loc[x.table_body["variable"] == "age", "p_value"].iloc[0])
    assert "not enough data" in caplog.text


def test_theme_test(tbl):
    """Test the add_p.test theme element sets defaults per summary type."""
    set_theme({"add_p.test": {"continuous": "t.test"}})
    assert add_p(tbl).inputs["tests"]["age"] == "t.test"


def test_include(tbl):
    """Test only included variables are tested."""
    body = add_p(tbl, include=["age"]).table_body
    assert body.loc[body["variable"] == "grade", "p_value"].isna().all()


def test_repeat_replaces(tbl):
    """Test calling add_p again replaces the earlier p-values."""
    x = add_p(add_p(tbl), test={"age": "t.test"})
    assert list(x.table_body.columns).count("p_value") == 1
    assert x.inputs["tests"]["age"] == "t.test"


def test_paired(paired_data):
    """Test paired tests with a subject identifier."""
    tbl = tbl_summary(paired_data, by="visit", include=["score"])
    x = add_p(tbl, test="paired.t.test", group="id")
    assert x.table_body["p_value"].iloc[0] < 0.05


def test_errors(trial):
    """Test add_p requires a tbl_summary with a by variable."""
    with pytest.raises(StylingError, match="by"):
        add_p(tbl_summary(trial, include=["age"]))
    with pytest.raises(TypeError):
        add_p(pd.DataFrame())
    with pytest.raises(StylingError, match="group"):
        add_p(tbl_summary(trial, by="trt", include=["age"]), group="subject")


def test_add_q(tbl):
    """Test q-values adjust the p-values."""
    x = add_q(add_p(tbl))
    body = x.table_body
    assert (body["q_value"].dropna() >= body["p_value"].dropna() - 1e-12).all()
    header = x.table_styling.header.set_index("column")
    assert header.at["q_value", "label"] == "**q-value**"
    footnote = clean_table_styling(x).footnote
    assert "False discovery rate correction for multiple testing" in set(footnote["footnote"])


def test_add_q_requires_p(tbl):
    """Test add_q without p-values raises StylingError."""
    with pytest.raises(StylingError, match="add_p"):
        add_q(tbl)


def test_add_q_on_regression(ols_model):
    """Test add_q works on any table with a p_value column."""
    x = add_q(tbl_regression(ols_model), method="bonferroni")
    assert "q_value" in x.table_body.columns

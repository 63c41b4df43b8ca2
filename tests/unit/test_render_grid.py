"""Unit tests for great_tables rendering."""

import pytest
from great_tables import GT

from tblsummary.errors import StylingError
from tblsummary.merge import tbl_stack
from tblsummary.modify import modify_caption, modify_spanning_header
from tblsummary.render.grid import GridCall, as_grid, number_footnotes, resolve_include
from tblsummary.selectors import all_stat_cols
from tblsummary.styling import clean_table_styling, modify_table_styling
from tblsummary.summary import tbl_summary
from tblsummary.theme import set_theme


@pytest.fixture
def tbl(trial):
    """Summary of age and grade by treatment."""
    return tbl_summary(trial, by="trt", include=["age", "grade"])


class TestCalls:
    """Tests for the call list built from the styling."""

    def test_call_order(self, tbl):
        """Test calls are named and ordered from construction to hiding."""
        calls = as_grid(tbl, return_calls=True)
        names = list(calls)
        assert names[0] == "gt"
        assert names[-1] == "cols_hide"
        assert names.index("fmt_missing") < names.index("fmt") < names.index("cols_label")
        assert calls["gt"][0].method == "GT"

    def test_cols_hide_repr(self, small_df):
        """Test hidden columns are listed in one cols_hide call."""
        calls = as_grid(tbl_summary(small_df), return_calls=True)
        assert repr(calls["cols_hide"][0]) == (
            "cols_hide(columns=['variable', 'var_type', 'var_label', 'row_type'])"
        )

    def test_indent_call(self, tbl):
        """Test indented rows get a left padding style."""
        calls = as_grid(tbl, return_calls=True)
        assert len(calls["tab_style_indent"]) == 1
        assert calls["tab_style_indent2"] == []

    def test_spanner_call(self, tbl):
        """Test spanning headers become one tab_spanner call per label."""
        x = modify_spanning_header(tbl, {all_stat_cols(): "**Treatment**"})
        spanners = as_grid(x, return_calls=True)["tab_spanner"]
        assert len(spanners) == 1
        assert spanners[0].kwargs["columns"] == ["stat_1", "stat_2"]

    def test_horizontal_line(self, tbl, trial):
        """Test stacked tables get a horizontal line call."""
        stacked = tbl_stack([tbl, tbl_summary(trial, by="trt", include=["stage"])])
        calls = as_grid(stacked, return_calls=True)
        assert "horizontal_line" in calls

    def test_caption_pre_conversion_theme(self, tbl):
        """Test the pre_conversion theme element runs before rendering."""
        set_theme({"pkgwide.pre_conversion": lambda x: modify_caption(x, "Themed caption")})
        calls = as_grid(tbl, return_calls=True)
        assert [call.method for call in calls["gt"]] == ["GT", "tab_header"]


class TestInclude:
    """Tests for selecting calls."""

    def test_exclude(self, tbl):
        """Test "-name" drops a call."""
        calls = as_grid(tbl, include=["-tab_spanner"], return_calls=True)
        assert "tab_spanner" not in calls
        assert "cols_label" in calls

    def test_include_keeps_gt(self, tbl):
        """Test the gt call is always kept."""
        calls = as_grid(tbl, include=["cols_label"], return_calls=True)
        assert list(calls) == ["gt", "cols_label"]

    def test_unknown_name(self, tbl):
        """Test unknown call names raise StylingError."""
        with pytest.raises(StylingError, match="include"):
            as_grid(tbl, include=["tab_magic"])

    def test_resolve_include(self):
        """Test resolution keeps the available order."""
        names = ["gt", "fmt", "cols_label", "cols_hide"]
        assert resolve_include(None, names) == names
        assert resolve_include("-fmt", names) == ["gt", "cols_label", "cols_hide"]
        assert resolve_include(["cols_hide", "gt"], names) == ["gt", "cols_hide"]


class TestUserCalls:
    """Tests for the as_grid.addl_calls theme element."""

    def test_inserted_after_anchor(self, tbl):
        """Test user calls are inserted after their anchor."""
        extra = GridCall(name="font", method="tab_options", kwargs={"table_font_size": "12px"})
        set_theme({"as_grid.addl_calls": {"cols_label": [extra]}})
        names = list(as_grid(tbl, return_calls=True))
        assert names[names.index("cols_label") + 1] == "user_added1"
        assert isinstance(as_grid(tbl), GT)

    def test_unknown_anchor(self, tbl):
        """Test an unknown anchor raises StylingError."""
        extra = GridCall(name="font", method="tab_options", kwargs={"table_font_size": "12px"})
        set_theme({"as_grid.addl_calls": {"tab_magic": extra}})
        with pytest.raises(StylingError, match="tab_magic"):
            as_grid(tbl)


def test_number_footnotes(small_df):
    """Test header footnotes are numbered before cell footnotes."""
    x = modify_table_styling(
        tbl_summary(small_df),
        columns="label",
        rows="row_type == 'missing'",
        footnote="Not recorded",
    )
    header_marks, cell_marks, notes = number_footnotes(
        clean_table_styling(x), ["label", "stat_0"]
    )
    assert header_marks == {"stat_0": [1]}
    assert cell_marks == {(3, "label"): [2]}
    assert notes == [(1, "n (%)", "md"), (2, "Not recorded", "md")]


def test_grid_call_repr():
    """Test calls print like the method call they stand for."""
    call = GridCall(name="cols_hide", method="cols_hide", kwargs={"columns": ["a"]})
    assert repr(call) == "cols_hide(columns=['a'])"


def test_apply_requires_gt():
    """Test a method call without a GT object raises StylingError."""
    call = GridCall(name="cols_hide", method="cols_hide", kwargs={"columns": ["a"]})
    with pytest.raises(StylingError):
        call.apply(None)


class TestRenderedHtml:
    """Tests for the rendered great_tables output."""

    def test_html(self, tbl):
        """Test labels and footnotes appear in the HTML."""
        gt = as_grid(tbl)
        assert isinstance(gt, GT)
        html = gt.as_raw_html()
        assert "Characteristic" in html
        assert "Median (IQR)" in html

    def test_method(self, tbl):
        """Test the table method delegates to as_grid."""
        assert isinstance(tbl.as_grid(), GT)

    def test_row_groups(self, tbl, trial):
        """Test group headers render as row groups."""
        second = tbl_summary(trial, by="trt", include=["stage"])
        stacked = tbl_stack([tbl, second], group_header=["Baseline", "Staging"])
        html = as_grid(stacked).as_raw_html()
        assert "Baseline" in html
        assert "Staging" in html

    def test_gt_arguments(self, tbl):
        """Test extra keyword arguments are passed to the GT constructor."""
        calls = as_grid(tbl, return_calls=True, rowname_col="label", locale="de")
        assert calls["gt"][0].kwargs == {"rowname_col": "label", "locale": "de"}
        html = tbl.as_grid(id="baseline").as_raw_html()
        assert 'id="baseline"' in html

    def test_not_a_table(self):
        """Test non-table input raises TypeError."""
        with pytest.raises(TypeError):
            as_grid("table")

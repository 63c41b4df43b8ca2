"""Publication-ready summary tables.

This package builds descriptive-statistics and regression tables from
pandas DataFrames and statsmodels results, records styling as deferred
instructions, and renders to great_tables, DataFrame, markdown or LaTeX.
"""

from tblsummary.add_p import add_p, add_q
from tblsummary.combine_terms import add_global_p, combine_terms
from tblsummary.errors import CombineTermsError, StatTestError, StylingError, ThemeError
from tblsummary.formatting import (
    style_number,
    style_percent,
    style_pvalue,
    style_ratio,
    style_sigfig,
)
from tblsummary.merge import tbl_merge, tbl_stack
from tblsummary.modify import (
    bold_labels,
    bold_levels,
    bold_p,
    italicize_labels,
    italicize_levels,
    modify_caption,
    modify_cols_merge,
    modify_column_alignment,
    modify_column_hide,
    modify_column_indent,
    modify_column_unhide,
    modify_fmt_fun,
    modify_footnote,
    modify_header,
    modify_source_note,
    modify_spanning_header,
    modify_table_body,
)
from tblsummary.regression import tbl_regression
from tblsummary.render import GridCall, as_dataframe, as_grid, as_latex, as_markdown
from tblsummary.selectors import (
    all_categorical,
    all_continuous,
    all_dichotomous,
    all_stat_cols,
    contains,
    everything,
    starts_with,
)
from tblsummary.styling import modify_table_styling
from tblsummary.summary import tbl_summary
from tblsummary.table import SummaryTable, TblMerge, TblRegression, TblStack, TblSummary
from tblsummary.theme import get_theme_element, reset_theme, set_theme

__version__ = "0.1.0"

__all__ = [
    "CombineTermsError",
    "GridCall",
    "StatTestError",
    "StylingError",
    "SummaryTable",
    "TblMerge",
    "TblRegression",
    "TblStack",
    "TblSummary",
    "ThemeError",
    "add_global_p",
    "add_p",
    "add_q",
    "all_categorical",
    "all_continuous",
    "all_dichotomous",
    "all_stat_cols",
    "as_dataframe",
    "as_grid",
    "as_latex",
    "as_markdown",
    "bold_labels",
    "bold_levels",
    "bold_p",
    "combine_terms",
    "contains",
    "everything",
    "get_theme_element",
    "italicize_labels",
    "italicize_levels",
    "modify_caption",
    "modify_cols_merge",
    "modify_column_alignment",
    "modify_column_hide",
    "modify_column_indent",
    "modify_column_unhide",
    "modify_fmt_fun",
    "modify_footnote",
    "modify_header",
    "modify_source_note",
    "modify_spanning_header",
    "modify_table_body",
    "modify_table_styling",
    "reset_theme",
    "set_theme",
    "starts_with",
    "style_number",
    "style_percent",
    "style_pvalue",
    "style_ratio",
    "style_sigfig",
    "tbl_merge",
    "tbl_regression",
    "tbl_stack",
    "tbl_summary",
]

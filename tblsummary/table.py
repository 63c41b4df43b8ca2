"""Summary table objects.

A summary table bundles:

- table_body: DataFrame with one row per displayed row
- table_styling: the deferred styling instructions (see styling.py)
- call_list: the operations applied so far, in order
- inputs: the arguments the table was built from
- meta_data: per-variable information kept by the builder

Every operation returns a new table; the original is never modified.
Input data and fitted models stored in ``inputs`` are shared between
copies and treated as read-only.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import pandas as pd

from tblsummary.styling import TableStyling, initialize_table_styling, sync_header

logger = logging.getLogger(__name__)

__all__ = [
    "SummaryTable",
    "TblMerge",
    "TblRegression",
    "TblStack",
    "TblSummary",
]


class SummaryTable:
    """Base class of every summary table."""

    def __init__(
        self,
        table_body: pd.DataFrame,
        table_styling: TableStyling | None = None,
        call_list: dict[str, Any] | None = None,
        inputs: dict[str, Any] | None = None,
        meta_data: pd.DataFrame | None = None,
    ) -> None:
        """Initialize the table.

        Args:
            table_body: Table data, one row per displayed row
            table_styling: Existing styling; a fresh one is created when None
            call_list: Operations applied so far
            inputs: Arguments the table was built from
            meta_data: Per-variable information kept by the builder

        """
        self.table_body = table_body.reset_index(drop=True)
        if table_styling is None:
            table_styling = initialize_table_styling(self.table_body)
        else:
            table_styling.header = sync_header(table_styling.header, self.table_body)
        self.table_styling = table_styling
        self.call_list: dict[str, Any] = dict(call_list or {})
        self.inputs: dict[str, Any] = dict(inputs or {})
        self.meta_data = meta_data

    def copy(self) -> SummaryTable:
        """Return an independent copy of the body, styling and call list."""
        new = copy.copy(self)
        new.table_body = self.table_body.copy()
        new.table_styling = self.table_styling.model_copy(deep=True)
        new.call_list = dict(self.call_list)
        new.inputs = dict(self.inputs)
        new.meta_data = self.meta_data.copy() if self.meta_data is not None else None
        return new

    def record_call(self, name: str, **kwargs: Any) -> None:
        """Append an operation to the call list."""
        self.call_list[name] = kwargs

    def set_table_body(self, table_body: pd.DataFrame) -> None:
        """Replace table_body in place and keep the header in sync.

        Only table builders call this on tables they own.
        """
        self.table_body = table_body.reset_index(drop=True)
        self.table_styling.header = sync_header(self.table_styling.header, self.table_body)

    def show_header_names(self) -> pd.DataFrame:
        """Return (and log) the underlying column names next to their labels."""
        header = self.table_styling.header
        names = header.loc[:, ["column", "label", "hide"]].reset_index(drop=True)
        lines = [f"  {row.column:<20} {row.label}" for row in names.itertuples() if not row.hide]
        logger.info("Column name          Column header\n" + "\n".join(lines))
        return names

    def __repr__(self) -> str:
        n_rows, n_cols = self.table_body.shape
        return f"<{type(self).__name__}: {n_rows} rows x {n_cols} columns>"

    def __str__(self) -> str:
        return self.as_markdown()

    def _repr_html_(self) -> str:
        return self.as_grid().as_raw_html()

    # modifiers -----------------------------------------------------------------

    def modify_table_styling(self, columns: Any, **kwargs: Any) -> SummaryTable:
        """See :func:`tblsummary.styling.modify_table_styling`."""
        from tblsummary.styling import modify_table_styling

        return modify_table_styling(self, columns, **kwargs)

    def modify_header(self, update: dict[str, str] | None = None, **kwargs: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_header`."""
        from tblsummary.modify import modify_header

        return modify_header(self, update, **kwargs)

    def modify_spanning_header(self, update: dict[Any, str | None]) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_spanning_header`."""
        from tblsummary.modify import modify_spanning_header

        return modify_spanning_header(self, update)

    def modify_footnote(self, update: dict[Any, str | None], **kwargs: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_footnote`."""
        from tblsummary.modify import modify_footnote

        return modify_footnote(self, update, **kwargs)

    def modify_column_hide(self, columns: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_column_hide`."""
        from tblsummary.modify import modify_column_hide

        return modify_column_hide(self, columns)

    def modify_column_unhide(self, columns: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_column_unhide`."""
        from tblsummary.modify import modify_column_unhide

        return modify_column_unhide(self, columns)

    def modify_column_alignment(self, columns: Any, align: str) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_column_alignment`."""
        from tblsummary.modify import modify_column_alignment

        return modify_column_alignment(self, columns, align)

    def modify_column_indent(self, columns: Any, **kwargs: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_column_indent`."""
        from tblsummary.modify import modify_column_indent

        return modify_column_indent(self, columns, **kwargs)

    def modify_fmt_fun(self, update: dict[Any, Any], rows: Any = None) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_fmt_fun`."""
        from tblsummary.modify import modify_fmt_fun

        return modify_fmt_fun(self, update, rows=rows)

    def modify_table_body(self, fun: Any, *args: Any, **kwargs: Any) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_table_body`."""
        from tblsummary.modify import modify_table_body

        return modify_table_body(self, fun, *args, **kwargs)

    def modify_caption(self, caption: str, text_interpret: str = "md") -> SummaryTable:
        """See :func:`tblsummary.modify.modify_caption`."""
        from tblsummary.modify import modify_caption

        return modify_caption(self, caption, text_interpret=text_interpret)

    def modify_source_note(self, source_note: str, text_interpret: str = "md") -> SummaryTable:
        """See :func:`tblsummary.modify.modify_source_note`."""
        from tblsummary.modify import modify_source_note

        return modify_source_note(self, source_note, text_interpret=text_interpret)

    def modify_cols_merge(self, pattern: str, rows: Any = None) -> SummaryTable:
        """See :func:`tblsummary.modify.modify_cols_merge`."""
        from tblsummary.modify import modify_cols_merge

        return modify_cols_merge(self, pattern, rows=rows)

    def bold_labels(self) -> SummaryTable:
        """See :func:`tblsummary.modify.bold_labels`."""
        from tblsummary.modify import bold_labels

        return bold_labels(self)

    def bold_levels(self) -> SummaryTable:
        """See :func:`tblsummary.modify.bold_levels`."""
        from tblsummary.modify import bold_levels

        return bold_levels(self)

    def italicize_labels(self) -> SummaryTable:
        """See :func:`tblsummary.modify.italicize_labels`."""
        from tblsummary.modify import italicize_labels

        return italicize_labels(self)

    def italicize_levels(self) -> SummaryTable:
        """See :func:`tblsummary.modify.italicize_levels`."""
        from tblsummary.modify import italicize_levels

        return italicize_levels(self)

    def bold_p(self, t: float | None = None, q: bool = False) -> SummaryTable:
        """See :func:`tblsummary.modify.bold_p`."""
        from tblsummary.modify import bold_p

        return bold_p(self, t=t, q=q)

    # statistics ----------------------------------------------------------------

    def add_q(self, method: str = "fdr", pvalue_fun: Any = None) -> SummaryTable:
        """See :func:`tblsummary.add_p.add_q`."""
        from tblsummary.add_p import add_q

        return add_q(self, method=method, pvalue_fun=pvalue_fun)

    # rendering -----------------------------------------------------------------

    def as_grid(self, include: Any = None, return_calls: bool = False, **kwargs: Any) -> Any:
        """See :func:`tblsummary.render.grid.as_grid`."""
        from tblsummary.render.grid import as_grid

        return as_grid(self, include=include, return_calls=return_calls, **kwargs)

    def as_dataframe(self, **kwargs: Any) -> pd.DataFrame:
        """See :func:`tblsummary.render.frame.as_dataframe`."""
        from tblsummary.render.frame import as_dataframe

        return as_dataframe(self, **kwargs)

    def as_markdown(self) -> str:
        """See :func:`tblsummary.render.frame.as_markdown`."""
        from tblsummary.render.frame import as_markdown

        return as_markdown(self)

    def as_latex(self) -> str:
        """See :func:`tblsummary.render.frame.as_latex`."""
        from tblsummary.render.frame import as_latex

        return as_latex(self)


class TblSummary(SummaryTable):
    """Descriptive statistics table built by ``tbl_summary``."""

    def __init__(self, *args: Any, by: str | None = None, N: int = 0, **kwargs: Any) -> None:
        """Initialize the table; ``by`` is the grouping column, ``N`` the row count."""
        super().__init__(*args, **kwargs)
        self.by = by
        self.N = N

    def add_p(self, test: Any = None, **kwargs: Any) -> TblSummary:
        """See :func:`tblsummary.add_p.add_p`."""
        from tblsummary.add_p import add_p

        return add_p(self, test=test, **kwargs)


class TblRegression(SummaryTable):
    """Regression coefficients table built by ``tbl_regression``."""

    def __init__(self, *args: Any, model: Any = None, N: int = 0, **kwargs: Any) -> None:
        """Initialize the table; ``model`` is the fitted statsmodels results."""
        super().__init__(*args, **kwargs)
        self.model = model
        self.N = N

    def combine_terms(self, formula_update: str, **kwargs: Any) -> TblRegression:
        """See :func:`tblsummary.combine_terms.combine_terms`."""
        from tblsummary.combine_terms import combine_terms

        return combine_terms(self, formula_update, **kwargs)

    def add_global_p(self, **kwargs: Any) -> TblRegression:
        """See :func:`tblsummary.combine_terms.add_global_p`."""
        from tblsummary.combine_terms import add_global_p

        return add_global_p(self, **kwargs)


class TblMerge(SummaryTable):
    """Side-by-side merge of several summary tables."""

    def __init__(self, *args: Any, tbls: list[SummaryTable] | None = None, **kwargs: Any) -> None:
        """Initialize the table; ``tbls`` are the merged tables."""
        super().__init__(*args, **kwargs)
        self.tbls = list(tbls or [])


class TblStack(SummaryTable):
    """Vertical stack of several summary tables."""

    def __init__(self, *args: Any, tbls: list[SummaryTable] | None = None, **kwargs: Any) -> None:
        """Initialize the table; ``tbls`` are the stacked tables."""
        super().__init__(*args, **kwargs)
        self.tbls = list(tbls or [])

"""High-level table modifiers.

Each function records styling instructions through ``modify_table_styling``
and returns a new table. Column arguments accept names, lists and selectors;
``show_header_names()`` prints the underlying column names.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

import pandas as pd

from tblsummary.config import config
from tblsummary.errors import StylingError
from tblsummary.formatting import is_missing, style_number, style_percent
from tblsummary.selectors import resolve_columns
from tblsummary.styling import check_table, modify_table_styling, pattern_columns
from tblsummary.table import SummaryTable

logger = logging.getLogger(__name__)

__all__ = [
    "bold_labels",
    "bold_levels",
    "bold_p",
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
]


def _header_stats(x: SummaryTable, column: str) -> dict[str, str]:
    """Values available to header glue strings for one column."""
    header = x.table_styling.header
    row = header.loc[header["column"] == column].iloc[0]
    stats: dict[str, str] = {}
    if not is_missing(row["modify_stat_N"]):
        stats["N"] = str(style_number(row["modify_stat_N"]))
    if not is_missing(row["modify_stat_n"]):
        stats["n"] = str(style_number(row["modify_stat_n"]))
    if not is_missing(row["modify_stat_level"]):
        stats["level"] = str(row["modify_stat_level"])
    if not is_missing(row["modify_stat_p"]):
        stats["p"] = str(style_percent(row["modify_stat_p"]))
    return stats


def glue_header(x: SummaryTable, column: str, text: str) -> str:
    """Fill ``{N}``, ``{n}``, ``{level}`` and ``{p}`` in a header label."""
    stats = _header_stats(x, column)

    def _fill(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in stats:
            raise StylingError(
                f"Header for column '{column}' uses '{{{key}}}', which is not available. "
                f"Available values: {sorted(stats)}."
            )
        return stats[key]

    return re.sub(r"\{(\w+)\}", _fill, text)


def _mapping_columns(x: SummaryTable, update: Mapping[Any, Any]) -> list[tuple[str, Any]]:
    """Resolve ``{column_or_selector: value}`` against the table columns."""
    candidates = list(x.table_styling.header["column"])
    pairs: list[tuple[str, Any]] = []
    for key, value in update.items():
        spec = list(key) if isinstance(key, tuple) else key
        for column in resolve_columns(spec, candidates, arg_name="update"):
            pairs.append((column, value))
    return pairs


def modify_header(
    x: SummaryTable,
    update: Mapping[Any, str] | None = None,
    text_interpret: str = "md",
    **labels: str,
) -> SummaryTable:
    """Update column header labels.

    Labels are glue strings: ``{N}``, ``{n}``, ``{level}`` and ``{p}`` are
    filled in from the column's header statistics, e.g.
    ``modify_header(tbl, all_stat_cols(): "**{level}** (n={n})")``.

    Args:
        x: Summary table
        update: Mapping of column (or selector) to label
        text_interpret: "md" or "html"
        **labels: Column labels given as keyword arguments

    Returns:
        Table with updated header labels

    """
    check_table(x)
    pairs = _mapping_columns(x, {**(update or {}), **labels})
    for column, text in pairs:
        x = modify_table_styling(
            x, columns=column, label=glue_header(x, column, text), text_interpret=text_interpret
        )
    x = x.copy() if not pairs else x
    x.record_call("modify_header", update={c: t for c, t in pairs})
    return x


def modify_spanning_header(x: SummaryTable, update: Mapping[Any, str | None]) -> SummaryTable:
    """Add spanning headers; a value of None removes the spanning header."""
    check_table(x)
    pairs = _mapping_columns(x, update)
    for column, text in pairs:
        x = modify_table_styling(
            x, columns=column, spanning_header=glue_header(x, column, text) if text else ""
        )
    x = x.copy() if not pairs else x
    x.record_call("modify_spanning_header", update=dict(pairs))
    return x


def modify_footnote(
    x: SummaryTable, update: Mapping[Any, str | None], abbreviation: bool = False
) -> SummaryTable:
    """Set column header footnotes; a value of None removes the footnote.

    Args:
        x: Summary table
        update: Mapping of column (or selector) to footnote text
        abbreviation: Record the text as an abbreviation footnote, which is
            collapsed with the other abbreviations into a single note

    Returns:
        Table with updated footnotes

    """
    check_table(x)
    pairs = _mapping_columns(x, update)
    for column, text in pairs:
        if abbreviation:
            x = modify_table_styling(x, columns=column, footnote_abbrev=text or "")
        else:
            x = modify_table_styling(x, columns=column, footnote=text or "")
    x = x.copy() if not pairs else x
    x.record_call("modify_footnote", update=dict(pairs), abbreviation=abbreviation)
    return x


def modify_column_hide(x: SummaryTable, columns: Any) -> SummaryTable:
    """Hide columns from the rendered table."""
    x = modify_table_styling(x, columns=columns, hide=True)
    x.record_call("modify_column_hide", columns=columns)
    return x


def modify_column_unhide(x: SummaryTable, columns: Any) -> SummaryTable:
    """Show hidden columns in the rendered table."""
    x = modify_table_styling(x, columns=columns, hide=False)
    x.record_call("modify_column_unhide", columns=columns)
    return x


def modify_column_alignment(x: SummaryTable, columns: Any, align: str) -> SummaryTable:
    """Set the alignment of columns ("left", "center" or "right")."""
    x = modify_table_styling(x, columns=columns, align=align)
    x.record_call("modify_column_alignment", columns=columns, align=align)
    return x


def modify_column_indent(
    x: SummaryTable,
    columns: Any,
    rows: Any = None,
    double_indent: bool = False,
    undo: bool = False,
) -> SummaryTable:
    """Indent (or remove the indentation of) cells."""
    x = modify_table_styling(
        x,
        columns=columns,
        rows=rows,
        text_format="indent2" if double_indent else "indent",
        undo_text_format=undo,
    )
    x.record_call(
        "modify_column_indent", columns=columns, rows=rows, double_indent=double_indent, undo=undo
    )
    return x


def modify_fmt_fun(
    x: SummaryTable, update: Mapping[Any, Callable[[Any], Any]], rows: Any = None
) -> SummaryTable:
    """Set the formatting function of columns.

    Args:
        x: Summary table
        update: Mapping of column (or selector) to a function formatting one value
        rows: Row selector restricting the cells formatted

    Returns:
        Table with the formatters recorded

    """
    check_table(x)
    pairs = _mapping_columns(x, update)
    for column, fun in pairs:
        x = modify_table_styling(x, columns=column, rows=rows, fmt_fun=fun)
    x = x.copy() if not pairs else x
    x.record_call("modify_fmt_fun", update=dict(pairs), rows=rows)
    return x


def modify_table_body(
    x: SummaryTable, fun: Callable[..., pd.DataFrame], *args: Any, **kwargs: Any
) -> SummaryTable:
    """Apply ``fun(table_body, *args, **kwargs)`` and keep the header in sync.

    New columns start hidden; unhide them with ``modify_column_unhide`` or
    ``modify_header``.
    """
    check_table(x)
    body = fun(x.table_body.copy(), *args, **kwargs)
    if not isinstance(body, pd.DataFrame):
        raise StylingError("`fun=` must return a DataFrame.")
    x = x.copy()
    x.set_table_body(body)
    x.record_call("modify_table_body", fun=getattr(fun, "__name__", repr(fun)))
    return x


def modify_caption(x: SummaryTable, caption: str, text_interpret: str = "md") -> SummaryTable:
    """Set the table caption."""
    check_table(x)
    if not isinstance(caption, str):
        raise TypeError("`caption=` must be a string.")
    x = x.copy()
    x.table_styling.caption = caption
    x.table_styling.caption_interpret = text_interpret
    x.record_call("modify_caption", caption=caption)
    return x


def modify_source_note(
    x: SummaryTable, source_note: str, text_interpret: str = "md"
) -> SummaryTable:
    """Set the source note printed below the table."""
    check_table(x)
    if not isinstance(source_note, str):
        raise TypeError("`source_note=` must be a string.")
    x = x.copy()
    x.table_styling.source_note = source_note
    x.table_styling.source_note_interpret = text_interpret
    x.record_call("modify_source_note", source_note=source_note)
    return x


def modify_cols_merge(x: SummaryTable, pattern: str, rows: Any = None) -> SummaryTable:
    """Merge two or more columns.

    Only the merge instruction is recorded here; the merge happens when the
    table is rendered. Perform structural changes (``tbl_merge``,
    ``tbl_stack``) before recording merges, otherwise the merged columns may
    not line up.

    The merged cells replace the first column named in the pattern with the
    formatted text; the other columns in the pattern are hidden.

    Args:
        x: Summary table
        pattern: Glue pattern naming columns in curly brackets, e.g.
            ``"{conf_low}, {conf_high}"`` or ``"t = {statistic}; {p_value}"``
        rows: Row selector restricting the merged rows, e.g.
            ``lambda df: df["estimate"].notna()``

    Returns:
        Table with the merge recorded

    Raises:
        TypeError: If x is not a summary table or pattern is not a string
        StylingError: If the pattern names no columns or unknown columns

    Examples:
        >>> tbl = tbl_regression(model).modify_cols_merge(
        ...     "{estimate} ({ci})", rows=lambda df: df["estimate"].notna()
        ... )

    """
    if not isinstance(x, SummaryTable):
        raise TypeError("`x=` must be a summary table (class 'SummaryTable').")
    if not isinstance(pattern, str):
        raise TypeError("`pattern=` must be a string.")

    columns = pattern_columns(pattern)
    if not columns:
        logger.error("No column names found in `modify_cols_merge(pattern=)`.")
        raise StylingError(
            "Error in `pattern=` argument: wrap all column names in curly brackets."
        )

    problem_cols = [c for c in columns if c not in x.table_body.columns]
    if problem_cols:
        logger.error(
            f"Some columns specified in `modify_cols_merge(pattern=)` were not found "
            f"in the table, e.g. {problem_cols}. Select from {list(x.table_body.columns)}."
        )
        raise StylingError(
            f"Error in `pattern=` argument: columns {problem_cols} not found in the table."
        )

    x = modify_table_styling(
        x, columns=columns[0], rows=rows, hide=False, cols_merge_pattern=pattern
    )
    x.record_call("modify_cols_merge", pattern=pattern, rows=rows)
    return x


def _require_columns(x: SummaryTable, *columns: str) -> None:
    missing = [c for c in columns if c not in x.table_body.columns]
    if missing:
        raise StylingError(f"Table has no {missing} column(s).")


def bold_labels(x: SummaryTable) -> SummaryTable:
    """Bold variable label rows."""
    check_table(x)
    _require_columns(x, "label", "row_type")
    x = modify_table_styling(x, columns="label", rows="row_type == 'label'", text_format="bold")
    x.record_call("bold_labels")
    return x


def italicize_labels(x: SummaryTable) -> SummaryTable:
    """Italicize variable label rows."""
    check_table(x)
    _require_columns(x, "label", "row_type")
    x = modify_table_styling(x, columns="label", rows="row_type == 'label'", text_format="italic")
    x.record_call("italicize_labels")
    return x


def bold_levels(x: SummaryTable) -> SummaryTable:
    """Bold level and missing rows."""
    check_table(x)
    _require_columns(x, "label", "row_type")
    x = modify_table_styling(x, columns="label", rows="row_type != 'label'", text_format="bold")
    x.record_call("bold_levels")
    return x


def italicize_levels(x: SummaryTable) -> SummaryTable:
    """Italicize level and missing rows."""
    check_table(x)
    _require_columns(x, "label", "row_type")
    x = modify_table_styling(
        x, columns="label", rows="row_type != 'label'", text_format="italic"
    )
    x.record_call("italicize_levels")
    return x


def bold_p(x: SummaryTable, t: float | None = None, q: bool = False) -> SummaryTable:
    """Bold p-values (or q-values) below a threshold.

    Args:
        x: Summary table with a p_value (or q_value) column
        t: Threshold (default: alpha from config)
        q: Bold q-values instead of p-values

    Returns:
        Table with the bold formatting recorded

    """
    check_table(x)
    if t is None:
        t = config.alpha
    column = "q_value" if q else "p_value"
    _require_columns(x, column)
    x = modify_table_styling(x, columns=column, rows=f"{column} < {t}", text_format="bold")
    x.record_call("bold_p", t=t, q=q)
    return x

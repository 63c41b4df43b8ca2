"""Deferred styling instructions.

A summary table never formats its data eagerly. Every styling request
(labels, formatters, footnotes, merges, indentation, hiding) is recorded as
an instruction against ``table_styling`` and replayed when the table is
rendered. Recording order matters: for any cell, the last instruction wins.

Row selectors are kept unevaluated until rendering so that instructions
stay valid when rows are added or removed in between. A row selector is
one of:

- None: every row (or the column header, for footnotes)
- a string evaluated with ``DataFrame.eval``, e.g. ``"row_type == 'label'"``
- a callable receiving table_body and returning a boolean mask
- an explicit list of row positions
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Literal

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from tblsummary.errors import StylingError
from tblsummary.formatting import is_missing
from tblsummary.selectors import resolve_columns

if TYPE_CHECKING:
    from tblsummary.table import SummaryTable

logger = logging.getLogger(__name__)

__all__ = [
    "HEADER_COLUMNS",
    "TEXT_FORMAT_TYPES",
    "CleanStyling",
    "ColsMerge",
    "FmtFun",
    "FmtMissing",
    "Footnote",
    "TableStyling",
    "TextFormat",
    "apply_cols_merge",
    "cell_formatters",
    "clean_table_styling",
    "format_cell",
    "check_table",
    "cols_to_show",
    "initialize_table_styling",
    "modify_table_styling",
    "pattern_columns",
    "rows_to_row_numbers",
    "sync_header",
]

HEADER_COLUMNS = [
    "column",
    "hide",
    "align",
    "interpret_label",
    "label",
    "interpret_spanning_header",
    "spanning_header",
    "modify_stat_N",
    "modify_stat_n",
    "modify_stat_level",
    "modify_stat_p",
]

TEXT_FORMAT_TYPES = ("bold", "italic", "indent", "indent2")

TextInterpret = Literal["md", "html"]


class Footnote(BaseModel):
    """Footnote attached to a column header (rows=None) or to body cells.

    A ``footnote`` of None records the removal of earlier footnotes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    column: str
    rows: Any = None
    text_interpret: TextInterpret = "md"
    footnote: str | None = None


class FmtFun(BaseModel):
    """Formatter applied to the selected cells of a column."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    column: str
    rows: Any = None
    fmt_fun: Callable[[Any], Any]


class TextFormat(BaseModel):
    """Text emphasis or indentation of the selected cells of a column."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    column: str
    rows: Any = None
    format_type: Literal["bold", "italic", "indent", "indent2"]
    undo_text_format: bool = False


class FmtMissing(BaseModel):
    """Symbol shown for missing values in the selected cells of a column."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    column: str
    rows: Any = None
    symbol: str


class ColsMerge(BaseModel):
    """Merge of several columns into ``column`` following a glue pattern.

    A ``pattern`` of None records the removal of an earlier merge.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    column: str
    rows: Any = None
    pattern: str | None = None


class TableStyling(BaseModel):
    """Accumulated styling instructions of a summary table."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    header: pd.DataFrame
    footnote: list[Footnote] = Field(default_factory=list)
    footnote_abbrev: list[Footnote] = Field(default_factory=list)
    fmt_fun: list[FmtFun] = Field(default_factory=list)
    text_format: list[TextFormat] = Field(default_factory=list)
    fmt_missing: list[FmtMissing] = Field(default_factory=list)
    cols_merge: list[ColsMerge] = Field(default_factory=list)
    caption: str | None = None
    caption_interpret: TextInterpret = "md"
    source_note: str | None = None
    source_note_interpret: TextInterpret = "md"
    horizontal_line_above: Any = None


class CleanStyling(BaseModel):
    """Styling instructions resolved to one record per cell.

    Produced by ``clean_table_styling`` right before rendering; every
    ``row_numbers`` value is a row position in table_body (None marks a
    header footnote).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    header: pd.DataFrame
    footnote: pd.DataFrame
    footnote_abbrev: pd.DataFrame
    fmt_fun: pd.DataFrame
    text_format: pd.DataFrame
    fmt_missing: pd.DataFrame
    cols_merge: pd.DataFrame
    caption: str | None = None
    caption_interpret: TextInterpret = "md"
    source_note: str | None = None
    source_note_interpret: TextInterpret = "md"
    horizontal_line_above: list[int] | None = None


def _default_header_row(column: str) -> dict[str, Any]:
    return {
        "column": column,
        "hide": True,
        "align": "left" if column == "label" else "center",
        "interpret_label": "md",
        "label": column,
        "interpret_spanning_header": "md",
        "spanning_header": None,
        "modify_stat_N": None,
        "modify_stat_n": None,
        "modify_stat_level": None,
        "modify_stat_p": None,
    }


def sync_header(header: pd.DataFrame, table_body: pd.DataFrame) -> pd.DataFrame:
    """Return a header with exactly one row per table_body column, in body order."""
    existing = {row["column"]: row for row in header.to_dict("records")}
    rows = [existing.get(c, _default_header_row(c)) for c in table_body.columns]
    return pd.DataFrame(rows, columns=HEADER_COLUMNS).astype({"hide": bool})


def initialize_table_styling(table_body: pd.DataFrame) -> TableStyling:
    """Create empty styling for a table body; every column starts hidden."""
    header = sync_header(pd.DataFrame(columns=HEADER_COLUMNS), table_body)
    return TableStyling(header=header)


def pattern_columns(pattern: str) -> list[str]:
    """Extract the column names wrapped in curly brackets from a glue pattern."""
    return re.findall(r"\{(.*?)\}", pattern)


def rows_to_row_numbers(table_body: pd.DataFrame, rows: Any) -> list[int]:
    """Evaluate a row selector against table_body.

    Args:
        table_body: Table data
        rows: Row selector (see module docstring)

    Returns:
        Sorted row positions selected

    Raises:
        StylingError: If the selector does not evaluate to a boolean mask
            of the right length, or positions are out of bounds

    """
    n_rows = len(table_body)
    if rows is None:
        return list(range(n_rows))

    if isinstance(rows, (list, tuple, range, np.ndarray)) and all(
        isinstance(r, (int, np.integer)) and not isinstance(r, (bool, np.bool_)) for r in rows
    ):
        positions = sorted({int(r) for r in rows})
        if positions and (positions[0] < 0 or positions[-1] >= n_rows):
            raise StylingError(
                f"Row positions {positions} are out of bounds for a table with {n_rows} rows."
            )
        return positions

    if isinstance(rows, str):
        mask = table_body.eval(rows, engine="python")
    elif callable(rows):
        mask = rows(table_body)
    else:
        mask = rows

    if np.isscalar(mask) or mask is None:
        raise StylingError(f"The `rows=` argument must evaluate to a boolean vector, got {mask!r}.")
    values = list(mask.to_numpy() if isinstance(mask, pd.Series) else mask)
    if len(values) != n_rows:
        raise StylingError(
            f"The `rows=` argument evaluated to {len(values)} values; expected {n_rows}."
        )
    if not all(isinstance(v, (bool, np.bool_)) or is_missing(v) for v in values):
        raise StylingError("The `rows=` argument must evaluate to a boolean vector.")
    return [i for i, v in enumerate(values) if not is_missing(v) and bool(v)]


def check_table(x: Any) -> None:
    from tblsummary.table import SummaryTable

    if not isinstance(x, SummaryTable):
        raise TypeError("`x=` must be a summary table (class 'SummaryTable').")


def _recycle(value: Any, columns: Sequence[str], arg_name: str) -> list[Any]:
    """Repeat a scalar per column, or check a sequence matches the columns."""
    if isinstance(value, str) or not isinstance(value, Sequence):
        return [value] * len(columns)
    if len(value) != len(columns):
        raise StylingError(
            f"`{arg_name}=` must be length one or match the {len(columns)} selected columns."
        )
    return list(value)


def _set_header(header: pd.DataFrame, column: str, **values: Any) -> None:
    idx = header.index[header["column"] == column]
    for key, value in values.items():
        header.loc[idx, key] = value


def _record_cols_merge(
    styling: TableStyling, columns: list[str], rows: Any, pattern: str | None
) -> None:
    all_columns = pattern_columns(pattern) if pattern else []
    missing = [c for c in all_columns if c not in set(styling.header["column"])]
    if missing:
        raise StylingError(
            f"All columns specified in `cols_merge_pattern=` must be present in table, "
            f"missing {missing}."
        )
    styling.cols_merge = [m for m in styling.cols_merge if m.column not in columns] + [
        ColsMerge(column=c, rows=rows, pattern=pattern) for c in columns
    ]
    # every column but the first is folded into the first
    styling.header.loc[styling.header["column"].isin(all_columns[1:]), "hide"] = True


def modify_table_styling(
    x: SummaryTable,
    columns: Any,
    rows: Any = None,
    label: str | Sequence[str] | None = None,
    spanning_header: str | Sequence[str] | None = None,
    hide: bool | None = None,
    footnote: str | None = None,
    footnote_abbrev: str | None = None,
    align: str | None = None,
    missing_symbol: str | None = None,
    fmt_fun: Callable[[Any], Any] | None = None,
    text_format: str | Sequence[str] | None = None,
    undo_text_format: bool = False,
    text_interpret: TextInterpret = "md",
    cols_merge_pattern: str | None = None,
) -> SummaryTable:
    """Record styling instructions for columns of a summary table.

    This is the low-level entry point used by every ``modify_*`` helper.
    Nothing in table_body changes; instructions are replayed at render time.
    An argument left as None records nothing. An empty string for
    ``spanning_header``, ``footnote``, ``footnote_abbrev`` or
    ``cols_merge_pattern`` records the removal of that styling.

    Args:
        x: Summary table
        columns: Columns to style (name, list or Selector)
        rows: Row selector; None means all rows, or the header for footnotes
        label: Column label(s)
        spanning_header: Spanning header(s)
        hide: Hide (True) or show (False) the columns
        footnote: Footnote text
        footnote_abbrev: Abbreviation footnote text
        align: "left", "center" or "right"
        missing_symbol: Text shown for missing values
        fmt_fun: Formatter called with each cell value
        text_format: One or more of "bold", "italic", "indent", "indent2"
        undo_text_format: Record the removal of ``text_format`` instead
        text_interpret: How labels and footnotes are interpreted ("md", "html")
        cols_merge_pattern: Glue pattern merging columns into the first one

    Returns:
        A new summary table with the instructions recorded

    Raises:
        TypeError: If x is not a summary table
        StylingError: If an argument is invalid

    """
    check_table(x)
    if text_interpret not in ("md", "html"):
        raise StylingError("`text_interpret=` must be one of 'md' or 'html'.")

    x = x.copy()
    styling = x.table_styling
    columns = resolve_columns(columns, list(styling.header["column"]), arg_name="columns")
    if not columns:
        return x

    header = styling.header
    if label is not None:
        for column, text in zip(columns, _recycle(label, columns, "label")):
            _set_header(header, column, label=text, interpret_label=text_interpret)

    if spanning_header is not None:
        for column, text in zip(columns, _recycle(spanning_header, columns, "spanning_header")):
            _set_header(
                header,
                column,
                spanning_header=text or None,
                interpret_spanning_header=text_interpret,
            )

    if hide is not None:
        header.loc[header["column"].isin(columns), "hide"] = bool(hide)

    if align is not None:
        if align not in ("left", "center", "right"):
            raise StylingError("`align=` must be one of 'left', 'center' or 'right'.")
        header.loc[header["column"].isin(columns), "align"] = align

    if footnote is not None:
        styling.footnote.extend(
            Footnote(column=c, rows=rows, text_interpret=text_interpret, footnote=footnote or None)
            for c in columns
        )

    if footnote_abbrev is not None:
        styling.footnote_abbrev.extend(
            Footnote(
                column=c, rows=rows, text_interpret=text_interpret, footnote=footnote_abbrev or None
            )
            for c in columns
        )

    if fmt_fun is not None:
        if not callable(fmt_fun):
            raise StylingError("`fmt_fun=` must be a function.")
        styling.fmt_fun.extend(FmtFun(column=c, rows=rows, fmt_fun=fmt_fun) for c in columns)

    if text_format is not None:
        formats = [text_format] if isinstance(text_format, str) else list(text_format)
        invalid = [f for f in formats if f not in TEXT_FORMAT_TYPES]
        if invalid:
            raise StylingError(
                f"`text_format=` must be one of {list(TEXT_FORMAT_TYPES)}, got {invalid}."
            )
        styling.text_format.extend(
            TextFormat(column=c, rows=rows, format_type=f, undo_text_format=undo_text_format)
            for c in columns
            for f in formats
        )

    if missing_symbol is not None:
        styling.fmt_missing.extend(
            FmtMissing(column=c, rows=rows, symbol=missing_symbol) for c in columns
        )

    if cols_merge_pattern is not None:
        _record_cols_merge(styling, columns, rows, cols_merge_pattern or None)

    return x


def _expand_rows(
    table_body: pd.DataFrame,
    instructions: Sequence[BaseModel],
    fields: Sequence[str],
    header_when_none: bool = False,
) -> pd.DataFrame:
    """One record per (instruction, selected row), in recording order."""
    records = []
    for inst in instructions:
        payload = {f: getattr(inst, f) for f in fields}
        if header_when_none and inst.rows is None:
            records.append({**payload, "tab_location": "header", "row_numbers": None})
            continue
        for row in rows_to_row_numbers(table_body, inst.rows):
            records.append({**payload, "tab_location": "body", "row_numbers": row})
    return pd.DataFrame(records, columns=[*fields, "tab_location", "row_numbers"])


def _keep_last(df: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    if df.empty:
        return df
    return df.loc[~df.duplicated(subset=keys, keep="last")].reset_index(drop=True)


def clean_table_styling(x: SummaryTable) -> CleanStyling:
    """Resolve every row selector and reduce instructions to the final state per cell.

    For each cell the last recorded instruction wins; removal records
    (footnote None, merge pattern None) and undone text formats are dropped.
    All abbreviation footnotes collapse into a single footnote.
    """
    body = x.table_body
    styling = x.table_styling

    footnote = _expand_rows(
        body, styling.footnote, ["column", "text_interpret", "footnote"], header_when_none=True
    )
    footnote = _keep_last(footnote, ["column", "tab_location", "row_numbers"])
    footnote = footnote[footnote["footnote"].notna()].reset_index(drop=True)

    abbrev = _expand_rows(
        body, styling.footnote_abbrev, ["column", "text_interpret", "footnote"], header_when_none=True
    )
    abbrev = _keep_last(abbrev, ["column", "tab_location", "row_numbers"])
    abbrev = abbrev[abbrev["footnote"].notna()].reset_index(drop=True)
    if not abbrev.empty:
        abbrev["footnote"] = ", ".join(dict.fromkeys(abbrev["footnote"]))

    fmt_fun = _keep_last(
        _expand_rows(body, styling.fmt_fun, ["column", "fmt_fun"]), ["column", "row_numbers"]
    )

    text_format = _expand_rows(
        body, styling.text_format, ["column", "format_type", "undo_text_format"]
    )
    text_format = _keep_last(text_format, ["column", "row_numbers", "format_type"])
    if not text_format.empty:
        text_format = text_format[~text_format["undo_text_format"].astype(bool)]
        text_format = text_format.reset_index(drop=True)

    fmt_missing = _keep_last(
        _expand_rows(body, styling.fmt_missing, ["column", "symbol"]), ["column", "row_numbers"]
    )

    cols_merge = _keep_last(
        _expand_rows(body, styling.cols_merge, ["column", "pattern"]), ["column", "row_numbers"]
    )
    cols_merge = cols_merge[cols_merge["pattern"].notna()].reset_index(drop=True)

    horizontal_line = (
        rows_to_row_numbers(body, styling.horizontal_line_above)
        if styling.horizontal_line_above is not None
        else None
    )

    return CleanStyling(
        header=styling.header.copy(),
        footnote=footnote,
        footnote_abbrev=abbrev,
        fmt_fun=fmt_fun,
        text_format=text_format,
        fmt_missing=fmt_missing,
        cols_merge=cols_merge,
        caption=styling.caption,
        caption_interpret=styling.caption_interpret,
        source_note=styling.source_note,
        source_note_interpret=styling.source_note_interpret,
        horizontal_line_above=horizontal_line,
    )


def cell_formatters(clean: CleanStyling) -> dict[tuple[int, str], Callable[[Any], Any]]:
    """Map (row, column) to the formatter active for that cell."""
    return {
        (int(r.row_numbers), r.column): r.fmt_fun
        for r in clean.fmt_fun.itertuples(index=False)
    }


def format_cell(value: Any, fmt: Callable[[Any], Any] | None) -> str | None:
    """Format one value; strings (already formatted or merged) pass through."""
    if is_missing(value):
        return None
    if isinstance(value, str):
        return value
    if fmt is None:
        return str(value)
    result = fmt(value)
    return None if is_missing(result) else str(result)


def apply_cols_merge(x: SummaryTable) -> SummaryTable:
    """Carry out recorded column merges on table_body.

    Each merged cell becomes the pattern filled with the formatted values of
    the referenced columns; cells where any referenced value is missing are
    left missing. Merge instructions are consumed.
    """
    if not x.table_styling.cols_merge:
        return x

    x = x.copy()
    clean = clean_table_styling(x)
    formatters = cell_formatters(clean)
    body = x.table_body

    for merge in clean.cols_merge.itertuples(index=False):
        row = int(merge.row_numbers)
        if body[merge.column].dtype != object:
            body[merge.column] = body[merge.column].astype(object)
        values: dict[str, str] = {}
        for column in pattern_columns(merge.pattern):
            text = format_cell(body.iloc[row][column], formatters.get((row, column)))
            if text is None:
                break
            values[column] = text
        else:
            merged = re.sub(r"\{(.*?)\}", lambda m: values[m.group(1)], merge.pattern)
            body.iat[row, body.columns.get_loc(merge.column)] = merged
            continue
        body.iat[row, body.columns.get_loc(merge.column)] = None

    x.table_styling.cols_merge = []
    return x


def cols_to_show(x: SummaryTable) -> list[str]:
    """Return the visible columns in table_body order."""
    header = x.table_styling.header
    visible = set(header.loc[~header["hide"].astype(bool), "column"])
    return [c for c in x.table_body.columns if c in visible]

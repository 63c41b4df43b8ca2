"""Rendering to great_tables.

The recorded styling is replayed as a named, ordered list of calls against
a ``great_tables.GT`` object. The calls can be returned instead of applied
(``return_calls=True``) to inspect them or to drop some of them with
``include``, e.g. ``include=["-tab_spanner"]``.

great_tables has no footnote API, so footnotes are numbered, marked with a
superscript in the column label or cell, and listed as source notes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import pandas as pd
from great_tables import GT, html, loc, md, style
from pydantic import BaseModel, ConfigDict, Field

from tblsummary.config import config
from tblsummary.errors import StylingError
from tblsummary.styling import (
    CleanStyling,
    apply_cols_merge,
    cell_formatters,
    clean_table_styling,
    cols_to_show,
    format_cell,
)
from tblsummary.table import SummaryTable
from tblsummary.theme import get_theme_element

logger = logging.getLogger(__name__)

__all__ = ["GridCall", "as_grid", "number_footnotes", "prepare_table", "resolve_include"]

GROUPNAME_COL = "groupname_col"


class GridCall(BaseModel):
    """One call against the grid renderer.

    ``method`` is a ``GT`` method name, or "GT" for the constructor.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    method: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = Field(default_factory=dict)

    def apply(self, gt: GT | None) -> GT:
        """Apply the call, returning the new ``GT`` object."""
        if self.method == "GT":
            return GT(*self.args, **self.kwargs)
        if gt is None:
            raise StylingError(f"Call '{self.name}' needs a GT object to apply to.")
        return getattr(gt, self.method)(*self.args, **self.kwargs)

    def __repr__(self) -> str:
        def _show(value: Any) -> str:
            if isinstance(value, pd.DataFrame):
                return f"<DataFrame {value.shape[0]}x{value.shape[1]}>"
            if callable(value) and not isinstance(value, type):
                return getattr(value, "__name__", "<function>")
            return repr(value)

        parts = [_show(a) for a in self.args]
        parts += [f"{k}={_show(v)}" for k, v in self.kwargs.items()]
        return f"{self.method}({', '.join(parts)})"

    __str__ = __repr__


def prepare_table(x: SummaryTable) -> tuple[SummaryTable, CleanStyling]:
    """Run the theme pre-conversion, perform column merges and clean the styling."""
    pre_conversion = get_theme_element("pkgwide.pre_conversion", None)
    if pre_conversion is not None:
        x = pre_conversion(x)
    x = apply_cols_merge(x)
    return x, clean_table_styling(x)


def number_footnotes(
    clean: CleanStyling, columns: Sequence[str]
) -> tuple[dict[str, list[int]], dict[tuple[int, str], list[int]], list[tuple[int, str, str]]]:
    """Number footnotes in reading order: column labels first, then body cells.

    Args:
        clean: Cleaned styling
        columns: Visible columns, in display order

    Returns:
        Tuple of (marks per column label, marks per (row, column) cell,
        notes as (number, text, text_interpret))

    """
    notes = pd.concat([clean.footnote, clean.footnote_abbrev], ignore_index=True)
    notes = notes[notes["column"].isin(columns)]
    order = {c: i for i, c in enumerate(columns)}
    notes = notes.assign(
        _header=notes["tab_location"] != "header",
        _col=notes["column"].map(order),
        _row=notes["row_numbers"].fillna(-1).astype(float),
    ).sort_values(["_header", "_row", "_col"], kind="stable")

    numbers: dict[str, int] = {}
    header_marks: dict[str, list[int]] = {}
    cell_marks: dict[tuple[int, str], list[int]] = {}
    listed: list[tuple[int, str, str]] = []
    for note in notes.itertuples(index=False):
        if note.footnote not in numbers:
            numbers[note.footnote] = len(numbers) + 1
            listed.append((numbers[note.footnote], note.footnote, note.text_interpret))
        n = numbers[note.footnote]
        if note.tab_location == "header":
            marks = header_marks.setdefault(note.column, [])
        else:
            marks = cell_marks.setdefault((int(note.row_numbers), note.column), [])
        if n not in marks:
            marks.append(n)
    return header_marks, cell_marks, listed


def _sup(marks: Sequence[int]) -> str:
    return f"<sup>{','.join(str(m) for m in marks)}</sup>" if marks else ""


def _text(text: str, interpret: str) -> Any:
    return html(text) if interpret == "html" else md(text)


def _rows_by(df: pd.DataFrame, keys: list[str]) -> list[tuple[Any, list[int]]]:
    if df.empty:
        return []
    grouped = df.groupby(keys, sort=False)["row_numbers"]
    return [(key, sorted(int(r) for r in rows)) for key, rows in grouped]


def _cell_formatter(fn: Callable[[Any], Any] | None, marks: str) -> Callable[[Any], str]:
    def _fmt(value: Any) -> str:
        text = format_cell(value, fn)
        return "" if text is None else f"{text}{marks}"

    _fmt.__name__ = getattr(fn, "__name__", "str") + ("_marked" if marks else "")
    return _fmt


def _build_calls(
    x: SummaryTable, clean: CleanStyling, gt_kwargs: dict[str, Any] | None = None
) -> dict[str, list[GridCall]]:
    body = x.table_body
    header = clean.header
    grouped = GROUPNAME_COL in body.columns
    columns = [c for c in body.columns if c != GROUPNAME_COL]
    shown = [c for c in cols_to_show(x) if c != GROUPNAME_COL]
    header_marks, cell_marks, notes = number_footnotes(clean, shown)
    calls: dict[str, list[GridCall]] = {}

    gt_kwargs = dict(gt_kwargs or {})
    if grouped:
        gt_kwargs.setdefault("groupname_col", GROUPNAME_COL)
    gt_call = [GridCall(name="gt", method="GT", args=(body,), kwargs=gt_kwargs)]
    if clean.caption:
        gt_call.append(
            GridCall(
                name="gt",
                method="tab_header",
                kwargs={"title": _text(clean.caption, clean.caption_interpret)},
            )
        )
    calls["gt"] = gt_call

    calls["fmt_missing"] = [
        GridCall(
            name="fmt_missing", method="sub_missing",
            kwargs={"columns": columns, "missing_text": ""},
        )
    ] + [
        GridCall(
            name="fmt_missing",
            method="sub_missing",
            kwargs={"columns": column, "rows": rows, "missing_text": symbol},
        )
        for (column, symbol), rows in _rows_by(clean.fmt_missing, ["column", "symbol"])
    ]

    align = header[header["column"].isin(columns)].groupby("align", sort=False)["column"]
    calls["cols_align"] = [
        GridCall(name="cols_align", method="cols_align", kwargs={"align": a, "columns": list(c)})
        for a, c in align
    ]

    for format_type, px_width in (("indent", config.indent_px), ("indent2", config.indent2_px)):
        formats = clean.text_format[clean.text_format["format_type"] == format_type]
        calls[f"tab_style_{format_type}"] = [
            GridCall(
                name=f"tab_style_{format_type}",
                method="tab_style",
                kwargs={
                    "style": style.css(f"padding-left: {px_width}px; text-align: left"),
                    "locations": loc.body(columns=column, rows=rows),
                },
            )
            for (column,), rows in _rows_by(formats, ["column"])
        ]

    formatters = cell_formatters(clean)
    cells = {rc for rc in set(formatters) | set(cell_marks) if rc[1] in columns}
    groups: dict[tuple[str, int, str], tuple[Callable[[Any], Any] | None, list[int]]] = {}
    for row, column in sorted(cells, key=lambda rc: (columns.index(rc[1]), rc[0])):
        fn = formatters.get((row, column))
        marks = _sup(cell_marks.get((row, column), []))
        key = (column, id(fn), marks)
        groups.setdefault(key, (fn, []))[1].append(row)
    calls["fmt"] = [
        GridCall(
            name="fmt",
            method="fmt",
            kwargs={"fns": _cell_formatter(fn, marks), "columns": column, "rows": rows},
        )
        for (column, _, marks), (fn, rows) in groups.items()
    ]

    for format_type, cell_style in (
        ("bold", style.text(weight="bold")),
        ("italic", style.text(style="italic")),
    ):
        formats = clean.text_format[clean.text_format["format_type"] == format_type]
        calls[f"tab_style_{format_type}"] = [
            GridCall(
                name=f"tab_style_{format_type}",
                method="tab_style",
                kwargs={"style": cell_style, "locations": loc.body(columns=column, rows=rows)},
            )
            for (column,), rows in _rows_by(formats, ["column"])
        ]

    labels = {
        row.column: _text(f"{row.label}{_sup(header_marks.get(row.column, []))}", row.interpret_label)
        for row in header.itertuples(index=False)
        if row.column in columns
    }
    calls["cols_label"] = [GridCall(name="cols_label", method="cols_label", kwargs=labels)]

    calls["tab_footnote"] = [
        GridCall(
            name="tab_footnote",
            method="tab_source_note",
            kwargs={"source_note": _text(f"<sup>{n}</sup> {text}", interpret)},
        )
        for n, text, interpret in notes
    ]

    spanners = header[header["column"].isin(shown) & header["spanning_header"].notna()]
    calls["tab_spanner"] = [
        GridCall(
            name="tab_spanner",
            method="tab_spanner",
            kwargs={"label": _text(text, interpret), "columns": list(cols)},
        )
        for (text, interpret), cols in spanners.groupby(
            ["spanning_header", "interpret_spanning_header"], sort=False
        )["column"]
    ]

    if clean.horizontal_line_above:
        calls["horizontal_line"] = [
            GridCall(
                name="horizontal_line",
                method="tab_style",
                kwargs={
                    "style": style.borders(
                        sides="top",
                        color=config.horizontal_line_color,
                        weight=f"{config.horizontal_line_weight_px}px",
                    ),
                    "locations": loc.body(rows=list(clean.horizontal_line_above)),
                },
            )
        ]

    if clean.source_note:
        calls["tab_source_note"] = [
            GridCall(
                name="tab_source_note",
                method="tab_source_note",
                kwargs={"source_note": _text(clean.source_note, clean.source_note_interpret)},
            )
        ]

    hidden = [c for c in columns if c not in shown]
    calls["cols_hide"] = (
        [GridCall(name="cols_hide", method="cols_hide", kwargs={"columns": hidden})]
        if hidden
        else []
    )
    return calls


def _insert_user_calls(calls: dict[str, list[GridCall]]) -> dict[str, list[GridCall]]:
    """Insert the theme's ``as_grid.addl_calls`` after their anchor calls."""
    additions = get_theme_element("as_grid.addl_calls", None) or {}
    for i, (anchor, extra) in enumerate(additions.items(), start=1):
        if anchor not in calls:
            raise StylingError(
                f"Theme element 'as_grid.addl_calls' refers to unknown call '{anchor}'. "
                f"Select from {list(calls)}."
            )
        extra = [extra] if isinstance(extra, GridCall) else list(extra)
        updated: dict[str, list[GridCall]] = {}
        for name, value in calls.items():
            updated[name] = value
            if name == anchor:
                updated[f"user_added{i}"] = extra
        calls = updated
    return calls


def resolve_include(include: Any, names: Sequence[str], always: Sequence[str] = ()) -> list[str]:
    """Resolve call names to keep; names starting with "-" are excluded.

    Args:
        include: None (everything), a name, or a list of names
        names: Available call names, in order
        always: Names that are kept regardless of ``include``

    Returns:
        Names to keep, in ``names`` order

    Raises:
        StylingError: If a name is not available

    """
    if include is None:
        return list(names)
    items = [include] if isinstance(include, str) else list(include)
    unknown = [i for i in items if i.lstrip("-") not in names]
    if unknown:
        raise StylingError(f"Error in `include=` argument: {unknown} not in {list(names)}.")
    excluded = {i[1:] for i in items if i.startswith("-")}
    included = {i for i in items if not i.startswith("-")}
    keep = set(names) if not included else included
    keep = (keep - excluded) | set(always)
    return [n for n in names if n in keep]


def as_grid(
    x: SummaryTable, include: Any = None, return_calls: bool = False, **kwargs: Any
) -> GT | dict[str, list[GridCall]]:
    """Convert a summary table to a ``great_tables.GT`` object.

    Args:
        x: Summary table
        include: Call names to keep, e.g. ``["-tab_spanner"]`` to drop the
            spanning headers; the "gt" call is always kept
        return_calls: Return the calls instead of applying them
        **kwargs: Passed to ``great_tables.GT()``, e.g. ``rowname_col`` or ``locale``

    Returns:
        A ``GT`` object, or the ordered mapping of call name to calls

    Examples:
        >>> tbl_summary(trial, by="trt").as_grid().as_raw_html()
        >>> as_grid(tbl, return_calls=True)["cols_hide"]
        [cols_hide(columns=['variable', 'var_type', 'var_label', 'row_type'])]

    """
    if not isinstance(x, SummaryTable):
        raise TypeError("`x=` must be a summary table (class 'SummaryTable').")
    x, clean = prepare_table(x)
    calls = _insert_user_calls(_build_calls(x, clean, kwargs))
    keep = resolve_include(include, list(calls), always=["gt"])
    calls = {name: calls[name] for name in keep}
    if return_calls:
        return calls

    gt: GT | None = None
    for name, group in calls.items():
        for call in group:
            gt = call.apply(gt)
    logger.debug(f"as_grid applied {sum(len(g) for g in calls.values())} calls")
    return gt

"""Plain renderings: DataFrame, markdown and LaTeX.

These share the conversion steps of the grid renderer (column merges,
formatters, missing symbols, hiding, labels) but produce text directly.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import pandas as pd

from tblsummary.formatting import is_missing
from tblsummary.render.grid import GROUPNAME_COL, number_footnotes, prepare_table, resolve_include
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

__all__ = [
    "FRAME_STEPS",
    "as_dataframe",
    "as_latex",
    "as_markdown",
    "latex_escape",
    "strip_markdown",
]

FRAME_STEPS = ["cols_merge", "fmt", "fmt_missing", "cols_hide", "cols_label"]

_LATEX_SPECIAL = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_ALIGN_MD = {"left": ":---", "center": ":---:", "right": "---:"}
_ALIGN_LATEX = {"left": "l", "center": "c", "right": "r"}


def strip_markdown(text: str) -> str:
    """Remove bold/italic markers and HTML tags from a label."""
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    return re.sub(r"(?<![\w*])[*_](?![\s*_])(.+?)(?<![\s*_])[*_](?![\w*])", r"\1", text)


def _formatted_body(
    body: pd.DataFrame, clean: CleanStyling, fmt: bool = True, fmt_missing: bool = True
) -> pd.DataFrame:
    """Format every cell; missing cells become "" or their missing symbol."""
    out = body.astype(object).copy()
    if fmt:
        formatters = cell_formatters(clean)
        for column in body.columns:
            out[column] = [
                format_cell(value, formatters.get((i, column)))
                for i, value in enumerate(body[column])
            ]
            out[column] = out[column].astype(object)
    if fmt_missing:
        out = out.mask(out.map(is_missing), "")
        for row in clean.fmt_missing.itertuples(index=False):
            i = int(row.row_numbers)
            if is_missing(body.iat[i, body.columns.get_loc(row.column)]):
                out.iat[i, out.columns.get_loc(row.column)] = row.symbol
    return out


def as_dataframe(
    x: SummaryTable, include: Any = None, col_labels: bool = True, fmt: bool = True
) -> pd.DataFrame:
    """Convert a summary table to a DataFrame of display strings.

    Args:
        x: Summary table
        include: Steps to apply, from ``FRAME_STEPS``; "-step" excludes
        col_labels: Rename columns to their labels, markdown stripped
        fmt: Format cells and fill in missing symbols

    Returns:
        DataFrame of the visible columns

    Examples:
        >>> tbl_summary(trial, by="trt").as_dataframe()
        >>> as_dataframe(tbl, col_labels=False, include=["-cols_hide"])

    """
    if not isinstance(x, SummaryTable):
        raise TypeError("`x=` must be a summary table (class 'SummaryTable').")
    steps = resolve_include(include, FRAME_STEPS)
    if not col_labels:
        steps = [s for s in steps if s != "cols_label"]
    if not fmt:
        steps = [s for s in steps if s not in ("fmt", "fmt_missing")]

    pre_conversion = get_theme_element("pkgwide.pre_conversion", None)
    if pre_conversion is not None:
        x = pre_conversion(x)
    if "cols_merge" in steps:
        x = apply_cols_merge(x)
    clean = clean_table_styling(x)
    out = _formatted_body(
        x.table_body, clean, fmt="fmt" in steps, fmt_missing="fmt_missing" in steps
    )

    if "cols_hide" in steps:
        columns = cols_to_show(x)
        if GROUPNAME_COL in out.columns and GROUPNAME_COL not in columns:
            columns = [GROUPNAME_COL, *columns]
        out = out[columns]
    if "cols_label" in steps:
        labels = dict(zip(clean.header["column"], clean.header["label"]))
        out = out.rename(columns={c: strip_markdown(str(labels.get(c, c))) for c in out.columns})
    return out.reset_index(drop=True)


def _text_table(x: SummaryTable) -> dict[str, Any]:
    """Collect what the text renderers need: cells, labels, marks and notes."""
    x, clean = prepare_table(x)
    body = x.table_body
    columns = [c for c in cols_to_show(x) if c != GROUPNAME_COL]
    cells = _formatted_body(body, clean)
    header_marks, cell_marks, notes = number_footnotes(clean, columns)
    formats: dict[tuple[int, str], set[str]] = {}
    for row in clean.text_format.itertuples(index=False):
        formats.setdefault((int(row.row_numbers), row.column), set()).add(row.format_type)
    header = clean.header.set_index("column")
    return {
        "columns": columns,
        "labels": {c: str(header.at[c, "label"]) for c in columns},
        "align": {c: header.at[c, "align"] for c in columns},
        "spanners": {c: header.at[c, "spanning_header"] for c in columns},
        "cells": cells,
        "formats": formats,
        "header_marks": header_marks,
        "cell_marks": cell_marks,
        "notes": notes,
        "groups": list(body[GROUPNAME_COL]) if GROUPNAME_COL in body.columns else None,
        "lines": set(clean.horizontal_line_above or []),
        "caption": clean.caption,
        "source_note": clean.source_note,
    }


def _md_cell(text: str, formats: set[str]) -> str:
    text = text.replace("|", "\\|")
    if text and "bold" in formats:
        text = f"**{text}**"
    if text and "italic" in formats:
        text = f"_{text}_"
    if "indent2" in formats:
        text = "&nbsp;" * 8 + text
    elif "indent" in formats:
        text = "&nbsp;" * 4 + text
    return text


def _md_marks(marks: list[int]) -> str:
    return f"<sup>{','.join(map(str, marks))}</sup>" if marks else ""


def as_markdown(x: SummaryTable) -> str:
    """Render a summary table as a markdown pipe table.

    Labels keep their markdown. Footnote marks are ``<sup>`` tags and the
    footnotes follow the table, then the source note. Spanning headers are
    not shown.

    Args:
        x: Summary table

    Returns:
        Markdown text

    """
    t = _text_table(x)
    columns = t["columns"]
    lines = []
    if t["caption"]:
        lines += [t["caption"], ""]
    labels = [
        t["labels"][c].replace("|", "\\|") + _md_marks(t["header_marks"].get(c, []))
        for c in columns
    ]
    lines.append("| " + " | ".join(labels) + " |")
    lines.append("|" + "|".join(_ALIGN_MD.get(t["align"][c], ":---") for c in columns) + "|")

    previous_group = None
    for i in range(len(t["cells"])):
        if t["groups"] is not None and t["groups"][i] != previous_group:
            previous_group = t["groups"][i]
            group_row = [f"**{previous_group}**"] + [""] * (len(columns) - 1)
            lines.append("| " + " | ".join(group_row) + " |")
        row = [
            _md_cell(str(t["cells"].at[i, c]), t["formats"].get((i, c), set()))
            + _md_marks(t["cell_marks"].get((i, c), []))
            for c in columns
        ]
        lines.append("| " + " | ".join(row) + " |")

    trailer = [f"<sup>{n}</sup> {text}" for n, text, _ in t["notes"]]
    if t["source_note"]:
        trailer.append(t["source_note"])
    if trailer:
        lines.append("")
        lines += trailer
    return "\n".join(lines)


def latex_escape(text: str) -> str:
    """Escape LaTeX special characters."""
    return "".join(_LATEX_SPECIAL.get(ch, ch) for ch in text)


def _latex_inline(text: str) -> str:
    """Escape a markdown label and convert ``**bold**`` and ``_italic_``."""
    text = re.sub(r"<[^>]+>", "", text)
    parts = re.split(r"(\*\*.+?\*\*|__.+?__)", text)
    out = []
    for part in parts:
        if re.fullmatch(r"\*\*.+?\*\*|__.+?__", part):
            out.append(r"\textbf{" + latex_escape(part[2:-2]) + "}")
        else:
            out.append(latex_escape(part))
    return "".join(out)


def _latex_marks(marks: list[int]) -> str:
    return r"\textsuperscript{" + ",".join(map(str, marks)) + "}" if marks else ""


def _latex_cell(text: str, formats: set[str]) -> str:
    text = latex_escape(text)
    if text and "bold" in formats:
        text = r"\textbf{" + text + "}"
    if text and "italic" in formats:
        text = r"\textit{" + text + "}"
    if "indent2" in formats:
        text = r"\qquad " + text
    elif "indent" in formats:
        text = r"\quad " + text
    return text


def _latex_spanners(columns: list[str], spanners: dict[str, Any]) -> list[str]:
    runs: list[tuple[Any, int, int]] = []
    for j, c in enumerate(columns):
        text = None if is_missing(spanners[c]) else spanners[c]
        if runs and runs[-1][0] == text:
            runs[-1] = (text, runs[-1][1], j)
        else:
            runs.append((text, j, j))
    if all(text is None for text, _, _ in runs):
        return []
    cells = []
    rules = []
    for text, start, end in runs:
        width = end - start + 1
        if text is None:
            cells += [""] * width
            continue
        cells.append(r"\multicolumn{%d}{c}{%s}" % (width, _latex_inline(str(text))))
        rules.append(r"\cmidrule(lr){%d-%d}" % (start + 1, end + 1))
    return [" & ".join(cells) + r" \\", " ".join(rules)]


def as_latex(x: SummaryTable) -> str:
    """Render a summary table as a booktabs LaTeX table.

    Args:
        x: Summary table

    Returns:
        LaTeX source of a ``table`` environment; needs ``\\usepackage{booktabs}``

    """
    t = _text_table(x)
    columns = t["columns"]
    spec = "".join(_ALIGN_LATEX.get(t["align"][c], "l") for c in columns)
    lines = [r"\begin{table}[!htbp]", r"\centering"]
    if t["caption"]:
        lines.append(r"\caption{" + _latex_inline(t["caption"]) + "}")
    lines += [r"\begin{tabular}{" + spec + "}", r"\toprule"]
    lines += _latex_spanners(columns, t["spanners"])
    labels = [
        _latex_inline(t["labels"][c]) + _latex_marks(t["header_marks"].get(c, [])) for c in columns
    ]
    lines += [" & ".join(labels) + r" \\", r"\midrule"]

    previous_group = None
    for i in range(len(t["cells"])):
        if i in t["lines"] and i > 0:
            lines.append(r"\midrule")
        if t["groups"] is not None and t["groups"][i] != previous_group:
            previous_group = t["groups"][i]
            lines.append(
                r"\multicolumn{%d}{l}{\textbf{%s}} \\"
                % (len(columns), latex_escape(str(previous_group)))
            )
        row = [
            _latex_cell(str(t["cells"].at[i, c]), t["formats"].get((i, c), set()))
            + _latex_marks(t["cell_marks"].get((i, c), []))
            for c in columns
        ]
        lines.append(" & ".join(row) + r" \\")
    lines += [r"\bottomrule", r"\end{tabular}"]

    notes = [r"\textsuperscript{%d} %s" % (n, _latex_inline(text)) for n, text, _ in t["notes"]]
    if t["source_note"]:
        notes.append(_latex_inline(t["source_note"]))
    if notes:
        lines.append(r"\par\begin{minipage}{\linewidth}\footnotesize")
        lines += [note + r"\\" for note in notes]
        lines.append(r"\end{minipage}")
    lines.append(r"\end{table}")
    return "\n".join(lines)

"""Side-by-side merging and vertical stacking of summary tables.

The styling instructions of every input table are carried into the result.
Row selectors are evaluated against the input table they were recorded on
and translated into explicit row positions of the combined body, since an
expression such as ``"p_value < 0.05"`` would otherwise refer to renamed
columns or to rows of other tables.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

import pandas as pd

from tblsummary.errors import StylingError
from tblsummary.styling import TableStyling, rows_to_row_numbers, sync_header
from tblsummary.table import SummaryTable, TblMerge, TblStack

logger = logging.getLogger(__name__)

__all__ = ["MERGE_KEYS", "tbl_merge", "tbl_stack"]

MERGE_KEYS = ["variable", "row_type", "label"]

_INSTRUCTION_FIELDS = (
    "footnote",
    "footnote_abbrev",
    "fmt_fun",
    "text_format",
    "fmt_missing",
    "cols_merge",
)


def _check_tables(tbls: Any) -> list[SummaryTable]:
    if isinstance(tbls, SummaryTable) or not isinstance(tbls, Sequence):
        raise TypeError("`tbls=` must be a list of summary tables.")
    tbls = list(tbls)
    if not tbls:
        raise StylingError("`tbls=` must contain at least one table.")
    for i, tbl in enumerate(tbls, start=1):
        if not isinstance(tbl, SummaryTable):
            raise TypeError(f"Element {i} of `tbls=` is not a summary table.")
    return tbls


def _rename_pattern(pattern: str, rename: dict[str, str]) -> str:
    return re.sub(r"\{(.*?)\}", lambda m: "{" + rename.get(m.group(1), m.group(1)) + "}", pattern)


def _remap_instructions(
    tbl: SummaryTable,
    row_map: dict[int, int],
    rename: dict[str, str],
    header_footnotes: bool = True,
) -> dict[str, list[Any]]:
    """Translate a table's instructions to the columns and rows of a combined body."""
    body = tbl.table_body
    remapped: dict[str, list[Any]] = {}
    for field in _INSTRUCTION_FIELDS:
        items = []
        for inst in getattr(tbl.table_styling, field):
            if inst.column not in rename:
                continue
            update: dict[str, Any] = {"column": rename[inst.column]}
            if field.startswith("footnote") and inst.rows is None:
                if not header_footnotes:
                    continue
            else:
                positions = rows_to_row_numbers(body, inst.rows)
                update["rows"] = [row_map[p] for p in positions if p in row_map]
            if field == "cols_merge" and inst.pattern:
                update["pattern"] = _rename_pattern(inst.pattern, rename)
            items.append(inst.model_copy(update=update))
        remapped[field] = items
    return remapped


def tbl_merge(tbls: Sequence[SummaryTable], tab_spanner: Any = None) -> TblMerge:
    """Merge tables side by side.

    Rows are matched on variable, row_type and label; rows missing from the
    first table are appended after its rows in the order they appear. Every
    other column of table ``i`` gets the suffix ``_i``.

    Args:
        tbls: Tables to merge
        tab_spanner: Spanning header per table; None for "**Table i**",
            False for no spanning headers

    Returns:
        Merged table

    Raises:
        TypeError: If tbls is not a list of summary tables
        StylingError: If a table lacks the row keys or tab_spanner has the
            wrong length

    Examples:
        >>> tbl_merge([tbl_univariate, tbl_multivariable],
        ...           tab_spanner=["**Univariable**", "**Multivariable**"])

    """
    tbls = _check_tables(tbls)
    if tab_spanner is None:
        tab_spanner = [f"**Table {i}**" for i in range(1, len(tbls) + 1)]
    elif tab_spanner is not False:
        tab_spanner = [tab_spanner] if isinstance(tab_spanner, str) else list(tab_spanner)
        if len(tab_spanner) != len(tbls):
            raise StylingError("`tab_spanner=` must have one entry per table.")

    merged: pd.DataFrame | None = None
    renames: list[dict[str, str]] = []
    for i, tbl in enumerate(tbls, start=1):
        missing = [k for k in MERGE_KEYS if k not in tbl.table_body.columns]
        if missing:
            raise StylingError(f"Table {i} has no {missing} columns and cannot be merged.")
        rename = {c: c if c in MERGE_KEYS else f"{c}_{i}" for c in tbl.table_body.columns}
        renames.append(rename)
        body = tbl.table_body.rename(columns=rename)
        body[f"_row_{i}"] = range(len(body))

        if merged is None:
            merged = body
            merged["_order"] = range(len(body))
            continue
        merged = merged.merge(body, on=MERGE_KEYS, how="outer", sort=False)
        new_rows = merged["_order"].isna()
        merged.loc[new_rows, "_order"] = len(merged) + merged.loc[new_rows, f"_row_{i}"]
        merged = merged.sort_values("_order", kind="stable").reset_index(drop=True)
        merged["_order"] = range(len(merged))

    row_maps = [
        {int(old): new for new, old in merged[f"_row_{i}"].items() if pd.notna(old)}
        for i in range(1, len(tbls) + 1)
    ]
    merged = merged.drop(columns=["_order", *[f"_row_{i}" for i in range(1, len(tbls) + 1)]])

    header_rows = []
    for i, (tbl, rename) in enumerate(zip(tbls, renames)):
        for row in tbl.table_styling.header.to_dict("records"):
            if row["column"] in MERGE_KEYS and i > 0:
                continue
            header_rows.append({**row, "column": rename[row["column"]]})
    styling = TableStyling(
        header=sync_header(pd.DataFrame(header_rows), merged),
        caption=tbls[0].table_styling.caption,
        caption_interpret=tbls[0].table_styling.caption_interpret,
        source_note=tbls[0].table_styling.source_note,
        source_note_interpret=tbls[0].table_styling.source_note_interpret,
    )
    for tbl, rename, row_map in zip(tbls, renames, row_maps):
        for field, items in _remap_instructions(tbl, row_map, rename).items():
            getattr(styling, field).extend(items)

    if tab_spanner is not False:
        header = styling.header
        for text, rename in zip(tab_spanner, renames):
            columns = [c for c in rename.values() if c not in MERGE_KEYS]
            header.loc[header["column"].isin(columns), "spanning_header"] = text

    x = TblMerge(merged, table_styling=styling, tbls=tbls, inputs={"tbls": tbls})
    x.record_call("tbl_merge", tab_spanner=tab_spanner)
    logger.debug(f"tbl_merge combined {len(tbls)} tables into {len(merged)} rows")
    return x


def tbl_stack(tbls: Sequence[SummaryTable], group_header: Sequence[str] | None = None) -> TblStack:
    """Stack tables vertically.

    Column headers and header footnotes come from the first table; the body
    styling of every table is kept for its own rows. Without group headers
    a horizontal line separates the stacked tables.

    Args:
        tbls: Tables to stack
        group_header: Row group label per table, rendered as row groups

    Returns:
        Stacked table

    Raises:
        TypeError: If tbls is not a list of summary tables
        StylingError: If group_header has the wrong length

    """
    tbls = _check_tables(tbls)
    if group_header is not None:
        group_header = [group_header] if isinstance(group_header, str) else list(group_header)
        if len(group_header) != len(tbls):
            raise StylingError("`group_header=` must have one entry per table.")

    bodies = []
    offsets = []
    offset = 0
    for i, tbl in enumerate(tbls):
        body = tbl.table_body.copy()
        if group_header is not None:
            body.insert(0, "groupname_col", group_header[i])
        bodies.append(body)
        offsets.append(offset)
        offset += len(body)
    stacked = pd.concat(bodies, ignore_index=True, sort=False)

    first = tbls[0].table_styling
    styling = TableStyling(
        header=sync_header(first.header, stacked),
        caption=first.caption,
        caption_interpret=first.caption_interpret,
        source_note=first.source_note,
        source_note_interpret=first.source_note_interpret,
    )
    for i, (tbl, start) in enumerate(zip(tbls, offsets)):
        row_map = {r: start + r for r in range(len(tbl.table_body))}
        rename = {c: c for c in tbl.table_body.columns}
        for field, items in _remap_instructions(tbl, row_map, rename, i == 0).items():
            getattr(styling, field).extend(items)
    if group_header is None and len(tbls) > 1:
        styling.horizontal_line_above = offsets[1:]

    x = TblStack(stacked, table_styling=styling, tbls=tbls, inputs={"tbls": tbls})
    if group_header is not None:
        x.inputs["groupname_col"] = "groupname_col"
    x.record_call("tbl_stack", group_header=group_header)
    logger.debug(f"tbl_stack combined {len(tbls)} tables into {len(stacked)} rows")
    return x

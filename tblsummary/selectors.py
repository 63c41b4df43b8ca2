"""Column selection helpers.

Selectors pick columns out of a candidate list (table_body columns or the
variables of a summary table). They can be combined with plain column names
in lists, and used as keys of per-variable mappings:

    >>> tbl_summary(df, by="trt", statistic={all_continuous(): "{mean} ({sd})"})
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tblsummary.errors import StylingError

__all__ = [
    "Selector",
    "all_categorical",
    "all_continuous",
    "all_dichotomous",
    "all_stat_cols",
    "contains",
    "everything",
    "resolve_columns",
    "resolve_mapping",
    "starts_with",
]


class Selector:
    """A named rule that picks columns from a candidate list."""

    def __init__(
        self,
        name: str,
        predicate: Callable[[str, str | None], bool],
        needs_types: bool = False,
    ) -> None:
        """Initialize the selector.

        Args:
            name: Display name used in reprs and error messages
            predicate: Called with (column, summary_type); True keeps the column
            needs_types: Whether the selector requires variable summary types

        """
        self.name = name
        self.predicate = predicate
        self.needs_types = needs_types

    def select(
        self, candidates: Iterable[str], var_types: Mapping[str, str] | None = None
    ) -> list[str]:
        """Return the candidates this selector keeps, in candidate order."""
        if self.needs_types and var_types is None:
            raise StylingError(
                f"`{self.name}` can only be used where variable summary types are known, "
                "e.g. in tbl_summary() or add_p() arguments."
            )
        var_types = var_types or {}
        return [c for c in candidates if self.predicate(c, var_types.get(c))]

    def __repr__(self) -> str:
        return f"{self.name}"


def everything() -> Selector:
    """Select every column."""
    return Selector("everything()", lambda col, typ: True)


def all_continuous() -> Selector:
    """Select continuous variables."""
    return Selector("all_continuous()", lambda col, typ: typ == "continuous", needs_types=True)


def all_categorical(dichotomous: bool = True) -> Selector:
    """Select categorical variables, optionally including dichotomous ones."""
    kept = {"categorical", "dichotomous"} if dichotomous else {"categorical"}
    return Selector(
        f"all_categorical(dichotomous={dichotomous})",
        lambda col, typ: typ in kept,
        needs_types=True,
    )


def all_dichotomous() -> Selector:
    """Select dichotomous variables."""
    return Selector("all_dichotomous()", lambda col, typ: typ == "dichotomous", needs_types=True)


def all_stat_cols(stat_0: bool = True) -> Selector:
    """Select the summary statistic columns (stat_0, stat_1, ...)."""
    pattern = re.compile(r"^stat_\d+$" if stat_0 else r"^stat_[1-9]\d*$")
    return Selector(f"all_stat_cols(stat_0={stat_0})", lambda col, typ: bool(pattern.match(col)))


def starts_with(prefix: str) -> Selector:
    """Select columns whose name starts with ``prefix``."""
    return Selector(f"starts_with({prefix!r})", lambda col, typ: col.startswith(prefix))


def contains(text: str) -> Selector:
    """Select columns whose name contains ``text``."""
    return Selector(f"contains({text!r})", lambda col, typ: text in col)


def resolve_columns(
    spec: Any,
    candidates: Iterable[str],
    var_types: Mapping[str, str] | None = None,
    arg_name: str = "columns",
) -> list[str]:
    """Resolve a column specification into a list of column names.

    Args:
        spec: None, a column name, a Selector, a predicate on column names,
            or a list mixing names and selectors
        candidates: Columns available for selection
        var_types: Summary type per column, required by type selectors
        arg_name: Argument name used in error messages

    Returns:
        Selected column names without duplicates. Names keep the order in
        which they were given; selectors contribute in candidate order.

    Raises:
        StylingError: If a named column is not among the candidates

    """
    candidates = list(candidates)
    if spec is None:
        return []

    if isinstance(spec, str):
        items: list[Any] = [spec]
    elif isinstance(spec, Selector) or callable(spec):
        items = [spec]
    else:
        items = list(spec)

    selected: list[str] = []
    for item in items:
        if isinstance(item, str):
            if item not in candidates:
                raise StylingError(
                    f"Error in `{arg_name}=` argument: column '{item}' not found. "
                    f"Select from {candidates}."
                )
            picked = [item]
        elif isinstance(item, Selector):
            picked = item.select(candidates, var_types)
        elif callable(item):
            picked = [c for c in candidates if item(c)]
        else:
            raise StylingError(
                f"Error in `{arg_name}=` argument: cannot select columns with {item!r}."
            )
        selected.extend(c for c in picked if c not in selected)

    return selected


def resolve_mapping(
    spec: Any,
    candidates: Iterable[str],
    var_types: Mapping[str, str] | None = None,
    arg_name: str = "argument",
) -> dict[str, Any]:
    """Resolve a per-column specification into ``{column: value}``.

    A dict maps a column name, a tuple of names or a Selector to a value;
    later entries override earlier ones. Any other value applies to every
    candidate.
    """
    candidates = list(candidates)
    if spec is None:
        return {}
    if not isinstance(spec, Mapping):
        return {c: spec for c in candidates}

    resolved: dict[str, Any] = {}
    for key, value in spec.items():
        columns = resolve_columns(
            list(key) if isinstance(key, tuple) else key,
            candidates,
            var_types=var_types,
            arg_name=arg_name,
        )
        for column in columns:
            resolved[column] = value
    return resolved

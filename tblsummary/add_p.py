"""P-values and q-values for summary tables."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import numpy as np

from tblsummary.config import config
from tblsummary.errors import StatTestError, StylingError
from tblsummary.formatting import style_pvalue
from tblsummary.selectors import everything, resolve_columns, resolve_mapping
from tblsummary.stat_tests import assign_test, get_test, p_adjust, run_test
from tblsummary.styling import check_table, modify_table_styling
from tblsummary.table import SummaryTable, TblSummary
from tblsummary.theme import get_theme_element

logger = logging.getLogger(__name__)

__all__ = ["add_p", "add_q", "default_pvalue_fun"]

P_COLUMNS = ["p_value", "statistic", "parameter", "test_name"]

ADJUSTMENT_LABELS = {
    "fdr": "False discovery rate",
    "BH": "Benjamini & Hochberg",
    "bonferroni": "Bonferroni",
    "holm": "Holm",
}


def default_pvalue_fun() -> Callable[[Any], str | None]:
    """Return the theme p-value formatter, or ``style_pvalue``."""
    return get_theme_element("pkgwide.pvalue_fun", None) or style_pvalue


def _test_name(test: Any) -> str:
    return test if isinstance(test, str) else getattr(test, "__name__", "custom")


def add_p(
    x: TblSummary,
    test: Any = None,
    pvalue_fun: Callable[[Any], str | None] | None = None,
    group: str | None = None,
    include: Any = None,
    test_args: Mapping[Any, Mapping[str, Any]] | None = None,
) -> TblSummary:
    """Add a p-value column comparing each variable across the ``by`` groups.

    The test for each variable is, in order of precedence: the ``test``
    mapping, the theme element ``add_p.test`` (keyed by summary type), and
    the default chosen by ``assign_test``. Tests that fail at runtime are
    logged and leave the p-value missing.

    Args:
        x: Table built by ``tbl_summary(by=...)``
        test: Test name or function, or a mapping of variable (or selector)
            to test name or function
        pvalue_fun: P-value formatter (default: theme, then style_pvalue)
        group: Subject identifier column for paired tests
        include: Variables to test (default: all)
        test_args: Mapping of variable (or selector) to extra keyword
            arguments for its test

    Returns:
        Table with p_value, statistic, parameter and test_name columns

    Raises:
        TypeError: If x is not a tbl_summary table
        StylingError: If x has no ``by`` column or ``group`` is not in the data
        StatTestError: If a test name is unknown or unsuited to a variable

    Examples:
        >>> tbl_summary(trial, by="trt").add_p(test={"age": "t.test"})

    """
    if not isinstance(x, TblSummary):
        raise TypeError("`x=` must be a table built by tbl_summary().")
    if x.by is None:
        logger.error("add_p() called on a tbl_summary() without `by=`.")
        raise StylingError("Cannot add p-values to a table without a `by=` variable.")

    data = x.inputs["data"]
    variables: list[str] = x.inputs["variables"]
    var_types: dict[str, str] = x.inputs["var_types"]
    if group is not None and group not in data.columns:
        logger.error(f"`group` column '{group}' not found in data.")
        raise StylingError(f"Error in `group=` argument: column '{group}' not found in data.")

    selected = resolve_columns(
        everything() if include is None else include, variables, var_types, arg_name="include"
    )
    if isinstance(test, Mapping):
        user_tests = resolve_mapping(test, selected, var_types, arg_name="test")
    elif test is not None:
        user_tests = {v: test for v in selected}
    else:
        user_tests = {}
    theme_tests: Mapping[str, Any] = get_theme_element("add_p.test", None) or {}
    extra_args = resolve_mapping(test_args or {}, selected, var_types, arg_name="test_args")

    tests: dict[str, Any] = {}
    for variable in selected:
        summary_type = var_types[variable]
        chosen = user_tests.get(variable) or theme_tests.get(summary_type)
        if chosen is None:
            chosen = assign_test(data, variable, summary_type, x.by, group=group)
        if isinstance(chosen, str):
            registered = get_test(chosen)
            if summary_type not in registered.summary_types:
                logger.error(f"Test '{chosen}' is not suited to {summary_type} '{variable}'.")
                raise StatTestError(
                    f"Test '{chosen}' cannot be applied to {summary_type} variable '{variable}'."
                )
        tests[variable] = chosen

    body = x.table_body.drop(columns=[c for c in P_COLUMNS if c in x.table_body.columns])
    for column in ("p_value", "statistic", "parameter"):
        body[column] = np.nan
    body["test_name"] = None

    methods: list[str] = []
    for variable, chosen in tests.items():
        try:
            result = run_test(
                chosen,
                data,
                variable,
                x.by,
                group=group,
                summary_type=var_types[variable],
                **dict(extra_args.get(variable, {})),
            )
        except StatTestError as e:
            logger.warning(f"Test for variable '{variable}' failed: {e}. P-value set to NA.")
            continue
        mask = (body["variable"] == variable) & (body["row_type"] == "label")
        body.loc[mask, "p_value"] = result.p_value
        body.loc[mask, "statistic"] = result.statistic
        body.loc[mask, "parameter"] = result.parameter
        body.loc[mask, "test_name"] = _test_name(chosen)
        methods.append(result.method)

    x = x.copy()
    x.set_table_body(body)
    x = modify_table_styling(
        x,
        columns="p_value",
        label=config.regression_headers["p_value"],
        hide=False,
        fmt_fun=pvalue_fun or default_pvalue_fun(),
        footnote="; ".join(dict.fromkeys(methods)),
    )
    x.inputs["tests"] = {v: _test_name(t) for v, t in tests.items()}
    x.record_call(
        "add_p", test=test, pvalue_fun=pvalue_fun, group=group, include=include,
        test_args=test_args,
    )
    return x


def add_q(
    x: SummaryTable,
    method: str = "fdr",
    pvalue_fun: Callable[[Any], str | None] | None = None,
) -> SummaryTable:
    """Add a q-value column adjusting the p-values for multiple testing.

    Args:
        x: Table with a p_value column
        method: "fdr" / "BH", "holm" or "bonferroni"
        pvalue_fun: Formatter for the q-values

    Returns:
        Table with a q_value column

    Raises:
        StylingError: If x has no p_value column
        StatTestError: If the method is unknown

    """
    check_table(x)
    if "p_value" not in x.table_body.columns:
        logger.error("add_q() called on a table without p-values.")
        raise StylingError("Add p-values with add_p() before calling add_q().")
    if method not in ADJUSTMENT_LABELS:
        raise StatTestError(
            f"Unknown p-value adjustment '{method}'. Select from {sorted(ADJUSTMENT_LABELS)}."
        )

    x = x.copy()
    body = x.table_body.copy()
    body["q_value"] = p_adjust(list(body["p_value"].astype(float)), method=method)
    x.set_table_body(body)
    x = modify_table_styling(
        x,
        columns="q_value",
        label="**q-value**",
        hide=False,
        fmt_fun=pvalue_fun or default_pvalue_fun(),
        footnote=f"{ADJUSTMENT_LABELS[method]} correction for multiple testing",
    )
    x.record_call("add_q", method=method, pvalue_fun=pvalue_fun)
    return x

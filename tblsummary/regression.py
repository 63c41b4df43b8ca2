"""Regression model tables.

``tbl_regression`` turns a formula-fitted statsmodels results object into a
summary table with one row per model term, grouping the dummy columns of
categorical terms under a label row with the reference level shown first.
Term structure is read from the patsy design info attached to the model.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd
from statsmodels.discrete.discrete_model import Logit, Poisson
from statsmodels.genmod import families
from statsmodels.genmod.generalized_linear_model import GLM

from tblsummary.add_p import default_pvalue_fun
from tblsummary.config import config
from tblsummary.errors import StylingError
from tblsummary.formatting import is_missing, style_ratio, style_sigfig
from tblsummary.modify import modify_header
from tblsummary.selectors import everything, resolve_columns, resolve_mapping
from tblsummary.styling import modify_table_styling
from tblsummary.table import TblRegression
from tblsummary.theme import get_theme_element

logger = logging.getLogger(__name__)

__all__ = ["estimate_label", "model_terms", "model_variables", "tbl_regression"]

BODY_COLUMNS = [
    "variable",
    "var_label",
    "var_type",
    "reference_row",
    "row_type",
    "label",
    "N",
    "estimate",
    "std_error",
    "statistic",
    "conf_low",
    "conf_high",
    "ci",
    "p_value",
]

INTERCEPT = "(Intercept)"

_CATEGORICAL_WRAPPER = re.compile(r"^C\(\s*([^,\)]+?)\s*(,.*)?\)$")
_LEVEL = re.compile(r"^(.*)\[(?:T\.)?(.*)\]$")


def _design_info(results: Any) -> Any:
    # statsmodels 0.15 renamed the attribute to model_spec
    data = getattr(results.model, "data", None)
    design_info = getattr(data, "design_info", None) or getattr(data, "model_spec", None)
    if design_info is None:
        raise TypeError(
            "`model=` must be a statsmodels results object fitted with a formula, "
            "e.g. statsmodels.formula.api.ols('y ~ x', data).fit()."
        )
    return design_info


def _variable_name(factor_name: str) -> str:
    """Strip the ``C(...)`` wrapper: "C(grade, Treatment)" -> "grade"."""
    match = _CATEGORICAL_WRAPPER.match(factor_name)
    return match.group(1) if match else factor_name


def model_terms(results: Any) -> pd.DataFrame:
    """Describe each term of a formula-fitted model.

    Args:
        results: Fitted statsmodels results object

    Returns:
        DataFrame with columns term, variable, var_type, columns (design
        matrix column names), categories (for categorical terms) and
        factors (variable names the term is built from)

    """
    design_info = _design_info(results)
    records = []
    for term in design_info.terms:
        name = term.name()
        columns = list(design_info.column_names[design_info.term_name_slices[name]])
        if not term.factors:
            records.append(
                {
                    "term": name,
                    "variable": INTERCEPT,
                    "var_type": "intercept",
                    "columns": columns,
                    "categories": None,
                    "factors": [],
                }
            )
        elif len(term.factors) == 1:
            factor = term.factors[0]
            info = design_info.factor_infos[factor]
            categorical = info.type == "categorical"
            records.append(
                {
                    "term": name,
                    "variable": _variable_name(factor.name()),
                    "var_type": "categorical" if categorical else "continuous",
                    "columns": columns,
                    "categories": list(info.categories) if categorical else None,
                    "factors": [_variable_name(factor.name())],
                }
            )
        else:
            records.append(
                {
                    "term": name,
                    "variable": name,
                    "var_type": "interaction",
                    "columns": columns,
                    "categories": None,
                    "factors": [_variable_name(f.name()) for f in term.factors],
                }
            )
    return pd.DataFrame(
        records, columns=["term", "variable", "var_type", "columns", "categories", "factors"]
    )


def model_variables(results: Any) -> list[str]:
    """Variable names of a model's terms, excluding the intercept."""
    terms = model_terms(results)
    return [v for v in dict.fromkeys(terms["variable"]) if v != INTERCEPT]


def _is_logistic(model: Any) -> bool:
    return isinstance(model, Logit) or (
        isinstance(model, GLM) and isinstance(model.family, families.Binomial)
    )


def _is_poisson(model: Any) -> bool:
    return isinstance(model, Poisson) or (
        isinstance(model, GLM) and isinstance(model.family, families.Poisson)
    )


def estimate_label(model: Any, exponentiate: bool) -> tuple[str, str | None]:
    """Header label and abbreviation footnote for the estimate column."""
    if not exponentiate:
        return "**Beta**", None
    if _is_logistic(model):
        return "**OR**", "OR = Odds Ratio"
    if _is_poisson(model):
        return "**IRR**", "IRR = Incidence Rate Ratio"
    return "**exp(Beta)**", None


def _interaction_label(column: str) -> str:
    parts = []
    for part in column.split(":"):
        match = _LEVEL.match(part)
        parts.append(match.group(2) if match else _variable_name(part))
    return " * ".join(parts)


def _level_column(term: str, category: Any, columns: list[str]) -> str | None:
    for candidate in (f"{term}[T.{category}]", f"{term}[{category}]"):
        if candidate in columns:
            return candidate
    return None


def _coefficients(results: Any, conf_level: float) -> pd.DataFrame:
    conf_int = pd.DataFrame(results.conf_int(alpha=1 - conf_level))
    return pd.DataFrame(
        {
            "estimate": pd.Series(results.params),
            "std_error": pd.Series(results.bse),
            "statistic": pd.Series(results.tvalues),
            "conf_low": conf_int.iloc[:, 0],
            "conf_high": conf_int.iloc[:, 1],
            "p_value": pd.Series(results.pvalues),
        }
    )


def _estimate_row(coefs: pd.DataFrame, column: str | None) -> dict[str, Any]:
    if column is None:
        return dict.fromkeys(
            ["estimate", "std_error", "statistic", "conf_low", "conf_high", "p_value"], np.nan
        )
    return {k: float(v) for k, v in coefs.loc[column].items()}


def tbl_regression(
    model: Any,
    label: Any = None,
    exponentiate: bool = False,
    include: Any = None,
    show_single_row: Any = None,
    conf_level: float | None = None,
    intercept: bool = False,
    estimate_fun: Callable[[Any], str | None] | None = None,
    pvalue_fun: Callable[[Any], str | None] | None = None,
) -> TblRegression:
    """Build a table of regression coefficients.

    Args:
        model: Results of a statsmodels model fitted with a formula
            (OLS, GLM, Logit or Poisson)
        label: Mapping of variable (or selector) to display label
        exponentiate: Report exp(estimate), e.g. odds ratios
        include: Variables to show (default: all)
        show_single_row: Two-level categorical variables shown on one row
        conf_level: Confidence level (default from config)
        intercept: Show the intercept row
        estimate_fun: Formatter for estimates and CI bounds
        pvalue_fun: Formatter for p-values

    Returns:
        Regression table

    Raises:
        TypeError: If model was not fitted with a formula
        StylingError: If a variable in show_single_row is not a two-level
            categorical term

    Examples:
        >>> model = smf.logit("response ~ age + C(trt)", data=trial).fit(disp=0)
        >>> tbl = tbl_regression(model, exponentiate=True)

    """
    if conf_level is None:
        conf_level = config.conf_level
    if not 0 < conf_level < 1:
        raise StylingError(f"`conf_level=` must be between 0 and 1, got {conf_level}.")
    if estimate_fun is None:
        estimate_fun = get_theme_element("tbl_regression.estimate_fun", None) or (
            style_ratio if exponentiate else style_sigfig
        )
    if pvalue_fun is None:
        pvalue_fun = default_pvalue_fun()

    terms = model_terms(model)
    variables = list(dict.fromkeys(terms["variable"]))
    if not intercept:
        variables = [v for v in variables if v != INTERCEPT]
    var_types = dict(zip(terms["variable"], terms["var_type"]))

    selected = resolve_columns(
        everything() if include is None else include, variables, var_types, arg_name="include"
    )
    single_row = resolve_columns(show_single_row, variables, var_types, arg_name="show_single_row")
    labels = {
        v: _interaction_label(v) if var_types[v] == "interaction" else v for v in variables
    }
    labels.update(resolve_mapping(label, variables, var_types, arg_name="label"))

    coefs = _coefficients(model, conf_level)
    n_obs = int(model.nobs)

    rows: list[dict[str, Any]] = []
    for term in terms.itertuples(index=False):
        if term.variable not in selected:
            continue
        var_label = labels[term.variable]
        base = {"variable": term.variable, "var_label": var_label, "N": n_obs}

        def _row(
            var_type: str, row_type: str, label: str, column: str | None, reference: bool = False
        ) -> dict[str, Any]:
            return {
                **base,
                "var_type": var_type,
                "reference_row": reference,
                "row_type": row_type,
                "label": label,
                **_estimate_row(coefs, column),
            }

        if term.var_type == "categorical":
            level_columns = [
                (str(c), _level_column(term.term, c, term.columns)) for c in term.categories
            ]
            if term.variable in single_row:
                non_reference = [col for _, col in level_columns if col is not None]
                if len(level_columns) != 2 or len(non_reference) != 1:
                    logger.error(f"'{term.variable}' cannot be shown on a single row.")
                    raise StylingError(
                        f"Variable '{term.variable}' in `show_single_row=` must be a "
                        "categorical term with exactly two levels."
                    )
                rows.append(_row("dichotomous", "label", var_label, non_reference[0]))
                continue
            rows.append(_row("categorical", "label", var_label, None))
            # reference levels first, then category order
            for level, column in sorted(level_columns, key=lambda lc: lc[1] is not None):
                rows.append(
                    _row("categorical", "level", level, column, reference=column is None)
                )
        elif len(term.columns) == 1:
            rows.append(_row(term.var_type, "label", var_label, term.columns[0]))
        else:
            # multi-column numeric terms and interactions with categorical factors
            rows.append(_row(term.var_type, "label", var_label, None))
            for column in term.columns:
                rows.append(_row(term.var_type, "level", _interaction_label(column), column))

    table_body = pd.DataFrame(rows, columns=BODY_COLUMNS)
    table_body["reference_row"] = table_body["reference_row"].astype(bool)
    if exponentiate:
        for column in ("estimate", "conf_low", "conf_high"):
            table_body[column] = np.exp(table_body[column].astype(float))
    table_body["ci"] = [
        None if is_missing(lo) or is_missing(hi) else f"{estimate_fun(lo)}, {estimate_fun(hi)}"
        for lo, hi in zip(table_body["conf_low"], table_body["conf_high"])
    ]

    x = TblRegression(
        table_body,
        inputs={
            "model": model,
            "label": label,
            "exponentiate": exponentiate,
            "include": include,
            "show_single_row": show_single_row,
            "conf_level": conf_level,
            "intercept": intercept,
            "estimate_fun": estimate_fun,
            "pvalue_fun": pvalue_fun,
        },
        meta_data=terms,
        model=model,
        N=n_obs,
    )

    estimate_header, estimate_abbrev = estimate_label(model.model, exponentiate)
    conf_pct = math.floor(conf_level * 100 + 0.5)
    headers = config.regression_headers
    x = modify_table_styling(x, columns=["label", "estimate", "ci", "p_value"], hide=False)
    x = modify_header(
        x,
        {
            "label": headers["label"],
            "estimate": estimate_header,
            "ci": headers["ci"].replace("{conf_pct}", str(conf_pct)),
            "p_value": headers["p_value"],
        },
    )
    if estimate_abbrev:
        x = modify_table_styling(x, columns="estimate", footnote_abbrev=estimate_abbrev)
    x = modify_table_styling(x, columns="ci", footnote_abbrev="CI = Confidence Interval")
    x = modify_table_styling(
        x, columns=["estimate", "conf_low", "conf_high"], fmt_fun=estimate_fun
    )
    x = modify_table_styling(x, columns="p_value", fmt_fun=pvalue_fun)
    x = modify_table_styling(
        x,
        columns=["estimate", "ci"],
        rows="reference_row == True",
        missing_symbol=config.reference_symbol,
    )
    x = modify_table_styling(
        x, columns="label", rows="row_type != 'label'", text_format="indent"
    )

    x.call_list = {}
    x.record_call(
        "tbl_regression",
        label=label,
        exponentiate=exponentiate,
        include=include,
        show_single_row=show_single_row,
        conf_level=conf_level,
        intercept=intercept,
    )
    logger.debug(
        f"tbl_regression built with {len(table_body)} rows from {type(model.model).__name__}"
    )
    return x

"""Model comparison for regression tables.

``combine_terms`` replaces a group of model terms (e.g. the linear and
quadratic terms of one covariate) with a single row whose p-value tests all
of them jointly; ``add_global_p`` does the same per variable while keeping
the rows. Both compare the fitted model against a reduced model refitted
from an R-style formula update, e.g. ``". ~ . - marker - I(marker**2)"``.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy import stats
from statsmodels.discrete.discrete_model import Logit, Poisson
from statsmodels.genmod.generalized_linear_model import GLM
from statsmodels.regression.linear_model import OLS
from statsmodels.stats.anova import anova_lm

from tblsummary.add_p import default_pvalue_fun
from tblsummary.config import config
from tblsummary.errors import CombineTermsError
from tblsummary.formatting import is_missing
from tblsummary.regression import INTERCEPT, model_variables, tbl_regression
from tblsummary.selectors import Selector, everything, resolve_columns
from tblsummary.styling import modify_table_styling
from tblsummary.table import TblRegression
from tblsummary.theme import get_theme_element

logger = logging.getLogger(__name__)

__all__ = [
    "add_global_p",
    "combine_terms",
    "compare_models",
    "refit_model",
    "update_formula",
]

ROW_KEYS = ["variable", "var_type", "reference_row", "row_type", "label"]

ANOVA_ERROR = (
    "There was an error calculating the p-value comparing the full and reduced models.\n"
    "There are two common causes for an error during the calculation:\n"
    "1. The model type is not supported by the comparison.\n"
    "2. The number of observations used to estimate the full and reduced "
    "models is different.\n\n"
)


def _split_terms(rhs: str) -> list[tuple[str, str]]:
    """Split a formula side into (sign, term) pairs at top-level + and -."""
    terms: list[tuple[str, str]] = []
    depth = 0
    sign = "+"
    current = ""
    for char in rhs:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        if depth == 0 and char in "+-":
            if current.strip():
                terms.append((sign, current.strip()))
            sign = char
            current = ""
            continue
        current += char
    if current.strip():
        terms.append((sign, current.strip()))
    return terms


def _term_key(term: str) -> str:
    return re.sub(r"\s+", "", term)


def update_formula(formula: str, update: str) -> str:
    """Apply an R-style formula update.

    ``.`` on the left of ``~`` is the original response and ``.`` on the
    right the original terms. ``+ term`` adds and ``- term`` removes a term;
    terms compare ignoring whitespace.

    Args:
        formula: Original formula, e.g. "y ~ a + b + I(a**2)"
        update: Update, e.g. ". ~ . - a - I(a**2)"

    Returns:
        Updated formula, e.g. "y ~ b"

    Raises:
        CombineTermsError: If either formula has no "~"

    """
    if "~" not in formula or "~" not in update:
        raise CombineTermsError(
            f"Formulas must contain '~', got formula='{formula}', update='{update}'."
        )
    lhs, rhs = (side.strip() for side in formula.split("~", 1))
    new_lhs, new_rhs = (side.strip() for side in update.split("~", 1))
    new_lhs = re.sub(r"(?<![\w.])\.(?![\w.])", lhs, new_lhs) if new_lhs else lhs

    original = [t for s, t in _split_terms(rhs) if s == "+"]
    removed_from_original = {_term_key(t) for s, t in _split_terms(rhs) if s == "-"}

    terms: list[str] = []
    removed: set[str] = set(removed_from_original)
    for sign, term in _split_terms(new_rhs):
        if term == ".":
            expanded = original if sign == "+" else []
            terms.extend(t for t in expanded if _term_key(t) not in {_term_key(x) for x in terms})
            continue
        key = _term_key(term)
        if sign == "+":
            removed.discard(key)
            if key not in {_term_key(x) for x in terms}:
                terms.append(term)
        else:
            removed.add(key)
            terms = [t for t in terms if _term_key(t) != key]

    kept = [t for t in terms if _term_key(t) not in removed]
    no_intercept = "1" in removed or any(_term_key(t) == "0" for t in kept)
    kept = [t for t in kept if _term_key(t) not in {"0", "1"}]
    rhs_text = " + ".join(kept) if kept else "1"
    if no_intercept:
        rhs_text = f"{rhs_text} - 1" if kept else "0"
    return f"{new_lhs} ~ {rhs_text}"


def refit_model(results: Any, formula: str) -> Any:
    """Refit a model of the same family with a new formula.

    The new model uses the same observations as the original fit, so the two
    models can be compared.

    Args:
        results: Fitted statsmodels results object (OLS, Logit, Poisson, GLM)
        formula: New model formula

    Returns:
        Fitted results of the new model

    Raises:
        CombineTermsError: If the model type is not supported

    """
    model = results.model
    frame = model.data.frame
    row_labels = getattr(model.data, "row_labels", None)
    data = frame.loc[row_labels] if row_labels is not None else frame

    if isinstance(model, GLM):
        return smf.glm(formula, data=data, family=model.family).fit()
    if isinstance(model, Logit):
        return smf.logit(formula, data=data).fit(disp=0)
    if isinstance(model, Poisson):
        return smf.poisson(formula, data=data).fit(disp=0)
    if isinstance(model, OLS):
        return smf.ols(formula, data=data).fit()
    raise CombineTermsError(
        f"Model type '{type(model).__name__}' is not supported. "
        "Use an OLS, Logit, Poisson or GLM model fitted with a formula."
    )


def compare_models(full: Any, reduced: Any, test: str | None = None) -> pd.DataFrame:
    """Compare nested models.

    Args:
        full: Fitted results of the full model
        reduced: Fitted results of the reduced model
        test: "F" (OLS only), "LRT" / "Chisq" (likelihood ratio), or None
            for "F" on OLS models and no test otherwise

    Returns:
        Comparison table with one row per model (reduced first). The last
        row holds the comparison; the p-value column is "Pr(>F)" or
        "Pr(>Chi)", and is absent when no test was run.

    Raises:
        ValueError: If the models use different observations or the test
            does not apply to the model type

    """
    if int(full.nobs) != int(reduced.nobs):
        raise ValueError(
            f"Full model uses {int(full.nobs)} observations, reduced model {int(reduced.nobs)}."
        )
    is_ols = isinstance(full.model, OLS)
    if test is None and is_ols:
        test = "F"

    if test == "F":
        if not is_ols:
            raise ValueError(f"The F test requires OLS models, got {type(full.model).__name__}.")
        return anova_lm(reduced, full)

    table = pd.DataFrame(
        {
            "Resid. Df": [reduced.df_resid, full.df_resid],
            "Log-Lik": [reduced.llf, full.llf],
        }
    )
    if test is None:
        return table
    if test not in ("LRT", "Chisq"):
        raise ValueError(f"`test=` must be one of 'F', 'LRT' or 'Chisq', got {test!r}.")

    df = float(full.df_model - reduced.df_model)
    deviance = 2 * (full.llf - reduced.llf)
    table["Df"] = [np.nan, df]
    table["Deviance"] = [np.nan, deviance]
    table["Pr(>Chi)"] = [np.nan, float(stats.chi2.sf(deviance, df)) if df > 0 else np.nan]
    return table


def _resolve_quiet(quiet: bool | None) -> bool:
    if quiet is None:
        quiet = get_theme_element("pkgwide.quiet", None)
    return bool(config.quiet if quiet is None else quiet)


def _comparison_p(full: Any, reduced: Any, test: str | None, quiet: bool) -> float:
    """P-value of the last row of the model comparison."""
    if not quiet:
        logger.info(
            "Calculating p-value comparing full and reduced models with\n"
            f"  `compare_models(model, reduced_model, test={test!r})`"
        )
    try:
        anova = compare_models(full, reduced, test=test)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.error(f"Model comparison failed: {e}")
        raise CombineTermsError(ANOVA_ERROR + str(e)) from e

    p_columns = [c for c in anova.columns if str(c).startswith(("Pr(>", "P(>"))]
    if not p_columns:
        raise CombineTermsError(
            "The model comparison did not contain a p-value.\n"
            "A common source of this error is not specifying the `test=` argument.\n"
            "For example, to get the LRT p-value for a logistic regression,\n"
            'include the argument `test="LRT"` in the call.'
        )
    p_value = anova[p_columns[0]].iloc[-1]
    if is_missing(p_value):
        raise CombineTermsError("The model comparison did not contain a p-value.")
    return float(p_value)


def _intersect(spec: Any, variables: list[str]) -> Any:
    """Keep only the parts of a column specification present in ``variables``."""
    if spec is None or isinstance(spec, Selector) or callable(spec):
        return spec
    if isinstance(spec, str):
        return [spec] if spec in variables else []
    if isinstance(spec, dict):
        return {
            k: v
            for k, v in spec.items()
            if not isinstance(k, str) or k in variables
        }
    return [s for s in spec if not isinstance(s, str) or s in variables]


def _ensure_p_value(x: TblRegression) -> TblRegression:
    if "p_value" in x.table_body.columns:
        return x
    x = x.copy()
    body = x.table_body.copy()
    body["p_value"] = np.nan
    x.set_table_body(body)
    return modify_table_styling(
        x,
        columns="p_value",
        label="**p-value**",
        hide=False,
        fmt_fun=x.inputs.get("pvalue_fun") or default_pvalue_fun(),
    )


def _row_key(row: pd.Series) -> tuple[Any, ...]:
    return tuple(None if is_missing(row[k]) else row[k] for k in ROW_KEYS)


def combine_terms(
    x: TblRegression,
    formula_update: str,
    label: str | None = None,
    quiet: bool | None = None,
    test: str | None = None,
) -> TblRegression:
    """Collapse model terms into a single row with a joint p-value.

    A reduced model is fitted with the updated formula and compared with the
    full model. Rows of the table that do not appear in the reduced model's
    table are replaced by a single row holding the comparison p-value.

    Args:
        x: Regression table
        formula_update: R-style formula update, e.g. ". ~ . - marker - I(marker**2)"
        label: Label of the combined row
        quiet: Suppress the informational messages (default: theme, then config)
        test: Comparison test, "F", "LRT" or "Chisq" (default "F" for OLS)

    Returns:
        Regression table with the terms combined

    Raises:
        TypeError: If x is not a regression table or label is not a string
        CombineTermsError: If the models cannot be compared or the
            comparison yields no p-value

    Examples:
        >>> model = smf.glm(
        ...     "response ~ marker + I(marker**2) + C(grade)", data, family=sm.families.Binomial()
        ... ).fit()
        >>> tbl = tbl_regression(model, exponentiate=True).combine_terms(
        ...     ". ~ . - marker - I(marker**2)", label="Marker (non-linear terms)", test="LRT"
        ... )

    """
    if not isinstance(x, TblRegression):
        raise TypeError("`x=` input must be a table built by tbl_regression().")
    if label is not None and not isinstance(label, str):
        raise TypeError("`label=` argument must be a string.")
    quiet = _resolve_quiet(quiet)

    full = x.model
    new_formula = update_formula(full.model.formula, formula_update)
    if not quiet:
        logger.info(
            "combine_terms: Creating a reduced model with\n"
            f'  `reduced_model = refit_model(model, "{new_formula}")`'
        )
    reduced = refit_model(full, new_formula)
    p_value = _comparison_p(full, reduced, test, quiet)

    reduced_variables = model_variables(reduced)
    if x.inputs.get("intercept"):
        reduced_variables.append(INTERCEPT)
    inputs = x.inputs
    new_tbl = tbl_regression(
        reduced,
        label=_intersect(inputs.get("label"), reduced_variables),
        exponentiate=inputs.get("exponentiate", False),
        include=_intersect(inputs.get("include"), reduced_variables),
        show_single_row=_intersect(inputs.get("show_single_row"), reduced_variables),
        conf_level=inputs.get("conf_level"),
        intercept=inputs.get("intercept", False),
        estimate_fun=inputs.get("estimate_fun"),
        pvalue_fun=inputs.get("pvalue_fun"),
    )

    x = _ensure_p_value(x)
    body = x.table_body.copy()
    kept_keys = {_row_key(row) for _, row in new_tbl.table_body.iterrows()}
    collapse = np.array([_row_key(row) not in kept_keys for _, row in body.iterrows()])

    if collapse.any():
        first = int(np.flatnonzero(collapse)[0])
        if "ci" in body.columns:
            body["ci"] = body["ci"].astype(object)
        cleared = [c for c in ("estimate", "conf_low", "conf_high", "ci") if c in body.columns]
        body.loc[first, cleared] = np.nan
        body.loc[first, "p_value"] = p_value
        body.loc[first, "row_type"] = "label"
        if label is not None:
            body.loc[first, "label"] = label
        keep = ~collapse
        keep[first] = True
        body = body.loc[keep]
    else:
        logger.warning("combine_terms: no rows were removed by the formula update.")

    x = x.copy()
    x.set_table_body(body)
    x.record_call(
        "combine_terms", formula_update=formula_update, label=label, quiet=quiet, test=test
    )
    return x


def _drop_variable(results: Any, terms: pd.DataFrame, variable: str) -> str:
    """Formula of the model without ``variable`` and the interactions containing it.

    The formula is rebuilt from the expanded model terms, so ``a * b`` in the
    original formula is written as ``a + b + a:b``.
    """
    factors = set().union(*terms.loc[terms["variable"] == variable, "factors"])
    removed = [
        term.term
        for term in terms.itertuples(index=False)
        if term.variable == variable or (factors and factors <= set(term.factors))
    ]
    lhs = results.model.formula.split("~", 1)[0].strip()
    kept = [t for t, kind in zip(terms["term"], terms["var_type"]) if kind != "intercept"]
    rhs = " + ".join(kept) if kept else "1"
    if not (terms["var_type"] == "intercept").any():
        rhs = f"{rhs} - 1"
    return update_formula(f"{lhs} ~ {rhs}", ". ~ . - " + " - ".join(removed))


def add_global_p(
    x: TblRegression,
    include: Any = None,
    test: str | None = None,
    keep: bool = False,
    quiet: bool | None = None,
) -> TblRegression:
    """Replace per-level p-values with one global p-value per variable.

    Each selected variable is dropped from the model in turn, together with
    the interaction terms containing it, and the reduced model compared with
    the full model. A variable whose removal leaves the model unchanged keeps
    a missing p-value.

    Args:
        x: Regression table
        include: Variables to test (default: every variable in the table)
        test: Comparison test, "F", "LRT" or "Chisq" (default "F" for OLS)
        keep: Keep the level-row p-values
        quiet: Suppress the informational messages

    Returns:
        Regression table with global p-values on the label rows

    Raises:
        TypeError: If x is not a regression table
        CombineTermsError: If a comparison fails

    """
    if not isinstance(x, TblRegression):
        raise TypeError("`x=` input must be a table built by tbl_regression().")
    quiet = _resolve_quiet(quiet)

    full = x.model
    terms = x.meta_data
    variables = [v for v in dict.fromkeys(x.table_body["variable"]) if v != INTERCEPT]
    var_types = dict(zip(x.table_body["variable"], x.table_body["var_type"]))
    selected = resolve_columns(
        everything() if include is None else include, variables, var_types, arg_name="include"
    )

    x = _ensure_p_value(x)
    body = x.table_body.copy()
    for variable in selected:
        new_formula = _drop_variable(full, terms, variable)
        if not quiet:
            logger.info(f"add_global_p: Comparing with reduced model `{new_formula}`")
        reduced = refit_model(full, new_formula)
        if full.df_model - reduced.df_model <= 0:
            logger.warning(
                f"add_global_p: dropping '{variable}' does not change the model; "
                "its p-value is left missing."
            )
            p_value = np.nan
        else:
            p_value = _comparison_p(full, reduced, test, quiet=True)

        rows = body["variable"] == variable
        if not keep:
            body.loc[rows, "p_value"] = np.nan
        body.loc[rows & (body["row_type"] == "label"), "p_value"] = p_value

    x = x.copy()
    x.set_table_body(body)
    x.record_call("add_global_p", include=include, test=test, keep=keep, quiet=quiet)
    return x

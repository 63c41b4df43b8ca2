"""Descriptive statistics tables.

``tbl_summary`` summarises every variable of a DataFrame, optionally split
by a grouping column. Each variable is classified as continuous, categorical
or dichotomous, and summarised with a glue pattern of statistic tokens, e.g.
``"{median} ({p25}, {p75})"`` or ``"{n} ({p}%)"``.

Statistic cells are formatted when the table is built; later styling only
changes labels, emphasis and layout.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from tblsummary.config import config
from tblsummary.errors import StylingError
from tblsummary.formatting import is_missing, style_number, style_percent
from tblsummary.modify import modify_header
from tblsummary.selectors import everything, resolve_columns, resolve_mapping
from tblsummary.styling import modify_table_styling
from tblsummary.table import TblSummary
from tblsummary.theme import get_theme_element

logger = logging.getLogger(__name__)

__all__ = [
    "guess_digits",
    "infer_summary_type",
    "stat_label",
    "tbl_summary",
]

SUMMARY_TYPES = ("continuous", "categorical", "dichotomous")
MISSING_OPTIONS = ("ifany", "always", "no")
PERCENT_OPTIONS = ("column", "row", "cell")
SORT_OPTIONS = ("alphanumeric", "frequency")

_COUNT_TOKENS = {"N_obs", "N_miss", "N_nonmiss"}
_MISSING_PCT_TOKENS = {"p_miss", "p_nonmiss"}
_CONTINUOUS_TOKENS = {"mean", "sd", "var", "median", "min", "max", "sum"}
_CATEGORICAL_TOKENS = {"n", "N", "p"}
_PERCENTILE = re.compile(r"^p(\d{1,2}|100)$")
_TOKEN = re.compile(r"\{(\w+)\}")
DF_STATS_COLUMNS = ["by", "variable_level", "stat_name", "stat"]

_TOKEN_LABELS = {
    "n": "n",
    "N": "N",
    "p": "%",
    "mean": "Mean",
    "sd": "SD",
    "var": "Variance",
    "median": "Median",
    "min": "Min",
    "max": "Max",
    "sum": "Sum",
    "N_obs": "No. obs.",
    "N_miss": "N Missing",
    "N_nonmiss": "N Non-missing",
    "p_miss": "% Missing",
    "p_nonmiss": "% Non-missing",
}


def infer_summary_type(values: pd.Series) -> str:
    """Classify a column as continuous, categorical or dichotomous.

    Args:
        values: Column to classify

    Returns:
        "dichotomous" for booleans, 0/1 numbers and yes/no strings;
        "categorical" for other non-numeric columns and numeric columns
        with fewer unique values than the configured threshold;
        "continuous" otherwise

    """
    non_missing = values.dropna()
    if is_bool_dtype(values):
        return "dichotomous"
    if is_numeric_dtype(values):
        unique = set(non_missing.unique())
        if unique and unique <= {0, 1}:
            return "dichotomous"
        if non_missing.nunique() < config.categorical_threshold:
            return "categorical"
        return "continuous"
    lowered = {str(v).lower() for v in non_missing.unique()}
    if lowered and lowered <= {"yes", "no"}:
        return "dichotomous"
    if lowered and all(isinstance(v, (bool, np.bool_)) for v in non_missing.unique()):
        return "dichotomous"
    return "categorical"


def guess_digits(values: pd.Series) -> int:
    """Guess decimal places for continuous statistics from the data spread.

    The spread is the distance between the 5th and 95th percentiles:
    < 0.15 -> 4, < 1 -> 3, < 10 -> 2, < 20 -> 1, otherwise 0.
    """
    x = values.dropna().astype(float).to_numpy()
    if len(x) == 0:
        return 0
    spread = float(np.quantile(x, 0.95) - np.quantile(x, 0.05))
    if spread < 0.15:
        return 4
    if spread < 1:
        return 3
    if spread < 10:
        return 2
    if spread < 20:
        return 1
    return 0


def _validate_pattern(variable: str, pattern: str, summary_type: str) -> list[str]:
    allowed = _COUNT_TOKENS | _MISSING_PCT_TOKENS
    allowed |= _CONTINUOUS_TOKENS if summary_type == "continuous" else _CATEGORICAL_TOKENS
    tokens = _TOKEN.findall(pattern)
    unknown = [
        t
        for t in tokens
        if t not in allowed and not (summary_type == "continuous" and _PERCENTILE.match(t))
    ]
    if unknown:
        logger.error(f"Unknown statistics {unknown} for variable '{variable}'.")
        raise StylingError(
            f"Statistic pattern '{pattern}' for {summary_type} variable '{variable}' "
            f"uses unknown statistics {unknown}."
        )
    return tokens


def stat_label(pattern: str) -> str:
    """Describe a statistic pattern for the footnote, e.g. "Median (IQR)"."""
    text = pattern.replace("{p25}, {p75}", "IQR").replace("{p}%", "{p}")

    def _label(match: re.Match[str]) -> str:
        token = match.group(1)
        if _PERCENTILE.match(token):
            return f"Q{token[1:]}" if token in ("p25", "p75") else f"P{token[1:]}"
        return _TOKEN_LABELS.get(token, token)

    return _TOKEN.sub(_label, text)


def _fill(pattern: str, values: dict[str, Any], fmt: Callable[[str, Any], str | None]) -> str:
    return _TOKEN.sub(lambda m: fmt(m.group(1), values.get(m.group(1))) or "NA", pattern)


def _stat_records(by_level: Any, var_level: Any, values: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {"by": by_level, "variable_level": var_level, "stat_name": k, "stat": v}
        for k, v in values.items()
    ]


def _missing_stats(values: pd.Series) -> dict[str, Any]:
    n_obs = len(values)
    n_miss = int(values.isna().sum())
    return {
        "N_obs": n_obs,
        "N_miss": n_miss,
        "N_nonmiss": n_obs - n_miss,
        "p_miss": n_miss / n_obs if n_obs else np.nan,
        "p_nonmiss": (n_obs - n_miss) / n_obs if n_obs else np.nan,
    }


def _continuous_stats(values: pd.Series, tokens: list[str]) -> dict[str, Any]:
    stats = _missing_stats(values)
    x = values.dropna().astype(float).to_numpy()
    empty = len(x) == 0
    stats.update(
        mean=np.nan if empty else float(x.mean()),
        sd=float(x.std(ddof=1)) if len(x) > 1 else np.nan,
        var=float(x.var(ddof=1)) if len(x) > 1 else np.nan,
        median=np.nan if empty else float(np.median(x)),
        min=np.nan if empty else float(x.min()),
        max=np.nan if empty else float(x.max()),
        sum=np.nan if empty else float(x.sum()),
    )
    for token in tokens:
        if _PERCENTILE.match(token):
            q = int(token[1:]) / 100
            stats[token] = (
                np.nan if empty else float(np.quantile(x, q, method="averaged_inverted_cdf"))
            )
    return stats


def _format_stat(digits: int) -> Callable[[str, Any], str | None]:
    def _fmt(token: str, value: Any) -> str | None:
        if is_missing(value):
            return None
        if token in _COUNT_TOKENS or token in ("n", "N"):
            return style_number(value)
        if token in _MISSING_PCT_TOKENS or token == "p":
            return style_percent(value)
        return style_number(value, digits=digits)

    return _fmt


def _is_yes_no(values: pd.Series) -> bool:
    if is_bool_dtype(values) or is_numeric_dtype(values):
        return False
    lowered = {str(v).lower() for v in values.dropna().unique()}
    return bool(lowered) and lowered <= {"yes", "no"}


def _level_key(values: pd.Series, yes_no: bool) -> pd.Series:
    """Values compared against the reported levels; yes/no strings ignore case."""
    if yes_no:
        return values.map(lambda v: str(v).lower(), na_action="ignore")
    return values


def _dichotomous_value(values: pd.Series) -> Any:
    """Level reported on the single row of a dichotomous variable."""
    if _is_yes_no(values):
        return "yes"
    non_missing = values.dropna()
    unique = list(non_missing.unique())
    if is_bool_dtype(values) or any(isinstance(v, (bool, np.bool_)) for v in unique):
        return True
    if is_numeric_dtype(values) and set(unique) <= {0, 1}:
        return 1
    if not unique:
        return True
    return sorted(unique, key=str)[-1]


def _levels(values: pd.Series, sort: str) -> list[Any]:
    if isinstance(values.dtype, pd.CategoricalDtype):
        levels = list(values.cat.categories)
    else:
        levels = sorted(values.dropna().unique(), key=lambda v: (str(type(v)), v))
    if sort == "frequency":
        counts = values.value_counts(dropna=True)
        levels = sorted(levels, key=lambda lvl: -int(counts.get(lvl, 0)))
    return levels


def _check_option(value: Any, options: tuple[str, ...], arg: str) -> Any:
    if value not in options:
        logger.error(f"Invalid `{arg}=` value: {value!r}")
        raise StylingError(f"`{arg}=` must be one of {list(options)}, got {value!r}.")
    return value


def tbl_summary(
    data: pd.DataFrame,
    by: str | None = None,
    label: Any = None,
    statistic: Any = None,
    digits: Any = None,
    type: Any = None,
    include: Any = None,
    missing: str | None = None,
    missing_text: str | None = None,
    percent: str | None = None,
    sort: Any = None,
) -> TblSummary:
    """Build a table of descriptive statistics.

    Args:
        data: Input data, one row per observation
        by: Column splitting the statistics into one column per level
        label: Mapping of variable (or selector) to display label
        statistic: Pattern or mapping of variable (or selector) to pattern
        digits: Decimal places for continuous statistics; int or mapping
        type: Mapping of variable (or selector) to summary type override
        include: Variables to summarise (default: every column except ``by``)
        missing: "ifany", "always" or "no"
        missing_text: Label of the missing-count row
        percent: Percent denominator, "column", "row" or "cell"
        sort: "alphanumeric" or "frequency", or a mapping per variable

    Returns:
        Summary table

    Raises:
        TypeError: If data is not a DataFrame
        StylingError: If a column or argument value is invalid

    Examples:
        >>> tbl = tbl_summary(trial, by="trt", include=["age", "grade"])
        >>> tbl = tbl_summary(
        ...     trial, statistic={all_continuous(): "{mean} ({sd})"}, digits={"age": 1}
        ... )

    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError("`data=` must be a pandas DataFrame.")
    if by is not None and by not in data.columns:
        logger.error(f"`by` column '{by}' not found in data.")
        raise StylingError(f"Error in `by=` argument: column '{by}' not found in data.")

    if missing is None:
        missing = get_theme_element("tbl_summary.missing", config.missing)
    missing = _check_option(missing, MISSING_OPTIONS, "missing")
    if missing_text is None:
        missing_text = get_theme_element("tbl_summary.missing_text", config.missing_text)
    percent = _check_option(percent or config.percent, PERCENT_OPTIONS, "percent")

    candidates = [c for c in data.columns if c != by]
    inferred = {c: infer_summary_type(data[c]) for c in candidates}
    var_types = {**inferred, **resolve_mapping(type, candidates, inferred, arg_name="type")}
    invalid = {v: t for v, t in var_types.items() if t not in SUMMARY_TYPES}
    if invalid:
        raise StylingError(f"`type=` values must be one of {list(SUMMARY_TYPES)}, got {invalid}.")

    variables = resolve_columns(
        everything() if include is None else include, candidates, var_types, arg_name="include"
    )
    var_types = {v: var_types[v] for v in variables}

    labels = {v: v for v in variables}
    labels.update(resolve_mapping(label, variables, var_types, arg_name="label"))

    default_statistic = {
        "continuous": config.statistic_continuous,
        "categorical": config.statistic_categorical,
        "dichotomous": config.statistic_categorical,
    }
    default_statistic.update(get_theme_element("tbl_summary.statistic", None) or {})
    statistics = {v: default_statistic[var_types[v]] for v in variables}
    statistics.update(resolve_mapping(statistic, variables, var_types, arg_name="statistic"))

    digit_map = {v: guess_digits(data[v]) for v in variables if var_types[v] == "continuous"}
    digit_map.update(resolve_mapping(digits, variables, var_types, arg_name="digits"))

    sort_map = {v: "alphanumeric" for v in variables}
    sort_map.update(resolve_mapping(sort, variables, var_types, arg_name="sort"))
    bad_sort = {v: s for v, s in sort_map.items() if s not in SORT_OPTIONS}
    if bad_sort:
        raise StylingError(f"`sort=` values must be one of {list(SORT_OPTIONS)}, got {bad_sort}.")

    if by is not None:
        n_dropped = int(data[by].isna().sum())
        if n_dropped:
            logger.info(f"{n_dropped} observations missing '{by}' have been removed.")
        analysis = data.loc[data[by].notna()]
        by_levels = _levels(analysis[by], "alphanumeric")
        strata = [
            (f"stat_{i}", level, analysis.loc[analysis[by] == level])
            for i, level in enumerate(by_levels, start=1)
        ]
    else:
        analysis = data
        strata = [("stat_0", None, data)]
    stat_columns = [column for column, _, _ in strata]

    rows: list[dict[str, Any]] = []
    meta: list[dict[str, Any]] = []
    for variable in variables:
        summary_type = var_types[variable]
        pattern = statistics[variable]
        tokens = _validate_pattern(variable, pattern, summary_type)
        base = {"variable": variable, "var_type": summary_type, "var_label": labels[variable]}
        df_stats: list[dict[str, Any]] = []

        if summary_type == "continuous":
            fmt = _format_stat(int(digit_map.get(variable, 0)))
            row = {**base, "row_type": "label", "label": labels[variable]}
            for column, level, subset in strata:
                values = _continuous_stats(subset[variable], tokens)
                row[column] = _fill(pattern, values, fmt)
                df_stats.extend(_stat_records(level, None, values))
            rows.append(row)
        else:
            fmt = _format_stat(0)
            if summary_type == "dichotomous":
                levels = [_dichotomous_value(analysis[variable])]
            else:
                levels = _levels(analysis[variable], sort_map[variable])
                rows.append({**base, "row_type": "label", "label": labels[variable]})
            yes_no = summary_type == "dichotomous" and _is_yes_no(analysis[variable])
            level_totals = _level_key(analysis[variable], yes_no).value_counts(dropna=True)
            cell_total = int(analysis[variable].notna().sum())
            for var_level in levels:
                if summary_type == "dichotomous":
                    row = {**base, "row_type": "label", "label": labels[variable]}
                else:
                    row = {**base, "row_type": "level", "label": str(var_level)}
                for column, level, subset in strata:
                    values = _missing_stats(subset[variable])
                    n = int((_level_key(subset[variable], yes_no) == var_level).sum())
                    if percent == "column":
                        denominator = values["N_nonmiss"]
                    elif percent == "row":
                        denominator = int(level_totals.get(var_level, 0))
                    else:
                        denominator = cell_total
                    values.update(n=n, N=denominator, p=n / denominator if denominator else np.nan)
                    row[column] = _fill(pattern, values, fmt)
                    df_stats.extend(_stat_records(level, var_level, values))
                rows.append(row)

        n_miss = int(analysis[variable].isna().sum())
        if missing == "always" or (missing == "ifany" and n_miss > 0):
            row = {**base, "row_type": "missing", "label": missing_text}
            for column, _, subset in strata:
                row[column] = style_number(int(subset[variable].isna().sum()))
            rows.append(row)

        meta.append(
            {
                "variable": variable,
                "summary_type": summary_type,
                "var_label": labels[variable],
                "stat_display": pattern,
                "stat_label": stat_label(pattern),
                "df_stats": pd.DataFrame(df_stats, columns=DF_STATS_COLUMNS),
            }
        )

    body_columns = ["variable", "var_type", "var_label", "row_type", "label", *stat_columns]
    table_body = pd.DataFrame(rows, columns=body_columns)
    table_body[stat_columns] = table_body[stat_columns].astype(object)
    meta_data = pd.DataFrame(
        meta,
        columns=["variable", "summary_type", "var_label", "stat_display", "stat_label", "df_stats"],
    )

    x = TblSummary(
        table_body,
        inputs={
            "data": data,
            "by": by,
            "variables": variables,
            "var_types": var_types,
            "label": labels,
            "statistic": statistics,
            "digits": digit_map,
            "missing": missing,
            "missing_text": missing_text,
            "percent": percent,
            "sort": sort_map,
        },
        meta_data=meta_data,
        by=by,
        N=len(analysis),
    )

    header = x.table_styling.header
    n_total = len(analysis)
    for column, level, subset in strata:
        idx = header.index[header["column"] == column]
        header.loc[idx, "modify_stat_N"] = n_total
        header.loc[idx, "modify_stat_n"] = len(subset) if level is not None else n_total
        header.loc[idx, "modify_stat_level"] = str(level) if level is not None else "Overall"
        header.loc[idx, "modify_stat_p"] = len(subset) / n_total if n_total else np.nan

    labels_header = config.summary_headers
    x = modify_table_styling(x, columns=["label", *stat_columns], hide=False)
    x = modify_header(
        x,
        {
            "label": labels_header["label"],
            **{
                c: labels_header["overall"] if c == "stat_0" else labels_header["by_level"]
                for c in stat_columns
            },
        },
    )
    footnote = "; ".join(dict.fromkeys(meta_data["stat_label"]))
    if footnote:
        x = modify_table_styling(x, columns=stat_columns, footnote=footnote)
    x = modify_table_styling(
        x, columns="label", rows="row_type != 'label'", text_format="indent"
    )

    x.call_list = {}
    x.record_call(
        "tbl_summary",
        by=by,
        label=label,
        statistic=statistic,
        digits=digits,
        type=type,
        include=include,
        missing=missing,
        missing_text=missing_text,
        percent=percent,
        sort=sort,
    )
    logger.debug(f"tbl_summary built with {len(variables)} variables and {len(table_body)} rows")
    return x

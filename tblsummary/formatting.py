"""Scalar formatting functions used as column formatters.

Every function accepts a single value and returns the display string, or
None when the value is missing. They are the formatters recorded by
``modify_fmt_fun`` and applied at render time.
"""

from __future__ import annotations

import math
from typing import Any

import pandas as pd

from tblsummary.config import config

__all__ = [
    "is_missing",
    "round2",
    "style_number",
    "style_percent",
    "style_pvalue",
    "style_ratio",
    "style_sigfig",
]

# Guards against representation error, e.g. 2.675 stored as 2.67499999...
_ROUNDING_EPS = 1.4901161193847656e-08


def is_missing(x: Any) -> bool:
    """Return True for None, NaN, NA and NaT scalars."""
    if x is None:
        return True
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def round2(x: float, digits: int = 0) -> float:
    """Round half away from zero.

    Python's built-in ``round`` uses banker's rounding, which turns 0.125
    into 0.12; published tables expect 0.13.

    Args:
        x: Value to round
        digits: Number of decimal places

    Returns:
        Rounded value

    """
    scale = 10.0**digits
    return math.copysign(math.floor(abs(x) * scale + 0.5 + _ROUNDING_EPS), x) / scale


def style_number(
    x: Any,
    digits: int = 0,
    big_mark: str | None = None,
    decimal_mark: str | None = None,
    scale: float = 1,
) -> str | None:
    """Format a number with a fixed number of decimal places.

    Args:
        x: Value to format
        digits: Decimal places
        big_mark: Thousands separator (default from config)
        decimal_mark: Decimal separator (default from config)
        scale: Multiplier applied before rounding

    Returns:
        Formatted string, or None if x is missing

    """
    if is_missing(x):
        return None
    if big_mark is None:
        big_mark = config.big_mark
    if decimal_mark is None:
        decimal_mark = config.decimal_mark

    value = round2(float(x) * scale, digits)
    if value == 0:
        value = 0.0  # no "-0.0"
    text = f"{value:,.{digits}f}"
    return text.replace(",", "\0").replace(".", decimal_mark).replace("\0", big_mark)


def style_sigfig(x: Any, digits: int | None = None, **kwargs: Any) -> str | None:
    """Format a number to a fixed count of significant figures.

    Values that round below 1 keep ``digits`` decimals. Larger values keep
    the fewest decimals needed for ``digits`` significant figures, so with
    the default two figures 0.123 -> "0.12", 1.234 -> "1.2", 12.34 -> "12".

    Args:
        x: Value to format
        digits: Significant figures (default from config)
        **kwargs: Passed to style_number (big_mark, decimal_mark)

    Returns:
        Formatted string, or None if x is missing

    """
    if digits is None:
        digits = config.estimate_sigfigs
    if is_missing(x):
        return None
    value = abs(float(x))
    if round2(value, digits) < 1:
        return style_number(x, digits=digits, **kwargs)

    decimals = 0
    for i in range(1, digits):
        if round2(value, digits - i) < 10**i:
            decimals = digits - i
            break
    return style_number(x, digits=decimals, **kwargs)


def style_ratio(x: Any, digits: int | None = None, **kwargs: Any) -> str | None:
    """Format a ratio (odds ratio, hazard ratio) around 1.

    Ratios below 1 get ``digits`` significant figures and ratios above 1 get
    one more, so 0.85 and 1.15 show the same precision.
    """
    if digits is None:
        digits = config.estimate_sigfigs
    if is_missing(x):
        return None
    if round2(abs(float(x)), digits) < 1:
        return style_sigfig(x, digits=digits, **kwargs)
    return style_sigfig(x, digits=digits + 1, **kwargs)


def style_pvalue(
    x: Any,
    digits: int | None = None,
    prepend_p: bool = False,
    **kwargs: Any,
) -> str | None:
    """Format a p-value.

    Large p-values are rounded more aggressively than small ones; values
    beyond the precision are shown as bounds (">0.9", "<0.001").

    Args:
        x: P-value in [0, 1]
        digits: 1, 2 or 3 significant digits for large p-values
            (default from config)
        prepend_p: Prefix the result with "p=" (or "p" before a bound)
        **kwargs: Passed to style_number (big_mark, decimal_mark)

    Returns:
        Formatted string, or None if x is missing or outside [0, 1]

    Raises:
        ValueError: If digits is not 1, 2 or 3

    Examples:
        >>> style_pvalue(0.25)
        '0.3'
        >>> style_pvalue(0.0412)
        '0.041'
        >>> style_pvalue(0.0001, prepend_p=True)
        'p<0.001'

    """
    if digits is None:
        digits = config.pvalue_digits
    if digits not in (1, 2, 3):
        raise ValueError(f"`digits` must be 1, 2 or 3, got {digits}")
    if is_missing(x):
        return None

    p = float(x)
    if p > 1 + 1e-15 or p < -1e-15:
        return None

    if digits == 1:
        if p > 0.9:
            text = ">" + str(style_number(0.9, digits=1, **kwargs))
        elif round2(p, 1) >= 0.2:
            text = str(style_number(p, digits=1, **kwargs))
        elif round2(p, 2) >= 0.1:
            text = str(style_number(p, digits=2, **kwargs))
        elif p >= 0.001:
            text = str(style_number(p, digits=3, **kwargs))
        else:
            text = "<" + str(style_number(0.001, digits=3, **kwargs))
    elif digits == 2:
        if p > 0.99:
            text = ">" + str(style_number(0.99, digits=2, **kwargs))
        elif round2(p, 2) >= 0.1:
            text = str(style_number(p, digits=2, **kwargs))
        elif p >= 0.001:
            text = str(style_number(p, digits=3, **kwargs))
        else:
            text = "<" + str(style_number(0.001, digits=3, **kwargs))
    else:
        if p > 0.999:
            text = ">" + str(style_number(0.999, digits=3, **kwargs))
        elif round2(p, 3) >= 0.1:
            text = str(style_number(p, digits=3, **kwargs))
        elif p >= 0.0001:
            text = str(style_number(p, digits=4, **kwargs))
        else:
            text = "<" + str(style_number(0.0001, digits=4, **kwargs))

    if prepend_p:
        return f"p{text}" if text[0] in "<>" else f"p={text}"
    return text


def style_percent(
    x: Any,
    digits: int | None = None,
    symbol: bool = False,
    **kwargs: Any,
) -> str | None:
    """Format a proportion as a percentage.

    Percentages of 10 or more get ``digits`` decimals, smaller ones get one
    more, and positive values too small to show become a bound ("<0.1").

    Args:
        x: Proportion in [0, 1]
        digits: Decimal places (default from config)
        symbol: Append a percent sign
        **kwargs: Passed to style_number (big_mark, decimal_mark)

    Returns:
        Formatted string, or None if x is missing or negative

    """
    if digits is None:
        digits = config.percent_digits
    if is_missing(x):
        return None

    pct = float(x) * 100
    smallest = 10.0 ** (-(digits + 1))
    if pct >= 10:
        text = style_number(pct, digits=digits, **kwargs)
    elif pct >= smallest:
        text = style_number(pct, digits=digits + 1, **kwargs)
    elif pct > 0:
        text = "<" + str(style_number(smallest, digits=digits + 1, **kwargs))
    elif pct == 0:
        text = "0"
    else:
        return None

    return f"{text}%" if symbol else text

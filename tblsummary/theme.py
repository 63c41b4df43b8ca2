"""Package-wide themes.

A theme is a mapping of named elements that override the defaults from
config.yaml for every table built afterwards, e.g. a journal style that
always prints p-values with two digits.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from tblsummary.errors import ThemeError

logger = logging.getLogger(__name__)

__all__ = [
    "THEME_ELEMENTS",
    "ThemeError",
    "get_theme_element",
    "reset_theme",
    "set_theme",
]

THEME_ELEMENTS: dict[str, str] = {
    "pkgwide.quiet": "Suppress informational messages",
    "pkgwide.pvalue_fun": "Default p-value formatter",
    "pkgwide.pre_conversion": "Function applied to every table before rendering",
    "as_grid.addl_calls": "Mapping of grid call name to GridCalls inserted after it",
    "tbl_summary.statistic": "Default statistic patterns keyed by summary type",
    "tbl_summary.missing": "Default missing-row behaviour",
    "tbl_summary.missing_text": "Default missing-row label",
    "tbl_regression.estimate_fun": "Default regression estimate formatter",
    "add_p.test": "Default tests keyed by summary type",
}

_active_theme: dict[str, Any] = {}


def set_theme(theme: Mapping[str, Any]) -> None:
    """Activate a theme, replacing any previously set theme.

    Args:
        theme: Mapping of theme element name to value

    Raises:
        ThemeError: If an element name is not a known theme element

    """
    unknown = sorted(set(theme) - set(THEME_ELEMENTS))
    if unknown:
        logger.error(f"Unknown theme elements: {unknown}")
        raise ThemeError(
            f"Theme elements {unknown} are not recognized. "
            f"Select from {sorted(THEME_ELEMENTS)}."
        )
    _active_theme.clear()
    _active_theme.update(theme)
    logger.debug(f"Theme set with elements: {sorted(theme)}")


def reset_theme() -> None:
    """Clear the active theme."""
    _active_theme.clear()


def get_theme_element(name: str, default: Any = None) -> Any:
    """Return the value of a theme element, or ``default`` when unset."""
    if name not in THEME_ELEMENTS:
        raise ThemeError(f"'{name}' is not a theme element.")
    return _active_theme.get(name, default)

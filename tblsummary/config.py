"""Package configuration loader.

Loads and provides access to centralized table parameters from config.yaml.
Every default used by the table builders, tests and renderers lives there.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import yaml

__all__ = ["TableConfig", "config"]


class TableConfig:
    """Table configuration singleton."""

    _instance: TableConfig | None = None
    _config: dict[str, Any] | None = None

    def __new__(cls) -> TableConfig:
        """Singleton pattern to ensure config is loaded once."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Load configuration from YAML file."""
        if self._config is None:
            config_path = Path(__file__).parent / "config.yaml"
            with open(config_path, encoding="utf-8") as f:
                self._config = yaml.safe_load(f)

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get configuration value by nested keys.

        Args:
            *keys: Nested keys to traverse (e.g., "statistical", "alpha")
            default: Default value if key path not found

        Returns:
            Configuration value or default

        Examples:
            >>> config = TableConfig()
            >>> config.get("statistical", "alpha")
            0.05
            >>> config.get("summary", "statistic", "categorical")
            '{n} ({p}%)'

        """
        value = self._config
        for key in keys:
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    @property
    def alpha(self) -> float:
        """Statistical significance threshold."""
        return cast(float, self.get("statistical", "alpha", default=0.05))

    @property
    def conf_level(self) -> float:
        """Default confidence level for regression intervals."""
        return cast(float, self.get("statistical", "conf_level", default=0.95))

    @property
    def categorical_threshold(self) -> int:
        """Numeric variables with fewer unique values are summarized as categorical."""
        return cast(int, self.get("statistical", "categorical_threshold", default=10))

    @property
    def fisher_min_expected(self) -> float:
        """Minimum expected cell count below which Fisher's test is assigned."""
        return cast(float, self.get("statistical", "fisher", "min_expected", default=5))

    @property
    def fisher_n_resamples(self) -> int:
        """Number of permutations for Fisher's test on tables larger than 2x2."""
        return cast(int, self.get("statistical", "fisher", "n_resamples", default=9999))

    @property
    def fisher_random_state(self) -> int:
        """Random state for Fisher permutation resampling."""
        return cast(int, self.get("statistical", "fisher", "random_state", default=42))

    @property
    def pvalue_digits(self) -> int:
        """Significant digits for large p-values."""
        return cast(int, self.get("formatting", "pvalue_digits", default=1))

    @property
    def estimate_sigfigs(self) -> int:
        """Significant figures for regression estimates."""
        return cast(int, self.get("formatting", "estimate_sigfigs", default=2))

    @property
    def percent_digits(self) -> int:
        """Decimal places for percentages."""
        return cast(int, self.get("formatting", "percent_digits", default=0))

    @property
    def big_mark(self) -> str:
        """Thousands separator."""
        return cast(str, self.get("formatting", "big_mark", default=","))

    @property
    def decimal_mark(self) -> str:
        """Decimal separator."""
        return cast(str, self.get("formatting", "decimal_mark", default="."))

    @property
    def reference_symbol(self) -> str:
        """Symbol shown in place of estimates on reference rows."""
        return cast(str, self.get("formatting", "reference_symbol", default="—"))

    @property
    def missing(self) -> str:
        """Default missing-row behaviour ("ifany", "always", "no")."""
        return cast(str, self.get("summary", "missing", default="ifany"))

    @property
    def missing_text(self) -> str:
        """Label of the missing-value row."""
        return cast(str, self.get("summary", "missing_text", default="Unknown"))

    @property
    def percent(self) -> str:
        """Default percent denominator ("column", "row", "cell")."""
        return cast(str, self.get("summary", "percent", default="column"))

    @property
    def statistic_continuous(self) -> str:
        """Default statistic pattern for continuous variables."""
        return cast(
            str,
            self.get("summary", "statistic", "continuous", default="{median} ({p25}, {p75})"),
        )

    @property
    def statistic_categorical(self) -> str:
        """Default statistic pattern for categorical and dichotomous variables."""
        return cast(str, self.get("summary", "statistic", "categorical", default="{n} ({p}%)"))

    @property
    def summary_headers(self) -> dict[str, str]:
        """Default header labels for summary tables."""
        return cast(
            dict[str, str],
            self.get(
                "summary",
                "header",
                default={
                    "label": "**Characteristic**",
                    "overall": "**Overall**, N = {N}",
                    "by_level": "**{level}**, N = {n}",
                },
            ),
        )

    @property
    def regression_headers(self) -> dict[str, str]:
        """Default header labels for regression tables."""
        return cast(
            dict[str, str],
            self.get(
                "regression",
                "header",
                default={
                    "label": "**Characteristic**",
                    "ci": "**{conf_pct}% CI**",
                    "p_value": "**p-value**",
                },
            ),
        )

    @property
    def indent_px(self) -> int:
        """Left padding for indented rows."""
        return cast(int, self.get("rendering", "indent_px", default=10))

    @property
    def indent2_px(self) -> int:
        """Left padding for double-indented rows."""
        return cast(int, self.get("rendering", "indent2_px", default=20))

    @property
    def horizontal_line_color(self) -> str:
        """Colour of the horizontal rule drawn above selected rows."""
        return cast(str, self.get("rendering", "horizontal_line_color", default="#D3D3D3"))

    @property
    def horizontal_line_weight_px(self) -> int:
        """Weight of the horizontal rule drawn above selected rows."""
        return cast(int, self.get("rendering", "horizontal_line_weight_px", default=2))

    @property
    def quiet(self) -> bool:
        """Suppress informational messages package-wide."""
        return cast(bool, self.get("package", "quiet", default=False))


# Global singleton instance
config = TableConfig()

# Convenient module-level constants
ALPHA = config.alpha
CONF_LEVEL = config.conf_level
REFERENCE_SYMBOL = config.reference_symbol

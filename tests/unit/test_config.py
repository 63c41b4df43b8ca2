"""Unit tests for the configuration loader."""

from tblsummary.config import ALPHA, CONF_LEVEL, REFERENCE_SYMBOL, TableConfig, config


def test_singleton():
    """Test every instantiation returns the same object."""
    assert TableConfig() is config
    assert TableConfig() is TableConfig()


def test_nested_get():
    """Test nested keys and defaults."""
    assert config.get("statistical", "alpha") == 0.05
    assert config.get("summary", "statistic", "categorical") == "{n} ({p}%)"
    assert config.get("statistical", "nonexistent", default="x") == "x"
    assert config.get("statistical", "alpha", "deeper", default=1) == 1


def test_properties():
    """Test property values match the YAML file."""
    assert config.alpha == 0.05
    assert config.conf_level == 0.95
    assert config.categorical_threshold == 10
    assert config.reference_symbol == "—"
    assert config.missing == "ifany"
    assert config.missing_text == "Unknown"
    assert config.statistic_continuous == "{median} ({p25}, {p75})"
    assert config.summary_headers["overall"] == "**Overall**, N = {N}"
    assert config.regression_headers["ci"] == "**{conf_pct}% CI**"
    assert config.indent_px == 10
    assert config.indent2_px == 20
    assert config.quiet is False


def test_module_constants():
    """Test the convenience constants mirror the config."""
    assert ALPHA == config.alpha
    assert CONF_LEVEL == config.conf_level
    assert REFERENCE_SYMBOL == config.reference_symbol

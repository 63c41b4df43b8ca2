"""Unit tests for scalar formatters."""

import numpy as np
import pytest

from tblsummary.config import config
from tblsummary.formatting import (
    is_missing,
    round2,
    style_number,
    style_percent,
    style_pvalue,
    style_ratio,
    style_sigfig,
)


def test_is_missing():
    """Test None, NaN and NA are missing; strings and numbers are not."""
    assert is_missing(None)
    assert is_missing(np.nan)
    assert not is_missing("NA")
    assert not is_missing(0)
    assert not is_missing([1, 2])


def test_round2_half_away_from_zero():
    """Test halves round away from zero, unlike built-in round."""
    assert round2(0.125, 2) == pytest.approx(0.13)
    assert round2(2.5) == 3.0
    assert round2(-2.5) == -3.0
    assert round2(2.675, 2) == pytest.approx(2.68)


class TestStyleNumber:
    """Tests for style_number."""

    def test_big_mark(self):
        """Test thousands separator and decimals."""
        assert style_number(1234.567, digits=1) == "1,234.6"

    def test_custom_marks(self):
        """Test alternative decimal and thousands marks."""
        assert style_number(1234.5, digits=1, big_mark=" ", decimal_mark=",") == "1 234,5"

    def test_scale(self):
        """Test scale is applied before rounding."""
        assert style_number(0.256, digits=1, scale=100) == "25.6"

    def test_missing(self):
        """Test missing values return None."""
        assert style_number(None) is None
        assert style_number(np.nan) is None

    def test_no_negative_zero(self):
        """Test values rounding to zero drop the sign."""
        assert style_number(-0.001, digits=1) == "0.0"


def test_style_sigfig():
    """Test two significant figures across magnitudes."""
    assert style_sigfig(0.123) == "0.12"
    assert style_sigfig(1.234) == "1.2"
    assert style_sigfig(12.34) == "12"
    assert style_sigfig(None) is None


def test_style_ratio():
    """Test ratios above 1 get one more significant figure."""
    assert style_ratio(0.85) == "0.85"
    assert style_ratio(1.15) == "1.15"
    assert style_ratio(np.nan) is None


def test_estimate_sigfigs_from_config(monkeypatch):
    """Test the configured significant figures are the default."""
    monkeypatch.setitem(config._config["formatting"], "estimate_sigfigs", 3)
    assert style_sigfig(1.2345) == "1.23"
    assert style_sigfig(1.2345, digits=2) == "1.2"
    assert style_ratio(1.2346) == "1.235"


class TestStylePvalue:
    """Tests for style_pvalue."""

    def test_default_digits(self):
        """Test rounding bands with one significant digit."""
        assert style_pvalue(0.25) == "0.3"
        assert style_pvalue(0.12) == "0.12"
        assert style_pvalue(0.0412) == "0.041"
        assert style_pvalue(0.95) == ">0.9"
        assert style_pvalue(0.0001) == "<0.001"

    def test_prepend_p(self):
        """Test the "p=" prefix and bound prefix."""
        assert style_pvalue(0.0001, prepend_p=True) == "p<0.001"
        assert style_pvalue(0.25, prepend_p=True) == "p=0.3"

    def test_three_digits(self):
        """Test three significant digits."""
        assert style_pvalue(0.12345, digits=3) == "0.123"
        assert style_pvalue(0.00005, digits=3) == "<0.0001"

    def test_out_of_range(self):
        """Test values outside [0, 1] return None."""
        assert style_pvalue(1.5) is None
        assert style_pvalue(-0.1) is None

    def test_invalid_digits(self):
        """Test unsupported digits raise ValueError."""
        with pytest.raises(ValueError, match="digits"):
            style_pvalue(0.5, digits=4)


def test_style_percent():
    """Test percentages below 10 get an extra decimal."""
    assert style_percent(0.456) == "46"
    assert style_percent(0.05) == "5.0"
    assert style_percent(0.0001) == "<0.1"
    assert style_percent(0) == "0"
    assert style_percent(0.456, symbol=True) == "46%"
    assert style_percent(-0.1) is None

"""Exception types raised by table construction and modification."""

from __future__ import annotations

__all__ = [
    "CombineTermsError",
    "StatTestError",
    "StylingError",
    "ThemeError",
]


class StylingError(ValueError):
    """Raised when a table or styling argument is invalid."""

    pass


class ThemeError(ValueError):
    """Raised when a theme names an unknown element."""

    pass


class StatTestError(ValueError):
    """Raised when a hypothesis test cannot be resolved or applied."""

    pass


class CombineTermsError(RuntimeError):
    """Raised when a full and reduced model cannot be compared."""

    pass

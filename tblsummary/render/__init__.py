"""Renderers: great_tables grid, DataFrame, markdown and LaTeX."""

from tblsummary.render.frame import as_dataframe, as_latex, as_markdown
from tblsummary.render.grid import GridCall, as_grid

__all__ = [
    "GridCall",
    "as_dataframe",
    "as_grid",
    "as_latex",
    "as_markdown",
]

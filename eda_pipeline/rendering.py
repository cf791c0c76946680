"""Rendering collaborator: a Table plus a display spec in, an artifact on disk out.

Both entry points return None. Theme settings travel with each call
(``ChartSpec.theme`` is applied through ``matplotlib.rc_context``) and figures
are built on the object-oriented API, so rendering never changes global
matplotlib or pandas state.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import matplotlib
import numpy as np
import pandas as pd
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from .errors import ConfigurationError
from .table import NUMERIC_TYPES, TEMPORAL_TYPES, Table

logger = logging.getLogger(__name__)

CHART_KINDS = ("bar", "line", "scatter")
MISSING_LABEL = "(missing)"

_COMPARISONS: Dict[str, Callable[[Any, Any], Any]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class ChartSpec:
    x: str
    y: str
    kind: str = "bar"
    title: Optional[str] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    color: Optional[str] = None
    theme: Mapping[str, Any] = field(default_factory=dict)
    figsize: Tuple[float, float] = (8.0, 4.5)
    dpi: int = 100


@dataclass(frozen=True)
class ColorRule:
    """Paint cells of ``column`` whose value satisfies ``op value``.

    ``op`` is a comparison (">", ">=", "<", "<=", "==", "!=") or "missing".
    """

    column: str
    op: str
    value: Any = None
    color: str = "#f4cccc"

    def mask(self, series: pd.Series) -> np.ndarray:
        if self.op == "missing":
            return series.isna().to_numpy(dtype=bool)
        if self.op not in _COMPARISONS:
            raise ConfigurationError(
                f"unknown color rule operator {self.op!r}", name=self.op
            )
        try:
            hits = _COMPARISONS[self.op](series, self.value)
        except TypeError as exc:
            raise ConfigurationError(
                f"cannot compare column {self.column!r} with {self.value!r}",
                name=self.column,
            ) from exc
        return pd.Series(hits).fillna(False).to_numpy(dtype=bool)


@dataclass(frozen=True)
class TableDisplay:
    columns: Optional[Sequence[str]] = None
    caption: Optional[str] = None
    color_rules: Sequence[ColorRule] = ()
    precision: int = 2
    na_rep: str = "NA"


def _labels(series: pd.Series) -> list:
    values = series.astype(object).where(series.notna(), None)
    return [MISSING_LABEL if v is None else str(v) for v in values]


def render_chart(table: Table, spec: ChartSpec, path: Union[str, Path]) -> None:
    """Draw ``spec.y`` against ``spec.x`` and save the image to ``path``."""
    table.require_columns([spec.x, spec.y], role="chart")
    if spec.kind not in CHART_KINDS:
        raise ConfigurationError(
            f"chart kind must be one of {CHART_KINDS}, got {spec.kind!r}", name=spec.kind
        )
    if table.semantic_type(spec.y) not in NUMERIC_TYPES:
        raise ConfigurationError(
            f"chart y column {spec.y!r} must be numeric", name=spec.y
        )

    frame = table.to_frame()
    y = frame[spec.y].to_numpy(dtype=float, na_value=np.nan)
    x_type = table.semantic_type(spec.x)
    style = {"color": spec.color} if spec.color else {}

    try:
        with matplotlib.rc_context(rc=dict(spec.theme)):
            fig = Figure(figsize=spec.figsize)
            FigureCanvasAgg(fig)
            ax = fig.add_subplot(1, 1, 1)
            if spec.kind == "bar" or x_type not in NUMERIC_TYPES | TEMPORAL_TYPES:
                positions = np.arange(len(frame))
                if spec.kind == "bar":
                    ax.bar(positions, y, **style)
                elif spec.kind == "line":
                    ax.plot(positions, y, marker="o", **style)
                else:
                    ax.scatter(positions, y, **style)
                ax.set_xticks(positions)
                ax.set_xticklabels(_labels(frame[spec.x]), rotation=45, ha="right")
            else:
                if x_type in NUMERIC_TYPES:
                    x = frame[spec.x].to_numpy(dtype=float, na_value=np.nan)
                else:
                    x = frame[spec.x].to_numpy()
                if spec.kind == "line":
                    ax.plot(x, y, marker="o", **style)
                else:
                    ax.scatter(x, y, **style)
            ax.set_xlabel(spec.xlabel or spec.x)
            ax.set_ylabel(spec.ylabel or spec.y)
            if spec.title:
                ax.set_title(spec.title)
            fig.tight_layout()
            fig.savefig(path, dpi=spec.dpi)
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"cannot render chart: {exc}", name=spec.y) from exc
    logger.debug("wrote %s chart of %s by %s to %s", spec.kind, spec.y, spec.x, path)


def render_table_html(
    table: Table, display: Optional[TableDisplay], path: Union[str, Path]
) -> None:
    """Write a styled HTML table (caption, column order, color rules) to ``path``."""
    display = display or TableDisplay()
    columns = list(display.columns) if display.columns else list(table.columns)
    table.require_columns(columns, role="table display")
    for rule in display.color_rules:
        if rule.column not in columns:
            raise ConfigurationError(
                f"color rule targets {rule.column!r}, which is not displayed",
                name=rule.column,
            )

    frame = table.to_frame()[columns]
    # evaluate rules up front so a bad rule fails here, not inside the styler
    painted = [(rule, rule.mask(frame[rule.column])) for rule in display.color_rules]

    styler = frame.style.format(precision=display.precision, na_rep=display.na_rep)
    if display.caption:
        styler = styler.set_caption(display.caption)
    for rule, hits in painted:
        css = f"background-color: {rule.color}"
        styler = styler.apply(
            lambda col, hits=hits, css=css: np.where(hits, css, ""),
            subset=[rule.column],
        )
    styler.hide(axis="index").to_html(buf=path)
    logger.debug("wrote %d x %d table to %s", len(frame), len(columns), path)


__all__ = [
    "CHART_KINDS",
    "ChartSpec",
    "ColorRule",
    "TableDisplay",
    "render_chart",
    "render_table_html",
]

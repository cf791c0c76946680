"""Raw text columns -> typed columns, with an explicit failure policy.

Numeric and boolean cells that do not parse become Missing and are counted.
Date and datetime cells that do not match the declared format abort with a
``ParseError`` naming the row, unless the caller opts into ``on_error="missing"``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .cleaning_utils import FALSE_TOKENS, TRUE_TOKENS, normalize_numeric_series
from .errors import ConfigurationError, ParseError
from .report import StageResult
from .table import SemanticType, Table, TEMPORAL_TYPES, resolve_type

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
ON_ERROR_CHOICES = ("raise", "missing")

INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1
# float64 holds every integer below this magnitude exactly
FLOAT_EXACT_LIMIT = 2**53


@dataclass(frozen=True)
class CoercionSpec:
    """How to turn one raw text column into a typed column.

    Attributes:
        semantic_type: Target type.
        format: strptime format; required for datetime, defaults to ISO for date.
        timezone: Localize naive timestamps (or convert aware ones) to this zone.
        on_error: "raise" or "missing"; None picks "raise" for date/datetime
            and "missing" for everything else.
        lenient: Accept report-style numbers ("$1,200", "15%", "2.5K").
    """

    semantic_type: SemanticType
    format: Optional[str] = None
    timezone: Optional[str] = None
    on_error: Optional[str] = None
    lenient: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "semantic_type", resolve_type(self.semantic_type))
        if self.on_error is not None and self.on_error not in ON_ERROR_CHOICES:
            raise ConfigurationError(
                f"on_error must be one of {ON_ERROR_CHOICES}, got {self.on_error!r}",
                name="on_error",
            )

    @property
    def error_policy(self) -> str:
        if self.on_error is not None:
            return self.on_error
        return "raise" if self.semantic_type in TEMPORAL_TYPES else "missing"

    @property
    def effective_format(self) -> Optional[str]:
        if self.format is None and self.semantic_type is SemanticType.DATE:
            return DEFAULT_DATE_FORMAT
        return self.format

    def describe(self) -> str:
        if self.semantic_type in TEMPORAL_TYPES:
            return f"{self.semantic_type.value} matching {self.effective_format!r}"
        return self.semantic_type.value


SpecLike = Union[CoercionSpec, SemanticType, str]


def as_spec(value: SpecLike) -> CoercionSpec:
    if isinstance(value, CoercionSpec):
        return value
    return CoercionSpec(resolve_type(value))


# ---------------------------------------------------------------------------
# Per-type parsers: text Series in, typed Series out (same index, Missing where
# parsing failed). Failure counting happens in coerce_column.
# ---------------------------------------------------------------------------


def _stripped_objects(raw: pd.Series) -> pd.Series:
    text = raw.str.strip()
    return text.astype(object).where(text.notna(), None)


def _number_array(raw: pd.Series, spec: CoercionSpec) -> np.ndarray:
    if spec.lenient:
        return normalize_numeric_series(raw).to_numpy(dtype=float, na_value=np.nan)
    nums = pd.to_numeric(_stripped_objects(raw), errors="coerce")
    values = np.asarray(nums, dtype=float).copy()
    values[~np.isfinite(values)] = np.nan
    return values


def _parse_float(raw: pd.Series, spec: CoercionSpec) -> pd.Series:
    return pd.Series(_number_array(raw, spec), index=raw.index).astype("Float64")


def _exact_integer(token: Optional[str]) -> Optional[int]:
    """Whole-number value of ``token`` within int64, else None."""
    if token is None or "_" in token:
        return None
    try:
        value = Decimal(token)
    except InvalidOperation:
        return None
    if not value.is_finite() or value.adjusted() > 18:
        return None
    if value != value.to_integral_value():
        return None
    value = int(value)
    if not INT64_MIN <= value <= INT64_MAX:
        return None
    return value


def _parse_integer(raw: pd.Series, spec: CoercionSpec) -> pd.Series:
    if spec.lenient:
        # lenient values are computed in float, so only exactly held ones survive
        values = _number_array(raw, spec).copy()
        whole = ~np.isnan(values) & (np.mod(values, 1) == 0)
        whole &= np.abs(values) < FLOAT_EXACT_LIMIT
        values[~whole] = np.nan
        return pd.Series(values, index=raw.index).astype("Int64")
    parsed = _stripped_objects(raw).map(_exact_integer)
    return pd.Series(pd.array(parsed.tolist(), dtype="Int64"), index=raw.index)


def _parse_boolean(raw: pd.Series, spec: CoercionSpec) -> pd.Series:
    lowered = raw.str.strip().str.lower()
    is_true = lowered.isin(TRUE_TOKENS).to_numpy(dtype=bool)
    is_false = lowered.isin(FALSE_TOKENS).to_numpy(dtype=bool)
    out = pd.Series(pd.NA, index=raw.index, dtype="boolean")
    return out.mask(is_true, True).mask(is_false, False)


def _parse_text(raw: pd.Series, spec: CoercionSpec) -> pd.Series:
    return raw


def _parse_temporal(raw: pd.Series, spec: CoercionSpec) -> pd.Series:
    fmt = spec.effective_format
    aware = "%z" in fmt or "%Z" in fmt
    parsed = pd.to_datetime(
        _stripped_objects(raw), format=fmt, errors="coerce", utc=aware
    )
    if spec.timezone:
        if aware:
            parsed = parsed.dt.tz_convert(spec.timezone)
        else:
            parsed = parsed.dt.tz_localize(
                spec.timezone, ambiguous="NaT", nonexistent="NaT"
            )
    if spec.semantic_type is SemanticType.DATE:
        parsed = parsed.dt.normalize()
    return parsed


_PARSERS: Dict[SemanticType, Callable[[pd.Series, CoercionSpec], pd.Series]] = {
    SemanticType.TEXT: _parse_text,
    SemanticType.CATEGORICAL: _parse_text,
    SemanticType.INTEGER: _parse_integer,
    SemanticType.FLOAT: _parse_float,
    SemanticType.BOOLEAN: _parse_boolean,
    SemanticType.DATE: _parse_temporal,
    SemanticType.DATETIME: _parse_temporal,
}


def _validate(column: str, spec: CoercionSpec) -> None:
    if spec.semantic_type is SemanticType.DATETIME and not spec.format:
        raise ConfigurationError(
            f"datetime coercion of {column!r} needs an explicit format", name=column
        )
    if spec.timezone:
        if spec.semantic_type not in TEMPORAL_TYPES:
            raise ConfigurationError(
                f"timezone given for non-temporal column {column!r}", name=column
            )
        try:
            pd.Timestamp("2000-01-01").tz_localize(spec.timezone)
        except (KeyError, ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"unknown timezone {spec.timezone!r} for column {column!r}",
                name=column,
            ) from exc


def coerce_column(table: Table, column: str, spec: SpecLike) -> Tuple[Table, int]:
    """Coerce one text column; return the new table and the failure count."""
    spec = as_spec(spec)
    table.require_columns([column], role="coercion")
    source_type = table.semantic_type(column)
    if source_type is spec.semantic_type and source_type is not SemanticType.TEXT:
        return table, 0
    if source_type is not SemanticType.TEXT:
        raise ConfigurationError(
            f"column {column!r} is already {source_type.value}; "
            f"only text columns can be coerced",
            name=column,
        )
    _validate(column, spec)

    raw = table.column(column)
    parsed = _PARSERS[spec.semantic_type](raw, spec)
    failed = (raw.notna() & parsed.isna()).to_numpy(dtype=bool)
    if failed.any() and spec.error_policy == "raise":
        row = int(np.flatnonzero(failed)[0])
        raise ParseError(column, row, raw.iloc[row], spec.describe())
    failures = int(failed.sum())
    if failures:
        logger.debug("%s: %d values did not parse as %s", column, failures, spec.describe())
    return table.with_column(column, parsed, spec.semantic_type), failures


def coerce_table(table: Table, specs: Mapping[str, SpecLike]) -> StageResult:
    """Coerce several columns in mapping order. Never removes rows."""
    failures: Dict[str, int] = {}
    for column, spec in specs.items():
        table, failures[column] = coerce_column(table, column, spec)
    return StageResult(table, 0, failures)


__all__ = [
    "CoercionSpec",
    "DEFAULT_DATE_FORMAT",
    "as_spec",
    "coerce_column",
    "coerce_table",
]

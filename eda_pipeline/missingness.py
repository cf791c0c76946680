"""Per-column missing-value rules and their row-level combination.

Columns ruled ``DropRowIfMissing`` govern row removal. How their verdicts
combine is part of the policy and is never guessed:

    Combine.ANY  drop the row when any governing column is missing
    Combine.ALL  drop the row only when every governing column is missing

With one governing column both modes agree, so ``combine`` may be omitted;
with two or more it must be given.
"""

from __future__ import annotations

import datetime as _dt
import logging
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .report import StageResult
from .table import SemanticType, Table, TEMPORAL_TYPES, is_missing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DropRowIfMissing:
    pass


@dataclass(frozen=True)
class KeepAsMissing:
    pass


@dataclass(frozen=True)
class ImputeWith:
    value: Any


MissingnessRule = Union[DropRowIfMissing, KeepAsMissing, ImputeWith]
_RULE_TYPES = (DropRowIfMissing, KeepAsMissing, ImputeWith)


class Combine(str, Enum):
    ANY = "any"
    ALL = "all"


@dataclass(frozen=True)
class MissingnessPolicy:
    rules: Mapping[str, MissingnessRule]
    combine: Optional[Combine] = None

    def __post_init__(self) -> None:
        rules = dict(self.rules)
        for column, rule in rules.items():
            if not isinstance(rule, _RULE_TYPES):
                raise ConfigurationError(
                    f"rule for {column!r} must be DropRowIfMissing, KeepAsMissing "
                    f"or ImputeWith, got {rule!r}",
                    name=column,
                )
            if isinstance(rule, ImputeWith) and is_missing(rule.value):
                raise ConfigurationError(
                    f"imputation value for {column!r} is itself missing", name=column
                )
        object.__setattr__(self, "rules", rules)

        combine = self.combine
        if combine is not None and not isinstance(combine, Combine):
            try:
                combine = Combine(str(combine).lower())
            except ValueError:
                raise ConfigurationError(
                    f"combine must be 'any' or 'all', got {self.combine!r}",
                    name="combine",
                ) from None
        if combine is None and len(self.drop_columns) > 1:
            raise ConfigurationError(
                "several DropRowIfMissing columns "
                f"{list(self.drop_columns)}: say whether a row is dropped when "
                "ANY or ALL of them are missing",
                name="combine",
            )
        object.__setattr__(self, "combine", combine)

    @property
    def drop_columns(self) -> Tuple[str, ...]:
        return tuple(c for c, r in self.rules.items() if isinstance(r, DropRowIfMissing))


def _fit_default(column: str, series: pd.Series, stype: SemanticType, value: Any) -> Any:
    """Check an imputation value against the column type; return it ready for fillna."""
    ok = True
    if stype is SemanticType.BOOLEAN:
        ok = isinstance(value, (bool, np.bool_))
    elif stype is SemanticType.INTEGER:
        ok = isinstance(value, numbers.Integral) and not isinstance(value, (bool, np.bool_))
    elif stype is SemanticType.FLOAT:
        ok = isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))
    elif stype in (SemanticType.TEXT, SemanticType.CATEGORICAL):
        ok = isinstance(value, str)
    elif stype in TEMPORAL_TYPES:
        ok = isinstance(value, (_dt.date, np.datetime64, str))
    if not ok:
        raise ConfigurationError(
            f"cannot impute {value!r} into {stype.value} column {column!r}",
            name=column,
        )
    if stype in TEMPORAL_TYPES:
        try:
            value = pd.Timestamp(value)
        except ValueError as exc:
            raise ConfigurationError(
                f"cannot read imputation value {value!r} for {column!r} as a timestamp",
                name=column,
            ) from exc
        column_tz = series.dt.tz
        if column_tz is not None and value.tz is None:
            raise ConfigurationError(
                f"column {column!r} is timezone-aware; the imputation value is not",
                name=column,
            )
        if column_tz is None and value.tz is not None:
            raise ConfigurationError(
                f"column {column!r} is timezone-naive; the imputation value is not",
                name=column,
            )
        if column_tz is not None:
            value = value.tz_convert(column_tz)
        if stype is SemanticType.DATE:
            value = value.normalize()
    return value


def _impute(table: Table, column: str, value: Any) -> Tuple[Table, int]:
    stype = table.semantic_type(column)
    series = table.column(column)
    value = _fit_default(column, series, stype, value)
    holes = int(series.isna().sum())
    if not holes:
        return table, 0
    if stype is SemanticType.CATEGORICAL and value not in series.cat.categories:
        series = series.cat.add_categories([value])
    try:
        filled = series.fillna(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"cannot impute {value!r} into column {column!r}: {exc}", name=column
        ) from exc
    return table.with_column(column, filled, stype), holes


def apply_missingness(table: Table, policy: MissingnessPolicy) -> StageResult:
    """Drop rows per the governing columns, then impute on the survivors.

    Drop verdicts are taken on the input values in one pass; imputation never
    changes which rows survive. Row order is preserved and
    ``len(result.table) + result.removed == len(table)``.
    """
    table.require_columns(policy.rules, role="missingness rule")

    governing = policy.drop_columns
    if governing:
        missing = np.column_stack(
            [table.column(c).isna().to_numpy(dtype=bool) for c in governing]
        )
        if policy.combine is Combine.ALL:
            doomed = missing.all(axis=1)
        else:
            doomed = missing.any(axis=1)
    else:
        doomed = np.zeros(len(table), dtype=bool)

    kept = table.take(~doomed)
    removed = int(doomed.sum())
    if removed:
        logger.debug(
            "dropped %d rows missing %s of %s",
            removed,
            (policy.combine or Combine.ANY).value,
            list(governing),
        )

    imputed: Dict[str, int] = {}
    for column, rule in policy.rules.items():
        if isinstance(rule, ImputeWith):
            kept, imputed[column] = _impute(kept, column, rule.value)
    return StageResult(kept, removed, imputed)


__all__ = [
    "DropRowIfMissing",
    "KeepAsMissing",
    "ImputeWith",
    "MissingnessRule",
    "Combine",
    "MissingnessPolicy",
    "apply_missingness",
]

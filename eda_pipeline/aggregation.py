"""Grouped summaries and per-group extremal row selection.

Partitions are the key tuples actually observed, emitted in order of first
appearance. A missing key value is a group of its own, never dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .table import NUMERIC_TYPES, SemanticType, Table, partition_codes

logger = logging.getLogger(__name__)


class Reducer(str, Enum):
    MEAN = "mean"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    SUM = "sum"
    FIRST = "first"
    LAST = "last"
    NTH_EXTREMAL = "nth_extremal"


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


_ARITHMETIC = frozenset({Reducer.MEAN, Reducer.SUM})
_ORDERING = frozenset({Reducer.MIN, Reducer.MAX, Reducer.NTH_EXTREMAL})
_SUMMABLE_TYPES = NUMERIC_TYPES | {SemanticType.BOOLEAN}


def _resolve(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"unknown {what} {value!r} (expected one of: {allowed})", name=str(value)
        ) from None


@dataclass(frozen=True)
class Aggregation:
    """One output column: ``reducer`` applied to ``column`` within each partition.

    Attributes:
        column: Source column.
        reducer: A ``Reducer`` or its name.
        count_missing: For count, include rows whose value is missing.
        propagate_missing: For mean/sum/min/max/nth_extremal, any missing
            input makes the result missing; for first/last, take the literal
            first/last row even when its value is missing.
        k: Rank for nth_extremal (1 = most extreme).
        order: "desc" ranks largest first, "asc" smallest first.
    """

    column: str
    reducer: Reducer
    count_missing: bool = True
    propagate_missing: bool = False
    k: Optional[int] = None
    order: Order = Order.DESC

    def __post_init__(self) -> None:
        object.__setattr__(self, "reducer", _resolve(Reducer, self.reducer, "reducer"))
        object.__setattr__(self, "order", _resolve(Order, self.order, "order"))
        if self.reducer is Reducer.NTH_EXTREMAL:
            if not isinstance(self.k, int) or isinstance(self.k, bool) or self.k < 1:
                raise ConfigurationError(
                    f"nth_extremal over {self.column!r} needs an integer k >= 1, "
                    f"got {self.k!r}",
                    name="k",
                )
        elif self.k is not None:
            raise ConfigurationError(
                f"k only applies to nth_extremal, not {self.reducer.value}", name="k"
            )


AggregationSpec = Mapping[str, Aggregation]


def _check_keys(table: Table, keys: Sequence[str], role: str = "group key") -> None:
    if not keys:
        raise ConfigurationError("a group key needs at least one column", name="keys")
    if len(set(keys)) != len(keys):
        raise ConfigurationError(f"group key repeats a column: {list(keys)}", name="keys")
    table.require_columns(keys, role=role)


def _check_orderable(table: Table, column: str, what: str) -> None:
    if table.semantic_type(column) is SemanticType.CATEGORICAL:
        raise ConfigurationError(
            f"{what} needs an orderable column; {column!r} is categorical",
            name=column,
        )


def _output_type(source: SemanticType, reducer: Reducer) -> SemanticType:
    if reducer is Reducer.MEAN:
        return SemanticType.FLOAT
    if reducer is Reducer.COUNT:
        return SemanticType.INTEGER
    if reducer is Reducer.SUM:
        return SemanticType.FLOAT if source is SemanticType.FLOAT else SemanticType.INTEGER
    return source


def _nth_extremal(
    values: pd.Series, codes: np.ndarray, n_groups: int, k: int, order: Order
) -> pd.Series:
    present = values.notna().to_numpy(dtype=bool)
    ranked = values[present].sort_values(
        ascending=order is Order.ASC, kind="mergesort"
    )
    ranked_codes = codes[ranked.index.to_numpy()]
    # stable regroup keeps the value order inside each partition
    regroup = np.argsort(ranked_codes, kind="stable")
    ranked = ranked.iloc[regroup]
    ranked_codes = ranked_codes[regroup]
    rank = pd.Series(ranked_codes).groupby(ranked_codes).cumcount().to_numpy()
    picked = ranked[rank == k - 1]
    return picked.set_axis(ranked_codes[rank == k - 1]).reindex(range(n_groups))


def _reduce(
    values: pd.Series, codes: np.ndarray, n_groups: int, agg: Aggregation
) -> pd.Series:
    if isinstance(values.dtype, pd.BooleanDtype) and agg.reducer in _ARITHMETIC:
        values = values.astype("Int64")
    grouped = values.groupby(codes, sort=True)
    reducer = agg.reducer

    if reducer is Reducer.COUNT:
        out = grouped.size() if agg.count_missing else grouped.count()
    elif reducer is Reducer.MEAN:
        out = grouped.mean()
    elif reducer is Reducer.SUM:
        out = grouped.sum(min_count=1)
    elif reducer is Reducer.MIN:
        out = grouped.min()
    elif reducer is Reducer.MAX:
        out = grouped.max()
    elif reducer in (Reducer.FIRST, Reducer.LAST):
        if agg.propagate_missing:
            rows = pd.Series(np.arange(len(values))).groupby(codes, sort=True)
            picks = rows.min() if reducer is Reducer.FIRST else rows.max()
            out = values.iloc[picks.to_numpy()]
        else:
            out = grouped.first() if reducer is Reducer.FIRST else grouped.last()
    else:
        out = _nth_extremal(values, codes, n_groups, agg.k, agg.order)

    out = out.reset_index(drop=True)
    if agg.propagate_missing and (reducer in _ARITHMETIC or reducer in _ORDERING):
        holes = values.isna().groupby(codes, sort=True).any().to_numpy(dtype=bool)
        out = out.mask(holes)
    return out


def aggregate(table: Table, keys: Sequence[str], spec: AggregationSpec) -> Table:
    """One row per observed key tuple, in first-seen order.

    Raises ConfigurationError when a key or source column is absent, when an
    output name collides with a key, or when a reducer does not fit its
    column type (mean of text, min of a categorical).
    """
    keys = list(keys)
    _check_keys(table, keys)
    for name, agg in spec.items():
        if name in keys:
            raise ConfigurationError(
                f"aggregation output {name!r} collides with a group key column",
                name=name,
            )
        table.require_columns([agg.column], role=f"aggregation {name!r}")
        source = table.semantic_type(agg.column)
        if agg.reducer in _ARITHMETIC and source not in _SUMMABLE_TYPES:
            raise ConfigurationError(
                f"{agg.reducer.value} of {agg.column!r} needs a numeric column, "
                f"it is {source.value}",
                name=agg.column,
            )
        if agg.reducer in _ORDERING:
            _check_orderable(table, agg.column, agg.reducer.value)

    frame = table.to_frame()
    codes, n_groups = partition_codes(frame, keys)
    first_rows = (
        pd.Series(np.arange(len(frame))).groupby(codes, sort=True).min().to_numpy()
        if n_groups
        else np.array([], dtype=np.intp)
    )

    data: Dict[str, pd.Series] = {
        key: frame[key].iloc[first_rows].reset_index(drop=True) for key in keys
    }
    schema = {key: table.semantic_type(key) for key in keys}
    for name, agg in spec.items():
        data[name] = _reduce(frame[agg.column], codes, n_groups, agg)
        schema[name] = _output_type(table.semantic_type(agg.column), agg.reducer)

    logger.debug("aggregated %d rows into %d partitions by %s", len(frame), n_groups, keys)
    return Table(pd.DataFrame(data, index=pd.RangeIndex(n_groups)), schema)


def top_k(
    table: Table,
    keys: Sequence[str],
    by: str,
    k: int,
    order: Union[Order, str] = Order.DESC,
) -> Table:
    """The ``k`` rows with the largest (or smallest) ``by`` in each partition.

    Ties keep original row order, rows with a missing ``by`` rank last, and a
    partition smaller than ``k`` is returned whole. Partitions come out in
    first-seen order, rows inside a partition by rank.
    """
    order = _resolve(Order, order, "order")
    if not isinstance(k, int) or isinstance(k, bool) or k < 1:
        raise ConfigurationError(f"top_k needs an integer k >= 1, got {k!r}", name="k")
    keys = list(keys)
    _check_keys(table, keys)
    table.require_columns([by], role="top_k ordering")
    _check_orderable(table, by, "top_k")

    frame = table.to_frame()
    codes, _ = partition_codes(frame, keys)
    values = frame[by]
    present = values.notna().to_numpy(dtype=bool)
    by_value = (
        values[present]
        .sort_values(ascending=order is Order.ASC, kind="mergesort")
        .index.to_numpy(dtype=np.intp)
    )
    sequence = np.concatenate([by_value, np.flatnonzero(~present).astype(np.intp)])
    sequence = sequence[np.argsort(codes[sequence], kind="stable")]
    rank = pd.Series(codes[sequence]).groupby(codes[sequence]).cumcount().to_numpy()
    return table.take(sequence[rank < k])


__all__ = ["Reducer", "Order", "Aggregation", "AggregationSpec", "aggregate", "top_k"]

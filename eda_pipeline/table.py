"""Immutable typed table used by every pipeline stage.

A ``Table`` wraps a pandas DataFrame whose columns carry an explicit
``SemanticType``. Each type maps to one nullable pandas dtype, so missing
values are always the tagged ``pd.NA`` / ``NaT`` state and never an empty
string or a zero. Stages never mutate a Table; they build a new one.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError, InvariantViolation

MISSING = pd.NA


class SemanticType(str, Enum):
    TEXT = "text"
    CATEGORICAL = "categorical"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"


NUMERIC_TYPES = frozenset({SemanticType.INTEGER, SemanticType.FLOAT})
TEMPORAL_TYPES = frozenset({SemanticType.DATE, SemanticType.DATETIME})

# infer_dtype kinds each semantic type accepts as input
_ACCEPTED_KINDS = {
    SemanticType.TEXT: {"string", "empty"},
    SemanticType.CATEGORICAL: {"string", "categorical", "empty"},
    SemanticType.INTEGER: {"integer", "floating", "mixed-integer-float", "empty"},
    SemanticType.FLOAT: {
        "integer",
        "floating",
        "mixed-integer-float",
        "decimal",
        "empty",
    },
    SemanticType.BOOLEAN: {"boolean", "empty"},
    SemanticType.DATE: {"datetime64", "datetime", "date", "empty"},
    SemanticType.DATETIME: {"datetime64", "datetime", "date", "empty"},
}

ColumnsArg = Union[Mapping[str, Iterable[Any]], Sequence[Tuple[str, Iterable[Any]]]]


def is_missing(value: Any) -> bool:
    """True for None, pd.NA, NaN and NaT; never for empty strings."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def resolve_type(value: Union[str, SemanticType]) -> SemanticType:
    if isinstance(value, SemanticType):
        return value
    try:
        return SemanticType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in SemanticType)
        raise ConfigurationError(
            f"unknown semantic type {value!r} (expected one of: {allowed})",
            name=str(value),
        ) from None


def _check_kind(name: str, series: pd.Series, semantic_type: SemanticType) -> None:
    if series.isna().all():
        return
    kind = pd.api.types.infer_dtype(series, skipna=True)
    if kind not in _ACCEPTED_KINDS[semantic_type]:
        raise InvariantViolation(
            f"column {name!r} holds {kind} values, which a "
            f"{semantic_type.value} column cannot store"
        )


def _cast_column(name: str, series: pd.Series, semantic_type: SemanticType) -> pd.Series:
    _check_kind(name, series, semantic_type)
    try:
        if semantic_type is SemanticType.TEXT:
            return series.astype("string")
        if semantic_type is SemanticType.CATEGORICAL:
            if isinstance(series.dtype, pd.CategoricalDtype):
                return series.copy()
            first_seen = series.dropna().drop_duplicates().tolist()
            return pd.Series(
                pd.Categorical(series, categories=first_seen),
                index=series.index,
                name=series.name,
            )
        if semantic_type is SemanticType.INTEGER:
            return series.astype("Int64")
        if semantic_type is SemanticType.FLOAT:
            return series.astype("Float64")
        if semantic_type is SemanticType.BOOLEAN:
            return series.astype("boolean")
        if not pd.api.types.is_datetime64_any_dtype(series):
            series = pd.to_datetime(series)
        if semantic_type is SemanticType.DATE:
            return series.dt.normalize()
        return series.copy()
    except (TypeError, ValueError) as exc:
        raise InvariantViolation(
            f"column {name!r} cannot be stored as {semantic_type.value}: {exc}"
        ) from exc


def partition_codes(frame: pd.DataFrame, names: Sequence[str]) -> Tuple[np.ndarray, int]:
    """Label each row with the id of its key tuple.

    Ids are numbered in order of first appearance, so they never depend on
    hash order. Missing compares equal to Missing and to nothing else.
    Returns ``(codes, number_of_partitions)``.
    """
    n_rows = len(frame)
    if not names:
        return np.zeros(n_rows, dtype=np.intp), (1 if n_rows else 0)
    per_column = [pd.factorize(frame[name], use_na_sentinel=True)[0] for name in names]
    keys = pd.Series(list(zip(*per_column)), dtype=object)
    codes, uniques = pd.factorize(keys)
    return np.asarray(codes, dtype=np.intp), len(uniques)


class Table:
    """Ordered, uniquely named, equal-length typed columns.

    Construction fails fast with ``InvariantViolation`` on duplicate names,
    schema/column mismatches and values the declared type cannot hold.
    """

    __slots__ = ("_frame", "_schema")

    def __init__(
        self, frame: pd.DataFrame, schema: Mapping[str, Union[str, SemanticType]]
    ) -> None:
        if not isinstance(frame, pd.DataFrame):
            raise InvariantViolation(
                f"Table expects a DataFrame, got {type(frame).__name__}"
            )
        dupes = frame.columns[frame.columns.duplicated()].tolist()
        if dupes:
            raise InvariantViolation(f"duplicate column names: {dupes}")
        for name in frame.columns:
            if not isinstance(name, str):
                raise InvariantViolation(f"column names must be strings, got {name!r}")
            if name not in schema:
                raise InvariantViolation(f"column {name!r} has no declared type")
        extra = [name for name in schema if name not in frame.columns]
        if extra:
            raise InvariantViolation(f"schema names columns not in the table: {extra}")

        resolved = {name: resolve_type(schema[name]) for name in frame.columns}
        data = {
            name: _cast_column(name, frame[name].reset_index(drop=True), stype)
            for name, stype in resolved.items()
        }
        self._frame = pd.DataFrame(data, index=pd.RangeIndex(len(frame)))
        self._schema: Dict[str, SemanticType] = resolved

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_columns(
        cls,
        columns: ColumnsArg,
        types: Optional[Mapping[str, Union[str, SemanticType]]] = None,
    ) -> "Table":
        """Build a table from ``name -> values`` pairs.

        Columns absent from ``types`` are text. ``None`` marks a missing value.
        """
        if isinstance(columns, Mapping):
            pairs = [(name, list(values)) for name, values in columns.items()]
        else:
            pairs = [(name, list(values)) for name, values in columns]
        names = [name for name, _ in pairs]
        seen = set()
        for name in names:
            if name in seen:
                raise InvariantViolation(f"duplicate column names: [{name!r}]")
            seen.add(name)
        lengths = {name: len(values) for name, values in pairs}
        if len(set(lengths.values())) > 1:
            raise InvariantViolation(f"columns differ in length: {lengths}")

        types = dict(types or {})
        unknown = [name for name in types if name not in lengths]
        if unknown:
            raise InvariantViolation(f"types given for unknown columns: {unknown}")
        schema = {name: types.get(name, SemanticType.TEXT) for name in names}
        n_rows = next(iter(lengths.values()), 0)
        frame = pd.DataFrame(
            {name: pd.Series(values, dtype=object) for name, values in pairs},
            index=pd.RangeIndex(n_rows),
        )
        return cls(frame, schema)

    @classmethod
    def from_rows(
        cls,
        names: Sequence[str],
        rows: Iterable[Sequence[Any]],
        types: Optional[Mapping[str, Union[str, SemanticType]]] = None,
    ) -> "Table":
        rows = [tuple(row) for row in rows]
        for i, row in enumerate(rows):
            if len(row) != len(names):
                raise InvariantViolation(
                    f"row {i} has {len(row)} values, expected {len(names)}"
                )
        values = list(zip(*rows)) if rows else [() for _ in names]
        return cls.from_columns(list(zip(names, values)), types)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self._frame.columns)

    @property
    def schema(self) -> Mapping[str, SemanticType]:
        return MappingProxyType(dict(self._schema))

    @property
    def num_rows(self) -> int:
        return len(self._frame)

    def __len__(self) -> int:
        return len(self._frame)

    def semantic_type(self, name: str) -> SemanticType:
        self.require_columns([name])
        return self._schema[name]

    def column(self, name: str) -> pd.Series:
        self.require_columns([name])
        return self._frame[name].copy()

    def to_frame(self) -> pd.DataFrame:
        return self._frame.copy(deep=True)

    def rows(self) -> List[Tuple[Any, ...]]:
        """Positional row tuples with Missing rendered as None."""
        if not self._schema:
            return [() for _ in range(self.num_rows)]
        as_objects = self._frame.astype(object)
        as_objects = as_objects.where(self._frame.notna(), None)
        return list(as_objects.itertuples(index=False, name=None))

    def to_records(self) -> List[Dict[str, Any]]:
        names = self.columns
        return [dict(zip(names, row)) for row in self.rows()]

    def fingerprint(self) -> str:
        """Content hash of values and schema, stable across processes."""
        digest = hashlib.sha256()
        digest.update(str(self.num_rows).encode("utf-8"))
        for name, stype in self._schema.items():
            series = self._frame[name]
            digest.update(f"{name}\x1f{stype.value}\x1f{series.dtype}\x1e".encode("utf-8"))
            hashed = pd.util.hash_pandas_object(series, index=False)
            digest.update(hashed.to_numpy(dtype=np.uint64).tobytes())
        return digest.hexdigest()

    def require_columns(self, names: Iterable[str], role: str = "column") -> None:
        for name in names:
            if name not in self._schema:
                raise ConfigurationError(
                    f"{role} references unknown column {name!r}", name=name
                )

    # ------------------------------------------------------------------
    # Derivations (each returns a new Table)
    # ------------------------------------------------------------------

    def take(self, selector: Any) -> "Table":
        """Rows selected by a boolean mask or by positions, order preserved."""
        sel = np.asarray(selector)
        if sel.dtype == bool:
            if len(sel) != self.num_rows:
                raise InvariantViolation(
                    f"mask has {len(sel)} entries for {self.num_rows} rows"
                )
            frame = self._frame.loc[sel]
        else:
            frame = self._frame.iloc[sel.astype(np.intp)]
        return Table(frame, self._schema)

    def select(self, names: Sequence[str]) -> "Table":
        self.require_columns(names)
        return Table(self._frame[list(names)], {n: self._schema[n] for n in names})

    def with_column(
        self, name: str, values: Any, semantic_type: Union[str, SemanticType]
    ) -> "Table":
        """Replace (or append) one column."""
        if isinstance(values, pd.Series):
            series = values.reset_index(drop=True)
        else:
            series = pd.Series(list(values), dtype=object)
        if len(series) != self.num_rows:
            raise InvariantViolation(
                f"column {name!r} has {len(series)} values for {self.num_rows} rows"
            )
        frame = self._frame.copy()
        frame[name] = series.set_axis(frame.index)
        schema = dict(self._schema)
        schema[name] = resolve_type(semantic_type)
        return Table(frame, schema)

    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self._schema == other._schema and self._frame.equals(other._frame)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        cols = ", ".join(f"{n}:{t.value}" for n, t in self._schema.items())
        return f"Table({self.num_rows} rows; {cols})"


__all__ = [
    "MISSING",
    "SemanticType",
    "NUMERIC_TYPES",
    "TEMPORAL_TYPES",
    "Table",
    "is_missing",
    "resolve_type",
    "partition_codes",
]

"""Pipeline configuration and its plain-dict / JSON form."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .aggregation import Aggregation
from .coercion import CoercionSpec
from .errors import ConfigurationError
from .missingness import (
    DropRowIfMissing,
    ImputeWith,
    KeepAsMissing,
    MissingnessPolicy,
    MissingnessRule,
)

_TOP_LEVEL_KEYS = {"coercions", "missingness", "dedup", "dedup_subset", "aggregation"}
_COERCION_KEYS = {"type", "format", "timezone", "on_error", "lenient"}
_AGGREGATION_KEYS = {"column", "reducer", "count_missing", "propagate_missing", "k", "order"}


def _flag(section: str, raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"{section} setting {key!r} must be true or false, got {value!r}", name=key
        )
    return value


def _reject_unknown(section: str, raw: Mapping[str, Any], allowed: set) -> None:
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigurationError(
            f"unknown {section} setting(s): {unknown}", name=unknown[0]
        )


def _expect_mapping(section: str, raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"{section} must be a mapping, got {type(raw).__name__}", name=section
        )
    return raw


def _parse_coercion(column: str, raw: Any) -> CoercionSpec:
    if isinstance(raw, str):
        return CoercionSpec(raw)
    raw = _expect_mapping(f"coercion for {column!r}", raw)
    _reject_unknown(f"coercion ({column})", raw, _COERCION_KEYS)
    if "type" not in raw:
        raise ConfigurationError(f"coercion for {column!r} has no type", name=column)
    return CoercionSpec(
        raw["type"],
        format=raw.get("format"),
        timezone=raw.get("timezone"),
        on_error=raw.get("on_error"),
        lenient=_flag(f"coercion ({column})", raw, "lenient", False),
    )


def _parse_rule(column: str, raw: Any) -> MissingnessRule:
    if raw in ("drop", "drop_row_if_missing"):
        return DropRowIfMissing()
    if raw in ("keep", "keep_as_missing"):
        return KeepAsMissing()
    if isinstance(raw, Mapping) and set(raw) == {"impute"}:
        return ImputeWith(raw["impute"])
    raise ConfigurationError(
        f"missingness rule for {column!r} must be 'drop', 'keep' or "
        f"{{'impute': value}}, got {raw!r}",
        name=column,
    )


def _parse_missingness(raw: Any) -> MissingnessPolicy:
    raw = _expect_mapping("missingness", raw)
    _reject_unknown("missingness", raw, {"rules", "combine"})
    rules = _expect_mapping("missingness.rules", raw.get("rules", {}))
    return MissingnessPolicy(
        {column: _parse_rule(column, rule) for column, rule in rules.items()},
        combine=raw.get("combine"),
    )


def _parse_aggregation(name: str, raw: Any) -> Aggregation:
    raw = _expect_mapping(f"aggregation {name!r}", raw)
    _reject_unknown(f"aggregation ({name})", raw, _AGGREGATION_KEYS)
    for required in ("column", "reducer"):
        if required not in raw:
            raise ConfigurationError(
                f"aggregation {name!r} has no {required}", name=name
            )
    return Aggregation(
        raw["column"],
        raw["reducer"],
        count_missing=_flag(f"aggregation ({name})", raw, "count_missing", True),
        propagate_missing=_flag(
            f"aggregation ({name})", raw, "propagate_missing", False
        ),
        k=raw.get("k"),
        order=raw.get("order", "desc"),
    )


@dataclass
class PipelineConfig:
    """Everything a pipeline run needs besides the input table.

    Attributes:
        coercions: column -> CoercionSpec, applied in mapping order
        missingness: row drop / imputation policy (None skips the stage's work)
        dedup: remove exact duplicate rows
        dedup_subset: columns that define a duplicate (None = all columns)
        group_keys: partition columns for the optional aggregation stage
        aggregations: output column -> Aggregation
    """

    coercions: Dict[str, CoercionSpec] = field(default_factory=dict)
    missingness: Optional[MissingnessPolicy] = None
    dedup: bool = True
    dedup_subset: Optional[List[str]] = None
    group_keys: List[str] = field(default_factory=list)
    aggregations: Dict[str, Aggregation] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.aggregations and not self.group_keys:
            raise ConfigurationError(
                "aggregations given without group keys", name="group_keys"
            )
        if self.group_keys and not self.aggregations:
            raise ConfigurationError(
                "group keys given without aggregations", name="aggregations"
            )

    @property
    def aggregate_enabled(self) -> bool:
        return bool(self.group_keys)

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "PipelineConfig":
        raw = _expect_mapping("pipeline config", raw or {})
        _reject_unknown("pipeline", raw, _TOP_LEVEL_KEYS)

        coercions = {
            column: _parse_coercion(column, spec)
            for column, spec in _expect_mapping("coercions", raw.get("coercions", {})).items()
        }
        missingness = (
            _parse_missingness(raw["missingness"]) if raw.get("missingness") else None
        )
        subset = raw.get("dedup_subset")
        if subset is not None and not isinstance(subset, list):
            raise ConfigurationError("dedup_subset must be a list", name="dedup_subset")

        keys: List[str] = []
        aggregations: Dict[str, Aggregation] = {}
        if raw.get("aggregation"):
            agg_raw = _expect_mapping("aggregation", raw["aggregation"])
            _reject_unknown("aggregation", agg_raw, {"keys", "spec"})
            keys = list(agg_raw.get("keys") or [])
            aggregations = {
                name: _parse_aggregation(name, spec)
                for name, spec in _expect_mapping("aggregation.spec", agg_raw.get("spec", {})).items()
            }

        return cls(
            coercions=coercions,
            missingness=missingness,
            dedup=_flag("pipeline", raw, "dedup", True),
            dedup_subset=subset,
            group_keys=keys,
            aggregations=aggregations,
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "PipelineConfig":
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"config file {path} is not valid JSON: {exc}", name=str(path)
            ) from exc
        return cls.from_dict(raw)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "coercions": {
                column: {
                    "type": spec.semantic_type.value,
                    "format": spec.format,
                    "timezone": spec.timezone,
                    "on_error": spec.error_policy,
                    "lenient": spec.lenient,
                }
                for column, spec in self.coercions.items()
            },
            "dedup": self.dedup,
            "dedup_subset": self.dedup_subset,
        }
        if self.missingness is not None:
            rules: Dict[str, Any] = {}
            for column, rule in self.missingness.rules.items():
                if isinstance(rule, DropRowIfMissing):
                    rules[column] = "drop"
                elif isinstance(rule, KeepAsMissing):
                    rules[column] = "keep"
                else:
                    rules[column] = {"impute": rule.value}
            combine = self.missingness.combine
            out["missingness"] = {
                "combine": combine.value if combine else None,
                "rules": rules,
            }
        if self.aggregate_enabled:
            out["aggregation"] = {
                "keys": list(self.group_keys),
                "spec": {
                    name: {
                        "column": agg.column,
                        "reducer": agg.reducer.value,
                        "count_missing": agg.count_missing,
                        "propagate_missing": agg.propagate_missing,
                        "k": agg.k,
                        "order": agg.order.value,
                    }
                    for name, agg in self.aggregations.items()
                },
            }
        return out


__all__ = ["PipelineConfig"]

"""Pipeline orchestration: coercion -> missingness -> dedup -> (aggregation).

The order is fixed. Deduplication runs after missingness filtering so a row
is never counted both as missing-dropped and duplicate-dropped. Any stage
failure aborts the run: the error is tagged with the stage name and re-raised,
and no partial output is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, NamedTuple, Optional, Union

from .aggregation import aggregate
from .coercion import coerce_table
from .config import PipelineConfig
from .data_profiler import TableProfiler
from .dedup import deduplicate
from .errors import PipelineError
from .loaders import load_table
from .missingness import apply_missingness
from .report import RemovalReport, StageResult, log_report
from .table import Table

logger = logging.getLogger(__name__)

STAGES = ("coercion", "missingness", "dedup", "aggregation")

ConfigArg = Union[PipelineConfig, Mapping[str, Any], None]


class PipelineResult(NamedTuple):
    table: Table
    report: RemovalReport


def _run_stage(stage: str, func: Callable[..., Any], *args: Any) -> Any:
    logger.debug("stage %s: start", stage)
    try:
        result = func(*args)
    except PipelineError as exc:
        if exc.stage is None:
            exc.stage = stage
        logger.error("stage %s failed: %s", stage, exc.message)
        raise
    logger.debug("stage %s: done", stage)
    return result


def _as_config(config: ConfigArg) -> PipelineConfig:
    if isinstance(config, PipelineConfig):
        return config
    return _run_stage("config", PipelineConfig.from_dict, config)


def run_cleaning_pipeline(table: Table, config: ConfigArg = None) -> PipelineResult:
    """Run every configured stage over ``table``.

    Parameters
    ----------
    table : Table
        Input table; never modified.
    config : PipelineConfig or dict, optional
        Stage settings. A dict is parsed with ``PipelineConfig.from_dict``.

    Returns
    -------
    PipelineResult(table, report), unpackable as ``final_table, report``.
    ``report`` holds rows removed by coercion, missingness and dedup (always
    present, zero when a stage had nothing to do) plus per-column coercion
    failures and imputations.
    """
    cfg = _as_config(config)
    report = RemovalReport(len(table))

    coerced: StageResult = _run_stage("coercion", coerce_table, table, cfg.coercions)
    report.coercion_failures.update(coerced.details)
    report.record("coercion", coerced.removed, len(coerced.table))
    table = coerced.table

    if cfg.missingness is not None:
        filtered = _run_stage("missingness", apply_missingness, table, cfg.missingness)
    else:
        filtered = StageResult(table, 0, {})
    report.imputed.update(filtered.details)
    report.record("missingness", filtered.removed, len(filtered.table))
    table = filtered.table

    if cfg.dedup:
        deduped = _run_stage("dedup", deduplicate, table, cfg.dedup_subset)
    else:
        deduped = StageResult(table, 0, {})
    report.record("dedup", deduped.removed, len(deduped.table))
    table = deduped.table

    if cfg.aggregate_enabled:
        table = _run_stage(
            "aggregation", aggregate, table, cfg.group_keys, cfg.aggregations
        )
        report.partitions = len(table)

    log_report(report)
    return PipelineResult(table, report)


def run_processing_pipeline(
    file_path: Union[str, Path],
    *,
    config: ConfigArg = None,
    null_tokens: Optional[Iterable[str]] = None,
    profile: bool = True,
) -> Dict[str, Any]:
    """Load a file, clean it and (optionally) profile the result.

    Returns
    -------
    dict with keys: table, report, null_token_mappings, profile, config
    """
    cfg = _as_config(config)
    raw, token_counts = _run_stage(
        "load", lambda: load_table(file_path, null_tokens=null_tokens)
    )
    table, report = run_cleaning_pipeline(raw, cfg)
    return {
        "table": table,
        "report": report,
        "null_token_mappings": token_counts,
        "profile": TableProfiler().profile_table(table) if profile else None,
        "config": cfg,
    }


__all__ = [
    "STAGES",
    "PipelineResult",
    "run_cleaning_pipeline",
    "run_processing_pipeline",
]

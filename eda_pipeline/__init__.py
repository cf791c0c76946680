"""Tabular cleaning and group-aggregation pipeline for exploratory data analysis.

Public entry points:
    run_cleaning_pipeline(table, config) -> PipelineResult(table, report)
    run_processing_pipeline(file_path, *, config=None, null_tokens=None)

Stages run in a fixed order:
    coercion     raw text columns -> typed columns
    missingness  drop / impute / keep per column rule
    dedup        exact duplicate rows (first occurrence kept)
    aggregation  optional grouped summary, partitions in first-seen order
"""

from .aggregation import Aggregation, Order, Reducer, aggregate, top_k
from .coercion import CoercionSpec, coerce_column, coerce_table
from .config import PipelineConfig
from .data_profiler import TableProfiler
from .dedup import deduplicate
from .errors import ConfigurationError, InvariantViolation, ParseError, PipelineError
from .loaders import load_table
from .missingness import (
    Combine,
    DropRowIfMissing,
    ImputeWith,
    KeepAsMissing,
    MissingnessPolicy,
    apply_missingness,
)
from .pipeline import PipelineResult, run_cleaning_pipeline, run_processing_pipeline
from .report import RemovalReport, StageResult, log_report
from .table import MISSING, SemanticType, Table, is_missing

__version__ = "0.1.0"

__all__ = [
    "Aggregation",
    "CoercionSpec",
    "Combine",
    "ConfigurationError",
    "DropRowIfMissing",
    "ImputeWith",
    "InvariantViolation",
    "KeepAsMissing",
    "MISSING",
    "MissingnessPolicy",
    "Order",
    "ParseError",
    "PipelineConfig",
    "PipelineError",
    "PipelineResult",
    "Reducer",
    "RemovalReport",
    "SemanticType",
    "StageResult",
    "Table",
    "TableProfiler",
    "aggregate",
    "apply_missingness",
    "coerce_column",
    "coerce_table",
    "deduplicate",
    "is_missing",
    "load_table",
    "log_report",
    "run_cleaning_pipeline",
    "run_processing_pipeline",
    "top_k",
]

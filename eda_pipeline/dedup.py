"""Exact duplicate row removal."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import pandas as pd

from .errors import ConfigurationError
from .report import StageResult
from .table import Table, partition_codes

logger = logging.getLogger(__name__)


def deduplicate(table: Table, subset: Optional[Sequence[str]] = None) -> StageResult:
    """Keep the first occurrence of every distinct row.

    Rows are compared on ``subset`` (all columns by default); a missing value
    equals another missing value in the same column. Applying this twice
    gives the same table as applying it once.
    """
    columns = list(subset) if subset is not None else list(table.columns)
    if subset is not None and not columns:
        raise ConfigurationError(
            "deduplication subset is empty; pass None to compare every column",
            name="subset",
        )
    table.require_columns(columns, role="deduplication subset")
    codes, _ = partition_codes(table.to_frame(), columns)
    repeated = pd.Series(codes).duplicated(keep="first").to_numpy(dtype=bool)
    removed = int(repeated.sum())
    if removed:
        logger.debug("dropped %d duplicate rows on %s", removed, columns)
    return StageResult(table.take(~repeated), removed, {})


__all__ = ["deduplicate"]

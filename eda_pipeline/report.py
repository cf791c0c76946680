"""Stage results and the removal report threaded through a pipeline run."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, NamedTuple, Optional

from .table import Table

logger = logging.getLogger(__name__)


class StageResult(NamedTuple):
    """What every cleaning stage hands back: the new table, rows removed, per-column counts."""

    table: Table
    removed: int
    details: Dict[str, int]


class RemovalReport:
    """Rows removed per stage, in the order the stages ran.

    Besides removal counts it keeps the diagnostics the stages produce
    (coercion failures and imputations per column, partition count) so a
    caller can assert on data-loss magnitude instead of reading logs.
    """

    def __init__(self, rows_in: int) -> None:
        self.rows_in = int(rows_in)
        self.rows_out = int(rows_in)
        self.coercion_failures: Dict[str, int] = {}
        self.imputed: Dict[str, int] = {}
        self.partitions: Optional[int] = None
        self._removed: Dict[str, int] = {}

    def record(self, stage: str, removed: int, rows_out: int) -> None:
        self._removed[stage] = int(removed)
        self.rows_out = int(rows_out)

    def __getitem__(self, stage: str) -> int:
        return self._removed[stage]

    def __contains__(self, stage: object) -> bool:
        return stage in self._removed

    def __iter__(self) -> Iterator[str]:
        return iter(self._removed)

    @property
    def removed(self) -> Dict[str, int]:
        return dict(self._removed)

    @property
    def total_removed(self) -> int:
        return sum(self._removed.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "removed": dict(self._removed),
            "coercion_failures": dict(self.coercion_failures),
            "imputed": dict(self.imputed),
            "partitions": self.partitions,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemovalReport):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        stages = ", ".join(f"{k}={v}" for k, v in self._removed.items())
        return f"RemovalReport(rows_in={self.rows_in}, rows_out={self.rows_out}, {stages})"


def log_report(report: RemovalReport, log: Optional[logging.Logger] = None) -> None:
    """Report sink: write the run summary to a logger."""
    log = log or logger
    log.info(
        "pipeline finished: %d rows in, %d rows out", report.rows_in, report.rows_out
    )
    for stage, removed in report.removed.items():
        log.info("  %-12s removed %d rows", stage, removed)
    failures = {k: v for k, v in report.coercion_failures.items() if v}
    if failures:
        log.warning("coercion failures (now missing): %s", failures)
    imputed = {k: v for k, v in report.imputed.items() if v}
    if imputed:
        log.info("imputed values: %s", imputed)
    if report.partitions is not None:
        log.info("aggregated into %d partitions", report.partitions)


__all__ = ["StageResult", "RemovalReport", "log_report"]

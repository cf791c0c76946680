"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures.

    ``stage`` is filled in by the orchestrator when the error crosses a stage
    boundary, so callers can tell which step aborted the run.
    """

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ParseError(PipelineError, ValueError):
    """A raw value does not match the grammar of its declared type."""

    def __init__(
        self,
        column: str,
        row: int,
        raw_value: Any,
        expected: str,
        *,
        stage: Optional[str] = None,
    ) -> None:
        self.column = column
        self.row = row
        self.raw_value = raw_value
        self.expected = expected
        super().__init__(
            f"column {column!r} row {row}: cannot parse {raw_value!r} as {expected}",
            stage=stage,
        )


class ConfigurationError(PipelineError, ValueError):
    """The caller asked for something the table cannot provide."""

    def __init__(
        self, message: str, *, name: Optional[str] = None, stage: Optional[str] = None
    ) -> None:
        self.name = name
        super().__init__(message, stage=stage)


class InvariantViolation(PipelineError):
    """A table was about to be built in an inconsistent state."""


__all__ = ["PipelineError", "ParseError", "ConfigurationError", "InvariantViolation"]

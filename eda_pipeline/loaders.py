"""Data source collaborator: delimited text / Excel file -> all-text Table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

import pandas as pd

from .cleaning_utils import map_null_tokens, normalize_text
from .errors import ConfigurationError
from .table import SemanticType, Table

logger = logging.getLogger(__name__)

CSV_SUFFIXES = (".csv", ".tsv", ".txt")
EXCEL_SUFFIXES = (".xlsx", ".xls")


def _read_raw(path: Path, sheet_name: Union[int, str]) -> pd.DataFrame:
    ext = path.suffix.lower()
    if ext in EXCEL_SUFFIXES:
        frame = pd.read_excel(path, sheet_name=sheet_name, dtype=object, na_filter=False)
    elif ext in CSV_SUFFIXES:
        sep = "\t" if ext == ".tsv" else ","
        frame = pd.read_csv(path, sep=sep, dtype=object, na_filter=False)
    else:
        raise ConfigurationError(f"Unsupported file type: {ext}", name=ext)
    # every cell as text; absent cells are empty strings until tokens say otherwise
    frame = frame.astype(object).where(frame.notna(), "")
    return frame.astype(str)


def load_table(
    file_path: Union[str, Path],
    *,
    null_tokens: Optional[Iterable[str]] = None,
    sheet_name: Union[int, str] = 0,
) -> Tuple[Table, Dict[str, int]]:
    """Read a file into a Table whose columns are all text.

    Nothing is treated as missing unless ``null_tokens`` is given; then
    matching cells (case-insensitive, surrounding whitespace ignored) become
    Missing and the per-column hit counts are returned alongside the table.
    """
    path = Path(file_path)
    frame = _read_raw(path, sheet_name)
    tokens = None if null_tokens is None else frozenset(null_tokens)

    columns: Dict[str, pd.Series] = {}
    token_counts: Dict[str, int] = {}
    for name in frame.columns:
        series = normalize_text(frame[name].reset_index(drop=True))
        if tokens is not None:
            series, hits = map_null_tokens(series, tokens)
            if hits:
                token_counts[str(name)] = hits
        columns[str(name)] = series

    table = Table(
        pd.DataFrame(columns, index=pd.RangeIndex(len(frame))),
        {name: SemanticType.TEXT for name in columns},
    )
    logger.info(
        "loaded %s: %d rows x %d columns", path.name, table.num_rows, len(table.columns)
    )
    return table, token_counts


__all__ = ["load_table", "CSV_SUFFIXES", "EXCEL_SUFFIXES"]

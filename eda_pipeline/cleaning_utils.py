"""Text-level cleaning helpers shared by the loader and the coercion stage.

  - Null token vocabulary (NULL_TOKENS) and explicit token -> Missing mapping
  - Whitespace / unicode minus normalization (normalize_text)
  - Lenient numeric parsing of report-style values (normalize_numeric_series)
  - Boolean token vocabulary

None of these run implicitly: the loader maps null tokens only when asked,
and the coercion stage uses the lenient numeric parser only when a column's
spec opts in.
"""

from __future__ import annotations

import re
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

# -----------------------------
# Null tokens (lowercased set)
# -----------------------------
NULL_TOKENS = frozenset(
    {
        "",
        "-",
        "--",
        "—",
        "–",
        "n/a",
        "n.a.",
        "n.a",
        "na",
        "nan",
        "none",
        "null",
        "nil",
        "missing",
        "no data",
        "not available",
        "not applicable",
        "#n/a",
        "#null!",
        "#div/0!",
        "#value!",
        "#ref!",
        "#name?",
        "#num!",
        "(null)",
        "(empty)",
        "(blank)",
        "(na)",
        "(n/a)",
    }
)
_NULL_TOKENS_LOWER = {t.lower() for t in NULL_TOKENS}

TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0"})

CURRENCY_PATTERN = re.compile(
    r"(?:R\$|C\$|A\$|CHF|\$|€|£|¥|₺|₩|₹|₦|₽|₫|₪|₴|₡|₲|₱|₵|₭|₸)"
)
SEPARATORS_PATTERN = re.compile(r"[\u00a0\u2000-\u200b'\s]+")
MAGNITUDE_SUFFIX_PATTERN = re.compile(r"\s*([kKmMbB])\s*$")
_MAGNITUDES = {"k": 1e3, "m": 1e6, "b": 1e9}
_DECIMAL_COMMA = re.compile(r",\d{1,2}$")


def normalize_text(series: pd.Series) -> pd.Series:
    """Fold unicode minus and exotic spaces into ASCII; missing stays missing."""
    s = series.astype("string")
    s = s.str.replace("\u2212", "-", regex=False)
    s = s.str.replace("\u00a0", " ", regex=False)
    s = s.str.replace(r"[\u2000-\u200b]", " ", regex=True)
    return s


def map_null_tokens(
    series: pd.Series, tokens: Iterable[str] = NULL_TOKENS
) -> Tuple[pd.Series, int]:
    """Turn cells matching a null token into Missing; return the hit count."""
    lowered = {t.lower() for t in tokens}
    s = series.astype("string")
    hits = s.str.strip().str.lower().isin(lowered) & s.notna()
    hits = hits.to_numpy(dtype=bool)
    return s.mask(hits), int(hits.sum())


def _as_plain_text(series: pd.Series) -> pd.Series:
    # object dtype with "" for missing keeps every str mask strictly boolean
    s = normalize_text(series).str.strip()
    return s.astype(object).where(s.notna(), "")


def _split_percent(s: pd.Series) -> Tuple[pd.Series, pd.Series]:
    flagged = s.str.contains("%", regex=False)
    return s.str.replace("%", "", regex=False), flagged


def _split_negative(s: pd.Series) -> Tuple[pd.Series, pd.Series]:
    parens = s.str.match(r"^\(.*\)$")
    s = s.mask(parens, s.str.slice(1, -1))
    trailing = s.str.endswith("-") & (s.str.len() > 1)
    s = s.mask(trailing, s.str.slice(0, -1))
    return s, parens | trailing


def _split_magnitude(s: pd.Series) -> Tuple[pd.Series, pd.Series]:
    suffix = s.str.extract(MAGNITUDE_SUFFIX_PATTERN.pattern, expand=False).fillna("")
    multiplier = suffix.str.lower().map(_MAGNITUDES).fillna(1.0).astype(float)
    return s.str.replace(MAGNITUDE_SUFFIX_PATTERN.pattern, "", regex=True), multiplier


def _canonical_decimal(token: str) -> str:
    """Rewrite one token so that '.' is the only decimal mark."""
    dots, commas = token.count("."), token.count(",")
    if dots and commas:
        if token.rfind(".") > token.rfind(","):
            return token.replace(",", "")
        return token.replace(".", "").replace(",", ".")
    if commas:
        if commas == 1 and _DECIMAL_COMMA.search(token):
            return token.replace(",", ".")
        return token.replace(",", "")
    if dots > 1:
        return token.replace(".", "")
    return token


def normalize_numeric_series(series: pd.Series) -> pd.Series:
    """Lenient numeric parse of report-style cells.

    "$1,200" -> 1200.0, "15%" -> 0.15, "(3)" -> -3.0, "2.5K" -> 2500.0,
    "1.234,5" -> 1234.5. Null tokens, unparsable text and non-finite results
    come back as <NA>. Returns a Float64 series aligned with the input.
    """
    s = _as_plain_text(series)
    s = s.mask(s.str.lower().isin(_NULL_TOKENS_LOWER), "")
    s, percent = _split_percent(s)
    s, negative = _split_negative(s)
    s, multiplier = _split_magnitude(s)
    s = s.str.replace(CURRENCY_PATTERN.pattern, "", regex=True)
    s = s.str.replace(SEPARATORS_PATTERN.pattern, "", regex=True)
    s = s.map(_canonical_decimal)
    nums = pd.to_numeric(s.where(s.ne("")), errors="coerce").astype(float)
    nums = nums * multiplier
    nums = nums.mask(negative, -nums)
    nums = nums.mask(percent, nums / 100.0)
    nums = nums.replace([np.inf, -np.inf], np.nan)
    return nums.astype("Float64")


__all__ = [
    "NULL_TOKENS",
    "TRUE_TOKENS",
    "FALSE_TOKENS",
    "normalize_text",
    "map_null_tokens",
    "normalize_numeric_series",
]

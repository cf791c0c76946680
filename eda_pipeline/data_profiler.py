import pandas as pd
import numpy as np
from typing import Dict, Any, List

from .table import NUMERIC_TYPES, TEMPORAL_TYPES, SemanticType, Table


class TableProfiler:
    """EDA summary of a typed Table: per-column stats and quality metrics."""

    def profile_table(self, table: Table) -> Dict[str, Any]:
        """Generate a profile for every column of ``table``."""

        frame = table.to_frame()
        profile = {
            "dataset_info": self._get_dataset_info(table, frame),
            "columns": {},
            "quality_metrics": {},
        }

        for column, semantic_type in table.schema.items():
            profile["columns"][column] = self._profile_column(
                frame[column], semantic_type
            )

        profile["quality_metrics"] = self._calculate_quality_metrics(frame)

        return profile

    def _get_dataset_info(self, table: Table, frame: pd.DataFrame) -> Dict[str, Any]:
        rows = len(frame)
        null_counts = {c: int(n) for c, n in frame.isna().sum().items()}
        return {
            "total_rows": rows,
            "total_columns": len(frame.columns),
            "schema": {c: t.value for c, t in table.schema.items()},
            "null_counts": null_counts,
            "null_percentages": {
                c: (n / rows * 100 if rows else 0.0) for c, n in null_counts.items()
            },
            "fingerprint": table.fingerprint(),
        }

    def _profile_column(
        self, series: pd.Series, semantic_type: SemanticType
    ) -> Dict[str, Any]:
        """Generate detailed profile for single column."""

        rows = len(series)
        missing = int(series.isna().sum())
        unique = int(series.nunique(dropna=True))
        profile = {
            "name": series.name,
            "type": semantic_type.value,
            "missing_count": missing,
            "missing_percentage": missing / rows * 100 if rows else 0.0,
            "unique_count": unique,
            "unique_percentage": unique / rows * 100 if rows else 0.0,
            "most_frequent_values": self._get_most_frequent_values(series),
            "uniqueness_score": self._calculate_uniqueness_score(series),
        }

        if semantic_type in NUMERIC_TYPES:
            profile["statistics"] = self._get_numeric_statistics(series)
        elif semantic_type in TEMPORAL_TYPES:
            profile["statistics"] = self._get_date_statistics(series)
        elif semantic_type in (SemanticType.CATEGORICAL, SemanticType.BOOLEAN):
            profile["statistics"] = self._get_categorical_statistics(series)
        else:
            profile["statistics"] = self._get_text_statistics(series)

        return profile

    def _get_most_frequent_values(
        self, series: pd.Series, top_n: int = 5
    ) -> List[Dict[str, Any]]:
        # stable sort keeps first-seen order among equal counts
        counts = series.dropna().astype(str).value_counts(sort=False)
        counts = counts.sort_values(ascending=False, kind="mergesort")
        rows = len(series)
        return [
            {
                "value": value,
                "count": int(count),
                "percentage": float(count / rows * 100),
            }
            for value, count in counts.head(top_n).items()
        ]

    def _calculate_uniqueness_score(self, series: pd.Series) -> float:
        if len(series) == 0:
            return 0.0
        unique_ratio = series.nunique(dropna=True) / len(series)

        # Score based on uniqueness ratio
        if unique_ratio == 1.0:
            return 100.0
        elif unique_ratio >= 0.9:
            return 90.0
        elif unique_ratio >= 0.7:
            return 70.0
        elif unique_ratio >= 0.5:
            return 50.0
        return unique_ratio * 100

    def _get_numeric_statistics(self, series: pd.Series) -> Dict[str, Any]:
        values = series.dropna().to_numpy(dtype=float)

        if len(values) == 0:
            return {"error": "No valid numeric values"}

        return {
            "min": float(values.min()),
            "max": float(values.max()),
            "mean": float(values.mean()),
            "median": float(np.median(values)),
            "std": float(values.std(ddof=1)) if len(values) > 1 else 0.0,
        }

    def _get_date_statistics(self, series: pd.Series) -> Dict[str, Any]:
        clean_series = series.dropna()

        if len(clean_series) == 0:
            return {"error": "No valid date values"}

        min_v = clean_series.min()
        max_v = clean_series.max()
        return {
            "min_date": str(min_v),
            "max_date": str(max_v),
            "date_range_days": int((max_v - min_v).days),
        }

    def _get_categorical_statistics(self, series: pd.Series) -> Dict[str, Any]:
        clean_series = series.dropna()

        if len(clean_series) == 0:
            return {"error": "No valid categorical values"}

        frequent = self._get_most_frequent_values(clean_series, top_n=1)
        return {
            "categories": int(clean_series.nunique()),
            "most_common": frequent[0]["value"],
        }

    def _get_text_statistics(self, series: pd.Series) -> Dict[str, Any]:
        clean_series = series.dropna()

        if len(clean_series) == 0:
            return {"error": "No valid text values"}

        text_lengths = clean_series.astype(str).str.len()

        return {
            "mean_length": float(text_lengths.mean()),
            "max_length": int(text_lengths.max()),
        }

    def _calculate_quality_metrics(self, frame: pd.DataFrame) -> Dict[str, float]:
        metrics = {
            "completeness_score": 0.0,
            "uniqueness_score": 0.0,
            "overall_score": 0.0,
        }
        if frame.size == 0:
            return metrics

        null_cells = int(frame.isna().sum().sum())
        metrics["completeness_score"] = (frame.size - null_cells) / frame.size * 100

        uniqueness_scores = [
            self._calculate_uniqueness_score(frame[c]) for c in frame.columns
        ]
        metrics["uniqueness_score"] = float(np.mean(uniqueness_scores))

        # Weighted average
        overall = (
            metrics["completeness_score"] * 0.6 + metrics["uniqueness_score"] * 0.4
        )
        metrics["overall_score"] = max(0.0, min(100.0, overall))

        return metrics

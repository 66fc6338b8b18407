"""Shape and quality checks on query results before they are rendered."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_LARGE_RESULT_ROWS = 1000
DEFAULT_NULL_RATIO_WARNING = 0.5
DEFAULT_CHART_MAX_ROWS = 1000
DEFAULT_CHART_NULL_THRESHOLD = 0.5

# Largest integer a JavaScript chart client represents exactly.
MAX_SAFE_INTEGER = 2**53 - 1


@dataclass(frozen=True)
class QueryResultCheck:
    is_valid: bool
    is_empty: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "isValid": self.is_valid,
            "isEmpty": self.is_empty,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ChartDataCheck:
    is_valid: bool
    cleaned_data: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "isValid": self.is_valid,
            "cleanedData": [dict(row) for row in self.cleaned_data],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _row_values(row: object) -> list[Any]:
    if isinstance(row, Mapping):
        return list(row.values())
    if isinstance(row, Sequence) and not isinstance(row, (str, bytes)):
        return list(row)
    return [row]


def validate_query_result(
    result: Mapping[str, Any] | None,
    *,
    large_result_rows: int = DEFAULT_LARGE_RESULT_ROWS,
    null_ratio_warning: float = DEFAULT_NULL_RATIO_WARNING,
) -> QueryResultCheck:
    """Check that a query result has rows and columns worth rendering."""
    if result is None:
        return QueryResultCheck(is_valid=False, is_empty=True, errors=["Query result is empty."])

    rows = result.get("rows")
    if not isinstance(rows, list):
        return QueryResultCheck(
            is_valid=False,
            is_empty=False,
            errors=["Query result rows is not a list."],
        )
    if not rows:
        return QueryResultCheck(is_valid=False, is_empty=True, errors=["Query returned no data."])

    columns = result.get("columns")
    if not isinstance(columns, list) or not columns:
        return QueryResultCheck(
            is_valid=False,
            is_empty=False,
            errors=["Query result is missing column information."],
        )

    warnings: list[str] = []
    if len(rows) > large_result_rows:
        warnings.append(
            f"Large result set: {len(rows)} rows returned; consider adding filters or a LIMIT."
        )

    total_cells = 0
    null_cells = 0
    for row in rows:
        values = _row_values(row)
        total_cells += len(values)
        null_cells += sum(1 for value in values if value is None)
    if total_cells and null_cells / total_cells > null_ratio_warning:
        warnings.append(
            f"High NULL ratio: {null_cells / total_cells:.0%} of result cells are NULL."
        )

    logger.debug("Query result checked: rows=%d warnings=%d", len(rows), len(warnings))
    return QueryResultCheck(is_valid=True, is_empty=False, warnings=warnings)


def _sample_evenly(rows: list[dict[str, Any]], max_rows: int) -> list[dict[str, Any]]:
    step = len(rows) / max_rows
    return [rows[int(index * step)] for index in range(max_rows)]


def validate_and_clean_chart_data(
    rows: object,
    *,
    remove_null_rows: bool = True,
    null_threshold: float = DEFAULT_CHART_NULL_THRESHOLD,
    max_rows: int = DEFAULT_CHART_MAX_ROWS,
) -> ChartDataCheck:
    """Return a cleaned copy of result rows that a chart can plot."""
    if not isinstance(rows, list):
        return ChartDataCheck(is_valid=False, errors=["Data is not a list."])
    if not rows:
        return ChartDataCheck(is_valid=False, errors=["Data is empty."])

    warnings: list[str] = []
    cleaned: list[dict[str, Any]] = []
    dropped = 0
    replaced_nan = False
    replaced_infinity = False

    for row in rows:
        if not isinstance(row, Mapping):
            dropped += 1
            continue
        copy: dict[str, Any] = {}
        for key, value in row.items():
            if isinstance(value, float) and math.isnan(value):
                value = 0
                replaced_nan = True
            elif isinstance(value, float) and math.isinf(value):
                value = MAX_SAFE_INTEGER if value > 0 else -MAX_SAFE_INTEGER
                replaced_infinity = True
            copy[key] = value
        cleaned.append(copy)

    if dropped:
        warnings.append(f"Dropped {dropped} row(s) that are not objects.")
    if replaced_nan:
        warnings.append("NaN values were replaced with 0.")
    if replaced_infinity:
        warnings.append("Infinite values were replaced with the largest safe integer.")

    if remove_null_rows:
        kept = [
            row
            for row in cleaned
            if not row or sum(1 for value in row.values() if value is None) / len(row) <= null_threshold
        ]
        if len(kept) < len(cleaned):
            warnings.append(
                f"Removed {len(cleaned) - len(kept)} row(s) with more than "
                f"{null_threshold:.0%} NULL values."
            )
        cleaned = kept

    if len(cleaned) > max_rows:
        warnings.append(f"Sampled {max_rows} of {len(cleaned)} rows for charting.")
        cleaned = _sample_evenly(cleaned, max_rows)

    if cleaned and len(cleaned[0]) < 2:
        warnings.append("Data has fewer than 2 columns; a chart may not be meaningful.")

    if not cleaned:
        return ChartDataCheck(
            is_valid=False,
            errors=["No data left after cleaning."],
            warnings=warnings,
        )

    logger.debug("Chart data cleaned: rows=%d warnings=%d", len(cleaned), len(warnings))
    return ChartDataCheck(is_valid=True, cleaned_data=cleaned, warnings=warnings)

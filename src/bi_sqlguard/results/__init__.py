"""Query result and chart data checks."""

from bi_sqlguard.results.validator import (
    ChartDataCheck,
    QueryResultCheck,
    validate_and_clean_chart_data,
    validate_query_result,
)

__all__ = [
    "ChartDataCheck",
    "QueryResultCheck",
    "validate_and_clean_chart_data",
    "validate_query_result",
]

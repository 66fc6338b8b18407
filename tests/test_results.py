"""Tests for query result and chart data checks."""

from __future__ import annotations

import math

from bi_sqlguard.results import validate_and_clean_chart_data, validate_query_result
from bi_sqlguard.results.validator import MAX_SAFE_INTEGER
from bi_sqlguard.sql import SQLValidator


class TestValidateQueryResult:
    """Tests for validate_query_result."""

    def test_valid_result(self):
        """Rows with column information pass without errors."""
        result = validate_query_result(
            {
                "columns": ["name", "value"],
                "rows": [
                    {"name": "A", "value": 10},
                    {"name": "B", "value": 20},
                    {"name": "C", "value": 30},
                ],
            }
        )
        assert result.is_valid is True
        assert result.is_empty is False
        assert result.errors == []

    def test_none_result(self):
        """A missing result is empty and invalid."""
        result = validate_query_result(None)
        assert result.is_valid is False
        assert result.is_empty is True
        assert "Query result is empty." in result.errors

    def test_rows_not_a_list(self):
        """Malformed rows are rejected."""
        result = validate_query_result({"rows": "not-array"})
        assert result.is_valid is False
        assert any("is not a list" in error for error in result.errors)

    def test_no_rows(self):
        """An empty row list is empty and invalid."""
        result = validate_query_result({"columns": ["name", "value"], "rows": []})
        assert result.is_valid is False
        assert result.is_empty is True
        assert any("no data" in error for error in result.errors)

    def test_missing_columns(self):
        """Rows without column information are rejected."""
        result = validate_query_result({"columns": [], "rows": [{"name": "A", "value": 10}]})
        assert result.is_valid is False
        assert any("missing column information" in error for error in result.errors)

    def test_large_result_warning(self):
        """More rows than the threshold warns but stays valid."""
        rows = [{"name": f"Item {i}", "value": i} for i in range(1500)]
        result = validate_query_result({"columns": ["name", "value"], "rows": rows})
        assert result.is_valid is True
        assert any("Large result set" in warning for warning in result.warnings)

    def test_large_result_threshold_is_configurable(self):
        """large_result_rows moves the warning threshold."""
        rows = [{"value": i} for i in range(20)]
        result = validate_query_result({"columns": ["value"], "rows": rows}, large_result_rows=10)
        assert any("Large result set" in warning for warning in result.warnings)

    def test_high_null_ratio_warning(self):
        """More than half NULL cells warns."""
        rows = [
            {"name": None if i < 6 else f"Item {i}", "value": None if i < 6 else i}
            for i in range(10)
        ]
        result = validate_query_result({"columns": ["name", "value"], "rows": rows})
        assert result.is_valid is True
        assert any("High NULL ratio" in warning for warning in result.warnings)

    def test_to_dict(self):
        """to_dict uses camelCase keys."""
        payload = validate_query_result(None).to_dict()
        assert payload == {
            "isValid": False,
            "isEmpty": True,
            "errors": ["Query result is empty."],
            "warnings": [],
        }


class TestValidateAndCleanChartData:
    """Tests for validate_and_clean_chart_data."""

    def test_valid_data(self):
        """Clean rows pass through unchanged."""
        data = [{"name": "A", "value": 10}, {"name": "B", "value": 20}, {"name": "C", "value": 30}]
        result = validate_and_clean_chart_data(data)
        assert result.is_valid is True
        assert result.cleaned_data == data
        assert result.errors == []

    def test_not_a_list(self):
        """Non-list input is rejected."""
        result = validate_and_clean_chart_data(None)
        assert result.is_valid is False
        assert "Data is not a list." in result.errors

    def test_empty_list(self):
        """An empty list is rejected."""
        result = validate_and_clean_chart_data([])
        assert result.is_valid is False
        assert "Data is empty." in result.errors

    def test_null_values_kept_when_not_removing(self):
        """remove_null_rows=False keeps sparse rows."""
        data = [{"name": "A", "value": 10}, {"name": "B", "value": None}, {"name": "C", "value": 30}]
        result = validate_and_clean_chart_data(data, remove_null_rows=False)
        assert result.is_valid is True
        assert len(result.cleaned_data) == 3

    def test_null_heavy_rows_removed(self):
        """Rows above the NULL threshold are dropped with a warning."""
        data = [
            {"name": "A", "value": 10, "other": 20},
            {"name": None, "value": None, "other": None},
            {"name": "C", "value": 30, "other": 40},
        ]
        result = validate_and_clean_chart_data(data, remove_null_rows=True, null_threshold=0.5)
        assert result.is_valid is True
        assert len(result.cleaned_data) == 2
        assert result.warnings

    def test_row_at_threshold_is_kept(self):
        """Exactly threshold NULL share is not removed."""
        data = [{"name": "A", "value": None}, {"name": "B", "value": 2}]
        result = validate_and_clean_chart_data(data, null_threshold=0.5)
        assert len(result.cleaned_data) == 2

    def test_nan_replaced_with_zero(self):
        """NaN becomes 0."""
        data = [{"name": "A", "value": 10}, {"name": "B", "value": math.nan}]
        result = validate_and_clean_chart_data(data)
        assert result.is_valid is True
        row = next(row for row in result.cleaned_data if row["name"] == "B")
        assert row["value"] == 0

    def test_infinity_replaced_with_safe_integer(self):
        """Infinities become the largest safe integer with the same sign."""
        data = [{"name": "A", "value": math.inf}, {"name": "B", "value": -math.inf}]
        result = validate_and_clean_chart_data(data)
        assert result.is_valid is True
        assert result.cleaned_data[0]["value"] == MAX_SAFE_INTEGER
        assert result.cleaned_data[1]["value"] == -MAX_SAFE_INTEGER
        assert MAX_SAFE_INTEGER == 9007199254740991

    def test_input_is_not_mutated(self):
        """Cleaning works on copies."""
        data = [{"name": "A", "value": math.inf}, {"name": "B", "value": 1}]
        validate_and_clean_chart_data(data)
        assert data[0]["value"] == math.inf

    def test_large_data_is_sampled(self):
        """More than max_rows rows are sampled down with a warning."""
        data = [{"name": f"Item {i}", "value": i} for i in range(2000)]
        result = validate_and_clean_chart_data(data, max_rows=1000)
        assert result.is_valid is True
        assert len(result.cleaned_data) == 1000
        assert result.cleaned_data[0]["value"] == 0
        assert result.warnings

    def test_single_column_warning(self):
        """Fewer than 2 columns warns."""
        result = validate_and_clean_chart_data([{"name": "A"}, {"name": "B"}])
        assert result.is_valid is True
        assert any("fewer than 2 columns" in warning for warning in result.warnings)

    def test_non_mapping_rows_dropped(self):
        """Rows that are not objects are dropped with a warning."""
        result = validate_and_clean_chart_data([{"name": "A", "value": 1}, "junk", 3])
        assert result.is_valid is True
        assert len(result.cleaned_data) == 1
        assert any("not objects" in warning for warning in result.warnings)

    def test_nothing_left_is_invalid(self):
        """If cleaning removes every row the data is invalid."""
        result = validate_and_clean_chart_data([{"name": None, "value": None}])
        assert result.is_valid is False
        assert result.cleaned_data == []


class TestQueryFlow:
    """Validate SQL, validate schema, check the result, clean for a chart."""

    def test_full_flow(self, sales_schema):
        """A clean query passes every stage."""
        sql = "SELECT product, amount FROM sales"
        assert SQLValidator.validate(sql).valid is True
        assert SQLValidator.validate_schema(sql, sales_schema).valid is True

        query_result = {
            "columns": ["product", "amount"],
            "rows": [
                {"product": "Product A", "amount": 100},
                {"product": "Product B", "amount": 200},
                {"product": "Product C", "amount": 300},
            ],
        }
        assert validate_query_result(query_result).is_valid is True
        chart = validate_and_clean_chart_data(query_result["rows"])
        assert chart.is_valid is True
        assert len(chart.cleaned_data) == 3

    def test_flow_with_null_values(self, sales_schema):
        """Sparse rows survive the result check and are cleaned for charting."""
        sql = "SELECT product, amount, date FROM sales WHERE amount > 0 ORDER BY date"
        assert SQLValidator.validate(sql).valid is True
        assert SQLValidator.validate_schema(sql, sales_schema).valid is True

        rows = [
            {"product": "Product A", "amount": 100, "date": "2024-01-01"},
            {"product": None, "amount": None, "date": None},
            {"product": "Product C", "amount": 300, "date": "2024-01-03"},
        ]
        assert validate_query_result({"columns": ["product", "amount", "date"], "rows": rows}).is_valid is True
        chart = validate_and_clean_chart_data(rows)
        assert len(chart.cleaned_data) == 2

    def test_flow_stops_on_bad_column(self, sales_schema):
        """A schema miss stops the flow before execution."""
        sql = "SELECT product, revenue FROM sales"
        assert SQLValidator.validate(sql).valid is True
        result = SQLValidator.validate_schema(sql, sales_schema)
        assert result.valid is False
        assert [item.column for item in result.invalid_columns] == ["revenue"]

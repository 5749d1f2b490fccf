"""
Unit tests for schema inference.
"""
import pytest
import numpy as np
from datetime import date, datetime
from chartsmith.services.profiler import (
    CATEGORICAL_CARDINALITY_LIMIT,
    analyze_column,
    analyze_dataset,
    coerce_number,
    get_categorical_columns,
    get_datetime_columns,
    get_numeric_columns,
    infer_column_type,
)
from chartsmith.core.schemas import DatasetSchema


@pytest.mark.unit
def test_analyze_dataset_basic(sales_rows):
    """Test inferring a schema from simple records."""
    schema = analyze_dataset(sales_rows, "sales.csv", "csv")

    assert isinstance(schema, DatasetSchema)
    assert schema.row_count == 4
    assert schema.file_name == "sales.csv"
    assert schema.file_type == "csv"
    assert [c.name for c in schema.columns] == ["Month", "Region", "Sales"]
    assert [c.type for c in schema.columns] == ["datetime", "string", "number"]

    region = schema.column("Region")
    assert region.unique_count == 3
    assert region.null_count == 0
    assert region.null_ratio == 0.0
    assert region.sample_values == ["North", "South", "East"]


@pytest.mark.unit
def test_analyze_dataset_empty():
    """Test that no rows give an empty schema."""
    schema = analyze_dataset([], "empty.csv", "csv")

    assert schema.columns == []
    assert schema.row_count == 0


@pytest.mark.unit
def test_analyze_dataset_is_idempotent(product_rows):
    """Test that analyzing the same rows twice gives equal schemas."""
    first = analyze_dataset(product_rows, "products.json", "json")
    second = analyze_dataset(product_rows, "products.json", "json")

    assert first == second


@pytest.mark.unit
def test_columns_come_from_first_row():
    """Test that later rows missing a key count as nulls."""
    rows = [{"a": 1, "b": "x"}, {"a": 2}, {"a": 3, "b": "y"}]
    schema = analyze_dataset(rows, "t.json", "json")

    b = schema.column("b")
    assert b.null_count == 1
    assert b.null_ratio == pytest.approx(1 / 3)


@pytest.mark.unit
def test_numeric_strings_with_thousands_separators():
    """Test that formatted numbers are numeric and samples are coerced."""
    column = analyze_column("Revenue", ["1,250", "3,400.5", "12"])

    assert column.type == "number"
    assert column.sample_values == [1250, 3400.5, 12]


@pytest.mark.unit
def test_iso_dates_are_not_numbers():
    """Test that ISO dates are not parsed as numbers."""
    assert coerce_number("2024-01-01") is None
    assert infer_column_type(["2024-01-01", "2024-02-01"]) == "datetime"


@pytest.mark.unit
def test_boolean_detection():
    """Test boolean values and boolean tokens."""
    assert infer_column_type([True, False, None]) == "boolean"
    assert infer_column_type(["true", "False", "True"]) == "boolean"
    assert infer_column_type([np.bool_(True), np.bool_(False)]) == "boolean"
    # The token set includes "0" and "1"
    assert infer_column_type(["0", "1", "1"]) == "boolean"
    # Native integers are numbers
    assert infer_column_type([0, 1, 1]) == "number"


@pytest.mark.unit
def test_booleans_are_not_numbers():
    assert coerce_number(True) is None
    assert infer_column_type([True, 2, 3]) == "string"


@pytest.mark.unit
def test_null_handling():
    """Test that None, NaN and empty strings are nulls."""
    column = analyze_column("value", [None, "", float("nan"), 5])

    assert column.type == "number"
    assert column.null_count == 3
    assert column.null_ratio == 0.75
    assert column.unique_count == 1


@pytest.mark.unit
def test_all_null_column_is_unknown():
    column = analyze_column("empty", [None, "", None])

    assert column.type == "unknown"
    assert column.sample_values == []
    assert column.unique_count == 0


@pytest.mark.unit
@pytest.mark.parametrize("values", [
    ["01/15/2024", "02/20/2024"],
    ["15.01.2024", "20.02.2024"],
    ["2024/01/15", "2024/02/20"],
    ["2024-01-15T10:30:00", "2024-02-20T08:00:00"],
    ["March 3, 2024", "April 4, 2024"],
])
def test_date_formats(values):
    """Test the recognized date orderings and parseable date strings."""
    assert infer_column_type(values) == "datetime"


@pytest.mark.unit
def test_date_objects():
    assert infer_column_type([datetime(2024, 1, 1), date(2024, 2, 1)]) == "datetime"


@pytest.mark.unit
def test_datetime_threshold():
    """Test that 80% date-like values are enough, 60% are not."""
    four_of_five = ["2024-01-01", "2024-02-01", "2024-03-01", "2024-04-01", "n/a"]
    three_of_five = ["2024-01-01", "2024-02-01", "2024-03-01", "foo", "bar"]

    assert infer_column_type(four_of_five) == "datetime"
    assert infer_column_type(three_of_five) == "string"


@pytest.mark.unit
def test_short_labels_are_strings():
    assert infer_column_type(["North", "South", "May"]) == "string"


@pytest.mark.unit
def test_sample_values_distinct_first_seen():
    """Test that samples keep at most five distinct values in first-seen order."""
    column = analyze_column("letter", ["a", "b", "a", "c", "d", "e", "f"])

    assert column.sample_values == ["a", "b", "c", "d", "e"]
    assert column.unique_count == 6


@pytest.mark.unit
def test_column_role_helpers(sales_schema):
    """Test numeric, categorical and datetime helpers."""
    assert [c.name for c in get_numeric_columns(sales_schema)] == ["Sales"]
    assert [c.name for c in get_categorical_columns(sales_schema)] == ["Region"]
    assert [c.name for c in get_datetime_columns(sales_schema)] == ["Month"]


@pytest.mark.unit
def test_high_cardinality_strings_are_not_categorical():
    """Test that free-text columns are excluded from categorical columns."""
    rows = [{"id_text": f"item-{i}", "value": i} for i in range(CATEGORICAL_CARDINALITY_LIMIT)]
    schema = analyze_dataset(rows, "t.csv", "csv")

    assert schema.column("id_text").type == "string"
    assert schema.column("id_text").unique_count == CATEGORICAL_CARDINALITY_LIMIT
    assert get_categorical_columns(schema) == []

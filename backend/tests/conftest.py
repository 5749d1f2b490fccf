"""
Shared fixtures: two small datasets and their inferred schemas.
"""
import pytest
from chartsmith.services.profiler import analyze_dataset


@pytest.fixture
def sales_rows():
    """Monthly sales: one datetime, one categorical and one numeric column."""
    return [
        {"Month": "2024-01-01", "Region": "North", "Sales": 100},
        {"Month": "2024-02-01", "Region": "South", "Sales": 150},
        {"Month": "2024-03-01", "Region": "East", "Sales": 200},
        {"Month": "2024-04-01", "Region": "North", "Sales": 250},
    ]


@pytest.fixture
def sales_schema(sales_rows):
    return analyze_dataset(sales_rows, "sales.csv", "csv")


@pytest.fixture
def product_rows():
    """Two categorical and three numeric columns, no dates."""
    return [
        {"Category": "Electronics", "Channel": "Online", "Sales": 1200, "Quantity": 4, "Price": 300.0},
        {"Category": "Furniture", "Channel": "Store", "Sales": 800, "Quantity": 2, "Price": 400.0},
        {"Category": "Clothing", "Channel": "Online", "Sales": 300, "Quantity": 10, "Price": 30.0},
        {"Category": "Electronics", "Channel": "Store", "Sales": 900, "Quantity": 3, "Price": 300.0},
        {"Category": "Clothing", "Channel": "Store", "Sales": 150, "Quantity": 5, "Price": 30.0},
    ]


@pytest.fixture
def product_schema(product_rows):
    return analyze_dataset(product_rows, "products.json", "json")

import logging
import math
import re
import numbers
from datetime import date, datetime
import numpy as np
import pandas as pd
from chartsmith.core.schemas import ColumnSchema, ColumnType, DatasetSchema
from chartsmith.core.performance import track_performance
from typing import Any, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Distinct-value ceiling for a string column to count as categorical.
# Columns at or above it are free text and never used for grouping or color.
CATEGORICAL_CARDINALITY_LIMIT = 50

SAMPLE_SIZE = 5

# Share of non-null values that must look like dates for a datetime column
DATETIME_MATCH_RATIO = 0.8

BOOLEAN_TOKENS = {"true", "false", "True", "False", "0", "1"}

DATE_PATTERNS = [
    re.compile(r'^\d{4}-\d{2}-\d{2}'),    # ISO
    re.compile(r'^\d{2}/\d{2}/\d{4}'),    # US
    re.compile(r'^\d{2}\.\d{2}\.\d{4}'),  # EU
    re.compile(r'^\d{4}/\d{2}/\d{2}'),    # Japan
]


def is_null(value: Any) -> bool:
    """None, NaN/NaT and the empty string all count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # list-like cells from JSON sources
        return False


def coerce_number(value: Any) -> Optional[Union[int, float]]:
    """
    Convert a cell to a number, or None if it is not numeric.

    Native ints and floats pass through (booleans do not). Strings are parsed
    after stripping thousands separators, e.g. "1,250.5" -> 1250.5.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, numbers.Number):
        if isinstance(value, numbers.Integral):
            return int(value)
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.replace(",", "").strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        if number.is_integer() and re.fullmatch(r'[+-]?\d+', text):
            return int(text)
        return number
    return None


def is_boolean_like(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return True
    return isinstance(value, str) and value in BOOLEAN_TOKENS


def looks_like_date(value: Any) -> bool:
    """
    Check whether a cell holds a date.

    Date objects always count. Strings count when they match one of the
    ISO/US/EU/Japanese orderings, or when pandas can parse them. The parse
    fallback is limited to strings with a digit and at least 6 characters so
    that short labels ("A", "May") are not read as dates.
    """
    if isinstance(value, (datetime, date)):
        return True
    if not isinstance(value, str):
        return False
    text = value.strip()
    if any(pattern.match(text) for pattern in DATE_PATTERNS):
        return True
    if len(text) < 6 or not any(ch.isdigit() for ch in text):
        return False
    try:
        return not pd.isna(pd.to_datetime(text, errors='coerce'))
    except (ValueError, TypeError, OverflowError):
        return False


def infer_column_type(values: Sequence[Any]) -> ColumnType:
    non_null = [v for v in values if not is_null(v)]

    if not non_null:
        return 'unknown'

    if all(is_boolean_like(v) for v in non_null):
        return 'boolean'

    if all(coerce_number(v) is not None for v in non_null):
        return 'number'

    date_count = sum(1 for v in non_null if looks_like_date(v))
    if date_count >= len(non_null) * DATETIME_MATCH_RATIO:
        return 'datetime'

    return 'string'


def _distinct_key(value: Any) -> Any:
    # Keeps 1, 1.0, True and "1" apart and tolerates unhashable cells
    try:
        hash(value)
        return (type(value).__name__, value)
    except TypeError:
        return (type(value).__name__, repr(value))


def analyze_column(name: str, values: Sequence[Any]) -> ColumnSchema:
    """Build the schema of one column from every one of its values."""
    column_type = infer_column_type(values)

    null_count = 0
    seen = set()
    distinct: List[Any] = []
    for value in values:
        if is_null(value):
            null_count += 1
            continue
        key = _distinct_key(value)
        if key not in seen:
            seen.add(key)
            distinct.append(value)

    samples = distinct[:SAMPLE_SIZE]
    if column_type == 'number':
        samples = [coerce_number(v) for v in samples]

    total = len(values)
    return ColumnSchema(
        name=name,
        type=column_type,
        sample_values=samples,
        unique_count=len(distinct),
        null_count=null_count,
        null_ratio=null_count / total if total > 0 else 0.0,
    )


@track_performance("analyze_dataset")
def analyze_dataset(rows: List[Dict[str, Any]], file_name: str, file_type: str) -> DatasetSchema:
    """
    Infer a typed schema from raw records.

    Columns are the keys of the first row, in order; every row contributes
    to each column (a missing key reads as null). An empty row list yields an
    empty schema.
    """
    if not rows:
        return DatasetSchema(columns=[], row_count=0, file_name=file_name, file_type=file_type)

    columns = [
        analyze_column(name, [row.get(name) for row in rows])
        for name in rows[0].keys()
    ]

    logger.debug(
        f"Inferred schema for {file_name}: "
        + ", ".join(f"{c.name}:{c.type}" for c in columns)
    )

    return DatasetSchema(
        columns=columns,
        row_count=len(rows),
        file_name=file_name,
        file_type=file_type,
    )


def is_categorical(column: Optional[ColumnSchema]) -> bool:
    return (
        column is not None
        and column.type == 'string'
        and column.unique_count < CATEGORICAL_CARDINALITY_LIMIT
    )


def get_numeric_columns(schema: DatasetSchema) -> List[ColumnSchema]:
    return [c for c in schema.columns if c.type == 'number']


def get_categorical_columns(schema: DatasetSchema) -> List[ColumnSchema]:
    return [c for c in schema.columns if is_categorical(c)]


def get_datetime_columns(schema: DatasetSchema) -> List[ColumnSchema]:
    return [c for c in schema.columns if c.type == 'datetime']

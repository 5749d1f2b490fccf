"""
Natural language insights generation.

Computes descriptive statistics over one measure column and phrases the
notable findings (extremes, trend, outliers, spread, leading category).
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import numpy as np

from chartsmith.core.performance import track_performance
from chartsmith.core.schemas import DatasetSchema, Insight
from chartsmith.services.profiler import coerce_number, get_numeric_columns, is_categorical, is_null

logger = logging.getLogger(__name__)

# Slope beyond this share of the mean (per row) counts as a trend
TREND_THRESHOLD = 0.1
OUTLIER_SIGMAS = 2
HIGH_VARIABILITY_RATIO = 0.5

Number = Union[int, float]


@dataclass(frozen=True)
class DataStats:
    min: Number
    max: Number
    mean: float
    median: float
    std_dev: float
    trend: str
    outliers: List[Number]


def calculate_stats(values: List[Number]) -> DataStats:
    """
    Summarize a non-empty list of numbers.

    Standard deviation is the population one. The trend is the sign of the
    least-squares slope over row position, relative to the mean. Outliers are
    values further than two standard deviations from the median; the median
    keeps a single extreme value from dragging the center towards itself.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)

    mean = float(arr.mean())
    median = float(np.median(arr))
    std_dev = float(arr.std())

    index = np.arange(n, dtype=float)
    denominator = n * float((index ** 2).sum()) - float(index.sum()) ** 2
    if denominator == 0:
        slope = 0.0
    else:
        slope = (n * float((index * arr).sum()) - float(index.sum()) * float(arr.sum())) / denominator

    if slope > TREND_THRESHOLD * mean:
        trend = 'increasing'
    elif slope < -TREND_THRESHOLD * mean:
        trend = 'decreasing'
    else:
        trend = 'stable'

    outliers = [v for v in values if abs(v - median) > OUTLIER_SIGMAS * std_dev]

    return DataStats(
        min=min(values),
        max=max(values),
        mean=mean,
        median=median,
        std_dev=std_dev,
        trend=trend,
        outliers=outliers,
    )


def format_number(num: Number) -> str:
    """
    Format a number for display: 1.2M, 3.4K, 42, 3.14.
    """
    if abs(num) >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if abs(num) >= 1_000:
        return f"{num / 1_000:.1f}K"
    if float(num).is_integer():
        return str(int(num))
    return f"{num:.2f}"


def _numeric_values(data: List[Dict[str, Any]], column: str) -> List[Number]:
    values = []
    for row in data:
        number = coerce_number(row.get(column))
        if number is not None:
            values.append(number)
    return values


def _top_category(data: List[Dict[str, Any]], category: str, measure: str):
    totals: Dict[str, Number] = {}
    for row in data:
        key = row.get(category)
        value = coerce_number(row.get(measure))
        if is_null(key) or value is None:
            continue
        key = str(key)
        totals[key] = totals.get(key, 0) + value

    if not totals:
        return None
    # sorted() is stable: equal totals keep first-seen order
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)[0]


@track_performance("generate_insights")
def generate_insights(
    data: List[Dict[str, Any]],
    schema: DatasetSchema,
    x_field: Optional[str] = None,
    y_field: Optional[str] = None,
) -> List[Insight]:
    """
    Generate insights about one measure.

    Args:
        data: Dataset rows
        schema: Schema of the rows
        x_field: Dimension currently in view; enables the trend and
            top-category insights
        y_field: Measure to analyze; the first numeric column is used when
            it is missing or not numeric

    Returns:
        Insights in fixed order (max, min, trend, outliers, variability,
        top category), or an empty list when there is nothing to measure
    """
    if not data:
        return []

    numeric = get_numeric_columns(schema)
    target = next((c for c in numeric if c.name == y_field), None)
    if target is None:
        target = numeric[0] if numeric else None
    if target is None:
        return []

    values = _numeric_values(data, target.name)
    if not values:
        return []

    stats = calculate_stats(values)
    name = target.name
    insights = [
        Insight(
            type='max',
            title='Highest Value',
            description=f"The maximum {name} is {format_number(stats.max)}",
            value=stats.max,
        ),
        Insight(
            type='min',
            title='Lowest Value',
            description=f"The minimum {name} is {format_number(stats.min)}",
            value=stats.min,
        ),
    ]

    if x_field:
        titles = {
            'increasing': ('Upward Trend', f"{name} shows an upward trend over {x_field}"),
            'decreasing': ('Downward Trend', f"{name} shows a downward trend over {x_field}"),
            'stable': ('Stable Pattern', f"{name} remains relatively stable over {x_field}"),
        }
        title, description = titles[stats.trend]
        insights.append(Insight(type='trend', title=title, description=description))

    if stats.outliers:
        count = len(stats.outliers)
        insights.append(Insight(
            type='outlier',
            title='Outliers Detected',
            description=(
                f"Found {count} outlier{'s' if count > 1 else ''} "
                f"far from the typical value of {format_number(stats.median)}"
            ),
            value=count,
        ))

    if stats.mean != 0:
        spread_ratio = stats.std_dev / stats.mean
    else:
        spread_ratio = math.inf if stats.std_dev > 0 else 0.0

    if spread_ratio > HIGH_VARIABILITY_RATIO:
        insights.append(Insight(
            type='distribution',
            title='High Variability',
            description=f"{name} values vary widely (range: {format_number(stats.max - stats.min)})",
        ))
    else:
        insights.append(Insight(
            type='distribution',
            title='Low Variability',
            description=f"{name} values are fairly consistent around {format_number(stats.mean)}",
        ))

    if is_categorical(schema.column(x_field)):
        top = _top_category(data, x_field, name)
        if top is not None:
            category, total = top
            insights.append(Insight(
                type='comparison',
                title='Top Performer',
                description=f'"{category}" leads with {format_number(total)} total {name}',
                value=total,
            ))

    logger.debug(f"Generated {len(insights)} insights for {name}")
    return insights

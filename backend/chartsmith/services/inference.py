"""
Chart inference service.

Scores a fixed catalog of chart archetypes against a dataset schema and
turns every suitable archetype into a ranked recommendation carrying a
compiled Vega-Lite spec. Scoring is deterministic: it only looks at how many
numeric, categorical and datetime columns the schema has.
"""
import logging
from typing import Any, Dict, List, Sequence

from chartsmith.core.performance import track_performance
from chartsmith.core.schemas import (
    ChartArchetype,
    ChartRecommendation,
    ChartRequirements,
    DatasetSchema,
    FieldBindings,
)
from chartsmith.services.generator import compile_spec
from chartsmith.services.profiler import (
    get_categorical_columns,
    get_datetime_columns,
    get_numeric_columns,
)

logger = logging.getLogger(__name__)

BASE_SCORE = 50
EXACT_MATCH_BONUS = 10
MAX_SCORE = 100


def _archetype(type_, name, description, category, numeric, categorical, datetime=False):
    return ChartArchetype(
        type=type_,
        name=name,
        description=description,
        category=category,
        requirements=ChartRequirements(
            min_numeric=numeric,
            min_categorical=categorical,
            needs_datetime=datetime,
        ),
    )


CHART_CATALOG: List[ChartArchetype] = [
    _archetype('bar', 'Bar Chart', 'Compare values across categories', 'comparison', 1, 1),
    _archetype('bar-horizontal', 'Horizontal Bar Chart', 'Compare values with long category labels', 'comparison', 1, 1),
    _archetype('bar-stacked', 'Stacked Bar Chart', 'Show composition within categories', 'composition', 1, 2),
    _archetype('line', 'Line Chart', 'Show trends over time', 'trend', 1, 0, datetime=True),
    _archetype('area', 'Area Chart', 'Show cumulative trends over time', 'trend', 1, 0, datetime=True),
    _archetype('area-stacked', 'Stacked Area Chart', 'Show composition trends over time', 'trend', 1, 1, datetime=True),
    _archetype('scatter', 'Scatter Plot', 'Explore relationships between two variables', 'relationship', 2, 0),
    _archetype('bubble', 'Bubble Chart', 'Explore relationships with size dimension', 'relationship', 3, 0),
    _archetype('histogram', 'Histogram', 'Show distribution of a numeric variable', 'distribution', 1, 0),
    _archetype('boxplot', 'Box Plot', 'Compare distributions across categories', 'distribution', 1, 1),
    _archetype('heatmap', 'Heatmap', 'Show intensity across two dimensions', 'relationship', 1, 2),
    _archetype('pie', 'Pie Chart', 'Show parts of a whole', 'composition', 1, 1),
    _archetype('donut', 'Donut Chart', 'Show parts of a whole with center space', 'composition', 1, 1),
    _archetype('combo', 'Combo Chart', 'Combine bar and line for different scales', 'comparison', 2, 1),
]


def calculate_suitability(
    archetype: ChartArchetype,
    numeric_count: int,
    categorical_count: int,
    has_datetime: bool,
) -> int:
    """
    Score how well an archetype fits the available columns.

    Returns 0 when a requirement is not met. Otherwise starts at 50 and adds
    bonuses for exact requirement matches and for the charts that shine on
    this shape of data, capped at 100.
    """
    req = archetype.requirements

    if numeric_count < req.min_numeric:
        return 0
    if categorical_count < req.min_categorical:
        return 0
    if req.needs_datetime and not has_datetime:
        return 0

    score = BASE_SCORE

    if numeric_count == req.min_numeric:
        score += EXACT_MATCH_BONUS
    if categorical_count == req.min_categorical:
        score += EXACT_MATCH_BONUS
    if req.needs_datetime == has_datetime:
        score += EXACT_MATCH_BONUS

    if archetype.type == 'bar' and categorical_count >= 1 and numeric_count >= 1:
        score += 15
    if archetype.type == 'line' and has_datetime:
        score += 20
    if archetype.type == 'scatter' and numeric_count >= 2:
        score += 15
    if archetype.type == 'pie' and categorical_count == 1 and numeric_count == 1:
        score += 10

    return max(0, min(MAX_SCORE, score))


def suggest_bindings(archetype: ChartArchetype, schema: DatasetSchema) -> FieldBindings:
    numeric = get_numeric_columns(schema)
    categorical = get_categorical_columns(schema)
    datetime_cols = get_datetime_columns(schema)

    x = None
    if archetype.requirements.needs_datetime and datetime_cols:
        x = datetime_cols[0].name
    elif categorical:
        x = categorical[0].name
    elif numeric:
        x = numeric[0].name

    y = numeric[0].name if numeric else None

    color = None
    if len(categorical) > 1:
        color = categorical[1].name
    elif categorical and archetype.type not in ('pie', 'donut'):
        color = categorical[0].name

    size = None
    if len(numeric) > 2 and archetype.type in ('bubble', 'scatter'):
        size = numeric[2].name

    return FieldBindings(x=x, y=y, color=color, size=size)


def generate_chart_title(archetype: ChartArchetype, bindings: FieldBindings) -> str:
    x = bindings.x or ''
    y = bindings.y or ''

    if archetype.category == 'trend':
        return f"{y} over {x}"
    if archetype.category == 'comparison':
        if bindings.color:
            return f"{y} by {x} and {bindings.color}"
        return f"{y} by {x}"
    if archetype.category == 'distribution':
        return f"Distribution of {y or x}"
    if archetype.category == 'relationship':
        return f"{y} vs {x}"
    if archetype.category == 'composition':
        return f"Composition of {y} by {x}"
    return f"{archetype.name}: {y or x}"


@track_performance("recommend_charts")
def recommend_charts(
    data: List[Dict[str, Any]],
    schema: DatasetSchema,
    catalog: Sequence[ChartArchetype] = CHART_CATALOG,
) -> List[ChartRecommendation]:
    """
    Recommend charts for a dataset.

    Args:
        data: Rows embedded in every compiled spec
        schema: Schema inferred from the same rows
        catalog: Archetypes to consider, in tie-break order

    Returns:
        Recommendations sorted by descending suitability score; archetypes
        with a zero score or without a compilable spec are left out
    """
    numeric = get_numeric_columns(schema)
    categorical = get_categorical_columns(schema)
    has_datetime = bool(get_datetime_columns(schema))

    recommendations = []
    for archetype in catalog:
        score = calculate_suitability(archetype, len(numeric), len(categorical), has_datetime)
        if score <= 0:
            continue

        bindings = suggest_bindings(archetype, schema)
        title = generate_chart_title(archetype, bindings)
        spec = compile_spec(
            archetype.type,
            data,
            bindings,
            title=title,
            secondary_y=numeric[1].name if len(numeric) > 1 else None,
        )
        if spec is None:
            logger.debug(f"Skipping {archetype.type}: no spec for bindings {bindings}")
            continue

        recommendations.append(ChartRecommendation(
            type=archetype.type,
            title=title,
            description=archetype.description,
            category=archetype.category,
            suitability_score=score,
            suggested_encodings=bindings,
            spec=spec,
        ))

    # list.sort is stable, so ties keep catalog order
    recommendations.sort(key=lambda r: r.suitability_score, reverse=True)

    logger.info(
        f"Recommended {len(recommendations)} of {len(catalog)} chart types for {schema.file_name}"
    )
    return recommendations

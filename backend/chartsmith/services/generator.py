"""
Vega-Lite chart specification compiler.

Every chart type belongs to one family (bar, line, area, point,
distribution, radial, combo). ``compile_spec`` looks the type up once,
hands the bindings to the family builder and wraps the result in a
self-contained document: inline data, mark/layer, encoding and the shared
dark theme.
"""
import copy
import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from chartsmith.core.schemas import ChartIntent, DatasetSchema, FieldBindings, FilterCondition

VEGA_LITE_SCHEMA = "https://vega.github.io/schema/vega-lite/v5.json"

AURORA_COLORS = [
    '#00ffff',  # Cyan
    '#9966ff',  # Purple
    '#ff66b2',  # Pink
    '#00cc99',  # Teal
    '#3399ff',  # Blue
    '#ffcc00',  # Gold
    '#ff6666',  # Coral
    '#66ff99',  # Mint
]

SEQUENTIAL_SCHEME = "viridis"

THEME_CONFIG: Dict[str, Any] = {
    "background": "transparent",
    "view": {"stroke": "transparent"},
    "axis": {
        "labelColor": "#a0aec0",
        "titleColor": "#e2e8f0",
        "gridColor": "#2d3748",
        "domainColor": "#4a5568",
        "tickColor": "#4a5568",
    },
    "legend": {
        "labelColor": "#a0aec0",
        "titleColor": "#e2e8f0",
    },
    "title": {
        "color": "#e2e8f0",
    },
}

DEFAULT_WIDTH = "container"
DEFAULT_HEIGHT = 300
RADIAL_SIZE = 300

HISTOGRAM_MAX_BINS = 20
BOXPLOT_EXTENT = 1.5
DONUT_INNER_RADIUS = 50

TIME_UNITS = {
    "day": "yearmonthdate",
    "week": "yearweek",
    "month": "yearmonth",
    "year": "year",
}


class ChartFamily(str, Enum):
    BAR = "bar"
    LINE = "line"
    AREA = "area"
    POINT = "point"
    DISTRIBUTION = "distribution"
    RADIAL = "radial"
    COMBO = "combo"


@dataclass(frozen=True)
class ChartVariant:
    """A chart type expressed as its family plus the flags the family understands."""
    family: ChartFamily
    horizontal: bool = False
    stacked: bool = False
    donut: bool = False
    shape: Optional[str] = None  # histogram / boxplot / heatmap for DISTRIBUTION


CHART_VARIANTS: Dict[str, ChartVariant] = {
    "bar": ChartVariant(ChartFamily.BAR),
    "bar-horizontal": ChartVariant(ChartFamily.BAR, horizontal=True),
    "bar-stacked": ChartVariant(ChartFamily.BAR, stacked=True),
    "line": ChartVariant(ChartFamily.LINE),
    "area": ChartVariant(ChartFamily.AREA),
    "area-stacked": ChartVariant(ChartFamily.AREA, stacked=True),
    "scatter": ChartVariant(ChartFamily.POINT),
    "bubble": ChartVariant(ChartFamily.POINT),
    "histogram": ChartVariant(ChartFamily.DISTRIBUTION, shape="histogram"),
    "boxplot": ChartVariant(ChartFamily.DISTRIBUTION, shape="boxplot"),
    "heatmap": ChartVariant(ChartFamily.DISTRIBUTION, shape="heatmap"),
    "pie": ChartVariant(ChartFamily.RADIAL),
    "donut": ChartVariant(ChartFamily.RADIAL, donut=True),
    "combo": ChartVariant(ChartFamily.COMBO),
}

FALLBACK_VARIANT = CHART_VARIANTS["bar"]


@dataclass(frozen=True)
class SpecOptions:
    aggregation: str = "sum"
    secondary_y: Optional[str] = None  # line measure of a combo chart
    sort_order: Optional[str] = None
    time_granularity: Optional[str] = None


def resolve_variant(chart_type: Optional[str]) -> ChartVariant:
    return CHART_VARIANTS.get(chart_type or "", FALLBACK_VARIANT)


def sanitize_field_name(field: str) -> str:
    """
    Escape a column name for use as a Vega-Lite field.

    Vega-Lite reads dots and brackets as nested access and chokes on
    unescaped backslashes and apostrophes, so those are backslash-escaped.
    The data payload keeps the raw names.
    """
    if not field:
        return field
    result = field.replace('\\', '\\\\')
    for ch in ".[]'":
        result = result.replace(ch, '\\' + ch)
    return result


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (list, dict)):
        return copy.deepcopy(value)
    return value


def _palette_color(field: str) -> Dict[str, Any]:
    return {
        "field": sanitize_field_name(field),
        "type": "nominal",
        "scale": {"range": list(AURORA_COLORS)},
    }


def _measure(field: Optional[str], aggregation: str) -> Dict[str, Any]:
    # Without a measure the chart counts records
    if not field:
        return {"aggregate": "count", "type": "quantitative", "title": "Count"}
    return {"field": sanitize_field_name(field), "type": "quantitative", "aggregate": aggregation}


def _temporal_x(field: str, options: SpecOptions) -> Dict[str, Any]:
    encoding = {
        "field": sanitize_field_name(field),
        "type": "temporal",
        "axis": {"labelAngle": -45},
    }
    time_unit = TIME_UNITS.get(options.time_granularity or "")
    if time_unit:
        encoding["timeUnit"] = time_unit
    return encoding


def _build_bar(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    category_channel, measure_channel = ("y", "x") if variant.horizontal else ("x", "y")
    sort_prefix = "" if options.sort_order == "ascending" else "-"

    encoding: Dict[str, Any] = {
        category_channel: {
            "field": sanitize_field_name(bindings.x),
            "type": "nominal",
            "axis": {"labelAngle": 0 if variant.horizontal else -45},
            "sort": f"{sort_prefix}{measure_channel}",
        },
        measure_channel: _measure(bindings.y, options.aggregation),
    }

    if bindings.color:
        encoding["color"] = _palette_color(bindings.color)
        if variant.stacked:
            encoding[measure_channel]["stack"] = "normalize"

    return {"mark": {"type": "bar", "cornerRadiusEnd": 4, "tooltip": True}, "encoding": encoding}


def _build_line(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    encoding: Dict[str, Any] = {
        "x": _temporal_x(bindings.x, options),
        "y": _measure(bindings.y, options.aggregation),
    }
    if bindings.color:
        encoding["color"] = _palette_color(bindings.color)

    return {"mark": {"type": "line", "point": True, "strokeWidth": 2, "tooltip": True}, "encoding": encoding}


def _build_area(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    encoding: Dict[str, Any] = {
        "x": _temporal_x(bindings.x, options),
        "y": _measure(bindings.y, options.aggregation),
    }
    if variant.stacked:
        encoding["y"]["stack"] = "normalize"
    if bindings.color:
        encoding["color"] = _palette_color(bindings.color)

    return {"mark": {"type": "area", "opacity": 0.7, "line": True, "tooltip": True}, "encoding": encoding}


def _build_point(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    encoding: Dict[str, Any] = {
        "x": {"field": sanitize_field_name(bindings.x), "type": "quantitative"},
    }
    if bindings.y:
        encoding["y"] = {"field": sanitize_field_name(bindings.y), "type": "quantitative"}
    if bindings.color:
        encoding["color"] = _palette_color(bindings.color)
    if bindings.size:
        encoding["size"] = {"field": sanitize_field_name(bindings.size), "type": "quantitative"}

    return {"mark": {"type": "circle", "opacity": 0.7, "tooltip": True}, "encoding": encoding}


def _build_distribution(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    if variant.shape == "histogram":
        # Bin the measure; fall back to x when no measure is bound
        field = bindings.y or bindings.x
        return {
            "mark": {"type": "bar", "cornerRadiusEnd": 4, "tooltip": True},
            "encoding": {
                "x": {
                    "field": sanitize_field_name(field),
                    "type": "quantitative",
                    "bin": {"maxbins": HISTOGRAM_MAX_BINS},
                },
                "y": {"aggregate": "count", "type": "quantitative"},
                "color": {"value": AURORA_COLORS[0]},
            },
        }

    if variant.shape == "boxplot":
        encoding: Dict[str, Any] = {
            "x": {"field": sanitize_field_name(bindings.x), "type": "nominal"},
            "color": _palette_color(bindings.x),
        }
        if bindings.y:
            encoding["y"] = {"field": sanitize_field_name(bindings.y), "type": "quantitative"}
        return {"mark": {"type": "boxplot", "extent": BOXPLOT_EXTENT}, "encoding": encoding}

    # heatmap: category x category, colored by the mean of the measure
    encoding = {
        "x": {"field": sanitize_field_name(bindings.x), "type": "nominal"},
    }
    if bindings.color:
        encoding["y"] = {"field": sanitize_field_name(bindings.color), "type": "nominal"}
    if bindings.y:
        encoding["color"] = {
            "field": sanitize_field_name(bindings.y),
            "type": "quantitative",
            "aggregate": "mean",
            "scale": {"scheme": SEQUENTIAL_SCHEME},
        }
    else:
        encoding["color"] = {
            "aggregate": "count",
            "type": "quantitative",
            "scale": {"scheme": SEQUENTIAL_SCHEME},
        }
    return {"mark": {"type": "rect", "tooltip": True}, "encoding": encoding}


def _build_radial(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Dict[str, Any]:
    return {
        "mark": {
            "type": "arc",
            "innerRadius": DONUT_INNER_RADIUS if variant.donut else 0,
            "tooltip": True,
        },
        "encoding": {
            "theta": _measure(bindings.y, options.aggregation),
            "color": _palette_color(bindings.x),
        },
        "width": RADIAL_SIZE,
        "height": RADIAL_SIZE,
    }


def _build_combo(variant: ChartVariant, bindings: FieldBindings, options: SpecOptions) -> Optional[Dict[str, Any]]:
    if not bindings.y or not options.secondary_y:
        return None

    x = {"field": sanitize_field_name(bindings.x), "type": "nominal"}
    return {
        "layer": [
            {
                "mark": {"type": "bar", "cornerRadiusEnd": 4, "color": AURORA_COLORS[0], "tooltip": True},
                "encoding": {"x": x, "y": _measure(bindings.y, options.aggregation)},
            },
            {
                "mark": {"type": "line", "point": True, "color": AURORA_COLORS[1], "strokeWidth": 2, "tooltip": True},
                "encoding": {"x": x, "y": _measure(options.secondary_y, options.aggregation)},
            },
        ],
    }


FamilyBuilder = Callable[[ChartVariant, FieldBindings, SpecOptions], Optional[Dict[str, Any]]]

FAMILY_BUILDERS: Dict[ChartFamily, FamilyBuilder] = {
    ChartFamily.BAR: _build_bar,
    ChartFamily.LINE: _build_line,
    ChartFamily.AREA: _build_area,
    ChartFamily.POINT: _build_point,
    ChartFamily.DISTRIBUTION: _build_distribution,
    ChartFamily.RADIAL: _build_radial,
    ChartFamily.COMBO: _build_combo,
}


def _filter_transforms(filters: Optional[List[FilterCondition]]) -> List[Dict[str, Any]]:
    return [
        {"filter": {"field": sanitize_field_name(f.field), "equal": f.value}}
        for f in filters or []
    ]


def compile_spec(
    chart_type: Optional[str],
    data: List[Dict[str, Any]],
    bindings: FieldBindings,
    title: Optional[str] = None,
    aggregation: Optional[str] = None,
    secondary_y: Optional[str] = None,
    sort_order: Optional[str] = None,
    time_granularity: Optional[str] = None,
    filters: Optional[List[FilterCondition]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Compile a Vega-Lite specification for one chart.

    Args:
        chart_type: Chart type tag; unknown tags compile as a bar chart
        data: Rows to embed inline in the document
        bindings: Column names for the x, y, color and size channels
        title: Optional chart title
        aggregation: Measure aggregation ('sum' when omitted)
        secondary_y: Line measure for combo charts
        sort_order: 'ascending' or 'descending' measure sort for bar charts
        time_granularity: 'day', 'week', 'month' or 'year' for temporal x axes
        filters: Equality filters applied before encoding

    Returns:
        The specification dictionary, or None when the chart cannot be drawn
        (no x binding, or a combo chart without a second measure).
    """
    if not bindings.x:
        return None

    variant = resolve_variant(chart_type)
    options = SpecOptions(
        aggregation=aggregation or "sum",
        secondary_y=secondary_y,
        sort_order=sort_order,
        time_granularity=time_granularity,
    )

    body = FAMILY_BUILDERS[variant.family](variant, bindings, options)
    if body is None:
        return None

    spec: Dict[str, Any] = {
        "$schema": VEGA_LITE_SCHEMA,
        "data": {"values": [{k: _json_safe(v) for k, v in row.items()} for row in data]},
    }
    if title:
        spec["title"] = {"text": title, "anchor": "start"}

    transforms = _filter_transforms(filters)
    if transforms:
        spec["transform"] = transforms

    spec["width"] = DEFAULT_WIDTH
    spec["height"] = DEFAULT_HEIGHT
    spec.update(body)
    # Each document gets its own theme so callers can edit it freely
    spec["config"] = copy.deepcopy(THEME_CONFIG)
    return spec


def build_spec_from_intent(
    data: List[Dict[str, Any]],
    schema: DatasetSchema,
    intent: ChartIntent,
) -> Optional[Dict[str, Any]]:
    """
    Compile the chart described by an intent.

    Returns None unless the intent names both a chart type and an x field.
    """
    if not intent.chart_type or not intent.x_field:
        return None

    size = intent.size_field
    if intent.chart_type == "bubble" and not size:
        size = intent.y_field

    secondary_y = None
    if resolve_variant(intent.chart_type).family is ChartFamily.COMBO:
        secondary_y = next(
            (c.name for c in schema.columns
             if c.type == "number" and c.name not in (intent.x_field, intent.y_field)),
            None,
        )

    bindings = FieldBindings(
        x=intent.x_field,
        y=intent.y_field,
        color=intent.color_field,
        size=size,
    )
    return compile_spec(
        intent.chart_type,
        data,
        bindings,
        aggregation=intent.aggregation,
        secondary_y=secondary_y,
        sort_order=intent.sort_order,
        time_granularity=intent.time_granularity,
        filters=intent.filter_conditions,
    )

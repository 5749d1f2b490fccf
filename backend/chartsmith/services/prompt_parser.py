"""
Natural-language chart requests (English and Turkish) to chart intents.

Parsing is plain keyword matching against a ``KeywordCatalog``. A keyword
matches where a word starts, so Turkish suffixes still match ("aylık",
"satışları"), but a keyword never matches from the middle of a word
("display" does not contain the time word "ay"). Longer keywords are
always tried first.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from chartsmith.core.performance import track_performance
from chartsmith.core.schemas import ChartIntent, ColumnSchema, DatasetSchema, FilterCondition
from chartsmith.services.profiler import coerce_number, get_categorical_columns, get_datetime_columns, get_numeric_columns

logger = logging.getLogger(__name__)

DEFAULT_CHART_TYPE = 'bar'
DEFAULT_AGGREGATION = 'sum'

PUNCTUATION = re.compile(r'[.,!?;:\'"()\[\]{}]')
WHITESPACE = re.compile(r'\s+')


@dataclass(frozen=True)
class KeywordCatalog:
    """Keyword tables the parser reads. Pass a different catalog to change vocabulary."""
    chart_types: Dict[str, str]
    time_terms: Tuple[str, ...]
    aggregations: Dict[str, str]
    sort_orders: Dict[str, str] = field(default_factory=dict)
    time_granularities: Dict[str, str] = field(default_factory=dict)
    # Keywords that only match as whole words; the rest also match with suffixes
    whole_word_aggregations: FrozenSet[str] = frozenset()


DEFAULT_KEYWORDS = KeywordCatalog(
    chart_types={
        # Bar
        'bar': 'bar',
        'bar chart': 'bar',
        'çubuk': 'bar',
        'çubuk grafik': 'bar',
        'sütun': 'bar',
        'sütun grafik': 'bar',
        'horizontal bar': 'bar-horizontal',
        'yatay çubuk': 'bar-horizontal',
        'yatay çubuk grafik': 'bar-horizontal',
        'stacked bar': 'bar-stacked',
        'yığılmış çubuk': 'bar-stacked',
        # Line
        'line': 'line',
        'line chart': 'line',
        'çizgi': 'line',
        'çizgi grafik': 'line',
        'trend': 'line',
        'zaman serisi': 'line',
        'time series': 'line',
        # Area
        'area': 'area',
        'area chart': 'area',
        'alan': 'area',
        'alan grafik': 'area',
        'stacked area': 'area-stacked',
        'yığılmış alan': 'area-stacked',
        # Scatter / bubble
        'scatter': 'scatter',
        'scatter plot': 'scatter',
        'saçılım': 'scatter',
        'nokta': 'scatter',
        'bubble': 'bubble',
        'bubble chart': 'bubble',
        'balon': 'bubble',
        # Distribution
        'histogram': 'histogram',
        'histograms': 'histogram',
        'dağılım': 'histogram',
        'distribution': 'histogram',
        'boxplot': 'boxplot',
        'box plot': 'boxplot',
        'kutu': 'boxplot',
        # Heatmap
        'heatmap': 'heatmap',
        'heat map': 'heatmap',
        'ısı haritası': 'heatmap',
        # Pie / donut
        'pie': 'pie',
        'pie chart': 'pie',
        'pasta': 'pie',
        'pasta grafik': 'pie',
        'donut': 'donut',
        'halka': 'donut',
        # Combo
        'combo': 'combo',
        'combined': 'combo',
        'birleşik': 'combo',
    },
    time_terms=(
        'time', 'date', 'month', 'year', 'week', 'day', 'quarter',
        'zaman', 'tarih', 'ay', 'yıl', 'hafta', 'gün', 'çeyrek',
        'son', 'last', 'recent', 'son dönem', 'trend', 'over time',
    ),
    aggregations={
        'total': 'sum',
        'toplam': 'sum',
        'sum': 'sum',
        'average': 'mean',
        'ortalama': 'mean',
        'mean': 'mean',
        'count': 'count',
        'sayı': 'count',
        'sayısı': 'count',
        'adet': 'count',
        'adedi': 'count',
        'minimum': 'min',
        'min': 'min',
        'en düşük': 'min',
        'maximum': 'max',
        'max': 'max',
        'en yüksek': 'max',
    },
    sort_orders={
        'ascending': 'ascending',
        'artan': 'ascending',
        'küçükten büyüğe': 'ascending',
        'lowest first': 'ascending',
        'descending': 'descending',
        'azalan': 'descending',
        'büyükten küçüğe': 'descending',
        'highest first': 'descending',
    },
    time_granularities={
        'daily': 'day',
        'günlük': 'day',
        'weekly': 'week',
        'haftalık': 'week',
        'monthly': 'month',
        'aylık': 'month',
        'yearly': 'year',
        'annual': 'year',
        'yıllık': 'year',
    },
    whole_word_aggregations=frozenset({'total', 'sum', 'mean', 'count', 'min', 'max'}),
)


def normalize_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    # str.lower() turns "İ" into "i" plus a combining dot
    lowered = (text or "").replace("İ", "i").lower()
    return WHITESPACE.sub(' ', PUNCTUATION.sub(' ', lowered)).strip()


def contains_term(normalized: str, term: str) -> bool:
    """True if ``term`` occurs in ``normalized`` starting at a word boundary."""
    if not term:
        return False
    return re.search(r'(?<!\w)' + re.escape(term), normalized) is not None


def contains_word(normalized: str, term: str) -> bool:
    """True if ``term`` occurs in ``normalized`` as whole words."""
    if not term:
        return False
    return re.search(r'(?<!\w)' + re.escape(term) + r'(?!\w)', normalized) is not None


def _longest_first(table: Dict[str, str]) -> List[str]:
    # sorted() is stable, so equal-length keywords keep table order
    return sorted(table, key=len, reverse=True)


def find_chart_type(normalized: str, keywords: KeywordCatalog = DEFAULT_KEYWORDS) -> Optional[str]:
    for keyword in _longest_first(keywords.chart_types):
        if contains_term(normalized, keyword):
            return keywords.chart_types[keyword]

    for term in sorted(keywords.time_terms, key=len, reverse=True):
        if contains_term(normalized, term):
            return 'line'

    return None


def find_aggregation(normalized: str, keywords: KeywordCatalog = DEFAULT_KEYWORDS) -> str:
    # "satışların ortalaması" is mean, but "country" is not count
    for keyword in _longest_first(keywords.aggregations):
        match = contains_word if keyword in keywords.whole_word_aggregations else contains_term
        if match(normalized, keyword):
            return keywords.aggregations[keyword]
    return DEFAULT_AGGREGATION


def find_sort_order(normalized: str, keywords: KeywordCatalog = DEFAULT_KEYWORDS) -> Optional[str]:
    for keyword in _longest_first(keywords.sort_orders):
        if contains_term(normalized, keyword):
            return keywords.sort_orders[keyword]
    return None


def find_time_granularity(normalized: str, keywords: KeywordCatalog = DEFAULT_KEYWORDS) -> Optional[str]:
    for keyword in _longest_first(keywords.time_granularities):
        if contains_term(normalized, keyword):
            return keywords.time_granularities[keyword]
    return None


def find_field_matches(normalized: str, schema: DatasetSchema) -> Dict[str, Optional[str]]:
    """
    Bind columns to x, y and color.

    Columns named in the text win: a datetime column goes to x, the first
    numeric one to y, the first string one to color. Unfilled roles get
    defaults from the schema.
    """
    x = y = color = None

    for column in schema.columns:
        if not contains_term(normalized, normalize_text(column.name)):
            continue
        if column.type == 'datetime' and x is None:
            x = column.name
        elif column.type == 'number' and y is None:
            y = column.name
        elif column.type == 'string' and color is None:
            color = column.name

    datetime_cols = get_datetime_columns(schema)
    categorical = get_categorical_columns(schema)
    numeric = get_numeric_columns(schema)

    if x is None:
        if datetime_cols:
            x = datetime_cols[0].name
        elif categorical:
            x = categorical[0].name

    if y is None and numeric:
        y = numeric[0].name

    if color is None and len(categorical) > 1:
        color = next((c.name for c in categorical if c.name != x), None)

    return {'x': x, 'y': y, 'color': color}


def _filter_value(raw: str, column: ColumnSchema):
    if column.type == 'number':
        number = coerce_number(raw)
        if number is not None:
            return number
    # Prefer the dataset's own spelling when the sample values contain it
    for sample in column.sample_values:
        if isinstance(sample, str) and sample.lower() == raw.lower():
            return sample
    return raw


def find_filter_conditions(prompt: str, schema: DatasetSchema) -> List[FilterCondition]:
    """
    Extract equality filters such as ``where region is North`` or ``year = 2023``.

    Values are a single token or a quoted phrase. Each column is filtered at
    most once, longer column names first.
    """
    text = (prompt or "").replace("İ", "i")
    conditions = []
    value_pattern = r'(?:"(?P<dq>[^"]+)"|\'(?P<sq>[^\']+)\'|(?P<bare>[^\s,;!?]+))'

    for column in sorted(schema.columns, key=lambda c: len(c.name), reverse=True):
        name = re.escape(column.name)
        pattern = re.compile(
            rf'(?:(?<!\w)where\s+{name}\s*(?:==|=|\bis\b|\bequals\b)|(?<!\w){name}\s*==?)\s*{value_pattern}',
            re.IGNORECASE,
        )
        match = pattern.search(text)
        if not match:
            continue
        raw = match.group('dq') or match.group('sq') or match.group('bare').rstrip('.:')
        if not raw:
            continue
        conditions.append(FilterCondition(field=column.name, value=_filter_value(raw, column)))

    # Report filters in schema order
    order = {c.name: i for i, c in enumerate(schema.columns)}
    conditions.sort(key=lambda c: order[c.field])
    return conditions


@track_performance("parse_prompt")
def parse_prompt(
    prompt: str,
    schema: DatasetSchema,
    keywords: KeywordCatalog = DEFAULT_KEYWORDS,
) -> ChartIntent:
    """
    Turn a free-text chart request into a ChartIntent.

    Never raises for unrecognized text: the intent falls back to a bar
    chart of the first numeric column, summed.
    """
    normalized = normalize_text(prompt)

    chart_type = find_chart_type(normalized, keywords) or DEFAULT_CHART_TYPE
    fields = find_field_matches(normalized, schema)

    intent = ChartIntent(
        chart_type=chart_type,
        x_field=fields['x'],
        y_field=fields['y'],
        color_field=fields['color'],
        filter_conditions=find_filter_conditions(prompt, schema),
        aggregation=find_aggregation(normalized, keywords),
        sort_order=find_sort_order(normalized, keywords),
        time_granularity=find_time_granularity(normalized, keywords),
    )

    logger.debug(f"Parsed prompt into {intent.model_dump(exclude_none=True)}")
    return intent

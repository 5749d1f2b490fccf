"""
Unit tests for free-text prompt parsing.
"""
import itertools
import pytest
from chartsmith.services.generator import build_spec_from_intent
from chartsmith.services.profiler import analyze_dataset
from chartsmith.services.prompt_parser import (
    DEFAULT_KEYWORDS,
    KeywordCatalog,
    find_aggregation,
    find_chart_type,
    normalize_text,
    parse_prompt,
)


@pytest.mark.unit
def test_normalize_text():
    assert normalize_text("  Show SALES, by (Region)!  ") == "show sales by region"
    assert normalize_text("İSTANBUL satışları") == "istanbul satışları"
    assert normalize_text("") == ""


@pytest.mark.unit
def test_empty_prompt_defaults(sales_schema):
    """Test that an empty prompt gives a bar chart of the first numeric column."""
    intent = parse_prompt("", sales_schema)

    assert intent.chart_type == "bar"
    assert intent.y_field == "Sales"
    assert intent.aggregation == "sum"


@pytest.mark.unit
def test_keyword_free_prompt_defaults(product_schema):
    intent = parse_prompt("hello", product_schema)

    assert intent.chart_type == "bar"
    assert intent.y_field == "Sales"


@pytest.mark.unit
def test_longer_keywords_win_for_every_overlapping_pair():
    """Test every keyword pair where one keyword contains the other."""
    table = DEFAULT_KEYWORDS.chart_types
    pairs = [
        (short, long) for short, long in itertools.permutations(table, 2)
        if short in long
    ]
    assert pairs, "expected overlapping keywords in the table"

    for short, long in pairs:
        assert find_chart_type(normalize_text(long)) == table[long], (short, long)


@pytest.mark.unit
def test_overlapping_aggregation_keywords_prefer_longest():
    table = DEFAULT_KEYWORDS.aggregations
    pairs = [
        (short, long) for short, long in itertools.permutations(table, 2)
        if short in long
    ]
    assert pairs

    for short, long in pairs:
        assert find_aggregation(normalize_text(long)) == table[long], (short, long)


@pytest.mark.unit
@pytest.mark.parametrize("prompt,expected", [
    ("Show sales by category as a bar chart", "bar"),
    ("stacked bar chart of sales", "bar-stacked"),
    ("horizontal bar of revenue", "bar-horizontal"),
    ("stacked area by region", "area-stacked"),
    ("scatter plot of price vs quantity", "scatter"),
    ("heat map of regions", "heatmap"),
    ("donut of channels", "donut"),
    ("Kategorilere göre satışları pasta grafik olarak göster", "pie"),
    ("yatay çubuk grafik", "bar-horizontal"),
    ("ısı haritası", "heatmap"),
    ("fiyat saçılım grafiği", "scatter"),
    ("birleşik grafik", "combo"),
])
def test_chart_type_detection(prompt, expected):
    assert find_chart_type(normalize_text(prompt)) == expected


@pytest.mark.unit
@pytest.mark.parametrize("prompt", [
    "sales over time",
    "Son 6 aydaki satış",
    "revenue by quarter",
])
def test_time_vocabulary_means_line(prompt):
    assert find_chart_type(normalize_text(prompt)) == "line"


@pytest.mark.unit
def test_keywords_do_not_match_inside_words():
    """Test that "display" does not trigger the time word "ay"."""
    assert find_chart_type(normalize_text("Display revenue")) is None
    assert parse_prompt("Display revenue", analyze_dataset([{"revenue": 1}], "r.csv", "csv")).chart_type == "bar"


@pytest.mark.unit
@pytest.mark.parametrize("prompt,expected", [
    ("average sales by region", "mean"),
    ("bölgelere göre ortalama satış", "mean"),
    ("toplam satış", "sum"),
    ("count of orders", "count"),
    ("sales by country", "sum"),
    ("en yüksek satış", "max"),
    ("minimum price", "min"),
    ("show me everything", "sum"),
    ("bölgelere göre satışların ortalaması", "mean"),
    ("siparişlerin adedi", "count"),
    ("satışların toplamı", "sum"),
    ("ürün sayısı", "count"),
    ("summary of sales", "sum"),
    ("minutes per call", "sum"),
])
def test_aggregation_detection(prompt, expected):
    assert find_aggregation(normalize_text(prompt)) == expected


@pytest.mark.unit
def test_field_detection_named_columns(product_schema):
    """Test that named columns are bound by type."""
    intent = parse_prompt("Show sales by category as a bar chart", product_schema)

    assert intent.chart_type == "bar"
    assert intent.y_field == "Sales"
    assert intent.x_field == "Category"
    assert intent.color_field == "Category"


@pytest.mark.unit
def test_field_detection_first_numeric_wins(product_schema):
    intent = parse_prompt("price and quantity", product_schema)

    assert intent.y_field == "Quantity"


@pytest.mark.unit
def test_field_detection_datetime_goes_to_x(sales_schema):
    intent = parse_prompt("Show Sales by Month", sales_schema)

    assert intent.x_field == "Month"
    assert intent.y_field == "Sales"
    assert intent.color_field is None


@pytest.mark.unit
def test_field_defaults(product_schema):
    """Test defaults when no column is named."""
    intent = parse_prompt("bar chart", product_schema)

    assert intent.x_field == "Category"
    assert intent.y_field == "Sales"
    assert intent.color_field == "Channel"


@pytest.mark.unit
def test_sort_order_detection(sales_schema):
    assert parse_prompt("sales by region descending", sales_schema).sort_order == "descending"
    assert parse_prompt("sales by region ascending", sales_schema).sort_order == "ascending"
    assert parse_prompt("bölgeye göre satış büyükten küçüğe", sales_schema).sort_order == "descending"
    assert parse_prompt("sales by region", sales_schema).sort_order is None


@pytest.mark.unit
def test_time_granularity_detection(sales_schema):
    assert parse_prompt("monthly sales", sales_schema).time_granularity == "month"
    assert parse_prompt("aylık satış", sales_schema).time_granularity == "month"
    assert parse_prompt("weekly sales", sales_schema).time_granularity == "week"
    assert parse_prompt("annual sales", sales_schema).time_granularity == "year"
    assert parse_prompt("sales", sales_schema).time_granularity is None


@pytest.mark.unit
def test_filter_detection(sales_schema):
    """Test equality filters, with dataset spelling and numeric coercion."""
    intent = parse_prompt("sales by month where region is north", sales_schema)
    assert [(f.field, f.value) for f in intent.filter_conditions] == [("Region", "North")]

    intent = parse_prompt("line chart where Sales = 100", sales_schema)
    assert [(f.field, f.value) for f in intent.filter_conditions] == [("Sales", 100)]

    intent = parse_prompt('Region = "South"', sales_schema)
    assert [(f.field, f.value) for f in intent.filter_conditions] == [("Region", "South")]

    assert parse_prompt("sales by region", sales_schema).filter_conditions == []


@pytest.mark.unit
def test_injected_keyword_catalog(sales_schema):
    """Test that a substitute catalog replaces the built-in vocabulary."""
    catalog = KeywordCatalog(
        chart_types={"grafik": "pie"},
        time_terms=(),
        aggregations={"mittel": "mean"},
    )
    intent = parse_prompt("grafik mittel", sales_schema, keywords=catalog)

    assert intent.chart_type == "pie"
    assert intent.aggregation == "mean"
    # No time terms in this catalog, so time words fall back to bar
    assert parse_prompt("over time", sales_schema, keywords=catalog).chart_type == "bar"


@pytest.mark.unit
def test_parse_prompt_never_raises(sales_schema):
    for prompt in ["(((", "sales [*] = ", "where", "= = =", "\n\t", "ünïcødé ✓"]:
        intent = parse_prompt(prompt, sales_schema)
        assert intent.chart_type is not None


@pytest.mark.unit
def test_prompt_to_spec_round_trip(product_rows, product_schema):
    intent = parse_prompt("Show sales by category as a bar chart", product_schema)
    spec = build_spec_from_intent(product_rows, product_schema, intent)

    assert spec["mark"]["type"] == "bar"
    assert spec["encoding"]["x"]["field"] == "Category"
    assert spec["encoding"]["y"]["field"] == "Sales"


@pytest.mark.unit
def test_no_spec_without_dimension():
    """Test that an all-numeric dataset gives an intent with no x and no spec."""
    rows = [{"value": 1}, {"value": 2}]
    schema = analyze_dataset(rows, "values.csv", "csv")

    intent = parse_prompt("hello", schema)

    assert intent.x_field is None
    assert build_spec_from_intent(rows, schema, intent) is None


@pytest.mark.unit
def test_whole_word_aggregations_from_catalog():
    """Test that only the listed keywords need a word end."""
    catalog = KeywordCatalog(
        chart_types={},
        time_terms=(),
        aggregations={"avg": "mean", "ortalama": "mean"},
        whole_word_aggregations=frozenset({"avg"}),
    )

    assert find_aggregation("avgerage", catalog) == "sum"
    assert find_aggregation("avg price", catalog) == "mean"
    assert find_aggregation("fiyatların ortalaması", catalog) == "mean"

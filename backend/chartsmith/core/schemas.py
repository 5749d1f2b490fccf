from dataclasses import dataclass
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Any, Dict, Union, Literal

ColumnType = Literal['number', 'string', 'datetime', 'boolean', 'unknown']
FileType = Literal['csv', 'json', 'xlsx']

ChartType = Literal[
    'bar', 'bar-horizontal', 'bar-stacked',
    'line', 'area', 'area-stacked',
    'scatter', 'bubble',
    'histogram', 'boxplot', 'heatmap',
    'pie', 'donut',
    'combo',
]
ChartCategory = Literal['trend', 'comparison', 'distribution', 'relationship', 'composition']
Aggregation = Literal['sum', 'mean', 'count', 'min', 'max']
SortOrder = Literal['ascending', 'descending']
TimeGranularity = Literal['day', 'week', 'month', 'year']
InsightType = Literal['max', 'min', 'trend', 'outlier', 'comparison', 'distribution']


class ColumnSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: ColumnType
    sample_values: List[Any]  # up to 5 distinct non-null values, first-seen order
    unique_count: int
    null_count: int
    null_ratio: float


class DatasetSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    columns: List[ColumnSchema]
    row_count: int
    file_name: str
    file_type: FileType

    def column(self, name: Optional[str]) -> Optional[ColumnSchema]:
        if name is None:
            return None
        return next((c for c in self.columns if c.name == name), None)


@dataclass(frozen=True)
class Dataset:
    """Row sequence paired 1:1 with the schema derived from it."""
    data: List[Dict[str, Any]]
    schema: DatasetSchema


class ChartRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_numeric: int
    min_categorical: int
    needs_datetime: bool


class ChartArchetype(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ChartType
    name: str
    description: str
    category: ChartCategory
    requirements: ChartRequirements


class FieldBindings(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: Optional[str] = None
    y: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None


class ChartRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ChartType
    title: str
    description: str
    category: ChartCategory
    suitability_score: int = Field(ge=0, le=100)
    suggested_encodings: FieldBindings
    spec: Dict[str, Any]  # The Vega-Lite spec


class FilterCondition(BaseModel):
    field: str
    value: Union[int, float, str]


class ChartIntent(BaseModel):
    chart_type: Optional[str] = None  # unknown types compile as bar
    x_field: Optional[str] = None
    y_field: Optional[str] = None
    color_field: Optional[str] = None
    size_field: Optional[str] = None
    filter_conditions: List[FilterCondition] = []
    aggregation: Optional[Aggregation] = None
    sort_order: Optional[SortOrder] = None
    time_granularity: Optional[TimeGranularity] = None


class Insight(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: InsightType
    title: str
    description: str
    value: Optional[Union[int, float, str]] = None


class AnalysisResult(BaseModel):
    session_id: str
    filename: str
    schema_: DatasetSchema = Field(alias="schema")
    recommendations: List[ChartRecommendation]
    insights: List[Insight] = []
    dataset: List[Dict[str, Any]]

    model_config = ConfigDict(populate_by_name=True)


class PromptRequest(BaseModel):
    prompt: str = Field(default="", max_length=2000)


class GenerateResult(BaseModel):
    intent: ChartIntent
    spec: Optional[Dict[str, Any]] = None  # None when the prompt cannot be compiled


class CompileRequest(BaseModel):
    intent: ChartIntent


class CompileResult(BaseModel):
    spec: Optional[Dict[str, Any]] = None


class InsightRequest(BaseModel):
    x_field: Optional[str] = None
    y_field: Optional[str] = None

import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address

from chartsmith.core.config import get_settings
from chartsmith.core.errors import ErrorCodes, get_error_response
from chartsmith.core.sanitization import sanitize_for_logging
from chartsmith.core.schemas import (
    AnalysisResult,
    ChartRecommendation,
    CompileRequest,
    CompileResult,
    Dataset,
    GenerateResult,
    Insight,
    InsightRequest,
    PromptRequest,
)
from chartsmith.core.store import get_dataset_store
from chartsmith.services.generator import build_spec_from_intent
from chartsmith.services.inference import recommend_charts
from chartsmith.services.insights import generate_insights
from chartsmith.services.parser import parse_file
from chartsmith.services.profiler import analyze_dataset
from chartsmith.services.prompt_parser import parse_prompt

logger = logging.getLogger(__name__)

router = APIRouter()

# Registered on app.state in main.py; keyed by client IP
limiter = Limiter(key_func=get_remote_address)


def upload_rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


def _correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, 'correlation_id', None)


def _compute_recommendations(dataset: Dataset) -> List[ChartRecommendation]:
    return recommend_charts(dataset.data, dataset.schema)


def _dataset_not_found(session_id: str, request: Request) -> HTTPException:
    logger.info(f"No dataset for session {sanitize_for_logging(session_id)}")
    return HTTPException(
        status_code=404,
        detail=get_error_response(ErrorCodes.DATASET_NOT_FOUND, correlation_id=_correlation_id(request)),
    )


def _require_dataset(session_id: str, request: Request) -> Dataset:
    dataset = get_dataset_store().get(session_id)
    if dataset is None:
        raise _dataset_not_found(session_id, request)
    return dataset


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/upload", response_model=AnalysisResult)
@limiter.limit(upload_rate_limit)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    session_id: Optional[str] = Form(None),
):
    """
    Load a dataset into a session and analyze it.

    The session's previous dataset is replaced only when the new file loads
    successfully. A new session is created when no session_id is given.
    Rate limited per client IP (RATE_LIMIT_PER_MINUTE).
    """
    parsed = await parse_file(file)

    try:
        schema = analyze_dataset(parsed.rows, parsed.file_name, parsed.file_type)
        dataset = Dataset(data=parsed.rows, schema=schema)
        recommendations = _compute_recommendations(dataset)

        top = recommendations[0].suggested_encodings if recommendations else None
        insights = generate_insights(
            parsed.rows,
            schema,
            x_field=top.x if top else None,
            y_field=top.y if top else None,
        )
    except Exception as e:
        logger.error(f"Unexpected error analyzing {parsed.file_name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=get_error_response(ErrorCodes.PROCESSING_ERROR, correlation_id=_correlation_id(request)),
        ) from e

    store = get_dataset_store()
    session_id = session_id or store.new_session_id()
    store.put(session_id, dataset)
    store.get_recommendations(session_id, lambda _: recommendations)

    max_rows = get_settings().max_dataset_rows
    if len(parsed.rows) > max_rows:
        logger.info(f"Returning first {max_rows} of {len(parsed.rows)} rows")

    return AnalysisResult(
        session_id=session_id,
        filename=parsed.file_name,
        schema=schema,
        recommendations=recommendations,
        insights=insights,
        dataset=parsed.rows[:max_rows],
    )


@router.get("/sessions/{session_id}/recommendations", response_model=List[ChartRecommendation])
async def get_recommendations(session_id: str, request: Request):
    recommendations = get_dataset_store().get_recommendations(session_id, _compute_recommendations)
    if recommendations is None:
        raise _dataset_not_found(session_id, request)
    return recommendations


@router.post("/sessions/{session_id}/generate", response_model=GenerateResult)
async def generate_chart(session_id: str, body: PromptRequest, request: Request):
    """Parse a free-text chart request and compile it against the session's dataset."""
    dataset = _require_dataset(session_id, request)

    intent = parse_prompt(body.prompt, dataset.schema)
    spec = build_spec_from_intent(dataset.data, dataset.schema, intent)
    if spec is None:
        logger.info(f"Prompt did not yield a chart: {sanitize_for_logging(body.prompt)}")

    return GenerateResult(intent=intent, spec=spec)


@router.post("/sessions/{session_id}/compile", response_model=CompileResult)
async def compile_chart(session_id: str, body: CompileRequest, request: Request):
    dataset = _require_dataset(session_id, request)
    return CompileResult(spec=build_spec_from_intent(dataset.data, dataset.schema, body.intent))


@router.post("/sessions/{session_id}/insights", response_model=List[Insight])
async def get_insights(session_id: str, body: InsightRequest, request: Request):
    dataset = _require_dataset(session_id, request)
    return generate_insights(dataset.data, dataset.schema, x_field=body.x_field, y_field=body.y_field)

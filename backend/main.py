import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from chartsmith.api.routes import router, limiter
from chartsmith.api.metrics import router as metrics_router
from chartsmith.core.config import get_settings
from chartsmith.core.errors import ErrorCodes, get_error_response
from chartsmith.core.logging import configure_logging
from chartsmith.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware

load_dotenv()

try:
    settings = get_settings()
except Exception as e:
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="chartsmith",
    description="Chart recommendations, prompt-driven charts and insights for tabular data",
    version="1.0.0"
)

app.state.limiter = limiter
app.state.settings = settings


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    correlation_id = getattr(request.state, 'correlation_id', None)
    return JSONResponse(
        status_code=429,
        content=get_error_response(ErrorCodes.RATE_LIMIT_EXCEEDED, correlation_id=correlation_id),
        headers={"Retry-After": "60"},
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Last added runs first: correlation IDs wrap everything else
app.add_middleware(TimeoutMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"]
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(CorrelationIDMiddleware)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "chartsmith API is running"}

import logging
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette_prometheus import PrometheusMiddleware, metrics

from recipe_capture.api.endpoints import router as api_router
from recipe_capture.core.config import settings
from recipe_capture.core.context import set_request_context
from recipe_capture.core.limiter import limiter
from recipe_capture.core.logging import LoggerRegistry, configure_logging
from recipe_capture.domain.models import RequestContext

# Configure logging before creating the app instance
configure_logging(logging.getLevelName(settings.LOG_LEVEL.upper()))
logger = LoggerRegistry.get_api_logger("main")

app = FastAPI(
    title="Recipe Capture API",
    description="Turns photographed recipes into structured recipe records.",
    version="1.0.0",
)

# --- Middleware Configuration ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Create a new request context and set it for the current request."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    set_request_context(RequestContext(correlation_id=correlation_id))
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


# Instrument FastAPI for OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

app.add_middleware(PrometheusMiddleware)
app.add_route("/metrics", metrics)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


@app.exception_handler(ValueError)
async def configuration_error_handler(request: Request, exc: ValueError):
    # Raised while wiring dependencies, e.g. an unknown RECIPE_PARSER_BACKEND.
    logger.error("dependency.wiring.failed", error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "The service is misconfigured. Please contact the administrator."},
    )


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Application startup",
        ocr_quality_mode=settings.OCR_QUALITY_MODE,
        parser_backend=settings.RECIPE_PARSER_BACKEND,
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/health", tags=["Monitoring"])
@limiter.limit("10/minute")
async def health_check(request: Request):
    """Health check endpoint to verify service is running."""
    return {"status": "ok"}


app.include_router(api_router, prefix="/api")

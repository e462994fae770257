import time
from datetime import datetime, timezone
from typing import Any, Dict, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request

from recipe_capture.api.schemas import (
    BatchCaptureRequest,
    BatchCaptureResponse,
    CaptureRequest,
    DiagnosticsResponse,
    ErrorDetail,
    OcrQualitySetting,
    RecipeResponse,
)
from recipe_capture.core.auditing import log_audit_event
from recipe_capture.core.config import settings
from recipe_capture.core.context import get_correlation_id
from recipe_capture.core.dependencies import (
    get_capture_orchestrator,
    get_extraction_service,
    get_settings_store,
)
from recipe_capture.core.limiter import limiter
from recipe_capture.core.logging import LoggerRegistry
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import AuditEvent, AuditEventName, ServiceStatus
from recipe_capture.domain.ports import HybridTextExtractionPort, SettingsPort
from recipe_capture.domain.result import Result
from recipe_capture.services.capture_orchestrator import CaptureOrchestrator

router = APIRouter()
logger = LoggerRegistry.get_api_logger("capture")

# 499 follows the nginx convention for a request abandoned by the client.
STATUS_BY_KIND = {
    ErrorKind.INPUT_VALIDATION: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.TEXT_NOT_RECIPE: 422,
    ErrorKind.NO_TEXT_EXTRACTED: 422,
    ErrorKind.UNPARSEABLE: 422,
    ErrorKind.EXTRACTION: 502,
    ErrorKind.PARSING: 502,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.PERSISTENCE: 500,
    ErrorKind.UNEXPECTED: 500,
    ErrorKind.CANCELLED: 499,
}


def status_for(result: Result) -> int:
    if result.is_success:
        return 200
    return STATUS_BY_KIND.get(result.kind, 500)


def raise_for_failure(result: Result) -> NoReturn:
    raise HTTPException(
        status_code=status_for(result),
        detail=ErrorDetail(message=result.error, kind=result.kind.value).model_dump(),
    )


def audit(
    request: Request,
    event_name: AuditEventName,
    status_code: int,
    start_time: float,
    event_data: Dict[str, Any],
) -> None:
    log_audit_event(
        AuditEvent(
            event_name=event_name,
            correlation_id=get_correlation_id(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            http_method=request.method,
            endpoint_path=request.url.path,
            http_status_code=status_code,
            response_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
            event_data=event_data,
        )
    )


@router.post("/recipes/capture", response_model=RecipeResponse, tags=["Capture"])
@limiter.limit(settings.RATE_LIMIT_CAPTURE)
async def capture_recipe(
    request: Request,
    body: CaptureRequest,
    orchestrator: CaptureOrchestrator = Depends(get_capture_orchestrator),
):
    """
    Captures one recipe image: extracts its text, checks that it reads like a
    recipe, structures it and, unless ``persist`` is false, saves it.
    """
    start_time = time.perf_counter()
    log = logger.bind(persist=body.persist)
    log.info("capture.request.received")

    result = await orchestrator.execute(body.image_uri, persist=body.persist)
    status_code = status_for(result)

    event_data: Dict[str, Any] = {"persist": body.persist}
    if result.is_success:
        event_data.update(recipe_id=result.value.id.value, title=result.value.title)
    else:
        event_data.update(error=result.error, error_kind=result.kind.value)
    audit(
        request,
        AuditEventName.CAPTURE_SUCCESS if result.is_success else AuditEventName.CAPTURE_FAILURE,
        status_code,
        start_time,
        event_data,
    )

    if result.is_failure:
        log.warning("capture.request.failed", status_code=status_code, error=result.error)
        raise_for_failure(result)
    return RecipeResponse.from_domain(result.value)


@router.post("/recipes/capture/batch", response_model=BatchCaptureResponse, tags=["Capture"])
@limiter.limit(settings.RATE_LIMIT_BATCH)
async def capture_recipes(
    request: Request,
    body: BatchCaptureRequest,
    orchestrator: CaptureOrchestrator = Depends(get_capture_orchestrator),
):
    """Captures several images; succeeds as long as at least one image produced a recipe."""
    start_time = time.perf_counter()
    logger.info("capture.batch_request.received", image_count=len(body.image_uris))

    result = await orchestrator.execute_multiple(body.image_uris, persist=body.persist)
    status_code = status_for(result)

    if result.is_success:
        event_data = {
            "image_count": len(body.image_uris),
            "succeeded": len(result.value.successes),
            "failed": len(result.value.errors),
        }
    else:
        event_data = {"image_count": len(body.image_uris), "error": result.error}
    audit(
        request,
        AuditEventName.BATCH_CAPTURE_SUCCESS if result.is_success else AuditEventName.BATCH_CAPTURE_FAILURE,
        status_code,
        start_time,
        event_data,
    )

    if result.is_failure:
        raise_for_failure(result)
    return BatchCaptureResponse(
        successes=[RecipeResponse.from_domain(r) for r in result.value.successes],
        errors=result.value.errors,
    )


@router.get("/diagnostics", response_model=DiagnosticsResponse, tags=["Diagnostics"])
async def get_diagnostics(
    orchestrator: CaptureOrchestrator = Depends(get_capture_orchestrator),
    extraction_service: HybridTextExtractionPort = Depends(get_extraction_service),
):
    """Confidence and source of the most recent extraction, and the parser's confidence."""
    ocr_confidence = await orchestrator.get_last_ocr_confidence()
    parsing_confidence = await orchestrator.get_last_parsing_confidence()
    for result in (ocr_confidence, parsing_confidence):
        if result.is_failure:
            raise_for_failure(result)
    return DiagnosticsResponse(
        last_ocr_confidence=ocr_confidence.value,
        last_extraction_source=extraction_service.get_last_used_source(),
        parsing_confidence=parsing_confidence.value,
    )


@router.get("/ocr/status", response_model=ServiceStatus, tags=["Diagnostics"])
async def get_ocr_status(
    extraction_service: HybridTextExtractionPort = Depends(get_extraction_service),
):
    """Reports which extraction tiers are currently reachable."""
    status = await extraction_service.get_service_status()
    if status.is_failure:
        raise_for_failure(status)
    return status.value


@router.get("/settings/ocr-quality", response_model=OcrQualitySetting, tags=["Settings"])
async def get_ocr_quality(settings_store: SettingsPort = Depends(get_settings_store)):
    mode = await settings_store.get_ocr_quality_mode()
    if mode.is_failure:
        raise_for_failure(mode)
    return OcrQualitySetting(mode=mode.value)


@router.put("/settings/ocr-quality", response_model=OcrQualitySetting, tags=["Settings"])
async def set_ocr_quality(
    body: OcrQualitySetting,
    settings_store: SettingsPort = Depends(get_settings_store),
):
    updated = await settings_store.set_ocr_quality_mode(body.mode)
    if updated.is_failure:
        raise_for_failure(updated)
    logger.info("settings.ocr_quality.updated", mode=body.mode.value)
    return body

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Any, Dict
from enum import Enum


class ExtractionSource(str, Enum):
    """Which extraction tier produced a piece of text."""
    ON_DEVICE = "on_device"
    CLOUD = "cloud"
    NONE = "none"


class OcrQualityMode(str, Enum):
    """User preference deciding which extraction tiers may run."""
    HYBRID = "hybrid"
    ON_DEVICE = "on_device"
    CLOUD = "cloud"


class ExtractionOutcome(BaseModel):
    """Text produced by one extraction call, with its confidence and source."""
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: ExtractionSource


class ServiceStatus(BaseModel):
    """Availability snapshot of the extraction tiers."""
    on_device: bool
    cloud: bool
    current_mode: OcrQualityMode
    on_device_error: Optional[str] = None
    cloud_error: Optional[str] = None


class BatchOutcome(BaseModel):
    """Outcome of a batch capture: saved recipes plus per-image error strings."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    successes: List[Any] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class CaptureStage(str, Enum):
    """Stages a single capture moves through."""
    VALIDATING_INPUT = "validating_input"
    CHECKING_SERVICE_AVAILABILITY = "checking_service_availability"
    EXTRACTING = "extracting"
    VALIDATING_TEXT = "validating_text"
    PARSING = "parsing"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestContext(BaseModel):
    correlation_id: str = Field(..., description="The correlation ID for the request.")


class AuditEventName(str, Enum):
    """Enum for audit event names to ensure consistency."""

    CAPTURE_SUCCESS = "capture_success"
    CAPTURE_FAILURE = "capture_failure"
    BATCH_CAPTURE_SUCCESS = "batch_capture_success"
    BATCH_CAPTURE_FAILURE = "batch_capture_failure"


class AuditEvent(BaseModel):
    """
    Pydantic model for a structured audit event.

    Captures the request, its outcome and the capture diagnostics so that a
    single log line tells what happened to an uploaded image.
    """

    event_name: AuditEventName
    correlation_id: str
    timestamp: str
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    http_method: str
    endpoint_path: str
    http_status_code: int
    response_time_ms: float
    event_data: Dict[str, Any]

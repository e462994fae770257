import asyncio
import base64
from typing import Any, Dict, Optional

import httpx
import pybreaker
import structlog
from pybreaker import CircuitBreaker, CircuitBreakerError

from recipe_capture.core.config import settings
from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import ExtractionOutcome, ExtractionSource
from recipe_capture.domain.ports import TextExtractionPort
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.image_source import detect_image_format, load_image_bytes

DEFAULT_CLOUD_CONFIDENCE = 0.7

# Fail after BREAKER_FAIL_MAX consecutive failures, and stay open for BREAKER_RESET_TIMEOUT seconds.
# A cancelled capture is not a service failure.
cloud_ocr_breaker = CircuitBreaker(
    fail_max=settings.BREAKER_FAIL_MAX,
    reset_timeout=settings.BREAKER_RESET_TIMEOUT,
    name="cloud_ocr",
    exclude=[asyncio.CancelledError],
)


class CloudTextExtractor(TextExtractionPort):
    """Cloud tier: posts the image to the backend OCR endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.base_url = (base_url or settings.CLOUD_API_BASE_URL).rstrip("/")
        self.api_key = settings.CLOUD_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.CLOUD_REQUEST_TIMEOUT
        self.breaker = breaker or cloud_ocr_breaker
        self.logger = logger or get_infrastructure_logger("cloud_ocr")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post_extract(self, payload: Dict[str, Any]) -> Any:
        with self.breaker.calling():
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/ocr/extract",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
                return response.json()

    async def extract_text(self, image_ref: str) -> Result[ExtractionOutcome]:
        loaded = await load_image_bytes(image_ref)
        if loaded.is_failure:
            return loaded
        detected = detect_image_format(loaded.value)
        if detected.is_failure:
            return detected
        _, image_format = detected.value

        payload = {
            "imageBase64": base64.b64encode(loaded.value).decode("ascii"),
            "imageFormat": image_format,
        }

        try:
            body = await self._post_extract(payload)
        except CircuitBreakerError:
            self.logger.error("cloud_ocr.breaker.open", base_url=self.base_url)
            return Result.failure("Cloud OCR failed: circuit breaker is open", ErrorKind.EXTRACTION)
        except httpx.TimeoutException:
            self.logger.error("cloud_ocr.request.timeout", exc_info=True)
            return Result.failure("Cloud OCR failed: request timed out", ErrorKind.EXTRACTION)
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "cloud_ocr.request.error_status",
                status_code=e.response.status_code,
                response_text=e.response.text,
            )
            return Result.failure(
                f"Cloud OCR failed: HTTP error! status: {e.response.status_code}, message: {e.response.text}",
                ErrorKind.EXTRACTION,
            )
        except httpx.HTTPError as e:
            self.logger.error("cloud_ocr.request.failed", error=str(e))
            return Result.failure(f"Cloud OCR failed: {e}", ErrorKind.EXTRACTION)
        except ValueError as e:
            return Result.failure(f"Cloud OCR failed: invalid response body: {e}", ErrorKind.EXTRACTION)

        if not isinstance(body, dict):
            self.logger.error("cloud_ocr.response.malformed", body_type=type(body).__name__)
            return Result.failure(
                "Cloud OCR failed: invalid response body: expected a JSON object", ErrorKind.EXTRACTION
            )
        if not body.get("success"):
            return Result.failure(body.get("error") or "Cloud OCR failed", ErrorKind.EXTRACTION)

        try:
            confidence = float(body.get("confidence") or DEFAULT_CLOUD_CONFIDENCE)
        except (TypeError, ValueError):
            return Result.failure(
                f"Cloud OCR failed: invalid confidence: {body.get('confidence')!r}", ErrorKind.EXTRACTION
            )
        confidence = max(0.0, min(confidence, 1.0))
        text = body.get("extractedText")
        if not isinstance(text, str):
            text = ""
        self.logger.info("cloud_ocr.request.finished", text_length=len(text), confidence=confidence)
        return Result.success(
            ExtractionOutcome(text=text, confidence=confidence, source=ExtractionSource.CLOUD)
        )

    async def is_available(self) -> Result[bool]:
        if self.breaker.current_state == pybreaker.STATE_OPEN:
            return Result.success(False)
        try:
            async with httpx.AsyncClient(timeout=settings.HEALTH_CHECK_TIMEOUT) as client:
                response = await client.get(f"{self.base_url}/health")
        except httpx.HTTPError as e:
            return Result.failure(f"Cloud OCR service not available: {e}", ErrorKind.SERVICE_UNAVAILABLE)
        return Result.success(response.is_success)

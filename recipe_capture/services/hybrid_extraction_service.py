import asyncio
import threading
from typing import List, Optional

import structlog

from recipe_capture.core.config import settings
from recipe_capture.core.logging import get_service_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import (
    ExtractionOutcome,
    ExtractionSource,
    OcrQualityMode,
    ServiceStatus,
)
from recipe_capture.domain.ports import HybridTextExtractionPort, SettingsPort, TextExtractionPort
from recipe_capture.domain.result import Result


class HybridExtractionService(HybridTextExtractionPort):
    """
    Text extraction that prefers the on-device tier and falls back to the cloud.

    In hybrid mode the on-device extractor runs first; a result whose
    confidence exceeds the threshold is returned as-is. Otherwise the cloud
    extractor is consulted and, when it succeeds, its result wins. When the
    cloud fails, a low-confidence on-device result is still returned, and
    only when both tiers fail does the call fail, with both causes in the
    message. The single-tier modes call one extractor and pass its result
    through untouched.

    Every call returns its own ``ExtractionOutcome``; the "last" diagnostics
    are a lock-guarded snapshot of the most recent outcome.
    """

    def __init__(
        self,
        on_device: TextExtractionPort,
        cloud: TextExtractionPort,
        settings_port: SettingsPort,
        confidence_threshold: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.on_device = on_device
        self.cloud = cloud
        self.settings_port = settings_port
        self.confidence_threshold = (
            settings.ON_DEVICE_CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )
        self.max_concurrency = max_concurrency or settings.BATCH_MAX_CONCURRENCY
        self.logger = logger or get_service_logger("hybrid_extraction")

        self._lock = threading.Lock()
        self._last_source = ExtractionSource.NONE
        self._last_confidence = 0.0

    async def _current_mode(self) -> Result[OcrQualityMode]:
        mode = await self.settings_port.get_ocr_quality_mode()
        if mode.is_failure:
            return Result.failure(f"Failed to get settings: {mode.error}", ErrorKind.EXTRACTION)
        return mode

    async def extract_text(self, image_ref: str) -> Result[ExtractionOutcome]:
        mode = await self._current_mode()
        if mode.is_failure:
            self._record(mode)
            return mode

        if mode.value == OcrQualityMode.ON_DEVICE:
            result = await self.on_device.extract_text(image_ref)
        elif mode.value == OcrQualityMode.CLOUD:
            result = await self.cloud.extract_text(image_ref)
        else:
            result = await self._extract_hybrid(image_ref)

        self._record(result)
        return result

    async def _extract_hybrid(self, image_ref: str) -> Result[ExtractionOutcome]:
        on_device_result = await self.on_device.extract_text(image_ref)

        if on_device_result.is_success:
            confidence = on_device_result.value.confidence
            if confidence > self.confidence_threshold:
                self.logger.info("hybrid.on_device.accepted", confidence=confidence)
                return on_device_result
            self.logger.info(
                "hybrid.fallback.cloud",
                reason="low_confidence",
                confidence=confidence,
                threshold=self.confidence_threshold,
            )
        else:
            self.logger.warning(
                "hybrid.fallback.cloud", reason="on_device_failed", error=on_device_result.error
            )

        cloud_result = await self.cloud.extract_text(image_ref)
        if cloud_result.is_success:
            return cloud_result

        if on_device_result.is_success:
            self.logger.warning(
                "hybrid.fallback.degraded",
                cloud_error=cloud_result.error,
                confidence=on_device_result.value.confidence,
            )
            return on_device_result

        self.logger.error(
            "hybrid.extraction.failed",
            on_device_error=on_device_result.error,
            cloud_error=cloud_result.error,
        )
        return Result.failure(
            f"Both on-device and cloud OCR failed. On-device: {on_device_result.error}, "
            f"Cloud: {cloud_result.error}",
            ErrorKind.EXTRACTION,
        )

    def _record(self, result: Result[ExtractionOutcome]) -> None:
        with self._lock:
            if result.is_success:
                self._last_source = result.value.source
                self._last_confidence = result.value.confidence
            else:
                self._last_source = ExtractionSource.NONE
                self._last_confidence = 0.0

    async def extract_many(self, image_refs: List[str]) -> Result[List[str]]:
        """
        Extracts text from every image, tolerating individual failures.

        Returns the texts of the successful inputs in input order, or a
        failure listing every error when no input succeeded.
        """
        if not image_refs:
            return Result.failure("Image URIs are required", ErrorKind.INPUT_VALIDATION)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(image_ref: str) -> Result[ExtractionOutcome]:
            async with semaphore:
                return await self.extract_text(image_ref)

        results = await asyncio.gather(*(_bounded(ref) for ref in image_refs))

        texts = [r.value.text for r in results if r.is_success]
        errors = [r.error for r in results if r.is_failure]
        if not texts:
            return Result.failure(f"All OCR extractions failed: {'; '.join(errors)}", ErrorKind.EXTRACTION)
        if errors:
            self.logger.warning("hybrid.batch.partial", succeeded=len(texts), failed=len(errors))
        return Result.success(texts)

    async def is_available(self) -> Result[bool]:
        mode = await self._current_mode()
        if mode.is_failure:
            return Result.failure(mode.error, ErrorKind.SERVICE_UNAVAILABLE)

        if mode.value == OcrQualityMode.ON_DEVICE:
            return await self.on_device.is_available()
        if mode.value == OcrQualityMode.CLOUD:
            return await self.cloud.is_available()

        on_device, cloud = await asyncio.gather(self.on_device.is_available(), self.cloud.is_available())
        return Result.success(on_device.value_or(False) or cloud.value_or(False))

    def get_last_confidence_score(self) -> Result[float]:
        with self._lock:
            return Result.success(self._last_confidence)

    def get_last_used_source(self) -> ExtractionSource:
        with self._lock:
            return self._last_source

    async def get_service_status(self) -> Result[ServiceStatus]:
        mode = await self._current_mode()
        if mode.is_failure:
            return mode

        on_device, cloud = await asyncio.gather(self.on_device.is_available(), self.cloud.is_available())
        return Result.success(
            ServiceStatus(
                on_device=on_device.value_or(False),
                cloud=cloud.value_or(False),
                current_mode=mode.value,
                on_device_error=on_device.error if on_device.is_failure else None,
                cloud_error=cloud.error if cloud.is_failure else None,
            )
        )

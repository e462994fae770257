import asyncio
from typing import Optional, Union

from recipe_capture.core.config import settings
from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import OcrQualityMode
from recipe_capture.domain.ports import SettingsPort
from recipe_capture.domain.result import Result

logger = get_infrastructure_logger("settings_store")


class InMemorySettingsStore(SettingsPort):
    """Holds the OCR quality preference; seeded from ``OCR_QUALITY_MODE``."""

    def __init__(self, initial_mode: Optional[Union[OcrQualityMode, str]] = None):
        self._mode = OcrQualityMode(initial_mode or settings.OCR_QUALITY_MODE)
        self._lock = asyncio.Lock()

    async def get_ocr_quality_mode(self) -> Result[OcrQualityMode]:
        async with self._lock:
            return Result.success(self._mode)

    async def set_ocr_quality_mode(self, mode: Union[OcrQualityMode, str]) -> Result[None]:
        try:
            mode = OcrQualityMode(mode)
        except ValueError:
            return Result.failure(f"Unknown OCR quality mode: {mode}", ErrorKind.INPUT_VALIDATION)
        async with self._lock:
            self._mode = mode
        logger.info("settings.ocr_quality.changed", mode=mode.value)
        return Result.success(None)

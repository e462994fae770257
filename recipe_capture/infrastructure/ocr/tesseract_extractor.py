import asyncio
import io
from typing import Any, Dict, List, Optional

import pytesseract
import structlog
from PIL import Image, UnidentifiedImageError

from recipe_capture.core.config import settings
from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import ExtractionOutcome, ExtractionSource
from recipe_capture.domain.ports import TextExtractionPort
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.image_source import detect_image_format, load_image_bytes
from recipe_capture.infrastructure.ocr import text_processor


def _text_and_confidence(data: Dict[str, List[Any]]) -> "tuple[str, float]":
    """
    Rebuilds the page text from ``image_to_data`` output and averages word confidences.

    Tesseract reports -1 for layout rows that carry no word; those are ignored.
    """
    lines: Dict[tuple, List[str]] = {}
    confidences: List[float] = []
    for i, word in enumerate(data.get("text", [])):
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        if conf < 0 or not str(word).strip():
            continue
        confidences.append(conf)
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(str(word).strip())

    text_lines = []
    previous_block = None
    for (block, par, line), words in lines.items():
        if previous_block is not None and (block, par) != previous_block:
            text_lines.append("")
        text_lines.append(" ".join(words))
        previous_block = (block, par)

    mean_confidence = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0
    return "\n".join(text_lines), max(0.0, min(mean_confidence, 1.0))


class TesseractTextExtractor(TextExtractionPort):
    """On-device tier: runs Tesseract locally through pytesseract."""

    def __init__(
        self,
        language: Optional[str] = None,
        tesseract_config: Optional[str] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.language = language or settings.TESSERACT_LANGUAGE
        self.tesseract_config = tesseract_config or settings.TESSERACT_CONFIG
        self.logger = logger or get_infrastructure_logger("tesseract_ocr")

    async def extract_text(self, image_ref: str) -> Result[ExtractionOutcome]:
        loaded = await load_image_bytes(image_ref)
        if loaded.is_failure:
            return loaded
        image_bytes = loaded.value

        detected = detect_image_format(image_bytes)
        if detected.is_failure:
            return detected

        self.logger.info(
            "ocr.processing.started",
            language=self.language,
            tesseract_config=self.tesseract_config,
        )
        try:
            image = Image.open(io.BytesIO(image_bytes))
            data = await asyncio.to_thread(
                pytesseract.image_to_data,
                image,
                lang=self.language,
                config=self.tesseract_config,
                output_type=pytesseract.Output.DICT,
            )
        except UnidentifiedImageError as e:
            return Result.failure(f"Unreadable image: {e}", ErrorKind.EXTRACTION)
        except (pytesseract.TesseractError, OSError, RuntimeError) as e:
            self.logger.error("ocr.processing.failed", error=str(e))
            return Result.failure(f"On-device OCR failed: {e}", ErrorKind.EXTRACTION)

        raw_text, confidence = _text_and_confidence(data)
        processed = text_processor.process_text(raw_text)
        text = processed.value_or("")

        self.logger.info("ocr.processing.finished", text_length=len(text), confidence=confidence)
        return Result.success(
            ExtractionOutcome(text=text, confidence=confidence, source=ExtractionSource.ON_DEVICE)
        )

    async def is_available(self) -> Result[bool]:
        try:
            await asyncio.to_thread(pytesseract.get_tesseract_version)
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            self.logger.warning("ocr.tesseract.unavailable", error=str(e))
            return Result.success(False)
        return Result.success(True)

"""
Capture use case: one image in, one structured (and optionally saved) recipe out.

Each run moves through ``CaptureStage`` in order and stops at the first
failing stage. Stages talk to their collaborators through ``Result`` values;
the only place an exception is caught is ``execute`` itself, which converts
cancellation into a CANCELLED failure and any other fault into an
UNEXPECTED failure naming the stage it happened in.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional

import structlog

from recipe_capture.core.config import settings
from recipe_capture.core.context import get_correlation_id
from recipe_capture.core.logging import get_service_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import BatchOutcome, CaptureStage
from recipe_capture.domain.ports import (
    HybridTextExtractionPort,
    RecipeRepositoryPort,
    RecipeStructuringPort,
)
from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result
from recipe_capture.services.decorators import instrument_stage

CANCELLED_MESSAGE = "Capture was cancelled"


@dataclass
class CaptureRun:
    """Mutable bookkeeping for a single ``execute`` call."""

    image_ref: str
    persist: bool
    cancel_event: Optional[asyncio.Event] = None
    capture_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stage: CaptureStage = CaptureStage.VALIDATING_INPUT

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


def _cancelled() -> Result:
    return Result.failure(CANCELLED_MESSAGE, ErrorKind.CANCELLED)


class CaptureOrchestrator:
    """Sequences extraction, validation, structuring and persistence for captured images."""

    def __init__(
        self,
        extraction_service: HybridTextExtractionPort,
        recipe_parser: RecipeStructuringPort,
        repository: RecipeRepositoryPort,
        max_concurrency: Optional[int] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.extraction_service = extraction_service
        self.recipe_parser = recipe_parser
        self.repository = repository
        self.max_concurrency = max_concurrency or settings.BATCH_MAX_CONCURRENCY
        self.logger = logger or get_service_logger("capture_orchestrator")

    async def execute(
        self,
        image_ref: str,
        persist: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[Recipe]:
        run = CaptureRun(image_ref=image_ref, persist=persist, cancel_event=cancel_event)
        log = self.logger.bind(capture_id=run.capture_id, correlation_id=get_correlation_id())
        log.info("capture.start", image_ref=image_ref, persist=persist)
        start_time = time.perf_counter()

        try:
            result = await self._run(run)
        except asyncio.CancelledError:
            log.warning("capture.cancelled", stage=run.stage.value)
            result = _cancelled()
        except Exception as e:
            log.error("capture.unexpected_error", stage=run.stage.value, error=str(e), exc_info=True)
            result = Result.failure(f"Unexpected error while {run.stage.value}: {e}", ErrorKind.UNEXPECTED)

        duration_ms = round((time.perf_counter() - start_time) * 1000)
        if result.is_success:
            log.info("capture.completed", duration_ms=duration_ms, recipe_id=result.value.id.value)
        else:
            log.warning(
                "capture.failed",
                duration_ms=duration_ms,
                stage=run.stage.value,
                error=result.error,
                error_kind=result.kind.value,
            )
        return result

    async def _run(self, run: CaptureRun) -> Result[Recipe]:
        if not isinstance(run.image_ref, str) or not run.image_ref.strip():
            return Result.failure("Image URI is required", ErrorKind.INPUT_VALIDATION)

        available = await self._check_availability(run)
        if available.is_failure:
            return available

        text = await self._extract(run)
        if text.is_failure:
            return text

        is_recipe = await self._validate_text(run, text.value)
        if is_recipe.is_failure:
            return is_recipe

        recipe = await self._parse(run, text.value)
        if recipe.is_failure:
            return recipe

        if run.persist:
            saved = await self._persist(run, recipe.value)
            if saved.is_failure:
                return saved

        run.stage = CaptureStage.COMPLETED
        return recipe

    async def _guarded(self, run: CaptureRun, awaitable: Awaitable[Result]) -> Result:
        """Awaits a stage call, abandoning it as soon as the run's cancel event is set."""
        if run.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return _cancelled()
        if run.cancel_event is None:
            return await awaitable

        stage_task = asyncio.ensure_future(awaitable)
        cancel_task = asyncio.ensure_future(run.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({stage_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (stage_task, cancel_task):
                if not task.done():
                    task.cancel()
        if stage_task in done and not run.cancelled:
            return stage_task.result()
        return _cancelled()

    @instrument_stage(CaptureStage.CHECKING_SERVICE_AVAILABILITY)
    async def _check_availability(self, run: CaptureRun) -> Result[None]:
        available = await self._guarded(run, self.extraction_service.is_available())
        if available.is_failure:
            if available.kind == ErrorKind.CANCELLED:
                return available
            return Result.failure(
                f"OCR service is not available: {available.error}", ErrorKind.SERVICE_UNAVAILABLE
            )
        if not available.value:
            return Result.failure("OCR service is not available", ErrorKind.SERVICE_UNAVAILABLE)
        return Result.success(None)

    @instrument_stage(CaptureStage.EXTRACTING)
    async def _extract(self, run: CaptureRun) -> Result[str]:
        extracted = await self._guarded(run, self.extraction_service.extract_text(run.image_ref))
        if extracted.is_failure:
            if extracted.kind == ErrorKind.CANCELLED:
                return extracted
            return Result.failure(f"OCR failed: {extracted.error}", ErrorKind.EXTRACTION)

        outcome = extracted.value
        if not outcome.text or not outcome.text.strip():
            return Result.failure("No text could be extracted from the image", ErrorKind.NO_TEXT_EXTRACTED)
        self.logger.info(
            "capture.text.extracted",
            capture_id=run.capture_id,
            source=outcome.source.value,
            confidence=outcome.confidence,
            text_length=len(outcome.text),
        )
        return Result.success(outcome.text)

    @instrument_stage(CaptureStage.VALIDATING_TEXT)
    async def _validate_text(self, run: CaptureRun, text: str) -> Result[None]:
        validated = await self._guarded(run, self.recipe_parser.validate_recipe_text(text))
        if validated.is_failure:
            return validated
        if not validated.value:
            return Result.failure(
                "The extracted text does not appear to be a recipe", ErrorKind.TEXT_NOT_RECIPE
            )
        return Result.success(None)

    @instrument_stage(CaptureStage.PARSING)
    async def _parse(self, run: CaptureRun, text: str) -> Result[Recipe]:
        parsed = await self._guarded(run, self.recipe_parser.parse_recipe(text))
        if parsed.is_failure:
            if parsed.kind == ErrorKind.CANCELLED:
                return parsed
            return Result.failure(f"Recipe parsing failed: {parsed.error}", ErrorKind.PARSING)

        recipe = parsed.value
        if not run.image_ref.startswith("data:"):
            recipe = recipe.update_image_path(run.image_ref).value_or(recipe)
        return Result.success(recipe)

    @instrument_stage(CaptureStage.PERSISTING)
    async def _persist(self, run: CaptureRun, recipe: Recipe) -> Result[None]:
        saved = await self._guarded(run, self.repository.save(recipe))
        if saved.is_failure:
            if saved.kind == ErrorKind.CANCELLED:
                return saved
            return Result.failure(f"Failed to save recipe: {saved.error}", ErrorKind.PERSISTENCE)
        return saved

    async def execute_multiple(
        self,
        image_refs: List[str],
        persist: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[BatchOutcome]:
        """
        Runs ``execute`` for every image with bounded concurrency.

        Successes and per-image error strings are kept in input order. The
        batch fails only when every image failed; the failure carries the
        kind of the first image's failure.
        """
        if not image_refs:
            return Result.failure("Image URIs are required", ErrorKind.INPUT_VALIDATION)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(image_ref: str) -> Result[Recipe]:
            async with semaphore:
                return await self.execute(image_ref, persist=persist, cancel_event=cancel_event)

        self.logger.info("capture.batch.start", image_count=len(image_refs), persist=persist)
        results = await asyncio.gather(*(_bounded(ref) for ref in image_refs))

        outcome = BatchOutcome()
        for index, (image_ref, result) in enumerate(zip(image_refs, results), start=1):
            if result.is_success:
                outcome.successes.append(result.value)
            else:
                outcome.errors.append(f"Failed to process image {index} ({image_ref}): {result.error}")

        self.logger.info(
            "capture.batch.finished",
            succeeded=len(outcome.successes),
            failed=len(outcome.errors),
        )
        if not outcome.successes:
            first_failure = next(r for r in results if r.is_failure)
            return Result.failure(
                f"All images failed to process: {'; '.join(outcome.errors)}", first_failure.kind
            )
        return Result.success(outcome)

    async def get_last_ocr_confidence(self) -> Result[float]:
        return self.extraction_service.get_last_confidence_score()

    async def get_last_parsing_confidence(self) -> Result[float]:
        return await self.recipe_parser.get_parsing_confidence()

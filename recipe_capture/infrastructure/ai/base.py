import asyncio
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import structlog

from recipe_capture.core.config import settings
from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.ports import RecipeStructuringPort
from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result
from recipe_capture.services.recipe_text_validator import RecipeTextValidator


class BaseRecipeParser(RecipeStructuringPort, ABC):
    """
    Abstract base class shared by every recipe structuring backend.

    Subclasses only implement ``_parse`` (one text in, one Recipe out) and
    ``get_parsing_confidence``. Batch parsing, text validation and the
    start/finish logging around each parse are common to all of them.
    """

    def __init__(
        self,
        validator: Optional[RecipeTextValidator] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.validator = validator or RecipeTextValidator()
        self.logger = (logger or get_infrastructure_logger(self.name)).bind(parser=self.name)
        self.max_concurrency = max_concurrency or settings.BATCH_MAX_CONCURRENCY

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique name of the parser."""
        pass

    @abstractmethod
    async def _parse(self, text: str) -> Result[Recipe]:
        """
        Structures a single, non-empty text into a Recipe.

        Returns:
            A success holding the Recipe, or a failure with kind PARSING.
        """
        pass

    @abstractmethod
    async def get_parsing_confidence(self) -> Result[float]:
        pass

    async def parse_recipe(self, text: str) -> Result[Recipe]:
        if not isinstance(text, str) or not text.strip():
            return Result.failure("No text to parse", ErrorKind.INPUT_VALIDATION)

        self.logger.info("parser.parse.start", text_length=len(text))
        start_time = time.perf_counter()
        result = await self._parse(text)
        duration_ms = round((time.perf_counter() - start_time) * 1000)

        if result.is_success:
            self.logger.info(
                "parser.parse.finished",
                duration_ms=duration_ms,
                ingredients=len(result.value.ingredients),
                directions=len(result.value.directions),
            )
        else:
            self.logger.warning("parser.parse.failed", duration_ms=duration_ms, error=result.error)
        return result

    async def parse_recipes(self, texts: List[str]) -> Result[List[Recipe]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(text: str) -> Result[Recipe]:
            async with semaphore:
                return await self.parse_recipe(text)

        results = await asyncio.gather(*(_bounded(text) for text in texts))

        recipes = [r.value for r in results if r.is_success]
        errors = [r.error for r in results if r.is_failure]
        if errors and not recipes:
            return Result.failure(f"All parsing attempts failed: {', '.join(errors)}", ErrorKind.PARSING)
        return Result.success(recipes)

    async def validate_recipe_text(self, text: str) -> Result[bool]:
        return self.validator.validate(text)

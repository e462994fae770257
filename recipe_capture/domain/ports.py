from typing import List, Protocol, runtime_checkable

from recipe_capture.domain.models import (
    ExtractionOutcome,
    ExtractionSource,
    OcrQualityMode,
    ServiceStatus,
)
from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result


@runtime_checkable
class TextExtractionPort(Protocol):
    """Port for anything that turns an image reference into text."""

    async def extract_text(self, image_ref: str) -> Result[ExtractionOutcome]:
        ...

    async def is_available(self) -> Result[bool]:
        ...


@runtime_checkable
class RecipeStructuringPort(Protocol):
    """Port for services that structure free recipe text into a Recipe aggregate."""

    async def parse_recipe(self, text: str) -> Result[Recipe]:
        ...

    async def parse_recipes(self, texts: List[str]) -> Result[List[Recipe]]:
        ...

    async def validate_recipe_text(self, text: str) -> Result[bool]:
        ...

    async def get_parsing_confidence(self) -> Result[float]:
        ...


@runtime_checkable
class RecipeRepositoryPort(Protocol):
    """Port for the persistence engine that stores captured recipes."""

    async def save(self, recipe: Recipe) -> Result[None]:
        ...


@runtime_checkable
class SettingsPort(Protocol):
    """Port for reading and changing the user's OCR quality preference."""

    async def get_ocr_quality_mode(self) -> Result[OcrQualityMode]:
        ...

    async def set_ocr_quality_mode(self, mode: OcrQualityMode) -> Result[None]:
        ...


@runtime_checkable
class HybridTextExtractionPort(TextExtractionPort, Protocol):
    """Extraction service that also exposes batch extraction and diagnostics."""

    async def extract_many(self, image_refs: List[str]) -> Result[List[str]]:
        ...

    def get_last_confidence_score(self) -> Result[float]:
        ...

    def get_last_used_source(self) -> ExtractionSource:
        ...

    async def get_service_status(self) -> Result[ServiceStatus]:
        ...

from functools import lru_cache

from recipe_capture.core.config import settings
from recipe_capture.domain.ports import RecipeStructuringPort
from recipe_capture.infrastructure.ai.heuristic_parser import HeuristicRecipeParser
from recipe_capture.infrastructure.ai.local_llm_parser import LocalLLMRecipeParser
from recipe_capture.infrastructure.ai.remote_parser import RemoteRecipeParser
from recipe_capture.infrastructure.ocr.cloud_extractor import CloudTextExtractor
from recipe_capture.infrastructure.ocr.tesseract_extractor import TesseractTextExtractor
from recipe_capture.infrastructure.persistence.in_memory_repository import InMemoryRecipeRepository
from recipe_capture.infrastructure.persistence.settings_store import InMemorySettingsStore
from recipe_capture.services.capture_orchestrator import CaptureOrchestrator
from recipe_capture.services.hybrid_extraction_service import HybridExtractionService
from recipe_capture.services.recipe_text_validator import RecipeTextValidator


@lru_cache()
def get_settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@lru_cache()
def get_recipe_repository() -> InMemoryRecipeRepository:
    return InMemoryRecipeRepository()


@lru_cache()
def get_extraction_service() -> HybridExtractionService:
    """Get the hybrid extraction service over the Tesseract and cloud tiers."""
    return HybridExtractionService(
        on_device=TesseractTextExtractor(),
        cloud=CloudTextExtractor(),
        settings_port=get_settings_store(),
    )


@lru_cache()
def get_recipe_text_validator() -> RecipeTextValidator:
    return RecipeTextValidator()


@lru_cache()
def get_recipe_parser() -> RecipeStructuringPort:
    """Get the recipe parser selected by RECIPE_PARSER_BACKEND."""
    backend = settings.RECIPE_PARSER_BACKEND
    validator = get_recipe_text_validator()
    if backend == "remote":
        return RemoteRecipeParser(validator=validator)
    if backend == "local_llm":
        return LocalLLMRecipeParser(validator=validator)
    if backend == "heuristic":
        return HeuristicRecipeParser(validator=validator)
    raise ValueError(f"Unknown RECIPE_PARSER_BACKEND: {backend}")


def get_capture_orchestrator() -> CaptureOrchestrator:
    return CaptureOrchestrator(
        extraction_service=get_extraction_service(),
        recipe_parser=get_recipe_parser(),
        repository=get_recipe_repository(),
    )

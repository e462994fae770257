from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "recipe-capture"

    # Extraction tiers
    OCR_QUALITY_MODE: str = "hybrid"  # hybrid | on_device | cloud
    ON_DEVICE_CONFIDENCE_THRESHOLD: float = 0.70
    TESSERACT_LANGUAGE: str = "eng"
    TESSERACT_CONFIG: str = "--psm 3 --oem 3"

    # Cloud backend (OCR + remote recipe structuring)
    CLOUD_API_BASE_URL: str = "http://localhost:5000/api"
    CLOUD_API_KEY: str = ""
    CLOUD_REQUEST_TIMEOUT: float = 60.0
    HEALTH_CHECK_TIMEOUT: float = 5.0

    # Recipe structuring
    RECIPE_PARSER_BACKEND: str = "heuristic"  # remote | local_llm | heuristic
    OLLAMA_API_BASE_URL: str = "http://ollama:11434"
    LOCAL_LLM_MODEL: str = "llama3.1:8b"
    LOCAL_LLM_TIMEOUT: float = 600.0
    # A bare "Ingredients: 2 cups flour" card matches two words and is rejected at 3.
    RECIPE_KEYWORD_THRESHOLD: int = 3
    RECIPE_KEYWORDS: List[str] = [
        "ingredient", "direction", "instruction", "prep", "cook", "bake",
        "fry", "boil", "mix", "stir", "cup", "tablespoon", "teaspoon",
        "minutes", "hours", "servings", "recipe", "preheat", "oven",
    ]

    # Resilience for remote calls
    BREAKER_FAIL_MAX: int = 3
    BREAKER_RESET_TIMEOUT: int = 60

    # Batch fan-out
    BATCH_MAX_CONCURRENCY: int = 4

    # HTTP surface
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8081"]
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_CAPTURE: str = "30/minute"
    RATE_LIMIT_BATCH: str = "5/minute"
    LOG_LEVEL: str = "INFO"


settings = Settings()

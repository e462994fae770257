import json
import re
from typing import Optional

import httpx
import structlog

from recipe_capture.core.config import settings
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.recipe import Recipe, RecipeCategory
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.ai.base import BaseRecipeParser
from recipe_capture.infrastructure.ai.response_mapper import map_response_to_recipe
from recipe_capture.services.recipe_text_validator import RecipeTextValidator

LOCAL_LLM_PARSING_CONFIDENCE = 0.8

STRUCTURING_PROMPT = """You convert recipe text read from a photo into JSON.
Respond with a single JSON object and nothing else, using these keys:
  "title": string,
  "description": string or null,
  "category": one of [{categories}],
  "ingredients": list of {{"text": string, "amount": {{"quantity": number, "unit": string}} or null}},
  "directions": list of {{"text": string, "isListItem": boolean}},
  "tags": list of strings,
  "prepTime": string such as "15 minutes" or null,
  "cookTime": string such as "1 hour 10 minutes" or null,
  "servings": string such as "4 servings" or null,
  "source": string or null

Recipe text:
{text}"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class LocalLLMRecipeParser(BaseRecipeParser):
    """Structures recipe text with a locally hosted model behind an Ollama-compatible API."""

    name = "local_llm_recipe_parser"

    def __init__(
        self,
        ollama_base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        validator: Optional[RecipeTextValidator] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        super().__init__(validator=validator, logger=logger)
        self.ollama_base_url = (ollama_base_url or settings.OLLAMA_API_BASE_URL).rstrip("/")
        self.model = model or settings.LOCAL_LLM_MODEL
        self.timeout = timeout or settings.LOCAL_LLM_TIMEOUT

    def build_prompt(self, text: str) -> str:
        categories = ", ".join(category.value for category in RecipeCategory)
        return STRUCTURING_PROMPT.format(categories=categories, text=text)

    async def _parse(self, text: str) -> Result[Recipe]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.ollama_base_url}/api/chat",
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": self.build_prompt(text)}],
                        "format": "json",
                        "stream": False,
                        "options": {"temperature": 0},
                    },
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            self.logger.error("local_llm.request.timeout", model=self.model, exc_info=True)
            return Result.failure("Local LLM parsing failed: request timed out", ErrorKind.PARSING)
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "local_llm.request.error_status",
                status_code=e.response.status_code,
                response_text=e.response.text,
            )
            return Result.failure(
                f"Local LLM parsing failed: HTTP {e.response.status_code}", ErrorKind.PARSING
            )
        except httpx.HTTPError as e:
            return Result.failure(f"Local LLM parsing failed: {e}", ErrorKind.PARSING)

        try:
            # The actual response content is in response.json()['message']['content']
            content = response.json().get("message", {}).get("content", "")
            data = json.loads(_CODE_FENCE.sub("", content).strip())
        except (ValueError, AttributeError) as e:
            self.logger.warning("local_llm.response.invalid_json", error=str(e))
            return Result.failure(f"Local LLM returned invalid JSON: {e}", ErrorKind.PARSING)

        return map_response_to_recipe(data, text, self.logger)

    async def get_parsing_confidence(self) -> Result[float]:
        return Result.success(LOCAL_LLM_PARSING_CONFIDENCE)

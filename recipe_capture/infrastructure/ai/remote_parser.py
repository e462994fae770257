import asyncio
from typing import Any, Optional

import httpx
import structlog
from pybreaker import CircuitBreaker, CircuitBreakerError

from recipe_capture.core.config import settings
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.ai.base import BaseRecipeParser
from recipe_capture.infrastructure.ai.response_mapper import map_response_to_recipe
from recipe_capture.services.recipe_text_validator import RecipeTextValidator

REMOTE_PARSING_CONFIDENCE = 0.95

remote_parser_breaker = CircuitBreaker(
    fail_max=settings.BREAKER_FAIL_MAX,
    reset_timeout=settings.BREAKER_RESET_TIMEOUT,
    name="remote_recipe_parser",
    exclude=[asyncio.CancelledError],
)


class RemoteRecipeParser(BaseRecipeParser):
    """Structures recipe text through the backend's hosted AI endpoint."""

    name = "remote_recipe_parser"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
        validator: Optional[RecipeTextValidator] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        super().__init__(validator=validator, logger=logger)
        self.base_url = (base_url or settings.CLOUD_API_BASE_URL).rstrip("/")
        self.api_key = settings.CLOUD_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.CLOUD_REQUEST_TIMEOUT
        self.breaker = breaker or remote_parser_breaker

    async def _post_parse(self, text: str) -> Any:
        with self.breaker.calling():
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/recipes/parse",
                    json={"extractedText": text, "useLocalLLM": False},
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.api_key}",
                    },
                )
                response.raise_for_status()
                return response.json()

    async def _parse(self, text: str) -> Result[Recipe]:
        try:
            body = await self._post_parse(text)
        except CircuitBreakerError:
            self.logger.error("remote_parser.breaker.open", base_url=self.base_url)
            return Result.failure("Remote AI parsing failed: circuit breaker is open", ErrorKind.PARSING)
        except httpx.TimeoutException:
            self.logger.error("remote_parser.request.timeout", exc_info=True)
            return Result.failure("Remote AI parsing failed: request timed out", ErrorKind.PARSING)
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "remote_parser.request.error_status",
                status_code=e.response.status_code,
                response_text=e.response.text,
            )
            return Result.failure(
                f"Remote AI parsing failed: API request failed: {e.response.status_code} {e.response.reason_phrase}",
                ErrorKind.PARSING,
            )
        except httpx.HTTPError as e:
            return Result.failure(f"Remote AI parsing failed: {e}", ErrorKind.PARSING)
        except ValueError as e:
            return Result.failure(f"Remote AI parsing failed: invalid response body: {e}", ErrorKind.PARSING)

        if not isinstance(body, dict):
            self.logger.error("remote_parser.response.malformed", body_type=type(body).__name__)
            return Result.failure(
                "Remote AI parsing failed: invalid response body: expected a JSON object", ErrorKind.PARSING
            )
        if not body.get("success"):
            return Result.failure(body.get("error") or "Failed to parse recipe", ErrorKind.PARSING)
        return map_response_to_recipe(body.get("recipe"), text, self.logger)

    async def get_parsing_confidence(self) -> Result[float]:
        return Result.success(REMOTE_PARSING_CONFIDENCE)

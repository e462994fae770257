from typing import Iterable, Optional

from recipe_capture.core.config import settings
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.result import Result


class RecipeTextValidator:
    """
    Cheap keyword heuristic deciding whether extracted text looks like a recipe.

    Each vocabulary word present in the text (case-insensitive substring match)
    counts once; the text is a recipe when at least ``threshold`` words are
    found and, if ``min_lines`` is set, it has that many non-empty lines.
    """

    def __init__(
        self,
        keywords: Optional[Iterable[str]] = None,
        threshold: Optional[int] = None,
        min_lines: Optional[int] = None,
    ):
        self.keywords = tuple(k.lower() for k in (keywords or settings.RECIPE_KEYWORDS))
        self.threshold = threshold if threshold is not None else settings.RECIPE_KEYWORD_THRESHOLD
        self.min_lines = min_lines

    def count_keywords(self, text: str) -> int:
        lowered = text.lower()
        return sum(1 for keyword in self.keywords if keyword in lowered)

    def validate(self, text: str) -> Result[bool]:
        if not isinstance(text, str):
            return Result.failure(
                f"Cannot validate text of type {type(text).__name__}", ErrorKind.INPUT_VALIDATION
            )
        if not text.strip():
            return Result.success(False)

        if self.count_keywords(text) < self.threshold:
            return Result.success(False)
        if self.min_lines is not None:
            non_empty = [line for line in text.splitlines() if line.strip()]
            if len(non_empty) < self.min_lines:
                return Result.success(False)
        return Result.success(True)

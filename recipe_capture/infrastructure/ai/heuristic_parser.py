"""
Offline recipe structuring.

Splits OCR text into title, ingredients and directions by looking for section
headers and list markers, picks up "Prep time", "Cook time" and "Serves"
lines, and hands the result to the shared response mapper. No network, no
model; useful for development and as the fallback backend.
"""

import re
import threading
from fractions import Fraction
from typing import Any, Dict, List, Optional

import structlog

from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.ai.base import BaseRecipeParser
from recipe_capture.infrastructure.ai.response_mapper import map_response_to_recipe
from recipe_capture.infrastructure.ocr.text_processor import estimate_structure_confidence
from recipe_capture.services.recipe_text_validator import RecipeTextValidator

KNOWN_UNITS = {
    "cup", "cups", "c",
    "tablespoon", "tablespoons", "tbsp", "tbs", "tb",
    "teaspoon", "teaspoons", "tsp",
    "ounce", "ounces", "oz",
    "pound", "pounds", "lb", "lbs",
    "gram", "grams", "g", "kilogram", "kilograms", "kg",
    "milliliter", "milliliters", "ml", "liter", "liters", "l",
    "pinch", "dash", "clove", "cloves", "can", "cans", "stick", "sticks",
    "slice", "slices", "package", "packages", "quart", "quarts", "pint", "pints",
}

_INGREDIENT_HEADER = re.compile(r"^ingredients?\b", re.IGNORECASE)
_DIRECTION_HEADER = re.compile(r"^(directions?|instructions?|method|steps|preparation)\b", re.IGNORECASE)
_PREP_LINE = re.compile(r"^prep(?:aration)?\s*time\s*:?\s*(?P<value>.+)$", re.IGNORECASE)
_COOK_LINE = re.compile(r"^(?:cook(?:ing)?|bake|baking)\s*time\s*:?\s*(?P<value>.+)$", re.IGNORECASE)
_SERVES_LINE = re.compile(r"^(?:serves|servings|yield|makes)\s*:?\s*(?P<value>.+)$", re.IGNORECASE)
_SOURCE_LINE = re.compile(r"^(?:source|from)\s*:\s*(?P<value>.+)$", re.IGNORECASE)
_BULLET = re.compile(r"^[-•*·]\s*")
_NUMBERED = re.compile(r"^\d+[.)]\s*")
_AMOUNT = re.compile(
    r"^(?P<quantity>\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)\s*(?P<unit>[A-Za-z]+)\.?\s+(?P<name>.+)$"
)


def _quantity(value: str) -> Optional[float]:
    try:
        return float(sum(Fraction(part) for part in value.split()))
    except (ValueError, ZeroDivisionError):
        return None


def split_ingredient(line: str) -> Dict[str, Any]:
    """Splits "2 cups flour" into text "flour" with amount 2 cups; unknown units keep the whole line."""
    match = _AMOUNT.match(line)
    if match and match.group("unit").lower() in KNOWN_UNITS:
        quantity = _quantity(match.group("quantity"))
        if quantity is not None:
            return {
                "text": match.group("name").strip(),
                "amount": {"quantity": quantity, "unit": match.group("unit")},
            }
    return {"text": line}


def sectionize(text: str) -> Dict[str, Any]:
    """Builds a structured payload, in the shape the response mapper reads, from raw text."""
    payload: Dict[str, Any] = {"ingredients": [], "directions": []}
    section = "title"

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        for key, pattern in (
            ("prepTime", _PREP_LINE),
            ("cookTime", _COOK_LINE),
            ("servings", _SERVES_LINE),
            ("source", _SOURCE_LINE),
        ):
            match = pattern.match(line)
            if match:
                payload.setdefault(key, match.group("value").strip())
                break
        else:
            if _INGREDIENT_HEADER.match(line):
                section = "ingredients"
                continue
            if _DIRECTION_HEADER.match(line):
                section = "directions"
                continue

            if section == "title":
                payload["title"] = line
                section = "description"
            elif section == "description":
                payload["description"] = f"{payload.get('description', '')} {line}".strip()
            elif section == "ingredients":
                payload["ingredients"].append(split_ingredient(_BULLET.sub("", line)))
            else:
                is_list_item = bool(_NUMBERED.match(line) or _BULLET.match(line))
                step = _BULLET.sub("", _NUMBERED.sub("", line))
                payload["directions"].append({"text": step, "isListItem": is_list_item})

    return payload


class HeuristicRecipeParser(BaseRecipeParser):
    """Deterministic line-based parser; confidence is a running average of text-structure scores."""

    name = "heuristic_recipe_parser"

    def __init__(
        self,
        validator: Optional[RecipeTextValidator] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        super().__init__(validator=validator, logger=logger)
        self._lock = threading.Lock()
        self._confidence_total = 0.0
        self._confidence_count = 0

    async def _parse(self, text: str) -> Result[Recipe]:
        payload = sectionize(text)
        result = map_response_to_recipe(payload, text, self.logger)
        if result.is_success:
            with self._lock:
                self._confidence_total += estimate_structure_confidence(text)
                self._confidence_count += 1
        return result

    async def get_parsing_confidence(self) -> Result[float]:
        with self._lock:
            if not self._confidence_count:
                return Result.success(0.0)
            return Result.success(self._confidence_total / self._confidence_count)

"""
Maps a structured recipe payload (remote API or local LLM JSON) onto the
Recipe aggregate.

Mapping is best-effort: every ingredient, direction, tag, time and serving
size is mapped on its own, and one that fails validation is dropped while
the rest of the recipe is kept. Only a missing title fails the whole
mapping, and even then the first line of the source text is tried first.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.quantity_grammar import parse_duration, parse_servings
from recipe_capture.domain.recipe import (
    TITLE_MAX_LENGTH,
    Direction,
    Ingredient,
    IngredientAmount,
    Recipe,
    RecipeCategory,
    Tag,
)
from recipe_capture.domain.result import Result


def _field(data: Dict[str, Any], *names: str) -> Any:
    """Reads the first present key, so both camelCase and snake_case payloads map."""
    for name in names:
        if name in data and data[name] not in (None, ""):
            return data[name]
    return None


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _category_name(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("name")
    return value if isinstance(value, str) else None


def _map_amount(data: Any) -> Optional[IngredientAmount]:
    if not isinstance(data, dict):
        return None
    quantity = data.get("quantity")
    unit = data.get("unit")
    if quantity is None or not unit:
        return None
    try:
        quantity = float(quantity)
    except (TypeError, ValueError):
        return None
    return IngredientAmount.create(quantity, str(unit)).value_or(None)


def map_ingredient(data: Any, order: int) -> Result[Ingredient]:
    if isinstance(data, str):
        return Ingredient.create(data, order=order)
    if not isinstance(data, dict):
        return Result.failure("Ingredient entry is not an object", ErrorKind.VALIDATION)
    return Ingredient.create(str(data.get("text") or ""), _map_amount(data.get("amount")), order)


def map_direction(data: Any, order: int) -> Result[Direction]:
    if isinstance(data, str):
        return Direction.create(data, order, is_list_item=True)
    if not isinstance(data, dict):
        return Result.failure("Direction entry is not an object", ErrorKind.VALIDATION)
    is_list_item = _field(data, "isListItem", "is_list_item")
    return Direction.create(
        str(data.get("text") or ""),
        order,
        is_list_item=True if is_list_item is None else bool(is_list_item),
    )


def map_tag(data: Any) -> Result[Tag]:
    if isinstance(data, str):
        return Tag.create(data)
    if not isinstance(data, dict):
        return Result.failure("Tag entry is not an object", ErrorKind.VALIDATION)
    return Tag.create(str(data.get("name") or ""), data.get("color"))


def _title_candidates(data: Dict[str, Any], source_text: str) -> Iterable[str]:
    title = _field(data, "title")
    if isinstance(title, str):
        yield title
    for line in source_text.splitlines():
        if line.strip():
            yield line.strip()[:TITLE_MAX_LENGTH]
            return


def map_response_to_recipe(
    data: Any,
    source_text: str = "",
    logger: Optional[structlog.stdlib.BoundLogger] = None,
) -> Result[Recipe]:
    if not isinstance(data, dict):
        return Result.failure("Recipe payload is not an object", ErrorKind.PARSING)

    category = RecipeCategory.from_name(_category_name(data.get("category")))
    description = _field(data, "description")
    if not isinstance(description, str):
        description = None

    created: Result[Recipe] = Result.failure("Could not determine a recipe title", ErrorKind.PARSING)
    for candidate in _title_candidates(data, source_text):
        created = Recipe.create(candidate, description, category)
        if created.is_failure and description:
            # An over-long description is optional; keep the title.
            created = Recipe.create(candidate, None, category)
        if created.is_success:
            break
    if created.is_failure:
        return Result.failure(created.error, ErrorKind.PARSING)
    recipe = created.value

    def skipped(what: str, reason: str) -> None:
        if logger is not None:
            logger.debug("recipe_mapping.entry.skipped", entry=what, reason=reason)

    order = 1
    for entry in _as_list(data.get("ingredients")):
        mapped = map_ingredient(entry, order).bind(recipe.add_ingredient)
        if mapped.is_failure:
            skipped("ingredient", mapped.error)
            continue
        recipe = mapped.value
        order += 1

    order = 1
    for entry in _as_list(data.get("directions")):
        mapped = map_direction(entry, order).bind(recipe.add_direction)
        if mapped.is_failure:
            skipped("direction", mapped.error)
            continue
        recipe = mapped.value
        order += 1

    for entry in _as_list(data.get("tags")):
        mapped = map_tag(entry).bind(recipe.add_tag)
        if mapped.is_failure:
            skipped("tag", mapped.error)
            continue
        recipe = mapped.value

    prep_time = _field(data, "prepTime", "prep_time")
    if prep_time is not None:
        mapped = parse_duration(prep_time).bind(recipe.update_prep_time)
        if mapped.is_success:
            recipe = mapped.value
        else:
            skipped("prep_time", mapped.error)

    cook_time = _field(data, "cookTime", "cook_time")
    if cook_time is not None:
        mapped = parse_duration(cook_time).bind(recipe.update_cook_time)
        if mapped.is_success:
            recipe = mapped.value
        else:
            skipped("cook_time", mapped.error)

    servings = _field(data, "servings")
    if isinstance(servings, dict):
        servings = servings.get("count")
    if servings is not None:
        mapped = parse_servings(servings).bind(recipe.update_servings)
        if mapped.is_success:
            recipe = mapped.value
        else:
            skipped("servings", mapped.error)

    source = _field(data, "source")
    if isinstance(source, str):
        mapped = recipe.update_source(source)
        if mapped.is_success:
            recipe = mapped.value
        else:
            skipped("source", mapped.error)

    return Result.success(recipe)

import asyncio
from typing import Dict, List, Optional

from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.ports import RecipeRepositoryPort
from recipe_capture.domain.recipe import Recipe
from recipe_capture.domain.result import Result

logger = get_infrastructure_logger("recipe_repository")


class InMemoryRecipeRepository(RecipeRepositoryPort):
    """Process-local recipe store keyed by recipe id."""

    def __init__(self):
        self._recipes: Dict[str, Recipe] = {}
        self._lock = asyncio.Lock()

    async def save(self, recipe: Recipe) -> Result[None]:
        if not isinstance(recipe, Recipe):
            return Result.failure("Only Recipe aggregates can be saved", ErrorKind.PERSISTENCE)
        async with self._lock:
            self._recipes[recipe.id.value] = recipe
        logger.info("recipe_repository.saved", recipe_id=recipe.id.value, title=recipe.title)
        return Result.success(None)

    async def find_by_id(self, recipe_id: str) -> Result[Optional[Recipe]]:
        async with self._lock:
            return Result.success(self._recipes.get(recipe_id))

    async def find_all(self, include_archived: bool = False) -> Result[List[Recipe]]:
        async with self._lock:
            recipes = list(self._recipes.values())
        if not include_archived:
            recipes = [r for r in recipes if not r.is_archived]
        return Result.success(sorted(recipes, key=lambda r: r.created_at, reverse=True))

    async def delete(self, recipe_id: str) -> Result[None]:
        async with self._lock:
            if self._recipes.pop(recipe_id, None) is None:
                return Result.failure(f"Recipe not found: {recipe_id}", ErrorKind.PERSISTENCE)
        logger.info("recipe_repository.deleted", recipe_id=recipe_id)
        return Result.success(None)

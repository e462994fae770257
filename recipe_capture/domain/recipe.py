"""
Recipe aggregate.

The aggregate root ``Recipe`` owns its ingredients, directions and tags.
Every type here is a frozen pydantic model built through a validating
``create`` factory that returns a ``Result``; every mutation returns a new
instance wrapped in a ``Result`` and never touches the original.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.result import Result

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
SOURCE_MAX_LENGTH = 200
INGREDIENT_TEXT_MAX_LENGTH = 500
DIRECTION_TEXT_MAX_LENGTH = 1000
TAG_NAME_MAX_LENGTH = 50
UNIT_MAX_LENGTH = 20
SERVING_DESCRIPTION_MAX_LENGTH = 50
MAX_MINUTES = 24 * 60
MAX_SERVINGS = 1000

_TAG_NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s\-_]+$")
_HEX_COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _invalid(message: str) -> Result[Any]:
    return Result.failure(message, ErrorKind.VALIDATION)


class RecipeCategory(str, Enum):
    """Categories a recipe can be filed under."""

    APPETIZER = "Appetizer"
    MAIN_COURSE = "MainCourse"
    SIDE_DISH = "SideDish"
    DESSERT = "Dessert"
    BEVERAGE = "Beverage"
    SOUP = "Soup"
    SALAD = "Salad"
    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    SNACK = "Snack"
    SAUCE = "Sauce"
    MARINADE = "Marinade"
    DRESSING = "Dressing"
    DIP = "Dip"
    BREAD = "Bread"
    PASTA = "Pasta"
    RICE = "Rice"
    VEGETABLE = "Vegetable"
    MEAT = "Meat"
    SEAFOOD = "Seafood"
    POULTRY = "Poultry"
    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    GLUTEN_FREE = "GlutenFree"
    DAIRY_FREE = "DairyFree"
    LOW_CARB = "LowCarb"
    KETO = "Keto"
    PALEO = "Paleo"
    MEDITERRANEAN = "Mediterranean"
    ASIAN = "Asian"
    ITALIAN = "Italian"
    MEXICAN = "Mexican"
    INDIAN = "Indian"
    CHINESE = "Chinese"
    JAPANESE = "Japanese"
    THAI = "Thai"
    FRENCH = "French"
    AMERICAN = "American"
    OTHER = "Other"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "RecipeCategory":
        """
        Maps a free-form category name onto a known category.

        Case, spaces, hyphens and underscores are ignored, so "main course",
        "Main-Course" and "MainCourse" all resolve to MAIN_COURSE. Anything
        unknown resolves to OTHER.
        """
        if not name:
            return cls.OTHER
        key = re.sub(r"[\s\-_]+", "", str(name)).lower()
        for category in cls:
            if category.value.lower() == key:
                return category
        return cls.OTHER

    @property
    def display_name(self) -> str:
        return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", self.value)


class RecipeId(BaseModel):
    """Identity of a recipe."""

    model_config = ConfigDict(frozen=True)

    value: str

    @classmethod
    def new(cls) -> "RecipeId":
        return cls(value=str(uuid.uuid4()))

    @classmethod
    def from_string(cls, value: str) -> Result["RecipeId"]:
        if not value or not value.strip():
            return _invalid("Recipe id cannot be empty")
        return Result.success(cls(value=value.strip()))

    def __str__(self) -> str:
        return self.value


# ═══════════════════════════════════════════════════════════
# VALUE OBJECTS
# ═══════════════════════════════════════════════════════════


class IngredientAmount(BaseModel):
    """Numeric quantity plus unit of measurement."""

    model_config = ConfigDict(frozen=True)

    quantity: float = Field(..., ge=0)
    unit: str

    @classmethod
    def create(cls, quantity: float, unit: str) -> Result["IngredientAmount"]:
        if quantity is None or quantity < 0:
            return _invalid("Ingredient amount cannot be negative")
        if not unit or not unit.strip():
            return _invalid("Ingredient unit cannot be null or empty")
        trimmed = unit.strip()
        if len(trimmed) > UNIT_MAX_LENGTH:
            return _invalid(f"Ingredient unit cannot exceed {UNIT_MAX_LENGTH} characters")
        return Result.success(cls(quantity=float(quantity), unit=trimmed))

    def __str__(self) -> str:
        quantity = int(self.quantity) if float(self.quantity).is_integer() else self.quantity
        return f"{quantity} {self.unit}"


class TimeRange(BaseModel):
    """A duration in minutes, optionally expressed as a min/max range."""

    model_config = ConfigDict(frozen=True)

    min_minutes: int = Field(..., ge=0)
    max_minutes: Optional[int] = None

    @classmethod
    def create(cls, minutes: int) -> Result["TimeRange"]:
        if minutes < 0:
            return _invalid("Time cannot be negative")
        if minutes > MAX_MINUTES:
            return _invalid("Time cannot exceed 24 hours")
        return Result.success(cls(min_minutes=int(minutes)))

    @classmethod
    def create_range(cls, min_minutes: int, max_minutes: int) -> Result["TimeRange"]:
        if min_minutes < 0:
            return _invalid("Minimum time cannot be negative")
        if max_minutes < 0:
            return _invalid("Maximum time cannot be negative")
        if min_minutes > max_minutes:
            return _invalid("Minimum time cannot be greater than maximum time")
        if max_minutes > MAX_MINUTES:
            return _invalid("Maximum time cannot exceed 24 hours")
        return Result.success(cls(min_minutes=int(min_minutes), max_minutes=int(max_minutes)))

    @property
    def is_range(self) -> bool:
        return self.max_minutes is not None

    @property
    def upper_minutes(self) -> int:
        return self.max_minutes if self.max_minutes is not None else self.min_minutes

    @property
    def average_minutes(self) -> int:
        if self.is_range:
            return round((self.min_minutes + self.upper_minutes) / 2)
        return self.min_minutes

    def combine(self, other: "TimeRange") -> Result["TimeRange"]:
        """Adds two durations; the result is a range if either side is one."""
        low = self.min_minutes + other.min_minutes
        high = self.upper_minutes + other.upper_minutes
        if not (self.is_range or other.is_range):
            return TimeRange.create(low)
        return TimeRange.create_range(low, high)

    def to_short_string(self) -> str:
        if self.is_range:
            return f"{_format_minutes_short(self.min_minutes)}-{_format_minutes_short(self.upper_minutes)}"
        return _format_minutes_short(self.min_minutes)

    def __str__(self) -> str:
        return self.to_short_string()


def _format_minutes_short(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, remainder = divmod(minutes, 60)
    return f"{hours}h" if remainder == 0 else f"{hours}h{remainder}m"


class ServingSize(BaseModel):
    """Number of servings with an optional description ("cookies", "people")."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(..., gt=0)
    description: Optional[str] = None

    @classmethod
    def create(cls, count: int, description: Optional[str] = None) -> Result["ServingSize"]:
        if count <= 0:
            return _invalid("Serving count must be greater than 0")
        if count > MAX_SERVINGS:
            return _invalid(f"Serving count cannot exceed {MAX_SERVINGS}")
        if description is not None:
            description = description.strip()
            if not description:
                return _invalid("Serving description cannot be empty")
            if len(description) > SERVING_DESCRIPTION_MAX_LENGTH:
                return _invalid(
                    f"Serving description cannot exceed {SERVING_DESCRIPTION_MAX_LENGTH} characters"
                )
        return Result.success(cls(count=int(count), description=description))

    def __str__(self) -> str:
        return f"{self.count} {self.description}" if self.description else str(self.count)


# ═══════════════════════════════════════════════════════════
# SUB-ENTITIES
# ═══════════════════════════════════════════════════════════


class Ingredient(BaseModel):
    """A single ingredient line of a recipe."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    amount: Optional[IngredientAmount] = None
    order: int = Field(1, ge=1)

    @classmethod
    def create(
        cls, text: str, amount: Optional[IngredientAmount] = None, order: int = 1
    ) -> Result["Ingredient"]:
        if not text or not text.strip():
            return _invalid("Ingredient text cannot be null or empty")
        trimmed = text.strip()
        if len(trimmed) > INGREDIENT_TEXT_MAX_LENGTH:
            return _invalid(f"Ingredient text cannot exceed {INGREDIENT_TEXT_MAX_LENGTH} characters")
        if order < 1:
            return _invalid("Ingredient order must be at least 1")
        return Result.success(cls(id=_new_id("ingredient"), text=trimmed, amount=amount, order=order))

    @property
    def display_text(self) -> str:
        if self.amount is not None:
            return f"{self.amount} {self.text}"
        return self.text


class Direction(BaseModel):
    """A single step of the recipe instructions."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    order: int = Field(1, ge=1)
    is_list_item: bool = False

    @classmethod
    def create(cls, text: str, order: int = 1, is_list_item: bool = False) -> Result["Direction"]:
        if not text or not text.strip():
            return _invalid("Direction text cannot be null or empty")
        trimmed = text.strip()
        if len(trimmed) > DIRECTION_TEXT_MAX_LENGTH:
            return _invalid(f"Direction text cannot exceed {DIRECTION_TEXT_MAX_LENGTH} characters")
        if order < 1:
            return _invalid("Direction order must be at least 1")
        return Result.success(
            cls(id=_new_id("direction"), text=trimmed, order=order, is_list_item=is_list_item)
        )

    @property
    def numbered_text(self) -> str:
        return f"{self.order}. {self.text}" if self.is_list_item else self.text


class Tag(BaseModel):
    """A label attached to a recipe."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: Optional[str] = None

    @classmethod
    def create(cls, name: str, color: Optional[str] = None) -> Result["Tag"]:
        if not name or not name.strip():
            return _invalid("Tag name cannot be null or empty")
        trimmed = name.strip()
        if len(trimmed) > TAG_NAME_MAX_LENGTH:
            return _invalid(f"Tag name cannot exceed {TAG_NAME_MAX_LENGTH} characters")
        if not _TAG_NAME_PATTERN.match(trimmed):
            return _invalid("Tag name can only contain letters, numbers, spaces, hyphens, and underscores")
        if color and not _HEX_COLOR_PATTERN.match(color):
            return _invalid("Invalid color format. Use hex color (e.g., #FF0000)")
        return Result.success(cls(id=_new_id("tag"), name=trimmed, color=color or None))


# ═══════════════════════════════════════════════════════════
# AGGREGATE ROOT
# ═══════════════════════════════════════════════════════════


class Recipe(BaseModel):
    """Aggregate root for a captured recipe."""

    model_config = ConfigDict(frozen=True)

    id: RecipeId
    title: str
    description: Optional[str] = None
    category: RecipeCategory = RecipeCategory.OTHER
    prep_time: Optional[TimeRange] = None
    cook_time: Optional[TimeRange] = None
    servings: Optional[ServingSize] = None
    source: Optional[str] = None
    image_path: Optional[str] = None
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime
    ingredients: Tuple[Ingredient, ...] = ()
    directions: Tuple[Direction, ...] = ()
    tags: Tuple[Tag, ...] = ()

    @classmethod
    def create(
        cls,
        title: str,
        description: Optional[str] = None,
        category: RecipeCategory = RecipeCategory.OTHER,
    ) -> Result["Recipe"]:
        title_result = _validate_title(title)
        if title_result.is_failure:
            return title_result
        description_result = _validate_description(description)
        if description_result.is_failure:
            return description_result

        now = _utcnow()
        return Result.success(
            cls(
                id=RecipeId.new(),
                title=title_result.value,
                description=description_result.value,
                category=category,
                created_at=now,
                updated_at=now,
            )
        )

    def _evolve(self, **changes: Any) -> Result["Recipe"]:
        changes["updated_at"] = _utcnow()
        return Result.success(self.model_copy(update=changes))

    # --- sub-entities -------------------------------------------------

    def add_ingredient(self, ingredient: Ingredient) -> Result["Recipe"]:
        if any(existing.id == ingredient.id for existing in self.ingredients):
            return _invalid("Ingredient already exists in recipe")
        return self._evolve(ingredients=self.ingredients + (ingredient,))

    def remove_ingredient(self, ingredient_id: str) -> Result["Recipe"]:
        remaining = tuple(i for i in self.ingredients if i.id != ingredient_id)
        if len(remaining) == len(self.ingredients):
            return _invalid("Ingredient not found in recipe")
        return self._evolve(ingredients=remaining)

    def add_direction(self, direction: Direction) -> Result["Recipe"]:
        if any(existing.id == direction.id for existing in self.directions):
            return _invalid("Direction already exists in recipe")
        return self._evolve(directions=self.directions + (direction,))

    def remove_direction(self, direction_id: str) -> Result["Recipe"]:
        remaining = tuple(d for d in self.directions if d.id != direction_id)
        if len(remaining) == len(self.directions):
            return _invalid("Direction not found in recipe")
        return self._evolve(directions=remaining)

    def add_tag(self, tag: Tag) -> Result["Recipe"]:
        if any(existing.id == tag.id for existing in self.tags):
            return _invalid("Tag already exists in recipe")
        return self._evolve(tags=self.tags + (tag,))

    def remove_tag(self, tag_id: str) -> Result["Recipe"]:
        remaining = tuple(t for t in self.tags if t.id != tag_id)
        if len(remaining) == len(self.tags):
            return _invalid("Tag not found in recipe")
        return self._evolve(tags=remaining)

    # --- scalar fields ------------------------------------------------

    def update_title(self, title: str) -> Result["Recipe"]:
        return _validate_title(title).bind(lambda valid: self._evolve(title=valid))

    def update_description(self, description: Optional[str]) -> Result["Recipe"]:
        return _validate_description(description).bind(lambda valid: self._evolve(description=valid))

    def update_category(self, category: RecipeCategory) -> Result["Recipe"]:
        return self._evolve(category=category)

    def update_prep_time(self, prep_time: Optional[TimeRange]) -> Result["Recipe"]:
        return self._evolve(prep_time=prep_time)

    def update_cook_time(self, cook_time: Optional[TimeRange]) -> Result["Recipe"]:
        return self._evolve(cook_time=cook_time)

    def update_servings(self, servings: Optional[ServingSize]) -> Result["Recipe"]:
        return self._evolve(servings=servings)

    def update_source(self, source: Optional[str]) -> Result["Recipe"]:
        if source and len(source) > SOURCE_MAX_LENGTH:
            return _invalid(f"Recipe source cannot exceed {SOURCE_MAX_LENGTH} characters")
        return self._evolve(source=(source or "").strip() or None)

    def update_image_path(self, image_path: Optional[str]) -> Result["Recipe"]:
        return self._evolve(image_path=image_path)

    # --- lifecycle ----------------------------------------------------

    def archive(self) -> Result["Recipe"]:
        if self.is_archived:
            return _invalid("Recipe is already archived")
        return self._evolve(is_archived=True)

    def unarchive(self) -> Result["Recipe"]:
        if not self.is_archived:
            return _invalid("Recipe is not archived")
        return self._evolve(is_archived=False)

    @property
    def total_time(self) -> Optional[TimeRange]:
        if self.prep_time is None:
            return self.cook_time
        if self.cook_time is None:
            return self.prep_time
        return self.prep_time.combine(self.cook_time).value_or(None)


def _validate_title(title: Optional[str]) -> Result[str]:
    if not title or not title.strip():
        return _invalid("Recipe title cannot be null or empty")
    trimmed = title.strip()
    if len(trimmed) > TITLE_MAX_LENGTH:
        return _invalid(f"Recipe title cannot exceed {TITLE_MAX_LENGTH} characters")
    return Result.success(trimmed)


def _validate_description(description: Optional[str]) -> Result[Optional[str]]:
    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        return _invalid(f"Recipe description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return Result.success((description or "").strip() or None)

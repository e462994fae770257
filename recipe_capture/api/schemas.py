from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from recipe_capture.domain.models import ExtractionSource, OcrQualityMode
from recipe_capture.domain.recipe import Recipe, TimeRange


class CaptureRequest(BaseModel):
    image_uri: str = Field(..., description="Path, file:// URI or data: URI of the recipe image.")
    persist: bool = Field(True, description="Save the structured recipe; false previews it only.")


class BatchCaptureRequest(BaseModel):
    image_uris: List[str]
    persist: bool = True


class TimeRangeResponse(BaseModel):
    min_minutes: int
    max_minutes: Optional[int] = None
    display: str

    @classmethod
    def from_domain(cls, time_range: Optional[TimeRange]) -> Optional["TimeRangeResponse"]:
        if time_range is None:
            return None
        return cls(
            min_minutes=time_range.min_minutes,
            max_minutes=time_range.max_minutes,
            display=time_range.to_short_string(),
        )


class IngredientResponse(BaseModel):
    text: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    order: int


class DirectionResponse(BaseModel):
    text: str
    order: int
    is_list_item: bool


class TagResponse(BaseModel):
    name: str
    color: Optional[str] = None


class RecipeResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str
    prep_time: Optional[TimeRangeResponse] = None
    cook_time: Optional[TimeRangeResponse] = None
    total_time: Optional[TimeRangeResponse] = None
    servings: Optional[int] = None
    servings_description: Optional[str] = None
    source: Optional[str] = None
    image_path: Optional[str] = None
    is_archived: bool
    created_at: datetime
    updated_at: datetime
    ingredients: List[IngredientResponse]
    directions: List[DirectionResponse]
    tags: List[TagResponse]

    @classmethod
    def from_domain(cls, recipe: Recipe) -> "RecipeResponse":
        return cls(
            id=recipe.id.value,
            title=recipe.title,
            description=recipe.description,
            category=recipe.category.value,
            prep_time=TimeRangeResponse.from_domain(recipe.prep_time),
            cook_time=TimeRangeResponse.from_domain(recipe.cook_time),
            total_time=TimeRangeResponse.from_domain(recipe.total_time),
            servings=recipe.servings.count if recipe.servings else None,
            servings_description=recipe.servings.description if recipe.servings else None,
            source=recipe.source,
            image_path=recipe.image_path,
            is_archived=recipe.is_archived,
            created_at=recipe.created_at,
            updated_at=recipe.updated_at,
            ingredients=[
                IngredientResponse(
                    text=i.text,
                    quantity=i.amount.quantity if i.amount else None,
                    unit=i.amount.unit if i.amount else None,
                    order=i.order,
                )
                for i in recipe.ingredients
            ],
            directions=[
                DirectionResponse(text=d.text, order=d.order, is_list_item=d.is_list_item)
                for d in recipe.directions
            ],
            tags=[TagResponse(name=t.name, color=t.color) for t in recipe.tags],
        )


class BatchCaptureResponse(BaseModel):
    successes: List[RecipeResponse]
    errors: List[str]


class DiagnosticsResponse(BaseModel):
    last_ocr_confidence: float
    last_extraction_source: ExtractionSource
    parsing_confidence: float


class OcrQualitySetting(BaseModel):
    mode: OcrQualityMode


class ErrorDetail(BaseModel):
    message: str
    kind: str

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.app.domain.models import Category, Recipe

DifficultyLiteral = Literal["Einfach", "Mittel", "Schwer"]


class IngredientItem(BaseModel):
    name: str = Field(min_length=1)
    amount: Optional[str] = None
    checked: bool = False


class InstructionItem(BaseModel):
    text: str = Field(min_length=1)
    icon: Optional[str] = None


class RecipeResponse(BaseModel):
    id: str
    title: str
    category: str
    prepTimeMinutes: int
    difficulty: DifficultyLiteral
    portions: int
    ingredients: list[IngredientItem] = Field(default_factory=list)
    instructions: list[InstructionItem] = Field(default_factory=list)
    image: str = ""
    imageStorageId: Optional[str] = None
    imageBlurhash: Optional[str] = None
    imageAlt: Optional[str] = None
    sourceImageUrl: Optional[str] = None
    sourceUrl: Optional[str] = None
    isFavorite: bool = False
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class RecipeListResponse(BaseModel):
    items: list[RecipeResponse]
    limit: int
    offset: int


class RecipeCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=80)
    prepTimeMinutes: int = Field(ge=1)
    difficulty: DifficultyLiteral = "Mittel"
    portions: int = Field(ge=1)
    ingredients: list[IngredientItem] = Field(default_factory=list)
    instructions: list[InstructionItem] = Field(default_factory=list)
    image: str = ""
    imageStorageId: Optional[str] = None
    imageBlurhash: Optional[str] = None
    imageAlt: Optional[str] = None
    sourceImageUrl: Optional[str] = None
    sourceUrl: Optional[str] = None


class RecipeUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=80)
    prepTimeMinutes: Optional[int] = Field(default=None, ge=1)
    difficulty: Optional[DifficultyLiteral] = None
    portions: Optional[int] = Field(default=None, ge=1)
    ingredients: Optional[list[IngredientItem]] = None
    instructions: Optional[list[InstructionItem]] = None
    image: Optional[str] = None
    imageStorageId: Optional[str] = None
    imageBlurhash: Optional[str] = None
    imageAlt: Optional[str] = None
    isFavorite: Optional[bool] = None


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int


class CategoryResponse(BaseModel):
    id: Optional[str] = None
    name: str
    icon: str
    color: str
    order: int
    imageUrl: Optional[str] = None
    count: int


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def recipe_response(recipe: Recipe) -> RecipeResponse:
    return RecipeResponse(
        id=str(recipe.id),
        title=recipe.title,
        category=recipe.category,
        prepTimeMinutes=recipe.prep_time_minutes,
        difficulty=recipe.difficulty.value,
        portions=recipe.portions,
        ingredients=[
            IngredientItem(name=i.name, amount=i.amount, checked=i.checked)
            for i in recipe.ingredients
        ],
        instructions=[InstructionItem(text=s.text, icon=s.icon) for s in recipe.instructions],
        image=recipe.image,
        imageStorageId=recipe.image_storage_id,
        imageBlurhash=recipe.image_blurhash,
        imageAlt=recipe.image_alt,
        sourceImageUrl=recipe.source_image_url,
        sourceUrl=recipe.source_url,
        isFavorite=recipe.is_favorite,
        createdAt=_iso(recipe.created_at),
        updatedAt=_iso(recipe.updated_at),
    )


def category_response(category: Category, count: int) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        icon=category.icon,
        color=category.color,
        order=category.order,
        imageUrl=category.image_url,
        count=count,
    )

# src/app/routers/recipes.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from src.app.deps import CurrentUser, get_current_user, get_recipe_service
from src.app.domain.models import Difficulty, Ingredient, Instruction, Recipe
from src.app.schemas.recipes import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    IngredientItem,
    InstructionItem,
    RecipeCreateRequest,
    RecipeListResponse,
    RecipeResponse,
    RecipeUpdateRequest,
    recipe_response,
)
from src.app.services.recipe_service import RecipeService
from src.services.icons import sanitize_icon

log = logging.getLogger("recipes")
router = APIRouter(prefix="/recipes", tags=["recipes"])

# request field -> column
_UPDATE_FIELDS = {
    "title": "title",
    "category": "category",
    "prepTimeMinutes": "prep_time_minutes",
    "portions": "portions",
    "image": "image",
    "imageStorageId": "image_storage_id",
    "imageBlurhash": "image_blurhash",
    "imageAlt": "image_alt",
    "isFavorite": "is_favorite",
}


def _ingredients(items: list[IngredientItem]) -> list[Ingredient]:
    return [
        Ingredient(name=i.name.strip(), amount=(i.amount or "").strip() or None, checked=i.checked)
        for i in items
        if i.name.strip()
    ]


def _instructions(items: list[InstructionItem]) -> list[Instruction]:
    return [Instruction(text=s.text.strip(), icon=sanitize_icon(s.icon)) for s in items if s.text.strip()]


def _changes_from(body: RecipeUpdateRequest) -> dict[str, Any]:
    provided = body.model_dump(exclude_unset=True)
    changes: dict[str, Any] = {
        column: provided[field]
        for field, column in _UPDATE_FIELDS.items()
        if field in provided and provided[field] is not None
    }
    if body.difficulty is not None:
        changes["difficulty"] = Difficulty(body.difficulty)
    if body.ingredients is not None:
        changes["ingredients"] = _ingredients(body.ingredients)
    if body.instructions is not None:
        changes["instructions"] = _instructions(body.instructions)
    for column in ("title", "category"):
        if column in changes:
            changes[column] = changes[column].strip()
    return changes


@router.get("", response_model=RecipeListResponse)
def list_recipes(
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
    category: str | None = Query(default=None, max_length=80),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> RecipeListResponse:
    recipes = service.list_recipes(user.id, limit=limit, offset=offset, category=category)
    return RecipeListResponse(items=[recipe_response(r) for r in recipes], limit=limit, offset=offset)


@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(
    body: RecipeCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    recipe = Recipe(
        owner_id=user.id,
        title=body.title.strip(),
        category=body.category.strip(),
        prep_time_minutes=body.prepTimeMinutes,
        difficulty=Difficulty(body.difficulty),
        portions=body.portions,
        ingredients=_ingredients(body.ingredients),
        instructions=_instructions(body.instructions),
        image=body.image,
        image_storage_id=body.imageStorageId,
        image_blurhash=body.imageBlurhash,
        image_alt=body.imageAlt,
        source_image_url=body.sourceImageUrl,
        source_url=body.sourceUrl,
    )
    stored = service.create(recipe)
    log.info("recipe.created id=%s owner=%s", stored.id, user.id)
    return recipe_response(stored)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_recipes(
    body: BulkDeleteRequest,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(deleted=service.bulk_delete(user.id, body.ids))


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    return recipe_response(service.get(user.id, recipe_id))


@router.patch("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: str,
    body: RecipeUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    return recipe_response(service.update(user.id, recipe_id, _changes_from(body)))


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> None:
    service.delete(user.id, recipe_id)


@router.post("/{recipe_id}/favorite", response_model=RecipeResponse)
def favorite_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    return recipe_response(service.set_favorite(user.id, recipe_id, True))


@router.delete("/{recipe_id}/favorite", response_model=RecipeResponse)
def unfavorite_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    return recipe_response(service.set_favorite(user.id, recipe_id, False))

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.app.deps import CurrentUser, get_category_stats, get_current_user
from src.app.schemas.recipes import CategoryResponse, category_response
from src.app.services.category_stats import CategoryStatsService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryResponse])
def list_categories(
    user: CurrentUser = Depends(get_current_user),
    stats: CategoryStatsService = Depends(get_category_stats),
) -> list[CategoryResponse]:
    return [category_response(category, count) for category, count in stats.list_with_counts(user.id)]

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.app.deps import CurrentUser, get_current_user, get_quota_service
from src.app.schemas.imports import UsageResponse
from src.app.services.quota_service import QuotaService

router = APIRouter(tags=["account"])


@router.get("/auth/me", response_model=CurrentUser)
async def me(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    return user


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user: CurrentUser = Depends(get_current_user),
    quota: QuotaService = Depends(get_quota_service),
) -> UsageResponse:
    """Lifetime counters and remaining free allowance, for the upgrade prompt."""
    return UsageResponse.model_validate(quota.get_usage(user.id))

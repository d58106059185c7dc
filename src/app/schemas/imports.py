from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.schemas.recipes import RecipeResponse


class ImportUrlRequest(BaseModel):
    url: str = Field(min_length=1, max_length=2048)


class ImportResponse(BaseModel):
    recipeId: str
    duplicate: bool = False
    recipe: Optional[RecipeResponse] = None


class BulkImportResponse(BaseModel):
    batchId: str
    succeeded: list[str]
    failedCount: int
    total: int
    cancelled: bool


class CancelBatchResponse(BaseModel):
    batchId: str
    cancelled: bool


class RateLimitResponse(BaseModel):
    remaining: int
    resetAt: int  # epoch milliseconds
    limit: int


class FeatureUsage(BaseModel):
    current: int
    limit: Optional[int] = None
    remaining: Optional[int] = None


class UsageResponse(BaseModel):
    subscription: str
    subscriptionStatus: str
    isPaid: bool
    features: dict[str, FeatureUsage]

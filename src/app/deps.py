# src/app/deps.py (singletons do processo expostos como dependências)

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client

from src.app.config import settings
from src.app.domain.errors import NotAuthenticatedError
from src.app.infra.db.supabase_repo import (
    SupabaseCategoryRepository,
    SupabaseRecipeRepository,
    SupabaseUserRepository,
    create_supabase_client,
)
from src.app.infra.storage.r2_provider import R2StorageProvider
from src.app.services.bulk_scan import BatchRegistry
from src.app.services.category_stats import CategoryStatsService
from src.app.services.dedup import DeduplicationGuard
from src.app.services.import_pipeline import RecipeImporter
from src.app.services.quota_service import QuotaService
from src.app.services.rate_limiter import InMemoryRateLimiter
from src.app.services.recipe_service import RecipeService
from src.services.extractor import RecipeExtractor
from src.services.fetcher import InstagramFetcher, WebsiteFetcher
from src.services.gemini_client import GeminiClient
from src.services.images import ImageProcessor

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        _client = create_supabase_client()
    return _client


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Recebe Authorization: Bearer <access_token> do Supabase,
    valida no GoTrue e retorna dados mínimos do usuário.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise NotAuthenticatedError()

    try:
        res = supa.auth.get_user(cred.credentials)
    except Exception as exc:
        raise NotAuthenticatedError() from exc

    user = res.user if res else None
    if not user:
        raise NotAuthenticatedError()

    # metadados podem conter 'name'
    name = None
    meta = getattr(user, "user_metadata", None) or {}
    if isinstance(meta, dict):
        name = meta.get("name")

    return CurrentUser(id=str(user.id), email=user.email, name=name)


@lru_cache(maxsize=1)
def get_rate_limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter()


@lru_cache(maxsize=1)
def get_storage() -> R2StorageProvider:
    return R2StorageProvider()


@lru_cache(maxsize=1)
def get_batch_registry() -> BatchRegistry:
    return BatchRegistry()


def get_quota_service() -> QuotaService:
    return QuotaService(SupabaseUserRepository(get_supabase()))


@lru_cache(maxsize=1)
def get_category_stats() -> CategoryStatsService:
    return CategoryStatsService(SupabaseCategoryRepository(get_supabase()), storage=get_storage())


@lru_cache(maxsize=1)
def get_recipe_service() -> RecipeService:
    return RecipeService(
        SupabaseRecipeRepository(get_supabase()),
        quota=get_quota_service(),
        categories=get_category_stats(),
        storage=get_storage(),
    )


@lru_cache(maxsize=1)
def get_importer() -> RecipeImporter:
    # holds process-wide state: per-url locks and running batches
    return RecipeImporter(
        rate_limiter=get_rate_limiter(),
        dedup=DeduplicationGuard(SupabaseRecipeRepository(get_supabase())),
        instagram=InstagramFetcher(settings.APIFY_API_TOKEN),
        website=WebsiteFetcher(settings.JINA_API_KEY),
        extractor=RecipeExtractor(GeminiClient(settings.GEMINI_API_KEY, settings.GEMINI_MODEL)),
        images=ImageProcessor(get_storage()),
        recipes=get_recipe_service(),
        batches=get_batch_registry(),
    )

from __future__ import annotations

from typing import Callable, Optional

import httpx
import pytest

from src.app.services.category_stats import CategoryStatsService
from src.app.services.dedup import DeduplicationGuard
from src.app.services.import_pipeline import RecipeImporter
from src.app.services.quota_service import QuotaService
from src.app.services.rate_limiter import InMemoryRateLimiter
from src.app.services.recipe_service import RecipeService
from src.services.extractor import RecipeExtractor
from src.services.images import ImageProcessor
from src.services.types import FetchedContent
from tests.unit.fakes import (
    RECIPE_JSON,
    InMemoryCategoryRepository,
    InMemoryRecipeRepository,
    InMemoryStorage,
    InMemoryUserRepository,
    StubFetcher,
    StubModel,
    image_transport,
    make_image_bytes,
)


@pytest.fixture
def recipe_repo() -> InMemoryRecipeRepository:
    return InMemoryRecipeRepository()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def category_repo() -> InMemoryCategoryRepository:
    return InMemoryCategoryRepository()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def quota_service(user_repo: InMemoryUserRepository) -> QuotaService:
    return QuotaService(user_repo)


@pytest.fixture
def category_stats(category_repo: InMemoryCategoryRepository, storage: InMemoryStorage) -> CategoryStatsService:
    return CategoryStatsService(category_repo, storage=storage)


@pytest.fixture
def recipe_service(
    recipe_repo: InMemoryRecipeRepository,
    quota_service: QuotaService,
    category_stats: CategoryStatsService,
    storage: InMemoryStorage,
) -> RecipeService:
    return RecipeService(recipe_repo, quota=quota_service, categories=category_stats, storage=storage)


@pytest.fixture
def build_importer(
    recipe_repo: InMemoryRecipeRepository,
    recipe_service: RecipeService,
    storage: InMemoryStorage,
) -> Callable[..., RecipeImporter]:
    def _build(
        model: Optional[StubModel] = None,
        instagram: Optional[StubFetcher] = None,
        website: Optional[StubFetcher] = None,
        transport: Optional[httpx.MockTransport] = None,
        rate_limiter: Optional[InMemoryRateLimiter] = None,
        bulk_concurrency: int = 3,
    ) -> RecipeImporter:
        return RecipeImporter(
            rate_limiter=rate_limiter or InMemoryRateLimiter(),
            dedup=DeduplicationGuard(recipe_repo),
            instagram=instagram or StubFetcher(FetchedContent("social", "", None, "caption", None)),
            website=website or StubFetcher(FetchedContent("website", "", "Page", "# Rezept", None)),
            extractor=RecipeExtractor(model or StubModel(RECIPE_JSON)),
            images=ImageProcessor(
                storage,
                transport=transport or image_transport(make_image_bytes()),
                pollinations_base_url="https://gen.test/prompt",
            ),
            recipes=recipe_service,
            bulk_concurrency=bulk_concurrency,
        )

    return _build

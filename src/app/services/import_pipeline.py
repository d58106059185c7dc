# src/app/services/import_pipeline.py
"""
Recipe import orchestration.

URL imports:  rate limit -> dedup -> fetch -> extract -> image -> final dedup
              (serialized per owner+url) -> quota -> insert -> count
Photo scans:  rate limit -> prepare -> extract -> image -> quota -> insert -> count
Bulk scans run the photo sequence per file through BulkScanCoordinator.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from starlette.concurrency import run_in_threadpool

from src.app.constants import BULK_SCAN_CONCURRENCY, PHOTO_SCAN_MARKER
from src.app.domain.errors import (
    ApiUnavailableError,
    ExtractionError,
    InvalidImageError,
    InvalidSourceUrlError,
    RateLimitExceededError,
    RecipeImportError,
)
from src.app.domain.models import (
    BulkScanResult,
    ExtractedRecipeDoc,
    ImportOutcome,
    RateLimitStatus,
    Recipe,
    RecipeFallback,
    ResolvedImage,
    SourceKind,
)
from src.app.services.bulk_scan import BatchRegistry, BulkScanCoordinator
from src.app.services.dedup import DeduplicationGuard
from src.app.services.rate_limiter import RateLimiter
from src.app.services.recipe_service import RecipeService
from src.services.errors import ImageDecodeError, InvalidURLError, ServiceError
from src.services.extractor import RecipeExtractor
from src.services.fetcher import InstagramFetcher, WebsiteFetcher, prepare_photo
from src.services.ids import is_http_url, is_social_post_url
from src.services.images import ImageProcessor
from src.services.types import FetchedContent

log = logging.getLogger("imports")

UNAVAILABLE_MESSAGES = {
    SourceKind.SOCIAL: (
        "apify",
        "Instagram-Import ist gerade nicht verfügbar. Du kannst das Rezept manuell anlegen.",
    ),
    SourceKind.WEBSITE: (
        "jina",
        "Die Webseite konnte nicht gelesen werden. Du kannst das Rezept manuell anlegen.",
    ),
}


def build_recipe(
    owner_id: str,
    doc: ExtractedRecipeDoc,
    image: ResolvedImage,
    source_url: Optional[str],
    source_image_url: Optional[str],
) -> Recipe:
    return Recipe(
        owner_id=owner_id,
        title=doc.title,
        category=doc.category,
        prep_time_minutes=doc.prep_time_minutes,
        difficulty=doc.difficulty,
        portions=doc.portions,
        ingredients=list(doc.ingredients),
        instructions=list(doc.instructions),
        image=image.display_url,
        image_storage_id=image.storage_id,
        image_blurhash=image.blurhash,
        image_alt=doc.title,
        source_image_url=source_image_url,
        source_url=source_url,
    )


class RecipeImporter:
    def __init__(
        self,
        *,
        rate_limiter: RateLimiter,
        dedup: DeduplicationGuard,
        instagram: InstagramFetcher,
        website: WebsiteFetcher,
        extractor: RecipeExtractor,
        images: ImageProcessor,
        recipes: RecipeService,
        batches: Optional[BatchRegistry] = None,
        bulk_concurrency: int = BULK_SCAN_CONCURRENCY,
    ):
        self._rate_limiter = rate_limiter
        self._dedup = dedup
        self._fetchers = {SourceKind.SOCIAL: instagram, SourceKind.WEBSITE: website}
        self._extractor = extractor
        self._images = images
        self._recipes = recipes
        self._batches = batches or BatchRegistry()
        self._bulk_concurrency = bulk_concurrency

    def _check_rate_limit(self, owner_id: str) -> None:
        if not self._rate_limiter.check(owner_id):
            status = self._rate_limiter.status(owner_id)
            log.info("import.rate_limited owner=%s reset_at=%.0f", owner_id, status.reset_at)
            raise RateLimitExceededError(reset_at=status.reset_at)

    def rate_limit_status(self, owner_id: str) -> RateLimitStatus:
        return self._rate_limiter.status(owner_id)

    async def import_social(self, owner_id: str, url: str) -> ImportOutcome:
        return await self._import_url(owner_id, url.strip(), SourceKind.SOCIAL)

    async def import_website(self, owner_id: str, url: str) -> ImportOutcome:
        return await self._import_url(owner_id, url.strip(), SourceKind.WEBSITE)

    async def _import_url(self, owner_id: str, url: str, source: SourceKind) -> ImportOutcome:
        self._check_rate_limit(owner_id)

        valid = is_social_post_url(url) if source == SourceKind.SOCIAL else is_http_url(url)
        if not valid:
            raise InvalidSourceUrlError(url)

        log.info("import.start source=%s url=%s owner=%s", source.value, url, owner_id)

        existing = await run_in_threadpool(self._dedup.find_by_source, owner_id, url)
        if existing:
            log.info("import.duplicate url=%s recipe_id=%s", url, existing)
            return ImportOutcome(recipe_id=existing, duplicate=True)

        content = await self._fetch(source, url)
        doc = await self._extractor.extract(content)
        if doc.degraded:
            log.warning("import.extract_degraded url=%s", url)

        image = await self._images.resolve(owner_id, content.image_url, doc.image_keywords or doc.title)

        async with self._dedup.lock_for(owner_id, url):
            existing = await run_in_threadpool(self._dedup.find_by_source, owner_id, url)
            if existing:
                log.info("import.duplicate_late url=%s recipe_id=%s", url, existing)
                await self._images.discard(image)
                return ImportOutcome(recipe_id=existing, duplicate=True)

            recipe = build_recipe(owner_id, doc, image, source_url=url, source_image_url=content.image_url)
            stored = await self._persist(recipe, image)

        log.info("import.done url=%s recipe_id=%s", url, stored.id)
        return ImportOutcome(recipe_id=stored.id, recipe=stored)

    async def _fetch(self, source: SourceKind, url: str) -> FetchedContent:
        try:
            return await self._fetchers[source].fetch(url)
        except InvalidURLError as err:
            raise InvalidSourceUrlError(url, str(err)) from err
        except ServiceError as err:
            service, message = UNAVAILABLE_MESSAGES[source]
            log.warning("import.fetch_failed service=%s url=%s error=%s", service, url, err)
            raise ApiUnavailableError(service=service, prefill_url=url, message=message) from err

    async def _persist(self, recipe: Recipe, image: ResolvedImage) -> Recipe:
        try:
            return await run_in_threadpool(self._recipes.create, recipe)
        except RecipeImportError:
            await self._images.discard(image)
            raise

    async def import_photo(self, owner_id: str, data: bytes, fallback: RecipeFallback) -> ImportOutcome:
        self._check_rate_limit(owner_id)
        log.info("import.start source=photo owner=%s bytes=%d", owner_id, len(data))

        recipe = await self._scan_photo(owner_id, data, fallback)
        return ImportOutcome(recipe_id=recipe.id, recipe=recipe)

    async def _scan_photo(
        self,
        owner_id: str,
        data: bytes,
        fallback: RecipeFallback,
        coordinator: Optional[BulkScanCoordinator] = None,
    ) -> Optional[Recipe]:
        try:
            prepared = await run_in_threadpool(prepare_photo, data)
        except ImageDecodeError as err:
            raise InvalidImageError() from err

        try:
            doc = await self._extractor.extract_photo(prepared, fallback)
        except ServiceError as err:
            log.warning("import.photo_extract_failed owner=%s error=%s", owner_id, err)
            raise ExtractionError("Das Rezept konnte nicht vom Foto gelesen werden.") from err

        if coordinator is not None and coordinator.cancelled:
            log.info("import.photo_skipped_cancelled owner=%s", owner_id)
            return None

        image = await self._images.resolve(owner_id, None, doc.image_keywords or doc.title)
        recipe = build_recipe(owner_id, doc, image, source_url=None, source_image_url=PHOTO_SCAN_MARKER)
        stored = await self._persist(recipe, image)

        log.info("import.done source=photo recipe_id=%s", stored.id)
        return stored

    async def import_photos(
        self,
        owner_id: str,
        files: Sequence[bytes],
        fallback: RecipeFallback,
        batch_id: str,
    ) -> BulkScanResult:
        self._check_rate_limit(owner_id)
        log.info("import.bulk_start owner=%s batch=%s files=%d", owner_id, batch_id, len(files))

        coordinator: BulkScanCoordinator[bytes] = BulkScanCoordinator(self._bulk_concurrency)

        async def scan_one(data: bytes) -> Optional[str]:
            recipe = await self._scan_photo(owner_id, data, fallback, coordinator)
            return recipe.id if recipe is not None else None

        self._batches.register(owner_id, batch_id, coordinator)
        try:
            return await coordinator.run(files, scan_one)
        finally:
            self._batches.discard(owner_id, batch_id)

    def cancel_batch(self, owner_id: str, batch_id: str) -> bool:
        cancelled = self._batches.cancel(owner_id, batch_id)
        log.info("import.bulk_cancel owner=%s batch=%s found=%s", owner_id, batch_id, cancelled)
        return cancelled

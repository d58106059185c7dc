# src/app/routers/imports.py
from __future__ import annotations

import logging
import time
from typing import Optional, Union
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.app.deps import CurrentUser, get_current_user, get_importer
from src.app.domain.errors import InvalidImageError
from src.app.domain.models import ImportOutcome
from src.app.schemas.imports import (
    BulkImportResponse,
    CancelBatchResponse,
    ImportResponse,
    ImportUrlRequest,
    RateLimitResponse,
)
from src.app.schemas.recipes import recipe_response
from src.app.services.import_pipeline import RecipeImporter
from src.services.extractor import photo_fallback

log = logging.getLogger("imports")
router = APIRouter(prefix="/recipes/import", tags=["imports"])


def _import_response(outcome: ImportOutcome) -> ImportResponse:
    return ImportResponse(
        recipeId=outcome.recipe_id,
        duplicate=outcome.duplicate,
        recipe=recipe_response(outcome.recipe) if outcome.recipe else None,
    )


@router.post("/social", response_model=ImportResponse)
async def import_social(
    body: ImportUrlRequest,
    user: CurrentUser = Depends(get_current_user),
    importer: RecipeImporter = Depends(get_importer),
) -> ImportResponse:
    t0 = time.time()
    outcome = await importer.import_social(user.id, body.url)
    log.info("import.ok source=social recipe=%s dt=%.2fs", outcome.recipe_id, time.time() - t0)
    return _import_response(outcome)


@router.post("/website", response_model=ImportResponse)
async def import_website(
    body: ImportUrlRequest,
    user: CurrentUser = Depends(get_current_user),
    importer: RecipeImporter = Depends(get_importer),
) -> ImportResponse:
    t0 = time.time()
    outcome = await importer.import_website(user.id, body.url)
    log.info("import.ok source=website recipe=%s dt=%.2fs", outcome.recipe_id, time.time() - t0)
    return _import_response(outcome)


@router.post("/photos", response_model=Union[ImportResponse, BulkImportResponse])
async def import_photos(
    files: list[UploadFile] = File(...),
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    prepTimeMinutes: Optional[int] = Form(None),
    difficulty: Optional[str] = Form(None),
    portions: Optional[int] = Form(None),
    batch_id: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
    importer: RecipeImporter = Depends(get_importer),
) -> Union[ImportResponse, BulkImportResponse]:
    payloads = [await f.read() for f in files]
    if not payloads or not all(payloads):
        raise InvalidImageError("Mindestens ein Bild ist leer.")

    fallback = photo_fallback(title, category, prepTimeMinutes, difficulty, portions)

    if len(payloads) == 1:
        outcome = await importer.import_photo(user.id, payloads[0], fallback)
        return _import_response(outcome)

    batch_id = batch_id or uuid4().hex
    result = await importer.import_photos(user.id, payloads, fallback, batch_id)
    return BulkImportResponse(
        batchId=batch_id,
        succeeded=result.succeeded,
        failedCount=result.failed_count,
        total=result.total,
        cancelled=result.cancelled,
    )


@router.post("/photos/{batch_id}/cancel", response_model=CancelBatchResponse)
async def cancel_photo_batch(
    batch_id: str,
    user: CurrentUser = Depends(get_current_user),
    importer: RecipeImporter = Depends(get_importer),
) -> CancelBatchResponse:
    return CancelBatchResponse(batchId=batch_id, cancelled=importer.cancel_batch(user.id, batch_id))


@router.get("/rate-limit", response_model=RateLimitResponse)
async def rate_limit_status(
    user: CurrentUser = Depends(get_current_user),
    importer: RecipeImporter = Depends(get_importer),
) -> RateLimitResponse:
    status = importer.rate_limit_status(user.id)
    return RateLimitResponse(
        remaining=status.remaining,
        resetAt=int(status.reset_at * 1000),
        limit=status.limit,
    )

# src/app/services/dedup.py
from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Optional

from src.app.infra.db.base import RecipeRepository

logger = logging.getLogger(__name__)


class DeduplicationGuard:
    """
    Source-URL lookups over the (owner_id, source_url) index, plus an
    in-process lock per key so the final check and the insert of two
    concurrent imports of the same URL cannot interleave.
    """

    def __init__(self, repository: RecipeRepository):
        self._repo = repository
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def find_by_source(self, owner_id: str, source_url: str) -> Optional[str]:
        recipe_id = self._repo.find_id_by_source(owner_id, source_url)
        if recipe_id:
            logger.info("Duplicate source: owner=%s, url=%s, recipe_id=%s", owner_id, source_url, recipe_id)
        return recipe_id

    def lock_for(self, owner_id: str, source_url: str) -> asyncio.Lock:
        key = (owner_id, source_url)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

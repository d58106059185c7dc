# src/app/services/recipe_service.py
"""
Recipe persistence with quota, usage counters and category counts.
Both the import pipeline and the manual editor create recipes through here.
"""
from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Optional

from src.app.domain.errors import PersistenceError, RecipeNotFoundError, RepositoryError
from src.app.domain.models import Recipe
from src.app.infra.db.base import RecipeRepository
from src.app.infra.storage.base import StorageProvider
from src.app.services.category_stats import CategoryStatsService
from src.app.services.quota_service import QuotaService, classify

logger = logging.getLogger(__name__)


class RecipeService:
    def __init__(
        self,
        recipes: RecipeRepository,
        quota: QuotaService,
        categories: CategoryStatsService,
        storage: Optional[StorageProvider] = None,
    ):
        self._recipes = recipes
        self._quota = quota
        self._categories = categories
        self._storage = storage
        self._locks_guard = threading.Lock()
        self._owner_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def create(self, recipe: Recipe) -> Recipe:
        """
        Insert a recipe after the quota check, then count it.

        The check, insert and increment run under one per-owner lock so
        concurrent creates for the same owner cannot pass the same check.

        Raises:
            LimitReachedError: the owner's free limit for this kind is used up
            PersistenceError: the insert failed; nothing was counted
        """
        feature = classify(recipe.source_url, recipe.source_image_url)

        with self._owner_lock(recipe.owner_id):
            self._quota.ensure_quota(recipe.owner_id, feature)

            try:
                stored = self._recipes.insert(recipe)
            except Exception as err:
                logger.exception("Recipe insert failed: owner=%s, title=%s", recipe.owner_id, recipe.title)
                raise PersistenceError() from err

            # Counting happens strictly after the row exists; a failure here
            # undercounts rather than failing a stored recipe.
            try:
                self._quota.increment(recipe.owner_id, feature)
            except RepositoryError as err:
                logger.error("Usage increment failed: recipe_id=%s, error=%s", stored.id, err)

        self._categories.adjust(stored.owner_id, stored.category, +1)
        self._categories.ensure_category_exists(stored.owner_id, stored.category)
        return stored

    def _owner_lock(self, owner_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._owner_locks.get(owner_id)
            if lock is None:
                lock = threading.Lock()
                self._owner_locks[owner_id] = lock
            return lock

    def get(self, owner_id: str, recipe_id: str) -> Recipe:
        recipe = self._recipes.get(owner_id, recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        return recipe

    def list_recipes(
        self,
        owner_id: str,
        limit: int = 50,
        offset: int = 0,
        category: Optional[str] = None,
    ) -> list[Recipe]:
        return self._recipes.list_by_owner(owner_id, limit=limit, offset=offset, category=category)

    def update(self, owner_id: str, recipe_id: str, changes: dict[str, Any]) -> Recipe:
        """Patch a recipe; a category change moves one count between categories."""
        existing = self.get(owner_id, recipe_id)
        if not changes:
            return existing

        updated = self._recipes.update(owner_id, recipe_id, changes)
        if updated is None:
            raise RecipeNotFoundError(recipe_id)

        if updated.category != existing.category:
            self._categories.adjust(owner_id, existing.category, -1)
            self._categories.adjust(owner_id, updated.category, +1)
            self._categories.ensure_category_exists(owner_id, updated.category)

        if existing.image_storage_id and existing.image_storage_id != updated.image_storage_id:
            self._release_image(existing.image_storage_id)

        return updated

    def set_favorite(self, owner_id: str, recipe_id: str, is_favorite: bool) -> Recipe:
        updated = self._recipes.update(owner_id, recipe_id, {"is_favorite": is_favorite})
        if updated is None:
            raise RecipeNotFoundError(recipe_id)
        return updated

    def delete(self, owner_id: str, recipe_id: str) -> None:
        existing = self.get(owner_id, recipe_id)

        if not self._recipes.delete(owner_id, recipe_id):
            raise RecipeNotFoundError(recipe_id)

        self._categories.adjust(owner_id, existing.category, -1)
        if existing.image_storage_id:
            self._release_image(existing.image_storage_id)

        logger.info("Deleted recipe: id=%s, owner=%s", recipe_id, owner_id)

    def bulk_delete(self, owner_id: str, recipe_ids: list[str]) -> int:
        """Delete every listed recipe the owner has. Unknown ids are skipped."""
        deleted = 0
        for recipe_id in dict.fromkeys(recipe_ids):
            try:
                self.delete(owner_id, recipe_id)
            except RecipeNotFoundError:
                logger.debug("Bulk delete skipped missing recipe: id=%s", recipe_id)
                continue
            deleted += 1
        return deleted

    def _release_image(self, storage_id: str) -> None:
        if self._storage is None:
            return
        if not self._storage.delete_object(storage_id):
            logger.warning("Could not release stored image: key=%s", storage_id)

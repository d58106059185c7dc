# src/app/services/category_stats.py
"""
Denormalized per-category recipe counts.
Every recipe insert, delete and category change goes through `adjust`.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from src.app.constants import DEFAULT_CATEGORY_COLOR, DEFAULT_CATEGORY_ICON
from src.app.domain.models import Category
from src.app.infra.db.base import CategoryRepository
from src.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)


class CategoryStatsService:
    def __init__(
        self,
        repository: CategoryRepository,
        storage: Optional[StorageProvider] = None,
    ):
        self._repo = repository
        self._storage = storage
        # read-modify-write on a stat row
        self._lock = threading.Lock()

    def adjust(self, owner_id: str, category: str, delta: int) -> int:
        """
        Apply `delta` to the owner's count for `category`.

        Reaching zero removes the stat row together with the category
        metadata and its stored image.

        Returns:
            The new count
        """
        with self._lock:
            stat = self._repo.get_stat(owner_id, category)

            if stat is None:
                if delta <= 0:
                    return 0
                self._repo.insert_stat(owner_id, category, delta)
                return delta

            new_count = max(0, stat.count + delta)
            if new_count > 0:
                self._repo.update_stat(stat.id, new_count)
                return new_count

            self._repo.delete_stat(stat.id)

        self._remove_category(owner_id, category)
        return 0

    def _remove_category(self, owner_id: str, category: str) -> None:
        existing = self._repo.get_category(owner_id, category)
        if existing is None:
            return

        self._repo.delete_category(existing.id)
        if existing.image_storage_id and self._storage is not None:
            self._storage.delete_object(existing.image_storage_id)

        logger.info("Removed empty category: owner=%s, category=%s", owner_id, category)

    def ensure_category_exists(self, owner_id: str, category: str) -> Category:
        existing = self._repo.get_category(owner_id, category)
        if existing is not None:
            return existing

        created = self._repo.insert_category(
            Category(
                owner_id=owner_id,
                name=category,
                icon=DEFAULT_CATEGORY_ICON,
                color=DEFAULT_CATEGORY_COLOR,
                order=self._repo.max_category_order(owner_id) + 1,
            )
        )
        logger.info("Created category: owner=%s, category=%s, order=%d", owner_id, category, created.order)
        return created

    def list_with_counts(self, owner_id: str) -> list[tuple[Category, int]]:
        """Categories that currently hold at least one recipe, in display order."""
        counts = {stat.category: stat.count for stat in self._repo.list_stats(owner_id) if stat.count > 0}
        categories = {c.name: c for c in self._repo.list_categories(owner_id)}

        result = []
        for name, count in counts.items():
            category = categories.get(name) or Category(
                owner_id=owner_id,
                name=name,
                icon=DEFAULT_CATEGORY_ICON,
                color=DEFAULT_CATEGORY_COLOR,
                order=len(categories) + len(result),
            )
            result.append((category, count))

        result.sort(key=lambda pair: (pair[0].order, pair[0].name))
        return result

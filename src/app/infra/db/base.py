# src/app/infra/db/base.py
"""
Abstract repositories for recipes, user profiles and categories.
Every query is keyed by owner first, so identities never contend.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from src.app.domain.models import Category, CategoryStat, FeatureKind, Recipe, UserProfile


class RecipeRepository(ABC):
    """
    Abstract interface for recipe rows.

    Implementations:
    - SupabaseRecipeRepository: `recipes` table in Supabase
    """

    @abstractmethod
    def find_id_by_source(self, owner_id: str, source_url: str) -> Optional[str]:
        """
        Look up a recipe through the (owner_id, source_url) index.

        Returns:
            The recipe id, or None when the owner has no recipe from that URL
        """
        pass

    @abstractmethod
    def insert(self, recipe: Recipe) -> Recipe:
        """
        Insert a recipe row.

        Returns:
            The stored recipe with id and timestamps populated
        """
        pass

    @abstractmethod
    def get(self, owner_id: str, recipe_id: str) -> Optional[Recipe]:
        pass

    @abstractmethod
    def list_by_owner(
        self,
        owner_id: str,
        limit: int = 50,
        offset: int = 0,
        category: Optional[str] = None,
    ) -> list[Recipe]:
        pass

    @abstractmethod
    def update(self, owner_id: str, recipe_id: str, changes: dict[str, Any]) -> Optional[Recipe]:
        """
        Patch a recipe with column-name keyed changes.

        Returns:
            The updated recipe, or None if it does not exist for this owner
        """
        pass

    @abstractmethod
    def delete(self, owner_id: str, recipe_id: str) -> bool:
        pass


class UserRepository(ABC):
    """Subscription tier and usage counters per identity."""

    @abstractmethod
    def get_profile(self, user_id: str) -> UserProfile:
        """
        Load the profile of a user.

        Returns:
            The stored profile, or a free-tier profile with zero counters
            when the user has no row yet
        """
        pass

    @abstractmethod
    def increment_usage(self, user_id: str, feature: FeatureKind) -> int:
        """
        Atomically add one to the counter of `feature`.

        Returns:
            The new counter value
        """
        pass


class CategoryRepository(ABC):
    """Category metadata rows plus the denormalized per-category counts."""

    @abstractmethod
    def get_stat(self, owner_id: str, category: str) -> Optional[CategoryStat]:
        pass

    @abstractmethod
    def insert_stat(self, owner_id: str, category: str, count: int) -> CategoryStat:
        pass

    @abstractmethod
    def update_stat(self, stat_id: str, count: int) -> None:
        pass

    @abstractmethod
    def delete_stat(self, stat_id: str) -> None:
        pass

    @abstractmethod
    def list_stats(self, owner_id: str) -> list[CategoryStat]:
        pass

    @abstractmethod
    def get_category(self, owner_id: str, name: str) -> Optional[Category]:
        pass

    @abstractmethod
    def insert_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        pass

    @abstractmethod
    def max_category_order(self, owner_id: str) -> int:
        """Highest `order` among the owner's categories, -1 if none."""
        pass

    @abstractmethod
    def list_categories(self, owner_id: str) -> list[Category]:
        pass

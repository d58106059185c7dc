from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from supabase import Client, create_client

from src.app.config import settings
from src.app.domain.errors import RepositoryError
from src.app.domain.models import (
    Category,
    CategoryStat,
    Difficulty,
    FeatureKind,
    Ingredient,
    Instruction,
    Recipe,
    UsageStats,
    UserProfile,
)
from src.app.infra.db.base import CategoryRepository, RecipeRepository, UserRepository

logger = logging.getLogger(__name__)

USAGE_COLUMNS = {
    FeatureKind.MANUAL: "manual_recipes",
    FeatureKind.LINK_IMPORT: "link_imports",
    FeatureKind.PHOTO_SCAN: "photo_scans",
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    return int(value) if value else default


def _safe_str(value: object) -> str | None:
    return str(value) if value else None


def _parse_difficulty(value: object) -> Difficulty:
    try:
        return Difficulty(str(value))
    except ValueError:
        return Difficulty.MEDIUM


def _row_to_recipe(row: dict[str, Any]) -> Recipe:
    return Recipe(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        title=str(row.get("title") or ""),
        category=str(row.get("category") or ""),
        prep_time_minutes=_safe_int(row.get("prep_time_minutes")),
        difficulty=_parse_difficulty(row.get("difficulty")),
        portions=_safe_int(row.get("portions")),
        ingredients=[
            Ingredient(
                name=str(item.get("name") or ""),
                amount=_safe_str(item.get("amount")),
                checked=bool(item.get("checked", False)),
            )
            for item in (row.get("ingredients") or [])
        ],
        instructions=[
            Instruction(text=str(item.get("text") or ""), icon=_safe_str(item.get("icon")))
            for item in (row.get("instructions") or [])
        ],
        image=str(row.get("image") or ""),
        image_storage_id=_safe_str(row.get("image_storage_id")),
        image_blurhash=_safe_str(row.get("image_blurhash")),
        image_alt=_safe_str(row.get("image_alt")),
        source_image_url=_safe_str(row.get("source_image_url")),
        source_url=_safe_str(row.get("source_url")),
        is_favorite=bool(row.get("is_favorite", False)),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _recipe_to_row(recipe: Recipe) -> dict[str, Any]:
    now = _now_utc().isoformat()
    return {
        "id": recipe.id or str(uuid4()),
        "owner_id": recipe.owner_id,
        "title": recipe.title,
        "category": recipe.category,
        "prep_time_minutes": recipe.prep_time_minutes,
        "difficulty": recipe.difficulty.value,
        "portions": recipe.portions,
        "ingredients": [asdict(i) for i in recipe.ingredients],
        "instructions": [asdict(i) for i in recipe.instructions],
        "image": recipe.image,
        "image_storage_id": recipe.image_storage_id,
        "image_blurhash": recipe.image_blurhash,
        "image_alt": recipe.image_alt,
        "source_image_url": recipe.source_image_url,
        "source_url": recipe.source_url,
        "is_favorite": recipe.is_favorite,
        "created_at": now,
        "updated_at": now,
    }


def _serialize_changes(changes: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, Difficulty):
            value = value.value
        elif key in ("ingredients", "instructions"):
            value = [asdict(v) if not isinstance(v, dict) else v for v in value]
        out[key] = value
    out["updated_at"] = _now_utc().isoformat()
    return out


def _row_to_profile(user_id: str, row: dict[str, Any] | None) -> UserProfile:
    if not row:
        return UserProfile(user_id=user_id)

    return UserProfile(
        user_id=user_id,
        subscription=str(row.get("subscription") or "free"),
        subscription_status=str(row.get("subscription_status") or "active"),
        usage=UsageStats(
            manual_recipes=_safe_int(row.get("manual_recipes")),
            link_imports=_safe_int(row.get("link_imports")),
            photo_scans=_safe_int(row.get("photo_scans")),
            subscription_start_date=_parse_datetime(row.get("subscription_start_date")),
            subscription_end_date=_parse_datetime(row.get("subscription_end_date")),
            reset_on_downgrade=bool(row.get("reset_on_downgrade", False)),
        ),
    )


def _row_to_stat(row: dict[str, Any]) -> CategoryStat:
    return CategoryStat(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        category=str(row["category"]),
        count=_safe_int(row.get("count")),
    )


def _row_to_category(row: dict[str, Any]) -> Category:
    return Category(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        name=str(row["name"]),
        icon=str(row.get("icon") or ""),
        color=str(row.get("color") or ""),
        order=_safe_int(row.get("order")),
        is_active=bool(row.get("is_active", True)),
        image_url=_safe_str(row.get("image_url")),
        image_storage_id=_safe_str(row.get("image_storage_id")),
    )


def create_supabase_client() -> Client:
    url = settings.SUPABASE_URL
    key = settings.SUPABASE_SERVICE_ROLE_KEY
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseRecipeRepository(RecipeRepository):
    TABLE_NAME = "recipes"

    def __init__(self, client: Client | None = None):
        self._client = client or create_supabase_client()
        logger.info("SupabaseRecipeRepository initialized")

    def find_id_by_source(self, owner_id: str, source_url: str) -> str | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("id")
                .eq("owner_id", owner_id)
                .eq("source_url", source_url)
                .limit(1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error looking up source url: %s", error)
            raise RepositoryError("find_by_source", str(error)) from error

        return str(result.data[0]["id"]) if result.data else None

    def insert(self, recipe: Recipe) -> Recipe:
        try:
            result = self._client.table(self.TABLE_NAME).insert(_recipe_to_row(recipe)).execute()
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error inserting recipe: %s", error)
            raise RepositoryError("insert", str(error)) from error

        if not result.data:
            raise RepositoryError("insert", "no row returned")

        stored = _row_to_recipe(result.data[0])
        logger.info("Created recipe: id=%s, owner=%s", stored.id, stored.owner_id)
        return stored

    def get(self, owner_id: str, recipe_id: str) -> Recipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("id", recipe_id)
                .eq("owner_id", owner_id)
                .limit(1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error getting recipe: %s", error)
            raise RepositoryError("get", str(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def list_by_owner(
        self,
        owner_id: str,
        limit: int = 50,
        offset: int = 0,
        category: str | None = None,
    ) -> list[Recipe]:
        try:
            query = self._client.table(self.TABLE_NAME).select("*").eq("owner_id", owner_id)
            if category:
                query = query.eq("category", category)
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error listing recipes: %s", error)
            raise RepositoryError("list", str(error)) from error

        return [_row_to_recipe(row) for row in (result.data or [])]

    def update(self, owner_id: str, recipe_id: str, changes: dict[str, Any]) -> Recipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .update(_serialize_changes(changes))
                .eq("id", recipe_id)
                .eq("owner_id", owner_id)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error updating recipe: %s", error)
            raise RepositoryError("update", str(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def delete(self, owner_id: str, recipe_id: str) -> bool:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .delete()
                .eq("id", recipe_id)
                .eq("owner_id", owner_id)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error deleting recipe: %s", error)
            raise RepositoryError("delete", str(error)) from error

        return bool(result.data)


class SupabaseUserRepository(UserRepository):
    TABLE_NAME = "user_profiles"

    def __init__(self, client: Client | None = None):
        self._client = client or create_supabase_client()

    def get_profile(self, user_id: str) -> UserProfile:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error getting profile: %s", error)
            raise RepositoryError("get_profile", str(error)) from error

        return _row_to_profile(user_id, result.data[0] if result.data else None)

    def increment_usage(self, user_id: str, feature: FeatureKind) -> int:
        # Single-statement increment so concurrent imports never lose an update
        try:
            result = self._client.rpc(
                "increment_usage_counter",
                {"p_user_id": user_id, "p_column": USAGE_COLUMNS[feature]},
            ).execute()
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error incrementing usage: %s", error)
            raise RepositoryError("increment_usage", str(error)) from error

        data = result.data
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("new_count")
        return _safe_int(data)


class SupabaseCategoryRepository(CategoryRepository):
    STATS_TABLE = "category_stats"
    CATEGORIES_TABLE = "categories"

    def __init__(self, client: Client | None = None):
        self._client = client or create_supabase_client()

    def get_stat(self, owner_id: str, category: str) -> CategoryStat | None:
        result = (
            self._client.table(self.STATS_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .eq("category", category)
            .limit(1)
            .execute()
        )
        return _row_to_stat(result.data[0]) if result.data else None

    def insert_stat(self, owner_id: str, category: str, count: int) -> CategoryStat:
        row = {"id": str(uuid4()), "owner_id": owner_id, "category": category, "count": count}
        result = self._client.table(self.STATS_TABLE).insert(row).execute()
        return _row_to_stat(result.data[0] if result.data else row)

    def update_stat(self, stat_id: str, count: int) -> None:
        self._client.table(self.STATS_TABLE).update({"count": count}).eq("id", stat_id).execute()

    def delete_stat(self, stat_id: str) -> None:
        self._client.table(self.STATS_TABLE).delete().eq("id", stat_id).execute()

    def list_stats(self, owner_id: str) -> list[CategoryStat]:
        result = (
            self._client.table(self.STATS_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .gt("count", 0)
            .execute()
        )
        return [_row_to_stat(row) for row in (result.data or [])]

    def get_category(self, owner_id: str, name: str) -> Category | None:
        result = (
            self._client.table(self.CATEGORIES_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .eq("name", name)
            .limit(1)
            .execute()
        )
        return _row_to_category(result.data[0]) if result.data else None

    def insert_category(self, category: Category) -> Category:
        row = {
            "id": category.id or str(uuid4()),
            "owner_id": category.owner_id,
            "name": category.name,
            "icon": category.icon,
            "color": category.color,
            "order": category.order,
            "is_active": category.is_active,
            "image_url": category.image_url,
            "image_storage_id": category.image_storage_id,
        }
        result = self._client.table(self.CATEGORIES_TABLE).insert(row).execute()
        return _row_to_category(result.data[0] if result.data else row)

    def delete_category(self, category_id: str) -> None:
        self._client.table(self.CATEGORIES_TABLE).delete().eq("id", category_id).execute()

    def max_category_order(self, owner_id: str) -> int:
        result = (
            self._client.table(self.CATEGORIES_TABLE)
            .select("order")
            .eq("owner_id", owner_id)
            .order("order", desc=True)
            .limit(1)
            .execute()
        )
        if not result.data:
            return -1
        return _safe_int(result.data[0].get("order"))

    def list_categories(self, owner_id: str) -> list[Category]:
        result = (
            self._client.table(self.CATEGORIES_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .order("order")
            .execute()
        )
        return [_row_to_category(row) for row in (result.data or [])]

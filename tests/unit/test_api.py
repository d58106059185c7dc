from __future__ import annotations

from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from src.app.deps import (
    CurrentUser,
    get_category_stats,
    get_current_user,
    get_importer,
    get_quota_service,
    get_recipe_service,
    get_supabase,
)
from src.app.main import app
from src.app.services.category_stats import CategoryStatsService
from src.app.services.import_pipeline import RecipeImporter
from src.app.services.quota_service import QuotaService
from src.app.services.recipe_service import RecipeService
from src.services.errors import FetchFailedError
from tests.unit.fakes import StubFetcher, make_image_bytes

NEW_RECIPE = {
    "title": "Linsensuppe",
    "category": "Suppe",
    "prepTimeMinutes": 40,
    "difficulty": "Einfach",
    "portions": 4,
    "ingredients": [{"name": "Linsen", "amount": "250 g"}],
    "instructions": [{"text": "Kochen", "icon": "Soup Kitchen"}],
}


@pytest.fixture
def client(
    recipe_service: RecipeService,
    quota_service: QuotaService,
    category_stats: CategoryStatsService,
    build_importer: Callable[..., RecipeImporter],
) -> Iterator[TestClient]:
    importer = build_importer(website=StubFetcher(error=FetchFailedError("reader down")))

    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user-1", email="anna@example.com")
    app.dependency_overrides[get_recipe_service] = lambda: recipe_service
    app.dependency_overrides[get_quota_service] = lambda: quota_service
    app.dependency_overrides[get_category_stats] = lambda: category_stats
    app.dependency_overrides[get_importer] = lambda: importer
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_missing_token_is_typed_401(self) -> None:
        app.dependency_overrides[get_supabase] = lambda: object()
        try:
            response = TestClient(app).get("/auth/me")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        assert response.json() == {"type": "NOT_AUTHENTICATED"}

    def test_health(self) -> None:
        assert TestClient(app).get("/health").json() == {"ok": True}


class TestRecipesApi:
    def test_create_then_get(self, client: TestClient) -> None:
        created = client.post("/recipes", json=NEW_RECIPE)

        assert created.status_code == 201
        body = created.json()
        assert body["instructions"][0]["icon"] == "soup_kitchen"

        fetched = client.get(f"/recipes/{body['id']}")
        assert fetched.json()["title"] == "Linsensuppe"

    def test_limit_reached_is_402(self, client: TestClient, quota_service: QuotaService) -> None:
        quota_service.limits = {"manual": 1, "link-import": 1, "photo-scan": 1}
        client.post("/recipes", json=NEW_RECIPE)

        response = client.post("/recipes", json=NEW_RECIPE)

        assert response.status_code == 402
        assert response.json()["type"] == "LIMIT_REACHED"
        assert response.json()["feature"] == "manual"

    def test_missing_recipe_is_404(self, client: TestClient) -> None:
        response = client.get("/recipes/nope")

        assert response.status_code == 404
        assert response.json()["type"] == "NOT_FOUND"

    def test_patch_category_and_list_categories(self, client: TestClient) -> None:
        recipe_id = client.post("/recipes", json=NEW_RECIPE).json()["id"]

        patched = client.patch(f"/recipes/{recipe_id}", json={"category": "Vegan"})

        assert patched.json()["category"] == "Vegan"
        categories = client.get("/categories").json()
        assert [(c["name"], c["count"]) for c in categories] == [("Vegan", 1)]

    def test_favorite_and_bulk_delete(self, client: TestClient) -> None:
        recipe_id = client.post("/recipes", json=NEW_RECIPE).json()["id"]

        assert client.post(f"/recipes/{recipe_id}/favorite").json()["isFavorite"] is True
        assert client.post("/recipes/bulk-delete", json={"ids": [recipe_id, "nope"]}).json() == {"deleted": 1}


class TestImportApi:
    def test_unavailable_reader_is_503(self, client: TestClient) -> None:
        response = client.post("/recipes/import/website", json={"url": "https://example.com/r"})

        assert response.status_code == 503
        assert response.json()["prefillUrl"] == "https://example.com/r"

    def test_single_photo_returns_recipe(self, client: TestClient) -> None:
        response = client.post(
            "/recipes/import/photos",
            files=[("files", ("scan.jpg", make_image_bytes(), "image/jpeg"))],
            data={"title": "Mein Rezept"},
        )

        assert response.status_code == 200
        assert response.json()["recipe"]["sourceImageUrl"] == "__AI_SCAN__"

    def test_multiple_photos_return_batch_summary(self, client: TestClient) -> None:
        response = client.post(
            "/recipes/import/photos",
            files=[
                ("files", ("a.jpg", make_image_bytes(), "image/jpeg")),
                ("files", ("b.jpg", b"kaputt", "image/jpeg")),
            ],
            data={"batch_id": "batch-9"},
        )

        body = response.json()
        assert body["batchId"] == "batch-9"
        assert body["failedCount"] == 1
        assert body["total"] == 2

    def test_rate_limit_status(self, client: TestClient) -> None:
        body = client.get("/recipes/import/rate-limit").json()

        assert body["remaining"] == 10
        assert body["limit"] == 10

    def test_usage(self, client: TestClient) -> None:
        client.post("/recipes", json=NEW_RECIPE)

        body = client.get("/usage").json()

        assert body["features"]["manual"] == {"current": 1, "limit": 100, "remaining": 99}

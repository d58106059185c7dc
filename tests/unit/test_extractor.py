from __future__ import annotations

import pytest

from src.app.domain.models import Difficulty
from src.services.errors import ModelResponseError, RateLimitedError
from src.services.extractor import (
    SOCIAL_FALLBACK,
    RecipeExtractor,
    decode_recipe,
    parse_model_output,
    photo_fallback,
    strip_code_fences,
    website_fallback,
)
from src.services.types import FetchedContent
from tests.unit.fakes import RECIPE_JSON, StubModel


def _social(text: str = "Leckere Shakshuka") -> FetchedContent:
    return FetchedContent("social", "https://www.instagram.com/p/ABCDEF/", None, text, None)


def _website(title: str = "Omas Lasagne") -> FetchedContent:
    return FetchedContent("website", "https://example.com/lasagne", title, "# Lasagne", None)


class TestStripCodeFences:
    def test_fenced_json(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_prose_around_object(self) -> None:
        assert strip_code_fences('Hier ist es: {"a": 1} Guten Appetit') == '{"a": 1}'

    def test_plain_object_untouched(self) -> None:
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseModelOutput:
    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ModelResponseError):
            parse_model_output("kein json")

    def test_array_is_rejected(self) -> None:
        with pytest.raises(ModelResponseError):
            parse_model_output("[1, 2]")


class TestDecodeRecipe:
    def test_lenient_fields(self) -> None:
        data = {
            "title": "  Pfannkuchen ",
            "difficulty": "leicht",
            "prepTimeMinutes": "20 Minuten",
            "portions": "4 Personen",
            "ingredients": ["Mehl", {"name": "", "amount": "1"}, {"name": "Milch", "amount": 500}],
            "instructions": ["Verrühren", {"text": "Backen", "icon": "Oven-Gen"}, {"text": "Servieren", "icon": "rocket"}],
        }

        doc = decode_recipe(data, website_fallback(None))

        assert doc.title == "Pfannkuchen"
        assert doc.difficulty == Difficulty.EASY
        assert doc.prep_time_minutes == 20
        assert doc.portions == 4
        assert [(i.name, i.amount) for i in doc.ingredients] == [("Mehl", None), ("Milch", "500")]
        assert [(s.text, s.icon) for s in doc.instructions] == [
            ("Verrühren", None),
            ("Backen", "oven_gen"),
            ("Servieren", None),
        ]

    def test_missing_fields_take_fallback(self) -> None:
        doc = decode_recipe({"difficulty": "impossible", "portions": 0}, website_fallback("  Seite "))

        assert doc.title == "Seite"
        assert doc.category == "Sonstiges"
        assert doc.prep_time_minutes == 30
        assert doc.difficulty == Difficulty.MEDIUM
        assert doc.portions == 4
        assert doc.degraded is False


class TestPhotoFallback:
    def test_defaults(self) -> None:
        fallback = photo_fallback()

        assert fallback.title == "Gescanntes Rezept"
        assert fallback.category == "Hauptgericht"
        assert fallback.prep_time_minutes == 30
        assert fallback.difficulty == Difficulty.MEDIUM
        assert fallback.portions == 4

    def test_caller_values_win(self) -> None:
        fallback = photo_fallback(title="Kuchen", difficulty="Schwer", portions=12)

        assert fallback.title == "Kuchen"
        assert fallback.difficulty == Difficulty.HARD
        assert fallback.portions == 12


class TestRecipeExtractor:
    @pytest.mark.asyncio
    async def test_social_extraction(self) -> None:
        model = StubModel(RECIPE_JSON)

        doc = await RecipeExtractor(model).extract(_social())

        assert doc.title == "Shakshuka"
        assert doc.category == "Vegetarisch"
        assert [s.icon for s in doc.instructions] == ["skillet", "egg"]
        assert doc.image_keywords == "shakshuka eggs tomato"
        assert "Leckere Shakshuka" in model.calls[0][0]

    @pytest.mark.asyncio
    async def test_social_bad_output_degrades(self) -> None:
        doc = await RecipeExtractor(StubModel("das ist kein rezept")).extract_social(_social())

        assert doc.degraded is True
        assert doc.title == SOCIAL_FALLBACK.title
        assert doc.ingredients == []

    @pytest.mark.asyncio
    async def test_website_model_error_degrades_to_page_title(self) -> None:
        model = StubModel(error=RateLimitedError("quota"))

        doc = await RecipeExtractor(model).extract(_website())

        assert doc.degraded is True
        assert doc.title == "Omas Lasagne"

    @pytest.mark.asyncio
    async def test_photo_sends_image(self) -> None:
        model = StubModel(RECIPE_JSON)

        doc = await RecipeExtractor(model).extract_photo(b"jpeg-bytes", photo_fallback())

        assert doc.title == "Shakshuka"
        assert model.calls[0][1] == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_photo_failure_raises(self) -> None:
        with pytest.raises(ModelResponseError):
            await RecipeExtractor(StubModel("???")).extract_photo(b"jpeg-bytes", photo_fallback())

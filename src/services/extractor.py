from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.app.domain.models import (
    Difficulty,
    ExtractedRecipeDoc,
    Ingredient,
    Instruction,
    RecipeFallback,
)
from src.services.errors import ModelResponseError, ServiceError
from src.services.icons import sanitize_icon
from src.services.prompts import photo_prompt, social_prompt, website_prompt
from src.services.types import FetchedContent

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
LEADING_NUMBER_PATTERN = re.compile(r"\d+")

DIFFICULTY_ALIASES = {
    "einfach": Difficulty.EASY,
    "leicht": Difficulty.EASY,
    "easy": Difficulty.EASY,
    "mittel": Difficulty.MEDIUM,
    "medium": Difficulty.MEDIUM,
    "normal": Difficulty.MEDIUM,
    "schwer": Difficulty.HARD,
    "schwierig": Difficulty.HARD,
    "hard": Difficulty.HARD,
    "difficult": Difficulty.HARD,
}

SOCIAL_FALLBACK = RecipeFallback(
    title="Instagram Rezept",
    category="Sonstiges",
    prep_time_minutes=15,
    difficulty=Difficulty.MEDIUM,
    portions=2,
)


def website_fallback(page_title: Optional[str]) -> RecipeFallback:
    return RecipeFallback(
        title=(page_title or "").strip() or "Website Rezept",
        category="Sonstiges",
        prep_time_minutes=30,
        difficulty=Difficulty.MEDIUM,
        portions=4,
    )


def photo_fallback(
    title: Optional[str] = None,
    category: Optional[str] = None,
    prep_time_minutes: Optional[int] = None,
    difficulty: Optional[str] = None,
    portions: Optional[int] = None,
) -> RecipeFallback:
    """Defaults for a photo scan; caller-supplied form values win."""
    return RecipeFallback(
        title=(title or "").strip() or "Gescanntes Rezept",
        category=(category or "").strip() or "Hauptgericht",
        prep_time_minutes=prep_time_minutes if prep_time_minutes and prep_time_minutes > 0 else 30,
        difficulty=_coerce_difficulty(difficulty) or Difficulty.MEDIUM,
        portions=portions if portions and portions > 0 else 4,
    )


class RecipeModel(Protocol):
    async def generate(
        self,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
    ) -> str: ...


def _coerce_difficulty(value: object) -> Optional[Difficulty]:
    if isinstance(value, Difficulty):
        return value
    if not isinstance(value, str):
        return None
    return DIFFICULTY_ALIASES.get(value.strip().lower())


def _coerce_positive_int(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    elif isinstance(value, str):
        match = LEADING_NUMBER_PATTERN.search(value)
        if not match:
            return None
        number = int(match.group(0))
    else:
        return None
    return number if number > 0 else None


def _clean_text(value: object) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


class IngredientPayload(BaseModel):
    name: Optional[str] = None
    amount: Optional[str] = None

    @field_validator("name", "amount", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _clean_text(value)


class InstructionPayload(BaseModel):
    text: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _clean_text(value)

    @field_validator("icon", mode="before")
    @classmethod
    def _icon(cls, value: object) -> Optional[str]:
        return sanitize_icon(value)


class RecipePayload(BaseModel):
    """Lenient view of the model's JSON; invalid fields become None, never errors."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    category: Optional[str] = None
    prep_time_minutes: Optional[int] = Field(default=None, alias="prepTimeMinutes")
    difficulty: Optional[Difficulty] = None
    portions: Optional[int] = None
    ingredients: list[IngredientPayload] = Field(default_factory=list)
    instructions: list[InstructionPayload] = Field(default_factory=list)
    image_keywords: Optional[str] = Field(default=None, alias="imageKeywords")

    @field_validator("title", "category", "image_keywords", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _clean_text(value)

    @field_validator("prep_time_minutes", "portions", mode="before")
    @classmethod
    def _positive(cls, value: object) -> Optional[int]:
        return _coerce_positive_int(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _difficulty(cls, value: object) -> Optional[Difficulty]:
        return _coerce_difficulty(value)

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients(cls, value: object) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [{"name": item} if isinstance(item, str) else item for item in value if isinstance(item, (str, dict))]

    @field_validator("instructions", mode="before")
    @classmethod
    def _instructions(cls, value: object) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [{"text": item} if isinstance(item, str) else item for item in value if isinstance(item, (str, dict))]

    def to_doc(self, fallback: RecipeFallback) -> ExtractedRecipeDoc:
        return ExtractedRecipeDoc(
            title=self.title or fallback.title,
            category=self.category or fallback.category,
            prep_time_minutes=self.prep_time_minutes or fallback.prep_time_minutes,
            difficulty=self.difficulty or fallback.difficulty,
            portions=self.portions or fallback.portions,
            ingredients=[
                Ingredient(name=i.name, amount=i.amount)
                for i in self.ingredients
                if i.name
            ],
            instructions=[
                Instruction(text=s.text, icon=s.icon)
                for s in self.instructions
                if s.text
            ],
            image_keywords=self.image_keywords,
        )


def strip_code_fences(text: str) -> str:
    match = CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text.strip()


def parse_model_output(text: str) -> dict[str, Any]:
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as err:
        raise ModelResponseError(f"Model output is not valid JSON: {err}") from err

    if not isinstance(data, dict):
        raise ModelResponseError("Model output is not a JSON object.")
    return data


def decode_recipe(data: dict[str, Any], fallback: RecipeFallback) -> ExtractedRecipeDoc:
    try:
        payload = RecipePayload.model_validate(data)
    except ValidationError as err:
        raise ModelResponseError(f"Model output has an unexpected shape: {err}") from err
    return payload.to_doc(fallback)


def fallback_doc(fallback: RecipeFallback) -> ExtractedRecipeDoc:
    return ExtractedRecipeDoc(
        title=fallback.title,
        category=fallback.category,
        prep_time_minutes=fallback.prep_time_minutes,
        difficulty=fallback.difficulty,
        portions=fallback.portions,
        degraded=True,
    )


class RecipeExtractor:
    """Turns fetched content or a photo into a typed recipe document."""

    def __init__(self, model: RecipeModel):
        self._model = model

    async def _extract(
        self,
        prompt: str,
        fallback: RecipeFallback,
        image_bytes: Optional[bytes] = None,
    ) -> ExtractedRecipeDoc:
        text = await self._model.generate(prompt, image_bytes=image_bytes)
        return decode_recipe(parse_model_output(text), fallback)

    async def _extract_or_fallback(self, prompt: str, fallback: RecipeFallback, url: str) -> ExtractedRecipeDoc:
        try:
            return await self._extract(prompt, fallback)
        except ServiceError as err:
            logger.warning("Extraction degraded to fallback: url=%s, error=%s", url, err)
            return fallback_doc(fallback)

    async def extract_social(self, content: FetchedContent) -> ExtractedRecipeDoc:
        return await self._extract_or_fallback(
            social_prompt(content.text), SOCIAL_FALLBACK, content.url
        )

    async def extract_website(self, content: FetchedContent) -> ExtractedRecipeDoc:
        return await self._extract_or_fallback(
            website_prompt(content.title, content.text),
            website_fallback(content.title),
            content.url,
        )

    async def extract(self, content: FetchedContent) -> ExtractedRecipeDoc:
        if content.source == "social":
            return await self.extract_social(content)
        return await self.extract_website(content)

    async def extract_photo(self, image_bytes: bytes, fallback: RecipeFallback) -> ExtractedRecipeDoc:
        """
        Read a recipe off a prepared JPEG.

        Raises:
            ModelResponseError: output missing or unparseable
            RateLimitedError: model quota exhausted
        """
        return await self._extract(photo_prompt(), fallback, image_bytes=image_bytes)

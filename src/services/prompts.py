from __future__ import annotations

from src.app.constants import RECIPE_CATEGORIES
from src.services.icons import ALLOWED_STEP_ICONS

_JSON_SHAPE = """{
  "title": "Rezeptname",
  "category": "eine der Kategorien",
  "prepTimeMinutes": 30,
  "difficulty": "Einfach" | "Mittel" | "Schwer",
  "portions": 4,
  "ingredients": [{"name": "Zutat", "amount": "200 g"}],
  "instructions": [{"text": "Schritt", "icon": "skillet"}],
  "imageKeywords": "3 englische Stichworte fuer ein Foodfoto"
}"""


def _rules() -> str:
    return "\n".join([
        f"Kategorien: {', '.join(RECIPE_CATEGORIES)}.",
        f"Erlaubte Icons fuer Schritte: {', '.join(sorted(ALLOWED_STEP_ICONS))}.",
        "Mengenangaben gehoeren in 'amount', nicht in 'name'.",
        "Wenn etwas fehlt, schaetze sinnvoll; erfinde keine Zutaten.",
        "Antworte NUR mit dem JSON, ohne Erklaerungen und ohne Markdown.",
    ])


def social_prompt(caption: str) -> str:
    return (
        "Du bist ein Assistent, der Rezepte aus Instagram-Beitraegen extrahiert.\n"
        "Lies die folgende Bildunterschrift und gib das Rezept als JSON zurueck:\n"
        f"{_JSON_SHAPE}\n\n"
        f"{_rules()}\n\n"
        f"BILDUNTERSCHRIFT:\n{caption}"
    )


def website_prompt(title: str | None, markdown: str) -> str:
    return (
        "Du bist ein Assistent, der Rezepte aus Webseiten extrahiert.\n"
        "Ignoriere Werbung, Kommentare und Navigation. Gib das Rezept als JSON zurueck:\n"
        f"{_JSON_SHAPE}\n\n"
        f"{_rules()}\n\n"
        f"SEITENTITEL: {title or ''}\n\n"
        f"INHALT:\n{markdown}"
    )


def photo_prompt() -> str:
    return (
        "Du bist ein Assistent, der Rezepte von Fotos liest (Kochbuchseiten, "
        "handgeschriebene Zettel, Bildschirmfotos).\n"
        "Lies den Text auf dem Bild genau und gib das Rezept als JSON zurueck:\n"
        f"{_JSON_SHAPE}\n\n"
        f"{_rules()}"
    )

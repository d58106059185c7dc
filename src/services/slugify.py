# src/services/slugify.py
import re
import unicodedata
import zlib

_GERMAN_FOLDS = str.maketrans({"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss"})

# Words that say nothing about what the dish looks like
_TITLE_STOPWORDS = frozenset({
    "nach", "mit", "aus", "vom", "von", "zu", "fuer", "in", "an", "auf", "bei",
    "durch", "original", "originalrezept", "rezept", "klassisch", "traditionell",
    "einfach", "schnell", "lecker", "und", "der", "die", "das",
})


def fold_ascii(text: str) -> str:
    """Minusculo, umlauts alemaes expandidos, demais acentos removidos."""
    t = text.lower().translate(_GERMAN_FOLDS)
    return unicodedata.normalize("NFKD", t).encode("ascii", "ignore").decode("ascii")


def slugify(text: str) -> str:
    """Transforma texto em slug: minúsculo, sem acentos, com hifens."""
    t = re.sub(r"[^a-z0-9]+", "-", fold_ascii(text)).strip("-")
    return t or "recipe"


def title_keywords(title: str, max_keywords: int = 3) -> str:
    """Up to `max_keywords` meaningful words of a recipe title, ASCII only."""
    words = re.sub(r"[^a-z0-9\s]", " ", fold_ascii(title)).split()
    kept = [w for w in words if len(w) > 2 and w not in _TITLE_STOPWORDS]
    return " ".join(kept[:max_keywords])


def consistent_seed(text: str) -> int:
    """Stable seed so the same title always yields the same generated image."""
    return zlib.crc32(text.encode("utf-8"))

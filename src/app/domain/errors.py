from __future__ import annotations

from typing import Any, Optional

from src.app.domain.models import FeatureKind


class RecipeImportError(Exception):
    """Base for errors rendered to the caller as a typed payload."""

    kind = "IMPORT_FAILED"
    status_code = 500

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "message": str(self)}


class NotAuthenticatedError(RecipeImportError):
    kind = "NOT_AUTHENTICATED"
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Not authenticated")

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind}


class InvalidSourceUrlError(RecipeImportError):
    kind = "INVALID_SOURCE_URL"
    status_code = 400

    def __init__(self, url: str, message: str = "Dieser Link wird nicht unterstützt."):
        super().__init__(message)
        self.url = url

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "url": self.url, "message": str(self)}


class InvalidImageError(RecipeImportError):
    kind = "INVALID_IMAGE"
    status_code = 400

    def __init__(self, message: str = "Das Bild konnte nicht gelesen werden."):
        super().__init__(message)


class RateLimitExceededError(RecipeImportError):
    kind = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(
        self,
        reset_at: float,
        message: str = "Du hast zu viele Anfragen gestellt. Bitte warte einen Moment.",
    ):
        super().__init__(message)
        self.reset_at = reset_at

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "resetAt": int(self.reset_at * 1000),
            "message": str(self),
        }


class ApiUnavailableError(RecipeImportError):
    kind = "API_UNAVAILABLE"
    status_code = 503

    def __init__(self, service: str, prefill_url: str, message: str):
        super().__init__(message)
        self.service = service
        self.prefill_url = prefill_url
        self.fallback_mode = "manual"

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "service": self.service,
            "fallbackMode": self.fallback_mode,
            "prefillUrl": self.prefill_url,
            "message": str(self),
        }


class LimitReachedError(RecipeImportError):
    kind = "LIMIT_REACHED"
    status_code = 402

    def __init__(self, feature: FeatureKind, current: int, limit: int, message: Optional[str] = None):
        super().__init__(
            message
            or f"Du hast das Limit von {limit} für diese Funktion erreicht. Upgrade auf Pro für unbegrenzten Zugriff."
        )
        self.feature = feature
        self.current = current
        self.limit = limit

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "feature": self.feature.value,
            "current": self.current,
            "limit": self.limit,
            "message": str(self),
        }


class ExtractionError(RecipeImportError):
    kind = "EXTRACTION_FAILED"
    status_code = 502


class PersistenceError(RecipeImportError):
    kind = "PERSISTENCE_FAILED"
    status_code = 500

    def __init__(self, message: str = "Fehler beim Speichern des Rezepts."):
        super().__init__(message)


class RecipeNotFoundError(RecipeImportError):
    kind = "NOT_FOUND"
    status_code = 404

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class StorageError(Exception):
    pass


class RepositoryError(Exception):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason

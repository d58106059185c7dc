from __future__ import annotations

import logging
from typing import Optional

import httpx
from google import genai
from google.genai import types
from google.genai.errors import APIError, ClientError

from src.services.errors import ModelResponseError, RateLimitedError, ServiceError

logger = logging.getLogger(__name__)


class GeminiConfigurationError(ServiceError):
    pass


class GeminiClient:
    """Async text/vision wrapper returning the raw text of the first candidate."""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-2.5-flash",
        temperature: float = 0.2,
    ) -> None:
        if not api_key:
            raise GeminiConfigurationError("Missing Google API key.")
        self.model_name = model_name
        self.temperature = temperature
        self._client = genai.Client(api_key=api_key)

    def _build_contents(
        self,
        prompt: str,
        image_bytes: Optional[bytes],
        mime_type: str,
    ) -> list[types.Part | str]:
        if image_bytes is None:
            return [prompt]
        return [types.Part.from_bytes(data=image_bytes, mime_type=mime_type), prompt]

    async def generate(
        self,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
    ) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=self._build_contents(prompt, image_bytes, mime_type),
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    response_mime_type="application/json",
                ),
            )
        except ClientError as err:
            status_code = getattr(err, "code", None) or getattr(err, "status_code", None)
            message = str(err)
            if status_code == 429 or "RESOURCE_EXHAUSTED" in message:
                raise RateLimitedError(
                    "Limit der Gemini-API erreicht. Bitte versuche es gleich noch einmal."
                ) from err
            raise ModelResponseError(message) from err
        except APIError as err:
            raise ModelResponseError(str(err)) from err
        except httpx.HTTPError as err:
            raise ModelResponseError(f"Model request failed: {err}") from err

        text = response.text
        if not text:
            raise ModelResponseError("Model response did not include text content.")

        logger.debug("Gemini response: model=%s, chars=%d", self.model_name, len(text))
        return text

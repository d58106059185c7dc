from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Optional

import httpx

from src.app.constants import (
    APIFY_POLL_ATTEMPTS,
    APIFY_POLL_INTERVAL_SECONDS,
    APIFY_REQUEST_TIMEOUT_SECONDS,
    MARKDOWN_MAX_CHARS,
    READER_SERVER_TIMEOUT_SECONDS,
    READER_TIMEOUT_SECONDS,
    SCAN_JPEG_QUALITY,
    SCAN_MAX_DIMENSION,
)
from src.services.errors import (
    FetchFailedError,
    InvalidURLError,
    NetworkTimeoutError,
    ScrapeJobError,
    ScrapeTimeoutError,
)
from src.services.ids import is_http_url, is_social_post_url
from src.services.images import encode_jpeg
from src.services.types import FetchedContent

logger = logging.getLogger(__name__)

APIFY_BASE_URL = "https://api.apify.com/v2"
APIFY_ACTOR = "apify~instagram-scraper"
APIFY_FAILED_STATUSES = {"FAILED", "ABORTED", "TIMED-OUT"}
READER_BASE_URL = "https://r.jina.ai"
MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\((https?://[^)\s]+)")
META_IMAGE_KEYS = ("og:image", "og:image:url", "twitter:image", "twitter:image:src")


def _clean_url(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped.startswith(("http://", "https://")) else None


def _first_url(values: list[Any]) -> str | None:
    for value in values:
        if isinstance(value, dict):
            value = value.get("url") or value.get("src")
        url = _clean_url(value)
        if url:
            return url
    return None


def _post_image_url(item: dict[str, Any]) -> str | None:
    images = item.get("images")
    candidates = [images[0]] if isinstance(images, list) and images else []
    candidates += [item.get("displayUrl"), item.get("thumbnailUrl"), item.get("videoUrl")]
    return _first_url(candidates)


# Reader responses: each extractor looks at one place an image can appear
def _image_from_summary(data: dict[str, Any]) -> str | None:
    images = data.get("images")
    if isinstance(images, dict):
        return _first_url(list(images.values()))
    if isinstance(images, list):
        return _first_url(images)
    return None


def _image_from_metadata(data: dict[str, Any]) -> str | None:
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        return None
    return _first_url([metadata.get(key) for key in META_IMAGE_KEYS])


def _image_from_fields(data: dict[str, Any]) -> str | None:
    return _first_url([data.get("image"), data.get("thumbnail")])


def _image_from_markdown(data: dict[str, Any]) -> str | None:
    content = data.get("content")
    if not isinstance(content, str):
        return None
    match = MARKDOWN_IMAGE_PATTERN.search(content)
    return match.group(1) if match else None


IMAGE_EXTRACTORS: tuple[Callable[[dict[str, Any]], Optional[str]], ...] = (
    _image_from_summary,
    _image_from_metadata,
    _image_from_fields,
    _image_from_markdown,
)


def extract_image_url(data: dict[str, Any]) -> str | None:
    for extractor in IMAGE_EXTRACTORS:
        url = extractor(data)
        if url:
            return url
    return None


def _run_data(response: httpx.Response) -> dict[str, Any]:
    """The `data` object of an Apify run response, or FetchFailedError."""
    body = response.json()
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        raise FetchFailedError("Apify returned an unexpected run payload")
    return data


class InstagramFetcher:
    """Reads a single Instagram post or reel through an Apify scraper run."""

    def __init__(
        self,
        api_token: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = APIFY_POLL_INTERVAL_SECONDS,
        max_attempts: int = APIFY_POLL_ATTEMPTS,
        base_url: str = APIFY_BASE_URL,
    ):
        self._token = api_token
        self._transport = transport
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._base_url = base_url.rstrip("/")

    async def fetch(self, url: str) -> FetchedContent:
        if not is_social_post_url(url):
            raise InvalidURLError(f"Kein Instagram-Beitrag oder Reel: {url}")
        if not self._token:
            raise FetchFailedError("APIFY_API_TOKEN not configured")

        try:
            async with httpx.AsyncClient(
                timeout=APIFY_REQUEST_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                run = await self._start_run(client, url)
                dataset_id = await self._wait_for_run(client, run)
                item = await self._first_item(client, dataset_id)
        except httpx.TimeoutException as err:
            raise NetworkTimeoutError(url, APIFY_REQUEST_TIMEOUT_SECONDS) from err
        except httpx.HTTPError as err:
            raise FetchFailedError(f"Apify request failed: {err}") from err
        except ValueError as err:
            raise FetchFailedError(f"Apify returned invalid JSON: {err}") from err

        caption = item.get("caption") if isinstance(item.get("caption"), str) else ""
        return FetchedContent(
            source="social",
            url=url,
            title=None,
            text=caption,
            image_url=_post_image_url(item),
        )

    async def _start_run(self, client: httpx.AsyncClient, url: str) -> dict[str, Any]:
        response = await client.post(
            f"{self._base_url}/acts/{APIFY_ACTOR}/runs",
            params={"token": self._token},
            json={"directUrls": [url], "resultsType": "posts", "resultsLimit": 1},
        )
        response.raise_for_status()
        run = _run_data(response)
        if not run.get("id"):
            raise FetchFailedError("Apify did not return a run id")

        logger.info("Apify run started: run_id=%s, url=%s", run["id"], url)
        return run

    async def _wait_for_run(self, client: httpx.AsyncClient, run: dict[str, Any]) -> str:
        run_id = str(run["id"])

        for attempt in range(self._max_attempts):
            response = await client.get(
                f"{self._base_url}/actor-runs/{run_id}", params={"token": self._token}
            )
            response.raise_for_status()
            data = _run_data(response)
            status = data.get("status")

            if status == "SUCCEEDED":
                dataset_id = data.get("defaultDatasetId") or run.get("defaultDatasetId")
                if not dataset_id:
                    raise FetchFailedError(f"Apify run {run_id} has no dataset")
                return str(dataset_id)
            if status in APIFY_FAILED_STATUSES:
                raise ScrapeJobError(run_id, status)

            logger.debug("Apify run pending: run_id=%s, status=%s, attempt=%d", run_id, status, attempt + 1)
            await asyncio.sleep(self._poll_interval)

        raise ScrapeTimeoutError(run_id, self._max_attempts)

    async def _first_item(self, client: httpx.AsyncClient, dataset_id: str) -> dict[str, Any]:
        response = await client.get(
            f"{self._base_url}/datasets/{dataset_id}/items", params={"token": self._token}
        )
        response.raise_for_status()
        items = response.json()
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise FetchFailedError(f"Apify dataset {dataset_id} is empty")
        return items[0]


class WebsiteFetcher:
    """Converts a web page to markdown through the Jina reader."""

    def __init__(
        self,
        api_key: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: str = READER_BASE_URL,
    ):
        self._api_key = api_key
        self._transport = transport
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Return-Format": "markdown",
            "X-With-Images-Summary": "true",
            "X-Timeout": str(READER_SERVER_TIMEOUT_SECONDS),
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def fetch(self, url: str) -> FetchedContent:
        if not is_http_url(url):
            raise InvalidURLError(f"Ungültige URL: {url}")

        try:
            async with httpx.AsyncClient(
                timeout=READER_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                response = await client.get(f"{self._base_url}/{url}", headers=self._headers())
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as err:
            raise NetworkTimeoutError(url, READER_TIMEOUT_SECONDS) from err
        except httpx.HTTPError as err:
            raise FetchFailedError(f"Reader request failed: {err}") from err
        except ValueError as err:
            raise FetchFailedError(f"Reader returned invalid JSON: {err}") from err

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise FetchFailedError(f"Reader returned no data for {url}")

        content = data.get("content") if isinstance(data.get("content"), str) else ""
        if not content.strip():
            raise FetchFailedError(f"Reader returned empty content for {url}")

        title = data.get("title") if isinstance(data.get("title"), str) else None
        logger.info("Reader fetched page: url=%s, chars=%d", url, len(content))

        return FetchedContent(
            source="website",
            url=url,
            title=title.strip() if title else None,
            text=content[:MARKDOWN_MAX_CHARS],
            image_url=extract_image_url(data),
        )


def prepare_photo(data: bytes) -> bytes:
    """
    Normalize a caller-supplied photo for the vision model.

    Raises:
        ImageDecodeError: bytes are not a readable image
    """
    jpeg, _ = encode_jpeg(data, SCAN_MAX_DIMENSION, SCAN_JPEG_QUALITY)
    return jpeg

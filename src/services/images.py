"""
Recipe image normalization.

Every stored image goes through the same sequence: download, decode,
bound to the maximum dimension, re-encode as JPEG, compute a blurhash
placeholder from a small thumbnail and upload to object storage. When the
candidate image cannot be used, a generated food photo is stored instead.
"""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional
from urllib.parse import quote

import blurhash
import httpx
from PIL import Image, ImageOps, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from src.app.config import settings
from src.app.constants import (
    GENERATED_IMAGE_SIZE,
    IMAGE_DOWNLOAD_TIMEOUT_SECONDS,
    IMAGE_JPEG_QUALITY,
    IMAGE_MAX_DIMENSION,
    IMAGE_MAX_DOWNLOAD_BYTES,
    PLACEHOLDER_COMPONENTS,
    PLACEHOLDER_THUMBNAIL_SIZE,
)
from src.app.domain.errors import StorageError
from src.app.domain.models import ResolvedImage
from src.app.infra.storage.base import StorageProvider
from src.services.errors import FetchFailedError, ImageDecodeError, NetworkTimeoutError, ServiceError
from src.services.slugify import consistent_seed, slugify, title_keywords

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_KEYWORDS = "delicious food"
JPEG_CONTENT_TYPE = "image/jpeg"


def flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Paste transparent or palette images onto white; JPEG has no alpha."""
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        rgb_img = Image.new("RGB", img.size, (255, 255, 255))
        rgb_img.paste(img, mask=img.split()[-1])
        return rgb_img
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def encode_jpeg(data: bytes, max_dimension: int, quality: int) -> tuple[bytes, Image.Image]:
    """
    Decode arbitrary image bytes and re-encode them as a bounded JPEG.

    Returns:
        The JPEG bytes and the decoded (resized) image

    Raises:
        ImageDecodeError: bytes are not a readable image, or decode to more
            pixels than Pillow's decompression-bomb limit
    """
    try:
        img = Image.open(BytesIO(data))
        img = ImageOps.exif_transpose(img)
        img = flatten_to_rgb(img)

        if max(img.size) > max_dimension:
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="JPEG", quality=quality, optimize=True, progressive=True)
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, ValueError) as err:
        raise ImageDecodeError(f"Cannot decode image: {err}") from err

    return output.getvalue(), img


def compute_blurhash(img: Image.Image) -> str:
    thumb = img.copy()
    thumb.thumbnail((PLACEHOLDER_THUMBNAIL_SIZE, PLACEHOLDER_THUMBNAIL_SIZE))
    width, height = thumb.size
    pixels = thumb.load()
    rows = [
        [list(pixels[x, y]) for x in range(width)]
        for y in range(height)
    ]
    components_x, components_y = PLACEHOLDER_COMPONENTS
    return blurhash.encode(rows, components_x=components_x, components_y=components_y)


def generated_image_url(hint: Optional[str], base_url: Optional[str] = None) -> str:
    """Deterministic text-to-image URL for a dish, seeded by its keywords."""
    keywords = title_keywords(hint or "") or DEFAULT_IMAGE_KEYWORDS
    base = (base_url or settings.POLLINATIONS_BASE_URL).rstrip("/")
    prompt = quote(f"realistic food photography {keywords}")
    return (
        f"{base}/{prompt}"
        f"?width={GENERATED_IMAGE_SIZE}&height={GENERATED_IMAGE_SIZE}"
        f"&nologo=true&seed={consistent_seed(keywords)}"
    )


class ImageProcessor:
    def __init__(
        self,
        storage: StorageProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        pollinations_base_url: Optional[str] = None,
        download_timeout: float = IMAGE_DOWNLOAD_TIMEOUT_SECONDS,
        max_download_bytes: int = IMAGE_MAX_DOWNLOAD_BYTES,
    ):
        self._storage = storage
        self._transport = transport
        self._pollinations_base_url = pollinations_base_url
        self._download_timeout = download_timeout
        self._max_download_bytes = max_download_bytes

    async def resolve(
        self,
        owner_id: str,
        candidate_url: Optional[str],
        title_hint: Optional[str],
    ) -> ResolvedImage:
        """
        Store the candidate image, or a generated one when that fails.
        Returns an empty ResolvedImage if both fail; never raises.
        """
        if candidate_url:
            try:
                return await self._store_from_url(owner_id, candidate_url, title_hint)
            except (ServiceError, StorageError, httpx.HTTPError, ValueError) as err:
                logger.warning("Candidate image unusable, generating one: url=%s, error=%s", candidate_url, err)

        fallback_url = generated_image_url(title_hint, self._pollinations_base_url)
        try:
            return await self._store_from_url(owner_id, fallback_url, title_hint)
        except (ServiceError, StorageError, httpx.HTTPError, ValueError) as err:
            logger.warning("Generated image failed, recipe stays without image: error=%s", err)
            return ResolvedImage()

    async def discard(self, image: ResolvedImage) -> None:
        """Release a stored image whose recipe was never created."""
        if not image.is_stored:
            return
        deleted = await run_in_threadpool(self._storage.delete_object, image.storage_id)
        if not deleted:
            logger.warning("Orphaned recipe image left in storage: key=%s", image.storage_id)

    async def _store_from_url(self, owner_id: str, url: str, title_hint: Optional[str]) -> ResolvedImage:
        raw = await self._download(url)
        jpeg, img = await run_in_threadpool(encode_jpeg, raw, IMAGE_MAX_DIMENSION, IMAGE_JPEG_QUALITY)
        placeholder = await run_in_threadpool(compute_blurhash, img)

        object_key = self._storage.generate_object_key(
            owner_id, f"{slugify(title_hint or '')}.jpg", prefix="recipes"
        )
        storage_id = await run_in_threadpool(
            self._storage.upload_bytes, object_key, jpeg, JPEG_CONTENT_TYPE
        )

        display_url = self._storage.public_url(storage_id) or url

        logger.info("Stored recipe image: key=%s, bytes=%d", storage_id, len(jpeg))
        return ResolvedImage(storage_id=storage_id, display_url=display_url, blurhash=placeholder)

    async def _download(self, url: str) -> bytes:
        chunks: list[bytes] = []
        received = 0

        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        if received > self._max_download_bytes:
                            raise FetchFailedError(
                                f"Image larger than {self._max_download_bytes} bytes: {url}"
                            )
                        chunks.append(chunk)
        except httpx.TimeoutException as err:
            raise NetworkTimeoutError(url, self._download_timeout) from err

        if not received:
            raise FetchFailedError(f"Empty image response: {url}")
        return b"".join(chunks)

from __future__ import annotations

from io import BytesIO

import httpx
import pytest
from PIL import Image

from src.app.domain.models import ResolvedImage
from src.services.errors import ImageDecodeError
from src.services.images import ImageProcessor, encode_jpeg, flatten_to_rgb, generated_image_url
from tests.unit.fakes import InMemoryStorage, image_transport, make_image_bytes

CANDIDATE = "https://cdn.example/dish.jpg"
GENERATED_BASE = "https://gen.test/prompt"


def _processor(storage: InMemoryStorage, image_bytes: bytes, failing_hosts: tuple[str, ...] = ()) -> ImageProcessor:
    return ImageProcessor(
        storage,
        transport=image_transport(image_bytes, failing_hosts),
        pollinations_base_url=GENERATED_BASE,
    )


class TestResolve:
    @pytest.mark.asyncio
    async def test_candidate_is_bounded_and_stored(self, storage: InMemoryStorage) -> None:
        processor = _processor(storage, make_image_bytes(size=(2400, 1600)))

        image = await processor.resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.is_stored
        assert image.storage_id.startswith("users/user-1/recipes/")
        assert image.storage_id.endswith("_shakshuka.jpg")
        assert image.display_url == CANDIDATE
        assert image.blurhash

        stored = Image.open(BytesIO(storage.objects[image.storage_id]))
        assert stored.format == "JPEG"
        assert max(stored.size) <= 1200

    @pytest.mark.asyncio
    async def test_small_image_keeps_size(self, storage: InMemoryStorage) -> None:
        processor = _processor(storage, make_image_bytes(size=(300, 200), fmt="PNG", mode="RGBA", color=(10, 20, 30, 128)))

        image = await processor.resolve("user-1", CANDIDATE, "Suppe")

        assert Image.open(BytesIO(storage.objects[image.storage_id])).size == (300, 200)

    @pytest.mark.asyncio
    async def test_failed_candidate_falls_back_to_generated(self, storage: InMemoryStorage) -> None:
        processor = _processor(storage, make_image_bytes(), failing_hosts=("cdn.example",))

        image = await processor.resolve("user-1", CANDIDATE, "Omas Kartoffelsalat")

        assert image.is_stored
        assert image.display_url.startswith(GENERATED_BASE + "/")
        assert "kartoffelsalat" in image.display_url

    @pytest.mark.asyncio
    async def test_no_candidate_uses_generated(self, storage: InMemoryStorage) -> None:
        image = await _processor(storage, make_image_bytes()).resolve("user-1", None, "Linsensuppe")

        assert image.display_url.startswith(GENERATED_BASE + "/")
        assert len(storage.objects) == 1

    @pytest.mark.asyncio
    async def test_everything_failing_returns_empty(self, storage: InMemoryStorage) -> None:
        processor = _processor(storage, make_image_bytes(), failing_hosts=("cdn.example", "gen.test"))

        image = await processor.resolve("user-1", CANDIDATE, "Shakshuka")

        assert image == ResolvedImage()
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_undecodable_bytes_return_empty(self, storage: InMemoryStorage) -> None:
        image = await _processor(storage, b"<html>not an image</html>").resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.is_stored is False

    @pytest.mark.asyncio
    async def test_decompression_bomb_falls_back_to_generated(
        self, storage: InMemoryStorage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        bomb = make_image_bytes(size=(200, 200))
        small = make_image_bytes(size=(20, 20))

        def handler(request: httpx.Request) -> httpx.Response:
            body = bomb if request.url.host == "cdn.example" else small
            return httpx.Response(200, content=body, headers={"Content-Type": "image/jpeg"})

        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        processor = ImageProcessor(storage, transport=httpx.MockTransport(handler), pollinations_base_url=GENERATED_BASE)

        image = await processor.resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.is_stored
        assert image.display_url.startswith(GENERATED_BASE + "/")

    @pytest.mark.asyncio
    async def test_decompression_bomb_everywhere_returns_empty(
        self, storage: InMemoryStorage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        image = await _processor(storage, make_image_bytes(size=(200, 200))).resolve("user-1", CANDIDATE, "Shakshuka")

        assert image == ResolvedImage()
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_public_bucket_url_is_display_url(self) -> None:
        storage = InMemoryStorage(public_base="https://img.example")

        image = await _processor(storage, make_image_bytes()).resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.display_url == f"https://img.example/{image.storage_id}"

    @pytest.mark.asyncio
    async def test_upload_failure_returns_empty(self, storage: InMemoryStorage) -> None:
        storage.fail_upload = True

        image = await _processor(storage, make_image_bytes()).resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.is_stored is False

    @pytest.mark.asyncio
    async def test_oversized_download_is_rejected(self, storage: InMemoryStorage) -> None:
        processor = ImageProcessor(
            storage,
            transport=image_transport(make_image_bytes(size=(400, 400))),
            pollinations_base_url=GENERATED_BASE,
            max_download_bytes=100,
        )

        image = await processor.resolve("user-1", CANDIDATE, "Shakshuka")

        assert image.is_stored is False


class TestDiscard:
    @pytest.mark.asyncio
    async def test_removes_stored_object(self, storage: InMemoryStorage) -> None:
        processor = _processor(storage, make_image_bytes())
        image = await processor.resolve("user-1", CANDIDATE, "Shakshuka")

        await processor.discard(image)

        assert storage.objects == {}
        assert storage.deleted == [image.storage_id]

    @pytest.mark.asyncio
    async def test_empty_image_is_noop(self, storage: InMemoryStorage) -> None:
        await _processor(storage, b"").discard(ResolvedImage())

        assert storage.deleted == []


class TestGeneratedImageUrl:
    def test_deterministic_per_title(self) -> None:
        first = generated_image_url("Spaghetti Carbonara", GENERATED_BASE)

        assert first == generated_image_url("Spaghetti Carbonara", GENERATED_BASE)
        assert first != generated_image_url("Linsensuppe", GENERATED_BASE)
        assert "width=1080&height=1080" in first

    def test_stopwords_only_uses_default(self) -> None:
        assert "delicious%20food" in generated_image_url("Einfach Rezept", GENERATED_BASE)
        assert "delicious%20food" in generated_image_url(None, GENERATED_BASE)


class TestFlattenToRgb:
    def test_transparent_becomes_white(self) -> None:
        img = Image.new("RGBA", (4, 4), (255, 0, 0, 0))

        assert flatten_to_rgb(img).getpixel((0, 0)) == (255, 255, 255)

    def test_grayscale_is_converted(self) -> None:
        assert flatten_to_rgb(Image.new("L", (4, 4), 128)).mode == "RGB"


class TestEncodeJpeg:
    def test_decompression_bomb_is_decode_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(ImageDecodeError):
            encode_jpeg(make_image_bytes(size=(200, 200)), max_dimension=1200, quality=85)

    def test_truncated_jpeg_is_decode_error(self) -> None:
        data = make_image_bytes(size=(200, 200))

        with pytest.raises(ImageDecodeError):
            encode_jpeg(data[: len(data) // 2], max_dimension=1200, quality=85)

import asyncio
import base64
import io
import os

import httpx
import pytest
from PIL import Image

from services.exceptions import ImageFetchError
from services.image_fetcher import compress_image, fetch_image, sniff_media_type


def png_bytes(size=(8, 8), noise=False):
    if noise:
        img = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    else:
        img = Image.new("RGB", size, (0, 128, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def fetch(handler, url="https://images.example.com/a"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return asyncio.run(fetch_image(client, url))


def test_sniff_media_type():
    assert sniff_media_type(png_bytes()) == "image/png"
    assert sniff_media_type(b"not an image") is None


def test_small_image_is_left_alone():
    data = png_bytes()
    assert compress_image(data, "image/png") == (data, "image/png")


def test_large_image_is_recompressed_to_jpeg():
    data = png_bytes(size=(256, 256), noise=True)
    compressed, media_type = compress_image(data, "image/png", max_bytes=20_000)
    assert media_type == "image/jpeg"
    assert len(compressed) <= 20_000


def test_fetch_uses_sniffed_type_when_header_is_generic():
    data = png_bytes()

    def handler(request):
        return httpx.Response(200, content=data, headers={"content-type": "application/octet-stream"})

    image = fetch(handler)
    assert image.media_type == "image/png"
    assert base64.b64decode(image.data) == data
    assert image.size_bytes == len(data)


def test_fetch_http_error():
    with pytest.raises(ImageFetchError) as exc_info:
        fetch(lambda request: httpx.Response(404))
    assert exc_info.value.status_code == 404


def test_fetch_empty_body():
    with pytest.raises(ImageFetchError):
        fetch(lambda request: httpx.Response(200, content=b""))


def test_decompression_bomb_is_sent_unchanged(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    data = png_bytes(size=(64, 64), noise=True)
    assert compress_image(data, "image/png", max_bytes=100) == (data, "image/png")
    assert sniff_media_type(data) is None

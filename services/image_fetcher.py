"""
Image Fetcher - downloads the product photo referenced by image_url
and turns it into base64 inline data for the AI request.
Oversized images are recompressed to JPEG with Pillow.
"""

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from config.settings import BROWSER_USER_AGENT
from services.exceptions import ImageFetchError

logger = logging.getLogger(__name__)

# Gemini caps the whole inline request at 20MB; base64 adds ~33%
MAX_RAW_BYTES = 10_000_000
DEFAULT_MEDIA_TYPE = "image/jpeg"


@dataclass
class FetchedImage:
    """Container for a fetched image"""
    url: str
    data: str  # base64 encoded
    media_type: str
    size_bytes: int


def sniff_media_type(image_data: bytes) -> Optional[str]:
    """Identify the image format from its bytes, None if Pillow can't read it."""
    try:
        with Image.open(io.BytesIO(image_data)) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None


def compress_image(image_data: bytes, media_type: str, max_bytes: int = MAX_RAW_BYTES) -> Tuple[bytes, str]:
    """
    Compress image if it exceeds max_bytes.
    Returns (compressed_data, media_type)
    """
    if len(image_data) <= max_bytes:
        return image_data, media_type

    try:
        original_size = len(image_data)
        img = Image.open(io.BytesIO(image_data))

        if img.mode == 'RGBA':
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[3])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        for scale in (1.0, 0.75, 0.5, 0.35, 0.25):
            for quality in (85, 70, 50):
                size = (max(1, int(img.width * scale)), max(1, int(img.height * scale)))
                resized = img if scale == 1.0 else img.resize(size, Image.Resampling.LANCZOS)

                buffer = io.BytesIO()
                resized.save(buffer, format='JPEG', quality=quality, optimize=True)
                compressed = buffer.getvalue()

                if len(compressed) <= max_bytes:
                    logger.info(
                        f"[IMAGES] Compressed {original_size/1024/1024:.1f}MB -> "
                        f"{len(compressed)/1024/1024:.1f}MB ({size[0]}x{size[1]}, q={quality})"
                    )
                    return compressed, 'image/jpeg'

        logger.warning(f"[IMAGES] Could not compress below {max_bytes/1024/1024:.0f}MB, sending as-is")
        return image_data, media_type

    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.error(f"[IMAGES] Compression failed: {e}")
        return image_data, media_type


async def fetch_image(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 15.0,
) -> FetchedImage:
    """Fetch a single image and base64-encode it."""
    try:
        response = await client.get(
            url,
            headers={'User-Agent': BROWSER_USER_AGENT},
            follow_redirects=True,
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise ImageFetchError(url, "Timeout", cause=e)
    except httpx.HTTPStatusError as e:
        raise ImageFetchError(
            url, f"HTTP {e.response.status_code}",
            status_code=e.response.status_code, cause=e,
        )
    except httpx.HTTPError as e:
        raise ImageFetchError(url, str(e) or type(e).__name__, cause=e)

    image_data = response.content
    if not image_data:
        raise ImageFetchError(url, "Empty response body")

    content_type = response.headers.get('content-type', '')
    if ';' in content_type:
        content_type = content_type.split(';')[0].strip()
    if not content_type.startswith('image/'):
        content_type = sniff_media_type(image_data) or DEFAULT_MEDIA_TYPE

    if len(image_data) > MAX_RAW_BYTES:
        image_data, content_type = compress_image(image_data, content_type)

    logger.info(f"[IMAGES] Fetched {url[:80]} ({len(image_data)/1024:.0f}KB, {content_type})")
    return FetchedImage(
        url=url,
        data=base64.b64encode(image_data).decode('utf-8'),
        media_type=content_type,
        size_bytes=len(image_data),
    )

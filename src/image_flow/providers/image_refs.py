"""
Image References - Helpers for images passed around as strings.

Workflows carry images as references: either a data URI
(``data:<mime>;base64,<payload>``) or an http(s) URL.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from io import BytesIO

import aiohttp
from PIL import Image, UnidentifiedImageError

from image_flow.providers.base import BackendError, GenerationError


DEFAULT_IMAGE_MIME = "image/png"

_DATA_URI_PATTERN = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)


def parse_data_uri(ref: str) -> tuple[str, str] | None:
    """Split an image data URI into (mime type, base64 payload)."""
    match = _DATA_URI_PATTERN.match(ref)
    if not match:
        return None
    return match.group(1), match.group(2)


def inline_image_parts(ref: str) -> tuple[str, str]:
    """
    (mime type, base64 payload) for sending a reference inline.

    References that are not well-formed data URIs are sent as-is with
    the default image mime type.
    """
    parsed = parse_data_uri(ref)
    if parsed is None:
        return DEFAULT_IMAGE_MIME, ref
    return parsed


def to_data_uri(payload: str, mime_type: str | None = None) -> str:
    return f"data:{mime_type or DEFAULT_IMAGE_MIME};base64,{payload}"


async def load_image_bytes(ref: str, timeout: float = 60.0) -> bytes:
    """
    Raw bytes behind an image reference.

    Data URIs are decoded locally; http(s) URLs are downloaded.

    Raises:
        GenerationError: The reference cannot be read
        BackendError: Downloading the image failed
    """
    parsed = parse_data_uri(ref)
    if parsed is not None:
        try:
            return base64.b64decode(parsed[1], validate=False)
        except (binascii.Error, ValueError) as e:
            raise GenerationError(f"Invalid image data: {e}") from e

    if not ref.startswith(("http://", "https://")):
        raise GenerationError("Image input must be a data URI or an http(s) URL.")

    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            async with session.get(ref) as resp:
                if resp.status >= 400:
                    raise BackendError(f"Image download failed: HTTP {resp.status}")
                return await resp.read()
    except asyncio.TimeoutError:
        raise BackendError("Image download failed: request timed out") from None
    except aiohttp.ClientError as e:
        raise BackendError(f"Image download failed: {e}") from e


def to_png_bytes(raw: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG."""
    try:
        pil_img = Image.open(BytesIO(raw))
        pil_img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise GenerationError(f"Could not read input image: {e}") from e

    if pil_img.mode not in ("RGB", "RGBA", "L", "LA"):
        pil_img = pil_img.convert("RGBA")
    buf = BytesIO()
    pil_img.save(buf, format="PNG")
    return buf.getvalue()

"""Ingredient extraction from photos using Gemini vision.

Pipeline for one extraction call:
1. Validate the number of images (1 to MAX_IMAGES)
2. Resolve the API key (MissingCredential before any network activity)
3. Load every image source into an ImagePayload (bytes, data URI, bare base64, URL)
4. Validate size and optionally compress with Pillow
5. Send ONE request: all image parts + the extraction instruction, JSON schema constrained
6. Parse ``{"ingredients": [...]}`` (code fences tolerated) into a list of names

Core Functions:
- load_image_payload(): Normalize any supported image source
- detect_mime_type(): Magic-byte MIME detection with image/jpeg fallback
- validate_image_size(): Check MAX_IMAGE_SIZE_MB limit
- compress_image(): Re-encode large images as JPEG
- parse_ingredients_response(): Strict response parsing
- extract_ingredients(): Public entry point
"""

import asyncio
import base64
import binascii
from io import BytesIO
from typing import Sequence, Union

import aiohttp
import filetype
from google.genai import types
from PIL import Image

from recetas.models.models import ImagePayload
from recetas.prompts.prompts import get_extraction_prompt, ingredient_list_schema
from recetas.services.gemini_client import generate_json, parse_json, resolve_api_key
from recetas.utils.config import config
from recetas.utils.errors import MalformedResponse, safe_execute_sync
from recetas.utils.logger import logger

DEFAULT_MIME_TYPE = "image/jpeg"

ImageSource = Union[ImagePayload, bytes, str]


def detect_mime_type(image_bytes: bytes) -> str:
    """Detect the image MIME type from magic bytes.

    Args:
        image_bytes: Raw image bytes.

    Returns:
        Detected ``image/*`` MIME type, or image/jpeg if undetectable.
    """
    kind = filetype.guess(image_bytes)
    if kind is None or not kind.mime.startswith("image/"):
        return DEFAULT_MIME_TYPE
    return kind.mime


def _decode_base64(encoded: str) -> bytes:
    # Line-wrapped output (base64 CLI, encodebytes) is valid; any other stray character is not
    compact = "".join(encoded.split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


def decode_data_url(data_url: str) -> ImagePayload:
    """Decode a ``data:<mime>;base64,<data>`` URI.

    The MIME type comes from the header; if the header has none, it is detected
    from the decoded bytes. Only base64 data URIs are accepted.

    Raises:
        ValueError: If the URI is not base64-encoded or has no payload.
    """
    header, _, encoded = data_url.partition(",")
    media_type, *params = header[len("data:"):].split(";")
    if "base64" not in (param.strip().lower() for param in params):
        raise ValueError("Only base64-encoded data URLs are supported")
    if not encoded.strip():
        raise ValueError("Data URL has no payload")

    data = _decode_base64(encoded)
    mime_type = media_type.strip()
    return ImagePayload(mime_type=mime_type or detect_mime_type(data), data=data)


async def fetch_image_bytes(url: str) -> bytes:
    """Fetch image bytes from an http(s) URL (10s timeout).

    Raises:
        ValueError: If the download fails.
    """
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=10)) as response:
                response.raise_for_status()
                return await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ValueError(f"Failed to fetch image from URL {url}: {e}") from e


async def load_image_payload(source: ImageSource) -> ImagePayload:
    """Normalize any supported image source into an ImagePayload.

    Supported sources:
    - ImagePayload: returned as-is
    - bytes: MIME detected from magic bytes
    - "data:image/png;base64,...": MIME from the header
    - "https://...": downloaded
    - plain base64 string: decoded, MIME detected (image/jpeg fallback)

    Raises:
        ValueError: If the source is empty, undecodable or of an unsupported type.
    """
    if isinstance(source, ImagePayload):
        return source

    if isinstance(source, bytes):
        if not source:
            raise ValueError("Image data is empty")
        return ImagePayload(mime_type=detect_mime_type(source), data=source)

    if isinstance(source, str):
        source = source.strip()
        if not source:
            raise ValueError("Image data is empty")
        if source.startswith("data:"):
            return decode_data_url(source)
        if source.startswith(("http://", "https://")):
            data = await fetch_image_bytes(source)
            return ImagePayload(mime_type=detect_mime_type(data), data=data)
        data = _decode_base64(source)
        return ImagePayload(mime_type=detect_mime_type(data), data=data)

    raise ValueError(f"Unsupported image source type: {type(source).__name__}")


def validate_image_size(payload: ImagePayload) -> None:
    """Reject images above MAX_IMAGE_SIZE_MB.

    Raises:
        ValueError: If the image is too large.
    """
    size_mb = len(payload.data) / (1024 * 1024)
    if size_mb > config.MAX_IMAGE_SIZE_MB:
        raise ValueError(f"Image size {size_mb:.2f}MB exceeds limit of {config.MAX_IMAGE_SIZE_MB}MB")


def compress_image(payload: ImagePayload, max_width: int = 1024) -> ImagePayload:
    """Compress an image for upload using Pillow.

    Only images at or above COMPRESS_IMG_THRESHOLD_KB are touched. Re-encodes as
    JPEG (quality 85, optimized, progressive), flattening transparency onto white
    and downscaling to ``max_width``. Falls back to the original payload if
    Pillow cannot decode the image or the result is not smaller.
    """
    if payload.size_kb < config.COMPRESS_IMG_THRESHOLD_KB:
        return payload

    def _compress() -> ImagePayload:
        img = Image.open(BytesIO(payload.data))

        if img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGBA")
            rgb_img = Image.new("RGB", img.size, (255, 255, 255))
            rgb_img.paste(img, mask=img.split()[-1])
            img = rgb_img
        elif img.mode != "RGB":
            img = img.convert("RGB")

        if img.width > max_width:
            ratio = max_width / img.width
            img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="JPEG", quality=85, optimize=True, progressive=True)
        compressed = output.getvalue()

        if len(compressed) >= len(payload.data):
            return payload

        logger.debug(
            f"Image compressed: {payload.size_kb:.1f}KB → {len(compressed) / 1024:.1f}KB "
            f"({(1 - len(compressed) / len(payload.data)) * 100:.1f}% reduction)"
        )
        return ImagePayload(mime_type="image/jpeg", data=compressed)

    return safe_execute_sync(_compress, "Image compression", default_return=payload)


def parse_ingredients_response(response_text: str) -> list[str]:
    """Parse the extraction response into ingredient names.

    Accepts the body with or without a markdown code fence. A missing
    ``ingredients`` field yields an empty list.

    Raises:
        MalformedResponse: If the body is not a JSON object, or ``ingredients``
            is not a list of strings.
    """
    data = parse_json(response_text)
    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Expected a JSON object with 'ingredients', got {type(data).__name__}", raw=response_text
        )

    ingredients = data.get("ingredients")
    if ingredients is None:
        return []
    if not isinstance(ingredients, list) or not all(isinstance(item, str) for item in ingredients):
        raise MalformedResponse("'ingredients' must be an array of strings", raw=response_text)
    return ingredients


async def prepare_images(images: Sequence[ImageSource]) -> list[ImagePayload]:
    """Load, validate and optionally compress every image (in order)."""
    payloads = await asyncio.gather(*(load_image_payload(image) for image in images))

    prepared = []
    for idx, payload in enumerate(payloads):
        validate_image_size(payload)
        if config.COMPRESS_IMG:
            payload = compress_image(payload)
        logger.debug(f"Image {idx + 1}: {payload.mime_type}, {payload.size_kb:.1f}KB")
        prepared.append(payload)
    return prepared


async def extract_ingredients(images: Sequence[ImageSource]) -> list[str]:
    """Extract ingredient names from 1 to MAX_IMAGES food photos.

    Issues exactly one model request (excluding transient-overload retries).
    All-or-nothing: no partial result is returned on failure.

    Args:
        images: Image sources (see load_image_payload).

    Returns:
        Ingredient names as returned by the model (possibly empty, duplicates kept).

    Raises:
        ValueError: Wrong number of images, or an image cannot be loaded.
        MissingCredential: No API key configured (raised before any request).
        TransientServiceUnavailable: Service still overloaded after retries.
        ServiceError: Any other rejection by the service.
        MalformedResponse: Response body is not the declared shape.
    """
    if not 1 <= len(images) <= config.MAX_IMAGES:
        raise ValueError(f"Between 1 and {config.MAX_IMAGES} images are required, got {len(images)}")

    resolve_api_key()

    payloads = await prepare_images(images)
    parts = [types.Part.from_bytes(data=payload.data, mime_type=payload.mime_type) for payload in payloads]
    parts.append(types.Part.from_text(text=get_extraction_prompt()))

    logger.info(f"Extracting ingredients from {len(payloads)} image(s) with {config.IMAGE_DETECTION_MODEL}")
    response_text = await generate_json(
        model=config.IMAGE_DETECTION_MODEL,
        contents=parts,
        schema=ingredient_list_schema(),
    )

    ingredients = parse_ingredients_response(response_text)
    logger.info(f"Detected {len(ingredients)} ingredient(s): {ingredients}")
    return ingredients

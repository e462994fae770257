import asyncio
import base64
import binascii
import os
from typing import Tuple
from urllib.parse import unquote, urlparse

import magic

from recipe_capture.core.logging import get_infrastructure_logger
from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.result import Result

logger = get_infrastructure_logger("image_source")


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def resolve_local_path(image_ref: str) -> str:
    """Turns a plain path or ``file://`` URI into a filesystem path."""
    if image_ref.startswith("file://"):
        return unquote(urlparse(image_ref).path)
    return image_ref


async def load_image_bytes(image_ref: str) -> Result[bytes]:
    """
    Resolves an image reference to raw bytes.

    Accepts a filesystem path, a ``file://`` URI or a base64 ``data:`` URI.
    """
    if not image_ref or not image_ref.strip():
        return Result.failure("Image URI is required", ErrorKind.INPUT_VALIDATION)

    if image_ref.startswith("data:"):
        try:
            _, encoded = image_ref.split(",", 1)
            return Result.success(base64.b64decode(encoded, validate=True))
        except (ValueError, binascii.Error) as e:
            return Result.failure(f"Invalid data URI: {e}", ErrorKind.INPUT_VALIDATION)

    path = resolve_local_path(image_ref)
    if not os.path.isfile(path):
        return Result.failure(f"Image not found: {image_ref}", ErrorKind.INPUT_VALIDATION)

    try:
        data = await asyncio.to_thread(_read_file, path)
    except OSError as e:
        logger.error("image_source.read.failed", image_ref=image_ref, error=str(e))
        return Result.failure(f"Could not read image: {e}", ErrorKind.EXTRACTION)
    return Result.success(data)


def detect_image_format(image_bytes: bytes) -> Result[Tuple[str, str]]:
    """Returns ``(mime_type, format)`` such as ``("image/png", "png")`` for image bytes."""
    mime_type = magic.from_buffer(image_bytes, mime=True)
    if not mime_type.startswith("image"):
        return Result.failure(
            f"Only image files are accepted, but received {mime_type}",
            ErrorKind.INPUT_VALIDATION,
        )
    image_format = mime_type.split("/", 1)[1]
    return Result.success((mime_type, "jpeg" if image_format == "jpg" else image_format))

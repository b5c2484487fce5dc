"""Local storage for uploaded images."""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Iterable

from backend.app.core.settings import get_settings

logger = logging.getLogger(__name__)


class UploadError(ValueError):
    pass


@dataclass
class StoredFile:
    filename: str
    path: str
    size: int


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def store_image(
    stream: BinaryIO,
    original_name: str,
    *,
    folder: str,
    prefix: str,
    allowed_extensions: Iterable[str] | None = None,
    max_size: int | None = None,
) -> StoredFile:
    """Validate and save an image under `<upload_dir>/<folder>/` with a random name."""
    settings = get_settings()
    allowed = list(allowed_extensions or settings.allowed_image_extensions)
    max_size = max_size if max_size is not None else settings.max_upload_size

    extension = file_extension(original_name)
    if extension not in allowed:
        raise UploadError("Invalid file type. Allowed types: " + ", ".join(allowed))

    content = stream.read(max_size + 1)
    if len(content) > max_size:
        raise UploadError(f"File is too large. Maximum size is {max_size // (1024 * 1024)}MB")
    if not content:
        raise UploadError("No file uploaded")

    directory = os.path.join(settings.upload_dir, folder)
    os.makedirs(directory, exist_ok=True)
    filename = f"{prefix}_{uuid.uuid4().hex}.{extension}"
    path = os.path.join(directory, filename)
    with open(path, "wb") as handle:
        handle.write(content)
    logger.info("Stored upload %s (%s bytes)", path, len(content))
    return StoredFile(filename=filename, path=path, size=len(content))

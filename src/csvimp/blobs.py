"""Load files named in a CSV column so they can be stored in a table.

Loaders return None on failure and log why; a failed load becomes a null
value for the record, never an exception.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from csvimp.mapping import FileType

logger = logging.getLogger(__name__)

IMAGE_FORMAT = "PNG"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Blob:
    data: str | bytes
    mime_type: str | None = None


def guess_mime_type(file_name: str | Path) -> str:
    content_type, _ = mimetypes.guess_type(str(file_name))
    return content_type or DEFAULT_MIME_TYPE


def load_image(file_name: str | Path, encode: bool = False) -> Blob | None:
    """Read an image and re-encode it as PNG.

    With ``encode`` the PNG bytes are base64 encoded so that they can be bound
    to a text column.
    """
    try:
        with Image.open(file_name) as image:
            image.load()
            buffer = BytesIO()
            image.save(buffer, format=IMAGE_FORMAT)
    except FileNotFoundError:
        logger.warning("Image %s was not found", file_name)
        return None
    except Image.DecompressionBombError as e:
        logger.warning("Image %s is too large to load: %s", file_name, e)
        return None
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(
            "%s is not an image, an unknown image format or is corrupt: %s", file_name, e
        )
        return None

    data = buffer.getvalue()
    if encode:
        return Blob(base64.b64encode(data).decode("ascii"))
    return Blob(data)


def load_file(file_name: str | Path) -> Blob | None:
    """Read any file as bytes and detect its MIME type from the name."""
    path = Path(file_name)
    if not path.is_file():
        logger.warning("File %s was not found and will not be saved", file_name)
        return None
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning("Could not open source file %s for read: %s", file_name, e)
        return None
    return Blob(data, guess_mime_type(path))


def load_blob(file_name: str, file_type: FileType) -> Blob | None:
    if file_type is FileType.IMAGE:
        return load_image(file_name)
    if file_type is FileType.IMAGE_ENCODED:
        return load_image(file_name, encode=True)
    return load_file(file_name)

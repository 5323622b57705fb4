from __future__ import annotations

import datetime
import mimetypes
import re
from pathlib import Path
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from . import config
from .state import ImageRef


class ImageError(Exception):
    """Raised when a photo cannot be read or is not acceptable."""


def validate_image_file(content_type: str, size: int) -> List[str]:
    errors: List[str] = []
    ctype = (content_type or '').lower()
    if not ctype.startswith('image/'):
        errors.append('Only image files are allowed')
    elif ctype not in config.ALLOWED_IMAGE_TYPES:
        errors.append('Format not allowed. Use JPEG, PNG, WebP or GIF')
    if size > config.MAX_IMAGE_BYTES:
        errors.append(f"Image cannot exceed {config.MAX_IMAGE_BYTES // (1024 * 1024)}MB")
    return errors


def describe_image(path: Path, url: Optional[str] = None) -> ImageRef:
    """Read size, MIME type and dimensions of a local photo."""
    try:
        size = path.stat().st_size
        with Image.open(str(path)) as im:
            width, height = im.width, im.height
            fmt = im.format or ''
    except FileNotFoundError as exc:
        raise ImageError(f"Image not found: {path}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageError(f"Cannot read image {path.name}: {exc}") from exc
    content_type = Image.MIME.get(fmt.upper()) or mimetypes.guess_type(path.name)[0] or ''
    return ImageRef(
        url=url or path.resolve().as_uri(),
        file_name=path.name,
        original_name=path.name,
        size=size,
        content_type=content_type,
        width=width,
        height=height,
        uploaded_at=datetime.datetime.now().isoformat(timespec='seconds'),
    )


def _segment(text: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", text.strip()).strip('_')
    return cleaned or 'item'


def storage_object_name(inspection_id: str,
                        category: str,
                        item_name: str,
                        file_name: str,
                        now: Optional[datetime.datetime] = None) -> str:
    stamp = int((now or datetime.datetime.now()).timestamp() * 1000)
    ext = Path(file_name).suffix.lower().lstrip('.') or 'jpg'
    return f"{_segment(inspection_id)}/{_segment(category)}/{_segment(item_name)}/{stamp}.{ext}"

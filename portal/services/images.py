from __future__ import annotations

import hashlib
import io
import logging
import re
import time

from PIL import Image, UnidentifiedImageError

from portal.backend import BackendClient

log = logging.getLogger(__name__)

PHOTO_SIZE = 256


def allowed_image(filename: str, exts: set[str]) -> bool:
    """Check the file extension against the configured image extensions."""
    if not filename or "." not in filename:
        return False
    return filename.rsplit(".", 1)[1].lower() in exts


def open_image(data: bytes) -> Image.Image:
    """Load an image or raise ValueError."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("Invalid image") from e


def square(img: Image.Image, size: int = PHOTO_SIZE) -> Image.Image:
    """Center-crop to square and resize with LANCZOS."""
    img = img.convert("RGBA")
    w, h = img.size
    side = min(w, h)
    left = (w - side) // 2
    top = (h - side) // 2
    return img.crop((left, top, left + side, top + side)).resize((size, size), Image.LANCZOS)


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def photo_object_name(key: str, content: bytes) -> str:
    """``<key>-<timestamp>-<hash>.png`` with the key reduced to safe characters."""
    base = re.sub(r"[^A-Za-z0-9_-]+", "-", key or "").strip("-").lower() or "photo"
    digest = hashlib.sha1(content).hexdigest()[:8]
    return f"{base}-{int(time.time())}-{digest}.png"


def check_upload(filename: str, content_type: str | None, size: int, max_bytes: int, exts: set[str]) -> None:
    """Raise ValueError with a user-facing message when an upload is not an acceptable photo."""
    is_image = (content_type or "").startswith("image/") or allowed_image(filename, exts)
    if not is_image:
        raise ValueError("Please upload an image file (JPEG, PNG)")
    if size > max_bytes:
        raise ValueError(f"Image size should be less than {max_bytes // (1024 * 1024)}MB")


def store_profile_photo(backend: BackendClient, key: str, data: bytes) -> str:
    """Normalize an uploaded photo and store it, returning its public URL.

    Raises ValueError for content that is not a readable image.
    """
    bucket = backend.settings.PROFILE_PHOTO_BUCKET
    content = png_bytes(square(open_image(data)))
    backend.storage.ensure_bucket(bucket)
    path = backend.storage.upload(bucket, photo_object_name(key, content), content)
    log.info("Stored profile photo %s/%s", bucket, path)
    return backend.storage.get_public_url(bucket, path)


def remove_photo(backend: BackendClient, url: str | None) -> None:
    """Delete a previously stored photo; URLs outside storage are ignored."""
    located = backend.storage.path_from_public_url(url)
    if located:
        bucket, path = located
        backend.storage.remove(bucket, [path])

import logging
import os
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from yingge.errors import IoFailure
from yingge.services.image_processor import load_image
from yingge.utils.paths import THUMBNAIL_DIR

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 256


def make_thumbnail(img: Image.Image, size: int = THUMBNAIL_SIZE) -> Image.Image:
    """Longest edge bounded by ``size``, aspect ratio kept, never upscaled."""
    thumb = img.copy()
    thumb.thumbnail((size, size), Image.Resampling.LANCZOS)
    return thumb


def generate_thumbnail(source: Union[str, os.PathLike], library_root: Union[str, os.PathLike], asset_id: str,
                       size: int = THUMBNAIL_SIZE) -> str:
    """Write ``.thumbnails/<asset_id>.png`` and return its library-relative path.

    Re-running for the same asset overwrites the previous thumbnail.
    """
    thumb = make_thumbnail(load_image(source), size)
    if thumb.mode not in ("RGB", "RGBA", "L", "LA", "P"):
        thumb = thumb.convert("RGBA")

    thumb_dir = Path(library_root) / THUMBNAIL_DIR
    thumb_path = thumb_dir / f"{asset_id}.png"
    try:
        thumb_dir.mkdir(parents=True, exist_ok=True)
        thumb.save(thumb_path, format="PNG")
    except OSError as e:
        raise IoFailure(f"Cannot write thumbnail {thumb_path}: {e}", where="thumbnail") from e
    return f"{THUMBNAIL_DIR}/{asset_id}.png"


def try_generate_thumbnail(source, library_root, asset_id: str, size: int = THUMBNAIL_SIZE) -> Optional[str]:
    try:
        return generate_thumbnail(source, library_root, asset_id, size)
    except Exception as e:
        logger.warning("[thumbnail] skipped for asset %s: %s", asset_id, e)
        return None

import hashlib
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image
from pillow_heif import register_heif_opener

from yingge.errors import IoFailure
from yingge.utils.paths import folder_to_relative

register_heif_opener()

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# 64KB chunks for streamed hashing
CHUNK_SIZE = 64 * 1024

MIME_TYPES = {
    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "psd": "image/vnd.adobe.photoshop",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
    "wma": "audio/x-ms-wma",
    # Video
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "webm": "video/webm",
    # Other
    "json": "application/json",
    "xml": "application/xml",
}
DEFAULT_MIME = "application/octet-stream"


@dataclass(frozen=True)
class Identity:
    hash: str
    mime: str
    category: str


def mime_from_extension(extension: str) -> str:
    return MIME_TYPES.get(extension.lower().lstrip("."), DEFAULT_MIME)


def file_type_from_mime(mime: str) -> str:
    """Coarse media category: image, audio, video or other."""
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    return "other"


def guess_mime_type(path: PathLike) -> str:
    return mime_from_extension(Path(path).suffix)


def identify(data: bytes, extension: str) -> Identity:
    """Fingerprint and classify raw content.

    The hash depends on the bytes only, never on the name the content arrived
    under; the mime type comes from the extension table, not content sniffing.
    """
    mime = mime_from_extension(extension)
    return Identity(
        hash=hashlib.sha256(data).hexdigest(),
        mime=mime,
        category=file_type_from_mime(mime),
    )


def compute_file_hash(path: PathLike) -> str:
    sha256_hash = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while content := f.read(CHUNK_SIZE):
                sha256_hash.update(content)
    except OSError as e:
        raise IoFailure(f"Cannot read {path}: {e}", where="identity.hash") from e
    return sha256_hash.hexdigest()


def identify_file(path: PathLike) -> Tuple[Identity, int]:
    """Identify a file on disk; returns the identity and the byte size."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IoFailure(f"Cannot read {path}: {e}", where="identity.read") from e
    return identify(data, Path(path).suffix), len(data)


def get_file_size(path: PathLike) -> int:
    try:
        return os.path.getsize(path)
    except OSError as e:
        raise IoFailure(f"Cannot stat {path}: {e}", where="identity.size") from e


def get_image_dimensions(path: PathLike) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(path) as img:
            return img.size
    except Exception as e:
        logger.debug("[identity] no dimensions for %s: %s", path, e)
        return None


def copy_to_library(source: PathLike, library_root: PathLike, folder_path: str, file_id: str) -> str:
    """Copy ``source`` into the library as ``<folder>/<file_id>.<ext>``.

    Returns the path relative to the library root, always with ``/`` separators.
    """
    ext = Path(source).suffix.lstrip(".")
    relative_dir = folder_to_relative(folder_path)
    target_dir = Path(library_root) / relative_dir if relative_dir else Path(library_root)
    file_name = f"{file_id}.{ext}" if ext else file_id
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target_dir / file_name)
    except OSError as e:
        raise IoFailure(f"Cannot copy {source} into library: {e}", where="identity.copy") from e
    return f"{relative_dir}/{file_name}" if relative_dir else file_name

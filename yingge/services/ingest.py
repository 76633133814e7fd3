import logging
import os
from typing import List, Optional, Sequence

from yingge.models import Asset, new_id
from yingge.services.identity import (
    compute_file_hash,
    copy_to_library,
    file_type_from_mime,
    get_file_size,
    get_image_dimensions,
    guess_mime_type,
)
from yingge.services.library_store import LibraryStore
from yingge.services.thumbnail import THUMBNAIL_SIZE, try_generate_thumbnail
from yingge.utils.paths import normalize_folder_path, resolve_in_library
from yingge.utils.workers import CpuLimiter

logger = logging.getLogger(__name__)


def _prepare(source: str, library_root: str, folder_path: str, asset_id: str, thumb_size: int) -> dict:
    """Blocking part of an import: fingerprint, copy and thumbnail one file."""
    mime_type = guess_mime_type(source)
    file_type = file_type_from_mime(mime_type)
    fields = dict(
        mime_type=mime_type,
        file_type=file_type,
        file_size=get_file_size(source),
        file_hash=compute_file_hash(source),
        width=None,
        height=None,
        thumbnail_path=None,
    )
    if file_type == "image":
        dims = get_image_dimensions(source)
        if dims:
            fields["width"], fields["height"] = dims

    relative_path = copy_to_library(source, library_root, folder_path, asset_id)
    fields["relative_path"] = relative_path
    if file_type == "image":
        stored = resolve_in_library(library_root, relative_path)
        fields["thumbnail_path"] = try_generate_thumbnail(stored, library_root, asset_id, thumb_size)
    return fields


async def import_assets(store: LibraryStore, library_id: str, file_paths: Sequence[str], folder_path: str = "/",
                        limiter: Optional[CpuLimiter] = None, thumb_size: int = THUMBNAIL_SIZE) -> List[Asset]:
    """Copy files into the library and register one Asset per file.

    Paths that do not exist are skipped; a failed thumbnail leaves ``thumbnail_path`` empty.
    """
    library = await store.get_library(library_id)
    limiter = limiter or CpuLimiter()
    folder = normalize_folder_path(folder_path)

    imported: List[Asset] = []
    for source in file_paths:
        if not os.path.isfile(source):
            logger.warning("[import] skipping missing file: %s", source)
            continue
        asset_id = new_id()
        fields = await limiter.run(_prepare, source, library.root_path, folder, asset_id, thumb_size)
        original_name = os.path.basename(source)
        asset = Asset(
            id=asset_id,
            library_id=library_id,
            file_name=original_name,
            original_name=original_name,
            folder_path=folder,
            description="",
            ai_description="",
            **fields,
        )
        imported.append(await store.insert_asset(asset))
        logger.info("[import] %s -> %s (%s)", original_name, fields["relative_path"], fields["file_type"])
    return imported

"""
Folder index: the visible folder set of a library is the union of the folders
named by asset rows and the directories that exist under the library root.
"""
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Set

from yingge.errors import InvalidInput, IoFailure
from yingge.schemas import FolderInfo
from yingge.services.library_store import LibraryStore
from yingge.utils.paths import folder_name, folder_to_relative, normalize_folder_path

logger = logging.getLogger(__name__)


def scan_folders(root: str) -> Set[str]:
    """Every directory under ``root`` as a '/'-rooted path, hidden ('.') entries pruned."""
    found: Set[str] = set()
    if not os.path.isdir(root):
        return found
    for dirpath, dirnames, _ in os.walk(root):
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for d in dirnames:
            rel = Path(dirpath, d).relative_to(root).as_posix()
            found.add(normalize_folder_path(rel))
    return found


def merge_folders(db_counts: Dict[str, int], fs_paths: Iterable[str]) -> List[FolderInfo]:
    merged: Dict[str, int] = {}
    for path, count in db_counts.items():
        key = normalize_folder_path(path)
        merged[key] = merged.get(key, 0) + count
    for path in fs_paths:
        merged.setdefault(normalize_folder_path(path), 0)
    return [FolderInfo(path=p, name=folder_name(p), asset_count=merged[p]) for p in sorted(merged)]


def validate_folder_name(name: str) -> str:
    name = (name or "").strip()
    if not name or name in (".", "..") or name.startswith("."):
        raise InvalidInput(f"Invalid folder name: {name!r}", where="folders.name")
    if "/" in name or "\\" in name:
        raise InvalidInput(f"Folder name must not contain path separators: {name!r}", where="folders.name")
    return name


async def get_folders(store: LibraryStore, library_id: str) -> List[FolderInfo]:
    library = await store.get_library(library_id)
    db_counts = await store.folder_counts(library_id)
    return merge_folders(db_counts, scan_folders(library.root_path))


async def create_folder(store: LibraryStore, library_id: str, name: str, parent_path: str = "/") -> FolderInfo:
    library = await store.get_library(library_id)
    name = validate_folder_name(name)
    path = normalize_folder_path(f"{normalize_folder_path(parent_path)}/{name}")
    try:
        (Path(library.root_path) / folder_to_relative(path)).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IoFailure(f"Cannot create folder {path}: {e}", where="folders.create") from e
    logger.info("[folders] created %s in library %s", path, library_id)
    return FolderInfo(path=path, name=name, asset_count=0)


async def rename_folder(store: LibraryStore, library_id: str, old_path: str, new_name: str) -> FolderInfo:
    """Rename on disk first; asset rows are only rewritten once the filesystem step succeeded."""
    library = await store.get_library(library_id)
    old_path = normalize_folder_path(old_path)
    if old_path == "/":
        raise InvalidInput("The library root cannot be renamed", where="folders.rename")
    new_name = validate_folder_name(new_name)

    parent = old_path.rsplit("/", 1)[0] or "/"
    new_path = normalize_folder_path(f"{parent}/{new_name}")
    if new_path == old_path:
        raise InvalidInput(f"Folder {old_path} already has that name", where="folders.rename")

    root = Path(library.root_path)
    src, dst = root / folder_to_relative(old_path), root / folder_to_relative(new_path)
    if dst.exists():
        raise InvalidInput(f"Folder {new_path} already exists", where="folders.rename")
    if src.exists():
        try:
            os.rename(src, dst)
        except OSError as e:
            raise IoFailure(f"Cannot rename {old_path} to {new_path}: {e}", where="folders.rename") from e
    else:
        # virtual folder: only asset rows name it
        logger.info("[folders] %s has no directory on disk; renaming rows only", old_path)

    moved = await store.rename_folder_rows(library_id, old_path, new_path)
    logger.info("[folders] renamed %s -> %s (%d assets)", old_path, new_path, moved)
    counts = await store.folder_counts(library_id)
    return FolderInfo(path=new_path, name=new_name, asset_count=counts.get(new_path, 0))

# yingge/utils/paths.py
import os
from pathlib import Path
from yingge.config import get_settings

THUMBNAIL_DIR = ".thumbnails"
DERIVED_DIR = "assets"

def normalize_folder_path(path: str) -> str:
    """Virtual folder paths are '/'-rooted with no trailing slash; the root is '/'."""
    p = (path or "").replace("\\", "/").strip()
    parts = [s for s in p.split("/") if s]
    return "/" + "/".join(parts)

def folder_to_relative(folder_path: str) -> str:
    return normalize_folder_path(folder_path).lstrip("/")

def folder_name(path: str) -> str:
    parts = [s for s in path.split("/") if s]
    return parts[-1] if parts else "/"

def resolve_in_library(library_root: str, relative_path: str) -> Path:
    return Path(library_root) / relative_path

def derived_output_dir(library_root: str, folder_path: str = "/") -> Path:
    """Derived files land in the source's folder, or 'assets/' for the root folder."""
    rel = folder_to_relative(folder_path)
    return Path(library_root) / (rel or DERIVED_DIR)

def relative_to_library(library_root: str, path: Path) -> str:
    return Path(path).relative_to(library_root).as_posix()

def ensure_library_dirs(root_path: str):
    os.makedirs(root_path, exist_ok=True)
    os.makedirs(os.path.join(root_path, DERIVED_DIR), exist_ok=True)
    os.makedirs(os.path.join(root_path, THUMBNAIL_DIR), exist_ok=True)

def ensure_dirs():
    os.makedirs(get_settings().DATA_DIR, exist_ok=True)

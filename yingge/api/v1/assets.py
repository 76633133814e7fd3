"""
Asset endpoints: import, browse, edit, tag links and raw file access.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from yingge.api.deps import get_limiter, get_store, settings
from yingge.errors import NotFound
from yingge.schemas import (
    AssetDetail,
    AssetOut,
    DescriptionRequest,
    IdsRequest,
    ImportRequest,
    MoveRequest,
    PaginatedAssets,
    RenameRequest,
    TagIdsRequest,
    TagOut,
)
from yingge.services.ingest import import_assets
from yingge.services.library_store import LibraryStore
from yingge.utils.paths import resolve_in_library
from yingge.utils.workers import CpuLimiter

router = APIRouter(prefix="/assets", tags=["assets"])

@router.post("/import", response_model=List[AssetOut])
async def import_files(body: ImportRequest, store: LibraryStore = Depends(get_store),
                       limiter: CpuLimiter = Depends(get_limiter)):
    return await import_assets(store, body.library_id, body.file_paths, body.folder_path,
                               limiter=limiter, thumb_size=settings.THUMBNAIL_SIZE)

@router.get("", response_model=PaginatedAssets)
async def list_assets(
    library_id: str,
    folder_path: Optional[str] = None,
    file_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=500),
    sort_by: str = "date",
    sort_order: str = "desc",
    store: LibraryStore = Depends(get_store),
):
    return await store.get_assets(library_id, folder_path, file_type, page, page_size, sort_by, sort_order)

@router.get("/{asset_id}", response_model=AssetDetail)
async def get_asset(asset_id: str, store: LibraryStore = Depends(get_store)):
    asset = await store.get_asset(asset_id)
    tags = await store.get_asset_tags(asset_id)
    return AssetDetail(asset=AssetOut.model_validate(asset), tags=[TagOut.model_validate(t) for t in tags])

@router.put("/{asset_id}/name")
async def rename_asset(asset_id: str, body: RenameRequest, store: LibraryStore = Depends(get_store)):
    await store.rename_asset(asset_id, body.new_name)
    return {"id": asset_id, "file_name": body.new_name}

@router.put("/{asset_id}/description")
async def update_description(asset_id: str, body: DescriptionRequest, store: LibraryStore = Depends(get_store)):
    await store.update_asset_description(asset_id, body.description)
    return {"id": asset_id, "description": body.description}

@router.post("/delete")
async def delete_assets(body: IdsRequest, store: LibraryStore = Depends(get_store)):
    return {"deleted": await store.delete_assets(body.ids)}

@router.post("/move")
async def move_assets(body: MoveRequest, store: LibraryStore = Depends(get_store)):
    return {"moved": await store.move_assets(body.ids, body.target_folder)}

@router.get("/{asset_id}/file")
async def asset_file(asset_id: str, store: LibraryStore = Depends(get_store)):
    asset = await store.get_asset(asset_id)
    library = await store.get_library(asset.library_id)
    path = resolve_in_library(library.root_path, asset.relative_path)
    if not path.is_file():
        raise NotFound(f"File for asset {asset_id} is missing", where="assets.file")
    return FileResponse(path, media_type=asset.mime_type, filename=asset.file_name)

@router.get("/{asset_id}/thumbnail")
async def asset_thumbnail(asset_id: str, store: LibraryStore = Depends(get_store)):
    asset = await store.get_asset(asset_id)
    if not asset.thumbnail_path:
        raise NotFound(f"Asset {asset_id} has no thumbnail", where="assets.thumbnail")
    library = await store.get_library(asset.library_id)
    path = resolve_in_library(library.root_path, asset.thumbnail_path)
    if not path.is_file():
        raise NotFound(f"Thumbnail for asset {asset_id} is missing", where="assets.thumbnail")
    return FileResponse(path, media_type="image/png")

# --- Tag links ---

@router.get("/{asset_id}/tags", response_model=List[TagOut])
async def asset_tags(asset_id: str, store: LibraryStore = Depends(get_store)):
    await store.get_asset(asset_id)
    return await store.get_asset_tags(asset_id)

@router.post("/{asset_id}/tags")
async def assign_tags(asset_id: str, body: TagIdsRequest, store: LibraryStore = Depends(get_store)):
    await store.get_asset(asset_id)
    await store.assign_tags(asset_id, body.tag_ids)
    return {"id": asset_id, "assigned": len(body.tag_ids)}

@router.post("/{asset_id}/tags/remove")
async def remove_tags(asset_id: str, body: TagIdsRequest, store: LibraryStore = Depends(get_store)):
    await store.remove_tags(asset_id, body.tag_ids)
    return {"id": asset_id, "removed": len(body.tag_ids)}

"""
Library endpoints
"""
from typing import List

from fastapi import APIRouter, Depends

from yingge.api.deps import get_store
from yingge.schemas import FolderCreate, FolderInfo, FolderRename, LibraryCreate, LibraryOut
from yingge.services import folders
from yingge.services.library_store import LibraryStore

router = APIRouter(prefix="/libraries", tags=["libraries"])

@router.post("", response_model=LibraryOut)
async def create_library(body: LibraryCreate, store: LibraryStore = Depends(get_store)):
    return await store.create_library(body.name, body.root_path)

@router.get("", response_model=List[LibraryOut])
async def list_libraries(store: LibraryStore = Depends(get_store)):
    return await store.list_libraries()

@router.get("/{library_id}", response_model=LibraryOut)
async def get_library(library_id: str, store: LibraryStore = Depends(get_store)):
    return await store.get_library(library_id)

@router.delete("/{library_id}")
async def delete_library(library_id: str, store: LibraryStore = Depends(get_store)):
    await store.get_library(library_id)
    await store.delete_library(library_id)
    return {"deleted": library_id}

# --- Folders ---

@router.get("/{library_id}/folders", response_model=List[FolderInfo])
async def list_folders(library_id: str, store: LibraryStore = Depends(get_store)):
    return await folders.get_folders(store, library_id)

@router.post("/{library_id}/folders", response_model=FolderInfo)
async def create_folder(library_id: str, body: FolderCreate, store: LibraryStore = Depends(get_store)):
    return await folders.create_folder(store, library_id, body.folder_name, body.parent_path)

@router.put("/{library_id}/folders/rename", response_model=FolderInfo)
async def rename_folder(library_id: str, body: FolderRename, store: LibraryStore = Depends(get_store)):
    return await folders.rename_folder(store, library_id, body.old_path, body.new_name)

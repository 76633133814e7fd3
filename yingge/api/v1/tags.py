from typing import List, Optional

from fastapi import APIRouter, Depends

from yingge.api.deps import get_store
from yingge.schemas import RenameRequest, TagCreate, TagOut, TagWithCount
from yingge.services.library_store import LibraryStore

router = APIRouter(prefix="/tags", tags=["tags"])

@router.post("", response_model=TagOut)
async def create_tag(body: TagCreate, store: LibraryStore = Depends(get_store)):
    await store.get_library(body.library_id)
    return await store.create_tag(body.library_id, body.name, body.color, body.category)

@router.get("", response_model=List[TagWithCount])
async def list_tags(library_id: str, category: Optional[str] = None, store: LibraryStore = Depends(get_store)):
    return await store.list_tags(library_id, category)

@router.put("/{tag_id}/name")
async def rename_tag(tag_id: str, body: RenameRequest, store: LibraryStore = Depends(get_store)):
    await store.rename_tag(tag_id, body.new_name)
    return {"id": tag_id, "name": body.new_name}

@router.delete("/{tag_id}")
async def delete_tag(tag_id: str, store: LibraryStore = Depends(get_store)):
    await store.delete_tag(tag_id)
    return {"deleted": tag_id}

from typing import List

from fastapi import APIRouter, Depends

from yingge.api.deps import get_store
from yingge.schemas import AssetOut, KeywordSearch, PaginatedAssets, TagSearch
from yingge.services.library_store import LibraryStore

router = APIRouter(prefix="/search", tags=["search"])

@router.post("/keyword", response_model=PaginatedAssets)
async def keyword_search(body: KeywordSearch, store: LibraryStore = Depends(get_store)):
    return await store.search_keyword(body.library_id, body.query, body.tag_ids, body.file_type,
                                      body.page, body.page_size)

@router.post("/tags", response_model=List[AssetOut])
async def tag_search(body: TagSearch, store: LibraryStore = Depends(get_store)):
    return await store.search_by_tags(body.library_id, body.tag_ids, body.match_all)

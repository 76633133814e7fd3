"""
AI tagging, semantic search and provider configuration
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from yingge.api.deps import get_semantic
from yingge.schemas import AiConfigInput, AiConfigOut, AiTagResult, ScoredAsset, SemanticSearch
from yingge.services.semantic import SemanticService

router = APIRouter(prefix="/ai", tags=["ai"])

@router.post("/tag/{asset_id}", response_model=AiTagResult)
async def tag_asset(asset_id: str, service: SemanticService = Depends(get_semantic)):
    return await service.ai_tag_asset(asset_id)

@router.post("/search", response_model=List[ScoredAsset])
async def semantic_search(body: SemanticSearch, service: SemanticService = Depends(get_semantic)):
    return await service.semantic_search(body.library_id, body.query, body.top_k)

@router.get("/config", response_model=Optional[AiConfigOut])
async def get_config(service: SemanticService = Depends(get_semantic)):
    return await service.get_ai_config()

@router.put("/config", response_model=AiConfigOut)
async def save_config(body: AiConfigInput, service: SemanticService = Depends(get_semantic)):
    return await service.save_ai_config(body)

@router.post("/config/test")
async def test_config(service: SemanticService = Depends(get_semantic)):
    return {"ok": await service.test_ai_connection()}

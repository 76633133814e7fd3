"""
Image Processing API Endpoints
"""
from typing import List

from fastapi import APIRouter, Depends

from yingge.api.deps import get_derived
from yingge.schemas import (
    AssetOut,
    CompressRequest,
    CompressResult,
    RemoveBackgroundRequest,
    SplitRequest,
    SpritesheetRequest,
    SpritesheetResult,
)
from yingge.services.derived import DerivedAssetService

router = APIRouter(prefix="/processing", tags=["image-processing"])

@router.post("/remove-background", response_model=AssetOut)
async def remove_background(body: RemoveBackgroundRequest, service: DerivedAssetService = Depends(get_derived)):
    """Color-key matte; the result is a new PNG asset next to the source."""
    return await service.remove_background(body.asset_id, body.target_color, body.tolerance)

@router.post("/spritesheet", response_model=SpritesheetResult)
async def merge_spritesheet(body: SpritesheetRequest, service: DerivedAssetService = Depends(get_derived)):
    return await service.merge_spritesheet(body.asset_ids, body.columns, body.padding, body.output_name,
                                           body.descriptor_format)

@router.post("/split", response_model=List[AssetOut])
async def split_image(body: SplitRequest, service: DerivedAssetService = Depends(get_derived)):
    return await service.split_image(body.asset_id, body.rows, body.cols)

@router.post("/compress", response_model=CompressResult)
async def compress_image(body: CompressRequest, service: DerivedAssetService = Depends(get_derived)):
    return await service.compress_image(body.asset_id, body.max_width, body.max_height, body.quality,
                                        body.output_format, body.suffix)

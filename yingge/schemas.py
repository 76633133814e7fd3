from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Tuple

class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

class LibraryOut(ORMModel):
    id: str
    name: str
    root_path: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AssetOut(ORMModel):
    id: str
    library_id: str
    file_name: str
    original_name: str
    relative_path: str
    file_type: str
    mime_type: str
    file_size: int
    file_hash: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration_ms: Optional[int] = None
    description: str = ""
    ai_description: str = ""
    thumbnail_path: Optional[str] = None
    folder_path: str = "/"
    derived_from: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    imported_at: Optional[datetime] = None

class TagOut(ORMModel):
    id: str
    library_id: str
    name: str
    color: str
    category: str
    is_ai: bool
    created_at: Optional[datetime] = None

class TagWithCount(TagOut):
    asset_count: int = 0

class PaginatedAssets(BaseModel):
    assets: List[AssetOut] = []
    total: int = 0
    page: int = 1
    page_size: int = 50

class AssetDetail(BaseModel):
    asset: AssetOut
    tags: List[TagOut] = []

class FolderInfo(BaseModel):
    path: str
    name: str
    asset_count: int = 0

class ScoredAsset(BaseModel):
    asset: AssetOut
    score: float

# --- Spritesheet geometry ---

class SpriteFrame(BaseModel):
    name: str
    x: int
    y: int
    width: int
    height: int

class SpritesheetInfo(BaseModel):
    width: int
    height: int
    frames: List[SpriteFrame] = []

class SpritesheetResult(BaseModel):
    image_asset: AssetOut
    descriptor_content: str

class CompressResult(BaseModel):
    asset: AssetOut
    original_size: int
    compressed_size: int
    compression_ratio: float = Field(description="1 - compressed/original")

# --- AI ---

class SuggestedTag(BaseModel):
    name: str
    category: str = ""
    confidence: float = 1.0

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        # out-of-range scores are clamped, not rejected
        return min(max(v, 0.0), 1.0)

class AnalysisResult(BaseModel):
    tags: List[SuggestedTag] = []
    description: str = ""
    suggested_name: Optional[str] = None

class AiTagResult(BaseModel):
    tags: List[TagOut] = []
    description: str
    suggested_name: Optional[str] = None

class AiConfigInput(BaseModel):
    provider_name: str
    api_endpoint: str
    api_key: str = ""
    model_id: str
    embedding_model: str = ""

class AiConfigOut(ORMModel):
    id: str
    provider_name: str
    api_endpoint: str
    api_key: str
    model_id: str
    embedding_model: str
    is_active: bool
    created_at: Optional[datetime] = None

# --- Request bodies ---

class LibraryCreate(BaseModel):
    name: str
    root_path: str

class ImportRequest(BaseModel):
    library_id: str
    file_paths: List[str]
    folder_path: str = "/"

class RenameRequest(BaseModel):
    new_name: str

class DescriptionRequest(BaseModel):
    description: str

class IdsRequest(BaseModel):
    ids: List[str]

class MoveRequest(BaseModel):
    ids: List[str]
    target_folder: str

class FolderCreate(BaseModel):
    folder_name: str
    parent_path: str = "/"

class FolderRename(BaseModel):
    old_path: str
    new_name: str

class TagCreate(BaseModel):
    library_id: str
    name: str
    color: Optional[str] = None
    category: Optional[str] = None

class TagIdsRequest(BaseModel):
    tag_ids: List[str]

class KeywordSearch(BaseModel):
    library_id: str
    query: str
    tag_ids: Optional[List[str]] = None
    file_type: Optional[str] = None
    page: int = 1
    page_size: int = 50

class TagSearch(BaseModel):
    library_id: str
    tag_ids: List[str]
    match_all: bool = False

class SemanticSearch(BaseModel):
    library_id: str
    query: str
    top_k: int = 10

class RemoveBackgroundRequest(BaseModel):
    asset_id: str
    target_color: Tuple[int, int, int]
    tolerance: int = Field(default=0, ge=0, le=255)

class SpritesheetRequest(BaseModel):
    asset_ids: List[str]
    columns: int = 4
    padding: int = Field(default=0, ge=0)
    output_name: str = "spritesheet"
    descriptor_format: str = "json"

class SplitRequest(BaseModel):
    asset_id: str
    rows: int
    cols: int

class CompressRequest(BaseModel):
    asset_id: str
    max_width: Optional[int] = Field(default=None, gt=0)
    max_height: Optional[int] = Field(default=None, gt=0)
    quality: int = Field(default=80, ge=1, le=100)
    output_format: str = "jpeg"
    suffix: str = "_compressed"

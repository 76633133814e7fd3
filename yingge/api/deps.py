from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from yingge.config import get_settings
from yingge.db import get_session
from yingge.services.ai_provider import AiProviderManager
from yingge.services.derived import DerivedAssetService
from yingge.services.library_store import LibraryStore
from yingge.services.semantic import SemanticService
from yingge.utils.workers import CpuLimiter

settings = get_settings()

# process-wide: one provider slot, one CPU budget
AI_MANAGER = AiProviderManager()
CPU_LIMITER = CpuLimiter(settings.PROCESSING_MAX_CONCURRENCY)


def get_ai_manager() -> AiProviderManager:
    return AI_MANAGER


def get_limiter() -> CpuLimiter:
    return CPU_LIMITER


async def get_store(session: AsyncSession = Depends(get_session)) -> AsyncGenerator[LibraryStore, None]:
    yield LibraryStore(session)


def get_derived(store: LibraryStore = Depends(get_store), limiter: CpuLimiter = Depends(get_limiter)) -> DerivedAssetService:
    return DerivedAssetService(store, limiter, settings.THUMBNAIL_SIZE)


def get_semantic(store: LibraryStore = Depends(get_store), manager: AiProviderManager = Depends(get_ai_manager),
                 limiter: CpuLimiter = Depends(get_limiter)) -> SemanticService:
    return SemanticService(store, manager, limiter, settings)

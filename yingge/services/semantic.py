"""
AI tagging and semantic search over the active provider.
"""
import asyncio
import logging
from typing import List, Optional

from yingge.config import Settings, get_settings
from yingge.errors import InvalidInput, NotFound, ProviderError, YinggeError
from yingge.models import AiConfig
from yingge.schemas import AiConfigInput, AiTagResult, AssetOut, ScoredAsset, TagOut
from yingge.services.ai_provider import AiProvider, AiProviderManager, OpenAiCompatibleProvider
from yingge.services.embedding import bytes_to_f32_vec, f32_vec_to_bytes, rank
from yingge.services.image_processor import ImageProcessor
from yingge.services.library_store import LibraryStore
from yingge.utils.paths import resolve_in_library
from yingge.utils.workers import CpuLimiter

logger = logging.getLogger(__name__)


def provider_from_config(config: AiConfig, timeout: float = 60.0) -> AiProvider:
    return OpenAiCompatibleProvider(
        endpoint=config.api_endpoint,
        api_key=config.api_key,
        model=config.model_id,
        embedding_model=config.embedding_model,
        timeout=timeout,
    )


async def load_ai_provider(store: LibraryStore, manager: AiProviderManager, settings: Optional[Settings] = None) -> bool:
    """Install the stored active config as the running provider; False when none is saved."""
    settings = settings or get_settings()
    config = await store.get_active_ai_config()
    if config is None:
        logger.info("[ai] no active provider config")
        return False
    await manager.set_provider(provider_from_config(config, settings.AI_REQUEST_TIMEOUT))
    logger.info("[ai] loaded provider %s (%s)", config.provider_name, config.model_id)
    return True


class SemanticService:
    def __init__(self, store: LibraryStore, manager: AiProviderManager, limiter: Optional[CpuLimiter] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.manager = manager
        self.limiter = limiter or CpuLimiter()
        self.settings = settings or get_settings()

    async def _deadline(self, coro, what: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.settings.AI_CALL_DEADLINE)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"{what} exceeded {self.settings.AI_CALL_DEADLINE}s deadline", where=f"semantic.{what}"
            ) from e

    async def ai_tag_asset(self, asset_id: str) -> AiTagResult:
        """Analyze an image asset, persist its AI description and tags, then embed them.

        Everything written before the embedding step stays written if embedding fails.
        """
        asset = await self.store.get_asset(asset_id)
        if asset.file_type != "image":
            raise InvalidInput(f"AI tagging supports images only, got {asset.file_type}", where="semantic.tag")
        library = await self.store.get_library(asset.library_id)
        provider = await self.manager.get_provider()

        path = resolve_in_library(library.root_path, asset.relative_path)
        data, mime = await self.limiter.run(
            ImageProcessor.compress_for_ai, path, self.settings.AI_MAX_EDGE, self.settings.AI_JPEG_QUALITY
        )
        analysis = await self._deadline(provider.analyze_image(data, mime), "analyze")
        logger.info("[ai] %s: %d tags suggested", asset_id, len(analysis.tags))

        await self.store.update_ai_description(asset_id, analysis.description)
        tags: List[TagOut] = []
        for suggested in analysis.tags:
            name = suggested.name.strip().lower()
            if not name:
                continue
            tag = await self.store.get_or_create_tag(asset.library_id, name, is_ai=True, category=suggested.category)
            await self.store.assign_tags(asset_id, [tag.id], confidence=suggested.confidence)
            tags.append(TagOut.model_validate(tag))

        embed_input = " ".join([analysis.description] + [t.name for t in tags]).strip()
        if embed_input:
            try:
                vector = await self._deadline(provider.embed_text(embed_input), "embed")
                await self.store.save_embedding(asset_id, provider.embedding_model, f32_vec_to_bytes(vector))
            except YinggeError as e:
                logger.warning("[ai] embedding failed for %s: %s", asset_id, e)

        return AiTagResult(tags=tags, description=analysis.description, suggested_name=analysis.suggested_name)

    async def semantic_search(self, library_id: str, query: str, top_k: int = 10,
                              model: Optional[str] = None) -> List[ScoredAsset]:
        if not query.strip() or top_k <= 0:
            return []
        await self.store.get_library(library_id)
        provider = await self.manager.get_provider()
        query_vec = await self._deadline(provider.embed_text(query), "embed")

        model = model or provider.embedding_model
        candidates = [(aid, bytes_to_f32_vec(raw)) for aid, raw in await self.store.get_all_embeddings(library_id, model)]
        results: List[ScoredAsset] = []
        for asset_id, score in rank(query_vec, candidates, top_k):
            try:
                asset = await self.store.get_asset(asset_id)
            except NotFound:
                continue
            results.append(ScoredAsset(asset=AssetOut.model_validate(asset), score=score))
        logger.info("[search] semantic %r: %d of %d candidates", query, len(results), len(candidates))
        return results

    # ---------- Provider config ----------
    async def save_ai_config(self, payload: AiConfigInput) -> AiConfig:
        if not payload.api_endpoint.strip() or not payload.model_id.strip():
            raise InvalidInput("Endpoint and model are required", where="semantic.config")
        config = await self.store.save_ai_config(AiConfig(**payload.model_dump()))
        await self.manager.set_provider(provider_from_config(config, self.settings.AI_REQUEST_TIMEOUT))
        logger.info("[ai] provider switched to %s (%s)", config.provider_name, config.model_id)
        return config

    async def get_ai_config(self) -> Optional[AiConfig]:
        return await self.store.get_active_ai_config()

    async def test_ai_connection(self) -> bool:
        provider = await self.manager.get_provider()
        return await self._deadline(provider.test_connection(), "test")

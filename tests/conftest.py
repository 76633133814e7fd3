"""
Shared fixtures: a file-backed SQLite database per test, a library rooted in a
temp directory, image factories and an in-process AI provider.
"""
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from PIL import Image

from yingge.db import build_engine, build_sessionmaker, init_models
from yingge.errors import ProviderError
from yingge.schemas import AnalysisResult, SuggestedTag
from yingge.services.ai_provider import AiProvider, AiProviderManager
from yingge.services.library_store import LibraryStore
from yingge.utils.workers import CpuLimiter


def make_image(path: Path, size=(40, 20), color=(255, 0, 0, 255)) -> Path:
    """Write a solid-color image; the format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGBA", size, color)
    if path.suffix.lower() in (".jpg", ".jpeg"):
        img = img.convert("RGB")
    img.save(path)
    return path


class FakeProvider(AiProvider):
    """Deterministic provider: fixed analysis, embeddings looked up by exact text."""

    def __init__(self, analysis: Optional[AnalysisResult] = None, vectors: Optional[Dict[str, List[float]]] = None,
                 embedding_model: str = "fake-embed", fail_embed: bool = False):
        self.analysis = analysis or AnalysisResult(
            tags=[SuggestedTag(name="Sword", category="content", confidence=0.9),
                  SuggestedTag(name="pixel art", category="style", confidence=0.7)],
            description="a red pixel sword",
            suggested_name="red_sword",
        )
        self.vectors = vectors or {}
        self.embedding_model = embedding_model
        self.fail_embed = fail_embed
        self.embedded: List[str] = []

    async def analyze_image(self, data: bytes, mime_type: str) -> AnalysisResult:
        assert mime_type == "image/jpeg"
        return self.analysis

    async def embed_text(self, text: str) -> List[float]:
        self.embedded.append(text)
        if self.fail_embed:
            raise ProviderError("embedding backend down", where="fake.embed")
        return self.vectors.get(text, [1.0, 0.0, 0.0])

    async def test_connection(self) -> bool:
        return True


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def store(session):
    return LibraryStore(session)


@pytest.fixture
def library_root(tmp_path) -> Path:
    return tmp_path / "library"


@pytest_asyncio.fixture
async def library(store, library_root):
    return await store.create_library("Test Library", str(library_root))


@pytest.fixture
def source_dir(tmp_path) -> Path:
    d = tmp_path / "incoming"
    d.mkdir()
    return d


@pytest.fixture
def limiter():
    return CpuLimiter(2)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest_asyncio.fixture
async def ai_manager(fake_provider):
    manager = AiProviderManager()
    await manager.set_provider(fake_provider)
    return manager

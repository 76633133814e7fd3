import asyncio
import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import ValidationError

from yingge.errors import ProviderError
from yingge.schemas import AnalysisResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an asset tagging system for game development. Analyze the given image and return a JSON object with:\n"
    "1. \"tags\": array of objects with \"name\" (lowercase, English), \"category\" (one of: content, style, color, "
    "mood, use_case), \"confidence\" (0-1)\n"
    "2. \"description\": one concise English sentence describing the asset\n"
    "3. \"suggested_name\": a descriptive filename in snake_case without extension\n\n"
    "Return ONLY valid JSON, no markdown."
)
USER_PROMPT = "Analyze this game asset image. Return JSON with tags, description, and suggested_name."


class AiProvider(ABC):
    """Image analysis and text embedding capability. Every failure raises ProviderError."""

    embedding_model: str = ""

    @abstractmethod
    async def analyze_image(self, data: bytes, mime_type: str) -> AnalysisResult:
        ...

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        ...

    @abstractmethod
    async def test_connection(self) -> bool:
        ...

    async def close(self) -> None:
        pass


def strip_json_fence(content: str) -> str:
    clean = content.strip()
    for prefix in ("```json", "```"):
        if clean.startswith(prefix):
            clean = clean[len(prefix):]
            break
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


class OpenAiCompatibleProvider(AiProvider):
    """OpenAI-style chat/completions + embeddings endpoints (OpenAI, proxies, local servers)."""

    def __init__(self, endpoint: str, api_key: str, model: str, embedding_model: str = "",
                 timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.embedding_model = embedding_model
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, path: str) -> str:
        # An endpoint that already names the route is used as-is
        if path in self.endpoint:
            return self.endpoint
        return f"{self.endpoint}{path}"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: dict, what: str) -> httpx.Response:
        url = self._url(path)
        logger.info("[ai] %s request -> %s", what, url)
        try:
            return await self.client.post(url, headers=self._headers(), json=body)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{what} request timed out: {e}", where=f"ai.{what}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{what} request failed: {e}", where=f"ai.{what}") from e

    async def analyze_image(self, data: bytes, mime_type: str) -> AnalysisResult:
        data_url = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": data_url}},
                        {"type": "text", "text": USER_PROMPT},
                    ],
                },
            ],
            "max_tokens": 1000,
            "temperature": 0.3,
        }
        resp = await self._post("/chat/completions", body, "analyze")
        if resp.status_code >= 400:
            logger.error("[ai] analyze returned %s: %s", resp.status_code, resp.text)
            raise ProviderError(f"API returned {resp.status_code}: {resp.text}", where="ai.analyze")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"No content in response: {e}", where="ai.analyze") from e
        if not isinstance(content, str):
            raise ProviderError("No content in response", where="ai.analyze")

        clean = strip_json_fence(content)
        try:
            return AnalysisResult.model_validate(json.loads(clean))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ProviderError(f"Failed to parse AI response as JSON: {e}. Raw: {clean}", where="ai.analyze") from e

    async def embed_text(self, text: str) -> List[float]:
        if not self.embedding_model:
            raise ProviderError("No embedding model configured", where="ai.embed")
        resp = await self._post("/embeddings", {"model": self.embedding_model, "input": text}, "embed")
        if resp.status_code >= 400:
            raise ProviderError(f"Embedding API returned {resp.status_code}: {resp.text}", where="ai.embed")
        try:
            embedding = resp.json()["data"][0]["embedding"]
            return [float(v) for v in embedding]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"No embedding in response: {e}", where="ai.embed") from e

    async def test_connection(self) -> bool:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": "Hi"}],
            "max_tokens": 5,
        }
        resp = await self._post("/chat/completions", body, "test")
        if resp.status_code >= 400:
            logger.error("[ai] connection test returned %s: %s", resp.status_code, resp.text)
            return False
        logger.info("[ai] connection test successful")
        return True

    async def close(self) -> None:
        await self.client.aclose()


class AiProviderManager:
    """Single active provider slot; swaps and reads are serialized by one lock."""

    def __init__(self):
        self._provider: Optional[AiProvider] = None
        self._lock = asyncio.Lock()

    async def set_provider(self, provider: Optional[AiProvider]) -> None:
        # in-flight calls keep the reference they already hold
        async with self._lock:
            self._provider = provider

    async def get_provider(self) -> AiProvider:
        async with self._lock:
            provider = self._provider
        if provider is None:
            raise ProviderError(
                "No AI provider configured. Please configure an AI provider in Settings.", where="ai.manager"
            )
        return provider

    async def has_provider(self) -> bool:
        async with self._lock:
            return self._provider is not None

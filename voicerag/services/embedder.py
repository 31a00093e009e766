from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, List, Optional, Sequence

import httpx
import numpy as np
from tenacity import retry, stop_after_attempt, wait_exponential

from voicerag.config import Settings
from voicerag.services.errors import EmbeddingUnavailable
from voicerag.services.metrics import now, elapsed_ms, record_embedding

logger = logging.getLogger(__name__)

HF_INFERENCE_BASE = "https://router.huggingface.co/hf-inference/models"
HASH_EMBED_DIM = 384


class EmbeddingProvider:
    """Turns text into fixed-dimension float vectors.

    Subclasses implement ``_embed``. Every call is bounded by
    ``timeout_seconds``; a timeout surfaces as EmbeddingUnavailable like any
    other backend failure.
    """

    name = "base"
    enabled = True

    def __init__(self, model: str, timeout_seconds: float = 15.0):
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def _embed(self, texts: List[str]) -> np.ndarray:
        raise NotImplementedError

    async def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        t0 = now()
        try:
            out = await asyncio.wait_for(self._embed(texts), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            record_embedding(self.name, self.model, texts=len(texts), latency_ms=elapsed_ms(t0), ok=False)
            raise EmbeddingUnavailable(f"{self.name} embedding timed out after {self.timeout_seconds}s") from e
        except EmbeddingUnavailable:
            record_embedding(self.name, self.model, texts=len(texts), latency_ms=elapsed_ms(t0), ok=False)
            raise
        out = np.asarray(out, dtype=np.float32)
        if out.ndim != 2 or out.shape[0] != len(texts):
            record_embedding(self.name, self.model, texts=len(texts), latency_ms=elapsed_ms(t0), ok=False)
            raise EmbeddingUnavailable(
                f"{self.name} returned {out.shape[0] if out.ndim else 0} vectors for {len(texts)} texts"
            )
        record_embedding(self.name, self.model, texts=len(texts), latency_ms=elapsed_ms(t0), ok=True)
        return out

    async def embed_one(self, text: str) -> np.ndarray:
        return (await self.embed_batch([text]))[0]


class DisabledEmbeddingProvider(EmbeddingProvider):
    """Always unavailable; callers route to lexical search."""

    name = "disabled"
    enabled = False

    def __init__(self, reason: str = "embeddings are disabled by configuration"):
        super().__init__(model="none")
        self.reason = reason

    async def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        raise EmbeddingUnavailable(self.reason)


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic pseudo-embeddings seeded from the text hash.

    Identical texts map to identical unit vectors; there is no semantic
    signal beyond that. Meant for offline runs and tests.
    """

    name = "hash"

    def __init__(self, model: str = "sha256-384", dim: int = HASH_EMBED_DIM, timeout_seconds: float = 15.0):
        super().__init__(model=model, timeout_seconds=timeout_seconds)
        self.dim = dim

    async def _embed(self, texts: List[str]) -> np.ndarray:
        vecs = []
        for t in texts:
            seed = int(hashlib.sha256(t.encode("utf-8")).hexdigest()[:8], 16)
            rng = np.random.default_rng(seed)
            v = rng.random(self.dim, dtype=np.float32) - 0.5
            v = v / (np.linalg.norm(v) + 1e-8)
            vecs.append(v)
        return np.stack(vecs, axis=0)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    name = "openai"

    def __init__(self, model: str, api_key: str, timeout_seconds: float = 15.0):
        super().__init__(model=model, timeout_seconds=timeout_seconds)
        self._api_key = api_key
        self._client = None

    def _openai_client(self):
        if self._client is None:
            from openai import AsyncOpenAI  # lazy import
            # tenacity owns retries
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    @retry(reraise=True, stop=stop_after_attempt(2), wait=wait_exponential(multiplier=0.5, min=0.5, max=2))
    async def _request(self, texts: List[str]):
        client = self._openai_client()
        return await client.embeddings.create(model=self.model, input=texts)

    async def _embed(self, texts: List[str]) -> np.ndarray:
        from openai import OpenAIError

        try:
            resp = await self._request(texts)
        except OpenAIError as e:
            raise EmbeddingUnavailable(f"openai embeddings failed: {e}") from e
        return np.array([d.embedding for d in resp.data], dtype=np.float32)


def _to_matrix(payload: Any, expected: int) -> np.ndarray:
    if not isinstance(payload, list) or len(payload) != expected:
        raise EmbeddingUnavailable("Invalid embeddings payload: expected one vector per input")
    rows = []
    for item in payload:
        try:
            arr = np.asarray(item, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailable(f"Invalid embeddings payload: {e}") from e
        # Token-level output: mean-pool to one sentence vector
        if arr.ndim == 2:
            arr = arr.mean(axis=0)
        if arr.ndim != 1 or arr.size == 0:
            raise EmbeddingUnavailable("Invalid embeddings payload: missing embedding vector")
        rows.append(arr)
    if len({r.shape[0] for r in rows}) != 1:
        raise EmbeddingUnavailable("Invalid embeddings payload: mixed vector dimensions")
    return np.stack(rows, axis=0)


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    name = "huggingface"

    def __init__(
        self,
        model: str,
        token: str,
        timeout_seconds: float = 15.0,
        base_url: str = HF_INFERENCE_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(model=model, timeout_seconds=timeout_seconds)
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    @retry(reraise=True, stop=stop_after_attempt(2), wait=wait_exponential(multiplier=0.5, min=0.5, max=2))
    async def _request(self, texts: List[str]) -> Any:
        url = f"{self._base_url}/{self.model}/pipeline/feature-extraction"
        headers = {"Authorization": f"Bearer {self._token}", "Accept": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout_seconds, headers=headers,
                                     transport=self._transport) as client:
            resp = await client.post(url, json={"inputs": texts})
            resp.raise_for_status()
            return resp.json()

    async def _embed(self, texts: List[str]) -> np.ndarray:
        try:
            payload = await self._request(texts)
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingUnavailable(f"huggingface embeddings failed: {e}") from e
        return _to_matrix(payload, len(texts))


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Pick the provider once, at startup, from configuration."""
    if not settings.embeddings_enabled:
        logger.info("embed: embeddings disabled; lexical search only")
        return DisabledEmbeddingProvider()
    timeout = settings.embedding_timeout_seconds
    if settings.embedding_provider == "hash":
        return HashEmbeddingProvider(model=settings.embedding_model, timeout_seconds=timeout)
    if settings.embedding_provider == "huggingface":
        if not settings.hf_token:
            logger.warning("embed: HF_TOKEN not set; embeddings disabled")
            return DisabledEmbeddingProvider("HF_TOKEN is not configured")
        return HuggingFaceEmbeddingProvider(model=settings.embedding_model, token=settings.hf_token,
                                            timeout_seconds=timeout)
    if not settings.openai_api_key:
        logger.warning("embed: OPENAI_API_KEY not set; embeddings disabled")
        return DisabledEmbeddingProvider("OPENAI_API_KEY is not configured")
    return OpenAIEmbeddingProvider(model=settings.embedding_model, api_key=settings.openai_api_key,
                                   timeout_seconds=timeout)

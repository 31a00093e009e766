from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from voicerag.config import Settings
from voicerag.models.types import (
    Chunk,
    IndexStats,
    IngestResult,
    RankedResults,
    SearchResult,
    SourceStat,
)
from voicerag.services.backends import VectorBackend, InMemoryBackend, build_backend
from voicerag.services.capacity import CapacityGuard
from voicerag.services.chunker import chunk_text
from voicerag.services.embedder import EmbeddingProvider, build_embedding_provider
from voicerag.services.errors import EmbeddingUnavailable
from voicerag.services.metrics import record_fallback
from voicerag.services.ranker import rank_lexical

logger = logging.getLogger(__name__)

# Results must score strictly above these to be returned
VECTOR_SCORE_FLOOR = 0.1
LEXICAL_SCORE_FLOOR = 0.0


class DocumentIndex:
    """Process-wide chunk store with similarity search.

    Ingestion is serialised by a lock because the capacity check and the
    commit straddle the embedding call. Searches score a snapshot taken
    before they await, so they never see half of an ingested batch.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        backend: Optional[VectorBackend] = None,
        guard: Optional[CapacityGuard] = None,
        chunk_size: int = 500,
        chunk_overlap: int = 100,
        lexical_fallback: bool = True,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.provider = provider
        self.backend = backend if backend is not None else InMemoryBackend()
        self.guard = guard if guard is not None else CapacityGuard()
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.lexical_fallback = lexical_fallback
        self._source_counts: Dict[str, int] = {}
        self._total_chunks = 0
        self._total_chars = 0
        self._lock = asyncio.Lock()

    @property
    def total_chunks(self) -> int:
        return self._total_chunks

    @property
    def total_chars(self) -> int:
        return self._total_chars

    @property
    def source_counts(self) -> Dict[str, int]:
        return dict(self._source_counts)

    async def ingest(self, text: str, source_name: str) -> IngestResult:
        """Chunk, embed and store ``text`` under ``source_name``.

        Raises CapacityExceeded, or EmbeddingUnavailable when lexical fallback
        is off. Either way nothing is stored.
        """
        pieces = chunk_text(text, self.chunk_size, self.chunk_overlap)
        if not pieces:
            logger.info("index: source=%s produced no chunks", source_name)
            return IngestResult(chunk_count=0)
        new_chars = sum(len(p) for p in pieces)

        async with self._lock:
            self.guard.check(self._total_chunks, self._total_chars, len(pieces), new_chars)
            embeddings = None
            if self.provider.enabled:
                try:
                    embeddings = await self.provider.embed_batch(pieces)
                except EmbeddingUnavailable as e:
                    if not self.lexical_fallback:
                        logger.warning("index: embedding failed for source=%s, rejecting: %s", source_name, e)
                        raise
                    logger.warning("index: embedding failed for source=%s, storing for lexical search: %s",
                                   source_name, e)
                    record_fallback("ingest_lexical")

            records = [
                Chunk.from_text(p, source_name, embedding=embeddings[i].tolist() if embeddings is not None else None)
                for i, p in enumerate(pieces)
            ]
            # No awaits below: the batch lands in one step
            self.backend.add(records, embeddings)
            self._source_counts[source_name] = self._source_counts.get(source_name, 0) + len(records)
            self._total_chunks += len(records)
            self._total_chars += new_chars

        mode = "vector" if embeddings is not None else "lexical"
        logger.info("index: stored source=%s chunks=%d chars=%d mode=%s total_chunks=%d",
                    source_name, len(records), new_chars, mode, self._total_chunks)
        return IngestResult(chunk_count=len(records), mode=mode)

    async def retrieve(self, query: str, top_k: int = 5) -> RankedResults:
        """Rank stored chunks for ``query`` and report which mode produced them.

        Lexical scoring is used when embeddings are off, when any stored chunk
        lacks an embedding, or when the query cannot be embedded.
        """
        snap = self.backend.snapshot()
        mode = "vector" if self.provider.enabled else "lexical"
        if not snap.chunks or top_k <= 0 or not (query or "").strip():
            return RankedResults(mode=mode, results=[])

        query_vec = None
        if mode == "vector" and not snap.fully_embedded:
            logger.info("index: %d of %d chunks lack embeddings; using lexical search",
                        len(snap.chunks) - snap.embedded, len(snap.chunks))
            mode = "lexical"
        if mode == "vector":
            try:
                query_vec = await self.provider.embed_one(query)
            except EmbeddingUnavailable as e:
                logger.warning("index: query embedding failed, falling back to lexical search: %s", e)
                record_fallback("search_lexical")
                mode = "lexical"

        if mode == "vector":
            ranked = self.backend.vector_search(snap, query_vec)
            floor = VECTOR_SCORE_FLOOR
        else:
            ranked = rank_lexical(query, snap.chunks)
            floor = LEXICAL_SCORE_FLOOR

        results: List[SearchResult] = []
        for chunk, score in ranked:
            if score <= floor:
                # Ranked lists are sorted, nothing further clears the floor
                break
            results.append(SearchResult(text=chunk.text, score=min(float(score), 1.0), source_name=chunk.source_name))
            if len(results) >= top_k:
                break
        logger.info("index: search mode=%s top_k=%d hits=%d top_scores=%s",
                    mode, top_k, len(results), [round(r.score, 3) for r in results[:5]])
        return RankedResults(mode=mode, results=results)

    async def search(self, query: str, top_k: int = 5) -> List[SearchResult]:
        return (await self.retrieve(query, top_k)).results

    def stats(self) -> IndexStats:
        # Read on the event loop only; ingest commits without awaiting, so the
        # three counters always agree here
        return IndexStats(
            total_chunks=self._total_chunks,
            total_chars=self._total_chars,
            sources=[SourceStat(name=name, chunks=n) for name, n in list(self._source_counts.items())],
        )

    async def reset(self) -> None:
        """Clear everything. Waits for an in-flight ingestion to commit first."""
        async with self._lock:
            self.backend.reset()
            self._source_counts = {}
            self._total_chunks = 0
            self._total_chars = 0
        logger.info("index: reset")


def build_document_index(settings: Settings, provider: Optional[EmbeddingProvider] = None) -> DocumentIndex:
    return DocumentIndex(
        provider=provider if provider is not None else build_embedding_provider(settings),
        backend=build_backend(settings.vector_backend),
        guard=CapacityGuard(settings.max_total_chunks, settings.max_total_chars),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        lexical_fallback=settings.lexical_fallback,
    )

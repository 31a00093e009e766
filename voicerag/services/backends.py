"""Storage strategies behind the document index.

``InMemoryBackend`` keeps vectors in a numpy matrix and scans it.
``FaissBackend`` hands vectors to a FAISS flat L2 index and converts its
distances to similarities. Both keep the chunk records themselves so that
lexical search and stats work the same way regardless of the strategy.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from voicerag.models.types import Chunk
from voicerag.services.ranker import rank_by_vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Consistent view of the stored chunks taken before a search awaits."""

    chunks: Tuple[Chunk, ...] = ()
    embedded: int = 0
    matrix: Optional[np.ndarray] = field(default=None, compare=False)
    vector_count: int = 0
    # Backend-specific handle captured with the snapshot (FAISS index, row map)
    handle: object = field(default=None, compare=False)

    @property
    def fully_embedded(self) -> bool:
        return bool(self.chunks) and self.embedded == len(self.chunks)


class VectorBackend:
    name = "base"

    def __init__(self):
        self._chunks: List[Chunk] = []
        self._embedded = 0

    def __len__(self) -> int:
        return len(self._chunks)

    def add(self, chunks: Sequence[Chunk], embeddings: Optional[np.ndarray]) -> None:
        raise NotImplementedError

    def snapshot(self) -> Snapshot:
        raise NotImplementedError

    def vector_search(self, snap: Snapshot, query_vec: np.ndarray) -> List[Tuple[Chunk, float]]:
        """All chunks in ``snap`` ranked by similarity, best first."""
        raise NotImplementedError

    def reset(self) -> None:
        self._chunks = []
        self._embedded = 0


class InMemoryBackend(VectorBackend):
    name = "memory"

    def __init__(self):
        super().__init__()
        self._matrix: Optional[np.ndarray] = None

    def add(self, chunks: Sequence[Chunk], embeddings: Optional[np.ndarray]) -> None:
        if embeddings is not None:
            embeddings = np.asarray(embeddings, dtype=np.float32)
            # Rebinding instead of resizing keeps earlier snapshots intact
            if self._matrix is None:
                self._matrix = embeddings
            else:
                self._matrix = np.vstack([self._matrix, embeddings])
            self._embedded += len(chunks)
        self._chunks.extend(chunks)

    def snapshot(self) -> Snapshot:
        return Snapshot(chunks=tuple(self._chunks), embedded=self._embedded, matrix=self._matrix)

    def vector_search(self, snap: Snapshot, query_vec: np.ndarray) -> List[Tuple[Chunk, float]]:
        if not snap.fully_embedded:
            return []
        return rank_by_vector(query_vec, snap.chunks, matrix=snap.matrix)

    def reset(self) -> None:
        super().reset()
        self._matrix = None


class FaissBackend(VectorBackend):
    """Flat L2 FAISS index over unit-normalised vectors.

    score = 1 / (1 + squared L2 distance), so identical vectors score 1.0 and
    opposite ones 0.2.
    """

    name = "faiss"

    def __init__(self):
        super().__init__()
        self._index = None
        # FAISS row -> position in self._chunks
        self._row_to_chunk: List[int] = []

    def _ensure_index(self, dim: int):
        if self._index is None:
            import faiss  # lazy import

            self._index = faiss.IndexFlatL2(dim)
            logger.info("faiss: created IndexFlatL2 dim=%d", dim)
        return self._index

    @staticmethod
    def _normalized(vectors: np.ndarray) -> np.ndarray:
        import faiss

        out = np.ascontiguousarray(vectors, dtype=np.float32).copy()
        faiss.normalize_L2(out)
        return out

    def add(self, chunks: Sequence[Chunk], embeddings: Optional[np.ndarray]) -> None:
        offset = len(self._chunks)
        if embeddings is not None:
            vectors = self._normalized(np.atleast_2d(embeddings))
            index = self._ensure_index(vectors.shape[1])
            if vectors.shape[1] != index.d:
                raise ValueError(f"embedding dimension {vectors.shape[1]} does not match index dimension {index.d}")
            index.add(vectors)
            self._row_to_chunk.extend(range(offset, offset + len(chunks)))
            self._embedded += len(chunks)
        self._chunks.extend(chunks)

    def snapshot(self) -> Snapshot:
        n = self._index.ntotal if self._index is not None else 0
        return Snapshot(chunks=tuple(self._chunks), embedded=self._embedded, vector_count=n,
                        handle=(self._index, self._row_to_chunk))

    def vector_search(self, snap: Snapshot, query_vec: np.ndarray) -> List[Tuple[Chunk, float]]:
        if snap.handle is None or not snap.fully_embedded or snap.vector_count == 0:
            return []
        index, row_to_chunk = snap.handle
        if index is None:
            return []
        q = self._normalized(np.asarray(query_vec, dtype=np.float32).reshape(1, -1))
        # The live index may have grown since the snapshot, so search every row
        distances, rows = index.search(q, index.ntotal)
        scored = []
        for dist, row in zip(distances[0], rows[0]):
            # Rows added after the snapshot are ignored
            if row < 0 or row >= snap.vector_count:
                continue
            pos = row_to_chunk[row]
            scored.append((pos, 1.0 / (1.0 + max(float(dist), 0.0))))
        scored.sort(key=lambda item: (-item[1], item[0]))
        return [(snap.chunks[pos], score) for pos, score in scored]

    def reset(self) -> None:
        super().reset()
        # Next ingestion builds a fresh index
        self._index = None
        self._row_to_chunk = []


def build_backend(name: str) -> VectorBackend:
    if name == "faiss":
        return FaissBackend()
    if name == "memory":
        return InMemoryBackend()
    raise ValueError(f"Unknown vector backend: {name}")

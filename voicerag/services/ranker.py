"""Scoring of stored chunks against a query.

Both modes are pure functions of their inputs so they can be exercised
without an index or an embedding backend.
"""
from typing import List, Optional, Sequence, Tuple
import re

import numpy as np

from voicerag.models.types import Chunk

# Unicode letters and digits; underscores split tokens like punctuation
_TOKEN_RE = re.compile(r"[^\W_]{2,}")


def cosine_scores(query_vec: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query_vec`` against every row of ``matrix``.

    Rows (or a query) with zero magnitude score 0.
    """
    q = np.asarray(query_vec, dtype=np.float32).reshape(-1)
    m = np.asarray(matrix, dtype=np.float32)
    if m.ndim == 1:
        m = m[None, :]
    if m.shape[0] == 0:
        return np.zeros(0, dtype=np.float32)
    q_norm = float(np.linalg.norm(q))
    row_norms = np.linalg.norm(m, axis=1)
    if q_norm == 0.0:
        return np.zeros(m.shape[0], dtype=np.float32)
    denom = row_norms * q_norm
    safe = np.where(denom > 0, denom, 1.0)
    sims = np.where(denom > 0, (m @ q) / safe, 0.0)
    return sims.astype(np.float32)


def _stable_desc(scores: Sequence[float]) -> List[int]:
    # sorted() is stable, so equal scores keep insertion order
    return sorted(range(len(scores)), key=lambda i: -scores[i])


def rank_by_vector(
    query_vec: np.ndarray,
    chunks: Sequence[Chunk],
    matrix: Optional[np.ndarray] = None,
) -> List[Tuple[Chunk, float]]:
    """Chunks ordered by cosine similarity to ``query_vec``, best first.

    ``matrix`` may carry the chunk embeddings pre-stacked (row i belongs to
    chunks[i]); extra trailing rows are ignored.
    """
    if not chunks:
        return []
    if matrix is None:
        matrix = np.array([c.embedding for c in chunks], dtype=np.float32)
    else:
        matrix = matrix[: len(chunks)]
    sims = cosine_scores(query_vec, matrix)
    return [(chunks[i], float(sims[i])) for i in _stable_desc(sims.tolist())]


def tokenize_query(query: str) -> List[str]:
    seen = set()
    out = []
    for tok in _TOKEN_RE.findall((query or "").lower()):
        if tok not in seen:
            out.append(tok)
            seen.add(tok)
    return out


def rank_lexical(query: str, chunks: Sequence[Chunk]) -> List[Tuple[Chunk, float]]:
    """Fraction of distinct query tokens that occur in each chunk.

    No length or frequency weighting. Chunks without any hit are dropped.
    """
    tokens = tokenize_query(query)
    if not tokens or not chunks:
        return []
    scored: List[Tuple[Chunk, float]] = []
    for c in chunks:
        hits = sum(1 for t in tokens if t in c.normalized_text)
        if hits:
            scored.append((c, hits / len(tokens)))
    order = _stable_desc([s for _, s in scored])
    return [scored[i] for i in order]

# Ensure `import voicerag` works whether or not the package is installed
import asyncio
import hashlib
import os
import re
import sys

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from voicerag.services.embedder import EmbeddingProvider  # noqa: E402
from voicerag.services.errors import EmbeddingUnavailable  # noqa: E402
from voicerag.services.metrics import reset_metrics  # noqa: E402

_WORD_RE = re.compile(r"[a-z0-9]+")


class BagOfWordsProvider(EmbeddingProvider):
    """Hashed word counts: texts sharing words get similar vectors."""

    name = "bow"

    def __init__(self, dim: int = 256, timeout_seconds: float = 5.0):
        super().__init__(model=f"bow-{dim}", timeout_seconds=timeout_seconds)
        self.dim = dim
        self.calls = 0

    def vector(self, text: str) -> np.ndarray:
        v = np.zeros(self.dim, dtype=np.float32)
        for w in _WORD_RE.findall(text.lower()):
            v[int(hashlib.md5(w.encode()).hexdigest()[:8], 16) % self.dim] += 1.0
        return v

    async def _embed(self, texts):
        self.calls += 1
        return np.stack([self.vector(t) for t in texts])


class FailingProvider(EmbeddingProvider):
    name = "failing"

    def __init__(self):
        super().__init__(model="broken", timeout_seconds=5.0)
        self.calls = 0

    async def _embed(self, texts):
        self.calls += 1
        raise EmbeddingUnavailable("quota exceeded")


class SlowProvider(BagOfWordsProvider):
    name = "slow"

    def __init__(self, delay: float, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds=timeout_seconds)
        self.delay = delay

    async def _embed(self, texts):
        await asyncio.sleep(self.delay)
        return await super()._embed(texts)


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def bow_provider():
    return BagOfWordsProvider()


@pytest.fixture
def failing_provider():
    return FailingProvider()


def sentences(topic: str, n: int) -> str:
    return " ".join(f"The {topic} report entry number {i} describes {topic} details." for i in range(n))

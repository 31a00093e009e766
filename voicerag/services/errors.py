class RetrievalError(Exception):
    """Base class for errors raised by the retrieval core."""


class CapacityExceeded(RetrievalError):
    """Raised when an ingestion would push the index past a hard ceiling.

    The index is left untouched when this is raised.
    """

    def __init__(self, limit: str, maximum: int, current: int, requested: int):
        self.limit = limit
        self.maximum = maximum
        self.current = current
        self.requested = requested
        super().__init__(
            f"Index {limit} limit exceeded: {current} stored + {requested} new > {maximum} allowed"
        )


class EmbeddingUnavailable(RetrievalError):
    """Embedding backend failed, timed out, or is disabled by configuration."""

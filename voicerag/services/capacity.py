import logging

from voicerag.services.errors import CapacityExceeded

logger = logging.getLogger(__name__)


class CapacityGuard:
    """Hard ceilings on the number of chunks and characters the index holds."""

    def __init__(self, max_total_chunks: int = 5000, max_total_chars: int = 2_000_000):
        if max_total_chunks <= 0 or max_total_chars <= 0:
            raise ValueError("capacity limits must be > 0")
        self.max_total_chunks = max_total_chunks
        self.max_total_chars = max_total_chars

    def check(self, total_chunks: int, total_chars: int, new_chunks: int, new_chars: int) -> None:
        """Raise CapacityExceeded if the addition would breach either ceiling."""
        if total_chunks + new_chunks > self.max_total_chunks:
            logger.warning("capacity: chunk limit hit total=%d new=%d max=%d",
                           total_chunks, new_chunks, self.max_total_chunks)
            raise CapacityExceeded("chunks", self.max_total_chunks, total_chunks, new_chunks)
        if total_chars + new_chars > self.max_total_chars:
            logger.warning("capacity: character limit hit total=%d new=%d max=%d",
                           total_chars, new_chars, self.max_total_chars)
            raise CapacityExceeded("characters", self.max_total_chars, total_chars, new_chars)

from typing import List
import re

# Chunks shorter than this after trimming are treated as noise
MIN_CHUNK_CHARS = 20
# A sentence break is only used if it keeps at least this share of the window
MIN_BREAK_RATIO = 0.3

_WS_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def _find_break(text: str, start: int, end: int) -> int:
    # Last sentence terminator or newline inside [start, end)
    return max(text.rfind(".", start, end), text.rfind("\n", start, end))


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 100) -> List[str]:
    """Split text into overlapping windows of at most ``chunk_size`` characters.

    Windows are pulled back to the nearest preceding ``.`` when that does not
    sacrifice more than 70% of the window. Overlap is clamped to half the
    window so the cursor always advances.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    clean = normalize_whitespace(text)
    if not clean:
        return []
    if len(clean) <= chunk_size:
        return [clean]

    overlap = max(0, min(int(overlap), chunk_size // 2))
    chunks: List[str] = []
    length = len(clean)
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            min_break = start + chunk_size * MIN_BREAK_RATIO
            bp = _find_break(clean, start, end)
            if bp > min_break:
                end = bp + 1

        piece = clean[start:end].strip()
        if len(piece) >= MIN_CHUNK_CHARS:
            chunks.append(piece)

        if end >= length:
            break
        next_start = end - overlap
        # An early break plus a large overlap could otherwise step backwards
        start = next_start if next_start > start else end
    return chunks

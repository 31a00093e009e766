import pytest

from voicerag.services.chunker import MIN_CHUNK_CHARS, chunk_text, normalize_whitespace


def _words(n: int) -> str:
    # 5 chars per word including the trailing space; every word is unique
    return "".join(f"w{i:03d} " for i in range(n))


def test_empty_and_whitespace_yield_nothing():
    assert chunk_text("") == []
    assert chunk_text("   \n\t  ") == []


def test_short_text_is_single_normalized_chunk():
    out = chunk_text("  Hello\n\n   world.\tThis is   short. ", chunk_size=500, overlap=100)
    assert out == ["Hello world. This is short."]


def test_non_positive_chunk_size_rejected():
    with pytest.raises(ValueError):
        chunk_text("some text", chunk_size=0)


def test_1200_chars_gives_three_overlapping_chunks():
    text = _words(240)
    clean = normalize_whitespace(text)
    assert len(clean) == 1199

    chunks = chunk_text(text, chunk_size=500, overlap=100)
    assert len(chunks) == 3
    assert all(len(c) <= 500 for c in chunks)

    start0 = clean.find(chunks[0])
    end0 = start0 + len(chunks[0])
    start1 = clean.find(chunks[1])
    assert start0 == 0
    assert abs(start1 - (end0 - 100)) <= 5


def test_prefers_sentence_boundaries():
    text = " ".join(f"Sentence number {i:02d} is right here." for i in range(40))
    chunks = chunk_text(text, chunk_size=200, overlap=40)
    assert len(chunks) > 1
    for c in chunks[:-1]:
        assert c.endswith(".")
        assert len(c) <= 200


def test_break_too_early_is_ignored():
    # Only period sits in the first 30% of the window, so the cut stays at chunk_size
    text = "Tiny. " + "x" * 300
    chunks = chunk_text(text, chunk_size=100, overlap=0)
    assert len(chunks[0]) == 100


def test_short_fragments_are_dropped():
    text = "x" * 50 + " yy"
    chunks = chunk_text(text, chunk_size=50, overlap=0)
    assert chunks == ["x" * 50]
    assert all(len(c) >= MIN_CHUNK_CHARS for c in chunks)


def test_deterministic():
    text = _words(700)
    assert chunk_text(text, 300, 60) == chunk_text(text, 300, 60)


def test_no_overlap_never_exceeds_source_length():
    text = _words(500)
    chunks = chunk_text(text, chunk_size=180, overlap=0)
    assert sum(len(c) for c in chunks) <= len(normalize_whitespace(text))


def test_consecutive_chunks_share_at_most_overlap():
    text = _words(600)
    clean = normalize_whitespace(text)
    overlap = 70
    chunks = chunk_text(text, chunk_size=300, overlap=overlap)
    pos = 0
    spans = []
    for c in chunks:
        start = clean.find(c, pos)
        assert start >= 0
        spans.append((start, start + len(c)))
        pos = start
    for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
        assert prev_end - next_start <= overlap


def test_oversized_overlap_is_clamped_and_terminates():
    text = _words(400)
    clean = normalize_whitespace(text)
    chunks = chunk_text(text, chunk_size=100, overlap=500)
    assert chunks
    assert clean.endswith(chunks[-1])
    pos = 0
    prev_end = None
    for c in chunks:
        start = clean.find(c, pos)
        if prev_end is not None:
            assert prev_end - start <= 50
        prev_end = start + len(c)
        pos = start

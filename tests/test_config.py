import pytest

from voicerag.config import Settings, load_settings

ENV_VARS = [
    "RAG_CHUNK_SIZE", "RAG_CHUNK_OVERLAP", "RAG_MAX_TOTAL_CHUNKS", "RAG_MAX_TOTAL_CHARS",
    "RAG_EMBEDDINGS_ENABLED", "RAG_LEXICAL_FALLBACK", "RAG_VECTOR_BACKEND", "RAG_EMBEDDING_PROVIDER",
    "RAG_EMBEDDING_MODEL", "RAG_EMBEDDING_TIMEOUT_SECONDS", "RAG_TOP_K", "OPENAI_API_KEY", "HF_TOKEN",
    "ALLOW_ORIGINS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = load_settings()
    assert s.chunk_size == 500
    assert s.chunk_overlap == 100
    assert s.max_total_chunks == 5000
    assert s.max_total_chars == 2_000_000
    assert s.embeddings_enabled is True
    assert s.lexical_fallback is True
    assert s.vector_backend == "memory"
    assert s.embedding_model == "text-embedding-3-small"


def test_env_overrides(clean_env):
    clean_env.setenv("RAG_CHUNK_SIZE", "800")
    clean_env.setenv("RAG_EMBEDDINGS_ENABLED", "false")
    clean_env.setenv("RAG_VECTOR_BACKEND", "FAISS")
    clean_env.setenv("RAG_EMBEDDING_PROVIDER", "huggingface")
    clean_env.setenv("ALLOW_ORIGINS", "http://a.test, http://b.test")
    s = load_settings()
    assert s.chunk_size == 800
    assert s.embeddings_enabled is False
    assert s.vector_backend == "faiss"
    assert s.embedding_model == "sentence-transformers/all-MiniLM-L6-v2"
    assert s.allow_origins == ["http://a.test", "http://b.test"]


def test_malformed_number_falls_back_to_default(clean_env):
    clean_env.setenv("RAG_MAX_TOTAL_CHUNKS", "lots")
    assert load_settings().max_total_chunks == 5000


def test_non_positive_chunk_size_rejected(clean_env):
    clean_env.setenv("RAG_CHUNK_SIZE", "0")
    with pytest.raises(ValueError):
        load_settings()


def test_invalid_values_rejected():
    with pytest.raises(ValueError):
        Settings(chunk_overlap=-1)
    with pytest.raises(ValueError):
        Settings(max_total_chars=0)
    with pytest.raises(ValueError):
        Settings(vector_backend="redis")

from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

DEFAULT_EMBEDDING_MODELS = {
    "openai": "text-embedding-3-small",
    "huggingface": "sentence-transformers/all-MiniLM-L6-v2",
    "hash": "sha256-384",
}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_str(name: str) -> Optional[str]:
    raw = (os.getenv(name) or "").strip()
    return raw or None


class Settings(BaseModel):
    chunk_size: int = 500
    chunk_overlap: int = 100
    max_total_chunks: int = 5000
    max_total_chars: int = 2_000_000
    embeddings_enabled: bool = True
    lexical_fallback: bool = True
    vector_backend: Literal["memory", "faiss"] = "memory"
    embedding_provider: Literal["openai", "huggingface", "hash"] = "openai"
    embedding_model: Optional[str] = None
    embedding_timeout_seconds: float = 15.0
    top_k: int = 3
    openai_api_key: Optional[str] = None
    hf_token: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    max_chat_tokens: int = 256
    allow_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    @field_validator("chunk_size", "max_total_chunks", "max_total_chars", "top_k", "max_chat_tokens")
    @classmethod
    def _positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("chunk_overlap")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("chunk_overlap must be >= 0")
        return v

    @field_validator("embedding_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("embedding_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _default_model(self) -> "Settings":
        if not self.embedding_model:
            self.embedding_model = DEFAULT_EMBEDDING_MODELS[self.embedding_provider]
        return self


def load_settings() -> Settings:
    """Build settings from the process environment (and .env, if present).

    Malformed numbers fall back to their defaults; values that parse but make
    no sense (e.g. a non-positive chunk size) raise ``ValueError``.
    """
    load_dotenv()
    origins_env = os.getenv("ALLOW_ORIGINS", "http://localhost:3000")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()] or ["*"]
    return Settings(
        chunk_size=_env_int("RAG_CHUNK_SIZE", 500),
        chunk_overlap=_env_int("RAG_CHUNK_OVERLAP", 100),
        max_total_chunks=_env_int("RAG_MAX_TOTAL_CHUNKS", 5000),
        max_total_chars=_env_int("RAG_MAX_TOTAL_CHARS", 2_000_000),
        embeddings_enabled=_env_bool("RAG_EMBEDDINGS_ENABLED", True),
        lexical_fallback=_env_bool("RAG_LEXICAL_FALLBACK", True),
        vector_backend=(os.getenv("RAG_VECTOR_BACKEND") or "memory").strip().lower(),
        embedding_provider=(os.getenv("RAG_EMBEDDING_PROVIDER") or "openai").strip().lower(),
        embedding_model=_env_str("RAG_EMBEDDING_MODEL"),
        embedding_timeout_seconds=_env_float("RAG_EMBEDDING_TIMEOUT_SECONDS", 15.0),
        top_k=_env_int("RAG_TOP_K", 3),
        openai_api_key=_env_str("OPENAI_API_KEY"),
        hf_token=_env_str("HF_TOKEN"),
        chat_model=(os.getenv("OPENAI_CHAT_MODEL") or "gpt-4o-mini").strip(),
        max_chat_tokens=_env_int("MAX_CHAT_TOKENS", 256),
        allow_origins=origins,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()

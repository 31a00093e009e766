from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

SearchMode = Literal["vector", "lexical"]


class Chunk(BaseModel):
    """A stored retrieval unit. Immutable once appended to the index."""

    model_config = ConfigDict(frozen=True)

    text: str
    normalized_text: str
    source_name: str
    embedding: Optional[List[float]] = None

    @classmethod
    def from_text(cls, text: str, source_name: str, embedding: Optional[List[float]] = None) -> "Chunk":
        return cls(text=text, normalized_text=text.lower(), source_name=source_name, embedding=embedding)


class SearchResult(BaseModel):
    text: str
    score: float
    source_name: str


class RankedResults(BaseModel):
    mode: SearchMode
    results: List[SearchResult]


class IngestResult(BaseModel):
    chunk_count: int
    mode: Optional[SearchMode] = None


class SourceStat(BaseModel):
    name: str
    chunks: int


class IndexStats(BaseModel):
    total_chunks: int
    total_chars: int
    sources: List[SourceStat]


# API payloads
class UploadResponse(BaseModel):
    success: bool = True
    file_name: str
    chunk_count: int
    text_length: int
    mode: Optional[SearchMode] = None


class SearchRequest(BaseModel):
    query: str
    top_k: Optional[int] = Field(default=None, ge=1, le=50)


class SearchHit(BaseModel):
    text: str
    score: float
    source: str


class SearchResponse(BaseModel):
    mode: SearchMode
    results: List[SearchHit]


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Conversation so far, oldest first. A bare ``question`` is a one-turn history."""

    messages: List[ChatMessage] = []
    question: Optional[str] = None

    @model_validator(mode="after")
    def _fill_messages(self):
        if not self.messages and self.question is not None:
            self.messages = [ChatMessage(role="user", content=self.question)]
        if not any(m.role == "user" for m in self.messages):
            raise ValueError("chat needs at least one user message")
        return self

    @property
    def query(self) -> str:
        return next(m.content for m in reversed(self.messages) if m.role == "user")


class ChatResponse(BaseModel):
    intent: str
    answer: str
    mode: Optional[SearchMode] = None
    sources: List[SearchHit] = []


class StatsResponse(BaseModel):
    total_chunks: int
    sources: List[SourceStat]

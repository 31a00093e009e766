import logging

from fastapi import APIRouter, Depends

from voicerag.config import Settings
from voicerag.memory.store import get_app_settings, get_index
from voicerag.models.types import ChatRequest, ChatResponse, SearchHit, SearchRequest, SearchResponse
from voicerag.services.document_index import DocumentIndex
from voicerag.services.intent import classify_intent, should_search
from voicerag.services.qa import answer_question

router = APIRouter()
logger = logging.getLogger(__name__)


def _hits(results):
    return [SearchHit(text=r.text, score=r.score, source=r.source_name) for r in results]


@router.post("/search", response_model=SearchResponse)
async def search(
    req: SearchRequest,
    index: DocumentIndex = Depends(get_index),
    settings: Settings = Depends(get_app_settings),
):
    ranked = await index.retrieve(req.query, req.top_k or settings.top_k)
    return SearchResponse(mode=ranked.mode, results=_hits(ranked.results))


@router.post("/chat", response_model=ChatResponse)
async def chat(
    req: ChatRequest,
    index: DocumentIndex = Depends(get_index),
    settings: Settings = Depends(get_app_settings),
):
    query = req.query
    has_docs = index.total_chunks > 0
    intent = classify_intent(query, has_docs)
    mode = None
    results = []
    if query.strip() and should_search(intent, has_docs):
        ranked = await index.retrieve(query, settings.top_k)
        mode, results = ranked.mode, ranked.results
        logger.info("chat: intent=%s mode=%s hits=%s", intent, mode,
                    [(r.source_name, round(r.score, 3)) for r in results])
    else:
        logger.info("chat: intent=%s has_docs=%s; not searching", intent, has_docs)

    history = [m.model_dump() for m in req.messages]
    answer = await answer_question(query, intent, has_docs, results, settings, history=history)
    return ChatResponse(intent=intent, answer=answer, mode=mode, sources=_hits(results))

import re
from typing import Literal

Intent = Literal["greeting", "upload_help", "doc_query", "general", "unknown"]

GREETING_RE = re.compile(r"\b(hi|hello|hey|yo|good\s*(morning|afternoon|evening))\b", re.IGNORECASE)
UPLOAD_RE = re.compile(r"\b(upload|pdf|document|docs|file|knowledge\s*base)\b", re.IGNORECASE)
THANKS_RE = re.compile(r"\b(thanks|thank\s*you|thx|appreciate)\b", re.IGNORECASE)


def classify_intent(text: str, has_docs: bool) -> Intent:
    """Cheap regex routing used to pick the chat prompt. Order matters."""
    normalized = (text or "").strip().lower()
    if not normalized:
        return "unknown"
    if GREETING_RE.search(normalized):
        return "greeting"
    if THANKS_RE.search(normalized):
        return "general"
    if UPLOAD_RE.search(normalized):
        return "upload_help"
    if has_docs:
        return "doc_query"
    return "general"


def should_search(intent: Intent, has_docs: bool) -> bool:
    return has_docs and intent in ("doc_query", "general")

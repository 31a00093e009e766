import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from voicerag.memory.store import get_index
from voicerag.models.types import UploadResponse
from voicerag.services.document_index import DocumentIndex
from voicerag.services.errors import CapacityExceeded, EmbeddingUnavailable
from voicerag.services.pdf_parser import extract_text_from_pdf

router = APIRouter()
logger = logging.getLogger(__name__)

PDF_TYPES = ("application/pdf", "application/x-pdf", "binary/octet-stream")
TEXT_TYPES = ("text/plain", "text/markdown")


def _extract_text(content_type: str, data: bytes) -> str:
    if content_type in PDF_TYPES:
        return extract_text_from_pdf(data)
    return data.decode("utf-8", errors="replace")


@router.post("/upload", response_model=UploadResponse)
async def upload_file(file: Optional[UploadFile] = File(None), index: DocumentIndex = Depends(get_index)):
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in PDF_TYPES + TEXT_TYPES:
        raise HTTPException(status_code=400, detail="Only PDF and plain-text files are supported")
    data = await file.read()
    file_name = file.filename or "upload"
    try:
        text = _extract_text(content_type, data)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")
    if not text.strip():
        raise HTTPException(status_code=400, detail="Could not extract text from file")

    try:
        result = await index.ingest(text, file_name)
    except CapacityExceeded as e:
        raise HTTPException(status_code=413, detail=str(e))
    except EmbeddingUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Embedding service unavailable: {e}")
    except Exception as e:
        logger.exception("upload: failed for file=%s", file_name)
        raise HTTPException(status_code=500, detail=f"Failed to process file: {e}")

    logger.info("upload: file=%s chunks=%d text_len=%d", file_name, result.chunk_count, len(text))
    return UploadResponse(
        file_name=file_name,
        chunk_count=result.chunk_count,
        text_length=len(text),
        mode=result.mode,
    )

from fastapi import APIRouter, Depends

from voicerag.memory.store import get_index
from voicerag.models.types import StatsResponse
from voicerag.services import metrics as metrics_service
from voicerag.services.document_index import DocumentIndex

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(index: DocumentIndex = Depends(get_index)):
    stats = index.stats()
    return StatsResponse(total_chunks=stats.total_chunks, sources=stats.sources)


@router.delete("/stats")
async def clear_stats(index: DocumentIndex = Depends(get_index)):
    await index.reset()
    return {"success": True}


@router.get("/metrics")
def get_metrics():
    return metrics_service.snapshot()

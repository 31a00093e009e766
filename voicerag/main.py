import logging
from typing import Optional

from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicerag.config import Settings, get_settings
from voicerag.routes import health, query, stats, upload
from voicerag.services.document_index import DocumentIndex, build_document_index

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, index: Optional[DocumentIndex] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = FastAPI(title="VoiceRAG Retrieval Backend")
    app.state.settings = settings
    app.state.index = index if index is not None else build_document_index(settings)
    logger.info(
        "startup: provider=%s backend=%s chunk_size=%d overlap=%d max_chunks=%d max_chars=%d",
        app.state.index.provider.name, app.state.index.backend.name, settings.chunk_size,
        settings.chunk_overlap, settings.max_total_chunks, settings.max_total_chars,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(upload.router, prefix="/api")
    app.include_router(query.router, prefix="/api")
    app.include_router(stats.router, prefix="/api")

    @app.get("/")
    def root():
        return {"message": "VoiceRAG backend running"}

    return app


app = create_app()

from fastapi import Request

from voicerag.config import Settings
from voicerag.services.document_index import DocumentIndex

# The document index lives on app.state; it is built once in create_app and
# handed to route handlers through these dependencies.


def get_index(request: Request) -> DocumentIndex:
    return request.app.state.index


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

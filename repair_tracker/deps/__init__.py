from __future__ import annotations

from fastapi import Request

from ..core.config import AppSettings
from ..storage.documents import DocumentStore
from ..sync.handler import SyncProtocolHandler


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def get_sync_handler(request: Request) -> SyncProtocolHandler:
    return request.app.state.sync_handler


__all__ = ["get_app_settings", "get_document_store", "get_sync_handler"]

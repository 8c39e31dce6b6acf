"""Document read/write API.

GET returns the stored bytes untouched (``[]`` when nothing was written yet).
POST replaces the whole document and pushes it to every live sync channel.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from ..deps import get_document_store, get_sync_handler
from ..storage.documents import DocumentStore
from ..sync.handler import SyncProtocolHandler

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/{name}.json")
async def api_read_document(name: str, store: DocumentStore = Depends(get_document_store)):
    content = store.read(f"{name}.json")
    return Response(content=content, media_type="application/json")


@router.post("/{name}.json")
async def api_write_document(
    name: str,
    request: Request,
    handler: SyncProtocolHandler = Depends(get_sync_handler),
):
    body = await request.body()
    handler.handle_write(f"{name}.json", body)
    return {"success": True}

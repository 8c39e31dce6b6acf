from __future__ import annotations

from fastapi import APIRouter, WebSocket

router = APIRouter(tags=["sync"])


# Browsers open the channel on the site root; ``/ws`` is the explicit alias.
@router.websocket("/ws")
@router.websocket("/")
async def sync_channel(websocket: WebSocket) -> None:
    await websocket.app.state.sync_handler.serve(websocket)

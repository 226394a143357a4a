from typing import Optional

from fastapi import APIRouter, Query, WebSocket

router = APIRouter()


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    family_id: Optional[str] = Query(None, alias="familyId"),
    device_id: Optional[str] = Query(None, alias="deviceId"),
) -> None:
    """Family sync channel: snapshot on open, then relayed activity envelopes."""

    await websocket.app.state.lifecycle.serve(websocket, family_id, device_id)

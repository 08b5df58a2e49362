"""
Realtime change stream.

Clients connect with their access token and receive a ``change`` message
for every committed write on the tables they watch, then re-read the
affected views. Drivers only watch trip tables and only hear about the
trips assigned to them.
"""

from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from fleet_backend.app.core.dependencies import validate_token_payload
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.services.realtime import manager, WATCHED_TABLES

router = APIRouter(tags=["Realtime"])


def parse_tables(tables: Optional[str]) -> list:
    """Comma-separated table list; unknown names are dropped, empty means all."""
    if not tables:
        return list(WATCHED_TABLES)
    requested = [name.strip() for name in tables.split(",") if name.strip()]
    return [name for name in requested if name in WATCHED_TABLES] or list(WATCHED_TABLES)


@router.websocket("/ws/changes")
async def ws_changes(ws: WebSocket, token: str, tables: Optional[str] = None):
    claims = validate_token_payload(token)
    if claims is None:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    driver_id = claims["driver_id"] if claims["role"] == UserRole.DRIVER.value else None

    watched = await manager.connect(ws, parse_tables(tables), driver_id=driver_id)
    await ws.send_json({"type": "subscribed", "tables": watched})

    try:
        while True:
            try:
                msg = await ws.receive_json()
            except ValueError:
                await ws.close(code=status.WS_1003_UNSUPPORTED_DATA)
                break
            if isinstance(msg, dict) and msg.get("action") == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(ws)

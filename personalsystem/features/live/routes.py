"""
WebSocket endpoint and live-update metadata.
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from personalsystem.core import config
from personalsystem.core.database.engine import AsyncSessionLocal
from personalsystem.features.live.hub import Connection, hub
from personalsystem.features.live.invalidation import ENTITY_QUERY_KEYS
from personalsystem.features.users.auth import user_id_from_token
from personalsystem.features.users.dependencies import CurrentUser, get_current_user, load_current_user
from personalsystem.utils import get_logger


log = get_logger(__name__)
router = APIRouter()
ws_router = APIRouter()

# Replaced in tests to point at the test database
session_factory = AsyncSessionLocal


@router.get("/query-keys")
async def get_query_keys(_user: CurrentUser = Depends(get_current_user)):
    """Event entity to cache key mapping used by the frontend."""
    return {entity: [list(key) for key in keys] for entity, keys in ENTITY_QUERY_KEYS.items()}


@router.get("/online")
async def get_online_users(_user: CurrentUser = Depends(get_current_user)):
    return {"users": hub.online_user_ids(), "connections": hub.connection_count()}


@ws_router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    token = websocket.cookies.get(config.COOKIE_NAME) or websocket.query_params.get("token")
    user_id = user_id_from_token(token)
    user = None
    if user_id:
        async with session_factory() as session:
            user = await load_current_user(session, user_id)

    if user is None or not user.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = Connection(websocket=websocket, user_id=user.id, username=user.username)
    await hub.connect(connection)
    try:
        while True:
            message = await websocket.receive_json()
            if not isinstance(message, dict):
                continue
            room = message.get("room")
            if message.get("type") == "join:room" and room:
                hub.join_room(connection, str(room))
            elif message.get("type") == "leave:room" and room:
                hub.leave_room(connection, str(room))
            elif message.get("type") == "ping":
                await websocket.send_json({"event": "pong", "data": None})
    except WebSocketDisconnect:
        pass
    except ValueError:
        log.debug("Invalid message on %s, closing", connection.id)
    finally:
        await hub.disconnect(connection)

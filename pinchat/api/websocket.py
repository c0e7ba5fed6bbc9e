# pinchat/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pinchat.core import state
from pinchat.services.relay import UnknownAction

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for one chat participant.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Claim a name (required before anything room related):
        {"action": "set_name", "name": "alice"}
        Response: {"type": "name_accepted", "name": "alice"}
                  or {"type": "name_rejected", "reason": "...", "code": "name_taken"}

    Change name:
        {"action": "rename", "name": "alicia"}
        Response: {"type": "name_updated", "name": "alicia"}

    Create a PIN room (and move into it):
        {"action": "create_room", "name": "Plans", "secret": "1234"}

    Join by PIN:
        {"action": "join_by_secret", "secret": "1234"}

    Switch to a listed room:
        {"action": "switch_room", "room_id": "general"}
        Response: {"type": "room_joined", "room_id": "...", "name": "...",
                   "history": [...], "members": [...]}

    Leave current room:
        {"action": "leave_room"}
        Response: {"type": "returned_to_lobby"}

    Post:
        {"action": "message", "text": "hi", "timestamp": 1700000000000}
        {"action": "action", "text": "waves", "timestamp": 1700000000000}

    Typing indicator:
        {"action": "typing", "room_id": "..."}
        {"action": "stop_typing", "room_id": "..."}

    List rooms:
        {"action": "list_rooms"}

    Server -> Client Messages:
    -------------------------
    {"type": "rooms_updated", "rooms": [{"id", "name", "requires_secret"}]}
    {"type": "user_list_updated", "room_id": "...", "members": [...]}
    {"type": "chat_event", "room_id", "kind", "author", "text", "timestamp"}
    {"type": "typing_state", "room_id", "author", "is_typing"}
    {"type": "action_feedback", "message": "...", "code": "..."}
    {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Connection accepted, current room list sent
    2. Client claims a name, then creates/joins rooms
    3. On disconnect the client leaves its room and its session is dropped

    Error Handling:
        - Invalid JSON / non-object frames: error message, connection stays
        - Unknown actions: error message
        - Connection errors: cleanup and log
    """
    connection_id = await state.connection_manager.connect(websocket)
    await state.relay.connect(connection_id)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            logger.debug("Websocket input from %s: %s", connection_id, message)
            try:
                await state.relay.handle(connection_id, message)
            except UnknownAction:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": f"Unknown action: {message.get('action')}",
                    }
                )

    except WebSocketDisconnect:
        logger.info("Connection %s disconnected", connection_id)
    except Exception as e:
        logger.error("WebSocket error on %s: %s", connection_id, e)
    finally:
        state.connection_manager.disconnect(connection_id)
        await state.relay.disconnect(connection_id)

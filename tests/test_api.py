from pinchat.core import state


def receive_until(ws, type_):
    """Read frames until one of the given type shows up."""
    while True:
        message = ws.receive_json()
        if message["type"] == type_:
            return message


# ============================================================================
# REST
# ============================================================================

def test_root(client):
    body = client.get("/").json()

    assert body["endpoints"]["websocket"] == "/ws"


def test_rooms_lists_default_room(client):
    response = client.get("/rooms")

    assert response.status_code == 200
    assert response.json() == [{"id": "general", "name": "General", "requires_secret": False}]


def test_health_and_metrics_on_fresh_state(client):
    health = client.get("/health").json()
    metrics = client.get("/metrics").json()

    assert health == {
        "status": "healthy",
        "connections": 0,
        "rooms": 1,
        "active_rooms_with_members": 0,
    }
    assert metrics["messages_relayed"] == 0
    assert metrics["total_rooms"] == 1
    assert metrics["concurrent_connections"] == 0


# ============================================================================
# WebSocket
# ============================================================================

def test_websocket_rejects_garbage(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "rooms_updated"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

        ws.send_json(["a", "list"])
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"action": "explode"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown action: explode"}

        ws.send_json({"action": "leave_room"})
        assert ws.receive_json()["code"] == "not_in_room"


def test_websocket_chat_between_two_clients(client):
    with client.websocket_connect("/ws") as bob:
        assert bob.receive_json()["type"] == "rooms_updated"

        with client.websocket_connect("/ws") as alice:
            assert alice.receive_json()["type"] == "rooms_updated"

            alice.send_json({"action": "set_name", "name": "alice"})
            assert alice.receive_json() == {"type": "name_accepted", "name": "alice"}
            receive_until(bob, "rooms_updated")

            bob.send_json({"action": "set_name", "name": "bob"})
            assert bob.receive_json() == {"type": "name_accepted", "name": "bob"}
            receive_until(alice, "rooms_updated")

            alice.send_json({"action": "create_room", "name": "Plans", "secret": "1234"})
            joined = receive_until(alice, "room_joined")
            assert joined["name"] == "Plans"
            assert joined["members"] == ["alice"]
            rooms = receive_until(bob, "rooms_updated")["rooms"]
            assert {"id": joined["room_id"], "name": "Plans", "requires_secret": True} in rooms

            bob.send_json({"action": "join_by_secret", "secret": "1234"})
            assert receive_until(bob, "room_joined")["members"] == ["alice", "bob"]
            assert receive_until(alice, "user_list_updated")["members"] == ["alice", "bob"]

            alice.send_json({"action": "message", "text": "hi", "timestamp": 42})
            for ws in (alice, bob):
                event = receive_until(ws, "chat_event")
                while event["kind"] == "system":
                    event = receive_until(ws, "chat_event")
                assert event["author"] == "alice"
                assert event["text"] == "hi"
                assert event["timestamp"] == 42

            bob.send_json({"action": "typing", "room_id": joined["room_id"]})
            typing = receive_until(alice, "typing_state")
            assert typing == {
                "type": "typing_state",
                "room_id": joined["room_id"],
                "author": "bob",
                "is_typing": True,
            }

    assert state.relay.messages_relayed == 1


def test_websocket_survives_non_finite_timestamp(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "set_name", "name": "alice"})
        receive_until(ws, "name_accepted")
        ws.send_json({"action": "switch_room", "room_id": "general"})
        receive_until(ws, "room_joined")

        ws.send_text('{"action": "message", "text": "hi", "timestamp": NaN}')
        event = receive_until(ws, "chat_event")
        assert event["text"] == "hi"
        assert isinstance(event["timestamp"], int)

        ws.send_text('{"action": "message", "text": "again", "timestamp": 1e400}')
        assert receive_until(ws, "chat_event")["text"] == "again"

        ws.send_json({"action": "list_rooms"})
        assert receive_until(ws, "rooms_updated")["rooms"][0]["id"] == "general"

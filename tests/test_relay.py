import asyncio

import pytest

from pinchat.services.coordinator import to_all, to_connection, to_room, to_room_except
from pinchat.services.relay import UnknownAction

from conftest import BrokenChannel, RecordingChannel


def connect(relay, connections, channel):
    connection_id = connections.register(channel)
    asyncio.run(relay.connect(connection_id))
    return connection_id


def send(relay, connection_id, **message):
    return asyncio.run(relay.handle(connection_id, message))


# ============================================================================
# NotificationFanout
# ============================================================================

def test_fanout_scopes(relay, connections, coordinator):
    a, b, lobby = RecordingChannel(), RecordingChannel(), RecordingChannel()
    a_id = connect(relay, connections, a)
    b_id = connect(relay, connections, b)
    connect(relay, connections, lobby)
    for conn, name in ((a_id, "alice"), (b_id, "bob")):
        coordinator.claim_name(conn, name)
        coordinator.switch_room(conn, "general")
    for channel in (a, b, lobby):
        channel.clear()

    asyncio.run(
        relay.fanout.deliver(
            [
                to_connection(a_id, {"type": "one"}),
                to_room("general", {"type": "room"}),
                to_room_except("general", a_id, {"type": "others"}),
                to_all({"type": "everyone"}),
            ]
        )
    )

    assert [m["type"] for m in a.sent] == ["one", "room", "everyone"]
    assert [m["type"] for m in b.sent] == ["room", "others", "everyone"]
    assert [m["type"] for m in lobby.sent] == ["everyone"]


def test_fanout_failure_does_not_stop_delivery(relay, connections, caplog):
    good_before, good_after = RecordingChannel(), RecordingChannel()
    connections.register(good_before)
    connections.register(BrokenChannel())
    connections.register(good_after)

    delivered = asyncio.run(relay.fanout.to_all({"type": "ping"}))

    assert delivered == 2
    assert good_before.sent == [{"type": "ping"}]
    assert good_after.sent == [{"type": "ping"}]
    assert "Send error" in caplog.text


def test_fanout_to_vanished_connection_is_logged(relay, caplog):
    assert asyncio.run(relay.fanout.to_connection("gone", {"type": "ping"})) == 0
    assert "Send error" in caplog.text


# ============================================================================
# ChatRelay dispatch
# ============================================================================

def test_unknown_action_raises(relay, connections):
    conn = connect(relay, connections, RecordingChannel())

    with pytest.raises(UnknownAction):
        send(relay, conn, action="explode")


def test_list_rooms_answers_requester_only(relay, connections):
    a, b = RecordingChannel(), RecordingChannel()
    a_id = connect(relay, connections, a)
    connect(relay, connections, b)
    a.clear()
    b.clear()

    send(relay, a_id, action="list_rooms")

    assert a.of_type("rooms_updated")[0]["rooms"][0]["id"] == "general"
    assert b.sent == []


def test_rejections_reach_only_the_requester(relay, connections):
    a, b = RecordingChannel(), RecordingChannel()
    a_id = connect(relay, connections, a)
    connect(relay, connections, b)
    b.clear()

    send(relay, a_id, action="join_by_secret", secret="1234")

    assert a.sent[-1] == {
        "type": "action_feedback",
        "message": "Please set your username first.",
        "code": "not_named_yet",
    }
    assert b.sent == []


def test_room_members_see_events_in_the_same_order(relay, connections):
    channels = [RecordingChannel() for _ in range(3)]
    ids = [connect(relay, connections, c) for c in channels]
    for conn, name in zip(ids, ("alice", "bob", "carol")):
        send(relay, conn, action="set_name", name=name)
        send(relay, conn, action="switch_room", room_id="general")
    for channel in channels:
        channel.clear()

    send(relay, ids[0], action="message", text="one", timestamp=1)
    send(relay, ids[1], action="action", text="waves", timestamp=2)
    send(relay, ids[2], action="rename", name="caroline")
    send(relay, ids[0], action="message", text="two", timestamp=3)

    seen = [[m["text"] for m in c.of_type("chat_event")] for c in channels]
    assert seen[0] == ["one", "waves", "carol is now caroline.", "two"]
    assert seen[0] == seen[1] == seen[2]
    assert relay.messages_relayed == 3


def test_typing_relayed_to_others(relay, connections):
    a, b = RecordingChannel(), RecordingChannel()
    a_id, b_id = connect(relay, connections, a), connect(relay, connections, b)
    for conn, name in ((a_id, "alice"), (b_id, "bob")):
        send(relay, conn, action="set_name", name=name)
        send(relay, conn, action="switch_room", room_id="general")
    a.clear()
    b.clear()

    send(relay, a_id, action="typing", room_id="general")
    send(relay, a_id, action="stop_typing", room_id="general")

    assert a.sent == []
    assert [m["is_typing"] for m in b.of_type("typing_state")] == [True, False]


def test_full_session_scenario(relay, connections, coordinator, rooms):
    a, b = RecordingChannel(), RecordingChannel()
    a_id = connect(relay, connections, a)
    b_id = connect(relay, connections, b)

    # alice claims a name and enters the default room
    send(relay, a_id, action="set_name", name="alice")
    assert a.of_type("name_accepted") == [{"type": "name_accepted", "name": "alice"}]
    send(relay, a_id, action="switch_room", room_id="general")
    joined = a.of_type("room_joined")[-1]
    assert joined["members"] == ["alice"]
    assert [e["text"] for e in joined["history"]] == ["alice has joined the room."]

    # bob cannot take "alice" while she is in a room
    send(relay, b_id, action="set_name", name="alice")
    assert b.sent[-1]["type"] == "name_rejected"
    assert b.sent[-1]["code"] == "name_taken"
    send(relay, b_id, action="set_name", name="bob")
    assert b.of_type("name_accepted") == [{"type": "name_accepted", "name": "bob"}]

    # alice creates Plans and is moved out of the default room
    b.clear()
    send(relay, a_id, action="create_room", name="Plans", secret="1234")
    plans_id = a.of_type("room_joined")[-1]["room_id"]
    listed = b.of_type("rooms_updated")[-1]["rooms"]
    assert {"id": plans_id, "name": "Plans", "requires_secret": True} in listed
    assert {"id": "general", "name": "General", "requires_secret": False} in listed
    assert rooms.get_room("general").members == set()
    assert rooms.get_room(plans_id).members == {"alice"}

    # bob joins by PIN, both get the new user list
    a.clear()
    send(relay, b_id, action="join_by_secret", secret="1234")
    assert a.of_type("user_list_updated")[-1]["members"] == ["alice", "bob"]
    assert b.of_type("user_list_updated")[-1]["members"] == ["alice", "bob"]

    # alice posts
    a.clear()
    b.clear()
    send(relay, a_id, action="message", text="hi", timestamp=1234567890, room_id=plans_id)
    expected = {
        "type": "chat_event",
        "room_id": plans_id,
        "kind": "message",
        "author": "alice",
        "text": "hi",
        "timestamp": 1234567890,
    }
    assert a.sent == [expected]
    assert b.sent == [expected]

    # alice disconnects, Plans survives with bob
    b.clear()
    connections.disconnect(a_id)
    asyncio.run(relay.disconnect(a_id))
    assert b.of_type("chat_event")[-1]["text"] == "alice has disconnected."
    assert b.of_type("user_list_updated")[-1]["members"] == ["bob"]
    assert rooms.get_room(plans_id).members == {"bob"}

    # bob leaves, Plans is gone from the list
    b.clear()
    send(relay, b_id, action="leave_room")
    assert b.of_type("returned_to_lobby") == [{"type": "returned_to_lobby"}]
    assert [r["id"] for r in b.of_type("rooms_updated")[-1]["rooms"]] == ["general"]
    assert rooms.get_room(plans_id) is None
    assert rooms.get_room("general") is not None


@pytest.mark.parametrize("timestamp", [float("nan"), float("inf")])
def test_non_finite_timestamp_is_restamped(relay, connections, timestamp):
    a = RecordingChannel()
    a_id = connect(relay, connections, a)
    send(relay, a_id, action="set_name", name="alice")
    send(relay, a_id, action="switch_room", room_id="general")
    a.clear()

    send(relay, a_id, action="message", text="hi", timestamp=timestamp)

    event = a.of_type("chat_event")[0]
    assert event["text"] == "hi"
    assert isinstance(event["timestamp"], int)

import pytest
from fastapi.testclient import TestClient

from pinchat.core import state
from pinchat.core.config import Settings
from pinchat.services.connection_manager import ConnectionManager
from pinchat.services.coordinator import MembershipCoordinator
from pinchat.services.fanout import NotificationFanout
from pinchat.services.relay import ChatRelay
from pinchat.services.room_registry import RoomRegistry
from pinchat.services.session_registry import SessionRegistry


class RecordingChannel:
    """Stand-in for a WebSocket that keeps everything sent to it."""

    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    def of_type(self, type_):
        return [m for m in self.sent if m["type"] == type_]

    def clear(self):
        self.sent.clear()


class BrokenChannel:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


def make_settings(**overrides):
    values = dict(
        DEFAULT_ROOM_ID="general",
        DEFAULT_ROOM_NAME="General",
        AUTO_JOIN_DEFAULT_ROOM=False,
        ALLOW_LEAVE_DEFAULT_ROOM=True,
        HISTORY_LIMIT=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sessions():
    return SessionRegistry()


@pytest.fixture
def rooms():
    return RoomRegistry()


@pytest.fixture
def coordinator(sessions, rooms, settings):
    return MembershipCoordinator(sessions, rooms, settings)


@pytest.fixture
def connections():
    return ConnectionManager()


@pytest.fixture
def relay(coordinator, connections, sessions):
    return ChatRelay(coordinator, NotificationFanout(connections, sessions))


@pytest.fixture
def client():
    state.reset(make_settings())
    from pinchat.main import app

    with TestClient(app) as client:
        yield client

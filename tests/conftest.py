"""Shared fixtures: a fake WebSocket and a fresh ConnectionManager per test."""
import pytest

from taskhub.services.connection_manager import ConnectionManager


class FakeWebSocket:
    def __init__(self, fail_on_send: bool = False):
        self.accepted = False
        self.sent = []
        self.fail_on_send = fail_on_send

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail_on_send:
            raise RuntimeError("socket closed")
        self.sent.append(data)


@pytest.fixture
def fake_websocket():
    return FakeWebSocket


@pytest.fixture
def manager():
    return ConnectionManager(queue_size=16)


@pytest.fixture
def connect(manager):
    """Open a connection on the test manager: ``conn = await connect("alice")``."""
    async def _connect(user_id="anonymous", **ws_kwargs):
        return await manager.connect(FakeWebSocket(**ws_kwargs), user_id)
    return _connect


@pytest.fixture
def drain():
    """Pop every frame queued for a connection."""
    def _drain(connection):
        frames = []
        while not connection.outbox.empty():
            frames.append(connection.outbox.get_nowait())
        return frames
    return _drain

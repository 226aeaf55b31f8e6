import json

import pytest

from frame0_communicator import Frame0Communicator
from frame0_errors import TransportUnavailableError


class FakeTransport:
    """In-memory transport: records sent commands, lets tests deliver responses."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sent = []
        self.on_message = None
        self.on_disconnect = None

    def set_message_listener(self, listener):
        self.on_message = listener

    def set_disconnect_listener(self, listener):
        self.on_disconnect = listener

    async def send(self, raw):
        if not self.connected:
            raise TransportUnavailableError("Not connected to Frame0")
        self.sent.append(json.loads(raw))

    def deliver(self, message):
        self.on_message(message)

    def respond(self, request, payload, ok=True):
        self.deliver({"id": request["id"], "ok": ok, "payload": payload})

    def drop(self, reason="connection closed"):
        self.connected = False
        self.on_disconnect(reason)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def communicator(transport):
    return Frame0Communicator(transport, timeout=1.0)

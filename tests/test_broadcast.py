import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.frames import Close

from evsim.broadcast import Broadcaster, ConnectedClient
from evsim.state_machine import DeviceState

from conftest import FakeClient


class RecordingSocket:
    def __init__(self, error=None):
        self.error = error
        self.frames = []

    async def send(self, text):
        if self.error is not None:
            raise self.error
        self.frames.append(json.loads(text))


async def wait_closed(client, timeout=2):
    async def _poll():
        while not client.closed:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.mark.asyncio
async def test_messages_written_in_order():
    socket = RecordingSocket()
    client = ConnectedClient(socket, name="ordered")
    client.start()
    for i in range(3):
        client.send({"event": "n", "i": i})
    await asyncio.sleep(0.05)
    assert [f["i"] for f in socket.frames] == [0, 1, 2]
    await client.close()
    assert client.closed


@pytest.mark.asyncio
async def test_send_failure_marks_client_closed():
    client = ConnectedClient(RecordingSocket(error=RuntimeError("socket gone bad")), name="broken")
    client.start()
    client.send({"event": "first"})
    client.send({"event": "second"})
    await wait_closed(client)

    # later messages are dropped instead of piling up
    client.send({"event": "third"})
    assert client.outbox.empty()
    await client.close()


@pytest.mark.asyncio
async def test_connection_closed_marks_client_closed():
    error = ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"))
    client = ConnectedClient(RecordingSocket(error=error), name="gone")
    client.start()
    client.send({"event": "first"})
    await wait_closed(client)
    client.send({"event": "second"})
    assert client.outbox.empty()
    await client.close()


@pytest.mark.asyncio
async def test_request_telemetry_debounced():
    hub = Broadcaster(DeviceState(), delay=0.01)
    client = FakeClient()
    hub.add(client)
    builds = []

    def build():
        builds.append(1)
        return {"type": "telemetry", "event": "telemetry"}

    for _ in range(5):
        hub.request_telemetry(build)
    await asyncio.sleep(0.05)
    assert len(builds) == 1
    assert len(client.events("telemetry")) == 1

    hub.request_telemetry(build)
    hub.cancel()
    await asyncio.sleep(0.05)
    assert len(builds) == 1


def test_broadcast_reaches_every_client():
    hub = Broadcaster(DeviceState())
    clients = [FakeClient(f"c{i}") for i in range(3)]
    for client in clients:
        hub.add(client)
    assert hub.broadcast({"event": "ping"}) == 3
    hub.remove(clients[0])
    assert hub.broadcast({"event": "ping"}) == 2
    assert [len(c.sent) for c in clients] == [1, 2, 2]

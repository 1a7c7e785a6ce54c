import asyncio
import json
import random

import httpx
import pytest
import pytest_asyncio
from websockets import serve

from evsim.charger import ChargerSimulator, create_app
from evsim.storage import MemoryStore


class FakeClient:
    """Stands in for a ConnectedClient; records everything sent to it."""

    def __init__(self, name: str = "fake"):
        self.name = name
        self.sent = []

    def send(self, message):
        self.sent.append(message)

    def events(self, name):
        return [m for m in self.sent if m.get("event") == name]


async def recv_until(ws, predicate, timeout: float = 5):
    """Read JSON frames until one matches ``predicate`` and return it."""

    async def _read():
        while True:
            message = json.loads(await ws.recv())
            if predicate(message):
                return message

    return await asyncio.wait_for(_read(), timeout=timeout)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sim(store):
    sim = ChargerSimulator(
        device_id="wtl-302509990001",
        store=store,
        telemetry_period=0.05,
        broadcast_delay=0.01,
        rng=random.Random(7),
    )
    yield sim
    sim.hub.cancel()


@pytest.fixture
def fake_client(sim):
    client = FakeClient()
    sim.hub.add(client)
    return client


@pytest_asyncio.fixture
async def simulator(sim):
    transport = httpx.ASGITransport(app=create_app(sim))
    async with serve(sim.handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield {"sim": sim, "url": f"ws://127.0.0.1:{port}", "client": client}

import asyncio
import json

import pytest
import websockets

from conftest import recv_until


async def read_hello(ws):
    hello = json.loads(await asyncio.wait_for(ws.recv(), timeout=5))
    assert hello["event"] == "hello"
    return hello


@pytest.mark.asyncio
async def test_hello_sent_on_connect(simulator):
    sim = simulator["sim"]
    sim.rfids.add("CARD001", "user-1")

    async with websockets.connect(simulator["url"]) as ws:
        hello = await read_hello(ws)
        assert hello["deviceId"] == sim.model.device_id
        assert hello["info"]["model"] == "WTL-22KW"
        assert hello["rfids"] == [{"number": 1, "id": "CARD001", "userId": "user-1"}]
        assert hello["network"]["ssid"] == "WiseCar-990001"
        assert hello["status"]["charging"] is False


@pytest.mark.asyncio
async def test_periodic_telemetry(simulator):
    async with websockets.connect(simulator["url"]) as ws:
        await read_hello(ws)
        frame = await recv_until(ws, lambda m: m.get("type") == "telemetry")
        assert frame["telemetry"]["status"] == "connected"
        assert frame["telemetry"]["currentA"] == 0


@pytest.mark.asyncio
async def test_start_charging_reflected_in_telemetry(simulator):
    async with websockets.connect(simulator["url"]) as ws:
        await read_hello(ws)
        await ws.send(json.dumps({"type": "action", "command": "start_charging", "data": {}}))

        reply = await recv_until(ws, lambda m: m.get("type") == "response")
        assert reply["command"] == "start_charging"
        assert reply["success"] is True

        frame = await recv_until(
            ws, lambda m: m.get("type") == "telemetry" and m["telemetry"]["status"] == "charging"
        )
        assert frame["telemetry"]["currentA"] > 0
        assert frame["lastSession"]["sessionId"] == reply["data"]["sessionId"]

        await ws.send(json.dumps({"type": "action", "command": "stop_charging", "data": {}}))
        reply = await recv_until(ws, lambda m: m.get("command") == "stop_charging" and m.get("type") == "response")
        assert reply["success"] is True


@pytest.mark.asyncio
async def test_tap_broadcast_to_other_client(simulator):
    simulator["sim"].rfids.add("CARD001")

    async with websockets.connect(simulator["url"]) as first, websockets.connect(simulator["url"]) as second:
        await read_hello(first)
        await read_hello(second)

        await first.send(json.dumps({"action": "tap_rfid", "rfidId": "CARD001"}))
        reply = await recv_until(first, lambda m: "ack" in m)
        assert reply["ack"] is True

        event = await recv_until(second, lambda m: m.get("event") == "rfid_tap", timeout=2)
        assert event["data"]["charging"] is True
        assert event["data"]["id"] == "CARD001"


@pytest.mark.asyncio
async def test_malformed_frame_keeps_connection_open(simulator):
    async with websockets.connect(simulator["url"]) as ws:
        await read_hello(ws)
        await ws.send("this is not json")
        reply = await recv_until(ws, lambda m: "ack" in m)
        assert reply == {"ack": False, "msg": "Invalid command format"}

        await ws.send(json.dumps({"action": "ping"}))
        reply = await recv_until(ws, lambda m: "ack" in m)
        assert reply["msg"] == "pong"


@pytest.mark.asyncio
async def test_disconnect_removes_client(simulator):
    sim = simulator["sim"]
    async with websockets.connect(simulator["url"]) as ws:
        await read_hello(ws)
        assert len(sim.model.state.clients) == 1

    for _ in range(100):
        if not sim.model.state.clients:
            break
        await asyncio.sleep(0.02)
    assert not sim.model.state.clients
    assert sim.telemetry.sample()["telemetry"]["status"] == "disconnected"
    timers = [t for t in asyncio.all_tasks() if t.get_coro().__name__ == "telemetry_loop"]
    assert timers == []


@pytest.mark.asyncio
async def test_session_survives_client_disconnect(simulator):
    sim = simulator["sim"]
    async with websockets.connect(simulator["url"]) as ws:
        await read_hello(ws)
        await ws.send(json.dumps({"action": "start"}))
        reply = await recv_until(ws, lambda m: "ack" in m)
        assert reply["ack"] is True

    async with websockets.connect(simulator["url"]) as ws:
        hello = await read_hello(ws)
        assert hello["status"]["charging"] is True
        assert sim.sessions.active is not None

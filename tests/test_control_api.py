import pytest


@pytest.mark.asyncio
async def test_health_endpoint(simulator):
    client = simulator["client"]
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.asyncio
async def test_start_and_stop(simulator):
    client = simulator["client"]

    resp = await client.post("/sessions/start", json={"userId": "user-1"})
    assert resp.status_code == 200
    session = resp.json()["session"]
    assert session["sessionStatus"] == "started"
    assert session["sessionUserId"] == "user-1"

    resp = await client.post("/sessions/start", json={})
    assert resp.status_code == 409

    resp = await client.post("/sessions/stop", json={"reason": "test over"})
    assert resp.status_code == 200
    assert resp.json()["session"]["sessionId"] == session["sessionId"]
    assert resp.json()["session"]["sessionStatus"] == "completed"

    resp = await client.post("/sessions/stop")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_start_with_unknown_rfid_returns_404(simulator):
    client = simulator["client"]
    resp = await client.post("/sessions/start", json={"rfidId": "NOPE"})
    assert resp.status_code == 404
    assert simulator["sim"].sessions.log == []


@pytest.mark.asyncio
async def test_simulate_rfid(simulator):
    client = simulator["client"]
    sim = simulator["sim"]

    resp = await client.post("/simulate-rfid/CARD001")
    assert resp.status_code == 200
    assert resp.json()["success"] is False

    sim.rfids.add("CARD001")
    resp = await client.post("/simulate-rfid/CARD001")
    body = resp.json()
    assert body["success"] is True
    assert body["charging"] is True
    assert body["currentRFID"] == "CARD001"

    resp = await client.post("/simulate-rfid/CARD001")
    assert resp.json()["charging"] is False


@pytest.mark.asyncio
async def test_unsynced_peek_and_ack(simulator):
    client = simulator["client"]
    sim = simulator["sim"]
    for _ in range(3):
        sim.sessions.start_session()
        sim.sessions.stop_session("done")

    first = (await client.get("/sessions/unsynced")).json()
    second = (await client.get("/sessions/unsynced")).json()
    assert first["count"] == second["count"] == 3

    resp = await client.post("/sessions/ack", json={"sessionIds": ["session_000000001", "session_000000002"]})
    assert resp.json() == {"ok": True, "acknowledged": 2}
    assert (await client.get("/sessions/unsynced")).json()["count"] == 1


@pytest.mark.asyncio
async def test_status_and_listings(simulator):
    client = simulator["client"]
    sim = simulator["sim"]
    sim.rfids.add("CARD001")
    for _ in range(2):
        sim.sessions.start_session()
        sim.sessions.stop_session("done")

    status = (await client.get("/status")).json()
    assert status["deviceId"] == sim.model.device_id
    assert status["rfidCount"] == 1
    assert status["totalSessions"] == 2

    rfids = (await client.get("/rfids")).json()
    assert rfids["count"] == 1

    sessions = (await client.get("/sessions", params={"limit": 1})).json()
    assert [s["sessionId"] for s in sessions["sessions"]] == ["session_000000002"]
    assert sessions["totalSessions"] == 2


@pytest.mark.asyncio
async def test_rfid_add_and_delete(simulator):
    client = simulator["client"]
    sim = simulator["sim"]

    resp = await client.post("/rfids", json={"id": "CARD001", "userId": "user-1"})
    assert resp.status_code == 200
    assert resp.json()["rfid"] == {"number": 1, "id": "CARD001", "userId": "user-1"}

    resp = await client.post("/rfids", json={"id": "CARD001"})
    assert resp.status_code == 409

    resp = await client.post("/rfids", json={"id": ""})
    assert resp.status_code == 400

    await client.post("/simulate-rfid/CARD001")
    assert sim.model.state.is_charging

    resp = await client.delete("/rfids/CARD001")
    assert resp.status_code == 200
    assert not sim.model.state.is_charging

    resp = await client.delete("/rfids/CARD001")
    assert resp.status_code == 404

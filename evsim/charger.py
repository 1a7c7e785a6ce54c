import argparse
import asyncio
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from websockets import serve
from websockets.exceptions import ConnectionClosed

from .config import *
from .broadcast import Broadcaster, ConnectedClient
from .errors import RfidNotFound, SimulatorError, StateConflict
from .protocol import ProtocolDispatcher, build_hello
from .rfid import RfidRegistry
from .sessions import SessionManager
from .state_machine import ChargerModel, DeviceState, NetworkConfig
from .storage import JsonStore, MemoryStore
from .telemetry import TelemetryGenerator


class ChargerSimulator:
    """One simulated charger: domain state, registry, sessions and transport."""

    def __init__(
        self,
        device_id: str = DEVICE_ID,
        store=None,
        telemetry_period: float = TELEMETRY_PERIOD_SEC,
        broadcast_delay: float = BROADCAST_DELAY_SEC,
        rng=None,
    ):
        self.store = store if store is not None else JsonStore(DATA_DIR)
        self.model = ChargerModel(device_id, state=DeviceState(phases=PHASES))
        self.model.settings.limit_a = LIMIT_A
        saved_settings = self.store.load("device", None)
        if isinstance(saved_settings, dict):
            self.model.settings.update_from(saved_settings)
        saved_network = self.store.load("network", None)
        if isinstance(saved_network, dict):
            defaults = NetworkConfig().to_dict()
            self.model.network = NetworkConfig(**{k: saved_network.get(k, v) for k, v in defaults.items()})

        self.hub = Broadcaster(self.model.state, delay=broadcast_delay)
        self.sessions = SessionManager(self.model, self.store, notify=self.hub.broadcast)
        self.rfids = RfidRegistry(self.sessions, self.store)
        self.telemetry = TelemetryGenerator(self.model, self.sessions, period=telemetry_period, rng=rng)
        self.dispatcher = ProtocolDispatcher(
            self.model, self.sessions, self.rfids, self.telemetry, self.hub, self.store,
        )

    # -------- per-connection lifecycle --------
    async def handler(self, websocket):
        peer = websocket.remote_address
        client = ConnectedClient(websocket, name=f"{peer[0]}:{peer[1]}" if peer else "client")
        client.start()
        self.hub.add(client)
        client.send(build_hello(self.model, self.rfids))
        self.dispatcher.state_changed()

        ticker = asyncio.create_task(self.telemetry_loop(client))
        try:
            async for raw in websocket:
                self.dispatcher.dispatch(client, raw)
        except ConnectionClosed as e:
            logging.info(f"Connection to {client.name} lost: {e}")
        finally:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
            self.hub.remove(client)
            await client.close()
            self.dispatcher.state_changed()

    async def telemetry_loop(self, client: ConnectedClient):
        while True:
            await asyncio.sleep(self.telemetry.period)
            client.send(self.telemetry.sample())

    async def serve(self, host: str = WS_HOST, port: int = WS_PORT):
        async with serve(self.handler, host, port) as server:
            logging.info(f"WebSocket server listening on ws://{host}:{port} (device {self.model.device_id})")
            await server.serve_forever()


# -------- HTTP control for driving the simulator from test tooling --------
class StartReq(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")
    rfid_id: str | None = Field(default=None, alias="rfidId")

    model_config = ConfigDict(populate_by_name=True)


class StopReq(BaseModel):
    reason: str = "Manual stop"


class AckReq(BaseModel):
    session_ids: List[str] = Field(alias="sessionIds")

    model_config = ConfigDict(populate_by_name=True)


class RfidReq(BaseModel):
    id: str
    user_id: str | None = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


def http_error(e: SimulatorError) -> HTTPException:
    if isinstance(e, RfidNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StateConflict):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def create_app(sim: ChargerSimulator) -> FastAPI:
    app = FastAPI(title="Charger Simulator Control")

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/status")
    async def status():
        return sim.dispatcher.status_snapshot()

    @app.get("/rfids")
    async def list_rfids():
        return {"rfids": sim.rfids.to_list(), "count": len(sim.rfids)}

    @app.post("/rfids")
    async def add_rfid(req: RfidReq):
        try:
            record = sim.rfids.add(req.id, req.user_id)
        except SimulatorError as e:
            raise http_error(e) from e
        sim.dispatcher.state_changed()
        return {"ok": True, "rfid": record.to_dict()}

    @app.delete("/rfids/{rfid_id}")
    async def delete_rfid(rfid_id: str):
        try:
            record = sim.rfids.delete(rfid_id)
        except SimulatorError as e:
            raise http_error(e) from e
        sim.dispatcher.state_changed()
        return {"ok": True, "rfid": record.to_dict()}

    @app.post("/simulate-rfid/{rfid_id}")
    async def simulate_rfid(rfid_id: str):
        result = sim.dispatcher.tap(rfid_id)
        if result.accepted:
            sim.dispatcher.state_changed()
        return {
            "success": result.accepted,
            "message": result.reason,
            "rfidId": rfid_id,
            "charging": sim.model.state.is_charging,
            "currentRFID": sim.model.state.current_rfid,
            "session": result.session.to_dict() if result.session else None,
        }

    @app.get("/sessions")
    async def sessions(limit: int = HISTORY_LIMIT):
        active = sim.sessions.active
        return {
            "sessions": [s.to_dict() for s in sim.sessions.history(limit)],
            "activeSession": active.to_dict() if active else None,
            "totalSessions": len(sim.sessions.log),
        }

    @app.get("/sessions/unsynced")
    async def unsynced():
        pending = sim.sessions.pending_unsynced()
        return {"sessions": [s.to_dict() for s in pending], "count": len(pending)}

    @app.post("/sessions/ack")
    async def ack(req: AckReq):
        return {"ok": True, "acknowledged": sim.sessions.acknowledge(req.session_ids)}

    @app.post("/sessions/start")
    async def start(req: StartReq):
        if sim.sessions.active is not None:
            raise HTTPException(status_code=409, detail="Charging already in progress")
        if req.rfid_id is not None and sim.rfids.lookup(req.rfid_id) is None:
            raise HTTPException(status_code=404, detail=f"RFID {req.rfid_id} not authorized")
        session = sim.sessions.start_session(user_id=req.user_id, rfid_id=req.rfid_id)
        sim.dispatcher.state_changed()
        return {"ok": True, "session": session.to_dict()}

    @app.post("/sessions/stop")
    async def stop(req: Optional[StopReq] = None):
        session = sim.sessions.stop_session((req or StopReq()).reason)
        if session is None:
            raise HTTPException(status_code=409, detail="No active charging session")
        sim.dispatcher.state_changed()
        return {"ok": True, "session": session.to_dict()}

    return app


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Networked EV charger simulator")
    parser.add_argument("--host", default=WS_HOST)
    parser.add_argument("--ws-port", type=int, default=WS_PORT)
    parser.add_argument("--http-port", type=int, default=HTTP_PORT)
    parser.add_argument("--data-dir", default=DATA_DIR)
    parser.add_argument("--no-persist", action="store_true", help="keep all state in memory")
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s | %(levelname)s | %(message)s")
    store = MemoryStore() if args.no_persist else JsonStore(args.data_dir)
    sim = ChargerSimulator(store=store)

    # run WebSocket device and HTTP control API together
    server = uvicorn.Server(uvicorn.Config(create_app(sim), host=args.host, port=args.http_port, loop="asyncio", log_level="info"))
    api_task = asyncio.create_task(server.serve())
    try:
        await sim.serve(args.host, args.ws_port)
    finally:
        sim.hub.cancel()
        api_task.cancel()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

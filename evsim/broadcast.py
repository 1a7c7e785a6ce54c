from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

from websockets.exceptions import ConnectionClosed

from .state_machine import DeviceState


class ConnectedClient:
    """A connected app; outbound messages are queued and written in order."""

    def __init__(self, websocket, name: str = "client"):
        self.websocket = websocket
        self.name = name
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, message: Dict[str, Any]) -> None:
        if self.closed:
            logging.debug(f"Dropping {message.get('event') or message.get('command')} for closed {self.name}")
            return
        self.outbox.put_nowait(json.dumps(message))

    async def _write_loop(self) -> None:
        while True:
            text = await self.outbox.get()
            try:
                await self.websocket.send(text)
            except ConnectionClosed:
                logging.info(f"{self.name} closed, outbound message undeliverable")
                self._abandon()
                return
            except Exception:
                logging.exception(f"Sending to {self.name} failed, dropping connection output")
                self._abandon()
                return

    def _abandon(self) -> None:
        self.closed = True
        while not self.outbox.empty():
            self.outbox.get_nowait()

    async def close(self) -> None:
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None


class Broadcaster:
    def __init__(self, state: DeviceState, delay: float = 0.05):
        self.state = state
        self.delay = delay
        self._pending: Optional[asyncio.TimerHandle] = None

    def add(self, client) -> None:
        self.state.clients.add(client)
        logging.info(f"Client connected: {client.name} ({len(self.state.clients)} total)")

    def remove(self, client) -> None:
        self.state.clients.discard(client)
        logging.info(f"Client disconnected: {client.name} ({len(self.state.clients)} remaining)")

    def broadcast(self, message: Dict[str, Any]) -> int:
        clients = list(self.state.clients)
        for client in clients:
            client.send(message)
        logging.info(
            f"Broadcast {message.get('event') or message.get('command')} to {len(clients)} clients"
        )
        return len(clients)

    def request_telemetry(self, build: Callable[[], Dict[str, Any]]) -> None:
        """Broadcast one fresh telemetry sample after ``delay``.

        Requests made while one is pending collapse into it.
        """
        if self._pending is not None:
            return
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.delay, self._flush, build)

    def _flush(self, build: Callable[[], Dict[str, Any]]) -> None:
        self._pending = None
        self.broadcast(build())

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

"""Inbound command handling for both wire dialects.

Two message shapes are accepted on the same socket:

* v2.1 structured form, recognised by a ``type`` field::

      {"type": "action", "command": "start_charging", "data": {}}
      -> {"type": "response", "command": "start_charging", "success": true, "data": {...}}

* legacy flat form, selected by ``action`` (or ``command`` / ``config``)::

      {"action": "start"}
      -> {"ack": true, "msg": "Charging started", "session": {...}}

Every message is handled on its own against the current device state. Handlers
raise :class:`~evsim.errors.SimulatorError` subclasses for anything the client
got wrong; :meth:`ProtocolDispatcher.dispatch` turns those into rejection
replies so a bad command never closes the connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from . import config
from .errors import (
    MalformedEnvelope,
    SimulatorError,
    StateConflict,
    UnknownCommand,
    ValidationError,
)
from .rfid import RfidRegistry, TapResult, normalize_entry
from .sessions import SessionManager
from .state_machine import ChargerModel, iso, utcnow

Reply = Dict[str, Any]
Handler = Callable[[Any, Dict[str, Any], Dict[str, Any]], Reply]

MUTATING = {
    # shared by both dialects
    "add_rfid", "delete_rfid", "sync_rfids", "set_rfids", "network",
    "fastCharging", "autoPlug", "language", "rfidSupported",
    "set_limitA", "setTime", "set_limitTime",
    # v2.1
    "start_charging", "stop_charging", "rfid_tap",
    # legacy
    "start", "stop", "tap_rfid", "reset_energy", "rfid_add", "rfid_delete",
}


def parse_envelope(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelope(str(e)) from e
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedEnvelope(str(e)) from e
    if not isinstance(message, dict):
        raise MalformedEnvelope("expected a JSON object")
    return message


def require_str(fields: Dict[str, Any], key: str) -> str:
    value = fields.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{key} required")
    return value


def require_bool(fields: Dict[str, Any], key: str = "value") -> bool:
    value = fields.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


def require_int(fields: Dict[str, Any], key: str, low: int, high: Optional[int] = None) -> int:
    value = fields.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < low or (high is not None and value > high):
        bound = f"{low}-{high}" if high is not None else f">= {low}"
        raise ValidationError(f"{key} must be an integer {bound}")
    return value


def optional_int(fields: Dict[str, Any], key: str, default: int) -> int:
    if fields.get(key) is None:
        return default
    return require_int(fields, key, 1)


def v21_response(command: str, success: bool, data: Any = None, error: Optional[str] = None) -> Reply:
    reply: Reply = {"type": "response", "command": command, "success": success}
    if data is not None:
        reply["data"] = data
    if error is not None:
        reply["error"] = error
    reply["timestamp"] = iso(utcnow())
    return reply


def legacy_reply(ack: bool, msg: str, **extra: Any) -> Reply:
    return {"ack": ack, "msg": msg, **extra}


def build_hello(model: ChargerModel, rfids: RfidRegistry) -> Reply:
    """Handshake sent to every client right after it connects."""
    state = model.state
    network = model.network
    return {
        "event": "hello",
        "deviceId": model.device_id,
        "info": {
            "model": config.DEVICE_MODEL,
            "serial": config.DEVICE_SERIAL,
            "firmwareESP": config.FIRMWARE_ESP,
            "firmwareSTM": config.FIRMWARE_STM,
            "hardware": config.HARDWARE_REV,
        },
        "settings": {
            "rfidSupported": model.settings.rfid_supported,
            "autoPlug": model.settings.auto_plug,
            "fastCharging": model.settings.fast_charging,
            "language": model.settings.language,
            "limitA": model.settings.limit_a,
        },
        "warranty": {"start": config.WARRANTY_START, "end": config.WARRANTY_END},
        "rfids": rfids.to_list(),
        "network": {
            "mode": network.mode,
            "ssid": model.hotspot_ssid if network.mode == "hotspot" else network.ssid,
            "connected": True,
            "local": network.local,
        },
        "status": {
            "charging": state.is_charging,
            "connected": len(state.clients) > 0,
            "error": None,
            "lastUpdate": iso(utcnow()),
        },
    }


class ProtocolDispatcher:
    def __init__(
        self,
        model: ChargerModel,
        sessions: SessionManager,
        rfids: RfidRegistry,
        telemetry,
        hub,
        store,
        batch_size: int = config.UNSYNCED_BATCH_SIZE,
        history_limit: int = config.HISTORY_LIMIT,
        detection_delay: float = config.RFID_DETECTION_DELAY_SEC,
    ):
        self.model = model
        self.sessions = sessions
        self.rfids = rfids
        self.telemetry = telemetry
        self.hub = hub
        self.store = store
        self.batch_size = batch_size
        self.history_limit = history_limit
        self.detection_delay = detection_delay

        self.config_handlers: Dict[str, Handler] = {
            "network": self._v21_network,
            "add_rfid": self._v21_add_rfid,
            "delete_rfid": self._v21_delete_rfid,
            "sync_rfids": self._v21_sync_rfids,
            "fastCharging": self._v21_setting,
            "autoPlug": self._v21_setting,
            "language": self._v21_setting,
            "rfidSupported": self._v21_setting,
            "set_limitA": self._v21_setting,
            "setTime": self._v21_setting,
            "set_limitTime": self._v21_setting,
        }
        self.action_handlers: Dict[str, Handler] = {
            "start_charging": self._v21_start,
            "stop_charging": self._v21_stop,
            "get_unsynced_sessions": self._v21_unsynced,
            "ack_sessions": self._v21_ack_sessions,
            "get_sessions": self._v21_sessions,
            "get_status": self._v21_status,
            "ping": self._v21_ping,
        }
        self.event_handlers: Dict[str, Handler] = {
            "rfid_tap": self._v21_rfid_tap,
        }
        self.legacy_handlers: Dict[str, Callable[[Any, Dict[str, Any]], Optional[Reply]]] = {
            "start": self._legacy_start,
            "stop": self._legacy_stop,
            "get_status": self._legacy_status,
            "add_rfid": self._legacy_add_rfid,
            "delete_rfid": self._legacy_delete_rfid,
            "sync_rfids": self._legacy_sync_rfids,
            "set_rfids": self._legacy_sync_rfids,
            "tap_rfid": self._legacy_tap,
            "list_rfids": self._legacy_list_rfids,
            "get_rfids": self._legacy_get_rfids,
            "get_sessions": self._legacy_sessions,
            "get_active_session": self._legacy_active_session,
            "get_unsynced_sessions": self._legacy_unsynced,
            "ack_sessions_synced": self._legacy_ack_sessions,
            "network": self._legacy_network,
            "fastCharging": self._legacy_setting,
            "autoPlug": self._legacy_setting,
            "language": self._legacy_setting,
            "rfidSupported": self._legacy_setting,
            "set_limitA": self._legacy_setting,
            "setTime": self._legacy_setting,
            "set_limitTime": self._legacy_setting,
            "reset_energy": self._legacy_reset_energy,
            "ping": self._legacy_ping,
            # WiseCar app action family
            "rfid_add": self._legacy_rfid_add,
            "rfid_delete": self._legacy_rfid_delete,
            "rfid_numbers": self._legacy_rfid_numbers,
            "rfid_list": self._legacy_rfid_list,
            "rfid_detection": self._legacy_rfid_detection,
            "last_session": self._legacy_last_session,
            "get_session": self._legacy_get_session,
        }

    # ------------------------------------------------------------------ entry

    def dispatch(self, client, raw: Any) -> Optional[Reply]:
        """Handle one inbound frame and queue the reply to ``client``.

        Returns None for commands answered later instead of immediately.
        """
        logging.info(f"Received from {client.name}: {raw}")
        try:
            message = parse_envelope(raw)
        except MalformedEnvelope as e:
            logging.warning(f"Invalid command format from {client.name}: {e}")
            reply = legacy_reply(False, "Invalid command format")
            client.send(reply)
            return reply

        if "type" in message:
            name, reply = self._dispatch_v21(client, message)
            succeeded = reply.get("success") is True
        else:
            name, reply = self._dispatch_legacy(client, message)
            if reply is None:
                return None
            # app-family replies carry "ok" instead of "ack"
            succeeded = reply.get("ack", reply.get("ok")) is True

        client.send(reply)
        if succeeded and name in MUTATING:
            self.state_changed()
        return reply

    def state_changed(self) -> None:
        """Push a fresh telemetry sample to every client shortly."""
        self.hub.request_telemetry(self.telemetry.sample)

    def _dispatch_v21(self, client, message: Dict[str, Any]) -> Tuple[str, Reply]:
        kind = message.get("type")
        data = message.get("data") if isinstance(message.get("data"), dict) else {}
        if kind == "event":
            name = str(message.get("event") or "unknown")
            table, unknown = self.event_handlers, "Unknown event type"
        elif kind == "config":
            name = str(message.get("command") or "unknown")
            table, unknown = self.config_handlers, "Unknown config command"
        elif kind == "action":
            name = str(message.get("command") or "unknown")
            table, unknown = self.action_handlers, "Unknown action command"
        else:
            name = str(message.get("command") or "unknown")
            table, unknown = {}, "Unknown command type"

        try:
            handler = table.get(name)
            if handler is None:
                raise UnknownCommand(unknown)
            return name, handler(client, message, data)
        except SimulatorError as e:
            logging.info(f"Rejected {kind}/{name}: {e}")
            return name, v21_response(name, False, error=str(e))
        except Exception:
            logging.exception(f"Handler for {kind}/{name} failed")
            return name, v21_response(name, False, error="Internal error")

    def _dispatch_legacy(self, client, message: Dict[str, Any]) -> Tuple[str, Optional[Reply]]:
        name = message.get("action") or message.get("command") or message.get("config")
        if not isinstance(name, str):
            return "unknown", legacy_reply(False, "Unknown command")
        try:
            handler = self.legacy_handlers.get(name)
            if handler is None:
                raise UnknownCommand(f"Unknown action: {name}")
            return name, handler(client, message)
        except SimulatorError as e:
            logging.info(f"Rejected {name}: {e}")
            return name, legacy_reply(False, str(e))
        except Exception:
            logging.exception(f"Handler for {name} failed")
            return name, legacy_reply(False, "Internal error")

    # ------------------------------------------------------- shared operations

    def tap(self, tag_id: str) -> TapResult:
        result = self.rfids.tap(tag_id)
        logging.info(f"RFID tap {tag_id}: {'accepted' if result.accepted else 'rejected'} ({result.reason})")
        self.hub.broadcast({
            "type": "event",
            "event": "rfid_tap",
            "data": {
                "id": tag_id,
                "success": result.accepted,
                "message": result.reason,
                "sessionId": result.session.session_id if result.session else None,
                "charging": self.model.state.is_charging,
            },
            "timestamp": iso(utcnow()),
        })
        return result

    def _configure_network(self, fields: Dict[str, Any]) -> str:
        ssid = require_str(fields, "ssid")
        password = require_str(fields, "password")
        network = self.model.network
        network.ssid = ssid
        network.password = password
        network.local = bool(fields.get("local"))
        network.mode = "wifi"
        self.store.save("network", network.to_dict())
        logging.info(f"Network configured: SSID={ssid}, mode=wifi (simulator keeps its address)")

        update = build_hello(self.model, self.rfids)
        update.update({
            "type": "event",
            "event": "network_updated",
            "data": {"message": "Network configuration updated. Connection maintained for testing."},
            "timestamp": iso(utcnow()),
        })
        self.hub.broadcast(update)
        return ssid

    def _apply_setting(self, name: str, fields: Dict[str, Any]) -> Any:
        settings = self.model.settings
        if name in ("fastCharging", "autoPlug", "rfidSupported"):
            value = require_bool(fields)
            attr = {"fastCharging": "fast_charging", "autoPlug": "auto_plug", "rfidSupported": "rfid_supported"}[name]
            setattr(settings, attr, value)
        elif name == "language":
            value = settings.language = require_str(fields, "value")
        elif name == "set_limitA":
            value = settings.limit_a = require_int(fields, "value", 1)
        elif name == "setTime":
            value = {key: require_int(fields, key, 0) for key in ("year", "month", "day", "hour", "minute", "second")}
            value["setAt"] = iso(utcnow())
            settings.device_time = value
        elif name == "set_limitTime":
            hour = require_int(fields, "hour", 0, 23)
            minute = require_int(fields, "minute", 0, 59)
            settings.limit_time_hours, settings.limit_time_minutes = hour, minute
            value = {"hour": hour, "minute": minute}
        else:
            raise UnknownCommand(f"Unknown setting: {name}")
        self.store.save("device", settings.to_dict())
        logging.info(f"Setting {name} -> {value}")
        return value

    def status_snapshot(self) -> Dict[str, Any]:
        state = self.model.state
        active = self.sessions.active
        return {
            "deviceId": self.model.device_id,
            "status": state.status,
            "isCharging": state.is_charging,
            "currentRFID": state.current_rfid,
            "connectedClients": len(state.clients),
            "currentSession": active.to_dict() if active else None,
            "sessionEnergy": round(state.session_energy_kwh, 3),
            "totalEnergy": round(state.lifetime_energy_kwh, 3),
            "rfidCount": len(self.rfids),
            "totalSessions": len(self.sessions.log),
            "settings": self.model.settings.to_dict(),
            "uptime": self.model.uptime(),
        }

    # ---------------------------------------------------------- v2.1 handlers

    def _v21_network(self, client, message, data) -> Reply:
        ssid = self._configure_network(data)
        return v21_response("network", True, {
            "ssid": ssid,
            "status": "configured",
            "message": "Network configuration saved",
        })

    def _v21_add_rfid(self, client, message, data) -> Reply:
        record = self.rfids.add(require_str(data, "id"), data.get("userId"))
        return v21_response("add_rfid", True, {
            "id": record.id,
            "number": record.number,
            "message": "RFID added successfully",
        })

    def _v21_delete_rfid(self, client, message, data) -> Reply:
        record = self.rfids.delete(require_str(data, "id"))
        return v21_response("delete_rfid", True, {"id": record.id, "message": "RFID deleted successfully"})

    def _v21_sync_rfids(self, client, message, data) -> Reply:
        records = self.rfids.sync(data.get("rfids"))
        return v21_response("sync_rfids", True, {
            "rfids": [r.to_dict() for r in records],
            "count": len(records),
        })

    def _v21_setting(self, client, message, data) -> Reply:
        name = message["command"]
        value = self._apply_setting(name, data)
        return v21_response(name, True, {"value": value, "message": f"{name} updated"})

    def _v21_start(self, client, message, data) -> Reply:
        if self.sessions.active is not None:
            raise StateConflict("Device is already charging")
        session = self.sessions.start_session(user_id=data.get("userId") or message.get("userId"))
        return v21_response("start_charging", True, {
            "sessionId": session.session_id,
            "startTime": iso(session.start_at),
            "message": "Charging started successfully",
        })

    def _v21_stop(self, client, message, data) -> Reply:
        session = self.sessions.stop_session("Manual stop via WebSocket")
        if session is None:
            raise StateConflict("Device is not charging")
        return v21_response("stop_charging", True, {
            "sessionId": session.session_id,
            "endTime": iso(session.end_at),
            "energyConsumed": round(session.energy_kwh, 3),
            "message": "Charging stopped successfully",
        })

    def _v21_unsynced(self, client, message, data) -> Reply:
        batch = self.sessions.take_unsynced(optional_int(data, "batchSize", self.batch_size))
        logging.info(f"Sent {len(batch)} unsynced sessions, {len(self.sessions.pending_unsynced())} remaining")
        return v21_response("get_unsynced_sessions", True, {
            "sessions": [s.to_dict() for s in batch],
            "count": len(batch),
            "remaining": len(self.sessions.pending_unsynced()),
        })

    def _v21_ack_sessions(self, client, message, data) -> Reply:
        ids = data.get("sessionIds")
        if not isinstance(ids, list):
            raise ValidationError("sessionIds array required")
        return v21_response("ack_sessions", True, {"acknowledged": self.sessions.acknowledge(ids)})

    def _v21_sessions(self, client, message, data) -> Reply:
        limit = optional_int(data, "limit", self.history_limit)
        active = self.sessions.active
        return v21_response("get_sessions", True, {
            "sessions": [s.to_dict() for s in self.sessions.history(limit)],
            "activeSession": active.to_dict() if active else None,
            "totalSessions": len(self.sessions.log),
        })

    def _v21_status(self, client, message, data) -> Reply:
        return v21_response("get_status", True, self.status_snapshot())

    def _v21_ping(self, client, message, data) -> Reply:
        return v21_response("ping", True, {"message": "pong", "deviceStatus": "connected"})

    def _v21_rfid_tap(self, client, message, data) -> Reply:
        tag_id = require_str(data, "id")
        result = self.tap(tag_id)
        return v21_response(
            "rfid_tap",
            result.accepted,
            {
                "id": tag_id,
                "message": result.reason,
                "sessionId": result.session.session_id if result.session else None,
            },
            error=None if result.accepted else result.reason,
        )

    # -------------------------------------------------------- legacy handlers

    @staticmethod
    def _legacy_tag_id(message: Dict[str, Any]) -> str:
        for key in ("rfidId", "id", "rfid"):
            value = message.get(key)
            if isinstance(value, str) and value:
                return value
        raise ValidationError("RFID ID required")

    @staticmethod
    def _legacy_fields(message: Dict[str, Any]) -> Dict[str, Any]:
        data = message.get("data")
        return data if isinstance(data, dict) else message

    def _legacy_start(self, client, message) -> Reply:
        if self.sessions.active is not None:
            raise StateConflict("Already charging")
        session = self.sessions.start_session(user_id=message.get("userId"))
        return legacy_reply(True, "Charging started", session=session.to_dict())

    def _legacy_stop(self, client, message) -> Reply:
        session = self.sessions.stop_session("Manual stop via WebSocket")
        if session is None:
            raise StateConflict("Not charging")
        return legacy_reply(True, "Charging stopped", session=session.to_dict())

    def _legacy_status(self, client, message) -> Reply:
        status = self.status_snapshot()
        status["rfids"] = self.rfids.to_list()
        return legacy_reply(True, "Device status", status=status)

    def _legacy_add_rfid(self, client, message) -> Reply:
        entry = message.get("rfid") if isinstance(message.get("rfid"), dict) else message
        normalized = normalize_entry(entry)
        if normalized is None:
            raise ValidationError("Invalid RFID data")
        record = self.rfids.add(normalized["id"], normalized["userId"])
        return legacy_reply(True, "RFID added successfully", rfidId=record.id, number=record.number)

    def _legacy_delete_rfid(self, client, message) -> Reply:
        record = self.rfids.delete(self._legacy_tag_id(message))
        return legacy_reply(True, "RFID deleted successfully", rfidId=record.id)

    def _legacy_sync_rfids(self, client, message) -> Reply:
        entries = message.get("rfids")
        if not isinstance(entries, list):
            entries = self._legacy_fields(message).get("rfids")
        records = self.rfids.sync(entries)
        listing = self.rfids.to_list()
        self.hub.broadcast({
            "event": "rfid_list",
            "rfids": listing,
            "count": len(listing),
            "timestamp": iso(utcnow()),
        })
        return legacy_reply(True, f"Synced {len(records)} RFIDs successfully", count=len(records), rfids=listing)

    def _legacy_tap(self, client, message) -> Reply:
        tag_id = self._legacy_tag_id(message)
        result = self.tap(tag_id)
        return legacy_reply(
            result.accepted,
            result.reason,
            rfidId=tag_id,
            session=result.session.to_dict() if result.session else None,
        )

    def _legacy_list_rfids(self, client, message) -> Reply:
        state = self.model.state
        listing = self.rfids.to_list()
        client.send({
            "event": "rfid_list",
            "rfids": listing,
            "count": len(listing),
            "currentRFID": state.current_rfid,
            "charging": state.is_charging,
            "timestamp": iso(utcnow()),
        })
        return legacy_reply(True, f"Sent {len(listing)} RFIDs")

    def _legacy_get_rfids(self, client, message) -> Reply:
        listing = self.rfids.to_list()
        return legacy_reply(True, "RFID list", rfids=listing, count=len(listing))

    def _legacy_sessions(self, client, message) -> Reply:
        limit = optional_int(message, "limit", self.history_limit)
        active = self.sessions.active
        client.send({
            "event": "session_history",
            "sessions": [s.to_dict() for s in self.sessions.history(limit)],
            "activeSession": active.to_dict() if active else None,
            "totalSessions": len(self.sessions.log),
            "timestamp": iso(utcnow()),
        })
        return legacy_reply(True, f"Sent {len(self.sessions.log)} sessions")

    def _legacy_active_session(self, client, message) -> Reply:
        active = self.sessions.active
        if active is None:
            raise StateConflict("No active session")
        client.send({"event": "active_session", "session": active.to_dict(), "timestamp": iso(utcnow())})
        return legacy_reply(True, "Active session sent")

    def _legacy_unsynced(self, client, message) -> Reply:
        batch = self.sessions.take_unsynced(optional_int(message, "batchSize", self.batch_size))
        client.send({
            "event": "unsynced_sessions",
            "sessions": [s.to_dict() for s in batch],
            "count": len(batch),
            "timestamp": iso(utcnow()),
        })
        return legacy_reply(True, f"Sent {len(batch)} unsynced sessions")

    def _legacy_ack_sessions(self, client, message) -> Reply:
        ids = message.get("sessionIds")
        if not isinstance(ids, list):
            raise ValidationError("sessionIds array required")
        return legacy_reply(True, f"Acknowledged {self.sessions.acknowledge(ids)} sessions")

    def _legacy_network(self, client, message) -> Reply:
        try:
            ssid = self._configure_network(message)
        except ValidationError as e:
            logging.info(f"Rejected network: {e}")
            return legacy_reply(
                False,
                "Invalid network parameters (ssid and password required)",
                command="ack",
                ssid=message.get("ssid") or None,
                status="error",
            )
        return legacy_reply(
            True,
            "Network configuration saved",
            command="ack",
            ssid=ssid,
            status="ok",
        )

    def _legacy_setting(self, client, message) -> Reply:
        name = message.get("action") or message.get("command") or message.get("config")
        value = self._apply_setting(name, self._legacy_fields(message))
        return legacy_reply(True, "ok", value=value)

    def _legacy_reset_energy(self, client, message) -> Reply:
        self.sessions.reset_lifetime_energy()
        return legacy_reply(True, "Energy counter reset")

    def _legacy_ping(self, client, message) -> Reply:
        return legacy_reply(True, "pong", command="pong")

    # ------------------------------------------- WiseCar app action family

    @staticmethod
    def _rfid_entries(message: Dict[str, Any]) -> list:
        entries = message.get("rfids")
        if not isinstance(entries, list):
            raise ValidationError("Invalid RFID data")
        return entries

    def _legacy_rfid_add(self, client, message) -> Reply:
        added = self.rfids.add_many(self._rfid_entries(message))
        return {"event": "rfid_add", "ok": True, "added": len(added)}

    def _legacy_rfid_delete(self, client, message) -> Reply:
        deleted = self.rfids.delete_many(self._rfid_entries(message))
        return {"event": "rfid_delete", "ok": True, "deleted": len(deleted)}

    def _legacy_rfid_numbers(self, client, message) -> Reply:
        return {"event": "rfid_numbers", "numbers": len(self.rfids)}

    def _legacy_rfid_list(self, client, message) -> Reply:
        return {"event": "rfid_list", "rfids": self.rfids.to_list()}

    def _legacy_rfid_detection(self, client, message) -> None:
        detected = {"event": "rfid_detection", "rfid": config.DETECTED_RFID}
        asyncio.get_running_loop().call_later(self.detection_delay, client.send, detected)
        logging.info(f"RFID detection requested by {client.name}, answering in {self.detection_delay}s")
        return None

    def _legacy_last_session(self, client, message) -> Reply:
        session = self.sessions.last_session()
        if session is None:
            raise StateConflict("no session")
        return {"event": "last_session", "session": session.to_dict()}

    def _legacy_get_session(self, client, message) -> Reply:
        session_id = message.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise ValidationError("Session ID required")
        session = self.sessions.get(session_id)
        if session is None:
            raise StateConflict("no session")
        return {"event": "get_session", "session": session.to_dict()}

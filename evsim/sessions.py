from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from .state_machine import (
    ChargerModel,
    ChargingSession,
    SessionStatus,
    iso,
    utcnow,
)

SESSION_PREFIX = "session_"
SESSION_DIGITS = 9
_SESSION_RE = re.compile(rf"^{SESSION_PREFIX}(\d+)$")


def format_session_id(number: int) -> str:
    return f"{SESSION_PREFIX}{number:0{SESSION_DIGITS}d}"


def session_number(session_id: str) -> Optional[int]:
    m = _SESSION_RE.match(session_id or "")
    return int(m.group(1)) if m else None


class SessionManager:
    """Owns the charging-session lifecycle and the append-only session log.

    At most one session is ``started`` at a time. Every transition out of the
    active session goes through :meth:`force_stop`.
    """

    def __init__(
        self,
        model: ChargerModel,
        store,
        notify: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.model = model
        self.store = store
        self.notify = notify or (lambda message: None)
        self.log: List[ChargingSession] = []
        self.active: Optional[ChargingSession] = None
        self._next_number = 1
        self._load()

    @property
    def state(self):
        return self.model.state

    def _load(self) -> None:
        raw = self.store.load("sessions", [])
        if not isinstance(raw, list):
            logging.warning("Ignoring session log: expected a list")
            raw = []
        dirty = False
        for item in raw:
            if not isinstance(item, dict):
                logging.warning(f"Skipping unreadable session record {item!r}")
                continue
            try:
                session = ChargingSession.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logging.warning(f"Skipping unreadable session record {item!r}: {e}")
                continue
            if session.active:
                # the process died mid-session; the active slot does not survive a restart
                session.status = SessionStatus.COMPLETED
                session.end_at = session.end_at or utcnow()
                dirty = True
            self.log.append(session)
            number = session_number(session.session_id)
            if number is not None and number >= self._next_number:
                self._next_number = number + 1
        if self.log:
            logging.info(f"Loaded {len(self.log)} sessions, next id {format_session_id(self._next_number)}")
        if dirty:
            self.save()

    def save(self) -> None:
        self.store.save("sessions", [s.to_dict() for s in self.log])

    def _allocate_id(self) -> str:
        session_id = format_session_id(self._next_number)
        self._next_number += 1
        return session_id

    def start_session(self, user_id: Optional[str] = None, rfid_id: Optional[str] = None) -> ChargingSession:
        if self.active is not None:
            self.force_stop("Previous session auto-stopped")

        now = utcnow()
        session = ChargingSession(
            session_id=self._allocate_id(),
            start_at=now,
            user_id=user_id,
            rfid_id=rfid_id,
        )
        self.log.append(session)
        self.active = session

        state = self.state
        state.is_charging = True
        state.current_rfid = rfid_id
        state.session_energy_kwh = 0.0
        self.save()

        logging.info(f"Session started: {session.session_id} ({'RFID ' + rfid_id if rfid_id else 'manual'})")
        self.notify({
            "type": "event",
            "event": "session_started",
            "command": "start_charging",
            "success": True,
            "data": {
                "sessionId": session.session_id,
                "startTime": iso(session.start_at),
                "rfidId": rfid_id,
                "message": "Charging started successfully",
            },
            "timestamp": iso(now),
        })
        return session

    def stop_session(self, reason: str = "Session ended") -> Optional[ChargingSession]:
        return self.force_stop(reason)

    def force_stop(self, reason: str) -> Optional[ChargingSession]:
        session = self.active
        if session is None:
            return None

        now = utcnow()
        state = self.state
        session.end_at = now
        session.status = SessionStatus.COMPLETED
        session.energy_kwh = state.session_energy_kwh
        state.is_charging = False
        state.current_rfid = None
        self.active = None
        self.save()

        logging.info(f"Session completed: {session.session_id} | {session.energy_kwh:.3f} kWh | {reason}")
        self.notify({
            "type": "event",
            "event": "session_completed",
            "command": "stop_charging",
            "success": True,
            "data": {
                "sessionId": session.session_id,
                "endTime": iso(now),
                "energyDelivered": round(session.energy_kwh, 3),
                "reason": reason,
                "message": "Charging stopped successfully",
            },
            "timestamp": iso(now),
        })
        return session

    def accumulate(self, kwh: float) -> None:
        """Add delivered energy to the active session and the lifetime counter."""
        if self.active is None or kwh <= 0:
            return
        state = self.state
        state.session_energy_kwh += kwh
        state.lifetime_energy_kwh += kwh
        self.active.energy_kwh = state.session_energy_kwh

    def reset_lifetime_energy(self) -> None:
        self.state.lifetime_energy_kwh = 0.0

    def get(self, session_id: str) -> Optional[ChargingSession]:
        for session in self.log:
            if session.session_id == session_id:
                return session
        return None

    def last_session(self) -> Optional[ChargingSession]:
        if self.active is not None:
            return self.active
        return self.log[-1] if self.log else None

    def history(self, limit: int = 50) -> List[ChargingSession]:
        """Most recent first, at most ``limit`` entries."""
        if limit <= 0:
            return []
        return list(reversed(self.log[-limit:]))

    def pending_unsynced(self) -> List[ChargingSession]:
        return [s for s in self.log if s.unsynced and not s.active]

    def take_unsynced(self, batch_size: int = 5) -> List[ChargingSession]:
        """Return the oldest unsynced completed sessions and mark them synced.

        Delivery is at-most-once: a returned batch is never handed out again,
        whether or not the caller managed to forward it.
        """
        batch = self.pending_unsynced()[:max(batch_size, 0)]
        for session in batch:
            session.unsynced = False
        if batch:
            self.save()
        return batch

    def acknowledge(self, session_ids: Iterable[str]) -> int:
        wanted = set(session_ids)
        updated = 0
        for session in self.log:
            if session.session_id in wanted and session.unsynced:
                session.unsynced = False
                updated += 1
        if updated:
            self.save()
        return updated

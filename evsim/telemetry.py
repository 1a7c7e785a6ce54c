from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Dict, Optional

from .sessions import SessionManager
from .state_machine import ChargerModel, DeviceStatus, iso, utcnow


class TelemetryGenerator:
    """Synthetic measurements, and the only place energy is accumulated.

    Every per-connection timer calls :meth:`sample`; energy is integrated over
    the wall-clock time since the previous sample, capped at one period.
    """

    def __init__(
        self,
        model: ChargerModel,
        sessions: SessionManager,
        period: float = 1.0,
        rng: Optional[random.Random] = None,
    ):
        self.model = model
        self.sessions = sessions
        self.period = period
        self.rng = rng or random.Random()

    def _elapsed(self, now: datetime) -> float:
        state = self.model.state
        session = self.sessions.active
        if session is None:
            return 0.0
        since = session.start_at
        if state.last_sample_at is not None and state.last_sample_at > since:
            since = state.last_sample_at
        seconds = (now - since).total_seconds()
        return min(max(seconds, 0.0), self.period)

    def sample(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        state = self.model.state

        if not state.clients:
            state.status = DeviceStatus.DISCONNECTED
        else:
            state.status = DeviceStatus.CHARGING if state.is_charging else DeviceStatus.CONNECTED

        state.voltage_v = self.rng.randint(220, 240)
        if state.is_charging:
            limit = self.model.settings.limit_a
            state.current_a = round(limit * self.rng.uniform(0.8, 1.0), 2)
            state.power_kw = round(state.voltage_v * state.current_a * state.phases / 1000, 2)
            self.sessions.accumulate(state.power_kw * self._elapsed(now) / 3600)
        else:
            state.current_a = 0.0
            state.power_kw = 0.0
        state.last_sample_at = now

        last = self.sessions.last_session()
        if state.is_charging:
            logging.debug(
                f"Telemetry: {state.current_a}A x {state.voltage_v}V = {state.power_kw}kW, "
                f"session {state.session_energy_kwh:.3f} kWh"
            )
        return {
            "type": "telemetry",
            "event": "telemetry",
            "deviceId": self.model.device_id,
            "telemetry": {
                "status": state.status,
                "voltageV": state.voltage_v,
                "currentA": state.current_a,
                "powerKW": state.power_kw,
                "phases": state.phases,
                "temperatureC": state.temperature_c,
                "updatedAt": iso(now),
            },
            "lastSession": last.to_dict() if last is not None else None,
        }

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(ts: Optional[datetime]) -> Optional[str]:
    """Format like JavaScript's toISOString(): millisecond precision, Z suffix."""
    if ts is None:
        return None
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(ts: Any) -> Optional[datetime]:
    """Parse an ISO8601 timestamp; None when missing or unparseable."""
    if not isinstance(ts, str) or not ts.strip():
        return None
    s = ts.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class DeviceStatus:
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    CHARGING = "charging"


class SessionStatus:
    STARTED = "started"
    COMPLETED = "completed"


@dataclass
class RfidRecord:
    number: int
    id: str
    user_id: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "id": self.id, "userId": self.user_id}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RfidRecord":
        return cls(
            number=int(raw.get("number", 0)),
            id=str(raw["id"]),
            user_id=str(raw.get("userId") or "unknown"),
        )


@dataclass
class ChargingSession:
    session_id: str
    start_at: datetime
    status: str = SessionStatus.STARTED
    user_id: Optional[str] = None
    rfid_id: Optional[str] = None
    end_at: Optional[datetime] = None
    energy_kwh: float = 0.0
    unsynced: bool = True

    @property
    def active(self) -> bool:
        return self.status == SessionStatus.STARTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "sessionStatus": self.status,
            "sessionUserId": self.user_id,
            "startAt": iso(self.start_at),
            "endAt": iso(self.end_at),
            "energykWh": round(self.energy_kwh, 3),
            "rfidId": self.rfid_id,
            "unsynced": self.unsynced,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ChargingSession":
        # older session logs stored the energy under "energykW"
        energy = raw.get("energykWh", raw.get("energykW", 0.0))
        status = raw.get("sessionStatus") or SessionStatus.COMPLETED
        if status != SessionStatus.STARTED:
            status = SessionStatus.COMPLETED
        return cls(
            session_id=str(raw["sessionId"]),
            start_at=parse_timestamp(raw.get("startAt")) or utcnow(),
            status=status,
            user_id=raw.get("sessionUserId"),
            rfid_id=raw.get("rfidId"),
            end_at=parse_timestamp(raw.get("endAt")),
            energy_kwh=float(energy or 0.0),
            unsynced=bool(raw.get("unsynced", True)),
        )


@dataclass
class DeviceSettings:
    rfid_supported: bool = True
    auto_plug: bool = True
    fast_charging: bool = True
    language: str = "en"
    limit_a: int = 16
    limit_time_hours: int = 0
    limit_time_minutes: int = 0
    device_time: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rfidSupported": self.rfid_supported,
            "autoPlug": self.auto_plug,
            "fastCharging": self.fast_charging,
            "language": self.language,
            "limitA": self.limit_a,
            "limitTimeHours": self.limit_time_hours,
            "limitTimeMinutes": self.limit_time_minutes,
            "deviceTime": self.device_time,
        }

    def update_from(self, raw: Dict[str, Any]) -> None:
        """Apply a persisted settings blob, ignoring keys of the wrong type."""
        for key, attr, kind in (
            ("rfidSupported", "rfid_supported", bool),
            ("autoPlug", "auto_plug", bool),
            ("fastCharging", "fast_charging", bool),
            ("language", "language", str),
            ("limitA", "limit_a", int),
            ("limitTimeHours", "limit_time_hours", int),
            ("limitTimeMinutes", "limit_time_minutes", int),
        ):
            value = raw.get(key)
            if isinstance(value, kind):
                setattr(self, attr, value)
        if isinstance(raw.get("deviceTime"), dict):
            self.device_time = raw["deviceTime"]


@dataclass
class NetworkConfig:
    mode: str = "hotspot"     # "hotspot" (AP) or "wifi" (STA)
    ssid: Optional[str] = None
    password: Optional[str] = None
    local: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeviceState:
    def __init__(self, phases: int = 1, temperature_c: float = 38.0):
        self.status = DeviceStatus.DISCONNECTED
        self.voltage_v = 230
        self.current_a = 0.0
        self.power_kw = 0.0
        self.phases = phases
        self.temperature_c = temperature_c
        self.is_charging = False
        self.current_rfid: Optional[str] = None
        self.session_energy_kwh = 0.0     # reset per session
        self.lifetime_energy_kwh = 0.0    # only reset by an explicit reset_energy
        self.last_sample_at: Optional[datetime] = None
        self.clients: Set[Any] = set()


@dataclass
class ChargerModel:
    """The single owned domain-state object shared by every component."""

    device_id: str
    state: DeviceState = field(default_factory=DeviceState)
    settings: DeviceSettings = field(default_factory=DeviceSettings)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    started_at: datetime = field(default_factory=utcnow)

    @property
    def hotspot_ssid(self) -> str:
        return f"WiseCar-{self.device_id[-6:]}"

    def uptime(self) -> str:
        total = int((utcnow() - self.started_at).total_seconds())
        return f"{total // 3600}h {(total % 3600) // 60}m {total % 60}s"

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import DuplicateRfid, RfidNotFound, ValidationError
from .sessions import SessionManager
from .state_machine import ChargingSession, RfidRecord

# legacy field names still sent by older app builds
ID_ALIASES = ("id", "rfidId", "rfid", "uid")
OWNER_ALIASES = ("userId", "ownerUid", "ownerId")


@dataclass
class TapResult:
    accepted: bool
    reason: str
    session: Optional[ChargingSession] = None


def normalize_entry(entry: Any) -> Optional[Dict[str, str]]:
    """Coerce one sync entry into ``{"id", "userId"}``; None if unusable."""
    if isinstance(entry, str):
        return {"id": entry, "userId": "unknown"} if entry.strip() else None
    if not isinstance(entry, dict):
        return None
    tag_id = next((entry[k] for k in ID_ALIASES if entry.get(k)), None)
    if tag_id is None or isinstance(tag_id, (dict, list, bool)):
        return None
    owner = next((entry[k] for k in OWNER_ALIASES if entry.get(k)), "unknown")
    return {"id": str(tag_id), "userId": str(owner)}


class RfidRegistry:
    def __init__(self, sessions: SessionManager, store):
        self.sessions = sessions
        self.store = store
        self.records: Dict[str, RfidRecord] = {}
        self._load()

    def _load(self) -> None:
        raw = self.store.load("rfids", [])
        if not isinstance(raw, list):
            logging.warning("Ignoring RFID list: expected a list")
            return
        for item in raw:
            if not isinstance(item, dict):
                logging.warning(f"Skipping unreadable RFID record {item!r}")
                continue
            try:
                record = RfidRecord.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logging.warning(f"Skipping unreadable RFID record {item!r}")
                continue
            self.records[record.id] = record
        self._renumber()
        if self.records:
            logging.info(f"Loaded {len(self.records)} RFIDs from disk")

    def save(self) -> None:
        self.store.save("rfids", self.to_list())

    def _renumber(self) -> None:
        ordered = sorted(self.records.values(), key=lambda r: r.number)
        self.records = {}
        for number, record in enumerate(ordered, start=1):
            record.number = number
            self.records[record.id] = record

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, tag_id: str) -> bool:
        return tag_id in self.records

    def all(self) -> List[RfidRecord]:
        return list(self.records.values())

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.records.values()]

    def lookup(self, tag_id: str) -> Optional[RfidRecord]:
        return self.records.get(tag_id)

    def add(self, tag_id: str, user_id: Optional[str] = None) -> RfidRecord:
        if not tag_id:
            raise ValidationError("RFID id required")
        if tag_id in self.records:
            raise DuplicateRfid(f"RFID {tag_id} already exists")
        record = RfidRecord(number=len(self.records) + 1, id=tag_id, user_id=user_id or "unknown")
        self.records[tag_id] = record
        self.save()
        logging.info(f"RFID added: {tag_id} (user {record.user_id})")
        return record

    def delete(self, tag_id: str) -> RfidRecord:
        record = self.records.get(tag_id)
        if record is None:
            raise RfidNotFound(f"RFID {tag_id} not found")
        if self.sessions.state.current_rfid == tag_id:
            self.sessions.force_stop("tag revoked")
        del self.records[tag_id]
        self._renumber()
        self.save()
        logging.info(f"RFID deleted: {tag_id}")
        return record

    def add_many(self, entries: List[Any]) -> List[RfidRecord]:
        """Add every usable entry whose id is not registered yet."""
        added = []
        for entry in entries:
            normalized = normalize_entry(entry)
            if normalized is None or normalized["id"] in self.records:
                continue
            record = RfidRecord(number=len(self.records) + 1, id=normalized["id"], user_id=normalized["userId"])
            self.records[record.id] = record
            added.append(record)
        self.save()
        logging.info(f"Added {len(added)} RFIDs")
        return added

    def delete_many(self, entries: List[Any]) -> List[RfidRecord]:
        deleted = []
        for entry in entries:
            normalized = normalize_entry(entry)
            if normalized is None or normalized["id"] not in self.records:
                continue
            deleted.append(self.delete(normalized["id"]))
        logging.info(f"Deleted {len(deleted)} RFIDs")
        return deleted

    def sync(self, entries: Any) -> List[RfidRecord]:
        """Replace the whole registry with ``entries``.

        Entries may be bare id strings or objects using any of the legacy field
        names; unusable entries are skipped. Duplicate ids keep the first one.
        """
        if not isinstance(entries, list):
            raise ValidationError("Invalid RFID array for sync (expected rfids[])")

        replacement: Dict[str, RfidRecord] = {}
        for index, entry in enumerate(entries):
            normalized = normalize_entry(entry)
            if normalized is None:
                logging.warning(f"Invalid RFID entry at index {index}: {entry!r}")
                continue
            if normalized["id"] in replacement:
                continue
            replacement[normalized["id"]] = RfidRecord(
                number=len(replacement) + 1,
                id=normalized["id"],
                user_id=normalized["userId"],
            )

        charging_tag = self.sessions.state.current_rfid
        if charging_tag is not None and charging_tag not in replacement:
            self.sessions.force_stop("tag removed")

        self.records = replacement
        self.save()
        logging.info(f"RFIDs synced: {len(self.records)} RFIDs")
        return self.all()

    def tap(self, tag_id: str) -> TapResult:
        """Authorize a tag presentation and toggle charging accordingly."""
        if self.lookup(tag_id) is None:
            return TapResult(False, f"RFID {tag_id} not authorized")

        state = self.sessions.state
        if state.is_charging and state.current_rfid == tag_id:
            session = self.sessions.stop_session("RFID tap stop")
            return TapResult(True, f"Charging stopped for RFID {tag_id}", session)
        if not state.is_charging:
            session = self.sessions.start_session(rfid_id=tag_id)
            return TapResult(True, f"Charging started for RFID {tag_id}", session)

        current = state.current_rfid or "manual session"
        return TapResult(False, f"Cannot tap RFID {tag_id}: another tag is charging ({current})")

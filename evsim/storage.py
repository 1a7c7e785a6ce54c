"""Best-effort JSON persistence for the simulator.

Nothing here raises: a missing or corrupt file yields the caller's fallback and
a failed write is logged, after which the simulator keeps running on its
in-memory state.
"""

import json
import logging
import os
from typing import Any, Dict


class JsonStore:
    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def path_for(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    def load(self, key: str, fallback: Any = None) -> Any:
        path = self.path_for(key)
        if not os.path.exists(path):
            return fallback
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to load {os.path.basename(path)}: {e}")
            return fallback

    def save(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp = path + ".tmp"
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(value, fh, indent=2)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            logging.warning(f"Failed to save {os.path.basename(path)}: {e}")


class MemoryStore:
    """Same contract as JsonStore, kept in a dict."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def load(self, key: str, fallback: Any = None) -> Any:
        if key not in self.data:
            return fallback
        return json.loads(self.data[key])

    def save(self, key: str, value: Any) -> None:
        try:
            self.data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            logging.warning(f"Failed to save {key}: {e}")

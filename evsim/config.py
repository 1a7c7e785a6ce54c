import os

DEVICE_ID = os.getenv("DEVICE_ID", "wtl-302501234567")
DEVICE_MODEL = os.getenv("DEVICE_MODEL", "WTL-22KW")
DEVICE_SERIAL = os.getenv("DEVICE_SERIAL", "302501234567")
FIRMWARE_ESP = os.getenv("FIRMWARE_ESP", "2.1.1")
FIRMWARE_STM = os.getenv("FIRMWARE_STM", "2.1.1")
HARDWARE_REV = os.getenv("HARDWARE_REV", "4.2")
WARRANTY_START = os.getenv("WARRANTY_START", "2025-10-30T12:34:56.789Z")
WARRANTY_END = os.getenv("WARRANTY_END", "2026-10-31T12:34:56.789Z")

WS_HOST = os.getenv("WS_HOST", "0.0.0.0")
WS_PORT = int(os.getenv("WS_PORT", "3000"))
HTTP_PORT = int(os.getenv("HTTP_PORT", "3002"))
DATA_DIR = os.getenv("DATA_DIR", "./data")

TELEMETRY_PERIOD_SEC = float(os.getenv("TELEMETRY_PERIOD_SEC", "1"))    # app expects ~1s
BROADCAST_DELAY_SEC = float(os.getenv("BROADCAST_DELAY_SEC", "0.05"))   # post-command rebroadcast
LIMIT_A = int(os.getenv("LIMIT_A", "16"))
PHASES = int(os.getenv("PHASES", "1"))
UNSYNCED_BATCH_SIZE = int(os.getenv("UNSYNCED_BATCH_SIZE", "5"))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))
RFID_DETECTION_DELAY_SEC = float(os.getenv("RFID_DETECTION_DELAY_SEC", "2"))
DETECTED_RFID = os.getenv("DETECTED_RFID", "123456789")     # tag reported by rfid_detection

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

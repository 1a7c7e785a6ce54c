import argparse
import json
import os
from typing import List, Optional

import requests

API_BASE = os.getenv("SIM_API_BASE", "http://127.0.0.1:3002")


def _do_json(method: str, url: str, body: Optional[dict] = None) -> requests.Response:
    headers = {
        "Content-Type": "application/json",
        "Connection": "close",
    }
    data = json.dumps(body) if body is not None else None
    resp = requests.request(method, url, data=data, headers=headers, timeout=15)
    print(f"{method} {url} -> {resp.status_code} {resp.reason}")
    print(resp.text)
    return resp


def start_charge(user_id: Optional[str], rfid_id: Optional[str]) -> None:
    payload = {}
    if user_id is not None:
        payload["userId"] = user_id
    if rfid_id is not None:
        payload["rfidId"] = rfid_id
    _do_json("POST", f"{API_BASE}/sessions/start", payload)


def stop_charge(reason: str) -> None:
    _do_json("POST", f"{API_BASE}/sessions/stop", {"reason": reason})


def tap(rfid_id: str) -> None:
    _do_json("POST", f"{API_BASE}/simulate-rfid/{rfid_id}")


def status() -> None:
    _do_json("GET", f"{API_BASE}/status")


def sessions(limit: int) -> None:
    _do_json("GET", f"{API_BASE}/sessions?limit={limit}")


def ack(session_ids: List[str]) -> None:
    _do_json("POST", f"{API_BASE}/sessions/ack", {"sessionIds": session_ids})


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drive a running charger simulator over its HTTP control API")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_start = sub.add_parser("start", help="start charging")
    p_start.add_argument("--user", dest="userId")
    p_start.add_argument("--rfid", dest="rfidId")

    p_stop = sub.add_parser("stop", help="stop charging")
    p_stop.add_argument("reason", nargs="?", default="Manual stop")

    p_tap = sub.add_parser("tap", help="present an RFID tag")
    p_tap.add_argument("rfidId")

    sub.add_parser("status", help="show device status")

    p_sessions = sub.add_parser("sessions", help="list recent sessions")
    p_sessions.add_argument("--limit", type=int, default=20)

    p_ack = sub.add_parser("ack", help="mark sessions as synced")
    p_ack.add_argument("sessionIds", nargs="+")

    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    if args.cmd == "start":
        start_charge(args.userId, args.rfidId)
    elif args.cmd == "stop":
        stop_charge(args.reason)
    elif args.cmd == "tap":
        tap(args.rfidId)
    elif args.cmd == "status":
        status()
    elif args.cmd == "sessions":
        sessions(args.limit)
    elif args.cmd == "ack":
        ack(args.sessionIds)


if __name__ == "__main__":
    main()

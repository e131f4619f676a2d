#!/usr/bin/env python3
"""
pulsemesh_send_event.py – host event driver

Sends one host notification to a running pulsemesh_host, e.g.:

  python3 pulsemesh_send_event.py open show.fseq
  python3 pulsemesh_send_event.py start show.fseq
  python3 pulsemesh_send_event.py sync show.fseq 12.3
  python3 pulsemesh_send_event.py stop show.fseq
  python3 pulsemesh_send_event.py playlist "Main Show" --size 3 --action playing --section mainPlaylist --item 2
"""

import argparse
import json
import socket
import time
from typing import Any, Dict

from pulsemesh_host import (
    EVENT_MEDIA_OPEN,
    EVENT_MEDIA_SYNC,
    EVENT_MEDIA_SYNC_START,
    EVENT_MEDIA_SYNC_STOP,
    EVENT_PLAYLIST,
    HOST_EVENT_SOCKET_PATH,
    IPC_SCHEMA_EVENT,
)


def epoch_ms() -> int:
    return int(time.time() * 1000.0)


def make_event_envelope(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "schema": IPC_SCHEMA_EVENT,
        "v": 1,
        "id": f"evt-drv-{epoch_ms()}",
        "ts": epoch_ms(),
        "event": event,
        "payload": payload or {},
    }


def send_event(path: str, event: str, payload: Dict[str, Any]) -> None:
    data = json.dumps(make_event_envelope(event, payload), separators=(",", ":")).encode("utf-8")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.connect(path)
        sock.send(data)
    finally:
        sock.close()
    print(f"sent {event} {payload}")


def main() -> None:
    parser = argparse.ArgumentParser(description="PulseMesh host event driver")
    parser.add_argument("--events", default=HOST_EVENT_SOCKET_PATH,
                        help="host harness event socket")
    sub = parser.add_subparsers(dest="cmd", required=True)

    for name in ("open", "start", "stop"):
        p = sub.add_parser(name)
        p.add_argument("filename")

    p_sync = sub.add_parser("sync")
    p_sync.add_argument("filename")
    p_sync.add_argument("seconds", type=float)

    p_pl = sub.add_parser("playlist")
    p_pl.add_argument("name")
    p_pl.add_argument("--size", type=int, default=1)
    p_pl.add_argument("--action", default="playing")
    p_pl.add_argument("--section", default="mainPlaylist")
    p_pl.add_argument("--item", type=int, default=0)

    args = parser.parse_args()

    if args.cmd == "open":
        send_event(args.events, EVENT_MEDIA_OPEN, {"filename": args.filename})
    elif args.cmd == "start":
        send_event(args.events, EVENT_MEDIA_SYNC_START, {"filename": args.filename})
    elif args.cmd == "stop":
        send_event(args.events, EVENT_MEDIA_SYNC_STOP, {"filename": args.filename})
    elif args.cmd == "sync":
        send_event(args.events, EVENT_MEDIA_SYNC,
                   {"filename": args.filename, "seconds": args.seconds})
    elif args.cmd == "playlist":
        send_event(args.events, EVENT_PLAYLIST, {
            "playlist": {"name": args.name, "size": args.size},
            "action": args.action,
            "section": args.section,
            "item": args.item,
        })
    else:
        parser.error("unknown command")


if __name__ == "__main__":
    main()

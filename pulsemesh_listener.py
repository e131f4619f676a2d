#!/usr/bin/env python3
"""
PulseMesh debug listener

Binds the PULSE datagram socket and prints every message the bridge sends,
split into verb and arguments. Stand-in for the real listener during local
testing.
"""

import argparse
import logging
import os
import select
import socket
from typing import List, Tuple

from pulsemesh_codec import DELIMITER
from pulsemesh_transport import PULSE_SOCKET_PATH

SOCKET_MODE = 0o666


def ensure_socket(path: str) -> socket.socket:
    try:
        if os.path.exists(path):
            os.unlink(path)
    except OSError:
        logging.warning("PMLS: could not unlink existing %s", path)
    s = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    s.bind(path)
    os.chmod(path, SOCKET_MODE)
    return s


def split_message(data: bytes) -> Tuple[str, List[str]]:
    text = data.decode("utf-8", errors="replace")
    verb, *args = text.split(DELIMITER)
    return verb, args


def main() -> None:
    parser = argparse.ArgumentParser(description="PulseMesh debug listener")
    parser.add_argument("--socket", default=PULSE_SOCKET_PATH, help="socket path to bind")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    sock = ensure_socket(args.socket)
    print(f"Listening on {args.socket} (Ctrl+C to exit)", flush=True)

    try:
        while True:
            r, _, _ = select.select([sock], [], [], 1.0)
            if not r:
                continue
            try:
                data, _ = sock.recvfrom(65535)
            except OSError as e:
                logging.warning("PMLS: recv error: %s", e)
                continue
            verb, fields = split_message(data)
            print(f"RX: {verb} {fields}", flush=True)
            logging.debug("PMLS: RX %r", data)
    except KeyboardInterrupt:
        pass
    finally:
        sock.close()
        try:
            os.unlink(args.socket)
        except FileNotFoundError:
            pass


if __name__ == "__main__":
    main()

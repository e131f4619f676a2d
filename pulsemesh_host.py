#!/usr/bin/env python3
"""
PulseMesh – host harness

Embeds one or more PulseMesh bridges and feeds them host playback
notifications received as JSON datagrams.

- SyncDispatcher: explicit collection of active bridges; fans every
  notification out to all of them.
- HostEventServer: Unix datagram server on /tmp/pulsemesh/host.sock.
- HostDaemon: decodes envelopes and calls the dispatcher.

Envelope:
    {"schema": "pulsemesh.ipc/event", "v": 1, "event": <name>, "payload": {...}}

Events:
    PLAYLIST_EVENT   {playlist, action, section, item}
    MEDIA_OPEN       {filename}
    MEDIA_SYNC_START {filename}
    MEDIA_SYNC_STOP  {filename}
    MEDIA_SYNC       {filename, seconds}
"""

import json
import logging
import os
import select
import signal
import socket
import stat
from typing import Any, Dict, List, Optional

from pulsemesh_bridge import PulseMeshBridge, is_finite_seconds
from pulsemesh_playlist_log import PLAYLIST_LOG_PATH
from pulsemesh_transport import PULSE_SOCKET_PATH

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

HOST_EVENT_SOCKET_PATH = "/tmp/pulsemesh/host.sock"

IPC_SCHEMA_EVENT = "pulsemesh.ipc/event"

EVENT_PLAYLIST = "PLAYLIST_EVENT"
EVENT_MEDIA_OPEN = "MEDIA_OPEN"
EVENT_MEDIA_SYNC_START = "MEDIA_SYNC_START"
EVENT_MEDIA_SYNC_STOP = "MEDIA_SYNC_STOP"
EVENT_MEDIA_SYNC = "MEDIA_SYNC"

RUN_LOOP_TICK_S = 0.5


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class SyncDispatcher:
    """Fans host notifications out to every registered bridge."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.bridges: List[PulseMeshBridge] = []

    def add_bridge(self, bridge: PulseMeshBridge) -> None:
        if bridge in self.bridges:
            return
        self.bridges.append(bridge)
        logging.info("HOST: registered bridge %s", bridge.name)
        if not self.enabled:
            logging.warning("HOST: %s registered, but multi-sync is not enabled", bridge.name)

    def remove_bridge(self, bridge: PulseMeshBridge) -> None:
        if bridge in self.bridges:
            self.bridges.remove(bridge)
            logging.info("HOST: removed bridge %s", bridge.name)

    def _fan_out(self, callback: str, *args: Any) -> None:
        for bridge in list(self.bridges):
            try:
                getattr(bridge, callback)(*args)
            except Exception:
                logging.exception("HOST: %s failed in %s", callback, bridge.name)

    def playlist_event(self, playlist: Any, action: str, section: str, item: int) -> None:
        self._fan_out("on_playlist_event", playlist, action, section, item)

    def media_open(self, filename: str) -> None:
        self._fan_out("on_media_open", filename)

    def media_sync_start(self, filename: str) -> None:
        self._fan_out("on_media_sync_start", filename)

    def media_sync_stop(self, filename: str) -> None:
        self._fan_out("on_media_sync_stop", filename)

    def media_sync_tick(self, filename: str, seconds: float) -> None:
        self._fan_out("on_media_sync_tick", filename, seconds)


# ---------------------------------------------------------------------------
# Event server
# ---------------------------------------------------------------------------

class HostEventServer:
    """
    Owns the harness event socket at `path`.

    A leftover socket file from a previous run is replaced; any other file at
    that path is left alone and start() fails. The path is removed again on
    close().
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.sock: Optional[socket.socket] = None

    def _clear_stale_socket(self) -> None:
        try:
            mode = os.lstat(self.path).st_mode
        except FileNotFoundError:
            return
        if not stat.S_ISSOCK(mode):
            raise OSError(f"refusing to replace non-socket file {self.path}")
        os.unlink(self.path)
        logging.info("HOST: removed stale socket %s", self.path)

    def start(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._clear_stale_socket()

        s = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
        s.bind(self.path)
        s.setblocking(False)
        self.sock = s
        logging.info("HOST: listening on %s", self.path)

    def recv(self) -> Optional[bytes]:
        sock = self.sock
        if sock is None:
            return None
        try:
            return sock.recv(65535)
        except BlockingIOError:
            return None

    def fileno(self) -> int:
        if self.sock is None:
            raise RuntimeError("HostEventServer not started")
        return self.sock.fileno()

    def close(self) -> None:
        if self.sock is None:
            return
        self.sock.close()
        self.sock = None
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


# ---------------------------------------------------------------------------
# Daemon
# ---------------------------------------------------------------------------

def _require_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


class HostDaemon:
    def __init__(self, event_server: HostEventServer, dispatcher: SyncDispatcher) -> None:
        self.event_server = event_server
        self.dispatcher = dispatcher
        self.running = True

    # ----------------- main event entry -----------------

    def handle_raw_event(self, raw: bytes) -> None:
        try:
            msg = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.warning("HOST: invalid JSON event: %s", e)
            return

        if not isinstance(msg, dict) or msg.get("schema") != IPC_SCHEMA_EVENT:
            logging.warning("HOST: ignoring message without %s schema", IPC_SCHEMA_EVENT)
            return

        event = msg.get("event")
        payload = msg.get("payload") or {}
        if not isinstance(event, str) or not isinstance(payload, dict):
            logging.warning("HOST: malformed event envelope")
            return

        logging.debug("HOST: event %s %s", event, payload)

        if event == EVENT_PLAYLIST:
            self._handle_playlist(payload)
        elif event in (EVENT_MEDIA_OPEN, EVENT_MEDIA_SYNC_START, EVENT_MEDIA_SYNC_STOP):
            self._handle_media(event, payload)
        elif event == EVENT_MEDIA_SYNC:
            self._handle_media_sync(payload)
        else:
            logging.warning("HOST: unknown event %s", event)

    # ----------------- per-event handlers -----------------

    def _handle_playlist(self, payload: Dict[str, Any]) -> None:
        item = payload.get("item", 0)
        if not isinstance(item, int) or isinstance(item, bool):
            logging.warning("HOST: %s with invalid item %r", EVENT_PLAYLIST, item)
            return
        self.dispatcher.playlist_event(
            payload.get("playlist"),
            _require_str(payload, "action") or "",
            _require_str(payload, "section") or "",
            item,
        )

    def _handle_media(self, event: str, payload: Dict[str, Any]) -> None:
        filename = _require_str(payload, "filename")
        if filename is None:
            logging.warning("HOST: %s without filename", event)
            return

        if event == EVENT_MEDIA_OPEN:
            self.dispatcher.media_open(filename)
        elif event == EVENT_MEDIA_SYNC_START:
            self.dispatcher.media_sync_start(filename)
        else:
            self.dispatcher.media_sync_stop(filename)

    def _handle_media_sync(self, payload: Dict[str, Any]) -> None:
        filename = _require_str(payload, "filename")
        seconds = payload.get("seconds")
        if filename is None or not is_finite_seconds(seconds):
            logging.warning("HOST: %s needs filename and seconds", EVENT_MEDIA_SYNC)
            return
        self.dispatcher.media_sync_tick(filename, float(seconds))

    # ----------------- lifecycle -----------------

    def setup(self) -> None:
        self.event_server.start()
        logging.info("HOST: started with %d bridge(s)", len(self.dispatcher.bridges))

    def run(self) -> None:
        while self.running:
            try:
                rlist, _, _ = select.select([self.event_server.fileno()], [], [],
                                            RUN_LOOP_TICK_S)
            except (OSError, ValueError, RuntimeError):
                rlist = []

            if rlist:
                raw = self.event_server.recv()
                if raw:
                    self.handle_raw_event(raw)

    def stop(self) -> None:
        self.running = False
        self.event_server.close()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="PulseMesh host harness")
    parser.add_argument("--events", default=HOST_EVENT_SOCKET_PATH,
                        help="socket receiving host events")
    parser.add_argument("--socket", default=PULSE_SOCKET_PATH,
                        help="PulseMesh listener socket")
    parser.add_argument("--playlist-log", default=PLAYLIST_LOG_PATH,
                        help="playlist audit log file")
    parser.add_argument("--no-multisync", action="store_true",
                        help="run as if multi-sync were disabled on the host")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args()

    setup_logging(args.verbose)

    bridge = PulseMeshBridge(socket_path=args.socket, playlist_log_path=args.playlist_log)
    bridge.open()

    dispatcher = SyncDispatcher(enabled=not args.no_multisync)
    dispatcher.add_bridge(bridge)

    evsrv = HostEventServer(args.events)
    daemon = HostDaemon(evsrv, dispatcher)

    def _handle_signal(signum, frame):
        logging.info("HOST: signal %s, stopping", signum)
        daemon.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        daemon.setup()
        daemon.run()
    finally:
        dispatcher.remove_bridge(bridge)
        bridge.close()


if __name__ == "__main__":
    main()

"""
PulseMesh Bridge – orchestrator

Receives playback lifecycle callbacks from the host and forwards them to the
PulseMesh listener over the PULSE datagram socket:

    on_playlist_event(playlist, action, section, item)
        -> playlist audit log (always)
        -> SendPlaylistUpdate/<name>/<section>/<item>
           (valid event, size > 1, action in {playing, start})
    on_media_open(filename)        -> SendMediaOpenPacket/<filename>
    on_media_sync_start(filename)  -> SendMediaSyncStartPacket/<filename>
    on_media_sync_stop(filename)   -> SendMediaSyncStopPacket/<filename>
    on_media_sync_tick(filename, seconds)
        -> SendMediaSyncPacket/<filename>/<seconds>
           (at most once per half-second bucket)

Callbacks may arrive concurrently from host threads. Nothing raised inside
the bridge reaches the host; failures are visible in the log only.

If the transport cannot be opened the bridge is disabled for the session:
send paths return immediately, the playlist log keeps recording.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import pulsemesh_codec as codec
from pulsemesh_errors import InitError, ValidationError
from pulsemesh_playlist_log import PLAYLIST_LOG_PATH, PlaylistLogger
from pulsemesh_state import ErrorCounter, SyncState
from pulsemesh_transport import PULSE_SOCKET_PATH, DatagramTransport

PLUGIN_NAME = "fpp-PulseMesh"

FORWARDED_PLAYLIST_ACTIONS = ("playing", "start")


def is_finite_seconds(seconds: Any) -> bool:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return False
    return math.isfinite(seconds)


# ---------------------------------------------------------------------------
# Playlist event
# ---------------------------------------------------------------------------

@dataclass
class PlaylistEvent:
    size: int
    name: str
    action: str = ""
    section: str = ""
    item: int = 0

    @classmethod
    def from_callback(cls, playlist: Any, action: str, section: str,
                      item: int) -> "PlaylistEvent":
        if not isinstance(playlist, dict):
            raise ValidationError("playlist payload is not an object")

        size = playlist.get("size")
        # bool is an int subclass but not a valid size
        if not isinstance(size, int) or isinstance(size, bool):
            raise ValidationError("playlist does not contain a valid 'size' field",
                                  code="INVALID_SIZE")

        name = playlist.get("name")
        if not isinstance(name, str):
            raise ValidationError("playlist does not contain a valid 'name' field",
                                  code="INVALID_NAME")

        return cls(size=size, name=name, action=action or "",
                   section=section or "", item=int(item))

    def should_forward(self) -> bool:
        return self.size > 1 and self.action in FORWARDED_PLAYLIST_ACTIONS

    def to_message(self) -> str:
        return codec.playlist_update(self.name, self.section, self.item)


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------

class PulseMeshBridge:
    def __init__(self,
                 socket_path: str = PULSE_SOCKET_PATH,
                 playlist_log_path: str = PLAYLIST_LOG_PATH,
                 name: str = PLUGIN_NAME) -> None:
        self.name = name
        self.sync_state = SyncState()
        self.send_errors = ErrorCounter()
        self.transport = DatagramTransport(socket_path, self.send_errors)
        self.playlist_log = PlaylistLogger(playlist_log_path)
        self.disabled = False

    # ----------------- lifecycle -----------------

    def open(self) -> bool:
        logging.info("PMB: initializing %s", self.name)
        try:
            self.transport.open()
        except InitError as e:
            logging.error("PMB: initialization failed (%s): %s", e.code, e)
            self.disabled = True
            return False
        self.disabled = False
        return True

    def close(self) -> None:
        self.transport.close()

    # ----------------- helpers -----------------

    def _send(self, message: str) -> bool:
        return self.transport.send(codec.to_wire(message))

    # ----------------- host callbacks -----------------

    def on_playlist_event(self, playlist: Any, action: str, section: str,
                          item: int) -> None:
        logging.info("PMB: action: %s", action)
        logging.info("PMB: section: %s", section)
        logging.info("PMB: item: %s", item)

        self.playlist_log.record(playlist)

        try:
            event = PlaylistEvent.from_callback(playlist, action, section, item)
        except (ValidationError, TypeError, ValueError) as e:
            logging.error("PMB: rejected playlist event: %s", e)
            return

        if not event.should_forward() or self.disabled:
            return

        message = event.to_message()
        if self._send(message):
            logging.info("PMB: SendPlaylistUpdate message sent: %s", message)
        else:
            logging.warning("PMB: failed to send SendPlaylistUpdate message")

    def on_media_open(self, filename: str) -> None:
        if self.disabled:
            return
        self._send(codec.media_open(filename))

    def on_media_sync_start(self, filename: str) -> None:
        if self.disabled:
            return
        self._send(codec.media_sync_start(filename))

    def on_media_sync_stop(self, filename: str) -> None:
        if self.disabled:
            return
        self._send(codec.media_sync_stop(filename))

    def on_media_sync_tick(self, filename: str, seconds: float) -> None:
        if self.disabled:
            return
        if not is_finite_seconds(seconds):
            logging.warning("PMB: dropping media sync tick with invalid position %r", seconds)
            return
        if not self.sync_state.should_emit(seconds):
            return
        self._send(codec.media_sync(filename, seconds))

    @property
    def last_sync_bucket(self) -> Optional[int]:
        return self.sync_state.last_bucket

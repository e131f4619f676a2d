"""
PulseMesh Bridge – playlist audit log

Every playlist callback is appended to a plain text file:

    ----- Playlist Callback at 2024-05-01 20:15:03 -----
    {"name":"Show","size":3}
    <blank line>

The file is opened in append mode for each record; no handle is held
between calls. No rotation, no size cap.
"""

import json
import logging
import threading
import time
from typing import Any

from pulsemesh_errors import PersistenceError

PLAYLIST_LOG_PATH = "/tmp/fpp_pulsemesh_playlist.json"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def serialize_playlist(playlist: Any) -> str:
    return json.dumps(playlist, separators=(",", ":"), sort_keys=True, default=str)


def local_timestamp() -> str:
    return time.strftime(TIMESTAMP_FORMAT, time.localtime())


class PlaylistLogger:
    def __init__(self, path: str = PLAYLIST_LOG_PATH) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _append(self, text: str) -> None:
        try:
            with self._lock:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(text)
        except OSError as e:
            raise PersistenceError(
                f"failed to open file for writing playlist: {self.path}: {e}")

    def record(self, playlist: Any) -> bool:
        """Append one entry. Failures are logged and the entry is dropped."""
        entry = (
            f"----- Playlist Callback at {local_timestamp()} -----\n"
            f"{serialize_playlist(playlist)}\n\n"
        )
        try:
            self._append(entry)
        except PersistenceError as e:
            logging.error("PMB: %s", e)
            return False

        logging.info("PMB: playlist written to %s", self.path)
        return True

"""
PulseMesh Bridge – wire encoding

Messages are plain text: a verb followed by its arguments, joined by "/".
No trailing delimiter, no length prefix, one message per datagram.

    SendPlaylistUpdate/<name>/<section>/<item>
    SendMediaOpenPacket/<filename>
    SendMediaSyncStartPacket/<filename>
    SendMediaSyncStopPacket/<filename>
    SendMediaSyncPacket/<filename>/<seconds>

Free-text fields (playlist name, section) get "/" replaced by "_".
Filenames are forwarded as-is.
"""

from typing import Any

DELIMITER = "/"
SUBSTITUTE = "_"

VERB_PLAYLIST_UPDATE = "SendPlaylistUpdate"
VERB_MEDIA_OPEN = "SendMediaOpenPacket"
VERB_MEDIA_SYNC_START = "SendMediaSyncStartPacket"
VERB_MEDIA_SYNC_STOP = "SendMediaSyncStopPacket"
VERB_MEDIA_SYNC = "SendMediaSyncPacket"


def sanitize(text: str) -> str:
    return text.replace(DELIMITER, SUBSTITUTE)


def format_seconds(seconds: float) -> str:
    # six fixed decimals, e.g. 12.500000
    return f"{seconds:f}"


def encode_message(verb: str, *args: Any) -> str:
    return DELIMITER.join([verb] + [str(a) for a in args])


def to_wire(message: str) -> bytes:
    return message.encode("utf-8")


# ---------------------------------------------------------------------------
# Per-verb builders
# ---------------------------------------------------------------------------

def playlist_update(name: str, section: str, item: int) -> str:
    return encode_message(VERB_PLAYLIST_UPDATE, sanitize(name), sanitize(section), int(item))


def media_open(filename: str) -> str:
    return encode_message(VERB_MEDIA_OPEN, filename)


def media_sync_start(filename: str) -> str:
    return encode_message(VERB_MEDIA_SYNC_START, filename)


def media_sync_stop(filename: str) -> str:
    return encode_message(VERB_MEDIA_SYNC_STOP, filename)


def media_sync(filename: str, seconds: float) -> str:
    return encode_message(VERB_MEDIA_SYNC, filename, format_seconds(seconds))

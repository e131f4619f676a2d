import logging
import os
import threading

import pytest

from conftest import RecordingTransport, drain
from pulsemesh_bridge import PlaylistEvent, PulseMeshBridge
from pulsemesh_errors import ValidationError


@pytest.fixture
def bridge(tmp_path):
    b = PulseMeshBridge(socket_path="/tmp/PULSE",
                        playlist_log_path=str(tmp_path / "playlist.json"))
    b.transport = RecordingTransport()
    yield b
    b.close()


def _log_text(b):
    path = b.playlist_log.path
    if not os.path.exists(path):
        return ""
    with open(path, encoding="utf-8") as f:
        return f.read()


# ----------------- playlist events -----------------

def test_playlist_event_from_callback():
    ev = PlaylistEvent.from_callback({"size": 3, "name": "Show"}, "playing", "main", 1)
    assert ev == PlaylistEvent(size=3, name="Show", action="playing", section="main", item=1)
    assert ev.should_forward()


@pytest.mark.parametrize("playlist", [
    {"name": "Show"},
    {"size": "3", "name": "Show"},
    {"size": True, "name": "Show"},
    {"size": 3},
    {"size": 3, "name": 7},
    ["not", "an", "object"],
])
def test_playlist_event_validation(playlist):
    with pytest.raises(ValidationError):
        PlaylistEvent.from_callback(playlist, "playing", "main", 0)


def test_playlist_size_one_not_forwarded(bridge):
    bridge.on_playlist_event({"size": 1, "name": "Show"}, "start", "main", 0)
    assert bridge.transport.messages == []
    assert "Show" in _log_text(bridge)


def test_playlist_multi_item_playing_forwarded(bridge):
    bridge.on_playlist_event({"size": 3, "name": "Show"}, "playing", "mainPlaylist", 2)
    assert bridge.transport.messages == [b"SendPlaylistUpdate/Show/mainPlaylist/2"]


def test_playlist_other_action_not_forwarded(bridge):
    bridge.on_playlist_event({"size": 3, "name": "Show"}, "stop", "main", 2)
    assert bridge.transport.messages == []


def test_playlist_name_sanitized(bridge):
    bridge.on_playlist_event({"size": 2, "name": "A/B"}, "start", "lead/in", 0)
    assert bridge.transport.messages == [b"SendPlaylistUpdate/A_B/lead_in/0"]


def test_playlist_missing_name_rejected_but_recorded(bridge, caplog):
    bridge.on_playlist_event({"size": 3}, "playing", "main", 1)

    assert bridge.transport.messages == []
    rejected = [r for r in caplog.records
                if r.levelno == logging.ERROR and "rejected playlist event" in r.getMessage()]
    assert len(rejected) == 1
    assert '{"size":3}' in _log_text(bridge)


def test_playlist_send_failure_logged(bridge, caplog):
    bridge.transport = RecordingTransport(ok=False)
    bridge.on_playlist_event({"size": 3, "name": "Show"}, "playing", "main", 1)
    assert any("failed to send SendPlaylistUpdate" in r.getMessage() for r in caplog.records)


# ----------------- media signals -----------------

def test_media_lifecycle_messages(bridge):
    bridge.on_media_open("show.fseq")
    bridge.on_media_sync_start("show.fseq")
    bridge.on_media_sync_stop("show.fseq")
    assert bridge.transport.messages == [
        b"SendMediaOpenPacket/show.fseq",
        b"SendMediaSyncStartPacket/show.fseq",
        b"SendMediaSyncStopPacket/show.fseq",
    ]


def test_open_start_stop_not_rate_limited(bridge):
    for _ in range(3):
        bridge.on_media_open("show.fseq")
    assert len(bridge.transport.messages) == 3


def test_sync_ticks_deduplicated_per_half_second(bridge):
    bridge.on_media_sync_tick("song.mp3", 1.0)
    bridge.on_media_sync_tick("song.mp3", 1.4)
    assert bridge.transport.messages == [b"SendMediaSyncPacket/song.mp3/1.000000"]

    bridge.on_media_sync_tick("song.mp3", 1.6)
    assert bridge.transport.messages[-1] == b"SendMediaSyncPacket/song.mp3/1.600000"
    assert len(bridge.transport.messages) == 2
    assert bridge.last_sync_bucket == 3


def test_concurrent_sync_ticks_send_once(bridge):
    n = 16
    barrier = threading.Barrier(n)

    def worker():
        barrier.wait()
        bridge.on_media_sync_tick("song.mp3", 4.2)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(bridge.transport.messages) == 1


# ----------------- lifecycle -----------------

def test_open_failure_disables_send_paths(tmp_path, sock_dir, caplog):
    b = PulseMeshBridge(socket_path=os.path.join(sock_dir, "missing"),
                        playlist_log_path=str(tmp_path / "playlist.json"))
    assert b.open() is False
    assert b.disabled

    caplog.clear()
    b.on_media_open("show.fseq")
    b.on_media_sync_start("show.fseq")
    b.on_media_sync_tick("show.fseq", 2.0)
    b.on_media_sync_stop("show.fseq")
    b.on_playlist_event({"size": 3, "name": "Show"}, "playing", "main", 1)

    # no-ops at entry, the transport is never asked
    assert not any("not connected" in r.getMessage() for r in caplog.records)
    assert b.last_sync_bucket is None
    assert "Show" in _log_text(b)
    b.close()
    b.close()


def test_end_to_end_over_datagram_socket(tmp_path, listener):
    path, rx = listener
    b = PulseMeshBridge(socket_path=path, playlist_log_path=str(tmp_path / "pl.json"))
    assert b.open() is True
    try:
        b.on_media_open("show.fseq")
        b.on_media_sync_tick("show.fseq", 0.3)
        b.on_media_sync_tick("show.fseq", 0.4)
        b.on_playlist_event({"size": 4, "name": "Xmas/2024"}, "start", "main", 3)
    finally:
        b.close()

    assert drain(rx) == [
        b"SendMediaOpenPacket/show.fseq",
        b"SendMediaSyncPacket/show.fseq/0.300000",
        b"SendPlaylistUpdate/Xmas_2024/main/3",
    ]


def test_listener_gone_send_fails_without_raising(tmp_path, listener, caplog):
    path, rx = listener
    b = PulseMeshBridge(socket_path=path, playlist_log_path=str(tmp_path / "pl.json"))
    assert b.open()
    rx.close()
    os.unlink(path)

    b.on_media_open("show.fseq")
    b.close()
    assert b.send_errors.count == 1
    assert any("failed to send message" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("seconds", [float("nan"), float("inf"), float("-inf"), "1.5", None])
def test_sync_tick_invalid_position_dropped(bridge, caplog, seconds):
    bridge.on_media_sync_tick("song.mp3", seconds)

    assert bridge.transport.messages == []
    assert bridge.last_sync_bucket is None
    assert any(r.levelno == logging.WARNING and "invalid position" in r.getMessage()
               for r in caplog.records)

    bridge.on_media_sync_tick("song.mp3", 2.0)
    assert bridge.transport.messages == [b"SendMediaSyncPacket/song.mp3/2.000000"]

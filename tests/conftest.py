import os
import shutil
import socket
import tempfile
from typing import List

import pytest


class FakeSocket:
    """Stands in for the transport socket; scripted sendto() outcomes."""

    def __init__(self, outcome="ok") -> None:
        self.outcome = outcome
        self.sent: List[bytes] = []
        self.closed = False

    def sendto(self, data: bytes, addr: str) -> int:
        if self.outcome == "error":
            raise ConnectionRefusedError(111, "Connection refused")
        if self.outcome == "short":
            return max(0, len(data) - 1)
        self.sent.append(data)
        return len(data)

    def close(self) -> None:
        self.closed = True


class RecordingTransport:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.messages: List[bytes] = []

    def send(self, message: bytes) -> bool:
        self.messages.append(message)
        return self.ok

    def close(self) -> None:
        pass


def drain(sock: socket.socket) -> List[bytes]:
    sock.setblocking(False)
    out: List[bytes] = []
    while True:
        try:
            data, _ = sock.recvfrom(65535)
        except BlockingIOError:
            return out
        out.append(data)


@pytest.fixture
def sock_dir():
    # AF_UNIX paths are length-limited; keep them short
    d = tempfile.mkdtemp(prefix="pm-", dir="/tmp")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def listener(sock_dir):
    path = os.path.join(sock_dir, "PULSE")
    s = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    s.bind(path)
    yield path, s
    s.close()

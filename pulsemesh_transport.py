"""
PulseMesh Bridge – datagram transport

Fire-and-forget sender to a fixed Unix datagram socket (default /tmp/PULSE).

- open():  creates the client socket (nothing bound), validates the
           destination path. Raises InitError; no retry.
- send():  one sendto() per message. Returns True only if the whole payload
           was accepted. Nothing is queued or retried.
- close(): idempotent.

Repeated send failures are logged for the first SEND_ERROR_LOG_LIMIT
consecutive failures, followed by one suppression notice. A good send resets
the counter and logging resumes.
"""

import logging
import os
import socket
from typing import Optional

from pulsemesh_errors import InitError, TransportError
from pulsemesh_state import ErrorCounter

PULSE_SOCKET_PATH = "/tmp/PULSE"

SEND_ERROR_LOG_LIMIT = 10

# sizeof(sockaddr_un.sun_path) on Linux, including the terminating NUL
SUN_PATH_MAX = 108


class DatagramTransport:
    def __init__(self, path: str = PULSE_SOCKET_PATH,
                 error_counter: Optional[ErrorCounter] = None) -> None:
        self.path = path
        self.errors = error_counter if error_counter is not None else ErrorCounter()
        self.sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self.sock is not None

    # ----------------- lifecycle -----------------

    def open(self) -> None:
        try:
            s = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
        except OSError as e:
            raise InitError(f"socket creation error: {e}", code="SOCKET_CREATE_FAILED")

        try:
            self._validate_path()
        except InitError:
            s.close()
            raise

        self.sock = s
        logging.info("PMB: transport ready for %s", self.path)

    def _validate_path(self) -> None:
        if len(os.fsencode(self.path)) >= SUN_PATH_MAX:
            raise InitError(f"socket path too long: {self.path}", code="PATH_TOO_LONG")
        if not os.access(self.path, os.W_OK):
            raise InitError(f"cannot access socket path {self.path}",
                            code="PATH_NOT_WRITABLE")

    def close(self) -> None:
        sock, self.sock = self.sock, None
        if sock is not None:
            sock.close()

    # ----------------- sending -----------------

    def _transmit(self, sock: socket.socket, message: bytes) -> None:
        try:
            sent = sock.sendto(message, self.path)
        except OSError as e:
            raise TransportError(str(e), code="SEND_FAILED")
        if sent < len(message):
            raise TransportError(f"sent {sent} of {len(message)} bytes",
                                 code="TRUNCATED", sent=sent)

    def send(self, message: bytes) -> bool:
        # read once; close() may run on another host thread
        sock = self.sock
        if sock is None:
            logging.error("PMB: cannot send message: socket not connected")
            return False

        try:
            self._transmit(sock, message)
        except TransportError as e:
            if e.code == "TRUNCATED":
                logging.warning("PMB: message truncated: sent %d of %d bytes",
                                e.sent, len(message))
                return False
            self._log_send_failure(message, e)
            return False

        self.errors.reset()
        return True

    def _log_send_failure(self, message: bytes, err: TransportError) -> None:
        count = self.errors.record_failure()
        if count <= SEND_ERROR_LOG_LIMIT:
            logging.error("PMB: failed to send message %s: %s",
                          message.decode("utf-8", errors="replace"), err)
        elif count == SEND_ERROR_LOG_LIMIT + 1:
            logging.error("PMB: further send errors suppressed to prevent log flooding")

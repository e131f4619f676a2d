"""
PulseMesh Bridge – error taxonomy

    InitError         socket/endpoint unusable; disables sending for the session
    ValidationError   malformed playlist payload; single event dropped
    TransportError    send failed or truncated; single message dropped
    PersistenceError  playlist log not writable; single record dropped

None of these cross the host callback boundary.
"""


class PulseMeshError(Exception):
    def __init__(self, message: str, code: str = "PULSEMESH_ERROR") -> None:
        super().__init__(message)
        self.code = code


class InitError(PulseMeshError):
    def __init__(self, message: str, code: str = "INIT_FAILED") -> None:
        super().__init__(message, code=code)


class ValidationError(PulseMeshError):
    def __init__(self, message: str, code: str = "INVALID_EVENT") -> None:
        super().__init__(message, code=code)


class TransportError(PulseMeshError):
    def __init__(self, message: str, code: str = "SEND_FAILED", sent: int = -1) -> None:
        super().__init__(message, code=code)
        self.sent = sent


class PersistenceError(PulseMeshError):
    def __init__(self, message: str, code: str = "WRITE_FAILED") -> None:
        super().__init__(message, code=code)

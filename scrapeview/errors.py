from enum import StrEnum


class ErrorKind(StrEnum):
    NETWORK_FAILURE = "network_failure"  # transport / connectivity
    SERVER_ERROR = "server_error"  # non-2xx or an explicit error body
    MALFORMED_PAYLOAD = "malformed_payload"  # decodes, but has no recognizable shape
    FIELD_COERCION_DEGRADED = "field_coercion_degraded"  # informational only
    INVALID_REQUEST = "invalid_request"  # rejected client-side, never sent


class ApiError(Exception):
    def __init__(self, kind: ErrorKind, message: str, status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind}: {self.message} (HTTP {self.status_code})"
        return f"{self.kind}: {self.message}"

from enum import Enum
from typing import Iterable, Optional


class ErrorCodes(int, Enum):
    INVALID_CONFIG = 9001
    ALREADY_RUNNING = 9002
    TRANSIENT_NETWORK_ERROR = 9003
    REMOTE_REJECTED = 9004
    AUTHENTICATION_FAILED = 9005
    SESSION_CANCELLED = 9006


class AutoClaimException(Exception):
    pass


class InvalidConfigException(AutoClaimException):
    """A session config violated one or more invariants.

    ``fields`` lists every violated field so the caller can point at all of
    them at once.
    """

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields = list(fields)
        if message is None:
            message = f"Invalid session config: {', '.join(self.fields)}"
        super().__init__(message)


class AlreadyRunningException(AutoClaimException):
    pass


class TransientNetworkException(AutoClaimException):
    pass


class RemoteRejectedException(AutoClaimException):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errno: Optional[int] = None,
    ):
        self.status_code = status_code
        self.errno = errno
        super().__init__(message)


class AuthenticationException(RemoteRejectedException):
    pass


class SessionCancelledException(AutoClaimException):
    pass


# Map exceptions to (status code, message override, error code)
EXCEPTION_MAP = {
    InvalidConfigException: (400, None, ErrorCodes.INVALID_CONFIG),
    AlreadyRunningException: (409, None, ErrorCodes.ALREADY_RUNNING),
    TransientNetworkException: (
        503,
        "Clue queue is temporarily unreachable",
        ErrorCodes.TRANSIENT_NETWORK_ERROR,
    ),
    AuthenticationException: (401, None, ErrorCodes.AUTHENTICATION_FAILED),
    RemoteRejectedException: (502, None, ErrorCodes.REMOTE_REJECTED),
    SessionCancelledException: (409, "Session was stopped", ErrorCodes.SESSION_CANCELLED),
}

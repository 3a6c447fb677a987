"""Error types for REST calls against the engine.

Learn: A 403 must be told apart from "the engine is down" so the UI can
show a configuration hint ("set TRUTHSYNC_ADMIN_TOKEN") instead of a
generic network message. AuthError messages carry the "403:" prefix,
so even the flattened string form stays recognizable.
"""

from typing import Optional

AUTH_ERROR_PREFIX = "403:"


class TruthSyncError(Exception):
    """Base for every error raised by truthsync."""


class ApiError(TruthSyncError):
    """A REST call to the engine failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(ApiError):
    """The engine refused the admin token (or none was configured)."""


class HTTPStatusError(ApiError):
    """The engine answered with a non-2xx status other than 403."""


class NetworkError(ApiError):
    """The request never got an HTTP answer (refused, timed out, reset)."""


def is_auth_error(message: Optional[str]) -> bool:
    """True if a flattened error string came from an AuthError."""
    return bool(message) and message.startswith(AUTH_ERROR_PREFIX)

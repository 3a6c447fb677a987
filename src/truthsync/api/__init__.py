"""REST side of the engine: snapshot fetch, heartbeat, control commands."""

from truthsync.api.client import TruthClient
from truthsync.api.errors import (
    AUTH_ERROR_PREFIX,
    ApiError,
    AuthError,
    HTTPStatusError,
    NetworkError,
    TruthSyncError,
    is_auth_error,
)

__all__ = [
    "AUTH_ERROR_PREFIX",
    "ApiError",
    "AuthError",
    "HTTPStatusError",
    "NetworkError",
    "TruthClient",
    "TruthSyncError",
    "is_auth_error",
]

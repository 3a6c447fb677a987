"""Client configuration via environment variables.

Uses pydantic-settings to load config from env vars with TRUTHSYNC_ prefix.
No config files, just env vars, the same way the dashboard reads its
VITE_API_URL / VITE_ADMIN_TOKEN.

Learn: Every component also takes these values as plain constructor
arguments. The `settings` singleton is only read at the edges (CLI,
`TruthState.from_settings`) so tests never depend on the environment.
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All client configuration. Set via TRUTHSYNC_* env vars."""

    # Engine
    api_url: str = "http://127.0.0.1:3001"
    admin_token: Optional[str] = None
    http_timeout_s: float = 10.0

    # Fallback polling + dead-man's switch
    poll_interval_s: float = 5.0
    heartbeat_interval_s: float = 300.0  # 5 min

    # Live stream
    ping_interval_s: float = 25.0
    reconnect_initial_delay_s: float = 1.0
    reconnect_max_delay_s: float = 30.0
    ws_open_timeout_s: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "TRUTHSYNC_"}

    @model_validator(mode="after")
    def validate_timings(self):
        """Reject intervals that would spin the event loop or never back off."""
        for name in (
            "http_timeout_s",
            "poll_interval_s",
            "heartbeat_interval_s",
            "ping_interval_s",
            "reconnect_initial_delay_s",
            "ws_open_timeout_s",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"TRUTHSYNC_{name.upper()} must be positive")
        if self.reconnect_max_delay_s < self.reconnect_initial_delay_s:
            raise ValueError(
                "TRUTHSYNC_RECONNECT_MAX_DELAY_S must be >= "
                "TRUTHSYNC_RECONNECT_INITIAL_DELAY_S"
            )
        return self


# Singleton: import this at the edges
settings = Settings()

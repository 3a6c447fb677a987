"""Engine REST client — snapshot fetch, heartbeat, control commands.

Learn: This is the fallback channel. The live stream carries the same
snapshot, but when the WebSocket is down the poller calls fetch_state()
every few seconds. Every call maps failures onto the ApiError hierarchy
so callers never see raw httpx exceptions.

Endpoints:
    GET  /api/v1/state            full snapshot (bearer optional)
    POST /api/v1/heartbeat        dead-man's switch (bearer optional)
    GET  /api/v1/health           liveness, no auth
    POST /api/v1/control/{cmd}    pause / resume / kill (bearer required)
"""

from typing import Any, Optional
from urllib.parse import urlencode, urlsplit

import httpx
import structlog

from truthsync.api.errors import (
    AUTH_ERROR_PREFIX,
    ApiError,
    AuthError,
    HTTPStatusError,
    NetworkError,
)
from truthsync.schemas.stream import Snapshot

logger = structlog.get_logger()


class TruthClient:
    """Async HTTP client for the engine.

    Usage:
        async with TruthClient("http://127.0.0.1:3001", admin_token=tok) as c:
            snapshot = await c.fetch_state()
    """

    def __init__(
        self,
        api_url: str,
        admin_token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.admin_token = admin_token or None
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "TruthClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ─── Snapshot retrieval ──────────────────────────────────

    async def fetch_state(self) -> Snapshot:
        """Fetch the full state snapshot.

        Raises AuthError on 403, HTTPStatusError on any other non-2xx,
        NetworkError when the engine cannot be reached.
        """
        r = await self._request("GET", "/api/v1/state", label="State")
        return _json_body(r, "State")

    def stream_url(self) -> str:
        """WebSocket URL for the live stream, derived from api_url.

        http → ws, https → wss. The token rides in the query string
        because browsers (and the engine's handler) can't set headers
        on the upgrade request.
        """
        parts = urlsplit(self.api_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        url = f"{scheme}://{parts.netloc}/api/v1/ws"
        if self.admin_token:
            url += "?" + urlencode({"token": self.admin_token})
        return url

    # ─── Dead-man's switch ───────────────────────────────────

    async def send_heartbeat(self) -> None:
        """Tell the engine an operator is still watching."""
        await self._request("POST", "/api/v1/heartbeat", label="Heartbeat")

    # ─── Health + control commands ───────────────────────────

    async def fetch_health(self) -> dict[str, Any]:
        r = await self._request("GET", "/api/v1/health", label="Health", auth=False)
        return _json_body(r, "Health")

    async def pause(self) -> None:
        await self._control("pause", "Pause")

    async def resume(self) -> None:
        await self._control("resume", "Resume")

    async def kill(self) -> None:
        await self._control("kill", "Kill")

    async def _control(self, command: str, label: str) -> None:
        if not self.admin_token:
            raise AuthError("Admin token required")
        await self._request("POST", f"/api/v1/control/{command}", label=label)
        logger.info("control.sent", command=command)

    # ─── Internals ───────────────────────────────────────────

    def _headers(self, auth: bool) -> dict[str, str]:
        if auth and self.admin_token:
            return {"Authorization": f"Bearer {self.admin_token}"}
        return {}

    async def _request(
        self, method: str, path: str, *, label: str, auth: bool = True
    ) -> httpx.Response:
        try:
            r = await self._http.request(method, path, headers=self._headers(auth))
        except httpx.TransportError as e:
            detail = str(e) or e.__class__.__name__
            raise NetworkError(f"Network error: {detail}") from e

        if r.status_code == 403:
            raise AuthError(
                f"{AUTH_ERROR_PREFIX} Missing or invalid admin token", status_code=403
            )
        if not r.is_success:
            raise HTTPStatusError(f"{label} {r.status_code}", status_code=r.status_code)
        return r


def _json_body(r: httpx.Response, label: str) -> Any:
    try:
        return r.json()
    except ValueError as e:
        raise ApiError(f"{label} response is not JSON", status_code=r.status_code) from e

"""
guarduim.signals.http

Failure signal source backed by a structured HTTP API.

Responsibilities:
- Fetch `{"count": n}` for a username from an audit service.
- Translate transport and payload errors into SignalSourceUnavailableError.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx

from guarduim.errors import SignalSourceUnavailableError
from guarduim.signals.base import checked_count


class HttpFailureSignalSource:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        path_template: str = "/v1/failures/{username}",
    ) -> None:
        self._http = http
        self._path_template = path_template

    async def query(self, username: str) -> int:
        path = self._path_template.format(username=quote(username, safe=""))
        try:
            r = await self._http.get(path)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise SignalSourceUnavailableError(username, f"audit API error: {e}") from e
        except ValueError as e:
            raise SignalSourceUnavailableError(username, "audit API returned invalid JSON") from e

        if not isinstance(body, dict) or "count" not in body:
            raise SignalSourceUnavailableError(username, "audit API response missing 'count'")
        return checked_count(username, body["count"])


# --- Module Notes -----------------------------------------------------------
# The client's base_url and timeouts are configured by the composition root (api.app).

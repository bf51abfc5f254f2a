"""HTTP adapter for the zone status feed.

The feed returns one flat string where every character is a zone status.
Some deployments wrap that string in JSON, so a few envelope keys are
unwrapped here and the core only ever sees the bare string.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import aiohttp

from core.ports import StatusFeedError

ENVELOPE_KEYS = ("data", "alerts", "value", "result")


def extract_snapshot(payload: Any) -> str:
    """Return the status string from a decoded JSON payload."""

    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        for key in ENVELOPE_KEYS:
            if isinstance(payload.get(key), str):
                return payload[key]
    raise StatusFeedError("Unexpected JSON format from status feed (expected a string)")


class HttpStatusFeed:
    """Fetches the snapshot with an auth header; satisfies StatusFeedPort."""

    def __init__(
        self,
        url: str,
        token: str,
        auth_header: str = "Authorization",
        auth_prefix: str = "Bearer",
        timeout_seconds: float = 10,
    ) -> None:
        self._url = url
        self._token = token
        self._auth_header = auth_header
        self._auth_prefix = auth_prefix
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "*/*"}
        if self._auth_header.lower() == "authorization":
            headers[self._auth_header] = f"{self._auth_prefix} {self._token}".strip()
        else:
            headers[self._auth_header] = self._token
        return headers

    async def fetch(self) -> str:
        if not self._url or not self._token:
            raise StatusFeedError("Status feed url or token is not configured")

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

        try:
            async with self._session.get(self._url, headers=self._headers()) as response:
                body = await response.text()
                if response.status != 200:
                    raise StatusFeedError(f"status feed {response.status}: {body[:200]}")
                if "application/json" in response.headers.get("Content-Type", ""):
                    return extract_snapshot(json.loads(body))
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as exc:
            raise StatusFeedError(str(exc) or exc.__class__.__name__) from exc

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

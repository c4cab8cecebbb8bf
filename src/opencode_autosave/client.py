"""Async HTTP client for the OpenCode server API."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from opencode_autosave.logging import get_logger

logger = get_logger("client")


class HostError(Exception):
    """A request to the host failed."""


class MessageSource(Protocol):
    """Anything that can return the raw messages of a session."""

    async def messages(self, session_id: str) -> list[dict[str, Any]]: ...


class OpencodeClient:
    """
    Thin async wrapper around the OpenCode server endpoints the plugin uses.

    Unlike the event handlers, these methods raise :class:`HostError` on
    failure; the save orchestrator catches it at the flush boundary.
    """

    def __init__(
        self,
        base_url: str,
        directory: str | None = None,
        timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.directory = directory
        self._client = http or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> OpencodeClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _params(self) -> dict[str, str]:
        return {"directory": self.directory} if self.directory else {}

    async def _get_json(self, path: str) -> Any:
        try:
            resp = await self._client.get(path, params=self._params())
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise HostError(f"GET {path} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def messages(self, session_id: str) -> list[dict[str, Any]]:
        """Raw messages of a session, oldest first."""
        data = await self._get_json(f"/session/{session_id}/message")
        return data if isinstance(data, list) else []

    async def session(self, session_id: str) -> dict[str, Any]:
        data = await self._get_json(f"/session/{session_id}")
        if not isinstance(data, dict):
            raise HostError(f"Unexpected session payload for {session_id}")
        return data

    async def children(self, session_id: str) -> list[dict[str, Any]]:
        data = await self._get_json(f"/session/{session_id}/children")
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """
        Yield events from the server-sent event stream.

        Each ``data:`` line carries one JSON event. Lines that are not valid
        JSON objects are skipped.
        """
        try:
            async with self._client.stream(
                "GET",
                "/event",
                params=self._params(),
                timeout=httpx.Timeout(None),
            ) as resp:
                resp.raise_for_status()
                async for line in resp.aiter_lines():
                    event = parse_sse_line(line)
                    if event is not None:
                        yield event
        except httpx.HTTPError as exc:
            raise HostError(f"Event stream failed: {exc}") from exc


def parse_sse_line(line: str) -> dict[str, Any] | None:
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if not payload:
        return None
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed event line: %s", payload[:200])
        return None
    return event if isinstance(event, dict) else None

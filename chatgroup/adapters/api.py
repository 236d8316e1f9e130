"""HTTP client for the chat collaborator endpoints.

Thin async wrappers over one ``aiohttp.ClientSession``. Transport and
HTTP failures are raised as :class:`FetchError`/:class:`ApiError`; the
artifact controllers turn them into scoped error state.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from chatgroup.config import ClientConfig
from chatgroup.errors import ApiError, FetchError
from chatgroup.shared.models.agent import ChatAgent, SessionAgent
from chatgroup.shared.models.message import ChatMessage

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _unwrap_list(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        payload = payload.get("data")
    return payload if isinstance(payload, list) else []


class ChatApi:
    """Async client for sessions, messages and run artifacts."""

    def __init__(
        self,
        config: ClientConfig,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._http = http
        self._owns_http = http is None

    @property
    def http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
            self._http = aiohttp.ClientSession(timeout=timeout)
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        if self._owns_http and self._http is not None and not self._http.closed:
            await self._http.close()

    async def __aenter__(self) -> ChatApi:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── plumbing ────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        resource: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        as_text: bool = False,
    ) -> Any:
        url = self._config.api_url(path)
        try:
            async with self.http.request(
                method, url, params=params, json=json_body,
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise ApiError(resource, resp.status, body[:200].strip())
                if as_text:
                    return await resp.text()
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(resource, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise FetchError(resource, f"invalid JSON: {exc}") from exc

    # ── listings ────────────────────────────────────────────────────

    async def list_sessions(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/sessions", "sessions")
        return [s for s in _unwrap_list(payload) if isinstance(s, dict)]

    async def list_agents(self) -> list[ChatAgent]:
        payload = await self._request("GET", "/agents", "agents")
        agents = [ChatAgent.from_dict(a) for a in _unwrap_list(payload)]
        return [a for a in agents if a is not None]

    async def list_session_agents(self, session_id: str) -> list[SessionAgent]:
        payload = await self._request(
            "GET", f"/sessions/{_segment(session_id)}/agents",
            f"session {session_id} agents",
        )
        members = [SessionAgent.from_dict(a) for a in _unwrap_list(payload)]
        return [m for m in members if m is not None]

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        payload = await self._request(
            "GET", f"/sessions/{_segment(session_id)}/messages",
            f"session {session_id} messages",
        )
        messages: list[ChatMessage] = []
        for row in _unwrap_list(payload):
            message = ChatMessage.from_dict(row)
            if message is None:
                logger.warning("Skipping malformed message in session %s", session_id)
                continue
            messages.append(message)
        return messages

    async def create_message(
        self, session_id: str, content: str, meta: dict[str, Any] | None = None,
    ) -> ChatMessage | None:
        body: dict[str, Any] = {"content": content}
        if meta:
            body["meta"] = meta
        payload = await self._request(
            "POST", f"/sessions/{_segment(session_id)}/messages",
            f"session {session_id} messages", json_body=body,
        )
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        return ChatMessage.from_dict(payload)

    # ── run artifacts ───────────────────────────────────────────────

    async def get_run_diff(self, run_id: str) -> str:
        return await self._request(
            "GET", f"/runs/{_segment(run_id)}/diff", f"run {run_id} diff",
            as_text=True,
        )

    async def get_run_untracked_file(self, run_id: str, path: str) -> str:
        return await self._request(
            "GET", f"/runs/{_segment(run_id)}/untracked",
            f"run {run_id} file {path}", params={"path": path}, as_text=True,
        )

    async def get_run_log(self, run_id: str) -> str:
        return await self._request(
            "GET", f"/runs/{_segment(run_id)}/log", f"run {run_id} log",
            as_text=True,
        )

    def run_diff_url(self, run_id: str) -> str:
        return self._config.api_url(f"/runs/{_segment(run_id)}/diff")

from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from chatgroup.adapters.api import ChatApi
from chatgroup.app import ChatClient
from chatgroup.config import ClientConfig
from chatgroup.errors import ApiError, FetchError
from chatgroup.shared.models import AgentState

MESSAGE = {
    "id": "m1",
    "session_id": "s1",
    "sender_type": "user",
    "content": "@coder hi",
    "created_at": "2024-01-01T00:00:00Z",
    "meta": None,
}

POSTED = web.AppKey("posted", list)


def _app() -> web.Application:
    app = web.Application()
    posted: list = []
    app[POSTED] = posted

    async def sessions(request: web.Request) -> web.Response:
        return web.json_response({"data": [
            {"id": "s1", "title": "Refactor"},
            "not-a-session",
        ]})

    async def agents(request: web.Request) -> web.Response:
        return web.json_response([
            {"id": "agent-1", "name": "coder", "runner_type": "codex"},
            {"id": 7, "name": "broken"},
        ])

    async def session_agents(request: web.Request) -> web.Response:
        return web.json_response({"data": [
            {"id": "sa-1", "session_id": request.match_info["sid"], "agent_id": "agent-1", "state": "running"},
        ]})

    async def messages(request: web.Request) -> web.Response:
        return web.json_response([MESSAGE, {"id": "m2"}])

    async def create(request: web.Request) -> web.Response:
        body = await request.json()
        posted.append(body)
        return web.json_response({"data": {
            **MESSAGE, "id": "m-new", "content": body["content"],
            "created_at": "2024-01-02T00:00:00Z",
        }})

    async def diff(request: web.Request) -> web.Response:
        if request.match_info["run_id"] == "missing":
            return web.Response(status=404, text="no such run")
        return web.Response(text="diff --git a/x b/x\n+new\n")

    async def untracked(request: web.Request) -> web.Response:
        return web.Response(text=f"content of {request.query['path']}")

    async def log(request: web.Request) -> web.Response:
        return web.Response(text="line 1\nline 2\n")

    app.router.add_get("/api/chat/sessions", sessions)
    app.router.add_get("/api/chat/agents", agents)
    app.router.add_get("/api/chat/sessions/{sid}/agents", session_agents)
    app.router.add_get("/api/chat/sessions/{sid}/messages", messages)
    app.router.add_post("/api/chat/sessions/{sid}/messages", create)
    app.router.add_get("/api/chat/runs/{run_id}/diff", diff)
    app.router.add_get("/api/chat/runs/{run_id}/untracked", untracked)
    app.router.add_get("/api/chat/runs/{run_id}/log", log)
    return app


async def _serve() -> tuple[TestServer, ClientConfig]:
    server = TestServer(_app())
    await server.start_server()
    return server, ClientConfig(base_url=f"http://{server.host}:{server.port}")


@pytest.mark.asyncio
async def test_listings_skip_malformed_rows() -> None:
    server, config = await _serve()
    try:
        async with ChatApi(config) as api:
            sessions = await api.list_sessions()
            agents = await api.list_agents()
            members = await api.list_session_agents("s1")
            messages = await api.list_messages("s1")
        assert sessions == [{"id": "s1", "title": "Refactor"}]
        assert [a.name for a in agents] == ["coder"]
        assert members[0].state is AgentState.RUNNING
        assert [m.id for m in messages] == ["m1"]
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_run_artifacts_and_errors() -> None:
    server, config = await _serve()
    try:
        async with ChatApi(config) as api:
            assert (await api.get_run_diff("r1")).startswith("diff --git")
            assert await api.get_run_untracked_file("r1", "dir/new file.txt") == "content of dir/new file.txt"
            assert await api.get_run_log("r1") == "line 1\nline 2\n"
            with pytest.raises(ApiError) as excinfo:
                await api.get_run_diff("missing")
            assert excinfo.value.status == 404
            assert api.run_diff_url("r1") == f"{config.base_url}/api/chat/runs/r1/diff"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_unreachable_server_raises_fetch_error() -> None:
    server, config = await _serve()
    await server.close()
    async with ChatApi(config) as api:
        with pytest.raises(FetchError):
            await api.get_run_log("r1")


@pytest.mark.asyncio
async def test_client_sends_and_upserts_message() -> None:
    server, config = await _serve()
    views: list = []
    try:
        async with ChatClient(config, listener=views.append) as client:
            assert await client.send_message("hello") is False
            assert [s["id"] for s in await client.list_sessions()] == ["s1"]
            client.open_session("s1")
            # No stream endpoint on this server
            client.transport.close()
            assert await client.refresh() is True
            assert await client.send_message("hello", meta={"reference_message_id": "m1"}) is True
            assert [m.id for m in views[-1].messages] == ["m1", "m-new"]
            assert server.app[POSTED] == [
                {"content": "hello", "meta": {"reference_message_id": "m1"}},
            ]
    finally:
        await server.close()

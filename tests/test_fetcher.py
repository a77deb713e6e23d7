# File: tests/test_fetcher.py
from __future__ import annotations

import asyncio

import pytest
from aiohttp import ClientSession, web

from site_mapper.crawler.errors import FetchFailure
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.crawler.models import CancelToken
from tests.conftest import FakeSite


async def _echo_agent(request: web.Request) -> web.Response:
    return web.Response(text=request.headers.get("User-Agent", ""), content_type="text/plain")


async def _too_slow(_: web.Request) -> web.Response:
    await asyncio.sleep(2)
    return web.Response(text="late", content_type="text/html")


@pytest.mark.asyncio()
async def test_fetch_streams_body(serve_site):
    site = FakeSite({"/page": "<h1>hello</h1>"})
    base = await serve_site(site)
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], timeout=2.0)
        async with fetcher.fetch(f"{base}/page") as response:
            body = await response.read()
    assert response.status == 200
    assert response.url == f"{base}/page"
    assert body == b"<h1>hello</h1>"
    assert fetcher.requests == 1
    assert fetcher.in_flight == 0


@pytest.mark.asyncio()
@pytest.mark.parametrize("status", [404, 500, 503])
async def test_non_2xx_is_fetch_failure(serve_site, status):
    site = FakeSite({"/bad": status})
    base = await serve_site(site)
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], timeout=2.0)
        with pytest.raises(FetchFailure) as info:
            async with fetcher.fetch(f"{base}/bad"):
                pass
    assert info.value.status == status
    assert site.hits["/bad"] == 1  # no retries


@pytest.mark.asyncio()
async def test_timeout_is_fetch_failure(serve_site):
    site = FakeSite({"/slow": _too_slow})
    base = await serve_site(site)
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], timeout=0.3)
        with pytest.raises(FetchFailure) as info:
            async with fetcher.fetch(f"{base}/slow") as response:
                await response.read()
    assert info.value.status is None
    assert fetcher.in_flight == 0


@pytest.mark.asyncio()
async def test_connection_error_is_fetch_failure(unused_tcp_port):
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], timeout=1.0)
        with pytest.raises(FetchFailure):
            async with fetcher.fetch(f"http://127.0.0.1:{unused_tcp_port}/"):
                pass


@pytest.mark.asyncio()
async def test_user_agent_rotation_uses_pool(serve_site):
    site = FakeSite({"/ua": _echo_agent})
    base = await serve_site(site)
    pool = ["agent-one", "agent-two", "agent-three"]
    async with ClientSession() as session:
        fetcher = Fetcher(session, pool, timeout=2.0, choose=lambda agents: agents[-1])
        async with fetcher.fetch(f"{base}/ua") as response:
            assert await response.read() == b"agent-three"
        async with fetcher.fetch(f"{base}/ua", "explicit-agent") as response:
            assert await response.read() == b"explicit-agent"

        random_fetcher = Fetcher(session, pool, timeout=2.0)
        for _ in range(10):
            assert random_fetcher.pick_user_agent() in pool


def test_empty_pool_rejected():
    with pytest.raises(ValueError):
        Fetcher(session=None, user_agents=[])  # type: ignore[arg-type]


@pytest.mark.asyncio()
async def test_admission_gate_caps_in_flight(serve_site):
    limit = 3
    site = FakeSite({f"/p{i}": "<p>x</p>" for i in range(12)}, delay=0.1)
    base = await serve_site(site)

    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], max_concurrency=limit, timeout=5.0)

        async def one(i: int) -> bytes:
            async with fetcher.fetch(f"{base}/p{i}") as response:
                assert fetcher.in_flight <= limit
                return await response.read()

        bodies = await asyncio.gather(*(one(i) for i in range(12)))

    assert bodies == [b"<p>x</p>"] * 12
    assert fetcher.peak_in_flight == limit
    assert site.peak <= limit
    assert fetcher.in_flight == 0


@pytest.mark.asyncio()
async def test_slot_released_after_failure(serve_site):
    site = FakeSite({"/ok": "<p>ok</p>", "/gone": 410})
    base = await serve_site(site)
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], max_concurrency=1, timeout=2.0)
        with pytest.raises(FetchFailure):
            async with fetcher.fetch(f"{base}/gone"):
                pass
        async def fetch_ok() -> bytes:
            async with fetcher.fetch(f"{base}/ok") as response:
                return await response.read()

        assert await asyncio.wait_for(fetch_ok(), timeout=2.0) == b"<p>ok</p>"


@pytest.mark.asyncio()
async def test_cancelled_token_skips_queued_requests(serve_site):
    site = FakeSite({"/first": "<p>1</p>", "/second": "<p>2</p>"})
    base = await serve_site(site)
    token = CancelToken()
    async with ClientSession() as session:
        fetcher = Fetcher(session, ["TestAgent/1.0"], max_concurrency=1, timeout=2.0, cancel_token=token)

        async def fetch_second() -> bytes:
            async with fetcher.fetch(f"{base}/second") as response:
                return await response.read()

        async with fetcher.fetch(f"{base}/first") as response:
            waiting = asyncio.create_task(fetch_second())
            await asyncio.sleep(0.05)
            token.cancel("user abort")
            assert await response.read() == b"<p>1</p>"

        with pytest.raises(FetchFailure) as info:
            await waiting

    assert info.value.reason == "cancelled"
    assert site.hits["/second"] == 0
    assert fetcher.requests == 1
    assert fetcher.in_flight == 0

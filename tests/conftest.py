"""Shared fixtures: protocol file builders and a fake aiohttp session."""

import asyncio
import json

import aiohttp
import pytest


def protocol_file(base_url, nodes=(), edges=(), friends=None, title="Test Site"):
    """Build a protocol file dict. nodes are (url, title), edges (source, target, type)."""
    data = {
        "version": "0.1.0",
        "generated_at": "2026-02-17T12:00:00Z",
        "base_url": base_url,
        "site": {"title": title},
        "nodes": [{"url": url, "title": t} for url, t in nodes],
        "edges": [{"source": s, "target": t, "type": k} for s, t, k in edges],
    }
    if friends is not None:
        data["friends"] = list(friends)
    return data


class FakeResponse:
    def __init__(self, status=200, body=""):
        self.status = status
        self.body = body

    async def text(self, errors="strict"):
        return self.body


class _Request:
    def __init__(self, session, url):
        self.session = session
        self.url = url

    async def __aenter__(self):
        route = self.session.routes.get(self.url)
        delay = self.session.delays.get(self.url)
        try:
            if isinstance(route, asyncio.Event):
                await route.wait()
                route = FakeResponse(404)
            elif delay:
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.session.cancelled.append(self.url)
            raise
        if route is None:
            raise aiohttp.ClientConnectionError(f"cannot connect to {self.url}")
        if isinstance(route, Exception):
            raise route
        return route

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Stands in for aiohttp.ClientSession.get(). routes maps a URL to a
    FakeResponse, an exception to raise, or an asyncio.Event that holds
    the request open. Unknown URLs fail like a refused connection.
    """

    def __init__(self, routes=None, delays=None):
        self.routes = routes or {}
        self.delays = delays or {}
        self.requests = []
        self.cancelled = []

    def add_file(self, origin, data, status=200):
        body = data if isinstance(data, str) else json.dumps(data)
        self.routes[origin + "/.well-known/graphgarden.json"] = FakeResponse(status, body)

    def get(self, url, **kwargs):
        self.requests.append(url)
        return _Request(self, url)


@pytest.fixture
def make_file():
    return protocol_file


@pytest.fixture
def fake_http():
    return FakeSession()


@pytest.fixture
def local_file():
    """https://local.test/ with one page and one friend edge."""
    return protocol_file(
        "https://local.test/",
        nodes=[("/", "Home")],
        edges=[("/", "https://friend.test/", "friend")],
        friends=["https://friend.test/"],
        title="Local",
    )


@pytest.fixture
def friend_file():
    return protocol_file(
        "https://friend.test/",
        nodes=[("/", "Friend Home"), ("/blog/", "Friend Blog")],
        edges=[("/", "/blog/", "internal")],
        title="Friend",
    )

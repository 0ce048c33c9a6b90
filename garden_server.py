#!/usr/bin/env python3
"""
graphgarden server - publishes a site's graphgarden.json and serves the
assembled graph (the site plus all of its friends) as JSON.

The well-known route makes the server a valid friend for other gardens.
"""

import asyncio
import logging
from typing import Optional, Set

import aiohttp
from aiohttp import web

from garden_config import resolve_config
from graphgarden import GardenSession, ProtocolFile

logger = logging.getLogger(__name__)

SELF_FILE = web.AppKey("self_file", ProtocolFile)
CONFIG = web.AppKey("config", dict)
HTTP = web.AppKey("http", aiohttp.ClientSession)
SESSIONS = web.AppKey("sessions", set)
LAST_PEERS = web.AppKey("last_peers", dict)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


async def handle_well_known(request):
    """Serve our own protocol file."""
    pf = request.app[SELF_FILE]
    return web.json_response(pf.to_json(), headers=CORS_HEADERS)


async def handle_graph(request):
    """Assemble the site and its friends, return the merged graph."""
    app = request.app
    session = GardenSession(app[SELF_FILE], config=app[CONFIG], http=app[HTTP])
    app[SESSIONS].add(session)
    try:
        graph = await session.assemble()
        app[LAST_PEERS].clear()
        app[LAST_PEERS].update(graph.peers)
        return web.json_response(graph.to_json(), headers=CORS_HEADERS)
    finally:
        app[SESSIONS].discard(session)
        await session.close()


async def handle_peers(request):
    """Per-origin outcomes of the last assembly."""
    return web.json_response({"peers": request.app[LAST_PEERS]})


async def _http_client(app):
    """One shared client for every assembly. Open sessions die with it."""
    cfg = app[CONFIG]
    connector = aiohttp.TCPConnector(limit=cfg["fetch"]["concurrent"])
    app[HTTP] = aiohttp.ClientSession(connector=connector)
    yield
    sessions: Set[GardenSession] = set(app[SESSIONS])
    if sessions:
        logger.info("closing %d open sessions", len(sessions))
        await asyncio.gather(*(s.close() for s in sessions))
    await app[HTTP].close()


def create_app(self_file: ProtocolFile, config: Optional[dict] = None) -> web.Application:
    app = web.Application()
    app[SELF_FILE] = self_file
    app[CONFIG] = resolve_config(config)
    app[SESSIONS] = set()
    app[LAST_PEERS] = {}

    app.router.add_get(app[CONFIG]["fetch"]["well_known_path"], handle_well_known)
    app.router.add_get("/api/graph", handle_graph)
    app.router.add_get("/api/peers", handle_peers)

    app.cleanup_ctx.append(_http_client)
    return app


def run_server(self_file: ProtocolFile, config: Optional[dict] = None):
    cfg = resolve_config(config)
    host, port = cfg["server"]["host"], cfg["server"]["port"]
    print(f"graphgarden server starting on {host}:{port}")
    print(f"serving {self_file.base_url} ({len(self_file.nodes)} nodes)")
    app = create_app(self_file, cfg)
    web.run_app(app, host=host, port=port, print=print)

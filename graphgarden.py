#!/usr/bin/env python3
"""
graphgarden - federated link graphs for independent web sites

Every site publishes a small link-graph file at /.well-known/graphgarden.json.
Any site can fetch the files of the friends it declares and merge them into
one navigable graph. No registry, no handshake: you link, they show up.

Nodes are canonical absolute URLs, classified by where they came from:
    local     declared by your own site
    friend    declared by a friend whose file we fetched successfully
    frontier  only seen as the end of a link, not confirmed by anyone yet

Usage:
    graphgarden validate <file.json>
    graphgarden assemble <self.json> [--output graph.json]
    graphgarden info <graph.json>
    graphgarden serve <self.json> [--port 8421]
"""

import argparse
import asyncio
import json
import logging
import sys
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

import aiohttp

from garden_config import load_config, resolve_config, save_config, with_overrides

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "0.1.0"

# Provenance, weakest first. A merge never moves a node down this list.
FRONTIER = "frontier"
FRIEND = "friend"
LOCAL = "local"
PROVENANCE_RANK = {FRONTIER: 0, FRIEND: 1, LOCAL: 2}

EDGE_TYPES = ("internal", "friend")

DEFAULT_PORTS = {"http": 80, "https": 443}
PATH_SAFE = "/%:@!$&'()*+,;=-._~"


# ── Errors ────────────────────────────────────────────────────────────

class GardenError(Exception):
    """Base exception for assembly failures. None of them are fatal."""
    pass


class InvalidUrl(GardenError):
    """Raised when a reference or base URL can't be parsed."""
    def __init__(self, reference, base: str = "", reason: str = ""):
        self.reference = reference
        self.base = base
        self.reason = reason
        where = f" (base {base!r})" if base else ""
        super().__init__(f"invalid URL {reference!r}{where}: {reason}")


class ValidationFailure(GardenError):
    """Raised when a decoded value doesn't have the protocol file shape."""
    def __init__(self, reason: str, source: str = ""):
        self.reason = reason
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{reason}")


class TransportFailure(GardenError):
    """Raised when a friend file can't be fetched (network or HTTP status)."""
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"fetching {url} failed: {reason}")


# ── Canonical URLs ────────────────────────────────────────────────────

def _remove_dot_segments(path: str) -> str:
    if "." not in path or path.startswith("//"):
        return path
    return urlsplit(urljoin("http://h/", path)).path


def _normalize(url: str, reference: str, base: str) -> str:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise InvalidUrl(reference, base, "not an absolute URL with a host")
    port = parts.port
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if "@" in parts.netloc:
        netloc = parts.netloc.rpartition("@")[0] + "@" + netloc
    # spaces and non-ASCII get percent-encoded, existing escapes stay as they are
    path = quote(_remove_dot_segments(parts.path), safe=PATH_SAFE) or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def resolve_url(reference: str, base: str = "") -> str:
    """
    Resolve a (possibly relative) reference against a base URL into the
    canonical absolute string used as node identity.

    Absolute references ignore the base. Scheme and host are lower-cased,
    default ports dropped and an empty path becomes "/". Nothing else is
    trimmed: "/blog" and "/blog/" stay different nodes.

    Raises InvalidUrl when either input can't be parsed.
    """
    if not isinstance(reference, str) or not isinstance(base, str):
        raise InvalidUrl(reference, str(base), "not a string")
    reference = reference.strip()
    base = base.strip()
    try:
        if urlsplit(reference).scheme:
            joined = reference
        else:
            base_parts = urlsplit(base)
            if not base_parts.scheme or not base_parts.netloc:
                raise InvalidUrl(reference, base, "base is not an absolute URL")
            joined = urljoin(base, reference)
        return _normalize(joined, reference, base)
    except ValueError as e:
        # bad IPv6 literals, non-numeric or out of range ports
        raise InvalidUrl(reference, base, str(e)) from e


def origin_of(url: str) -> str:
    """scheme://host[:port] of a URL. The unit a friend file is published per."""
    parts = urlsplit(resolve_url(url))
    return f"{parts.scheme}://{parts.netloc.rpartition('@')[2]}"


def well_known_url(origin: str, config: dict = None) -> str:
    """Where an origin publishes its protocol file."""
    cfg = resolve_config(config)
    return origin + cfg["fetch"]["well_known_path"]


# ── Protocol File ─────────────────────────────────────────────────────

class SiteDescriptor:
    """Title and optional description/language of a publishing site."""

    __slots__ = ("title", "description", "language")

    def __init__(self, title: str, description: Optional[str] = None,
                 language: Optional[str] = None):
        self.title = title
        self.description = description
        self.language = language

    def to_json(self) -> dict:
        data = {"title": self.title}
        if self.description is not None:
            data["description"] = self.description
        if self.language is not None:
            data["language"] = self.language
        return data

    def __repr__(self):
        return f"<SiteDescriptor {self.title!r}>"


class NodeRecord:
    __slots__ = ("url", "title")

    def __init__(self, url: str, title: str):
        self.url = url
        self.title = title

    def to_json(self) -> dict:
        return {"url": self.url, "title": self.title}


class EdgeRecord:
    __slots__ = ("source", "target", "type")

    def __init__(self, source: str, target: str, type: str):
        self.source = source
        self.target = target
        self.type = type

    def to_json(self) -> dict:
        return {"source": self.source, "target": self.target, "type": self.type}


class ProtocolFile:
    """
    A validated graphgarden.json. Read-only input: it is consumed to
    produce graph entries and never mutated.

    Build one with validate_protocol_file() (or from_json, same thing);
    nothing past that gate touches undecoded JSON.
    """

    __slots__ = ("version", "generated_at", "base_url", "site",
                 "friends", "nodes", "edges")

    def __init__(self, version: str, generated_at: str, base_url: str,
                 site: SiteDescriptor, nodes: Tuple[NodeRecord, ...] = (),
                 edges: Tuple[EdgeRecord, ...] = (),
                 friends: Optional[Tuple[str, ...]] = None):
        self.version = version
        self.generated_at = generated_at
        self.base_url = base_url
        self.site = site
        self.friends = friends  # None = file predates the explicit list
        self.nodes = tuple(nodes)
        self.edges = tuple(edges)

    def to_json(self) -> dict:
        data = {
            "version": self.version,
            "generated_at": self.generated_at,
            "base_url": self.base_url,
            "site": self.site.to_json(),
        }
        if self.friends is not None:
            data["friends"] = list(self.friends)
        data["nodes"] = [n.to_json() for n in self.nodes]
        data["edges"] = [e.to_json() for e in self.edges]
        return data

    @classmethod
    def from_json(cls, data, source: str = "") -> "ProtocolFile":
        return validate_protocol_file(data, source=source)

    @classmethod
    def load(cls, path: str) -> "ProtocolFile":
        """Load and validate a protocol file from disk."""
        with open(path) as f:
            try:
                data = json.load(f)
            except (ValueError, RecursionError) as e:
                raise ValidationFailure(f"not JSON: {e}", source=str(path)) from e
        return validate_protocol_file(data, source=str(path))

    def __repr__(self):
        return f"<ProtocolFile {self.base_url} nodes={len(self.nodes)} edges={len(self.edges)}>"


def _require_str(obj: dict, key: str, where: str, source: str):
    if not isinstance(obj.get(key), str):
        raise ValidationFailure(f"{where}{key} must be a string", source)


def _optional_str(obj: dict, key: str, where: str, source: str):
    if key in obj and not isinstance(obj[key], str):
        raise ValidationFailure(f"{where}{key} must be a string when present", source)


def _require_list(obj: dict, key: str, source: str) -> list:
    value = obj.get(key)
    if not isinstance(value, list):
        raise ValidationFailure(f"{key} must be a list", source)
    return value


def validate_protocol_file(value, source: str = "") -> ProtocolFile:
    """
    Structurally check a decoded JSON value against the protocol file shape.

    All or nothing: any deviation raises ValidationFailure, so a malformed
    friend file never reaches the graph half-merged.
    """
    if not isinstance(value, dict):
        raise ValidationFailure("expected a JSON object", source)

    for key in ("version", "generated_at", "base_url"):
        _require_str(value, key, "", source)

    site = value.get("site")
    if not isinstance(site, dict):
        raise ValidationFailure("site must be an object", source)
    _require_str(site, "title", "site.", source)
    _optional_str(site, "description", "site.", source)
    _optional_str(site, "language", "site.", source)

    friends = None
    if "friends" in value:
        friends = value["friends"]
        if not isinstance(friends, list) or not all(isinstance(f, str) for f in friends):
            raise ValidationFailure("friends must be a list of strings", source)
        friends = tuple(friends)

    nodes = []
    for i, node in enumerate(_require_list(value, "nodes", source)):
        if not isinstance(node, dict):
            raise ValidationFailure(f"nodes[{i}] must be an object", source)
        _require_str(node, "url", f"nodes[{i}].", source)
        _require_str(node, "title", f"nodes[{i}].", source)
        nodes.append(NodeRecord(node["url"], node["title"]))

    edges = []
    for i, edge in enumerate(_require_list(value, "edges", source)):
        if not isinstance(edge, dict):
            raise ValidationFailure(f"edges[{i}] must be an object", source)
        _require_str(edge, "source", f"edges[{i}].", source)
        _require_str(edge, "target", f"edges[{i}].", source)
        if not isinstance(edge.get("type"), str) or edge["type"] not in EDGE_TYPES:
            raise ValidationFailure(
                f"edges[{i}].type must be one of {', '.join(EDGE_TYPES)}", source)
        edges.append(EdgeRecord(edge["source"], edge["target"], edge["type"]))

    return ProtocolFile(
        version=value["version"],
        generated_at=value["generated_at"],
        base_url=value["base_url"],
        site=SiteDescriptor(site["title"], site.get("description"), site.get("language")),
        friends=friends,
        nodes=nodes,
        edges=edges,
    )


def is_protocol_file(value) -> bool:
    """Boolean form of validate_protocol_file."""
    try:
        validate_protocol_file(value)
    except ValidationFailure:
        return False
    return True


# ── Graph Store ───────────────────────────────────────────────────────

class GardenGraph:
    """
    The merged graph - nodes are canonical URLs, edges are directed links.

    Both merge operations are idempotent upserts: calling them again with
    the same arguments changes nothing, and a canonical URL never gets a
    second node.
    """

    def __init__(self):
        self.nodes: Dict[str, dict] = {}  # url -> {title, provenance}
        self.edges: Dict[str, Dict[str, dict]] = defaultdict(dict)  # source -> {target -> {type}}
        self.peers: Dict[str, dict] = {}  # origin -> {status, ...} per friend fetch
        self.metadata: dict = {
            "created_at": datetime.now().isoformat(),
            "version": PROTOCOL_VERSION,
            "base_url": "",
            "site": None,
        }

    @property
    def base_url(self) -> str:
        return self.metadata.get("base_url") or ""

    @property
    def order(self) -> int:
        return len(self.nodes)

    @property
    def size(self) -> int:
        return sum(len(targets) for targets in self.edges.values())

    def has_edge(self, source: str, target: str) -> bool:
        return target in self.edges.get(source, {})

    def merge_node(self, node_id: str, title: Optional[str] = None,
                   provenance: str = FRONTIER) -> bool:
        """
        Create the node if absent, otherwise overwrite its title (when given)
        and raise its provenance. local never drops, friend replaces frontier,
        frontier only ever lands on a new node. A lower-rank merge can't
        retitle a node, so friends never rename local pages.

        Returns True when a new node was created.
        """
        if provenance not in PROVENANCE_RANK:
            raise ValueError(f"unknown provenance: {provenance!r}")
        node = self.nodes.get(node_id)
        if node is None:
            self.nodes[node_id] = {"title": title or "", "provenance": provenance}
            return True
        if title is not None and PROVENANCE_RANK[provenance] >= PROVENANCE_RANK[node["provenance"]]:
            node["title"] = title
        if PROVENANCE_RANK[provenance] > PROVENANCE_RANK[node["provenance"]]:
            node["provenance"] = provenance
        return False

    def merge_edge(self, source: str, target: str, edge_type: str) -> bool:
        """
        Add or overwrite the directed edge source -> target. Missing
        endpoints are created as frontier nodes.

        Returns True when a new edge was created.
        """
        if edge_type not in EDGE_TYPES:
            raise ValueError(f"unknown edge type: {edge_type!r}")
        self.merge_node(source)
        self.merge_node(target)
        created = target not in self.edges.get(source, {})
        self.edges[source][target] = {"type": edge_type}
        return created

    def iter_edges(self) -> Iterator[Tuple[str, str, dict]]:
        for source, targets in self.edges.items():
            for target, attrs in targets.items():
                yield source, target, attrs

    def with_provenance(self, provenance: str) -> List[str]:
        return [url for url, node in self.nodes.items() if node["provenance"] == provenance]

    def origins(self) -> Dict[str, int]:
        """Count nodes per origin."""
        counts = defaultdict(int)
        for url in self.nodes:
            counts[origin_of(url)] += 1
        return dict(sorted(counts.items(), key=lambda x: x[1], reverse=True))

    def stats(self) -> dict:
        """Return graph statistics."""
        return {
            "nodes": self.order,
            "edges": self.size,
            "local": len(self.with_provenance(LOCAL)),
            "friend": len(self.with_provenance(FRIEND)),
            "frontier": len(self.with_provenance(FRONTIER)),
            "origins": len(self.origins()),
            "peers_ok": sum(1 for p in self.peers.values() if p.get("status") == "ok"),
            "peers_failed": sum(1 for p in self.peers.values() if p.get("status") == "error"),
            "base_url": self.base_url,
        }

    # ── Serialization ──

    def to_json(self) -> dict:
        """Serialize to JSON-compatible dict."""
        return {
            "metadata": self.metadata,
            "nodes": self.nodes,
            "edges": [
                {"source": source, "target": target, **attrs}
                for source, target, attrs in self.iter_edges()
            ],
            "peers": self.peers,
        }

    @classmethod
    def from_json(cls, data: dict) -> "GardenGraph":
        """Deserialize from JSON dict."""
        graph = cls()
        graph.metadata = data.get("metadata", graph.metadata)
        graph.peers = data.get("peers", {})
        for url, node in data.get("nodes", {}).items():
            graph.nodes[url] = {
                "title": node.get("title", ""),
                "provenance": node.get("provenance", FRONTIER),
            }
        for edge in data.get("edges", []):
            graph.edges[edge["source"]][edge["target"]] = {"type": edge["type"]}
        return graph

    def save(self, path: str):
        """Save graph to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_json(), f, indent=2)
        logger.info("saved graph to %s (%d nodes, %d edges)", path, self.order, self.size)

    @classmethod
    def load(cls, path: str) -> "GardenGraph":
        """Load graph from JSON file."""
        with open(path) as f:
            return cls.from_json(json.load(f))


def merge_protocol_file(graph: GardenGraph, pf: ProtocolFile, provenance: str) -> Tuple[int, int]:
    """
    Merge every declared node and edge of a protocol file into the graph,
    resolved against the file's own base_url. Unresolvable URLs are skipped.

    Returns (nodes merged, edges merged).
    """
    n_nodes = n_edges = 0
    for node in pf.nodes:
        try:
            url = resolve_url(node.url, pf.base_url)
        except InvalidUrl as e:
            logger.warning("skipping node from %s: %s", pf.base_url, e)
            continue
        graph.merge_node(url, node.title, provenance)
        n_nodes += 1

    for edge in pf.edges:
        try:
            source = resolve_url(edge.source, pf.base_url)
            target = resolve_url(edge.target, pf.base_url)
        except InvalidUrl as e:
            logger.warning("skipping edge from %s: %s", pf.base_url, e)
            continue
        graph.merge_edge(source, target, edge.type)
        n_edges += 1

    return n_nodes, n_edges


# ── Friend Fetching ───────────────────────────────────────────────────

def friend_origins(friend_urls: List[str], base: str = "") -> List[str]:
    """
    Canonicalize friend URLs and collapse them to distinct origins, in
    first-seen order. One origin publishes one file, so it's fetched once.
    """
    origins = []
    seen = set()
    for url in friend_urls:
        try:
            origin = origin_of(resolve_url(url, base))
        except InvalidUrl as e:
            logger.warning("dropping friend: %s", e)
            continue
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)
    return origins


async def fetch_protocol_file(session: aiohttp.ClientSession, origin: str,
                              config: dict = None) -> ProtocolFile:
    """
    Fetch and validate one origin's graphgarden.json.

    Raises TransportFailure for network errors, timeouts and non-200
    responses, ValidationFailure for bodies that aren't a protocol file.
    """
    cfg = resolve_config(config)
    url = well_known_url(origin, cfg)
    timeout = cfg["fetch"]["timeout"] or None
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout),
                               allow_redirects=True,
                               headers={"User-Agent": cfg["fetch"]["user_agent"],
                                        "Accept": "application/json"}) as resp:
            if resp.status != 200:
                raise TransportFailure(url, f"HTTP {resp.status}")
            body = await resp.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise TransportFailure(url, str(e) or type(e).__name__) from e

    try:
        data = json.loads(body)
    except (ValueError, RecursionError) as e:
        # also oversized integer literals and nesting past the recursion limit
        raise ValidationFailure(f"body is not JSON: {e}", source=url) from e
    return validate_protocol_file(data, source=url)


async def _settle(session, origin: str, cfg: dict) -> Tuple[str, Optional[ProtocolFile], Optional[Exception]]:
    try:
        return origin, await fetch_protocol_file(session, origin, cfg), None
    except GardenError as e:
        return origin, None, e
    except Exception as e:
        # One origin must never abort the others
        logger.exception("unexpected failure fetching %s", origin)
        return origin, None, e


def _record_friend(graph: GardenGraph, origin: str, pf: ProtocolFile):
    n_nodes, n_edges = merge_protocol_file(graph, pf, FRIEND)
    graph.peers[origin] = {
        "status": "ok",
        "base_url": pf.base_url,
        "site": pf.site.to_json(),
        "generated_at": pf.generated_at,
        "nodes": n_nodes,
        "edges": n_edges,
    }
    logger.info("merged %s: %d nodes, %d edges", origin, n_nodes, n_edges)


async def _fetch_and_merge(graph: GardenGraph, origins: List[str],
                           session, cfg: dict) -> GardenGraph:
    for origin in origins:
        graph.peers[origin] = {"status": "pending"}

    tasks = [asyncio.ensure_future(_settle(session, origin, cfg)) for origin in origins]
    try:
        # Merge one settled fetch at a time, on this task only
        for settled in asyncio.as_completed(tasks):
            origin, pf, error = await settled
            if error is None:
                _record_friend(graph, origin, pf)
                continue
            logger.warning("friend %s left unresolved: %s", origin, error)
            graph.peers[origin] = {
                "status": "error",
                "kind": type(error).__name__,
                "error": str(error),
            }
    finally:
        # Only non-empty when we're being cancelled
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    return graph


async def fetch_friend_graphs(graph: GardenGraph, friend_urls: List[str],
                              session: Optional[aiohttp.ClientSession] = None,
                              config: dict = None) -> GardenGraph:
    """
    Fetch every friend's file concurrently and merge the valid ones.

    One request per distinct origin. A failing friend is logged and its
    nodes stay frontier; it never affects the others. Returns the same
    graph once every fetch has settled. Cancelling the caller cancels all
    fetches still in flight and nothing is merged afterwards.

    Args:
        graph:       Graph to merge into (mutated in place)
        friend_urls: Declared friend URLs, absolute or relative to graph.base_url
        session:     aiohttp session to reuse; a private one is opened if None
        config:      Config dict (see garden_config), defaults if None
    """
    cfg = resolve_config(config)
    origins = friend_origins(friend_urls, graph.base_url)
    if not origins:
        return graph

    logger.info("fetching %d friend origins", len(origins))
    if session is not None:
        return await _fetch_and_merge(graph, origins, session, cfg)

    connector = aiohttp.TCPConnector(limit=cfg["fetch"]["concurrent"])
    async with aiohttp.ClientSession(connector=connector) as own_session:
        return await _fetch_and_merge(graph, origins, own_session, cfg)


# ── Assembly ──────────────────────────────────────────────────────────

def _coerce_protocol_file(self_file) -> ProtocolFile:
    if isinstance(self_file, ProtocolFile):
        # Re-check even our own build output
        return validate_protocol_file(self_file.to_json(), source="self")
    return validate_protocol_file(self_file, source="self")


def build_graph(self_file) -> GardenGraph:
    """
    Build the local graph from a site's own protocol file: every declared
    node is local, edge endpoints nobody declared are frontier.

    Raises ValidationFailure if self_file isn't a protocol file.
    """
    if isinstance(self_file, ProtocolFile):
        pf = self_file
    else:
        pf = validate_protocol_file(self_file, source="self")

    graph = GardenGraph()
    graph.metadata["base_url"] = pf.base_url
    graph.metadata["site"] = pf.site.to_json()
    graph.metadata["generated_at"] = pf.generated_at
    merge_protocol_file(graph, pf, LOCAL)
    return graph


def declared_friends(pf: ProtocolFile) -> List[str]:
    """
    The friends list of a file. Files without one fall back to the
    targets of their friend edges.
    """
    if pf.friends is not None:
        return list(pf.friends)
    targets = []
    for edge in pf.edges:
        if edge.type != "friend":
            continue
        try:
            targets.append(resolve_url(edge.target, pf.base_url))
        except InvalidUrl as e:
            logger.warning("ignoring friend edge: %s", e)
    return targets


async def assemble(self_file, session: Optional[aiohttp.ClientSession] = None,
                   config: dict = None) -> GardenGraph:
    """
    Build the local graph and merge every friend into it.

    Never raises for bad input: a rejected self file yields an empty graph,
    unreachable friends stay frontier. The graph always comes back usable.
    """
    try:
        pf = _coerce_protocol_file(self_file)
    except ValidationFailure as e:
        logger.error("self file rejected: %s", e)
        return GardenGraph()

    graph = build_graph(pf)
    logger.info("local graph: %d nodes, %d edges", graph.order, graph.size)
    return await fetch_friend_graphs(graph, declared_friends(pf), session=session, config=config)


class GardenSession:
    """
    One assembly lifecycle: construct -> assemble() -> read .graph -> close().

    close() abandons any fetches still in flight, so a torn-down session
    never has friends racing to mutate a graph nobody holds anymore.

        async with GardenSession(self_file) as session:
            graph = await session.assemble()
    """

    def __init__(self, self_file, config: dict = None,
                 http: Optional[aiohttp.ClientSession] = None):
        self.self_file = self_file
        self.config = resolve_config(config)
        self.graph: Optional[GardenGraph] = None
        self.closed = False
        self._http = http
        self._owns_http = http is None
        self._task: Optional[asyncio.Future] = None

    async def assemble(self) -> GardenGraph:
        if self.closed:
            raise RuntimeError("session is closed")
        if self._http is None:
            connector = aiohttp.TCPConnector(limit=self.config["fetch"]["concurrent"])
            self._http = aiohttp.ClientSession(connector=connector)
        self._task = asyncio.ensure_future(
            assemble(self.self_file, session=self._http, config=self.config))
        try:
            self.graph = await self._task
        finally:
            self._task = None
        return self.graph

    async def close(self):
        self.closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        if self._owns_http and self._http is not None:
            await self._http.close()
        self._http = None
        self.graph = None

    async def __aenter__(self) -> "GardenSession":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


# ── CLI ───────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="graphgarden - federated link graphs")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # validate
    val_p = subparsers.add_parser("validate", help="Check a graphgarden.json file")
    val_p.add_argument("file", help="Protocol file")

    # assemble
    asm_p = subparsers.add_parser("assemble", help="Merge a site's friends into one graph")
    asm_p.add_argument("file", help="The site's own graphgarden.json")
    asm_p.add_argument("--output", "-o", default="graph.json", help="Output file (default: graph.json)")
    asm_p.add_argument("--timeout", "-t", type=float, default=None, help="Per-friend timeout in seconds")
    asm_p.add_argument("--concurrent", "-c", type=int, default=None, help="Concurrent requests")
    asm_p.add_argument("--save-config", action="store_true", help="Remember --timeout/--concurrent for this file")

    # info
    info_p = subparsers.add_parser("info", help="Show assembled graph stats")
    info_p.add_argument("graph", help="Assembled graph JSON file")

    # serve
    serve_p = subparsers.add_parser("serve", help="Serve the file and the assembled graph")
    serve_p.add_argument("file", help="The site's own graphgarden.json")
    serve_p.add_argument("--host", default=None, help="Host (default from config)")
    serve_p.add_argument("--port", "-p", type=int, default=None, help="Port (default from config)")
    serve_p.add_argument("--save-config", action="store_true", help="Remember --host/--port for this file")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.command == "validate":
        try:
            pf = ProtocolFile.load(args.file)
        except ValidationFailure as e:
            print(f"invalid: {e}")
            sys.exit(1)
        print(f"valid: {pf.site.title} ({pf.base_url})")
        print(f"  nodes:   {len(pf.nodes)}")
        print(f"  edges:   {len(pf.edges)}")
        print(f"  friends: {len(declared_friends(pf))}")

    elif args.command == "assemble":
        cfg = load_config(args.file)
        overrides = {k: v for k, v in (("timeout", args.timeout), ("concurrent", args.concurrent))
                     if v is not None}
        cfg = with_overrides(cfg, {"fetch": overrides})
        if args.save_config:
            save_config(args.file, cfg)
        try:
            pf = ProtocolFile.load(args.file)
        except ValidationFailure as e:
            print(f"invalid: {e}")
            sys.exit(1)
        graph = asyncio.run(assemble(pf, config=cfg))
        graph.save(args.output)
        stats = graph.stats()
        print(f"assembled {stats['nodes']} nodes, {stats['edges']} edges "
              f"({stats['local']} local, {stats['friend']} friend, {stats['frontier']} frontier)")
        for origin, peer in graph.peers.items():
            marker = "ok " if peer["status"] == "ok" else "ERR"
            detail = peer.get("site", {}).get("title", "") if peer["status"] == "ok" else peer.get("error", "")
            print(f"  {marker} {origin}  {detail}")

    elif args.command == "info":
        graph = GardenGraph.load(args.graph)
        stats = graph.stats()
        print(f"graph: {stats['base_url'] or 'unknown'}")
        print(f"  nodes:    {stats['nodes']}")
        print(f"  edges:    {stats['edges']}")
        print(f"  local:    {stats['local']}")
        print(f"  friend:   {stats['friend']}")
        print(f"  frontier: {stats['frontier']}")
        print(f"  peers:    {stats['peers_ok']} ok, {stats['peers_failed']} failed")
        print(f"\ntop origins:")
        for origin, count in list(graph.origins().items())[:10]:
            print(f"  {count:4d}  {origin}")

    elif args.command == "serve":
        from garden_server import run_server
        cfg = load_config(args.file)
        server_overrides = {k: v for k, v in (("host", args.host), ("port", args.port))
                            if v is not None}
        cfg = with_overrides(cfg, {"server": server_overrides})
        if args.save_config:
            save_config(args.file, cfg)
        try:
            pf = ProtocolFile.load(args.file)
        except ValidationFailure as e:
            print(f"invalid: {e}")
            sys.exit(1)
        run_server(pf, cfg)

    else:
        parser.print_help()


if __name__ == "__main__":
    main()

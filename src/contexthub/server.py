"""HTTP gateway: aiohttp application wiring AuthGate, aggregation and ranking.

Routes:
    GET  /health                 unauthenticated liveness check
    GET  /api/context/status     source flags + item count
    POST /api/context            full envelope, ranked when a query is given
    POST /api/context/search     ranked matches only (query required)
    GET  /api/services[/{name}]  peer service registry
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from aiohttp import web

from contexthub.aggregator import ContextAggregator
from contexthub.auth import AuthGate, TokenStore
from contexthub.config import HubConfig
from contexthub.services import discover_services

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
DEFAULT_SEARCH_LIMIT = 20
PUBLIC_PATHS = {"/health"}

CONFIG_KEY = web.AppKey("config", HubConfig)
AGGREGATOR_KEY = web.AppKey("aggregator", ContextAggregator)
GATE_KEY = web.AppKey("gate", AuthGate)


class BadRequest(Exception):
    """Malformed or invalid request body."""


# ── Middlewares ──────────────────────────────────────────────


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except BadRequest as e:
        return web.json_response({"error": str(e)}, status=400)
    except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
        return web.json_response({"error": "Not found"}, status=404)
    except web.HTTPException as e:
        return web.json_response({"error": e.reason}, status=e.status)
    except Exception as e:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response({"error": str(e)}, status=500)


@web.middleware
async def auth_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.path in PUBLIC_PATHS and request.method == "GET":
        return await handler(request)

    gate = request.app[GATE_KEY]
    if not gate.check(request.headers.get("Authorization")):
        config = request.app[CONFIG_KEY]
        logger.warning("Rejected unauthenticated %s %s", request.method, request.path)
        return web.json_response(
            {
                "error": "Unauthorized",
                "message": "Provide token via Authorization header: Bearer <token>",
                "suggestion": "Authorization: Bearer <token>",
                "tokenFile": config.token_file_display,
            },
            status=401,
        )
    return await handler(request)


# ── Request helpers ──────────────────────────────────────────


async def _json_body(request: web.Request) -> dict[str, Any]:
    raw = await request.text()
    try:
        body = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise BadRequest(str(e)) from None
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def _max_items(body: dict[str, Any], default: int | None = None) -> int | None:
    value = body.get("maxItems", default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise BadRequest("maxItems must be a positive integer")
    return value


def _optional_str(body: dict[str, Any], key: str) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


# ── Handlers ─────────────────────────────────────────────────


async def handle_health(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    return web.json_response({"status": "ok", "port": config.port})


async def handle_status(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    context = await asyncio.to_thread(request.app[AGGREGATOR_KEY].gather)
    return web.json_response(
        {
            "status": "running",
            "port": config.port,
            "sources": context.sources,
            "itemCount": len(context.items),
        }
    )


async def handle_context(request: web.Request) -> web.Response:
    body = await _json_body(request)
    query = _optional_str(body, "query")
    task_type = _optional_str(body, "taskType")
    max_items = _max_items(body)

    context = await asyncio.to_thread(request.app[AGGREGATOR_KEY].gather, query, task_type)
    if max_items is not None:
        context.items = context.items[:max_items]
    return web.json_response(context.to_dict())


async def handle_search(request: web.Request) -> web.Response:
    body = await _json_body(request)
    query = _optional_str(body, "query")
    if not query:
        raise BadRequest("query required")
    max_items = _max_items(body, DEFAULT_SEARCH_LIMIT)

    context = await asyncio.to_thread(request.app[AGGREGATOR_KEY].gather, query)
    context.items = [item for item in context.items if item.relevance and item.relevance > 0]
    context.items = context.items[:max_items]
    return web.json_response(context.to_dict())


async def handle_services(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    services = await asyncio.to_thread(discover_services, config.root)
    return web.json_response(services)


async def handle_service(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    services = await asyncio.to_thread(discover_services, config.root)
    service = services.get(request.match_info["name"])
    if service is None:
        return web.json_response({"error": "Service not found"}, status=404)
    return web.json_response(service)


# ── Application factory ──────────────────────────────────────


def create_app(
    config: HubConfig,
    aggregator: ContextAggregator | None = None,
    gate: AuthGate | None = None,
) -> web.Application:
    app = web.Application(middlewares=[cors_middleware, error_middleware, auth_middleware])
    app[CONFIG_KEY] = config
    app[AGGREGATOR_KEY] = aggregator or ContextAggregator(config.root, config.sources)
    app[GATE_KEY] = gate or AuthGate(TokenStore(config.token_file))

    app.router.add_get("/health", handle_health)
    app.router.add_get("/api/context/status", handle_status)
    app.router.add_post("/api/context", handle_context)
    app.router.add_post("/api/context/search", handle_search)
    app.router.add_get("/api/services", handle_services)
    app.router.add_get("/api/services/{name}", handle_service)
    return app

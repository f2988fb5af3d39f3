"""Response hardening shared by the topic routes and the WebSocket upgrade.

Write capabilities travel in the ``secret`` query parameter, so access log
lines carry the request target with that value replaced. Upgrades refused
before accept get the same headers as any HTTP error response.
"""

from __future__ import annotations

import logging
import re
from time import perf_counter
from typing import Mapping
from urllib.parse import parse_qsl, urlencode
from uuid import uuid4

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-ID"
SECRET_PARAM = "secret"
REDACTED = "redacted"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("slidecast.http")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    # pubPath carries the topic secret in the query string.
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

# Topic content changes live; never serve it from an intermediate cache.
NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "Expires": "0",
}


def request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value or not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def hardening_headers(request_id: str) -> dict[str, str]:
    headers = {**SECURITY_HEADERS, **NO_STORE_HEADERS}
    headers[REQUEST_ID_HEADER] = request_id
    return headers


def redacted_target(path: str, query: str) -> str:
    if not query:
        return path
    pairs = [
        (key, REDACTED if key == SECRET_PARAM else value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return f"{path}?{urlencode(pairs)}"


def access_kind(query_params: Mapping[str, str]) -> str:
    return "pub" if query_params.get(SECRET_PARAM) else "sub"


def log_access(
    method: str,
    target: str,
    status_code: int,
    access: str,
    request_id: str,
    duration_ms: float | None = None,
) -> None:
    duration = "-" if duration_ms is None else f"{duration_ms:.2f}"
    _LOG.info(
        "%s %s status=%s duration_ms=%s access=%s request_id=%s",
        method,
        target,
        status_code,
        duration,
        access,
        request_id,
    )


def denial_response(websocket: WebSocket, status_code: int, detail: str) -> JSONResponse:
    """Build the HTTP answer to a refused upgrade and log it like a request."""
    request_id = request_id_from_header(websocket.headers.get(REQUEST_ID_HEADER))
    log_access(
        "WS",
        redacted_target(websocket.url.path, websocket.url.query),
        status_code,
        access_kind(websocket.query_params),
        request_id,
    )
    return JSONResponse({"error": detail}, status_code=status_code, headers=hardening_headers(request_id))


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _http_hardening_middleware(request: Request, call_next):
        request_id = request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()

        response = await call_next(request)
        response.headers.update(hardening_headers(request_id))

        log_access(
            request.method,
            redacted_target(request.url.path, request.url.query),
            response.status_code,
            access_kind(request.query_params),
            request_id,
            (perf_counter() - started_at) * 1000.0,
        )
        return response

"""
Success envelope for JSON responses: {"data": ..., "timestamp", "path", "success": true}.

Routers opt in with APIRouter(route_class=EnvelopeRoute). Error responses,
empty bodies and non-JSON payloads (PDF tickets) pass through untouched.
"""

import json
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

_SKIPPED_HEADERS = {b"content-length", b"content-type"}


def wrap(response: Response, request: Request) -> Response:
    body = getattr(response, "body", None)
    if response.status_code >= 400 or response.media_type != "application/json" or not body:
        return response

    wrapped = JSONResponse(
        status_code=response.status_code,
        content={
            "data": json.loads(body),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
            "success": True,
        },
        background=response.background,
    )
    # Keep Set-Cookie and other headers set by the endpoint
    wrapped.raw_headers.extend(
        (key, value) for key, value in response.raw_headers if key.lower() not in _SKIPPED_HEADERS
    )
    return wrapped


class EnvelopeRoute(APIRoute):
    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def envelope_handler(request: Request) -> Response:
            response = await original_handler(request)
            return wrap(response, request)

        return envelope_handler

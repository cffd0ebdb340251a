from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response


def _success_code(status_code: int) -> str:
    mapping = {
        200: "ok",
        201: "created",
        202: "accepted",
        207: "partial_success",
    }
    return mapping.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def _build_success_envelope(data: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if "code" in payload and "message" in payload:
        return "data" in payload or "details" in payload
    return False


def _rewrap(source: Response, status_code: int, content: dict[str, Any]) -> JSONResponse:
    wrapped = JSONResponse(status_code=status_code, content=content)
    for key, value in source.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        wrapped.headers[key] = value
    return wrapped


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON bodies as ``{code, message, data, details}``."""

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if response.status_code < 200 or response.status_code >= 300:
            return response

        if response.status_code == 204:
            return _rewrap(response, 200, _build_success_envelope(None, 200))

        if not response.headers.get("content-type", "").startswith("application/json"):
            return response

        raw_body = b"".join([chunk async for chunk in response.body_iterator])
        try:
            payload = json.loads(raw_body) if raw_body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            return Response(
                content=raw_body,
                status_code=response.status_code,
                headers=dict(response.headers),
            )

        if not _is_enveloped(payload):
            payload = _build_success_envelope(payload, response.status_code)
        return _rewrap(response, response.status_code, payload)


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)

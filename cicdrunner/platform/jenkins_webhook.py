"""A WSGI endpoint receiving Jenkins build notifications."""

from __future__ import annotations

import hmac
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

MAX_BODY_BYTES = 1 << 20
"""Largest request body the endpoint reads."""


@dataclass
class JenkinsWebhook:
    """A Jenkins build notification."""

    build_name: str = ""
    build_url: str = ""
    build_number: int = 0
    phase: str = ""
    status: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> JenkinsWebhook:
        """Build a notification from decoded JSON, raising ValueError on bad types."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("webhook payload must be a JSON object")
        return cls(
            build_name=_value(data, "name", str, ""),
            build_url=_value(data, "url", str, ""),
            build_number=_value(data, "number", int, 0),
            phase=_value(data, "phase", str, ""),
            status=_value(data, "status", str, ""),
            url=_value(data, "buildUrl", str, ""),
        )


def _value(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise ValueError(f"field {key!r} must be of type {kind.__name__}")
    return value


def _read_body(environ: dict[str, Any]) -> bytes:
    stream = environ.get("wsgi.input")
    if stream is None:
        return b""
    limit = MAX_BODY_BYTES + 1
    try:
        length = int(environ.get("CONTENT_LENGTH") or -1)
    except ValueError:
        length = -1
    if 0 <= length < limit:
        limit = length
    return stream.read(limit)


def _decode_first(body: bytes) -> Any:
    text = body[:MAX_BODY_BYTES].decode("utf-8").lstrip(" \t\r\n")
    if not text:
        raise ValueError("empty request body")
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


def _error(start_response: Callable[..., Any], status: str, message: str) -> list[bytes]:
    body = (message + "\n").encode("utf-8")
    start_response(
        status,
        [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("X-Content-Type-Options", "nosniff"),
            ("Content-Length", str(len(body))),
        ],
    )
    return [body]


def _received_token(environ: dict[str, Any]) -> str:
    token = environ.get("HTTP_AUTHORIZATION", "")
    if not token:
        query = parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)
        token = query.get("token", [""])[0]
    return token.removeprefix("Bearer ")


def jenkins_webhook_app(
    auth_token: str, handler: Callable[[JenkinsWebhook], Any]
) -> Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]:
    """Return a WSGI app that authenticates, decodes and hands on notifications."""
    expected = auth_token.encode("utf-8")

    def app(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        if auth_token:
            received = _received_token(environ).encode("utf-8")
            if not hmac.compare_digest(received, expected):
                return _error(start_response, "401 Unauthorized", "Unauthorized")

        try:
            webhook = JenkinsWebhook.from_dict(_decode_first(_read_body(environ)))
        except ValueError:
            return _error(start_response, "400 Bad Request", "Bad request")

        try:
            handler(webhook)
        except Exception:
            return _error(start_response, "500 Internal Server Error", "Internal server error")

        start_response("200 OK", [("Content-Length", "0")])
        return [b""]

    return app
"""ECS-style request logging for WSGI applications."""

from __future__ import annotations

import io
import logging
import re
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from typing import Any
from urllib.parse import quote, urlsplit

ECS_HTTP_VERSION = "http.version"
ECS_HTTP_REQUEST_ID = "http.request.id"
ECS_HTTP_REQUEST_METHOD = "http.request.method"
ECS_HTTP_REQUEST_BODY_BYTES = "http.request.body.bytes"
ECS_HTTP_RESPONSE_CODE = "http.response.status_code"
ECS_HTTP_RESPONSE_BODY_BYTES = "http.response.body.bytes"
ECS_URL_FULL = "url.full"
ECS_URL_DOMAIN = "url.domain"
ECS_URL_PORT = "url.port"
ECS_CLIENT_ADDRESS = "client.address"
ECS_CLIENT_IP = "client.ip"
ECS_CLIENT_PORT = "client.port"
ECS_TLS_ESTABLISHED = "tls.established"
ECS_EVENT_DURATION = "event.duration"

HEADER_REQUEST_ID = "X-Request-ID"
_REQUEST_ID_KEY = "HTTP_" + HEADER_REQUEST_ID.upper().replace("-", "_")
_HTTP_SLASH_PREFIX = "HTTP/"
_INTEGER = re.compile(r"[+-]?\d+")


def _atoi(text: str) -> int | None:
    return int(text) if _INTEGER.fullmatch(text) else None


def _split_host_port(addr: str) -> tuple[str, str] | None:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0 or addr[end + 1 : end + 2] != ":":
            return None
        port = addr[end + 2 :]
        if "[" in port or "]" in port or ":" in port:
            return None
        return addr[1:end], port
    colon = addr.rfind(":")
    if colon < 0:
        return None
    host, port = addr[:colon], addr[colon + 1 :]
    if ":" in host or "[" in host or "]" in host or "]" in port:
        return None
    return host, port


def split_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port``; a malformed address gives ("", 0), a bad port gives 0."""
    parts = _split_host_port(addr)
    if parts is None:
        return "", 0
    host, port = parts
    return host, _atoi(port) or 0


def strip_http(h: str) -> str:
    """Turn ``HTTP/x.y`` into ``x.y``; other text is returned unchanged."""
    return h.removeprefix(_HTTP_SLASH_PREFIX)


class ReaderCounter:
    """A readable stream that counts the bytes read through it."""

    def __init__(self, raw: Any) -> None:
        self._raw = raw
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Number of bytes read so far."""
        with self._lock:
            return self._count

    def _add(self, data: bytes) -> bytes:
        with self._lock:
            self._count += len(data)
        return data

    def read(self, size: int = -1) -> bytes:
        return self._add(self._raw.read(size))

    def readline(self, size: int = -1) -> bytes:
        return self._add(self._raw.readline(size))

    def readlines(self, hint: int = -1) -> list[bytes]:
        return [self._add(line) for line in self._raw.readlines(hint)]

    def __iter__(self) -> Iterator[bytes]:
        for line in self._raw:
            yield self._add(line)

    def close(self) -> None:
        close = getattr(self._raw, "close", None)
        if callable(close):
            close()


class _ResponseState:
    def __init__(self) -> None:
        self.status_code = 0
        self.wrote_header = False
        self._count = 0
        self._lock = threading.Lock()

    def add(self, n: int) -> None:
        with self._lock:
            self._count += n

    @property
    def count(self) -> int:
        with self._lock:
            return self._count


class _LoggedBody:
    """Counts the response body and logs once the server closes it."""

    def __init__(self, body: Iterable[bytes], state: _ResponseState, on_close: Callable[[], None]):
        self._body = body
        self._state = state
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._body:
            self._state.add(len(chunk))
            yield chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._body, "close", None)
            if callable(close):
                close()
        finally:
            self._on_close()


def _status_code(status: str) -> int:
    return _atoi(status.split(" ", 1)[0]) or 0


def _request_url(environ: dict) -> str:
    uri = environ.get("REQUEST_URI")
    if uri:
        return uri
    path = quote(environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""), safe="/")
    query = environ.get("QUERY_STRING", "")
    return f"{path}?{query}" if query else path


def _remote_addr(environ: dict) -> str:
    addr = environ.get("REMOTE_ADDR", "")
    port = environ.get("REMOTE_PORT", "")
    if not port:
        return addr
    if ":" in addr:
        return f"[{addr}]:{port}"
    return f"{addr}:{port}"


class EcsLoggingMiddleware:
    """WSGI middleware that logs each request with ECS field names at debug level."""

    def __init__(self, app: Callable, logger: logging.Logger | None = None) -> None:
        self._app = app
        self._logger = logger or logging.getLogger(__name__)

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        if not self._logger.isEnabledFor(logging.DEBUG):
            return self._app(environ, start_response)

        start = time.monotonic_ns()
        reader = ReaderCounter(environ.get("wsgi.input") or io.BytesIO())
        environ["wsgi.input"] = reader
        state = _ResponseState()

        def counting_start_response(status: str, headers: list, exc_info: Any = None) -> Callable:
            if not state.wrote_header or exc_info is not None:
                state.status_code = _status_code(status)
                state.wrote_header = True
            if exc_info is None:
                write = start_response(status, headers)
            else:
                write = start_response(status, headers, exc_info)

            def counting_write(data: bytes) -> None:
                write(data)
                state.add(len(data))

            return counting_write

        body = self._app(environ, counting_start_response)
        return _LoggedBody(body, state, lambda: self._log(environ, reader, state, start))

    def _log(self, environ: dict, reader: ReaderCounter, state: _ResponseState, start: int) -> None:
        fields: dict[str, Any] = {}
        request_id = environ.get(_REQUEST_ID_KEY)
        if request_id:
            fields[ECS_HTTP_REQUEST_ID] = request_id

        url = _request_url(environ)
        fields[ECS_URL_FULL] = url
        parts = urlsplit(url)
        if parts.hostname:
            fields[ECS_URL_DOMAIN] = parts.hostname
        try:
            port = parts.port
        except ValueError:
            port = None
        if port is not None:
            fields[ECS_URL_PORT] = port

        fields[ECS_HTTP_VERSION] = strip_http(environ.get("SERVER_PROTOCOL", ""))
        fields[ECS_HTTP_REQUEST_METHOD] = environ.get("REQUEST_METHOD", "")
        fields[ECS_HTTP_RESPONSE_CODE] = state.status_code
        fields[ECS_HTTP_REQUEST_BODY_BYTES] = reader.count
        fields[ECS_HTTP_RESPONSE_BODY_BYTES] = state.count

        remote = _remote_addr(environ)
        remote_ip, remote_port = split_addr(remote)
        fields[ECS_CLIENT_ADDRESS] = remote
        fields[ECS_CLIENT_IP] = remote_ip
        fields[ECS_CLIENT_PORT] = remote_port

        fields[ECS_TLS_ESTABLISHED] = environ.get("wsgi.url_scheme") == "https"
        fields[ECS_EVENT_DURATION] = time.monotonic_ns() - start

        self._logger.debug("HTTP handler", extra={"ecs": fields})
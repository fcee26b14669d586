"""Requests to the fleet global checkpoints API and decoding of their answers."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from fleetsrv.es_errors import (
    ESTimeoutError,
    InvalidBodyError,
    NotFoundError,
    translate_error,
)
from fleetsrv.es_result import ErrorInfo

_API_PATH = "/_fleet/global_checkpoints"
_GATEWAY_TIMEOUT = 504
_NANOS_PER_MILLI = 1_000_000


def _nanoseconds(d: timedelta) -> int:
    return ((d.days * 86400 + d.seconds) * 1_000_000 + d.microseconds) * 1000


def format_duration(d: timedelta) -> str:
    """Format a duration the way the API expects: nanoseconds below 1ms, else milliseconds."""
    nanos = _nanoseconds(d)
    if nanos < _NANOS_PER_MILLI:
        return f"{nanos}nanos"
    return f"{nanos // _NANOS_PER_MILLI}ms"


@dataclass
class GlobalCheckpointsRequest:
    """Settings of a global checkpoints request."""

    index: str = ""
    wait_for_advance: bool | None = None
    wait_for_index: bool | None = None
    checkpoints: list[int] = field(default_factory=list)
    timeout: timedelta = field(default_factory=timedelta)
    headers: dict[str, list[str]] = field(default_factory=dict)
    method: str = "GET"

    def path(self) -> str:
        """Return the URL path of the request."""
        prefix = f"/{self.index}" if self.index else ""
        return prefix + _API_PATH

    def params(self) -> dict[str, str]:
        """Return the query parameters of the request."""
        params: dict[str, str] = {}
        if self.wait_for_advance is not None:
            params["wait_for_advance"] = str(bool(self.wait_for_advance)).lower()
        if self.wait_for_index is not None:
            params["wait_for_index"] = str(bool(self.wait_for_index)).lower()
        if self.checkpoints:
            params["checkpoints"] = ",".join(str(c) for c in self.checkpoints)
        if self.timeout:
            params["timeout"] = format_duration(self.timeout)
        return params


def _decode_body(body: Any) -> Mapping:
    if isinstance(body, Mapping):
        return body
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise InvalidBodyError(f"invalid body: {exc}") from exc
    if not isinstance(decoded, Mapping):
        raise InvalidBodyError(f"invalid body: expected an object, got {type(decoded).__name__}")
    return decoded


def process_global_checkpoint_response(status: int, body: Any) -> list[int]:
    """Return the global checkpoints from a response, raising on any failure."""
    if status == _GATEWAY_TIMEOUT:
        raise ESTimeoutError()

    data = _decode_body(body)
    try:
        error = ErrorInfo.from_dict(data.get("error"))
    except TypeError as exc:
        raise InvalidBodyError(f"invalid body: {exc}") from exc

    err = translate_error(status, error)
    if err is not None:
        raise err

    if data.get("timed_out"):
        raise ESTimeoutError()

    checkpoints = data.get("global_checkpoints") or []
    if not checkpoints:
        raise NotFoundError()
    return [int(c) for c in checkpoints]
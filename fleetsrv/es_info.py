"""Reading the cluster version from an Elasticsearch info response."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from fleetsrv.es_errors import InvalidBodyError, translate_error
from fleetsrv.es_result import ErrorInfo


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


def version_from_info(status: int, body: Any) -> str:
    """Return the cluster version, lower case and without a snapshot suffix."""
    data = _decode_body(body)
    try:
        error = ErrorInfo.from_dict(data.get("error"))
    except TypeError as exc:
        raise InvalidBodyError(f"invalid body: {exc}") from exc

    err = translate_error(status, error)
    if err is not None:
        raise err

    version = data.get("version") or {}
    if not isinstance(version, Mapping):
        raise InvalidBodyError("invalid body: version must be an object")
    number = version.get("number") or ""
    if not isinstance(number, str):
        raise InvalidBodyError("invalid body: version number must be a string")
    return number.lower().removesuffix("-snapshot").strip()
"""Errors reported by Elasticsearch and their translation."""

from __future__ import annotations

from typing import Any


class ESError(Exception):
    """Base of the Elasticsearch errors."""

    message = "elasticsearch error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class VersionConflictError(ESError):
    message = "elastic version conflict"


class ElasticNotFoundError(ESError):
    message = "elastic not found"


class InvalidBodyError(ESError):
    message = "invalid body"


class IndexNotFoundError(ESError):
    message = "index not found"


class ESTimeoutError(ESError, TimeoutError):
    message = "timeout"


class NotFoundError(ESError):
    message = "not found"


class ElasticError(ESError):
    """A failure reported in an Elasticsearch response body."""

    def __init__(
        self,
        status: int,
        type: str = "",
        reason: str = "",
        cause_type: str = "",
        cause_reason: str = "",
    ) -> None:
        self.status = status
        self.type = type
        self.reason = reason
        self.cause_type = cause_type
        self.cause_reason = cause_reason
        super().__init__(f"elastic fail {status}:{type}:{reason}")

    def unwrap(self) -> ESError | None:
        """Return the general error this failure stands for, if any."""
        if self.type == "index_not_found_exception":
            return IndexNotFoundError()
        if self.type == "timeout_exception":
            return ESTimeoutError()
        return None


def is_error(err: BaseException | None, kind: type[BaseException]) -> bool:
    """Tell whether ``err`` or anything it wraps is an instance of ``kind``."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, kind):
            return True
        seen.add(id(err))
        unwrap = getattr(err, "unwrap", None)
        inner = unwrap() if callable(unwrap) else None
        err = inner if inner is not None else err.__cause__
    return False


def translate_error(status: int, error: Any) -> ESError | None:
    """Turn a response status and its error body into an exception, or None on success."""
    if status in (200, 201):
        return None
    if error is None:
        return ElasticError(status)
    if error.type == "version_conflict_engine_exception":
        return VersionConflictError()
    return ElasticError(status, error.type, error.reason, error.cause_type, error.cause_reason)
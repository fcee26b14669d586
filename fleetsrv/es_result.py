"""Decoded Elasticsearch responses."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _mapping(data: Any, what: str) -> Mapping:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"cannot decode {what} from {type(data).__name__}")
    return data


def _value(data: Mapping, key: str, default: Any) -> Any:
    value = data.get(key)
    return default if value is None else value


@dataclass
class ErrorInfo:
    """The error object of a response body."""

    type: str = ""
    reason: str = ""
    cause_type: str = ""
    cause_reason: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> ErrorInfo:
        data = _mapping(data, "error")
        cause = _mapping(data.get("caused_by"), "caused_by")
        return cls(
            type=_value(data, "type", ""),
            reason=_value(data, "reason", ""),
            cause_type=_value(cause, "type", ""),
            cause_reason=_value(cause, "reason", ""),
        )


@dataclass
class AckResponse:
    """An acknowledgement response."""

    acknowledged: bool = False
    error: ErrorInfo = field(default_factory=ErrorInfo)

    @classmethod
    def from_dict(cls, data: Any) -> AckResponse:
        data = _mapping(data, "acknowledgement")
        return cls(
            acknowledged=_value(data, "acknowledged", False),
            error=ErrorInfo.from_dict(data.get("error")),
        )


@dataclass
class Hit:
    """One search hit; ``source`` holds the document body as JSON text."""

    id: str = ""
    seq_no: int = 0
    version: int = 0
    index: str = ""
    source: bytes = b""
    score: float | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Hit:
        data = _mapping(data, "hit")
        source = json.dumps(data["_source"]).encode() if "_source" in data else b""
        return cls(
            id=_value(data, "_id", ""),
            seq_no=_value(data, "_seq_no", 0),
            version=_value(data, "version", 0),
            index=_value(data, "_index", ""),
            source=source,
            score=data.get("_score"),
        )

    def unmarshal(self, cls: type) -> Any:
        """Decode the source into ``cls`` and attach the hit's id, seq_no and version."""
        obj = cls.from_dict(json.loads(self.source))
        initialize = getattr(obj, "es_initialize", None)
        if callable(initialize):
            initialize(self.id, self.seq_no, self.version)
        return obj


@dataclass
class Hits:
    """The hits section of a search response."""

    hits: list[Hit] = field(default_factory=list)
    total_relation: str = ""
    total_value: int = 0
    max_score: float | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Hits:
        data = _mapping(data, "hits")
        total = _mapping(data.get("total"), "total")
        return cls(
            hits=[Hit.from_dict(hit) for hit in _value(data, "hits", [])],
            total_relation=_value(total, "relation", ""),
            total_value=_value(total, "value", 0),
            max_score=data.get("max_score"),
        )


@dataclass
class Bucket:
    """An aggregation bucket; sub-aggregations holding hits are gathered by name."""

    key: str = ""
    doc_count: int = 0
    aggregations: dict[str, Hits] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> Bucket:
        data = _mapping(data, "bucket")
        key = _value(data, "key", "")
        if not isinstance(key, str):
            raise TypeError(f"bucket key must be a string, got {type(key).__name__}")
        aggregations = {
            name: Hits.from_dict(value["hits"])
            for name, value in data.items()
            if name not in ("key", "doc_count") and isinstance(value, Mapping) and "hits" in value
        }
        return cls(key=key, doc_count=_value(data, "doc_count", 0), aggregations=aggregations)


@dataclass
class Aggregation:
    """One aggregation result."""

    value: float = 0.0
    doc_count_error_upper_bound: int = 0
    sum_other_doc_count: int = 0
    buckets: list[Bucket] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Aggregation:
        data = _mapping(data, "aggregation")
        return cls(
            value=_value(data, "value", 0.0),
            doc_count_error_upper_bound=_value(data, "doc_count_error_upper_bound", 0),
            sum_other_doc_count=_value(data, "sum_other_doc_count", 0),
            buckets=[Bucket.from_dict(b) for b in _value(data, "buckets", [])],
        )


@dataclass
class Response:
    """A search response."""

    status: int = 0
    took: int = 0
    timed_out: bool = False
    shards_total: int = 0
    shards_successful: int = 0
    shards_skipped: int = 0
    shards_failed: int = 0
    hits: Hits = field(default_factory=Hits)
    aggregations: dict[str, Aggregation] = field(default_factory=dict)
    error: ErrorInfo = field(default_factory=ErrorInfo)

    @classmethod
    def from_dict(cls, data: Any) -> Response:
        data = _mapping(data, "response")
        shards = _mapping(data.get("_shards"), "_shards")
        aggs = _mapping(data.get("aggregations"), "aggregations")
        return cls(
            status=_value(data, "status", 0),
            took=_value(data, "took", 0),
            timed_out=_value(data, "timed_out", False),
            shards_total=_value(shards, "total", 0),
            shards_successful=_value(shards, "successful", 0),
            shards_skipped=_value(shards, "skipped", 0),
            shards_failed=_value(shards, "failed", 0),
            hits=Hits.from_dict(data.get("hits")),
            aggregations={name: Aggregation.from_dict(v) for name, v in aggs.items()},
            error=ErrorInfo.from_dict(data.get("error")),
        )


@dataclass
class Result(Hits):
    """Hits of a search together with its aggregations."""

    aggregations: dict[str, Aggregation] = field(default_factory=dict)
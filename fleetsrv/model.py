"""Documents stored in the fleet indices and their JSON form."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any

_DEFAULTS = {"str": "", "int": 0, "bool": False}


def _field(
    name: str | None = None,
    kind: str = "str",
    *,
    omitempty: bool = False,
    model: type | None = None,
) -> Any:
    """Declare a JSON field; without ``name`` the attribute name is the JSON key."""
    meta = {"json": name, "kind": kind, "omitempty": omitempty, "model": model}
    if kind in ("strs", "ints"):
        return field(default_factory=list, metadata=meta)
    return field(default=_DEFAULTS.get(kind), metadata=meta)


def _json_key(f: Any) -> str:
    return f.metadata["json"] or f.name


def _is_empty(kind: str, value: Any) -> bool:
    if kind in ("raw", "model"):
        return value is None
    if kind in ("strs", "ints"):
        return not value
    if kind == "bool":
        return value is False
    if kind == "int":
        return value == 0
    return value == ""


def _encode(kind: str, value: Any) -> Any:
    if kind == "model":
        return None if value is None else value.to_dict()
    if kind in ("strs", "ints"):
        return list(value)
    return value


def _check(value: Any, expected: type, name: str) -> Any:
    if expected is int and isinstance(value, bool) or not isinstance(value, expected):
        raise TypeError(f"field {name!r}: expected {expected.__name__}, got {type(value).__name__}")
    return value


def _decode(kind: str, model: type | None, value: Any, name: str) -> Any:
    if kind == "str":
        return _check(value, str, name)
    if kind == "int":
        return _check(value, int, name)
    if kind == "bool":
        return _check(value, bool, name)
    if kind == "model":
        return model.from_dict(value)
    if kind == "strs":
        return [_check(item, str, name) for item in _check(value, list, name)]
    if kind == "ints":
        return [_check(item, int, name) for item in _check(value, list, name)]
    return value


def _to_dict(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        meta = f.metadata
        if "json" not in meta:
            continue
        value = getattr(obj, f.name)
        if meta["omitempty"] and _is_empty(meta["kind"], value):
            continue
        out[_json_key(f)] = _encode(meta["kind"], value)
    return out


def _from_dict(cls: type, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise TypeError(f"cannot decode {cls.__name__} from {type(data).__name__}")
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        meta = f.metadata
        if "json" not in meta:
            continue
        key = _json_key(f)
        value = data.get(key)
        if value is None:
            continue
        kwargs[f.name] = _decode(meta["kind"], meta["model"], value, key)
    return cls(**kwargs)


_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


def _format_timestamp(t: datetime) -> str:
    """Format like RFC 3339 with the shortest fractional seconds."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    text = f"{t.year:04d}-{t.month:02d}-{t.day:02d}T{t.hour:02d}:{t.minute:02d}:{t.second:02d}"
    if t.microsecond:
        text += "." + f"{t.microsecond:06d}".rstrip("0")
    offset = t.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_timestamp(text: str) -> datetime:
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * delta)
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


class _JsonModel:
    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document for this value."""
        return _to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Any:
        """Build a value from a decoded JSON document."""
        return _from_dict(cls, data)


@dataclass(kw_only=True)
class AgentMetadata(_JsonModel):
    """An Elastic Agent's identity."""

    id: str = _field("id")
    version: str = _field("version")


@dataclass(kw_only=True)
class HostMetadata(_JsonModel):
    """The host an Elastic Agent runs on."""

    architecture: str = _field("architecture")
    id: str = _field("id")
    ip: list[str] = _field("ip", "strs", omitempty=True)
    name: str = _field("name")


@dataclass(kw_only=True)
class ServerMetadata(_JsonModel):
    """A Fleet Server's identity."""

    id: str = _field("id")
    version: str = _field("version")


@dataclass(kw_only=True)
class ESDocument:
    """Base of indexed documents; id, version and seq_no never go into the JSON."""

    id: str = ""
    version: int = 0
    seq_no: int = 0

    def es_initialize(self, id: str, seqno: int, version: int) -> None:
        """Set the values the index keeps outside the document body."""
        self.id = id
        self.seq_no = seqno
        self.version = version

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document body."""
        return _to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Any:
        """Build a document from a decoded JSON body."""
        return _from_dict(cls, data)


@dataclass(kw_only=True)
class Action(ESDocument):
    """An Elastic Agent action."""

    action_id: str = _field("action_id", omitempty=True)
    agents: list[str] = _field("agents", "strs", omitempty=True)
    data: Any = _field("data", "raw", omitempty=True)
    expiration: str = _field("expiration", omitempty=True)
    input_type: str = _field("input_type", omitempty=True)
    timestamp: str = _field("@timestamp", omitempty=True)
    type: str = _field("type", omitempty=True)
    user_id: str = _field("user_id", omitempty=True)


@dataclass(kw_only=True)
class ActionResult(ESDocument):
    """The result an agent reported for an action."""

    action_data: Any = _field("action_data", "raw", omitempty=True)
    action_id: str = _field("action_id", omitempty=True)
    agent_id: str = _field("agent_id", omitempty=True)
    completed_at: str = _field("completed_at", omitempty=True)
    data: Any = _field("data", "raw", omitempty=True)
    error: str = _field("error", omitempty=True)
    started_at: str = _field("started_at", omitempty=True)
    timestamp: str = _field("@timestamp", omitempty=True)


@dataclass(kw_only=True)
class Agent(ESDocument):
    """An Elastic Agent enrolled into Fleet."""

    access_api_key_id: str = _field(omitempty=True)
    action_seq_no: list[int] = _field("action_seq_no", "ints", omitempty=True)
    active: bool = _field("active", "bool")
    agent: AgentMetadata | None = _field("agent", "model", omitempty=True, model=AgentMetadata)
    default_api_key: str = _field(omitempty=True)
    default_api_key_id: str = _field(omitempty=True)
    enrolled_at: str = _field("enrolled_at")
    last_checkin: str = _field("last_checkin", omitempty=True)
    last_checkin_status: str = _field("last_checkin_status", omitempty=True)
    last_updated: str = _field("last_updated", omitempty=True)
    local_metadata: Any = _field("local_metadata", "raw", omitempty=True)
    packages: list[str] = _field("packages", "strs", omitempty=True)
    policy_coordinator_idx: int = _field("policy_coordinator_idx", "int", omitempty=True)
    policy_id: str = _field("policy_id", omitempty=True)
    policy_output_permissions_hash: str = _field("policy_output_permissions_hash", omitempty=True)
    policy_revision_idx: int = _field("policy_revision_idx", "int", omitempty=True)
    shared_id: str = _field("shared_id", omitempty=True)
    type: str = _field("type")
    unenrolled_at: str = _field("unenrolled_at", omitempty=True)
    unenrollment_started_at: str = _field("unenrollment_started_at", omitempty=True)
    updated_at: str = _field("updated_at", omitempty=True)
    upgrade_started_at: str = _field("upgrade_started_at", omitempty=True)
    upgraded_at: str = _field("upgraded_at", omitempty=True)
    user_provided_metadata: Any = _field("user_provided_metadata", "raw", omitempty=True)


@dataclass(kw_only=True)
class Artifact(ESDocument):
    """An artifact served by Fleet."""

    body: Any = _field("body", "raw")
    compression_algorithm: str = _field("compression_algorithm", omitempty=True)
    created: str = _field("created")
    decoded_sha256: str = _field("decoded_sha256", omitempty=True)
    decoded_size: int = _field("decoded_size", "int", omitempty=True)
    encoded_sha256: str = _field("encoded_sha256", omitempty=True)
    encoded_size: int = _field("encoded_size", "int", omitempty=True)
    encryption_algorithm: str = _field("encryption_algorithm", omitempty=True)
    identifier: str = _field("identifier")
    package_name: str = _field("package_name", omitempty=True)


@dataclass(kw_only=True)
class EnrollmentApiKey(ESDocument):
    """An Elastic Agent enrollment API key."""

    active: bool = _field("active", "bool", omitempty=True)
    api_key: str = _field()
    api_key_id: str = _field()
    created_at: str = _field("created_at", omitempty=True)
    expire_at: str = _field("expire_at", omitempty=True)
    name: str = _field("name", omitempty=True)
    policy_id: str = _field("policy_id", omitempty=True)
    updated_at: str = _field("updated_at", omitempty=True)


@dataclass(kw_only=True)
class Policy(ESDocument):
    """A policy revision that Elastic Agents are attached to."""

    coordinator_idx: int = _field("coordinator_idx", "int")
    data: Any = _field("data", "raw")
    default_fleet_server: bool = _field("default_fleet_server", "bool")
    policy_id: str = _field("policy_id")
    revision_idx: int = _field("revision_idx", "int")
    timestamp: str = _field("@timestamp", omitempty=True)


@dataclass(kw_only=True)
class PolicyLeader(ESDocument):
    """The Fleet Server currently leading a policy."""

    server: ServerMetadata | None = _field("server", "model", model=ServerMetadata)
    timestamp: str = _field("@timestamp", omitempty=True)

    def time(self) -> datetime:
        """Return the time leadership was taken or held."""
        return _parse_timestamp(self.timestamp)

    def set_time(self, t: datetime) -> None:
        """Store ``t`` as the leadership timestamp."""
        self.timestamp = _format_timestamp(t)


@dataclass(kw_only=True)
class Server(ESDocument):
    """A Fleet Server."""

    agent: AgentMetadata | None = _field("agent", "model", model=AgentMetadata)
    host: HostMetadata | None = _field("host", "model", model=HostMetadata)
    server: ServerMetadata | None = _field("server", "model", model=ServerMetadata)
    timestamp: str = _field("@timestamp", omitempty=True)

    def time(self) -> datetime:
        """Return the time the server was last updated."""
        return _parse_timestamp(self.timestamp)

    def set_time(self, t: datetime) -> None:
        """Store ``t`` as the update timestamp."""
        self.timestamp = _format_timestamp(t)
"""A small builder for Elasticsearch query DSL documents."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

_AGGS = "aggs"
_BOOL = "bool"
_BOOST = "boost"
_EXCLUDES = "excludes"
_EXISTS = "exists"
_FIELD = "field"
_FILTER = "filter"
_GREATER_THAN = "gt"
_INCLUDES = "includes"
_LESS_THAN_EQ = "lte"
_MATCH_ALL = "match_all"
_MATCH_NONE = "match_none"
_MAX = "max"
_MUST = "must"
_MUST_NOT = "must_not"
_NULL = "null"
_QUERY = "query"
_RANGE = "range"
_SIZE = "size"
_SORT = "sort"
_SOURCE = "_source"
_TERM = "term"
_TERMS = "terms"
_TOP_HITS = "top_hits"

RangeOpt = Callable[[dict], None]

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_HTML_RE = re.compile("[<>&\u2028\u2029]")
_SHORT_EXPONENT = re.compile(r"e-0(\d)$")


class SortOrder(str, Enum):
    """Direction of a sort clause."""

    ASCEND = "asc"
    DESCEND = "desc"


@dataclass
class _Boosted:
    value: Any
    boost: float


def _quote(text: str) -> str:
    encoded = json.dumps(text, ensure_ascii=False)
    return _HTML_RE.sub(lambda m: _HTML_ESCAPES[m.group(0)], encoded)


def _format_float(value: float) -> str:
    if not math.isfinite(value):
        raise ValueError(f"unsupported float value: {value!r}")
    magnitude = abs(value)
    if value.is_integer() and magnitude < 1e21:
        return str(int(value))
    if 1e-6 <= magnitude < 1e21:
        return format(Decimal(repr(value)), "f")
    return _SHORT_EXPONENT.sub(r"e-\1", repr(value))


def _encode(value: Any) -> str:
    if isinstance(value, Node):
        return value.to_json()
    if value is None:
        return _NULL
    if isinstance(value, Enum):
        return _encode(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, _Boosted):
        return '{"value":' + _encode(value.value) + ',"boost":' + _encode(value.boost) + "}"
    if isinstance(value, Mapping):
        items = sorted((str(k), v) for k, v in value.items())
        return "{" + ",".join(_quote(k) + ":" + _encode(v) for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(v) for v in value) + "]"
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


@dataclass(eq=False)
class Node:
    """One node of a query document: a leaf value, an object or an array."""

    leaf: Any = None
    node_map: dict[str, Node] | None = None
    node_list: list[Node] | None = None
    prevent_null: bool = False

    def to_json(self) -> str:
        """Return the compact JSON text of this node, object keys sorted."""
        if self.leaf is not None:
            return _encode(self.leaf)
        if self.node_map is not None:
            return _encode(self.node_map)
        if self.node_list is not None:
            return _encode(self.node_list)
        return "{}" if self.prevent_null else _NULL

    def _child(self, keyword: str) -> Node:
        if self.node_map is not None and keyword in self.node_map:
            return self.node_map[keyword]
        if self.leaf is not None:
            raise ValueError("cannot add child to leaf node")
        child = Node()
        if self.node_map is None:
            self.node_map = {}
        self.node_map[keyword] = child
        return child

    def _append_or_set(self, keyword: str) -> Node:
        child = Node()
        if self.leaf is not None:
            raise ValueError("cannot add child to leaf node")
        if self.node_list is not None:
            self.node_list.append(Node(node_map={keyword: child}))
        else:
            if self.node_map is None:
                self.node_map = {}
            self.node_map[keyword] = child
        return child

    def aggs(self) -> Node:
        return self._child(_AGGS)

    def agg(self, name: str) -> Node:
        return self._child(name)

    def max(self) -> Node:
        return self._child(_MAX)

    def exists(self, field: str) -> None:
        child = self._child(_EXISTS)
        child.node_map = {_FIELD: Node(leaf=field)}

    def field(self, field_name: Any) -> Node:
        self.param(_FIELD, field_name)
        return self

    def filter(self) -> Node:
        """Return the filter clause, emptied of any earlier entries."""
        child = self._child(_FILTER)
        child.node_list = []
        return child

    def match_all(self) -> Node:
        child = self._child(_MATCH_ALL)
        child.prevent_null = True
        return child

    def match_none(self) -> Node:
        child = self._child(_MATCH_NONE)
        child.prevent_null = True
        return child

    def param(self, name: str, val: Any) -> None:
        self._child(name).leaf = val

    def query(self) -> Node:
        return self._child(_QUERY)

    def bool(self) -> Node:
        return self._child(_BOOL)

    def must(self) -> Node:
        child = self._child(_MUST)
        if child.node_list is None:
            child.node_list = []
        return child

    def must_not(self) -> Node:
        child = self._child(_MUST_NOT)
        if child.node_list is None:
            child.node_list = []
        return child

    def range(self, field: str, *args: RangeOpt) -> None:
        field_node = Node(node_map={})
        for opt in args:
            opt(field_node.node_map)
        child = self._append_or_set(_RANGE)
        child.node_map = {field: field_node}

    def size(self, sz: int) -> None:
        if sz < 0:
            raise ValueError("size must not be negative")
        self._child(_SIZE).leaf = sz

    def sort(self) -> Node:
        child = self._child(_SORT)
        child.node_list = []
        return child

    def sort_order(self, field: str, order: SortOrder) -> None:
        if self.node_list is None:
            raise ValueError("parent should be sort node")
        if self.leaf is not None:
            raise ValueError("cannot add child to leaf node")
        default = SortOrder.DESCEND if field == "_score" else SortOrder.ASCEND
        if SortOrder(order) == default:
            self.node_list.append(Node(leaf=field))
        else:
            self._append_or_set(field).leaf = SortOrder(order)

    def source(self) -> Node:
        return self._child(_SOURCE)

    def excludes(self, *args: str) -> Node:
        child = self._append_or_set(_EXCLUDES)
        child.leaf = list(args) if args else None
        return child

    def includes(self, *args: str) -> Node:
        child = self._append_or_set(_INCLUDES)
        child.leaf = list(args) if args else None
        return child

    def term(self, field: str, value: Any, boost: float | None = None) -> Node:
        child = self._append_or_set(_TERM)
        leaf = value if boost is None else _Boosted(value, boost)
        child.node_map = {field: Node(leaf=leaf)}
        return child

    def terms(self, field: str, value: Any, boost: float | None = None) -> Node:
        child = self._append_or_set(_TERMS)
        child.node_map = {field: Node(leaf=value)}
        if boost is not None:
            child.node_map[_BOOST] = Node(leaf=boost)
        return child

    def top_hits(self) -> Node:
        return self._child(_TOP_HITS)


def new_root() -> Node:
    """Return an empty query document."""
    return Node()


def with_range_gt(v: Any) -> RangeOpt:
    """Range option for a strict lower bound."""

    def apply(nmap: dict) -> None:
        nmap[_GREATER_THAN] = Node(leaf=v)

    return apply


def with_range_lte(v: Any) -> RangeOpt:
    """Range option for an inclusive upper bound."""

    def apply(nmap: dict) -> None:
        nmap[_LESS_THAN_EQ] = Node(leaf=v)

    return apply
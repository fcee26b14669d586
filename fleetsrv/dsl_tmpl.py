"""Query templates with named placeholders filled in at render time."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fleetsrv.dsl_node import Node

_PREFIX = "TMPL."
_TOKEN_SIZE = len(_PREFIX) + 36


class TokenUndefinedError(Exception):
    def __init__(self) -> None:
        super().__init__("bound token not defined")


class TokenNotFoundError(Exception):
    def __init__(self) -> None:
        super().__init__("named token not found")


class NotResolvedError(Exception):
    def __init__(self) -> None:
        super().__init__("template not resolved")


class Token(str):
    """A placeholder string standing for a bound parameter in a query."""


def _new_token() -> Token:
    token = Token(f"{_PREFIX}{uuid.uuid4()}")
    if len(token) != _TOKEN_SIZE:
        raise RuntimeError("token size misalignment")
    return token


@dataclass
class _Segment:
    data: str
    name: str | None = None


class Tmpl:
    """A query resolved into literal text and named parameter slots."""

    def __init__(self) -> None:
        self._tokens: dict[str, Token] = {}
        self._segments: list[_Segment] | None = None

    def bind(self, name: str) -> Token:
        """Return a fresh placeholder for the parameter ``name``."""
        token = _new_token()
        self._tokens[name] = token
        return token

    def resolve(self, node: Node) -> Tmpl:
        """Split the node's JSON at every bound placeholder; every one must appear."""
        src = node.to_json()
        names = {token: name for name, token in self._tokens.items()}
        segments: list[_Segment] = []
        matched: set[Token] = set()
        start = 0
        pos = src.find(_PREFIX)
        while pos != -1:
            end = pos + _TOKEN_SIZE
            candidate = src[pos:end]
            if (
                pos > 0
                and src[pos - 1] == '"'
                and len(src) > end
                and src[end] == '"'
                and candidate in names
            ):
                matched.add(Token(candidate))
                segments.append(_Segment(src[start : pos - 1], names[candidate]))
                start = end + 1
                pos = src.find(_PREFIX, start)
            else:
                pos = src.find(_PREFIX, pos + len(_PREFIX))
        if start < len(src):
            segments.append(_Segment(src[start:]))
        if len(matched) != len(names):
            raise TokenUndefinedError()
        self._segments = segments
        return self

    def render(self, params: dict[str, Any]) -> bytes:
        """Return the query with every slot replaced by the JSON of its parameter."""
        encoded = {name: Node(leaf=value).to_json() for name, value in params.items()}
        return self._render(encoded)

    def render_one(self, name: str, value: Any) -> bytes:
        """Render a template that has a single parameter."""
        return self._render({name: Node(leaf=value).to_json()})

    def _render(self, encoded: dict[str, str]) -> bytes:
        if self._segments is None:
            raise NotResolvedError()
        parts: list[str] = []
        for segment in self._segments:
            parts.append(segment.data)
            if segment.name is not None:
                if segment.name not in encoded:
                    raise TokenNotFoundError()
                parts.append(encoded[segment.name])
        return "".join(parts).encode()
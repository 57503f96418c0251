"""Continuation token codecs.

A :class:`~keystore_core.models.Token` wraps whatever position the backing
store hands back after a page. Tokens are opaque to callers and only valid for
the backend that issued them.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from .exceptions import DecodeError
from .models import Token
from .utils import b64d, b64e

AttributeMap = Dict[str, Dict[str, Any]]

_BINARY_TYPES = {"B"}
_BINARY_SET_TYPES = {"BS"}


class AttributeMapTokenCodec:
    """Tokens for DynamoDB ``LastEvaluatedKey`` maps: base64(JSON(map))."""

    def serialize(self, position: Mapping[str, Mapping[str, Any]]) -> Token:
        encoded = {name: _encode_attribute(value) for name, value in position.items()}
        payload = json.dumps(encoded, sort_keys=True, separators=(",", ":"))
        return Token(value=b64e(payload.encode("utf-8")))

    def deserialize(self, token: Token) -> AttributeMap:
        try:
            data = json.loads(b64d(token.value).decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecodeError("Continuation token is malformed") from exc
        if not isinstance(data, dict) or not all(isinstance(value, dict) for value in data.values()):
            raise DecodeError("Continuation token does not hold an attribute map")
        return {name: _decode_attribute(value) for name, value in data.items()}


class PagingStateTokenCodec:
    """Tokens for the Cassandra driver's binary paging state."""

    def serialize(self, paging_state: bytes) -> Token:
        return Token(value=b64e(paging_state))

    def deserialize(self, token: Token) -> bytes:
        state = b64d(token.value)
        if not state:
            raise DecodeError("Continuation token is empty")
        return state


def _encode_attribute(value: Mapping[str, Any]) -> Dict[str, Any]:
    encoded: Dict[str, Any] = {}
    for kind, raw in value.items():
        if kind in _BINARY_TYPES:
            encoded[kind] = b64e(bytes(raw))
        elif kind in _BINARY_SET_TYPES:
            encoded[kind] = [b64e(bytes(item)) for item in raw]
        else:
            encoded[kind] = raw
    return encoded


def _decode_attribute(value: Mapping[str, Any]) -> Dict[str, Any]:
    decoded: Dict[str, Any] = {}
    for kind, raw in value.items():
        if kind in _BINARY_TYPES:
            decoded[kind] = b64d(_require_str(raw))
        elif kind in _BINARY_SET_TYPES:
            decoded[kind] = [b64d(_require_str(item)) for item in raw]
        else:
            decoded[kind] = raw
    return decoded


def _require_str(raw: Any) -> str:
    if not isinstance(raw, str):
        raise DecodeError("Continuation token holds a non-text binary attribute")
    return raw


__all__ = ["AttributeMapTokenCodec", "PagingStateTokenCodec"]

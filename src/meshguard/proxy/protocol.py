# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
JSON-RPC framing and message model for the stdio guard.

Messages travel as newline-delimited JSON objects in both directions.
Requests keep the exact bytes they arrived with so that anything the
guard does not need to touch is forwarded verbatim.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import IO, Any, Dict, Optional, Union

from meshguard.exceptions import ProtocolDecodeError

JSONRPC_VERSION = "2.0"

# JSON-RPC error codes
SERVER_ERROR = -32000
METHOD_NOT_FOUND = -32601

# Methods the guard inspects
TOOLS_CALL = "tools/call"
RESOURCES_READ = "resources/read"
PROMPTS_GET = "prompts/get"
NOTIFICATION_PREFIX = "notifications/"


@dataclass(frozen=True)
class Frame:
    """One decoded message plus the line it was decoded from."""

    raw: bytes
    value: Any


class MessageReader:
    """Reads newline-delimited JSON values from a binary stream."""

    def __init__(self, stream: IO[bytes], source: str):
        self._stream = stream
        self.source = source

    def read(self) -> Optional[Frame]:
        """
        Block until the next message arrives.

        Returns:
            The decoded frame, or ``None`` at end of stream.

        Raises:
            ProtocolDecodeError: The next line is not valid JSON.
        """
        while True:
            line = self._stream.readline()
            if not line:
                return None
            if line.strip():
                break
        try:
            value = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolDecodeError(
                f"invalid JSON from {self.source}: {e}", source=self.source, raw=line
            ) from e
        return Frame(raw=line, value=value)


def write_frame(stream: IO[bytes], data: Union[bytes, Any]) -> None:
    """Write one message and flush. ``bytes`` are written as-is."""
    if isinstance(data, (bytes, bytearray)):
        payload = bytes(data)
    else:
        payload = json.dumps(data, ensure_ascii=False).encode("utf-8")
    if not payload.endswith(b"\n"):
        payload += b"\n"
    stream.write(payload)
    stream.flush()


# ── Typed parameter variants ──────────────────────────────────


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceRead:
    uri: str

    @property
    def name(self) -> str:
        return resource_name_from_uri(self.uri)


@dataclass(frozen=True)
class PromptGet:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OpaqueParams:
    """Parameters of a method the guard does not inspect."""

    value: Any = None


RequestParams = Union[ToolCall, ResourceRead, PromptGet, OpaqueParams]


def resource_name_from_uri(uri: str) -> str:
    """Bare resource name: the text after the last ``:`` or ``/``.

    ``fs://project/secret.env`` -> ``secret.env``. A URI without a
    separator, or one that ends in a separator, is used whole.
    """
    idx = max(uri.rfind(":"), uri.rfind("/"))
    if idx != -1 and idx < len(uri) - 1:
        return uri[idx + 1:]
    return uri


def _str_field(params: Any, key: str) -> Optional[str]:
    if isinstance(params, dict):
        value = params.get(key)
        if isinstance(value, str):
            return value
    return None


def _dict_field(params: Any, key: str) -> Dict[str, Any]:
    if isinstance(params, dict) and isinstance(params.get(key), dict):
        return params[key]
    return {}


@dataclass
class Request:
    """A client message as seen by the guard."""

    method: str
    id: Any = None
    params: Any = None
    jsonrpc: str = JSONRPC_VERSION
    has_id: bool = False
    raw: bytes = b""

    @classmethod
    def from_frame(cls, frame: Frame) -> "Request":
        message = frame.value
        if not isinstance(message, dict):
            raise ProtocolDecodeError(
                f"expected a JSON object, got {type(message).__name__}",
                source="client",
                raw=frame.raw,
            )
        method = message.get("method")
        if not isinstance(method, str):
            method = ""
        return cls(
            method=method,
            id=message.get("id"),
            params=message.get("params"),
            jsonrpc=message.get("jsonrpc", JSONRPC_VERSION),
            has_id="id" in message,
            raw=frame.raw,
        )

    @property
    def is_notification(self) -> bool:
        return self.method.startswith(NOTIFICATION_PREFIX) or not self.has_id

    @property
    def target(self) -> RequestParams:
        """Typed view of ``params`` selected by ``method``.

        Falls back to :class:`OpaqueParams` when the method is not one the
        guard inspects or when the field it would inspect is missing.
        """
        if self.method == TOOLS_CALL:
            name = _str_field(self.params, "name")
            if name is not None:
                return ToolCall(name=name, arguments=_dict_field(self.params, "arguments"))
        elif self.method == RESOURCES_READ:
            uri = _str_field(self.params, "uri")
            if uri is not None:
                return ResourceRead(uri=uri)
        elif self.method == PROMPTS_GET:
            name = _str_field(self.params, "name")
            if name is not None:
                return PromptGet(name=name, arguments=_dict_field(self.params, "arguments"))
        return OpaqueParams(self.params)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.has_id:
            data["id"] = self.id
        if self.params is not None:
            data["params"] = self.params
        return data


def error_response(request_id: Any, message: str, code: int = SERVER_ERROR) -> Dict[str, Any]:
    """Build a JSON-RPC error response."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {
            "code": code,
            "message": message,
        },
    }

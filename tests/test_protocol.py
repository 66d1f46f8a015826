"""Tests for JSON-RPC framing and the request model."""

import io
import json

import pytest

from meshguard.exceptions import ProtocolDecodeError
from meshguard.proxy.protocol import (
    METHOD_NOT_FOUND,
    SERVER_ERROR,
    Frame,
    MessageReader,
    OpaqueParams,
    PromptGet,
    Request,
    ResourceRead,
    ToolCall,
    error_response,
    resource_name_from_uri,
    write_frame,
)


def _request(message: dict) -> Request:
    raw = json.dumps(message).encode() + b"\n"
    return Request.from_frame(Frame(raw=raw, value=message))


class TestMessageReader:
    def test_reads_messages_in_order(self):
        stream = io.BytesIO(b'{"id": 1}\n{"id": 2}\n')
        reader = MessageReader(stream, source="client")

        first = reader.read()
        second = reader.read()

        assert first.value == {"id": 1}
        assert first.raw == b'{"id": 1}\n'
        assert second.value == {"id": 2}
        assert reader.read() is None

    def test_skips_blank_lines(self):
        reader = MessageReader(io.BytesIO(b'\n  \n{"id": 1}\n\n'), source="client")
        assert reader.read().value == {"id": 1}
        assert reader.read() is None

    def test_last_line_without_newline(self):
        reader = MessageReader(io.BytesIO(b'{"id": 7}'), source="client")
        assert reader.read().value == {"id": 7}

    def test_empty_stream_is_eof(self):
        assert MessageReader(io.BytesIO(b""), source="child").read() is None

    def test_invalid_json_raises(self):
        reader = MessageReader(io.BytesIO(b"not json\n"), source="child")
        with pytest.raises(ProtocolDecodeError) as exc_info:
            reader.read()
        assert exc_info.value.source == "child"
        assert exc_info.value.raw == b"not json\n"

    def test_invalid_utf8_raises(self):
        reader = MessageReader(io.BytesIO(b'{"a": "\xff\xfe"}\n'), source="client")
        with pytest.raises(ProtocolDecodeError):
            reader.read()

    def test_resumes_after_bad_line(self):
        reader = MessageReader(io.BytesIO(b'garbage\n{"id": 2}\n'), source="child")
        with pytest.raises(ProtocolDecodeError):
            reader.read()
        assert reader.read().value == {"id": 2}


class TestWriteFrame:
    def test_bytes_written_verbatim(self):
        out = io.BytesIO()
        write_frame(out, b'{"id":1,  "x": 2}\n')
        assert out.getvalue() == b'{"id":1,  "x": 2}\n'

    def test_newline_appended(self):
        out = io.BytesIO()
        write_frame(out, b'{"id":1}')
        assert out.getvalue() == b'{"id":1}\n'

    def test_values_encoded_as_json(self):
        out = io.BytesIO()
        write_frame(out, {"id": 1, "text": "héllo"})
        line = out.getvalue()
        assert line.endswith(b"\n")
        assert json.loads(line) == {"id": 1, "text": "héllo"}


class TestRequest:
    def test_fields(self):
        request = _request({"jsonrpc": "2.0", "id": 3, "method": "tools/list", "params": {}})
        assert request.method == "tools/list"
        assert request.id == 3
        assert request.has_id
        assert not request.is_notification
        assert request.to_dict() == {"jsonrpc": "2.0", "id": 3, "method": "tools/list", "params": {}}

    def test_string_id(self):
        request = _request({"jsonrpc": "2.0", "id": "abc", "method": "ping"})
        assert request.id == "abc"

    def test_non_object_rejected(self):
        with pytest.raises(ProtocolDecodeError):
            Request.from_frame(Frame(raw=b"[1, 2]\n", value=[1, 2]))

    @pytest.mark.parametrize(
        "message",
        [
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 1}},
            {"jsonrpc": "2.0", "method": "custom/event"},
        ],
    )
    def test_notifications(self, message):
        assert _request(message).is_notification

    def test_tool_call_variant(self):
        request = _request({
            "jsonrpc": "2.0", "id": 1, "method": "tools/call",
            "params": {"name": "read_file", "arguments": {"path": "/tmp/x"}},
        })
        assert request.target == ToolCall(name="read_file", arguments={"path": "/tmp/x"})

    def test_resource_read_variant(self):
        request = _request({
            "jsonrpc": "2.0", "id": 1, "method": "resources/read",
            "params": {"uri": "fs://project/secret.env"},
        })
        target = request.target
        assert isinstance(target, ResourceRead)
        assert target.name == "secret.env"

    def test_prompt_get_variant(self):
        request = _request({
            "jsonrpc": "2.0", "id": 1, "method": "prompts/get",
            "params": {"name": "system_intro"},
        })
        assert request.target == PromptGet(name="system_intro", arguments={})

    @pytest.mark.parametrize(
        "message",
        [
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": 42}},
            {"jsonrpc": "2.0", "id": 1, "method": "resources/read", "params": {}},
            {"jsonrpc": "2.0", "id": 1, "method": "prompts/get", "params": "oops"},
        ],
    )
    def test_opaque_variant(self, message):
        assert isinstance(_request(message).target, OpaqueParams)


class TestResourceName:
    @pytest.mark.parametrize(
        "uri,expected",
        [
            ("fs://project/secret.env", "secret.env"),
            ("file:///etc/passwd", "passwd"),
            ("db:users", "users"),
            ("plainname", "plainname"),
            ("fs://project/", "fs://project/"),
            ("trailing:", "trailing:"),
        ],
    )
    def test_derivation(self, uri, expected):
        assert resource_name_from_uri(uri) == expected


class TestErrorResponse:
    def test_server_error(self):
        assert error_response(5, "tool not found: x") == {
            "jsonrpc": "2.0",
            "id": 5,
            "error": {"code": SERVER_ERROR, "message": "tool not found: x"},
        }

    def test_custom_code(self):
        response = error_response("a", "method not found", code=METHOD_NOT_FOUND)
        assert response["error"]["code"] == -32601

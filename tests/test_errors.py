"""Tests for command error payloads and their parsing.

Run: pytest tests/test_errors.py -v
"""
import json

from core.errors import CommandError, parse_command_error


class TestCommandError:
    def test_payload_is_always_a_string(self):
        assert CommandError(42).payload == "42"
        assert str(CommandError("boom")) == "boom"

    def test_structured_payload(self):
        error = CommandError.structured("settings.webdav.errors.timeout", "read timed out")
        assert json.loads(error.payload) == {
            "error": "read timed out",
            "suggestion": "settings.webdav.errors.timeout",
        }


class TestParseCommandError:
    def test_structured(self):
        info = parse_command_error(CommandError.structured("settings.webdav.errors.unauthorized", "401"))
        assert info.is_structured
        assert info.suggestion_key == "settings.webdav.errors.unauthorized"
        assert info.message == "401"

    def test_plain_text_is_raw(self):
        info = parse_command_error(CommandError("Upload failed with status: 409"))
        assert info.kind == "raw"
        assert info.display() == "Upload failed with status: 409"

    def test_json_without_suggestion_is_raw(self):
        payload = json.dumps({"error": "something"})
        info = parse_command_error(CommandError(payload))
        assert not info.is_structured
        assert info.message == payload

    def test_json_non_object_is_raw(self):
        info = parse_command_error(CommandError("[1, 2]"))
        assert info.kind == "raw"
        assert info.message == "[1, 2]"

    def test_empty_suggestion_is_raw(self):
        info = parse_command_error(CommandError(json.dumps({"error": "x", "suggestion": ""})))
        assert info.kind == "raw"

    def test_plain_exception(self):
        info = parse_command_error(RuntimeError("disk full"))
        assert info.display() == "disk full"

    def test_structured_display_falls_back_to_detail(self):
        info = parse_command_error(CommandError.structured("unknown.key", "detail text"))
        assert info.display() == "detail text"

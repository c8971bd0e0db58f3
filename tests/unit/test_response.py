"""
Unit tests for the streaming HTTP response.
"""

import pytest

from httpminify.errors import UsageError
from httpminify.http.response import ResponseStream, format_http_date, reason_phrase
from datetime import datetime, timezone


class TestFraming:
    """Tests for Content-Length, chunked and close-delimited bodies."""

    def test_end_with_data_sets_content_length(self, stream, sink):
        """Test that end(data) with no prior writes sends a fixed-length body."""
        stream.set_header("Content-Type", "text/plain")
        assert stream.end("hello") is True

        response = sink.response()
        assert response.status == 200
        assert response.headers["content-length"] == "5"
        assert response.body == b"hello"
        assert not response.chunked

    def test_streamed_writes_are_chunked(self, stream, sink):
        """Test that HTTP/1.1 writes without Content-Length use chunked encoding."""
        stream.write("body {")
        stream.write(b" color: red; }")
        stream.end()

        response = sink.response()
        assert response.chunked
        assert response.body == b"body { color: red; }"
        assert sink.data.endswith(b"0\r\n\r\n")

    def test_explicit_content_length_is_kept(self, stream, sink):
        """Test that a handler-set Content-Length disables chunking."""
        stream.set_header("Content-Length", "6")
        stream.write("abc")
        stream.write("def")
        stream.end()

        response = sink.response()
        assert not response.chunked
        assert response.body == b"abcdef"

    def test_http10_closes_instead_of_chunking(self, sink):
        """Test that HTTP/1.0 bodies of unknown length are delimited by close."""
        stream = ResponseStream(sink, version="HTTP/1.0")
        stream.write("abc")
        stream.end()

        response = sink.response()
        assert "transfer-encoding" not in response.headers
        assert response.headers["connection"] == "close"
        assert stream.keep_alive is False
        assert response.body == b"abc"

    def test_head_sends_no_body(self, sink):
        """Test that HEAD responses never carry body bytes."""
        stream = ResponseStream(sink, request_method="HEAD")
        stream.set_header("Content-Length", "11")
        stream.end("hello world")

        response = sink.response()
        assert response.headers["content-length"] == "11"
        assert response.body == b""

    @pytest.mark.parametrize("status", [204, 304])
    def test_bodiless_statuses(self, stream, sink, status):
        """Test that 204 and 304 responses have no body."""
        stream.status = status
        stream.end("ignored")

        response = sink.response()
        assert response.status == status
        assert response.body == b""
        assert "transfer-encoding" not in response.headers

    def test_date_and_server_headers(self, stream, sink):
        """Test automatic Date and Server headers."""
        stream.end()

        response = sink.response()
        assert response.headers["server"] == "httpminify/1.0"
        assert response.headers["date"].endswith("GMT")

    def test_bytes_written_counts_body_only(self, stream):
        """Test that bytes_written excludes headers and chunk framing."""
        stream.write("1234")
        stream.end("56")
        assert stream.bytes_written == 6


class TestHeadersHook:
    """Tests for on_headers, the header finalization decision point."""

    def test_hooks_run_once_in_order(self, stream):
        """Test that hooks run exactly once, in registration order."""
        calls = []
        stream.on_headers(lambda s: calls.append("first"))
        stream.on_headers(lambda s: calls.append("second"))

        stream.write("a")
        stream.write("b")
        stream.end()

        assert calls == ["first", "second"]

    def test_hook_may_rewrite_headers(self, stream, sink):
        """Test that a hook can still change headers before they are sent."""
        stream.set_header("Content-Type", "text/x-scss")
        stream.on_headers(lambda s: s.set_header("Content-Type", "text/css"))
        stream.end("x")

        assert sink.response().headers["content-type"] == "text/css"

    def test_hook_sees_end_length_hint(self, stream):
        """Test that end(data) offers its length before hooks run."""
        seen = []
        stream.on_headers(lambda s: seen.append(s.get_header("Content-Length")))
        stream.end("12345")
        assert seen == ["5"]

    def test_hook_removing_length_forces_chunking(self, stream, sink):
        """Test that removing the length hint in a hook switches to chunked framing."""
        stream.on_headers(lambda s: s.remove_header("Content-Length"))
        stream.end("abc")

        response = sink.response()
        assert response.chunked
        assert response.body == b"abc"


class TestStreamContract:
    """Tests for usage errors."""

    def test_write_after_end_raises(self, stream):
        """Test that write() after end() is a UsageError."""
        stream.end()
        with pytest.raises(UsageError):
            stream.write("late")

    def test_end_twice_returns_false(self, stream):
        """Test that a second end() is a no-op."""
        assert stream.end() is True
        assert stream.end() is False

    def test_invalid_chunk_type(self, stream):
        """Test that non-text chunks are rejected, also as a TypeError."""
        with pytest.raises(UsageError):
            stream.write(42)
        with pytest.raises(TypeError):
            stream.write({"a": 1})

    def test_invalid_chunk_does_not_send_headers(self, stream, sink):
        """Test that a rejected first write leaves headers mutable."""
        with pytest.raises(UsageError):
            stream.write(3.14)
        assert not stream.headers_sent
        assert sink.chunks == []

    def test_headers_immutable_after_send(self, stream):
        """Test that headers can't change once sent."""
        stream.write("x")
        with pytest.raises(UsageError):
            stream.set_header("X-Late", "1")
        with pytest.raises(UsageError):
            stream.status = 500

    def test_str_chunks_use_content_type_charset(self, stream, sink):
        """Test that str chunks are encoded with the declared charset."""
        stream.set_header("Content-Type", "text/plain; charset=iso-8859-1")
        stream.end("café")
        assert sink.response().body == b"caf\xe9"

    def test_header_names_case_insensitive(self, stream):
        """Test header lookup ignores case and keeps the given spelling."""
        stream.set_header("X-Custom", "v")
        assert stream.get_header("x-custom") == "v"
        assert stream.header_items() == [("X-Custom", "v")]


class TestHelpers:
    """Tests for module helpers."""

    def test_reason_phrase(self):
        """Test status reason phrases."""
        assert reason_phrase(404) == "Not Found"
        assert reason_phrase(599) == "Unknown"

    def test_format_http_date(self):
        """Test IMF-fixdate formatting."""
        dt = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Thu, 01 Jan 2026 12:00:00 GMT"

"""Unit tests for request head parsing."""

import io

import pytest

from rawhttp.domain.errors import (
    ClientDisconnected,
    LineTooLong,
    MalformedHeader,
    MalformedRequestLine,
    MissingOrInvalidContentLength,
    UnexpectedEOF,
)
from rawhttp.pipeline.parser import (
    ReaderState,
    RequestReader,
    content_length,
    parse_header_line,
    parse_request_line,
    request_path,
)


def _reader(data: bytes, max_line_bytes: int = 8192, **kwargs) -> RequestReader:
    return RequestReader(io.BytesIO(data), max_line_bytes, **kwargs)


def _read_request(data: bytes, **kwargs):
    reader = _reader(data, **kwargs)
    return reader.read_headers(reader.read_request_line())


def test_parse_request_line_splits_three_tokens():
    line = parse_request_line("GET /index.html HTTP/1.1")
    assert (line.method, line.target, line.version) == ("GET", "/index.html", "HTTP/1.1")


@pytest.mark.parametrize(
    "line", ["GET /index.html", "GARBAGE", "", "GET / HTTP/1.1 extra"]
)
def test_parse_request_line_rejects_wrong_token_count(line):
    with pytest.raises(MalformedRequestLine):
        parse_request_line(line)


def test_parse_header_line_trims_name_and_value():
    assert parse_header_line("  Host :  example.com  ") == ("Host", "example.com")


def test_parse_header_line_keeps_colons_in_value():
    assert parse_header_line("Host: localhost:8080") == ("Host", "localhost:8080")


@pytest.mark.parametrize("line", ["NoColonHere", ": value-without-name"])
def test_parse_header_line_rejects_malformed(line):
    with pytest.raises(MalformedHeader):
        parse_header_line(line)


def test_request_path_strips_query_and_decodes():
    assert request_path("/docs/a%20b.txt?version=2") == "/docs/a b.txt"
    assert request_path("http://example.com/page.html") == "/page.html"


def test_headers_are_case_insensitive_and_last_value_wins():
    request = _read_request(
        b"GET / HTTP/1.1\r\nX-Token: one\r\nx-token: two\r\nHost: h\r\n\r\n"
    )
    assert request.headers == {"x-token": "two", "host": "h"}
    assert request.header_lines == [("X-Token", "one"), ("x-token", "two"), ("Host", "h")]


def test_bare_newline_terminators_are_accepted():
    request = _read_request(b"GET /a.txt HTTP/1.0\nHost: h\n\n")
    assert request.path == "/a.txt"
    assert request.version == "HTTP/1.0"
    assert request.headers["host"] == "h"


def test_body_bytes_are_left_on_the_stream():
    stream = io.BytesIO(b"POST /a.txt HTTP/1.1\r\nContent-Length: 5\r\n\r\nhelloEXTRA")
    reader = RequestReader(stream, 8192)
    reader.read_headers(reader.read_request_line())
    assert reader.state is ReaderState.DONE
    assert stream.read() == b"helloEXTRA"


def test_empty_stream_means_client_disconnected():
    with pytest.raises(ClientDisconnected):
        _reader(b"").read_request_line()


def test_partial_request_line_is_unexpected_eof():
    with pytest.raises(UnexpectedEOF):
        _reader(b"GET / HTT").read_request_line()


def test_eof_at_line_boundary_ends_headers():
    request = _read_request(
        b"GET http://example.com/ HTTP/1.1\r\nHost: example.com\r\n"
    )
    assert request.headers == {"host": "example.com"}


def test_eof_right_after_request_line_gives_empty_headers():
    assert _read_request(b"GET / HTTP/1.1\r\n").headers == {}


def test_partial_header_line_is_unexpected_eof():
    with pytest.raises(UnexpectedEOF):
        _read_request(b"GET / HTTP/1.1\r\nHost: exa")


def test_overlong_request_line_is_rejected():
    with pytest.raises(LineTooLong):
        _reader(b"GET /" + b"a" * 100 + b" HTTP/1.1\r\n\r\n", 64).read_request_line()


def test_overlong_header_line_is_rejected():
    data = b"GET / HTTP/1.1\r\nX-Big: " + b"b" * 100 + b"\r\n\r\n"
    with pytest.raises(LineTooLong):
        _read_request(data, max_line_bytes=64)


def test_line_exactly_at_limit_is_accepted():
    line = b"GET /x HTTP/1.1\r\n"
    reader = _reader(line + b"\r\n", len(line))
    assert reader.read_request_line().target == "/x"


def test_before_line_hook_runs_for_every_line():
    calls = []
    _read_request(
        b"GET / HTTP/1.1\r\nA: 1\r\nB: 2\r\n\r\n", before_line=lambda: calls.append(1)
    )
    assert len(calls) == 4


def test_reading_out_of_order_raises():
    reader = _reader(b"GET / HTTP/1.1\r\n\r\n")
    with pytest.raises(RuntimeError):
        reader.read_headers(parse_request_line("GET / HTTP/1.1"))


@pytest.mark.parametrize("value,expected", [("0", 0), ("5", 5), ("000012", 12)])
def test_content_length_accepts_digits(value, expected):
    assert content_length({"content-length": value}) == expected


@pytest.mark.parametrize("headers", [{}, {"content-length": "-1"}, {"content-length": "abc"},
                                     {"content-length": ""}, {"content-length": "１２"}])
def test_content_length_rejects_missing_or_invalid(headers):
    with pytest.raises(MissingOrInvalidContentLength):
        content_length(headers)

"""Request line and header parsing over a buffered byte stream.

The reader is a small state machine: it first expects the request line,
then header lines up to the blank terminator, and is done afterwards.
Each line is bounded by ``max_line_bytes`` so adversarial input cannot
grow memory without limit. Bytes after the head are left on the stream
for the method handler.
"""

import enum
import logging
import urllib.parse
from typing import BinaryIO, Callable, Optional

from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.domain.errors import (
    ClientDisconnected,
    LineTooLong,
    MalformedHeader,
    MalformedRequestLine,
    MissingOrInvalidContentLength,
    UnexpectedEOF,
)
from rawhttp.domain.http_types import HttpRequest, RequestLine

PARSER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.parser"), {})

HEADER_ENCODING = "iso-8859-1"


class ReaderState(enum.Enum):
    """Position of the reader within the request head."""

    AWAITING_REQUEST_LINE = "awaiting_request_line"
    AWAITING_HEADERS = "awaiting_headers"
    DONE = "done"


def parse_request_line(line: str) -> RequestLine:
    """Split a request line into exactly three whitespace-separated tokens."""
    parts = line.split()
    if len(parts) != 3:
        raise MalformedRequestLine(f"expected 3 tokens, got {len(parts)}")
    method, target, version = parts
    return RequestLine(method, target, version)


def parse_header_line(line: str) -> tuple[str, str]:
    """Split ``Name: value`` into a trimmed name/value pair."""
    name, separator, value = line.partition(":")
    name = name.strip()
    if not separator or not name:
        raise MalformedHeader(f"header line without name or colon: {line[:64]!r}")
    return name, value.strip()


def request_path(target: str) -> str:
    """Return the decoded path component of a request target."""
    return urllib.parse.unquote(urllib.parse.urlsplit(target).path)


def content_length(headers: dict[str, str]) -> int:
    """Return the declared Content-Length as a non-negative integer."""
    value = headers.get("content-length")
    if value is None:
        raise MissingOrInvalidContentLength("missing Content-Length")
    if not (value.isascii() and value.isdigit()):
        raise MissingOrInvalidContentLength(f"invalid Content-Length {value!r}")
    return int(value)


class RequestReader:
    """Reads one request head off a binary stream."""

    def __init__(
        self,
        stream: BinaryIO,
        max_line_bytes: int,
        before_line: Optional[Callable[[], None]] = None,
    ) -> None:
        self._stream = stream
        self._max_line_bytes = max_line_bytes
        self._before_line = before_line
        self.state = ReaderState.AWAITING_REQUEST_LINE

    def _read_line(self) -> Optional[str]:
        """Return the next line without its terminator, or None at a clean EOF."""
        if self._before_line is not None:
            self._before_line()
        raw = self._stream.readline(self._max_line_bytes + 1)
        if len(raw) > self._max_line_bytes:
            raise LineTooLong(f"line exceeds {self._max_line_bytes} bytes")
        if not raw:
            return None
        if not raw.endswith(b"\n"):
            raise UnexpectedEOF("stream ended in the middle of a line")
        return raw.decode(HEADER_ENCODING).rstrip("\r\n")

    def read_request_line(self) -> RequestLine:
        """Read and parse the request line."""
        if self.state is not ReaderState.AWAITING_REQUEST_LINE:
            raise RuntimeError(f"request line already read (state {self.state.value})")
        line = self._read_line()
        if line is None:
            raise ClientDisconnected
        request_line = parse_request_line(line)
        self.state = ReaderState.AWAITING_HEADERS
        return request_line

    def read_headers(self, request_line: RequestLine) -> HttpRequest:
        """Read header lines up to the blank terminator and build the request.

        A clean end of stream where the next header line would start ends the
        header section, so clients that half-close after the head still work.
        """
        if self.state is not ReaderState.AWAITING_HEADERS:
            raise RuntimeError(f"headers not expected (state {self.state.value})")
        headers: dict[str, str] = {}
        header_lines: list[tuple[str, str]] = []
        while True:
            line = self._read_line()
            if line is None or not line.strip():
                break
            name, value = parse_header_line(line)
            headers[name.lower()] = value
            header_lines.append((name, value))
        self.state = ReaderState.DONE
        if PARSER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            PARSER_LOGGER.debug(
                "Request head parsed",
                extra={
                    "event": "request_head_parsed",
                    "method": request_line.method,
                    "target": request_line.target,
                },
            )
        return HttpRequest(
            method=request_line.method,
            target=request_line.target,
            version=request_line.version,
            path=request_path(request_line.target),
            headers=headers,
            header_lines=header_lines,
        )

"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional


@dataclass(frozen=True)
class RequestLine:
    """The three tokens of an HTTP request line."""

    method: str
    target: str
    version: str


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request head.

    ``headers`` holds lower-cased names with the last value seen for each,
    ``header_lines`` keeps every line as received so duplicates survive.
    The body stays on the connection reader.
    """

    method: str
    target: str
    version: str
    path: str
    headers: dict[str, str]
    header_lines: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class HttpResponse:
    """Represents an HTTP response to be written to a client."""

    status_line: str
    headers: list[tuple[str, str]]
    body: bytes = b""
    body_iter: Optional[Iterable[bytes]] = None
    closers: list[Callable[[], None]] = field(default_factory=list)

    def close(self) -> None:
        """Release resources backing the body stream."""
        while self.closers:
            self.closers.pop()()

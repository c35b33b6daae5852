"""HTTP input/output operations on raw sockets."""

import logging
import socket
import time
from typing import BinaryIO

from rawhttp.bootstrap.config import COPY_CHUNK_BYTES
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.domain.errors import IOFailure
from rawhttp.domain.http_types import HttpResponse

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.io"), {})

CRLF = "\r\n"


def apply_deadline(client_socket: socket.socket, deadline_ns: int) -> None:
    """Set the socket timeout to the time left before the deadline."""
    remaining_ns = deadline_ns - time.monotonic_ns()
    if remaining_ns <= 0:
        raise TimeoutError("Request deadline exceeded")
    client_socket.settimeout(remaining_ns / 1_000_000_000)


def copy_exact(
    source: BinaryIO,
    destination: BinaryIO,
    length: int,
    chunk_size: int = COPY_CHUNK_BYTES,
) -> int:
    """Copy exactly ``length`` bytes, leaving anything after them unread."""
    remaining = length
    while remaining > 0:
        try:
            chunk = source.read(min(chunk_size, remaining))
        except OSError as error:
            raise IOFailure(f"read failed after {length - remaining} bytes") from error
        if not chunk:
            raise IOFailure(
                f"peer closed after {length - remaining} of {length} bytes"
            )
        try:
            destination.write(chunk)
        except OSError as error:
            raise IOFailure(f"write failed after {length - remaining} bytes") from error
        remaining -= len(chunk)
    return length


def serialize_head(response: HttpResponse) -> bytes:
    """Encode the status line, header lines and blank terminator."""
    lines = [response.status_line]
    lines.extend(f"{name}: {value}" for name, value in response.headers)
    return (CRLF.join(lines) + CRLF + CRLF).encode("iso-8859-1")


def send_response(client_socket: socket.socket, response: HttpResponse) -> int:
    """Write the response and stream its body; return the body bytes written."""
    client_socket.sendall(serialize_head(response) + response.body)
    bytes_out = len(response.body)
    if response.body_iter is not None:
        for chunk in response.body_iter:
            if not chunk:
                continue
            client_socket.sendall(chunk)
            bytes_out += len(chunk)
    IO_LOGGER.debug(
        "Sent response",
        extra={
            "event": "response_sent",
            "status_line": response.status_line,
            "bytes_out": bytes_out,
        },
    )
    return bytes_out

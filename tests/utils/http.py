"""Utilities for interacting with raw HTTP over sockets in tests."""

from __future__ import annotations

import os
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Tuple

HEADER_DELIMITER = b"\r\n\r\n"


@dataclass(slots=True)
class RawHttpResponse:
    """Structured view of an HTTP response captured from a socket."""

    status_line: str
    header_lines: List[Tuple[str, str]]
    body: bytes

    @property
    def status_code(self) -> int:
        return int(self.status_line.split()[1])

    def header_values(self, name: str) -> List[str]:
        """Return every value sent for ``name``, in order."""
        return [value for key, value in self.header_lines if key.lower() == name.lower()]


def reserve_port(host: str = "127.0.0.1") -> int:
    """Return an available TCP port bound to the given host without listening."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def wait_for_port(host: str, port: int, timeout: float = 5.0) -> None:
    """Block until a TCP connection to host:port succeeds or timeout elapses."""

    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.1):
                return
        except OSError:
            time.sleep(0.05)
    raise RuntimeError(f"Server did not start on {host}:{port} within {timeout}s")


def read_until_eof(sock: socket.socket) -> bytes:
    """Read everything the peer sends until it closes its write side."""

    chunks: List[bytes] = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def parse_raw_response(data: bytes) -> RawHttpResponse:
    """Split a close-delimited response into status, header lines and body."""

    if HEADER_DELIMITER not in data:
        raise RuntimeError(f"Incomplete response head: {data!r}")
    head, body = data.split(HEADER_DELIMITER, 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    header_lines = []
    for line in lines[1:]:
        name, _, value = line.partition(":")
        header_lines.append((name.strip(), value.strip()))
    return RawHttpResponse(lines[0], header_lines, body)


def send_raw_request(
    host: str, port: int, request_bytes: bytes, half_close: bool = True
) -> bytes:
    """Send raw bytes over TCP and return everything received until close."""

    with socket.create_connection((host, port), timeout=5) as sock:
        sock.sendall(request_bytes)
        if half_close:
            sock.shutdown(socket.SHUT_WR)
        return read_until_eof(sock)


def exchange(
    handler: Callable[[socket.socket], None],
    request_bytes: bytes,
    half_close: bool = True,
) -> bytes:
    """Run ``handler`` on one end of a socket pair and talk to it from the other."""

    server_end, client_end = socket.socketpair()
    client_end.settimeout(5)
    worker = threading.Thread(target=handler, args=(server_end,))
    with client_end:
        client_end.sendall(request_bytes)
        if half_close:
            client_end.shutdown(socket.SHUT_WR)
        worker.start()
        data = read_until_eof(client_end)
    worker.join(timeout=5)
    assert not worker.is_alive(), "connection handler did not finish"
    return data


def send_signal_to_process(pid: int, sig: int) -> None:
    """Send a signal to a process by PID."""
    os.kill(pid, sig)

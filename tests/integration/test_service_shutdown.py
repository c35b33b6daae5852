"""Integration tests for graceful shutdown behavior."""

from __future__ import annotations

import signal
import socket
import subprocess
from typing import TYPE_CHECKING

import pytest

from tests.utils.http import read_until_eof, send_signal_to_process

pytestmark = pytest.mark.integration

if TYPE_CHECKING:
    from tests.conftest import ServiceProcessInfo


@pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
def test_signal_stops_idle_server(server_process: "ServiceProcessInfo", sig: int) -> None:
    process = server_process["process"]
    send_signal_to_process(process.pid, sig)
    assert process.wait(timeout=10) == 0


def test_in_flight_upload_completes_during_shutdown(
    server_process: "ServiceProcessInfo",
) -> None:
    """A connection accepted before the signal still gets its response."""

    process: subprocess.Popen = server_process["process"]
    with socket.create_connection(
        (server_process["host"], server_process["port"]), timeout=10
    ) as sock:
        sock.sendall(b"POST /late.txt HTTP/1.1\r\nContent-Length: 6\r\n\r\nhal")
        # Give the accept loop time to hand the connection to a worker.
        sock.settimeout(0.5)
        with pytest.raises(socket.timeout):
            sock.recv(1)
        sock.settimeout(10)

        send_signal_to_process(process.pid, signal.SIGTERM)
        sock.sendall(b"f!!")
        reply = read_until_eof(sock)

    assert reply == b"HTTP/1.1 200 OK\r\n\r\nFile uploaded successfully\r\n"
    assert (server_process["directory"] / "late.txt").read_bytes() == b"half!!"
    assert process.wait(timeout=10) == 0

"""Listening socket creation."""

import logging
import socket

from rawhttp.domain.correlation_id import CorrelationLoggerAdapter

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(host: str, port: int) -> socket.socket:
    """Create the listening socket with a short accept timeout for shutdown polling."""
    server_socket = socket.create_server((host, port), reuse_port=True)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    SOCKET_LOGGER.debug(
        "Listening socket created",
        extra={"event": "socket_created", "host": host, "port": port},
    )
    return server_socket

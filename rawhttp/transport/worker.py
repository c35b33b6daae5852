"""Worker thread logic for handling individual client connections."""

import contextlib
import logging
import socket
import threading
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import BinaryIO, Optional

from rawhttp.domain.correlation_id import CorrelationLoggerAdapter, correlation_scope
from rawhttp.domain.errors import ClientDisconnected, HttpError
from rawhttp.domain.http_types import HttpResponse
from rawhttp.domain.response_builders import error_response
from rawhttp.pipeline.io import apply_deadline, send_response
from rawhttp.pipeline.parser import RequestReader
from rawhttp.transport.context import WorkerContext
from rawhttp.transport.gate import Permit

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rawhttp.transport.worker"), {}
)

DRAIN_CHUNK_BYTES = 4096


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    reader: BinaryIO
    client_addr_str: str


def _failure_response(error: HttpError, client_addr_str: str) -> HttpResponse:
    """Log the cause of a failed request and build its error response."""
    cause = error.__cause__ if error.__cause__ is not None else error
    WORKER_LOGGER.warning(
        "Request failed",
        extra={
            "event": "request_failed",
            "client": client_addr_str,
            "status_code": error.status.value,
            "error_type": type(error).__name__,
            "error": f"{error} ({type(cause).__name__}: {cause})",
        },
    )
    return error_response(error.status)


def _build_response(
    client_socket: socket.socket,
    reader: BinaryIO,
    context: WorkerContext,
    client_addr_str: str,
) -> HttpResponse:
    """Read the request head and let the service produce exactly one response."""
    config = context.config
    service = context.service
    deadline_ns = time.monotonic_ns() + int(config.request_timeout * 1_000_000_000)
    request_reader = RequestReader(
        reader,
        config.max_line_bytes,
        before_line=lambda: apply_deadline(client_socket, deadline_ns),
    )

    try:
        request_line = request_reader.read_request_line()
        handler = service.handler_for(request_line.method)
        request = request_reader.read_headers(request_line)
    except HttpError as error:
        return _failure_response(error, client_addr_str)

    WORKER_LOGGER.debug(
        "Request line parsed",
        extra={
            "event": "request_line_parsed",
            "method": request.method,
            "target": request.target,
        },
    )
    client_socket.settimeout(config.socket_timeout)

    try:
        return handler(request, reader)
    except HttpError as error:
        return _failure_response(error, client_addr_str)
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in handler",
            extra={
                "event": "handler_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)


def _write_response(
    client_socket: socket.socket, response: HttpResponse, client_addr_str: str
) -> None:
    try:
        send_response(client_socket, response)
    except HttpError as error:
        # The head is already on the wire; the connection close ends the body.
        WORKER_LOGGER.warning(
            "Response body aborted",
            extra={
                "event": "response_aborted",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error.__cause__ or error),
            },
        )
    finally:
        response.close()


def _lingering_close(client_socket: socket.socket, linger_seconds: float) -> None:
    """Half-close, then discard unread input briefly so the peer gets no RST."""
    deadline = time.monotonic() + linger_seconds
    try:
        client_socket.shutdown(socket.SHUT_WR)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            client_socket.settimeout(remaining)
            if not client_socket.recv(DRAIN_CHUNK_BYTES):
                break
    except OSError:
        pass
    client_socket.close()


def _cleanup_worker(context: WorkerContext, resources: _WorkerResources) -> None:
    if context.lifecycle is not None:
        context.lifecycle.untrack_worker(resources.thread)

    resources.reader.close()
    _lingering_close(resources.client_socket, context.config.linger_seconds)

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": resources.client_addr_str},
    )


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
    permit: Optional[Permit] = None,
) -> None:
    """Serve one request on ``client_socket`` and close it.

    The permit, when given, is released after the socket is closed on every
    exit path.
    """
    with permit if permit is not None else contextlib.nullcontext():
        with correlation_scope():
            _serve_client(client_socket, client_address, context)


def _serve_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    current_thread = threading.current_thread()
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    resources = _WorkerResources(
        current_thread,
        client_socket,
        client_socket.makefile("rb"),
        client_addr_str,
    )

    try:
        WORKER_LOGGER.debug(
            "Request processing started",
            extra={"event": "request_started", "client": client_addr_str},
        )
        client_socket.settimeout(context.config.socket_timeout)
        response = _build_response(
            client_socket, resources.reader, context, client_addr_str
        )
        _write_response(client_socket, response, client_addr_str)
        WORKER_LOGGER.debug(
            "Request processing complete",
            extra={"event": "request_complete", "client": client_addr_str},
        )
    except ClientDisconnected:
        WORKER_LOGGER.debug(
            "Client disconnected before sending a request",
            extra={"event": "client_disconnected", "client": client_addr_str},
        )
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(context, resources)

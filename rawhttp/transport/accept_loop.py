"""Main connection acceptance loop."""

import logging
import socket
import threading
from typing import Optional

from rawhttp.bootstrap.config import ServiceConfig
from rawhttp.bootstrap.socket_factory import ACCEPT_POLL_SECONDS, create_server_socket
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.lifecycle.state import ServiceLifecycle
from rawhttp.pipeline.service import Service
from rawhttp.transport.context import WorkerContext
from rawhttp.transport.gate import ConcurrencyGate, Permit
from rawhttp.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rawhttp.transport.accept"), {}
)


def _wait_for_permit(
    gate: ConcurrencyGate, lifecycle: ServiceLifecycle
) -> Optional[Permit]:
    """Block the accept loop until a permit frees up or shutdown begins."""
    permit = gate.acquire(timeout=0)
    if permit is not None:
        return permit
    ACCEPT_LOGGER.info(
        "All client slots busy, waiting",
        extra={"event": "gate_saturated", "max_clients": gate.max_clients},
    )
    while not lifecycle.should_stop():
        permit = gate.acquire(timeout=ACCEPT_POLL_SECONDS)
        if permit is not None:
            return permit
    return None


def _spawn_worker(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
    permit: Optional[Permit],
) -> None:
    """Start the handler thread for an accepted client connection."""
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context, permit),
        daemon=False,
    )
    if context.lifecycle is not None:
        context.lifecycle.track_worker(thread)
    try:
        thread.start()
    except RuntimeError as error:
        if context.lifecycle is not None:
            context.lifecycle.untrack_worker(thread)
        ACCEPT_LOGGER.error(
            "Cannot start worker thread",
            extra={"event": "worker_spawn_failed", "error": str(error)},
        )
        if permit is not None:
            permit.release()
        client_socket.close()


def run_service(
    service: Service,
    config: ServiceConfig,
    lifecycle: ServiceLifecycle,
    host: str,
    port: int,
    gate: Optional[ConcurrencyGate] = None,
) -> None:
    """Accept connections and hand each one to its own worker thread."""

    server_socket = create_server_socket(host, port)

    ACCEPT_LOGGER.info(
        "Service listening for connections",
        extra={
            "event": "service_listening",
            "service": service.name,
            "host": host,
            "port": port,
            "max_clients": gate.max_clients if gate is not None else None,
        },
    )

    context = WorkerContext(service=service, config=config, lifecycle=lifecycle)

    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
                ACCEPT_LOGGER.debug(
                    "Client connection accepted",
                    extra={
                        "event": "client_accepted",
                        "client": f"{client_address[0]}:{client_address[1]}",
                    },
                )

            permit = None
            if gate is not None:
                permit = _wait_for_permit(gate, lifecycle)
                if permit is None:
                    client_socket.close()
                    break

            _spawn_worker(client_socket, client_address, context, permit)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "remaining_workers": lifecycle.tracked_count(),
                "shutdown_grace_seconds": config.shutdown_grace_seconds,
            },
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info(
            "Service shutdown complete",
            extra={"event": "service_stopped", "service": service.name},
        )

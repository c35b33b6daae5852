"""Process entry points for the file server and the forwarding proxy."""

import argparse
import logging
import signal
import sys
from typing import Callable, Optional

from rawhttp.bootstrap.config import (
    ServiceConfig,
    config_from_args,
    parse_proxy_args,
    parse_server_args,
)
from rawhttp.bootstrap.logging_setup import configure_logging
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.lifecycle.state import ServiceLifecycle
from rawhttp.pipeline.service import Service, file_server_service, proxy_service
from rawhttp.transport.accept_loop import run_service
from rawhttp.transport.gate import ConcurrencyGate

CLI_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.cli"), {})


def _install_signal_handlers(lifecycle: ServiceLifecycle) -> None:
    def shutdown_handler(signum: int, _frame) -> None:
        lifecycle.begin_draining(signum)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)


def _serve(
    args: argparse.Namespace,
    build_service: Callable[[ServiceConfig], Service],
    gate: Optional[ConcurrencyGate],
) -> None:
    config = config_from_args(args)
    service = build_service(config)
    configure_logging(
        args.log_level,
        args.log_destination,
        args.log_format == "json",
        service=service.name,
    )
    lifecycle = ServiceLifecycle()
    _install_signal_handlers(lifecycle)

    CLI_LOGGER.info(
        "Starting service",
        extra={
            "event": "service_starting",
            "service": service.name,
            "host": args.host,
            "port": args.port,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "socket_timeout": config.socket_timeout,
            "request_timeout": config.request_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )
    try:
        run_service(service, config, lifecycle, args.host, args.port, gate)
    except OSError as error:
        CLI_LOGGER.critical(
            "Cannot listen on port",
            extra={
                "event": "listen_failed",
                "port": args.port,
                "error": str(error),
            },
        )
        sys.exit(1)


def run_file_server(argv: Optional[list[str]] = None) -> None:
    """Start the file server; the port is the only required argument."""
    args = parse_server_args(sys.argv[1:] if argv is None else argv)
    _serve(args, file_server_service, ConcurrencyGate(args.max_clients))


def run_proxy(argv: Optional[list[str]] = None) -> None:
    """Start the forwarding proxy; the port is the only required argument."""
    args = parse_proxy_args(sys.argv[1:] if argv is None else argv)
    _serve(args, proxy_service, None)

"""Service configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


DEFAULT_HOST = os.getenv("RAWHTTP_HOST", "0.0.0.0")
DEFAULT_MAX_CLIENTS = _env_int("RAWHTTP_MAX_CLIENTS", 10)
DEFAULT_MAX_LINE_BYTES = _env_int("RAWHTTP_MAX_LINE_BYTES", 8192)
DEFAULT_SOCKET_TIMEOUT = _env_float("RAWHTTP_SOCKET_TIMEOUT", 60.0)
DEFAULT_REQUEST_TIMEOUT = _env_float("RAWHTTP_REQUEST_TIMEOUT", 30.0)
DEFAULT_UPSTREAM_TIMEOUT = _env_float("RAWHTTP_UPSTREAM_TIMEOUT", 30.0)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("RAWHTTP_SHUTDOWN_GRACE_SECONDS", 30)
DEFAULT_LINGER_SECONDS = _env_float("RAWHTTP_LINGER_SECONDS", 1.0)

COPY_CHUNK_BYTES = 64 * 1024

MIME_TYPES: Mapping[str, str] = MappingProxyType(
    {
        ".html": "text/html",
        ".txt": "text/plain",
        ".gif": "image/gif",
        ".jpeg": "image/jpeg",
        ".jpg": "image/jpeg",
        ".css": "text/css",
    }
)


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable settings handed to every component at construction."""

    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_line_bytes: int = DEFAULT_MAX_LINE_BYTES
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    directory: str = "."
    max_clients: int = DEFAULT_MAX_CLIENTS
    mime_types: Mapping[str, str] = field(default_factory=lambda: MIME_TYPES)
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT
    linger_seconds: float = DEFAULT_LINGER_SECONDS


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def _port(value: str) -> int:
    number = int(value)
    if not 0 < number < 65536:
        raise argparse.ArgumentTypeError(f"invalid port {value}")
    return number


def _base_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("port", type=_port, help="TCP port to listen on")
    parser.add_argument("--host", default=DEFAULT_HOST)
    default_log_level = os.getenv("RAWHTTP_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("RAWHTTP_LOG_DESTINATION", "stdout")
    default_log_format = os.getenv("RAWHTTP_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_log_format,
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--socket-timeout",
        type=float,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for every read and write",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Deadline in seconds for receiving the request head",
    )
    parser.add_argument(
        "--max-line-bytes",
        type=_positive_int,
        default=DEFAULT_MAX_LINE_BYTES,
        help="Longest accepted request or header line",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    parser.add_argument(
        "--linger-seconds",
        type=float,
        default=DEFAULT_LINGER_SECONDS,
        help="How long to drain unread input after the response before closing",
    )
    return parser


def parse_server_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the file server."""
    parser = _base_parser("http_server", "Serve and accept whitelisted files")
    parser.add_argument("--directory", default=".")
    parser.add_argument(
        "--max-clients",
        type=_positive_int,
        default=DEFAULT_MAX_CLIENTS,
        help="Maximum number of connections handled concurrently",
    )
    return parser.parse_args(argv)


def parse_proxy_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the forwarding proxy."""
    parser = _base_parser("http_proxy", "Forward GET requests to origin servers")
    parser.add_argument(
        "--upstream-timeout",
        type=float,
        default=DEFAULT_UPSTREAM_TIMEOUT,
        help="Connect and read timeout in seconds for origin requests",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServiceConfig:
    """Build the immutable service configuration from parsed arguments."""
    return ServiceConfig(
        socket_timeout=args.socket_timeout,
        request_timeout=args.request_timeout,
        max_line_bytes=args.max_line_bytes,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        linger_seconds=args.linger_seconds,
        directory=getattr(args, "directory", "."),
        max_clients=getattr(args, "max_clients", DEFAULT_MAX_CLIENTS),
        upstream_timeout=getattr(args, "upstream_timeout", DEFAULT_UPSTREAM_TIMEOUT),
    )

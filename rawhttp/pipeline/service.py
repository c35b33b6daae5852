"""Service definitions: which methods an endpoint serves and how."""

import logging
from dataclasses import dataclass
from typing import BinaryIO, Callable, Mapping, Optional

import requests

from rawhttp.bootstrap.config import ServiceConfig
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.domain.errors import UnsupportedMethod
from rawhttp.domain.http_types import HttpRequest, HttpResponse
from rawhttp.handlers.file_handler import ResourceStore
from rawhttp.handlers.proxy_handler import UpstreamForwarder

SERVICE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.service"), {})

MethodHandler = Callable[[HttpRequest, BinaryIO], HttpResponse]

FILE_SERVER = "file_server"
PROXY = "proxy"


@dataclass(frozen=True)
class Service:
    """An endpoint: its name and the handler for each method it serves."""

    name: str
    handlers: Mapping[str, MethodHandler]

    def handler_for(self, method: str) -> MethodHandler:
        """Return the handler for ``method`` or raise ``UnsupportedMethod``."""
        try:
            return self.handlers[method]
        except KeyError:
            if SERVICE_LOGGER.logger.isEnabledFor(logging.DEBUG):
                SERVICE_LOGGER.debug(
                    "Method not served",
                    extra={"event": "method_rejected", "method": method},
                )
            raise UnsupportedMethod(f"{self.name} does not serve {method}") from None


def file_server_service(config: ServiceConfig) -> Service:
    """Build the GET/POST file server backed by a resource store."""
    store = ResourceStore(config.directory, config.mime_types)
    return Service(FILE_SERVER, {"GET": store.get, "POST": store.post})


def proxy_service(
    config: ServiceConfig, session: Optional[requests.Session] = None
) -> Service:
    """Build the GET-only forwarding proxy."""
    forwarder = UpstreamForwarder(config.upstream_timeout, session)
    return Service(PROXY, {"GET": forwarder.get})

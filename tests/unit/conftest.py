"""Shared fixtures for unit tests."""

import logging
from pathlib import Path
from typing import Callable

import pytest

from rawhttp.bootstrap.config import ServiceConfig
from rawhttp.pipeline.service import file_server_service
from tests.utils.services import make_client_runner


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("rawhttp")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(name="service_config")
def service_config_fixture(tmp_path: Path) -> ServiceConfig:
    """Configuration rooted in a temporary directory with short timeouts."""
    return ServiceConfig(
        directory=str(tmp_path),
        socket_timeout=2.0,
        request_timeout=2.0,
        linger_seconds=0.2,
        upstream_timeout=2.0,
    )


@pytest.fixture(name="serve_file_request")
def serve_file_request_fixture(service_config: ServiceConfig) -> Callable[..., bytes]:
    """Send raw bytes to a file server connection handler and return the reply."""
    return make_client_runner(file_server_service(service_config), service_config)

"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "http_server.py"
PROXY_ENTRYPOINT = PROJECT_ROOT / "http_proxy.py"
LOOPBACK = "127.0.0.1"


class ServiceProcessInfo(TypedDict):
    """Metadata describing a running service fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def launch_service(
    entrypoint: Path,
    port: int,
    directory: Path,
    log_file: Path,
    extra_args: list[str] | None = None,
) -> Generator[ServiceProcessInfo, None, None]:
    """Run one of the service scripts until the generator is closed."""
    args = [
        sys.executable,
        str(entrypoint),
        str(port),
        "--host",
        LOOPBACK,
        "--log-destination",
        str(log_file),
        "--shutdown-grace-seconds",
        "5",
    ]
    if extra_args:
        args.extend(extra_args)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(LOOPBACK, port)
        except Exception:
            # If startup failed, print stdout/stderr to help debug
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nService stdout:\n{stdout}")
            print(f"\nService stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{LOOPBACK}:{port}",
            "host": LOOPBACK,
            "port": port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServiceProcessInfo, None, None]:
    """Launch the file server in a background process for integration tests."""

    port = reserve_port(LOOPBACK)
    directory = tmp_path_factory.mktemp("server-files")
    log_file = tmp_path_factory.mktemp("server-logs") / "server.log"
    yield from launch_service(
        SERVER_ENTRYPOINT,
        port,
        directory,
        log_file,
        ["--directory", str(directory), "--max-clients", "2"],
    )


@pytest.fixture(name="proxy_process")
def _proxy_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServiceProcessInfo, None, None]:
    """Launch the forwarding proxy in a background process."""

    port = reserve_port(LOOPBACK)
    directory = tmp_path_factory.mktemp("proxy")
    log_file = directory / "proxy.log"
    yield from launch_service(
        PROXY_ENTRYPOINT, port, directory, log_file, ["--upstream-timeout", "5"]
    )


@pytest.fixture()
def base_url(server_process: ServiceProcessInfo) -> str:
    """Expose the running file server base URL to integration tests."""

    return server_process["base_url"]

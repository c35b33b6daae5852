"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from rawhttp.bootstrap.config import ServiceConfig
from rawhttp.lifecycle.state import ServiceLifecycle
from rawhttp.pipeline.service import Service


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    service: Service
    config: ServiceConfig
    lifecycle: Optional[ServiceLifecycle] = None

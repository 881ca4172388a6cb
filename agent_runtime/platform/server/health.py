"""
Health state and service metadata for the agent runtime.
"""

import datetime
import os
import platform
import socket
import threading
import time
from importlib.metadata import PackageNotFoundError, version

from agent_runtime.platform.agent.config import DEFAULT_MODELS
from agent_runtime.platform.constants import SERVICE_NAME, SERVICE_VERSION

__all__ = ["HealthCheck", "ServiceMetadata", "metadata"]


class HealthCheck:
    """Process-wide health flag.

    Cleared on shutdown so load balancers drain the instance before agent
    runs in progress are cut off.
    """

    _health_check_enabled = threading.Event()

    @staticmethod
    def enable() -> None:
        HealthCheck._health_check_enabled.set()

    @staticmethod
    def disable() -> None:
        HealthCheck._health_check_enabled.clear()

    @staticmethod
    def status() -> bool:
        return HealthCheck._health_check_enabled.is_set()


def _package_version(name: str) -> str | None:
    try:
        return version(name)
    except PackageNotFoundError:
        return None


class ServiceMetadata:
    """
    Build and host information, the agent stack in use and uptime.
    Created once on import.
    """

    # keys to read from the environment
    ENV_INFO_KEYS = [
        "BUILD_DATE",
        "GIT_COMMIT",
        "IMAGE_NAME",
        "SERVICE_ID",
    ]

    # libraries whose versions change agent behavior
    AGENT_PACKAGES = ["langgraph", "langchain-core", "langchain-litellm", "litellm"]

    def __init__(self):
        self._started_at = datetime.datetime.now(tz=datetime.UTC).isoformat()
        self._started_ts = time.monotonic()

        info = {key.lower(): os.environ.get(key) for key in self.ENV_INFO_KEYS}
        info |= {
            "hostname": socket.gethostname(),
            "python_version": platform.python_version(),
            "service_name": SERVICE_NAME,
            "service_version": SERVICE_VERSION,
            "agent_packages": {name: _package_version(name) for name in self.AGENT_PACKAGES},
            "model_providers": {provider.value: model for provider, model in DEFAULT_MODELS.items()},
        }
        self.metadata = info

    @property
    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._started_ts, 3)

    def info(self) -> dict:
        return {**self.metadata, "started": self._started_at, "uptime_seconds": self.uptime_seconds}


metadata = ServiceMetadata()

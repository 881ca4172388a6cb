"""Service-wide constants."""

from importlib.metadata import PackageNotFoundError, version

SERVICE_NAME = "agent-runtime"

try:
    SERVICE_VERSION = version(SERVICE_NAME)
except PackageNotFoundError:
    SERVICE_VERSION = "0.0.0"

USER_AGENT = f"{SERVICE_NAME}/{SERVICE_VERSION}"

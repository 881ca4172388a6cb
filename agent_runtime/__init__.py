"""agent-runtime - A reasoning-loop agent runtime with MCP tool calling and structured output."""

from .platform.server.app import create_app
from .platform.settings import Settings


def app():
    """Create the FastAPI application instance."""
    settings = Settings()
    return create_app(settings)

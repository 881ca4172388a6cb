"""Bugsnag error reporting integration.

ERROR-level log entries are reported to Bugsnag outside local development,
which includes every failed agent run.
"""

import logging

import bugsnag
from bugsnag.handlers import BugsnagHandler

from agent_runtime.platform.constants import SERVICE_VERSION


def initialize_bugsnag(api_key: str, release_stage: str) -> bool:
    """Initialize Bugsnag error reporting.

    Args:
        api_key: Bugsnag project API key
        release_stage: Environment identifier ("production", "development", "local")

    Returns:
        True if reporting was enabled
    """
    if release_stage == "local" or not api_key:
        return False
    bugsnag.configure(
        api_key=api_key,
        release_stage=release_stage,
        app_version=SERVICE_VERSION,
        auto_notify=True,
    )
    handler = BugsnagHandler()
    handler.setLevel(logging.ERROR)
    logging.getLogger().addHandler(handler)
    return True

"""Secret lookup for model provider credentials."""

import os
import re
from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class SecretsResolver(Protocol):
    """Resolves a secret identifier to its value."""

    async def get(self, secret_id: str) -> str | None:
        """Return the secret value, or None if it does not exist."""
        ...


class EnvSecretsResolver:
    """Reads secrets from environment variables.

    A secret id such as ``openai-prod`` maps to ``<prefix>OPENAI_PROD``.
    """

    def __init__(self, prefix: str = "AGENT_SECRET_", environ: Mapping[str, str] | None = None):
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def env_var(self, secret_id: str) -> str:
        return self.prefix + re.sub(r"[^A-Z0-9]", "_", secret_id.strip().upper())

    async def get(self, secret_id: str) -> str | None:
        value = self._environ.get(self.env_var(secret_id))
        return value.strip() if value and value.strip() else None

"""Model provider resolution.

Turns a caller's chat model selection into a concrete model id, API key,
base URL and request headers.
"""

import logging

from agent_runtime.platform.agent.config import (
    DEFAULT_MODELS,
    ChatModelSelection,
    ModelProvider,
    ResolvedChatModel,
)
from agent_runtime.platform.agent.errors import AgentConfigurationError
from agent_runtime.platform.agent.mcp import sanitize_headers
from agent_runtime.platform.agent.secrets import SecretsResolver
from agent_runtime.platform.settings import ProviderDefaults

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def resolve_model_id(provider: ModelProvider, model_id: str | None) -> str:
    """Return ``model_id`` or the provider default when it is blank."""
    return _clean(model_id) or DEFAULT_MODELS[provider]


async def resolve_api_key(
    selection: ChatModelSelection,
    override_key: str | None = None,
    secrets: SecretsResolver | None = None,
) -> str:
    """Resolve the API key for a model selection.

    Resolution order:
    1. Per-call override key
    2. Key embedded in the selection
    3. Secret named by ``api_key_secret_id``

    Raises:
        AgentConfigurationError: If no key can be found
    """
    if key := _clean(override_key) or _clean(selection.api_key):
        return key

    secret_id = _clean(selection.api_key_secret_id)
    if secret_id:
        if secrets is None:
            raise AgentConfigurationError(
                "A secrets resolver is required to resolve chatModel.apiKeySecretId.",
                details={"provider": selection.provider.value, "secretId": secret_id},
            )
        logger.info(f"Resolving model API key from secret '{secret_id}'")
        if secret := _clean(await secrets.get(secret_id)):
            return secret
        raise AgentConfigurationError(
            f'Chat model API key secret "{secret_id}" was not found or has no value.',
            details={"provider": selection.provider.value, "secretId": secret_id},
        )

    raise AgentConfigurationError(
        f'Model provider API key is not configured for "{selection.provider.value}".',
        details={"provider": selection.provider.value},
    )


def resolve_base_url(selection: ChatModelSelection, defaults: ProviderDefaults) -> str | None:
    """Return the explicit base URL, else the provider's environment default, else None."""
    if explicit := _clean(selection.base_url):
        return explicit
    match selection.provider:
        case ModelProvider.OPENAI:
            return _clean(defaults.openai_base_url)
        case ModelProvider.GEMINI:
            return _clean(defaults.gemini_base_url)
        case ModelProvider.OPENROUTER:
            return _clean(defaults.openrouter_base_url)
    return None


def resolve_headers(selection: ChatModelSelection, defaults: ProviderDefaults) -> dict[str, str]:
    """Provider headers, with explicit selection headers taking precedence."""
    headers: dict[str, str] = {}
    if selection.provider is ModelProvider.OPENROUTER:
        headers = sanitize_headers(
            {
                "HTTP-Referer": defaults.openrouter_http_referer,
                "X-Title": defaults.openrouter_app_title,
            }
        )
    return headers | sanitize_headers(selection.headers)


async def resolve_chat_model(
    selection: ChatModelSelection,
    override_key: str | None = None,
    secrets: SecretsResolver | None = None,
    defaults: ProviderDefaults | None = None,
) -> ResolvedChatModel:
    """Resolve a chat model selection into a ready-to-use configuration.

    Args:
        selection: Caller's provider and model choice
        override_key: Per-call API key taking priority over the selection's key
        secrets: Resolver for ``api_key_secret_id``
        defaults: Environment defaults; read from the environment if omitted

    Returns:
        Resolved chat model

    Raises:
        AgentConfigurationError: If no API key is available
    """
    defaults = defaults or ProviderDefaults()
    resolved = ResolvedChatModel(
        provider=selection.provider,
        model_id=resolve_model_id(selection.provider, selection.model_id),
        api_key=await resolve_api_key(selection, override_key, secrets),
        base_url=resolve_base_url(selection, defaults),
        headers=resolve_headers(selection, defaults),
    )
    logger.info(f"Using {resolved.provider.value} model '{resolved.model_id}'")
    return resolved

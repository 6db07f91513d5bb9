"""Provider selection."""

import os

from atcvirtual.core.config import LLMConfig
from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.llm.anthropic_provider import AnthropicProvider
from atcvirtual.services.llm.base import LLMProvider
from atcvirtual.services.llm.gateway_provider import GatewayProvider

logger = get_logger(__name__)


def resolve_model(requested: str | None, config: LLMConfig) -> str:
    """Return the requested model if allowed, else the default one."""
    if requested and requested in config.allowed_models:
        return requested
    return config.default_model


def create_provider(
    config: LLMConfig,
    anthropic_api_key: str | None = None,
    selected_model: str | None = None,
) -> LLMProvider:
    """Pick the provider for a request.

    A non-blank Anthropic key from the pilot selects the Anthropic API;
    otherwise the gateway is used with the server key from the environment.

    Args:
        config: LLM configuration.
        anthropic_api_key: The pilot's own Anthropic key, if any.
        selected_model: Requested gateway model.

    Returns:
        Configured provider.
    """
    if anthropic_api_key and anthropic_api_key.strip():
        return AnthropicProvider(
            api_key=anthropic_api_key.strip(),
            url=config.anthropic_url,
            model=config.anthropic_model,
            version=config.anthropic_version,
            max_tokens=config.max_tokens,
            timeout=config.request_timeout,
        )

    gateway_key = os.environ.get(config.gateway_key_env) or None
    if gateway_key is None:
        logger.warning("%s is not set; gateway requests will fail", config.gateway_key_env)
    return GatewayProvider(
        api_key=gateway_key,
        url=config.gateway_url,
        model=resolve_model(selected_model, config),
        timeout=config.request_timeout,
    )

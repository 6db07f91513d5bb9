"""LLM chat providers for the ATC persona."""

from atcvirtual.services.llm.anthropic_provider import AnthropicProvider
from atcvirtual.services.llm.base import LLMProvider
from atcvirtual.services.llm.factory import create_provider, resolve_model
from atcvirtual.services.llm.gateway_provider import GatewayProvider

__all__ = [
    "AnthropicProvider",
    "GatewayProvider",
    "LLMProvider",
    "create_provider",
    "resolve_model",
]

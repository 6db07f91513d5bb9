"""Stateless handling of one wire-form chat request.

Runs the same pipeline as ATCSession for a client that keeps its own
state: validate the payload, answer ATIS locally, otherwise build the
prompt, call the provider and split the completion by voice.

Typical usage:
    from atcvirtual.services.atc.chat_handler import handle_chat_request

    body = handle_chat_request(json.loads(raw), config)
"""

from collections.abc import Callable
from typing import Any

from atcvirtual.core.config import AppConfig, LLMConfig
from atcvirtual.core.errors import InputValidationError, ProviderError
from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.atis_generator import ATISGenerator
from atcvirtual.services.atc.chat_request import ChatRequest, validate_chat_request
from atcvirtual.services.atc.frequencies import ServiceType
from atcvirtual.services.atc.models import Channel
from atcvirtual.services.atc.prompt_builder import PromptBuilder
from atcvirtual.services.atc.response_parser import ParsedLLMResponse, parse_llm_response
from atcvirtual.services.llm.base import LLMProvider
from atcvirtual.services.llm.factory import create_provider

logger = get_logger(__name__)

ProviderFactory = Callable[[LLMConfig, str | None, str | None], LLMProvider]


def handle_chat_request(
    payload: Any,
    config: AppConfig | None = None,
    provider_factory: ProviderFactory = create_provider,
    atis_generator: ATISGenerator | None = None,
) -> dict[str, Any]:
    """Answer a chat request payload.

    Args:
        payload: Decoded JSON body (see ``validate_chat_request``).
        config: Application configuration; defaults apply when None.
        provider_factory: Builds the provider from the LLM config, the
            request's Anthropic key and its selected model.
        atis_generator: Generator for ATIS broadcasts.

    Returns:
        The response body: ``{"isWaiting", "atcResponse"?, "evaluatorResponse"?}``
        on success, ``{"error"}`` for a rejected request and
        ``{"error", "category"}`` for a provider failure.
    """
    config = config or AppConfig()
    try:
        request = validate_chat_request(payload, config.limits, config.llm)
    except InputValidationError as e:
        logger.info("Rejected chat request: %s", e.user_message)
        return {"error": e.user_message}

    broadcast = _atis_broadcast(request, atis_generator)
    if broadcast is not None:
        return ParsedLLMResponse(atc_response=broadcast).to_dict()

    builder = PromptBuilder(config.limits.max_system_prompt_length)
    messages = builder.build_messages(request.to_prompt_context(), request.history, request.message)
    try:
        provider = provider_factory(config.llm, request.anthropic_api_key, request.selected_model)
        completion = provider.complete(messages[0]["content"], messages[1:])
    except ProviderError as e:
        logger.error("Chat request failed: %s (status %s)", e.category.value, e.status_code)
        return {"error": e.user_message, "category": e.category.value}

    return parse_llm_response(completion, request.channel).to_dict()


def _atis_broadcast(request: ChatRequest, atis_generator: ATISGenerator | None) -> str | None:
    tuned = request.selected_frequency
    if request.channel != Channel.ATC or tuned is None or tuned.frequency_type != ServiceType.ATIS:
        return None
    generator = atis_generator or ATISGenerator()
    return generator.render(request.flight_data, request.weather_context, tuned)

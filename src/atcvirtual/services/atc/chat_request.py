"""Validation of inbound chat requests.

Turns an untrusted JSON-like payload (the wire form used by web clients)
into a typed ChatRequest. Oversized optional text is truncated, malformed
optional structures are dropped, and anything required or enumerated
that is wrong raises InputValidationError with a short Portuguese message.
"""

from dataclasses import dataclass, field
from typing import Any

from atcvirtual.core.config import LimitsConfig, LLMConfig
from atcvirtual.core.errors import InputValidationError
from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.flight_phase import FlightPhase, parse_phase
from atcvirtual.services.atc.frequencies import Frequency, SelectedFrequency, ServiceType, parse_frequency_entries
from atcvirtual.services.atc.models import AirportSide, Channel, FlightData, FlightMode, FlightRules
from atcvirtual.services.atc.prompt_builder import PromptContext

logger = get_logger(__name__)

MAX_FREQUENCY_FIELD_LENGTH = 20
MAX_FREQUENCY_NAME_LENGTH = 100


@dataclass
class ChatRequest:
    """A validated chat request.

    Attributes:
        message: Pilot utterance (trimmed).
        history: Prior role/content entries, oldest first.
        flight_data: Flight setup.
        channel: ATC or evaluator.
        weather_context: Flattened weather text (possibly truncated).
        system_prompt: Persona prompt (possibly truncated).
        anthropic_api_key: User-supplied Anthropic key, if any.
        selected_model: Gateway model (always an allowed one).
        selected_frequency: Tuned frequency, if well-formed.
        current_phase: Flight phase, if supplied.
        departure_frequencies: Well-formed departure frequencies.
        arrival_frequencies: Well-formed arrival frequencies.
    """

    message: str
    history: list[dict[str, str]]
    flight_data: FlightData
    channel: Channel
    weather_context: str = ""
    system_prompt: str = ""
    anthropic_api_key: str | None = None
    selected_model: str = ""
    selected_frequency: SelectedFrequency | None = None
    current_phase: FlightPhase | None = None
    departure_frequencies: list[Frequency] = field(default_factory=list)
    arrival_frequencies: list[Frequency] = field(default_factory=list)

    def to_prompt_context(self) -> PromptContext:
        """Build the assembler input for this request."""
        return PromptContext(
            flight_data=self.flight_data,
            system_prompt=self.system_prompt,
            channel=self.channel,
            weather_context=self.weather_context,
            phase=self.current_phase,
            tuned_frequency=self.selected_frequency,
            departure_frequencies=self.departure_frequencies,
            arrival_frequencies=self.arrival_frequencies,
        )


def validate_chat_request(
    payload: Any,
    limits: LimitsConfig | None = None,
    llm_config: LLMConfig | None = None,
) -> ChatRequest:
    """Validate and sanitize a chat request payload.

    Args:
        payload: Decoded JSON body.
        limits: Size limits (defaults apply when None).
        llm_config: Provides the allowed and default models.

    Returns:
        ChatRequest ready for the assembler.

    Raises:
        InputValidationError: If a required field is missing or invalid.
    """
    limits = limits or LimitsConfig()
    llm_config = llm_config or LLMConfig()

    if not isinstance(payload, dict):
        raise InputValidationError("Requisição inválida")

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        raise InputValidationError("Mensagem não fornecida", field="message")
    if len(message) > limits.max_message_length:
        raise InputValidationError(
            f"Mensagem muito longa (máximo {limits.max_message_length} caracteres)",
            field="message",
        )

    history = _validate_history(payload.get("history"), limits)
    flight_data = _validate_flight_data(payload.get("flightData"), limits)

    try:
        channel = Channel(payload.get("talkingTo"))
    except ValueError:
        raise InputValidationError("Destinatário inválido", field="talkingTo") from None

    weather_context = payload.get("metarContext")
    weather_context = (
        weather_context[: limits.max_metar_context_length] if isinstance(weather_context, str) else ""
    )
    system_prompt = payload.get("systemPrompt")
    system_prompt = (
        system_prompt[: limits.max_system_prompt_length] if isinstance(system_prompt, str) else ""
    )

    anthropic_api_key = None
    raw_key = payload.get("anthropicApiKey")
    if raw_key is not None:
        if not isinstance(raw_key, str) or len(raw_key) > limits.max_api_key_length:
            raise InputValidationError("API Key inválida", field="anthropicApiKey")
        anthropic_api_key = raw_key.strip() or None

    selected_model = payload.get("selectedModel")
    if not isinstance(selected_model, str) or selected_model not in llm_config.allowed_models:
        selected_model = llm_config.default_model

    current_phase = None
    raw_phase = payload.get("currentPhase")
    if raw_phase is not None:
        if not isinstance(raw_phase, str):
            raise InputValidationError("Fase do voo inválida", field="currentPhase")
        current_phase = parse_phase(raw_phase)

    request = ChatRequest(
        message=message.strip(),
        history=history,
        flight_data=flight_data,
        channel=channel,
        weather_context=weather_context,
        system_prompt=system_prompt,
        anthropic_api_key=anthropic_api_key,
        selected_model=selected_model,
        selected_frequency=_validate_selected_frequency(payload.get("selectedFrequency")),
        current_phase=current_phase,
        departure_frequencies=_validate_frequency_list(payload.get("departureFrequencies")),
        arrival_frequencies=_validate_frequency_list(payload.get("arrivalFrequencies")),
    )
    logger.info(
        "Validated chat request: message=%d chars, history=%d entries",
        len(request.message),
        len(request.history),
    )
    return request


def _validate_history(raw: Any, limits: LimitsConfig) -> list[dict[str, str]]:
    if not isinstance(raw, list):
        raise InputValidationError("Histórico inválido", field="history")

    history = []
    for entry in raw[-limits.max_history_size :]:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role")
        content = entry.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            continue
        if len(content) > limits.max_message_length:
            continue
        history.append({"role": role, "content": content})
    return history


def _validate_flight_data(raw: Any, limits: LimitsConfig) -> FlightData:
    if not isinstance(raw, dict):
        raise InputValidationError("Dados do voo não fornecidos", field="flightData")

    aircraft = raw.get("aircraft")
    if not isinstance(aircraft, str) or len(aircraft) > limits.max_aircraft_length:
        raise InputValidationError("Aeronave inválida", field="flightData.aircraft")

    departure = _validate_icao(raw.get("departureIcao"), limits)
    if departure is None:
        raise InputValidationError("ICAO de saída inválido", field="flightData.departureIcao")
    arrival = _validate_icao(raw.get("arrivalIcao"), limits)
    if arrival is None:
        raise InputValidationError("ICAO de chegada inválido", field="flightData.arrivalIcao")

    try:
        flight_type = FlightRules(raw.get("flightType"))
    except ValueError:
        raise InputValidationError("Tipo de voo inválido", field="flightData.flightType") from None
    try:
        mode = FlightMode(raw.get("mode"))
    except ValueError:
        raise InputValidationError("Modo inválido", field="flightData.mode") from None

    return FlightData(
        aircraft=aircraft.strip(),
        departure_icao=departure,
        arrival_icao=arrival,
        flight_type=flight_type,
        mode=mode,
    )


def _validate_icao(raw: Any, limits: LimitsConfig) -> str | None:
    if not isinstance(raw, str):
        return None
    icao = raw.strip().upper()
    if not icao or len(icao) > limits.max_icao_length or not icao.isalnum():
        return None
    return icao


def _validate_selected_frequency(raw: Any) -> SelectedFrequency | None:
    if not isinstance(raw, dict):
        return None

    frequency_type = raw.get("frequencyType")
    frequency = raw.get("frequency")
    name = raw.get("name")
    if not (
        isinstance(frequency_type, str)
        and len(frequency_type) <= MAX_FREQUENCY_FIELD_LENGTH
        and isinstance(frequency, str)
        and len(frequency) <= MAX_FREQUENCY_FIELD_LENGTH
        and isinstance(name, str)
        and len(name) <= MAX_FREQUENCY_NAME_LENGTH
    ):
        logger.debug("Dropping malformed selected frequency")
        return None

    try:
        airport = AirportSide(raw.get("airport"))
        service_type = ServiceType(frequency_type)
    except ValueError:
        logger.debug("Dropping selected frequency with unknown airport or type")
        return None
    if service_type == ServiceType.NONE:
        return None

    return SelectedFrequency(
        airport=airport,
        frequency_type=service_type,
        frequency=frequency,
        name=name,
    )


def _validate_frequency_list(raw: Any) -> list[Frequency]:
    if not isinstance(raw, list):
        return []
    return parse_frequency_entries(
        entry
        for entry in raw
        if isinstance(entry, dict)
        and isinstance(entry.get("frequency"), str)
        and len(entry["frequency"]) <= MAX_FREQUENCY_FIELD_LENGTH
    )

"""ATC services for ATC Virtual.

Flight phase registry, frequency model, phase/frequency validation,
prompt assembly, LLM response parsing and scripted ATIS.
"""

from atcvirtual.services.atc.atc_session import ATCReply, ATCSession
from atcvirtual.services.atc.atis_generator import ATISBroadcast, ATISGenerator, WeatherContextParser
from atcvirtual.services.atc.chat_handler import handle_chat_request
from atcvirtual.services.atc.chat_request import ChatRequest, validate_chat_request
from atcvirtual.services.atc.flight_phase import (
    FlightPhase,
    FlightPhaseInfo,
    all_phases,
    get_phase_info,
    parse_phase,
)
from atcvirtual.services.atc.frequencies import (
    Frequency,
    FrequencyResolver,
    SelectedFrequency,
    ServiceType,
)
from atcvirtual.services.atc.models import (
    AirportSide,
    Channel,
    ChatMessage,
    FlightData,
    FlightMode,
    FlightRules,
    MessageRole,
)
from atcvirtual.services.atc.phase_validator import ValidationResult, validate_communication
from atcvirtual.services.atc.prompt_builder import PromptBuilder, PromptContext
from atcvirtual.services.atc.response_parser import ParsedLLMResponse, parse_llm_response

__all__ = [
    "ATCReply",
    "ATCSession",
    "ATISBroadcast",
    "ATISGenerator",
    "AirportSide",
    "Channel",
    "ChatMessage",
    "ChatRequest",
    "FlightData",
    "FlightMode",
    "FlightPhase",
    "FlightPhaseInfo",
    "FlightRules",
    "Frequency",
    "FrequencyResolver",
    "MessageRole",
    "ParsedLLMResponse",
    "PromptBuilder",
    "PromptContext",
    "SelectedFrequency",
    "ServiceType",
    "ValidationResult",
    "WeatherContextParser",
    "all_phases",
    "get_phase_info",
    "handle_chat_request",
    "parse_llm_response",
    "parse_phase",
    "validate_chat_request",
    "validate_communication",
]

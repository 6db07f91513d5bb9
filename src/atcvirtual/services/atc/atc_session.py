"""Training session: the state around one flight.

ATCSession owns the flight setup, the conversation log, the current
phase, the tuned frequency and the airport frequency lists. Each
transmission is validated against the phase, answered by the ATIS
generator or the LLM, and parsed into ATC and Evaluator voices.

Only one transmission may be pending at a time.

Typical usage:
    session = ATCSession(flight, provider, resolver)
    session.set_phase(FlightPhase.PARKING_HOT)
    session.select_frequency(ServiceType.GND)
    reply = session.send("Solo Guarulhos, PR-ABC, solicito acionamento")
"""

import threading
from dataclasses import dataclass

from atcvirtual.core.config import LimitsConfig
from atcvirtual.core.errors import ConcurrentRequestError, InputValidationError, ProviderError
from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.atis_generator import ATISGenerator
from atcvirtual.services.atc.flight_phase import FlightPhase, all_phases
from atcvirtual.services.atc.frequencies import (
    Frequency,
    FrequencyResolver,
    SelectedFrequency,
    ServiceType,
    select_frequency,
)
from atcvirtual.services.atc.models import (
    AirportSide,
    Channel,
    ChatMessage,
    FlightData,
    FlightMode,
    MessageRole,
)
from atcvirtual.services.atc.phase_validator import ValidationResult, validate_communication
from atcvirtual.services.atc.prompt_builder import PromptBuilder, PromptContext
from atcvirtual.services.atc.response_parser import parse_llm_response
from atcvirtual.services.llm.base import LLMProvider
from atcvirtual.settings.session_settings import DEFAULT_SYSTEM_PROMPT

logger = get_logger(__name__)

RESUME_NOTICE = "Piloto retomou a comunicação após a espera."


@dataclass
class ATCReply:
    """Outcome of one transmission.

    Attributes:
        atc_response: Controller reply, if any.
        evaluator_response: Instructor reply, if any.
        is_waiting: Whether ATC put the pilot in a holding state.
        validation: Phase/frequency check (ATC channel only).
        from_atis: Whether the reply is a scripted ATIS broadcast.
    """

    atc_response: str | None = None
    evaluator_response: str | None = None
    is_waiting: bool = False
    validation: ValidationResult | None = None
    from_atis: bool = False


class ATCSession:
    """State and orchestration for one training flight."""

    def __init__(
        self,
        flight_data: FlightData,
        provider: LLMProvider,
        frequency_resolver: FrequencyResolver | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        weather_context: str = "",
        limits: LimitsConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
        atis_generator: ATISGenerator | None = None,
    ) -> None:
        """Initialize session.

        Args:
            flight_data: Flight setup.
            provider: LLM provider for ATC replies.
            frequency_resolver: Airport frequency lookup.
            system_prompt: Persona prompt.
            weather_context: Flattened weather text.
            limits: Input size limits.
            prompt_builder: Prompt assembler.
            atis_generator: ATIS broadcast generator.
        """
        self.provider = provider
        self.system_prompt = system_prompt
        self.weather_context = weather_context
        self._limits = limits or LimitsConfig()
        self._resolver = frequency_resolver or FrequencyResolver()
        self._builder = prompt_builder or PromptBuilder(self._limits.max_system_prompt_length)
        self._atis = atis_generator or ATISGenerator()
        self._lock = threading.Lock()

        self._flight_data = flight_data
        self._messages: list[ChatMessage] = []
        self._phase = FlightPhase.PARKING_COLD
        self._active_side = AirportSide.DEPARTURE
        self._selected_frequency: SelectedFrequency | None = None
        self._holding = False
        self._departure_frequencies: list[Frequency] = []
        self._arrival_frequencies: list[Frequency] = []
        self._load_frequencies()

    @property
    def flight_data(self) -> FlightData:
        return self._flight_data

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        """Conversation log, oldest first."""
        return tuple(self._messages)

    @property
    def phase(self) -> FlightPhase:
        return self._phase

    @property
    def active_side(self) -> AirportSide:
        return self._active_side

    @property
    def selected_frequency(self) -> SelectedFrequency | None:
        return self._selected_frequency

    @property
    def is_holding(self) -> bool:
        """Whether ATC has told the pilot to wait."""
        return self._holding

    def frequencies_for(self, side: AirportSide) -> list[Frequency]:
        """Get the published frequencies of one end of the route."""
        if side == AirportSide.DEPARTURE:
            return list(self._departure_frequencies)
        return list(self._arrival_frequencies)

    def set_phase(self, phase: FlightPhase) -> None:
        """Move the flight to a phase (the pilot may jump in either direction)."""
        if phase != self._phase:
            logger.info("Flight phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    def next_phase(self) -> FlightPhase:
        """Advance to the following phase; stays on the last one."""
        phases = [info.id for info in all_phases()]
        index = phases.index(self._phase)
        self.set_phase(phases[min(index + 1, len(phases) - 1)])
        return self._phase

    def switch_airport(self, side: AirportSide) -> None:
        """Switch the radio panel to the other airport, clearing the selection."""
        if side == self._active_side:
            return
        self._active_side = side
        self._selected_frequency = None
        logger.debug("Frequency panel switched to %s airport", side.value)

    def select_frequency(self, service_type: ServiceType) -> SelectedFrequency | None:
        """Tune a service at the active airport.

        Args:
            service_type: Service to tune.

        Returns:
            The new selection, or None if the airport lacks that service
            (the previous selection is kept).
        """
        selection = select_frequency(
            self._active_side, service_type, self.frequencies_for(self._active_side)
        )
        if selection is None:
            logger.debug(
                "%s has no %s frequency",
                self._flight_data.icao_for(self._active_side),
                service_type.value,
            )
            return None
        self._selected_frequency = selection
        logger.info("Tuned %s %s (%s)", selection.name, selection.frequency, selection.airport.value)
        return selection

    def clear_frequency(self) -> None:
        """Turn the radio off the current frequency."""
        if self._selected_frequency is not None:
            logger.info("Radio cleared from %s", self._selected_frequency.name)
        self._selected_frequency = None

    def send(self, utterance: str, channel: Channel = Channel.ATC) -> ATCReply:
        """Transmit to ATC or talk to the instructor.

        Args:
            utterance: What the pilot said.
            channel: Who the pilot is addressing.

        Returns:
            ATCReply with the parsed voices and the phase check.

        Raises:
            InputValidationError: If the utterance is empty or too long.
            ConcurrentRequestError: If another transmission is pending.
            ProviderError: If the LLM provider fails.
        """
        text = utterance.strip()
        if not text:
            raise InputValidationError("Mensagem não fornecida", field="message")
        if len(text) > self._limits.max_message_length:
            raise InputValidationError(
                f"Mensagem muito longa (máximo {self._limits.max_message_length} caracteres)",
                field="message",
            )

        if not self._lock.acquire(blocking=False):
            raise ConcurrentRequestError("Aguarde a resposta anterior")
        try:
            return self._send_locked(text, channel)
        finally:
            self._lock.release()

    def resume(self) -> bool:
        """Leave the holding state on the pilot's initiative.

        Returns:
            True if the session was holding.
        """
        if not self._holding:
            return False
        self._holding = False
        self._messages.append(ChatMessage(role=MessageRole.SYSTEM, content=RESUME_NOTICE))
        logger.info("Holding state cleared by pilot")
        return True

    def start_new_flight(self, flight_data: FlightData, weather_context: str = "") -> None:
        """Reset the session for a new flight."""
        with self._lock:
            self._flight_data = flight_data
            self.weather_context = weather_context
            self._messages.clear()
            self._phase = FlightPhase.PARKING_COLD
            self._active_side = AirportSide.DEPARTURE
            self._selected_frequency = None
            self._holding = False
            self._load_frequencies()
        logger.info(
            "New flight %s -> %s (%s)",
            flight_data.departure_icao,
            flight_data.arrival_icao,
            flight_data.flight_type.value,
        )

    def prompt_context(self, channel: Channel = Channel.ATC) -> PromptContext:
        """Build the assembler input from the current state."""
        return PromptContext(
            flight_data=self._flight_data,
            system_prompt=self.system_prompt,
            channel=channel,
            weather_context=self.weather_context,
            phase=self._phase,
            tuned_frequency=self._selected_frequency,
            departure_frequencies=self._departure_frequencies,
            arrival_frequencies=self._arrival_frequencies,
        )

    def _send_locked(self, text: str, channel: Channel) -> ATCReply:
        history = self._messages[-self._limits.max_history_size :]
        self._messages.append(ChatMessage(role=MessageRole.USER, content=text))
        logger.info("Transmission on %s channel: %d chars", channel.value, len(text))

        validation = None
        if channel == Channel.ATC:
            validation = validate_communication(
                self._phase, self._selected_frequency, self._flight_data.flight_type
            )
            if not validation.is_valid:
                logger.info("Phase check failed in %s: %s", self._phase.value, validation.error)

            tuned = self._selected_frequency
            if tuned is not None and tuned.frequency_type == ServiceType.ATIS:
                broadcast = self._atis.render(self._flight_data, self.weather_context, tuned)
                self._messages.append(ChatMessage(role=MessageRole.ATC, content=broadcast))
                return ATCReply(atc_response=broadcast, validation=validation, from_atis=True)

        messages = self._builder.build_messages(self.prompt_context(channel), history, text)
        try:
            completion = self.provider.complete(messages[0]["content"], messages[1:])
        except ProviderError as e:
            self._messages.append(ChatMessage(role=MessageRole.SYSTEM, content=e.user_message))
            raise

        parsed = parse_llm_response(completion, channel)
        reply = ATCReply(validation=validation)

        if parsed.atc_response:
            reply.atc_response = parsed.atc_response
            self._messages.append(ChatMessage(role=MessageRole.ATC, content=parsed.atc_response))

        show_evaluator = (
            channel == Channel.EVALUATOR or self._flight_data.mode == FlightMode.TREINO
        )
        if parsed.evaluator_response and show_evaluator:
            reply.evaluator_response = parsed.evaluator_response
            self._messages.append(
                ChatMessage(role=MessageRole.EVALUATOR, content=parsed.evaluator_response)
            )

        if channel == Channel.ATC:
            reply.is_waiting = parsed.is_waiting
            if parsed.is_waiting:
                self._holding = True
                logger.info("ATC placed the pilot on hold")
        return reply

    def _load_frequencies(self) -> None:
        self._departure_frequencies = self._resolver.get_frequencies(
            self._flight_data.departure_icao
        )
        self._arrival_frequencies = self._resolver.get_frequencies(self._flight_data.arrival_icao)
        if not self._departure_frequencies:
            logger.warning("No frequencies known for %s", self._flight_data.departure_icao)
        if not self._arrival_frequencies:
            logger.warning("No frequencies known for %s", self._flight_data.arrival_icao)

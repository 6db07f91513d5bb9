"""System prompt assembly for the ATC persona.

Builds the briefing sent to the LLM as a sequence of layers in fixed
order: persona, flight context, frequency table, tuned-frequency
cross-check, phase banner, and output-format instruction. Assembly is
deterministic and never talks to the LLM.

Typical usage:
    builder = PromptBuilder()
    context = PromptContext(flight_data=flight, system_prompt=persona, ...)
    messages = builder.build_messages(context, history, "Solo Guarulhos, PR-ABC...")
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.flight_phase import AirportRole, FlightPhase, get_phase_info
from atcvirtual.services.atc.frequencies import (
    ARRIVAL_FREQUENCY_ORDER,
    DEPARTURE_FREQUENCY_ORDER,
    SERVICE_LABELS,
    Frequency,
    SelectedFrequency,
    ServiceType,
)
from atcvirtual.services.atc.models import AirportSide, Channel, ChatMessage, FlightData, FlightMode, MessageRole
from atcvirtual.services.atc.phase_validator import format_services, validate_communication
from atcvirtual.services.atc.response_parser import ATC_MARKER, EVALUATOR_MARKER

logger = get_logger(__name__)

UNAVAILABLE = "INDISPONÍVEL"
WEATHER_UNAVAILABLE = "Não disponível"
DEFAULT_MAX_SYSTEM_PROMPT_LENGTH = 10000

_AIRPORT_REFERENCE = {
    AirportRole.DEPARTURE: "SAÍDA",
    AirportRole.ARRIVAL: "DESTINO",
    AirportRole.ENROUTE: "ROTA",
}

_SECTOR_ARTICLE = {
    ServiceType.GND: "do Solo",
    ServiceType.TWR: "da Torre",
}

_PRIORITY_BANNER = """\
╔══════════════════════════════════════════════════════════════════════════════╗
║ ⚠️  ATENÇÃO CRÍTICA - PRIORIDADE MÁXIMA                                      ║
║                                                                              ║
║ O ESTADO ABAIXO reflete a situação ATUAL do piloto.                          ║
║ Se houver CONFLITO com o histórico de mensagens, o estado abaixo é CORRETO.  ║
║ O histórico pode estar DESATUALIZADO (piloto mudou de fase).                 ║
║                                                                              ║
║ VOCÊ DEVE responder como o setor apropriado para a FASE ATUAL,               ║
║ NÃO para a fase que aparece no histórico de mensagens.                       ║
╚══════════════════════════════════════════════════════════════════════════════╝"""

_FREQUENCY_RULES = """\
⚠️ REGRAS CRÍTICAS DE FREQUÊNCIA:
- NUNCA invente frequências. Use APENAS as listadas acima.
- Se uma frequência está "INDISPONÍVEL", NÃO mande o piloto contatar esse setor.
- Ao transferir o piloto, use a frequência EXATA da lista.
- Se CTR está INDISPONÍVEL, mantenha em APP/Controle ou informe "mantemos em frequência".
- Se DEL/Tráfego não existe, o Solo acumula a função de aprovação do plano de voo.

## TERMINOLOGIA OBRIGATÓRIA (ICAO Brasil)
- DEL = "Tráfego" (Delivery) - aprovação de planos de voo
- GND = "Solo" (Ground) - pushback, acionamento, táxi
- TWR = "Torre" (Tower) - decolagens, pousos, cruzamento de pista
- DEP/APP = "Controle [cidade]" ou "Controle de Saída" (NUNCA use "Decolagem")
- CTR = "Centro" (Center) - gerenciamento em rota
- AFIS = "Rádio" - informações de aeródromo (não controla)"""

_PROGRESSION = """\
PROGRESSÃO ESPERADA:
   - Antes de taxiar: SOLO (Ground)
   - No ponto de espera: TORRE
   - Após decolagem: TORRE → DEP
   - Em rota: CTR
   - Na chegada: APP → TORRE → SOLO"""


@dataclass
class PromptContext:
    """Everything the assembler needs for one request.

    Attributes:
        flight_data: Flight setup.
        system_prompt: Base persona prompt (opaque).
        channel: Who the pilot is addressing.
        weather_context: Flattened weather text; empty when unavailable.
        phase: Current flight phase, if known.
        tuned_frequency: Frequency the pilot has tuned, if any.
        departure_frequencies: Frequencies published at departure.
        arrival_frequencies: Frequencies published at arrival.
    """

    flight_data: FlightData
    system_prompt: str
    channel: Channel = Channel.ATC
    weather_context: str = ""
    phase: FlightPhase | None = None
    tuned_frequency: SelectedFrequency | None = None
    departure_frequencies: list[Frequency] = field(default_factory=list)
    arrival_frequencies: list[Frequency] = field(default_factory=list)


class PromptBuilder:
    """Assemble the system prompt and provider-agnostic message list.

    Examples:
        >>> builder = PromptBuilder(max_system_prompt_length=10000)
        >>> prompt = builder.build(context)
        >>> "FREQUÊNCIAS DISPONÍVEIS" in prompt
        True
    """

    def __init__(self, max_system_prompt_length: int = DEFAULT_MAX_SYSTEM_PROMPT_LENGTH) -> None:
        self._max_system_prompt_length = max_system_prompt_length

    def build(self, context: PromptContext) -> str:
        """Build the full system prompt.

        Args:
            context: Request context.

        Returns:
            Prompt text with every layer in order.
        """
        layers = [
            context.system_prompt[: self._max_system_prompt_length],
            self.flight_context(context),
            self.frequency_table(context),
        ]
        if context.tuned_frequency is not None:
            layers.append(self.tuned_frequency_check(context))
        if context.phase is not None:
            layers.append(self.phase_banner(context))
        layers.append(self.format_instruction(context))

        prompt = "\n\n".join(layer for layer in layers if layer)
        logger.debug("Built system prompt: %d chars", len(prompt))
        return prompt

    def build_messages(
        self,
        context: PromptContext,
        history: Iterable[ChatMessage | dict[str, str]],
        utterance: str,
    ) -> list[dict[str, str]]:
        """Build the message list for a chat completion.

        History entries authored by the pilot keep the "user" role; every
        other voice is replayed as "assistant". Local system notices are
        not replayed.

        Args:
            context: Request context.
            history: Prior messages in order.
            utterance: The pilot's new transmission.

        Returns:
            System message, replayed history, then the utterance.
        """
        messages = [{"role": "system", "content": self.build(context)}]
        for entry in history:
            if isinstance(entry, ChatMessage):
                entry = entry.to_history_entry()
            if entry["role"] == MessageRole.SYSTEM.value:
                continue
            role = "user" if entry["role"] == MessageRole.USER.value else "assistant"
            messages.append({"role": role, "content": entry["content"]})
        messages.append({"role": "user", "content": utterance})
        return messages

    def flight_context(self, context: PromptContext) -> str:
        """Layer 2: aircraft, route, rules, mode and weather."""
        flight = context.flight_data
        weather = context.weather_context.strip() or WEATHER_UNAVAILABLE
        return (
            "## CONTEXTO DO VOO ATUAL\n\n"
            f"**Aeronave:** {flight.aircraft}\n"
            f"**Saída:** {flight.departure_icao}\n"
            f"**Chegada:** {flight.arrival_icao}\n"
            f"**Tipo de Voo:** {flight.flight_type.value}\n"
            f"**Modo:** {flight.mode.value}\n\n"
            f"**Dados Meteorológicos:**\n{weather}"
        )

    def frequency_table(self, context: PromptContext) -> str:
        """Layer 3: published frequencies per airport plus routing rules."""
        flight = context.flight_data
        return (
            "## FREQUÊNCIAS DISPONÍVEIS (DADOS REAIS - USE APENAS ESTAS)\n\n"
            f"**Aeroporto de Saída ({flight.departure_icao}):**\n"
            f"{self._format_frequency_list(context.departure_frequencies, flight.departure_icao, DEPARTURE_FREQUENCY_ORDER)}\n\n"
            f"**Aeroporto de Destino ({flight.arrival_icao}):**\n"
            f"{self._format_frequency_list(context.arrival_frequencies, flight.arrival_icao, ARRIVAL_FREQUENCY_ORDER)}\n\n"
            f"{_FREQUENCY_RULES}"
        )

    def tuned_frequency_check(self, context: PromptContext) -> str:
        """Layer 4: what the pilot has tuned and how to challenge mismatches."""
        tuned = context.tuned_frequency
        if tuned is None:
            return ""

        flight = context.flight_data
        icao = flight.icao_for(tuned.airport)
        place = tuned.station_place or icao
        side = "SAÍDA" if tuned.airport == AirportSide.DEPARTURE else "DESTINO"
        sector = tuned.frequency_type.value
        sector_ref = _SECTOR_ARTICLE.get(tuned.frequency_type, f"de {sector}")

        lines = [
            "**Frequência Sintonizada pelo Piloto:**",
            f"Aeroporto: {icao} ({place}) - {side}",
            f"Setor: {sector} ({tuned.frequency})",
            f"Nome Completo: {tuned.name}",
            "",
            "VALIDAÇÃO CRÍTICA - VOCÊ DEVE VERIFICAR:",
            "",
            f"1. **AEROPORTO CORRETO**: O piloto DEVE chamar o aeroporto onde está sintonizado ({place}/{icao}).",
            f'   - Se ele chamar OUTRO aeroporto, responda: "Estação chamando [aeroporto errado], '
            f'você está na frequência de {place}, verifique sua frequência."',
            "",
            f"2. **SETOR CORRETO**: O piloto DEVE chamar o setor sintonizado ({sector}).",
            f'   - Se ele chamar outro setor, responda: "Estação chamando [setor errado], '
            f'você está na frequência {sector_ref}."',
            "",
            f"3. **DESTINO DECLARADO**: O destino no plano de voo é {flight.arrival_icao}.",
            f'   - Se o piloto mencionar OUTRO destino, você DEVE questionar: "Confirme destino: '
            f'seu plano de voo indica {flight.arrival_icao}."',
            "   - NÃO aceite mudança de destino silenciosamente.",
        ]
        return "\n".join(lines)

    def phase_banner(self, context: PromptContext) -> str:
        """Layer 5: current phase, authoritative over the conversation history."""
        if context.phase is None:
            return ""

        info = get_phase_info(context.phase)
        flight_type = context.flight_data.flight_type
        expected = info.expected_services(flight_type)
        expected_text = "Nenhum" if ServiceType.NONE in expected else format_services(expected)

        lines = [
            _PRIORITY_BANNER,
            "",
            f"📍 **FASE ATUAL DO VOO: {info.label}**",
            f"- Aeroporto de referência: {_AIRPORT_REFERENCE[info.airport]}",
            f"- Serviço esperado ({flight_type.value}): {expected_text}",
            f"- Silêncio obrigatório: {'SIM ⚠️' if info.silence_required else 'Não'}",
        ]
        if info.silence_required and info.silence_message:
            lines.append(f"- ⚠️ {info.silence_message}")
        if info.expected_service_hint:
            lines.append(f"- Dica: {info.expected_service_hint}")
        if info.atc_initiates_contact:
            lines.append("- Nesta fase o ATC inicia o contato.")

        lines += [
            "",
            "**REGRAS DE COMUNICAÇÃO PARA ESTA FASE:**",
            "- "
            + (
                "⚠️ SILÊNCIO OBRIGATÓRIO - mínimo de comunicação"
                if info.silence_required
                else "Comunicação normal permitida"
            ),
            '- Após readback correto: SILÊNCIO (não confirme "correto", "afirmativo")',
            "- QNH: Informar apenas SE ainda não foi dado neste setor",
            "",
            "**VALIDAÇÃO DA TRANSMISSÃO ATUAL:**",
        ]

        result = validate_communication(context.phase, context.tuned_frequency, flight_type)
        if not result.is_valid:
            lines += [
                f"- ⚠️ INCONSISTÊNCIA: {result.error}",
                "- O ATC deve estranhar a comunicação, em personagem.",
                f"- O Avaliador deve corrigir o piloto citando a fase ({info.label}) e o serviço esperado.",
            ]
        elif result.warning:
            lines.append(f"- Observação: {result.warning}")
        else:
            lines.append("- Transmissão consistente com a fase e a frequência sintonizada.")

        lines += ["", _PROGRESSION]
        return "\n".join(lines)

    def format_instruction(self, context: PromptContext) -> str:
        """Layer 6: which voices to produce and the literal markers."""
        header = "## INSTRUÇÃO DE RESPOSTA\n\n"

        if context.channel == Channel.EVALUATOR:
            return header + (
                "O piloto está falando diretamente com você, o Avaliador/Instrutor, "
                "em uma conversa privada.\n"
                "O ATC NÃO está ouvindo esta conversa.\n"
                "Responda como instrutor, dando orientações, explicações e tirando dúvidas.\n"
                "Formate assim:\n"
                f"{EVALUATOR_MARKER} [sua resposta como instrutor]"
            )

        text = "Você está respondendo como ATC. O piloto está falando com você pelo rádio.\n"
        if context.flight_data.mode == FlightMode.TREINO:
            text += (
                "IMPORTANTE: Após sua resposta como ATC, adicione uma avaliação como instrutor.\n"
                "O Avaliador DEVE verificar se a comunicação é apropriada para a FASE DO VOO atual.\n"
                "Formate assim:\n"
                f"{ATC_MARKER} [sua resposta como controlador]\n\n"
                f"{EVALUATOR_MARKER} [sua análise técnica - incluindo verificação de fase do voo]"
            )
        else:
            text += (
                "Responda APENAS como ATC, sem avaliação.\n"
                "Formate assim:\n"
                f"{ATC_MARKER} [sua resposta como controlador]"
            )
        return header + text

    @staticmethod
    def _format_frequency_list(
        frequencies: list[Frequency], icao: str, order: tuple[ServiceType, ...]
    ) -> str:
        if not frequencies:
            return f"  (Nenhuma frequência disponível para {icao})"

        lines = []
        for service_type in order:
            freq = next((f for f in frequencies if f.type == service_type), None)
            value = freq.frequency if freq else UNAVAILABLE
            lines.append(f"  - {SERVICE_LABELS[service_type]}: {value}")
        return "\n".join(lines)

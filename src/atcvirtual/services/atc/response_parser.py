"""Post-processing of LLM completions.

Splits a completion into the ATC voice and the Evaluator voice using the
literal markers requested by the prompt, and classifies whether ATC has
put the pilot in a holding/waiting state.

The holding-state classifier is a best-effort heuristic over prose: a
completion counts as waiting when it matches a waiting-instruction
pattern and no false-positive pattern.
"""

import re
from dataclasses import dataclass
from typing import Any

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.models import Channel

logger = get_logger(__name__)

ATC_MARKER = "📡 ATC:"
EVALUATOR_MARKER = "🧠 Avaliador:"

_ATC_SEGMENT = re.compile(r"📡\s*ATC:\s*(.*?)(?=🧠\s*Avaliador:|$)", re.IGNORECASE | re.DOTALL)
_EVALUATOR_SEGMENT = re.compile(r"🧠\s*Avaliador:\s*(.*)$", re.IGNORECASE | re.DOTALL)
_LEADING_EVALUATOR_MARKER = re.compile(r"^\s*🧠\s*Avaliador:\s*", re.IGNORECASE)

WAITING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # English
        r"hold (position|short)",
        r"hold at",
        r"traffic (on final|on approach|landing)",
        r"stand by",
        r"expect (delay|holding|further)",
        r"behind (the |a )?\w+",
        r"number \d+ (to land|for|in sequence)",
        # Portuguese
        r"mantenha posição",
        r"mantenha curta",
        r"aguarde (na|em|o |a |autorização)",
        r"espere (na|em|o |a )",
        r"pista em uso",
        r"sequência para",
        r"número \d+ para",
        r"após (o |a )?(tráfego|pouso|decolagem|aeronave)",
        r"autorização pendente",
        r"aguardando (slot|autorização|liberação)",
        r"livre para (esperar|manter)",
        r"reporte pronto",
    )
)

FALSE_POSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"tráfego [a-z]{4}",  # Delivery callsign, e.g. "Tráfego Guarulhos"
        r"informo tráfego",  # Traffic advisory, not an instruction
        r"tráfego (visual|à vista)",
        r"bom dia|boa tarde|boa noite",
    )
)


@dataclass
class ParsedLLMResponse:
    """LLM completion split by voice.

    Attributes:
        atc_response: Text spoken by the controller, if any.
        evaluator_response: Text from the instructor, if any.
        is_waiting: Whether ATC told the pilot to wait.
    """

    atc_response: str | None = None
    evaluator_response: str | None = None
    is_waiting: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire form, omitting absent voices."""
        result: dict[str, Any] = {"isWaiting": self.is_waiting}
        if self.atc_response is not None:
            result["atcResponse"] = self.atc_response
        if self.evaluator_response is not None:
            result["evaluatorResponse"] = self.evaluator_response
        return result


def is_waiting_instruction(text: str) -> bool:
    """Classify whether a completion puts the pilot in a holding state.

    Args:
        text: Raw completion text.

    Returns:
        True if a waiting pattern matches and no false-positive pattern does.
    """
    matches_waiting = any(p.search(text) for p in WAITING_PATTERNS)
    if not matches_waiting:
        return False
    return not any(p.search(text) for p in FALSE_POSITIVE_PATTERNS)


def parse_llm_response(text: str, channel: Channel) -> ParsedLLMResponse:
    """Split a completion into ATC and Evaluator replies.

    Args:
        text: Raw completion text.
        channel: Channel the pilot was addressing.

    Returns:
        ParsedLLMResponse. Never raises; unparseable input degrades to the
        whole text as the ATC reply.
    """
    text = text or ""

    try:
        result = ParsedLLMResponse(is_waiting=is_waiting_instruction(text))

        if channel == Channel.EVALUATOR:
            result.evaluator_response = _LEADING_EVALUATOR_MARKER.sub("", text, count=1).strip()
            return result

        atc_match = _ATC_SEGMENT.search(text)
        evaluator_match = _EVALUATOR_SEGMENT.search(text)

        if atc_match:
            result.atc_response = atc_match.group(1).strip()
        elif evaluator_match:
            # Text before the evaluator marker is the controller speaking unlabelled
            preamble = text[: evaluator_match.start()].strip()
            if preamble:
                result.atc_response = preamble
        else:
            result.atc_response = text.strip()

        if evaluator_match:
            result.evaluator_response = evaluator_match.group(1).strip()

        return result
    except Exception as e:  # noqa: BLE001
        logger.warning("Failed to parse LLM response, using raw text: %s", e)
        return ParsedLLMResponse(atc_response=text.strip(), is_waiting=False)

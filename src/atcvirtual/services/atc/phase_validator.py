"""Phase/frequency consistency check for a single transmission.

Pure function of (phase, tuned frequency, flight rules); it knows nothing
about conversation history. Rules are applied in priority order and the
first match wins:

1. Silence required -> invalid with the phase's silence message.
2. Communication not allowed -> invalid with a generic message.
3. No frequency tuned -> valid, with a warning naming the expected
   services unless staying off frequency is acceptable.
4. Tuned service not among the expected ones -> invalid, naming every
   acceptable alternative.
"""

from dataclasses import dataclass

from atcvirtual.services.atc.flight_phase import FlightPhase, get_phase_info
from atcvirtual.services.atc.frequencies import SelectedFrequency, ServiceType
from atcvirtual.services.atc.models import FlightRules

NO_COMMUNICATION_ERROR = "Nenhuma comunicação esperada nesta fase do voo."


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a phase/frequency check.

    Attributes:
        is_valid: Whether the transmission is procedurally legal.
        error: Diagnosis when invalid.
        warning: Non-fatal remark when valid.
    """

    is_valid: bool
    error: str | None = None
    warning: str | None = None


def format_services(services: tuple[ServiceType, ...]) -> str:
    """Join service types for a message ("TWR ou APP")."""
    return " ou ".join(s.value for s in services if s != ServiceType.NONE)


def validate_communication(
    phase: FlightPhase,
    tuned_frequency: SelectedFrequency | None,
    flight_type: FlightRules,
) -> ValidationResult:
    """Decide whether a transmission is consistent with the flight phase.

    Args:
        phase: Current flight phase.
        tuned_frequency: Frequency the pilot has tuned, or None.
        flight_type: VFR or IFR.

    Returns:
        ValidationResult with a human-readable diagnosis.
    """
    info = get_phase_info(phase)

    if info.silence_required:
        return ValidationResult(
            is_valid=False,
            error=info.silence_message or f"Nesta fase ({info.label}) o silêncio é obrigatório.",
        )

    if not info.communication_allowed:
        return ValidationResult(is_valid=False, error=NO_COMMUNICATION_ERROR)

    expected = info.expected_services(flight_type)
    accepts_none = ServiceType.NONE in expected

    if tuned_frequency is None:
        if accepts_none:
            return ValidationResult(is_valid=True)
        return ValidationResult(
            is_valid=True,
            warning=(
                f"Nenhuma frequência selecionada. Na fase {info.label} o serviço "
                f"esperado é {format_services(expected)}."
            ),
        )

    if tuned_frequency.frequency_type not in expected and not accepts_none:
        return ValidationResult(
            is_valid=False,
            error=(
                f"Frequência incorreta: sintonizado em {tuned_frequency.frequency_type.value}, "
                f"mas na fase {info.label} o serviço esperado é {format_services(expected)}."
            ),
        )

    return ValidationResult(is_valid=True)

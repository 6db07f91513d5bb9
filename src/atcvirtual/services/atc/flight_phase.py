"""Flight phase registry for ATC context awareness.

Static ordered catalog of the 17 flight phases with their communication
rules: which ATC services the pilot should be talking to (per flight
rules), whether transmitting is allowed at all, and whether the phase
demands radio silence.

Typical usage:
    from atcvirtual.services.atc.flight_phase import FlightPhase, get_phase_info

    info = get_phase_info(FlightPhase.TAXI_OUT)
    info.expected_services(FlightRules.IFR)  # (ServiceType.GND,)
"""

from dataclasses import dataclass
from enum import Enum

from atcvirtual.core.errors import InputValidationError
from atcvirtual.services.atc.frequencies import ServiceType
from atcvirtual.services.atc.models import FlightRules


class FlightPhase(Enum):
    """Flight phases in flight order. Values are the wire identifiers."""

    # Departure airport
    PARKING_COLD = "PARKING_COLD"  # Engine off at the stand
    PARKING_HOT = "PARKING_HOT"  # Engine running at the stand
    TAXI_OUT = "TAXI_OUT"
    HOLDING_POINT = "HOLDING_POINT"
    LINED_UP = "LINED_UP"
    TAKEOFF_ROLL = "TAKEOFF_ROLL"
    INITIAL_CLIMB = "INITIAL_CLIMB"

    # Enroute
    LEAVING_TMA = "LEAVING_TMA"
    CRUISE = "CRUISE"
    DESCENT = "DESCENT"

    # Arrival airport
    ENTERING_TMA = "ENTERING_TMA"
    APPROACH = "APPROACH"
    FINAL = "FINAL"
    LANDING = "LANDING"  # Flare and touchdown
    ROLLOUT = "ROLLOUT"
    TAXI_IN = "TAXI_IN"
    PARKING_ARRIVED = "PARKING_ARRIVED"


class AirportRole(Enum):
    """Airport a phase refers to."""

    DEPARTURE = "departure"
    ARRIVAL = "arrival"
    ENROUTE = "enroute"


@dataclass(frozen=True)
class FlightPhaseInfo:
    """Static communication rules for one flight phase.

    Attributes:
        id: Phase identifier.
        label: Display label.
        short_label: Compact label for the timeline.
        icon: Display icon.
        position: Timeline placement 0-100 (UI only, not used by rules).
        expected_service: Acceptable services per flight rules.
        communication_allowed: Whether the pilot may transmit in this phase.
        silence_required: Whether the phase forbids any transmission.
        airport: Airport the phase refers to.
        atc_initiates_contact: Whether ATC speaks first in this phase.
        silence_message: Reason shown when silence is required.
        expected_service_hint: Short procedural hint.
    """

    id: FlightPhase
    label: str
    short_label: str
    icon: str
    position: int
    expected_service: dict[FlightRules, tuple[ServiceType, ...]]
    communication_allowed: bool
    silence_required: bool
    airport: AirportRole
    atc_initiates_contact: bool = False
    silence_message: str | None = None
    expected_service_hint: str | None = None

    def expected_services(self, flight_type: FlightRules) -> tuple[ServiceType, ...]:
        """Get the acceptable services for the given flight rules."""
        return self.expected_service[flight_type]

    def expects_no_service(self, flight_type: FlightRules) -> bool:
        """Check if staying off frequency is acceptable in this phase."""
        return ServiceType.NONE in self.expected_service[flight_type]


_NONE = (ServiceType.NONE,)


def _same(*services: ServiceType) -> dict[FlightRules, tuple[ServiceType, ...]]:
    return {FlightRules.VFR: services, FlightRules.IFR: services}


_PHASE_TABLE: tuple[FlightPhaseInfo, ...] = (
    FlightPhaseInfo(
        id=FlightPhase.PARKING_COLD,
        label="Pátio - Motor Desligado",
        short_label="Pátio (frio)",
        icon="🅿️",
        position=0,
        expected_service=_same(*_NONE),
        communication_allowed=False,
        silence_required=True,
        airport=AirportRole.DEPARTURE,
        silence_message="Motor desligado. Nenhuma comunicação deve ser iniciada.",
    ),
    FlightPhaseInfo(
        id=FlightPhase.PARKING_HOT,
        label="Pátio - Motor Ligado",
        short_label="Pátio (quente)",
        icon="🔥",
        position=6,
        expected_service={
            FlightRules.VFR: (ServiceType.ATIS, ServiceType.GND),
            FlightRules.IFR: (ServiceType.ATIS, ServiceType.CLR, ServiceType.GND),
        },
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.DEPARTURE,
        expected_service_hint="VFR: ATIS → SOLO | IFR: ATIS → CLR → SOLO",
    ),
    FlightPhaseInfo(
        id=FlightPhase.TAXI_OUT,
        label="Táxi para Pista",
        short_label="Táxi",
        icon="🚕",
        position=12,
        expected_service=_same(ServiceType.GND),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.DEPARTURE,
        expected_service_hint="Em comunicação com SOLO (Ground)",
    ),
    FlightPhaseInfo(
        id=FlightPhase.HOLDING_POINT,
        label="Ponto de Espera",
        short_label="Ponto de espera",
        icon="⏸️",
        position=18,
        expected_service=_same(ServiceType.TWR),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.DEPARTURE,
        expected_service_hint="Contatar TORRE para autorização",
    ),
    FlightPhaseInfo(
        id=FlightPhase.LINED_UP,
        label="Alinhado na Pista",
        short_label="Alinhado",
        icon="🛫",
        position=24,
        expected_service=_same(ServiceType.TWR),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.DEPARTURE,
    ),
    FlightPhaseInfo(
        id=FlightPhase.TAKEOFF_ROLL,
        label="Corrida de Decolagem",
        short_label="Decolagem",
        icon="💨",
        position=30,
        expected_service=_same(*_NONE),
        communication_allowed=False,
        silence_required=True,
        airport=AirportRole.DEPARTURE,
        silence_message="Corrida de decolagem. Silêncio absoluto.",
    ),
    FlightPhaseInfo(
        id=FlightPhase.INITIAL_CLIMB,
        label="Subida Inicial",
        short_label="Subida",
        icon="↗️",
        position=36,
        expected_service=_same(ServiceType.TWR, ServiceType.DEP),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.DEPARTURE,
        atc_initiates_contact=True,
    ),
    FlightPhaseInfo(
        id=FlightPhase.LEAVING_TMA,
        label="Saindo da TMA",
        short_label="Saindo TMA",
        icon="📤",
        position=43,
        expected_service=_same(ServiceType.DEP, ServiceType.CTR),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ENROUTE,
    ),
    FlightPhaseInfo(
        id=FlightPhase.CRUISE,
        label="Cruzeiro",
        short_label="Cruzeiro",
        icon="✈️",
        position=50,
        expected_service={
            FlightRules.VFR: (ServiceType.CTR, ServiceType.NONE),
            FlightRules.IFR: (ServiceType.CTR,),
        },
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ENROUTE,
    ),
    FlightPhaseInfo(
        id=FlightPhase.DESCENT,
        label="Descida",
        short_label="Descida",
        icon="↘️",
        position=57,
        expected_service=_same(ServiceType.CTR, ServiceType.APP),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ENROUTE,
    ),
    FlightPhaseInfo(
        id=FlightPhase.ENTERING_TMA,
        label="Entrando na TMA",
        short_label="Entrando TMA",
        icon="📥",
        position=64,
        expected_service=_same(ServiceType.APP),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ARRIVAL,
    ),
    FlightPhaseInfo(
        id=FlightPhase.APPROACH,
        label="Aproximação",
        short_label="Aproximação",
        icon="🎯",
        position=70,
        expected_service=_same(ServiceType.APP),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ARRIVAL,
    ),
    FlightPhaseInfo(
        id=FlightPhase.FINAL,
        label="Final",
        short_label="Final",
        icon="🛬",
        position=76,
        expected_service=_same(ServiceType.TWR),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ARRIVAL,
    ),
    FlightPhaseInfo(
        id=FlightPhase.LANDING,
        label="Pouso / Flare",
        short_label="Pouso",
        icon="🛞",
        position=82,
        expected_service=_same(*_NONE),
        communication_allowed=False,
        silence_required=True,
        airport=AirportRole.ARRIVAL,
        silence_message="Pouso em andamento. Silêncio.",
    ),
    FlightPhaseInfo(
        id=FlightPhase.ROLLOUT,
        label="Rollout",
        short_label="Rollout",
        icon="🧯",
        position=88,
        expected_service=_same(*_NONE),
        communication_allowed=False,
        silence_required=True,
        airport=AirportRole.ARRIVAL,
        atc_initiates_contact=True,
        silence_message="Rollout. Aguardar instruções da TORRE.",
    ),
    FlightPhaseInfo(
        id=FlightPhase.TAXI_IN,
        label="Táxi para Pátio",
        short_label="Táxi",
        icon="🚕",
        position=94,
        expected_service=_same(ServiceType.GND),
        communication_allowed=True,
        silence_required=False,
        airport=AirportRole.ARRIVAL,
    ),
    FlightPhaseInfo(
        id=FlightPhase.PARKING_ARRIVED,
        label="Pátio - Estacionado",
        short_label="Estacionado",
        icon="🏁",
        position=100,
        expected_service=_same(*_NONE),
        communication_allowed=False,
        silence_required=False,
        airport=AirportRole.ARRIVAL,
        expected_service_hint="Fim das comunicações",
    ),
)

_PHASES_BY_ID: dict[FlightPhase, FlightPhaseInfo] = {info.id: info for info in _PHASE_TABLE}


def _check_table() -> None:
    if [info.id for info in _PHASE_TABLE] != list(FlightPhase):
        raise RuntimeError("Phase table must list every FlightPhase in flight order")
    for info in _PHASE_TABLE:
        if info.silence_required and (
            info.communication_allowed
            or any(services != _NONE for services in info.expected_service.values())
        ):
            raise RuntimeError(f"Silent phase {info.id.value} must forbid communication")


_check_table()


def get_phase_info(phase: FlightPhase) -> FlightPhaseInfo:
    """Get the static rules for a phase.

    Args:
        phase: Flight phase.

    Returns:
        Phase info (total over the enum).
    """
    return _PHASES_BY_ID[phase]


def all_phases() -> tuple[FlightPhaseInfo, ...]:
    """Get every phase in flight order."""
    return _PHASE_TABLE


def parse_phase(value: str) -> FlightPhase:
    """Parse a wire phase identifier.

    Args:
        value: Identifier such as "TAXI_OUT".

    Returns:
        Matching flight phase.

    Raises:
        InputValidationError: If the identifier is unknown.
    """
    try:
        return FlightPhase(value)
    except ValueError:
        raise InputValidationError("Fase do voo inválida", field="currentPhase") from None


def find_closest_phase(position: float) -> FlightPhase:
    """Find the phase whose timeline position is closest to a point.

    Args:
        position: Timeline position, clamped to 0-100.

    Returns:
        Closest phase; ties go to the earlier phase.
    """
    position = max(0.0, min(100.0, position))
    closest = min(_PHASE_TABLE, key=lambda info: abs(info.position - position))
    return closest.id

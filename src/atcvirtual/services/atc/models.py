"""Session data models: flight setup and the chat log."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class FlightRules(Enum):
    """Flight rules declared at setup."""

    VFR = "VFR"
    IFR = "IFR"


class FlightMode(Enum):
    """Session mode.

    TREINO adds an instructor evaluation after every ATC reply; REAL
    answers as ATC only.
    """

    TREINO = "TREINO"
    REAL = "REAL"


class AirportSide(Enum):
    """Which airport of the route a frequency belongs to."""

    DEPARTURE = "departure"
    ARRIVAL = "arrival"


class MessageRole(Enum):
    """Author of a chat message."""

    USER = "user"
    ATC = "atc"
    EVALUATOR = "evaluator"
    SYSTEM = "system"


class Channel(Enum):
    """Who the pilot is addressing."""

    ATC = "atc"
    EVALUATOR = "evaluator"


@dataclass(frozen=True)
class FlightData:
    """Flight setup, immutable for the session.

    Attributes:
        aircraft: Aircraft model or callsign as typed by the pilot.
        departure_icao: Departure airport ICAO code.
        arrival_icao: Arrival airport ICAO code.
        flight_type: VFR or IFR.
        mode: TREINO or REAL.
    """

    aircraft: str
    departure_icao: str
    arrival_icao: str
    flight_type: FlightRules = FlightRules.VFR
    mode: FlightMode = FlightMode.TREINO

    def icao_for(self, side: AirportSide) -> str:
        """Get the ICAO code for one end of the route."""
        return self.departure_icao if side == AirportSide.DEPARTURE else self.arrival_icao


@dataclass
class ChatMessage:
    """One entry of the conversation log.

    Attributes:
        role: Message author.
        content: Message text.
        id: Unique message id.
        timestamp: Creation time (UTC).
    """

    role: MessageRole
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_history_entry(self) -> dict[str, str]:
        """Convert to the role/content form replayed to the LLM."""
        return {"role": self.role.value, "content": self.content}

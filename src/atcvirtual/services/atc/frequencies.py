"""Radio service types and airport frequency lookup.

Resolves frequencies for an airport from two sources:
1. Live station data (weather/station API), when a source is provided
2. Static per-ICAO table shipped in config/airport_frequencies.yaml

Typical usage:
    from atcvirtual.services.atc.frequencies import FrequencyResolver, ServiceType, select_frequency

    resolver = FrequencyResolver()
    tower = select_frequency(AirportSide.DEPARTURE, ServiceType.TWR, resolver.get_frequencies("SBGR"))
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from atcvirtual.core.logging_system import get_logger
from atcvirtual.core.resource_path import get_config_path
from atcvirtual.services.atc.models import AirportSide

logger = get_logger(__name__)


class ServiceType(Enum):
    """ATC functional position (not a literal radio channel)."""

    ATIS = "ATIS"
    CLR = "CLR"  # Clearance delivery ("Tráfego")
    GND = "GND"  # Ground ("Solo")
    TWR = "TWR"  # Tower ("Torre")
    DEP = "DEP"  # Departure control
    APP = "APP"  # Approach control
    CTR = "CTR"  # Area control center ("Centro")
    NONE = "NONE"  # Sentinel: no service expected


# Canonical service order per leg, used by the frequency table in the prompt
DEPARTURE_FREQUENCY_ORDER: tuple[ServiceType, ...] = (
    ServiceType.ATIS,
    ServiceType.CLR,
    ServiceType.GND,
    ServiceType.TWR,
    ServiceType.DEP,
    ServiceType.APP,
    ServiceType.CTR,
)
ARRIVAL_FREQUENCY_ORDER: tuple[ServiceType, ...] = (
    ServiceType.CTR,
    ServiceType.APP,
    ServiceType.TWR,
    ServiceType.GND,
)

SERVICE_LABELS: dict[ServiceType, str] = {
    ServiceType.ATIS: "ATIS",
    ServiceType.CLR: "CLR (Tráfego/Delivery)",
    ServiceType.GND: "GND (Solo)",
    ServiceType.TWR: "TWR (Torre)",
    ServiceType.DEP: "DEP (Controle de Saída)",
    ServiceType.APP: "APP (Controle/Aproximação)",
    ServiceType.CTR: "CTR (Centro)",
    ServiceType.NONE: "Nenhum",
}

# Keyword -> type, checked in order (ATIS before the others, DEP after APP)
_TYPE_KEYWORDS: list[tuple[ServiceType, tuple[str, ...]]] = [
    (ServiceType.ATIS, ("ATIS",)),
    (ServiceType.CLR, ("CLR", "CLEARANCE", "DEL", "TRÁFEGO", "TRAFEGO")),
    (ServiceType.GND, ("GND", "GROUND", "SOLO")),
    (ServiceType.TWR, ("TWR", "TOWER", "TORRE")),
    (ServiceType.APP, ("APP", "APPROACH", "APROX")),
    (ServiceType.DEP, ("DEP", "DEPARTURE")),
    (ServiceType.CTR, ("CTR", "CENTER", "CENTRE", "CENTRO", "CONTROLE")),
]


@dataclass(frozen=True)
class Frequency:
    """A frequency published for an airport.

    Attributes:
        type: Service type.
        frequency: Frequency in MHz as text (e.g., "121.650").
        name: Station name (e.g., "Solo Guarulhos").
    """

    type: ServiceType
    frequency: str
    name: str = ""


@dataclass(frozen=True)
class SelectedFrequency:
    """What the pilot currently has tuned.

    Attributes:
        airport: Departure or arrival airport.
        frequency_type: Service type of the tuned station.
        frequency: Frequency in MHz as text.
        name: Station name.
    """

    airport: AirportSide
    frequency_type: ServiceType
    frequency: str
    name: str

    @property
    def station_place(self) -> str:
        """Station name without the service word ("Solo Guarulhos" -> "Guarulhos")."""
        words = self.name.split()
        if words and map_frequency_type(words[0]) is not None:
            words = words[1:]
        return " ".join(words).strip()


def map_frequency_type(raw: str) -> ServiceType | None:
    """Map a provider or table label to a service type.

    Args:
        raw: Label such as "GND", "Ground", "Torre Guarulhos".

    Returns:
        Matching service type, or None if unrecognised.
    """
    upper = raw.upper()
    for service_type, keywords in _TYPE_KEYWORDS:
        if any(keyword in upper for keyword in keywords):
            return service_type
    return None


def select_frequency(
    side: AirportSide, service_type: ServiceType, frequencies: Iterable[Frequency]
) -> SelectedFrequency | None:
    """Tune the first published frequency of a service type.

    Args:
        side: Airport the frequency belongs to.
        service_type: Service to tune.
        frequencies: Frequencies published for that airport.

    Returns:
        SelectedFrequency, or None if the airport lacks that service.
    """
    for freq in frequencies:
        if freq.type == service_type:
            return SelectedFrequency(
                airport=side,
                frequency_type=service_type,
                frequency=freq.frequency,
                name=freq.name or service_type.value,
            )
    return None


def parse_frequency_entries(entries: Iterable[Any]) -> list[Frequency]:
    """Convert raw mappings ({type, frequency, name}) to Frequency objects.

    Malformed entries and unknown types are skipped.
    """
    result: list[Frequency] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        raw_type = entry.get("type")
        raw_freq = entry.get("frequency")
        if not isinstance(raw_type, str) or raw_freq is None:
            continue
        service_type = map_frequency_type(raw_type)
        if service_type is None:
            logger.debug("Skipping frequency with unknown type: %s", raw_type)
            continue
        name = entry.get("name")
        result.append(
            Frequency(
                type=service_type,
                frequency=str(raw_freq),
                name=name if isinstance(name, str) else raw_type,
            )
        )
    return result


# Live source: icao -> list of raw frequency mappings, or None
StationSource = Callable[[str], list[dict[str, Any]] | None]


class FrequencyResolver:
    """Resolve airport frequencies from a live source with static fallback.

    Examples:
        >>> resolver = FrequencyResolver()
        >>> [f.type.value for f in resolver.get_frequencies("SBCP")]
        ['TWR']
    """

    def __init__(
        self,
        station_source: StationSource | None = None,
        table_path: Path | str | None = None,
    ) -> None:
        """Initialize frequency resolver.

        Args:
            station_source: Optional live lookup returning raw frequency
                mappings for an ICAO code.
            table_path: Static table file. Defaults to the packaged
                config/airport_frequencies.yaml.
        """
        self._station_source = station_source
        self._table_path = Path(table_path) if table_path else get_config_path(
            "airport_frequencies.yaml"
        )
        self._table: dict[str, list[Frequency]] | None = None
        self._cache: dict[str, list[Frequency]] = {}

    def get_frequencies(self, icao: str) -> list[Frequency]:
        """Get all frequencies for an airport.

        Args:
            icao: Airport ICAO code.

        Returns:
            Frequencies in source order; empty when no source knows the airport.
        """
        icao = icao.upper()
        if icao in self._cache:
            return self._cache[icao]

        freqs: list[Frequency] = []
        if self._station_source is not None:
            try:
                raw = self._station_source(icao)
            except Exception as e:
                logger.warning("Live frequency lookup failed for %s: %s", icao, e)
                raw = None
            if raw:
                freqs = parse_frequency_entries(raw)

        if not freqs:
            freqs = list(self._load_table().get(icao, []))
            if freqs:
                logger.debug("Using static frequency table for %s", icao)

        self._cache[icao] = freqs
        return freqs

    def _load_table(self) -> dict[str, list[Frequency]]:
        if self._table is not None:
            return self._table

        self._table = {}
        try:
            with open(self._table_path, encoding="utf-8") as f:
                data: dict[str, Any] = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load frequency table %s: %s", self._table_path, e)
            return self._table

        for icao, entries in data.items():
            if isinstance(entries, list):
                self._table[str(icao).upper()] = parse_frequency_entries(entries)
        logger.info("Loaded static frequencies for %d airports", len(self._table))
        return self._table

"""Deterministic ATIS generator.

When the pilot tunes an ATIS frequency the LLM is bypassed and a scripted
broadcast is rendered from the flattened weather context. Each weather
field is extracted independently and tagged as parsed or defaulted, so a
broadcast is always complete: missing temperature, dewpoint or QNH fall
back to the standard atmosphere (15 °C / 10 °C / 1013 hPa).

Broadcast order (ICAO): identification and time, wind, visibility,
phenomena and clouds (or CAVOK), temperature/dewpoint, QNH, runway in
use, closing instruction.
"""

import random
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Generic, TypeVar

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.atc.frequencies import SelectedFrequency
from atcvirtual.services.atc.models import FlightData

logger = get_logger(__name__)

T = TypeVar("T")

# NATO phonetic alphabet as broadcast in Brazil
INFORMATION_LETTERS = [
    "ALFA",
    "BRAVO",
    "CHARLIE",
    "DELTA",
    "ECHO",
    "FOXTROT",
    "GOLF",
    "HOTEL",
    "INDIA",
    "JULIET",
    "KILO",
    "LIMA",
    "MIKE",
    "NOVEMBER",
    "OSCAR",
    "PAPA",
    "QUEBEC",
    "ROMEO",
    "SIERRA",
    "TANGO",
    "UNIFORM",
    "VICTOR",
    "WHISKEY",
    "XRAY",
    "YANKEE",
    "ZULU",
]

# Standard atmosphere defaults
ISA_TEMPERATURE = 15
ISA_DEWPOINT = 10
ISA_QNH_HPA = 1013

# 10 km or more
UNLIMITED_VISIBILITY_M = 9999

HPA_PER_INHG = 33.8639
METERS_PER_STATUTE_MILE = 1609

# OVC > BKN > SCT > FEW
CLOUD_PRIORITY = {"OVC": 4, "BKN": 3, "SCT": 2, "FEW": 1}
MAX_CLOUD_LAYERS = 3


class FieldSource(Enum):
    """Where a weather field value came from."""

    PARSED = "parsed"
    DEFAULTED = "defaulted"


@dataclass(frozen=True)
class ParsedField(Generic[T]):
    """A weather value tagged with its confidence."""

    value: T
    source: FieldSource

    @property
    def is_parsed(self) -> bool:
        return self.source == FieldSource.PARSED


@dataclass(frozen=True)
class WindInfo:
    """Surface wind. Direction is None when calm or variable."""

    direction: int | None
    speed: int
    gust: int | None = None

    @property
    def is_calm(self) -> bool:
        return self.direction is None and self.speed == 0


@dataclass(frozen=True)
class CloudLayer:
    """Cloud layer with ICAO cover code and base in feet."""

    cover: str
    altitude: int

    @property
    def is_significant(self) -> bool:
        """BKN and OVC layers form a ceiling."""
        return self.cover in ("BKN", "OVC")


@dataclass(frozen=True)
class Phenomenon:
    """Significant weather with optional intensity ("fraca"/"forte")."""

    kind: str
    intensity: str | None = None

    def describe(self) -> str:
        return f"{self.kind} {self.intensity}" if self.intensity else self.kind


@dataclass
class WeatherReport:
    """Weather fields extracted from a context string."""

    wind: ParsedField[WindInfo]
    visibility_m: ParsedField[int]
    phenomena: list[Phenomenon]
    clouds: list[CloudLayer]
    clear_sky_reported: bool
    temperature: ParsedField[int]
    dewpoint: ParsedField[int]
    qnh_hpa: ParsedField[int]

    @property
    def has_phenomena(self) -> bool:
        return bool(self.phenomena)

    @property
    def has_significant_clouds(self) -> bool:
        return any(layer.is_significant for layer in self.clouds)

    @property
    def is_clear_sky(self) -> bool:
        """No weather, no cloud, and either reported clear or unlimited visibility."""
        return (
            not self.has_phenomena
            and not self.clouds
            and (self.clear_sky_reported or self.visibility_m.value >= UNLIMITED_VISIBILITY_M)
        )

    @property
    def is_cavok(self) -> bool:
        return (
            self.visibility_m.value >= UNLIMITED_VISIBILITY_M
            and not self.has_phenomena
            and not self.has_significant_clouds
            and self.is_clear_sky
        )


# (kind, heavy, light, any): Portuguese/English words and METAR codes
_PHENOMENA_RULES: list[tuple[str, re.Pattern[str] | None, re.Pattern[str] | None, re.Pattern[str]]] = [
    (
        "chuva",
        re.compile(r"chuva\s*forte|heavy\s*rain|\+(?:TS|SH)?RA\b", re.IGNORECASE),
        re.compile(r"chuva\s*fraca|light\s*rain|(?<![\w+])-(?:TS|SH)?RA\b", re.IGNORECASE),
        re.compile(r"chuva|\brain\b|\b(?:TS|SH)?RA\b", re.IGNORECASE),
    ),
    (
        "nevoeiro",
        None,
        None,
        re.compile(r"nevoeiro|\bfog\b|\bFG\b", re.IGNORECASE),
    ),
    (
        "trovoada",
        re.compile(r"trovoada\s*forte|\+TS", re.IGNORECASE),
        re.compile(r"trovoada\s*fraca|(?<![\w+])-TS", re.IGNORECASE),
        re.compile(r"trovoada|thunder|\bTS", re.IGNORECASE),
    ),
    (
        "granizo",
        None,
        None,
        re.compile(r"granizo|\bhail\b|\bGR\b", re.IGNORECASE),
    ),
]
# Mist only when there is no fog
_MIST = re.compile(r"névoa|\bmist\b|\bBR\b", re.IGNORECASE)


class WeatherContextParser:
    """Tolerant extractor of ATIS fields from a flattened weather context.

    Accepts raw METAR groups ("27015G25KT 9999 -RA BKN015 18/16 Q1012")
    and decoded text ("Vento: 270° 15 kt", "Visibilidade: 5 km",
    "Temperatura: 18", "QNH: 1012"). Every extractor can be called on its
    own and returns a ParsedField.
    """

    WIND_DECODED = re.compile(
        r"Vento:\s*(\d+)\s*[°º]?\s*(?:graus?)?\s*[,/]?\s*(\d+)\s*(?:nós|kt)", re.IGNORECASE
    )
    WIND_CALM_DECODED = re.compile(r"Vento:\s*(calmo|calm|vrb)", re.IGNORECASE)
    WIND_METAR = re.compile(r"\b(\d{3}|VRB)(\d{2,3})(?:G(\d{2,3}))?KT\b")

    VISIBILITY_DECODED = re.compile(
        r"Visibilidade:\s*(\d+)\s*(metros?|m|km|quilômetros?)\b", re.IGNORECASE
    )
    # Bare four-digit group, not a decoded "Label: 1234" value
    VISIBILITY_METAR = re.compile(r"(?<!\S)(?<!:\s)(\d{4})(?!\S)")
    VISIBILITY_SM = re.compile(r"(?<!\S)(\d+)(?:/(\d+))?SM\b")
    CAVOK = re.compile(r"\bCAVOK\b", re.IGNORECASE)

    CLOUDS_METAR = re.compile(r"\b(FEW|SCT|BKN|OVC)(\d{3})\b", re.IGNORECASE)
    CLOUDS_DECODED = re.compile(
        r"(poucas|dispersas|quebrad\w*|encoberto|FEW|SCT|BKN|OVC)\s*(?:a\s*)?(\d{3,5})\s*(?:pés|ft|feet)?",
        re.IGNORECASE,
    )
    CLEAR_SKY = re.compile(r"céu\s*claro|\bclear\b|\bCLR\b|\bSKC\b|\bNSC\b|\bCAVOK\b", re.IGNORECASE)

    TEMPERATURE_METAR = re.compile(r"(?<!\S)(M?\d{2})/(M?\d{2})(?!\S)")
    TEMPERATURE_DECODED = re.compile(r"Temperatura:\s*(-?\d+)", re.IGNORECASE)
    DEWPOINT_DECODED = re.compile(r"(?:Ponto de orvalho|Dewpoint):\s*(-?\d+)", re.IGNORECASE)

    QNH_METAR = re.compile(r"\bQ(\d{4})\b")
    QNH_DECODED = re.compile(r"(?:QNH|Altímetro):\s*(\d{4})\b", re.IGNORECASE)
    ALTIMETER_INHG_METAR = re.compile(r"\bA(\d{4})\b")
    ALTIMETER_INHG_DECODED = re.compile(
        r"(?:QNH|Altímetro|Altimeter):\s*(\d{2}\.\d{2})\b", re.IGNORECASE
    )

    def parse(self, text: str) -> WeatherReport:
        """Extract every ATIS field from a weather context.

        Args:
            text: Flattened weather context (may be empty or garbled).

        Returns:
            WeatherReport with defaults for unparseable fields.
        """
        text = text or ""
        temperature, dewpoint = self.parse_temperature(text)
        return WeatherReport(
            wind=self.parse_wind(text),
            visibility_m=self.parse_visibility(text),
            phenomena=self.parse_phenomena(text),
            clouds=self.parse_clouds(text),
            clear_sky_reported=bool(self.CLEAR_SKY.search(text)),
            temperature=temperature,
            dewpoint=dewpoint,
            qnh_hpa=self.parse_qnh(text),
        )

    def parse_wind(self, text: str) -> ParsedField[WindInfo]:
        """Extract surface wind; defaults to calm."""
        match = self.WIND_DECODED.search(text)
        if match:
            return ParsedField(
                WindInfo(direction=int(match.group(1)), speed=int(match.group(2))),
                FieldSource.PARSED,
            )

        match = self.WIND_METAR.search(text)
        if match:
            speed = int(match.group(2))
            gust = int(match.group(3)) if match.group(3) else None
            if match.group(1) == "VRB" or (match.group(1) == "000" and speed == 0):
                return ParsedField(WindInfo(None, speed, gust), FieldSource.PARSED)
            return ParsedField(WindInfo(int(match.group(1)), speed, gust), FieldSource.PARSED)

        if self.WIND_CALM_DECODED.search(text):
            return ParsedField(WindInfo(None, 0), FieldSource.PARSED)

        return ParsedField(WindInfo(None, 0), FieldSource.DEFAULTED)

    def parse_visibility(self, text: str) -> ParsedField[int]:
        """Extract visibility in meters; defaults to 10 km or more."""
        match = self.VISIBILITY_DECODED.search(text)
        if match:
            value = int(match.group(1))
            unit = match.group(2).lower()
            meters = value * 1000 if unit.startswith(("k", "q")) else value
            return ParsedField(meters, FieldSource.PARSED)

        if self.CAVOK.search(text):
            return ParsedField(UNLIMITED_VISIBILITY_M, FieldSource.PARSED)

        match = self.VISIBILITY_METAR.search(text)
        if match:
            return ParsedField(int(match.group(1)), FieldSource.PARSED)

        match = self.VISIBILITY_SM.search(text)
        if match:
            miles = int(match.group(1)) / int(match.group(2)) if match.group(2) else int(match.group(1))
            meters = min(UNLIMITED_VISIBILITY_M, round(miles * METERS_PER_STATUTE_MILE))
            return ParsedField(meters, FieldSource.PARSED)

        return ParsedField(UNLIMITED_VISIBILITY_M, FieldSource.DEFAULTED)

    def parse_phenomena(self, text: str) -> list[Phenomenon]:
        """Extract significant weather (rain, fog or mist, thunderstorm, hail)."""
        found: list[Phenomenon] = []
        for kind, heavy, light, any_pattern in _PHENOMENA_RULES:
            if heavy is not None and heavy.search(text):
                found.append(Phenomenon(kind, "forte"))
            elif light is not None and light.search(text):
                found.append(Phenomenon(kind, "fraca"))
            elif any_pattern.search(text):
                found.append(Phenomenon(kind))

        if not any(p.kind == "nevoeiro" for p in found) and _MIST.search(text):
            found.append(Phenomenon("névoa"))
        return found

    def parse_clouds(self, text: str) -> list[CloudLayer]:
        """Extract cloud layers, one per altitude, lowest first (max three).

        When two layers share an altitude the higher-priority cover wins
        (OVC > BKN > SCT > FEW).
        """
        by_altitude: dict[int, str] = {}

        def add(cover: str, altitude: int) -> None:
            existing = by_altitude.get(altitude)
            if existing is None or CLOUD_PRIORITY[cover] > CLOUD_PRIORITY[existing]:
                by_altitude[altitude] = cover

        for match in self.CLOUDS_METAR.finditer(text):
            add(match.group(1).upper(), int(match.group(2)) * 100)

        for match in self.CLOUDS_DECODED.finditer(text):
            altitude = int(match.group(2))
            if altitude < 500:
                # Hundreds of feet (METAR style)
                altitude *= 100
            add(self._normalize_cover(match.group(1)), altitude)

        return [
            CloudLayer(cover=by_altitude[altitude], altitude=altitude)
            for altitude in sorted(by_altitude)[:MAX_CLOUD_LAYERS]
        ]

    def parse_temperature(self, text: str) -> tuple[ParsedField[int], ParsedField[int]]:
        """Extract temperature and dewpoint; each defaults to ISA."""
        match = self.TEMPERATURE_METAR.search(text)
        if match:
            return (
                ParsedField(self._metar_int(match.group(1)), FieldSource.PARSED),
                ParsedField(self._metar_int(match.group(2)), FieldSource.PARSED),
            )

        temp_match = self.TEMPERATURE_DECODED.search(text)
        dew_match = self.DEWPOINT_DECODED.search(text)
        temperature = (
            ParsedField(int(temp_match.group(1)), FieldSource.PARSED)
            if temp_match
            else ParsedField(ISA_TEMPERATURE, FieldSource.DEFAULTED)
        )
        dewpoint = (
            ParsedField(int(dew_match.group(1)), FieldSource.PARSED)
            if dew_match
            else ParsedField(ISA_DEWPOINT, FieldSource.DEFAULTED)
        )
        return temperature, dewpoint

    def parse_qnh(self, text: str) -> ParsedField[int]:
        """Extract QNH in hPa, converting inches of mercury; defaults to 1013."""
        match = self.QNH_METAR.search(text) or self.QNH_DECODED.search(text)
        if match:
            return ParsedField(int(match.group(1)), FieldSource.PARSED)

        match = self.ALTIMETER_INHG_METAR.search(text)
        if match:
            return ParsedField(self._inhg_to_hpa(int(match.group(1)) / 100), FieldSource.PARSED)

        match = self.ALTIMETER_INHG_DECODED.search(text)
        if match:
            return ParsedField(self._inhg_to_hpa(float(match.group(1))), FieldSource.PARSED)

        return ParsedField(ISA_QNH_HPA, FieldSource.DEFAULTED)

    @staticmethod
    def _metar_int(value: str) -> int:
        # M prefix = minus
        return -int(value[1:]) if value.startswith("M") else int(value)

    @staticmethod
    def _inhg_to_hpa(inhg: float) -> int:
        return int(inhg * HPA_PER_INHG + 0.5)

    @staticmethod
    def _normalize_cover(raw: str) -> str:
        lowered = raw.lower()
        if lowered in ("few", "poucas"):
            return "FEW"
        if lowered.startswith("quebrad") or lowered == "bkn":
            return "BKN"
        if lowered in ("encoberto", "ovc"):
            return "OVC"
        return "SCT"


def runway_from_wind(direction: int | None) -> str | None:
    """Infer the runway in use from the wind direction.

    Args:
        direction: Wind direction in degrees, or None if calm/variable.

    Returns:
        Two-digit runway designator (nearest 10°, 0 -> 36), or None.
    """
    if not direction:
        return None
    number = int(direction / 10 + 0.5) % 36
    return f"{number or 36:02d}"


def _is_forecast(line: str) -> bool:
    return line.lstrip().upper().startswith("TAF")


def _format_altitude(altitude: int) -> str:
    # pt-BR thousands separator
    return f"{altitude:,}".replace(",", ".")


@dataclass
class ATISBroadcast:
    """A rendered ATIS broadcast.

    Attributes:
        airport_icao: Airport ICAO code.
        airport_name: Spoken airport name.
        information_letter: Phonetic information letter.
        time_zulu: Broadcast time as HHMM.
        report: Weather fields the broadcast was built from.
        active_runway: Runway designator, or None when not inferable.
        lines: Broadcast lines in ICAO order.
    """

    airport_icao: str
    airport_name: str
    information_letter: str
    time_zulu: str
    report: WeatherReport
    active_runway: str | None
    lines: list[str] = field(default_factory=list)

    @property
    def is_cavok(self) -> bool:
        return self.report.is_cavok

    def render(self) -> str:
        """Render the broadcast as the ATC reply text."""
        body = "\n".join(self.lines)
        return f'📡 ATIS {self.airport_icao}:\n\n"{body}"'


class ATISGenerator:
    """Generate scripted ATIS broadcasts without calling the LLM.

    Examples:
        >>> gen = ATISGenerator(rng=random.Random(1))
        >>> broadcast = gen.generate(flight, "METAR SBGR: ... Q1015", tuned)
        >>> print(broadcast.render())
    """

    def __init__(
        self,
        parser: WeatherContextParser | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize ATIS generator.

        Args:
            parser: Weather context parser.
            rng: Random source for the information letter.
            clock: Returns the current time (UTC).
        """
        self._parser = parser or WeatherContextParser()
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(UTC))

    def generate(
        self,
        flight_data: FlightData,
        weather_context: str,
        tuned_frequency: SelectedFrequency,
    ) -> ATISBroadcast:
        """Build the broadcast for the tuned airport.

        Args:
            flight_data: Flight setup (for the airport ICAO codes).
            weather_context: Flattened weather text; may be empty.
            tuned_frequency: The ATIS frequency the pilot tuned.

        Returns:
            Complete broadcast; unparseable fields use defaults.
        """
        icao = flight_data.icao_for(tuned_frequency.airport)
        airport_name = re.sub(r"^ATIS\s*", "", tuned_frequency.name, flags=re.IGNORECASE).strip()
        airport_name = airport_name or icao

        letter = self._rng.choice(INFORMATION_LETTERS)
        now = self._clock().astimezone(UTC)
        time_zulu = f"{now.hour:02d}{now.minute:02d}"

        report = self._parser.parse(self._airport_weather(weather_context or "", icao))
        runway = runway_from_wind(report.wind.value.direction)

        defaulted = [
            name
            for name, value in (
                ("wind", report.wind),
                ("visibility", report.visibility_m),
                ("temperature", report.temperature),
                ("dewpoint", report.dewpoint),
                ("qnh", report.qnh_hpa),
            )
            if not value.is_parsed
        ]
        if defaulted:
            logger.debug("ATIS %s using defaults for: %s", icao, ", ".join(defaulted))

        broadcast = ATISBroadcast(
            airport_icao=icao,
            airport_name=airport_name,
            information_letter=letter,
            time_zulu=time_zulu,
            report=report,
            active_runway=runway,
        )
        broadcast.lines = self._build_lines(broadcast)
        return broadcast

    def render(
        self,
        flight_data: FlightData,
        weather_context: str,
        tuned_frequency: SelectedFrequency,
    ) -> str:
        """Generate and render in one step."""
        return self.generate(flight_data, weather_context, tuned_frequency).render()

    @staticmethod
    def _airport_weather(context: str, icao: str) -> str:
        """Keep only the current weather of the tuned airport.

        The forecast is read only when the airport has no observation.
        """
        lines = [line for line in context.splitlines() if icao and icao in line.upper()]
        if not lines:
            return context
        observations = [line for line in lines if not _is_forecast(line)]
        return "\n".join(observations or lines)

    def _build_lines(self, broadcast: ATISBroadcast) -> list[str]:
        report = broadcast.report
        lines = [
            f"{broadcast.airport_name} informação {broadcast.information_letter}, "
            f"hora {broadcast.time_zulu} Zulu."
        ]

        wind = report.wind.value
        if wind.is_calm:
            lines.append("Vento calmo.")
        elif wind.direction is None:
            lines.append(f"Vento variável, {wind.speed} nós.")
        else:
            text = f"Vento {wind.direction:03d} graus, {wind.speed} nós"
            if wind.gust:
                text += f", rajadas de {wind.gust} nós"
            lines.append(f"{text}.")

        if report.is_cavok:
            lines.append("CAVOK.")
        else:
            lines.append(f"{self._visibility_text(report.visibility_m.value)}.")
            if report.phenomena:
                phenomena = " e ".join(p.describe() for p in report.phenomena)
                lines.append(f"{phenomena[0].upper()}{phenomena[1:]}.")
            if report.clouds:
                layers = ", ".join(
                    f"{layer.cover} {_format_altitude(layer.altitude)} ft" for layer in report.clouds
                )
                lines.append(f"Nuvens: {layers}.")

        lines.append(
            f"Temperatura {report.temperature.value}°C, "
            f"ponto de orvalho {report.dewpoint.value}°C."
        )
        lines.append(f"QNH {report.qnh_hpa.value} hPa.")

        if broadcast.active_runway:
            lines.append(f"Pista em uso {broadcast.active_runway}.")
        else:
            lines.append("Pista principal em uso.")

        lines.append(
            f"Ao contato inicial, informe que possui a informação {broadcast.information_letter}."
        )
        return lines

    @staticmethod
    def _visibility_text(meters: int) -> str:
        if meters >= UNLIMITED_VISIBILITY_M:
            return "Visibilidade mais de 10 quilômetros"
        if meters >= 5000 and meters % 1000 == 0:
            return f"Visibilidade {meters // 1000} quilômetros"
        return f"Visibilidade {meters} metros"

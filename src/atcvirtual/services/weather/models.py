"""Weather report models for the AVWX REST API.

AVWX returns most numeric fields as ``{"value": ..., "repr": ...}``
objects; the models keep only the values.
"""

from dataclasses import dataclass, field
from typing import Any


def _value(data: dict[str, Any], key: str) -> Any:
    """Extract ``data[key]["value"]`` when present."""
    item = data.get(key)
    if isinstance(item, dict):
        return item.get("value")
    return None


def _time(data: dict[str, Any]) -> str | None:
    item = data.get("time")
    if isinstance(item, dict):
        return item.get("dt") or item.get("repr")
    return None


@dataclass
class CloudReport:
    """Single cloud layer.

    Attributes:
        type: Cover code (FEW, SCT, BKN, OVC).
        altitude: Base in hundreds of feet, as reported by AVWX.
    """

    type: str
    altitude: int


@dataclass
class MetarReport:
    """Current observation for an airport.

    Attributes:
        icao: Airport ICAO code.
        raw: Raw METAR text.
        temperature: Temperature in °C.
        dewpoint: Dewpoint in °C.
        wind_direction: Wind direction in degrees.
        wind_speed: Wind speed in knots.
        wind_gust: Gust speed in knots.
        visibility: Visibility in the report's units.
        altimeter: Altimeter setting in the report's units.
        flight_rules: VFR, MVFR, IFR or LIFR.
        clouds: Cloud layers.
        time: Observation time (ISO string).
    """

    icao: str
    raw: str
    temperature: float | None = None
    dewpoint: float | None = None
    wind_direction: int | None = None
    wind_speed: int | None = None
    wind_gust: int | None = None
    visibility: float | None = None
    altimeter: float | None = None
    flight_rules: str | None = None
    clouds: list[CloudReport] = field(default_factory=list)
    time: str | None = None

    @classmethod
    def from_avwx(cls, icao: str, data: dict[str, Any]) -> "MetarReport":
        """Build a report from an AVWX METAR response.

        Args:
            icao: Requested ICAO code.
            data: Decoded JSON body.

        Returns:
            MetarReport instance.
        """
        clouds = [
            CloudReport(type=str(c["type"]), altitude=int(c["altitude"]))
            for c in data.get("clouds") or []
            if isinstance(c, dict) and c.get("type") and c.get("altitude") is not None
        ]
        return cls(
            icao=icao,
            raw=str(data.get("raw") or ""),
            temperature=_value(data, "temperature"),
            dewpoint=_value(data, "dewpoint"),
            wind_direction=_value(data, "wind_direction"),
            wind_speed=_value(data, "wind_speed"),
            wind_gust=_value(data, "wind_gust"),
            visibility=_value(data, "visibility"),
            altimeter=_value(data, "altimeter"),
            flight_rules=data.get("flight_rules"),
            clouds=clouds,
            time=_time(data),
        )


@dataclass
class TafReport:
    """Terminal forecast for an airport."""

    icao: str
    raw: str
    time: str | None = None

    @classmethod
    def from_avwx(cls, icao: str, data: dict[str, Any]) -> "TafReport":
        """Build a forecast from an AVWX TAF response."""
        return cls(icao=icao, raw=str(data.get("raw") or ""), time=_time(data))

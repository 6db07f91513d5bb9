"""Flattening of weather reports into the text context used by prompts and ATIS."""

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.weather.models import MetarReport, TafReport
from atcvirtual.services.weather.weather_service import WeatherService

logger = get_logger(__name__)


def build_weather_context(
    departure: MetarReport | None = None,
    arrival: MetarReport | None = None,
    arrival_taf: TafReport | None = None,
) -> str:
    """Join the available reports, one per line.

    Args:
        departure: METAR at the departure airport.
        arrival: METAR at the arrival airport.
        arrival_taf: TAF at the arrival airport.

    Returns:
        Lines like ``"METAR SBGR: <raw>"``; empty when nothing is available.

    Examples:
        >>> build_weather_context(MetarReport("SBGR", "SBGR 171200Z 27010KT CAVOK 25/15 Q1015"))
        'METAR SBGR: SBGR 171200Z 27010KT CAVOK 25/15 Q1015'
    """
    lines = []
    if departure and departure.raw:
        lines.append(f"METAR {departure.icao}: {departure.raw}")
    if arrival and arrival.raw:
        lines.append(f"METAR {arrival.icao}: {arrival.raw}")
    if arrival_taf and arrival_taf.raw:
        lines.append(f"TAF {arrival_taf.icao}: {arrival_taf.raw}")
    return "\n".join(lines)


async def fetch_weather_context(service: WeatherService, departure: str, arrival: str) -> str:
    """Fetch the route briefing and flatten it.

    The service's HTTP session is closed before returning, so each call
    can run in its own event loop (``asyncio.run``).

    Args:
        service: Weather service to query.
        departure: Departure ICAO code.
        arrival: Arrival ICAO code.

    Returns:
        Weather context; empty when no report is available.
    """
    try:
        reports = await service.get_briefing(departure, arrival)
    finally:
        await service.close()

    context = build_weather_context(*reports)
    logger.info("Weather context for %s-%s: %d line(s)", departure, arrival, len(context.splitlines()))
    return context

"""Weather services for ATC Virtual.

Provides METAR/TAF data from the AVWX API and the flattened weather
context consumed by the prompt builder and the ATIS generator.
"""

from atcvirtual.services.weather.context import build_weather_context, fetch_weather_context
from atcvirtual.services.weather.models import CloudReport, MetarReport, TafReport
from atcvirtual.services.weather.weather_service import WeatherService

__all__ = [
    "CloudReport",
    "MetarReport",
    "TafReport",
    "WeatherService",
    "build_weather_context",
    "fetch_weather_context",
]

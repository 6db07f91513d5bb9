"""Weather service for aviation weather data.

Fetches METAR, TAF and station data from the AVWX REST API. Lookups are
best effort: without an API key, or when the API fails, methods return
None and the session runs with an empty weather context.
"""

import asyncio
import re
from datetime import UTC, datetime
from typing import Any

import aiohttp
import requests

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.weather.models import MetarReport, TafReport

logger = get_logger(__name__)

ICAO_FORMAT = re.compile(r"^[A-Z]{4}$")


class WeatherService:
    """Service for fetching aviation weather from AVWX.

    Attributes:
        base_url: AVWX API root.
        cache_duration: How long to cache reports (default 5 minutes).
        api_timeout: Timeout for API requests in seconds.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://avwx.rest/api",
        cache_duration: float = 300.0,
        api_timeout: float = 5.0,
    ):
        """Initialize weather service.

        Args:
            api_key: AVWX token; lookups are skipped when empty.
            base_url: AVWX API root.
            cache_duration: Cache duration in seconds (default 5 minutes).
            api_timeout: Timeout for API requests in seconds.
        """
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.cache_duration = cache_duration
        self.api_timeout = api_timeout

        self._cache: dict[tuple[str, str], tuple[Any, datetime]] = {}
        self._session: aiohttp.ClientSession | None = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def station_exists(self, icao: str) -> bool:
        """Check whether an ICAO code names a real station.

        Without an API key, or when the API is unreachable, only the
        four-letter format is checked.

        Args:
            icao: Airport ICAO code.

        Returns:
            True if the station is known (or the code is well formed).
        """
        icao = icao.upper()
        if not self.has_api_key:
            return bool(ICAO_FORMAT.match(icao))

        try:
            response = requests.get(
                f"{self.base_url}/station/{icao}",
                headers=self._headers(),
                timeout=self.api_timeout,
            )
            return response.ok
        except requests.RequestException as e:
            logger.debug("Station lookup failed for %s: %s", icao, e)
            return bool(ICAO_FORMAT.match(icao))

    def get_station_frequencies(self, icao: str) -> list[dict[str, Any]] | None:
        """Get raw frequency entries from the station record, if it has any.

        Usable as the live source of a FrequencyResolver.

        Args:
            icao: Airport ICAO code.

        Returns:
            List of ``{type, frequency, name}`` mappings, or None.
        """
        icao = icao.upper()
        cached = self._get_cached("station", icao)
        data = cached if cached is not None else self._fetch_json_sync(f"station/{icao}")
        if data is None:
            return None
        self._store("station", icao, data)

        frequencies = data.get("frequencies")
        if not isinstance(frequencies, list) or not frequencies:
            return None
        return [f for f in frequencies if isinstance(f, dict)]

    async def get_metar(self, icao: str) -> MetarReport | None:
        """Get the current METAR for an airport.

        Args:
            icao: Airport ICAO code.

        Returns:
            MetarReport, or None if unavailable.
        """
        icao = icao.upper()
        cached = self._get_cached("metar", icao)
        if cached is not None:
            return cached

        data = await self._fetch_json(f"metar/{icao}")
        if data is None:
            return None

        report = MetarReport.from_avwx(icao, data)
        if not report.raw:
            return None
        logger.info("Fetched METAR for %s: %s", icao, report.raw)
        self._store("metar", icao, report)
        return report

    async def get_taf(self, icao: str) -> TafReport | None:
        """Get the current TAF for an airport.

        Args:
            icao: Airport ICAO code.

        Returns:
            TafReport, or None if unavailable.
        """
        icao = icao.upper()
        cached = self._get_cached("taf", icao)
        if cached is not None:
            return cached

        data = await self._fetch_json(f"taf/{icao}")
        if data is None:
            return None

        report = TafReport.from_avwx(icao, data)
        if not report.raw:
            return None
        logger.info("Fetched TAF for %s", icao)
        self._store("taf", icao, report)
        return report

    async def get_briefing(
        self, departure: str, arrival: str
    ) -> tuple[MetarReport | None, MetarReport | None, TafReport | None]:
        """Fetch the departure METAR, arrival METAR and arrival TAF concurrently.

        Args:
            departure: Departure ICAO code.
            arrival: Arrival ICAO code.

        Returns:
            Tuple of (departure METAR, arrival METAR, arrival TAF), each None if unavailable.
        """
        departure_metar, arrival_metar, arrival_taf = await asyncio.gather(
            self.get_metar(departure),
            self.get_metar(arrival),
            self.get_taf(arrival),
        )
        return departure_metar, arrival_metar, arrival_taf

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"BEARER {self.api_key}"}

    def _fetch_json_sync(self, path: str) -> dict[str, Any] | None:
        """Fetch a JSON object from the API using requests.

        Args:
            path: Path relative to the API root.

        Returns:
            Decoded body, or None on any failure.
        """
        if not self.has_api_key:
            logger.debug("No AVWX API key, skipping %s", path)
            return None

        url = f"{self.base_url}/{path}"
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.api_timeout)
            if response.status_code != 200:
                logger.debug("AVWX returned status %d for %s", response.status_code, path)
                return None
            data = response.json()
        except requests.Timeout:
            logger.debug("AVWX request timed out: %s", path)
            return None
        except (requests.RequestException, ValueError) as e:
            logger.debug("AVWX request failed: %s - %s", path, e)
            return None

        return data if isinstance(data, dict) else None

    async def _fetch_json(self, path: str) -> dict[str, Any] | None:
        """Fetch a JSON object from the API using aiohttp.

        Args:
            path: Path relative to the API root.

        Returns:
            Decoded body, or None on any failure.
        """
        if not self.has_api_key:
            logger.debug("No AVWX API key, skipping %s", path)
            return None

        url = f"{self.base_url}/{path}"
        try:
            if self._session is None:
                self._session = aiohttp.ClientSession()

            async with self._session.get(
                url,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            ) as response:
                if response.status != 200:
                    logger.debug("AVWX returned status %d for %s", response.status, path)
                    return None
                data = await response.json()
        except TimeoutError:
            logger.debug("AVWX request timed out: %s", path)
            return None
        except (aiohttp.ClientError, ValueError) as e:
            logger.debug("AVWX request failed: %s - %s", path, e)
            return None

        return data if isinstance(data, dict) else None

    def _get_cached(self, kind: str, icao: str) -> Any:
        """Get a cached entry if still valid.

        Args:
            kind: Report kind ("metar", "taf", "station").
            icao: Airport ICAO code.

        Returns:
            Cached value, or None if not cached or expired.
        """
        entry = self._cache.get((kind, icao))
        if entry is None:
            return None

        value, cached_time = entry
        age = (datetime.now(UTC) - cached_time).total_seconds()
        if age < self.cache_duration:
            return value
        return None

    def _store(self, kind: str, icao: str, value: Any) -> None:
        self._cache[(kind, icao)] = (value, datetime.now(UTC))

    def invalidate_cache(self, icao: str | None = None) -> None:
        """Invalidate cached reports.

        Args:
            icao: Airport ICAO code to invalidate, or None to clear all.
        """
        if icao is None:
            self._cache.clear()
            logger.debug("Cleared all weather cache")
            return

        icao = icao.upper()
        for key in [key for key in self._cache if key[1] == icao]:
            del self._cache[key]
        logger.debug("Cleared weather cache for %s", icao)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

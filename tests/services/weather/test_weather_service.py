"""Tests for weather service."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from atcvirtual.services.weather.weather_service import WeatherService

METAR_BODY = {
    "raw": "SBGR 171400Z 27015G25KT 9999 -RA BKN015 18/16 Q1012",
    "time": {"dt": "2026-10-17T14:00:00Z"},
    "temperature": {"value": 18, "repr": "18"},
    "dewpoint": {"value": 16, "repr": "16"},
    "wind_direction": {"value": 270, "repr": "270"},
    "wind_speed": {"value": 15, "repr": "15"},
    "wind_gust": {"value": 25, "repr": "25"},
    "visibility": {"value": 9999, "repr": "9999"},
    "altimeter": {"value": 1012, "repr": "Q1012"},
    "flight_rules": "MVFR",
    "clouds": [{"type": "BKN", "altitude": 15, "repr": "BKN015"}],
}


def make_response(status_code: int = 200, payload: object = None) -> MagicMock:
    """Create a fake requests response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code == 200
    response.json.return_value = payload
    return response


def make_session(status: int = 200, payload: object = None) -> MagicMock:
    """Create a fake aiohttp session whose get() yields one response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    request = MagicMock()
    request.__aenter__ = AsyncMock(return_value=response)
    request.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get.return_value = request
    session.close = AsyncMock()
    return session


class TestWeatherService:
    """Tests for WeatherService class."""

    @pytest.fixture
    def service(self) -> WeatherService:
        """Create service fixture without an API key."""
        return WeatherService()

    @pytest.fixture
    def real_service(self) -> WeatherService:
        """Create service fixture with an API key."""
        return WeatherService(api_key="token", api_timeout=1.0)

    @pytest.mark.asyncio
    async def test_no_key_skips_lookups(self, service: WeatherService) -> None:
        """Test that lookups return None without an API key."""
        with patch("atcvirtual.services.weather.weather_service.aiohttp.ClientSession") as mock_cls:
            assert await service.get_metar("SBGR") is None
            assert await service.get_taf("SBGR") is None
            mock_cls.assert_not_called()
        assert service._session is None

    @pytest.mark.asyncio
    async def test_get_metar(self, real_service: WeatherService) -> None:
        """Test METAR fetch, request shape and model mapping."""
        session = make_session(payload=METAR_BODY)
        with patch(
            "atcvirtual.services.weather.weather_service.aiohttp.ClientSession", return_value=session
        ):
            report = await real_service.get_metar("sbgr")

        assert report is not None
        assert report.icao == "SBGR"
        assert report.raw == METAR_BODY["raw"]
        assert report.temperature == 18
        assert report.wind_gust == 25
        assert report.clouds[0].type == "BKN"
        assert report.clouds[0].altitude == 15
        assert report.time == "2026-10-17T14:00:00Z"

        args, kwargs = session.get.call_args
        assert args[0] == "https://avwx.rest/api/metar/SBGR"
        assert kwargs["headers"] == {"Authorization": "BEARER token"}
        assert kwargs["timeout"].total == 1.0

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self, real_service: WeatherService) -> None:
        """Test that API errors degrade to no weather."""
        with patch(
            "atcvirtual.services.weather.weather_service.aiohttp.ClientSession",
            return_value=make_session(status=404),
        ):
            assert await real_service.get_taf("SBGR") is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, real_service: WeatherService) -> None:
        """Test that a timeout degrades to no weather."""
        session = make_session()
        session.get.return_value.__aenter__.side_effect = TimeoutError()
        with patch(
            "atcvirtual.services.weather.weather_service.aiohttp.ClientSession", return_value=session
        ):
            assert await real_service.get_metar("SBGR") is None

    @pytest.mark.asyncio
    async def test_close_releases_session(self, real_service: WeatherService) -> None:
        """Test that close() closes the opened HTTP session."""
        session = make_session(payload=METAR_BODY)
        with patch(
            "atcvirtual.services.weather.weather_service.aiohttp.ClientSession", return_value=session
        ):
            await real_service.get_metar("SBGR")
            await real_service.close()

        session.close.assert_awaited_once()
        assert real_service._session is None

    @pytest.mark.asyncio
    async def test_caches_metar(self, real_service: WeatherService) -> None:
        """Test that reports are cached."""
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = METAR_BODY

            report1 = await real_service.get_metar("SBGR")
            report2 = await real_service.get_metar("SBGR")

            assert report1 is report2
            assert mock.await_count == 1

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self) -> None:
        """Test that a zero cache duration always refetches."""
        service = WeatherService(api_key="token", cache_duration=0)
        with patch.object(service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = METAR_BODY

            await service.get_metar("SBGR")
            await service.get_metar("SBGR")

            assert mock.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_raw_returns_none(self, real_service: WeatherService) -> None:
        """Test that a body without raw text is not a report."""
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = {"raw": ""}
            assert await real_service.get_metar("SBGR") is None

    @pytest.mark.asyncio
    async def test_get_taf(self, real_service: WeatherService) -> None:
        """Test TAF fetch."""
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = {"raw": "TAF SBRJ 171100Z 1712/1812 18010KT 9999 BKN015"}

            taf = await real_service.get_taf("sbrj")

            assert taf is not None
            assert taf.raw.startswith("TAF SBRJ")
            mock.assert_awaited_once_with("taf/SBRJ")

    @pytest.mark.asyncio
    async def test_get_briefing(self, real_service: WeatherService) -> None:
        """Test that the route briefing fetches both METARs and the arrival TAF."""
        bodies = {
            "metar/SBGR": METAR_BODY,
            "metar/SBRJ": {"raw": "SBRJ 171400Z 20008KT 9999 SCT020 27/20 Q1009"},
            "taf/SBRJ": {"raw": "TAF SBRJ 171100Z 1712/1812 18010KT 9999 BKN015"},
        }
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.side_effect = bodies.get

            departure, arrival, taf = await real_service.get_briefing("SBGR", "SBRJ")

        assert departure is not None and departure.icao == "SBGR"
        assert arrival is not None and arrival.raw.startswith("SBRJ")
        assert taf is not None and taf.icao == "SBRJ"
        assert mock.await_count == 3

    @pytest.mark.asyncio
    async def test_invalidate_cache_single(self, real_service: WeatherService) -> None:
        """Test invalidating cache for a single airport."""
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = METAR_BODY
            await real_service.get_metar("SBGR")
            await real_service.get_metar("SBRJ")

            real_service.invalidate_cache("sbgr")
            await real_service.get_metar("SBGR")
            await real_service.get_metar("SBRJ")

            assert mock.await_count == 3

    @pytest.mark.asyncio
    async def test_invalidate_cache_all(self, real_service: WeatherService) -> None:
        """Test invalidating all cached reports."""
        with patch.object(real_service, "_fetch_json", new_callable=AsyncMock) as mock:
            mock.return_value = METAR_BODY
            await real_service.get_metar("SBGR")
            await real_service.get_taf("SBGR")

            real_service.invalidate_cache()
            await real_service.get_metar("SBGR")
            await real_service.get_taf("SBGR")

            assert mock.await_count == 4

    @pytest.mark.asyncio
    async def test_close_without_session(self, service: WeatherService) -> None:
        """Test closing when no HTTP session was opened."""
        await service.close()
        assert service._session is None

    def test_station_exists_without_key(self, service: WeatherService) -> None:
        """Test the format check used without an API key."""
        assert service.station_exists("sbgr") is True
        assert service.station_exists("SBG1") is False
        assert service.station_exists("SBGRX") is False

    @patch("atcvirtual.services.weather.weather_service.requests.get")
    def test_station_exists_with_key(self, mock_get: MagicMock, real_service: WeatherService) -> None:
        """Test the station lookup."""
        mock_get.return_value = make_response(status_code=400)
        assert real_service.station_exists("XXXX") is False

        mock_get.return_value = make_response(payload={"icao": "SBGR"})
        assert real_service.station_exists("SBGR") is True

    @patch("atcvirtual.services.weather.weather_service.requests.get")
    def test_station_exists_offline(self, mock_get: MagicMock, real_service: WeatherService) -> None:
        """Test the format check is used when the API is unreachable."""
        mock_get.side_effect = requests.ConnectionError()
        assert real_service.station_exists("SBGR") is True

    @patch("atcvirtual.services.weather.weather_service.requests.get")
    def test_station_frequencies(self, mock_get: MagicMock, real_service: WeatherService) -> None:
        """Test frequency entries from the station record."""
        mock_get.return_value = make_response(
            payload={
                "icao": "SBGR",
                "frequencies": [{"type": "TWR", "frequency": "132.100", "name": "Torre"}, "junk"],
            }
        )

        entries = real_service.get_station_frequencies("SBGR")

        assert entries == [{"type": "TWR", "frequency": "132.100", "name": "Torre"}]

    @patch("atcvirtual.services.weather.weather_service.requests.get")
    def test_station_without_frequencies(
        self, mock_get: MagicMock, real_service: WeatherService
    ) -> None:
        """Test a station record without frequencies."""
        mock_get.return_value = make_response(payload={"icao": "SBGR"})
        assert real_service.get_station_frequencies("SBGR") is None

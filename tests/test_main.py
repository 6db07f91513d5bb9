"""Tests for the command-line front end."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from atcvirtual.core.config import AppConfig
from atcvirtual.core.errors import ProviderError, ProviderErrorCategory
from atcvirtual.main import (
    HELP_TEXT,
    WEATHER_UNAVAILABLE,
    ChatLoop,
    build_session,
    main,
    mask_secret,
    parse_args,
)
from atcvirtual.services.atc.atc_session import ATCSession
from atcvirtual.services.atc.flight_phase import FlightPhase
from atcvirtual.services.atc.frequencies import FrequencyResolver, ServiceType
from atcvirtual.services.atc.models import AirportSide, FlightData
from atcvirtual.services.llm.base import LLMProvider
from atcvirtual.services.weather.weather_service import WeatherService
from atcvirtual.settings.session_settings import (
    DEFAULT_SYSTEM_PROMPT,
    SETTINGS_SECTION,
    SessionSettings,
)

TABLE = """\
SBGR:
  - {type: GND, frequency: "121.650", name: "Solo Guarulhos"}
  - {type: TWR, frequency: "132.100", name: "Torre Guarulhos"}
SBRJ:
  - {type: TWR, frequency: "118.700", name: "Torre Santos Dumont"}
"""


@pytest.fixture
def provider() -> MagicMock:
    """Create a mock LLM provider."""
    mock = MagicMock(spec=LLMProvider)
    mock.complete.return_value = "📡 ATC: PR-ABC, prossiga.\n🧠 Avaliador: Correto."
    return mock


@pytest.fixture
def session(tmp_path: Path, provider: MagicMock) -> ATCSession:
    """Create a session over a small frequency table."""
    table = tmp_path / "frequencies.yaml"
    table.write_text(TABLE, encoding="utf-8")
    return ATCSession(
        FlightData("C172 PR-ABC", "SBGR", "SBRJ"),
        provider,
        frequency_resolver=FrequencyResolver(table_path=table),
    )


@pytest.fixture
def output() -> list[str]:
    """Collected output lines."""
    return []


@pytest.fixture
def loop(session: ATCSession, output: list[str]) -> ChatLoop:
    """Create chat loop fixture."""
    return ChatLoop(session, output=output.append)


class TestChatLoop:
    """Tests for ChatLoop."""

    def test_quit(self, loop: ChatLoop) -> None:
        """Test /sair stops the loop."""
        assert loop.handle_line("/sair") is False

    def test_blank_line(self, loop: ChatLoop, output: list[str]) -> None:
        """Test blank lines are ignored."""
        assert loop.handle_line("   ") is True
        assert output == []

    def test_help(self, loop: ChatLoop, output: list[str]) -> None:
        """Test /ajuda."""
        loop.handle_line("/ajuda")
        assert output == [HELP_TEXT]

    def test_unknown_command(self, loop: ChatLoop, output: list[str]) -> None:
        """Test an unknown command."""
        loop.handle_line("/voar")
        assert "Comando desconhecido" in output[0]

    def test_transmission(self, loop: ChatLoop, output: list[str]) -> None:
        """Test a plain line is transmitted to ATC."""
        loop.handle_line("Solo Guarulhos, PR-ABC")

        assert "📡 ATC: PR-ABC, prossiga." in output
        assert "🧠 Avaliador: Correto." in output

    def test_evaluator_command(self, loop: ChatLoop, provider: MagicMock, output: list[str]) -> None:
        """Test /aval talks to the instructor."""
        provider.complete.return_value = "🧠 Avaliador: Informe a posição."

        loop.handle_line("/aval como chamo o solo?")

        assert output == ["🧠 Avaliador: Informe a posição."]
        assert "O ATC NÃO está ouvindo" in provider.complete.call_args.args[0]

    def test_evaluator_command_without_text(self, loop: ChatLoop, output: list[str]) -> None:
        """Test /aval usage message."""
        loop.handle_line("/aval")
        assert output == ["Uso: /aval <texto>"]

    def test_phase_command(self, loop: ChatLoop, session: ATCSession) -> None:
        """Test setting and advancing the phase."""
        loop.handle_line("/fase taxi_out")
        assert session.phase == FlightPhase.TAXI_OUT

        loop.handle_line("/fase +")
        assert session.phase == FlightPhase.HOLDING_POINT

    def test_phase_list(self, loop: ChatLoop, output: list[str]) -> None:
        """Test listing the phases."""
        loop.handle_line("/fase")
        assert len(output) == 17
        assert output[0].startswith("▶ PARKING_COLD")

    def test_invalid_phase(self, loop: ChatLoop, output: list[str]) -> None:
        """Test an unknown phase."""
        loop.handle_line("/fase VOANDO")
        assert output == ["⚠️ Fase do voo inválida"]

    def test_frequency_command(self, loop: ChatLoop, session: ATCSession) -> None:
        """Test tuning at the active and at the other airport."""
        loop.handle_line("/freq GND")
        assert session.selected_frequency.frequency == "121.650"

        loop.handle_line("/freq arr TWR")
        assert session.active_side == AirportSide.ARRIVAL
        assert session.selected_frequency.frequency == "118.700"

    def test_frequency_list(self, loop: ChatLoop, output: list[str]) -> None:
        """Test listing the active airport's frequencies."""
        loop.handle_line("/freq")

        assert output[0] == "Frequências de SBGR:"
        assert len(output) == 3

    def test_missing_service(self, loop: ChatLoop, output: list[str]) -> None:
        """Test tuning a service the airport lacks."""
        loop.handle_line("/freq CTR")
        assert output == ["SBGR não possui frequência CTR."]

    def test_invalid_service(self, loop: ChatLoop, output: list[str]) -> None:
        """Test an unknown service type."""
        loop.handle_line("/freq XYZ")
        assert output == ["Tipo de frequência inválido: XYZ"]

    def test_phase_warning_shown(self, loop: ChatLoop, session: ATCSession, output: list[str]) -> None:
        """Test the phase check diagnosis is shown with the reply."""
        session.set_phase(FlightPhase.TAXI_OUT)
        session.select_frequency(ServiceType.TWR)

        loop.handle_line("Torre, PR-ABC")

        assert output[0].startswith("⚠️")

    def test_provider_error_shown(self, loop: ChatLoop, provider: MagicMock, output: list[str]) -> None:
        """Test provider failures are shown, not raised."""
        provider.complete.side_effect = ProviderError(ProviderErrorCategory.AUTH_FAILED, 401)

        assert loop.handle_line("Solo, PR-ABC") is True
        assert output == ["❌ Falha na autenticação"]

    def test_resume(self, loop: ChatLoop, provider: MagicMock, output: list[str]) -> None:
        """Test /retomar after a hold."""
        loop.handle_line("/retomar")
        assert output[-1] == "Nenhuma espera em andamento."

        provider.complete.return_value = "📡 ATC: PR-ABC, mantenha posição."
        loop.handle_line("Torre, PR-ABC, pronto")
        assert output[-1].startswith("⏸️")

        loop.handle_line("/retomar")
        assert output[-1].startswith("Espera encerrada")

    def test_radio_off(self, loop: ChatLoop, session: ATCSession, output: list[str]) -> None:
        """Test /freq off clears the tuned frequency."""
        loop.handle_line("/freq GND")

        loop.handle_line("/freq off")

        assert session.selected_frequency is None
        assert output[-1].endswith("Frequência: nenhuma")

    def test_weather_unavailable(self, loop: ChatLoop, output: list[str]) -> None:
        """Test /metar without weather."""
        loop.handle_line("/metar")
        assert output == [WEATHER_UNAVAILABLE]

    def test_weather_shown(self, loop: ChatLoop, session: ATCSession, output: list[str]) -> None:
        """Test /metar prints the route weather."""
        session.weather_context = "METAR SBGR: SBGR 171400Z 27010KT CAVOK 25/15 Q1015\n"

        loop.handle_line("/metar")

        assert output == ["METAR SBGR: SBGR 171400Z 27010KT CAVOK 25/15 Q1015"]

    def test_weather_refresh_without_service(self, loop: ChatLoop, output: list[str]) -> None:
        """Test /metar atualizar when no weather client is attached."""
        loop.handle_line("/metar atualizar")
        assert output == ["Atualização da meteorologia indisponível."]

    def test_run_until_eof(self, loop: ChatLoop, output: list[str]) -> None:
        """Test the loop ends at end of input."""
        lines = iter(["/status"])

        def read_line(prompt: str) -> str:
            try:
                return next(lines)
            except StopIteration:
                raise EOFError from None

        loop.run(read_line)

        assert output[0] == HELP_TEXT
        assert sum("Fase:" in line for line in output) == 2


class TestCommandLine:
    """Tests for argument parsing and main."""

    def test_parse_args(self) -> None:
        """Test argument parsing with defaults."""
        args = parse_args(["--aircraft", "C172 PR-ABC", "--from", "SBGR", "--to", "SBRJ"])

        assert args.aircraft == "C172 PR-ABC"
        assert args.departure == "SBGR"
        assert args.arrival == "SBRJ"
        assert args.rules == "VFR"
        assert args.mode == "TREINO"

    def test_parse_args_rejects_mode(self) -> None:
        """Test only TREINO and REAL are accepted."""
        with pytest.raises(SystemExit):
            parse_args(["--aircraft", "A320", "--from", "SBGR", "--to", "SBRJ", "--mode", "VIVO"])

    @patch("atcvirtual.main.initialize_logging")
    def test_main_invalid_icao(
        self, mock_logging: MagicMock, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test main exits with 2 on a malformed airport code."""
        monkeypatch.setenv("ATC_VIRTUAL_HOME", str(tmp_path))

        code = main(["--aircraft", "C172", "--from", "SB1", "--to", "SBRJ"])

        assert code == 2
        mock_logging.assert_called_once()


class TestWeatherRefresh:
    """Tests for refreshing the route weather from the chat loop."""

    @patch("atcvirtual.main.fetch_weather_context", new_callable=AsyncMock)
    def test_refresh(
        self, mock_fetch: AsyncMock, session: ATCSession, output: list[str]
    ) -> None:
        """Test the cache is dropped and the session context replaced."""
        mock_fetch.return_value = "METAR SBRJ: SBRJ 171500Z 20008KT 9999 SCT020 27/20 Q1009"
        weather = MagicMock(spec=WeatherService)
        loop = ChatLoop(session, output=output.append, weather=weather)

        loop.handle_line("/metar atualizar")

        weather.invalidate_cache.assert_called_once_with()
        mock_fetch.assert_awaited_once_with(weather, "SBGR", "SBRJ")
        assert session.weather_context == mock_fetch.return_value
        assert output == [mock_fetch.return_value]


class TestConfigCommand:
    """Tests for the /config command."""

    @pytest.fixture
    def settings(self, tmp_path: Path) -> SessionSettings:
        """Create settings stored in a temp directory."""
        return SessionSettings(_settings_path=tmp_path / "settings.json")

    @pytest.fixture
    def loop(self, session: ATCSession, settings: SessionSettings, output: list[str]) -> ChatLoop:
        """Create chat loop with settings attached."""
        return ChatLoop(session, output=output.append, settings=settings)

    def read_section(self, settings: SessionSettings) -> dict[str, Any]:
        """Read the saved settings section back from disk."""
        return json.loads(settings.settings_path.read_text(encoding="utf-8"))[SETTINGS_SECTION]

    def test_mask_secret(self) -> None:
        """Test API keys are never shown in full."""
        assert mask_secret("") == "(vazio)"
        assert mask_secret("short") == "****"
        assert mask_secret("sk-ant-0123456789") == "****6789"

    def test_list(self, loop: ChatLoop, settings: SessionSettings, output: list[str]) -> None:
        """Test listing masks keys and summarizes the prompt."""
        settings.anthropic_api_key = "sk-ant-0123456789"

        loop.handle_line("/config")

        assert any("anthropic_api_key" in line and "****6789" in line for line in output)
        assert not any("sk-ant-0123456789" in line for line in output)
        assert any(f"({len(DEFAULT_SYSTEM_PROMPT)} caracteres)" in line for line in output)
        assert output[-1] == f"Arquivo: {settings.settings_path}"

    def test_set_saves(self, loop: ChatLoop, settings: SessionSettings, output: list[str]) -> None:
        """Test /config set writes the value through."""
        loop.handle_line("/config set avwx_api_key abc")

        assert settings.avwx_api_key == "abc"
        assert self.read_section(settings)["avwx_api_key"] == "abc"
        assert output == ["avwx_api_key atualizado."]

    def test_set_prompt_updates_session(
        self, loop: ChatLoop, session: ATCSession, settings: SessionSettings
    ) -> None:
        """Test a new persona prompt applies to the running session."""
        loop.handle_line("/config set system_prompt Você é o controle Guarulhos.")

        assert session.system_prompt == "Você é o controle Guarulhos."
        assert self.read_section(settings)["system_prompt"] == "Você é o controle Guarulhos."

    def test_blank_prompt_rejected(
        self, loop: ChatLoop, settings: SessionSettings, output: list[str]
    ) -> None:
        """Test an empty persona prompt is not saved."""
        loop.handle_line("/config set system_prompt")

        assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert "reset-prompt" in output[0]

    def test_reset_prompt(
        self, loop: ChatLoop, session: ATCSession, settings: SessionSettings, output: list[str]
    ) -> None:
        """Test restoring the default persona prompt."""
        loop.handle_line("/config set system_prompt Outro")

        loop.handle_line("/config reset-prompt")

        assert session.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert self.read_section(settings)["system_prompt"] == DEFAULT_SYSTEM_PROMPT
        assert output[-1] == "Prompt do ATC restaurado."

    @patch("atcvirtual.main.create_provider")
    def test_key_change_replaces_provider(
        self, mock_create: MagicMock, loop: ChatLoop, session: ATCSession
    ) -> None:
        """Test a new Anthropic key switches the session's provider."""
        loop.handle_line("/config set anthropic_api_key sk-ant-new")

        assert session.provider is mock_create.return_value
        assert mock_create.call_args.kwargs["anthropic_api_key"] == "sk-ant-new"

    def test_unknown_field(self, loop: ChatLoop, settings: SessionSettings, output: list[str]) -> None:
        """Test an unknown settings name."""
        loop.handle_line("/config set voice af_heart")

        assert output[0].startswith("Campo desconhecido: voice.")
        assert not settings.settings_path.exists()

    def test_without_settings(self, session: ATCSession, output: list[str]) -> None:
        """Test /config when the loop has no settings."""
        ChatLoop(session, output=output.append).handle_line("/config")
        assert output == ["Configurações indisponíveis."]


class TestBuildSession:
    """Tests for build_session."""

    @patch("atcvirtual.main.fetch_weather_context", new_callable=AsyncMock)
    def test_weather_fetched(self, mock_fetch: AsyncMock) -> None:
        """Test the route weather is fetched through the async client."""
        mock_fetch.return_value = "METAR SBGR: SBGR 171400Z 27010KT CAVOK 25/15 Q1015"
        weather = MagicMock(spec=WeatherService)
        weather.station_exists.return_value = True
        weather.has_api_key = False
        args = parse_args(["--aircraft", "C172 PR-ABC", "--from", "sbgr", "--to", "SBRJ"])

        session = build_session(args, AppConfig(), SessionSettings(), weather)

        mock_fetch.assert_awaited_once_with(weather, "SBGR", "SBRJ")
        assert session.weather_context == mock_fetch.return_value
        assert session.flight_data.departure_icao == "SBGR"


class TestRequestMode:
    """Tests for answering a single JSON chat request."""

    @pytest.fixture
    def payload(self) -> dict[str, Any]:
        """Create an ATIS request payload (answered without the LLM)."""
        return {
            "message": "ATIS",
            "history": [],
            "flightData": {
                "aircraft": "C172 PR-ABC",
                "departureIcao": "SBGR",
                "arrivalIcao": "SBRJ",
                "flightType": "VFR",
                "mode": "TREINO",
            },
            "talkingTo": "atc",
            "metarContext": "METAR SBGR: SBGR 171400Z 27010KT CAVOK 25/15 Q1015",
            "selectedFrequency": {
                "airport": "departure",
                "frequencyType": "ATIS",
                "frequency": "127.750",
                "name": "ATIS Guarulhos",
            },
        }

    def test_parse_args_request_only(self) -> None:
        """Test --request does not need a flight."""
        args = parse_args(["--request", "payload.json"])
        assert args.request == "payload.json"
        assert args.aircraft is None

    def test_parse_args_requires_flight(self) -> None:
        """Test the chat loop still needs aircraft and route."""
        with pytest.raises(SystemExit):
            parse_args(["--aircraft", "C172"])

    @patch("atcvirtual.main.initialize_logging")
    def test_answers_request(
        self,
        mock_logging: MagicMock,
        payload: dict[str, Any],
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test a request file is answered with a JSON body."""
        request = tmp_path / "request.json"
        request.write_text(json.dumps(payload), encoding="utf-8")

        code = main(["--request", str(request)])

        body = json.loads(capsys.readouterr().out)
        assert code == 0
        assert body["isWaiting"] is False
        assert body["atcResponse"].startswith("📡 ATIS SBGR:")

    @patch("atcvirtual.main.initialize_logging")
    def test_invalid_request(
        self, mock_logging: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test an unreadable request file yields an error body."""
        request = tmp_path / "request.json"
        request.write_text("{not json", encoding="utf-8")

        code = main(["--request", str(request)])

        assert code == 1
        assert json.loads(capsys.readouterr().out) == {"error": "Requisição inválida"}

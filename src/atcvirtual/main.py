"""ATC Virtual - command-line radio trainer.

Sets up a flight, fetches weather, and runs a text chat loop with the
simulated ATC. With ``--request`` a single wire-form chat request is read
from a JSON file (or stdin) and answered as JSON.

Typical usage:
    atc-virtual --aircraft "C172 PR-ABC" --from SBGR --to SBRJ
    atc-virtual --aircraft A320 --from SBSP --to SBBR --rules IFR --mode REAL
    atc-virtual --request payload.json
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from atcvirtual import __version__
from atcvirtual.core.config import AppConfig, load_config
from atcvirtual.core.errors import ATCVirtualError, InputValidationError
from atcvirtual.core.logging_system import get_logger, initialize_logging
from atcvirtual.services.atc.atc_session import ATCReply, ATCSession
from atcvirtual.services.atc.chat_handler import handle_chat_request
from atcvirtual.services.atc.flight_phase import all_phases, get_phase_info, parse_phase
from atcvirtual.services.atc.frequencies import SERVICE_LABELS, FrequencyResolver, ServiceType
from atcvirtual.services.atc.models import AirportSide, Channel, FlightData, FlightMode, FlightRules
from atcvirtual.services.llm.factory import create_provider
from atcvirtual.services.weather.context import fetch_weather_context
from atcvirtual.services.weather.weather_service import WeatherService
from atcvirtual.settings.session_settings import SessionSettings

logger = get_logger(__name__)

HELP_TEXT = """Comandos:
  /fase              lista as fases do voo
  /fase <ID> | +     muda a fase (ex.: /fase TAXI_OUT) ou avança uma
  /freq              lista as frequências do aeroporto ativo
  /freq [dep|arr] <TIPO>  sintoniza (ex.: /freq GND, /freq arr TWR)
  /freq off          desliga o rádio
  /metar [atualizar] mostra (ou busca de novo) a meteorologia da rota
  /aval <texto>      fala com o Avaliador (o ATC não ouve)
  /retomar           retoma após uma espera do ATC
  /status            mostra fase e frequência
  /config            mostra as configurações
  /config set <campo> <valor>  altera e salva uma configuração
  /config reset-prompt  restaura o prompt padrão do ATC
  /ajuda             mostra esta ajuda
  /sair              encerra"""

WEATHER_UNAVAILABLE = "Meteorologia indisponível."
SAVE_FAILED = "⚠️ Não foi possível salvar as configurações."

_SIDES = {
    "dep": AirportSide.DEPARTURE,
    "saida": AirportSide.DEPARTURE,
    "arr": AirportSide.ARRIVAL,
    "chegada": AirportSide.ARRIVAL,
}
_RADIO_OFF = ("off", "nenhuma")


def mask_secret(value: str) -> str:
    """Hide an API key, keeping the last four characters."""
    if not value:
        return "(vazio)"
    return "****" + value[-4:] if len(value) > 8 else "****"


class ChatLoop:
    """Line-oriented front end for an ATCSession."""

    def __init__(
        self,
        session: ATCSession,
        output: Callable[[str], None] = print,
        settings: SessionSettings | None = None,
        config: AppConfig | None = None,
        weather: WeatherService | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self._output = output
        self._config = config or AppConfig()
        self._weather = weather

    def run(self, read_line: Callable[[str], str] = input) -> None:
        """Read lines until /sair or end of input."""
        self._output(HELP_TEXT)
        self._print_status()
        while True:
            try:
                line = read_line("> ")
            except (EOFError, KeyboardInterrupt):
                self._output("")
                return
            if not self.handle_line(line):
                return

    def handle_line(self, line: str) -> bool:
        """Process one input line.

        Args:
            line: Command or transmission.

        Returns:
            False when the loop should stop.
        """
        line = line.strip()
        if not line:
            return True

        if not line.startswith("/"):
            self._transmit(line, Channel.ATC)
            return True

        command, _, arg = line.partition(" ")
        arg = arg.strip()
        command = command.lower()
        if command == "/sair":
            return False
        if command == "/ajuda":
            self._output(HELP_TEXT)
        elif command == "/status":
            self._print_status()
        elif command == "/fase":
            self._phase_command(arg)
        elif command == "/freq":
            self._frequency_command(arg)
        elif command == "/metar":
            self._weather_command(arg)
        elif command == "/config":
            self._config_command(arg)
        elif command == "/aval":
            if arg:
                self._transmit(arg, Channel.EVALUATOR)
            else:
                self._output("Uso: /aval <texto>")
        elif command == "/retomar":
            if self.session.resume():
                self._output("Espera encerrada. Prossiga com a próxima chamada.")
            else:
                self._output("Nenhuma espera em andamento.")
        else:
            self._output(f"Comando desconhecido: {command}. Use /ajuda.")
        return True

    def _transmit(self, text: str, channel: Channel) -> None:
        try:
            reply = self.session.send(text, channel)
        except InputValidationError as e:
            self._output(f"⚠️ {e.user_message}")
            return
        except ATCVirtualError as e:
            self._output(f"❌ {e}")
            return
        self._print_reply(reply)

    def _print_reply(self, reply: ATCReply) -> None:
        if reply.validation is not None and not reply.validation.is_valid:
            self._output(f"⚠️ {reply.validation.error}")
        elif reply.validation is not None and reply.validation.warning:
            self._output(f"ℹ️ {reply.validation.warning}")

        if reply.atc_response:
            prefix = "" if reply.from_atis else "📡 ATC: "
            self._output(f"{prefix}{reply.atc_response}")
        if reply.evaluator_response:
            self._output(f"🧠 Avaliador: {reply.evaluator_response}")
        if reply.is_waiting:
            self._output("⏸️ ATC em espera. Use /retomar quando for prosseguir.")

    def _print_status(self) -> None:
        info = get_phase_info(self.session.phase)
        tuned = self.session.selected_frequency
        flight = self.session.flight_data
        tuned_text = f"{tuned.name} {tuned.frequency}" if tuned else "nenhuma"
        self._output(
            f"{flight.aircraft} {flight.departure_icao} → {flight.arrival_icao} "
            f"({flight.flight_type.value}, {flight.mode.value}) | "
            f"Fase: {info.icon} {info.label} | Frequência: {tuned_text}"
        )

    def _phase_command(self, arg: str) -> None:
        if not arg:
            for info in all_phases():
                marker = "▶" if info.id == self.session.phase else " "
                self._output(f"{marker} {info.id.value:<16} {info.icon} {info.label}")
            return

        if arg == "+":
            self.session.next_phase()
        else:
            try:
                self.session.set_phase(parse_phase(arg.upper()))
            except InputValidationError as e:
                self._output(f"⚠️ {e.user_message}")
                return
        self._print_status()

    def _frequency_command(self, arg: str) -> None:
        parts = arg.split()
        if parts and parts[0].lower() in _RADIO_OFF:
            self.session.clear_frequency()
            self._print_status()
            return

        if parts and parts[0].lower() in _SIDES:
            self.session.switch_airport(_SIDES[parts.pop(0).lower()])

        if not parts:
            side = self.session.active_side
            icao = self.session.flight_data.icao_for(side)
            frequencies = self.session.frequencies_for(side)
            if not frequencies:
                self._output(f"Nenhuma frequência disponível para {icao}")
                return
            self._output(f"Frequências de {icao}:")
            for freq in frequencies:
                self._output(f"  {SERVICE_LABELS[freq.type]:<28} {freq.frequency}  {freq.name}")
            return

        try:
            service_type = ServiceType(parts[0].upper())
        except ValueError:
            self._output(f"Tipo de frequência inválido: {parts[0]}")
            return

        if self.session.select_frequency(service_type) is None:
            icao = self.session.flight_data.icao_for(self.session.active_side)
            self._output(f"{icao} não possui frequência {service_type.value}.")
            return
        self._print_status()

    def _weather_command(self, arg: str) -> None:
        if arg.lower() == "atualizar":
            if self._weather is None:
                self._output("Atualização da meteorologia indisponível.")
                return
            self._weather.invalidate_cache()
            flight = self.session.flight_data
            context = asyncio.run(
                fetch_weather_context(self._weather, flight.departure_icao, flight.arrival_icao)
            )
            self.session.weather_context = context[: self._config.limits.max_metar_context_length]
        elif arg:
            self._output("Uso: /metar [atualizar]")
            return

        self._output(self.session.weather_context.strip() or WEATHER_UNAVAILABLE)

    def _config_command(self, arg: str) -> None:
        settings = self.settings
        if settings is None:
            self._output("Configurações indisponíveis.")
            return

        action, _, rest = arg.partition(" ")
        action = action.lower()
        if not action:
            self._print_settings(settings)
        elif action == "set":
            name, _, value = rest.strip().partition(" ")
            if not name:
                self._output("Uso: /config set <campo> <valor>")
                return
            self._change_setting(settings, name.lower(), value.strip())
        elif action == "reset-prompt":
            if not settings.reset_system_prompt():
                self._output(SAVE_FAILED)
            self.session.system_prompt = settings.system_prompt
            self._output("Prompt do ATC restaurado.")
        else:
            self._output("Uso: /config [set <campo> <valor> | reset-prompt]")

    def _print_settings(self, settings: SessionSettings) -> None:
        for name, value in settings.to_dict().items():
            if name.endswith("_api_key"):
                shown = mask_secret(value)
            elif name == "system_prompt":
                shown = f"({len(value)} caracteres)"
            else:
                shown = value
            self._output(f"  {name:<20} {shown}")
        self._output(f"Arquivo: {settings.settings_path}")

    def _change_setting(self, settings: SessionSettings, name: str, value: str) -> None:
        if name == "system_prompt" and not value:
            self._output("Prompt vazio. Use /config reset-prompt para restaurar o padrão.")
            return
        try:
            saved = settings.update(**{name: value})
        except ValueError:
            fields = ", ".join(settings.to_dict())
            self._output(f"Campo desconhecido: {name}. Campos: {fields}")
            return
        if not saved:
            self._output(SAVE_FAILED)

        if name == "system_prompt":
            self.session.system_prompt = settings.system_prompt
        elif name in ("anthropic_api_key", "selected_model"):
            self.session.provider = create_provider(
                self._config.llm,
                anthropic_api_key=settings.anthropic_api_key,
                selected_model=settings.selected_model,
            )
        elif name == "avwx_api_key" and self._weather is not None:
            self._weather.api_key = value
        self._output(f"{name} atualizado.")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="ATC Virtual - treinamento de fraseologia")

    parser.add_argument("--aircraft", help="Aircraft and callsign (e.g., 'C172 PR-ABC')")
    parser.add_argument("--from", dest="departure", help="Departure ICAO (e.g., SBGR)")
    parser.add_argument("--to", dest="arrival", help="Arrival ICAO (e.g., SBRJ)")
    parser.add_argument("--rules", choices=[r.value for r in FlightRules], default="VFR")
    parser.add_argument("--mode", choices=[m.value for m in FlightMode], default="TREINO")
    parser.add_argument("--model", help="Gateway model (must be in the allowed list)")
    parser.add_argument(
        "--request", help="Answer one JSON chat request from a file ('-' for stdin) and exit"
    )
    parser.add_argument("--config", type=Path, help="Path to configuration YAML file")
    parser.add_argument("--settings", type=Path, help="Path to settings JSON file")
    parser.add_argument("--log-level", help="Override log level (e.g., DEBUG)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(argv)
    if args.request is None and not (args.aircraft and args.departure and args.arrival):
        parser.error("--aircraft, --from and --to are required")
    return args


def create_weather_service(config: AppConfig, settings: SessionSettings) -> WeatherService:
    """Create the AVWX client from configuration and the user's key."""
    return WeatherService(
        api_key=settings.avwx_api_key,
        base_url=config.weather.base_url,
        cache_duration=config.weather.cache_duration,
        api_timeout=config.weather.api_timeout,
    )


def build_session(
    args: argparse.Namespace,
    config: AppConfig,
    settings: SessionSettings,
    weather: WeatherService | None = None,
) -> ATCSession:
    """Create the session for the parsed arguments.

    Args:
        args: Parsed arguments.
        config: Application configuration.
        settings: User settings (keys, prompt, model).
        weather: Weather client; one is created from the settings when None.

    Returns:
        Ready session.

    Raises:
        InputValidationError: If an airport code is invalid.
    """
    weather = weather or create_weather_service(config, settings)

    departure = args.departure.strip().upper()
    arrival = args.arrival.strip().upper()
    if not weather.station_exists(departure):
        raise InputValidationError("ICAO de saída inválido", field="departureIcao")
    if not weather.station_exists(arrival):
        raise InputValidationError("ICAO de chegada inválido", field="arrivalIcao")

    aircraft = args.aircraft.strip()
    if not aircraft or len(aircraft) > config.limits.max_aircraft_length:
        raise InputValidationError("Aeronave inválida", field="aircraft")

    flight = FlightData(
        aircraft=aircraft,
        departure_icao=departure,
        arrival_icao=arrival,
        flight_type=FlightRules(args.rules),
        mode=FlightMode(args.mode),
    )

    weather_context = asyncio.run(fetch_weather_context(weather, departure, arrival))
    if not weather_context:
        logger.info("No weather available for %s/%s", departure, arrival)

    provider = create_provider(
        config.llm,
        anthropic_api_key=settings.anthropic_api_key,
        selected_model=args.model or settings.selected_model,
    )
    resolver = FrequencyResolver(
        station_source=weather.get_station_frequencies if weather.has_api_key else None
    )

    return ATCSession(
        flight,
        provider,
        frequency_resolver=resolver,
        system_prompt=settings.system_prompt,
        weather_context=weather_context[: config.limits.max_metar_context_length],
        limits=config.limits,
    )


def answer_request(source: str, config: AppConfig) -> int:
    """Answer one wire-form chat request and print the JSON body.

    Args:
        source: Path to a JSON file, or "-" for stdin.
        config: Application configuration.

    Returns:
        0 when answered, 1 when the body carries an error.
    """
    try:
        if source == "-":
            payload = json.load(sys.stdin)
        else:
            with open(source, encoding="utf-8") as f:
                payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not read chat request %s: %s", source, e)
        payload = None

    body = handle_chat_request(payload, config)
    print(json.dumps(body, ensure_ascii=False))
    return 1 if "error" in body else 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success).
    """
    args = parse_args(argv)
    initialize_logging(level=args.log_level)

    config = load_config(args.config)
    if args.request is not None:
        return answer_request(args.request, config)

    settings = SessionSettings()
    settings.load(args.settings)
    weather = create_weather_service(config, settings)

    try:
        session = build_session(args, config, settings, weather)
    except InputValidationError as e:
        print(f"Erro: {e.user_message}", file=sys.stderr)
        return 2

    logger.info("Session started: %s -> %s", session.flight_data.departure_icao, session.flight_data.arrival_icao)
    ChatLoop(session, settings=settings, config=config, weather=weather).run()
    logger.info("Session ended")
    return 0


if __name__ == "__main__":
    sys.exit(main())

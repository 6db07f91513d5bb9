"""Application configuration loaded from YAML.

Configuration holds deployment-level values (provider endpoints, model
list, input limits, timeouts). User-editable values such as API keys and
the persona prompt live in ``atcvirtual.settings`` instead.

Typical usage:
    from atcvirtual.core.config import load_config

    config = load_config()
    timeout = config.llm.request_timeout
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from atcvirtual.core.logging_system import get_logger
from atcvirtual.core.resource_path import get_config_path

logger = get_logger(__name__)

DEFAULT_MODEL = "google/gemini-3-flash-preview"


@dataclass
class LLMConfig:
    """LLM provider settings.

    Attributes:
        gateway_url: OpenAI-compatible chat completions endpoint.
        gateway_key_env: Environment variable holding the gateway key.
        default_model: Model used when the requested one is not allowed.
        allowed_models: Models accepted from the client.
        anthropic_url: Anthropic Messages API endpoint.
        anthropic_version: Value for the anthropic-version header.
        anthropic_model: Model id used with a user-supplied Anthropic key.
        max_tokens: Completion token limit for Anthropic.
        request_timeout: Timeout for one LLM round-trip in seconds.
    """

    gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    gateway_key_env: str = "ATC_VIRTUAL_GATEWAY_KEY"
    default_model: str = DEFAULT_MODEL
    allowed_models: list[str] = field(default_factory=lambda: [DEFAULT_MODEL])
    anthropic_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_version: str = "2023-06-01"
    anthropic_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    request_timeout: float = 60.0


@dataclass
class LimitsConfig:
    """Size limits enforced at the request boundary."""

    max_message_length: int = 5000
    max_history_size: int = 50
    max_system_prompt_length: int = 10000
    max_metar_context_length: int = 5000
    max_api_key_length: int = 200
    max_icao_length: int = 4
    max_aircraft_length: int = 100


@dataclass
class WeatherConfig:
    """Weather API settings."""

    base_url: str = "https://avwx.rest/api"
    cache_duration: float = 300.0
    api_timeout: float = 5.0


@dataclass
class AppConfig:
    """Complete application configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        """Build configuration from a parsed YAML mapping.

        Unknown keys are ignored with a warning; missing keys keep defaults.

        Args:
            data: Parsed YAML content.

        Returns:
            AppConfig instance.
        """
        return cls(
            llm=_build_section(LLMConfig, data.get("llm")),
            limits=_build_section(LimitsConfig, data.get("limits")),
            weather=_build_section(WeatherConfig, data.get("weather")),
        )


def _build_section(section_cls: type, raw: Any) -> Any:
    if not isinstance(raw, dict):
        return section_cls()
    known = {f.name for f in fields(section_cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", section_cls.__name__, sorted(unknown))
    return section_cls(**{k: v for k, v in raw.items() if k in known})


def load_config(config_path: Path | str | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Explicit config file. Defaults to the packaged
            config/atc_virtual.yaml.

    Returns:
        AppConfig, with built-in defaults when no file could be read.
    """
    paths = [Path(config_path)] if config_path else [get_config_path("atc_virtual.yaml")]

    for path in paths:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            logger.info("Loaded config from: %s", path)
            return AppConfig.from_dict(data)

    logger.warning("No config file found, using defaults")
    return AppConfig()

"""User settings management.

Holds API keys, the persona prompt and the selected model. Settings are
stored in ~/.atcvirtual/settings.json under the "session" key and are
written back on every update.

Typical usage:
    from atcvirtual.settings import SessionSettings

    settings = SessionSettings()
    settings.load()
    settings.update(avwx_api_key="...")
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from atcvirtual.core.config import DEFAULT_MODEL
from atcvirtual.core.logging_system import get_logger
from atcvirtual.core.resource_path import get_user_data_dir

logger = get_logger(__name__)

SETTINGS_SECTION = "session"

DEFAULT_SYSTEM_PROMPT = """# ATC VIRTUAL

# TOP-P do assistente: 0.1
# Temperatura do assistente: 0.1

## PAPEL DO ASSISTENTE

Você atuará **exclusivamente como ATC (Air Traffic Control)** em um simulador de voo, acumulando **duas funções simultâneas**:

1. **ATC Operacional [iniciar mensagem com "📡 ATC:"]**
   - Emite autorizações
   - Dá instruções
   - Controla fluxo, pista, vento, QNH e tráfego fictício
   - Usa fraseologia padrão ICAO
   - Estranha comunicações incorretas como um ATC real

2. **Instrutor Avaliador [iniciar mensagem com "🧠 Avaliador:"]**
   - Analisa cada chamada do piloto
   - Corrige erros sem suavizar
   - Exige repetição correta quando necessário
   - Faz debriefing técnico por fase ou por voo

🚫 Nunca misture instrução didática com comunicação de rádio."""

_STRING_FIELDS = (
    "openai_api_key",
    "avwx_api_key",
    "anthropic_api_key",
    "elevenlabs_api_key",
    "system_prompt",
    "selected_model",
)


def _default_settings_path() -> Path:
    return get_user_data_dir() / "settings.json"


@dataclass
class SessionSettings:
    """User settings with persistence.

    Attributes:
        openai_api_key: OpenAI key (kept for the speech features).
        avwx_api_key: AVWX weather API token.
        anthropic_api_key: Anthropic key; selects the Anthropic provider when set.
        elevenlabs_api_key: ElevenLabs key (kept for the speech features).
        system_prompt: Persona prompt sent ahead of the flight context.
        selected_model: Gateway model.
    """

    openai_api_key: str = ""
    avwx_api_key: str = ""
    anthropic_api_key: str = ""
    elevenlabs_api_key: str = ""
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    selected_model: str = DEFAULT_MODEL
    _settings_path: Path = field(default_factory=_default_settings_path)

    @property
    def settings_path(self) -> Path:
        return self._settings_path

    def load(self, path: Path | str | None = None) -> bool:
        """Load settings from file.

        Missing or non-string entries keep their defaults; an unreadable
        file leaves every field at its default.

        Args:
            path: Optional path to settings file.
                 Defaults to ~/.atcvirtual/settings.json.

        Returns:
            True if loaded successfully, False otherwise.
        """
        if path is not None:
            self._settings_path = Path(path)

        if not self._settings_path.exists():
            logger.info("No settings file found, using defaults")
            return False

        try:
            with open(self._settings_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings: %s", e)
            return False

        section = data.get(SETTINGS_SECTION) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            logger.warning("Settings file has no %s section, using defaults", SETTINGS_SECTION)
            return False

        defaults = SessionSettings()
        for name in _STRING_FIELDS:
            value = section.get(name)
            setattr(self, name, value if isinstance(value, str) else getattr(defaults, name))
        if not self.system_prompt.strip():
            self.system_prompt = DEFAULT_SYSTEM_PROMPT

        logger.info("Loaded settings from %s", self._settings_path)
        return True

    def save(self, path: Path | str | None = None) -> bool:
        """Save settings to file, preserving other sections.

        Args:
            path: Optional path to settings file.
                 Defaults to ~/.atcvirtual/settings.json.

        Returns:
            True if saved successfully, False otherwise.
        """
        if path is not None:
            self._settings_path = Path(path)

        existing_data = self._read_existing()
        try:
            self._settings_path.parent.mkdir(parents=True, exist_ok=True)
            existing_data[SETTINGS_SECTION] = self.to_dict()

            with open(self._settings_path, "w", encoding="utf-8") as f:
                json.dump(existing_data, f, indent=2, ensure_ascii=False)

            logger.info("Saved settings to %s", self._settings_path)
            return True
        except OSError as e:
            logger.error("Failed to save settings: %s", e)
            return False

    def _read_existing(self) -> dict[str, Any]:
        """Read the current file so other sections survive a save.

        A corrupt or unreadable file counts as empty and is overwritten.
        """
        if not self._settings_path.exists():
            return {}
        try:
            with open(self._settings_path, encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Settings file unreadable, it will be overwritten: %s", e)
            return {}
        return loaded if isinstance(loaded, dict) else {}

    def update(self, **changes: str) -> bool:
        """Apply changes and write them back immediately.

        Args:
            **changes: Field values to change (e.g., avwx_api_key="...").

        Returns:
            True if the new values were saved.

        Raises:
            ValueError: If a name is not a settings field.
        """
        unknown = set(changes) - set(_STRING_FIELDS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self, name, value)
        return self.save()

    def reset_system_prompt(self) -> bool:
        """Restore the default persona prompt and save."""
        return self.update(system_prompt=DEFAULT_SYSTEM_PROMPT)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary representation of settings.
        """
        return {name: getattr(self, name) for name in _STRING_FIELDS}

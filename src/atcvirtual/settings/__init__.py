"""User settings for ATC Virtual."""

from atcvirtual.settings.session_settings import DEFAULT_SYSTEM_PROMPT, SessionSettings

__all__ = ["DEFAULT_SYSTEM_PROMPT", "SessionSettings"]

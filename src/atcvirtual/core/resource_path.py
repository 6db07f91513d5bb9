"""Resource path resolution for packaged config and per-user data.

Typical usage:
    from atcvirtual.core.resource_path import get_config_path

    config_file = get_config_path("atc_virtual.yaml")
"""

import os
from pathlib import Path

# Packaged configuration directory (src/atcvirtual/config)
_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

# Environment override for the per-user data directory
USER_DATA_ENV = "ATC_VIRTUAL_HOME"


def get_config_dir() -> Path:
    """Get the packaged configuration directory."""
    return _CONFIG_DIR


def get_config_path(name: str) -> Path:
    """Resolve a file inside the packaged configuration directory.

    Args:
        name: Relative file name (e.g., "logging.yaml").

    Returns:
        Absolute path to the config file. The file may not exist.
    """
    return get_config_dir() / name


def get_user_data_dir() -> Path:
    """Get the per-user data directory (settings, logs).

    Defaults to ~/.atcvirtual, overridable with ATC_VIRTUAL_HOME.
    """
    override = os.environ.get(USER_DATA_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".atcvirtual"

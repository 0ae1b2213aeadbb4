"""
Configuration loader — reads trust.yml into a ReconciliationConfig.

Reads YAML, validates against the Pydantic schema, and returns the
typed desired state.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from trustctl.core.models.config import ReconciliationConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "trust.yml"

# Optional wrapper key, mirroring the ca_cert class name
_WRAPPER_KEY = "ca_cert"


class ConfigError(Exception):
    """Raised when the trust configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for trust.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to trust.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def parse_config(data: object, origin: str = "<config>") -> ReconciliationConfig:
    """Validate already-parsed YAML/JSON data.

    Raises:
        ConfigError: If the data does not describe a valid configuration.
    """
    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {origin}, got {type(data).__name__}")

    if _WRAPPER_KEY in data:
        data = data[_WRAPPER_KEY] or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping under '{_WRAPPER_KEY}' in {origin}")

    try:
        return ReconciliationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid trust configuration in {origin}: {e}") from e


def load_config(path: Path | None = None) -> ReconciliationConfig:
    """Load and validate the trust configuration.

    Args:
        path: Explicit path to trust.yml. If None, searches upward.

    Returns:
        Validated ReconciliationConfig.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(f"No {CONFIG_FILE} found. Specify one with --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading trust config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = parse_config(data, origin=str(path))
    logger.info("Loaded trust config %s with %d certificates", path, len(config.certificates))
    return config

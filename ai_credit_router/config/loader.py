"""
Configuration management and loading.

Handles router settings from an optional YAML file and provider
credentials from environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ai_credit_router.core.errors import ConfigurationError
from ai_credit_router.storage.db import DEFAULT_DB_PATH

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

OPENAI_KEY_ENV = "OPENAI_API_KEY"
ANTHROPIC_KEY_ENV = "ANTHROPIC_API_KEY"


@dataclass(frozen=True)
class RouterConfig:
    """Complete router configuration.

    Passed explicitly to the router; there is no global configuration state.
    """
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    mock_responses: bool = False
    timeout: Optional[float] = None
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        """Validate configuration values."""
        if not self.default_system_prompt or not self.default_system_prompt.strip():
            raise ConfigurationError("default_system_prompt cannot be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")
        if not self.db_path:
            raise ConfigurationError("db_path cannot be empty")

    @property
    def has_primary_credential(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_secondary_credential(self) -> bool:
        return bool(self.anthropic_api_key)


_ALLOWED_KEYS = {
    'openai_api_key': str,
    'anthropic_api_key': str,
    'default_system_prompt': str,
    'mock_responses': bool,
    'timeout': (int, float),
    'db_path': str,
}


def load_router_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RouterConfig:
    """Load and validate router configuration.

    Values from the YAML file win; credentials missing from the file are
    taken from OPENAI_API_KEY and ANTHROPIC_API_KEY.

    Args:
        path: Optional path to a YAML configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated RouterConfig object

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    environ = os.environ if environ is None else environ

    raw_config: Dict[str, Any] = {}
    if path is not None:
        raw_config = _read_yaml(path)

    unknown_keys = set(raw_config.keys()) - set(_ALLOWED_KEYS)
    if unknown_keys:
        raise ConfigurationError(f"Unknown configuration keys: {unknown_keys}")

    for key, expected in _ALLOWED_KEYS.items():
        value = raw_config.get(key)
        if value is None:
            continue
        # bool is an int subclass; only accept it where bool is expected
        if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
            raise ConfigurationError(f"'{key}' has invalid type {type(value).__name__}")

    if not raw_config.get('openai_api_key'):
        raw_config['openai_api_key'] = environ.get(OPENAI_KEY_ENV) or None
    if not raw_config.get('anthropic_api_key'):
        raw_config['anthropic_api_key'] = environ.get(ANTHROPIC_KEY_ENV) or None

    if raw_config.get('timeout') is not None:
        raw_config['timeout'] = float(raw_config['timeout'])

    return RouterConfig(**{k: v for k, v in raw_config.items() if v is not None})


def _read_yaml(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Router config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e

    if not raw_config:
        raise ConfigurationError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    return raw_config

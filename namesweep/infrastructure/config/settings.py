"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.namesweep/config.yaml). Nested YAML mappings are
addressed with dotted keys, e.g. ``run.workers``.
"""

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from namesweep.domain.models.run_config import RunConfig

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".namesweep"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "NAMESWEEP_"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values

    Args:
        config_file: Path to the YAML configuration file (default ~/.namesweep/config.yaml).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    _loaded = True


def reset_configuration() -> None:
    """Forgets everything loaded so the next load_configuration() re-reads."""
    global _config, _loaded
    _config = {}
    _loaded = False


def env_key_for(key: str) -> str:
    """``run.workers`` -> ``NAMESWEEP_RUN_WORKERS``."""
    return ENV_PREFIX + key.upper().replace(".", "_")


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _lookup(mapping: Dict[str, Any], key: str) -> Any:
    if key in mapping:
        return mapping[key]
    node: Any = mapping
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(key)
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Priority:
    1. Test configuration
    2. Environment variable (``NAMESWEEP_`` + key upper-cased)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. ``logging.level``.
        default: Default value if the key is not found.

    Returns:
        The configuration value.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_key_for(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    try:
        return _lookup(_config, key)
    except KeyError:
        logger.debug(f"Config key '{key}' not found. Returning default: {default}")
        return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_log_level() -> str:
    return str(get_config("logging.level", "WARNING")).upper()


def get_log_file() -> Optional[str]:
    value = get_config("logging.file")
    return str(value) if value else None


def load_run_config(**overrides: Any) -> RunConfig:
    """Builds the RunConfig from ``run.<field>`` settings plus explicit overrides.

    Overrides whose value is None are ignored, so CLI options left unset fall
    through to the configured or built-in defaults.

    Raises:
        ValueError: If the resulting values are out of range.
    """
    values: Dict[str, Any] = {}
    for f in fields(RunConfig):
        configured = get_config(f"run.{f.name}")
        if configured is not None:
            values[f.name] = configured
    values.update({name: value for name, value in overrides.items() if value is not None})

    if "fatal_statuses" in values:
        raw = values["fatal_statuses"]
        if isinstance(raw, str):
            raw = [part for part in raw.replace(",", " ").split() if part]
        elif isinstance(raw, int):
            raw = [raw]
        values["fatal_statuses"] = frozenset(int(status) for status in raw)

    logger.debug(f"Run configuration values: {values}")
    return RunConfig(**values)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

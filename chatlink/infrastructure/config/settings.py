"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.chatlink/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".chatlink"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "CHATLINK_"
# Identifiers and credentials are returned exactly as set, never coerced
VERBATIM_KEYS = frozenset({"api.token", "user.id", "api.base_url"})

DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_CACHE_TTL_SECONDS = 60.0
DEFAULT_MIN_REQUEST_INTERVAL = 1.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 2.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_SNAPSHOT_DIR = DEFAULT_CONFIG_DIR / "snapshots"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to the getters

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next load_configuration re-reads it."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('api': {'base_url'} -> 'api.base_url')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (CHATLINK_API_BASE_URL, then API_BASE_URL for 'api.base_url')
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, dotted for nested YAML keys.
        default: Default value if the key is not found.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    for candidate in (f"{ENV_PREFIX}{env_key}", env_key):
        if candidate in os.environ:
            value = os.environ[candidate]
            return value if key in VERBATIM_KEYS else _coerce(value)

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
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

def get_api_base_url() -> str:
    return str(get_config("api.base_url", DEFAULT_API_BASE_URL))


def get_api_token() -> Optional[str]:
    """Bearer token used when no interactive session provider is wired in."""
    token = get_config("api.token")
    return str(token) if token else None


def get_user_id() -> Optional[str]:
    user_id = get_config("user.id")
    return str(user_id) if user_id else None


def get_cache_ttl_seconds() -> float:
    return float(get_config("cache.ttl_seconds", DEFAULT_CACHE_TTL_SECONDS))


def get_min_request_interval() -> float:
    return float(get_config("rate_limit.min_interval_seconds", DEFAULT_MIN_REQUEST_INTERVAL))


def get_max_retries() -> int:
    return int(get_config("retry.max_retries", DEFAULT_MAX_RETRIES))


def get_retry_base_delay() -> float:
    return float(get_config("retry.base_delay_seconds", DEFAULT_RETRY_BASE_DELAY))


def get_request_timeout() -> float:
    return float(get_config("api.timeout_seconds", DEFAULT_REQUEST_TIMEOUT))


def get_snapshot_dir() -> Optional[Path]:
    """Directory of the on-disk snapshot store; 'none' disables persistence."""
    value = get_config("snapshot.dir", str(DEFAULT_SNAPSHOT_DIR))
    if value is None or str(value).lower() in ("", "none", "off"):
        return None
    return Path(str(value)).expanduser()


def get_log_level() -> str:
    return str(get_config("logging.level", "WARNING")).upper()


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values for testing purposes.

    These values override any existing configuration.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

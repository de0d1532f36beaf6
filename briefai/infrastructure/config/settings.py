"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables and a YAML
configuration file (~/.briefai/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from briefai.domain.models.common import BackoffPolicy
from briefai.domain.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".briefai"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

# Location codes used by DataForSEO for the shipped locales
LOCATION_CODES = {"en": 2840, "tr": 2792}

_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('fanout.batch_size')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE,
    env_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment variables (including those loaded from .env)
    3. YAML configuration file
    4. Defaults passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config {config_file}: {e}") from e
        if isinstance(yaml_config, dict):
            _config.update(_flatten(yaml_config))
            logger.info(f"Loaded configuration from YAML: {config_file}")
        elif yaml_config is not None:
            logger.warning(f"YAML config file {config_file} did not contain a mapping.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables win over .env
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None, coerce: bool = True) -> Any:
    """Gets a configuration value by dotted key.

    The environment variable for ``fanout.batch_size`` is ``FANOUT_BATCH_SIZE``.
    With ``coerce=False`` environment values are returned as raw strings.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        raw = os.environ[env_key]
        return _coerce(raw) if coerce else raw

    if key in _config:
        return _config[key]

    return default


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Overrides configuration values; used by tests."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    _test_config.clear()


# --- Convenience Functions ---

def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _secret(env_key: str, config_key: str) -> Optional[str]:
    """Reads a credential as the raw string, without type coercion."""
    return _optional_str(get_config(env_key, coerce=False) or get_config(config_key, coerce=False))


def get_gemini_api_key() -> Optional[str]:
    return _secret("GEMINI_API_KEY", "gemini.api_key")


def get_groq_api_key() -> Optional[str]:
    return _secret("GROQ_API_KEY", "groq.api_key")


def get_default_provider() -> str:
    return str(get_config("ai.default_provider", "gemini"))


def get_default_model(provider: Optional[str] = None) -> Optional[str]:
    selected = provider or get_default_provider()
    return _optional_str(get_config(f"ai.{selected}.model"))


def get_dataforseo_credentials() -> Tuple[str, str]:
    """Returns (login, password); raises ConfigurationError if either is missing."""
    login = _secret("DATAFORSEO_LOGIN", "dataforseo.login")
    password = _secret("DATAFORSEO_PASSWORD", "dataforseo.password")
    if not login or not password:
        raise ConfigurationError(
            "DataForSEO credentials missing: set DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD"
        )
    return login, password


def get_serp_locale() -> Tuple[str, int]:
    """Returns (language_code, location_code) for SERP requests."""
    language = str(get_config("serp.language", "en"))
    location = get_config("serp.location_code")
    if location is None:
        location = LOCATION_CODES.get(language, LOCATION_CODES["en"])
    return language, int(location)


def get_backoff_policy() -> BackoffPolicy:
    return BackoffPolicy(
        max_attempts=int(get_config("retry.max_attempts", 4)),
        base_delay_s=float(get_config("retry.base_delay_s", 1.0)),
        max_delay_s=float(get_config("retry.max_delay_s", 10.0)),
    )


def get_breaker_settings() -> Tuple[int, float]:
    """Returns (failure_threshold, recovery_timeout_s)."""
    return (
        int(get_config("breaker.failure_threshold", 5)),
        float(get_config("breaker.recovery_timeout_s", 60.0)),
    )


def get_cache_settings() -> Tuple[float, int]:
    """Returns (default_ttl_s, max_items)."""
    return (
        float(get_config("cache.ttl_s", 3600.0)),
        int(get_config("cache.max_items", 1000)),
    )


def get_fanout_settings() -> Dict[str, Any]:
    return {
        "max_queries": int(get_config("fanout.max_queries", 5)),
        "batch_size": int(get_config("fanout.batch_size", 3)),
        "inter_batch_delay_s": float(get_config("fanout.inter_batch_delay_s", 1.0)),
    }

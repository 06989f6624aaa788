"""Environment variable configuration.

Values come from an optional ``.env`` file first, then the process
environment. Each value is validated; an invalid value is logged and left
unset so the JSON/default value stays in effect.
"""
import os
import logging
from typing import Optional, Dict, Union
from pathlib import Path
from dataclasses import dataclass

from .defaults import SERIAL_CARDINALITIES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    crm_base_url: Optional[str] = None
    crm_api_token: Optional[str] = None
    tesseract_cmd: Optional[str] = None
    serial_cardinality: Optional[str] = None
    recognition_timeout_s: Optional[float] = None
    debug_logging: bool = False
    log_dir: Optional[str] = None

    @property
    def has_crm_token(self) -> bool:
        return bool(self.crm_api_token)


class EnvironmentError(Exception):
    """Custom exception for environment configuration errors."""
    pass


class EnvironmentValidator:
    """Validates environment variable values."""

    @classmethod
    def validate_url(cls, url: str) -> str:
        url = url.strip().rstrip('/')
        if not url.startswith(('http://', 'https://')):
            raise EnvironmentError(f"URL must start with http:// or https://: {url}")
        return url

    @classmethod
    def validate_choice(cls, value: str, choices) -> str:
        value = value.strip().lower()
        if value not in choices:
            raise EnvironmentError(f"Value '{value}' not one of {', '.join(choices)}")
        return value

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                               min_val: Optional[Union[int, float]] = None,
                               max_val: Optional[Union[int, float]] = None,
                               value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            EnvironmentError: If validation fails
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise EnvironmentError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise EnvironmentError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise EnvironmentError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file (defaults to ./.env)."""
    if env_path is None:
        env_path = ".env"

    env_vars: Dict[str, str] = {}
    env_file_path = Path(env_path)

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_path} not found, using system environment only")
        return env_vars

    try:
        with open(env_file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()

                if not line or line.startswith('#'):
                    continue

                if '=' in line:
                    key, value = line.split('=', 1)
                    key = key.strip()
                    value = value.strip()

                    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                        value = value[1:-1]

                    env_vars[key] = value
                else:
                    logger.warning(f"Invalid line format in {env_path}:{line_num}: {line}")

        logger.info(f"Loaded {len(env_vars)} variables from {env_path}")

    except OSError as e:
        logger.error(f"Error reading environment file {env_path}: {e}")

    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Get an environment variable, preferring values from the .env file."""
    if env_vars and key in env_vars:
        value = env_vars[key]
    else:
        value = os.getenv(key, default)
    if value is not None and value.strip() == "":
        return default
    return value


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment configuration."""
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()
    values: Dict[str, object] = {}

    base_url = get_env_var("CRM_BASE_URL", env_vars=env_vars)
    if base_url:
        try:
            values["crm_base_url"] = validator.validate_url(base_url)
        except EnvironmentError as e:
            logger.warning(f"Ignoring CRM_BASE_URL: {e}")

    token = get_env_var("CRM_API_TOKEN", env_vars=env_vars)
    if token:
        values["crm_api_token"] = token.strip()

    tesseract_cmd = get_env_var("TESSERACT_CMD", env_vars=env_vars)
    if tesseract_cmd:
        values["tesseract_cmd"] = tesseract_cmd.strip()

    cardinality = get_env_var("SERIAL_CARDINALITY", env_vars=env_vars)
    if cardinality:
        try:
            values["serial_cardinality"] = validator.validate_choice(cardinality, SERIAL_CARDINALITIES)
        except EnvironmentError as e:
            logger.warning(f"Ignoring SERIAL_CARDINALITY: {e}")

    timeout = get_env_var("RECOGNITION_TIMEOUT", env_vars=env_vars)
    if timeout:
        try:
            values["recognition_timeout_s"] = validator.validate_numeric_range(timeout, 0, 60, float)
        except EnvironmentError as e:
            logger.warning(f"Ignoring RECOGNITION_TIMEOUT: {e}")

    debug_str = get_env_var("DEBUG_LOGGING", "false", env_vars=env_vars)
    values["debug_logging"] = debug_str.lower() in ('true', '1', 'yes', 'on')

    log_dir = get_env_var("LOG_DIR", env_vars=env_vars)
    if log_dir:
        values["log_dir"] = log_dir.strip()

    config = EnvironmentConfig(**values)
    logger.debug(f"Environment overrides: {sorted(k for k in values if k != 'crm_api_token')}")
    return config


__all__ = [
    "EnvironmentConfig",
    "EnvironmentError",
    "EnvironmentValidator",
    "load_environment_config",
    "load_env_file",
    "get_env_var"
]

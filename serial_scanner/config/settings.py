"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
scanner services instead of relying on module-level globals. Values come from
``DEFAULT_CONFIG``, then a JSON file, then environment overrides.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG, SERIAL_CARDINALITIES
from .env_config import load_environment_config, EnvironmentConfig, EnvironmentError
from ..core.entities import Position, Rect

logger = logging.getLogger(__name__)


def _dict_default(key: str):
    return field(default_factory=lambda: dict(DEFAULT_CONFIG[key]))


@dataclass(slots=True)
class Config:
    # Camera
    rear_camera_index: int = DEFAULT_CONFIG["rear_camera_index"]
    camera_width: int = DEFAULT_CONFIG["camera_width"]
    camera_height: int = DEFAULT_CONFIG["camera_height"]
    camera_fps: int = DEFAULT_CONFIG["camera_fps"]
    camera_probe_limit: int = DEFAULT_CONFIG["camera_probe_limit"]

    # Viewport
    display_rect: Dict[str, float] = _dict_default("display_rect")
    scan_region: Dict[str, float] = _dict_default("scan_region")

    # Scan loop
    scan_delay_ms: int = DEFAULT_CONFIG["scan_delay_ms"]
    roi_padding: int = DEFAULT_CONFIG["roi_padding"]

    # Enhancement
    enhancement_enabled: bool = DEFAULT_CONFIG["enhancement_enabled"]
    contrast_alpha: float = DEFAULT_CONFIG["contrast_alpha"]
    brightness_beta: float = DEFAULT_CONFIG["brightness_beta"]
    min_raster_size: int = DEFAULT_CONFIG["min_raster_size"]

    # Recognition
    tesseract_cmd: str = DEFAULT_CONFIG["tesseract_cmd"]
    ocr_language: str = DEFAULT_CONFIG["ocr_language"]
    ocr_page_seg_mode: int = DEFAULT_CONFIG["ocr_page_seg_mode"]
    ocr_engine_mode: int = DEFAULT_CONFIG["ocr_engine_mode"]
    ocr_char_whitelist: str = DEFAULT_CONFIG["ocr_char_whitelist"]
    recognition_timeout_s: float = DEFAULT_CONFIG["recognition_timeout_s"]

    # Geolocation
    geolocation_timeout_ms: int = DEFAULT_CONFIG["geolocation_timeout_ms"]
    site_latitude: Optional[float] = DEFAULT_CONFIG["site_latitude"]
    site_longitude: Optional[float] = DEFAULT_CONFIG["site_longitude"]
    site_accuracy: Optional[float] = DEFAULT_CONFIG["site_accuracy"]

    # Deal store
    crm_base_url: str = DEFAULT_CONFIG["crm_base_url"]
    crm_timeout: int = DEFAULT_CONFIG["crm_timeout"]
    crm_api_token: str = DEFAULT_CONFIG["crm_api_token"]
    serial_cardinality: str = DEFAULT_CONFIG["serial_cardinality"]

    # Assignment flow
    confirmation_delay_ms: int = DEFAULT_CONFIG["confirmation_delay_ms"]

    # Debug and logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Set when the CRM token came from the environment
    _has_env_token: bool = False

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra", {})
        d.pop("_has_env_token", None)
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, self.extra.get(key, default))

    def get_display_rect(self) -> Rect:
        return Rect.from_dict(self.display_rect)

    def get_scan_region(self) -> Rect:
        return Rect.from_dict(self.scan_region)

    def get_site_position(self) -> Optional[Position]:
        if self.site_latitude is None or self.site_longitude is None:
            return None
        return Position(lat=float(self.site_latitude), lng=float(self.site_longitude),
                        accuracy=self.site_accuracy)


_INTERNAL_FIELDS = ("extra", "_has_env_token")


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from a JSON file with environment overrides.

    Missing or malformed files fall back to defaults; this never raises.

    Args:
        path: Path to config.json file
        env_file: Path to .env file (optional)

    Returns:
        Config: Loaded and validated configuration
    """
    data: Dict[str, Any] = {}
    env_config: Optional[EnvironmentConfig] = None

    try:
        env_config = load_environment_config(env_file)
    except EnvironmentError as e:
        logger.warning(f"Environment configuration failed: {e}")

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if loaded_data is None:
                logger.warning(f"Configuration file '{path}' is empty, using defaults")
            elif not isinstance(loaded_data, dict):
                logger.error(f"Configuration file '{path}' does not contain a JSON object, using defaults")
            else:
                data = loaded_data
                logger.info(f"Loaded configuration from '{path}'")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except PermissionError:
            logger.error(f"Permission denied reading configuration file '{path}'. Using defaults.")
        except OSError as e:
            logger.error(f"Error reading configuration file '{path}': {e}. Using defaults.")
    else:
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")

    merged = {**DEFAULT_CONFIG, **data}

    if env_config:
        merged = _apply_environment_overrides(merged, env_config)

    _validate_values(merged)

    extra = {k: v for k, v in merged.items() if k not in Config.__annotations__}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    cfg = Config(**{k: merged[k] for k in Config.__annotations__ if k not in _INTERNAL_FIELDS}, extra=extra)
    cfg._has_env_token = env_config is not None and env_config.has_crm_token
    return cfg


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to a JSON file.

    A CRM token supplied through the environment is never written out.
    """
    config_dict = cfg.to_dict()
    if cfg._has_env_token:
        config_dict["crm_api_token"] = ""

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config_dict, f, indent=2, ensure_ascii=False)
        logger.info(f"Configuration saved to '{path}'")
    except PermissionError:
        logger.error(f"Permission denied writing configuration file '{path}'")
    except OSError as e:
        logger.error(f"OS error saving configuration file '{path}': {e}")


def _apply_environment_overrides(config_dict: Dict[str, Any], env_config: EnvironmentConfig) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    for key in ("crm_base_url", "crm_api_token", "tesseract_cmd",
                "serial_cardinality", "recognition_timeout_s", "log_dir"):
        value = getattr(env_config, key)
        if value is not None:
            config_dict[key] = value

    if env_config.debug_logging:
        config_dict["debug"] = True
        config_dict["log_level"] = "DEBUG"

    return config_dict


_NUMERIC_RANGES = {
    "scan_delay_ms": (0, 10000, int),
    "roi_padding": (0, 100, int),
    "camera_probe_limit": (1, 64, int),
    "contrast_alpha": (0.1, 5.0, float),
    "brightness_beta": (-255, 255, float),
    "min_raster_size": (1, 2000, int),
    "recognition_timeout_s": (0, 60, float),
    "geolocation_timeout_ms": (0, 120000, int),
    "crm_timeout": (1, 300, int),
    "confirmation_delay_ms": (0, 60000, int),
}


def _validate_values(config_dict: Dict[str, Any]) -> None:
    """Replace out-of-range or mistyped values with their defaults."""
    for key, (low, high, value_type) in _NUMERIC_RANGES.items():
        try:
            value = value_type(config_dict[key])
        except (TypeError, ValueError):
            logger.warning(f"Setting '{key}' is not a {value_type.__name__}: {config_dict[key]!r}. Using default.")
            config_dict[key] = DEFAULT_CONFIG[key]
            continue
        if not low <= value <= high:
            logger.warning(f"Setting '{key}'={value} outside [{low}, {high}]. Using default.")
            value = DEFAULT_CONFIG[key]
        config_dict[key] = value

    if config_dict.get("serial_cardinality") not in SERIAL_CARDINALITIES:
        logger.warning(f"Unknown serial_cardinality {config_dict.get('serial_cardinality')!r}. Using default.")
        config_dict["serial_cardinality"] = DEFAULT_CONFIG["serial_cardinality"]

    for key in ("display_rect", "scan_region"):
        try:
            Rect.from_dict(config_dict[key])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Setting '{key}' is not a rectangle. Using default.")
            config_dict[key] = dict(DEFAULT_CONFIG[key])

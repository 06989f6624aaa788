"""Default configuration values."""

from typing import Any, Dict

from ..core.constants import DIGIT_WHITELIST

DEFAULT_CONFIG: Dict[str, Any] = {
    # Camera
    "rear_camera_index": 0,
    "camera_width": 1280,
    "camera_height": 720,
    "camera_fps": 30,
    "camera_probe_limit": 10,

    # Viewport declared by the presentation layer (device-independent pixels)
    "display_rect": {"left": 0, "top": 0, "width": 1280, "height": 720},
    "scan_region": {"left": 320, "top": 310, "width": 640, "height": 100},

    # Scan loop
    "scan_delay_ms": 200,
    "roi_padding": 5,

    # Enhancement
    "enhancement_enabled": True,
    "contrast_alpha": 1.5,
    "brightness_beta": 30,
    "min_raster_size": 100,

    # Recognition (Tesseract)
    "tesseract_cmd": "",  # empty = tesseract on PATH
    "ocr_language": "eng",
    "ocr_page_seg_mode": 7,  # single text line
    "ocr_engine_mode": 3,
    "ocr_char_whitelist": DIGIT_WHITELIST,
    "recognition_timeout_s": 0,  # 0 = no time box

    # Geolocation
    "geolocation_timeout_ms": 10000,
    "site_latitude": None,
    "site_longitude": None,
    "site_accuracy": None,

    # Deal store
    "crm_base_url": "http://localhost:3000/zoho",
    "crm_timeout": 30,
    "crm_api_token": "",
    "serial_cardinality": "single",  # single | multiple

    # Assignment flow
    "confirmation_delay_ms": 2000,

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "structured_logging": False,
}

SERIAL_CARDINALITIES = ("single", "multiple")

"""
Serial number scan-capture pipeline for equipment nameplates.
"""

__version__ = "1.0.0"
__author__ = "Field Tools Team"

from .config.settings import Config, load_config, save_config
from .core.entities import Asset, Deal, Position, Rect, ROI, ScannedSerial, Session

__all__ = [
    "Config", "load_config", "save_config",
    "Asset", "Deal", "Position", "Rect", "ROI", "ScannedSerial", "Session",
]

"""Pure helpers (geometry, serial text handling)."""

from .geometry import compute_roi, crop_roi
from .serial_text import tokenize, to_candidate, is_valid_serial, iter_valid_serials

__all__ = [
    "compute_roi", "crop_roi",
    "tokenize", "to_candidate", "is_valid_serial", "iter_valid_serials",
]

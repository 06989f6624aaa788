"""Scan-region geometry: map an on-screen rectangle onto frame pixels."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..core.entities import Rect, ROI

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 5


def _round(value: float) -> int:
    # Half-up rounding to match on-screen pixel snapping (round() is banker's)
    return int(np.floor(value + 0.5))


def compute_roi(scan_region: Rect, display_rect: Rect, frame_width: int, frame_height: int,
                padding: int = DEFAULT_PADDING) -> Optional[ROI]:
    """Compute the padded frame-pixel ROI under ``scan_region``.

    Args:
        scan_region: Scan rectangle in on-screen coordinates
        display_rect: Rectangle the video is displayed in, same coordinates
        frame_width: Width of the captured frame in pixels
        frame_height: Height of the captured frame in pixels
        padding: Pixels added on every side, clamped to the frame

    Returns:
        The ROI, or None when the inputs are degenerate (cycle is skipped)
    """
    if scan_region is None or display_rect is None:
        return None
    if scan_region.is_empty or display_rect.is_empty or frame_width <= 0 or frame_height <= 0:
        logger.debug("Invalid scan region dimensions")
        return None

    scale_x = frame_width / display_rect.width
    scale_y = frame_height / display_rect.height

    exact_x = _round((scan_region.left - display_rect.left) * scale_x)
    exact_y = _round((scan_region.top - display_rect.top) * scale_y)
    exact_w = _round(scan_region.width * scale_x)
    exact_h = _round(scan_region.height * scale_y)

    x = max(0, exact_x - padding)
    y = max(0, exact_y - padding)
    width = min(frame_width - x, exact_w + 2 * padding)
    height = min(frame_height - y, exact_h + 2 * padding)

    if width <= 0 or height <= 0:
        logger.debug(f"Scan region outside frame: exact=({exact_x},{exact_y},{exact_w},{exact_h})")
        return None

    return ROI(x=x, y=y, width=width, height=height)


def crop_roi(frame: np.ndarray, roi: ROI) -> Optional[np.ndarray]:
    """Copy the ROI out of ``frame``; None if nothing remains after clipping."""
    rows, cols = roi.as_slices()
    crop = frame[rows, cols]
    if crop.size == 0:
        return None
    return crop.copy()

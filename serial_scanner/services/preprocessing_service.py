"""Optional contrast/threshold enhancement of a cropped raster before OCR."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class EnhancementBackend(Protocol):
    """Synchronous raster -> raster transform."""

    def enhance(self, raster: np.ndarray) -> np.ndarray:
        ...


class OpenCVEnhancementBackend:
    """Greyscale, brightness/contrast, then Otsu binarisation.

    Rasters smaller than ``min_size`` on either side are upscaled first so
    the recognizer has enough pixels per glyph.
    """

    def __init__(self, alpha: float = 1.5, beta: float = 30, min_size: int = 100):
        self.alpha = alpha
        self.beta = beta
        self.min_size = min_size

    def enhance(self, raster: np.ndarray) -> np.ndarray:
        h, w = raster.shape[:2]
        if w < self.min_size or h < self.min_size:
            raster = cv2.resize(raster, (max(self.min_size, w), max(self.min_size, h)),
                                interpolation=cv2.INTER_CUBIC)

        if raster.ndim == 3 and raster.shape[2] == 4:
            gray = cv2.cvtColor(raster, cv2.COLOR_BGRA2GRAY)
        elif raster.ndim == 3:
            gray = cv2.cvtColor(raster, cv2.COLOR_BGR2GRAY)
        else:
            gray = raster

        adjusted = cv2.convertScaleAbs(gray, alpha=self.alpha, beta=self.beta)
        _, binary = cv2.threshold(adjusted, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary


class ImageEnhancer:
    """Preprocessor adapter; a pure pass-through when no backend is available."""

    def __init__(self, backend: Optional[EnhancementBackend] = None):
        self._backend = backend
        if backend is None:
            logger.info("No enhancement backend, rasters go to recognition unprocessed")

    @classmethod
    def from_config(cls, config) -> "ImageEnhancer":
        if not config.enhancement_enabled:
            return cls(None)
        return cls(OpenCVEnhancementBackend(
            alpha=config.contrast_alpha,
            beta=config.brightness_beta,
            min_size=config.min_raster_size,
        ))

    @property
    def is_available(self) -> bool:
        return self._backend is not None

    def enhance(self, raster: np.ndarray) -> np.ndarray:
        """Return the enhanced raster, or ``raster`` itself on any failure."""
        if self._backend is None:
            return raster
        try:
            return self._backend.enhance(raster)
        except Exception as e:
            logger.warning(f"Image preprocessing failed, using original raster: {e}")
            return raster

"""Tesseract-backed text recognition for narrow serial-number ROIs."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import cv2
import numpy as np
import pytesseract
from PIL import Image

from ..core.constants import DIGIT_WHITELIST
from ..core.exceptions import RecognitionError, RecognitionTimeout, RecognizerInitError

logger = logging.getLogger(__name__)


class TesseractRecognizer:
    """Recognition adapter around a local Tesseract install.

    The engine is restricted to a digit whitelist and single-line page
    segmentation (no layout analysis), which is both faster and more precise
    on a one-line nameplate crop.
    """

    def __init__(self, language: str = "eng", page_seg_mode: int = 7, engine_mode: int = 3,
                 char_whitelist: str = DIGIT_WHITELIST, timeout_s: float = 0,
                 tesseract_cmd: Optional[str] = None):
        self.language = language
        self.page_seg_mode = page_seg_mode
        self.engine_mode = engine_mode
        self.char_whitelist = char_whitelist
        self.timeout_s = timeout_s or 0
        self.tesseract_cmd = tesseract_cmd or None
        self._engine_version: Optional[str] = None

    @classmethod
    def from_config(cls, config) -> "TesseractRecognizer":
        return cls(
            language=config.ocr_language,
            page_seg_mode=config.ocr_page_seg_mode,
            engine_mode=config.ocr_engine_mode,
            char_whitelist=config.ocr_char_whitelist,
            timeout_s=config.recognition_timeout_s,
            tesseract_cmd=config.tesseract_cmd,
        )

    @property
    def is_initialized(self) -> bool:
        return self._engine_version is not None

    @property
    def tesseract_config(self) -> str:
        return (f"--psm {self.page_seg_mode} --oem {self.engine_mode} "
                f"-c tessedit_char_whitelist={self.char_whitelist}")

    def initialize(self) -> None:
        """Point pytesseract at the engine and verify it runs.

        Raises:
            RecognizerInitError: If Tesseract is missing or unusable
        """
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError, RuntimeError) as e:
            raise RecognizerInitError(f"Tesseract unavailable: {e}") from e
        self._engine_version = str(version)
        logger.info(f"Recognizer ready: tesseract {self._engine_version} ({self.tesseract_config})")

    async def recognize(self, raster: np.ndarray) -> str:
        """Run OCR on ``raster`` off the event loop.

        Raises:
            RecognitionError: If the engine fails on this raster
            RecognitionTimeout: If the configured time box elapses
        """
        if not self.is_initialized:
            raise RecognitionError("Recognizer used before initialize()")
        return await asyncio.to_thread(self._recognize_sync, raster)

    def _recognize_sync(self, raster: np.ndarray) -> str:
        image = self._to_pil(raster)
        try:
            text = pytesseract.image_to_string(
                image,
                lang=self.language,
                config=self.tesseract_config,
                timeout=self.timeout_s,
            )
        except RuntimeError as e:
            # pytesseract signals its own timeout as a bare RuntimeError
            if "timeout" in str(e).lower():
                raise RecognitionTimeout(f"Recognition exceeded {self.timeout_s}s") from e
            raise RecognitionError(str(e)) from e
        except (pytesseract.TesseractError, OSError) as e:
            raise RecognitionError(str(e)) from e
        return text.strip()

    @staticmethod
    def _to_pil(raster: np.ndarray) -> Image.Image:
        if raster is None or not isinstance(raster, np.ndarray) or raster.size == 0:
            raise RecognitionError("Empty raster")
        if raster.ndim == 2:
            return Image.fromarray(raster)
        if raster.ndim == 3 and raster.shape[2] == 3:
            return Image.fromarray(cv2.cvtColor(raster, cv2.COLOR_BGR2RGB))
        if raster.ndim == 3 and raster.shape[2] == 4:
            return Image.fromarray(cv2.cvtColor(raster, cv2.COLOR_BGRA2RGBA))
        raise RecognitionError(f"Unsupported raster shape {raster.shape}")

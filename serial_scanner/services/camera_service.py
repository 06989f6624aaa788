"""Camera source: acquire, read and release OpenCV capture devices."""
from __future__ import annotations

import logging
import platform
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from ..core.exceptions import CameraError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CameraConstraints:
    """What to open. ``device_index=None`` means any camera that answers."""
    device_index: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None
    exact: bool = False

    @classmethod
    def rear(cls, config) -> "CameraConstraints":
        """The configured rear-facing device at the ideal resolution, no substitutes."""
        return cls(device_index=config.rear_camera_index, width=config.camera_width,
                   height=config.camera_height, fps=config.camera_fps, exact=True)

    @classmethod
    def any(cls, config=None) -> "CameraConstraints":
        if config is None:
            return cls()
        return cls(width=config.camera_width, height=config.camera_height, fps=config.camera_fps)


class CameraStream:
    """An open capture device. Reads are serialized; release is idempotent."""

    def __init__(self, capture: Any, device_index: int):
        self._capture = capture
        self.device_index = device_index
        self._lock = threading.Lock()
        self._released = False

    @property
    def is_active(self) -> bool:
        return not self._released and self._capture is not None and self._capture.isOpened()

    @property
    def frame_size(self) -> Tuple[int, int]:
        """Current (width, height) reported by the device."""
        if not self.is_active:
            return (0, 0)
        return (int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
                int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)))

    def read(self) -> Optional[np.ndarray]:
        """Snapshot the current frame, or None if the device gave nothing."""
        with self._lock:
            if not self.is_active:
                return None
            ret, frame = self._capture.read()
        if not ret or frame is None:
            logger.debug(f"No frame from camera {self.device_index}")
            return None
        return frame

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            if self._capture is not None:
                self._capture.release()
                self._capture = None
        logger.info(f"Camera {self.device_index} released")


class CameraService:
    """Opens capture devices according to CameraConstraints."""

    def __init__(self, probe_limit: int = 10):
        self.probe_limit = probe_limit
        self._backends = self._platform_backends()

    @classmethod
    def from_config(cls, config) -> "CameraService":
        return cls(probe_limit=config.camera_probe_limit)

    @staticmethod
    def _platform_backends() -> List[int]:
        system = platform.system()
        if system == "Windows":
            return [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY]
        if system == "Linux":
            return [cv2.CAP_V4L2, cv2.CAP_ANY]
        if system == "Darwin":
            return [cv2.CAP_AVFOUNDATION, cv2.CAP_ANY]
        return [cv2.CAP_ANY]

    def acquire(self, constraints: CameraConstraints) -> CameraStream:
        """Open a camera matching ``constraints``.

        Raises:
            CameraError: If no matching device can be opened
        """
        if constraints.device_index is not None:
            indices = [constraints.device_index]
            if not constraints.exact:
                indices += [i for i in range(self.probe_limit) if i != constraints.device_index]
        else:
            indices = list(range(self.probe_limit))

        for index in indices:
            capture = self._open(index)
            if capture is None:
                continue
            self._configure(capture, constraints)
            stream = CameraStream(capture, index)
            width, height = stream.frame_size
            logger.info(f"Camera {index} opened: {width}x{height}")
            return stream

        if constraints.device_index is not None and constraints.exact:
            raise CameraError(f"Camera {constraints.device_index} could not be opened")
        raise CameraError(f"No camera available (probed {len(indices)} device indices)")

    def release(self, stream: Optional[CameraStream]) -> None:
        if stream is not None:
            stream.release()

    def _open(self, index: int) -> Optional[Any]:
        for backend in self._backends:
            try:
                capture = cv2.VideoCapture(index, backend)
            except cv2.error as e:
                logger.debug(f"Camera {index} backend {backend} failed: {e}")
                continue
            if capture.isOpened():
                logger.debug(f"Camera {index} opened with backend {backend}")
                return capture
            capture.release()
        return None

    def _configure(self, capture: Any, constraints: CameraConstraints) -> None:
        # Drivers silently ignore unsupported values; the ideal size is a hint
        if constraints.width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        if constraints.height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        if constraints.fps:
            capture.set(cv2.CAP_PROP_FPS, constraints.fps)
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

    def list_available_cameras(self) -> List[Dict[str, Any]]:
        """List openable camera indices with their default resolution."""
        cameras = []
        for index in range(self.probe_limit):
            capture = self._open(index)
            if capture is None:
                continue
            try:
                cameras.append({
                    'index': index,
                    'width': int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
                    'height': int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                })
            finally:
                capture.release()
        return cameras

"""Scan loop controller: the state machine that drives capture to match.

States: IDLE -> ACQUIRING -> SCANNING <-> PROCESSING -> STOPPED.

One cycle captures a frame, crops the ROI under the declared scan region,
enhances it, runs recognition and validates the tokens. Cycles are spaced by
a fixed settle delay and never overlap: ``is_processing`` refuses a second
cycle rather than queueing it. Each start of the loop opens a new generation;
a cycle whose generation was superseded (stop, match, restart) while its
recognition call was in flight has its result discarded.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from ..config.settings import Config
from ..core import events
from ..core.constants import (
    MSG_ACCESSING_CAMERA, MSG_CAMERA_DENIED, MSG_INIT_FAILED, MSG_INITIALIZING,
    MSG_PROCESSING_ERROR, MSG_READY, MSG_SCANNING,
)
from ..core.entities import CycleOutcome, Rect, ScannedSerial, ScanState, Session
from ..core.events import EventEmitter
from ..core.exceptions import CameraError, RecognitionError, RecognitionTimeout, RecognizerInitError
from ..core.logging_config import clear_correlation_id, set_correlation_id
from ..utils.geometry import compute_roi, crop_roi
from ..utils.serial_text import iter_valid_serials
from .camera_service import CameraConstraints, CameraService, CameraStream
from .geolocation_service import GeolocationResolver
from .preprocessing_service import ImageEnhancer

logger = logging.getLogger(__name__)

MatchCallback = Callable[[ScannedSerial], None]


class ScanLoopController(EventEmitter):
    """Owns the camera, the recognizer and the scanning session."""

    def __init__(self, camera: CameraService, recognizer, enhancer: Optional[ImageEnhancer] = None,
                 geolocation: Optional[GeolocationResolver] = None, config: Optional[Config] = None):
        super().__init__()
        self._config = config or Config()
        self._camera = camera
        self._recognizer = recognizer
        self._enhancer = enhancer or ImageEnhancer(None)
        self._geolocation = geolocation or GeolocationResolver()

        self._scan_delay = self._config.scan_delay_ms / 1000.0
        self._padding = self._config.roi_padding
        self._scan_region: Optional[Rect] = self._config.get_scan_region()
        self._display_rect: Optional[Rect] = self._config.get_display_rect()

        self._session = Session()
        self._state = ScanState.IDLE
        self._initialized = False
        self._disabled = False
        self._generation = 0
        self._on_match: Optional[MatchCallback] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._geo_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def session(self) -> Session:
        return self._session

    @property
    def serials(self):
        return self._session.serials

    @property
    def is_disabled(self) -> bool:
        return self._disabled

    def set_viewport(self, scan_region: Optional[Rect], display_rect: Optional[Rect]) -> None:
        """Declare where the scan region sits over the displayed video."""
        self._scan_region = scan_region
        self._display_rect = display_rect

    def _set_state(self, state: ScanState) -> None:
        if state is self._state:
            return
        logger.debug(f"Scan state {self._state.value} -> {state.value}")
        self._state = state
        self._emit(events.STATE, state=state)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._session.is_scanning

    async def initialize(self) -> bool:
        """Bring up the recognition engine once.

        A failure here disables scanning for the lifetime of this controller.
        """
        if self._initialized:
            return True
        if self._disabled:
            return False

        self._emit(events.STATUS, state=self._state, message=MSG_INITIALIZING)
        try:
            await asyncio.to_thread(self._recognizer.initialize)
        except RecognizerInitError as e:
            logger.error(f"Worker initialization error: {e}")
            self._disabled = True
            self._emit(events.ERROR, state=self._state, message=MSG_INIT_FAILED)
            return False

        self._initialized = True
        self._emit(events.STATUS, state=self._state, message=MSG_READY)
        return True

    async def start(self, on_match: Optional[MatchCallback] = None) -> bool:
        """Acquire the camera and begin scanning.

        Args:
            on_match: Continuation for this scan only; receives the accepted
                serial instead of the generic ``matched`` event

        Returns:
            True if the loop is running, False if scanning could not start
        """
        if self._disabled:
            self._emit(events.ERROR, state=self._state, message=MSG_INIT_FAILED)
            return False
        if not self._initialized and not await self.initialize():
            return False

        self._halt()
        generation = self._generation
        self._on_match = on_match
        set_correlation_id(self._session.session_id)

        self._set_state(ScanState.ACQUIRING)
        self._emit(events.STATUS, state=self._state, message=MSG_ACCESSING_CAMERA)
        self._ensure_position()

        try:
            stream = await self._acquire_camera()
        except CameraError as e:
            if generation != self._generation:
                return False
            logger.error(f"Camera access error: {e}")
            self._on_match = None
            self._set_state(ScanState.IDLE)
            self._emit(events.ERROR, state=self._state, message=MSG_CAMERA_DENIED)
            return False

        if generation != self._generation:
            # Stopped or restarted while the camera was opening
            self._camera.release(stream)
            return False

        self._session.stream = stream
        self._session.is_scanning = True
        self._session.is_processing = False
        self._set_state(ScanState.SCANNING)
        self._emit(events.STATUS, state=self._state, message=MSG_SCANNING)
        self._loop_task = asyncio.create_task(self._run_loop(generation))
        return True

    async def _acquire_camera(self) -> CameraStream:
        try:
            return await asyncio.to_thread(self._camera.acquire, CameraConstraints.rear(self._config))
        except CameraError as e:
            logger.info(f"Falling back to default camera: {e}")
        return await asyncio.to_thread(self._camera.acquire, CameraConstraints.any(self._config))

    def _ensure_position(self) -> None:
        session = self._session
        if session.position is not None or session.position_attempted:
            return
        session.position_attempted = True
        self._geo_task = asyncio.create_task(self._resolve_position(session))

    async def _resolve_position(self, session: Session) -> None:
        position = await self._geolocation.resolve_once()
        if position is not None and session is self._session:
            session.position = position

    async def _run_loop(self, generation: int) -> None:
        while self._is_current(generation):
            try:
                outcome = await self.process_cycle()
            except RecognitionError as e:
                if not self._is_current(generation):
                    break
                logger.error(f"Processing error: {e}")
                self._emit(events.ERROR, state=self._state, message=MSG_PROCESSING_ERROR)
                outcome = CycleOutcome.NO_MATCH
            except Exception:
                if not self._is_current(generation):
                    break
                logger.exception("Unexpected error while processing frame")
                self._emit(events.ERROR, state=self._state, message=MSG_PROCESSING_ERROR)
                outcome = CycleOutcome.NO_MATCH

            if outcome is CycleOutcome.MATCHED or not self._is_current(generation):
                break
            await asyncio.sleep(self._scan_delay)
        logger.debug(f"Scan loop generation {generation} finished")

    async def process_cycle(self) -> CycleOutcome:
        """Run one capture -> recognize -> validate cycle.

        Raises:
            RecognitionError: If the recognition engine fails on this frame
        """
        session = self._session
        if not session.is_scanning or session.stream is None:
            return CycleOutcome.SKIPPED
        if session.is_processing:
            logger.debug("Cycle already in flight, skipping")
            return CycleOutcome.SKIPPED

        generation = self._generation
        session.is_processing = True
        self._set_state(ScanState.PROCESSING)
        try:
            text = await self._capture_and_recognize(session.stream)
        except RecognitionTimeout as e:
            logger.warning(f"Cycle aborted: {e}")
            text = None
        finally:
            if self._is_current(generation):
                session.is_processing = False
                self._set_state(ScanState.SCANNING)

        if not self._is_current(generation):
            logger.debug("Discarding result of a cycle that outlived its scan")
            return CycleOutcome.DISCARDED

        if not text:
            logger.debug("No text detected in this frame")
            return CycleOutcome.NO_MATCH

        for candidate in iter_valid_serials(text):
            if session.serials.try_add(candidate, session.position):
                self._handle_match(session.serials.last)
                return CycleOutcome.MATCHED
            logger.debug(f"Number already exists: {candidate}")
        return CycleOutcome.NO_MATCH

    async def _capture_and_recognize(self, stream: CameraStream) -> Optional[str]:
        frame = stream.read()
        if frame is None:
            return None
        raster = self.extract_region(frame)
        if raster is None:
            return None
        raster = self._enhancer.enhance(raster)
        text = await self._recognizer.recognize(raster)
        logger.debug(f"OCR result: {text!r}")
        return text

    def extract_region(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Crop the padded scan region out of ``frame``; None skips the cycle."""
        height, width = frame.shape[:2]
        roi = compute_roi(self._scan_region, self._display_rect, width, height, self._padding)
        if roi is None:
            return None
        return crop_roi(frame, roi)

    def _handle_match(self, entry: ScannedSerial) -> None:
        logger.info(f"Valid serial number found: {entry.number}")
        callback = self._on_match
        self._on_match = None
        self._halt()
        self._set_state(ScanState.STOPPED)

        if callback is None:
            self._emit(events.MATCHED, state=self._state, serial=entry)
            return
        try:
            callback(entry)
        except Exception:
            logger.exception(f"Match handler failed for serial {entry.number}")

    def _halt(self) -> None:
        """Invalidate the running generation and release the camera."""
        self._generation += 1
        self._session.is_scanning = False
        self._session.is_processing = False
        stream = self._session.stream
        self._session.stream = None
        if stream is not None:
            self._camera.release(stream)

    def stop(self) -> None:
        """Explicit stop: release the camera and return to IDLE."""
        self._halt()
        self._on_match = None
        self._set_state(ScanState.IDLE)

    async def scan_again(self) -> bool:
        """Release the camera and start a fresh loop; collected serials are kept."""
        logger.info("Scan again requested, resetting for new scan")
        return await self.start()

    async def delete_serial(self, index: int) -> None:
        """Remove one collected serial; an emptied collection resumes scanning.

        Raises:
            IndexError: If ``index`` is out of range
        """
        self._session.serials.remove(index)
        if len(self._session.serials) == 0:
            await self.start()

    def reset_session(self) -> None:
        """Release the camera and discard all session state."""
        self._halt()
        self._on_match = None
        if self._geo_task is not None and not self._geo_task.done():
            self._geo_task.cancel()
        self._geo_task = None
        self._session = Session()
        clear_correlation_id()
        self._set_state(ScanState.IDLE)

    async def join(self) -> None:
        """Wait until the current scan loop has exited."""
        task = self._loop_task
        if task is not None and task is not asyncio.current_task():
            await task

    async def shutdown(self) -> None:
        self.stop()
        for task in (self._loop_task, self._geo_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._geo_task = None

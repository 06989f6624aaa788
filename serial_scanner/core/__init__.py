"""Core domain entities, events and constants."""

from .entities import (
    Asset, AssignmentState, CycleOutcome, Deal, Position, Rect, ROI,
    ScannedSerial, ScanState, Session,
)
from .events import EventEmitter, ScanEvent
from .exceptions import (
    AssignmentError, CameraError, CrmError, GeolocationError,
    RecognitionError, RecognitionTimeout, RecognizerInitError, ScannerError,
    SubmissionError,
)
from .constants import APP_NAME, VERSION, SERIAL_LENGTH

__all__ = [
    "Asset", "AssignmentState", "CycleOutcome", "Deal", "Position", "Rect", "ROI",
    "ScannedSerial", "ScanState", "Session",
    "EventEmitter", "ScanEvent",
    "AssignmentError", "CameraError", "CrmError", "GeolocationError",
    "RecognitionError", "RecognitionTimeout", "RecognizerInitError", "ScannerError",
    "SubmissionError",
    "APP_NAME", "VERSION", "SERIAL_LENGTH",
]

"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid

from .serial_store import SerialStore


class ScanState(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    SCANNING = "scanning"
    PROCESSING = "processing"
    STOPPED = "stopped"


class CycleOutcome(Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    SKIPPED = "skipped"        # busy guard or loop not scanning
    DISCARDED = "discarded"    # loop stopped while the cycle was in flight


class AssignmentState(Enum):
    SELECT_DEAL = "select_deal"
    SELECTING_ASSET = "selecting_asset"
    SCANNING = "scanning"
    READY_TO_SUBMIT = "ready_to_submit"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"


@dataclass(slots=True, frozen=True)
class Rect:
    """Axis-aligned rectangle in on-screen (device-independent) pixels."""
    left: float
    top: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return not self.width or not self.height or self.width <= 0 or self.height <= 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rect":
        return cls(float(data["left"]), float(data["top"]),
                   float(data["width"]), float(data["height"]))

    def to_dict(self) -> Dict[str, float]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}


@dataclass(slots=True, frozen=True)
class ROI:
    """Region of interest in frame-pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def as_slices(self) -> Tuple[slice, slice]:
        return slice(self.y, self.y + self.height), slice(self.x, self.x + self.width)


@dataclass(slots=True, frozen=True)
class Position:
    lat: float
    lng: float
    accuracy: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "accuracy": self.accuracy}


@dataclass(slots=True, frozen=True)
class ScannedSerial:
    number: str
    location: Optional[Position]
    timestamp: str  # ISO-8601, UTC

    @classmethod
    def create(cls, number: str, location: Optional[Position]) -> "ScannedSerial":
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return cls(number=number, location=location, timestamp=stamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "location": self.location.to_dict() if self.location else None,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True, frozen=True)
class Asset:
    """Equipment line item of a deal. Read-only to the scanner."""
    id: str
    model: str
    model_value: str
    serial_number: Optional[str] = None
    field_index: Optional[int] = None


@dataclass(slots=True, frozen=True)
class Deal:
    id: str
    name: str
    stage: Optional[str] = None
    amount: Optional[float] = None
    street: Optional[str] = None
    models: Tuple[Asset, ...] = ()


@dataclass(slots=True)
class Session:
    """Mutable state of one scan-to-submission workflow."""
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    is_scanning: bool = False
    is_processing: bool = False
    serials: SerialStore = field(default_factory=SerialStore)
    stream: Any = None  # CameraStream while the camera is held
    position: Optional[Position] = None
    position_attempted: bool = False
    # Deal-assignment variant
    deal_id: Optional[str] = None
    assets: List[Asset] = field(default_factory=list)
    assignments: Dict[int, List[str]] = field(default_factory=dict)

    def clear_assignment(self) -> None:
        self.deal_id = None
        self.assets = []
        self.assignments = {}

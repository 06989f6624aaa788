"""Services package for the scanning pipeline and deal assignment."""

from .camera_service import CameraConstraints, CameraService, CameraStream
from .preprocessing_service import ImageEnhancer, OpenCVEnhancementBackend
from .recognition_service import TesseractRecognizer
from .geolocation_service import GeolocationResolver, StaticPositionSource, UnavailablePositionSource
from .crm_client import AssignmentPayload, CrmClient
from .scan_controller import ScanLoopController
from .assignment_flow import AssetAssignmentFlow

__all__ = [
    "CameraConstraints", "CameraService", "CameraStream",
    "ImageEnhancer", "OpenCVEnhancementBackend", "TesseractRecognizer",
    "GeolocationResolver", "StaticPositionSource", "UnavailablePositionSource",
    "AssignmentPayload", "CrmClient", "ScanLoopController", "AssetAssignmentFlow",
]

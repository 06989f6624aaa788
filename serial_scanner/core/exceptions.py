"""Custom exceptions for the scanner."""

class ScannerError(Exception):
    """Base scanner error."""
    pass

class CameraError(ScannerError):
    """Camera acquisition errors."""
    pass

class RecognitionError(ScannerError):
    """Text recognition engine failed on a raster."""
    pass

class RecognitionTimeout(RecognitionError):
    """Recognition call exceeded its configured time box."""
    pass

class RecognizerInitError(ScannerError):
    """Recognition engine could not be initialized."""
    pass

class GeolocationError(ScannerError):
    """Position lookup failed or is unsupported."""
    pass

class CrmError(ScannerError):
    """Deal/asset store request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

class SubmissionError(CrmError):
    """Assignment submission was rejected or returned an invalid response."""
    pass

class AssignmentError(ScannerError):
    """Invalid transition in the asset assignment flow."""
    pass

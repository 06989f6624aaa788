"""Application-wide constants."""

APP_NAME = "serial-scanner"
VERSION = "1.0.0"

# Equipment serials are exactly ten digits.
SERIAL_LENGTH = 10
SERIAL_PATTERN = r"^\d{10}$"

DIGIT_WHITELIST = "0123456789"

# Operator-facing messages
MSG_INITIALIZING = "Initializing scanner..."
MSG_READY = "Ready to scan"
MSG_INIT_FAILED = "Scanner initialization failed. Please refresh and try again."
MSG_ACCESSING_CAMERA = "Accessing camera..."
MSG_SCANNING = "Scanning..."
MSG_CAMERA_DENIED = "Camera access denied. Please check permissions."
MSG_PROCESSING_ERROR = "Processing error. Please try again."
MSG_LOAD_DEALS_FAILED = "Failed to load deals. Please try again."
MSG_LOAD_ASSETS_FAILED = "Failed to load deal assets. Please try again."
MSG_START_CAMERA_FAILED = "Failed to start camera. Please try again."
MSG_SUBMIT_FAILED = "Failed to update serial numbers. Please try again."
MSG_SUBMITTED = "Serial numbers successfully updated!"

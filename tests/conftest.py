"""Pytest configuration and shared fixtures for the serial scanner.

Cameras, the Tesseract engine and the CRM are replaced by mocks, so the
whole suite runs without hardware or network access.
"""
import os
import sys
import tempfile
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import cv2
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from serial_scanner.config.settings import Config
from serial_scanner.core.entities import Asset, Deal
from serial_scanner.services.camera_service import CameraService, CameraStream
from serial_scanner.services.crm_client import CrmClient
from serial_scanner.services.geolocation_service import GeolocationResolver
from serial_scanner.services.scan_controller import ScanLoopController


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logging.getLogger('PIL').setLevel(logging.WARNING)


@pytest.fixture(scope="session")
def project_root():
    """Provide project root directory path."""
    return PROJECT_ROOT


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config():
    """Real configuration tuned for fast tests: no delays, 640x480 viewport."""
    return Config(
        scan_delay_ms=0,
        confirmation_delay_ms=0,
        geolocation_timeout_ms=100,
        display_rect={"left": 0, "top": 0, "width": 640, "height": 480},
        scan_region={"left": 160, "top": 200, "width": 320, "height": 80},
    )


@pytest.fixture
def mock_config():
    """Provide a mock configuration object for testing."""
    config = Mock(spec=Config)
    config.rear_camera_index = 0
    config.camera_width = 640
    config.camera_height = 480
    config.camera_fps = 30
    config.camera_probe_limit = 3
    config.enhancement_enabled = True
    config.contrast_alpha = 1.5
    config.brightness_beta = 30
    config.min_raster_size = 100
    config.tesseract_cmd = ""
    config.ocr_language = "eng"
    config.ocr_page_seg_mode = 7
    config.ocr_engine_mode = 3
    config.ocr_char_whitelist = "0123456789"
    config.recognition_timeout_s = 0
    config.crm_base_url = "http://crm.test/zoho"
    config.crm_timeout = 5
    config.crm_api_token = ""
    config.geolocation_timeout_ms = 100
    config.get_site_position.return_value = None
    return config


@pytest.fixture
def sample_frame():
    """A 640x480 BGR frame with a bright nameplate band across the scan region."""
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    cv2.rectangle(frame, (160, 200), (480, 280), (255, 255, 255), -1)
    cv2.putText(frame, "2310211025", (180, 255), cv2.FONT_HERSHEY_SIMPLEX, 1.2, (0, 0, 0), 2)
    return frame


@pytest.fixture
def mock_opencv_capture(sample_frame):
    """Provide a mock OpenCV VideoCapture object."""
    cap = Mock()
    cap.isOpened.return_value = True
    cap.read.return_value = (True, sample_frame)
    cap.get.side_effect = lambda prop: {
        cv2.CAP_PROP_FRAME_WIDTH: 640,
        cv2.CAP_PROP_FRAME_HEIGHT: 480,
    }.get(prop, 0)
    cap.set.return_value = True
    return cap


@pytest.fixture
def camera_stream(mock_opencv_capture):
    return CameraStream(mock_opencv_capture, 0)


@pytest.fixture
def mock_camera(mock_opencv_capture):
    """Camera service handing out a fresh stream over the mock capture on every acquire()."""
    camera = Mock(spec=CameraService)
    camera.acquire.side_effect = lambda constraints: CameraStream(mock_opencv_capture, 0)
    camera.release.side_effect = lambda stream: stream.release() if stream else None
    return camera


@pytest.fixture
def mock_recognizer():
    """Recognizer returning no text until a test says otherwise."""
    recognizer = Mock()
    recognizer.initialize.return_value = None
    recognizer.recognize = AsyncMock(return_value="")
    return recognizer


@pytest.fixture
def controller(mock_camera, mock_recognizer, test_config):
    return ScanLoopController(
        camera=mock_camera,
        recognizer=mock_recognizer,
        geolocation=GeolocationResolver(timeout_ms=100),
        config=test_config,
    )


@pytest.fixture
def sample_assets():
    return [
        Asset(id="ca-1", model="Model 1", model_value="Bizhub C300i", field_index=1),
        Asset(id="ca-1", model="Model 2", model_value="Bizhub 4050i", field_index=2),
    ]


@pytest.fixture
def sample_deals():
    return [
        Deal(id="d-100", name="Acme Office Fitout", stage="Installation", street="1 Main St"),
        Deal(id="d-200", name="Harbour Clinic", stage="Installation"),
    ]


@pytest.fixture
def mock_crm(sample_assets, sample_deals):
    crm = Mock(spec=CrmClient)
    crm.list_active_deals.return_value = sample_deals
    crm.list_assets.return_value = sample_assets
    crm.submit_assignment.return_value = {"data": [{"code": "SUCCESS"}]}
    return crm


@pytest.fixture
def recorded_events(controller):
    """Collect every event the controller emits."""
    received = []
    controller.add_listener(received.append)
    return received


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "webcam: mark test as requiring webcam access")
    config.addinivalue_line("markers", "external: mark test as requiring a live CRM or Tesseract")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers and skip conditions."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if item.get_closest_marker("external") and not os.getenv("RUN_EXTERNAL_TESTS"):
            item.add_marker(pytest.mark.skip(reason="External tests disabled"))

        if item.get_closest_marker("webcam") and not os.getenv("RUN_WEBCAM_TESTS"):
            item.add_marker(pytest.mark.skip(reason="Webcam tests disabled"))

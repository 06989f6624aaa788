"""Unit tests for mapping scanned serials onto a deal's asset slots."""
import pytest

from serial_scanner.core import events
from serial_scanner.core.constants import (
    MSG_LOAD_ASSETS_FAILED, MSG_LOAD_DEALS_FAILED, MSG_START_CAMERA_FAILED,
    MSG_SUBMIT_FAILED, MSG_SUBMITTED,
)
from serial_scanner.core.entities import AssignmentState, ScanState
from serial_scanner.core.exceptions import AssignmentError, CameraError, CrmError, SubmissionError
from serial_scanner.services.assignment_flow import AssetAssignmentFlow


@pytest.fixture
def flow(controller, mock_crm, test_config):
    return AssetAssignmentFlow(controller, mock_crm, test_config)


@pytest.fixture
def flow_events(flow):
    received = []
    flow.add_listener(received.append)
    return received


async def scan_into(flow, controller, recognizer, index, number):
    recognizer.recognize.return_value = number
    assert await flow.start_asset_scan(index) is True
    await controller.join()


class TestDeals:

    @pytest.mark.asyncio
    async def test_load_deals(self, flow, sample_deals):
        assert await flow.load_deals() == sample_deals
        assert flow.deals == sample_deals

    @pytest.mark.asyncio
    async def test_load_deals_failure(self, flow, mock_crm, flow_events):
        mock_crm.list_active_deals.side_effect = CrmError("HTTP error! status: 503", status_code=503)

        assert await flow.load_deals() == []
        assert [e.message for e in flow_events if e.kind == events.ERROR] == [MSG_LOAD_DEALS_FAILED]

    @pytest.mark.asyncio
    async def test_select_deal(self, flow, mock_crm, sample_assets):
        assert await flow.select_deal("d-100") is True

        mock_crm.list_assets.assert_called_once_with("d-100")
        assert flow.deal_id == "d-100"
        assert flow.assets == sample_assets
        assert flow.assignments == {}
        assert flow.state is AssignmentState.SELECTING_ASSET
        assert flow.is_all_serials_filled() is False

    @pytest.mark.asyncio
    async def test_select_deal_failure(self, flow, mock_crm, flow_events):
        mock_crm.list_assets.side_effect = CrmError("Request to /deals/d-100 failed")

        assert await flow.select_deal("d-100") is False
        assert flow.state is AssignmentState.SELECT_DEAL
        assert MSG_LOAD_ASSETS_FAILED in [e.message for e in flow_events if e.kind == events.ERROR]

    @pytest.mark.asyncio
    async def test_deal_without_assets_is_filled(self, flow, mock_crm):
        mock_crm.list_assets.return_value = []
        await flow.select_deal("d-200")

        assert flow.is_all_serials_filled() is True
        assert flow.state is AssignmentState.READY_TO_SUBMIT
        assert await flow.submit() is True
        payload = mock_crm.submit_assignment.call_args.args[1]
        assert payload.deal_id == "d-200"
        assert payload.slots == []

    @pytest.mark.asyncio
    async def test_new_deal_accepts_serial_from_previous_deal(self, flow, controller, mock_recognizer):
        await flow.select_deal("d-100")
        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")

        await flow.select_deal("d-200")
        assert flow.assignments == {}
        assert len(controller.serials) == 0

        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")
        assert flow.deal_id == "d-200"
        assert flow.assignments == {0: ["2310211025"]}
        assert controller.serials.numbers() == ["2310211025"]


class TestAssetScanning:

    @pytest.mark.asyncio
    async def test_scan_requires_deal(self, flow):
        with pytest.raises(AssignmentError):
            await flow.start_asset_scan(0)

    @pytest.mark.asyncio
    async def test_scan_requires_existing_slot(self, flow):
        await flow.select_deal("d-100")

        with pytest.raises(AssignmentError):
            await flow.start_asset_scan(2)

    @pytest.mark.asyncio
    async def test_all_filled_only_after_every_slot(self, flow, controller, mock_recognizer, flow_events):
        await flow.select_deal("d-100")

        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")
        assert flow.assignments == {0: ["2310211025"]}
        assert flow.is_all_serials_filled() is False
        assert flow.state is AssignmentState.SELECTING_ASSET
        assert controller.state is ScanState.STOPPED

        await scan_into(flow, controller, mock_recognizer, 1, "9876543210")
        assert flow.assignments == {0: ["2310211025"], 1: ["9876543210"]}
        assert flow.is_all_serials_filled() is True
        assert flow.state is AssignmentState.READY_TO_SUBMIT

        added = [e.message for e in flow_events if e.kind == events.SERIAL_ADDED]
        assert added == [
            "Serial number 2310211025 added successfully",
            "Serial number 9876543210 added successfully",
        ]

    @pytest.mark.asyncio
    async def test_second_scan_refused_while_scanning(self, flow, controller):
        await flow.select_deal("d-100")
        await flow.start_asset_scan(0)

        with pytest.raises(AssignmentError):
            await flow.start_asset_scan(1)

        flow.cancel_asset_scan()
        await controller.join()
        assert flow.state is AssignmentState.SELECTING_ASSET
        assert controller.state is ScanState.IDLE
        assert flow.assignments == {}

    @pytest.mark.asyncio
    async def test_camera_failure_returns_to_selection(self, flow, mock_camera, flow_events):
        mock_camera.acquire.side_effect = CameraError("Permission denied")
        await flow.select_deal("d-100")

        assert await flow.start_asset_scan(0) is False
        assert flow.state is AssignmentState.SELECTING_ASSET
        assert flow.current_index is None
        assert MSG_START_CAMERA_FAILED in [e.message for e in flow_events if e.kind == events.ERROR]

    @pytest.mark.asyncio
    async def test_multiple_serials_per_slot(self, controller, mock_crm, mock_recognizer, test_config):
        test_config.serial_cardinality = "multiple"
        flow = AssetAssignmentFlow(controller, mock_crm, test_config)
        await flow.select_deal("d-100")

        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")
        await scan_into(flow, controller, mock_recognizer, 0, "1111111111")
        await scan_into(flow, controller, mock_recognizer, 1, "9876543210")

        payload = flow.build_payload()
        assert payload.cardinality == "multiple"
        assert [serials for _, serials in payload.slots] == [["2310211025", "1111111111"], ["9876543210"]]


class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_before_filled(self, flow):
        await flow.select_deal("d-100")

        with pytest.raises(AssignmentError):
            await flow.submit()

    @pytest.mark.asyncio
    async def test_submit_success_resets(self, flow, controller, mock_recognizer, mock_crm, flow_events):
        await flow.select_deal("d-100")
        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")
        await scan_into(flow, controller, mock_recognizer, 1, "9876543210")

        assert await flow.submit() is True

        deal_id, payload = mock_crm.submit_assignment.call_args.args
        assert deal_id == "d-100"
        assert payload.cardinality == "single"
        assert [serials for _, serials in payload.slots] == [["2310211025"], ["9876543210"]]
        assert MSG_SUBMITTED in [e.message for e in flow_events if e.kind == events.SUBMITTED]
        assert flow.state is AssignmentState.SELECT_DEAL
        assert flow.deal_id is None
        assert flow.assignments == {}
        assert len(controller.serials) == 0

    @pytest.mark.asyncio
    async def test_submit_failure_keeps_assignment(self, flow, controller, mock_recognizer, mock_crm,
                                                   flow_events):
        await flow.select_deal("d-100")
        await scan_into(flow, controller, mock_recognizer, 0, "2310211025")
        await scan_into(flow, controller, mock_recognizer, 1, "9876543210")
        mock_crm.submit_assignment.side_effect = SubmissionError("HTTP error! status: 500", status_code=500)

        assert await flow.submit() is False

        assert flow.state is AssignmentState.SUBMIT_FAILED
        assert flow.assignments == {0: ["2310211025"], 1: ["9876543210"]}
        assert MSG_SUBMIT_FAILED in [e.message for e in flow_events if e.kind == events.ERROR]

        mock_crm.submit_assignment.side_effect = None
        assert await flow.submit() is True
        assert flow.state is AssignmentState.SELECT_DEAL

    def test_build_payload_without_deal(self, flow):
        with pytest.raises(AssignmentError):
            flow.build_payload()

    def test_reset(self, flow, controller):
        controller.session.deal_id = "d-100"
        flow.reset()

        assert flow.state is AssignmentState.SELECT_DEAL
        assert flow.deal_id is None

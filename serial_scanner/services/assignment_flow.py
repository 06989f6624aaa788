"""Asset assignment flow: map scanned serials onto a deal's asset slots.

The operator picks a deal, then scans one asset slot at a time. Each scan is
delegated to the ScanLoopController with a continuation bound to that slot,
so a later scan can never deliver into an earlier slot's handler. Submission
is offered once every slot holds at least one serial.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Dict, List, Optional

from ..config.settings import Config
from ..core import events
from ..core.constants import (
    MSG_LOAD_ASSETS_FAILED, MSG_LOAD_DEALS_FAILED, MSG_START_CAMERA_FAILED,
    MSG_SUBMIT_FAILED, MSG_SUBMITTED,
)
from ..core.entities import Asset, AssignmentState, Deal, ScannedSerial
from ..core.events import EventEmitter
from ..core.exceptions import AssignmentError, CrmError
from .crm_client import AssignmentPayload, CrmClient
from .scan_controller import ScanLoopController

logger = logging.getLogger(__name__)


class AssetAssignmentFlow(EventEmitter):

    def __init__(self, scanner: ScanLoopController, crm: CrmClient, config: Optional[Config] = None):
        super().__init__()
        config = config or Config()
        self._scanner = scanner
        self._crm = crm
        self.cardinality = config.serial_cardinality
        self._confirmation_delay = config.confirmation_delay_ms / 1000.0
        self._state = AssignmentState.SELECT_DEAL
        self._current_index: Optional[int] = None
        self._deals: List[Deal] = []

    @property
    def state(self) -> AssignmentState:
        return self._state

    @property
    def deals(self) -> List[Deal]:
        return list(self._deals)

    @property
    def deal_id(self) -> Optional[str]:
        return self._scanner.session.deal_id

    @property
    def assets(self) -> List[Asset]:
        return list(self._scanner.session.assets)

    @property
    def assignments(self) -> Dict[int, List[str]]:
        return {index: list(serials) for index, serials in self._scanner.session.assignments.items()}

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    def _set_state(self, state: AssignmentState) -> None:
        if state is self._state:
            return
        logger.debug(f"Assignment state {self._state.value} -> {state.value}")
        self._state = state
        self._emit(events.STATE, state=state)

    def _settle_state(self) -> None:
        self._set_state(AssignmentState.READY_TO_SUBMIT if self.is_all_serials_filled()
                        else AssignmentState.SELECTING_ASSET)

    def _require_idle(self) -> None:
        if self._state is AssignmentState.SCANNING:
            raise AssignmentError("A serial scan is already in progress")
        if self._state is AssignmentState.SUBMITTING:
            raise AssignmentError("Submission in progress")

    async def load_deals(self) -> List[Deal]:
        """Fetch the active deals; on failure report it and return an empty list."""
        try:
            deals = await asyncio.to_thread(self._crm.list_active_deals)
        except CrmError as e:
            logger.error(f"Failed to load deals: {e}")
            self._emit(events.ERROR, state=self._state, message=MSG_LOAD_DEALS_FAILED)
            return []
        self._deals = deals
        logger.info(f"Loaded {len(deals)} active deals")
        return deals

    async def select_deal(self, deal_id: str) -> bool:
        """Load the asset slots of ``deal_id`` and start a fresh assignment."""
        self._require_idle()
        try:
            assets = await asyncio.to_thread(self._crm.list_assets, deal_id)
        except CrmError as e:
            logger.error(f"Failed to load assets for deal {deal_id}: {e}")
            self._emit(events.ERROR, state=self._state, message=MSG_LOAD_ASSETS_FAILED)
            return False

        # A new deal starts a fresh session, collected serials included
        self._scanner.reset_session()
        session = self._scanner.session
        session.deal_id = deal_id
        session.assets = list(assets)
        self._current_index = None
        self._state = AssignmentState.SELECT_DEAL
        self._settle_state()
        logger.info(f"Deal {deal_id} selected with {len(assets)} asset slots")
        return True

    async def start_asset_scan(self, index: int) -> bool:
        """Scan a serial for asset slot ``index``.

        Raises:
            AssignmentError: If no deal is selected, the slot does not exist
                or another scan is still running
        """
        session = self._scanner.session
        if session.deal_id is None:
            raise AssignmentError("No deal selected")
        if not 0 <= index < len(session.assets):
            raise AssignmentError(f"Deal has no asset slot {index}")
        self._require_idle()

        self._current_index = index
        self._set_state(AssignmentState.SCANNING)
        logger.info(f"Starting scanning for asset index {index}")

        started = await self._scanner.start(on_match=partial(self._on_serial_scanned, index))
        if not started:
            self._current_index = None
            self._settle_state()
            self._emit(events.ERROR, state=self._state, message=MSG_START_CAMERA_FAILED)
        return started

    def cancel_asset_scan(self) -> None:
        if self._state is not AssignmentState.SCANNING:
            return
        self._scanner.stop()
        self._current_index = None
        self._settle_state()

    def _on_serial_scanned(self, index: int, serial: ScannedSerial) -> None:
        session = self._scanner.session
        session.assignments.setdefault(index, []).append(serial.number)
        self._current_index = None
        self._settle_state()
        self._emit(events.SERIAL_ADDED, state=self._state,
                   message=f"Serial number {serial.number} added successfully", serial=serial)

    def is_all_serials_filled(self) -> bool:
        session = self._scanner.session
        return all(session.assignments.get(index) for index in range(len(session.assets)))

    def build_payload(self) -> AssignmentPayload:
        session = self._scanner.session
        if session.deal_id is None:
            raise AssignmentError("No deal selected")
        slots = [(asset, list(session.assignments.get(index, [])))
                 for index, asset in enumerate(session.assets)]
        return AssignmentPayload(deal_id=session.deal_id, cardinality=self.cardinality, slots=slots)

    async def submit(self) -> bool:
        """Send the assignment to the deal store.

        On failure the assignment is kept so the operator can retry without
        rescanning. On success the whole session is reset after the
        confirmation delay.

        Raises:
            AssignmentError: If a slot is still empty or a scan/submission is running
        """
        self._require_idle()
        if not self.is_all_serials_filled():
            raise AssignmentError("Every asset needs a serial before submitting")

        payload = self.build_payload()
        self._set_state(AssignmentState.SUBMITTING)
        try:
            await asyncio.to_thread(self._crm.submit_assignment, payload.deal_id, payload)
        except CrmError as e:
            logger.error(f"Error updating deal {payload.deal_id}: {e}")
            self._set_state(AssignmentState.SUBMIT_FAILED)
            self._emit(events.ERROR, state=self._state, message=MSG_SUBMIT_FAILED)
            return False

        self._set_state(AssignmentState.SUBMITTED)
        self._emit(events.SUBMITTED, state=self._state, message=MSG_SUBMITTED)
        await asyncio.sleep(self._confirmation_delay)
        self.reset()
        return True

    def reset(self) -> None:
        """Drop the deal, its slots and every scanned serial."""
        self._scanner.reset_session()
        self._current_index = None
        self._set_state(AssignmentState.SELECT_DEAL)

"""Client for the deal/asset record store, reached through the CRM proxy.

Transport security, token refresh and retries belong to the proxy; this
client only shapes requests and maps records into domain entities.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..core.entities import Asset, Deal
from ..core.exceptions import CrmError, SubmissionError

logger = logging.getLogger(__name__)

DEAL_MODEL_FIELDS = 4
CLIENT_ASSET_MODEL_FIELDS = 3


@dataclass(slots=True)
class AssignmentPayload:
    """Snapshot of a finished assignment, ready for submission."""
    deal_id: str
    cardinality: str  # "single" | "multiple"
    slots: List[Tuple[Asset, List[str]]] = field(default_factory=list)


class CrmClient:
    """Thin ``requests`` client for deals, their assets and serial updates."""

    def __init__(self, base_url: str, timeout: float = 30, api_token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        if api_token:
            self._session.headers['Authorization'] = f'Zoho-oauthtoken {api_token}'

    @classmethod
    def from_config(cls, config) -> "CrmClient":
        return cls(config.crm_base_url, timeout=config.crm_timeout,
                   api_token=config.crm_api_token or None)

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise CrmError(f"Request to {path} failed: {e}") from e

        if not response.ok:
            logger.error(f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}")
            raise CrmError(f"HTTP error! status: {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise CrmError(f"Invalid JSON from {path}") from e
        if not isinstance(data, dict):
            raise CrmError(f"Unexpected response shape from {path}")
        return data

    def check_connection(self) -> None:
        """Raises CrmError if the store cannot be reached."""
        self._request('GET', '/deals')
        logger.info("Connected to deal store")

    def list_active_deals(self) -> List[Deal]:
        data = self._request('GET', '/deals')
        records = data.get('data')
        if not records:
            logger.warning("Deal list response carried no data")
            return []
        return [self._to_deal(record) for record in records]

    def list_assets(self, deal_id: str) -> List[Asset]:
        data = self._request('GET', f'/deals/{deal_id}', params={'fields': 'Client_Assets'})
        records = data.get('data') or []
        client_assets = records[0].get('Client_Assets') if records else None
        if not client_assets:
            return []

        client_asset = client_assets[0]
        assets = []
        for i in range(1, CLIENT_ASSET_MODEL_FIELDS + 1):
            model_value = client_asset.get(f'Model_{i}')
            if model_value:
                assets.append(Asset(
                    id=str(client_asset.get('id', '')),
                    model=f'Model {i}',
                    model_value=model_value,
                    serial_number=client_asset.get(f'Serial_{i}') or None,
                    field_index=i,
                ))
        logger.debug(f"Deal {deal_id} has {len(assets)} asset slots")
        return assets

    def submit_assignment(self, deal_id: str, payload: AssignmentPayload) -> Dict[str, Any]:
        """Write the assigned serials back to the store.

        Raises:
            SubmissionError: If the store rejects the update
        """
        if payload.cardinality == 'multiple':
            path = f'/deals/{deal_id}/assets'
            body = {'data': [{'id': asset.id, 'Serial_Numbers': list(serials)}
                             for asset, serials in payload.slots]}
        else:
            path = f'/deals/{deal_id}'
            record: Dict[str, Any] = {'id': deal_id}
            for index, (asset, serials) in enumerate(payload.slots):
                if serials:
                    record[f'Serial_{asset.field_index or index + 1}'] = serials[0]
            body = {'data': [record]}

        logger.info(f"Submitting {sum(len(s) for _, s in payload.slots)} serial(s) for deal {deal_id} ({payload.cardinality})")
        try:
            data = self._request('PUT', path, json=body)
        except CrmError as e:
            raise SubmissionError(str(e), status_code=e.status_code) from e
        if not data.get('data'):
            raise SubmissionError('Invalid response from deal store')
        return data

    def search_deals_by_serial(self, serial: str) -> List[Dict[str, Any]]:
        body = {'criteria': [{'field': 'Serial_Numbers', 'operator': 'contains', 'value': serial}]}
        data = self._request('POST', '/deals/search', json=body)
        return data.get('data') or []

    @staticmethod
    def _to_deal(record: Dict[str, Any]) -> Deal:
        models = tuple(
            Asset(id=str(record.get('id', '')), model=f'Model {i}', model_value=record[f'Model_{i}'],
                  field_index=i)
            for i in range(1, DEAL_MODEL_FIELDS + 1)
            if record.get(f'Model_{i}')
        )
        return Deal(
            id=str(record.get('id', '')),
            name=record.get('Deal_Name') or '',
            stage=record.get('Stage'),
            amount=record.get('Amount'),
            street=record.get('Street'),
            models=models,
        )

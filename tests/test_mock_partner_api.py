"""The mock partner API used for local end-to-end runs."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fulfilment_service.clients import PartnerApiClient
from mock_services import mock_partner_api

AUTH = {"Authorization": PartnerApiClient.basic_auth(mock_partner_api.MOCK_COMPANY_REF_ID, mock_partner_api.MOCK_API_KEY)}


def _order(ref):
    return {
        "external_ref": ref,
        "company_ref_id": 1001,
        "items": [{"external_ref": "1", "quantity": 1, "type": 2, "print_job_ref": "PJ1", "attributes": []}],
    }


@pytest.fixture()
def api():
    mock_partner_api._flaky_calls.clear()
    return TestClient(mock_partner_api.app)


def test_creates_order(api):
    response = api.post("/order", json=_order("#1001"), headers=AUTH)
    assert response.status_code == 200
    assert response.json()["external_ref"] == "#1001"


def test_rejects_wrong_credentials(api):
    assert api.post("/order", json=_order("#1001"), headers={"Authorization": "Basic eDp5"}).status_code == 401


def test_rejected_order(api):
    assert api.post("/order", json=_order("#REJECT-1"), headers=AUTH).status_code == 422


def test_flaky_order_recovers(api):
    codes = [api.post("/order", json=_order("#FLAKY-1"), headers=AUTH).status_code for _ in range(3)]
    assert codes == [503, 503, 200]

"""HTTP surface: webhook route and health check."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, patch

import pytest
from fastapi.concurrency import run_in_threadpool
from fastapi.testclient import TestClient

from conftest import SHOP_DOMAIN, line_item, order_doc, sign
from fulfilment_service.intake import receive_order_webhook
from fulfilment_service.main import create_app


@pytest.fixture()
def api(services):
    with TestClient(create_app(services)) as client:
        yield client


def _post(api, hook, body: bytes, signature=None):
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": signature if signature is not None else sign(body),
        "X-Shopify-Shop-Domain": SHOP_DOMAIN,
    }
    return api.post(f"/webhooks/shopify/{hook}", content=body, headers=headers)


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_accepts_signed_order(api, services):
    body = json.dumps(order_doc(line_items=[line_item(1, properties=[("Top line", "HI")])])).encode()
    response = _post(api, "acme_orders", body)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "enqueued": True, "items": 1}
    assert len(services.queue.messages) == 1


def test_signature_covers_raw_bytes(api, services):
    """Unusual formatting is fine as long as the signature matches the bytes sent."""
    body = b'{  "id" : 5,\n "line_items": [] }'
    assert _post(api, "acme_orders", body).status_code == 200


def test_unknown_client(api):
    response = _post(api, "nobody_orders", b"{}")
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "Unknown client"}


def test_invalid_signature(api, services):
    response = _post(api, "acme_orders", b'{"id": 1}', signature="bogus")
    assert response.status_code == 401
    assert services.queue.messages == []


def test_malformed_body(api):
    assert _post(api, "acme_orders", b"not json").status_code == 400


def test_unexpected_failure_is_500(api, services):
    services.queue = MagicMock()
    services.queue.publish.side_effect = RuntimeError("broker down")
    response = _post(api, "acme_orders", json.dumps(order_doc()).encode())
    assert response.status_code == 500
    assert response.json() == {"ok": False}


def test_unexpected_failure_can_be_acknowledged(api, services):
    services.settings.ack_intake_errors = True
    services.queue = MagicMock()
    services.queue.publish.side_effect = RuntimeError("broker down")
    response = _post(api, "acme_orders", json.dumps(order_doc()).encode())
    assert response.status_code == 200
    assert response.json() == {"ok": False}


def test_publishing_runs_off_the_event_loop(api, services):
    with patch("fulfilment_service.main.run_in_threadpool", wraps=run_in_threadpool) as pooled:
        response = _post(api, "acme_orders", json.dumps(order_doc()).encode())

    assert response.status_code == 200
    assert pooled.call_args.args[0] is receive_order_webhook
    assert len(services.queue.messages) == 1


class TestConsumerLifecycle:

    def test_consumer_thread_gets_the_stop_event(self, services):
        services.settings.run_worker = True
        app = create_app(services)
        started = threading.Event()
        with patch("fulfilment_service.main.start_order_consumer") as consumer:
            consumer.side_effect = lambda *args: started.set()
            with TestClient(app):
                assert started.wait(5)

        consumer.assert_called_once_with(services, app.state.stop_event)

    def test_shutdown_sets_the_stop_event(self, services):
        app = create_app(services)
        with TestClient(app):
            assert not app.state.stop_event.is_set()
        assert app.state.stop_event.is_set()

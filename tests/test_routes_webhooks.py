"""Payment webhook route tests."""

from __future__ import annotations

import json

from conftest import FakeGateway, create_test_client

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.webhooks import HmacSignatureVerifier

SECRET = "whsec-test"
CUSTOMER = {
    "email": "buyer@example.com",
    "name": "Buyer",
    "return_url": "https://shop.example/return",
    "cancel_url": "https://shop.example/cancel",
}


def _checkout(client) -> str:
    resp = client.post(
        "/payment-intents/checkout",
        json={
            "order_id": "o-1",
            "provider": "sandbox",
            "amount": "40.00",
            "customer": CUSTOMER,
        },
    )
    assert resp.status_code == 201
    return resp.json()["data"]["intent"]["intent_id"]


def _post(client, body: dict, signature: str | None = None):
    raw = json.dumps(body).encode()
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["X-Webhook-Signature"] = signature
    return client.post(
        "/webhooks/payments/sandbox", content=raw, headers=headers
    ), raw


def _signed(client, body: dict):
    raw = json.dumps(body).encode()
    signature = HmacSignatureVerifier(SECRET).sign(raw)
    return client.post(
        "/webhooks/payments/sandbox",
        content=raw,
        headers={
            "content-type": "application/json",
            "X-Webhook-Signature": signature,
        },
    )


def test_gateway_verifies_webhook_without_secret() -> None:
    with create_test_client(gateway=FakeGateway()) as client:
        intent_id = _checkout(client)

        resp, _ = _post(
            client,
            {"event": "payment.success", "transaction_id": "txn-123"},
            signature="ok",
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "processed"
        assert body["intent_id"] == intent_id
        assert body["intent_status"] == "captured"

        transactions = client.get(
            f"/payment-intents/{intent_id}/transactions"
        ).json()["data"]
        assert [t["type"] for t in transactions] == ["auth", "capture"]


def test_signed_webhook_is_applied() -> None:
    config = OrderflowConfig(webhook_secret=SECRET)
    with create_test_client(config, gateway=FakeGateway()) as client:
        intent_id = _checkout(client)

        resp = _signed(
            client,
            {
                "event": "payment.failed",
                "transaction_id": "txn-123",
                "failure_reason": "Card declined",
            },
        )

        assert resp.status_code == 200
        assert resp.json()["intent_status"] == "failed"
        intent = client.get(f"/payment-intents/{intent_id}").json()["data"]
        assert intent["status"] == "failed"


def test_bad_signature_rejected() -> None:
    config = OrderflowConfig(webhook_secret=SECRET)
    with create_test_client(config, gateway=FakeGateway()) as client:
        intent_id = _checkout(client)

        resp, _ = _post(
            client,
            {"event": "payment.success", "transaction_id": "txn-123"},
            signature="not-a-signature",
        )

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid webhook signature"
        intent = client.get(f"/payment-intents/{intent_id}").json()["data"]
        assert intent["status"] == "requires_action"


def test_missing_signature_rejected() -> None:
    config = OrderflowConfig(webhook_secret=SECRET)
    with create_test_client(config) as client:
        resp, _ = _post(client, {"event": "payment.success"})

        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_callback"


def test_malformed_payload_rejected() -> None:
    with create_test_client() as client:
        resp = client.post(
            "/webhooks/payments/sandbox",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Malformed webhook payload"


def test_uncorrelated_event_returns_404() -> None:
    with create_test_client() as client:
        resp, _ = _post(
            client, {"event": "payment.success", "transaction_id": "ghost"}
        )

        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"


def test_duplicate_event_is_not_reapplied() -> None:
    with create_test_client(gateway=FakeGateway()) as client:
        intent_id = _checkout(client)
        body = {
            "event": "payment.success",
            "event_id": "evt-1",
            "transaction_id": "txn-123",
        }

        first, _ = _post(client, body, signature="ok")
        second, _ = _post(client, body, signature="ok")

        assert first.json()["status"] == "processed"
        assert second.json()["status"] == "duplicate"
        transactions = client.get(
            f"/payment-intents/{intent_id}/transactions"
        ).json()["data"]
        assert len(transactions) == 2


def test_custom_signature_header() -> None:
    config = OrderflowConfig(
        webhook_secret=SECRET, webhook_signature_header="X-Provider-Sig"
    )
    with create_test_client(config, gateway=FakeGateway()) as client:
        _checkout(client)
        raw = json.dumps(
            {"event": "payment.cancelled", "transaction_id": "txn-123"}
        ).encode()

        resp = client.post(
            "/webhooks/payments/sandbox",
            content=raw,
            headers={
                "content-type": "application/json",
                "X-Provider-Sig": HmacSignatureVerifier(SECRET).sign(raw),
            },
        )

        assert resp.status_code == 200
        assert resp.json()["intent_status"] == "cancelled"


def test_gateway_rejects_unsigned_webhook() -> None:
    with create_test_client(gateway=FakeGateway()) as client:
        intent_id = _checkout(client)

        resp, _ = _post(
            client, {"event": "payment.success", "transaction_id": "txn-123"}
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_callback"
        intent = client.get(f"/payment-intents/{intent_id}").json()["data"]
        assert intent["status"] == "requires_action"


def test_unsigned_webhook_accepted_without_any_verifier() -> None:
    with create_test_client() as client:
        created = client.post(
            "/payment-intents",
            json={"order_id": "o-1", "provider": "sandbox", "amount": "5"},
        ).json()["data"]

        resp, _ = _post(
            client,
            {"event": "payment.cancelled", "order_id": created["intent_id"]},
        )

        assert resp.status_code == 200
        assert resp.json()["intent_status"] == "cancelled"


def test_list_webhook_events() -> None:
    config = OrderflowConfig(webhook_secret=SECRET)
    with create_test_client(config, gateway=FakeGateway()) as client:
        intent_id = _checkout(client)
        _signed(
            client,
            {
                "event": "payment.success",
                "event_id": "evt-1",
                "transaction_id": "txn-123",
            },
        )
        _signed(
            client,
            {
                "event": "refund.completed",
                "event_id": "evt-2",
                "transaction_id": "txn-123",
            },
        )

        resp = client.get("/webhooks/events", params={"provider": "sandbox"})
        filtered = client.get(
            "/webhooks/events",
            params={"event_type": "refund.completed", "limit": 1},
        )
        other = client.get("/webhooks/events", params={"provider": "x"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total"] == 2
        assert data["limit"] == 50
        assert {e["event_id"] for e in data["events"]} == {"evt-1", "evt-2"}
        assert all(e["intent_id"] == intent_id for e in data["events"])
        events = filtered.json()["data"]["events"]
        assert [e["event_id"] for e in events] == ["evt-2"]
        assert other.json()["data"]["total"] == 0


def test_list_webhook_events_rejects_bad_paging() -> None:
    with create_test_client() as client:
        resp = client.get("/webhooks/events", params={"limit": 0})

        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

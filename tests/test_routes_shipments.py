"""Shipment route tests."""

from __future__ import annotations

from conftest import create_test_client

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.routes.shipments import router


def _create(client, order_id="o-1", items=None):
    return client.post(
        "/shipments",
        json={
            "order_id": order_id,
            "carrier": "dhl",
            "items": items or [{"order_item_id": "i-1", "qty": 2}],
        },
    )


def test_shipment_routes_registered() -> None:
    paths = {route.path for route in router.routes}
    assert {
        "/shipments",
        "/shipments/{shipment_id}",
        "/shipments/{shipment_id}/status",
        "/shipments/{shipment_id}/items",
        "/shipments/{shipment_id}/items/{order_item_id}",
        "/shipments/{shipment_id}/carrier",
        "/shipments/{shipment_id}/service",
        "/shipments/{shipment_id}/label",
        "/shipments/{shipment_id}/gift",
        "/shipments/{shipment_id}/items/{order_item_id}/qty",
    } <= paths


def test_create_and_get_shipment() -> None:
    with create_test_client() as client:
        created = _create(client)

        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        shipment_id = body["data"]["shipment_id"]

        resp = client.get(f"/shipments/{shipment_id}")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["carrier"] == "dhl"
        assert data["total_items"] == 2
        assert data["items"][0]["order_item_id"] == "i-1"


def test_create_shipment_validation_error() -> None:
    with create_test_client() as client:
        resp = client.post("/shipments", json={"order_id": "  "})

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"


def test_get_missing_shipment_returns_404() -> None:
    with create_test_client() as client:
        resp = client.get("/shipments/missing")

        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"


def test_status_updates() -> None:
    with create_test_client() as client:
        shipment_id = _create(client).json()["data"]["shipment_id"]

        moved = client.patch(
            f"/shipments/{shipment_id}/status", json={"status": "in_transit"}
        )
        assert moved.status_code == 200
        assert moved.json()["data"]["shipped_at"] is not None

        delivered = client.patch(
            f"/shipments/{shipment_id}/status", json={"status": "delivered"}
        )
        assert delivered.json()["data"]["status"] == "delivered"

        rejected = client.patch(
            f"/shipments/{shipment_id}/status", json={"status": "cancelled"}
        )
        assert rejected.status_code == 400
        assert rejected.json()["code"] == "invalid_transition"


def test_add_and_remove_items() -> None:
    with create_test_client() as client:
        shipment_id = _create(client).json()["data"]["shipment_id"]

        added = client.post(
            f"/shipments/{shipment_id}/items",
            json={"order_item_id": "i-2", "qty": 1, "gift_wrap": True},
        )
        assert added.status_code == 201
        assert added.json()["data"]["total_items"] == 3

        missing = client.delete(
            f"/shipments/{shipment_id}/items/nonexistent-item"
        )
        assert missing.status_code == 404

        removed = client.delete(f"/shipments/{shipment_id}/items/i-1")
        assert removed.status_code == 200
        items = removed.json()["data"]["items"]
        assert [i["order_item_id"] for i in items] == ["i-2"]


def test_list_shipments_with_filters() -> None:
    with create_test_client() as client:
        for index in range(3):
            shipment_id = _create(client, f"o-{index}").json()["data"][
                "shipment_id"
            ]
            client.patch(
                f"/shipments/{shipment_id}/status",
                json={"status": "in_transit"},
            )
        _create(client, "o-other")

        resp = client.get(
            "/shipments", params={"status": "in_transit", "limit": 1}
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert len(data["shipments"]) == 1
        assert data["total"] == 3
        assert data["limit"] == 1


def test_list_shipments_uses_configured_page_size() -> None:
    config = OrderflowConfig(default_page_size=2)
    with create_test_client(config) as client:
        for index in range(3):
            _create(client, f"o-{index}")

        data = client.get("/shipments").json()["data"]

        assert len(data["shipments"]) == 2
        assert data["limit"] == 2


def test_list_shipments_rejects_bad_query() -> None:
    with create_test_client() as client:
        resp = client.get("/shipments", params={"sort_order": "sideways"})
        assert resp.status_code == 400


def test_shipments_by_order() -> None:
    with create_test_client() as client:
        _create(client, "o-1")
        _create(client, "o-1")

        resp = client.get("/orders/o-1/shipments")

        assert resp.status_code == 200
        assert len(resp.json()["data"]) == 2


def test_delete_shipment() -> None:
    with create_test_client() as client:
        shipment_id = _create(client).json()["data"]["shipment_id"]

        assert client.delete(f"/shipments/{shipment_id}").status_code == 200
        assert client.get(f"/shipments/{shipment_id}").status_code == 404
        assert client.delete(f"/shipments/{shipment_id}").status_code == 404


def test_update_shipment_details() -> None:
    with create_test_client() as client:
        shipment_id = _create(client).json()["data"]["shipment_id"]

        carrier = client.patch(
            f"/shipments/{shipment_id}/carrier", json={"carrier": "fedex"}
        )
        service = client.patch(
            f"/shipments/{shipment_id}/service", json={"service": "express"}
        )
        label = client.patch(
            f"/shipments/{shipment_id}/label",
            json={"label_url": "https://labels.example/1.pdf"},
        )
        gift = client.patch(
            f"/shipments/{shipment_id}/gift",
            json={"is_gift": True, "gift_message": "Happy birthday"},
        )

        assert carrier.status_code == 200
        assert carrier.json()["data"]["carrier"] == "fedex"
        assert service.json()["data"]["service"] == "express"
        assert label.json()["data"]["label_url"] == (
            "https://labels.example/1.pdf"
        )
        data = gift.json()["data"]
        assert data["is_gift"] is True
        assert data["gift_message"] == "Happy birthday"

        loaded = client.get(f"/shipments/{shipment_id}").json()["data"]
        assert loaded["carrier"] == "fedex"
        assert loaded["service"] == "express"


def test_update_shipment_details_validation() -> None:
    with create_test_client() as client:
        shipment_id = _create(client).json()["data"]["shipment_id"]

        blank = client.patch(
            f"/shipments/{shipment_id}/carrier", json={"carrier": " "}
        )
        missing_flag = client.patch(
            f"/shipments/{shipment_id}/gift", json={"gift_message": "hi"}
        )
        unknown = client.patch(
            "/shipments/missing/service", json={"service": "express"}
        )

        assert blank.status_code == 400
        assert blank.json()["code"] == "validation_error"
        assert missing_flag.status_code == 400
        assert unknown.status_code == 404


def test_list_and_update_shipment_items() -> None:
    with create_test_client() as client:
        shipment_id = _create(
            client,
            items=[
                {"order_item_id": "i-1", "qty": 2},
                {"order_item_id": "i-2", "qty": 1},
            ],
        ).json()["data"]["shipment_id"]

        items = client.get(f"/shipments/{shipment_id}/items")
        updated = client.patch(
            f"/shipments/{shipment_id}/items/i-2/qty", json={"qty": 5}
        )
        zero = client.patch(
            f"/shipments/{shipment_id}/items/i-2/qty", json={"qty": 0}
        )
        missing = client.patch(
            f"/shipments/{shipment_id}/items/nope/qty", json={"qty": 1}
        )

        assert items.status_code == 200
        assert {i["order_item_id"] for i in items.json()["data"]} == {
            "i-1",
            "i-2",
        }
        assert updated.status_code == 200
        assert updated.json()["data"]["qty"] == 5
        assert zero.status_code == 400
        assert missing.status_code == 404

        loaded = client.get(f"/shipments/{shipment_id}").json()["data"]
        assert loaded["total_items"] == 7

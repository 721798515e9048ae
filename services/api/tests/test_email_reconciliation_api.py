from __future__ import annotations

from fastapi.testclient import TestClient

HEADERS = {"X-User-Id": "u-1"}


def _paid_order(client: TestClient) -> tuple[str, str]:
    txn = client.post(
        "/v1/payment/authorize",
        json={"amount_cents": 2000, "subtotal_cents": 2000, "delivery_cost_cents": 0},
        headers=HEADERS,
    ).json()["transaction_id"]

    order_id = client.post(
        "/v1/orders/create",
        json={
            "items": [{"name": "Tea", "quantity": 4, "unit_price_cents": 500}],
            "subtotal_before_discount_cents": 2000,
            "subtotal_cents": 2000,
            "total_cents": 2000,
            "transaction_id": txn,
            "metadata": {"delivery_type": "pickup"},
        },
        headers=HEADERS,
    ).json()["id"]
    return txn, order_id


def _email(order_id: str, txn: str, customer_email: str | None = "a@b.example") -> dict:
    return {
        "order_id": order_id,
        "transaction_id": txn,
        "customer_email": customer_email,
        "total_cents": 2000,
    }


def test_order_confirmation_is_accepted(client: TestClient) -> None:
    txn, order_id = _paid_order(client)

    resp = client.post("/v1/email/order-confirmation", json=_email(order_id, txn), headers=HEADERS)
    assert resp.status_code == 202
    assert resp.json() == {"status": "sent", "message_id": f"log:{order_id}"}

    events = client.get(f"/v1/reconciliation/{txn}").json()["events"]
    assert [e["event_type"] for e in events][-1] == "ORDER_CONFIRMATION_SENT"


def test_order_confirmation_without_address_is_502(client: TestClient) -> None:
    txn, order_id = _paid_order(client)

    resp = client.post(
        "/v1/email/order-confirmation", json=_email(order_id, txn, None), headers=HEADERS
    )
    assert resp.status_code == 502

    events = client.get(f"/v1/reconciliation/{txn}").json()["events"]
    assert "ORDER_CONFIRMATION_FAILED" in {e["event_type"] for e in events}


def test_order_confirmation_for_unknown_order_is_404(client: TestClient) -> None:
    resp = client.post("/v1/email/order-confirmation", json=_email("nope", "TXN-X"), headers=HEADERS)
    assert resp.status_code == 404


def test_reconciliation_of_completed_order(client: TestClient) -> None:
    txn, order_id = _paid_order(client)

    resp = client.get(f"/v1/reconciliation/{txn}")
    assert resp.status_code == 200
    view = resp.json()
    assert view["payment"]["amount_cents"] == 2000
    assert view["order"]["id"] == order_id
    assert view["failed_orders"] == []
    assert [e["event_type"] for e in view["events"]] == ["PAYMENT_AUTHORIZED", "ORDER_CREATED"]
    assert view["needs_attention"] is False


def test_reconciliation_flags_payment_without_order(client: TestClient) -> None:
    txn = client.post(
        "/v1/payment/authorize",
        json={"amount_cents": 2000, "subtotal_cents": 2000},
        headers=HEADERS,
    ).json()["transaction_id"]
    client.post(
        "/v1/orders/failed",
        json={
            "transaction_id": txn,
            "error_kind": "ORDER_NETWORK_ERROR",
            "error": "Order creation did not complete after payment",
            "amount_cents": 2000,
        },
        headers=HEADERS,
    )

    view = client.get(f"/v1/reconciliation/{txn}").json()
    assert view["order"] is None
    assert view["failed_orders"][0]["error_kind"] == "ORDER_NETWORK_ERROR"
    assert view["needs_attention"] is True


def test_reconciliation_unknown_transaction_is_404(client: TestClient) -> None:
    assert client.get("/v1/reconciliation/TXN-NONE").status_code == 404


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}

from contextlib import contextmanager
from dataclasses import replace

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import OperationalError

from storefront.config import get_settings
from storefront.errors import ClientInputError
from storefront.lifecycle import OrderLifecycle
from storefront.main import app
from storefront.models import (
    ColorCopiesOrder,
    PaymentStatus,
    ProductType,
    Quote,
    QuoteAttachment,
    QuoteProduct,
    TShirtOrder,
)
from storefront.store import OrderStore


def place(client, payload):
    res = client.post("/orders/design", json=payload)
    assert res.status_code == 200, res.text
    return res.json()


def test_design_order_is_priced_server_side(client, design_payload):
    body = place(client, design_payload)
    assert body["success"] is True
    assert body["totalPrice"] == 26.50
    assert body["basePrice"] == 22.50

    order = client.get(f"/orders/{body['orderId']}").json()["order"]
    assert order["base_price"] == 22.50
    assert order["turnaround_price"] == 4.00
    assert order["total_price"] == 26.50
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["product_type"] == "tshirt"
    assert order["design_proof_required"] is True
    assert order["proof_contact_details"] == "me@example.com"
    assert order["area_instructions"] == [{"area_id": "front", "instructions": "center it"}]


def test_proof_contact_dropped_without_proof(client, design_payload):
    design_payload["designProof"] = "No, print as is"
    order_id = place(client, design_payload)["orderId"]
    order = client.get(f"/orders/{order_id}").json()["order"]
    assert order["design_proof_required"] is False
    assert order["proof_contact_details"] is None


def test_malformed_design_is_a_client_error(client, design_payload):
    design_payload["quantity"] = 0
    res = client.post("/orders/design", json=design_payload)
    assert res.status_code == 400
    assert res.json()["success"] is False

    res = client.post("/orders/design", content=b"{not json", headers={"content-type": "application/json"})
    assert res.status_code == 400


def test_unknown_order_is_404(client):
    res = client.get("/orders/does-not-exist")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Order not found"}


def test_list_orders_pagination_and_filter(client, design_payload):
    ids = [place(client, design_payload)["orderId"] for _ in range(3)]

    first = client.get("/orders", params={"limit": 2}).json()
    assert len(first["orders"]) == 2
    assert first["pagination"] == {"limit": 2, "offset": 0, "hasMore": True}

    rest = client.get("/orders", params={"limit": 2, "offset": 2}).json()
    assert len(rest["orders"]) == 1
    assert rest["pagination"]["hasMore"] is False

    client.post(f"/orders/{ids[0]}/payment", json={"paymentId": "PAY-1", "status": "paid"})
    processing = client.get("/orders", params={"status": "processing"}).json()["orders"]
    assert [o["id"] for o in processing] == [ids[0]]


def test_payment_paid_moves_order_to_processing(client, design_payload):
    order_id = place(client, design_payload)["orderId"]
    res = client.post(
        f"/orders/{order_id}/payment",
        json={"paymentId": "PAY-9", "status": "paid", "paymentMethod": "paypal", "transactionId": "TX-1"},
    )
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["payment_status"] == "paid"
    assert order["status"] == "processing"
    assert order["payment_id"] == "PAY-9"
    assert order["payment_method"] == "paypal"


def test_payment_failed_keeps_order_pending(client, design_payload):
    order_id = place(client, design_payload)["orderId"]
    order = client.post(f"/orders/{order_id}/payment", json={"paymentId": "PAY-2", "status": "failed"}).json()["order"]
    assert order["payment_status"] == "failed"
    assert order["status"] == "pending"


def test_payment_reference_is_never_cleared(client, design_payload):
    order_id = place(client, design_payload)["orderId"]
    client.post(f"/orders/{order_id}/payment", json={"paymentId": "PAY-3", "status": "paid", "paymentMethod": "card"})
    order = client.post(f"/orders/{order_id}/payment", json={"status": "failed"}).json()["order"]
    assert order["payment_id"] == "PAY-3"
    assert order["payment_method"] == "card"


def test_payment_rejects_unknown_status(client, design_payload):
    order_id = place(client, design_payload)["orderId"]
    res = client.post(f"/orders/{order_id}/payment", json={"paymentId": "PAY-4", "status": "refunded"})
    assert res.status_code == 400


def test_payment_for_missing_order_is_404(client):
    res = client.post("/orders/nope/payment", json={"paymentId": "PAY-5", "status": "paid"})
    assert res.status_code == 404


def test_admin_routes_need_login(client, design_payload):
    order_id = place(client, design_payload)["orderId"]
    assert client.patch(f"/orders/{order_id}", json={"status": "completed"}).status_code == 401
    assert client.delete(f"/orders/{order_id}").status_code == 401
    assert client.get("/admin/orders").status_code == 401


def test_bad_login_is_rejected(client):
    res = client.post("/admin/login", json={"username": "admin", "password": "wrong"})
    assert res.status_code == 401
    assert res.json()["success"] is False


def test_admin_status_overwrite_is_unrestricted(admin_client, design_payload):
    order_id = place(admin_client, design_payload)["orderId"]
    res = admin_client.patch(f"/orders/{order_id}", json={"status": "completed"})
    assert res.json()["order"]["status"] == "completed"
    res = admin_client.patch(f"/orders/{order_id}", json={"status": "on-hold"})
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "on-hold"


def test_admin_status_requires_value(admin_client, design_payload):
    order_id = place(admin_client, design_payload)["orderId"]
    assert admin_client.patch(f"/orders/{order_id}", json={}).status_code == 400
    assert admin_client.patch(f"/orders/{order_id}", json={"status": "  "}).status_code == 400


def test_checkout_stores_color_copies_in_its_own_table(client, checkout_payload):
    res = client.post("/checkout", json=checkout_payload)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["productType"] == "color_copies"
    assert body["totalPrice"] == 4.90

    order = client.get(f"/orders/{body['orderId']}").json()["order"]
    assert order["product_type"] == "color_copies"
    assert order["customer_name"] == "Sam Lee"
    assert order["customer_address"] == "1 Main St, Springfield, IL 62701, US"
    assert order["color_copies_data"] == {"printType": "8.5x11-single"}

    tshirts = client.get("/orders").json()["orders"]
    assert tshirts == []


def test_checkout_rejects_bad_email(client, checkout_payload):
    checkout_payload["customerDetails"]["email"] = "not-an-email"
    assert client.post("/checkout", json=checkout_payload).status_code == 400


def test_admin_listing_merges_both_tables(admin_client, design_payload, checkout_payload):
    tshirt_id = place(admin_client, design_payload)["orderId"]
    copies_id = admin_client.post("/checkout", json=checkout_payload).json()["orderId"]

    orders = admin_client.get("/admin/orders").json()["orders"]
    assert {o["id"] for o in orders} == {tshirt_id, copies_id}
    stamps = [o["created_at"] for o in orders]
    assert stamps == sorted(stamps, reverse=True)


def test_delete_resolves_the_right_table(admin_client, design_payload, checkout_payload):
    tshirt_id = place(admin_client, design_payload)["orderId"]
    copies_id = admin_client.post("/checkout", json=checkout_payload).json()["orderId"]

    res = admin_client.delete(f"/orders/{copies_id}")
    assert res.status_code == 200
    assert res.json()["productType"] == "color_copies"
    assert admin_client.get(f"/orders/{copies_id}").status_code == 404

    res = admin_client.delete(f"/orders/{tshirt_id}", params={"product_type": "tshirt"})
    assert res.json()["productType"] == "tshirt"
    assert admin_client.delete(f"/orders/{tshirt_id}").status_code == 404


def test_delete_with_wrong_product_type_is_404(admin_client, design_payload):
    tshirt_id = place(admin_client, design_payload)["orderId"]
    res = admin_client.delete(f"/orders/{tshirt_id}", params={"product_type": "color_copies"})
    assert res.status_code == 404
    assert admin_client.get(f"/orders/{tshirt_id}").status_code == 200


def test_datastore_failure_hides_upstream_detail(client, monkeypatch):
    @contextmanager
    def broken_session():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error at /var/db"))
        yield

    monkeypatch.setattr(app.state.orders.orders, "_session_factory", broken_session)
    res = client.get("/orders")
    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Error fetching orders"
    assert body["error"].startswith("ref-")
    assert "disk" not in res.text


@pytest.fixture
def store():
    return OrderStore()


def _new_order(store):
    return store.create_order(ProductType.TSHIRT, {"quantity": 1})


def test_strict_status_policy_enforces_transitions(store):
    lifecycle = OrderLifecycle(store, replace(get_settings(), order_status_policy="strict"))
    order = _new_order(store)

    with pytest.raises(ClientInputError):
        lifecycle.set_status(order.id, "on-hold")
    with pytest.raises(ClientInputError):
        lifecycle.set_status(order.id, "completed")

    assert lifecycle.set_status(order.id, "processing").status == "processing"
    assert lifecycle.set_status(order.id, "completed").status == "completed"
    with pytest.raises(ClientInputError):
        lifecycle.set_status(order.id, "cancelled")


def test_reject_closed_policy_blocks_payment_changes(store):
    lifecycle = OrderLifecycle(store, replace(get_settings(), payment_update_policy="reject_closed"))
    order = _new_order(store)
    lifecycle.confirm_payment(order.id, status=PaymentStatus.PAID, payment_id="PAY-1")
    lifecycle.set_status(order.id, "completed")

    with pytest.raises(ClientInputError):
        lifecycle.confirm_payment(order.id, status=PaymentStatus.FAILED, payment_id="PAY-2")

    stored = store.get_order(order.id)
    assert stored.payment_status == "paid"
    assert stored.payment_id == "PAY-1"
    assert stored.status == "completed"


def test_allow_policy_keeps_original_payment_behaviour(store):
    lifecycle = OrderLifecycle(store, replace(get_settings(), payment_update_policy="allow"))
    order = _new_order(store)
    lifecycle.set_status(order.id, "completed")
    updated = lifecycle.confirm_payment(order.id, status=PaymentStatus.PAID, payment_id="PAY-7")
    assert updated.payment_status == "paid"
    assert updated.status == "processing"


def test_mutations_refresh_updated_at(store):
    order = _new_order(store)
    updated = store.update_order_status(order.id, "processing")
    assert updated.updated_at >= order.updated_at
    assert updated.created_at == order.created_at


def test_locate_finds_each_variant(store):
    tshirt = store.create_order(ProductType.TSHIRT, {"quantity": 1})
    copies = store.create_order(ProductType.COLOR_COPIES, {"quantity": 5, "color_copies_data": {}})
    assert store.locate(tshirt.id) == ProductType.TSHIRT
    assert store.locate(copies.id) == ProductType.COLOR_COPIES
    assert store.locate("missing") is None


@pytest.mark.parametrize("model", [TShirtOrder, ColorCopiesOrder, Quote, QuoteProduct, QuoteAttachment])
def test_timestamp_columns_are_plain_datetime(model):
    stamps = {name: col for name, col in model.__table__.columns.items() if name.endswith(("_at", "_date"))}
    assert "created_at" in stamps
    for name, column in stamps.items():
        assert type(column.type) is DateTime, name
        assert column.type.timezone is False


def test_created_order_keeps_naive_utc_timestamps(store):
    order = _new_order(store)
    assert order.created_at.tzinfo is None
    stored = store.get_order(order.id)
    assert stored.created_at == order.created_at
    assert stored.updated_at.tzinfo is None

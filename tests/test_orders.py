from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from repuestos.config.database import AsyncSessionLocal
from repuestos.models.catalog import Product
from repuestos.models.promotion import Promotion
from repuestos.models.user import User

ADDRESS = {
    "name": "Cliente",
    "phone": "0414-5550000",
    "address": "Calle Real de Sabana Grande",
    "city": "Caracas",
    "state": "Distrito Capital",
    "zip_code": "1050",
}


async def stock_of(product_id):
    async with AsyncSessionLocal() as db:
        return (await db.get(Product, UUID(product_id))).stock


@pytest.fixture
def place_order(client, auth):
    async def _place_order(buyer, items, expect=201, **fields):
        data = {
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
            "payment_method": "pago_movil",
            "shipping_method": "delivery",
            "shipping_address": ADDRESS,
        }
        data.update(fields)
        r = await client.post("/api/orders", json=data, headers=auth(buyer))
        assert r.status_code == expect, r.text
        return r.json()

    return _place_order


@pytest.fixture
async def product(manager, store, make_product):
    return await make_product(manager, store["id"], name="Amortiguador", price="100.00", stock=10)


@pytest.fixture
def move(client, auth):
    async def _move(order, user, status, expect=200):
        r = await client.patch(f"/api/orders/{order['id']}/status", json={"status": status}, headers=auth(user))
        assert r.status_code == expect, r.text
        return r.json()

    return _move


async def test_place_order_totals(customer, store, product, place_order):
    order = await place_order(customer, [(product["id"], 2)])

    assert order["order_number"].startswith("ORD-")
    assert order["store_id"] == store["id"]
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["fulfillment_status"] == "unfulfilled"
    assert order["subtotal"] == 200.0
    assert order["discount_amount"] == 0.0
    assert order["tax_amount"] == 32.0
    assert order["shipping_cost"] == 5.0
    assert order["total_amount"] == 237.0
    assert order["shipping_city"] == "Caracas"

    [item] = order["items"]
    assert item["product_name"] == "Amortiguador"
    assert item["unit_price"] == 100.0
    assert item["total_price"] == 200.0

    assert await stock_of(product["id"]) == 8


async def test_pickup_has_no_shipping_cost(customer, product, place_order):
    order = await place_order(
        customer, [(product["id"], 1)], shipping_method="pickup", shipping_address=None
    )
    assert order["shipping_cost"] == 0.0
    assert order["total_amount"] == 116.0
    assert order["shipping_name"] == "Cliente"


async def test_delivery_requires_address(customer, product, place_order):
    await place_order(customer, [(product["id"], 1)], expect=422, shipping_address=None)


async def test_duplicate_lines_are_merged(customer, product, place_order):
    order = await place_order(customer, [(product["id"], 1), (product["id"], 2)])
    assert [i["quantity"] for i in order["items"]] == [3]
    assert await stock_of(product["id"]) == 7


async def test_order_rejections(manager, customer, store, make_store, make_product, product, place_order, auth, client):
    await place_order(customer, [(product["id"], 11)], expect=400)

    other_store = await make_store(manager)
    elsewhere = await make_product(manager, other_store["id"])
    await place_order(customer, [(product["id"], 1), (elsewhere["id"], 1)], expect=400)

    await client.delete(f"/api/products/{elsewhere['id']}", headers=auth(manager))
    await place_order(customer, [(elsewhere["id"], 1)], expect=400)

    await place_order(customer, [("00000000-0000-0000-0000-000000000000", 1)], expect=400)

    # Nothing was reserved by the failed attempts
    assert await stock_of(product["id"]) == 10


async def test_promotion_pricing_counts_one_use_per_order(client, manager, customer, store, make_product, place_order, auth):
    brakes = await make_product(manager, store["id"], price="100.00", stock=10)
    filters = await make_product(manager, store["id"], price="20.00", stock=10)
    now = datetime.now(timezone.utc)
    promotion = (
        await client.post(
            "/api/promotions",
            json={
                "name": "Semana del freno",
                "type": "percentage",
                "discount_percentage": "10",
                "start_date": (now - timedelta(days=1)).isoformat(),
                "end_date": (now + timedelta(days=1)).isoformat(),
                "product_ids": [brakes["id"], filters["id"]],
            },
            headers=auth(manager),
        )
    ).json()

    order = await place_order(
        customer, [(brakes["id"], 2), (filters["id"], 1)], shipping_method="pickup", shipping_address=None
    )
    assert order["subtotal"] == 220.0
    assert order["discount_amount"] == 22.0
    # 16% on 198.00
    assert order["tax_amount"] == 31.68
    assert order["total_amount"] == 229.68
    assert {i["promotion_id"] for i in order["items"]} == {promotion["id"]}

    async with AsyncSessionLocal() as db:
        assert (await db.get(Promotion, UUID(promotion["id"]))).current_uses == 1


async def test_exhausted_promotion_stops_applying(client, manager, customer, store, make_product, place_order, auth):
    brakes = await make_product(manager, store["id"], price="50.00", stock=10)
    now = datetime.now(timezone.utc)
    await client.post(
        "/api/promotions",
        json={
            "name": "Solo una vez",
            "type": "fixed",
            "discount_amount": "10",
            "max_uses": 1,
            "start_date": (now - timedelta(days=1)).isoformat(),
            "end_date": (now + timedelta(days=1)).isoformat(),
            "product_ids": [brakes["id"]],
        },
        headers=auth(manager),
    )

    first = await place_order(customer, [(brakes["id"], 1)])
    second = await place_order(customer, [(brakes["id"], 1)])
    assert first["discount_amount"] == 10.0
    assert second["discount_amount"] == 0.0


async def test_cancel_releases_promotion_use(client, manager, customer, store, make_product, place_order, auth):
    brakes = await make_product(manager, store["id"], price="50.00", stock=10)
    now = datetime.now(timezone.utc)
    promotion = (
        await client.post(
            "/api/promotions",
            json={
                "name": "Una sola vez",
                "type": "fixed",
                "discount_amount": "10",
                "max_uses": 1,
                "start_date": (now - timedelta(days=1)).isoformat(),
                "end_date": (now + timedelta(days=1)).isoformat(),
                "product_ids": [brakes["id"]],
            },
            headers=auth(manager),
        )
    ).json()

    first = await place_order(customer, [(brakes["id"], 1)])
    assert first["discount_amount"] == 10.0
    r = await client.post(f"/api/orders/{first['id']}/cancel", json={}, headers=auth(customer))
    assert r.status_code == 200

    async with AsyncSessionLocal() as db:
        assert (await db.get(Promotion, UUID(promotion["id"]))).current_uses == 0

    second = await place_order(customer, [(brakes["id"], 1)])
    assert second["discount_amount"] == 10.0


async def test_cancel_restocks(client, customer, make_user, product, place_order, auth):
    order = await place_order(customer, [(product["id"], 4)])
    assert await stock_of(product["id"]) == 6

    stranger = await make_user()
    r = await client.post(f"/api/orders/{order['id']}/cancel", json={}, headers=auth(stranger))
    assert r.status_code == 403

    r = await client.post(
        f"/api/orders/{order['id']}/cancel", json={"reason": "Compré otro"}, headers=auth(customer)
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "cancelled"
    assert body["payment_status"] == "cancelled"
    assert body["cancel_reason"] == "Compré otro"
    assert body["cancelled_at"] is not None
    assert await stock_of(product["id"]) == 10

    r = await client.post(f"/api/orders/{order['id']}/cancel", json={}, headers=auth(customer))
    assert r.status_code == 400


async def test_illegal_transitions(customer, manager, product, place_order, move):
    order = await place_order(customer, [(product["id"], 1)])

    await move(order, manager, "delivered", expect=400)
    await move(order, manager, "pending", expect=400)
    await move(order, customer, "confirmed", expect=403)

    confirmed = await move(order, manager, "confirmed")
    assert confirmed["confirmed_at"] is not None


async def test_delivery_flow_awards_points_once(client, customer, manager, courier, product, place_order, move, auth):
    order = await place_order(customer, [(product["id"], 2)])

    await move(order, manager, "confirmed")
    await move(order, manager, "processing")
    await move(order, manager, "ready_for_delivery")
    await move(order, manager, "out_for_delivery", expect=400)

    r = await client.post(
        f"/api/orders/{order['id']}/assign-delivery",
        json={"delivery_user_id": str(customer.id)},
        headers=auth(manager),
    )
    assert r.status_code == 400

    r = await client.post(
        f"/api/orders/{order['id']}/assign-delivery",
        json={"delivery_user_id": str(courier.id)},
        headers=auth(manager),
    )
    assert r.status_code == 200
    assert r.json()["assigned_delivery_id"] == str(courier.id)
    assert r.json()["estimated_delivery"] is not None

    assigned = (await client.get("/api/delivery/orders", headers=auth(courier))).json()
    assert [o["id"] for o in assigned["data"]] == [order["id"]]

    # Couriers only dispatch and deliver
    await move(order, courier, "completed", expect=403)
    shipped = await move(order, courier, "out_for_delivery")
    assert shipped["shipped_at"] is not None

    async with AsyncSessionLocal() as db:
        assert (await db.get(User, courier.id)).delivery_status == "on_route"

    delivered = await move(order, courier, "delivered")
    assert delivered["fulfillment_status"] == "fulfilled"
    assert delivered["points_awarded"] is True

    completed = await move(order, manager, "completed")
    assert completed["completed_at"] is not None

    async with AsyncSessionLocal() as db:
        buyer = await db.get(User, customer.id)
        assert buyer.points == 237
        assert buyer.total_purchases == 1
        assert float(buyer.total_spent) == 237.0
        assert (await db.get(User, courier.id)).delivery_status == "available"


async def test_pickup_flow(customer, manager, product, place_order, move):
    order = await place_order(customer, [(product["id"], 1)], shipping_method="pickup", shipping_address=None)
    await move(order, manager, "confirmed")
    await move(order, manager, "processing")
    await move(order, manager, "ready_for_pickup")
    completed = await move(order, manager, "completed")
    assert completed["fulfillment_status"] == "fulfilled"
    assert completed["points_awarded"] is True


async def test_pickup_orders_take_no_courier(client, customer, manager, courier, product, place_order, auth):
    order = await place_order(customer, [(product["id"], 1)], shipping_method="pickup", shipping_address=None)
    r = await client.post(
        f"/api/orders/{order['id']}/assign-delivery",
        json={"delivery_user_id": str(courier.id)},
        headers=auth(manager),
    )
    assert r.status_code == 400


async def test_refund_requires_payment(client, customer, manager, product, place_order, move, auth):
    order = await place_order(customer, [(product["id"], 1)], shipping_method="pickup", shipping_address=None)
    for status in ("confirmed", "processing", "ready_for_pickup", "completed"):
        await move(order, manager, status)

    await move(order, manager, "refunded", expect=400)

    r = await client.patch(
        f"/api/orders/{order['id']}/payment", json={"payment_status": "paid"}, headers=auth(manager)
    )
    assert r.status_code == 200

    refunded = await move(order, manager, "refunded")
    assert refunded["payment_status"] == "refunded"
    assert refunded["refunded_at"] is not None

    r = await client.patch(
        f"/api/orders/{order['id']}/payment", json={"payment_status": "paid"}, headers=auth(manager)
    )
    assert r.status_code == 400


async def test_cancel_via_status_restocks(customer, manager, product, place_order, move):
    order = await place_order(customer, [(product["id"], 3)])
    await move(order, manager, "on_hold")
    cancelled = await move(order, manager, "cancelled")
    assert cancelled["payment_status"] == "cancelled"
    assert await stock_of(product["id"]) == 10


async def test_order_visibility(client, customer, manager, admin, make_user, product, place_order, auth):
    order = await place_order(customer, [(product["id"], 1)])

    for user, expected in ((customer, 200), (manager, 200), (admin, 200), (await make_user(), 403)):
        r = await client.get(f"/api/orders/{order['id']}", headers=auth(user))
        assert r.status_code == expected

    assert (await client.get("/api/orders/mine", headers=auth(customer))).json()["total"] == 1
    assert (await client.get("/api/orders", headers=auth(manager))).status_code == 403
    assert (await client.get("/api/orders", headers=auth(admin))).json()["total"] == 1


async def test_order_stats(client, customer, manager, store, product, place_order, move, auth):
    delivered = await place_order(customer, [(product["id"], 1)], shipping_method="pickup", shipping_address=None)
    for status in ("confirmed", "processing", "ready_for_pickup", "completed"):
        await move(delivered, manager, status)
    await place_order(customer, [(product["id"], 1)])

    r = await client.get("/api/orders/stats", params={"store_id": store["id"]}, headers=auth(manager))
    assert r.json() == {
        "total_orders": 2,
        "by_status": {"completed": 1, "pending": 1},
        "total_revenue": 116.0,
        "average_order_value": 116.0,
    }

    store_orders = (await client.get(f"/api/orders/store/{store['id']}", headers=auth(manager))).json()
    assert store_orders["total"] == 2

from datetime import datetime, timedelta, timezone

import pytest


@pytest.fixture
def make_reward(client, auth, admin):
    async def _make_reward(**fields):
        data = {"name": "Lavado gratis", "points_required": 100, "stock": 5}
        data.update(fields)
        r = await client.post("/api/loyalty/rewards", json=data, headers=auth(admin))
        assert r.status_code == 201, r.text
        return r.json()

    return _make_reward


async def test_stats_for_new_client(client, customer, auth):
    r = await client.get("/api/loyalty/stats", headers=auth(customer))
    assert r.json() == {
        "points": 0,
        "loyalty_level": "bronze",
        "referral_code": customer.referral_code,
        "total_purchases": 0,
        "total_spent": 0.0,
        "redemptions": 0,
        "reviews": 0,
        "next_level": "silver",
    }


async def test_only_admins_create_rewards(client, manager, auth):
    r = await client.post(
        "/api/loyalty/rewards", json={"name": "Gorra", "points_required": 10}, headers=auth(manager)
    )
    assert r.status_code == 403


async def test_list_rewards(client, make_user, make_reward, auth):
    user = await make_user(points=150)
    await make_reward(name="Cambio de aceite", points_required=300)
    await make_reward(name="Lavado", points_required=100)
    await make_reward(name="Agotado", points_required=10, stock=0)
    now = datetime.now(timezone.utc)
    await make_reward(
        name="Navidad",
        points_required=50,
        start_date=(now + timedelta(days=30)).isoformat(),
        end_date=(now + timedelta(days=60)).isoformat(),
    )

    rewards = (await client.get("/api/loyalty/rewards", headers=auth(user))).json()
    assert [(r["name"], r["can_afford"]) for r in rewards] == [
        ("Lavado", True),
        ("Cambio de aceite", False),
    ]


async def test_redeem(client, make_user, make_reward, auth):
    user = await make_user(points=250)
    reward = await make_reward(points_required=100, stock=1)

    r = await client.post(f"/api/loyalty/rewards/{reward['id']}/redeem", headers=auth(user))
    assert r.status_code == 200
    body = r.json()
    assert body["points_spent"] == 100
    assert body["status"] == "pending"
    assert body["remaining_points"] == 150

    # Out of stock now
    r = await client.post(f"/api/loyalty/rewards/{reward['id']}/redeem", headers=auth(user))
    assert r.status_code == 400

    stats = (await client.get("/api/loyalty/stats", headers=auth(user))).json()
    assert stats["points"] == 150
    assert stats["redemptions"] == 1

    history = (await client.get("/api/loyalty/history", headers=auth(user))).json()
    assert [(a["type"], a["details"]["points"]) for a in history["data"]] == [("reward_redeemed", -100)]


async def test_redeem_needs_enough_points(client, customer, make_reward, auth):
    reward = await make_reward(points_required=100)
    r = await client.post(f"/api/loyalty/rewards/{reward['id']}/redeem", headers=auth(customer))
    assert r.status_code == 400
    assert r.json()["message"] == "Insufficient points"

    r = await client.post(
        "/api/loyalty/rewards/00000000-0000-0000-0000-000000000000/redeem", headers=auth(customer)
    )
    assert r.status_code == 404


async def test_level_follows_points_and_spend(client, make_user, auth):
    user = await make_user(points=2500, total_spent=250)
    stats = (await client.get("/api/loyalty/stats", headers=auth(user))).json()
    # Stored level only changes when points move
    assert stats["loyalty_level"] == "bronze"

    referred = await client.post(
        "/api/auth/register",
        json={
            "name": "Pedro",
            "email": "pedro@piezasya.com",
            "password": "clave123",
            "referral_code": user.referral_code,
        },
    )
    assert referred.status_code == 201

    stats = (await client.get("/api/loyalty/stats", headers=auth(user))).json()
    assert stats["points"] == 3000
    assert stats["loyalty_level"] == "silver"
    assert stats["next_level"] == "gold"


async def test_courier_availability(client, courier, customer, auth):
    r = await client.patch("/api/delivery/status", json={"status": "unavailable"}, headers=auth(courier))
    assert r.status_code == 200
    assert r.json()["delivery_status"] == "unavailable"

    r = await client.patch("/api/delivery/status", json={"status": "sleeping"}, headers=auth(courier))
    assert r.status_code == 422

    r = await client.patch("/api/delivery/status", json={"status": "available"}, headers=auth(customer))
    assert r.status_code == 403


async def test_review_earns_points_by_category_and_rating(client, customer, auth):
    r = await client.post(
        "/api/loyalty/reviews",
        json={"category": "app", "rating": 4, "title": "Muy útil", "comment": "Encontré el repuesto rápido"},
        headers=auth(customer),
    )
    assert r.status_code == 201
    body = r.json()
    assert body["points_earned"] == 400
    assert body["is_verified"] is False

    r = await client.post(
        "/api/loyalty/reviews", json={"category": "delivery", "rating": 2, "comment": "Tardó"}, headers=auth(customer)
    )
    assert r.json()["points_earned"] == 50

    stats = (await client.get("/api/loyalty/stats", headers=auth(customer))).json()
    assert stats["points"] == 450
    assert stats["reviews"] == 2

    reviews = (await client.get("/api/loyalty/reviews", headers=auth(customer))).json()
    assert [rv["category"] for rv in reviews["data"]] == ["delivery", "app"]

    history = (await client.get("/api/loyalty/history", headers=auth(customer))).json()
    assert {a["type"] for a in history["data"]} == {"review_points"}


async def test_review_validation(client, customer, auth):
    for data in (
        {"category": "app", "rating": 6, "comment": "Excelente"},
        {"category": "app", "rating": 0, "comment": "Malo"},
        {"category": "precio", "rating": 3, "comment": "Normal"},
        {"category": "app", "rating": 3, "comment": ""},
    ):
        r = await client.post("/api/loyalty/reviews", json=data, headers=auth(customer))
        assert r.status_code == 422

    r = await client.post(
        "/api/loyalty/reviews",
        json={
            "category": "product",
            "rating": 5,
            "comment": "Buen filtro",
            "product_id": "00000000-0000-0000-0000-000000000000",
        },
        headers=auth(customer),
    )
    assert r.status_code == 404


async def test_order_review(client, customer, manager, store, make_product, make_user, auth):
    product = await make_product(manager, store["id"])
    order = (
        await client.post(
            "/api/orders",
            json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "payment_method": "cash",
                "shipping_method": "pickup",
            },
            headers=auth(customer),
        )
    ).json()
    review = {"category": "service", "rating": 5, "comment": "Atención excelente", "order_id": order["id"]}

    stranger = await make_user()
    r = await client.post("/api/loyalty/reviews", json=review, headers=auth(stranger))
    assert r.status_code == 404

    r = await client.post("/api/loyalty/reviews", json=review, headers=auth(customer))
    assert r.status_code == 201
    assert r.json()["points_earned"] == 375
    # Not delivered yet
    assert r.json()["is_verified"] is False

    r = await client.post("/api/loyalty/reviews", json=review, headers=auth(customer))
    assert r.status_code == 409

    for status in ("confirmed", "processing", "ready_for_pickup", "completed"):
        r = await client.patch(
            f"/api/orders/{order['id']}/status", json={"status": status}, headers=auth(manager)
        )
        assert r.status_code == 200

    r = await client.post(
        "/api/loyalty/reviews", json=dict(review, category="product", rating=3), headers=auth(customer)
    )
    assert r.status_code == 201
    assert r.json()["is_verified"] is True


async def test_redemption_history_and_admin_workflow(client, admin, make_user, make_reward, auth):
    user = await make_user(points=250)
    reward = await make_reward(points_required=100, stock=2)
    redemption = (
        await client.post(f"/api/loyalty/rewards/{reward['id']}/redeem", headers=auth(user))
    ).json()

    mine = (await client.get("/api/loyalty/redemptions", headers=auth(user))).json()
    assert [r["id"] for r in mine["data"]] == [redemption["id"]]

    r = await client.get("/api/loyalty/admin/redemptions", headers=auth(user))
    assert r.status_code == 403

    pending = (
        await client.get("/api/loyalty/admin/redemptions", params={"status": "pending"}, headers=auth(admin))
    ).json()
    assert pending["total"] == 1

    url = f"/api/loyalty/admin/redemptions/{redemption['id']}"
    r = await client.patch(url, json={"status": "delivered"}, headers=auth(admin))
    assert r.status_code == 400

    r = await client.patch(url, json={"status": "approved", "notes": "Retirar en tienda"}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    assert r.json()["notes"] == "Retirar en tienda"

    r = await client.patch(url, json={"status": "delivered"}, headers=auth(admin))
    assert r.json()["status"] == "delivered"
    assert r.json()["notes"] == "Retirar en tienda"

    r = await client.patch(url, json={"status": "cancelled"}, headers=auth(admin))
    assert r.status_code == 400

    r = await client.patch(url, json={"status": "pending"}, headers=auth(admin))
    assert r.status_code == 422

    r = await client.patch(
        "/api/loyalty/admin/redemptions/00000000-0000-0000-0000-000000000000",
        json={"status": "approved"},
        headers=auth(admin),
    )
    assert r.status_code == 404


async def test_cancelled_redemption_refunds_points_and_stock(client, admin, make_user, make_reward, auth):
    user = await make_user(points=250)
    reward = await make_reward(points_required=100, stock=1)
    redemption = (
        await client.post(f"/api/loyalty/rewards/{reward['id']}/redeem", headers=auth(user))
    ).json()
    assert (await client.get("/api/loyalty/rewards", headers=auth(user))).json() == []

    r = await client.patch(
        f"/api/loyalty/admin/redemptions/{redemption['id']}", json={"status": "cancelled"}, headers=auth(admin)
    )
    assert r.status_code == 200

    stats = (await client.get("/api/loyalty/stats", headers=auth(user))).json()
    assert stats["points"] == 250

    rewards = (await client.get("/api/loyalty/rewards", headers=auth(user))).json()
    assert [(rw["id"], rw["stock"]) for rw in rewards] == [(reward["id"], 1)]

    history = (await client.get("/api/loyalty/history", headers=auth(user))).json()
    assert [(a["type"], a["details"]["points"]) for a in history["data"]] == [
        ("redemption_refund", 100),
        ("reward_redeemed", -100),
    ]


async def test_admin_updates_reward(client, admin, customer, make_reward, auth):
    reward = await make_reward(name="Gorra", points_required=300)
    url = f"/api/loyalty/rewards/{reward['id']}"

    r = await client.patch(url, json={"points_required": 50}, headers=auth(customer))
    assert r.status_code == 403

    r = await client.patch(url, json={"points_required": 50, "name": None}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["points_required"] == 50
    assert r.json()["name"] == "Gorra"

    now = datetime.now(timezone.utc)
    r = await client.patch(
        url,
        json={"start_date": now.isoformat(), "end_date": (now - timedelta(days=1)).isoformat()},
        headers=auth(admin),
    )
    assert r.status_code == 400

    r = await client.patch(url, json={"is_active": False}, headers=auth(admin))
    assert r.json()["is_active"] is False
    assert (await client.get("/api/loyalty/rewards", headers=auth(customer))).json() == []

    r = await client.patch(
        "/api/loyalty/rewards/00000000-0000-0000-0000-000000000000", json={"stock": 1}, headers=auth(admin)
    )
    assert r.status_code == 404

from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime.now(timezone.utc)


def window(start_days=-1, end_days=30):
    return {
        "start_date": (NOW + timedelta(days=start_days)).isoformat(),
        "end_date": (NOW + timedelta(days=end_days)).isoformat(),
    }


@pytest.fixture
def make_promotion(client, auth):
    async def _make_promotion(owner, expect=201, **fields):
        data = {"name": "Promo", "type": "percentage", "discount_percentage": "10", **window()}
        data.update(fields)
        r = await client.post("/api/promotions", json=data, headers=auth(owner))
        assert r.status_code == expect, r.text
        return r.json()

    return _make_promotion


async def test_create_percentage_promotion(manager, store, make_product, make_promotion):
    product = await make_product(manager, store["id"])
    promotion = await make_promotion(manager, product_ids=[product["id"]])

    # A manager of a single store may omit store_id
    assert promotion["store_id"] == store["id"]
    assert promotion["product_ids"] == [product["id"]]
    assert promotion["discount_percentage"] == 10
    assert promotion["current_uses"] == 0
    assert promotion["created_by_id"] == str(manager.id)


async def test_promotion_validation(client, manager, store, make_product, auth):
    product = await make_product(manager, store["id"])
    base = {"name": "Promo", "store_id": store["id"], "product_ids": [product["id"]], **window()}

    cases = [
        {**base, "type": "percentage"},
        {**base, "type": "fixed", "discount_percentage": "10"},
        {**base, "type": "percentage", "discount_percentage": "150"},
        {**base, "type": "percentage", "discount_percentage": "10", **window(5, 1)},
        {**base, "type": "fixed", "discount_amount": "5", "product_ids": []},
    ]
    for data in cases:
        r = await client.post("/api/promotions", json=data, headers=auth(manager))
        assert r.status_code == 422, data


async def test_scope_must_belong_to_store(manager, make_user, store, make_store, make_product, make_promotion):
    other_store = await make_store(manager)
    foreign = await make_product(manager, other_store["id"])

    await make_promotion(manager, expect=400, store_id=store["id"], product_ids=[foreign["id"]])

    # Managing two stores means the store must be named
    await make_promotion(manager, expect=400, product_ids=[foreign["id"]])

    stranger = await make_user("store_manager")
    await make_promotion(stranger, expect=403, store_id=store["id"], product_ids=[foreign["id"]])


async def test_best_discount_wins(client, manager, store, make_product, make_promotion):
    product = await make_product(manager, store["id"], price="100.00")
    await make_promotion(manager, name="Diez", discount_percentage="10", product_ids=[product["id"]])
    fifteen = await make_promotion(
        manager, name="Quince", type="fixed", discount_amount="15", product_ids=[product["id"]]
    )

    r = await client.get(f"/api/promotions/quote/{product['id']}")
    assert r.json() == {
        "product_id": product["id"],
        "original_price": 100.0,
        "final_price": 85.0,
        "discount_amount": 15.0,
        "promotion_id": fifteen["id"],
        "promotion_name": "Quince",
    }

    detail = (await client.get(f"/api/products/{product['id']}")).json()
    assert detail["final_price"] == 85.0
    assert detail["promotion_name"] == "Quince"

    active = (await client.get(f"/api/promotions/active/product/{product['id']}")).json()
    assert [p["name"] for p in active] == ["Quince", "Diez"]


async def test_fixed_discount_never_exceeds_price(client, manager, store, make_product, make_promotion):
    product = await make_product(manager, store["id"], price="10.00")
    await make_promotion(manager, type="fixed", discount_amount="25", product_ids=[product["id"]])

    quote = (await client.get(f"/api/promotions/quote/{product['id']}")).json()
    assert quote["discount_amount"] == 10.0
    assert quote["final_price"] == 0.0


async def test_category_scope(client, manager, admin, store, make_product, make_promotion, auth):
    category = (await client.post("/api/categories", json={"name": "Frenos"}, headers=auth(admin))).json()
    in_category = await make_product(manager, store["id"], price="50.00", category_id=category["id"])
    outside = await make_product(manager, store["id"], price="50.00")

    await make_promotion(manager, discount_percentage="20", category_ids=[category["id"]])

    assert (await client.get(f"/api/promotions/quote/{in_category['id']}")).json()["final_price"] == 40.0
    assert (await client.get(f"/api/promotions/quote/{outside['id']}")).json()["final_price"] == 50.0


async def test_only_running_promotions_apply(client, manager, store, make_product, make_promotion, auth):
    product = await make_product(manager, store["id"], price="100.00")
    await make_promotion(manager, name="Futura", product_ids=[product["id"]], **window(2, 10))
    await make_promotion(manager, name="Vencida", product_ids=[product["id"]], **window(-10, -2))
    paused = await make_promotion(manager, name="Pausada", product_ids=[product["id"]])

    await client.post(f"/api/promotions/{paused['id']}/toggle", headers=auth(manager))
    assert (await client.get(f"/api/promotions/quote/{product['id']}")).json()["promotion_id"] is None

    r = await client.post(f"/api/promotions/{paused['id']}/toggle", headers=auth(manager))
    assert r.json()["is_active"] is True
    assert (await client.get(f"/api/promotions/quote/{product['id']}")).json()["promotion_id"] == paused["id"]


async def test_stats(client, manager, store, make_product, make_promotion, auth):
    product = await make_product(manager, store["id"])
    await make_promotion(manager, product_ids=[product["id"]])
    await make_promotion(manager, type="fixed", discount_amount="5", product_ids=[product["id"]])
    await make_promotion(manager, product_ids=[product["id"]], **window(2, 10))
    await make_promotion(manager, product_ids=[product["id"]], **window(-10, -2))
    paused = await make_promotion(manager, product_ids=[product["id"]])
    await client.post(f"/api/promotions/{paused['id']}/toggle", headers=auth(manager))

    r = await client.get("/api/promotions/stats", headers=auth(manager))
    assert r.json() == {
        "total": 5,
        "active": 2,
        "expired": 1,
        "upcoming": 1,
        "inactive": 1,
        "by_type": {"percentage": 4, "fixed": 1},
    }


async def test_update_promotion(client, manager, store, make_product, make_promotion, auth):
    first = await make_product(manager, store["id"])
    second = await make_product(manager, store["id"])
    promotion = await make_promotion(manager, product_ids=[first["id"]])

    r = await client.patch(
        f"/api/promotions/{promotion['id']}",
        json={"type": "fixed", "discount_amount": "7.5", "product_ids": [second["id"]]},
        headers=auth(manager),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["type"] == "fixed"
    assert body["discount_amount"] == 7.5
    assert body["discount_percentage"] is None
    assert body["product_ids"] == [second["id"]]

    # Switching type without the matching discount is rejected
    r = await client.patch(
        f"/api/promotions/{promotion['id']}", json={"type": "percentage"}, headers=auth(manager)
    )
    assert r.status_code == 400

    r = await client.patch(
        f"/api/promotions/{promotion['id']}",
        json={"end_date": (NOW - timedelta(days=5)).isoformat()},
        headers=auth(manager),
    )
    assert r.status_code == 400


async def test_delete_promotion(client, manager, make_user, store, make_product, make_promotion, auth):
    product = await make_product(manager, store["id"])
    promotion = await make_promotion(manager, product_ids=[product["id"]])

    stranger = await make_user("store_manager")
    r = await client.delete(f"/api/promotions/{promotion['id']}", headers=auth(stranger))
    assert r.status_code == 403

    r = await client.delete(f"/api/promotions/{promotion['id']}", headers=auth(manager))
    assert r.status_code == 200
    assert (await client.get(f"/api/promotions/{promotion['id']}", headers=auth(manager))).status_code == 404

    r = await client.get("/api/promotions", headers=auth(manager))
    assert r.json()["total"] == 0

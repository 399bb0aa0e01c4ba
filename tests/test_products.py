async def create_taxonomy(client, headers):
    category = (
        await client.post("/api/categories", json={"name": "Frenos"}, headers=headers)
    ).json()
    subcategory = (
        await client.post(
            f"/api/categories/{category['id']}/subcategories",
            json={"name": "Pastillas"},
            headers=headers,
        )
    ).json()
    brand = (await client.post("/api/brands", json={"name": "Toyota"}, headers=headers)).json()
    return category, subcategory, brand


async def test_taxonomy_crud(client, admin, manager, auth):
    category, subcategory, brand = await create_taxonomy(client, auth(admin))
    assert subcategory["category_id"] == category["id"]

    r = await client.post("/api/categories", json={"name": "frenos"}, headers=auth(admin))
    assert r.status_code == 409
    r = await client.post("/api/categories", json={"name": "Motor"}, headers=auth(manager))
    assert r.status_code == 403

    # Subcategory names only need to be unique inside their category
    motor = (await client.post("/api/categories", json={"name": "Motor"}, headers=auth(admin))).json()
    r = await client.post(
        f"/api/categories/{motor['id']}/subcategories", json={"name": "Pastillas"}, headers=auth(admin)
    )
    assert r.status_code == 201
    r = await client.post(
        f"/api/categories/{category['id']}/subcategories", json={"name": "pastillas"}, headers=auth(admin)
    )
    assert r.status_code == 409

    r = await client.delete(f"/api/brands/{brand['id']}", headers=auth(admin))
    assert r.status_code == 200
    assert (await client.get("/api/brands")).json() == []
    assert len((await client.get("/api/brands", params={"include_inactive": True})).json()) == 1

    r = await client.patch(f"/api/categories/{motor['id']}", json={"sort_order": -1}, headers=auth(admin))
    assert r.status_code == 200
    assert [c["name"] for c in (await client.get("/api/categories")).json()] == ["Motor", "Frenos"]


async def test_create_product(client, manager, store, make_product):
    product = await make_product(manager, store["id"], sku=" pf-100 ", price="45.50")
    assert product["sku"] == "PF-100"
    assert product["price"] == 45.5
    assert product["deleted"] is False


async def test_only_store_staff_create_products(client, customer, make_user, store, auth):
    data = {"store_id": store["id"], "name": "Filtro", "sku": "F1", "price": "5.00"}

    r = await client.post("/api/products", json=data, headers=auth(customer))
    assert r.status_code == 403

    stranger = await make_user("store_manager")
    r = await client.post("/api/products", json=data, headers=auth(stranger))
    assert r.status_code == 403


async def test_sku_unique_per_store(client, manager, store, make_store, make_product, auth):
    await make_product(manager, store["id"], sku="ABC-1")

    r = await client.post(
        "/api/products",
        json={"store_id": store["id"], "name": "Otro", "sku": "abc-1", "price": "1.00"},
        headers=auth(manager),
    )
    assert r.status_code == 409

    # Another store may reuse it
    second = await make_store(manager)
    await make_product(manager, second["id"], sku="ABC-1")


async def test_sku_change_conflict(client, manager, store, make_product, auth):
    await make_product(manager, store["id"], sku="A-1")
    product = await make_product(manager, store["id"], sku="A-2")

    r = await client.patch(f"/api/products/{product['id']}", json={"sku": "a-1"}, headers=auth(manager))
    assert r.status_code == 409

    r = await client.patch(
        f"/api/products/{product['id']}", json={"sku": "A-3", "stock": 4}, headers=auth(manager)
    )
    assert r.status_code == 200
    assert r.json()["sku"] == "A-3"
    assert r.json()["stock"] == 4


async def test_soft_delete_and_restore(client, manager, store, make_product, auth):
    product = await make_product(manager, store["id"], sku="DEL-1")

    r = await client.delete(f"/api/products/{product['id']}", headers=auth(manager))
    assert r.status_code == 200

    assert (await client.get(f"/api/products/{product['id']}")).status_code == 404
    assert (await client.get("/api/products")).json()["total"] == 0

    deleted = (await client.get("/api/products/deleted", headers=auth(manager))).json()
    assert [p["id"] for p in deleted["data"]] == [product["id"]]
    assert deleted["data"][0]["deleted_at"] is not None

    # The SKU stays reserved by the deleted product
    r = await client.post(
        "/api/products",
        json={"store_id": store["id"], "name": "Nuevo", "sku": "DEL-1", "price": "1.00"},
        headers=auth(manager),
    )
    assert r.status_code == 409

    r = await client.delete(f"/api/products/{product['id']}", headers=auth(manager))
    assert r.status_code == 400

    r = await client.post(f"/api/products/{product['id']}/restore", headers=auth(manager))
    assert r.status_code == 200
    assert r.json()["deleted"] is False
    assert r.json()["deleted_at"] is None

    r = await client.post(f"/api/products/{product['id']}/restore", headers=auth(manager))
    assert r.status_code == 400
    assert (await client.get("/api/products")).json()["total"] == 1


async def test_list_filters_and_sort(client, manager, admin, store, make_store, make_product, auth):
    category, subcategory, brand = await create_taxonomy(client, auth(admin))
    await make_product(
        manager, store["id"], name="Pastillas Toyota", price="30.00",
        category_id=category["id"], subcategory_id=subcategory["id"], brand_id=brand["id"],
    )
    await make_product(manager, store["id"], name="Filtro de aceite", price="8.00", stock=0)
    await make_product(manager, store["id"], name="Bujia", price="12.00", part_number="BKR6E")
    await make_product(manager, store["id"], name="Oculto", price="1.00", is_active=False)

    closed = await make_store(manager)
    await make_product(manager, closed["id"], name="Tienda cerrada", price="2.00")
    await client.delete(f"/api/stores/{closed['id']}", headers=auth(manager))

    r = await client.get("/api/products", params={"sort": "price_asc"})
    assert [p["name"] for p in r.json()["data"]] == ["Filtro de aceite", "Bujia", "Pastillas Toyota"]

    r = await client.get("/api/products", params={"in_stock": True, "sort": "price_desc"})
    assert [p["name"] for p in r.json()["data"]] == ["Pastillas Toyota", "Bujia"]

    r = await client.get("/api/products", params={"min_price": 10, "max_price": 20})
    assert [p["name"] for p in r.json()["data"]] == ["Bujia"]

    r = await client.get("/api/products", params={"search": "bkr6"})
    assert [p["name"] for p in r.json()["data"]] == ["Bujia"]

    r = await client.get("/api/products", params={"brand_id": brand["id"]})
    assert [p["name"] for p in r.json()["data"]] == ["Pastillas Toyota"]

    r = await client.get("/api/products", params={"subcategory_id": subcategory["id"]})
    assert r.json()["total"] == 1


async def test_taxonomy_is_validated(client, manager, admin, store, auth):
    category, subcategory, _ = await create_taxonomy(client, auth(admin))
    motor = (await client.post("/api/categories", json={"name": "Motor"}, headers=auth(admin))).json()

    base = {"store_id": store["id"], "name": "Pastillas", "sku": "P-1", "price": "10.00"}

    r = await client.post(
        "/api/products",
        json={**base, "category_id": motor["id"], "subcategory_id": subcategory["id"]},
        headers=auth(manager),
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/products",
        json={**base, "category_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth(manager),
    )
    assert r.status_code == 400

    # The category is taken from the subcategory
    r = await client.post(
        "/api/products", json={**base, "subcategory_id": subcategory["id"]}, headers=auth(manager)
    )
    assert r.status_code == 201
    assert r.json()["category_id"] == category["id"]


async def test_product_detail_without_promotion(client, manager, store, make_product):
    product = await make_product(manager, store["id"], price="19.99")
    r = await client.get(f"/api/products/{product['id']}")
    body = r.json()
    assert body["final_price"] == 19.99
    assert body["discount_amount"] == 0
    assert body["promotion_id"] is None


async def test_negative_price_rejected(client, manager, store, auth):
    r = await client.post(
        "/api/products",
        json={"store_id": store["id"], "name": "Malo", "sku": "NEG", "price": "-1"},
        headers=auth(manager),
    )
    assert r.status_code == 422


async def test_product_update_ignores_null_required_fields(client, manager, store, make_product, auth):
    product = await make_product(manager, store["id"], name="Bujía", price="12.00", stock=4)

    r = await client.patch(
        f"/api/products/{product['id']}",
        json={"name": None, "sku": None, "price": None, "stock": None, "is_active": None, "description": None},
        headers=auth(manager),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Bujía"
    assert body["sku"] == product["sku"]
    assert body["price"] == 12.0
    assert body["stock"] == 4
    assert body["is_active"] is True


async def test_taxonomy_update_ignores_null_required_fields(client, admin, auth):
    category, subcategory, brand = await create_taxonomy(client, auth(admin))

    r = await client.patch(
        f"/api/categories/{category['id']}", json={"name": None, "sort_order": None}, headers=auth(admin)
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Frenos"
    assert r.json()["sort_order"] == 0

    r = await client.patch(
        f"/api/subcategories/{subcategory['id']}", json={"is_active": None}, headers=auth(admin)
    )
    assert r.status_code == 200
    assert r.json()["is_active"] is True

    r = await client.patch(
        f"/api/brands/{brand['id']}", json={"name": None, "country": "Japón"}, headers=auth(admin)
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Toyota"
    assert r.json()["country"] == "Japón"

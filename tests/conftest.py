import os

# Point the app at an in-memory database before anything reads the settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from repuestos.config.database import AsyncSessionLocal, Base, engine
from repuestos.core.security import create_access_token, generate_referral_code, get_password_hash
from repuestos.main import app
from repuestos.models.user import User

PASSWORD = "secreto123"


async def create_user(role="client", email=None, password=PASSWORD, **fields):
    async with AsyncSessionLocal() as db:
        user = User(
            name=fields.pop("name", f"Test {role}"),
            email=email or f"{role}-{uuid4().hex[:8]}@piezasya.com",
            password_hash=get_password_hash(password),
            role=role,
            referral_code=generate_referral_code(),
            delivery_status="available" if role == "delivery" else None,
            **fields,
        )
        db.add(user)
        await db.commit()
        return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}


def store_payload(**overrides):
    data = {
        "name": "Repuestos El Llano",
        "address": "Av. Francisco de Miranda",
        "city": "Caracas",
        "state": "Distrito Capital",
        "zip_code": "1060",
        "phone": "+58 212 555 0101",
        "email": f"tienda-{uuid4().hex[:8]}@piezasya.com",
        "latitude": 10.4806,
        "longitude": -66.9036,
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user():
    return create_user


@pytest.fixture
def auth():
    return auth_headers


@pytest.fixture
async def admin():
    return await create_user("admin", name="Admin")


@pytest.fixture
async def manager():
    return await create_user("store_manager", name="Gerente")


@pytest.fixture
async def customer():
    return await create_user("client", name="Cliente")


@pytest.fixture
async def courier():
    return await create_user("delivery", name="Motorizado")


@pytest.fixture
def make_store(client):
    async def _make_store(owner, **overrides):
        r = await client.post("/api/stores", json=store_payload(**overrides), headers=auth_headers(owner))
        assert r.status_code == 201, r.text
        return r.json()

    return _make_store


@pytest.fixture
async def store(make_store, manager):
    return await make_store(manager)


@pytest.fixture
def make_product(client):
    async def _make_product(owner, store_id, **overrides):
        data = {
            "store_id": store_id,
            "name": "Pastillas de freno delanteras",
            "sku": f"SKU-{uuid4().hex[:6]}",
            "price": "100.00",
            "stock": 10,
        }
        data.update(overrides)
        r = await client.post("/api/products", json=data, headers=auth_headers(owner))
        assert r.status_code == 201, r.text
        return r.json()

    return _make_product

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from shared.security_config import limiter
from shared.utils import Settings, create_engine_from_settings, create_session_factory, get_password_hash, unit_of_work
from storefront.models import AppUser, Category, Lifecycle, Product, UserRole, init_models

PASSWORD = "Secret123!"

limiter.enabled = False


@pytest.fixture
def config(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}",
        RATE_LIMIT_ENABLED=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
async def session_factory(config):
    engine = create_engine_from_settings(config)
    await init_models(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def add_rows(session_factory):
    """Insert rows directly and hand them back (one row, or a list for several)."""
    async def _add(*rows):
        async with unit_of_work(session_factory) as session:
            session.add_all(rows)
            await session.flush()
        return rows[0] if len(rows) == 1 else list(rows)
    return _add


@pytest.fixture
def make_user(add_rows):
    async def _make(username="alice", role=UserRole.CUSTOMER, lifecycle=Lifecycle.ACTIVE):
        return await add_rows(AppUser(
            username=username,
            email=f"{username}@example.com",
            password_hash=get_password_hash(PASSWORD),
            role=role,
            lifecycle=lifecycle,
        ))
    return _make


@pytest.fixture
async def customer(make_user):
    return await make_user("alice")


@pytest.fixture
async def category(add_rows):
    return await add_rows(Category(name="Gadgets", display_order=1))


@pytest.fixture
def make_product(add_rows, category):
    async def _make(name="Widget", price="10.00", stock=10, lifecycle=Lifecycle.ACTIVE, discount_price=None, sku=None):
        return await add_rows(Product(
            name=name,
            price=Decimal(price),
            discount_price=Decimal(discount_price) if discount_price else None,
            stock_quantity=stock,
            category_id=category.id,
            lifecycle=lifecycle,
            sku=sku,
        ))
    return _make


@pytest.fixture
async def app(config, session_factory):
    from storefront.main import create_app

    application = create_app(config)
    await init_models(application.state.engine)
    yield application
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def login(client, username: str) -> dict:
    response = await client.post("/api/auth/login", json={"login": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}

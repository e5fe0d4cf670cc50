"""
Shared pytest fixtures: in-memory database, seeded users and an API client.
"""
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import app as fastapi_app
from app.core.dependencies import get_db
from app.db.base import Base
from app.enums import ProductStatus, UserRole
from app.models import Product, User
from app.services import CategoryService
from app.schemas.category import CategoryCreate
from app.utils.auth import create_access_token, hash_password


PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db_session) -> Dict[str, User]:
    """One account per role, plus a deactivated one"""
    accounts = {
        "admin": User(name="Ada Admin", email="admin@catalog.io", hashed_password=PASSWORD_HASH, role=UserRole.ADMIN),
        "manager": User(name="Max Manager", email="manager@catalog.io", hashed_password=PASSWORD_HASH, role=UserRole.MANAGER),
        "user": User(name="Uma User", email="user@catalog.io", hashed_password=PASSWORD_HASH, role=UserRole.USER),
        "inactive": User(
            name="Ivo Inactive",
            email="inactive@catalog.io",
            hashed_password=PASSWORD_HASH,
            role=UserRole.MANAGER,
            is_active=False,
        ),
    }
    db_session.add_all(accounts.values())
    await db_session.commit()
    return accounts


def auth_headers(user: User) -> Dict[str, str]:
    token, _ = create_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, with every request using the test database"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=fastapi_app)

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def category_service(db_session) -> CategoryService:
    return CategoryService(db_session)


@pytest.fixture
def make_category(category_service):
    async def _make_category(name: str, parent_id: int = None, **fields):
        return await category_service.create(CategoryCreate(name=name, parent_id=parent_id, **fields))

    return _make_category


@pytest.fixture
def make_product(db_session):
    """Inserts a product row directly, bypassing the service checks"""
    counter = {"n": 0}

    async def _make_product(**fields) -> Product:
        counter["n"] += 1
        data = {
            "name": f"Product {counter['n']}",
            "sku": f"SKU-{counter['n']:04d}",
            "price": Decimal("10.00"),
            "stock": 10,
            "min_stock": 2,
            "status": ProductStatus.ACTIVE,
        }
        data.update(fields)

        product = Product(**data)
        db_session.add(product)
        await db_session.commit()
        return product

    return _make_product

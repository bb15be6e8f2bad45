"""
Test configuration for pytest
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Optional
import uuid

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest
import pytest_asyncio

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from schoolhub.core.database import build_engine, build_session_factory, dispose_db, init_db
from schoolhub.core.errors import DataStoreError
from schoolhub.models import Profile, Tenant, TenantFeature
from schoolhub.services.datastore import TenantDataStore


class FailingDataStore(TenantDataStore):
    """Reads work; every write is rejected by the transport"""

    async def update_tenant(self, tenant_id, changes):
        raise DataStoreError("update_tenant", ConnectionError("connection reset by peer"))

    async def upsert_feature(self, tenant_id, feature_key, is_enabled):
        raise DataStoreError("upsert_feature", ConnectionError("connection reset by peer"))

    async def onboard_tenant(self, user_id, tenant_fields, feature_flags):
        raise DataStoreError("onboard_tenant", ConnectionError("connection reset by peer"))


class SlowDataStore(TenantDataStore):
    """Delays tenant updates and records how many overlap"""

    def __init__(self, session_factory, delay: float = 0.05):
        super().__init__(session_factory)
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def update_tenant(self, tenant_id, changes):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            return await super().update_tenant(tenant_id, changes)
        finally:
            self.active -= 1


class FlakyDataStore(TenantDataStore):
    """Profile lookups fail while fail_reads is set"""

    fail_reads = False

    async def get_profile_tenant_id(self, user_id):
        if self.fail_reads:
            raise DataStoreError("select_profile", ConnectionError("network unreachable"))
        return await super().get_profile_tenant_id(user_id)


@dataclass
class Seed:
    user_id: uuid.UUID
    tenant: Tenant


@pytest_asyncio.fixture(scope="function")
async def engine():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await dispose_db(engine)


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def datastore(session_factory) -> TenantDataStore:
    return TenantDataStore(session_factory)


@pytest.fixture
def failing_datastore(session_factory) -> FailingDataStore:
    return FailingDataStore(session_factory)


@pytest.fixture
def slow_datastore(session_factory) -> SlowDataStore:
    return SlowDataStore(session_factory)


@pytest.fixture
def flaky_datastore(session_factory) -> FlakyDataStore:
    return FlakyDataStore(session_factory)


@pytest_asyncio.fixture
async def seed(session_factory) -> Seed:
    """One school with a linked admin profile and two feature rows"""
    user_id = uuid.uuid4()
    async with session_factory() as session:
        tenant = Tenant(
            slug="green-valley-high",
            name="Green Valley High",
            contact_email="office@greenvalley.edu",
            primary_color="#FF0000",
            secondary_color="#00FF00",
            accent_color="#0000FF",
            font_family="Open Sans",
        )
        session.add(tenant)
        await session.flush()

        session.add(Profile(user_id=user_id, tenant_id=tenant.id, email="admin@greenvalley.edu"))
        session.add(
            TenantFeature(
                tenant_id=tenant.id,
                feature_key="attendanceManagement",
                is_enabled=True,
                config={"grace_minutes": 10},
            )
        )
        session.add(TenantFeature(tenant_id=tenant.id, feature_key="feeManagement", is_enabled=False, config={}))
        await session.commit()
        await session.refresh(tenant)

    return Seed(user_id=user_id, tenant=tenant)


@pytest.fixture
def make_profile(session_factory):
    """Insert a profile with no tenant attached, as sign-up does"""

    async def make(user_id: uuid.UUID, email: Optional[str] = None) -> Profile:
        async with session_factory() as session:
            profile = Profile(user_id=user_id, email=email)
            session.add(profile)
            await session.commit()
            await session.refresh(profile)
        return profile

    return make

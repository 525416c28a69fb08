"""Shared fixtures: an in-memory database per test and an HTTP client over the app."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from shot_core.domain import broadcast, fights
from shot_core.infra.db import build_engine, get_db
from shot_core.main import app
from shot_core.models.db_models import Base, Campaign, Character, Site, Vehicle


class RecordingBroadcaster:
    def __init__(self):
        self.published = []

    async def publish(self, campaign_id, fight_id, view):
        self.published.append((campaign_id, fight_id, view))

    def for_fight(self, fight_id):
        return [view for _, fid, view in self.published if fid == fight_id]


@pytest.fixture(autouse=True)
def broadcasts():
    recorder = RecordingBroadcaster()
    previous = broadcast.configure_broadcaster(recorder)
    yield recorder
    broadcast.configure_broadcaster(previous)


@pytest_asyncio.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def campaign(db_session):
    campaign = Campaign(name="Hong Kong Nights")
    db_session.add(campaign)
    await db_session.commit()
    return campaign


class Factory:
    """Builds the campaign-level templates that fights place shots from."""

    def __init__(self, db, campaign):
        self.db = db
        self.campaign = campaign

    async def _add(self, row):
        self.db.add(row)
        await self.db.commit()
        return row

    async def character(self, name="Johnny Tso"):
        return await self._add(Character(campaign_id=self.campaign.id, name=name))

    async def vehicle(self, name="Red Sedan"):
        return await self._add(Vehicle(campaign_id=self.campaign.id, name=name))

    async def site(self, name="Night Market"):
        return await self._add(Site(campaign_id=self.campaign.id, name=name))

    async def fight(self, name="Dockside Brawl"):
        return await fights.create_fight(self.db, self.campaign.id, name)


@pytest_asyncio.fixture
async def make(db_session, campaign):
    return Factory(db_session, campaign)

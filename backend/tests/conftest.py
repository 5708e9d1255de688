import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Settings are read at import time; point them at SQLite before anything loads.
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BOOKING_RATE", "1000/minute")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add the backend directory so `marketplace` package imports resolve during tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.append(str(BACKEND_DIR))

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from marketplace.core.config import settings  # noqa: E402
from marketplace.core.db import get_session  # noqa: E402
from marketplace.main import app  # noqa: E402
from marketplace.models import (  # noqa: E402
    AdSlot,
    AdSlotType,
    Base,
    Placement,
    Publisher,
    Session,
    Sponsor,
    User,
)
from marketplace.models.base import utcnow  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@dataclass
class Account:
    user_id: str
    scoped_id: Optional[str]
    token: str

    @property
    def cookie(self) -> str:
        return f"{settings.SESSION_COOKIE_NAME}={quote(self.token + '.test-signature')}"

    @property
    def headers(self) -> dict[str, str]:
        return {"Cookie": self.cookie}


class Seeder:
    """Writes identity and inventory rows straight into the test database."""

    def __init__(self, maker: async_sessionmaker):
        self.maker = maker
        self._n = 0

    async def account(
        self,
        *,
        sponsor: Optional[str] = None,
        publisher: Optional[str] = None,
        expires_in: timedelta = timedelta(hours=1),
    ) -> Account:
        self._n += 1
        async with self.maker() as s:
            user = User(email=f"user{self._n}@example.com", name=f"User {self._n}")
            s.add(user)
            await s.flush()
            scoped_id = None
            if sponsor:
                row = Sponsor(user_id=user.id, name=sponsor)
                s.add(row)
                await s.flush()
                scoped_id = row.id
            if publisher:
                row = Publisher(user_id=user.id, name=publisher, category="Tech", monthly_views=5000)
                s.add(row)
                await s.flush()
                scoped_id = scoped_id or row.id
            token = f"tok{self._n}abc"
            s.add(Session(token=token, user_id=user.id, expires_at=utcnow() + expires_in))
            await s.commit()
            return Account(user_id=user.id, scoped_id=scoped_id, token=token)

    async def sponsor(self, name: str = "Acme") -> Account:
        return await self.account(sponsor=name)

    async def publisher(self, name: str = "Daily Byte") -> Account:
        return await self.account(publisher=name)

    async def ad_slot(self, publisher: Account, **overrides) -> str:
        fields = {
            "name": "Sidebar",
            "type": AdSlotType.DISPLAY,
            "base_price": Decimal("10.00"),
            "is_available": True,
        }
        fields.update(overrides)
        async with self.maker() as s:
            slot = AdSlot(publisher_id=publisher.scoped_id, **fields)
            s.add(slot)
            await s.commit()
            return slot.id

    async def placement(self, campaign_id: str, slot_id: str, publisher: Account) -> str:
        async with self.maker() as s:
            row = Placement(
                campaign_id=campaign_id,
                ad_slot_id=slot_id,
                publisher_id=publisher.scoped_id,
                agreed_price=Decimal("12.50"),
                start_date=datetime(2026, 1, 1),
                end_date=datetime(2026, 2, 1),
            )
            s.add(row)
            await s.commit()
            return row.id

    async def get(self, model, pk: str):
        async with self.maker() as s:
            return await s.get(model, pk)


@pytest.fixture
async def db_maker():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def seed(db_maker) -> Seeder:
    return Seeder(db_maker)


@pytest.fixture
async def client(db_maker):
    async def _session_override():
        async with db_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


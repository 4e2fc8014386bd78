"""
Shared fixtures: in-memory database with reference data and an HTTP client
bound to the app.
"""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from xparagliding import config
from xparagliding.database import Base, get_session
from xparagliding.models import (
    Company, Country, Location, LocationPage, Pilot, PromoCode
)
from xparagliding.server import app

COUNTRY_ID = "country-georgia"
GUDAURI_ID = "loc-gudauri"
KAZBEGI_ID = "loc-kazbegi"
COMPANY_ID = "company-sky"
PILOT_ID = "pilot-giorgi"
PILOT_WITH_COMPANY_ID = "pilot-nino"

# Fixed instant for promo validity checks
NOW = datetime(2025, 11, 20, 12, 0, tzinfo=timezone.utc)


def reference_records():
    return [
        Country(id=COUNTRY_ID, name_ka="საქართველო", name_en="Georgia"),
        Location(id=GUDAURI_ID, country_id=COUNTRY_ID, name_ka="გუდაური", name_en="Gudauri"),
        Location(id=KAZBEGI_ID, country_id=COUNTRY_ID, name_ka="ყაზბეგი", name_en="Kazbegi"),
        LocationPage(
            location_id=GUDAURI_ID,
            content={
                "shared_flight_types": [
                    {"id": "ft-tandem", "name": "Tandem Flight", "price_gel": 300, "price_usd": 110, "price_eur": 100},
                    {"id": "ft-gel-only", "name": "Local Hop", "price_gel": 150},
                ]
            }
        ),
        LocationPage(
            location_id=KAZBEGI_ID,
            content={
                "shared_flight_types": [
                    {"id": "ft-kazbegi", "name": "Kazbegi Tandem", "price_gel": 350, "price_usd": 130, "price_eur": 120},
                ]
            }
        ),
        Company(id=COMPANY_ID, name_ka="სკაი", name_en="Sky Georgia"),
        Pilot(id=PILOT_ID, first_name_en="Giorgi", location_ids=[GUDAURI_ID]),
        Pilot(id=PILOT_WITH_COMPANY_ID, first_name_en="Nino", location_ids=[GUDAURI_ID, KAZBEGI_ID], company_id=COMPANY_ID),
        PromoCode(
            id="promo-autumn",
            code="AUTUMN10",
            discount_percentage=10,
            usage_limit=100,
            usage_count=5,
            valid_from=datetime(2025, 9, 1, tzinfo=timezone.utc),
            valid_until=datetime(2025, 12, 31, tzinfo=timezone.utc)
        ),
        PromoCode(
            id="promo-winter",
            code="WINTER15",
            discount_percentage=15,
            valid_from=datetime(2025, 12, 1, tzinfo=timezone.utc)
        ),
        PromoCode(
            id="promo-expired",
            code="SPRING20",
            discount_percentage=20,
            valid_until=datetime(2025, 5, 31, tzinfo=timezone.utc)
        ),
        PromoCode(id="promo-inactive", code="OLDCODE", discount_percentage=25, is_active=False),
        PromoCode(id="promo-almost-full", code="LASTSEATS", discount_percentage=10, usage_limit=10, usage_count=8),
        PromoCode(id="promo-open", code="FRIENDS5", discount_percentage=5, usage_limit=None, usage_count=1000),
    ]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all(reference_records())
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(config, "RATE_LIMIT_ENABLED", False)
    app.dependency_overrides[get_session] = override_get_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def booking_payload():
    """A valid 3-person tandem booking in GEL without promo."""
    return {
        "full_name": "Tamar Lomidze",
        "phone": "+995 599 12 34 56",
        "location_id": GUDAURI_ID,
        "flight_type_id": "ft-tandem",
        "flight_type_name": "Tandem Flight",
        "selected_date": "2025-12-15",
        "number_of_people": 3,
        "currency": "GEL",
        "base_price": 900,
        "total_price": 900,
        "contact_method": "whatsapp",
    }

#!/usr/bin/env python3
"""
xParagliding Database Seeder
Seeds the database with a sample country, locations, flight types, pilots,
companies and promo codes for local development.

Usage: python -m xparagliding.seed_data
"""

import asyncio
from datetime import datetime, timezone, timedelta
from sqlalchemy import delete

from .database import async_session_factory, init_db, close_db
from .models import (
    Booking, Company, Country, Location, LocationPage, Pilot, PromoCode, PromoCodeUsage
)

GEORGIA_ID = "7d3f0c2e-0a51-4c1f-9a57-2f7b1d1c0001"
GUDAURI_ID = "7d3f0c2e-0a51-4c1f-9a57-2f7b1d1c0101"
KAZBEGI_ID = "7d3f0c2e-0a51-4c1f-9a57-2f7b1d1c0102"
SKY_GEORGIA_ID = "7d3f0c2e-0a51-4c1f-9a57-2f7b1d1c0201"


def sample_records():
    now = datetime.now(timezone.utc)

    records = [
        Country(id=GEORGIA_ID, name_ka="საქართველო", name_en="Georgia"),
        Location(id=GUDAURI_ID, country_id=GEORGIA_ID, name_ka="გუდაური", name_en="Gudauri"),
        Location(id=KAZBEGI_ID, country_id=GEORGIA_ID, name_ka="ყაზბეგი", name_en="Kazbegi"),
        LocationPage(
            location_id=GUDAURI_ID,
            content={
                "shared_flight_types": [
                    {"id": "gudauri-tandem", "name": "Tandem Flight", "price_gel": 300, "price_usd": 110, "price_eur": 100},
                    {"id": "gudauri-long", "name": "Long Flight", "price_gel": 450, "price_usd": 165, "price_eur": 150},
                ]
            }
        ),
        LocationPage(
            location_id=KAZBEGI_ID,
            content={
                "shared_flight_types": [
                    {"id": "kazbegi-tandem", "name": "Tandem Flight", "price_gel": 350, "price_usd": 130, "price_eur": 120},
                ]
            }
        ),
        Company(id=SKY_GEORGIA_ID, name_ka="სკაი ჯორჯია", name_en="Sky Georgia", phone="+995 555 00 00 01"),
        Pilot(
            first_name_en="Giorgi",
            last_name_en="Beridze",
            phone="+995 555 00 00 02",
            company_id=SKY_GEORGIA_ID,
            location_ids=[GUDAURI_ID]
        ),
        Pilot(
            first_name_en="Nino",
            last_name_en="Kapanadze",
            phone="+995 555 00 00 03",
            location_ids=[GUDAURI_ID, KAZBEGI_ID]
        ),
        PromoCode(
            code="WELCOME10",
            discount_percentage=10,
            description="10% off for first-time flyers",
            usage_limit=100,
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=180)
        ),
        PromoCode(
            code="SUMMER20",
            discount_percentage=20,
            description="Summer season discount",
            valid_from=now + timedelta(days=60),
            valid_until=now + timedelta(days=150)
        ),
        PromoCode(
            code="FRIENDS5",
            discount_percentage=5,
            description="Unlimited friends & family code"
        ),
    ]
    return records


async def seed_database():
    """Seed the database with sample data"""
    print("🌱 Seeding xParagliding database...")

    await init_db()

    async with async_session_factory() as session:
        # Clear existing data, children first
        for model in (PromoCodeUsage, Booking, PromoCode, Pilot, Company, LocationPage, Location, Country):
            await session.execute(delete(model))
            print(f"   Cleared {model.__tablename__}")

        records = sample_records()
        session.add_all(records)
        await session.commit()
        print(f"   Inserted {len(records)} records")

    await close_db()
    print("✅ Seeding complete")


if __name__ == "__main__":
    asyncio.run(seed_database())

"""
Runtime configuration for the xParagliding booking API.
Values come from the environment (optionally a .env file next to the project root).
"""

import os
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Database - Supabase Postgres in production, SQLite for local dev
DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv(
    'POSTGRES_URL',
    'sqlite+aiosqlite:///./xparagliding.db'
)
DATABASE_ECHO = os.getenv('DATABASE_ECHO', 'false').lower() == 'true'

# Redis (rate limiting)
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# HTTP
CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*').split(',')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# Rate limits (requests per window seconds, per client IP and endpoint)
RATE_LIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', 'true').lower() == 'true'
BOOKING_RATE_LIMIT = int(os.getenv('BOOKING_RATE_LIMIT', 10))
BOOKING_RATE_WINDOW = int(os.getenv('BOOKING_RATE_WINDOW', 60))
PROMO_RATE_LIMIT = int(os.getenv('PROMO_RATE_LIMIT', 20))
PROMO_RATE_WINDOW = int(os.getenv('PROMO_RATE_WINDOW', 60))

# Platform commission per passenger, in GEL; VAT is added on top
PLATFORM_FEE_PER_PERSON = float(os.getenv('PLATFORM_FEE_PER_PERSON', 50.0))

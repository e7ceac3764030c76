import os

# Settings are read at import time, so point them at SQLite before the package loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV", "test")

from datetime import date, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from clinic_booking.models import Clinic, Patient  # noqa: E402

# Monday 2026-10-19, 08:00 clinic-local
NOW = datetime(2026, 10, 19, 8, 0)
TODAY = NOW.date()

WEEKDAY_HOURS = {
    "monday": "09:00 - 17:00",
    "tuesday": "09:00 - 17:00",
    "wednesday": "9:00 AM - 5:00 PM",
    "thursday": "09:00 - 17:00",
    "friday": "09:00 - 17:00",
    "saturday": "10:00 - 14:00",
    "sunday": "closed",
}
EVERY_DAY_HOURS = {day: "09:00 - 17:00" for day in WEEKDAY_HOURS}


def at(d: date, hhmm: str) -> datetime:
    hour, minute = (int(p) for p in hhmm.split(":"))
    return datetime(d.year, d.month, d.day, hour, minute)


def days_from_today(n: int) -> date:
    return TODAY + timedelta(days=n)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def clinic(session) -> Clinic:
    clinic = Clinic(name="Harbour Dental", email="front@harbour.example", hours=WEEKDAY_HOURS)
    session.add(clinic)
    await session.commit()
    return clinic


@pytest_asyncio.fixture
async def patients(session) -> tuple[Patient, Patient]:
    ada = Patient(full_name="Ada Lovelace", email="ada@example.com")
    alan = Patient(full_name="Alan Turing", email="alan@example.com")
    session.add_all([ada, alan])
    await session.commit()
    return ada, alan

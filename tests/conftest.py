import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.models import Base, Genre, Movie, Price, Schedule, ScheduleStatus


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    # Keep a developer's .env / shell from leaking into tests
    monkeypatch.delenv("STRICT_SCHEDULE_REFERENCES", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def catalog(session):
    """Two genres, three movies and two price tiers."""

    sci_fi = Genre(title="Sci-Fi")
    musical = Genre(title="Musical")
    movies = {
        "Dune": Movie(title="Dune", genre=sci_fi),
        "Annie": Movie(title="Annie", genre=musical),
        "Arrival": Movie(title="Arrival", genre=sci_fi),
    }
    prices = {
        "Adult": Price(ticket_type="Adult", amount=Decimal("12.50")),
        "Child": Price(ticket_type="Child", amount=Decimal("8.00")),
    }
    session.add_all([*movies.values(), *prices.values()])
    session.commit()
    return {"movies": movies, "prices": prices}


@pytest.fixture
def add_schedule(session, catalog):
    def _add(
        movie_title: str,
        start_time: dt.datetime,
        *,
        ticket_type: str = "Adult",
        status: ScheduleStatus = ScheduleStatus.SCHEDULED,
    ) -> Schedule:
        schedule = Schedule(
            movie=catalog["movies"][movie_title],
            price=catalog["prices"][ticket_type],
            start_time=start_time,
            status=status,
            version=1,
        )
        session.add(schedule)
        session.commit()
        return schedule

    return _add

"""Database session management and repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine, select, update
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker
from sqlalchemy.sql import Select

from app.core.config import get_settings
from app.models import Base, Movie, Price, Schedule, ScheduleStatus


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints on a threadpool.
        return {"connect_args": {"check_same_thread": False}}
    return {}


def build_engine(url: str | None = None) -> Engine:
    """Create an engine for ``url`` (defaults to the configured DATABASE_URL)."""

    url = url or get_settings().database_url
    return create_engine(url, future=True, **_engine_kwargs(url))


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_models(bind: Engine | None = None) -> None:
    """Create tables if they do not exist (handy for local dev)."""
    Base.metadata.create_all(bind=bind or engine)


def get_session() -> Iterator[Session]:
    """FastAPI-friendly dependency that manages commits/rollbacks."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class ScheduleRepository:
    """Data access for schedule records (the schedule store)."""

    def get(
        self,
        session: Session,
        schedule_id: int,
        *,
        with_transactions: bool = False,
    ) -> Schedule | None:
        query = (
            select(Schedule)
            .where(Schedule.id == schedule_id)
            .options(
                joinedload(Schedule.movie).joinedload(Movie.genre),
                joinedload(Schedule.price),
            )
            .execution_options(populate_existing=True)
        )
        if with_transactions:
            query = query.options(selectinload(Schedule.transaction_details))
        return session.execute(query).scalar_one_or_none()

    def exists(self, session: Session, schedule_id: int) -> bool:
        query = select(Schedule.id).where(Schedule.id == schedule_id)
        return session.execute(query).first() is not None

    def create(
        self,
        session: Session,
        *,
        movie: Movie | None,
        price: Price | None,
        start_time: datetime,
        status: ScheduleStatus,
    ) -> Schedule:
        schedule = Schedule(
            movie=movie,
            price=price,
            start_time=start_time,
            status=status,
            version=1,
        )
        session.add(schedule)
        session.flush()  # assign IDs before leaving scope
        session.refresh(schedule)
        return schedule

    def replace(
        self,
        session: Session,
        schedule_id: int,
        *,
        expected_version: int | None,
        movie_id: int | None,
        price_id: int | None,
        start_time: datetime,
        status: ScheduleStatus,
    ) -> bool:
        """Overwrite every editable column; False when no row matched.

        With ``expected_version`` the write only lands if the stored row
        version still equals it.
        """

        query = update(Schedule).where(Schedule.id == schedule_id)
        if expected_version is not None:
            query = query.where(Schedule.version == expected_version)
        query = query.values(
            movie_id=movie_id,
            price_id=price_id,
            start_time=start_time,
            status=status,
            version=Schedule.version + 1,
        ).execution_options(synchronize_session=False)
        result = session.execute(query)
        return result.rowcount > 0

    def delete(self, session: Session, schedule: Schedule) -> None:
        session.delete(schedule)
        session.flush()

    def fetch_all(self, session: Session, query: Select) -> list[Schedule]:
        return list(session.execute(query).scalars())


class CatalogRepository:
    """Read-only lookups over movies and price tiers."""

    def first_movie_by_title(self, session: Session, title: str) -> Movie | None:
        query = select(Movie).where(Movie.title == title).order_by(Movie.id).limit(1)
        return session.execute(query).scalars().first()

    def first_price_by_ticket_type(self, session: Session, ticket_type: str) -> Price | None:
        query = select(Price).where(Price.ticket_type == ticket_type).order_by(Price.id).limit(1)
        return session.execute(query).scalars().first()

    def movie_titles(self, session: Session) -> list[str]:
        query = select(Movie.title).distinct().order_by(Movie.title)
        return list(session.execute(query).scalars())

    def ticket_types(self, session: Session) -> list[str]:
        query = select(Price.ticket_type).distinct().order_by(Price.ticket_type)
        return list(session.execute(query).scalars())

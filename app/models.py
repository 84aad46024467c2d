"""SQLAlchemy ORM models.

Movies, genres and price tiers are reference data owned elsewhere; this
service only reads them. Schedules are the records it creates and edits.
Transaction details are sale lines that point back at a schedule and are
exposed read-only.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class ScheduleStatus(str, enum.Enum):
    SCHEDULED = "Scheduled"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), unique=True)

    movies: Mapped[list[Movie]] = relationship(back_populates="genre")

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Genre(id={self.id}, title={self.title})"


class Movie(Base):
    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), index=True)
    genre_id: Mapped[int | None] = mapped_column(ForeignKey("genres.id"), nullable=True)

    genre: Mapped[Genre | None] = relationship(back_populates="movies")

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Movie(id={self.id}, title={self.title})"


class Price(Base):
    """A named pricing tier such as ``Adult`` or ``Child``."""

    __tablename__ = "prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_type: Mapped[str] = mapped_column(String(64), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(8, 2))

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Price(id={self.id}, ticket_type={self.ticket_type}, amount={self.amount})"


class Schedule(Base):
    """A screening of one movie at one price tier and start time."""

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Nullable: an unmatched movie title or ticket type is stored as no reference.
    movie_id: Mapped[int | None] = mapped_column(ForeignKey("movies.id"), nullable=True)
    price_id: Mapped[int | None] = mapped_column(ForeignKey("prices.id"), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(
            ScheduleStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        default=ScheduleStatus.SCHEDULED,
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    movie: Mapped[Movie | None] = relationship()
    price: Mapped[Price | None] = relationship()
    transaction_details: Mapped[list[TransactionDetail]] = relationship(
        back_populates="schedule",
        order_by="TransactionDetail.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Schedule(id={self.id}, movie_id={self.movie_id}, start_time={self.start_time})"


class TransactionDetail(Base):
    __tablename__ = "transaction_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    schedule_id: Mapped[int | None] = mapped_column(ForeignKey("schedules.id"), nullable=True)
    ticket_count: Mapped[int] = mapped_column(Integer, default=1)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    schedule: Mapped[Schedule | None] = relationship(back_populates="transaction_details")

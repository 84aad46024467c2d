"""Filter/sort composition for the schedule list view.

Every input is optional and comes straight from query parameters, so
nothing here raises: blank filters are ignored and unknown sort tokens fall
back to title ascending.

Text filters are case-insensitive substring matches on every backend
(``lower(column) LIKE lower(term)`` with ``%``/``_`` escaped), so
``searchTitle=dune`` matches "Dune" on SQLite and PostgreSQL alike.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import select
from sqlalchemy.orm import Session, contains_eager
from sqlalchemy.sql import Select

from app.db import ScheduleRepository
from app.models import Genre, Movie, Schedule
from app.services.models import SortToggles

logger = logging.getLogger(__name__)


class SortOrder(str, enum.Enum):
    TITLE_ASC = ""
    TITLE_DESC = "title_desc"
    START_TIME_ASC = "StartTime"
    START_TIME_DESC = "start_time_desc"

    @classmethod
    def parse(cls, token: str | None) -> SortOrder:
        """Map a raw token to an ordering, defaulting to title ascending."""

        if not token:
            return cls.TITLE_ASC
        try:
            return cls(token)
        except ValueError:
            logger.debug("Unknown sort token %r, using title ascending", token)
            return cls.TITLE_ASC


def next_sort_tokens(sort_order: str | None) -> SortToggles:
    """Tokens for the title and start-time headers given the current token.

    The title header flips to ``title_desc`` only when no token was sent;
    any other token (including unknown ones) makes it point back at the
    default ascending order.
    """

    return SortToggles(
        title=SortOrder.TITLE_DESC.value if not sort_order else SortOrder.TITLE_ASC.value,
        start_time=(
            SortOrder.START_TIME_DESC.value
            if sort_order == SortOrder.START_TIME_ASC.value
            else SortOrder.START_TIME_ASC.value
        ),
    )


_ORDERINGS = {
    SortOrder.TITLE_ASC: (Movie.title.asc(),),
    SortOrder.TITLE_DESC: (Movie.title.desc(),),
    SortOrder.START_TIME_ASC: (Schedule.start_time.asc(),),
    SortOrder.START_TIME_DESC: (Schedule.start_time.desc(),),
}


@dataclass(frozen=True)
class ScheduleQuery:
    """Caller-supplied list parameters for schedules."""

    sort_order: str | None = None
    search_title: str | None = None
    search_genre: str | None = None
    search_date: date | None = None

    @property
    def ordering(self) -> SortOrder:
        return SortOrder.parse(self.sort_order)

    @property
    def toggles(self) -> SortToggles:
        return next_sort_tokens(self.sort_order)

    def statement(self) -> Select:
        """Build the SELECT with movie, genre and price eagerly joined."""

        query = (
            select(Schedule)
            .outerjoin(Schedule.movie)
            .outerjoin(Movie.genre)
            .outerjoin(Schedule.price)
            .options(
                contains_eager(Schedule.movie).contains_eager(Movie.genre),
                contains_eager(Schedule.price),
            )
        )

        if self.search_title:
            query = query.where(Movie.title.icontains(self.search_title, autoescape=True))
        if self.search_genre:
            query = query.where(Genre.title.icontains(self.search_genre, autoescape=True))
        if self.search_date is not None:
            # "on or after" the day: compare against midnight of that date.
            query = query.where(Schedule.start_time >= datetime.combine(self.search_date, time.min))

        # id breaks ties so equal titles/start times come back in a stable order.
        return query.order_by(*_ORDERINGS[self.ordering], Schedule.id.asc())

    def run(self, session: Session, repository: ScheduleRepository | None = None) -> list[Schedule]:
        repository = repository or ScheduleRepository()
        logger.debug(
            "Listing schedules sort=%s title=%r genre=%r date=%s",
            self.ordering.name,
            self.search_title,
            self.search_genre,
            self.search_date,
        )
        return repository.fetch_all(session, self.statement())

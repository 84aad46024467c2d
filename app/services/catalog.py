"""Seeded movie catalog and reference-data bootstrap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Genre, Movie, Price

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogMovie:
    """One entry of the static catalog shown on the explore page."""

    title: str
    genre: str
    runtime_minutes: int
    rating: str
    synopsis: str | None = None


_SEED_MOVIES: tuple[CatalogMovie, ...] = (
    CatalogMovie(
        title="Dune",
        genre="Sci-Fi",
        runtime_minutes=155,
        rating="PG-13",
        synopsis="A noble family becomes embroiled in a war for control of a desert planet.",
    ),
    CatalogMovie(
        title="Annie",
        genre="Musical",
        runtime_minutes=127,
        rating="PG",
        synopsis="An orphan girl wins over a cold-hearted billionaire.",
    ),
    CatalogMovie(
        title="Arrival",
        genre="Sci-Fi",
        runtime_minutes=116,
        rating="PG-13",
        synopsis="A linguist works to communicate with visitors from another world.",
    ),
    CatalogMovie(
        title="The Grand Budapest Hotel",
        genre="Comedy",
        runtime_minutes=99,
        rating="R",
        synopsis="A concierge and his lobby boy are framed for murder.",
    ),
    CatalogMovie(
        title="Spirited Away",
        genre="Animation",
        runtime_minutes=125,
        rating="PG",
        synopsis="A girl wanders into a world of spirits and must free her parents.",
    ),
    CatalogMovie(
        title="Heat",
        genre="Crime",
        runtime_minutes=170,
        rating="R",
    ),
)

_SEED_PRICES: tuple[tuple[str, Decimal], ...] = (
    ("Adult", Decimal("12.50")),
    ("Child", Decimal("8.00")),
    ("Senior", Decimal("9.00")),
    ("Matinee", Decimal("7.50")),
)


def get_movies() -> list[CatalogMovie]:
    """Return the seeded catalog; the list is fixed for the life of the process."""

    return list(_SEED_MOVIES)


def seed_reference_data(session: Session) -> int:
    """Insert any missing genres, movies and price tiers.

    Existing rows (matched by title / ticket type) are left untouched, so
    running this on every startup is safe. Returns the number of rows added.
    """

    added = 0
    genres = {genre.title: genre for genre in session.execute(select(Genre)).scalars()}
    known_movies = set(session.execute(select(Movie.title)).scalars())
    known_prices = set(session.execute(select(Price.ticket_type)).scalars())

    for entry in _SEED_MOVIES:
        genre = genres.get(entry.genre)
        if genre is None:
            genre = Genre(title=entry.genre)
            genres[entry.genre] = genre
            session.add(genre)
            added += 1
        if entry.title not in known_movies:
            session.add(Movie(title=entry.title, genre=genre))
            known_movies.add(entry.title)
            added += 1

    for ticket_type, amount in _SEED_PRICES:
        if ticket_type not in known_prices:
            session.add(Price(ticket_type=ticket_type, amount=amount))
            added += 1

    session.flush()
    if added:
        logger.info("Seeded %s reference rows", added)
    return added

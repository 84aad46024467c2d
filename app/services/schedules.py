"""Admin operations on schedules: list, read, create, update, delete."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Mapping

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db import CatalogRepository, ScheduleRepository
from app.models import Movie, Price, Schedule, ScheduleStatus
from app.services.models import (
    LabelResolution,
    Resolved,
    ScheduleForm,
    ScheduleFormOptions,
    ScheduleListing,
    Unresolved,
)
from app.services.schedule_query import ScheduleQuery

logger = logging.getLogger(__name__)


class ScheduleError(Exception):
    """Base exception for schedule admin failures."""


class ScheduleNotFound(ScheduleError):
    """Raised when an id is missing or matches no stored schedule."""

    def __init__(self, schedule_id: int | None) -> None:
        super().__init__(f"Schedule {schedule_id} not found")
        self.schedule_id = schedule_id


class ScheduleValidationError(ScheduleError):
    """Raised when a submitted schedule fails field validation.

    ``payload`` is the input exactly as submitted so it can be shown again.
    """

    def __init__(self, errors: list[dict[str, Any]], payload: Any) -> None:
        super().__init__("Schedule payload is invalid")
        self.errors = errors
        self.payload = payload


class ScheduleIdentityMismatch(ScheduleError):
    """Raised when the path id and the payload id of an update disagree."""

    def __init__(self, path_id: int, payload_id: int | None) -> None:
        super().__init__(f"Path id {path_id} does not match payload id {payload_id}")
        self.path_id = path_id
        self.payload_id = payload_id


class ScheduleConcurrencyConflict(ScheduleError):
    """Raised when a schedule was changed by someone else since it was read."""

    def __init__(self, schedule_id: int) -> None:
        super().__init__(f"Schedule {schedule_id} was modified concurrently")
        self.schedule_id = schedule_id


class UnresolvedReference(ScheduleError):
    """Raised in strict mode when a movie title or ticket type matches nothing."""

    def __init__(self, field: str, label: str | None) -> None:
        super().__init__(f"No {field} matches {label!r}")
        self.field = field
        self.label = label


def transition_status(current: ScheduleStatus | None, requested: ScheduleStatus) -> ScheduleStatus:
    """Return the status a schedule moves to. Every transition is allowed."""

    return requested


def validate_form(candidate: ScheduleForm | Mapping[str, Any]) -> ScheduleForm:
    if isinstance(candidate, ScheduleForm):
        return candidate
    try:
        return ScheduleForm.model_validate(candidate)
    except ValidationError as exc:
        errors = json.loads(exc.json(include_url=False))
        raise ScheduleValidationError(errors, payload=candidate) from exc


class ScheduleAdminService:
    """Schedule admin use cases bound to one database session.

    The session and repositories are the store; pass different ones in to
    run against another database or a test fixture.
    """

    def __init__(
        self,
        session: Session,
        *,
        schedules: ScheduleRepository | None = None,
        catalog: CatalogRepository | None = None,
        strict_references: bool | None = None,
    ) -> None:
        self.session = session
        self.schedules = schedules or ScheduleRepository()
        self.catalog = catalog or CatalogRepository()
        if strict_references is None:
            strict_references = get_settings().strict_references
        self.strict_references = strict_references

    def list_schedules(
        self,
        sort_order: str | None = None,
        search_title: str | None = None,
        search_genre: str | None = None,
        search_date: date | None = None,
    ) -> ScheduleListing:
        query = ScheduleQuery(
            sort_order=sort_order,
            search_title=search_title,
            search_genre=search_genre,
            search_date=search_date,
        )
        return ScheduleListing(
            schedules=query.run(self.session, self.schedules),
            sort_order=query.ordering.value,
            toggles=query.toggles,
        )

    def get(self, schedule_id: int | None, *, with_transactions: bool = True) -> Schedule:
        if schedule_id is None:
            raise ScheduleNotFound(schedule_id)
        schedule = self.schedules.get(
            self.session,
            schedule_id,
            with_transactions=with_transactions,
        )
        if schedule is None:
            raise ScheduleNotFound(schedule_id)
        return schedule

    def form_options(self) -> ScheduleFormOptions:
        return ScheduleFormOptions(
            movie_titles=self.catalog.movie_titles(self.session),
            ticket_types=self.catalog.ticket_types(self.session),
        )

    def resolve_movie(self, title: str | None) -> LabelResolution:
        movie = self.catalog.first_movie_by_title(self.session, title) if title else None
        return Resolved(movie) if movie is not None else Unresolved("movie", title)

    def resolve_price(self, ticket_type: str | None) -> LabelResolution:
        price = self.catalog.first_price_by_ticket_type(self.session, ticket_type) if ticket_type else None
        return Resolved(price) if price is not None else Unresolved("price", ticket_type)

    def create(
        self,
        candidate: ScheduleForm | Mapping[str, Any],
        *,
        movie_title: str | None = None,
        ticket_type: str | None = None,
        strict: bool | None = None,
    ) -> Schedule:
        """Validate, resolve the movie/price labels and persist a new schedule.

        Labels passed as arguments take precedence over those in the form.

        No overlap or capacity checks are made against other schedules.
        """

        form = validate_form(candidate)
        movie_title = movie_title if movie_title is not None else form.movie_title
        ticket_type = ticket_type if ticket_type is not None else form.ticket_type
        movie, price = self._resolve_references(movie_title, ticket_type, strict)
        schedule = self.schedules.create(
            self.session,
            movie=movie,
            price=price,
            start_time=form.start_time,
            status=transition_status(None, form.status),
        )
        logger.info("Created schedule %s (movie=%r, ticket_type=%r)", schedule.id, movie_title, ticket_type)
        return schedule

    def update(
        self,
        schedule_id: int,
        candidate: ScheduleForm | Mapping[str, Any],
        *,
        movie_title: str | None = None,
        ticket_type: str | None = None,
        strict: bool | None = None,
    ) -> Schedule:
        """Replace every editable field of an existing schedule.

        When the form carries a ``version`` the write only succeeds if the
        stored row still has that version.
        """

        form = validate_form(candidate)
        if form.schedule_id != schedule_id:
            raise ScheduleIdentityMismatch(schedule_id, form.schedule_id)

        current = self.schedules.get(self.session, schedule_id)
        if current is None:
            raise ScheduleNotFound(schedule_id)

        movie_title = movie_title if movie_title is not None else form.movie_title
        ticket_type = ticket_type if ticket_type is not None else form.ticket_type
        movie, price = self._resolve_references(movie_title, ticket_type, strict)
        replaced = self.schedules.replace(
            self.session,
            schedule_id,
            expected_version=form.version,
            movie_id=movie.id if movie is not None else None,
            price_id=price.id if price is not None else None,
            start_time=form.start_time,
            status=transition_status(current.status, form.status),
        )
        if not replaced:
            if not self.schedules.exists(self.session, schedule_id):
                logger.info("Schedule %s disappeared during update", schedule_id)
                raise ScheduleNotFound(schedule_id)
            logger.warning(
                "Schedule %s update rejected: version %s is stale",
                schedule_id,
                form.version,
            )
            raise ScheduleConcurrencyConflict(schedule_id)

        logger.info("Updated schedule %s", schedule_id)
        return self.get(schedule_id, with_transactions=False)

    def delete(self, schedule_id: int | None) -> bool:
        """Remove a schedule. Returns False if it was already gone."""

        if schedule_id is None:
            raise ScheduleNotFound(schedule_id)
        schedule = self.schedules.get(self.session, schedule_id)
        if schedule is None:
            logger.debug("Schedule %s already deleted", schedule_id)
            return False
        self.schedules.delete(self.session, schedule)
        logger.info("Deleted schedule %s", schedule_id)
        return True

    def _resolve_references(
        self,
        movie_title: str | None,
        ticket_type: str | None,
        strict: bool | None,
    ) -> tuple[Movie | None, Price | None]:
        strict = self.strict_references if strict is None else strict
        movie = self._accept(self.resolve_movie(movie_title), strict=strict)
        price = self._accept(self.resolve_price(ticket_type), strict=strict)
        return movie, price

    @staticmethod
    def _accept(resolution: LabelResolution, *, strict: bool) -> Any:
        if isinstance(resolution, Resolved):
            return resolution.record
        if strict:
            raise UnresolvedReference(resolution.field, resolution.label)
        logger.warning(
            "No %s matches %r; storing schedule without it",
            resolution.field,
            resolution.label,
        )
        return None

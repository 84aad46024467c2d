"""Shared value types for the service layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, NaiveDatetime

from app.models import Schedule, ScheduleStatus

T = TypeVar("T")


class ScheduleForm(BaseModel):
    """Fields of a schedule as submitted by an admin form.

    Movie and price tier arrive as labels (movie title, ticket type) rather
    than ids and are resolved server-side. Start times are wall-clock
    theater times, so values carrying a UTC offset are rejected.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schedule_id: int | None = Field(default=None, alias="scheduleId")
    start_time: NaiveDatetime = Field(..., alias="startTime")
    status: ScheduleStatus = ScheduleStatus.SCHEDULED
    version: int | None = Field(default=None, ge=1, description="Row version last seen by the client")
    movie_title: str | None = Field(default=None, alias="movieTitle")
    ticket_type: str | None = Field(default=None, alias="ticketType")


@dataclass(frozen=True, slots=True)
class Resolved(Generic[T]):
    """A label that matched a stored record."""

    record: T


@dataclass(frozen=True, slots=True)
class Unresolved:
    """A label that matched nothing (or was not supplied)."""

    field: str
    label: str | None


LabelResolution = Union[Resolved[Any], Unresolved]


@dataclass(frozen=True, slots=True)
class SortToggles:
    """Sort tokens a column header should send on the next request."""

    title: str
    start_time: str


@dataclass(slots=True)
class ScheduleListing:
    schedules: list[Schedule]
    sort_order: str
    toggles: SortToggles


@dataclass(slots=True)
class ScheduleFormOptions:
    """Values for the movie/ticket type/status selection inputs."""

    movie_titles: list[str] = field(default_factory=list)
    ticket_types: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=lambda: [status.value for status in ScheduleStatus])

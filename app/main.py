"""FastAPI entrypoint exposing the schedule admin views as JSON."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db import SessionLocal, get_session, init_models
from app.models import Schedule
from app.services.catalog import get_movies, seed_reference_data
from app.services.models import ScheduleForm, ScheduleFormOptions
from app.services.schedules import (
    ScheduleAdminService,
    ScheduleConcurrencyConflict,
    ScheduleIdentityMismatch,
    ScheduleNotFound,
    UnresolvedReference,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Ensure database tables (and reference data) before serving."""

    init_models()
    if get_settings().seed_reference_data:
        with SessionLocal() as session:
            seed_reference_data(session)
            session.commit()
    yield


app = FastAPI(title=get_settings().app_title, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Return field errors together with the submitted body for re-display."""

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder({"errors": exc.errors(), "input": exc.body})},
    )


class MovieResponse(BaseModel):
    id: int
    title: str
    genre: str | None = None


class PriceResponse(BaseModel):
    id: int
    ticket_type: str
    amount: Decimal


class TransactionDetailResponse(BaseModel):
    id: int
    ticket_count: int
    amount: Decimal


class ScheduleResponse(BaseModel):
    id: int
    start_time: datetime
    status: str
    version: int
    movie: MovieResponse | None = None
    price: PriceResponse | None = None


class ScheduleDetailResponse(ScheduleResponse):
    transaction_details: list[TransactionDetailResponse] = []


class ScheduleListResponse(BaseModel):
    schedules: list[ScheduleResponse]
    sort_order: str
    title_sort: str
    start_time_sort: str


class ScheduleOptionsResponse(BaseModel):
    movie_titles: list[str]
    ticket_types: list[str]
    statuses: list[str]


class ScheduleEditResponse(BaseModel):
    schedule: ScheduleResponse
    options: ScheduleOptionsResponse


class CatalogMovieResponse(BaseModel):
    title: str
    genre: str
    runtime_minutes: int
    rating: str
    synopsis: str | None = None


def get_service(session: Session = Depends(get_session)) -> ScheduleAdminService:
    return ScheduleAdminService(session)


@app.get("/movies", response_model=list[CatalogMovieResponse])
def explore_movies() -> list[CatalogMovieResponse]:
    return [
        CatalogMovieResponse(
            title=movie.title,
            genre=movie.genre,
            runtime_minutes=movie.runtime_minutes,
            rating=movie.rating,
            synopsis=movie.synopsis,
        )
        for movie in get_movies()
    ]


@app.get("/schedules", response_model=ScheduleListResponse)
def list_schedules(
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    search_title: str | None = Query(default=None, alias="searchTitle"),
    search_genre: str | None = Query(default=None, alias="searchGenre"),
    search_date: str | None = Query(default=None, alias="searchDate"),
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleListResponse:
    listing = service.list_schedules(
        sort_order=sort_order,
        search_title=search_title,
        search_genre=search_genre,
        search_date=_parse_date(search_date),
    )
    return ScheduleListResponse(
        schedules=[_schedule_to_response(schedule) for schedule in listing.schedules],
        sort_order=listing.sort_order,
        title_sort=listing.toggles.title,
        start_time_sort=listing.toggles.start_time,
    )


@app.get("/schedules/options", response_model=ScheduleOptionsResponse)
def schedule_form_options(
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleOptionsResponse:
    return _options_to_response(service.form_options())


@app.get("/schedules/{schedule_id}", response_model=ScheduleDetailResponse)
def schedule_details(
    schedule_id: int,
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleDetailResponse:
    try:
        schedule = service.get(schedule_id)
    except ScheduleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ScheduleDetailResponse(
        **_schedule_to_response(schedule).model_dump(),
        transaction_details=[
            TransactionDetailResponse(id=detail.id, ticket_count=detail.ticket_count, amount=detail.amount)
            for detail in schedule.transaction_details
        ],
    )


@app.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleForm,
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleResponse:
    """Create a schedule from a form payload with movie/ticket type labels."""

    try:
        schedule = service.create(payload)
    except UnresolvedReference as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _schedule_to_response(schedule)


@app.get("/schedules/{schedule_id}/edit", response_model=ScheduleEditResponse)
def edit_schedule_form(
    schedule_id: int,
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleEditResponse:
    try:
        schedule = service.get(schedule_id, with_transactions=False)
    except ScheduleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ScheduleEditResponse(
        schedule=_schedule_to_response(schedule),
        options=_options_to_response(service.form_options()),
    )


@app.put("/schedules/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: int,
    payload: ScheduleForm,
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleResponse:
    try:
        schedule = service.update(schedule_id, payload)
    except (ScheduleIdentityMismatch, ScheduleNotFound) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ScheduleConcurrencyConflict as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Schedule was changed by someone else. Reload it and submit again.",
        ) from exc
    except UnresolvedReference as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _schedule_to_response(schedule)


@app.get("/schedules/{schedule_id}/delete", response_model=ScheduleResponse)
def confirm_delete_schedule(
    schedule_id: int,
    service: ScheduleAdminService = Depends(get_service),
) -> ScheduleResponse:
    try:
        schedule = service.get(schedule_id, with_transactions=False)
    except ScheduleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _schedule_to_response(schedule)


@app.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    service: ScheduleAdminService = Depends(get_service),
) -> Response:
    service.delete(schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _schedule_to_response(schedule: Schedule) -> ScheduleResponse:
    movie = schedule.movie
    price = schedule.price
    return ScheduleResponse(
        id=schedule.id,
        start_time=schedule.start_time,
        status=schedule.status.value,
        version=schedule.version,
        movie=(
            MovieResponse(
                id=movie.id,
                title=movie.title,
                genre=movie.genre.title if movie.genre else None,
            )
            if movie is not None
            else None
        ),
        price=(
            PriceResponse(id=price.id, ticket_type=price.ticket_type, amount=price.amount)
            if price is not None
            else None
        ),
    )


def _options_to_response(options: ScheduleFormOptions) -> ScheduleOptionsResponse:
    return ScheduleOptionsResponse(
        movie_titles=options.movie_titles,
        ticket_types=options.ticket_types,
        statuses=options.statuses,
    )


def _parse_date(raw: str | None) -> date | None:
    """Lenient date parsing: anything unreadable means "no date filter".

    Accepts a plain ISO date or a full ISO datetime (its date part is used).
    """

    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        logger.debug("Ignoring unparseable searchDate %r", raw)
        return None

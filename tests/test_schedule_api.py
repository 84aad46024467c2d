from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.db import get_session
from app.main import app
from app.services.catalog import seed_reference_data


@pytest.fixture
def client(session_factory):
    with session_factory() as session:
        seed_reference_data(session)
        session.commit()

    def _get_test_session():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = _get_test_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, movie_title, start_time, ticket_type="Adult", **extra):
    payload = {"startTime": start_time, "movieTitle": movie_title, "ticketType": ticket_type, **extra}
    response = client.post("/schedules", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _titles(response):
    assert response.status_code == 200
    return [item["movie"]["title"] for item in response.json()["schedules"]]


def test_explore_movies_lists_catalog(client):
    response = client.get("/movies")
    assert response.status_code == 200
    titles = [movie["title"] for movie in response.json()]
    assert "Dune" in titles
    assert "Annie" in titles


def test_create_then_details(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    assert created["movie"] == {"id": created["movie"]["id"], "title": "Dune", "genre": "Sci-Fi"}
    assert created["price"]["ticket_type"] == "Adult"
    assert Decimal(str(created["price"]["amount"])) == Decimal("12.50")
    assert created["status"] == "Scheduled"
    assert created["version"] == 1

    response = client.get(f"/schedules/{created['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["movie"]["title"] == "Dune"
    assert body["transaction_details"] == []


def test_create_with_unknown_labels_keeps_null_references(client):
    created = _create(client, "Not Showing", "2024-05-01T19:30:00", ticket_type="VIP")
    assert created["movie"] is None
    assert created["price"] is None


def test_create_in_strict_mode_rejects_unknown_labels(client, monkeypatch):
    monkeypatch.setenv("STRICT_SCHEDULE_REFERENCES", "true")
    response = client.post(
        "/schedules",
        json={"startTime": "2024-05-01T19:30:00", "movieTitle": "Not Showing", "ticketType": "Adult"},
    )
    assert response.status_code == 422
    assert "Not Showing" in response.json()["detail"]
    assert client.get("/schedules").json()["schedules"] == []


def test_create_invalid_payload_echoes_input(client):
    payload = {"startTime": "tomorrow-ish", "movieTitle": "Dune", "ticketType": "Adult"}
    response = client.post("/schedules", json=payload)
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["input"] == payload
    assert detail["errors"][0]["loc"] == ["body", "startTime"]


@pytest.mark.parametrize("movie_title", [["Dune"], {"t": 1}, 42])
def test_create_rejects_non_string_movie_title(client, movie_title):
    payload = {"startTime": "2024-05-01T19:30:00", "movieTitle": movie_title, "ticketType": "Adult"}
    response = client.post("/schedules", json=payload)
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["input"] == payload
    assert detail["errors"][0]["loc"] == ["body", "movieTitle"]
    assert client.get("/schedules").json()["schedules"] == []


def test_update_rejects_non_string_ticket_type(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    response = client.put(
        f"/schedules/{created['id']}",
        json={
            "scheduleId": created["id"],
            "startTime": "2024-05-02T20:00:00",
            "movieTitle": "Dune",
            "ticketType": ["Adult", "Child"],
        },
    )
    assert response.status_code == 422
    assert client.get(f"/schedules/{created['id']}").json()["version"] == 1


def test_create_rejects_start_time_with_offset(client):
    response = client.post(
        "/schedules",
        json={"startTime": "2024-05-01T23:30:00-05:00", "movieTitle": "Dune", "ticketType": "Adult"},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["loc"] == ["body", "startTime"]
    assert client.get("/schedules").json()["schedules"] == []


def test_list_scenario(client):
    _create(client, "Dune", "2024-05-01T19:30:00")
    _create(client, "Annie", "2024-05-03T14:00:00")

    response = client.get("/schedules")
    assert _titles(response) == ["Annie", "Dune"]
    body = response.json()
    assert body["sort_order"] == ""
    assert body["title_sort"] == "title_desc"
    assert body["start_time_sort"] == "StartTime"

    assert _titles(client.get("/schedules", params={"sortOrder": "title_desc"})) == ["Dune", "Annie"]
    assert _titles(client.get("/schedules", params={"searchGenre": "Sci-Fi"})) == ["Dune"]
    assert _titles(client.get("/schedules", params={"searchDate": "2024-05-02"})) == ["Annie"]
    assert _titles(client.get("/schedules", params={"searchTitle": "ANN"})) == ["Annie"]

    by_start = client.get("/schedules", params={"sortOrder": "StartTime"})
    assert _titles(by_start) == ["Dune", "Annie"]
    assert by_start.json()["start_time_sort"] == "start_time_desc"
    assert by_start.json()["title_sort"] == ""


def test_list_ignores_unparseable_date(client):
    _create(client, "Dune", "2024-05-01T19:30:00")
    _create(client, "Annie", "2024-05-03T14:00:00")
    assert _titles(client.get("/schedules", params={"searchDate": "someday"})) == ["Annie", "Dune"]


def test_form_options(client):
    response = client.get("/schedules/options")
    assert response.status_code == 200
    body = response.json()
    assert "Dune" in body["movie_titles"]
    assert body["ticket_types"] == sorted(set(body["ticket_types"]))
    assert "Adult" in body["ticket_types"]
    assert body["statuses"] == ["Scheduled", "Cancelled", "Completed"]


def test_edit_view(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    response = client.get(f"/schedules/{created['id']}/edit")
    assert response.status_code == 200
    body = response.json()
    assert body["schedule"]["id"] == created["id"]
    assert "Cancelled" in body["options"]["statuses"]

    assert client.get("/schedules/999/edit").status_code == 404


def test_update_schedule(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    response = client.put(
        f"/schedules/{created['id']}",
        json={
            "scheduleId": created["id"],
            "startTime": "2024-05-02T20:00:00",
            "status": "Cancelled",
            "version": created["version"],
            "movieTitle": "Annie",
            "ticketType": "Child",
        },
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["movie"]["title"] == "Annie"
    assert body["price"]["ticket_type"] == "Child"
    assert body["status"] == "Cancelled"
    assert body["version"] == 2


def test_update_with_mismatched_id_is_not_found(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    response = client.put(
        f"/schedules/{created['id']}",
        json={"scheduleId": created["id"] + 1, "startTime": "2024-05-02T20:00:00"},
    )
    assert response.status_code == 404
    assert client.get(f"/schedules/{created['id']}").json()["version"] == 1


def test_update_with_stale_version_conflicts(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")
    payload = {
        "scheduleId": created["id"],
        "startTime": "2024-05-02T20:00:00",
        "version": 1,
        "movieTitle": "Dune",
        "ticketType": "Adult",
    }
    assert client.put(f"/schedules/{created['id']}", json=payload).status_code == 200
    assert client.put(f"/schedules/{created['id']}", json=payload).status_code == 409


def test_update_missing_schedule_is_not_found(client):
    response = client.put(
        "/schedules/999",
        json={"scheduleId": 999, "startTime": "2024-05-02T20:00:00", "movieTitle": "Dune"},
    )
    assert response.status_code == 404


def test_delete_flow_is_idempotent(client):
    created = _create(client, "Dune", "2024-05-01T19:30:00")

    confirm = client.get(f"/schedules/{created['id']}/delete")
    assert confirm.status_code == 200
    assert confirm.json()["id"] == created["id"]

    assert client.delete(f"/schedules/{created['id']}").status_code == 204
    assert client.delete(f"/schedules/{created['id']}").status_code == 204
    assert client.get(f"/schedules/{created['id']}").status_code == 404
    assert client.get(f"/schedules/{created['id']}/delete").status_code == 404


def test_details_of_missing_schedule_is_not_found(client):
    assert client.get("/schedules/12345").status_code == 404


@pytest.mark.parametrize("raw", ["2024-05-02junk", "2024-05-02 and more", "2024-13-40"])
def test_list_ignores_date_with_trailing_garbage(client, raw):
    _create(client, "Dune", "2024-05-01T19:30:00")
    _create(client, "Annie", "2024-05-03T14:00:00")
    assert _titles(client.get("/schedules", params={"searchDate": raw})) == ["Annie", "Dune"]


def test_list_accepts_full_datetime_as_search_date(client):
    _create(client, "Dune", "2024-05-01T19:30:00")
    _create(client, "Annie", "2024-05-03T14:00:00")
    assert _titles(client.get("/schedules", params={"searchDate": "2024-05-02T18:00:00"})) == ["Annie"]

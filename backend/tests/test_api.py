import pytest
from fastapi.testclient import TestClient

from volunteer_scheduler.api import app

BODY = {
    "schedule_name": "test1",
    "shifts_off": 3,
    "volunteers_per_shift": 3,
    "start_date": "2024-01-01",
    "end_date": "2024-03-01",
    "weekdays_for_schedule": ["Sunday"],
    "volunteer_unavailability_data": {"Tim": ["2024-01-14"]},
    "volunteer_scheduled_data": {},
}


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.delenv("VSA_DEFAULT_USER", raising=False)
    app.state.store = store
    with TestClient(app) as client:
        yield client
    del app.state.store


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_schedule_lifecycle(client):
    assert client.get("/schedules").json() == {"user": "Seth", "schedules": []}

    response = client.post("/schedules", json=BODY)
    assert response.status_code == 201
    assert response.json()["weeks"] == 8

    assert client.get("/schedules").json()["schedules"] == ["test1"]
    fetched = client.get("/schedules/test1").json()
    assert fetched["volunteer_unavailability_data"] == {"Tim": ["2024-01-14"]}

    changed = dict(BODY, volunteer_unavailability_data={"Bill": ["2024-01-21"]})
    response = client.put("/schedules/test1", json=changed)
    assert response.status_code == 200
    assert response.json()["volunteer_unavailability_data"] == {"Bill": ["2024-01-21"]}

    assert client.delete("/schedules/test1").status_code == 200
    assert client.get("/schedules/test1").status_code == 404


def test_user_header(client):
    client.post("/schedules", json=BODY)
    response = client.get("/schedules", headers={"X-User": "Ada"})
    assert response.json() == {"user": "Ada", "schedules": []}
    assert client.get("/schedules", headers={"X-User": "Mallory"}).status_code == 401


def test_error_status_codes(client):
    assert client.post("/schedules", json=BODY).status_code == 201
    assert client.post("/schedules", json=BODY).status_code == 409
    assert client.get("/schedules/missing").status_code == 404
    assert client.post("/schedules", json=dict(BODY, schedule_name="x", end_date="2031-01-01")).status_code == 400
    assert client.post("/schedules", json=dict(BODY, schedule_name="a:b")).status_code == 422


def test_put_cannot_rename(client):
    client.post("/schedules", json=BODY)
    response = client.put("/schedules/test1", json=dict(BODY, schedule_name="test2"))
    assert response.status_code == 400
    assert client.get("/schedules").json()["schedules"] == ["test1"]

import pytest
from fastapi.testclient import TestClient

from backend.app.core.rate_limit import attempt_limiter
from backend.app.crud.crud_user import user_crud
from backend.app.db.base import Base
from backend.app.db.gateway import Database
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app

AJAX = {"X-Requested-With": "XMLHttpRequest"}


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed_reference_data(session)
    attempt_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    gateway = Database(engine.connect())
    yield gateway
    gateway.close()


@pytest.fixture
def agent_id(db):
    return user_crud.create(db, name="Agent Smith", email="agent@flopy.io", password="secret123", role_id=2)


@pytest.fixture
def client(agent_id):
    client = TestClient(app)
    token = client.get("/users/login").json()["data"]["csrf_token"]
    client.post(
        "/users/login",
        data={"email": "agent@flopy.io", "password": "secret123", "csrf_token": token},
        follow_redirects=False,
    )
    return client


def test_dashboard_index_renders_summary(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "dashboard/index"
    data = body["data"]
    assert data["title"] == "Dashboard"
    assert data["contacts"]["total"] == 0
    assert list(data["reminders"]["by_status"]) == ["pending", "completed", "dismissed"]
    assert data["upcoming_events"] == []


def test_get_data_requires_ajax(client):
    response = client.get("/dashboard/getData", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"


def test_get_data_returns_every_card(client):
    response = client.get("/dashboard/getData", headers=AJAX)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert set(body["data"]) == {"contacts", "interactions", "deals", "calendar", "reminders"}
    assert list(body["data"]["calendar"]["by_weekday"]) == ["1", "2", "3", "4", "5", "6", "7"]
    assert len(body["data"]["interactions"]["by_month"]) == 12
    assert len(body["data"]["deals"]["by_stage"]) == 6


def test_get_data_single_card_and_unknown_type(client):
    body = client.get("/dashboard/get_data", params={"type": "reminders"}, headers=AJAX).json()
    assert body == {"success": True, "data": {"reminders": {"by_status": {"pending": 0, "completed": 0, "dismissed": 0}}}}
    response = client.get("/dashboard/getData", params={"type": "weather"}, headers=AJAX)
    assert response.status_code == 400
    assert "error" in response.json()


def test_toggle_theme_flips_and_persists(client, db, agent_id):
    assert client.get("/dashboard/toggleTheme", follow_redirects=False).status_code == 303
    response = client.post("/dashboard/toggleTheme", headers=AJAX)
    assert response.json() == {"success": True, "theme": "dark"}
    assert user_crud.get(db, user_id=agent_id)["theme"] == "dark"
    assert client.get("/dashboard").json()["data"]["theme"] == "dark"
    assert client.post("/dashboard/toggleTheme", headers=AJAX).json()["theme"] == "light"

import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_requires_login():
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/login"


def test_unknown_segment_falls_back_to_dashboard_login_gate():
    response = client.get("/no-such-page/whatever", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/login"


def test_login_page_is_public_and_sets_session_cookie():
    response = client.get("/users/login")
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "users/login"
    assert len(body["data"]["csrf_token"]) == 64
    assert "crm_session" in response.cookies

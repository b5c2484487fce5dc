import pytest
from fastapi.testclient import TestClient

from backend.app.core.rate_limit import attempt_limiter
from backend.app.crud.crud_user import user_crud
from backend.app.db.base import Base
from backend.app.db.gateway import Database
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed_reference_data(session)
    attempt_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


def csrf_token(client: TestClient, path: str = "/users/register") -> str:
    return client.get(path).json()["data"]["csrf_token"]


def register(client: TestClient, **overrides):
    form = {
        "name": "Ada Lovelace",
        "email": "ada@analytical.io",
        "password": "engines123",
        "confirm_password": "engines123",
        "csrf_token": csrf_token(client),
    }
    form.update(overrides)
    return client.post("/users/register", data=form, follow_redirects=False)


def find_user(email: str):
    db = Database(engine.connect())
    try:
        return user_crud.get_by_email(db, email=email)
    finally:
        db.close()


def test_register_page_renders_empty_form():
    client = TestClient(app)
    response = client.get("/users/register")
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "users/register"
    assert body["data"]["name"] == ""
    assert body["data"]["current_user"] is None


def test_register_creates_agent_and_redirects_to_login():
    client = TestClient(app)
    response = register(client)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/login"

    user = find_user("ada@analytical.io")
    assert user["name"] == "Ada Lovelace"
    assert user["role_id"] == 2
    assert user["password"] != "engines123"

    login_page = client.get("/users/login").json()
    assert login_page["data"]["flash"]["register_success"]["message"] == "You are registered and can log in"


def test_register_rejects_duplicate_email():
    client = TestClient(app)
    register(client)
    response = register(client, name="Someone Else")
    assert response.status_code == 200
    assert response.json()["data"]["email_error"] == "Email is already taken"


def test_register_validates_fields():
    client = TestClient(app)
    response = register(client, name="  ", email="not-an-email", password="short", confirm_password="other")
    data = response.json()["data"]
    assert data["name_error"] == "Please enter name"
    assert data["email_error"] == "Please enter a valid email"
    assert data["password_error"] == "Password must be at least 8 characters"
    assert find_user("not-an-email") is None


def test_register_rejects_mismatched_confirmation():
    client = TestClient(app)
    response = register(client, confirm_password="engines124")
    assert response.json()["data"]["confirm_password_error"] == "Passwords do not match"


def test_register_with_bad_csrf_token_is_refused():
    client = TestClient(app)
    response = register(client, csrf_token="f" * 64)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/register"
    assert find_user("ada@analytical.io") is None
    flash = client.get("/users/register").json()["data"]["flash"]
    assert "csrf_error" in flash


def test_register_is_rate_limited():
    client = TestClient(app)
    for index in range(3):
        register(client, email=f"user{index}@analytical.io")
    response = register(client, email="user4@analytical.io")
    assert response.status_code == 303
    assert response.headers["location"] == "/users/register"
    assert find_user("user4@analytical.io") is None

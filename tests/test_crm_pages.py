from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from backend.app.core.rate_limit import attempt_limiter
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_deal import deal_crud
from backend.app.crud.crud_event import event_crud
from backend.app.crud.crud_interaction import interaction_crud
from backend.app.crud.crud_reminder import reminder_crud
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
def contact_id(db, agent_id):
    return contact_crud.create(
        db, data={"first_name": "Ada", "last_name": "Lovelace", "owner_id": agent_id}, created_by=agent_id
    )


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


def csrf_token(client: TestClient, path: str) -> str:
    return client.get(path).json()["data"]["csrf_token"]


def post(client: TestClient, path: str, form: dict, token_path: str, **kwargs):
    data = {"csrf_token": csrf_token(client, token_path), **form}
    return client.post(path, data=data, follow_redirects=False, **kwargs)


def test_add_deal_defaults_owner_and_probability(client, db, agent_id, contact_id):
    page = client.get(f"/deals/add/{contact_id}").json()["data"]
    assert page["contact_id"] == contact_id
    response = post(
        client,
        "/deals/add",
        {"title": "Engine", "contact_id": str(contact_id), "amount": "1200.50", "stage": "proposal"},
        "/deals/add",
    )
    assert response.status_code == 303
    deal_id = int(response.headers["location"].rsplit("/", 1)[1])
    deal = deal_crud.get(db, deal_id=deal_id)
    assert (deal["owner_id"], deal["probability"]) == (agent_id, 50)


def test_add_deal_requires_existing_contact(client):
    response = post(client, "/deals/add", {"title": "Orphan", "contact_id": "999"}, "/deals/add")
    assert response.json()["data"]["contact_id_error"] == "Please select a contact"


def test_pipeline_and_stage_change(client, db, agent_id, contact_id):
    deal_id = deal_crud.create(
        db, data={"contact_id": contact_id, "title": "Engine", "amount": "100", "stage": "proposal", "owner_id": agent_id},
        created_by=agent_id,
    )
    pipeline = client.get("/deals/pipeline").json()["data"]
    assert [deal["id"] for deal in pipeline["pipeline"]["proposal"]] == [deal_id]
    assert pipeline["forecast"] == 50.0

    token = csrf_token(client, "/deals/pipeline")
    invalid = client.post(f"/deals/stage/{deal_id}", data={"csrf_token": token, "stage": "maybe"}, headers=AJAX)
    assert invalid.status_code == 400
    response = client.post(f"/deals/stage/{deal_id}", data={"csrf_token": token, "stage": "closed-won"}, headers=AJAX)
    body = response.json()
    assert body["success"] is True
    assert body["deal"]["stage"] == "closed-won"
    assert body["deal"]["actual_close_date"] is not None


def test_interaction_add_and_status(client, db, contact_id):
    response = post(
        client,
        f"/interactions/add/{contact_id}",
        {"type": "call", "subject": "Intro call", "date": "2024-03-05T10:30", "duration": "15"},
        f"/interactions/add/{contact_id}",
    )
    assert response.headers["location"] == f"/contacts/view/{contact_id}"
    interaction = interaction_crud.get_for_contact(db, contact_id=contact_id)[0]
    assert (interaction["subject"], interaction["status"]) == ("Intro call", "planned")

    token = csrf_token(client, f"/interactions/{contact_id}")
    status = client.post(
        f"/interactions/status/{interaction['id']}",
        data={"csrf_token": token, "status": "completed", "outcome": "Interested"},
        headers=AJAX,
    )
    assert status.json() == {"success": True, "status": "completed"}
    assert interaction_crud.get(db, interaction_id=interaction["id"])["outcome"] == "Interested"


def test_interactions_index_without_contact_redirects(client):
    assert client.get("/interactions", follow_redirects=False).headers["location"] == "/contacts"


def test_event_add_move_and_range(client, db, agent_id):
    response = post(
        client,
        "/events/add",
        {"title": "Board meeting", "start_time": "2024-03-04T09:00", "end_time": "2024-03-04T10:00", "reminder": "30"},
        "/events/add",
        headers=AJAX,
    )
    event = response.json()["event"]
    assert event["title"] == "Board meeting"

    token = csrf_token(client, "/events/add")
    moved = client.post(
        f"/events/move/{event['id']}",
        data={"csrf_token": token, "start_time": "2024-03-06T14:00", "end_time": "2024-03-06T15:00"},
        headers=AJAX,
    )
    assert moved.json()["event"]["start_time"] == "2024-03-06 14:00:00"
    backwards = client.post(
        f"/events/move/{event['id']}",
        data={"csrf_token": token, "start_time": "2024-03-06T14:00", "end_time": "2024-03-05T15:00"},
        headers=AJAX,
    )
    assert backwards.status_code == 400

    listing = client.get("/events", params={"start": "2024-03-31", "end": "2024-03-01"}, headers=AJAX).json()
    assert [row["id"] for row in listing["events"]] == [event["id"]]


def test_event_validation_errors(client):
    response = post(
        client,
        "/events/add",
        {"title": "", "start_time": "2024-03-04T09:00", "end_time": "2024-03-03T09:00"},
        "/events/add",
    )
    data = response.json()["data"]
    assert data["title_error"] == "Please enter event title"
    assert data["end_time_error"] == "End date must be after start date"


def test_event_reminders_action(client, db, agent_id):
    event_crud.create(
        db, data={"title": "Soon", "start_time": datetime(2099, 1, 1, 9, 0), "reminder": 60 * 24 * 365 * 100}, user_id=agent_id
    )
    response = client.get("/events/reminders", headers=AJAX)
    assert response.json()["created"] == 1
    assert reminder_crud.count(db, user_id=agent_id) == 1


def test_reminder_add_and_status(client, db, agent_id, contact_id):
    page = client.get("/reminders/add", params={"related_type": "contact", "related_id": str(contact_id)}).json()
    assert page["data"]["related_type"] == "contact"
    response = post(
        client,
        "/reminders/add",
        {"title": "Send proposal", "due_date": "2024-03-08T09:00", "priority": "high",
         "related_type": "contact", "related_id": str(contact_id)},
        "/reminders/add",
    )
    assert response.headers["location"] == "/reminders"
    reminder = reminder_crud.get_multi(db, user_id=agent_id)[0]
    assert reminder["related_name"] == "Ada Lovelace"

    token = csrf_token(client, "/reminders")
    status = client.post(f"/reminders/status/{reminder['id']}", data={"csrf_token": token, "status": "dismissed"},
                         headers=AJAX)
    assert status.json() == {"success": True, "status": "dismissed"}

    index = client.get("/reminders", params={"status": "bogus"}).json()["data"]
    assert index["status"] == "all"
    assert index["counts"] == {"pending": 0, "completed": 0, "dismissed": 1}

import pytest
from fastapi.testclient import TestClient

from backend.app.core.rate_limit import attempt_limiter
from backend.app.core.settings import get_settings
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_user import user_crud
from backend.app.db.base import Base
from backend.app.db.gateway import Database
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app

AJAX = {"X-Requested-With": "XMLHttpRequest"}
HUGE = "99999999999999999999"


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
    token = csrf_token(client, "/users/login")
    response = client.post(
        "/users/login",
        data={"email": "agent@flopy.io", "password": "secret123", "csrf_token": token},
        follow_redirects=False,
    )
    assert response.headers["location"] == "/dashboard"
    return client


def csrf_token(client: TestClient, path: str = "/contacts/add") -> str:
    return client.get(path).json()["data"]["csrf_token"]


def add_contact(client: TestClient, **fields):
    form = {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@analytical.io", "csrf_token": csrf_token(client)}
    form.update(fields)
    return client.post("/contacts/add", data=form, follow_redirects=False)


def test_contacts_require_login(agent_id):
    response = TestClient(app).get("/contacts", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/login"


def test_add_contact_redirects_to_detail(client, db, agent_id):
    tag_id = contact_crud.create_tag(db, name="VIP", color="#FF0000", created_by=agent_id)
    response = add_contact(client, owner_id=str(agent_id), lead_score="40", tags=[str(tag_id)])
    assert response.status_code == 303
    location = response.headers["location"]
    assert location.startswith("/contacts/view/")

    detail = client.get(location).json()
    assert detail["view"] == "contacts/view"
    data = detail["data"]
    assert data["contact"]["full_name"] == "Ada Lovelace"
    assert data["contact"]["lead_score"] == 40
    assert [tag["name"] for tag in data["contact"]["tags"]] == ["VIP"]
    assert data["total_interactions"] == 0
    assert data["flash"]["contact_success"]["message"] == "Contact added successfully"


def test_add_contact_shows_field_errors(client):
    response = add_contact(client, first_name="", email="not-an-email", lead_score="250", tags=["7"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["first_name_error"] == "Please enter first name"
    assert data["email_error"] == "Please enter a valid email"
    assert data["lead_score_error"] == "Lead score must be between 0 and 100"
    assert data["last_name"] == "Lovelace"


def test_add_contact_rejects_unknown_tags(client):
    response = add_contact(client, tags=["999"])
    assert response.json()["data"]["tags_error"] == "Please select valid tags"


def test_add_contact_with_bad_csrf_token(client, db):
    response = add_contact(client, csrf_token="0" * 64)
    assert response.status_code == 303
    assert response.headers["location"] == "/contacts/add"
    assert contact_crud.count(db) == 0


def test_index_filters_sorts_and_paginates(client):
    add_contact(client, first_name="Zed", lead_status="won")
    add_contact(client, first_name="Amy", lead_status="new")
    add_contact(client, first_name="Bob", lead_status="new")
    body = client.get("/contacts", params={"lead_status": "new", "sort_by": "first_name", "sort_dir": "asc"}).json()
    data = body["data"]
    assert [c["first_name"] for c in data["contacts"]] == ["Amy", "Bob"]
    assert data["pagination"] == {"current_page": 1, "per_page": 10, "total": 2, "total_pages": 1}
    assert data["sorting"] == {"sort_by": "first_name", "sort_dir": "ASC"}

    bogus = client.get("/contacts", params={"owner_id": "abc", "page": "-3"}).json()["data"]
    assert bogus["pagination"]["total"] == 3


def test_view_missing_contact_redirects_with_flash(client):
    response = client.get("/contacts/view/404", follow_redirects=False)
    assert response.headers["location"] == "/contacts"
    flash = client.get("/contacts").json()["data"]["flash"]
    assert flash["contact_error"]["message"] == "Contact not found"


def test_out_of_range_numbers_fall_back_to_defaults(client):
    add_contact(client)
    for params in ({"page": HUGE}, {"owner_id": HUGE}, {"tags": HUGE}):
        response = client.get("/contacts", params=params)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pagination"]["current_page"] == 1
        assert data["pagination"]["total"] == 1

    last_page = client.get("/contacts", params={"page": str(2 ** 63 - 1)}).json()["data"]
    assert last_page["contacts"] == []

    response = client.get(f"/contacts/view/{HUGE}", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/contacts"


def test_edit_updates_and_clears_tags(client, db, agent_id):
    tag_id = contact_crud.create_tag(db, name="VIP", color="#FF0000", created_by=agent_id)
    location = add_contact(client, tags=[str(tag_id)]).headers["location"]
    contact_id = int(location.rsplit("/", 1)[1])

    page = client.get(f"/contacts/edit/{contact_id}").json()["data"]
    assert page["tags"] == [tag_id]
    form = {"first_name": "Augusta", "last_name": "King", "csrf_token": page["csrf_token"]}
    response = client.post(f"/contacts/edit/{contact_id}", data=form, follow_redirects=False)
    assert response.headers["location"] == f"/contacts/view/{contact_id}"

    contact = contact_crud.get(db, contact_id=contact_id)
    assert contact["full_name"] == "Augusta King"
    assert contact["tags"] == []


def test_delete_requires_post(client, db):
    location = add_contact(client).headers["location"]
    contact_id = int(location.rsplit("/", 1)[1])
    assert client.get(f"/contacts/delete/{contact_id}", follow_redirects=False).headers["location"] == "/contacts"
    assert contact_crud.get(db, contact_id=contact_id) is not None

    token = csrf_token(client)
    response = client.post(f"/contacts/delete/{contact_id}", data={"csrf_token": token}, follow_redirects=False)
    assert response.headers["location"] == "/contacts"
    assert contact_crud.get(db, contact_id=contact_id) is None


def test_export_downloads_csv(client):
    add_contact(client)
    response = client.get("/contacts/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="contacts_export_')
    lines = response.content.decode("utf-8-sig").splitlines()
    assert lines[0].startswith("First Name,Last Name,Email")
    assert lines[1].startswith("Ada,Lovelace,ada@analytical.io")


def test_export_with_no_contacts_or_bad_format(client):
    response = client.get("/contacts/export", follow_redirects=False)
    assert response.headers["location"] == "/contacts"
    assert client.get("/contacts").json()["data"]["flash"]["contact_error"]["message"] == "No contacts found to export"
    client.get("/contacts/export", params={"format": "xlsx"}, follow_redirects=False)
    assert client.get("/contacts").json()["data"]["flash"]["contact_error"]["message"] == "Invalid export format"


def test_import_via_ajax(client, db):
    token = csrf_token(client, "/contacts/import")
    content = b"first_name,last_name\nAda,Lovelace\n,Missing\n"
    response = client.post(
        "/contacts/import",
        data={"csrf_token": token},
        files={"csv_file": ("contacts.csv", content, "text/csv")},
        headers=AJAX,
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["success"], body["imported"], body["failed"]) == (True, 1, 1)
    assert contact_crud.count(db) == 1


def test_import_rejects_non_csv(client, db):
    token = csrf_token(client, "/contacts/import")
    response = client.post(
        "/contacts/import",
        data={"csrf_token": token},
        files={"csv_file": ("contacts.txt", b"first_name,last_name\n", "text/plain")},
        follow_redirects=False,
    )
    assert response.headers["location"] == "/contacts/import"
    flash = client.get("/contacts/import").json()["data"]["flash"]
    assert flash["contact_error"]["message"] == "Invalid file type. Only CSV files are allowed."


def test_upload_avatar(client, db, tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "upload_dir", str(tmp_path))
    location = add_contact(client).headers["location"]
    contact_id = int(location.rsplit("/", 1)[1])
    token = csrf_token(client)

    not_ajax = client.post(f"/contacts/uploadAvatar/{contact_id}", data={"csrf_token": token}, follow_redirects=False)
    assert not_ajax.headers["location"] == f"/contacts/view/{contact_id}"

    response = client.post(
        f"/contacts/uploadAvatar/{contact_id}",
        data={"csrf_token": token},
        files={"avatar": ("face.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        headers=AJAX,
    )
    assert response.status_code == 200
    image_path = response.json()["image_path"]
    assert image_path.startswith("uploads/contact_avatars/contact_")
    assert (tmp_path / "contact_avatars" / image_path.rsplit("/", 1)[1]).exists()
    assert contact_crud.get(db, contact_id=contact_id)["avatar"] == image_path

    bad_type = client.post(
        f"/contacts/uploadAvatar/{contact_id}",
        data={"csrf_token": token},
        files={"avatar": ("script.exe", b"MZ", "application/octet-stream")},
        headers=AJAX,
    )
    assert bad_type.status_code == 400
    assert client.post("/contacts/uploadAvatar/999", data={"csrf_token": token}, headers=AJAX).status_code == 404


def test_tags_page_creates_tag_once(client, db):
    token = csrf_token(client, "/contacts/tags")
    response = client.post("/contacts/tags", data={"name": "Partner", "color": "#00FF00", "csrf_token": token},
                           follow_redirects=False)
    assert response.headers["location"] == "/contacts/tags"
    duplicate = client.post("/contacts/tags", data={"name": "Partner", "csrf_token": token})
    assert duplicate.json()["data"]["name_error"] == "Tag already exists"
    assert [tag["name"] for tag in contact_crud.get_all_tags(db)] == ["Partner"]


def test_actions_are_recorded_in_activity_feed(client):
    add_contact(client)
    activity = client.get("/dashboard").json()["data"]["recent_activity"]
    assert [entry["action"] for entry in activity[:2]] == ["add_contact", "login"]
    assert activity[0]["user_name"] == "Agent Smith"
    assert activity[0]["ip_address"] == "testclient"

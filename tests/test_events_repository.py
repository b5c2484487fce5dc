from datetime import datetime

import pytest

from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_event import event_crud
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.crud_user import user_crud
from backend.app.db.base import Base
from backend.app.db.gateway import Database
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine
from backend.app.services.event_reminder_service import generate_event_reminders


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed_reference_data(session)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    gateway = Database(engine.connect())
    yield gateway
    gateway.close()


@pytest.fixture
def agent_id(db):
    return user_crud.create(db, name="Agent Smith", email="agent@example.com", password="secret123", role_id=2)


def schedule(db, user_id, title, start, end=None, **extra):
    data = {"title": title, "start_time": start, "end_time": end, **extra}
    return event_crud.create(db, data=data, user_id=user_id)


def test_create_applies_defaults(db, agent_id):
    event_id = schedule(db, agent_id, "Standup", datetime(2024, 3, 4, 9, 0))
    event = event_crud.get(db, event_id=event_id)
    assert event["color"] == "#4F46E5"
    assert event["all_day"] is False
    assert event["contact_name"] is None


def test_get_is_scoped_to_owner(db, agent_id):
    other_id = user_crud.create(db, name="Other", email="other@example.com", password="secret123")
    event_id = schedule(db, agent_id, "Private", datetime(2024, 3, 4, 9, 0))
    assert event_crud.get(db, event_id=event_id, user_id=other_id) is None
    assert event_crud.update(db, event_id=event_id, user_id=other_id, data={"title": "Hijacked"}) is False
    assert event_crud.delete(db, event_id=event_id, user_id=other_id) is False
    assert event_crud.get(db, event_id=event_id, user_id=agent_id)["title"] == "Private"


def test_get_multi_returns_overlapping_events(db, agent_id):
    schedule(db, agent_id, "Inside", datetime(2024, 3, 10, 9, 0), datetime(2024, 3, 10, 10, 0))
    schedule(db, agent_id, "Spanning", datetime(2024, 2, 20), datetime(2024, 4, 10))
    schedule(db, agent_id, "Ends inside", datetime(2024, 2, 28), datetime(2024, 3, 2))
    schedule(db, agent_id, "Outside", datetime(2024, 5, 1), datetime(2024, 5, 2))
    rows = event_crud.get_multi(db, user_id=agent_id, start=datetime(2024, 3, 1), end=datetime(2024, 3, 31, 23, 59, 59))
    assert [row["title"] for row in rows] == ["Spanning", "Ends inside", "Inside"]


def test_move_reschedules(db, agent_id):
    event_id = schedule(db, agent_id, "Demo", datetime(2024, 3, 4, 9, 0), datetime(2024, 3, 4, 10, 0))
    assert event_crud.move(
        db, event_id=event_id, user_id=agent_id, start=datetime(2024, 3, 6, 14, 0), end=datetime(2024, 3, 6, 15, 0)
    )
    event = event_crud.get(db, event_id=event_id)
    assert (event["start_time"], event["end_time"]) == ("2024-03-06 14:00:00", "2024-03-06 15:00:00")


def test_contact_events(db, agent_id):
    contact_id = contact_crud.create(db, data={"first_name": "Ada", "last_name": "Lovelace"}, created_by=agent_id)
    schedule(db, agent_id, "Lunch", datetime(2024, 3, 4, 12, 0), contact_id=contact_id)
    assert [row["contact_name"] for row in event_crud.get_for_contact(db, contact_id=contact_id)] == ["Ada Lovelace"]
    assert event_crud.count_for_contact(db, contact_id=contact_id) == 1


def test_count_by_weekday_keys_one_to_seven(db, agent_id):
    now = datetime(2024, 3, 9, 12, 0)
    schedule(db, agent_id, "Sunday", datetime(2024, 3, 3, 9, 0))
    schedule(db, agent_id, "Monday", datetime(2024, 3, 4, 9, 0))
    schedule(db, agent_id, "Monday again", datetime(2024, 3, 4, 15, 0))
    schedule(db, agent_id, "Too old", datetime(2024, 1, 1, 9, 0))
    counts = event_crud.count_by_weekday(db, user_id=agent_id, now=now)
    assert list(counts) == [1, 2, 3, 4, 5, 6, 7]
    assert counts[1] == 1
    assert counts[2] == 2
    assert sum(counts.values()) == 3


def test_needing_reminders_respects_offset(db, agent_id):
    now = datetime(2024, 3, 4, 8, 30)
    due = schedule(db, agent_id, "Due", datetime(2024, 3, 4, 9, 0), reminder=60)
    schedule(db, agent_id, "Not yet", datetime(2024, 3, 4, 12, 0), reminder=15)
    schedule(db, agent_id, "No offset", datetime(2024, 3, 4, 9, 0))
    schedule(db, agent_id, "Past", datetime(2024, 3, 4, 8, 0), reminder=60)
    assert [event["id"] for event in event_crud.get_needing_reminders(db, now=now)] == [due]


def test_generate_event_reminders_is_idempotent(db, agent_id):
    now = datetime(2024, 3, 4, 8, 30)
    event_id = schedule(db, agent_id, "Board meeting", datetime(2024, 3, 4, 9, 0), reminder=60)

    created = generate_event_reminders(db, now=now, user_id=agent_id)
    assert len(created) == 1
    reminder = reminder_crud.get(db, reminder_id=created[0])
    assert reminder["title"] == "Event Reminder: Board meeting"
    assert reminder["description"] == "You have an upcoming event: Board meeting"
    assert reminder["related_type"] == "event"
    assert reminder["related_id"] == event_id
    assert reminder["related_name"] == "Board meeting"
    assert reminder["due_date"] == "2024-03-04 09:00:00"

    assert generate_event_reminders(db, now=now, user_id=agent_id) == []


def test_generate_event_reminders_filters_by_user(db, agent_id):
    other_id = user_crud.create(db, name="Other", email="other@example.com", password="secret123")
    now = datetime(2024, 3, 4, 8, 30)
    schedule(db, other_id, "Someone else", datetime(2024, 3, 4, 9, 0), reminder=60)
    assert generate_event_reminders(db, now=now, user_id=agent_id) == []
    assert len(generate_event_reminders(db, now=now)) == 1


def test_delete_removes_event_reminders(db, agent_id):
    event_id = schedule(db, agent_id, "Board meeting", datetime(2024, 3, 4, 9, 0), reminder=60)
    event_crud.create_reminder(db, event=event_crud.get(db, event_id=event_id))
    assert event_crud.delete(db, event_id=event_id, user_id=agent_id)
    assert reminder_crud.count(db, user_id=agent_id) == 0


def test_event_reminder_mentions_location(db, agent_id):
    event_id = schedule(db, agent_id, "Site visit", datetime(2024, 3, 4, 9, 0), location="Dock 4", reminder=30)
    reminder_id = event_crud.create_reminder(db, event=event_crud.get(db, event_id=event_id))
    reminder = reminder_crud.get(db, reminder_id=reminder_id)
    assert reminder["description"] == "You have an upcoming event: Site visit at Dock 4"

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from backend.app.db.base import Base
from backend.app.db.gateway import SQL_INT_MAX, Database, ParamType, infer_param_type, parse_int
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine


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


def insert_role(db: Database, role_id: int, name: str) -> None:
    db.prepare("INSERT INTO roles (id, name, description) VALUES (:id, :name, :description)")
    db.bind("id", role_id)
    db.bind("name", name)
    db.bind("description", None)
    db.execute()


def test_infer_param_type():
    assert infer_param_type(True) is ParamType.BOOL
    assert infer_param_type(0) is ParamType.INT
    assert infer_param_type(None) is ParamType.NULL
    assert infer_param_type("5") is ParamType.STR
    assert infer_param_type(datetime(2024, 1, 1)) is ParamType.STR


def test_bind_accepts_leading_colon_and_explicit_type(db):
    db.prepare("SELECT :value AS value")
    db.bind(":value", "7", ParamType.INT)
    assert db.bound_type("value") is ParamType.INT
    assert db.fetch_value() == 7


def test_datetimes_and_dates_bind_as_text(db):
    db.prepare("SELECT :moment AS moment, :day AS day")
    db.bind("moment", datetime(2024, 3, 5, 8, 0, 0))
    db.bind("day", date(2024, 3, 5))
    assert db.fetch_one() == {"moment": "2024-03-05 08:00:00", "day": "2024-03-05"}


def test_seeded_roles_are_readable(db):
    db.prepare("SELECT id, name FROM roles ORDER BY id")
    assert db.fetch_all() == [{"id": 1, "name": "Admin"}, {"id": 2, "name": "Agent"}, {"id": 3, "name": "Client"}]
    assert db.row_count() == 3


def test_insert_reports_last_insert_id(db):
    insert_role(db, 10, "Auditor")
    assert db.last_insert_id() == 10
    db.prepare("SELECT name FROM roles WHERE id = :id")
    db.bind("id", 10)
    assert db.fetch_value() == "Auditor"


def test_fetch_one_and_value_defaults(db):
    db.prepare("SELECT name FROM roles WHERE id = :id")
    db.bind("id", 999)
    assert db.fetch_one() is None
    assert db.fetch_value("missing") == "missing"


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(IntegrityError):
        with db.transaction():
            insert_role(db, 20, "Temp")
            insert_role(db, 21, "Temp")
    db.prepare("SELECT COUNT(*) AS total FROM roles WHERE name = 'Temp'")
    assert db.fetch_value() == 0
    assert not db.in_transaction


def test_transaction_commits_on_success(db):
    with db.transaction():
        insert_role(db, 30, "First")
        insert_role(db, 31, "Second")
    db.prepare("SELECT COUNT(*) AS total FROM roles WHERE id IN (30, 31)")
    assert db.fetch_value() == 2


def test_failed_statement_outside_transaction_leaves_connection_usable(db):
    with pytest.raises(IntegrityError):
        insert_role(db, 1, "Duplicate")
    insert_role(db, 40, "Afterwards")
    assert db.last_insert_id() == 40


def test_dialect_helpers_on_sqlite(db):
    db.prepare(
        f"SELECT {db.month_of(':moment')} AS month, {db.year_of(':moment')} AS year, "
        f"{db.weekday_of(':moment')} AS weekday"
    )
    db.bind("moment", "2024-03-03 10:00:00")
    # 2024-03-03 is a Sunday
    assert db.fetch_one() == {"month": 3, "year": 2024, "weekday": 1}


def test_parse_int_rejects_unbindable_values():
    assert parse_int(" 42 ") == 42
    assert parse_int(str(SQL_INT_MAX)) == SQL_INT_MAX
    assert parse_int(str(SQL_INT_MAX + 1)) is None
    assert parse_int("-99999999999999999999") is None
    assert parse_int("4.5") is None
    assert parse_int(True) is None
    assert parse_int(None) is None


def test_last_insert_id_reads_sequence_on_postgresql():
    connection = MagicMock()
    connection.dialect.name = "postgresql"
    connection.execute.return_value.scalar.return_value = 17
    gateway = Database(connection)
    assert gateway.last_insert_id() == 17
    statement = connection.execute.call_args[0][0]
    assert str(statement) == "SELECT lastval()"
